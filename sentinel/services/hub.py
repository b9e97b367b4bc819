import asyncio
import enum
import itertools
import logging
import threading
from typing import Dict, List, NamedTuple, Optional, Union

from sentinel.schemas import CycleError, Snapshot
from sentinel.services.sse import encode_message

log = logging.getLogger(__name__)

Message = Union[Snapshot, CycleError]

class Delivery(NamedTuple):
    message: Message
    frame: str  # evento SSE ya serializado, compartido por todos los suscriptores

class DeliveryOutcome(str, enum.Enum):
    DELIVERED = "delivered"
    DROPPED = "dropped"   # el buffer estaba lleno: se descartó el mensaje más viejo
    CLOSED = "closed"     # suscriptor cerrado (por la política o ya desconectado)

class SubscriptionClosed(Exception):
    pass

_CLOSED = object()

class Subscription:
    """Canal de un suscriptor con buffer acotado."""

    def __init__(self, sub_id: int, buffer_size: int):
        self.id = sub_id
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=buffer_size)
        self.closed = False
        self.dropped = 0

    def offer(self, delivery: Delivery, overflow: str) -> DeliveryOutcome:
        if self.closed:
            return DeliveryOutcome.CLOSED
        try:
            self._queue.put_nowait(delivery)
            return DeliveryOutcome.DELIVERED
        except asyncio.QueueFull:
            pass
        if overflow == "close":
            self.close()
            return DeliveryOutcome.CLOSED
        # drop: descarta el pendiente más viejo y deja el más nuevo
        try:
            self._queue.get_nowait()
        except asyncio.QueueEmpty:
            pass
        self._queue.put_nowait(delivery)
        self.dropped += 1
        return DeliveryOutcome.DROPPED

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def pending(self) -> int:
        return self._queue.qsize()

    async def get(self) -> Delivery:
        item = await self._queue.get()
        if item is _CLOSED:
            # deja la marca para que otro get() también termine
            self._queue.put_nowait(_CLOSED)
            raise SubscriptionClosed(self.id)
        return item


class BroadcastHub:
    """Reparte cada Snapshot a todos los suscriptores sin bloquear al publicador."""

    def __init__(self, buffer_size: int = 4, overflow: str = "drop", replay_latest: bool = True):
        if buffer_size < 1:
            raise ValueError("buffer_size debe ser >= 1")
        if overflow not in ("drop", "close"):
            raise ValueError("overflow debe ser 'drop' o 'close'")
        self.buffer_size = buffer_size
        self.overflow = overflow
        self.replay_latest = replay_latest
        self._lock = threading.Lock()
        self._subs: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self.latest: Optional[Snapshot] = None
        self._latest_delivery: Optional[Delivery] = None

    def subscribe(self) -> Subscription:
        with self._lock:
            sub = Subscription(next(self._ids), self.buffer_size)
            self._subs[sub.id] = sub
            latest = self._latest_delivery
        if latest is not None and self.replay_latest:
            sub.offer(latest, self.overflow)
        log.debug("suscriptor %s conectado (%d activos)", sub.id, len(self))
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            removed = self._subs.pop(sub.id, None)
        sub.close()
        if removed is not None:
            log.debug("suscriptor %s desconectado (%d activos)", sub.id, len(self))

    def publish(self, message: Message) -> Dict[int, DeliveryOutcome]:
        """Serializa una sola vez y entrega sin esperar a nadie.

        Un error de serialización se propaga y no se entrega nada.
        """
        delivery = Delivery(message, encode_message(message))
        # el lock solo protege la copia del conjunto; la entrega ocurre fuera
        with self._lock:
            if isinstance(message, Snapshot):
                self.latest = message
                self._latest_delivery = delivery
            targets: List[Subscription] = list(self._subs.values())

        outcomes: Dict[int, DeliveryOutcome] = {}
        for sub in targets:
            outcome = sub.offer(delivery, self.overflow)
            outcomes[sub.id] = outcome
            if outcome is DeliveryOutcome.CLOSED:
                with self._lock:
                    self._subs.pop(sub.id, None)
            elif outcome is DeliveryOutcome.DROPPED:
                log.info("suscriptor %s lento: se descartó un snapshot pendiente", sub.id)
        return outcomes

    def publish_error(self, detail: str) -> Dict[int, DeliveryOutcome]:
        return self.publish(CycleError(detail=detail))

    def close(self) -> None:
        with self._lock:
            subs = list(self._subs.values())
            self._subs.clear()
        for sub in subs:
            sub.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._subs)

    def __contains__(self, sub: Subscription) -> bool:
        with self._lock:
            return sub.id in self._subs
