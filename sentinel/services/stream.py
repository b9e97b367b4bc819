import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Optional

from sentinel.services.hub import BroadcastHub, Delivery, Subscription, SubscriptionClosed
from sentinel.services.sse import KEEPALIVE_FRAME

log = logging.getLogger(__name__)


class StreamSession:
    """Sesión SSE de un observador: se registra al empezar y se libera en cualquier salida."""

    def __init__(
        self,
        hub: BroadcastHub,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
        keepalive: Optional[float] = 15.0,
    ):
        self.hub = hub
        self.subscription: Optional[Subscription] = None
        self._is_disconnected = is_disconnected
        self._keepalive = keepalive
        self.sent = 0

    async def _next(self) -> Optional[Delivery]:
        if not self._keepalive:
            return await self.subscription.get()
        try:
            return await asyncio.wait_for(self.subscription.get(), timeout=self._keepalive)
        except asyncio.TimeoutError:
            return None

    async def events(self) -> AsyncIterator[str]:
        # se registra en el hub al empezar a iterar
        self.subscription = self.hub.subscribe()
        try:
            while True:
                if self._is_disconnected is not None and await self._is_disconnected():
                    break
                try:
                    delivery = await self._next()
                except SubscriptionClosed:
                    break
                if delivery is None:
                    yield KEEPALIVE_FRAME
                    continue
                yield delivery.frame
                self.sent += 1
        finally:
            self.close()
            log.debug("sesión %s cerrada tras %d eventos", self.subscription.id, self.sent)

    def close(self) -> None:
        if self.subscription is not None:
            self.hub.unsubscribe(self.subscription)

    def __aiter__(self) -> AsyncIterator[str]:
        return self.events()
