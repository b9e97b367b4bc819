import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

import httpx
from pydantic_core import PydanticSerializationError

from sentinel.config import Settings
from sentinel.errors import HistoryError, RegistryError
from sentinel.schemas import Endpoint, SiteStatus, Snapshot, StatusRecord, utcnow
from sentinel.services import prober, registry
from sentinel.services.history import HistoryStore
from sentinel.services.hub import BroadcastHub
from sentinel.services.uptime import uptime_percent, uptime_ratio

log = logging.getLogger(__name__)


class Scheduler:
    """Dueño del registro de sitios y del historial; publica un Snapshot por ciclo."""

    def __init__(
        self,
        settings: Settings,
        store: HistoryStore,
        hub: BroadcastHub,
        sites: Sequence[Endpoint],
        client: Optional[httpx.AsyncClient] = None,
        session_factory=None,
    ):
        self.settings = settings
        self.store = store
        self.hub = hub
        self._sites: List[Endpoint] = list(sites)
        self._pending: Optional[List[Endpoint]] = None
        self._client = client
        self._session_factory = session_factory
        self.cycles = 0

    @property
    def sites(self) -> List[Endpoint]:
        return list(self._sites)

    def replace_sites(self, sites: Sequence[Endpoint]) -> None:
        # se aplica al inicio del próximo ciclo; el ciclo en curso no cambia
        self._pending = list(sites)

    def _apply_pending(self) -> None:
        if self._pending is None:
            return
        pending, self._pending = self._pending, None
        if self._session_factory is not None:
            try:
                registry.sync_sites(self._session_factory, pending)
            except RegistryError as e:
                log.error("recarga de sitios descartada: %s", e)
                return
        self._sites = pending
        log.info("registro de sitios actualizado: %d sitios", len(pending))

    def _site_status(self, site: Endpoint, record: Optional[StatusRecord], now: datetime) -> Optional[SiteStatus]:
        s = self.settings
        try:
            if record is not None:
                self.store.append(record)
            statuses = self.store.recent(site.id, s.HISTORY_WINDOW)
            ratio = uptime_ratio(self.store, site.id, s.uptime_window_seconds, s.CHECK_INTERVAL, now)
        except HistoryError as e:
            log.error("historial no disponible para %s: %s", site.id, e)
            return None
        last = statuses[0] if statuses else None
        degraded = bool(last and last.reachable and last.latency_ms > s.DEGRADED_MS)
        return SiteStatus(site=site, statuses=statuses, uptime=uptime_percent(ratio), degraded=degraded)

    def _persist(self, sites: List[Endpoint], records: List[StatusRecord]) -> Dict[str, SiteStatus]:
        now = utcnow()
        by_site = {r.endpoint_id: r for r in records}
        out: Dict[str, SiteStatus] = {}
        for site in sites:
            status = self._site_status(site, by_site.get(site.id), now)
            if status is not None:
                out[site.id] = status
        try:
            cutoff = now - timedelta(hours=self.settings.RETENTION_HOURS)
            pruned = self.store.prune_before(cutoff)
            if pruned:
                log.debug("historial: %d registros antiguos eliminados", pruned)
        except HistoryError as e:
            log.warning("no se pudo podar el historial: %s", e)
        return out

    async def run_cycle(self, client: Optional[httpx.AsyncClient] = None) -> Optional[Snapshot]:
        await asyncio.to_thread(self._apply_pending)
        sites = list(self._sites)
        client = client or self._client
        if client is None:
            async with httpx.AsyncClient() as own:
                records = await prober.probe_all(own, sites, self.settings.PROBE_TIMEOUT)
        else:
            records = await prober.probe_all(client, sites, self.settings.PROBE_TIMEOUT)

        statuses = await asyncio.to_thread(self._persist, sites, records)
        self.cycles += 1

        if sites and not statuses:
            log.error("ciclo %d sin datos: historial no disponible", self.cycles)
            self.hub.publish_error("history unavailable")
            return None

        snapshot = Snapshot(sites=statuses)
        try:
            outcomes = self.hub.publish(snapshot)
        except (PydanticSerializationError, TypeError, ValueError) as e:
            log.error("ciclo %d: snapshot no serializable, no se publica: %s", self.cycles, e)
            return None
        log.info(
            "ciclo %d: %d/%d sitios, %d suscriptores",
            self.cycles, len(records), len(sites), len(outcomes),
        )
        return snapshot

    async def run_forever(self) -> None:
        interval = self.settings.CHECK_INTERVAL
        async with httpx.AsyncClient() as client:
            while True:
                started = time.monotonic()
                try:
                    await self.run_cycle(client)
                except Exception:
                    log.exception("ciclo %d falló; se sigue con el siguiente", self.cycles + 1)
                elapsed = time.monotonic() - started
                if elapsed > interval:
                    log.warning("ciclo tardó %.1fs (> intervalo de %.1fs)", elapsed, interval)
                await asyncio.sleep(max(0.0, interval - elapsed))

    async def watch_config(self, path, poll_seconds: float) -> None:
        """Recarga config.json cuando cambia su mtime."""
        last = registry.config_fingerprint(path)
        while True:
            await asyncio.sleep(poll_seconds)
            current = registry.config_fingerprint(path)
            if current is None or current == last:
                continue
            last = current
            try:
                sites = registry.load_sites(path)
            except RegistryError as e:
                log.error("config modificado pero inválido, se mantiene el anterior: %s", e)
                continue
            log.info("config modificado, recargando %d sitios", len(sites))
            self.replace_sites(sites)
