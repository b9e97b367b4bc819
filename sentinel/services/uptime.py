import logging
from datetime import datetime, timedelta

from sentinel.schemas import UptimeWindow, utcnow
from sentinel.services.history import HistoryStore

log = logging.getLogger(__name__)

def expected_samples(window_seconds: float, expected_interval: float) -> float:
    if window_seconds <= 0 or expected_interval <= 0:
        raise ValueError("window y expected_interval deben ser > 0")
    if expected_interval > window_seconds:
        raise ValueError("expected_interval mayor que la ventana")
    return window_seconds / expected_interval

def uptime_ratio(
    store: HistoryStore,
    site_id: str,
    window_seconds: float,
    expected_interval: float,
    now: datetime | None = None,
) -> float:
    """Estimación: muestras UP / muestras esperadas en la ventana, en [0, 1].

    Supone que el monitor corrió cada ``expected_interval``; si estuvo caído o
    con retraso el valor queda por debajo de la disponibilidad real.
    """
    expected = expected_samples(window_seconds, expected_interval)
    now = now or utcnow()
    ups = store.count_since(site_id, now - timedelta(seconds=window_seconds), reachable=True)
    ratio = ups / expected
    if ratio > 1.0:
        log.warning(
            "uptime de %s = %.3f > 1: expected_interval=%ss no coincide con el intervalo real de chequeo",
            site_id, ratio, expected_interval,
        )
        return 1.0
    return max(0.0, ratio)

def uptime_percent(ratio: float) -> float:
    return round(100.0 * ratio, 2)

def uptime_window(
    store: HistoryStore,
    site_id: str,
    window_seconds: float,
    expected_interval: float,
    now: datetime | None = None,
) -> UptimeWindow:
    ratio = uptime_ratio(store, site_id, window_seconds, expected_interval, now)
    return UptimeWindow(endpoint_id=site_id, window_seconds=window_seconds, ratio=ratio)
