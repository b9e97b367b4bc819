import asyncio
import logging
import time
import uuid
from typing import List, Optional, Sequence

import httpx

from sentinel.errors import ProbeConfigError
from sentinel.schemas import Endpoint, StatusRecord, utcnow

log = logging.getLogger(__name__)

def validate_url(url: str) -> httpx.URL:
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, UnicodeError, ValueError, TypeError) as e:
        raise ProbeConfigError(f"URL inválida {url!r}: {e}") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ProbeConfigError(f"URL inválida {url!r}: se espera http(s)://host")
    return parsed

async def probe(client: httpx.AsyncClient, site: Endpoint, timeout: float) -> StatusRecord:
    """Un chequeo: un fallo de transporte también es una observación válida."""
    url = validate_url(site.url)

    started = time.monotonic()
    try:
        r = await client.get(url, timeout=timeout, follow_redirects=True)
    except httpx.TransportError as ex:
        return StatusRecord(
            id=str(uuid.uuid4()),
            endpoint_id=site.id,
            observed_at=utcnow(),
            reachable=False,
            message=str(ex) or type(ex).__name__,
            latency_ms=0,
        )
    latency_ms = int((time.monotonic() - started) * 1000)

    return StatusRecord(
        id=str(uuid.uuid4()),
        endpoint_id=site.id,
        observed_at=utcnow(),
        reachable=r.status_code == 200,
        message=f"{r.status_code} {r.reason_phrase}".strip(),
        latency_ms=latency_ms,
    )

async def _probe_or_skip(client: httpx.AsyncClient, site: Endpoint, timeout: float) -> Optional[StatusRecord]:
    try:
        return await probe(client, site, timeout)
    except ProbeConfigError as e:
        log.error("sitio %s omitido: %s", site.id, e)
    except httpx.HTTPError as e:
        # p.ej. DecodingError/TooManyRedirects: no son de transporte, pero el sitio respondió mal
        log.warning("sitio %s: error HTTP no esperado: %s", site.id, e)
        return StatusRecord(
            id=str(uuid.uuid4()),
            endpoint_id=site.id,
            observed_at=utcnow(),
            reachable=False,
            message=str(e) or type(e).__name__,
            latency_ms=0,
        )
    except Exception:
        log.exception("sitio %s omitido: error inesperado al sondear", site.id)
    return None

async def probe_all(client: httpx.AsyncClient, sites: Sequence[Endpoint], timeout: float) -> List[StatusRecord]:
    results = await asyncio.gather(*[_probe_or_skip(client, s, timeout) for s in sites])
    return [r for r in results if r is not None]
