import json
import logging
from pathlib import Path
from typing import Any, List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from sentinel.errors import RegistryError
from sentinel.models import SiteRow
from sentinel.schemas import Endpoint

log = logging.getLogger(__name__)

def parse_sites(raw: str) -> List[Endpoint]:
    """Acepta {"sites": [...]} o directamente la lista de sitios."""
    try:
        data: Any = json.loads(raw or "")
    except json.JSONDecodeError as e:
        raise RegistryError(f"config inválido: {e}") from e

    if isinstance(data, dict):
        data = data.get("sites")
    if not isinstance(data, list):
        raise RegistryError("config debe ser una lista de sitios o {\"sites\": [...]}")
    if not data:
        raise RegistryError("config no define ningún sitio")

    sites: List[Endpoint] = []
    seen = set()
    for i, item in enumerate(data):
        try:
            site = Endpoint.model_validate(item)
        except ValidationError as e:
            raise RegistryError(f"sitio #{i} inválido: {e}") from e
        if site.id in seen:
            raise RegistryError(f"id duplicado: {site.id}")
        seen.add(site.id)
        sites.append(site)
    return sites

def load_sites(path: Path) -> List[Endpoint]:
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise RegistryError(f"no se pudo leer {path}: {e}") from e
    return parse_sites(raw)

def sync_sites(session_factory: sessionmaker, sites: List[Endpoint]) -> None:
    """Upsert por id: nombre/url se actualizan, el historial se conserva."""
    try:
        with session_factory() as db:
            for site in sites:
                db.merge(SiteRow(id=site.id, name=site.name, url=site.url))
            db.commit()
    except SQLAlchemyError as e:
        raise RegistryError(f"no se pudo guardar el registro de sitios: {e}") from e

def config_fingerprint(path: Path) -> Optional[float]:
    try:
        return Path(path).stat().st_mtime
    except OSError:
        return None
