from __future__ import annotations

import json
import uuid
from datetime import datetime
from pathlib import Path

import pytest
from sqlalchemy.pool import StaticPool

from sentinel.config import Settings
from sentinel.db import init_db, make_engine, make_session_factory
from sentinel.schemas import StatusRecord
from sentinel.services.history import HistoryStore


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory) -> HistoryStore:
    return HistoryStore(session_factory)


@pytest.fixture
def sites_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "sites": [
                    {"id": "a", "name": "Site A", "url": "http://a.test/health"},
                    {"id": "b", "name": "Site B", "url": "http://b.test/"},
                ]
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def settings(tmp_path: Path, sites_file: Path) -> Settings:
    return Settings(
        SITES_FILE=sites_file,
        DATABASE_URL=f"sqlite:///{tmp_path / 'sentinel.db'}",
        CHECK_INTERVAL=30,
        WATCH_CONFIG=False,
    )


@pytest.fixture
def make_record():
    def _make(site_id: str, observed_at: datetime, reachable: bool = True, latency_ms: int = 10, message: str = "200 OK") -> StatusRecord:
        return StatusRecord(
            id=str(uuid.uuid4()),
            endpoint_id=site_id,
            observed_at=observed_at,
            reachable=reachable,
            message=message,
            latency_ms=latency_ms if reachable else 0,
        )

    return _make
