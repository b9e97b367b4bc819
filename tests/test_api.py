from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from starlette.requests import Request

from sentinel.config import Settings
from sentinel.errors import RegistryError
from sentinel.main import create_app
from sentinel.schemas import Endpoint, SiteStatus, Snapshot, utcnow


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings, start_scheduler=False)) as c:
        yield c


def test_health(client) -> None:
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_sites(client) -> None:
    r = client.get("/sites")
    assert r.status_code == 200
    assert [s["id"] for s in r.json()["sites"]] == ["a", "b"]


def test_history_and_uptime(client, make_record) -> None:
    store = client.app.state.store
    for _ in range(3):
        store.append(make_record("a", utcnow()))

    r = client.get("/history/a", params={"limit": 2})
    assert r.status_code == 200
    assert len(r.json()["statuses"]) == 2

    r = client.get("/uptime/a")
    assert r.status_code == 200
    body = r.json()
    assert body["endpoint_id"] == "a"
    assert body["window_seconds"] == 24 * 3600
    assert body["ratio"] == pytest.approx(3 / 2880)


def test_unknown_site_is_404(client) -> None:
    assert client.get("/history/zzz").status_code == 404
    assert client.get("/uptime/zzz").status_code == 404


def test_snapshot_and_metrics(client) -> None:
    assert client.get("/snapshot").status_code == 503

    site = Endpoint(id="a", name="Site A", url="http://a.test/")
    snap = Snapshot(sites={"a": SiteStatus(site=site, statuses=[], uptime=50.0)})
    client.app.state.hub.publish(snap)

    r = client.get("/snapshot")
    assert r.status_code == 200
    assert r.json()["sites"]["a"]["uptime"] == 50.0

    text = client.get("/metrics").text
    assert 'service_up{service="a",name="Site A"} 0' in text
    assert 'service_uptime_pct{service="a",name="Site A"} 50.0' in text


def test_dashboard_page(client) -> None:
    r = client.get("/")
    assert r.status_code == 200
    assert "EventSource('/status')" in r.text


def test_startup_fails_without_sites(tmp_path) -> None:
    empty = tmp_path / "config.json"
    empty.write_text('{"sites": []}', encoding="utf-8")
    settings = Settings(SITES_FILE=empty, DATABASE_URL=f"sqlite:///{tmp_path / 'x.db'}", WATCH_CONFIG=False)
    with pytest.raises(RegistryError):
        with TestClient(create_app(settings, start_scheduler=False)):
            pass


def test_status_stream_sends_latest_snapshot(client, monkeypatch) -> None:
    site = Endpoint(id="a", name="Site A", url="http://a.test/")
    snap = Snapshot(sites={"a": SiteStatus(site=site, statuses=[], uptime=75.0)})
    client.app.state.hub.publish(snap)

    # el cliente "se va" después del primer evento para que la respuesta termine
    calls = []

    async def fake_is_disconnected(self) -> bool:
        calls.append(1)
        return len(calls) > 1

    monkeypatch.setattr(Request, "is_disconnected", fake_is_disconnected)

    with client.stream("GET", "/status") as r:
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/event-stream")
        assert r.headers["cache-control"] == "no-cache"
        body = r.read().decode()

    assert body.startswith("data: ")
    assert body.endswith("\n\n")
    first = body.split("\n\n")[0][len("data: "):]
    assert json.loads(first)["sites"]["a"]["uptime"] == 75.0
    assert len(client.app.state.hub) == 0


def test_engine_disposed_when_startup_fails(tmp_path, monkeypatch) -> None:
    disposed = []
    real_dispose = Engine.dispose

    def tracking_dispose(self, *args, **kwargs):
        disposed.append(self.url.database)
        return real_dispose(self, *args, **kwargs)

    monkeypatch.setattr(Engine, "dispose", tracking_dispose)

    empty = tmp_path / "config.json"
    empty.write_text('{"sites": []}', encoding="utf-8")
    url = f"sqlite:///{tmp_path / 'y.db'}"
    settings = Settings(SITES_FILE=empty, DATABASE_URL=url, WATCH_CONFIG=False)
    with pytest.raises(RegistryError):
        with TestClient(create_app(settings, start_scheduler=False)):
            pass
    assert disposed == [str(tmp_path / "y.db")]
