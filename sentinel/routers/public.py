import asyncio
from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse

from sentinel.errors import HistoryError
from sentinel.services import monitor
from sentinel.services.sse import SSE_HEADERS
from sentinel.services.stream import StreamSession
from sentinel.services.uptime import uptime_window

router = APIRouter()

def _scheduler(request: Request):
    return request.app.state.scheduler

def _known_site(request: Request, site_id: str):
    for site in _scheduler(request).sites:
        if site.id == site_id:
            return site
    raise HTTPException(status_code=404, detail=f"sitio '{site_id}' no encontrado")

@router.get("/health")
def health():
    return {"status": "ok"}

@router.get("/sites")
def sites(request: Request):
    return {"sites": [s.model_dump() for s in _scheduler(request).sites]}

@router.get("/status")
async def status(request: Request):
    settings = request.app.state.settings
    session = StreamSession(
        request.app.state.hub,
        is_disconnected=request.is_disconnected,
        keepalive=settings.KEEPALIVE_SECONDS,
    )
    return StreamingResponse(session.events(), media_type="text/event-stream", headers=SSE_HEADERS)

@router.get("/snapshot")
def snapshot(request: Request):
    latest = request.app.state.hub.latest
    if latest is None:
        raise HTTPException(status_code=503, detail="todavía no hay datos")
    return JSONResponse(latest.model_dump(mode="json"))

@router.get("/history/{site_id}")
async def history(request: Request, site_id: str, limit: int | None = Query(default=None, ge=1)):
    _known_site(request, site_id)
    window = request.app.state.settings.HISTORY_WINDOW
    limit = min(limit or window, window)
    try:
        records = await asyncio.to_thread(request.app.state.store.recent, site_id, limit)
    except HistoryError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"site_id": site_id, "statuses": [r.model_dump(mode="json") for r in records]}

@router.get("/uptime/{site_id}")
async def uptime(request: Request, site_id: str):
    _known_site(request, site_id)
    settings = request.app.state.settings
    try:
        win = await asyncio.to_thread(
            uptime_window,
            request.app.state.store,
            site_id,
            settings.uptime_window_seconds,
            settings.CHECK_INTERVAL,
        )
    except HistoryError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return win.model_dump()

@router.get("/metrics", response_class=PlainTextResponse)
def metrics(request: Request):
    return monitor.render_metrics(request.app.state.hub.latest)
