import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sentinel.config import Settings, get_settings
from sentinel.db import init_db, make_engine, make_session_factory
from sentinel.routers import pages, public
from sentinel.services import registry
from sentinel.services.history import HistoryStore
from sentinel.services.hub import BroadcastHub
from sentinel.services.scheduler import Scheduler

log = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)

def create_app(settings: Settings | None = None, start_scheduler: bool = True) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = make_engine(settings.DATABASE_URL)
        hub = None
        tasks = []
        try:
            init_db(engine)
            session_factory = make_session_factory(engine)

            # sin registro de sitios no se arranca (RegistryError aborta el arranque)
            sites = registry.load_sites(settings.SITES_FILE)
            registry.sync_sites(session_factory, sites)
            log.info("%d sitios cargados desde %s", len(sites), settings.SITES_FILE)

            hub = BroadcastHub(buffer_size=settings.SUBSCRIBER_BUFFER, overflow=settings.OVERFLOW_POLICY)
            store = HistoryStore(session_factory)
            scheduler = Scheduler(settings, store, hub, sites, session_factory=session_factory)

            app.state.settings = settings
            app.state.hub = hub
            app.state.store = store
            app.state.scheduler = scheduler

            if start_scheduler:
                tasks.append(asyncio.create_task(scheduler.run_forever(), name="scheduler"))
                if settings.WATCH_CONFIG:
                    tasks.append(asyncio.create_task(
                        scheduler.watch_config(settings.SITES_FILE, settings.CONFIG_POLL_SECONDS),
                        name="config-watch",
                    ))
            yield
        finally:
            if hub is not None:
                hub.close()
            for t in tasks:
                t.cancel()
            for t in tasks:
                with suppress(asyncio.CancelledError):
                    await t
            engine.dispose()

    app = FastAPI(title=settings.APP_TITLE, version=settings.APP_VERSION, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.include_router(public.router)
    app.include_router(pages.router)
    return app

def run() -> None:
    import uvicorn

    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    uvicorn.run(create_app(settings), host=settings.HOST, port=settings.PORT, log_config=None)

if __name__ == "__main__":
    run()
