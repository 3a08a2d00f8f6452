"""
SlotKeeper API Server - REST API for on-demand passes and highlights.

The server also runs the daemon's timers on its own engine, so bumps posted
here protect items from the periodic passes.

Run with:
    uvicorn api.server:app --port 8420
    python cli.py daemon
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from api.schedule_router import health_router, schedule_router
from slotkeeper.config import load_config
from slotkeeper.daemon import ScheduleDaemon
from slotkeeper.engine import ScheduleEngine
from slotkeeper.errors import SlotKeeperError
from slotkeeper.integrations import NotionTaskStore
from slotkeeper.observability import REGISTRY, configure_logging

logger = logging.getLogger(__name__)


def create_app(
    engine: ScheduleEngine | None = None,
    run_timers: bool = True,
    config_path: Path | None = None,
    state_file: Path | None = None,
) -> FastAPI:
    """
    Build the API app.

    With no engine, one is built at startup from the config file and the
    Notion settings, and its store is closed at shutdown. With run_timers the
    conflict, optimization and notify jobs run on that same engine for the
    lifetime of the app.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store = None
        if engine is None:
            config = load_config(config_path)
            configure_logging(config.log_level)
            store = NotionTaskStore(
                config.notion, config.tz, config.properties, retry_delay=config.retry_delay_seconds
            )
            app.state.engine = ScheduleEngine(store, config)
            await app.state.engine.startup()

        daemon = timers = None
        if run_timers:
            daemon = ScheduleDaemon(app.state.engine, state_file=state_file)
            app.state.daemon = daemon
            timers = asyncio.create_task(daemon.run(install_signal_handlers=False))
        logger.info("=== SlotKeeper API started ===")
        try:
            yield
        finally:
            if daemon is not None:
                daemon.request_shutdown()
                await timers
            if store is not None:
                await store.aclose()

    app = FastAPI(
        title="SlotKeeper API",
        description="Scheduling and conflict resolution passes on demand",
        version="0.1.0",
        lifespan=lifespan,
    )
    if engine is not None:
        app.state.engine = engine

    # CORS middleware - configurable via CORS_ORIGINS env var
    cors_origins_env = os.getenv("CORS_ORIGINS", "*")
    cors_origins = (
        ["*"] if cors_origins_env == "*" else [o.strip() for o in cors_origins_env.split(",")]
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(schedule_router, prefix="/api/v1")
    app.include_router(health_router, prefix="/api/v1")

    @app.exception_handler(SlotKeeperError)
    async def slotkeeper_error_handler(request: Request, exc: SlotKeeperError):
        logger.error(f"{request.url.path}: {exc}")
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.get("/metrics", response_class=PlainTextResponse)
    async def metrics():
        return REGISTRY.to_prometheus()

    return app


app = create_app()


if __name__ == "__main__":
    port = int(os.getenv("SLOTKEEPER_API_PORT", "8420"))
    uvicorn.run(app, host="127.0.0.1", port=port)
