"""
Social-connect service — application entry point.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import register_middleware
from config.settings import config
from connectors.manager import ConnectionManager
from connectors.registry import ConnectorRegistry
from connectors.routes import router as connectors_router
from connectors.state_store import SqlStateStore, run_reaper
from connectors.token_manager import ConnectedAccountSink
from database.session import async_session_factory, init_models

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "urllib3"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Social Connect",
        version="1.0.0",
        description="OAuth connection and token lifecycle manager for social accounts.",
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_middleware(app)

    # Routes
    app.include_router(connectors_router, prefix="/api/auth")

    @app.on_event("startup")
    async def on_startup():
        logger.info("Creating OAuth tables…")
        await init_models()

        registry = ConnectorRegistry()
        registry.discover()

        state_store = SqlStateStore(async_session_factory)
        app.state.connection_manager = ConnectionManager(
            state_store,
            ConnectedAccountSink(async_session_factory),
            registry=registry,
        )
        app.state.state_reaper = asyncio.create_task(
            run_reaper(
                state_store,
                interval_seconds=config.oauth_state_reap_interval_seconds,
                max_age_seconds=config.oauth_state_ttl_seconds,
            )
        )
        logger.info("Configured providers: %s", registry.list_configured() or "none")
        logger.info("Application ready to accept requests.")

    @app.on_event("shutdown")
    async def on_shutdown():
        reaper = getattr(app.state, "state_reaper", None)
        if reaper is not None:
            reaper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reaper

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )
