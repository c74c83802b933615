"""FastAPI server for the syscheck daemon."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from syscheck import __version__
from syscheck.api.health_routes import health_router
from syscheck.config import Settings, load_settings
from syscheck.health.engine import build_client
from syscheck.health.scheduler import CheckLoop
from syscheck.health.store import ResultStore
from syscheck.metrics import build_sink

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the store and start the check loop; stop both on shutdown."""
    settings: Settings = app.state.settings
    targets = settings.target_list

    store = ResultStore(targets)
    app.state.store = store

    sink = build_sink(settings.metrics_backend)
    app.state.metrics_sink = sink

    injected = getattr(app.state, "http_client", None)
    client = injected or build_client(settings.timeout)

    check_loop = CheckLoop(client, store, settings.interval, sink=sink)
    app.state.check_loop = check_loop
    await check_loop.start()
    logger.info(
        "syscheck %s serving %d targets (timeout=%.1fs, interval=%.1fs, metrics=%s)",
        __version__, len(targets), settings.timeout, settings.interval, settings.metrics_backend,
    )

    yield

    # Shutdown
    logger.info("Shutdown requested, stopping check loop")
    await check_loop.stop()
    if injected is None:
        client.close()


def create_app(
    settings: Settings | None = None,
    http_client: httpx.Client | None = None,
) -> FastAPI:
    app = FastAPI(
        title="syscheck",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings or load_settings()
    if http_client is not None:
        app.state.http_client = http_client

    app.include_router(health_router)

    return app
