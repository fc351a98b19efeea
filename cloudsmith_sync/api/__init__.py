"""cloudsmith-sync HTTP service — FastAPI application factory."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from cloudsmith_sync import __version__
from cloudsmith_sync.api.deps import Container, build_container
from cloudsmith_sync.api.middleware.request_id import RequestIDMiddleware
from cloudsmith_sync.api.routers import webhooks
from cloudsmith_sync.core.config import Config, load_config
from cloudsmith_sync.core.logging import setup_logging

log = structlog.get_logger("cloudsmith_sync.api")


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: log the tracked repositories. Shutdown: close the registry client."""
    container: Container = app.state.container
    log.info(
        "service.started",
        version=__version__,
        owner=container.config.owner,
        target_repository=container.config.target_repository,
        repositories=len(container.config.repositories),
    )
    yield
    await container.close()


def create_app(config: Config | None = None, container: Container | None = None) -> FastAPI:
    """Build and return the FastAPI application."""
    setup_logging()
    if container is None:
        container = build_container(config or load_config())

    app = FastAPI(
        title="cloudsmith-sync",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        lifespan=_lifespan,
    )
    app.state.container = container

    app.add_middleware(RequestIDMiddleware)

    @app.get("/health", tags=["ops"])
    async def health() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    app.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])

    return app
