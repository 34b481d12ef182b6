"""Pulseboard REST API — FastAPI application factory."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pulseboard.api.deps import (
    dispose_engine,
    get_engine,
    init_services,
    init_session_factory,
    shutdown_services,
)
from pulseboard.api.errors import register_error_handlers
from pulseboard.api.middleware.request_id import RequestIDMiddleware
from pulseboard.api.routers import dashboard
from pulseboard.core.config import get_settings
from pulseboard.core.database import create_all
from pulseboard.core.logging import setup_logging
from pulseboard.scheduler import create_scheduler

log = structlog.get_logger("pulseboard.api")


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: init DB, build sync runtime, start refresh loop. Shutdown: reverse."""
    settings = get_settings()
    factory = init_session_factory(settings.database_url)
    await create_all(get_engine())
    orchestrator = init_services(settings, factory)

    scheduler = create_scheduler(orchestrator, settings)
    await scheduler.start()
    log.info(
        "app.started",
        repos=len(settings.github_repos),
        github=settings.github_configured,
        jira=settings.jira_configured,
    )
    yield
    await scheduler.stop()
    await shutdown_services()
    await dispose_engine()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    setup_logging()
    settings = get_settings()

    app = FastAPI(title="Pulseboard", lifespan=_lifespan)

    register_error_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health", tags=["ops"])
    async def health() -> JSONResponse:
        return JSONResponse(
            {
                "status": "ok",
                "github": settings.github_configured,
                "jira": settings.jira_configured,
            }
        )

    app.include_router(dashboard.router, prefix="/api/dashboard", tags=["dashboard"])

    return app
