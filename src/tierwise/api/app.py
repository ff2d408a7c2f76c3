"""FastAPI application with lifespan and router mounting."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tierwise.api.routes import consultations, health, specialists
from tierwise.core.config import AppSettings
from tierwise.core.exceptions import UnknownDomainError
from tierwise.core.logging import setup_logging
from tierwise.orchestration.service import ConsultationService
from tierwise.persistence import create_persistence
from tierwise.specialists.catalog import create_engine

logger = logging.getLogger(__name__)


def build_service(settings: AppSettings) -> ConsultationService:
    """Wire engine and persistence from settings."""
    engine = create_engine(settings.engine)
    audit_log, cache = create_persistence(settings)
    return ConsultationService(engine, audit_log, cache, cache_ttl=settings.cache.ttl_seconds)


def create_app(
    settings: Optional[AppSettings] = None,
    service: Optional[ConsultationService] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``service`` short-circuits wiring from settings, which tests use to inject
    in-memory backends.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app_settings = settings or AppSettings()
        setup_logging(app_settings.log_level)
        app.state.settings = app_settings
        app.state.service = service or build_service(app_settings)
        logger.info(
            "Tierwise API ready (environment=%s, audit=%s)",
            app_settings.environment, app_settings.audit.backend,
        )
        yield

    app = FastAPI(
        title="Tierwise Specialist Escalation Service",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(health.router)
    app.include_router(specialists.router)
    app.include_router(consultations.router, prefix="/consultations")

    @app.exception_handler(UnknownDomainError)
    async def _unknown_domain(request: Request, exc: UnknownDomainError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc), "domain": exc.domain})

    return app
