# entity_audit/main.py

from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from entity_audit.api.dependencies import configure_reader
from entity_audit.api.middleware import ActorContextMiddleware, CorrelationIdMiddleware
from entity_audit.api.routers import audits, health
from entity_audit.application.exceptions import InvalidPaginationError, UnknownEntityError
from entity_audit.config.logging import configure_logging
from entity_audit.config.settings import get_settings
from entity_audit.domain.exceptions import AuditError
from entity_audit.infrastructure.database.reader import AuditReader


def create_app(reader: Optional[AuditReader] = None) -> FastAPI:
    """Audit history read API. The host passes a reader built over its mapped classes."""
    settings = get_settings()
    configure_logging(settings.log_level)
    if reader is not None:
        configure_reader(reader)

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        debug=settings.debug,
    )

    # Middleware order: last added runs first (outermost). Request flow: CorrelationId -> ActorContext.
    app.add_middleware(ActorContextMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    @app.exception_handler(UnknownEntityError)
    async def unknown_entity_handler(request, exc: UnknownEntityError):
        return JSONResponse(status_code=404, content={"detail": exc.message})

    @app.exception_handler(InvalidPaginationError)
    async def invalid_pagination_handler(request, exc: InvalidPaginationError):
        return JSONResponse(status_code=422, content={"detail": exc.message})

    @app.exception_handler(AuditError)
    async def audit_error_handler(request, exc: AuditError):
        return JSONResponse(status_code=500, content={"detail": exc.message})

    # Routers: /health, /audits
    app.include_router(health.router)
    app.include_router(audits.router, prefix="/audits")
    return app
