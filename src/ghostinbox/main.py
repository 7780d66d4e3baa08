"""GhostInbox admin API - FastAPI application factory.

JSON read/write surface over the alias store and the abuse mitigation
engine, consumed by the dashboard and by health probes:
- /aliases, /wildcard: alias CRUD and the wildcard toggle
- /security: stats, manual ban/unban, expired ban cleanup
- /health: alias database and security system status

Run with `ghostinbox-admin-api` or `uvicorn ghostinbox.main:create_app --factory`.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from . import __version__
from .aliases.router import router as aliases_router
from .aliases.router import wildcard_router
from .aliases.store import AliasStore, create_alias_store
from .config import Settings, get_settings
from .infrastructure.clock import SystemClock
from .observability.logging_config import configure_logging
from .observability.middleware import CorrelationIDMiddleware
from .observability.router import router as observability_router
from .security.factory import create_mitigation_engine
from .security.ports import AbuseMitigationPort
from .security.router import router as security_router

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    alias_store: Optional[AliasStore] = None,
    mitigation: Optional[AbuseMitigationPort] = None,
) -> FastAPI:
    """Build the admin API.

    Components not passed in are built from settings. Logging is only
    configured when the app builds its own components, so tests keep
    pytest's log capture.

    Raises:
        OSError, SQLAlchemyError: If the alias database cannot be opened
    """
    if settings is None:
        settings = get_settings()
        configure_logging(settings.LOG_LEVEL, settings.LOG_JSON, settings.SECURITY_LOG_FILE)

    clock = SystemClock()
    if alias_store is None:
        alias_store = create_alias_store(settings, clock)
    if mitigation is None:
        mitigation = create_mitigation_engine(settings, clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"GhostInbox admin API starting for domain {settings.DOMAIN}")
        if not mitigation.available:
            logger.warning("Security system unavailable; security endpoints will return 503")
        yield
        logger.info("GhostInbox admin API shutting down")

    app = FastAPI(
        title="GhostInbox Admin API",
        description="Alias and abuse mitigation administration for the GhostInbox relay",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.alias_store = alias_store
    app.state.mitigation = mitigation

    app.add_middleware(CorrelationIDMiddleware)

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        """Log the full error but return a generic message."""
        logger.error(f"Database error on {request.method} {request.url.path}", exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "database_error",
                "message": "A database error occurred. Please try again later.",
            },
        )

    app.include_router(observability_router)
    app.include_router(aliases_router)
    app.include_router(wildcard_router)
    app.include_router(security_router)

    return app


def run() -> None:
    """Console entrypoint: serve the admin API with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "ghostinbox.main:create_app",
        factory=True,
        host=settings.ADMIN_API_HOST,
        port=settings.ADMIN_API_PORT,
        log_config=None,
    )
