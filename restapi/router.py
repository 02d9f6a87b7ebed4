"""Application configuration and router setup."""

from contextlib import asynccontextmanager
from typing import Optional

import fastapi
import structlog
from fastapi.middleware import cors
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse

from ledger.core import config, init_db, telemetry
from ledger.core.database import DatabaseManager
from ledger.core.errors import (
    CategoryExistsError,
    DatabaseError,
    DatabaseValidationError,
    NotFoundError,
)
from restapi.endpoints import categories, health_check, utilities

TITLE = "Personal Ledger"
DESCRIPTION = "Personal Ledger backend API"
VERSION = "0.1.0"

logger = structlog.get_logger(__name__)


def register_error_handlers(app: fastapi.FastAPI) -> None:
    """Map database errors onto HTTP responses."""

    @app.exception_handler(NotFoundError)
    async def not_found(request: fastapi.Request, error: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": error.message})

    @app.exception_handler(CategoryExistsError)
    async def conflict(request: fastapi.Request, error: CategoryExistsError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": error.message})

    @app.exception_handler(DatabaseValidationError)
    async def invalid(request: fastapi.Request, error: DatabaseValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": error.message})

    @app.exception_handler(DatabaseError)
    async def database_failure(request: fastapi.Request, error: DatabaseError) -> JSONResponse:
        logger.error("request_failed", path=request.url.path, method=request.method, error=str(error))
        return JSONResponse(status_code=500, content={"detail": "Internal database error"})


@asynccontextmanager
async def lifespan(app: fastapi.FastAPI):
    manager: DatabaseManager = app.state.db_manager
    await manager.create_schema()
    logger.info("application_started", title=TITLE, version=VERSION)
    yield
    await manager.dispose()
    logger.info("application_stopped")


def create_app(
    settings: Optional[config.LedgerSettings] = None,
    manager: Optional[DatabaseManager] = None,
) -> fastapi.FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or config.get_settings()
    telemetry.init_telemetry(settings.telemetry.telemetry_level)

    app = fastapi.FastAPI(
        title=TITLE,
        description=DESCRIPTION,
        version=VERSION,
        lifespan=lifespan,
    )

    # Initialize database
    init_db.init_db(app, manager or DatabaseManager(settings.database))

    # Add CORS middleware
    app.add_middleware(
        cors.CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    # Include routers
    app.include_router(health_check.router)
    app.include_router(utilities.router)
    app.include_router(categories.router)

    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema
        openapi_schema = get_openapi(
            title=TITLE,
            version=VERSION,
            description=DESCRIPTION,
            routes=app.routes,
        )
        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi

    return app
