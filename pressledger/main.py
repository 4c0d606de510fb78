# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Main FastAPI application entry point.

This module creates and configures the FastAPI application.

Assumptions:
- FastAPI instance should include OpenAPI documentation
- API versioning is handled via path prefix
- Ledger errors are mapped to HTTP status codes in one place:
  AlreadyExists 409, Validation 400, NotFound 404, anything else 500
"""
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from pressledger.config import settings
from pressledger.errors import AlreadyExistsError, NotFoundError, PressLedgerError, ValidationError
from pressledger.logging_config import get_logger
from pressledger.logging_utils import log_application_event
from pressledger.api.cycles import router as cycles_router
from pressledger.api.presses import router as presses_router
from pressledger.api.regenerations import router as regenerations_router
from pressledger.api.tools import router as tools_router

logger = get_logger(__name__)

VERSION = "0.1.0"

# Most specific first; handlers are looked up along the exception's MRO
_STATUS_BY_ERROR = (
    (AlreadyExistsError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (PressLedgerError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def _error_handler(status_code: int):
    async def handler(request: Request, exc: PressLedgerError) -> JSONResponse:
        if status_code >= 500:
            logger.error("request_failed", path=request.url.path, error=str(exc))
        else:
            logger.info("request_rejected", path=request.url.path, status=status_code, error=str(exc))
        return JSONResponse(status_code=status_code, content={"detail": exc.message})
    return handler


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance

    Assumptions:
    - OpenAPI docs are enabled by default
    - Database schema is initialized on startup
    """
    # Initialize database schema
    from pressledger.database.session import init_db
    init_db()

    app = FastAPI(
        title="Press Ledger",
        description="Press tool cycle ledger: readings, partial cycles, regenerations, bindings",
        version=VERSION,
        docs_url=f"/api/{settings.api_version}/docs",
        redoc_url=f"/api/{settings.api_version}/redoc",
        openapi_url=f"/api/{settings.api_version}/openapi.json",
    )

    @app.get("/api/health")
    async def health_check():
        """API health check endpoint.

        Returns:
            dict: Service status information
        """
        return {
            "service": "pressledger",
            "version": VERSION,
            "status": "running"
        }

    for error_class, status_code in _STATUS_BY_ERROR:
        app.add_exception_handler(error_class, _error_handler(status_code))

    # Include routers
    app.include_router(tools_router)
    app.include_router(cycles_router)
    app.include_router(regenerations_router)
    app.include_router(presses_router)

    log_application_event("application_created", version=VERSION, database_url=settings.database_url)

    return app


app = create_app()


def cli() -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    uvicorn.run(
        "pressledger.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )
