"""FastAPI application for GESH.

This module provides the application factory with health endpoints, the
sync API routes, error mapping and lifecycle management.

Run with:
    uvicorn gesh.main:create_app --factory --port 3000
    gesh serve

Examples:
    >>> # Health check
    >>> curl http://localhost:3000/health

    >>> # Upload a blob
    >>> curl -X PUT -H "Authorization: Bearer $TOKEN" \\
    ...      -H "Content-Type: application/octet-stream" \\
    ...      --data-binary @event.bin http://localhost:3000/v1/sync/app1/root1/devA/ev1

Tests:
    - tests/unit/test_main.py::TestHealthEndpoint
    - tests/integration/test_api_sync.py
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from gesh import __version__
from gesh.api.v1 import router as v1_router
from gesh.auth.registry import RootAuthorizer, SecretRegistry, load_secret_registry
from gesh.config import Settings, get_settings
from gesh.errors import GeshError, StorageFailureError
from gesh.schemas import HealthResponse
from gesh.storage.service import SyncService

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Handles startup and shutdown tasks:
    - Create the blob and metadata base directories
    - Load the secret registry unless one was supplied to create_app
    """
    settings: Settings = app.state.settings
    logger.info(f"Starting GESH v{__version__} ({settings.ENVIRONMENT.value})")

    for directory in (settings.BLOB_BASE_DIR, settings.METADATA_BASE_DIR):
        Path(directory).mkdir(parents=True, exist_ok=True)

    if app.state.authorizer is None:
        app.state.authorizer = RootAuthorizer(load_secret_registry(settings.SECRET_REGISTRY_PATH))

    yield

    logger.info("Shutting down GESH")


def create_app(
    settings: Settings | None = None,
    registry: SecretRegistry | None = None,
    sync_service: SyncService | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings to use (defaults to ``get_settings()``).
        registry: Secret registry. When omitted it is loaded from
            ``SECRET_REGISTRY_PATH`` during startup.
        sync_service: Sync service (defaults to a local filesystem one).

    Returns:
        Configured FastAPI application.
    """
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    docs_enabled = settings.DEBUG and not settings.is_production
    app = FastAPI(
        title="GESH",
        description="Gateway for storing and syncing opaque encrypted blobs",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
    )
    app.state.settings = settings
    app.state.sync_service = sync_service or SyncService.from_config(settings.get_storage_config())
    app.state.authorizer = RootAuthorizer(registry) if registry is not None else None

    app.include_router(v1_router)

    @app.exception_handler(GeshError)
    async def gesh_exception_handler(request: Request, exc: GeshError):
        """Map gateway exceptions to their HTTP status."""
        if isinstance(exc, StorageFailureError):
            logger.error(
                f"{request.method} {request.url.path} failed: {exc.message} ({exc.detail})",
                exc_info=exc,
            )
            detail = exc.detail if settings.DEBUG else None
        else:
            detail = exc.detail

        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "detail": detail},
            headers=headers,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.exception(f"Unexpected error: {exc}")

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error", "detail": str(exc) if settings.DEBUG else None},
        )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Liveness check."""
        return HealthResponse(ok=True, version=__version__)

    @app.get("/", tags=["Root"])
    async def root() -> dict[str, str]:
        """Root endpoint with basic info."""
        return {
            "name": "GESH",
            "version": __version__,
            "environment": settings.ENVIRONMENT.value,
            "health": "/health",
        }

    return app


# Entry point for development
if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        create_app(_settings),
        host=_settings.HOST,
        port=_settings.PORT,
    )
