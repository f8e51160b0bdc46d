"""
FileVault API entrypoint.

``create_application()`` wires middleware, envelope error handlers and
routers; ``lifespan`` owns the database pool, the Redis cache and the
upload root.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.core.cache import cache_manager
from app.core.database import db_manager
from app.core.error_tracking import error_tracker
from app.core.exceptions import AuthenticationError, FileVaultException
from app.core.logging_config import get_logger, setup_logging
from app.core.metrics import app_info
from app.core.middleware import RequestContextMiddleware
from app.core.performance import track_http_metrics
from app.schemas.common import failure

setup_logging()
logger = get_logger(__name__)

EXPOSED_HEADERS = ["Content-Disposition", "X-Request-ID", "X-Process-Time"]


def prepare_upload_root() -> Path:
    """Create the blob directory so the first upload does not race on it."""
    root = Path(settings.upload_dir).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    logger.info(
        "filevault_starting",
        version=settings.app_version,
        environment=settings.environment,
    )

    db_manager.init()
    await cache_manager.init()
    upload_root = prepare_upload_root()
    app_info.info({"version": settings.app_version, "environment": settings.environment})

    logger.info("filevault_ready", upload_dir=str(upload_root), cache=cache_manager.available)
    try:
        yield
    finally:
        await cache_manager.close()
        await db_manager.close()
        logger.info("filevault_stopped")


def envelope(
    status_code: int,
    message: str,
    errors: list[Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(failure(message, errors)),
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure in the ``{success: false, message, errors}`` envelope."""

    @app.exception_handler(FileVaultException)
    async def domain_error(request: Request, exc: FileVaultException) -> JSONResponse:
        logger.info(
            "request_rejected",
            path=request.url.path,
            status_code=exc.status_code,
            error=exc.message,
        )
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
        return envelope(
            exc.status_code,
            exc.message,
            [exc.details] if exc.details else None,
            headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        # Unknown routes and disallowed methods
        return envelope(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("request_invalid", path=request.url.path, errors=exc.errors())
        return envelope(status.HTTP_400_BAD_REQUEST, "Validation failed", list(exc.errors()))

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        """Report the failure; the envelope carries the request id for support."""
        request_id = getattr(request.state, "request_id", None)
        error_tracker.capture_exception(
            exc,
            context={"path": request.url.path, "method": request.method},
        )

        message = "Internal server error" if settings.is_production else str(exc)
        return envelope(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            message,
            [{"request_id": request_id}] if request_id else None,
        )


def service_banner() -> dict[str, Any]:
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.environment,
        "api": "/api/v1",
        "docs": "/docs" if settings.is_development else None,
        "health": "/health",
        "metrics": "/metrics" if settings.metrics_enabled else None,
    }


def create_application() -> FastAPI:
    from app.api.health_router import router as health_router
    from app.api.metrics_router import router as metrics_router
    from app.api.v1.router import v1_router

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Multi-tenant file storage with quotas, reminders and audit logging",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # Last added runs first: CORS, then request context, then metrics
    app.middleware("http")(track_http_metrics)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=EXPOSED_HEADERS,
    )

    register_exception_handlers(app)

    app.include_router(health_router)
    if settings.metrics_enabled:
        app.include_router(metrics_router)
    app.include_router(v1_router, prefix="/api")
    app.add_api_route("/", service_banner, methods=["GET"], tags=["Root"])

    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    # Keep-alive matches the upload timeout so large transfers are not dropped
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload and settings.is_development,
        log_level=settings.log_level.lower(),
        access_log=False,
        timeout_keep_alive=settings.server_timeout_seconds,
    )
