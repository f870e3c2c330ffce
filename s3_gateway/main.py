"""S3 File Gateway - FastAPI application."""

import logging
import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from s3_gateway.backend import SignedS3Backend, StorageBackend
from s3_gateway.config import Settings, get_settings
from s3_gateway.gateway import (
    BackendDeleteFailed,
    BackendUnavailable,
    BackendWriteFailed,
    FileGateway,
    GatewayError,
)
from s3_gateway.metrics import ERROR_COUNT
from s3_gateway.middleware.metrics import MetricsMiddleware, normalize_path
from s3_gateway.routers import backend, files, metrics


def setup_logging(settings: Settings) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer() if not settings.debug else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.INFO if not settings.debug else logging.DEBUG
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def gateway_error_response(exc: GatewayError) -> Response:
    """Map a gateway failure onto the body shape each endpoint promises."""
    if isinstance(exc, BackendUnavailable):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})
    if isinstance(exc, BackendWriteFailed):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.backend_error},
        )
    if isinstance(exc, BackendDeleteFailed):
        return JSONResponse(status_code=exc.status_code, content={"success": False})
    # MissingInput and NotFound answer with plain text
    return PlainTextResponse(exc.message, status_code=exc.status_code)


def create_app(
    settings: Settings | None = None,
    storage_backend: StorageBackend | None = None,
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        settings: Gateway configuration, loaded from the environment if omitted
        storage_backend: Signed request capability, ``SignedS3Backend`` if omitted

    Returns:
        The configured FastAPI application
    """
    if settings is None:
        settings = get_settings()
    setup_logging(settings)
    logger = structlog.get_logger()

    if storage_backend is None:
        storage_backend = SignedS3Backend(settings)
    gateway = FileGateway(settings, storage_backend)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        logger.info(
            "application_startup",
            version=settings.api_version,
            debug=settings.debug,
            endpoint=settings.s3_endpoint,
            bucket=settings.s3_bucket_name,
            public_domain=settings.s3_public_domain,
        )
        if not settings.auth_password:
            logger.warning("auth_password_not_configured", note="all API requests will be rejected")

        yield

        await gateway.close()
        logger.info("application_shutdown")

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
Lightweight file manager API over an S3-compatible object store.

- List folders and files under a prefix
- Upload raw bodies (content type derived from the file extension)
- Delete objects
- Stream objects inline with byte-range support for media playback

All file routes use HTTP Basic authentication with a single shared account.
        """,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.gateway = gateway

    # Add metrics middleware (for Prometheus request instrumentation)
    app.add_middleware(MetricsMiddleware)

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        """Log all requests with timing and request ID."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start_time = time.perf_counter()

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(GatewayError)
    async def gateway_exception_handler(request: Request, exc: GatewayError):
        """Translate gateway failures into their documented responses."""
        ERROR_COUNT.labels(type=type(exc).__name__, endpoint=normalize_path(request.url.path)).inc()
        return gateway_error_response(exc)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions."""
        endpoint = normalize_path(request.url.path)
        error_type = type(exc).__name__

        ERROR_COUNT.labels(type=error_type, endpoint=endpoint).inc()

        logger.error(
            "unhandled_exception",
            method=request.method,
            path=request.url.path,
            error=str(exc),
            error_type=error_type,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": str(exc) if settings.debug else "An internal error occurred",
            },
        )

    # Include routers
    app.include_router(backend.router)
    app.include_router(metrics.router)
    app.include_router(files.router, prefix=settings.api_prefix)

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint - points at the health check."""
        return {
            "service": settings.api_title,
            "version": settings.api_version,
            "health": "/health",
            "api": settings.api_prefix,
            "docs": "/docs" if settings.debug else None,
        }

    return app


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    # Built by uvicorn on startup: uvicorn --factory s3_gateway.main:create_app
    uvicorn.run(
        "s3_gateway.main:create_app",
        factory=True,
        host=_settings.host,
        port=_settings.port,
        reload=_settings.debug,
    )
