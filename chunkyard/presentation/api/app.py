"""
FastAPI application factory and configuration.

Creates the FastAPI application with middleware, protocol error mapping
and route registration.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from ...application.container import Container
from ...application.startup import ApplicationStartup
from ...core.domain.errors import ErrorCode, UploadError
from ...infrastructure.config.models import ApplicationConfig
from .middleware import ErrorHandlerMiddleware, RequestIdMiddleware
from .routers import health, progress, uploads

HTTP_STATUS_BY_CODE: Dict[ErrorCode, int] = {
    ErrorCode.INVALID_CALLER: 401,
    ErrorCode.UNAUTHORIZED: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.ALREADY_COMPLETED: 409,
    ErrorCode.COMPLETION_IN_PROGRESS: 409,
    ErrorCode.INCOMPLETE: 400,
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.INVALID_CHUNK: 400,
    ErrorCode.CORRUPTED_UPLOAD: 400,
    ErrorCode.SIZE_EXCEEDED: 413,
    ErrorCode.UPLOAD_FAILED: 502,
}


def create_app(
    container: Container,
    config: ApplicationConfig,
    startup: Optional[ApplicationStartup] = None
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        container: Dependency injection container
        config: Application configuration
        startup: When given, services are configured and started with the
            application and stopped on shutdown

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Application starting up...")
        if startup is not None:
            await startup.configure_services(config)
            await startup.start_application()

        try:
            yield
        finally:
            if startup is not None:
                await startup.stop_application()
            logger.info("Application shutting down...")

    app = FastAPI(
        title=config.name,
        version=config.version,
        description="Resumable chunked upload service",
        debug=config.debug,
        lifespan=lifespan
    )

    app.state.container = container
    app.state.config = config

    _configure_middleware(app, config)
    _register_error_handlers(app)
    _register_routes(app)

    logger.info(f"FastAPI application created: {config.name} v{config.version}")
    return app


def _configure_middleware(app: FastAPI, config: ApplicationConfig) -> None:
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    logger.debug("Middleware configured")


def _register_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(UploadError)
    async def upload_error_handler(request: Request, exc: UploadError) -> JSONResponse:
        status_code = HTTP_STATUS_BY_CODE.get(exc.code, 400)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected ({exc.code.value}): {exc.message}")

        return JSONResponse(status_code=status_code, content=exc.to_dict())


def _register_routes(app: FastAPI) -> None:
    app.include_router(
        health.router,
        prefix="/health",
        tags=["health"]
    )

    app.include_router(
        uploads.router,
        prefix="/api/uploads",
        tags=["uploads"]
    )

    app.include_router(
        progress.router,
        prefix="/ws",
        tags=["websocket"]
    )

    @app.get("/", tags=["root"])
    async def root() -> Dict[str, Any]:
        """Root endpoint with basic application information."""
        return {
            "name": app.title,
            "version": app.version,
            "status": "running",
            "docs_url": "/docs",
            "health_url": "/health"
        }

    logger.debug("Routes registered")
