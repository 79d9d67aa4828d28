"""
FastAPI application entry point for the Amelia API Proxy.

This module provides the main FastAPI application with:
- The proxy endpoint forwarding browser calls to WordPress/Amelia
- CORS headers on every response and preflight short-circuit
- Request logging with correlation IDs
- Prometheus metrics
- Health endpoint
- JSON error envelopes for every failure
"""

import structlog
import uvicorn
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Any, Optional

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from amelia_proxy.src.config import get_settings, Settings
from amelia_proxy.src.middleware import CORSHeadersMiddleware, RequestLoggingMiddleware
from amelia_proxy.src.routers.proxy import create_proxy_router
from amelia_proxy.src.services.errors import MethodNotAllowedError, ProxyError
from amelia_proxy.src.services.proxy_service import ProxyService
from shared.logging import configure_logging
from shared.metrics import ProxyMetrics, get_metrics_handler

# Initialize logger
logger = structlog.get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings (cached settings if omitted)

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.log_format == "json",
        service_name=settings.app_name,
        environment=settings.environment,
    )

    metrics = ProxyMetrics() if settings.metrics_enabled else None

    # ========================================================================
    # Lifespan Management
    # ========================================================================

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(
            "application_started",
            app_name=settings.app_name,
            version=settings.app_version,
            environment=settings.environment,
            transport=settings.transport,
            proxy_path=settings.proxy_path,
            allowed_origin=settings.cors_allowed_origin,
        )
        yield
        logger.info("application_shutdown_complete")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "CORS-friendly proxy for the WP Amelia API. "
            "Injects the API key server side and wraps every reply in a JSON envelope."
        ),
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        debug=settings.debug,
    )

    app.state.settings = settings
    app.state.metrics = metrics
    app.state.proxy_service = ProxyService(settings=settings, metrics=metrics)

    # ========================================================================
    # Middleware Configuration
    # ========================================================================

    # Added last so it runs first: preflight never reaches logging or routes
    app.add_middleware(RequestLoggingMiddleware, metrics=metrics)
    app.add_middleware(CORSHeadersMiddleware, settings=settings)

    # ========================================================================
    # Exception Handlers
    # ========================================================================

    @app.exception_handler(ProxyError)
    async def proxy_exception_handler(request: Request, exc: ProxyError):
        """Render terminal proxy failures as envelopes."""
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "proxy_error",
            path=request.url.path,
            status_code=exc.status_code,
            error=exc.error,
            detail=exc.message
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_envelope()
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        logger.warning(
            "http_exception",
            path=request.url.path,
            status_code=exc.status_code,
            detail=exc.detail
        )
        if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
            content = MethodNotAllowedError().to_envelope()
        else:
            content = {"success": False, "error": exc.detail}
        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error(
            "unexpected_exception",
            path=request.url.path,
            error=str(exc),
            exc_info=True
        )
        # Served outside the middleware stack, so CORS headers are set here
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Proxy request failed", "message": str(exc)},
            headers=settings.cors_headers
        )

    # ========================================================================
    # Health and Metrics Endpoints
    # ========================================================================

    @app.get("/health", tags=["Health"], response_class=JSONResponse)
    async def health_check() -> Dict[str, Any]:
        """
        Health check endpoint.

        Returns basic health status without contacting any upstream site.
        Use for container health checks.
        """
        return {
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
            "transport": settings.transport,
        }

    if metrics is not None:
        metrics_handler = get_metrics_handler(metrics.registry)

        @app.get(settings.metrics_endpoint, tags=["Monitoring"], response_class=PlainTextResponse)
        async def metrics_endpoint() -> Response:
            """Prometheus metrics endpoint."""
            return Response(
                content=metrics_handler(),
                media_type="text/plain; version=0.0.4; charset=utf-8"
            )

    # ========================================================================
    # API Router Registration
    # ========================================================================

    app.include_router(create_proxy_router(settings.proxy_path))

    return app


app = create_app()

# ============================================================================
# Application Entry Point
# ============================================================================

if __name__ == "__main__":
    settings = get_settings()
    logger.info(
        "starting_uvicorn_server",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )

    uvicorn.run(
        "amelia_proxy.src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )
