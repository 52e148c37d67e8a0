# src/wallet_sso/main.py
"""Main entry point for the Wallet SSO application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from wallet_sso.api.v1 import auth_router, system_router
from wallet_sso.api.v1.dependencies import ApiError
from wallet_sso.core.settings import Settings
from wallet_sso.core.settings import settings as default_settings
from wallet_sso.db.errors import PersistenceError, PoolError
from wallet_sso.services.container import ServiceContainer
from wallet_sso.services.errors import ValidationFailure

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _error_body(error: str, detail: str) -> dict[str, str]:
    return {"error": error, "detail": detail}


def create_app(
    settings: Settings | None = None,
    container: ServiceContainer | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Service configuration; defaults to the environment-derived settings.
        container: Pre-built service container. When omitted, one is built
            from `settings` at startup.
    """
    settings = settings or default_settings
    app = FastAPI(
        title=settings.app_name,
        description="Wallet signature single-sign-on service",
        version=settings.app_version,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    # Add GZip middleware for compression
    app.add_middleware(GZipMiddleware)

    # Include API routers
    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(system_router, prefix="/api/v1")

    app.state.container = None

    @app.exception_handler(ApiError)
    async def handle_api_error(_request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.error, exc.detail))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        detail = f"{location}: {first.get('msg', 'invalid request')}" if location else "Invalid request"
        return JSONResponse(
            status_code=400,
            content=_error_body(ValidationFailure.INVALID_REQUEST.value, detail),
        )

    @app.exception_handler(PoolError)
    async def handle_pool_error(_request: Request, exc: PoolError) -> JSONResponse:
        logger.error("Database pool unavailable: %s", exc)
        return JSONResponse(status_code=503, content=_error_body(exc.reason, "Service temporarily unavailable"))

    @app.exception_handler(PersistenceError)
    async def handle_persistence_error(_request: Request, exc: PersistenceError) -> JSONResponse:
        logger.error("Persistence failure: %s", exc)
        return JSONResponse(status_code=503, content=_error_body(exc.reason, "Service temporarily unavailable"))

    @app.on_event("startup")
    async def on_startup() -> None:
        services = container or ServiceContainer.build(settings)
        await services.start()
        app.state.container = services

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        services: ServiceContainer | None = getattr(app.state, "container", None)
        if services:
            await services.stop()
        app.state.container = None

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint to verify the service is running."""
        services: ServiceContainer | None = app.state.container
        if services is None or services.pool.is_shutting_down:
            return {"status": "starting"}
        return {"status": "ok"}

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint with basic information about the API."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "description": "Wallet signature single-sign-on service",
            "docs": "/docs",
            "redoc": "/redoc",
        }

    return app


configure_logging(default_settings.log_level)
app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("wallet_sso.main:app", host="0.0.0.0", port=8000, reload=default_settings.debug)
