"""
REST API layer for Social Backend.

Provides:
- FastAPI application factory with injected session factory and services
- Account erasure and moderation endpoints under /api/v1
- Global exception handlers producing the standard error envelope
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker
from starlette.exceptions import HTTPException

from social_backend import __version__
from social_backend.api.auth import AuthService, validate_secrets
from social_backend.api.routes import router
from social_backend.api.schemas import INTERNAL_ERROR, VALIDATION_ERROR, code_for_status, error_response
from social_backend.config.settings import ApiSettings, DatabaseSettings, ErasureSettings
from social_backend.lib.database import DatabaseManager
from social_backend.lib.erasure import AccountErasureService

logger = logging.getLogger(__name__)


def create_app(
    session_factory: sessionmaker[Session] | None = None,
    api_settings: ApiSettings | None = None,
    erasure_settings: ErasureSettings | None = None,
    erasure_service: AccountErasureService | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        session_factory: Session factory for the application database
            (built from SOCIAL_DATABASE_URL if omitted)
        api_settings: HTTP settings (from env if omitted)
        erasure_settings: Erasure settings (from env if omitted)
        erasure_service: Pre-built erasure service (built from the above if omitted)

    Returns:
        Configured FastAPI application instance.
    """
    api_settings = api_settings or ApiSettings.from_env()
    validate_secrets(api_settings.secret_key)

    if session_factory is None:
        session_factory = DatabaseManager(DatabaseSettings.from_env()).get_session_factory()
    if erasure_service is None:
        erasure_service = AccountErasureService(session_factory, erasure_settings)

    app = FastAPI(
        title="Social Backend",
        description="Social network backend: account erasure and moderation",
        version=__version__,
        docs_url=None if api_settings.is_production else "/docs",
        redoc_url=None if api_settings.is_production else "/redoc",
    )
    app.state.api_settings = api_settings
    app.state.session_factory = session_factory
    app.state.erasure_service = erasure_service
    app.state.auth_service = AuthService(api_settings.secret_key)

    # -------------------------------------------------------------------------
    # Global exception handlers
    # -------------------------------------------------------------------------
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(code_for_status(exc.status_code), str(exc.detail)),
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError,
    ) -> JSONResponse:
        logger.warning("Request validation failed on %s: %s", request.url.path, exc.errors())
        return JSONResponse(
            status_code=422,
            content=error_response(VALIDATION_ERROR, "Invalid input. Please check your request."),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_response(INTERNAL_ERROR, "An unexpected error occurred."),
        )

    app.include_router(router)

    @app.get("/health")
    async def root_health_check() -> dict[str, str]:
        """Root health check for infrastructure probes."""
        return {"status": "ok"}

    logger.info("Social Backend API created (environment=%s)", api_settings.environment)
    return app


__all__ = ["create_app", "router"]
