"""
FastAPI application entry point for the Imob API.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from imob_api.config import get_settings
from imob_api.errors import ImobError
from imob_api.logging_utils import configure_logging, current_request_id
from imob_api.middleware import RateLimitMiddleware, RequestContextMiddleware
from imob_api.rate_limit import TokenBucketRateLimiter
from imob_api.routes import (
    admin,
    auth,
    imports,
    invitations,
    owner_confirmations,
    public,
    tenant_data,
    tenants,
)

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"success": False, "error": message, **extra}
    )


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    text = first.get("msg", "invalid value")
    return f"{location}: {text}" if location else text


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ImobError)
    async def handle_imob_error(request: Request, exc: ImobError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error(exc.status_code, exc.message)

    @app.exception_handler(HTTPException)
    async def handle_http_exception(request: Request, exc: HTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return _error(400, _validation_message(exc))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        request_id = getattr(request.state, "request_id", None) or current_request_id()
        logger.exception("Unhandled error on %s %s [%s]", request.method, request.url.path, request_id)
        return _error(500, "internal server error", request_id=request_id)


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)
    app = FastAPI(title="Imob API", version="0.1.0")

    if settings.rate_limit_enabled:
        app.add_middleware(
            RateLimitMiddleware,
            limiter=TokenBucketRateLimiter(
                settings.rate_limit_per_second, settings.rate_limit_burst
            ),
        )
        app.state.strict_limiter = TokenBucketRateLimiter(
            settings.strict_rate_limit_per_second, settings.strict_rate_limit_burst
        )
    else:
        app.state.strict_limiter = None
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    register_exception_handlers(app)

    @app.get("/health", tags=["health"])
    def health():
        return {"status": "ok", "environment": settings.environment}

    app.include_router(owner_confirmations.page_router)
    # Fixed-prefix routers first; tenant_data matches any first segment.
    for module in (auth, tenants, invitations, admin, imports, public, owner_confirmations):
        app.include_router(module.router, prefix=settings.api_prefix)
    app.include_router(tenant_data.router, prefix=settings.api_prefix)
    return app


app = create_app()
