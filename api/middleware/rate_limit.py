"""
Rate limiting for the LeadFlow API.

Both the general-API middleware and the per-endpoint dependency delegate
to the persisted AdmissionController, so limits hold across workers.
"""

import logging
from typing import Callable, Optional

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from admission.controller import (
    AdmissionController,
    RateLimitConfig,
    RateLimitExceeded,
    RATE_LIMITS,
)
from api.services import get_services

logger = logging.getLogger(__name__)

EXEMPT_PATHS = ("/health", "/metrics", "/docs", "/openapi.json", "/redoc")


def get_client_id(request: Request) -> str:
    """Identify client by API key, auth token, or IP."""
    api_key = request.headers.get("X-API-Key")
    if api_key:
        return f"key:{api_key[:8]}"

    auth = request.headers.get("Authorization")
    if auth and auth.startswith("Bearer "):
        return f"token:{auth[7:15]}"

    return get_client_ip(request)


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _admission_controller() -> Optional[AdmissionController]:
    return get_services().admission


class RateLimitMiddleware(BaseHTTPMiddleware):
    """General API admission (fail-open) for every non-exempt request."""

    def __init__(self, app, config: RateLimitConfig = RATE_LIMITS["GENERAL_API"]):
        super().__init__(app)
        self.config = config

    async def dispatch(self, request: Request, call_next):
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        controller = _admission_controller()
        if controller is None:
            return await call_next(request)

        result = await controller.check(get_client_id(request), self.config)
        headers = result.headers(self.config.max_attempts)

        if not result.success:
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": result.error},
                headers=headers,
            )

        response = await call_next(request)
        for name, value in headers.items():
            response.headers.setdefault(name, value)
        return response


def rate_limit(
    config: RateLimitConfig,
    identifier_fn: Callable[[Request], str] = get_client_ip,
):
    """
    Build a FastAPI dependency that gates an endpoint with ``config``.

    Declined checks raise RateLimitExceeded, which
    ``rate_limit_exceeded_handler`` turns into a 429 (or a 503 when the
    store is down and the policy is fail-closed).

    Args:
        config: Admission policy for the endpoint class
        identifier_fn: Derives the caller identifier from the request
    """

    async def dependency(request: Request, response: Response):
        controller = _admission_controller()
        if controller is None:
            return

        result = await controller.check(identifier_fn(request), config)
        if not result.success:
            raise RateLimitExceeded(result, config)

        response.headers.update(result.headers(config.max_attempts))

    return dependency


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    status_code = (
        status.HTTP_503_SERVICE_UNAVAILABLE
        if exc.result.store_unavailable
        else status.HTTP_429_TOO_MANY_REQUESTS
    )
    logger.warning(f"Admission declined for {exc.config.key_prefix} ({status_code})")
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.result.error},
        headers=exc.result.headers(exc.config.max_attempts),
    )
