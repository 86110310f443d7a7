"""
Rate limiting configuration and setup.

Uses slowapi to enforce per-client rate limits. Credential and OTP
endpoints carry a tighter limit than the default, on top of the
per-session OTP attempt budget enforced by the domain.
"""

import logging

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from coinvault.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT = settings.rate_limit_default
AUTH_RATE_LIMIT = settings.rate_limit_auth

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[DEFAULT_RATE_LIMIT],
    enabled=settings.rate_limit_enabled,
)


async def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """Handle rate limit exceeded errors with a clean JSON response.

    Args:
        request: The incoming HTTP request.
        exc: The rate limit exceeded exception.

    Returns:
        A 429 JSON response in the standard error shape.
    """
    logger.warning("Rate limit exceeded on %s", request.url.path)
    return JSONResponse(
        status_code=429,
        content={"error": "rate_limit_exceeded", "detail": str(exc.detail)},
    )
