"""
Centralized error handlers for FastAPI.

Maps identity domain errors to HTTP responses.
No stack traces or internal details are exposed to clients.
Every error response has the shape {"error": <code>, "detail": <message>}.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from coinvault.domain.identity.errors import (
    AuthError,
    ConflictError,
    IdentityDomainError,
    InvalidOtpError,
    InvalidTokenError,
    MissingTokenError,
    NotFoundError,
    NotificationDeliveryError,
    RateLimitError,
    TokenExpiredError,
    ValidationError,
)

logger = logging.getLogger(__name__)

HTTP_400 = 400
HTTP_401 = 401
HTTP_403 = 403
HTTP_404 = 404
HTTP_429 = 429
HTTP_500 = 500
HTTP_503 = 503


def _error_response(
    status_code: int,
    error: str,
    detail: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build a consistent JSON error response."""
    body: dict[str, str | None] = {"error": error}
    if detail:
        body["detail"] = detail
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    """Register all domain error handlers on the FastAPI application.

    Starlette resolves handlers by walking the exception's MRO, so the
    concrete token errors win over the AuthError category handler.

    Args:
        app: The FastAPI application instance.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation(
        _request: Request, exc: ValidationError
    ) -> JSONResponse:
        """Handle input rejected before any store access."""
        logger.warning("Validation failed: %s", exc.code)
        return _error_response(HTTP_400, exc.code, exc.message)

    @app.exception_handler(ConflictError)
    async def handle_conflict(_request: Request, exc: ConflictError) -> JSONResponse:
        """Handle uniqueness violations such as duplicate registration."""
        logger.warning("Conflict: %s", exc.code)
        return _error_response(HTTP_400, exc.code, exc.message)

    @app.exception_handler(MissingTokenError)
    async def handle_missing_token(
        _request: Request, exc: MissingTokenError
    ) -> JSONResponse:
        """Handle protected calls without a bearer token."""
        return _error_response(
            HTTP_401, exc.code, exc.message, headers={"WWW-Authenticate": "Bearer"}
        )

    @app.exception_handler(InvalidTokenError)
    async def handle_invalid_token(
        _request: Request, exc: InvalidTokenError
    ) -> JSONResponse:
        """Handle forged, malformed or mistyped tokens."""
        logger.info("Invalid token presented: %s", exc.message)
        return _error_response(HTTP_403, exc.code, "Invalid token")

    @app.exception_handler(TokenExpiredError)
    async def handle_token_expired(
        _request: Request, exc: TokenExpiredError
    ) -> JSONResponse:
        """Handle correctly signed tokens past their expiry."""
        return _error_response(HTTP_403, exc.code, exc.message)

    @app.exception_handler(InvalidOtpError)
    async def handle_invalid_otp(
        _request: Request, exc: InvalidOtpError
    ) -> JSONResponse:
        """Handle a wrong OTP guess; the session survives."""
        logger.info(
            "Wrong OTP for session, %d attempts remaining", exc.attempts_remaining
        )
        return _error_response(
            HTTP_400,
            exc.code,
            f"{exc.message}. {exc.attempts_remaining} attempts remaining",
        )

    @app.exception_handler(AuthError)
    async def handle_auth(_request: Request, exc: AuthError) -> JSONResponse:
        """Handle bad credentials, sessions and one-time tokens."""
        logger.info("Authentication failed: %s", exc.code)
        return _error_response(HTTP_400, exc.code, exc.message)

    @app.exception_handler(RateLimitError)
    async def handle_rate_limit(
        _request: Request, exc: RateLimitError
    ) -> JSONResponse:
        """Handle exhausted attempt budgets."""
        logger.warning("Attempts exhausted: %s", exc.code)
        return _error_response(HTTP_429, exc.code, exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(_request: Request, exc: NotFoundError) -> JSONResponse:
        """Handle records that vanished mid-request."""
        logger.warning("Record vanished: %s", exc.code)
        return _error_response(HTTP_404, exc.code, exc.message)

    @app.exception_handler(NotificationDeliveryError)
    async def handle_notification_delivery(
        _request: Request, exc: NotificationDeliveryError
    ) -> JSONResponse:
        """Handle delivery failures on flows whose only effect is a message."""
        logger.error("Notification delivery failed on %s: %s", exc.channel, exc.reason)
        return _error_response(
            HTTP_503, exc.code, "Message could not be sent, try again later"
        )

    @app.exception_handler(IdentityDomainError)
    async def handle_identity_domain(
        _request: Request, exc: IdentityDomainError
    ) -> JSONResponse:
        """Catch-all for unhandled identity domain errors."""
        logger.error("Unhandled identity domain error: %s", exc.message)
        return _error_response(HTTP_500, "internal_error", "Internal server error")

    @app.exception_handler(Exception)
    async def handle_unexpected(
        _request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all for unexpected errors. Never exposes internals."""
        logger.exception("Unexpected error: %s", type(exc).__name__)
        return _error_response(HTTP_500, "internal_error", "Internal server error")
