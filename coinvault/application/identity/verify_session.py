"""
Use case: Verify a bearer session token.

Input: the raw token string (possibly missing)
Output: SessionClaims (account id, email, issue/expiry times)
Side effects: None. No store read; claims are trusted once the signature
    and expiry pass.
Failure cases: MissingTokenError, InvalidTokenError, TokenExpiredError.
"""

from typing import Optional

from coinvault.domain.identity.entities import SessionClaims
from coinvault.domain.identity.errors import MissingTokenError
from coinvault.domain.identity.ports import Clock, TokenService


class VerifySessionUseCase:
    """Turns a bearer token into request-scoped session claims."""

    def __init__(self, token_service: TokenService, clock: Clock) -> None:
        self._token_service = token_service
        self._clock = clock

    def execute(self, token: Optional[str]) -> SessionClaims:
        if not token or not token.strip():
            raise MissingTokenError()
        return self._token_service.verify_session(token.strip(), self._clock.now())
