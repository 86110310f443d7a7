"""
Adapter: Signed stateless tokens (JWT, HS256) via python-jose.

Implements TokenService. Every token carries a ``typ`` claim so a
password reset token can never be replayed as a session token.
Expiry is checked against the caller's clock rather than jose's own
wall clock, which keeps expiry decisions testable and consistent with
the rest of the domain.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt

from coinvault.domain.identity.entities import (
    Account,
    PurposeTokenClaims,
    SessionClaims,
)
from coinvault.domain.identity.errors import InvalidTokenError, TokenExpiredError
from coinvault.domain.identity.policy import SESSION_TOKEN, SESSION_TTL
from coinvault.domain.identity.ports import TokenService

logger = logging.getLogger(__name__)

_DECODE_OPTIONS = {"verify_exp": False, "verify_iat": False, "verify_nbf": False}


def _timestamp(value: datetime) -> int:
    return int(value.timestamp())


def _from_timestamp(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


class JoseTokenService(TokenService):
    """HMAC-signed JWTs for sessions and single-purpose links."""

    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        if not secret:
            raise ValueError("JoseTokenService requires a non-empty secret")
        self._secret = secret
        self._algorithm = algorithm

    def issue_session(self, account: Account, now: datetime) -> str:
        return self._encode(
            {
                "sub": account.id,
                "email": account.email,
                "typ": SESSION_TOKEN,
                "iat": _timestamp(now),
                "exp": _timestamp(now + SESSION_TTL),
            }
        )

    def verify_session(self, token: str, now: datetime) -> SessionClaims:
        payload = self._decode(token, SESSION_TOKEN, now)
        email = payload.get("email")
        if not isinstance(email, str) or not email:
            raise InvalidTokenError("Token is missing the email claim")
        return SessionClaims(
            account_id=payload["sub"],
            email=email,
            issued_at=_from_timestamp(payload["iat"]),
            expires_at=_from_timestamp(payload["exp"]),
        )

    def issue_purpose(
        self,
        account_id: str,
        purpose: str,
        now: datetime,
        ttl: timedelta,
        fingerprint: Optional[str] = None,
    ) -> str:
        claims: dict[str, Any] = {
            "sub": account_id,
            "typ": purpose,
            "iat": _timestamp(now),
            "exp": _timestamp(now + ttl),
        }
        if fingerprint is not None:
            claims["fpr"] = fingerprint
        return self._encode(claims)

    def verify_purpose(
        self, token: str, purpose: str, now: datetime
    ) -> PurposeTokenClaims:
        payload = self._decode(token, purpose, now)
        return PurposeTokenClaims(
            account_id=payload["sub"],
            purpose=purpose,
            issued_at=_from_timestamp(payload["iat"]),
            expires_at=_from_timestamp(payload["exp"]),
            fingerprint=payload.get("fpr"),
        )

    def _encode(self, claims: dict[str, Any]) -> str:
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def _decode(self, token: str, purpose: str, now: datetime) -> dict[str, Any]:
        """Verify signature, structure, type and expiry.

        Raises:
            InvalidTokenError: Bad signature, malformed, or wrong type.
            TokenExpiredError: Valid signature but past ``exp``.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options=_DECODE_OPTIONS,
            )
        except JWTError as exc:
            logger.info("Token rejected: %s", type(exc).__name__)
            raise InvalidTokenError() from exc

        if payload.get("typ") != purpose:
            raise InvalidTokenError("Token has the wrong type")
        if not isinstance(payload.get("sub"), str) or not payload["sub"]:
            raise InvalidTokenError("Token is missing the subject claim")
        for claim in ("iat", "exp"):
            if not isinstance(payload.get(claim), int):
                raise InvalidTokenError(f"Token is missing the {claim} claim")

        if _timestamp(now) > payload["exp"]:
            raise TokenExpiredError()
        return payload
