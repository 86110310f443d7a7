"""
Adapter: bcrypt credential hashing.

Implements CredentialHasher with a passlib CryptContext. Used for both
passwords and OTP codes.
"""

import logging

from passlib.context import CryptContext

from coinvault.domain.identity.ports import CredentialHasher

logger = logging.getLogger(__name__)


class BcryptCredentialHasher(CredentialHasher):
    """bcrypt hashing with a configurable cost factor.

    Args:
        rounds: bcrypt cost (log2 of iterations). Production keeps this
            at 10 or more; tests lower it to keep suites fast.
    """

    def __init__(self, rounds: int = 12) -> None:
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, secret: str) -> str:
        return self._context.hash(secret)

    def verify(self, secret: str, hashed: str) -> bool:
        if not secret or not hashed:
            return False
        try:
            return self._context.verify(secret, hashed)
        except ValueError:
            # unrecognised or corrupt hash in the store
            logger.warning("Stored credential hash could not be parsed")
            return False
