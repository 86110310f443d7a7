"""
Fixed identity policy values and the OTP code generator.

These are business rules, not deployment settings, and are therefore
not configurable through the environment.
"""

import hashlib
import secrets
from datetime import timedelta
from typing import Optional

PASSWORD_PROVIDER = "password"

OTP_LENGTH = 6
OTP_TTL = timedelta(minutes=5)
MAX_OTP_ATTEMPTS = 5

SESSION_TTL = timedelta(days=7)
PASSWORD_RESET_TTL = timedelta(hours=1)
EMAIL_VERIFICATION_TTL = timedelta(hours=24)

SESSION_TOKEN = "session"
PASSWORD_RESET_TOKEN = "password_reset"
EMAIL_VERIFICATION_TOKEN = "email_verification"


def generate_otp() -> str:
    """Return a uniformly random numeric code, leading zeros preserved."""
    return f"{secrets.randbelow(10 ** OTP_LENGTH):0{OTP_LENGTH}d}"


def default_display_name(email: str) -> str:
    """Derive a display name from the local part of an email address."""
    return email.split("@", 1)[0]


def credential_fingerprint(password_hash: Optional[str]) -> str:
    """Short digest of the current password hash.

    Embedded in reset tokens so that a token stops working as soon as the
    password it was issued against changes.
    """
    return hashlib.sha256((password_hash or "").encode()).hexdigest()[:16]
