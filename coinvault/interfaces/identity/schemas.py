"""
Pydantic schemas for identity API request/response validation.

These schemas enforce input validation and define the API contract.
Malformed input is rejected here with a 422 before any store access.
No business logic belongs here.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

# bcrypt only looks at the first 72 bytes of a secret
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 72
TAX_ID_PATTERN = r"^[A-Z]{5}[0-9]{4}[A-Z]$"
MOBILE_PATTERN = r"^\+?[0-9]{10,15}$"
OTP_PATTERN = r"^[0-9]{6}$"
DISPLAY_NAME_MAX_LEN = 100


def _check_password_bytes(value: Optional[str]) -> Optional[str]:
    """Reject passwords whose UTF-8 encoding bcrypt would truncate."""
    if value is not None and len(value.encode("utf-8")) > PASSWORD_MAX_LEN:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_LEN} bytes")
    return value


class RegisterRequest(BaseModel):
    """Request schema for password registration.

    Attributes:
        email: Email address, unique per account.
        password: Plaintext password (8-72 chars, at most 72 bytes).
        display_name: Optional name; defaults to the email's local part.
    """

    email: EmailStr
    password: str = Field(
        ..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN
    )
    display_name: Optional[str] = Field(
        default=None, min_length=1, max_length=DISPLAY_NAME_MAX_LEN
    )

    password_fits_bcrypt = field_validator("password")(_check_password_bytes)


class LoginRequest(BaseModel):
    """Request schema for password login.

    The KYC identifiers are only needed by accounts that have not yet
    completed KYC. Password is optional at the schema level so that a
    missing password yields ``invalid_credential`` like a wrong one.
    """

    email: EmailStr
    password: Optional[str] = Field(default=None, max_length=PASSWORD_MAX_LEN)
    tax_id: Optional[str] = Field(
        default=None, pattern=TAX_ID_PATTERN, description="Tax identifier (PAN)"
    )
    mobile_number: Optional[str] = Field(
        default=None, pattern=MOBILE_PATTERN, description="Mobile number for the OTP"
    )

    password_fits_bcrypt = field_validator("password")(_check_password_bytes)


class VerifyOtpRequest(BaseModel):
    """Request schema for OTP verification."""

    session_id: str = Field(..., min_length=1, max_length=64)
    otp: str = Field(..., pattern=OTP_PATTERN, description="6-digit code")


class OAuthCallbackRequest(BaseModel):
    """Provider-asserted profile forwarded by the web tier after the
    provider handshake completed."""

    external_id: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    display_name: Optional[str] = Field(default=None, max_length=DISPLAY_NAME_MAX_LEN)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(
        ..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN
    )

    password_fits_bcrypt = field_validator("new_password")(_check_password_bytes)


class ConfirmEmailVerificationRequest(BaseModel):
    token: str = Field(..., min_length=1)


class EmailPreferencesUpdateRequest(BaseModel):
    """Partial update of email preferences. Omitted flags are unchanged."""

    welcome: Optional[bool] = None
    security_alerts: Optional[bool] = None
    trade_confirmations: Optional[bool] = None
    deposit_confirmations: Optional[bool] = None
    marketing: Optional[bool] = None


class AccountResponse(BaseModel):
    """Public account view. Never includes credential hashes."""

    id: str
    email: str
    display_name: str
    email_verified: bool
    linked_providers: list[str]
    kyc_status: str
    balance: Decimal
    created_at: datetime
    last_login_at: Optional[datetime] = None


class AuthResponse(BaseModel):
    """A session token and the account it belongs to."""

    token: str
    token_type: str = "bearer"
    account: AccountResponse


class OAuthAuthResponse(AuthResponse):
    created: bool


class KycChallengeResponse(BaseModel):
    """Returned by login when KYC verification is still pending."""

    requires_kyc: bool = True
    reason: Optional[str] = None
    session_id: Optional[str] = None
    expires_at: Optional[datetime] = None


class SessionResponse(BaseModel):
    """Verified session token claims."""

    account_id: str
    email: str
    issued_at: datetime
    expires_at: datetime


class LoginLogResponse(BaseModel):
    account_id: str
    email: str
    provider: str
    timestamp: datetime


class EmptyResponse(BaseModel):
    """Serializes to ``{}``."""


class EmailVerificationResponse(BaseModel):
    sent: bool
    already_verified: bool


class EmailPreferencesResponse(BaseModel):
    welcome: bool
    security_alerts: bool
    trade_confirmations: bool
    deposit_confirmations: bool
    marketing: bool


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
