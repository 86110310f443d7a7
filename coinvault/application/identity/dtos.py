"""
Data Transfer Objects for the identity application layer.

DTOs carry data between the interface and application layers.
They are plain dataclasses with no behavior.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from coinvault.domain.identity.entities import Account


@dataclass(frozen=True)
class RegisterAccountCommand:
    """Input DTO for password registration.

    Attributes:
        email: Email address, the account's unique key.
        password: Plaintext password; only its hash is stored.
        display_name: Optional name; defaults to the email's local part.
    """

    email: str
    password: str
    display_name: Optional[str] = None


@dataclass(frozen=True)
class LoginWithPasswordCommand:
    """Input DTO for password login.

    Attributes:
        email: Email address of the account.
        password: Plaintext password. May be missing.
        tax_id: Tax identifier, required to start KYC verification.
        mobile_number: Mobile number the OTP is sent to.
    """

    email: str
    password: Optional[str]
    tax_id: Optional[str] = None
    mobile_number: Optional[str] = None


@dataclass(frozen=True)
class VerifyOtpCommand:
    session_id: str
    otp: str


@dataclass(frozen=True)
class ResolveOAuthIdentityCommand:
    """Input DTO for an OAuth callback.

    Attributes:
        provider: Provider identifier (e.g. ``google``).
        external_id: The provider's id for the user. Informational only;
            accounts are joined by email.
        email: Email asserted by the provider, if any.
        display_name: Name asserted by the provider, if any.
    """

    provider: str
    external_id: str
    email: Optional[str]
    display_name: Optional[str] = None


@dataclass(frozen=True)
class RequestPasswordResetCommand:
    email: str


@dataclass(frozen=True)
class ResetPasswordCommand:
    token: str
    new_password: str


@dataclass(frozen=True)
class ConfirmEmailVerificationCommand:
    token: str


@dataclass(frozen=True)
class UpdateEmailPreferencesCommand:
    """Partial update; None leaves a flag unchanged."""

    account_id: str
    welcome: Optional[bool] = None
    security_alerts: Optional[bool] = None
    trade_confirmations: Optional[bool] = None
    deposit_confirmations: Optional[bool] = None
    marketing: Optional[bool] = None


@dataclass(frozen=True)
class AccountView:
    """Public view of an account. Never contains credential hashes."""

    id: str
    email: str
    display_name: str
    email_verified: bool
    linked_providers: list[str]
    kyc_status: str
    balance: Decimal
    created_at: datetime
    last_login_at: Optional[datetime]

    @classmethod
    def from_account(cls, account: Account) -> "AccountView":
        return cls(
            id=account.id,
            email=account.email,
            display_name=account.display_name,
            email_verified=account.email_verified,
            linked_providers=sorted(account.linked_providers),
            kyc_status=account.kyc_status.value,
            balance=account.balance,
            created_at=account.created_at,
            last_login_at=account.last_login_at,
        )


@dataclass(frozen=True)
class AuthResult:
    """A successful authentication: a session token and the account."""

    token: str
    account: AccountView


@dataclass(frozen=True)
class KycChallenge:
    """Password login stopped at the KYC gate.

    Either ``reason`` is set (identifiers missing, nothing created) or
    ``session_id`` is set (an OTP was generated and dispatched).
    """

    requires_kyc: bool = True
    reason: Optional[str] = None
    session_id: Optional[str] = None
    expires_at: Optional[datetime] = None


LoginResult = Union[AuthResult, KycChallenge]


@dataclass(frozen=True)
class OAuthLoginResult:
    token: str
    account: AccountView
    created: bool


@dataclass(frozen=True)
class EmailVerificationRequestResult:
    sent: bool
    already_verified: bool


@dataclass(frozen=True)
class LoginLogResult:
    account_id: str
    email: str
    provider: str
    timestamp: datetime


@dataclass(frozen=True)
class EmailPreferencesResult:
    welcome: bool
    security_alerts: bool
    trade_confirmations: bool
    deposit_confirmations: bool
    marketing: bool
