"""
Domain entities for the identity bounded context.

Entities represent core business objects with identity and lifecycle.
They contain no framework imports and no IO operations.
"""

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional


class KycStatus(Enum):
    """Identity-proofing state of an account."""

    UNVERIFIED = "unverified"
    VERIFIED = "verified"


class PreferenceCategory(Enum):
    """Category a notification belongs to, for opt-out purposes."""

    WELCOME = "welcome"
    SECURITY = "security_alerts"
    TRADE = "trade_confirmations"
    DEPOSIT = "deposit_confirmations"
    MARKETING = "marketing"


@dataclass(frozen=True)
class KycIdentifiers:
    """Identifiers proven during the OTP step of the KYC gate."""

    tax_id: str
    verified_mobile_number: str
    verified_at: datetime


@dataclass(frozen=True)
class EmailPreferences:
    """Which optional emails an account wants to receive.

    Stored as a loose JSON mapping; defaults are applied once, here,
    when the mapping is read. Security messages ignore these flags.
    """

    welcome: bool = True
    security_alerts: bool = True
    trade_confirmations: bool = True
    deposit_confirmations: bool = True
    marketing: bool = False

    @classmethod
    def from_mapping(cls, raw: Optional[Mapping[str, Any]]) -> "EmailPreferences":
        """Build preferences from stored data, ignoring unknown keys."""
        if not raw:
            return cls()
        known = {f.name for f in fields(cls)}
        return cls(**{k: bool(v) for k, v in raw.items() if k in known})

    def to_mapping(self) -> dict[str, bool]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def with_updates(self, **changes: Optional[bool]) -> "EmailPreferences":
        """Return a copy with every non-None change applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def allows(self, category: PreferenceCategory) -> bool:
        if category is PreferenceCategory.SECURITY:
            return True
        return getattr(self, category.value)


@dataclass(frozen=True)
class AccountDraft:
    """Everything needed to create an account; the store assigns the id."""

    email: str
    display_name: str
    password_hash: Optional[str]
    linked_providers: frozenset[str]
    created_at: datetime
    email_verified: bool = True


@dataclass(frozen=True)
class Account:
    """A durable user account, unique by email.

    Invariant: a verified KYC status always comes with both the tax id
    and the verified mobile number.
    """

    id: str
    email: str
    display_name: str
    password_hash: Optional[str]
    email_verified: bool
    linked_providers: frozenset[str]
    kyc_status: KycStatus
    kyc_identifiers: Optional[KycIdentifiers]
    balance: Decimal
    created_at: datetime
    last_login_at: Optional[datetime]
    email_preferences: EmailPreferences = field(default_factory=EmailPreferences)

    def __post_init__(self) -> None:
        if self.kyc_status is KycStatus.VERIFIED and not self.kyc_complete:
            raise ValueError(
                f"Account {self.id} is KYC-verified without tax id and mobile number"
            )
        if self.balance < 0:
            raise ValueError(f"Account {self.id} has a negative balance")

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)

    @property
    def kyc_complete(self) -> bool:
        """True when both KYC identifiers are present."""
        ids = self.kyc_identifiers
        return ids is not None and bool(ids.tax_id) and bool(ids.verified_mobile_number)

    @property
    def kyc_satisfied(self) -> bool:
        """True when password logins may skip the OTP step."""
        return self.kyc_status is KycStatus.VERIFIED and self.kyc_complete


@dataclass(frozen=True)
class OtpSession:
    """A pending OTP challenge created by the KYC gate.

    Lives for a fixed window and a fixed number of attempts, then is
    deleted. Never updated after deletion.
    """

    id: str
    account_id: str
    tax_id: str
    mobile_number: str
    otp_hash: str
    expires_at: datetime
    attempt_count: int = 0

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


@dataclass(frozen=True)
class LoginAuditEntry:
    """Most recent login of an account, whichever provider was used."""

    account_id: str
    email: str
    provider: str
    timestamp: datetime


@dataclass(frozen=True)
class SessionClaims:
    """Verified claims of a session token, carried per request."""

    account_id: str
    email: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class PurposeTokenClaims:
    """Verified claims of a single-purpose token (reset, verification)."""

    account_id: str
    purpose: str
    issued_at: datetime
    expires_at: datetime
    fingerprint: Optional[str] = None
