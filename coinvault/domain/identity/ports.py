"""
Port interfaces (ABCs) for the identity bounded context.

Ports define the contracts that the domain requires from the outside world.
Infrastructure adapters implement these interfaces.
The domain layer never depends on concrete implementations.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Optional

from coinvault.domain.identity.entities import (
    Account,
    AccountDraft,
    EmailPreferences,
    KycIdentifiers,
    LoginAuditEntry,
    OtpSession,
    PurposeTokenClaims,
    SessionClaims,
)
from coinvault.domain.identity.notifications import Notification


class AccountRepository(ABC):
    """Port for the durable account store, keyed by id and by email."""

    @abstractmethod
    def get_by_id(self, account_id: str) -> Optional[Account]:
        """Return the account with this id, or None."""
        raise NotImplementedError

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[Account]:
        """Return the account with this exact email, or None."""
        raise NotImplementedError

    @abstractmethod
    def create(self, draft: AccountDraft) -> Account:
        """Insert a new account and return it with its assigned id.

        Raises:
            DuplicateAccountError: If the email is already taken.
        """
        raise NotImplementedError

    @abstractmethod
    def link_provider(
        self, account_id: str, provider: str, display_name: Optional[str] = None
    ) -> Account:
        """Add a provider to the account's linked set (idempotent).

        ``display_name`` is adopted only when the account has none.
        """
        raise NotImplementedError

    @abstractmethod
    def record_login(self, account_id: str, at: datetime) -> None:
        """Set the account's last login timestamp."""
        raise NotImplementedError

    @abstractmethod
    def mark_kyc_verified(
        self, account_id: str, identifiers: KycIdentifiers
    ) -> Account:
        """Store KYC identifiers and flip the status to verified."""
        raise NotImplementedError

    @abstractmethod
    def update_password_hash(self, account_id: str, password_hash: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def mark_email_verified(self, account_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def update_email_preferences(
        self, account_id: str, preferences: EmailPreferences
    ) -> None:
        raise NotImplementedError


class OtpSessionRepository(ABC):
    """Port for ephemeral OTP challenge sessions."""

    @abstractmethod
    def create(self, session: OtpSession) -> None:
        """Persist a new OTP session."""
        raise NotImplementedError

    @abstractmethod
    def get(self, session_id: str) -> Optional[OtpSession]:
        """Return the session, or None if it does not exist."""
        raise NotImplementedError

    @abstractmethod
    def increment_attempts(self, session_id: str) -> Optional[int]:
        """Atomically add one attempt and return the new count.

        Returns:
            The incremented attempt count, or None if the session is gone.
        """
        raise NotImplementedError

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Delete the session; return True if this call removed it."""
        raise NotImplementedError

    @abstractmethod
    def delete_expired(self, before: datetime) -> int:
        """Delete sessions that expired before ``before``; return the count."""
        raise NotImplementedError


class LoginAuditRepository(ABC):
    """Port for the one-row-per-account login audit."""

    @abstractmethod
    def upsert(self, entry: LoginAuditEntry) -> None:
        """Insert or replace the account's audit entry."""
        raise NotImplementedError

    @abstractmethod
    def get(self, account_id: str) -> Optional[LoginAuditEntry]:
        raise NotImplementedError


class CredentialHasher(ABC):
    """Port for one-way hashing of passwords and OTP codes."""

    @abstractmethod
    def hash(self, secret: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def verify(self, secret: str, hashed: str) -> bool:
        """Return True when ``secret`` matches ``hashed``. Never raises."""
        raise NotImplementedError


class TokenService(ABC):
    """Port for issuing and verifying signed, stateless tokens.

    Verification raises ``InvalidTokenError`` or ``TokenExpiredError``.
    Expiry is always judged against the ``now`` passed in.
    """

    @abstractmethod
    def issue_session(self, account: Account, now: datetime) -> str:
        raise NotImplementedError

    @abstractmethod
    def verify_session(self, token: str, now: datetime) -> SessionClaims:
        raise NotImplementedError

    @abstractmethod
    def issue_purpose(
        self,
        account_id: str,
        purpose: str,
        now: datetime,
        ttl: timedelta,
        fingerprint: Optional[str] = None,
    ) -> str:
        raise NotImplementedError

    @abstractmethod
    def verify_purpose(
        self, token: str, purpose: str, now: datetime
    ) -> PurposeTokenClaims:
        raise NotImplementedError


class NotificationPort(ABC):
    """Port for fire-and-forget email and SMS delivery.

    Both methods raise ``NotificationDeliveryError`` on failure; callers
    decide whether a failure matters.
    """

    @abstractmethod
    def send_email(self, to: str, notification: Notification) -> None:
        raise NotImplementedError

    @abstractmethod
    def send_sms(self, to: str, notification: Notification) -> None:
        raise NotImplementedError


class Clock(ABC):
    """Port for wall-clock time."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""
        raise NotImplementedError
