"""
Shared final step of every successful login, and best-effort messaging.

Every login path (password, OTP completion, OAuth) ends the same way:
stamp the last login time, upsert the audit row, issue a session token.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Optional

from coinvault.application.identity.dtos import AccountView, AuthResult
from coinvault.domain.identity.entities import Account, EmailPreferences, LoginAuditEntry
from coinvault.domain.identity.errors import NotificationDeliveryError
from coinvault.domain.identity.notifications import Notification
from coinvault.domain.identity.ports import (
    AccountRepository,
    Clock,
    LoginAuditRepository,
    NotificationPort,
    TokenService,
)

logger = logging.getLogger(__name__)


class SessionIssuer:
    """Completes a login for an already-authenticated account."""

    def __init__(
        self,
        account_repo: AccountRepository,
        audit_repo: LoginAuditRepository,
        token_service: TokenService,
        clock: Clock,
    ) -> None:
        self._account_repo = account_repo
        self._audit_repo = audit_repo
        self._token_service = token_service
        self._clock = clock

    def issue(self, account: Account, provider: str) -> AuthResult:
        """Record the login and return a fresh session token.

        Args:
            account: The account that just authenticated.
            provider: Provider recorded in the audit row.
        """
        now = self._clock.now()
        self._account_repo.record_login(account.id, now)
        self._audit_repo.upsert(
            LoginAuditEntry(
                account_id=account.id,
                email=account.email,
                provider=provider,
                timestamp=now,
            )
        )
        logger.info("Login recorded for account=%s via %s", account.id, provider)
        return self.sign(replace(account, last_login_at=now), now)

    def sign(self, account: Account, now: Optional[datetime] = None) -> AuthResult:
        """Issue a session token without recording a login."""
        token = self._token_service.issue_session(account, now or self._clock.now())
        return AuthResult(token=token, account=AccountView.from_account(account))


def notify_quietly(
    notifier: NotificationPort,
    to: str,
    notification: Notification,
    preferences: Optional[EmailPreferences] = None,
) -> bool:
    """Send an email, logging instead of raising on failure.

    Returns:
        True if the message was handed to the gateway.
    """
    if preferences is not None and not preferences.allows(notification.category):
        logger.info(
            "Skipping %s email, disabled by preferences",
            type(notification).__name__,
        )
        return False
    try:
        notifier.send_email(to, notification)
    except NotificationDeliveryError as exc:
        logger.warning(
            "Best-effort %s email not delivered: %s",
            type(notification).__name__,
            exc.reason,
        )
        return False
    except Exception:
        logger.exception(
            "Unexpected notifier failure for %s", type(notification).__name__
        )
        return False
    return True
