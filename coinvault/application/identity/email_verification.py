"""
Use cases: Send an email verification link, and confirm it.

Accounts are created verified, so this only matters for accounts whose
flag was cleared by an operator. Tokens are signed and valid for 24 hours.
"""

import logging
from urllib.parse import urlencode

from coinvault.application.identity.dtos import (
    ConfirmEmailVerificationCommand,
    EmailVerificationRequestResult,
)
from coinvault.application.identity.session_issuer import notify_quietly
from coinvault.domain.identity.entities import SessionClaims
from coinvault.domain.identity.errors import (
    AccountVanishedError,
    InvalidTokenError,
    InvalidVerificationTokenError,
    TokenExpiredError,
)
from coinvault.domain.identity.notifications import EmailVerificationNotification
from coinvault.domain.identity.policy import (
    EMAIL_VERIFICATION_TOKEN,
    EMAIL_VERIFICATION_TTL,
)
from coinvault.domain.identity.ports import (
    AccountRepository,
    Clock,
    NotificationPort,
    TokenService,
)

logger = logging.getLogger(__name__)


class RequestEmailVerificationUseCase:
    """Emails a verification link to the signed-in account, if needed."""

    def __init__(
        self,
        account_repo: AccountRepository,
        token_service: TokenService,
        notifier: NotificationPort,
        clock: Clock,
        client_url: str,
    ) -> None:
        self._account_repo = account_repo
        self._token_service = token_service
        self._notifier = notifier
        self._clock = clock
        self._client_url = client_url.rstrip("/")

    def execute(self, session: SessionClaims) -> EmailVerificationRequestResult:
        account = self._account_repo.get_by_id(session.account_id)
        if account is None:
            raise AccountVanishedError(session.account_id)
        if account.email_verified:
            return EmailVerificationRequestResult(sent=False, already_verified=True)

        token = self._token_service.issue_purpose(
            account.id,
            EMAIL_VERIFICATION_TOKEN,
            now=self._clock.now(),
            ttl=EMAIL_VERIFICATION_TTL,
        )
        sent = notify_quietly(
            self._notifier,
            account.email,
            EmailVerificationNotification(
                display_name=account.display_name,
                verify_url=f"{self._client_url}/verify-email?{urlencode({'token': token})}",
            ),
        )
        return EmailVerificationRequestResult(sent=sent, already_verified=False)


class ConfirmEmailVerificationUseCase:
    """Marks an account's email verified from a verification token."""

    def __init__(
        self,
        account_repo: AccountRepository,
        token_service: TokenService,
        clock: Clock,
    ) -> None:
        self._account_repo = account_repo
        self._token_service = token_service
        self._clock = clock

    def execute(self, command: ConfirmEmailVerificationCommand) -> None:
        """Confirm a verification token. Idempotent.

        Raises:
            InvalidVerificationTokenError: Bad, expired or orphaned token.
        """
        try:
            claims = self._token_service.verify_purpose(
                command.token, EMAIL_VERIFICATION_TOKEN, self._clock.now()
            )
        except (InvalidTokenError, TokenExpiredError) as exc:
            raise InvalidVerificationTokenError() from exc

        if self._account_repo.get_by_id(claims.account_id) is None:
            raise InvalidVerificationTokenError()
        self._account_repo.mark_email_verified(claims.account_id)
        logger.info("Email verified for account=%s", claims.account_id)
