"""
Use cases: Request a password reset link, and reset the password with it.

Reset tokens are signed and time-boxed (1 hour) and carry a fingerprint
of the password hash they were issued against, so a token is dead once
the password changes. Nothing is stored server-side.
"""

import logging
from urllib.parse import urlencode

from coinvault.application.identity.dtos import (
    RequestPasswordResetCommand,
    ResetPasswordCommand,
)
from coinvault.domain.identity.errors import (
    AccountNotFoundError,
    InvalidResetTokenError,
    InvalidTokenError,
    TokenExpiredError,
)
from coinvault.domain.identity.notifications import PasswordResetNotification
from coinvault.domain.identity.policy import (
    PASSWORD_PROVIDER,
    PASSWORD_RESET_TOKEN,
    PASSWORD_RESET_TTL,
    credential_fingerprint,
)
from coinvault.domain.identity.ports import (
    AccountRepository,
    Clock,
    CredentialHasher,
    NotificationPort,
    TokenService,
)

logger = logging.getLogger(__name__)


class RequestPasswordResetUseCase:
    """Emails a password reset link.

    Unlike login flows, delivery failure is surfaced: the email is the
    only effect of this operation.

    Raises:
        AccountNotFoundError: If no account has this email.
        NotificationDeliveryError: If the email could not be sent.
    """

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

    def execute(self, command: RequestPasswordResetCommand) -> None:
        account = self._account_repo.get_by_email(command.email)
        if account is None:
            raise AccountNotFoundError(command.email)

        token = self._token_service.issue_purpose(
            account.id,
            PASSWORD_RESET_TOKEN,
            now=self._clock.now(),
            ttl=PASSWORD_RESET_TTL,
            fingerprint=credential_fingerprint(account.password_hash),
        )
        reset_url = f"{self._client_url}/reset-password?{urlencode({'token': token})}"
        self._notifier.send_email(
            account.email,
            PasswordResetNotification(
                display_name=account.display_name,
                reset_url=reset_url,
                ttl_minutes=int(PASSWORD_RESET_TTL.total_seconds() // 60),
            ),
        )
        logger.info("Password reset link sent for account=%s", account.id)


class ResetPasswordUseCase:
    """Replaces the password of the account named by a reset token.

    An OAuth-only account gains a password credential this way.

    Raises:
        InvalidResetTokenError: Bad signature, wrong purpose, expired,
            already used, or the account is gone.
    """

    def __init__(
        self,
        account_repo: AccountRepository,
        token_service: TokenService,
        hasher: CredentialHasher,
        clock: Clock,
    ) -> None:
        self._account_repo = account_repo
        self._token_service = token_service
        self._hasher = hasher
        self._clock = clock

    def execute(self, command: ResetPasswordCommand) -> None:
        try:
            claims = self._token_service.verify_purpose(
                command.token, PASSWORD_RESET_TOKEN, self._clock.now()
            )
        except (InvalidTokenError, TokenExpiredError) as exc:
            logger.info("Password reset refused: %s", exc.code)
            raise InvalidResetTokenError() from exc

        account = self._account_repo.get_by_id(claims.account_id)
        if account is None:
            raise InvalidResetTokenError()
        if claims.fingerprint != credential_fingerprint(account.password_hash):
            logger.info("Stale reset token for account=%s", account.id)
            raise InvalidResetTokenError()

        self._account_repo.update_password_hash(
            account.id, self._hasher.hash(command.new_password)
        )
        self._account_repo.link_provider(account.id, PASSWORD_PROVIDER)
        logger.info("Password reset for account=%s", account.id)
