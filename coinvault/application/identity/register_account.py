"""
Use case: Register an account with email and password.

Input: RegisterAccountCommand (email, password, display_name)
Output: AuthResult (session token + public account view)
Side effects: Creates the account; best-effort welcome email.
Failure cases: DuplicateAccountError.
"""

import logging

from coinvault.application.identity.dtos import AuthResult, RegisterAccountCommand
from coinvault.application.identity.session_issuer import SessionIssuer, notify_quietly
from coinvault.domain.identity.entities import AccountDraft
from coinvault.domain.identity.errors import DuplicateAccountError
from coinvault.domain.identity.notifications import WelcomeNotification
from coinvault.domain.identity.policy import PASSWORD_PROVIDER, default_display_name
from coinvault.domain.identity.ports import (
    AccountRepository,
    Clock,
    CredentialHasher,
    NotificationPort,
)

logger = logging.getLogger(__name__)


class RegisterAccountUseCase:
    """Creates a password account and signs it in.

    Registration counts as verified: no confirmation loop is enforced.
    The returned session is signed directly: it bypasses the KYC gate
    and is not recorded in the login audit. The gate applies from the
    next password login onwards.
    """

    def __init__(
        self,
        account_repo: AccountRepository,
        hasher: CredentialHasher,
        notifier: NotificationPort,
        session_issuer: SessionIssuer,
        clock: Clock,
        client_url: str,
    ) -> None:
        self._account_repo = account_repo
        self._hasher = hasher
        self._notifier = notifier
        self._session_issuer = session_issuer
        self._clock = clock
        self._client_url = client_url

    def execute(self, command: RegisterAccountCommand) -> AuthResult:
        """Register a new account.

        Args:
            command: Email, password and optional display name.

        Returns:
            Session token and public account view.

        Raises:
            DuplicateAccountError: If the email already has an account.
        """
        if self._account_repo.get_by_email(command.email) is not None:
            logger.info("Registration rejected, email already registered")
            raise DuplicateAccountError(command.email)

        draft = AccountDraft(
            email=command.email,
            display_name=command.display_name or default_display_name(command.email),
            password_hash=self._hasher.hash(command.password),
            linked_providers=frozenset({PASSWORD_PROVIDER}),
            created_at=self._clock.now(),
        )
        account = self._account_repo.create(draft)
        logger.info("Registered account=%s", account.id)

        notify_quietly(
            self._notifier,
            account.email,
            WelcomeNotification(
                display_name=account.display_name, client_url=self._client_url
            ),
            account.email_preferences,
        )

        return self._session_issuer.sign(account)
