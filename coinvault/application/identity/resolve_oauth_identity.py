"""
Use case: Resolve an OAuth provider profile to exactly one account.

Input: ResolveOAuthIdentityCommand (provider, external_id, email, display_name)
Output: OAuthLoginResult (token, account, created)
Side effects: Creates or links the account, records the login;
    best-effort welcome email on first-time creation.
Failure cases: UnsupportedProviderError, NoEmailFromProviderError.

Email is the join key, not the provider's external id, so one account
is reachable through several providers. OAuth logins bypass the KYC gate.
"""

import logging
from typing import Iterable

from coinvault.application.identity.dtos import (
    OAuthLoginResult,
    ResolveOAuthIdentityCommand,
)
from coinvault.application.identity.session_issuer import SessionIssuer, notify_quietly
from coinvault.domain.identity.entities import Account, AccountDraft
from coinvault.domain.identity.errors import (
    DuplicateAccountError,
    NoEmailFromProviderError,
    UnsupportedProviderError,
)
from coinvault.domain.identity.notifications import WelcomeNotification
from coinvault.domain.identity.policy import PASSWORD_PROVIDER, default_display_name
from coinvault.domain.identity.ports import AccountRepository, Clock, NotificationPort

logger = logging.getLogger(__name__)


class ResolveOAuthIdentityUseCase:
    """Creates or links the account behind an OAuth login and signs it in."""

    def __init__(
        self,
        account_repo: AccountRepository,
        notifier: NotificationPort,
        session_issuer: SessionIssuer,
        clock: Clock,
        allowed_providers: Iterable[str],
        client_url: str,
    ) -> None:
        self._account_repo = account_repo
        self._notifier = notifier
        self._session_issuer = session_issuer
        self._clock = clock
        self._allowed_providers = frozenset(allowed_providers)
        self._client_url = client_url

    def execute(self, command: ResolveOAuthIdentityCommand) -> OAuthLoginResult:
        """Resolve a provider-asserted identity.

        Raises:
            UnsupportedProviderError: If the provider is not enabled.
            NoEmailFromProviderError: If the provider supplied no email.
        """
        provider = command.provider
        if provider not in self._allowed_providers or provider == PASSWORD_PROVIDER:
            raise UnsupportedProviderError(provider)
        if not command.email:
            logger.warning("Provider %s returned no email", provider)
            raise NoEmailFromProviderError(provider)

        account, created = self._find_or_create(command)
        if created:
            notify_quietly(
                self._notifier,
                account.email,
                WelcomeNotification(
                    display_name=account.display_name, client_url=self._client_url
                ),
                account.email_preferences,
            )

        auth = self._session_issuer.issue(account, provider)
        return OAuthLoginResult(token=auth.token, account=auth.account, created=created)

    def _find_or_create(
        self, command: ResolveOAuthIdentityCommand
    ) -> tuple[Account, bool]:
        existing = self._account_repo.get_by_email(command.email)
        if existing is None:
            try:
                account = self._account_repo.create(
                    AccountDraft(
                        email=command.email,
                        display_name=command.display_name
                        or default_display_name(command.email),
                        password_hash=None,
                        linked_providers=frozenset({command.provider}),
                        created_at=self._clock.now(),
                    )
                )
            except DuplicateAccountError:
                # lost a creation race to a concurrent login; link instead
                existing = self._account_repo.get_by_email(command.email)
                if existing is None:
                    raise
            else:
                logger.info(
                    "Created account=%s from %s login", account.id, command.provider
                )
                return account, True

        account = self._account_repo.link_provider(
            existing.id, command.provider, command.display_name
        )
        if command.provider not in existing.linked_providers:
            logger.info("Linked %s to account=%s", command.provider, account.id)
        return account, False
