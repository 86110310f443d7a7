"""
Use cases: Read the signed-in account, its login log and its email
preferences, and update those preferences.

All take the request's verified SessionClaims (or its account id); none
of them touch credentials.
"""

import logging
from typing import Optional

from coinvault.application.identity.dtos import (
    AccountView,
    EmailPreferencesResult,
    LoginLogResult,
    UpdateEmailPreferencesCommand,
)
from coinvault.domain.identity.entities import EmailPreferences, SessionClaims
from coinvault.domain.identity.errors import AccountVanishedError
from coinvault.domain.identity.ports import AccountRepository, LoginAuditRepository

logger = logging.getLogger(__name__)


def _preferences_result(preferences: EmailPreferences) -> EmailPreferencesResult:
    return EmailPreferencesResult(**preferences.to_mapping())


class GetAccountUseCase:
    """Loads the public view of the signed-in account."""

    def __init__(self, account_repo: AccountRepository) -> None:
        self._account_repo = account_repo

    def execute(self, session: SessionClaims) -> AccountView:
        account = self._account_repo.get_by_id(session.account_id)
        if account is None:
            raise AccountVanishedError(session.account_id)
        return AccountView.from_account(account)


class GetLoginLogUseCase:
    def __init__(self, audit_repo: LoginAuditRepository) -> None:
        self._audit_repo = audit_repo

    def execute(self, session: SessionClaims) -> Optional[LoginLogResult]:
        entry = self._audit_repo.get(session.account_id)
        if entry is None:
            return None
        return LoginLogResult(
            account_id=entry.account_id,
            email=entry.email,
            provider=entry.provider,
            timestamp=entry.timestamp,
        )


class GetEmailPreferencesUseCase:
    def __init__(self, account_repo: AccountRepository) -> None:
        self._account_repo = account_repo

    def execute(self, session: SessionClaims) -> EmailPreferencesResult:
        account = self._account_repo.get_by_id(session.account_id)
        if account is None:
            raise AccountVanishedError(session.account_id)
        return _preferences_result(account.email_preferences)


class UpdateEmailPreferencesUseCase:
    """Applies a partial update to an account's email preferences."""

    def __init__(self, account_repo: AccountRepository) -> None:
        self._account_repo = account_repo

    def execute(self, command: UpdateEmailPreferencesCommand) -> EmailPreferencesResult:
        account = self._account_repo.get_by_id(command.account_id)
        if account is None:
            raise AccountVanishedError(command.account_id)

        updated = account.email_preferences.with_updates(
            welcome=command.welcome,
            security_alerts=command.security_alerts,
            trade_confirmations=command.trade_confirmations,
            deposit_confirmations=command.deposit_confirmations,
            marketing=command.marketing,
        )
        self._account_repo.update_email_preferences(account.id, updated)
        logger.info("Email preferences updated for account=%s", account.id)
        return _preferences_result(updated)
