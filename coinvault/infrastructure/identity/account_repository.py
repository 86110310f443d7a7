"""
Adapter: Account persistence.

Implements AccountRepository port on the ``accounts`` table.
Uniqueness of email is enforced by the database; multi-step field
updates run inside a single transaction.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from coinvault.domain.identity.entities import (
    Account,
    AccountDraft,
    EmailPreferences,
    KycIdentifiers,
    KycStatus,
)
from coinvault.domain.identity.errors import AccountNotFoundError, DuplicateAccountError
from coinvault.domain.identity.ports import AccountRepository
from coinvault.infrastructure.identity.database import accounts, as_utc

logger = logging.getLogger(__name__)


def _row_to_account(row: Any) -> Account:
    identifiers = None
    if row.kyc_tax_id and row.kyc_mobile_number:
        identifiers = KycIdentifiers(
            tax_id=row.kyc_tax_id,
            verified_mobile_number=row.kyc_mobile_number,
            verified_at=as_utc(row.kyc_verified_at),
        )
    return Account(
        id=row.id,
        email=row.email,
        display_name=row.display_name or "",
        password_hash=row.password_hash,
        email_verified=bool(row.email_verified),
        linked_providers=frozenset(row.linked_providers or ()),
        kyc_status=KycStatus(row.kyc_status),
        kyc_identifiers=identifiers,
        balance=Decimal(str(row.balance or 0)),
        created_at=as_utc(row.created_at),
        last_login_at=as_utc(row.last_login_at),
        email_preferences=EmailPreferences.from_mapping(row.email_preferences),
    )


class AccountRepositoryAdapter(AccountRepository):
    """SQLAlchemy implementation of the account store."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def _fetch(self, conn: Connection, account_id: str, for_update: bool = False):
        query = select(accounts).where(accounts.c.id == account_id)
        if for_update:
            query = query.with_for_update()
        row = conn.execute(query).fetchone()
        if row is None:
            raise AccountNotFoundError(account_id)
        return row

    def get_by_id(self, account_id: str) -> Optional[Account]:
        with self._engine.connect() as conn:
            row = conn.execute(
                select(accounts).where(accounts.c.id == account_id)
            ).fetchone()
        return _row_to_account(row) if row else None

    def get_by_email(self, email: str) -> Optional[Account]:
        with self._engine.connect() as conn:
            row = conn.execute(
                select(accounts).where(accounts.c.email == email)
            ).fetchone()
        return _row_to_account(row) if row else None

    def create(self, draft: AccountDraft) -> Account:
        """Insert a new account with a store-assigned id.

        Raises:
            DuplicateAccountError: If the email unique index rejects the row.
        """
        account_id = str(uuid4())
        try:
            with self._engine.begin() as conn:
                conn.execute(
                    insert(accounts).values(
                        id=account_id,
                        email=draft.email,
                        password_hash=draft.password_hash,
                        display_name=draft.display_name,
                        email_verified=draft.email_verified,
                        linked_providers=sorted(draft.linked_providers),
                        kyc_status=KycStatus.UNVERIFIED.value,
                        balance=Decimal("0"),
                        email_preferences=EmailPreferences().to_mapping(),
                        created_at=draft.created_at,
                    )
                )
                row = self._fetch(conn, account_id)
        except IntegrityError as exc:
            logger.info("Account insert rejected by the email unique index")
            raise DuplicateAccountError(draft.email) from exc
        return _row_to_account(row)

    def link_provider(
        self, account_id: str, provider: str, display_name: Optional[str] = None
    ) -> Account:
        with self._engine.begin() as conn:
            row = self._fetch(conn, account_id, for_update=True)
            providers = set(row.linked_providers or ())
            changes: dict[str, Any] = {}
            if provider not in providers:
                changes["linked_providers"] = sorted(providers | {provider})
            if display_name and not row.display_name:
                changes["display_name"] = display_name
            if changes:
                conn.execute(
                    update(accounts).where(accounts.c.id == account_id).values(**changes)
                )
                row = self._fetch(conn, account_id)
        return _row_to_account(row)

    def record_login(self, account_id: str, at: datetime) -> None:
        with self._engine.begin() as conn:
            conn.execute(
                update(accounts)
                .where(accounts.c.id == account_id)
                .values(last_login_at=at)
            )

    def mark_kyc_verified(
        self, account_id: str, identifiers: KycIdentifiers
    ) -> Account:
        with self._engine.begin() as conn:
            result = conn.execute(
                update(accounts)
                .where(accounts.c.id == account_id)
                .values(
                    kyc_status=KycStatus.VERIFIED.value,
                    kyc_tax_id=identifiers.tax_id,
                    kyc_mobile_number=identifiers.verified_mobile_number,
                    kyc_verified_at=identifiers.verified_at,
                )
            )
            if result.rowcount == 0:
                raise AccountNotFoundError(account_id)
            row = self._fetch(conn, account_id)
        return _row_to_account(row)

    def update_password_hash(self, account_id: str, password_hash: str) -> None:
        self._update(account_id, password_hash=password_hash)

    def mark_email_verified(self, account_id: str) -> None:
        self._update(account_id, email_verified=True)

    def update_email_preferences(
        self, account_id: str, preferences: EmailPreferences
    ) -> None:
        self._update(account_id, email_preferences=preferences.to_mapping())

    def _update(self, account_id: str, **values: Any) -> None:
        with self._engine.begin() as conn:
            result = conn.execute(
                update(accounts).where(accounts.c.id == account_id).values(**values)
            )
        if result.rowcount == 0:
            raise AccountNotFoundError(account_id)
