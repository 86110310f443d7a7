"""
Adapter: Login audit persistence.

Implements LoginAuditRepository port on the ``login_audit`` table,
keyed by account id. Uses the dialect's native upsert on PostgreSQL and
SQLite (INSERT … ON CONFLICT DO UPDATE).
"""

from typing import Optional

from sqlalchemy import insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine

from coinvault.domain.identity.entities import LoginAuditEntry
from coinvault.domain.identity.ports import LoginAuditRepository
from coinvault.infrastructure.identity.database import as_utc, login_audit

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class LoginAuditRepositoryAdapter(LoginAuditRepository):
    """SQLAlchemy implementation of the one-row-per-account login audit."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def upsert(self, entry: LoginAuditEntry) -> None:
        values = {
            "account_id": entry.account_id,
            "email": entry.email,
            "provider": entry.provider,
            "timestamp": entry.timestamp,
        }
        dialect_insert = _UPSERT_DIALECTS.get(self._engine.dialect.name)

        with self._engine.begin() as conn:
            if dialect_insert is not None:
                stmt = dialect_insert(login_audit).values(**values)
                conn.execute(
                    stmt.on_conflict_do_update(
                        index_elements=[login_audit.c.account_id],
                        set_={
                            "email": stmt.excluded.email,
                            "provider": stmt.excluded.provider,
                            "timestamp": stmt.excluded.timestamp,
                        },
                    )
                )
                return

            result = conn.execute(
                update(login_audit)
                .where(login_audit.c.account_id == entry.account_id)
                .values(**values)
            )
            if result.rowcount == 0:
                conn.execute(insert(login_audit).values(**values))

    def get(self, account_id: str) -> Optional[LoginAuditEntry]:
        with self._engine.connect() as conn:
            row = conn.execute(
                select(login_audit).where(login_audit.c.account_id == account_id)
            ).fetchone()
        if row is None:
            return None
        return LoginAuditEntry(
            account_id=row.account_id,
            email=row.email,
            provider=row.provider,
            timestamp=as_utc(row.timestamp),
        )
