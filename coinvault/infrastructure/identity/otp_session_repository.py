"""
Adapter: OTP session persistence.

Implements OtpSessionRepository port on the ``otp_sessions`` table.
The attempt counter is incremented with a single UPDATE … RETURNING so
parallel guesses can never both read the same count.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.engine import Engine

from coinvault.domain.identity.entities import OtpSession
from coinvault.domain.identity.ports import OtpSessionRepository
from coinvault.infrastructure.identity.database import as_utc, otp_sessions


class OtpSessionRepositoryAdapter(OtpSessionRepository):
    """SQLAlchemy implementation of the OTP session store."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def create(self, session: OtpSession) -> None:
        with self._engine.begin() as conn:
            conn.execute(
                insert(otp_sessions).values(
                    id=session.id,
                    account_id=session.account_id,
                    tax_id=session.tax_id,
                    mobile_number=session.mobile_number,
                    otp_hash=session.otp_hash,
                    expires_at=session.expires_at,
                    attempt_count=session.attempt_count,
                )
            )

    def get(self, session_id: str) -> Optional[OtpSession]:
        with self._engine.connect() as conn:
            row = conn.execute(
                select(otp_sessions).where(otp_sessions.c.id == session_id)
            ).fetchone()
        if row is None:
            return None
        return OtpSession(
            id=row.id,
            account_id=row.account_id,
            tax_id=row.tax_id,
            mobile_number=row.mobile_number,
            otp_hash=row.otp_hash,
            expires_at=as_utc(row.expires_at),
            attempt_count=row.attempt_count,
        )

    def increment_attempts(self, session_id: str) -> Optional[int]:
        with self._engine.begin() as conn:
            row = conn.execute(
                update(otp_sessions)
                .where(otp_sessions.c.id == session_id)
                .values(attempt_count=otp_sessions.c.attempt_count + 1)
                .returning(otp_sessions.c.attempt_count)
            ).fetchone()
        return row[0] if row else None

    def delete(self, session_id: str) -> bool:
        with self._engine.begin() as conn:
            result = conn.execute(
                delete(otp_sessions).where(otp_sessions.c.id == session_id)
            )
        return result.rowcount > 0

    def delete_expired(self, before: datetime) -> int:
        with self._engine.begin() as conn:
            result = conn.execute(
                delete(otp_sessions).where(otp_sessions.c.expires_at < before)
            )
        return result.rowcount
