"""
SQLAlchemy schema and engine construction for the identity store.

Tables:
    accounts      — one row per account, unique on email.
    otp_sessions  — pending OTP challenges, indexed on expires_at for reapers.
    login_audit   — one row per account, upserted on every login.

Works on PostgreSQL and SQLite. SQLite is the local-development fallback.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

metadata = MetaData()

accounts = Table(
    "accounts",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(320), nullable=False, unique=True, index=True),
    Column("password_hash", String(255), nullable=True),
    Column("display_name", String(255), nullable=False, default=""),
    Column("email_verified", Boolean, nullable=False, default=True),
    Column("linked_providers", JSON, nullable=False, default=list),
    Column("kyc_status", String(16), nullable=False, default="unverified"),
    Column("kyc_tax_id", String(32), nullable=True),
    Column("kyc_mobile_number", String(32), nullable=True),
    Column("kyc_verified_at", DateTime(timezone=True), nullable=True),
    Column("balance", Numeric(20, 8), nullable=False, default=0),
    Column("email_preferences", JSON, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("last_login_at", DateTime(timezone=True), nullable=True),
)

otp_sessions = Table(
    "otp_sessions",
    metadata,
    Column("id", String(64), primary_key=True),
    Column(
        "account_id",
        String(36),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("tax_id", String(32), nullable=False),
    Column("mobile_number", String(32), nullable=False),
    Column("otp_hash", String(255), nullable=False),
    Column("expires_at", DateTime(timezone=True), nullable=False, index=True),
    Column("attempt_count", Integer, nullable=False, default=0),
)

login_audit = Table(
    "login_audit",
    metadata,
    Column(
        "account_id",
        String(36),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("email", String(320), nullable=False),
    Column("provider", String(32), nullable=False),
    Column("timestamp", DateTime(timezone=True), nullable=False),
)


def build_engine(database_url: str) -> Engine:
    """Build a SQLAlchemy engine for the identity store.

    SQLite needs ``check_same_thread=False`` because FastAPI runs sync
    routes in a thread pool; in-memory SQLite additionally shares one
    connection so every session sees the same database.
    """
    if database_url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


def create_schema(engine: Engine) -> None:
    """Create any missing identity tables."""
    metadata.create_all(engine)
    logger.info("Identity tables checked/created.")


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
