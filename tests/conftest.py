"""
Shared fixtures for the identity test suite.

Real repository adapters run on a fresh in-memory SQLite database per
test. Time is frozen, bcrypt runs at its minimum cost, and outgoing
messages are captured instead of sent.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret-not-for-production")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from coinvault.application.identity.session_issuer import SessionIssuer
from coinvault.domain.identity.errors import NotificationDeliveryError
from coinvault.domain.identity.notifications import Notification, OtpNotification
from coinvault.domain.identity.ports import Clock, NotificationPort
from coinvault.infrastructure.identity.account_repository import (
    AccountRepositoryAdapter,
)
from coinvault.infrastructure.identity.credential_hasher import (
    BcryptCredentialHasher,
)
from coinvault.infrastructure.identity.database import build_engine, create_schema
from coinvault.infrastructure.identity.login_audit_repository import (
    LoginAuditRepositoryAdapter,
)
from coinvault.infrastructure.identity.otp_session_repository import (
    OtpSessionRepositoryAdapter,
)
from coinvault.infrastructure.identity.token_service import JoseTokenService

TEST_SECRET = "test-secret-not-for-production"
T0 = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


# ══════════════════════════════════════════════════════════════════════
# Test doubles
# ══════════════════════════════════════════════════════════════════════


class FrozenClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current = self.current + delta


@dataclass
class SentMessage:
    channel: str
    to: str
    notification: Notification


@dataclass
class RecordingNotifier(NotificationPort):
    """Captures messages; a channel listed in ``failing`` raises instead."""

    sent: list[SentMessage] = field(default_factory=list)
    failing: set[str] = field(default_factory=set)

    def send_email(self, to: str, notification: Notification) -> None:
        self._deliver("email", to, notification)

    def send_sms(self, to: str, notification: Notification) -> None:
        self._deliver("sms", to, notification)

    def _deliver(self, channel: str, to: str, notification: Notification) -> None:
        if channel in self.failing:
            raise NotificationDeliveryError(channel, "gateway down")
        self.sent.append(SentMessage(channel, to, notification))

    def of_type(self, kind: type) -> list[SentMessage]:
        return [m for m in self.sent if isinstance(m.notification, kind)]

    def last_otp(self) -> str:
        """Return the code of the most recently sent OTP."""
        return self.of_type(OtpNotification)[-1].notification.code


# ══════════════════════════════════════════════════════════════════════
# Fixtures
# ══════════════════════════════════════════════════════════════════════


@pytest.fixture
def engine():
    eng = build_engine("sqlite://")
    create_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture(scope="session")
def hasher() -> BcryptCredentialHasher:
    return BcryptCredentialHasher(rounds=4)


@pytest.fixture
def token_service() -> JoseTokenService:
    return JoseTokenService(TEST_SECRET)


@pytest.fixture
def account_repo(engine) -> AccountRepositoryAdapter:
    return AccountRepositoryAdapter(engine)


@pytest.fixture
def otp_repo(engine) -> OtpSessionRepositoryAdapter:
    return OtpSessionRepositoryAdapter(engine)


@pytest.fixture
def audit_repo(engine) -> LoginAuditRepositoryAdapter:
    return LoginAuditRepositoryAdapter(engine)


@pytest.fixture
def session_issuer(account_repo, audit_repo, token_service, clock) -> SessionIssuer:
    return SessionIssuer(
        account_repo=account_repo,
        audit_repo=audit_repo,
        token_service=token_service,
        clock=clock,
    )


@pytest.fixture
def client(engine, clock, notifier, hasher, token_service):
    """TestClient wired to the per-test database and test doubles."""
    from coinvault.interfaces.identity.dependencies import (
        get_clock,
        get_engine,
        get_hasher,
        get_notifier,
        get_token_service,
    )
    from coinvault.main import app
    from coinvault.shared.security.rate_limiting import limiter

    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_hasher] = lambda: hasher
    app.dependency_overrides[get_token_service] = lambda: token_service
    limiter.enabled = False
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
