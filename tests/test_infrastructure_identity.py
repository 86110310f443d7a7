"""
Tests for the identity infrastructure adapters.

Repositories run on in-memory SQLite. The SendGrid and Twilio clients
are replaced with mocks; no network calls are made.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
from jose import jwt
from twilio.base.exceptions import TwilioException

from coinvault.domain.identity.entities import (
    AccountDraft,
    EmailPreferences,
    KycIdentifiers,
    KycStatus,
    LoginAuditEntry,
    OtpSession,
)
from coinvault.domain.identity.errors import (
    AccountNotFoundError,
    DuplicateAccountError,
    InvalidTokenError,
    NotificationDeliveryError,
    TokenExpiredError,
)
from coinvault.domain.identity.notifications import OtpNotification, WelcomeNotification
from coinvault.domain.identity.policy import PASSWORD_RESET_TOKEN, SESSION_TOKEN
from coinvault.infrastructure.identity.clock import SystemClock
from coinvault.infrastructure.identity.credential_hasher import (
    BcryptCredentialHasher,
)
from coinvault.infrastructure.identity.database import as_utc, build_engine
from coinvault.infrastructure.identity.messaging_notifier import MessagingNotifier
from coinvault.infrastructure.identity.token_service import JoseTokenService


T0 = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
TEST_SECRET = "test-secret-not-for-production"
NOTIFIER_MODULE = "coinvault.infrastructure.identity.messaging_notifier"


def _draft(email: str = "a@x.com", providers=("password",), **overrides) -> AccountDraft:
    values = dict(
        email=email,
        display_name=email.split("@")[0],
        password_hash="stored-hash",
        linked_providers=frozenset(providers),
        created_at=T0,
    )
    values.update(overrides)
    return AccountDraft(**values)


def _otp_session(account_id: str, session_id: str = "sess-1", **overrides) -> OtpSession:
    values = dict(
        id=session_id,
        account_id=account_id,
        tax_id="ABCDE1234F",
        mobile_number="9999999999",
        otp_hash="otp-hash",
        expires_at=T0 + timedelta(minutes=5),
    )
    values.update(overrides)
    return OtpSession(**values)


# ══════════════════════════════════════════════════════════════════════
# Database helpers
# ══════════════════════════════════════════════════════════════════════


class TestDatabase:
    def test_in_memory_engine_shares_one_database(self) -> None:
        engine = build_engine("sqlite://")
        assert engine.pool.__class__.__name__ == "StaticPool"

    def test_as_utc_attaches_timezone(self) -> None:
        naive = T0.replace(tzinfo=None)
        assert as_utc(naive) == T0
        assert as_utc(None) is None
        assert as_utc(T0) is T0


# ══════════════════════════════════════════════════════════════════════
# Account repository
# ══════════════════════════════════════════════════════════════════════


class TestAccountRepositoryAdapter:
    """Tests for AccountRepositoryAdapter on SQLite."""

    def test_create_and_read_back(self, account_repo) -> None:
        account = account_repo.create(_draft())

        assert account.id
        assert account.kyc_status is KycStatus.UNVERIFIED
        assert account.balance == 0
        assert account.created_at == T0
        assert account.email_preferences == EmailPreferences()
        assert account_repo.get_by_id(account.id) == account
        assert account_repo.get_by_email("a@x.com") == account

    def test_missing_lookups_return_none(self, account_repo) -> None:
        assert account_repo.get_by_id("nope") is None
        assert account_repo.get_by_email("no@x.com") is None

    def test_unique_email(self, account_repo) -> None:
        account_repo.create(_draft())
        with pytest.raises(DuplicateAccountError):
            account_repo.create(_draft(password_hash="other"))

    def test_link_provider_is_a_set_add(self, account_repo) -> None:
        account = account_repo.create(_draft())

        linked = account_repo.link_provider(account.id, "google")
        again = account_repo.link_provider(account.id, "google")

        assert linked.linked_providers == frozenset({"password", "google"})
        assert again.linked_providers == linked.linked_providers

    def test_link_provider_fills_empty_display_name_only(self, account_repo) -> None:
        named = account_repo.create(_draft())
        unnamed = account_repo.create(_draft(email="b@x.com", display_name=""))

        assert account_repo.link_provider(named.id, "google", "New").display_name == "a"
        assert (
            account_repo.link_provider(unnamed.id, "google", "New").display_name == "New"
        )

    def test_link_provider_unknown_account(self, account_repo) -> None:
        with pytest.raises(AccountNotFoundError):
            account_repo.link_provider("nope", "google")

    def test_record_login(self, account_repo) -> None:
        account = account_repo.create(_draft())
        account_repo.record_login(account.id, T0 + timedelta(hours=1))
        assert account_repo.get_by_id(account.id).last_login_at == T0 + timedelta(
            hours=1
        )

    def test_mark_kyc_verified(self, account_repo) -> None:
        account = account_repo.create(_draft())
        verified = account_repo.mark_kyc_verified(
            account.id, KycIdentifiers("ABCDE1234F", "9999999999", T0)
        )

        assert verified.kyc_status is KycStatus.VERIFIED
        assert verified.kyc_identifiers == KycIdentifiers("ABCDE1234F", "9999999999", T0)
        assert verified.kyc_satisfied

    def test_mark_kyc_verified_unknown_account(self, account_repo) -> None:
        with pytest.raises(AccountNotFoundError):
            account_repo.mark_kyc_verified(
                "nope", KycIdentifiers("ABCDE1234F", "9999999999", T0)
            )

    def test_updates(self, account_repo) -> None:
        account = account_repo.create(_draft(email_verified=False))

        account_repo.update_password_hash(account.id, "new-hash")
        account_repo.mark_email_verified(account.id)
        account_repo.update_email_preferences(
            account.id, EmailPreferences(marketing=True)
        )

        stored = account_repo.get_by_id(account.id)
        assert stored.password_hash == "new-hash"
        assert stored.email_verified is True
        assert stored.email_preferences.marketing is True

    def test_update_unknown_account(self, account_repo) -> None:
        with pytest.raises(AccountNotFoundError):
            account_repo.update_password_hash("nope", "hash")


# ══════════════════════════════════════════════════════════════════════
# OTP session repository
# ══════════════════════════════════════════════════════════════════════


class TestOtpSessionRepositoryAdapter:
    """Tests for OtpSessionRepositoryAdapter on SQLite."""

    def test_create_and_get(self, account_repo, otp_repo) -> None:
        account = account_repo.create(_draft())
        session = _otp_session(account.id)
        otp_repo.create(session)
        assert otp_repo.get("sess-1") == session

    def test_increment_returns_new_count(self, account_repo, otp_repo) -> None:
        account = account_repo.create(_draft())
        otp_repo.create(_otp_session(account.id))

        assert otp_repo.increment_attempts("sess-1") == 1
        assert otp_repo.increment_attempts("sess-1") == 2
        assert otp_repo.get("sess-1").attempt_count == 2

    def test_increment_missing_session(self, otp_repo) -> None:
        assert otp_repo.increment_attempts("nope") is None

    def test_delete_claims_once(self, account_repo, otp_repo) -> None:
        account = account_repo.create(_draft())
        otp_repo.create(_otp_session(account.id))

        assert otp_repo.delete("sess-1") is True
        assert otp_repo.delete("sess-1") is False
        assert otp_repo.get("sess-1") is None

    def test_delete_expired(self, account_repo, otp_repo) -> None:
        account = account_repo.create(_draft())
        otp_repo.create(_otp_session(account.id, "old", expires_at=T0))
        otp_repo.create(
            _otp_session(account.id, "fresh", expires_at=T0 + timedelta(minutes=10))
        )

        removed = otp_repo.delete_expired(T0 + timedelta(minutes=1))

        assert removed == 1
        assert otp_repo.get("old") is None
        assert otp_repo.get("fresh") is not None


# ══════════════════════════════════════════════════════════════════════
# Login audit repository
# ══════════════════════════════════════════════════════════════════════


class TestLoginAuditRepositoryAdapter:
    def test_upsert_keeps_one_row_per_account(self, account_repo, audit_repo) -> None:
        account = account_repo.create(_draft())
        audit_repo.upsert(LoginAuditEntry(account.id, "a@x.com", "password", T0))
        later = T0 + timedelta(days=1)
        audit_repo.upsert(LoginAuditEntry(account.id, "a@x.com", "google", later))

        assert audit_repo.get(account.id) == LoginAuditEntry(
            account.id, "a@x.com", "google", later
        )

    def test_get_missing(self, audit_repo) -> None:
        assert audit_repo.get("nope") is None


# ══════════════════════════════════════════════════════════════════════
# Credential hasher
# ══════════════════════════════════════════════════════════════════════


class TestBcryptCredentialHasher:
    def test_hash_and_verify(self, hasher) -> None:
        hashed = hasher.hash("s3cret-pass")
        assert hashed.startswith("$2")
        assert hasher.verify("s3cret-pass", hashed)
        assert not hasher.verify("wrong", hashed)

    def test_hashes_are_salted(self, hasher) -> None:
        assert hasher.hash("same") != hasher.hash("same")

    def test_configured_rounds(self) -> None:
        hashed = BcryptCredentialHasher(rounds=5).hash("pw")
        assert hashed.split("$")[2] == "05"

    @pytest.mark.parametrize("secret, hashed", [("", "x"), ("pw", ""), ("pw", "junk")])
    def test_verify_never_raises(self, hasher, secret, hashed) -> None:
        assert hasher.verify(secret, hashed) is False


# ══════════════════════════════════════════════════════════════════════
# Token service
# ══════════════════════════════════════════════════════════════════════


class TestJoseTokenService:
    """Tests for JoseTokenService."""

    def _account(self, account_repo):
        return account_repo.create(_draft())

    def test_session_round_trip(self, account_repo, token_service) -> None:
        account = self._account(account_repo)
        claims = token_service.verify_session(
            token_service.issue_session(account, T0), T0 + timedelta(days=1)
        )
        assert claims.account_id == account.id
        assert claims.email == "a@x.com"
        assert claims.expires_at == T0 + timedelta(days=7)

    def test_expiry_uses_given_clock(self, account_repo, token_service) -> None:
        token = token_service.issue_session(self._account(account_repo), T0)
        with pytest.raises(TokenExpiredError):
            token_service.verify_session(token, T0 + timedelta(days=7, seconds=1))

    def test_wrong_type_rejected(self, token_service) -> None:
        token = token_service.issue_purpose(
            "acc-1", PASSWORD_RESET_TOKEN, T0, timedelta(hours=1)
        )
        with pytest.raises(InvalidTokenError):
            token_service.verify_session(token, T0)

    def test_purpose_token_carries_fingerprint(self, token_service) -> None:
        token = token_service.issue_purpose(
            "acc-1", PASSWORD_RESET_TOKEN, T0, timedelta(hours=1), fingerprint="abc"
        )
        claims = token_service.verify_purpose(token, PASSWORD_RESET_TOKEN, T0)
        assert claims.account_id == "acc-1"
        assert claims.fingerprint == "abc"

    def test_missing_claims_rejected(self, token_service) -> None:
        token = jwt.encode({"typ": SESSION_TOKEN, "sub": "acc-1"}, TEST_SECRET)
        with pytest.raises(InvalidTokenError):
            token_service.verify_session(token, T0)

    def test_missing_email_rejected(self, token_service) -> None:
        token = jwt.encode(
            {"typ": SESSION_TOKEN, "sub": "acc-1", "iat": 1, "exp": 2**31},
            TEST_SECRET,
        )
        with pytest.raises(InvalidTokenError):
            token_service.verify_session(token, T0)

    def test_malformed_token(self, token_service) -> None:
        with pytest.raises(InvalidTokenError):
            token_service.verify_session("a.b.c", T0)

    def test_empty_secret_refused(self) -> None:
        with pytest.raises(ValueError):
            JoseTokenService("")


# ══════════════════════════════════════════════════════════════════════
# Messaging notifier
# ══════════════════════════════════════════════════════════════════════


class TestMessagingNotifier:
    """Tests for MessagingNotifier with mocked gateways."""

    def test_unconfigured_channels_raise(self) -> None:
        notifier = MessagingNotifier()
        with pytest.raises(NotificationDeliveryError) as email_exc:
            notifier.send_email("a@x.com", WelcomeNotification("a", "http://app"))
        with pytest.raises(NotificationDeliveryError) as sms_exc:
            notifier.send_sms("+19999999999", OtpNotification("123456", 5))
        assert email_exc.value.channel == "email"
        assert sms_exc.value.channel == "sms"

    def test_email_sent_through_sendgrid(self) -> None:
        with patch(f"{NOTIFIER_MODULE}.SendGridAPIClient") as client_cls:
            client_cls.return_value.send.return_value = MagicMock(status_code=202)
            notifier = MessagingNotifier(
                sendgrid_api_key="SG.key", mail_from_email="noreply@coinvault.test"
            )
            notifier.send_email("a@x.com", WelcomeNotification("Ann", "http://app"))

        client_cls.assert_called_once_with("SG.key")
        mail = client_cls.return_value.send.call_args.args[0]
        assert mail.get()["subject"] == "Welcome to CoinVault!"

    def test_sendgrid_error_status(self) -> None:
        with patch(f"{NOTIFIER_MODULE}.SendGridAPIClient") as client_cls:
            client_cls.return_value.send.return_value = MagicMock(status_code=401)
            notifier = MessagingNotifier(
                sendgrid_api_key="SG.key", mail_from_email="noreply@coinvault.test"
            )
            with pytest.raises(NotificationDeliveryError):
                notifier.send_email("a@x.com", WelcomeNotification("a", "http://app"))

    def test_sendgrid_exception_wrapped(self) -> None:
        with patch(f"{NOTIFIER_MODULE}.SendGridAPIClient") as client_cls:
            client_cls.return_value.send.side_effect = RuntimeError("network")
            notifier = MessagingNotifier(
                sendgrid_api_key="SG.key", mail_from_email="noreply@coinvault.test"
            )
            with pytest.raises(NotificationDeliveryError):
                notifier.send_email("a@x.com", WelcomeNotification("a", "http://app"))

    def test_sms_sent_through_twilio(self) -> None:
        with patch(f"{NOTIFIER_MODULE}.TwilioClient") as client_cls:
            notifier = MessagingNotifier(
                twilio_account_sid="AC1",
                twilio_auth_token="tok",
                twilio_from_number="+15550000000",
            )
            notifier.send_sms("+19999999999", OtpNotification("012345", 5))

        create = client_cls.return_value.messages.create
        create.assert_called_once()
        kwargs = create.call_args.kwargs
        assert kwargs["to"] == "+19999999999"
        assert kwargs["from_"] == "+15550000000"
        assert "012345" in kwargs["body"]

    def test_twilio_error_wrapped(self) -> None:
        with patch(f"{NOTIFIER_MODULE}.TwilioClient") as client_cls:
            client_cls.return_value.messages.create.side_effect = TwilioException("x")
            notifier = MessagingNotifier(
                twilio_account_sid="AC1",
                twilio_auth_token="tok",
                twilio_from_number="+15550000000",
            )
            with pytest.raises(NotificationDeliveryError):
                notifier.send_sms("+19999999999", OtpNotification("012345", 5))


class TestSystemClock:
    def test_now_is_utc(self) -> None:
        assert SystemClock().now().utcoffset() == timedelta(0)
