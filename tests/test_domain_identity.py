"""
Tests for the identity domain layer.

Tests entities, policy helpers, notification rendering and error
classes in isolation. No external dependencies or IO required.
"""

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from coinvault.domain.identity.entities import (
    Account,
    EmailPreferences,
    KycIdentifiers,
    KycStatus,
    OtpSession,
    PreferenceCategory,
)
from coinvault.domain.identity.errors import (
    AccountNotFoundError,
    AuthError,
    ConflictError,
    DuplicateAccountError,
    IdentityDomainError,
    InvalidOtpError,
    NotificationDeliveryError,
    RateLimitError,
    TooManyAttemptsError,
    UnsupportedProviderError,
    ValidationError,
)
from coinvault.domain.identity.notifications import (
    EmailVerificationNotification,
    OtpNotification,
    PasswordResetNotification,
    WelcomeNotification,
    render_notification,
)
from coinvault.domain.identity.policy import (
    OTP_LENGTH,
    credential_fingerprint,
    default_display_name,
    generate_otp,
)

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def _account(**overrides) -> Account:
    values = dict(
        id="acc-1",
        email="a@x.com",
        display_name="a",
        password_hash="hash",
        email_verified=True,
        linked_providers=frozenset({"password"}),
        kyc_status=KycStatus.UNVERIFIED,
        kyc_identifiers=None,
        balance=Decimal("0"),
        created_at=NOW,
        last_login_at=None,
    )
    values.update(overrides)
    return Account(**values)


# ══════════════════════════════════════════════════════════════════════
# Entities
# ══════════════════════════════════════════════════════════════════════


class TestAccountEntity:
    """Tests for the Account entity and its invariants."""

    def test_new_account_is_not_kyc_satisfied(self) -> None:
        account = _account()
        assert account.has_password
        assert not account.kyc_complete
        assert not account.kyc_satisfied

    def test_verified_account_with_identifiers_is_satisfied(self) -> None:
        account = _account(
            kyc_status=KycStatus.VERIFIED,
            kyc_identifiers=KycIdentifiers("ABCDE1234F", "9999999999", NOW),
        )
        assert account.kyc_satisfied

    def test_verified_without_identifiers_rejected(self) -> None:
        """A verified status always comes with both identifiers."""
        with pytest.raises(ValueError):
            _account(kyc_status=KycStatus.VERIFIED)

    def test_verified_with_blank_mobile_rejected(self) -> None:
        with pytest.raises(ValueError):
            _account(
                kyc_status=KycStatus.VERIFIED,
                kyc_identifiers=KycIdentifiers("ABCDE1234F", "", NOW),
            )

    def test_negative_balance_rejected(self) -> None:
        with pytest.raises(ValueError):
            _account(balance=Decimal("-0.01"))

    def test_oauth_only_account_has_no_password(self) -> None:
        account = _account(password_hash=None, linked_providers=frozenset({"google"}))
        assert not account.has_password

    def test_account_is_immutable(self) -> None:
        account = _account()
        with pytest.raises(FrozenInstanceError):
            account.email = "b@x.com"  # type: ignore[misc]


class TestOtpSessionEntity:
    """Tests for OtpSession expiry."""

    def test_not_expired_at_boundary(self) -> None:
        session = OtpSession("s", "acc", "T", "M", "h", expires_at=NOW)
        assert not session.is_expired(NOW)

    def test_expired_after_boundary(self) -> None:
        session = OtpSession("s", "acc", "T", "M", "h", expires_at=NOW)
        assert session.is_expired(NOW + timedelta(seconds=1))


class TestEmailPreferences:
    """Tests for the fixed email preference struct."""

    def test_defaults(self) -> None:
        prefs = EmailPreferences()
        assert prefs.welcome and prefs.security_alerts
        assert prefs.trade_confirmations and prefs.deposit_confirmations
        assert prefs.marketing is False

    def test_from_mapping_applies_defaults_once(self) -> None:
        prefs = EmailPreferences.from_mapping({"marketing": True, "unknown": False})
        assert prefs.marketing is True
        assert prefs.welcome is True

    def test_from_mapping_none(self) -> None:
        assert EmailPreferences.from_mapping(None) == EmailPreferences()

    def test_with_updates_ignores_none(self) -> None:
        prefs = EmailPreferences().with_updates(welcome=False, marketing=None)
        assert prefs.welcome is False
        assert prefs.marketing is False

    def test_security_always_allowed(self) -> None:
        prefs = EmailPreferences(security_alerts=False)
        assert prefs.allows(PreferenceCategory.SECURITY)

    def test_welcome_respects_flag(self) -> None:
        assert not EmailPreferences(welcome=False).allows(PreferenceCategory.WELCOME)

    def test_mapping_round_trip(self) -> None:
        prefs = EmailPreferences(marketing=True, welcome=False)
        assert EmailPreferences.from_mapping(prefs.to_mapping()) == prefs


# ══════════════════════════════════════════════════════════════════════
# Policy
# ══════════════════════════════════════════════════════════════════════


class TestPolicy:
    def test_otp_is_six_digits(self) -> None:
        for _ in range(50):
            code = generate_otp()
            assert len(code) == OTP_LENGTH
            assert code.isdigit()

    def test_otp_keeps_leading_zeros(self, monkeypatch) -> None:
        monkeypatch.setattr(
            "coinvault.domain.identity.policy.secrets.randbelow", lambda _n: 42
        )
        assert generate_otp() == "000042"

    def test_default_display_name_is_local_part(self) -> None:
        assert default_display_name("alice@example.com") == "alice"

    def test_fingerprint_changes_with_hash(self) -> None:
        assert credential_fingerprint("a") != credential_fingerprint("b")
        assert len(credential_fingerprint("a")) == 16

    def test_fingerprint_of_missing_hash_is_stable(self) -> None:
        assert credential_fingerprint(None) == credential_fingerprint("")


# ══════════════════════════════════════════════════════════════════════
# Notifications
# ══════════════════════════════════════════════════════════════════════


class TestRenderNotification:
    """Tests for the closed notification set and its renderer."""

    def test_welcome_escapes_display_name(self) -> None:
        message = render_notification(
            WelcomeNotification(display_name="<b>Eve</b>", client_url="http://app")
        )
        assert "Welcome" in message.subject
        assert "<b>Eve</b>" not in message.html
        assert "&lt;b&gt;Eve&lt;/b&gt;" in message.html
        assert "http://app" in message.text

    def test_otp_contains_code_and_ttl(self) -> None:
        message = render_notification(OtpNotification(code="012345", ttl_minutes=5))
        assert "012345" in message.text
        assert "012345" in message.html
        assert "5 minutes" in message.text

    def test_password_reset_contains_link(self) -> None:
        message = render_notification(
            PasswordResetNotification(
                display_name="a", reset_url="http://app/reset?token=t", ttl_minutes=60
            )
        )
        assert "http://app/reset?token=t" in message.text
        assert "60 minutes" in message.html

    def test_email_verification_contains_link(self) -> None:
        message = render_notification(
            EmailVerificationNotification(display_name="a", verify_url="http://v")
        )
        assert "http://v" in message.html
        assert message.subject.startswith("Verify your email")

    def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(TypeError):
            render_notification("welcome")  # type: ignore[arg-type]

    def test_categories(self) -> None:
        assert WelcomeNotification.category is PreferenceCategory.WELCOME
        assert OtpNotification.category is PreferenceCategory.SECURITY
        assert PasswordResetNotification.category is PreferenceCategory.SECURITY


# ══════════════════════════════════════════════════════════════════════
# Errors
# ══════════════════════════════════════════════════════════════════════


class TestDomainErrors:
    """Tests for domain error classes."""

    def test_taxonomy(self) -> None:
        assert issubclass(DuplicateAccountError, ConflictError)
        assert issubclass(AccountNotFoundError, AuthError)
        assert issubclass(TooManyAttemptsError, RateLimitError)
        assert issubclass(UnsupportedProviderError, ValidationError)
        assert issubclass(NotificationDeliveryError, IdentityDomainError)

    def test_codes_are_stable(self) -> None:
        assert DuplicateAccountError("a@x.com").code == "duplicate_account"
        assert TooManyAttemptsError("s").code == "too_many_attempts"
        assert UnsupportedProviderError("github").code == "unsupported_provider"

    def test_invalid_otp_carries_remaining_attempts(self) -> None:
        exc = InvalidOtpError("s", attempts_remaining=3)
        assert exc.attempts_remaining == 3
        assert exc.message == "Invalid verification code"

    def test_duplicate_message_does_not_echo_email(self) -> None:
        exc = DuplicateAccountError("a@x.com")
        assert "a@x.com" not in exc.message
        assert exc.email == "a@x.com"

    def test_notification_error_message(self) -> None:
        exc = NotificationDeliveryError("sms", "timeout")
        assert exc.channel == "sms"
        assert "timeout" in exc.message
