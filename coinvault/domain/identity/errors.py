"""
Domain-specific errors for the identity bounded context.

All errors raised from the domain and application layers are defined here.
Each carries a stable machine-checkable ``code``; the interface layer maps
every error kind to exactly one HTTP status.
No framework imports allowed.
"""


class IdentityDomainError(Exception):
    """Base error for all identity domain errors."""

    code = "identity_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)


# ── Taxonomy ─────────────────────────────────────────────────────


class ValidationError(IdentityDomainError):
    """Malformed input, rejected before any store access."""

    code = "validation_error"


class ConflictError(IdentityDomainError):
    """The operation would violate a uniqueness invariant."""

    code = "conflict"


class AuthError(IdentityDomainError):
    """Bad credential, token or one-time passcode."""

    code = "auth_error"


class RateLimitError(IdentityDomainError):
    """A bounded number of attempts has been used up."""

    code = "rate_limited"


class NotFoundError(IdentityDomainError):
    """A record vanished between two steps of one operation."""

    code = "not_found"


class NotificationDeliveryError(IdentityDomainError):
    """An email or SMS could not be handed to the delivery gateway."""

    code = "notification_failed"

    def __init__(self, channel: str, reason: str) -> None:
        super().__init__(f"{channel} delivery failed: {reason}")
        self.channel = channel
        self.reason = reason


# ── Concrete errors ──────────────────────────────────────────────


class UnsupportedProviderError(ValidationError):
    """Raised when an OAuth callback names a provider that is not enabled."""

    code = "unsupported_provider"

    def __init__(self, provider: str) -> None:
        super().__init__(f"Unsupported identity provider: {provider}")
        self.provider = provider


class DuplicateAccountError(ConflictError):
    """Raised when registering an email that already has an account."""

    code = "duplicate_account"

    def __init__(self, email: str) -> None:
        super().__init__("An account with this email already exists")
        self.email = email


class AccountNotFoundError(AuthError):
    """Raised when no account matches an email or id."""

    code = "account_not_found"

    def __init__(self, lookup: str) -> None:
        super().__init__("Account not found")
        self.lookup = lookup


class AccountVanishedError(NotFoundError):
    """Raised when a session's owning account no longer exists."""

    code = "account_not_found"

    def __init__(self, account_id: str) -> None:
        super().__init__("Account not found")
        self.account_id = account_id


class InvalidCredentialError(AuthError):
    """Raised when a password is missing, absent on the account, or wrong."""

    code = "invalid_credential"

    def __init__(self) -> None:
        super().__init__("Invalid credentials")


class InvalidSessionError(AuthError):
    """Raised when no OTP session matches the given id."""

    code = "invalid_session"

    def __init__(self, session_id: str) -> None:
        super().__init__("Invalid or unknown verification session")
        self.session_id = session_id


class OtpExpiredError(AuthError):
    """Raised when an OTP session is used after its expiry."""

    code = "otp_expired"

    def __init__(self, session_id: str) -> None:
        super().__init__("Verification code has expired")
        self.session_id = session_id


class InvalidOtpError(AuthError):
    """Raised when the submitted code does not match the session's code."""

    code = "invalid_otp"

    def __init__(self, session_id: str, attempts_remaining: int) -> None:
        super().__init__("Invalid verification code")
        self.session_id = session_id
        self.attempts_remaining = attempts_remaining


class TooManyAttemptsError(RateLimitError):
    """Raised when an OTP session has used up all of its attempts."""

    code = "too_many_attempts"

    def __init__(self, session_id: str) -> None:
        super().__init__("Too many verification attempts")
        self.session_id = session_id


class NoEmailFromProviderError(AuthError):
    """Raised when an identity provider did not assert an email address."""

    code = "no_email_from_provider"

    def __init__(self, provider: str) -> None:
        super().__init__(f"Identity provider {provider} did not supply an email")
        self.provider = provider


class MissingTokenError(AuthError):
    """Raised when a protected call carries no bearer token."""

    code = "missing_token"

    def __init__(self) -> None:
        super().__init__("Access token required")


class InvalidTokenError(AuthError):
    """Raised when a token is malformed or its signature does not verify."""

    code = "invalid_token"

    def __init__(self, reason: str = "Invalid token") -> None:
        super().__init__(reason)


class TokenExpiredError(AuthError):
    """Raised when a correctly signed token is past its embedded expiry."""

    code = "token_expired"

    def __init__(self) -> None:
        super().__init__("Token has expired")


class InvalidResetTokenError(AuthError):
    """Raised when a password reset token is invalid, stale or expired."""

    code = "invalid_reset_token"

    def __init__(self) -> None:
        super().__init__("Invalid or expired reset token")


class InvalidVerificationTokenError(AuthError):
    """Raised when an email verification token is invalid or expired."""

    code = "invalid_verification_token"

    def __init__(self) -> None:
        super().__init__("Invalid or expired verification token")
