"""
Dependency injection for the identity bounded context.

Provides FastAPI dependency functions that wire infrastructure
adapters into use cases via constructor injection.
These are the composition root for the identity context. Adapters
that hold connections or clients are built once per process; tests
swap them through ``app.dependency_overrides``.
"""

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.engine import Engine

from coinvault.application.identity.account_queries import (
    GetAccountUseCase,
    GetEmailPreferencesUseCase,
    GetLoginLogUseCase,
    UpdateEmailPreferencesUseCase,
)
from coinvault.application.identity.email_verification import (
    ConfirmEmailVerificationUseCase,
    RequestEmailVerificationUseCase,
)
from coinvault.application.identity.login_with_password import (
    LoginWithPasswordUseCase,
)
from coinvault.application.identity.password_reset import (
    RequestPasswordResetUseCase,
    ResetPasswordUseCase,
)
from coinvault.application.identity.register_account import RegisterAccountUseCase
from coinvault.application.identity.resolve_oauth_identity import (
    ResolveOAuthIdentityUseCase,
)
from coinvault.application.identity.session_issuer import SessionIssuer
from coinvault.application.identity.verify_otp import VerifyOtpUseCase
from coinvault.application.identity.verify_session import VerifySessionUseCase
from coinvault.core.config import settings
from coinvault.domain.identity.entities import SessionClaims
from coinvault.domain.identity.ports import (
    Clock,
    CredentialHasher,
    NotificationPort,
    TokenService,
)
from coinvault.infrastructure.identity.account_repository import (
    AccountRepositoryAdapter,
)
from coinvault.infrastructure.identity.clock import SystemClock
from coinvault.infrastructure.identity.credential_hasher import (
    BcryptCredentialHasher,
)
from coinvault.infrastructure.identity.database import build_engine
from coinvault.infrastructure.identity.login_audit_repository import (
    LoginAuditRepositoryAdapter,
)
from coinvault.infrastructure.identity.messaging_notifier import MessagingNotifier
from coinvault.infrastructure.identity.otp_session_repository import (
    OtpSessionRepositoryAdapter,
)
from coinvault.infrastructure.identity.token_service import JoseTokenService

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


# ── Infrastructure singletons ────────────────────────────────────


@lru_cache
def get_engine() -> Engine:
    """Build the SQLAlchemy engine from application settings."""
    return build_engine(settings.database_url)


@lru_cache
def get_clock() -> Clock:
    return SystemClock()


@lru_cache
def get_hasher() -> CredentialHasher:
    return BcryptCredentialHasher(rounds=settings.bcrypt_rounds)


@lru_cache
def get_token_service() -> TokenService:
    return JoseTokenService(settings.jwt_secret, settings.jwt_algorithm)


@lru_cache
def get_notifier() -> NotificationPort:
    """Build the SendGrid/Twilio notifier from application settings."""
    if not settings.email_configured:
        logger.warning("SendGrid not configured, emails will not be delivered")
    if not settings.sms_configured:
        logger.warning("Twilio not configured, OTP codes will be sent by email")
    return MessagingNotifier(
        sendgrid_api_key=settings.sendgrid_api_key,
        mail_from_email=settings.mail_from_email,
        mail_from_name=settings.mail_from_name,
        twilio_account_sid=settings.twilio_account_sid,
        twilio_auth_token=settings.twilio_auth_token,
        twilio_from_number=settings.twilio_from_number,
    )


def get_session_issuer(
    engine: Engine = Depends(get_engine),
    token_service: TokenService = Depends(get_token_service),
    clock: Clock = Depends(get_clock),
) -> SessionIssuer:
    return SessionIssuer(
        account_repo=AccountRepositoryAdapter(engine),
        audit_repo=LoginAuditRepositoryAdapter(engine),
        token_service=token_service,
        clock=clock,
    )


# ── Use cases ────────────────────────────────────────────────────


def get_register_account_use_case(
    engine: Engine = Depends(get_engine),
    hasher: CredentialHasher = Depends(get_hasher),
    notifier: NotificationPort = Depends(get_notifier),
    session_issuer: SessionIssuer = Depends(get_session_issuer),
    clock: Clock = Depends(get_clock),
) -> RegisterAccountUseCase:
    """Build RegisterAccountUseCase with its infrastructure dependencies."""
    return RegisterAccountUseCase(
        account_repo=AccountRepositoryAdapter(engine),
        hasher=hasher,
        notifier=notifier,
        session_issuer=session_issuer,
        clock=clock,
        client_url=settings.client_url,
    )


def get_login_with_password_use_case(
    engine: Engine = Depends(get_engine),
    hasher: CredentialHasher = Depends(get_hasher),
    notifier: NotificationPort = Depends(get_notifier),
    session_issuer: SessionIssuer = Depends(get_session_issuer),
    clock: Clock = Depends(get_clock),
) -> LoginWithPasswordUseCase:
    """Build LoginWithPasswordUseCase with its infrastructure dependencies."""
    return LoginWithPasswordUseCase(
        account_repo=AccountRepositoryAdapter(engine),
        otp_repo=OtpSessionRepositoryAdapter(engine),
        hasher=hasher,
        notifier=notifier,
        session_issuer=session_issuer,
        clock=clock,
    )


def get_verify_otp_use_case(
    engine: Engine = Depends(get_engine),
    hasher: CredentialHasher = Depends(get_hasher),
    session_issuer: SessionIssuer = Depends(get_session_issuer),
    clock: Clock = Depends(get_clock),
) -> VerifyOtpUseCase:
    """Build VerifyOtpUseCase with its infrastructure dependencies."""
    return VerifyOtpUseCase(
        account_repo=AccountRepositoryAdapter(engine),
        otp_repo=OtpSessionRepositoryAdapter(engine),
        hasher=hasher,
        session_issuer=session_issuer,
        clock=clock,
    )


def get_resolve_oauth_identity_use_case(
    engine: Engine = Depends(get_engine),
    notifier: NotificationPort = Depends(get_notifier),
    session_issuer: SessionIssuer = Depends(get_session_issuer),
    clock: Clock = Depends(get_clock),
) -> ResolveOAuthIdentityUseCase:
    """Build ResolveOAuthIdentityUseCase with its infrastructure dependencies."""
    return ResolveOAuthIdentityUseCase(
        account_repo=AccountRepositoryAdapter(engine),
        notifier=notifier,
        session_issuer=session_issuer,
        clock=clock,
        allowed_providers=settings.oauth_providers,
        client_url=settings.client_url,
    )


def get_verify_session_use_case(
    token_service: TokenService = Depends(get_token_service),
    clock: Clock = Depends(get_clock),
) -> VerifySessionUseCase:
    return VerifySessionUseCase(token_service=token_service, clock=clock)


def get_request_password_reset_use_case(
    engine: Engine = Depends(get_engine),
    token_service: TokenService = Depends(get_token_service),
    notifier: NotificationPort = Depends(get_notifier),
    clock: Clock = Depends(get_clock),
) -> RequestPasswordResetUseCase:
    return RequestPasswordResetUseCase(
        account_repo=AccountRepositoryAdapter(engine),
        token_service=token_service,
        notifier=notifier,
        clock=clock,
        client_url=settings.client_url,
    )


def get_reset_password_use_case(
    engine: Engine = Depends(get_engine),
    token_service: TokenService = Depends(get_token_service),
    hasher: CredentialHasher = Depends(get_hasher),
    clock: Clock = Depends(get_clock),
) -> ResetPasswordUseCase:
    return ResetPasswordUseCase(
        account_repo=AccountRepositoryAdapter(engine),
        token_service=token_service,
        hasher=hasher,
        clock=clock,
    )


def get_request_email_verification_use_case(
    engine: Engine = Depends(get_engine),
    token_service: TokenService = Depends(get_token_service),
    notifier: NotificationPort = Depends(get_notifier),
    clock: Clock = Depends(get_clock),
) -> RequestEmailVerificationUseCase:
    return RequestEmailVerificationUseCase(
        account_repo=AccountRepositoryAdapter(engine),
        token_service=token_service,
        notifier=notifier,
        clock=clock,
        client_url=settings.client_url,
    )


def get_confirm_email_verification_use_case(
    engine: Engine = Depends(get_engine),
    token_service: TokenService = Depends(get_token_service),
    clock: Clock = Depends(get_clock),
) -> ConfirmEmailVerificationUseCase:
    return ConfirmEmailVerificationUseCase(
        account_repo=AccountRepositoryAdapter(engine),
        token_service=token_service,
        clock=clock,
    )


def get_account_use_case(engine: Engine = Depends(get_engine)) -> GetAccountUseCase:
    return GetAccountUseCase(account_repo=AccountRepositoryAdapter(engine))


def get_login_log_use_case(engine: Engine = Depends(get_engine)) -> GetLoginLogUseCase:
    return GetLoginLogUseCase(audit_repo=LoginAuditRepositoryAdapter(engine))


def get_email_preferences_use_case(
    engine: Engine = Depends(get_engine),
) -> GetEmailPreferencesUseCase:
    return GetEmailPreferencesUseCase(account_repo=AccountRepositoryAdapter(engine))


def get_update_email_preferences_use_case(
    engine: Engine = Depends(get_engine),
) -> UpdateEmailPreferencesUseCase:
    return UpdateEmailPreferencesUseCase(account_repo=AccountRepositoryAdapter(engine))


# ── Request-scoped session ───────────────────────────────────────


def get_current_session(
    authorization: Optional[str] = Header(default=None),
    use_case: VerifySessionUseCase = Depends(get_verify_session_use_case),
) -> SessionClaims:
    """Resolve the ``Authorization: Bearer <token>`` header to claims.

    Raises:
        MissingTokenError: Header absent, not a bearer scheme, or empty.
        InvalidTokenError: Signature, structure or type check failed.
        TokenExpiredError: Token is past its expiry.
    """
    token = None
    if authorization and authorization.lower().startswith(BEARER_PREFIX):
        token = authorization[len(BEARER_PREFIX):]
    return use_case.execute(token)
