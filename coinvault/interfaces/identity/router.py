"""
FastAPI routers for the identity bounded context.

All routes delegate to use cases. No business logic here.
Input validation is handled by Pydantic schemas.
Error mapping is handled by centralized error handlers.
Credential and OTP routes carry the tighter auth rate limit.
"""

from typing import Union

from fastapi import APIRouter, Depends, Request, status

from coinvault.application.identity.account_queries import (
    GetAccountUseCase,
    GetEmailPreferencesUseCase,
    GetLoginLogUseCase,
    UpdateEmailPreferencesUseCase,
)
from coinvault.application.identity.dtos import (
    AccountView,
    AuthResult,
    ConfirmEmailVerificationCommand,
    EmailPreferencesResult,
    LoginWithPasswordCommand,
    RegisterAccountCommand,
    RequestPasswordResetCommand,
    ResetPasswordCommand,
    ResolveOAuthIdentityCommand,
    UpdateEmailPreferencesCommand,
    VerifyOtpCommand,
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
from coinvault.application.identity.verify_otp import VerifyOtpUseCase
from coinvault.domain.identity.entities import SessionClaims
from coinvault.interfaces.identity.dependencies import (
    get_account_use_case,
    get_confirm_email_verification_use_case,
    get_current_session,
    get_email_preferences_use_case,
    get_login_log_use_case,
    get_login_with_password_use_case,
    get_register_account_use_case,
    get_request_email_verification_use_case,
    get_request_password_reset_use_case,
    get_reset_password_use_case,
    get_resolve_oauth_identity_use_case,
    get_update_email_preferences_use_case,
    get_verify_otp_use_case,
)
from coinvault.interfaces.identity.schemas import (
    AccountResponse,
    AuthResponse,
    ConfirmEmailVerificationRequest,
    EmailPreferencesResponse,
    EmailPreferencesUpdateRequest,
    EmailVerificationResponse,
    EmptyResponse,
    ErrorResponse,
    ForgotPasswordRequest,
    KycChallengeResponse,
    LoginLogResponse,
    LoginRequest,
    MessageResponse,
    OAuthAuthResponse,
    OAuthCallbackRequest,
    RegisterRequest,
    ResetPasswordRequest,
    SessionResponse,
    VerifyOtpRequest,
)
from coinvault.shared.security.rate_limiting import AUTH_RATE_LIMIT, limiter

router = APIRouter(prefix="/auth", tags=["auth"])
account_router = APIRouter(prefix="/account", tags=["account"])

AUTH_ERRORS = {401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}}


def _account_response(view: AccountView) -> AccountResponse:
    return AccountResponse.model_validate(view, from_attributes=True)


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(token=result.token, account=_account_response(result.account))


def _preferences_response(result: EmailPreferencesResult) -> EmailPreferencesResponse:
    return EmailPreferencesResponse.model_validate(result, from_attributes=True)


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=AuthResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Register with email and password",
)
@limiter.limit(AUTH_RATE_LIMIT)
def register(
    request: Request,
    payload: RegisterRequest,
    use_case: RegisterAccountUseCase = Depends(get_register_account_use_case),
) -> AuthResponse:
    """Create a password account and sign it in."""
    result = use_case.execute(
        RegisterAccountCommand(
            email=payload.email,
            password=payload.password,
            display_name=payload.display_name,
        )
    )
    return _auth_response(result)


@router.post(
    "/login",
    response_model=Union[AuthResponse, KycChallengeResponse],
    responses={400: {"model": ErrorResponse}},
    summary="Log in with email and password",
    description=(
        "Returns a session token once KYC is verified. Otherwise returns "
        "requires_kyc, with a session_id when an OTP was sent to the "
        "supplied mobile number."
    ),
)
@limiter.limit(AUTH_RATE_LIMIT)
def login(
    request: Request,
    payload: LoginRequest,
    use_case: LoginWithPasswordUseCase = Depends(get_login_with_password_use_case),
) -> Union[AuthResponse, KycChallengeResponse]:
    """Authenticate with a password, passing through the KYC gate."""
    result = use_case.execute(
        LoginWithPasswordCommand(
            email=payload.email,
            password=payload.password,
            tax_id=payload.tax_id,
            mobile_number=payload.mobile_number,
        )
    )
    if isinstance(result, AuthResult):
        return _auth_response(result)
    return KycChallengeResponse(
        requires_kyc=result.requires_kyc,
        reason=result.reason,
        session_id=result.session_id,
        expires_at=result.expires_at,
    )


@router.post(
    "/verify-otp",
    response_model=AuthResponse,
    responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
    summary="Verify a KYC one-time passcode",
)
@limiter.limit(AUTH_RATE_LIMIT)
def verify_otp(
    request: Request,
    payload: VerifyOtpRequest,
    use_case: VerifyOtpUseCase = Depends(get_verify_otp_use_case),
) -> AuthResponse:
    """Complete KYC with the code sent at login and sign in."""
    result = use_case.execute(
        VerifyOtpCommand(session_id=payload.session_id, otp=payload.otp)
    )
    return _auth_response(result)


@router.post(
    "/oauth/{provider}/callback",
    response_model=OAuthAuthResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Resolve an OAuth identity to an account",
)
@limiter.limit(AUTH_RATE_LIMIT)
def oauth_callback(
    request: Request,
    provider: str,
    payload: OAuthCallbackRequest,
    use_case: ResolveOAuthIdentityUseCase = Depends(
        get_resolve_oauth_identity_use_case
    ),
) -> OAuthAuthResponse:
    """Find or create the account for a provider-asserted identity."""
    result = use_case.execute(
        ResolveOAuthIdentityCommand(
            provider=provider.lower(),
            external_id=payload.external_id,
            email=payload.email,
            display_name=payload.display_name,
        )
    )
    return OAuthAuthResponse(
        token=result.token,
        account=_account_response(result.account),
        created=result.created,
    )


@router.post(
    "/verify",
    response_model=AccountResponse,
    responses={**AUTH_ERRORS, 404: {"model": ErrorResponse}},
    summary="Verify the session token and return its account",
)
def verify(
    session: SessionClaims = Depends(get_current_session),
    use_case: GetAccountUseCase = Depends(get_account_use_case),
) -> AccountResponse:
    """Return the account behind a valid bearer token."""
    return _account_response(use_case.execute(session))


@router.get(
    "/session",
    response_model=SessionResponse,
    responses=AUTH_ERRORS,
    summary="Return the verified session claims",
)
def current_session(
    session: SessionClaims = Depends(get_current_session),
) -> SessionResponse:
    """Echo the token's claims without reading the account store."""
    return SessionResponse(
        account_id=session.account_id,
        email=session.email,
        issued_at=session.issued_at,
        expires_at=session.expires_at,
    )


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Email a password reset link",
)
@limiter.limit(AUTH_RATE_LIMIT)
def forgot_password(
    request: Request,
    payload: ForgotPasswordRequest,
    use_case: RequestPasswordResetUseCase = Depends(
        get_request_password_reset_use_case
    ),
) -> MessageResponse:
    """Email a password reset link to the account."""
    use_case.execute(RequestPasswordResetCommand(email=payload.email))
    return MessageResponse(message="Password reset email sent successfully")


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Set a new password from a reset token",
)
@limiter.limit(AUTH_RATE_LIMIT)
def reset_password(
    request: Request,
    payload: ResetPasswordRequest,
    use_case: ResetPasswordUseCase = Depends(get_reset_password_use_case),
) -> MessageResponse:
    """Set a new password using a reset link token."""
    use_case.execute(
        ResetPasswordCommand(token=payload.token, new_password=payload.new_password)
    )
    return MessageResponse(message="Password reset successfully")


@router.post(
    "/email-verification",
    response_model=EmailVerificationResponse,
    responses=AUTH_ERRORS,
    summary="Email a verification link to the signed-in account",
)
def request_email_verification(
    session: SessionClaims = Depends(get_current_session),
    use_case: RequestEmailVerificationUseCase = Depends(
        get_request_email_verification_use_case
    ),
) -> EmailVerificationResponse:
    """Send a verification link unless the email is already verified."""
    result = use_case.execute(session)
    return EmailVerificationResponse(
        sent=result.sent, already_verified=result.already_verified
    )


@router.post(
    "/email-verification/confirm",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Confirm an email address from a verification token",
)
def confirm_email_verification(
    payload: ConfirmEmailVerificationRequest,
    use_case: ConfirmEmailVerificationUseCase = Depends(
        get_confirm_email_verification_use_case
    ),
) -> MessageResponse:
    """Mark the email verified from a verification link token."""
    use_case.execute(ConfirmEmailVerificationCommand(token=payload.token))
    return MessageResponse(message="Email verified")


@router.get(
    "/login-log",
    response_model=Union[LoginLogResponse, EmptyResponse],
    responses=AUTH_ERRORS,
    summary="Return the most recent login of the signed-in account",
)
def login_log(
    session: SessionClaims = Depends(get_current_session),
    use_case: GetLoginLogUseCase = Depends(get_login_log_use_case),
) -> Union[LoginLogResponse, EmptyResponse]:
    """Return the last login, or an empty object if none was recorded."""
    entry = use_case.execute(session)
    if entry is None:
        return EmptyResponse()
    return LoginLogResponse(
        account_id=entry.account_id,
        email=entry.email,
        provider=entry.provider,
        timestamp=entry.timestamp,
    )


@account_router.get(
    "/email-preferences",
    response_model=EmailPreferencesResponse,
    responses=AUTH_ERRORS,
    summary="Return the signed-in account's email preferences",
)
def get_email_preferences(
    session: SessionClaims = Depends(get_current_session),
    use_case: GetEmailPreferencesUseCase = Depends(get_email_preferences_use_case),
) -> EmailPreferencesResponse:
    """Return the account's email preferences."""
    return _preferences_response(use_case.execute(session))


@account_router.put(
    "/email-preferences",
    response_model=EmailPreferencesResponse,
    responses=AUTH_ERRORS,
    summary="Update the signed-in account's email preferences",
)
def update_email_preferences(
    payload: EmailPreferencesUpdateRequest,
    session: SessionClaims = Depends(get_current_session),
    use_case: UpdateEmailPreferencesUseCase = Depends(
        get_update_email_preferences_use_case
    ),
) -> EmailPreferencesResponse:
    """Apply a partial update; omitted flags keep their value."""
    result = use_case.execute(
        UpdateEmailPreferencesCommand(
            account_id=session.account_id,
            welcome=payload.welcome,
            security_alerts=payload.security_alerts,
            trade_confirmations=payload.trade_confirmations,
            deposit_confirmations=payload.deposit_confirmations,
            marketing=payload.marketing,
        )
    )
    return _preferences_response(result)
