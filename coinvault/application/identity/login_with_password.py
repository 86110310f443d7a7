"""
Use case: Log in with email and password, enforcing the KYC gate.

Input: LoginWithPasswordCommand (email, password, tax_id, mobile_number)
Output: AuthResult, or KycChallenge when KYC is outstanding.
Side effects:
    - KYC satisfied: last login stamped, audit upserted.
    - KYC outstanding with identifiers: OTP session created, OTP sent
      by SMS with email fallback (best-effort).
Failure cases: AccountNotFoundError, InvalidCredentialError.

States:
    AwaitingCredentials -> CredentialsOK -> KycSatisfied -> SessionIssued
                                         -> KycRequired -> OtpPending
    (OtpPending -> OtpVerified -> SessionIssued is VerifyOtpUseCase.)
"""

import logging
from uuid import uuid4

from coinvault.application.identity.dtos import (
    KycChallenge,
    LoginResult,
    LoginWithPasswordCommand,
)
from coinvault.application.identity.session_issuer import SessionIssuer
from coinvault.domain.identity.entities import Account, OtpSession
from coinvault.domain.identity.errors import (
    AccountNotFoundError,
    InvalidCredentialError,
    NotificationDeliveryError,
)
from coinvault.domain.identity.notifications import OtpNotification
from coinvault.domain.identity.policy import (
    OTP_TTL,
    PASSWORD_PROVIDER,
    generate_otp,
)
from coinvault.domain.identity.ports import (
    AccountRepository,
    Clock,
    CredentialHasher,
    NotificationPort,
    OtpSessionRepository,
)

logger = logging.getLogger(__name__)

MISSING_IDENTIFIERS = "missing_identifiers"


class LoginWithPasswordUseCase:
    """Resolves a password login to a session or a KYC challenge."""

    def __init__(
        self,
        account_repo: AccountRepository,
        otp_repo: OtpSessionRepository,
        hasher: CredentialHasher,
        notifier: NotificationPort,
        session_issuer: SessionIssuer,
        clock: Clock,
    ) -> None:
        self._account_repo = account_repo
        self._otp_repo = otp_repo
        self._hasher = hasher
        self._notifier = notifier
        self._session_issuer = session_issuer
        self._clock = clock

    def execute(self, command: LoginWithPasswordCommand) -> LoginResult:
        """Authenticate a password login.

        Args:
            command: Credentials and optional KYC identifiers.

        Returns:
            AuthResult for KYC-verified accounts, otherwise a KycChallenge.

        Raises:
            AccountNotFoundError: If no account has this email.
            InvalidCredentialError: If the password is missing, the account
                has no password, or the password does not match.
        """
        account = self._authenticate(command)

        if account.kyc_satisfied:
            return self._session_issuer.issue(account, PASSWORD_PROVIDER)

        if not (command.tax_id and command.mobile_number):
            logger.info("KYC required for account=%s, identifiers missing", account.id)
            return KycChallenge(reason=MISSING_IDENTIFIERS)

        return self._start_otp_session(account, command.tax_id, command.mobile_number)

    def _authenticate(self, command: LoginWithPasswordCommand) -> Account:
        account = self._account_repo.get_by_email(command.email)
        if account is None:
            raise AccountNotFoundError(command.email)
        if not command.password or not account.has_password:
            logger.info("Password login refused for account=%s", account.id)
            raise InvalidCredentialError()
        if not self._hasher.verify(command.password, account.password_hash):
            logger.info("Wrong password for account=%s", account.id)
            raise InvalidCredentialError()
        return account

    def _start_otp_session(
        self, account: Account, tax_id: str, mobile_number: str
    ) -> KycChallenge:
        code = generate_otp()
        session = OtpSession(
            id=uuid4().hex,
            account_id=account.id,
            tax_id=tax_id,
            mobile_number=mobile_number,
            otp_hash=self._hasher.hash(code),
            expires_at=self._clock.now() + OTP_TTL,
            attempt_count=0,
        )
        self._otp_repo.create(session)
        logger.info("OTP session=%s created for account=%s", session.id, account.id)

        self._dispatch_otp(account, mobile_number, code)
        return KycChallenge(session_id=session.id, expires_at=session.expires_at)

    def _dispatch_otp(self, account: Account, mobile_number: str, code: str) -> None:
        """Send the code by SMS, falling back to email. Never raises."""
        notification = OtpNotification(
            code=code, ttl_minutes=int(OTP_TTL.total_seconds() // 60)
        )
        for channel, send, recipient in (
            ("sms", self._notifier.send_sms, mobile_number),
            ("email", self._notifier.send_email, account.email),
        ):
            try:
                send(recipient, notification)
            except NotificationDeliveryError as exc:
                logger.warning("OTP %s delivery failed: %s", channel, exc.reason)
            except Exception:
                logger.exception("Unexpected OTP %s delivery failure", channel)
            else:
                logger.info("OTP sent by %s for account=%s", channel, account.id)
                return
        logger.error("OTP for account=%s could not be delivered", account.id)
