"""
Use case: Complete the KYC gate by verifying a one-time passcode.

Input: VerifyOtpCommand (session_id, otp)
Output: AuthResult
Side effects:
    - Every checked guess consumes one attempt, durably, before the
      comparison result is trusted.
    - Success: KYC identifiers stored, status verified, session deleted,
      login recorded.
    - Expiry or exhaustion: session deleted.
Failure cases: InvalidSessionError, OtpExpiredError, TooManyAttemptsError,
    InvalidOtpError, AccountVanishedError.
"""

import logging
from typing import NoReturn

from coinvault.application.identity.dtos import AuthResult, VerifyOtpCommand
from coinvault.application.identity.session_issuer import SessionIssuer
from coinvault.domain.identity.entities import KycIdentifiers, OtpSession
from coinvault.domain.identity.errors import (
    AccountVanishedError,
    InvalidOtpError,
    InvalidSessionError,
    OtpExpiredError,
    TooManyAttemptsError,
)
from coinvault.domain.identity.policy import MAX_OTP_ATTEMPTS, PASSWORD_PROVIDER
from coinvault.domain.identity.ports import (
    AccountRepository,
    Clock,
    CredentialHasher,
    OtpSessionRepository,
)

logger = logging.getLogger(__name__)


class VerifyOtpUseCase:
    """Checks an OTP guess and, on success, marks the account KYC-verified.

    This is the only path that changes an account's KYC status.
    """

    def __init__(
        self,
        account_repo: AccountRepository,
        otp_repo: OtpSessionRepository,
        hasher: CredentialHasher,
        session_issuer: SessionIssuer,
        clock: Clock,
    ) -> None:
        self._account_repo = account_repo
        self._otp_repo = otp_repo
        self._hasher = hasher
        self._session_issuer = session_issuer
        self._clock = clock

    def execute(self, command: VerifyOtpCommand) -> AuthResult:
        """Verify a submitted code against its OTP session.

        Args:
            command: The session id returned by login and the submitted code.

        Returns:
            Session token and the now KYC-verified account.

        Raises:
            InvalidSessionError: Unknown (or already consumed) session.
            OtpExpiredError: Session past its expiry; it is deleted.
            TooManyAttemptsError: Attempts used up; the session is deleted.
            InvalidOtpError: Wrong code; the session survives.
            AccountVanishedError: The owning account no longer exists.
        """
        session = self._otp_repo.get(command.session_id)
        if session is None:
            raise InvalidSessionError(command.session_id)

        now = self._clock.now()
        if session.is_expired(now):
            self._otp_repo.delete(session.id)
            logger.info("OTP session=%s expired", session.id)
            raise OtpExpiredError(session.id)

        if session.attempt_count >= MAX_OTP_ATTEMPTS:
            self._exhaust(session)

        attempts = self._otp_repo.increment_attempts(session.id)
        if attempts is None:
            raise InvalidSessionError(session.id)
        if attempts > MAX_OTP_ATTEMPTS:
            # a concurrent guess consumed the last attempt
            self._exhaust(session)

        if not self._hasher.verify(command.otp, session.otp_hash):
            if attempts >= MAX_OTP_ATTEMPTS:
                self._exhaust(session)
            logger.info(
                "Wrong OTP for session=%s, attempt %d/%d",
                session.id,
                attempts,
                MAX_OTP_ATTEMPTS,
            )
            raise InvalidOtpError(session.id, MAX_OTP_ATTEMPTS - attempts)

        # Claim the session; a parallel correct guess loses here.
        if not self._otp_repo.delete(session.id):
            raise InvalidSessionError(session.id)

        if self._account_repo.get_by_id(session.account_id) is None:
            logger.error(
                "OTP session=%s verified for missing account=%s",
                session.id,
                session.account_id,
            )
            raise AccountVanishedError(session.account_id)

        account = self._account_repo.mark_kyc_verified(
            session.account_id,
            KycIdentifiers(
                tax_id=session.tax_id,
                verified_mobile_number=session.mobile_number,
                verified_at=now,
            ),
        )
        logger.info("KYC verified for account=%s", account.id)
        return self._session_issuer.issue(account, PASSWORD_PROVIDER)

    def _exhaust(self, session: OtpSession) -> NoReturn:
        self._otp_repo.delete(session.id)
        logger.warning("OTP session=%s exhausted its attempts", session.id)
        raise TooManyAttemptsError(session.id)
