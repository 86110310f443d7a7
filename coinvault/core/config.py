"""
Application configuration.

Loads settings from environment variables and .env file.
All configuration is centralized here — no scattered magic strings.
"""

import logging
import secrets
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment.

    Attributes:
        project_name: Display name for the API.
        version: Current API version string.
        debug: Enable debug mode. Must be False in production.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
        rate_limit_default: Default rate limit for all endpoints.
        rate_limit_auth: Rate limit for credential and OTP endpoints.
        rate_limit_enabled: Toggle slowapi enforcement (tests turn it off).
        database_url: SQLAlchemy URL of the account store.
        jwt_secret: HMAC secret for session and purpose tokens.
        jwt_algorithm: JWS algorithm used for all tokens.
        bcrypt_rounds: bcrypt cost factor for passwords and OTP codes.
        client_url: Base URL of the web client, used in email links.
        cors_origins: Origins allowed to call the API from a browser.
        oauth_providers: Identity providers accepted by the OAuth callback.

    SendGrid and Twilio credentials are optional. When they are missing
    the corresponding channel reports a delivery failure, which login
    and registration flows log and ignore.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    project_name: str = "CoinVault"
    version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    rate_limit_default: str = "60/minute"
    rate_limit_auth: str = "10/minute"
    rate_limit_enabled: bool = True

    database_url: str = "sqlite:///./coinvault.db"

    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    client_url: str = "http://localhost:5173"
    cors_origins: list[str] = ["http://localhost:5173"]
    oauth_providers: list[str] = ["google", "facebook"]

    # Email (SendGrid)
    sendgrid_api_key: Optional[str] = None
    mail_from_email: Optional[str] = None
    mail_from_name: str = "CoinVault"

    # SMS (Twilio)
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_from_number: Optional[str] = None

    @model_validator(mode="after")
    def _ensure_jwt_secret(self) -> "Settings":
        """Fall back to a random per-process secret when none is configured."""
        if not self.jwt_secret:
            self.jwt_secret = secrets.token_hex(32)
            logger.warning(
                "JWT_SECRET not set — generated a random key. "
                "Session tokens will be invalidated on restart."
            )
        return self

    @property
    def email_configured(self) -> bool:
        """Return True when SendGrid credentials are present."""
        return bool(self.sendgrid_api_key and self.mail_from_email)

    @property
    def sms_configured(self) -> bool:
        """Return True when Twilio credentials are present."""
        return bool(
            self.twilio_account_sid
            and self.twilio_auth_token
            and self.twilio_from_number
        )


settings = Settings()
