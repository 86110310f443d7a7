"""
Notification variants and their rendering.

The set of notifications is closed: every kind is a frozen dataclass
with a typed payload, and ``render_notification`` dispatches over the
kinds exhaustively. Adding a kind means adding a dataclass and a
renderer branch; unknown objects are rejected.
"""

from dataclasses import dataclass
from html import escape
from typing import ClassVar, Union

from coinvault.domain.identity.entities import PreferenceCategory

BRAND = "CoinVault"


@dataclass(frozen=True)
class WelcomeNotification:
    """Sent once when an account is created (password or OAuth)."""

    category: ClassVar[PreferenceCategory] = PreferenceCategory.WELCOME

    display_name: str
    client_url: str


@dataclass(frozen=True)
class OtpNotification:
    """Carries the KYC one-time passcode."""

    category: ClassVar[PreferenceCategory] = PreferenceCategory.SECURITY

    code: str
    ttl_minutes: int


@dataclass(frozen=True)
class PasswordResetNotification:
    category: ClassVar[PreferenceCategory] = PreferenceCategory.SECURITY

    display_name: str
    reset_url: str
    ttl_minutes: int


@dataclass(frozen=True)
class EmailVerificationNotification:
    category: ClassVar[PreferenceCategory] = PreferenceCategory.SECURITY

    display_name: str
    verify_url: str


Notification = Union[
    WelcomeNotification,
    OtpNotification,
    PasswordResetNotification,
    EmailVerificationNotification,
]


@dataclass(frozen=True)
class RenderedMessage:
    """Subject plus HTML and plain-text bodies of one message."""

    subject: str
    html: str
    text: str


def _wrap(title: str, body_html: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f'<h1 style="color: #334155;">{escape(title)}</h1>'
        f"{body_html}"
        f'<p style="color: #94a3b8; font-size: 14px;">The {BRAND} Team</p>'
        "</div>"
    )


def _render_welcome(n: WelcomeNotification) -> RenderedMessage:
    name = escape(n.display_name)
    url = escape(n.client_url, quote=True)
    return RenderedMessage(
        subject=f"Welcome to {BRAND}!",
        html=_wrap(
            f"Welcome to {BRAND}!",
            f"<p>Hello {name}!</p>"
            "<p>Your account is ready. Add money to your wallet, trade popular "
            "cryptocurrencies and track your history.</p>"
            f'<p><a href="{url}">Start trading now</a></p>',
        ),
        text=(
            f"Hello {n.display_name}! Your {BRAND} account is ready. "
            f"Start trading at {n.client_url}"
        ),
    )


def _render_otp(n: OtpNotification) -> RenderedMessage:
    return RenderedMessage(
        subject=f"Your {BRAND} verification code",
        html=_wrap(
            "Verify your identity",
            f'<p style="font-size: 28px; letter-spacing: 6px;"><b>{n.code}</b></p>'
            f"<p>This code expires in {n.ttl_minutes} minutes. "
            "Never share it with anyone.</p>",
        ),
        text=(
            f"Your {BRAND} verification code is {n.code}. "
            f"It expires in {n.ttl_minutes} minutes."
        ),
    )


def _render_password_reset(n: PasswordResetNotification) -> RenderedMessage:
    name = escape(n.display_name)
    url = escape(n.reset_url, quote=True)
    return RenderedMessage(
        subject=f"Reset your password - {BRAND}",
        html=_wrap(
            "Password reset",
            f"<p>Hello {name},</p>"
            "<p>We received a request to reset your password.</p>"
            f'<p><a href="{url}">Reset password</a></p>'
            f"<p>This link expires in {n.ttl_minutes} minutes. "
            "If you did not ask for it, ignore this email.</p>",
        ),
        text=(
            f"Hello {n.display_name}, reset your password here: {n.reset_url} "
            f"(expires in {n.ttl_minutes} minutes)."
        ),
    )


def _render_email_verification(n: EmailVerificationNotification) -> RenderedMessage:
    name = escape(n.display_name)
    url = escape(n.verify_url, quote=True)
    return RenderedMessage(
        subject=f"Verify your email - {BRAND}",
        html=_wrap(
            "Verify your email",
            f"<p>Hello {name},</p>"
            f'<p><a href="{url}">Confirm this email address</a></p>',
        ),
        text=f"Hello {n.display_name}, confirm your email here: {n.verify_url}",
    )


def render_notification(notification: Notification) -> RenderedMessage:
    """Render a notification into a message.

    Raises:
        TypeError: If ``notification`` is not one of the known kinds.
    """
    if isinstance(notification, WelcomeNotification):
        return _render_welcome(notification)
    if isinstance(notification, OtpNotification):
        return _render_otp(notification)
    if isinstance(notification, PasswordResetNotification):
        return _render_password_reset(notification)
    if isinstance(notification, EmailVerificationNotification):
        return _render_email_verification(notification)
    raise TypeError(f"Unsupported notification kind: {type(notification).__name__}")
