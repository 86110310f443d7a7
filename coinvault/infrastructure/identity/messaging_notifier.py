"""
Adapter: Email (SendGrid) and SMS (Twilio) delivery.

Implements NotificationPort. Renders each notification through the
domain renderer, then hands it to the gateway. Any gateway failure, or a
missing configuration, is reported as NotificationDeliveryError; whether
that matters is the caller's decision.
"""

import logging
from typing import Optional

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import From, Mail
from twilio.base.exceptions import TwilioException
from twilio.rest import Client as TwilioClient

from coinvault.domain.identity.errors import NotificationDeliveryError
from coinvault.domain.identity.notifications import Notification, render_notification
from coinvault.domain.identity.ports import NotificationPort

logger = logging.getLogger(__name__)


class MessagingNotifier(NotificationPort):
    """Sends rendered notifications through SendGrid and Twilio.

    Args:
        sendgrid_api_key: SendGrid API key; email is disabled without it.
        mail_from_email: Sender address for all emails.
        mail_from_name: Sender display name.
        twilio_account_sid: Twilio account SID; SMS is disabled without it.
        twilio_auth_token: Twilio auth token.
        twilio_from_number: Twilio sender number in E.164 format.
    """

    def __init__(
        self,
        sendgrid_api_key: Optional[str] = None,
        mail_from_email: Optional[str] = None,
        mail_from_name: str = "CoinVault",
        twilio_account_sid: Optional[str] = None,
        twilio_auth_token: Optional[str] = None,
        twilio_from_number: Optional[str] = None,
    ) -> None:
        self._mail_from = (
            From(mail_from_email, mail_from_name) if mail_from_email else None
        )
        self._sendgrid = (
            SendGridAPIClient(sendgrid_api_key) if sendgrid_api_key else None
        )
        self._twilio_from = twilio_from_number
        self._twilio = (
            TwilioClient(twilio_account_sid, twilio_auth_token)
            if twilio_account_sid and twilio_auth_token and twilio_from_number
            else None
        )

    def send_email(self, to: str, notification: Notification) -> None:
        if self._sendgrid is None or self._mail_from is None:
            raise NotificationDeliveryError("email", "SendGrid is not configured")

        message = render_notification(notification)
        mail = Mail(
            from_email=self._mail_from,
            to_emails=to,
            subject=message.subject,
            html_content=message.html,
            plain_text_content=message.text,
        )
        try:
            response = self._sendgrid.send(mail)
        except Exception as exc:
            raise NotificationDeliveryError("email", type(exc).__name__) from exc
        if response.status_code >= 400:
            raise NotificationDeliveryError(
                "email", f"SendGrid returned {response.status_code}"
            )
        logger.info(
            "Email %s accepted by SendGrid, status=%s",
            type(notification).__name__,
            response.status_code,
        )

    def send_sms(self, to: str, notification: Notification) -> None:
        if self._twilio is None:
            raise NotificationDeliveryError("sms", "Twilio is not configured")

        message = render_notification(notification)
        try:
            sent = self._twilio.messages.create(
                to=to, from_=self._twilio_from, body=message.text
            )
        except TwilioException as exc:
            raise NotificationDeliveryError("sms", type(exc).__name__) from exc
        logger.info("SMS %s queued by Twilio, sid=%s", type(notification).__name__, sent.sid)
