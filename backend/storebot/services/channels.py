"""
Outbound Channels — WhatsApp Cloud API template messages and SMTP email.

Both raise NotificationError on any failure; callers decide whether to swallow it.
"""
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Iterable, Optional, Union

import requests

from storebot.config import Settings, get_settings
from storebot.errors import ErrorKind, NotificationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChannelCredentials:
    phone_number_id: str
    access_token: str

    def __repr__(self) -> str:
        return f"ChannelCredentials(phone_number_id={self.phone_number_id!r})"


class WhatsAppChannel:
    """Sends approved message templates through the Meta Graph API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.META_GRAPH_API_URL).rstrip("/")
        self.api_version = api_version or settings.META_GRAPH_API_VERSION
        self.timeout = timeout if timeout is not None else settings.MESSAGING_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def send_templated_message(
        self,
        credentials: ChannelCredentials,
        recipient: str,
        template: str,
        variables: Iterable,
        language: Optional[str] = None,
    ) -> dict:
        url = f"{self.base_url}/{self.api_version}/{credentials.phone_number_id}/messages"
        payload = {
            "messaging_product": "whatsapp",
            "to": recipient,
            "type": "template",
            "template": {
                "name": template,
                "language": {"code": language or get_settings().CUSTOMER_CREDIT_TEMPLATE_LANGUAGE},
                "components": [
                    {
                        "type": "body",
                        "parameters": [{"type": "text", "text": str(value)} for value in variables],
                    }
                ],
            },
        }
        headers = {
            "Authorization": f"Bearer {credentials.access_token}",
            "Content-Type": "application/json",
        }

        logger.info("[WhatsApp] Sending template %s to %s", template, recipient)
        try:
            response = self.session.post(url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise NotificationError(ErrorKind.CHANNEL_DELIVERY, f"WhatsApp send failed: {e}") from e

        if response.status_code >= 400:
            raise NotificationError(
                ErrorKind.CHANNEL_DELIVERY,
                f"WhatsApp send failed ({response.status_code}): {response.text[:300]}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError:
            return {}


class Mailer:
    """SMTP mailer configured from settings."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.SMTP_HOST and self.settings.SMTP_FROM_EMAIL)

    def _from_header(self) -> str:
        name = self.settings.SMTP_FROM_NAME.replace('"', " ").replace("<", " ").replace(">", " ").strip()
        if not name:
            return self.settings.SMTP_FROM_EMAIL
        return f'"{name}" <{self.settings.SMTP_FROM_EMAIL}>'

    def send_email(
        self,
        to: Union[str, Iterable[str]],
        subject: str,
        body: str,
        html: Optional[str] = None,
    ) -> None:
        if not self.is_configured:
            raise NotificationError(ErrorKind.EMAIL_NOT_CONFIGURED, "SMTP is not configured")

        recipients = [to] if isinstance(to, str) else list(to)
        msg = EmailMessage()
        msg["From"] = self._from_header()
        msg["To"] = ", ".join(recipients)
        msg["Subject"] = subject
        msg.set_content(body)
        if html:
            msg.add_alternative(html, subtype="html")

        s = self.settings
        smtp_cls = smtplib.SMTP_SSL if s.SMTP_USE_SSL else smtplib.SMTP
        try:
            with smtp_cls(s.SMTP_HOST, s.SMTP_PORT, timeout=s.SMTP_TIMEOUT_SECONDS) as smtp:
                if not s.SMTP_USE_SSL:
                    smtp.ehlo()
                    if smtp.has_extn("starttls"):
                        smtp.starttls()
                        smtp.ehlo()
                if s.SMTP_USERNAME:
                    smtp.login(s.SMTP_USERNAME, s.SMTP_PASSWORD)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(ErrorKind.EMAIL_DELIVERY, f"Email to {msg['To']} failed: {e}") from e

        logger.info("Email sent to %s | Subject: %s", msg["To"], subject)
