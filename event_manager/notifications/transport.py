"""Mail transports. Each one sends a single message or raises TransientDeliveryError."""
import logging
import smtplib
import uuid
from abc import ABC, abstractmethod
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Optional

import httpx

from event_manager.config import Settings
from event_manager.errors import TransientDeliveryError

logger = logging.getLogger(__name__)


class MailTransport(ABC):
    """Capability to hand one message to a mail provider."""

    def __init__(self, from_address: str, from_name: str = "", timeout: float = 10.0):
        self.from_address = from_address
        self.from_name = from_name
        self.timeout = timeout

    @abstractmethod
    def send(self, to: str, subject: str, html: str, text: str) -> Optional[str]:
        """Send a message and return the provider's message id."""

    def close(self) -> None:
        pass


class LogMailTransport(MailTransport):
    """Development transport: writes the message to the log instead of sending it."""

    def send(self, to: str, subject: str, html: str, text: str) -> Optional[str]:
        message_id = f"<{uuid.uuid4()}@log>"
        logger.info("Mail to %s: %s (%s)\n%s", to, subject, message_id, text)
        return message_id


class SmtpMailTransport(MailTransport):
    def __init__(
        self,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls

    def _build_message(self, to: str, subject: str, html: str, text: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((self.from_name, self.from_address))
        message["To"] = to
        message["Subject"] = subject
        message["Message-ID"] = make_msgid()
        message.set_content(text)
        message.add_alternative(html, subtype="html")
        return message

    def send(self, to: str, subject: str, html: str, text: str) -> Optional[str]:
        message = self._build_message(to, subject, html, text)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise TransientDeliveryError(f"SMTP send to {to} failed: {exc}") from exc
        return message["Message-ID"]


class BrevoMailTransport(MailTransport):
    """Brevo (Sendinblue) transactional email HTTP API."""

    def __init__(self, api_key: str, api_url: str, client: Optional[httpx.Client] = None, **kwargs):
        super().__init__(**kwargs)
        self.api_url = api_url
        self._client = client or httpx.Client(
            timeout=self.timeout,
            headers={"api-key": api_key, "accept": "application/json"},
        )

    def send(self, to: str, subject: str, html: str, text: str) -> Optional[str]:
        payload = {
            "sender": {"name": self.from_name, "email": self.from_address},
            "to": [{"email": to}],
            "subject": subject,
            "htmlContent": html,
            "textContent": text,
        }
        try:
            response = self._client.post(self.api_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransientDeliveryError(f"Brevo send to {to} failed: {exc}") from exc
        return response.json().get("messageId")

    def close(self) -> None:
        self._client.close()


def build_transport(settings: Settings) -> MailTransport:
    """Pick the transport named by ``MAIL_TRANSPORT``."""
    common = {
        "from_address": settings.MAIL_FROM_ADDRESS,
        "from_name": settings.MAIL_FROM_NAME,
        "timeout": settings.MAIL_SEND_TIMEOUT_SECONDS,
    }
    kind = settings.MAIL_TRANSPORT.lower()
    if kind == "smtp":
        return SmtpMailTransport(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            use_tls=settings.SMTP_USE_TLS,
            **common,
        )
    if kind == "brevo":
        if not settings.BREVO_API_KEY:
            raise ValueError("MAIL_TRANSPORT=brevo requires BREVO_API_KEY")
        return BrevoMailTransport(api_key=settings.BREVO_API_KEY, api_url=settings.BREVO_API_URL, **common)
    if kind == "log":
        return LogMailTransport(**common)
    raise ValueError(f"Unknown MAIL_TRANSPORT: {settings.MAIL_TRANSPORT}")
