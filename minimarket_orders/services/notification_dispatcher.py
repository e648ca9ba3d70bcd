"""
Notification Dispatcher - email delivery with SMTP primary and HTTP API fallback
"""
import base64
import logging
import os
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from typing import Optional

import httpx

from minimarket_orders.config import EmailApiConfig, Settings, SmtpConfig
from minimarket_orders.services.file_reader import RetryingFileReader

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """An email channel could not deliver the message"""
    pass


@dataclass
class EmailAttachment:
    filename: str
    content: bytes
    mime_type: str = "application/pdf"


@dataclass
class OutgoingEmail:
    to: str
    subject: str
    html_body: str
    attachment: Optional[EmailAttachment] = None


class SmtpTransport:
    """Primary channel: SMTP with StartTLS and login"""

    name = "smtp"

    def __init__(self, config: SmtpConfig):
        self.config = config

    @property
    def is_configured(self) -> bool:
        return self.config.is_configured

    def send(self, message: OutgoingEmail) -> bool:
        if not self.is_configured:
            raise DeliveryError("SMTP credentials are not configured")

        email = EmailMessage()
        email["From"] = formataddr((self.config.from_name, self.config.from_email))
        email["To"] = message.to
        email["Subject"] = message.subject
        email.set_content("This message requires an HTML capable email client.")
        email.add_alternative(message.html_body, subtype="html")
        if message.attachment:
            maintype, _, subtype = message.attachment.mime_type.partition("/")
            email.add_attachment(
                message.attachment.content,
                maintype=maintype,
                subtype=subtype,
                filename=message.attachment.filename,
            )

        with smtplib.SMTP(self.config.host, self.config.port, timeout=self.config.timeout) as client:
            client.starttls()
            client.login(self.config.user, self.config.password)
            client.send_message(email)
        return True


class HttpEmailTransport:
    """Fallback channel: JSON email API (Resend-compatible payload)"""

    name = "http_api"

    def __init__(self, config: EmailApiConfig, client: Optional[httpx.Client] = None):
        self.config = config
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self.config.is_configured

    def send(self, message: OutgoingEmail) -> bool:
        if not self.is_configured:
            raise DeliveryError("Email API url/key are not configured")

        body = {
            "from": self.config.from_email,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html_body,
        }
        if message.attachment:
            body["attachments"] = [{
                "filename": message.attachment.filename,
                "content": base64.b64encode(message.attachment.content).decode("ascii"),
            }]
        headers = {"Authorization": f"Bearer {self.config.api_key}"}

        if self._client is not None:
            response = self._client.post(self.config.url, json=body, headers=headers, timeout=self.config.timeout)
        else:
            with httpx.Client(timeout=self.config.timeout) as client:
                response = client.post(self.config.url, json=body, headers=headers)

        if response.is_success:
            return True
        raise DeliveryError(f"Email API responded with status {response.status_code}")


class ConsoleTransport:
    """Development channel: log the message instead of sending it"""

    name = "console"

    is_configured = True

    def send(self, message: OutgoingEmail) -> bool:
        attachment = message.attachment.filename if message.attachment else "none"
        logger.info(
            "EMAIL (console) to=%s subject=%r attachment=%s",
            message.to, message.subject, attachment,
        )
        return True


class NotificationDispatcher:
    """Sends one email, falling back to the secondary channel when the primary fails"""

    def __init__(self, primary, fallback=None, reader: Optional[RetryingFileReader] = None):
        self.primary = primary
        self.fallback = fallback
        self.reader = reader or RetryingFileReader()

    def send(
        self,
        to: str,
        subject: str,
        html_body: str,
        attachment_path: Optional[str] = None,
        attachment_name: Optional[str] = None,
    ) -> bool:
        """
        Send an email

        Returns:
            True if either channel delivered the message, False otherwise.
            Never raises for delivery problems.
        """
        message = OutgoingEmail(
            to=to,
            subject=subject,
            html_body=html_body,
            attachment=self._load_attachment(attachment_path, attachment_name),
        )

        if self.primary.is_configured:
            try:
                self.primary.send(message)
                logger.info("Email sent to %s via %s", to, self.primary.name, extra={"channel": self.primary.name})
                return True
            except smtplib.SMTPAuthenticationError as e:
                logger.warning("Authentication failed on %s for %s: %s", self.primary.name, to, e)
            except Exception as e:
                logger.warning("Primary channel %s failed for %s: %s", self.primary.name, to, e)
        else:
            logger.info("Primary channel %s not configured, using fallback", self.primary.name)

        if self.fallback is None:
            logger.error("Email to %s not delivered: no fallback channel", to)
            return False

        try:
            delivered = bool(self.fallback.send(message))
        except Exception as e:
            logger.error(
                "Email to %s not delivered, fallback %s failed: %s", to, self.fallback.name, e,
                extra={"channel": self.fallback.name, "error": str(e)},
            )
            return False
        if delivered:
            logger.info("Email sent to %s via %s", to, self.fallback.name, extra={"channel": self.fallback.name})
        else:
            logger.error("Email to %s not delivered by fallback %s", to, self.fallback.name)
        return delivered

    def _load_attachment(self, path: Optional[str], name: Optional[str]) -> Optional[EmailAttachment]:
        if not path:
            return None
        try:
            content = self.reader.read_all(path)
        except OSError as e:
            logger.warning("Attachment %s unavailable, sending without it: %s", path, e)
            return None
        return EmailAttachment(filename=name or os.path.basename(path), content=content)


def build_dispatcher(settings: Settings, reader: Optional[RetryingFileReader] = None) -> NotificationDispatcher:
    """Create the dispatcher for the configured EMAIL_BACKEND"""
    reader = reader or RetryingFileReader(settings.file_read_policy())
    if settings.EMAIL_BACKEND == "console":
        return NotificationDispatcher(ConsoleTransport(), reader=reader)
    if settings.EMAIL_BACKEND == "smtp":
        return NotificationDispatcher(
            SmtpTransport(settings.smtp()),
            HttpEmailTransport(settings.email_api()),
            reader=reader,
        )
    raise ValueError(f"Unknown EMAIL_BACKEND: {settings.EMAIL_BACKEND}")
