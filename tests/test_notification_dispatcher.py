"""
Tests for email delivery and channel fallback
"""
import base64
import json
import smtplib
from unittest.mock import MagicMock, patch

import httpx
import pytest

from minimarket_orders.config import EmailApiConfig, Settings, SmtpConfig
from minimarket_orders.services.file_reader import RetryingFileReader
from minimarket_orders.services.notification_dispatcher import (
    ConsoleTransport,
    DeliveryError,
    EmailAttachment,
    HttpEmailTransport,
    NotificationDispatcher,
    OutgoingEmail,
    SmtpTransport,
    build_dispatcher,
)

from tests.conftest import RecordingTransport


class FailingTransport:
    name = "failing"

    def __init__(self, error, configured=True):
        self.error = error
        self.is_configured = configured
        self.calls = []

    def send(self, message):
        self.calls.append(message)
        raise self.error


@pytest.fixture
def reader():
    reader = MagicMock(spec=RetryingFileReader)
    reader.read_all.return_value = b"%PDF-1.4 receipt"
    return reader


def test_primary_delivers(reader):
    primary = RecordingTransport()
    fallback = RecordingTransport()
    dispatcher = NotificationDispatcher(primary, fallback, reader=reader)

    assert dispatcher.send("ana@example.com", "Hi", "<p>Hi</p>") is True
    assert len(primary.sent) == 1
    assert fallback.sent == []


def test_auth_failure_uses_fallback_with_same_message(reader):
    primary = FailingTransport(smtplib.SMTPAuthenticationError(535, b"bad credentials"))
    fallback = RecordingTransport()
    dispatcher = NotificationDispatcher(primary, fallback, reader=reader)

    result = dispatcher.send(
        "ana@example.com", "Receipt", "<p>Receipt</p>",
        attachment_path="/tmp/receipt.pdf", attachment_name="Receipt_WEB-1.pdf",
    )

    assert result is True
    assert len(fallback.sent) == 1
    assert fallback.sent[0] is primary.calls[0]
    assert fallback.sent[0].attachment == EmailAttachment("Receipt_WEB-1.pdf", b"%PDF-1.4 receipt")
    reader.read_all.assert_called_once_with("/tmp/receipt.pdf")


def test_fallback_result_is_returned(reader):
    primary = FailingTransport(ConnectionRefusedError("smtp down"))
    fallback = MagicMock()
    fallback.is_configured = True
    fallback.send.return_value = False
    dispatcher = NotificationDispatcher(primary, fallback, reader=reader)

    assert dispatcher.send("ana@example.com", "Hi", "<p>Hi</p>") is False
    fallback.send.assert_called_once()


def test_both_channels_fail_returns_false(reader):
    primary = FailingTransport(smtplib.SMTPAuthenticationError(535, b"bad credentials"))
    fallback = FailingTransport(DeliveryError("api down"))
    dispatcher = NotificationDispatcher(primary, fallback, reader=reader)

    assert dispatcher.send("ana@example.com", "Hi", "<p>Hi</p>") is False
    assert len(fallback.calls) == 1


def test_unconfigured_primary_goes_straight_to_fallback(reader):
    primary = FailingTransport(AssertionError("must not be called"), configured=False)
    fallback = RecordingTransport()
    dispatcher = NotificationDispatcher(primary, fallback, reader=reader)

    assert dispatcher.send("ana@example.com", "Hi", "<p>Hi</p>") is True
    assert primary.calls == []
    assert len(fallback.sent) == 1


def test_no_fallback_returns_false(reader):
    dispatcher = NotificationDispatcher(FailingTransport(OSError("down")), reader=reader)
    assert dispatcher.send("ana@example.com", "Hi", "<p>Hi</p>") is False


def test_unreadable_attachment_sends_without_it(reader):
    reader.read_all.side_effect = PermissionError("still locked")
    primary = RecordingTransport()
    dispatcher = NotificationDispatcher(primary, reader=reader)

    assert dispatcher.send("ana@example.com", "Hi", "<p>Hi</p>", attachment_path="/tmp/x.pdf") is True
    assert primary.sent[0].attachment is None


def test_attachment_name_defaults_to_file_name(reader):
    primary = RecordingTransport()
    dispatcher = NotificationDispatcher(primary, reader=reader)

    dispatcher.send("ana@example.com", "Hi", "<p>Hi</p>", attachment_path="/tmp/order_receipt_1.pdf")

    assert primary.sent[0].attachment.filename == "order_receipt_1.pdf"


class TestHttpEmailTransport:

    def _transport(self, handler, **config):
        config = {"url": "https://mail.example.com/emails", "api_key": "re_123", **config}
        client = httpx.Client(transport=httpx.MockTransport(handler))
        return HttpEmailTransport(EmailApiConfig(**config), client=client)

    def test_posts_json_with_bearer_token(self):
        captured = {}

        def handler(request):
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "email_1"})

        transport = self._transport(handler)
        message = OutgoingEmail(
            to="ana@example.com",
            subject="Receipt",
            html_body="<p>Receipt</p>",
            attachment=EmailAttachment("Receipt_WEB-1.pdf", b"%PDF"),
        )

        assert transport.send(message) is True
        assert captured["auth"] == "Bearer re_123"
        assert captured["body"]["to"] == ["ana@example.com"]
        assert captured["body"]["html"] == "<p>Receipt</p>"
        assert captured["body"]["attachments"] == [
            {"filename": "Receipt_WEB-1.pdf", "content": base64.b64encode(b"%PDF").decode("ascii")}
        ]

    def test_error_status_raises(self):
        transport = self._transport(lambda request: httpx.Response(422, json={"message": "invalid"}))
        with pytest.raises(DeliveryError):
            transport.send(OutgoingEmail("ana@example.com", "Hi", "<p>Hi</p>"))

    def test_unconfigured(self):
        transport = HttpEmailTransport(EmailApiConfig(url="https://mail.example.com/emails"))
        assert transport.is_configured is False
        with pytest.raises(DeliveryError):
            transport.send(OutgoingEmail("ana@example.com", "Hi", "<p>Hi</p>"))


class TestSmtpTransport:

    def test_sends_with_starttls_and_login(self):
        config = SmtpConfig(host="smtp.example.com", user="shop", password="secret")
        message = OutgoingEmail(
            to="ana@example.com",
            subject="Receipt",
            html_body="<p>Receipt</p>",
            attachment=EmailAttachment("Receipt_WEB-1.pdf", b"%PDF"),
        )

        with patch("minimarket_orders.services.notification_dispatcher.smtplib.SMTP") as smtp_cls:
            client = smtp_cls.return_value.__enter__.return_value
            assert SmtpTransport(config).send(message) is True

        smtp_cls.assert_called_once_with("smtp.example.com", 587, timeout=30.0)
        client.starttls.assert_called_once()
        client.login.assert_called_once_with("shop", "secret")
        sent = client.send_message.call_args[0][0]
        assert sent["To"] == "ana@example.com"
        assert [part.get_filename() for part in sent.iter_attachments()] == ["Receipt_WEB-1.pdf"]

    def test_unconfigured_raises(self):
        with pytest.raises(DeliveryError):
            SmtpTransport(SmtpConfig()).send(OutgoingEmail("ana@example.com", "Hi", "<p>Hi</p>"))


def test_build_dispatcher_backends():
    console = build_dispatcher(Settings(EMAIL_BACKEND="console"))
    assert isinstance(console.primary, ConsoleTransport)

    smtp = build_dispatcher(Settings(EMAIL_BACKEND="smtp"))
    assert isinstance(smtp.primary, SmtpTransport)
    assert isinstance(smtp.fallback, HttpEmailTransport)

    with pytest.raises(ValueError):
        build_dispatcher(Settings(EMAIL_BACKEND="carrier-pigeon"))
