import email
import smtplib

import pytest

from app.core import error_notifier, settings
from app.core.email import EmailService, absolute_url
from app.core.exceptions import EmailDeliveryError
from app.core.runtime_config import SmtpSettings


class FakeSMTP:
    instances = []

    def __init__(self, host, port, **kwargs):
        self.host = host
        self.port = port
        self.timeout = kwargs.get("timeout")
        self.closed = False
        self.started_tls = False
        self.credentials = None
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self, *args, **kwargs):
        self.started_tls = True

    def close(self):
        self.closed = True

    def login(self, user, password):
        self.credentials = (user, password)

    def sendmail(self, from_addr, to_addrs, msg):
        self.messages.append((from_addr, to_addrs, msg))

    def send_message(self, msg):
        self.messages.append(msg)


class BrokenSMTP(FakeSMTP):
    def sendmail(self, from_addr, to_addrs, msg):
        raise smtplib.SMTPRecipientsRefused({to_addrs: (550, b"mailbox unavailable")})


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(smtplib, "SMTP_SSL", FakeSMTP)
    return FakeSMTP.instances


def _service(**overrides) -> EmailService:
    data = dict(
        host="smtp.portal.test",
        port=587,
        user="portal",
        password="secret",
        from_address="noreply@portal.test",
    )
    data.update(overrides)
    return EmailService(SmtpSettings(**data))


def _html_body(raw: str) -> str:
    message = email.message_from_string(raw)
    for part in message.walk():
        if part.get_content_type() == "text/html":
            return part.get_payload(decode=True).decode("utf-8")
    return ""


def test_absolute_url():
    assert absolute_url("/uploads/receipts/a.pdf") == f"{settings.APP_URL.rstrip('/')}/uploads/receipts/a.pdf"
    assert absolute_url("https://cdn.test/a.pdf") == "https://cdn.test/a.pdf"


def test_send_email_with_starttls_and_login(fake_smtp):
    assert _service().send_email("cliente@empresa.com", "Assunto", "<p>Olá</p>") is True

    server = fake_smtp[0]
    assert (server.host, server.port) == ("smtp.portal.test", 587)
    assert server.started_tls
    assert server.credentials == ("portal", "secret")

    from_addr, to_addr, raw = server.messages[0]
    assert from_addr == "noreply@portal.test"
    assert to_addr == "cliente@empresa.com"
    assert "Subject: Assunto" in raw
    assert _html_body(raw) == "<p>Olá</p>"


def test_send_email_without_credentials_skips_login(fake_smtp):
    _service(user=None, password=None).send_email("c@e.com", "Assunto", "<p>x</p>")

    assert fake_smtp[0].credentials is None


def test_send_email_over_ssl(fake_smtp):
    _service(port=465, secure=True, use_tls=False).send_email("c@e.com", "Assunto", "<p>x</p>")

    assert fake_smtp[0].port == 465
    assert not fake_smtp[0].started_tls


def test_smtp_failure_raises_delivery_error(monkeypatch):
    monkeypatch.setattr(smtplib, "SMTP", BrokenSMTP)

    with pytest.raises(EmailDeliveryError):
        _service().send_email("c@e.com", "Assunto", "<p>x</p>")


def test_connection_uses_timeout(fake_smtp):
    _service().send_email("c@e.com", "Assunto", "<p>x</p>")

    assert fake_smtp[0].timeout == settings.SMTP_TIMEOUT


def test_starttls_failure_closes_connection(monkeypatch, fake_smtp):
    class TlsRefused(FakeSMTP):
        def starttls(self, *args, **kwargs):
            raise smtplib.SMTPNotSupportedError("STARTTLS extension not supported by server.")

    monkeypatch.setattr(smtplib, "SMTP", TlsRefused)

    with pytest.raises(EmailDeliveryError):
        _service().send_email("c@e.com", "Assunto", "<p>x</p>")

    assert fake_smtp[0].closed
    assert fake_smtp[0].messages == []


def test_send_receipt_attaches_pdf(fake_smtp, tmp_path):
    pdf = tmp_path / "REC123.pdf"
    pdf.write_bytes(b"%PDF-1.4 teste")

    _service().send_receipt("c@e.com", "/uploads/receipts/REC123.pdf", "0001-24", pdf)

    raw = fake_smtp[0].messages[0][2]
    message = email.message_from_string(raw)
    attachments = [p for p in message.walk() if p.get_content_type() == "application/pdf"]
    assert message["Subject"] == "Recibo 0001-24"
    assert len(attachments) == 1
    assert attachments[0].get_filename() == "REC123.pdf"
    assert attachments[0].get_payload(decode=True) == b"%PDF-1.4 teste"
    assert "/uploads/receipts/REC123.pdf" in _html_body(raw)


def test_send_boleto_template(fake_smtp):
    from datetime import datetime

    _service().send_boleto("c@e.com", "/uploads/boletos/BOL1.pdf", 150.5, datetime(2024, 5, 10))

    html = _html_body(fake_smtp[0].messages[0][2])
    assert "R$ 150.50" in html
    assert "10/05/2024" in html


def test_send_invoice_subject(fake_smtp):
    _service().send_invoice("c@e.com", "/uploads/nfe/NFe1.pdf", "4321")

    message = email.message_from_string(fake_smtp[0].messages[0][2])
    assert message["Subject"] == "Nota Fiscal 4321"


# ------------------------------------------
# Notificação de erros operacionais
# ------------------------------------------

@pytest.fixture
def notifier_enabled(monkeypatch, fake_smtp):
    error_notifier._error_cache.clear()
    monkeypatch.setattr(settings, "ERROR_NOTIFICATION_ENABLED", True)
    monkeypatch.setattr(settings, "SMTP_USER", "ops")
    monkeypatch.setattr(settings, "SMTP_PASSWORD", "ops-secret")
    yield fake_smtp
    error_notifier._error_cache.clear()


def test_error_notification_disabled_by_default():
    assert error_notifier.send_error_notification("PIPELINE_ERROR", "falhou") is False


def test_error_notification_suppresses_repeats(notifier_enabled):
    sent = error_notifier.send_error_notification(
        "PIPELINE_ERROR", "ConfigurationError: sem certificado", confirmation_id="abc"
    )
    repeated = error_notifier.send_error_notification(
        "PIPELINE_ERROR", "ConfigurationError: sem certificado", confirmation_id="abc"
    )

    assert sent is True
    assert repeated is False
    assert len(notifier_enabled) == 1
    message = notifier_enabled[0].messages[0]
    assert message["To"] == settings.ERROR_NOTIFICATION_EMAIL
    assert "PIPELINE_ERROR" in message["Subject"]


def test_error_notification_swallows_smtp_failure(monkeypatch, notifier_enabled):
    class FailingSend(FakeSMTP):
        def send_message(self, msg):
            raise smtplib.SMTPServerDisconnected("desconectado")

    monkeypatch.setattr(smtplib, "SMTP", FailingSend)

    assert error_notifier.send_error_notification("WEBHOOK_ERROR", "outro erro") is False


def test_error_notification_lists_context(notifier_enabled):
    error_notifier.send_error_notification(
        "PIPELINE_ERROR",
        "NotFoundError: Boleto não encontrado",
        error_details="Traceback ...",
        confirmation_id="conf-123",
        endpoint="/api/payments/webhook",
    )

    html = notifier_enabled[0].messages[0].get_payload()[0].get_payload(decode=True).decode("utf-8")
    assert "conf-123" in html
    assert "/api/payments/webhook" in html
    assert "Traceback ..." in html
