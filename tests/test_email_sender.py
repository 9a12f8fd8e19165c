import smtplib

import pytest

from portfolio_admin.email_sender import EmailSender
from portfolio_admin.exceptions import ConfigError, DeliveryFailed


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.sent = []
        self.logged_in = None
        self.tls = False
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.tls = True

    def login(self, username, password):
        self.logged_in = (username, password)

    def send_message(self, msg):
        self.sent.append(msg)


class RefusingSMTP(FakeSMTP):
    def send_message(self, msg):
        raise smtplib.SMTPRecipientsRefused({msg['To']: (550, b'no such user')})


SMTP_CONFIG = {
    'SMTP_ENABLED': True,
    'SMTP_HOST': 'smtp.example.com',
    'SMTP_PORT': 587,
    'SMTP_USERNAME': 'mailer',
    'SMTP_PASSWORD': 'secret',
    'SMTP_FROM': 'noreply@example.com',
    'SMTP_USE_TLS': True,
    'CODE_SUBJECT': 'Your code',
    'CODE_TTL_SECONDS': 300,
}


@pytest.fixture(autouse=True)
def reset_instances():
    FakeSMTP.instances = []


def test_disabled_sender_only_logs(monkeypatch, caplog):
    monkeypatch.setattr(smtplib, 'SMTP', None)
    sender = EmailSender({'SMTP_ENABLED': False})
    with caplog.at_level('INFO'):
        assert sender.send_verification_code('a@b.com', '012345') is True
    assert '012345' in caplog.text


def test_sends_code_over_smtp(monkeypatch):
    monkeypatch.setattr(smtplib, 'SMTP', FakeSMTP)
    EmailSender(SMTP_CONFIG).send_verification_code('a@b.com', '012345')

    server = FakeSMTP.instances[0]
    assert (server.host, server.port) == ('smtp.example.com', 587)
    assert server.tls is True
    assert server.logged_in == ('mailer', 'secret')
    msg = server.sent[0]
    assert msg['To'] == 'a@b.com'
    assert msg['Subject'] == 'Your code'
    assert '012345' in msg.get_payload(decode=True).decode('utf-8')


def test_smtp_failure_raises_delivery_failed(monkeypatch):
    monkeypatch.setattr(smtplib, 'SMTP', RefusingSMTP)
    with pytest.raises(DeliveryFailed):
        EmailSender(SMTP_CONFIG).send_verification_code('a@b.com', '012345')


def test_connection_error_raises_delivery_failed(monkeypatch):
    def refuse(*args, **kwargs):
        raise ConnectionRefusedError()
    monkeypatch.setattr(smtplib, 'SMTP', refuse)
    with pytest.raises(DeliveryFailed):
        EmailSender(SMTP_CONFIG).send_password_reset('a@b.com', 'http://localhost/reset')


def test_enabled_without_host_is_a_config_error():
    with pytest.raises(ConfigError):
        EmailSender({'SMTP_ENABLED': True, 'SMTP_HOST': '', 'SMTP_FROM': 'noreply@example.com'})
