"""Tests for the SMTP mailer."""

from __future__ import annotations

import smtplib

import pytest

from services import mailer as mailer_module
from services.mailer import Mailer


class _FakeSMTP:
    instances: list["_FakeSMTP"] = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.calls: list[tuple] = []
        _FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.calls.append(("starttls",))

    def login(self, user, password):
        self.calls.append(("login", user, password))

    def sendmail(self, from_addr, to_addrs, message):
        self.calls.append(("sendmail", from_addr, tuple(to_addrs), message))


@pytest.fixture(autouse=True)
def _reset_fake():
    _FakeSMTP.instances = []


def _configured_mailer(**overrides) -> Mailer:
    options = {
        "host": "smtp.example.com",
        "port": 2525,
        "username": "mailer",
        "password": "secret",
        "from_email": "noreply@example.com",
        "from_name": "Learning Platform",
    }
    options.update(overrides)
    return Mailer(**options)


def test_message_contains_code_and_purpose_subject():
    msg = _configured_mailer().build_message(
        "user@example.com", "Ayu", "482913", "PASSWORD_RESET"
    )

    assert msg["Subject"] == "Your password reset code"
    assert msg["To"] == "user@example.com"
    assert msg["From"] == "Learning Platform <noreply@example.com>"
    body = msg.as_string()
    assert "482913" in body
    assert "Hello Ayu," in body


def test_unconfigured_mailer_skips_sending(monkeypatch):
    monkeypatch.setattr(mailer_module.smtplib, "SMTP", _FakeSMTP)

    assert Mailer(host="").deliver("user@example.com", "Ayu", "123456", "EMAIL_VERIFICATION") is False
    assert _FakeSMTP.instances == []


def test_send_uses_starttls_and_login(monkeypatch):
    monkeypatch.setattr(mailer_module.smtplib, "SMTP", _FakeSMTP)

    sent = _configured_mailer().send("user@example.com", "Ayu", "123456", "EMAIL_VERIFICATION")

    assert sent is True
    server = _FakeSMTP.instances[0]
    assert (server.host, server.port) == ("smtp.example.com", 2525)
    assert [call[0] for call in server.calls] == ["starttls", "login", "sendmail"]
    assert server.calls[2][2] == ("user@example.com",)


def test_send_failure_is_reported_not_raised(monkeypatch):
    def _refuse(*args, **kwargs):
        raise OSError("connection refused")

    monkeypatch.setattr(mailer_module.smtplib, "SMTP", _refuse)

    assert _configured_mailer().deliver("user@example.com", "Ayu", "123456", "PASSWORD_RESET") is False


def test_authentication_failure_is_reported(monkeypatch):
    class _BadLogin(_FakeSMTP):
        def login(self, user, password):
            raise smtplib.SMTPAuthenticationError(535, b"bad credentials")

    monkeypatch.setattr(mailer_module.smtplib, "SMTP", _BadLogin)

    assert _configured_mailer().send("user@example.com", "Ayu", "123456", "PASSWORD_RESET") is False


def test_background_delivery_runs_off_the_request(monkeypatch):
    monkeypatch.setattr(mailer_module.smtplib, "SMTP", _FakeSMTP)
    mailer = _configured_mailer(background=True)

    assert mailer.deliver("user@example.com", "Ayu", "123456", "EMAIL_VERIFICATION") is True
    mailer.shutdown()

    assert len(_FakeSMTP.instances) == 1
    assert _FakeSMTP.instances[0].calls[-1][0] == "sendmail"


def test_from_config_reads_settings():
    mailer = Mailer.from_config(
        {
            "SMTP_HOST": "smtp.example.com",
            "SMTP_PORT": "465",
            "SMTP_USE_TLS": False,
            "OTP_EXPIRY_MINUTES": 5,
            "MAIL_BACKGROUND": False,
        }
    )

    assert mailer.configured is True
    assert mailer.port == 465
    assert mailer.use_tls is False
    assert mailer.expire_minutes == 5
