"""Shared pytest fixtures for the application tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
from flask import Flask
from flask.testing import FlaskClient

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from app import create_app  # noqa: E402
from config import Config  # noqa: E402
from models import db  # noqa: E402
from services.mailer import Mailer  # noqa: E402


class _BaseTestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length"
    RATE_LIMIT = "1000 per minute"
    SMTP_HOST = ""
    MAIL_BACKGROUND = False
    OTP_EXPIRY_MINUTES = 5


class RecordingMailer(Mailer):
    """Mailer that keeps every message in memory instead of using SMTP."""

    def __init__(self):
        super().__init__(host="")
        self.sent: list[dict] = []
        self.fail = False

    def send(self, to_email: str, name: str, code: str, purpose: str) -> bool:
        if self.fail:
            raise RuntimeError("SMTP relay unavailable")
        self.sent.append(
            {"to": to_email, "name": name, "code": code, "purpose": purpose}
        )
        return True

    def last_code(self, to_email: str, purpose: str) -> str:
        for message in reversed(self.sent):
            if message["to"] == to_email and message["purpose"] == purpose:
                return message["code"]
        raise AssertionError(f"No {purpose} code was sent to {to_email}")


@pytest.fixture()
def app() -> Flask:
    """Create a Flask application instance for tests."""

    application = create_app(_BaseTestConfig)
    application.extensions["mailer"] = RecordingMailer()

    with application.app_context():
        db.create_all()

    yield application

    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app: Flask) -> FlaskClient:
    """Return a test client for the Flask app."""

    return app.test_client()


@pytest.fixture()
def mailer(app: Flask) -> RecordingMailer:
    """Return the in-memory mailer installed on the app."""

    return app.extensions["mailer"]
