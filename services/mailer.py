"""Send one-time codes by email over SMTP.

Delivery is best-effort: ``deliver`` never raises, it logs and reports
``False`` instead. With ``background=True`` the SMTP exchange runs on a worker
thread and only its outcome is logged.
"""

from __future__ import annotations

import logging
import smtplib
from concurrent.futures import Future, ThreadPoolExecutor
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Mapping

logger = logging.getLogger(__name__)

SUBJECTS = {
    "EMAIL_VERIFICATION": "Your email verification code",
    "PASSWORD_RESET": "Your password reset code",
}

INTROS = {
    "EMAIL_VERIFICATION": "Use the code below to verify your email address.",
    "PASSWORD_RESET": "Use the code below to reset your password.",
}


class Mailer:
    """SMTP sender for verification and password reset codes."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        from_email: str = "noreply@example.com",
        from_name: str = "Learning Platform",
        use_tls: bool = True,
        timeout: int = 15,
        expire_minutes: int = 5,
        background: bool = False,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.from_name = from_name
        self.use_tls = use_tls
        self.timeout = timeout
        self.expire_minutes = expire_minutes
        self._executor = (
            ThreadPoolExecutor(max_workers=2, thread_name_prefix="mailer")
            if background
            else None
        )

    @classmethod
    def from_config(cls, config: Mapping) -> "Mailer":
        return cls(
            host=config.get("SMTP_HOST", ""),
            port=int(config.get("SMTP_PORT", 587)),
            username=config.get("SMTP_USER", ""),
            password=config.get("SMTP_PASSWORD", ""),
            from_email=config.get("MAIL_FROM_EMAIL", "noreply@example.com"),
            from_name=config.get("MAIL_FROM_NAME", "Learning Platform"),
            use_tls=bool(config.get("SMTP_USE_TLS", True)),
            timeout=int(config.get("SMTP_TIMEOUT", 15)),
            expire_minutes=int(config.get("OTP_EXPIRY_MINUTES", 5)),
            background=bool(config.get("MAIL_BACKGROUND", False)),
        )

    @property
    def configured(self) -> bool:
        return bool(self.host)

    def build_message(self, to_email: str, name: str, code: str, purpose: str) -> MIMEMultipart:
        subject = SUBJECTS.get(purpose, "Your verification code")
        intro = INTROS.get(purpose, "Use the code below to continue.")
        greeting = f"Hello {name}," if name else "Hello,"

        text = (
            f"{greeting}\n\n{intro}\n\n"
            f"Your code is: {code}\n\n"
            f"The code expires in {self.expire_minutes} minutes.\n\n"
            "If you didn't request this, you can ignore this email.\n"
        )
        html = f"""
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: sans-serif; max-width: 560px; margin: 0 auto; padding: 24px;">
  <p style="font-size: 16px;">{greeting}</p>
  <p style="font-size: 16px;">{intro}</p>
  <p style="margin: 24px 0; font-size: 28px; font-weight: 600; letter-spacing: 0.2em;">{code}</p>
  <p style="font-size: 14px; color: #737373;">The code expires in {self.expire_minutes} minutes.</p>
  <p style="font-size: 14px; color: #737373;">If you didn't request this, you can ignore this email.</p>
</body>
</html>
"""
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to_email
        msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(html, "html"))
        return msg

    def send(self, to_email: str, name: str, code: str, purpose: str) -> bool:
        """Send synchronously. Returns True when the server accepted the mail."""

        if not self.configured:
            logger.warning("SMTP not configured (SMTP_HOST). Skipping %s email.", purpose)
            return False

        msg = self.build_message(to_email, name, code, purpose)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.sendmail(self.from_email, [to_email], msg.as_string())
        except smtplib.SMTPAuthenticationError:
            logger.exception("SMTP login failed sending %s email to %s", purpose, to_email)
            return False
        except (OSError, smtplib.SMTPException):
            logger.exception("Failed to send %s email to %s", purpose, to_email)
            return False

        logger.info("%s email sent to %s", purpose, to_email)
        return True

    def deliver(self, to_email: str, name: str, code: str, purpose: str) -> bool:
        """Hand a code to the mail channel without ever failing the caller."""

        if self._executor is None:
            return self.send(to_email, name, code, purpose)

        future = self._executor.submit(self.send, to_email, name, code, purpose)
        future.add_done_callback(self._log_background_result)
        return True

    @staticmethod
    def _log_background_result(future: Future) -> None:
        error = future.exception()
        if error is not None:
            logger.error("Background mail delivery crashed: %s", error)

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
