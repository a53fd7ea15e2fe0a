"""Account flows built on the one-time code engine.

Register, resend verification, verify email, forgot password and reset
password. Each flow receives the session it works with; routes pass
``db.session`` in, tests can pass any session bound to the schema.
"""

from __future__ import annotations

import logging
from datetime import datetime
from functools import wraps
from typing import Any, Callable, Mapping

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from werkzeug.exceptions import Unauthorized

from models.user import User

from . import otp
from .activity import record_activity
from .errors import Conflict, InvalidCredential, InvalidOrUsedCode
from .mailer import Mailer

logger = logging.getLogger(__name__)

RESEND_MESSAGE = (
    "If the email is registered and not yet verified, a new verification code has been sent."
)
FORGOT_MESSAGE = "If the email is registered, a password reset code has been sent."
ALREADY_VERIFIED_MESSAGE = "Email is already verified."
VERIFIED_MESSAGE = "Email verified successfully."
RESET_MESSAGE = "Password has been reset successfully."

ROLE_DISABILITY_VALUES = {"STUDENT", "MENTOR"}

Client = Mapping[str, Any]


def normalize_email(raw_email: str | None) -> str:
    """Normalize an email string by stripping whitespace and lowering case."""
    return (raw_email or "").strip().lower()


def find_user_by_email(session: Session, email: str) -> User | None:
    return (
        session.query(User)
        .filter(func.lower(User.email) == normalize_email(email))
        .first()
    )


def enumeration_safe(message: str) -> Callable:
    """Look the user up by email and answer ``{"message": message}`` regardless.

    The decorated flow is called as ``flow(session, user, **kwargs)`` only
    when the email belongs to an account; unknown emails skip it. Either way
    the caller gets the same payload, so the response never tells whether the
    address is registered.
    """

    def decorator(flow: Callable[..., None]) -> Callable[..., dict]:
        @wraps(flow)
        def wrapper(session: Session, email: str, **kwargs: Any) -> dict:
            user = find_user_by_email(session, email)
            if user is not None:
                flow(session, user, **kwargs)
            return {"message": message}

        return wrapper

    return decorator


def _notify(mailer: Mailer, user: User, code: str, purpose: str) -> None:
    try:
        delivered = mailer.deliver(user.email, user.full_name, code, purpose)
    except Exception:
        logger.exception("Failed to deliver %s code to user %s", purpose, user.id)
        return
    if not delivered:
        logger.warning("%s code for user %s was not delivered", purpose, user.id)


def _issue_and_notify(
    session: Session,
    user: User,
    purpose: str,
    *,
    action: str,
    mailer: Mailer,
    ttl_minutes: int,
    client: Client | None,
    details: Mapping[str, Any] | None = None,
) -> None:
    record = otp.issue_code(session, user, purpose, ttl_minutes=ttl_minutes)
    record_activity(
        session,
        action=action,
        user_id=user.id,
        entity_id=user.id,
        client=client,
        details=details,
    )
    _notify(mailer, user, record.code, purpose)


def register(
    session: Session,
    *,
    email: str,
    password: str,
    full_name: str,
    disability_type: str,
    mailer: Mailer,
    ttl_minutes: int = otp.DEFAULT_TTL_MINUTES,
    client: Client | None = None,
) -> User:
    """Create a student or mentor account and send its verification code."""

    email = normalize_email(email)
    if find_user_by_email(session, email) is not None:
        raise Conflict("A user with that email already exists.")

    user = User(
        email=email,
        full_name=full_name.strip(),
        role="MENTOR" if disability_type == "MENTOR" else "STUDENT",
        disability_type=None
        if disability_type in ROLE_DISABILITY_VALUES
        else disability_type,
    )
    user.set_password(password)
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise Conflict("A user with that email already exists.")

    _issue_and_notify(
        session,
        user,
        otp.EMAIL_VERIFICATION,
        action="REGISTER",
        mailer=mailer,
        ttl_minutes=ttl_minutes,
        client=client,
    )
    return user


@enumeration_safe(RESEND_MESSAGE)
def resend_verification(
    session: Session,
    user: User,
    *,
    mailer: Mailer,
    ttl_minutes: int = otp.DEFAULT_TTL_MINUTES,
    client: Client | None = None,
) -> None:
    if user.email_verified:
        return
    _issue_and_notify(
        session,
        user,
        otp.EMAIL_VERIFICATION,
        action="RESEND_VERIFICATION",
        mailer=mailer,
        ttl_minutes=ttl_minutes,
        client=client,
    )


@enumeration_safe(FORGOT_MESSAGE)
def forgot_password(
    session: Session,
    user: User,
    *,
    mailer: Mailer,
    ttl_minutes: int = otp.DEFAULT_TTL_MINUTES,
    client: Client | None = None,
) -> None:
    _issue_and_notify(
        session,
        user,
        otp.PASSWORD_RESET,
        action="FORGOT_PASSWORD",
        mailer=mailer,
        ttl_minutes=ttl_minutes,
        client=client,
        details={"email": user.email},
    )


def verify_email(
    session: Session,
    *,
    email: str,
    code: str,
    client: Client | None = None,
    now: datetime | None = None,
) -> dict:
    """Consume an EMAIL_VERIFICATION code and flag the address as verified.

    An already verified account answers with success without touching any
    code row, unless ``code`` is one it already consumed: a spent code is
    rejected even after verification.
    """

    user = find_user_by_email(session, email)
    if user is None:
        raise InvalidCredential()

    if user.email_verified:
        if otp.was_consumed(session, user, otp.EMAIL_VERIFICATION, code):
            raise InvalidOrUsedCode()
        return {"message": ALREADY_VERIFIED_MESSAGE}

    otp.consume_code(
        session,
        user,
        otp.EMAIL_VERIFICATION,
        code,
        lambda account, when: account.mark_email_verified(when),
        now=now,
    )
    record_activity(
        session,
        action="VERIFY_EMAIL",
        user_id=user.id,
        entity_id=user.id,
        client=client,
    )
    return {"message": VERIFIED_MESSAGE}


def reset_password(
    session: Session,
    *,
    email: str,
    code: str,
    new_password: str,
    client: Client | None = None,
    now: datetime | None = None,
) -> dict:
    """Consume a PASSWORD_RESET code and store the new password hash."""

    user = find_user_by_email(session, email)
    if user is None:
        raise InvalidCredential()

    otp.consume_code(
        session,
        user,
        otp.PASSWORD_RESET,
        code,
        lambda account, _when: account.set_password(new_password),
        now=now,
    )
    record_activity(
        session,
        action="RESET_PASSWORD",
        user_id=user.id,
        entity_id=user.id,
        client=client,
    )
    return {"message": RESET_MESSAGE}


def authenticate(session: Session, email: str, password: str) -> User:
    """Return the user owning these credentials or raise ``Unauthorized``."""

    user = find_user_by_email(session, email)
    if user is None or not user.check_password(password):
        raise Unauthorized("Invalid email or password.")
    return user
