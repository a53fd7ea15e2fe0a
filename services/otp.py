"""Issue, validate and consume one-time codes.

Every function takes the data-access handle (a SQLAlchemy session) as its
first argument; nothing here reaches for a global session.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.orm import Session

from models.one_time_code import CODE_PURPOSES, OneTimeCode
from models.user import User

from .errors import ExpiredCode, InvalidOrUsedCode

logger = logging.getLogger(__name__)

EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
PASSWORD_RESET = "PASSWORD_RESET"

CODE_MIN = 100000
CODE_MAX = 999999
DEFAULT_TTL_MINUTES = 5


def generate_code() -> str:
    """Return a uniformly random 6-digit code in [100000, 999999]."""

    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


def _check_purpose(purpose: str) -> None:
    if purpose not in CODE_PURPOSES:
        raise ValueError(f"Unknown code purpose: {purpose!r}")


def active_codes(session: Session, user: User, purpose: str) -> list[OneTimeCode]:
    """Return the unused codes for (user, purpose), expired ones included."""

    return (
        session.query(OneTimeCode)
        .filter(
            OneTimeCode.user_id == user.id,
            OneTimeCode.purpose == purpose,
            OneTimeCode.used_at.is_(None),
        )
        .order_by(OneTimeCode.created_at.desc())
        .all()
    )


def issue_code(
    session: Session,
    user: User,
    purpose: str,
    *,
    ttl_minutes: int = DEFAULT_TTL_MINUTES,
    now: datetime | None = None,
) -> OneTimeCode:
    """Replace every code for (user, purpose) with a fresh one.

    The delete and the insert commit together, so after this returns exactly
    one unused row exists for the pair.
    """

    _check_purpose(purpose)
    now = now or datetime.utcnow()

    try:
        session.query(OneTimeCode).filter(
            OneTimeCode.user_id == user.id,
            OneTimeCode.purpose == purpose,
        ).delete(synchronize_session="fetch")

        record = OneTimeCode(
            user_id=user.id,
            code=generate_code(),
            purpose=purpose,
            expires_at=now + timedelta(minutes=ttl_minutes),
            created_at=now,
        )
        session.add(record)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info("Issued %s code for user %s", purpose, user.id)
    return record


def find_unused_code(
    session: Session, user: User, purpose: str, code: str
) -> OneTimeCode | None:
    return (
        session.query(OneTimeCode)
        .filter(
            OneTimeCode.user_id == user.id,
            OneTimeCode.purpose == purpose,
            OneTimeCode.code == code,
            OneTimeCode.used_at.is_(None),
        )
        .first()
    )


def was_consumed(session: Session, user: User, purpose: str, code: str) -> bool:
    """Return True if ``code`` matches a row for (user, purpose) already used."""

    return (
        session.query(OneTimeCode.id)
        .filter(
            OneTimeCode.user_id == user.id,
            OneTimeCode.purpose == purpose,
            OneTimeCode.code == code,
            OneTimeCode.used_at.isnot(None),
        )
        .first()
        is not None
    )


def consume_code(
    session: Session,
    user: User,
    purpose: str,
    code: str,
    apply: Callable[[User, datetime], None],
    *,
    now: datetime | None = None,
) -> OneTimeCode:
    """Validate ``code`` and mark it used together with ``apply``'s mutation.

    Raises ``InvalidOrUsedCode`` when no unused row matches and
    ``ExpiredCode`` when the matching row's expiry is not in the future.
    ``apply(user, now)`` and the used marker are committed in a single
    transaction; if either fails nothing is written.

    The used marker is a conditional update on ``used_at IS NULL``. When a
    concurrent request marked the row first, the update matches nothing and
    the whole transaction is rolled back with ``InvalidOrUsedCode``.
    """

    _check_purpose(purpose)
    now = now or datetime.utcnow()

    record = find_unused_code(session, user, purpose, code)
    if record is None:
        raise InvalidOrUsedCode()
    if record.is_expired(now):
        raise ExpiredCode()
    record_id = record.id

    try:
        apply(user, now)
        marked = (
            session.query(OneTimeCode)
            .filter(OneTimeCode.id == record_id, OneTimeCode.used_at.is_(None))
            .update({"used_at": now}, synchronize_session="fetch")
        )
        if marked != 1:
            logger.warning(
                "%s code for user %s was consumed concurrently", purpose, user.id
            )
            raise InvalidOrUsedCode()
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info("Consumed %s code for user %s", purpose, user.id)
    return record
