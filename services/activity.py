"""Best-effort audit logging."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from flask import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.activity_log import ActivityLog

logger = logging.getLogger(__name__)


def client_metadata(req: Request) -> dict[str, str | None]:
    """Extract the caller's address and user agent from a request."""

    forwarded = req.headers.get("X-Forwarded-For", "")
    ip_address = (
        forwarded.split(",")[0].strip()
        or req.headers.get("X-Real-IP")
        or req.remote_addr
    )
    return {
        "ip_address": ip_address or None,
        "user_agent": req.headers.get("User-Agent") or None,
    }


def record_activity(
    session: Session,
    *,
    action: str,
    user_id: int | None = None,
    entity_type: str | None = "user",
    entity_id: Any = None,
    client: Mapping[str, str | None] | None = None,
    details: Mapping[str, Any] | None = None,
) -> ActivityLog | None:
    """Append an audit row and commit it.

    Call it after the flow has committed its own writes: a database failure
    rolls back only this row, is logged, and ``None`` is returned so the
    calling flow carries on.
    """

    client = client or {}
    entry = ActivityLog(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        ip_address=client.get("ip_address"),
        user_agent=(client.get("user_agent") or "")[:512] or None,
        details=dict(details) if details else None,
    )
    try:
        session.add(entry)
        session.commit()
    except SQLAlchemyError:
        logger.exception("Failed to record %s activity for user %s", action, user_id)
        session.rollback()
        return None
    return entry
