"""Helpers resolving the JWT caller and enforcing roles."""

from __future__ import annotations

from flask_jwt_extended import get_jwt_identity
from werkzeug.exceptions import Forbidden, Unauthorized

from models import db
from models.user import User


def get_current_user() -> User | None:
    try:
        identity = get_jwt_identity()
    except RuntimeError:
        return None
    if identity is None:
        return None
    try:
        user_id = int(identity)
    except (TypeError, ValueError):
        return None
    return db.session.get(User, user_id)


def require_role(*roles: str) -> User:
    """Return the caller if their role is one of ``roles``; 401/403 otherwise."""

    user = get_current_user()
    if user is None:
        raise Unauthorized("Authentication required.")
    if roles and user.role not in roles:
        raise Forbidden("You do not have permission to perform this action.")
    return user
