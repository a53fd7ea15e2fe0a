"""Administrator user listing with filters."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required
from sqlalchemy import or_
from werkzeug.exceptions import BadRequest

from models import db
from models.user import ROLES, User
from utils.access import require_role
from utils.request_validation import parse_bool

users_bp = Blueprint("users", __name__)

MAX_PER_PAGE = 100
LIKE_ESCAPE = "\\"


def _parse_positive_int(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise BadRequest(f"{name} must be an integer.")
    if value < 1:
        raise BadRequest(f"{name} must be positive.")
    return value


def _escape_like(term: str) -> str:
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


@users_bp.route("", methods=["GET"])
@jwt_required()
def list_users():
    """Return users filtered by role, verification state and a search term."""

    require_role("ADMIN")
    query = User.query

    role = (request.args.get("role") or "").strip().upper()
    if role and role != "ALL":
        if role not in ROLES:
            raise BadRequest("Invalid role.")
        query = query.filter(User.role == role)

    verified = parse_bool(request.args.get("verified"))
    if verified is not None:
        query = query.filter(User.email_verified.is_(verified))

    search_term = (request.args.get("q") or "").strip()
    if search_term:
        like = f"%{_escape_like(search_term.lower())}%"
        query = query.filter(
            or_(
                db.func.lower(User.email).like(like, escape=LIKE_ESCAPE),
                db.func.lower(User.full_name).like(like, escape=LIKE_ESCAPE),
            )
        )

    page = _parse_positive_int("page", 1)
    per_page = min(_parse_positive_int("per_page", 20), MAX_PER_PAGE)

    total = query.count()
    users = (
        query.order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return jsonify(
        {
            "users": [user.to_dict() for user in users],
            "total": total,
            "page": page,
            "per_page": per_page,
        }
    )
