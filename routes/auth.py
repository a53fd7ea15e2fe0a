"""Authentication blueprint: registration, login and one-time code flows."""

from __future__ import annotations
from http import HTTPStatus

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import (
    create_access_token,
    create_refresh_token,
    get_jwt_identity,
    jwt_required,
)
from werkzeug.exceptions import NotFound

from models import db
from models.user import User
from services import auth_flows
from services.activity import client_metadata
from services.mailer import Mailer
from utils.request_validation import FieldValidator, parse_json_request

auth_bp = Blueprint("auth", __name__)


def _mailer() -> Mailer:
    return current_app.extensions["mailer"]


def _ttl_minutes() -> int:
    return int(current_app.config.get("OTP_EXPIRY_MINUTES", 5))


def _password_min_length() -> int:
    return int(current_app.config.get("PASSWORD_MIN_LENGTH", 8))


def _issue_tokens(user: User) -> dict:
    identity = str(user.id)
    claims = {"role": user.role, "email": user.email}
    return {
        "accessToken": create_access_token(identity=identity, additional_claims=claims),
        "refreshToken": create_refresh_token(identity=identity, additional_claims=claims),
    }


@auth_bp.route("/register", methods=["POST"])
def register() -> tuple:
    """Create an account and email it a verification code."""
    payload = parse_json_request(request)
    fields = FieldValidator(payload)
    email = fields.email()
    password = fields.password(min_length=_password_min_length())
    full_name = fields.string("full_name", max_length=120)
    disability_type = fields.string("disability_type", max_length=50).upper()
    fields.raise_if_invalid()

    user = auth_flows.register(
        db.session,
        email=email,
        password=password,
        full_name=full_name,
        disability_type=disability_type,
        mailer=_mailer(),
        ttl_minutes=_ttl_minutes(),
        client=client_metadata(request),
    )

    return (
        jsonify(
            {
                "message": "User registered successfully.",
                "user": user.to_dict(),
                **_issue_tokens(user),
            }
        ),
        HTTPStatus.CREATED,
    )


@auth_bp.route("/resend-verification", methods=["POST"])
def resend_verification() -> tuple:
    """Send a fresh verification code. Same answer for any email."""
    payload = parse_json_request(request)
    fields = FieldValidator(payload)
    email = fields.email()
    fields.raise_if_invalid()

    result = auth_flows.resend_verification(
        db.session,
        email,
        mailer=_mailer(),
        ttl_minutes=_ttl_minutes(),
        client=client_metadata(request),
    )
    return jsonify(result), HTTPStatus.OK


@auth_bp.route("/verify-email", methods=["POST"])
def verify_email() -> tuple:
    payload = parse_json_request(request)
    fields = FieldValidator(payload)
    email = fields.email()
    code = fields.otp()
    fields.raise_if_invalid()

    result = auth_flows.verify_email(
        db.session, email=email, code=code, client=client_metadata(request)
    )
    return jsonify(result), HTTPStatus.OK


@auth_bp.route("/forgot-password", methods=["POST"])
def forgot_password() -> tuple:
    """Send a password reset code. Same answer for any email."""
    payload = parse_json_request(request)
    fields = FieldValidator(payload)
    email = fields.email()
    fields.raise_if_invalid()

    result = auth_flows.forgot_password(
        db.session,
        email,
        mailer=_mailer(),
        ttl_minutes=_ttl_minutes(),
        client=client_metadata(request),
    )
    return jsonify(result), HTTPStatus.OK


@auth_bp.route("/reset-password", methods=["POST"])
def reset_password() -> tuple:
    payload = parse_json_request(request)
    fields = FieldValidator(payload)
    email = fields.email()
    code = fields.otp()
    password = fields.password(min_length=_password_min_length())
    fields.raise_if_invalid()

    result = auth_flows.reset_password(
        db.session,
        email=email,
        code=code,
        new_password=password,
        client=client_metadata(request),
    )
    return jsonify(result), HTTPStatus.OK


@auth_bp.route("/login", methods=["POST"])
def login() -> tuple:
    """Authenticate a user and return access and refresh tokens."""
    payload = parse_json_request(request)
    fields = FieldValidator(payload)
    email = fields.email()
    password = fields.string("password", strip=False)
    fields.raise_if_invalid()

    user = auth_flows.authenticate(db.session, email, password)
    return jsonify({"user": user.to_dict(), **_issue_tokens(user)}), HTTPStatus.OK


@auth_bp.route("/refresh", methods=["POST"])
@jwt_required(refresh=True)
def refresh() -> tuple:
    user = db.session.get(User, int(get_jwt_identity()))
    if user is None:
        raise NotFound("User not found.")
    claims = {"role": user.role, "email": user.email}
    token = create_access_token(identity=str(user.id), additional_claims=claims)
    return jsonify({"accessToken": token}), HTTPStatus.OK


@auth_bp.route("/me", methods=["GET"])
@jwt_required()
def me() -> tuple:
    user = db.session.get(User, int(get_jwt_identity()))
    if user is None:
        raise NotFound("User not found.")
    return jsonify({"user": user.to_dict()}), HTTPStatus.OK
