"""Utilities for validating incoming Flask requests."""

from __future__ import annotations

import re

from flask import Request
from werkzeug.exceptions import BadRequest

from services.errors import ValidationError

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
OTP_PATTERN = re.compile(r"^[0-9]{6}$")


def parse_json_request(req: Request) -> dict:
    """Return the parsed JSON object body or raise a 400 error.

    Field-level checks belong to ``FieldValidator``.
    """

    if not req.is_json:
        raise BadRequest("Request content type must be application/json.")

    data = req.get_json(silent=False)
    if data is None:
        raise BadRequest("Request JSON body is required.")

    if not isinstance(data, dict):
        raise BadRequest("Request JSON payload must be an object.")

    if not data:
        raise BadRequest("Request JSON body must not be empty.")

    return data


def parse_bool(value, default: bool | None = None) -> bool | None:
    """Interpret a JSON or query-string flag; unrecognised values give ``default``."""

    if isinstance(value, bool):
        return value
    if value is None:
        return default
    lowered = str(value).strip().lower()
    if lowered in {"1", "true", "yes", "y"}:
        return True
    if lowered in {"0", "false", "no", "n"}:
        return False
    return default


class FieldValidator:
    """Collect per-field errors and raise them together.

    Usage::

        fields = FieldValidator(payload)
        email = fields.email("email")
        fields.raise_if_invalid()
    """

    def __init__(self, payload: dict):
        self.payload = payload
        self.errors: dict[str, list[str]] = {}

    def add(self, field: str, message: str) -> None:
        self.errors.setdefault(field, []).append(message)

    def string(
        self,
        field: str,
        *,
        required: bool = True,
        max_length: int | None = None,
        min_length: int | None = None,
        strip: bool = True,
    ) -> str:
        raw = self.payload.get(field)
        if raw is None or raw == "":
            if required:
                self.add(field, "This field is required.")
            return ""
        if not isinstance(raw, str):
            self.add(field, "Must be a string.")
            return ""
        value = raw.strip() if strip else raw
        if required and not value:
            self.add(field, "This field is required.")
            return ""
        if min_length is not None and len(value) < min_length:
            self.add(field, f"Must be at least {min_length} characters.")
        if max_length is not None and len(value) > max_length:
            self.add(field, f"Must be at most {max_length} characters.")
        return value

    def email(self, field: str = "email") -> str:
        value = self.string(field, max_length=255).lower()
        if value and not EMAIL_PATTERN.match(value):
            self.add(field, "Invalid email format.")
        return value

    def otp(self, field: str = "otp") -> str:
        value = self.string(field)
        if value and not OTP_PATTERN.match(value):
            self.add(field, "The code must be exactly 6 digits.")
        return value

    def password(self, field: str = "password", *, min_length: int = 8) -> str:
        return self.string(field, min_length=min_length, max_length=128, strip=False)

    def raise_if_invalid(self) -> None:
        if self.errors:
            raise ValidationError(self.errors)
