"""Error taxonomy for the authentication flows.

Each error is a Werkzeug ``HTTPException`` so the application's JSON error
handler renders it with the right status code. ``code`` is a stable machine
readable identifier returned alongside the human message.
"""

from __future__ import annotations

from werkzeug.exceptions import BadRequest, HTTPException, InternalServerError
from werkzeug.exceptions import Conflict as _HTTPConflict

INVALID_CODE_MESSAGE = "The code is invalid or has already been used."
EXPIRED_CODE_MESSAGE = "The code has expired. Please request a new one."


class ValidationError(BadRequest):
    """Malformed input, with per-field messages."""

    code_name = "validation_error"

    def __init__(self, details: dict[str, list[str]], description: str | None = None):
        super().__init__(description or "Validation failed.")
        self.details = details


class Conflict(_HTTPConflict):
    code_name = "conflict"


class InvalidOrUsedCode(BadRequest):
    """No unused code matches the supplied value."""

    code_name = "invalid_code"

    def __init__(self, description: str | None = None):
        super().__init__(description or INVALID_CODE_MESSAGE)


class InvalidCredential(InvalidOrUsedCode):
    """The identity is unknown. Rendered exactly like an invalid code."""


class ExpiredCode(BadRequest):
    """The code matched but its expiry has passed."""

    code_name = "expired_code"

    def __init__(self, description: str | None = None):
        super().__init__(description or EXPIRED_CODE_MESSAGE)


class ServerError(InternalServerError):
    code_name = "server_error"

    def __init__(self, description: str | None = None):
        super().__init__(description or "An unexpected error occurred.")


def error_extras(error: HTTPException) -> dict:
    """Return the optional ``code``/``details`` members for an error payload."""

    extras: dict = {}
    code_name = getattr(error, "code_name", None)
    if code_name:
        extras["code"] = code_name
    details = getattr(error, "details", None)
    if details:
        extras["details"] = details
    return extras
