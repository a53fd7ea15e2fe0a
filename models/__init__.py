"""Database initialization and model exports."""

from flask_sqlalchemy import SQLAlchemy


db = SQLAlchemy()

# Import models to register them with SQLAlchemy metadata.
from .user import User  # noqa: E402,F401
from .one_time_code import OneTimeCode  # noqa: E402,F401
from .activity_log import ActivityLog  # noqa: E402,F401
from .system_setting import SystemSetting  # noqa: E402,F401

__all__ = [
    "db",
    "User",
    "OneTimeCode",
    "ActivityLog",
    "SystemSetting",
]
