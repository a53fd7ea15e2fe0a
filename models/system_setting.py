"""Key/value system settings grouped by category."""

import json
from datetime import datetime

from . import db


CERTIFICATE_TEMPLATE_CATEGORY = "certificate_template"


class SystemSetting(db.Model):
    """A JSON-encoded setting. Certificate templates live here as well."""

    __tablename__ = "system_settings"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(120), unique=True, nullable=False)
    category = db.Column(db.String(64), nullable=False, index=True)
    value = db.Column(db.Text, nullable=False, default="{}")
    description = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    @property
    def data(self) -> dict:
        """Decoded JSON value; an undecodable value reads as empty."""

        try:
            decoded = json.loads(self.value or "{}")
        except ValueError:
            return {}
        return decoded if isinstance(decoded, dict) else {}

    @data.setter
    def data(self, payload: dict) -> None:
        self.value = json.dumps(payload)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "key": self.key,
            "category": self.category,
            "value": self.data,
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
