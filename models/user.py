"""User model definition."""

from datetime import datetime
from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

from . import db


ROLES = ("STUDENT", "MENTOR", "ADMIN")


class User(db.Model):
    """Represents a platform user (student, mentor or administrator)."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(120), nullable=False)
    role = db.Column(
        db.Enum(*ROLES, name="user_role"),
        nullable=False,
        default="STUDENT",
        server_default=db.text("'STUDENT'"),
    )
    disability_type = db.Column(db.String(50), nullable=True)
    email_verified = db.Column(
        db.Boolean,
        nullable=False,
        default=False,
        server_default=db.false(),
    )
    email_verified_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    codes = db.relationship(
        "OneTimeCode",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="dynamic",
    )

    def set_password(self, password: str) -> None:
        """Hash and store the password."""

        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Verify a password against the stored hash."""

        return check_password_hash(self.password_hash, password)

    def mark_email_verified(self, when: Optional[datetime] = None) -> None:
        """Flag the email address as verified at ``when`` (defaults to now)."""

        self.email_verified = True
        self.email_verified_at = when or datetime.utcnow()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role,
            "disability_type": self.disability_type,
            "email_verified": self.email_verified,
            "email_verified_at": self.email_verified_at.isoformat()
            if self.email_verified_at
            else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<User {self.email}>"
