"""One-time code model backing email verification and password resets."""

from datetime import datetime

from . import db


CODE_PURPOSES = ("EMAIL_VERIFICATION", "PASSWORD_RESET")


class OneTimeCode(db.Model):
    """A single-use, time-boxed numeric code issued to a user for one purpose.

    A row can be consumed while ``used_at`` is null and ``expires_at`` lies in
    the future. Issuing a new code for the same (user, purpose) removes the
    previous rows.
    """

    __tablename__ = "one_time_codes"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code = db.Column(db.String(6), nullable=False)
    purpose = db.Column(
        db.Enum(*CODE_PURPOSES, name="one_time_code_purpose"),
        nullable=False,
    )
    expires_at = db.Column(db.DateTime, nullable=False)
    used_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    user = db.relationship("User", back_populates="codes")

    __table_args__ = (
        db.Index("ix_one_time_codes_user_purpose", "user_id", "purpose"),
    )

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def __repr__(self) -> str:
        return (
            f"<OneTimeCode id={self.id} user_id={self.user_id} "
            f"purpose={self.purpose} used={self.used_at is not None}>"
        )
