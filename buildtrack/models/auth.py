"""
BuildTrack Workflow Alerts
User model.

Models:
    - User: platform user with a single database role and an active flag
"""

from datetime import datetime, timezone

from buildtrack.models import db


# ── Constants ────────────────────────────────────────────────────────────────

USER_ROLES = {
    "ADMIN",
    "MANAGER",
    "PROJECT_MANAGER",
    "FIELD_DIRECTOR",
    "OFFICE_STAFF",
    "WORKER",
}


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(200), nullable=False, unique=True)
    first_name = db.Column(db.String(100), default="")
    last_name = db.Column(db.String(100), default="")
    role = db.Column(db.String(30), nullable=False, default="WORKER", index=True,
                     comment="ADMIN | MANAGER | PROJECT_MANAGER | FIELD_DIRECTOR | OFFICE_STAFF | WORKER")
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def full_name(self):
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or self.email

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.id}: {self.email} ({self.role})>"
