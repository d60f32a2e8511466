"""Project domain model: the construction job a workflow tracks."""

from datetime import datetime, timezone

from buildtrack.models import db


project_team_members = db.Table(
    "project_team_members",
    db.Column("project_id", db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
    db.Column("user_id", db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Project(db.Model):
    """Construction project with a roster and an optional project manager."""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    project_number = db.Column(db.Integer, nullable=True, unique=True)
    name = db.Column(db.String(200), nullable=False)
    customer_name = db.Column(db.String(200), nullable=True)
    status = db.Column(
        db.String(30), nullable=False, default="IN_PROGRESS",
        comment="PENDING | IN_PROGRESS | COMPLETED | ON_HOLD",
    )
    project_manager_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    project_manager = db.relationship("User", foreign_keys=[project_manager_id])
    team_members = db.relationship("User", secondary=project_team_members, lazy="selectin")

    @property
    def display_name(self):
        return self.customer_name or self.name

    def to_dict(self):
        return {
            "id": self.id,
            "project_number": self.project_number,
            "name": self.name,
            "customer_name": self.customer_name,
            "status": self.status,
            "project_manager_id": self.project_manager_id,
            "team_member_ids": [u.id for u in self.team_members],
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Project {self.id}: {self.name}>"
