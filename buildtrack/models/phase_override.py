"""
BuildTrack Workflow Alerts
Phase override models.

Models:
    - PhaseOverride: administrative bypass that suppresses alerts for phases
    - SuppressedAlert: append-only audit row for every vetoed alert
"""

from datetime import datetime, timezone

from buildtrack.models import db


class PhaseOverride(db.Model):
    """
    Manual phase jump for a workflow.

    ``suppressed_phases`` lists the phases skipped by the jump; while the
    override is active no alert is raised for steps in those phases.
    """

    __tablename__ = "phase_overrides"
    __table_args__ = (
        db.Index("ix_phase_overrides_workflow_active", "workflow_id", "is_active"),
    )

    id = db.Column(db.Integer, primary_key=True)
    workflow_id = db.Column(
        db.Integer, db.ForeignKey("workflow_instances.id", ondelete="CASCADE"), nullable=False,
    )
    project_id = db.Column(db.Integer, nullable=True)
    from_phase = db.Column(db.String(30), nullable=False)
    to_phase = db.Column(db.String(30), nullable=False)
    suppressed_phases = db.Column(db.JSON, nullable=False, default=list)
    reason = db.Column(db.String(500), default="")
    overridden_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    suppressed_alerts = db.relationship(
        "SuppressedAlert", back_populates="override", lazy="dynamic", cascade="all, delete-orphan",
    )

    def suppresses(self, phase):
        return phase in (self.suppressed_phases or [])

    def to_dict(self):
        return {
            "id": self.id,
            "workflow_id": self.workflow_id,
            "project_id": self.project_id,
            "from_phase": self.from_phase,
            "to_phase": self.to_phase,
            "suppressed_phases": list(self.suppressed_phases or []),
            "reason": self.reason,
            "overridden_by_id": self.overridden_by_id,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<PhaseOverride {self.id}: {self.from_phase}->{self.to_phase}>"


class SuppressedAlert(db.Model):
    """Alert that would have been raised but was vetoed by a PhaseOverride."""

    __tablename__ = "suppressed_alerts"

    id = db.Column(db.Integer, primary_key=True)
    override_id = db.Column(
        db.Integer, db.ForeignKey("phase_overrides.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    workflow_id = db.Column(db.Integer, nullable=False, index=True)
    step_id = db.Column(db.Integer, nullable=True)
    phase = db.Column(db.String(30), nullable=False)
    section = db.Column(db.String(200), nullable=True)
    category = db.Column(db.String(20), nullable=False)
    intended_title = db.Column(db.String(300), nullable=False)
    intended_message = db.Column(db.Text, default="")
    intended_priority = db.Column(db.String(20), nullable=False)
    reason = db.Column(db.String(100), nullable=False, default="phase_override")

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    override = db.relationship("PhaseOverride", back_populates="suppressed_alerts")

    def to_dict(self):
        return {
            "id": self.id,
            "override_id": self.override_id,
            "workflow_id": self.workflow_id,
            "step_id": self.step_id,
            "phase": self.phase,
            "section": self.section,
            "category": self.category,
            "intended_title": self.intended_title,
            "intended_message": self.intended_message,
            "intended_priority": self.intended_priority,
            "reason": self.reason,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
