"""
BuildTrack Workflow Alerts
Workflow domain models.

Models:
    - WorkflowInstance: per-project phase → section → step tree
    - WorkflowStep: line item with schedule, responsibility and completion state
    - SubTask: checklist entry under a step

WorkflowInstance.project_id is a plain integer reference (no FK) because the
project can be deleted out from under a workflow; the alert engine purges
such orphans during its sweep.
"""

from datetime import datetime, timezone

from buildtrack.models import db


# ── Constants ────────────────────────────────────────────────────────────────

PHASE_ORDER = (
    "LEAD",
    "PROSPECT",
    "APPROVED",
    "EXECUTION",
    "SECOND_SUPPLEMENT",
    "COMPLETION",
)

WORKFLOW_STATUSES = {"not_started", "in_progress", "completed"}
ACTIVE_WORKFLOW_STATUSES = ("not_started", "in_progress")

RESPONSIBLE_ROLES = {
    "OFFICE",
    "ADMINISTRATION",
    "PROJECT_MANAGER",
    "FIELD_DIRECTOR",
    "ROOF_SUPERVISOR",
}


def phase_rank(phase):
    """Position of ``phase`` in PHASE_ORDER; unknown phases sort last."""
    try:
        return PHASE_ORDER.index(phase)
    except ValueError:
        return len(PHASE_ORDER)


class WorkflowInstance(db.Model):
    __tablename__ = "workflow_instances"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, nullable=False, index=True,
                           comment="Project reference; may dangle after project deletion")
    status = db.Column(db.String(20), nullable=False, default="not_started", index=True,
                       comment="not_started | in_progress | completed")
    current_phase = db.Column(db.String(30), nullable=True)
    current_section = db.Column(db.String(200), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    steps = db.relationship(
        "WorkflowStep",
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="(WorkflowStep.section_order, WorkflowStep.step_order, WorkflowStep.id)",
        lazy="selectin",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "status": self.status,
            "current_phase": self.current_phase,
            "current_section": self.current_section,
            "step_count": len(self.steps),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<WorkflowInstance {self.id} project={self.project_id} {self.status}>"


class WorkflowStep(db.Model):
    __tablename__ = "workflow_steps"
    __table_args__ = (
        db.Index("ix_workflow_steps_workflow_phase", "workflow_id", "phase"),
    )

    id = db.Column(db.Integer, primary_key=True)
    workflow_id = db.Column(
        db.Integer, db.ForeignKey("workflow_instances.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    step_code = db.Column(db.String(60), nullable=True,
                          comment="Stable identifier used for action-guidance lookup")
    name = db.Column(db.String(200), nullable=False)
    phase = db.Column(db.String(30), nullable=False)
    section = db.Column(db.String(200), nullable=False)
    section_order = db.Column(db.Integer, nullable=False, default=0)
    step_order = db.Column(db.Integer, nullable=False, default=0)

    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    scheduled_end_date = db.Column(db.DateTime(timezone=True), nullable=True)
    alert_days = db.Column(db.Integer, nullable=True, comment="Warning lead time in days")

    default_responsible_role = db.Column(db.String(30), nullable=False, default="OFFICE")
    assigned_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    workflow = db.relationship("WorkflowInstance", back_populates="steps")
    sub_tasks = db.relationship(
        "SubTask",
        back_populates="step",
        cascade="all, delete-orphan",
        order_by="SubTask.sort_order",
        lazy="selectin",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "workflow_id": self.workflow_id,
            "step_code": self.step_code,
            "name": self.name,
            "phase": self.phase,
            "section": self.section,
            "is_completed": self.is_completed,
            "scheduled_end_date": self.scheduled_end_date.isoformat() if self.scheduled_end_date else None,
            "alert_days": self.alert_days,
            "default_responsible_role": self.default_responsible_role,
            "assigned_user_id": self.assigned_user_id,
            "sub_tasks": [st.to_dict() for st in self.sub_tasks],
        }

    def __repr__(self):
        return f"<WorkflowStep {self.id}: {self.phase}/{self.name}>"


class SubTask(db.Model):
    __tablename__ = "workflow_sub_tasks"

    id = db.Column(db.Integer, primary_key=True)
    step_id = db.Column(
        db.Integer, db.ForeignKey("workflow_steps.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name = db.Column(db.String(300), nullable=False)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    step = db.relationship("WorkflowStep", back_populates="sub_tasks")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "is_completed": self.is_completed,
        }
