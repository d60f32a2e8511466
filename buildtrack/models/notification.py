"""
BuildTrack Workflow Alerts
Alert & notification models.

Models:
    - WorkflowAlert: durable alert record produced by the alert engine
    - Notification: lightweight per-recipient record for immediate UI delivery
"""

from datetime import datetime, timezone

from buildtrack.models import db


# ── Constants ────────────────────────────────────────────────────────────────

ALERT_CATEGORIES = {"warning", "urgent", "overdue", "section_start"}
ALERT_PRIORITIES = {"low", "medium", "high"}
ALERT_STATUSES = {"active", "acknowledged", "dismissed", "completed"}

NOTIFICATION_CATEGORIES = {"workflow", "system"}
NOTIFICATION_SEVERITIES = {"info", "warning", "error", "success"}


class WorkflowAlert(db.Model):
    """
    Alert raised for a workflow step (or section) to a single recipient.

    Written once by the alert engine; acknowledge / dismiss / complete
    transitions belong to the request layer.
    """

    __tablename__ = "workflow_alerts"
    __table_args__ = (
        db.Index("ix_workflow_alerts_recipient_status", "recipient_id", "status"),
        db.Index("ix_workflow_alerts_workflow_step", "workflow_id", "step_id", "category"),
    )

    id = db.Column(db.Integer, primary_key=True)
    category = db.Column(db.String(20), nullable=False, comment="warning | urgent | overdue | section_start")
    priority = db.Column(db.String(20), nullable=False, default="medium")
    status = db.Column(db.String(20), nullable=False, default="active", index=True)

    recipient_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    project_id = db.Column(db.Integer, nullable=True, index=True)
    workflow_id = db.Column(db.Integer, nullable=False)
    step_id = db.Column(db.Integer, nullable=True)
    phase = db.Column(db.String(30), nullable=True)
    section = db.Column(db.String(200), nullable=True)
    step_name = db.Column(db.String(200), nullable=True)

    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    days_until_due = db.Column(db.Integer, nullable=False, default=0)
    days_overdue = db.Column(db.Integer, nullable=False, default=0)
    extra = db.Column("metadata", db.JSON, default=dict)

    acknowledged_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    recipient = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "category": self.category,
            "priority": self.priority,
            "status": self.status,
            "recipient_id": self.recipient_id,
            "project_id": self.project_id,
            "workflow_id": self.workflow_id,
            "step_id": self.step_id,
            "phase": self.phase,
            "section": self.section,
            "step_name": self.step_name,
            "title": self.title,
            "message": self.message,
            "days_until_due": self.days_until_due,
            "days_overdue": self.days_overdue,
            "metadata": self.extra or {},
            "acknowledged_at": self.acknowledged_at.isoformat() if self.acknowledged_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<WorkflowAlert {self.id}: {self.category} -> user {self.recipient_id}>"


class Notification(db.Model):
    """
    In-app notification entity.

    One record per recipient per event.
    """

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    recipient_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    project_id = db.Column(db.Integer, nullable=True, index=True)
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    category = db.Column(db.String(30), default="workflow")
    severity = db.Column(db.String(20), default="info")

    # Link to source entity
    entity_type = db.Column(db.String(30), default="", comment="workflow_alert / workflow_step / ...")
    entity_id = db.Column(db.Integer, nullable=True)

    # Read tracking
    is_read = db.Column(db.Boolean, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def mark_read(self):
        self.is_read = True
        self.read_at = datetime.now(timezone.utc)

    def to_dict(self):
        return {
            "id": self.id,
            "recipient_id": self.recipient_id,
            "project_id": self.project_id,
            "title": self.title,
            "message": self.message,
            "category": self.category,
            "severity": self.severity,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Notification {self.id}: {self.title[:40]}>"
