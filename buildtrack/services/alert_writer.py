"""
Alert Writer

Composes the title / message for a step alert and persists one
WorkflowAlert plus one Notification per recipient.

The writer performs no idempotency check; duplicate suppression belongs
to the dedup store and the caller is trusted.

Usage:
    writer = AlertWriter()
    composed = compose_alert(item, project)
    writer.write(candidate, item, composed, recipients, project_id=...)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy import func, select

from buildtrack.models import db
from buildtrack.models.notification import Notification, WorkflowAlert
from buildtrack.services.alert_policy import (
    PRIORITY_BY_CATEGORY,
    AlertCandidate,
    AlertCategory,
    StepAlert,
)
from buildtrack.services.recipient_resolver import Recipient
from buildtrack.services.step_catalog import guidance_for, task_label_for
from buildtrack.services.workflow_state import ProjectSnapshot, StepSnapshot

logger = logging.getLogger(__name__)


SEVERITY_BY_PRIORITY = {
    "low": "info",
    "medium": "warning",
    "high": "error",
}


@dataclass(frozen=True)
class ComposedAlert:
    title: str
    message: str
    priority: str
    severity: str


# ═════════════════════════════════════════════════════════════════════════════
# Message composition
# ═════════════════════════════════════════════════════════════════════════════

def _days(n: int) -> str:
    return f"{n} day" if n == 1 else f"{n} days"


def _progress(step: StepSnapshot) -> str:
    if step.sub_tasks_total <= 0:
        return ""
    return f" ({step.sub_tasks_completed}/{step.sub_tasks_total} sub-tasks complete)"


def project_label(project: ProjectSnapshot | None, project_id: int | None = None) -> str:
    if project is not None:
        return project.display_name
    return f"project #{project_id}" if project_id is not None else "unknown project"


def compose_message(item: StepAlert, project_name: str) -> str:
    step = item.step
    guidance = guidance_for(step.step_code)
    progress = _progress(step)

    if item.category == AlertCategory.WARNING:
        return f"{step.name} for {project_name} is due in {_days(item.days_until_due)}{progress}. {guidance}"
    if item.category == AlertCategory.URGENT:
        if item.days_until_due == 0:
            return f"{step.name} for {project_name} is due TODAY{progress}! {guidance}"
        return f"{step.name} for {project_name} is due in {_days(item.days_until_due)}{progress}! {guidance}"
    if item.category == AlertCategory.OVERDUE:
        return f"{step.name} for {project_name} is {_days(item.days_overdue)} overdue{progress}! {guidance}"
    return f"{step.name} is now ready to be completed for project at {project_name}"


def compose_alert(item: StepAlert, project: ProjectSnapshot | None, project_id: int | None = None) -> ComposedAlert:
    name = project_label(project, project_id)
    priority = PRIORITY_BY_CATEGORY[item.category]
    return ComposedAlert(
        title=f"{task_label_for(item.step.step_code, item.step.name)} - {name}",
        message=compose_message(item, name),
        priority=priority,
        severity=SEVERITY_BY_PRIORITY.get(priority, "info"),
    )


# ═════════════════════════════════════════════════════════════════════════════
# Writer
# ═════════════════════════════════════════════════════════════════════════════

class AlertWriter:
    """Persists AlertRecords and their companion Notifications."""

    def write(
        self,
        candidate: AlertCandidate,
        item: StepAlert,
        composed: ComposedAlert,
        recipients: Iterable[Recipient],
        *,
        project_id: int | None,
    ) -> list[WorkflowAlert]:
        """One WorkflowAlert + one Notification per recipient, single commit.

        On failure the session is rolled back and the error propagates.
        """
        step = item.step
        alerts: list[WorkflowAlert] = []
        try:
            for recipient in recipients:
                alert = WorkflowAlert(
                    category=item.category.value,
                    priority=composed.priority,
                    status="active",
                    recipient_id=recipient.id,
                    project_id=project_id,
                    workflow_id=candidate.workflow_id,
                    step_id=step.id,
                    phase=step.phase,
                    section=step.section,
                    step_name=step.name,
                    title=composed.title,
                    message=composed.message,
                    days_until_due=item.days_until_due,
                    days_overdue=item.days_overdue,
                    extra={
                        "scope": candidate.scope,
                        "step_code": step.step_code,
                        "responsible_role": step.default_responsible_role,
                    },
                )
                db.session.add(alert)
                db.session.flush()
                db.session.add(Notification(
                    recipient_id=recipient.id,
                    project_id=project_id,
                    title=composed.title,
                    message=composed.message,
                    category="workflow",
                    severity=composed.severity,
                    entity_type="workflow_alert",
                    entity_id=alert.id,
                ))
                alerts.append(alert)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info(
            "Wrote %d %s alert(s) for step %s",
            len(alerts), item.category.value, step.id,
            extra={"event_type": "alert_written", "workflow_id": candidate.workflow_id,
                   "step_id": step.id, "category": item.category.value},
        )
        return alerts

    def write_step_completed(
        self,
        step: StepSnapshot,
        project: ProjectSnapshot | None,
        recipients: Iterable[Recipient],
        *,
        project_id: int | None,
    ) -> list[Notification]:
        """One "step completed" Notification per recipient, single commit.

        Writes no WorkflowAlert.
        """
        name = project_label(project, project_id)
        title = f"Step completed - {name}"
        message = f'{step.phase} step "{step.name}" completed for {name}'
        notifications: list[Notification] = []
        try:
            for recipient in recipients:
                notification = Notification(
                    recipient_id=recipient.id,
                    project_id=project_id,
                    title=title,
                    message=message,
                    category="workflow",
                    severity="info",
                    entity_type="workflow_step",
                    entity_id=step.id,
                )
                db.session.add(notification)
                notifications.append(notification)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info(
            "Notified %d user(s) of completed step %s",
            len(notifications), step.id,
            extra={"event_type": "step_completion_notified", "workflow_id": step.workflow_id,
                   "step_id": step.id},
        )
        return notifications


def alert_statistics(now: datetime) -> dict:
    """AlertRecord counts for operator reporting.

    Returns:
        {"last_7_days": {"total", "high", "medium", "low"}, "last_24_hours": int}
    """
    week_ago = now - timedelta(days=7)
    day_ago = now - timedelta(hours=24)

    rows = db.session.execute(
        select(WorkflowAlert.priority, func.count(WorkflowAlert.id))
        .where(WorkflowAlert.created_at >= week_ago)
        .group_by(WorkflowAlert.priority)
    ).all()
    by_priority = {"high": 0, "medium": 0, "low": 0}
    for priority, count in rows:
        by_priority[priority] = count

    last_day = db.session.execute(
        select(func.count(WorkflowAlert.id)).where(WorkflowAlert.created_at >= day_ago)
    ).scalar_one()

    return {
        "last_7_days": {"total": sum(by_priority.values()), **by_priority},
        "last_24_hours": last_day,
    }
