"""
BuildTrack Workflow Alerts
Workflow State Reader.

Builds immutable snapshots of a workflow's phase → section → step tree so
that policy code never holds ORM objects or touches the session.

Usage:
    reader = WorkflowStateReader()
    for wf_id in reader.active_workflow_ids():
        snapshot = reader.load(wf_id)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select

from buildtrack.models import db
from buildtrack.models.project import Project
from buildtrack.models.workflow import (
    ACTIVE_WORKFLOW_STATUSES,
    WorkflowInstance,
    phase_rank,
)

logger = logging.getLogger(__name__)


def to_utc(dt: datetime | None) -> datetime | None:
    """Normalise a datetime to UTC-aware.

    SQLite returns naive datetimes; everything stored is UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# ═════════════════════════════════════════════════════════════════════════════
# Snapshots
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StepSnapshot:
    id: int
    workflow_id: int
    name: str
    phase: str
    section: str
    section_order: int = 0
    step_order: int = 0
    step_code: str | None = None
    completed_flag: bool = False
    scheduled_end_date: datetime | None = None
    alert_days: int | None = None
    default_responsible_role: str | None = None
    assigned_user_id: int | None = None
    sub_tasks_total: int = 0
    sub_tasks_completed: int = 0

    @property
    def is_completed(self) -> bool:
        """Flagged complete, or every sub-task is done."""
        if self.completed_flag:
            return True
        return self.sub_tasks_total > 0 and self.sub_tasks_completed >= self.sub_tasks_total

    @property
    def sort_key(self) -> tuple:
        return (phase_rank(self.phase), self.section_order, self.step_order, self.id)


@dataclass(frozen=True)
class ProjectSnapshot:
    id: int
    name: str
    customer_name: str | None = None
    project_manager_id: int | None = None

    @property
    def display_name(self) -> str:
        return self.customer_name or self.name


@dataclass(frozen=True)
class WorkflowSnapshot:
    id: int
    project_id: int
    status: str
    current_phase_pointer: str | None = None
    current_section_pointer: str | None = None
    steps: tuple[StepSnapshot, ...] = field(default_factory=tuple)

    @property
    def ordered_steps(self) -> list[StepSnapshot]:
        return sorted(self.steps, key=lambda s: s.sort_key)

    @property
    def incomplete_steps(self) -> list[StepSnapshot]:
        return [s for s in self.ordered_steps if not s.is_completed]

    @property
    def completed_count(self) -> int:
        return sum(1 for s in self.steps if s.is_completed)

    @property
    def is_brand_new(self) -> bool:
        return bool(self.steps) and self.completed_count == 0

    @property
    def current_phase(self) -> str | None:
        """Phase pointer, else the phase of the first open step in order."""
        if self.current_phase_pointer:
            return self.current_phase_pointer
        open_steps = self.incomplete_steps
        if open_steps:
            return open_steps[0].phase
        ordered = self.ordered_steps
        return ordered[-1].phase if ordered else None

    def ordered_sections(self) -> list[tuple[str, str]]:
        """(phase, section) pairs in phase order, then section order."""
        seen: list[tuple[str, str]] = []
        for step in self.ordered_steps:
            key = (step.phase, step.section)
            if key not in seen:
                seen.append(key)
        return seen

    def steps_in_section(self, phase: str, section: str) -> list[StepSnapshot]:
        return [s for s in self.ordered_steps if s.phase == phase and s.section == section]

    def next_open_section(self) -> tuple[str, str] | None:
        """First section, walking phase then section order, with any open step."""
        for phase, section in self.ordered_sections():
            if any(not s.is_completed for s in self.steps_in_section(phase, section)):
                return phase, section
        return None


# ═════════════════════════════════════════════════════════════════════════════
# Reader
# ═════════════════════════════════════════════════════════════════════════════

class WorkflowStateReader:
    """SQLAlchemy-backed read view over workflows and their projects.

    ``delete_workflow`` is the only write: orphan cleanup.
    """

    def active_workflow_ids(self) -> list[int]:
        stmt = (
            select(WorkflowInstance.id)
            .where(WorkflowInstance.status.in_(ACTIVE_WORKFLOW_STATUSES))
            .order_by(WorkflowInstance.id)
        )
        return list(db.session.execute(stmt).scalars())

    def workflow_ids_for_project(self, project_id: int) -> list[int]:
        stmt = (
            select(WorkflowInstance.id)
            .where(
                WorkflowInstance.project_id == project_id,
                WorkflowInstance.status.in_(ACTIVE_WORKFLOW_STATUSES),
            )
            .order_by(WorkflowInstance.id)
        )
        return list(db.session.execute(stmt).scalars())

    def load(self, workflow_id: int) -> WorkflowSnapshot | None:
        wf = db.session.get(WorkflowInstance, workflow_id)
        if wf is None:
            return None
        steps = tuple(
            StepSnapshot(
                id=s.id,
                workflow_id=wf.id,
                name=s.name,
                phase=s.phase,
                section=s.section,
                section_order=s.section_order or 0,
                step_order=s.step_order or 0,
                step_code=s.step_code,
                completed_flag=bool(s.is_completed),
                scheduled_end_date=to_utc(s.scheduled_end_date),
                alert_days=s.alert_days,
                default_responsible_role=s.default_responsible_role,
                assigned_user_id=s.assigned_user_id,
                sub_tasks_total=len(s.sub_tasks),
                sub_tasks_completed=sum(1 for st in s.sub_tasks if st.is_completed),
            )
            for s in wf.steps
        )
        return WorkflowSnapshot(
            id=wf.id,
            project_id=wf.project_id,
            status=wf.status,
            current_phase_pointer=wf.current_phase,
            current_section_pointer=wf.current_section,
            steps=steps,
        )

    def project_exists(self, project_id: int | None) -> bool:
        if project_id is None:
            return False
        return db.session.get(Project, project_id) is not None

    def load_project(self, project_id: int) -> ProjectSnapshot | None:
        project = db.session.get(Project, project_id)
        if project is None:
            return None
        return ProjectSnapshot(
            id=project.id,
            name=project.name,
            customer_name=project.customer_name,
            project_manager_id=project.project_manager_id,
        )

    def delete_workflow(self, workflow_id: int) -> bool:
        wf = db.session.get(WorkflowInstance, workflow_id)
        if wf is None:
            return False
        project_id = wf.project_id
        db.session.delete(wf)
        db.session.commit()
        logger.info("Deleted orphaned workflow id=%s (project %s missing)", workflow_id, project_id,
                    extra={"event_type": "workflow_orphan_deleted", "workflow_id": workflow_id})
        return True
