"""
Suppression Filter

Vetoes alerts for phases skipped by an active PhaseOverride and keeps an
audit trail (SuppressedAlert) of every vetoed alert.

Overrides are queried fresh on every check, so deactivating one lets the
next sweep raise the alerts again with no catch-up step.
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update

from buildtrack.core.exceptions import NotFoundError, ValidationError
from buildtrack.models import db
from buildtrack.models.phase_override import PhaseOverride, SuppressedAlert
from buildtrack.models.workflow import PHASE_ORDER, WorkflowInstance

logger = logging.getLogger(__name__)


def phases_between(from_phase: str, to_phase: str) -> list[str]:
    """Phases strictly between ``from_phase`` and ``to_phase``.

    Empty when either phase is unknown or the jump is not forward.
    """
    if from_phase not in PHASE_ORDER or to_phase not in PHASE_ORDER:
        return []
    start = PHASE_ORDER.index(from_phase)
    end = PHASE_ORDER.index(to_phase)
    if end <= start:
        return []
    return list(PHASE_ORDER[start + 1:end])


class SuppressionFilter:

    def active_overrides(self, workflow_id: int) -> list[PhaseOverride]:
        stmt = (
            select(PhaseOverride)
            .where(PhaseOverride.workflow_id == workflow_id, PhaseOverride.is_active.is_(True))
            .order_by(PhaseOverride.created_at.desc(), PhaseOverride.id.desc())
        )
        return list(db.session.execute(stmt).scalars())

    def check(self, workflow_id: int, phase: str) -> PhaseOverride | None:
        """The override vetoing alerts for ``phase``, or None."""
        for override in self.active_overrides(workflow_id):
            if override.suppresses(phase):
                return override
        return None

    def record(
        self,
        override: PhaseOverride,
        *,
        workflow_id: int,
        step_id: int | None,
        phase: str,
        section: str | None,
        category: str,
        title: str,
        message: str,
        priority: str,
    ) -> SuppressedAlert:
        """Add an audit row for a vetoed alert. The caller commits."""
        row = SuppressedAlert(
            override_id=override.id,
            workflow_id=workflow_id,
            step_id=step_id,
            phase=phase,
            section=section,
            category=category,
            intended_title=title,
            intended_message=message,
            intended_priority=priority,
            reason="phase_override",
        )
        db.session.add(row)
        logger.info(
            "Suppressed %s alert for step %s (phase %s) by override %s",
            category, step_id, phase, override.id,
            extra={"event_type": "alert_suppressed", "workflow_id": workflow_id,
                   "step_id": step_id, "category": category},
        )
        return row


def create_override(
    workflow_id: int,
    from_phase: str,
    to_phase: str,
    *,
    reason: str = "",
    user_id: int | None = None,
) -> PhaseOverride:
    """Record a manual phase jump; replaces any active override for the workflow.

    Raises:
        NotFoundError: workflow does not exist.
        ValidationError: the jump skips no phase.
    """
    wf = db.session.get(WorkflowInstance, workflow_id)
    if wf is None:
        raise NotFoundError(resource="WorkflowInstance", resource_id=workflow_id)

    skipped = phases_between(from_phase, to_phase)
    if not skipped:
        raise ValidationError(
            f"Override {from_phase} -> {to_phase} does not skip any phase",
            details={"from_phase": from_phase, "to_phase": to_phase},
        )

    db.session.execute(
        update(PhaseOverride)
        .where(PhaseOverride.workflow_id == workflow_id, PhaseOverride.is_active.is_(True))
        .values(is_active=False)
    )
    override = PhaseOverride(
        workflow_id=workflow_id,
        project_id=wf.project_id,
        from_phase=from_phase,
        to_phase=to_phase,
        suppressed_phases=skipped,
        reason=reason,
        overridden_by_id=user_id,
        is_active=True,
    )
    db.session.add(override)
    db.session.commit()
    logger.info("Phase override %s -> %s on workflow %s suppresses %s",
                from_phase, to_phase, workflow_id, skipped,
                extra={"event_type": "phase_override_created", "workflow_id": workflow_id})
    return override
