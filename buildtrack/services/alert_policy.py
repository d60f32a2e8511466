"""
Alert Policy Evaluator

Pure functions: given workflow snapshots and the current time, decide which
steps need an alert and in which category. No I/O, no session access.

Day arithmetic uses one rule everywhere: ``ceil(delta / 1 day)``, then both
counts are clamped at zero before they are stored or rendered.

Usage:
    from buildtrack.services.alert_policy import evaluate_workflow
    candidates = evaluate_workflow(snapshot, now)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable

from buildtrack.services.workflow_state import StepSnapshot, WorkflowSnapshot

_DAY_SECONDS = 24 * 60 * 60


# ═════════════════════════════════════════════════════════════════════════════
# Enums & Data Classes
# ═════════════════════════════════════════════════════════════════════════════

class AlertCategory(str, Enum):
    WARNING = "warning"
    URGENT = "urgent"
    OVERDUE = "overdue"
    SECTION_START = "section_start"


# Highest precedence first
CATEGORY_PRECEDENCE = (
    AlertCategory.OVERDUE,
    AlertCategory.URGENT,
    AlertCategory.WARNING,
    AlertCategory.SECTION_START,
)

TIME_CATEGORIES = frozenset({AlertCategory.WARNING, AlertCategory.URGENT, AlertCategory.OVERDUE})

PRIORITY_BY_CATEGORY = {
    AlertCategory.WARNING: "medium",
    AlertCategory.URGENT: "high",
    AlertCategory.OVERDUE: "high",
    AlertCategory.SECTION_START: "medium",
}


@dataclass(frozen=True)
class StepEvaluation:
    """Time-based classification of one step at one instant."""
    category: AlertCategory | None
    days_until_due: int = 0
    days_overdue: int = 0


@dataclass(frozen=True)
class StepAlert:
    """A step that should be alerted, with the counts used in its message."""
    step: StepSnapshot
    category: AlertCategory
    days_until_due: int = 0
    days_overdue: int = 0


@dataclass(frozen=True)
class AlertCandidate:
    """One dedup unit: a single step, or a whole section for section starts."""
    workflow_id: int
    category: AlertCategory
    scope: str
    phase: str
    section: str
    items: tuple[StepAlert, ...]

    @property
    def priority(self) -> str:
        return PRIORITY_BY_CATEGORY[self.category]


def step_scope(step: StepSnapshot) -> str:
    return f"step:{step.id}"


def section_scope(phase: str, section: str) -> str:
    return f"section:{phase}/{section}"


# ═════════════════════════════════════════════════════════════════════════════
# Step rules
# ═════════════════════════════════════════════════════════════════════════════

def _ceil_days(delta: timedelta) -> int:
    return math.ceil(delta.total_seconds() / _DAY_SECONDS)


def evaluate_step(step: StepSnapshot, now: datetime) -> StepEvaluation:
    """Classify a step by due date; first matching rule wins.

    1. completed → none
    2. unscheduled → none
    3. past due → overdue
    4. due within a day → urgent
    5. due within ``alert_days`` → warning
    """
    if step.is_completed:
        return StepEvaluation(None)
    due = step.scheduled_end_date
    if due is None:
        return StepEvaluation(None)

    days_overdue = _ceil_days(now - due)
    days_until_due = _ceil_days(due - now)
    clamped_until = max(days_until_due, 0)
    clamped_overdue = max(days_overdue, 0)

    if days_overdue > 0:
        category = AlertCategory.OVERDUE
    elif days_until_due <= 1:
        category = AlertCategory.URGENT
    elif step.alert_days is not None and days_until_due <= step.alert_days:
        category = AlertCategory.WARNING
    else:
        category = None
    return StepEvaluation(category, clamped_until, clamped_overdue)


# ═════════════════════════════════════════════════════════════════════════════
# Workflow rules
# ═════════════════════════════════════════════════════════════════════════════

def _section_start_candidates(
    workflow: WorkflowSnapshot,
    excluded_step_ids: set[int],
) -> list[AlertCandidate]:
    """Section-start rule.

    Brand-new workflow: every open step in the current phase, one dedup unit
    per step. In-progress workflow: the next open section as a single unit.
    Steps already carrying a time-based category are left out.
    """
    if workflow.is_brand_new:
        phase = workflow.current_phase
        candidates = []
        for step in workflow.incomplete_steps:
            if step.phase != phase or step.id in excluded_step_ids:
                continue
            candidates.append(AlertCandidate(
                workflow_id=workflow.id,
                category=AlertCategory.SECTION_START,
                scope=step_scope(step),
                phase=step.phase,
                section=step.section,
                items=(StepAlert(step, AlertCategory.SECTION_START),),
            ))
        return candidates

    target = workflow.next_open_section()
    if target is None:
        return []
    phase, section = target
    items = tuple(
        StepAlert(step, AlertCategory.SECTION_START)
        for step in workflow.steps_in_section(phase, section)
        if not step.is_completed and step.id not in excluded_step_ids
    )
    if not items:
        return []
    return [AlertCandidate(
        workflow_id=workflow.id,
        category=AlertCategory.SECTION_START,
        scope=section_scope(phase, section),
        phase=phase,
        section=section,
        items=items,
    )]


def evaluate_workflow(
    workflow: WorkflowSnapshot,
    now: datetime,
    categories: Iterable[AlertCategory] | None = None,
) -> list[AlertCandidate]:
    """All alert candidates for a workflow at ``now``.

    ``categories`` restricts the output (the fast sweep skips warnings);
    exclusivity is decided before filtering, so a step inside its warning
    window never falls through to ``section_start``.
    """
    wanted = set(categories) if categories is not None else set(AlertCategory)
    candidates: list[AlertCandidate] = []
    timed_step_ids: set[int] = set()

    for step in workflow.incomplete_steps:
        evaluation = evaluate_step(step, now)
        if evaluation.category is None:
            continue
        timed_step_ids.add(step.id)
        if evaluation.category not in wanted:
            continue
        candidates.append(AlertCandidate(
            workflow_id=workflow.id,
            category=evaluation.category,
            scope=step_scope(step),
            phase=step.phase,
            section=step.section,
            items=(StepAlert(
                step,
                evaluation.category,
                days_until_due=evaluation.days_until_due,
                days_overdue=evaluation.days_overdue,
            ),),
        ))

    if AlertCategory.SECTION_START in wanted:
        candidates.extend(_section_start_candidates(workflow, timed_step_ids))

    return candidates
