"""
Workflow Alert Engine

Wires the pipeline together:

    WorkflowStateReader → evaluate_workflow → SuppressionFilter
        → DedupStore.check_and_mark → RecipientResolver → AlertWriter

Trigger surface:
    - run_full_sweep(): periodic sweep over every active workflow; an
      overlapping sweep is skipped (logged + sweep_skipped), except that a
      full sweep waits for a fast sweep in flight rather than lose its tick
    - check_workflow(id): event-driven check of a single workflow; not
      blocked by a sweep in flight
    - trigger_manual_sweep(): operator sweep, same overlap rule

Failure handling per workflow:
    - project missing   → workflow deleted, no alerts
    - no recipient      → alert skipped and logged
    - transient I/O / time budget exceeded → workflow abandoned for this cycle
    - anything else     → logged, the rest of the workflow / sweep continues

Usage:
    engine = get_alert_engine()
    engine.check_workflow(42)
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable

from flask import Flask, current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from buildtrack.core.exceptions import RecipientResolutionError, WorkflowCheckTimeout
from buildtrack.models import db
from buildtrack.services.alert_policy import (
    AlertCandidate,
    AlertCategory,
    StepAlert,
    evaluate_workflow,
    step_scope,
)
from buildtrack.services.alert_writer import AlertWriter, compose_alert
from buildtrack.services.dedup_store import (
    DedupKey,
    DedupStore,
    InMemoryDedupStore,
    build_dedup_store,
    cooldown_for,
)
from buildtrack.services.recipient_resolver import RecipientResolver
from buildtrack.services.signals import (
    project_created,
    step_completed,
    sweep_completed,
    sweep_skipped,
    sweep_started,
    workflow_check_failed,
    workflow_checked,
)
from buildtrack.services.suppression import SuppressionFilter
from buildtrack.services.workflow_state import (
    ProjectSnapshot,
    WorkflowSnapshot,
    WorkflowStateReader,
)

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (OperationalError, PoolTimeoutError, WorkflowCheckTimeout)

# Fast path skips warnings; the hourly policy sweep covers everything.
FAST_SWEEP_CATEGORIES = frozenset({
    AlertCategory.OVERDUE,
    AlertCategory.URGENT,
    AlertCategory.SECTION_START,
})


# ═════════════════════════════════════════════════════════════════════════════
# Results
# ═════════════════════════════════════════════════════════════════════════════

@dataclass
class CheckResult:
    """Outcome of one workflow check.

    status: ok | not_found | orphan_deleted | skipped_empty | abandoned | failed
    """
    workflow_id: int
    status: str = "ok"
    alerts_created: int = 0
    suppressed: int = 0
    deduplicated: int = 0
    errors: int = 0
    duration_ms: int = 0
    error: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SweepResult:
    trigger: str
    status: str = "completed"
    workflows_checked: int = 0
    alerts_created: int = 0
    suppressed: int = 0
    deduplicated: int = 0
    orphans_deleted: int = 0
    abandoned: int = 0
    failed: int = 0
    errors: int = 0
    duration_ms: int = 0
    checks: list[CheckResult] = field(default_factory=list, repr=False)

    def add(self, result: CheckResult) -> None:
        self.checks.append(result)
        self.workflows_checked += 1
        self.alerts_created += result.alerts_created
        self.suppressed += result.suppressed
        self.deduplicated += result.deduplicated
        self.errors += result.errors
        if result.status == "orphan_deleted":
            self.orphans_deleted += 1
        elif result.status == "abandoned":
            self.abandoned += 1
        elif result.status == "failed":
            self.failed += 1

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop("checks")
        return data


# ═════════════════════════════════════════════════════════════════════════════
# Engine
# ═════════════════════════════════════════════════════════════════════════════

class AlertEngine:
    """Alert pipeline with explicitly injected collaborators.

    Every collaborator defaults to the database-backed implementation; the
    dedup store defaults to the in-memory backend, which does not survive a
    process restart and is not shared between processes.
    """

    def __init__(
        self,
        reader: WorkflowStateReader | None = None,
        resolver: RecipientResolver | None = None,
        suppression: SuppressionFilter | None = None,
        dedup: DedupStore | None = None,
        writer: AlertWriter | None = None,
        *,
        cooldown_hours: dict | None = None,
        timeout_seconds: float = 15.0,
        max_workers: int = 1,
        max_age_days: int = 7,
        sweep_wait_seconds: float = 0.0,
    ):
        self.reader = reader or WorkflowStateReader()
        self.resolver = resolver or RecipientResolver()
        self.suppression = suppression or SuppressionFilter()
        self.dedup = dedup if dedup is not None else InMemoryDedupStore()
        self.writer = writer or AlertWriter()
        self.cooldown_hours = cooldown_hours
        self.timeout_seconds = timeout_seconds
        self.max_workers = max(1, int(max_workers))
        self.max_age = timedelta(days=max_age_days)
        self.sweep_wait_seconds = sweep_wait_seconds
        self._sweep_lock = threading.Lock()
        self._partial_sweep_running = False

    @classmethod
    def from_config(cls, cfg) -> "AlertEngine":
        return cls(
            dedup=build_dedup_store(cfg.get("ALERT_DEDUP_BACKEND", "memory")),
            cooldown_hours=cfg.get("ALERT_COOLDOWN_HOURS"),
            timeout_seconds=cfg.get("ALERT_WORKFLOW_TIMEOUT_SECONDS", 15.0),
            max_workers=cfg.get("ALERT_SWEEP_MAX_WORKERS", 1),
            max_age_days=cfg.get("ALERT_DEDUP_MAX_AGE_DAYS", 7),
            sweep_wait_seconds=cfg.get("ALERT_SWEEP_WAIT_SECONDS", 0.0),
        )

    @property
    def sweep_in_progress(self) -> bool:
        return self._sweep_lock.locked()

    # ── Trigger surface ──────────────────────────────────────────────────

    def run_full_sweep(
        self,
        categories: Iterable[AlertCategory] | None = None,
        *,
        trigger: str = "scheduled",
        now: datetime | None = None,
    ) -> SweepResult:
        """Check every not_started / in_progress workflow.

        Returns a SweepResult with status "skipped" when another sweep holds
        the in-progress flag. A sweep over all categories outranks a
        category-limited one: it waits up to ``sweep_wait_seconds`` for a
        limited sweep in flight to finish instead of skipping its tick.
        """
        cats = frozenset(categories) if categories is not None else None
        if not self._acquire_sweep(cats, trigger):
            logger.warning("Alert sweep already in progress, skipping %s sweep", trigger,
                           extra={"event_type": "sweep_skipped", "trigger": trigger})
            sweep_skipped.send(self, trigger=trigger)
            return SweepResult(trigger=trigger, status="skipped")

        self._partial_sweep_running = cats is not None
        try:
            start = time.monotonic()
            logger.info("Alert sweep started (%s)", trigger,
                        extra={"event_type": "sweep_started", "trigger": trigger})
            sweep_started.send(self, trigger=trigger, categories=cats)

            summary = SweepResult(trigger=trigger)
            workflow_ids = self.reader.active_workflow_ids()
            if self.max_workers > 1 and len(workflow_ids) > 1:
                results = self._check_parallel(workflow_ids, cats, now)
            else:
                results = [self.check_workflow(wf_id, cats, now=now) for wf_id in workflow_ids]
            for result in results:
                summary.add(result)

            summary.duration_ms = int((time.monotonic() - start) * 1000)
            logger.info(
                "Alert sweep completed (%s): %d workflows, %d alerts, %d suppressed, "
                "%d deduplicated, %d orphans deleted, %d abandoned, %d failed",
                trigger, summary.workflows_checked, summary.alerts_created, summary.suppressed,
                summary.deduplicated, summary.orphans_deleted, summary.abandoned, summary.failed,
                extra={"event_type": "sweep_completed", "trigger": trigger,
                       "duration_ms": summary.duration_ms},
            )
            sweep_completed.send(self, result=summary)
            return summary
        finally:
            self._partial_sweep_running = False
            self._sweep_lock.release()

    def _acquire_sweep(self, categories: frozenset | None, trigger: str) -> bool:
        if self._sweep_lock.acquire(blocking=False):
            return True
        if categories is not None or not self._partial_sweep_running or self.sweep_wait_seconds <= 0:
            return False
        logger.info("Full %s sweep waiting for a fast sweep in flight", trigger,
                    extra={"event_type": "sweep_waiting", "trigger": trigger})
        return self._sweep_lock.acquire(timeout=self.sweep_wait_seconds)

    def trigger_manual_sweep(self, categories: Iterable[AlertCategory] | None = None) -> SweepResult:
        return self.run_full_sweep(categories, trigger="manual")

    def check_project(self, project_id: int, *, now: datetime | None = None) -> list[CheckResult]:
        return [self.check_workflow(wf_id, now=now) for wf_id in self.reader.workflow_ids_for_project(project_id)]

    def check_workflow(
        self,
        workflow_id: int,
        categories: Iterable[AlertCategory] | None = None,
        *,
        now: datetime | None = None,
    ) -> CheckResult:
        """Run the pipeline for one workflow. Never raises."""
        now = now or datetime.now(timezone.utc)
        wanted = frozenset(categories) if categories is not None else None
        start = time.monotonic()
        deadline = start + self.timeout_seconds

        try:
            result = self._check(workflow_id, wanted, now, deadline)
        except TRANSIENT_ERRORS as exc:
            db.session.rollback()
            result = CheckResult(workflow_id, status="abandoned", error=str(exc))
            logger.warning("Workflow %s check abandoned for this cycle: %s", workflow_id, exc,
                           extra={"event_type": "workflow_check_abandoned", "workflow_id": workflow_id})
        except Exception as exc:
            db.session.rollback()
            result = CheckResult(workflow_id, status="failed", error=str(exc))
            logger.exception("Workflow %s check failed", workflow_id,
                             extra={"event_type": "workflow_check_failed", "workflow_id": workflow_id})

        result.duration_ms = int((time.monotonic() - start) * 1000)
        if result.status in ("abandoned", "failed"):
            workflow_check_failed.send(self, workflow_id=workflow_id, error=result.error)
        else:
            workflow_checked.send(self, result=result)
        return result

    def notify_step_completed(self, workflow_id: int, step_id: int, completed_by: int | None = None) -> int:
        """Tell the project manager and management team that a step finished.

        Returns the number of notifications written. Never raises.
        """
        try:
            workflow = self.reader.load(workflow_id)
            step = None
            if workflow is not None:
                step = next((s for s in workflow.steps if s.id == step_id), None)
            if step is None:
                logger.warning("Completed step %s not found on workflow %s", step_id, workflow_id,
                               extra={"workflow_id": workflow_id, "step_id": step_id})
                return 0
            project = self.reader.load_project(workflow.project_id)
            recipients = self.resolver.completion_recipients(project, completed_by)
            if not recipients:
                logger.debug("No one to notify about completed step %s", step_id)
                return 0
            written = self.writer.write_step_completed(step, project, recipients,
                                                       project_id=workflow.project_id)
            return len(written)
        except Exception:
            db.session.rollback()
            logger.exception("Failed to notify completion of step %s", step_id,
                             extra={"event_type": "step_completion_notify_failed",
                                    "workflow_id": workflow_id, "step_id": step_id})
            return 0

    def purge_history(self, now: datetime | None = None) -> int:
        return self.dedup.purge(self.max_age, now or datetime.now(timezone.utc))

    # ── Pipeline ─────────────────────────────────────────────────────────

    def _check_parallel(self, workflow_ids, categories, now) -> list[CheckResult]:
        app = current_app._get_current_object()

        def _worker(wf_id):
            with app.app_context():
                return self.check_workflow(wf_id, categories, now=now)

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="alert-sweep") as pool:
            return list(pool.map(_worker, workflow_ids))

    def _check_deadline(self, workflow_id: int, deadline: float) -> None:
        if time.monotonic() > deadline:
            raise WorkflowCheckTimeout(workflow_id, self.timeout_seconds)

    def _already_announced(self, candidate: AlertCandidate, item: StepAlert, cooldown, now) -> bool:
        """Section-level start alerts skip steps that got their own start alert
        while the workflow was brand-new."""
        if candidate.category != AlertCategory.SECTION_START or candidate.scope == step_scope(item.step):
            return False
        key = DedupKey(candidate.workflow_id, step_scope(item.step), candidate.category.value)
        return self.dedup.has_recent_alert(key, cooldown, now)

    def _check(self, workflow_id, categories, now, deadline) -> CheckResult:
        workflow = self.reader.load(workflow_id)
        if workflow is None:
            return CheckResult(workflow_id, status="not_found")

        if not self.reader.project_exists(workflow.project_id):
            self.reader.delete_workflow(workflow.id)
            return CheckResult(workflow_id, status="orphan_deleted")

        if not workflow.steps:
            logger.info("Workflow %s has no steps, skipping", workflow_id,
                        extra={"event_type": "workflow_empty", "workflow_id": workflow_id})
            return CheckResult(workflow_id, status="skipped_empty")

        project = self.reader.load_project(workflow.project_id)
        result = CheckResult(workflow_id)
        for candidate in evaluate_workflow(workflow, now, categories):
            self._check_deadline(workflow_id, deadline)
            try:
                self._process_candidate(candidate, workflow, project, now, deadline, result)
            except TRANSIENT_ERRORS:
                raise
            except Exception:
                db.session.rollback()
                result.errors += 1
                logger.exception("Failed to process %s alert for %s on workflow %s",
                                 candidate.category.value, candidate.scope, workflow_id,
                                 extra={"workflow_id": workflow_id, "category": candidate.category.value})
        return result

    def _process_candidate(
        self,
        candidate: AlertCandidate,
        workflow: WorkflowSnapshot,
        project: ProjectSnapshot | None,
        now: datetime,
        deadline: float,
        result: CheckResult,
    ) -> None:
        cooldown = cooldown_for(candidate.category.value, self.cooldown_hours)

        deliverable: list[StepAlert] = []
        for item in candidate.items:
            if self._already_announced(candidate, item, cooldown, now):
                continue
            override = self.suppression.check(workflow.id, item.step.phase)
            if override is None:
                deliverable.append(item)
                continue
            # One audit row per step and category per cooldown window.
            audit_key = DedupKey(workflow.id, step_scope(item.step), f"suppressed:{candidate.category.value}")
            if self.dedup.check_and_mark(audit_key, cooldown, now):
                try:
                    composed = compose_alert(item, project, workflow.project_id)
                    self.suppression.record(
                        override,
                        workflow_id=workflow.id,
                        step_id=item.step.id,
                        phase=item.step.phase,
                        section=item.step.section,
                        category=candidate.category.value,
                        title=composed.title,
                        message=composed.message,
                        priority=composed.priority,
                    )
                    db.session.commit()
                except Exception:
                    db.session.rollback()
                    self.dedup.release(audit_key, now, cooldown)
                    raise
            result.suppressed += 1

        if not deliverable:
            return

        key = DedupKey(workflow.id, candidate.scope, candidate.category.value)
        if not self.dedup.check_and_mark(key, cooldown, now):
            result.deduplicated += 1
            return

        # Section-level keys: each delivered step is also marked under its own
        # step key, and the section key is released unless every step went out.
        # The next cycle then retries only the missing steps (_already_announced).
        section_level = any(candidate.scope != step_scope(item.step) for item in deliverable)
        written = 0
        delivered = 0
        try:
            for item in deliverable:
                self._check_deadline(workflow.id, deadline)
                try:
                    composed = compose_alert(item, project, workflow.project_id)
                    recipients = self.resolver.resolve(item.step, project, item.category)
                    alerts = self.writer.write(candidate, item, composed, recipients,
                                               project_id=workflow.project_id)
                    written += len(alerts)
                    delivered += 1
                    if section_level:
                        step_key = DedupKey(workflow.id, step_scope(item.step), candidate.category.value)
                        self.dedup.check_and_mark(step_key, cooldown, now)
                except RecipientResolutionError as exc:
                    result.errors += 1
                    logger.error("%s; alert not created", exc,
                                 extra={"event_type": "recipient_resolution_failed",
                                        "workflow_id": workflow.id, "step_id": item.step.id,
                                        "category": item.category.value})
                except TRANSIENT_ERRORS:
                    raise
                except Exception:
                    db.session.rollback()
                    result.errors += 1
                    logger.exception("Failed to write %s alert for step %s",
                                     item.category.value, item.step.id,
                                     extra={"workflow_id": workflow.id, "step_id": item.step.id,
                                            "category": item.category.value})
        finally:
            if written == 0:
                db.session.rollback()
            if written == 0 or delivered < len(deliverable):
                self.dedup.release(key, now, cooldown)
            result.alerts_created += written


# ═════════════════════════════════════════════════════════════════════════════
# Flask integration
# ═════════════════════════════════════════════════════════════════════════════

def get_alert_engine() -> AlertEngine:
    return current_app.extensions["alert_engine"]


def _on_step_completed(sender, workflow_id=None, step_id=None, completed_by=None, **extra):
    engine = current_app.extensions.get("alert_engine")
    if engine is None or workflow_id is None:
        return
    if step_id is not None:
        engine.notify_step_completed(workflow_id, step_id, completed_by)
    logger.debug("Step completed on workflow %s, running event-driven check", workflow_id)
    engine.check_workflow(workflow_id)


def _on_project_created(sender, project_id=None, **extra):
    engine = current_app.extensions.get("alert_engine")
    if engine is None or project_id is None:
        return
    engine.check_project(project_id)


def init_alert_engine(app: Flask, engine: AlertEngine | None = None) -> AlertEngine:
    """Register the engine on ``app`` and subscribe to CRUD-layer signals."""
    engine = engine or AlertEngine.from_config(app.config)
    app.extensions["alert_engine"] = engine
    step_completed.connect(_on_step_completed)
    project_created.connect(_on_project_created)
    logger.info("Alert engine initialized (dedup=%s, workers=%d)",
                type(engine.dedup).__name__, engine.max_workers)
    return engine
