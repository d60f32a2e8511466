"""
BuildTrack Workflow Alerts
Tests — Alert engine pipeline, end to end against the database.

Covers:
    1. Idempotence within / after the cooldown window
    2. Phase-override suppression + audit rows
    3. Recipient fallback and resolution failure
    4. Brand-new workflow section-start alerts
    5. Event-driven next-section alerts (step_completed signal)
    6. Orphan cleanup, empty workflows, abandoned checks
    7. Sweep overlap and priority, signals, injected collaborators
    8. Step-completion notices
"""

import logging
import threading
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from buildtrack.core.exceptions import RecipientResolutionError
from buildtrack.models import db as _db
from buildtrack.models.auth import User
from buildtrack.models.phase_override import SuppressedAlert
from buildtrack.models.project import Project
from buildtrack.models.notification import Notification, WorkflowAlert
from buildtrack.models.workflow import WorkflowInstance, WorkflowStep
from buildtrack.services import signals
from buildtrack.services.alert_engine import FAST_SWEEP_CATEGORIES, AlertEngine
from buildtrack.services.alert_policy import AlertCategory
from buildtrack.services.recipient_resolver import RecipientResolver
from buildtrack.services.suppression import SuppressionFilter, create_override
from buildtrack.services.workflow_state import (
    ProjectSnapshot,
    StepSnapshot,
    WorkflowSnapshot,
)


# ── ORM helpers ───────────────────────────────────────────────────────────────

_seq = iter(range(1, 100_000))


def _make_user(role: str = "ADMIN", *, active: bool = True) -> User:
    n = next(_seq)
    u = User(email=f"u{n}@example.com", first_name=f"U{n}", last_name="Test", role=role, is_active=active)
    _db.session.add(u)
    _db.session.flush()
    return u


def _make_project(pm: User | None = None, customer: str = "Jane Doe") -> Project:
    p = Project(name=f"Roof {next(_seq)}", customer_name=customer,
                project_manager_id=pm.id if pm else None)
    _db.session.add(p)
    _db.session.flush()
    return p


def _make_workflow(project_id: int, status: str = "in_progress") -> WorkflowInstance:
    wf = WorkflowInstance(project_id=project_id, status=status)
    _db.session.add(wf)
    _db.session.flush()
    return wf


def _make_step(wf: WorkflowInstance, *, name: str = None, phase: str = "LEAD", section: str = "Intake",
               section_order: int = 0, due=None, alert_days: int = 3, role: str = "OFFICE",
               assigned: User | None = None, completed: bool = False, code: str = None) -> WorkflowStep:
    n = next(_seq)
    s = WorkflowStep(
        workflow_id=wf.id, step_code=code, name=name or f"Step {n}", phase=phase, section=section,
        section_order=section_order, step_order=n, scheduled_end_date=due, alert_days=alert_days,
        default_responsible_role=role, assigned_user_id=assigned.id if assigned else None,
        is_completed=completed,
    )
    _db.session.add(s)
    _db.session.flush()
    return s


def _alerts(**filters):
    return WorkflowAlert.query.filter_by(**filters).order_by(WorkflowAlert.id).all()


# ═══════════════════════════════════════════════════════════════════════════
#  Idempotence
# ═══════════════════════════════════════════════════════════════════════════

class TestIdempotence:

    def test_second_check_within_cooldown_writes_nothing(self, engine, now):
        _make_user("ADMIN")
        wf = _make_workflow(_make_project().id)
        _make_step(wf, completed=True)
        step = _make_step(wf, due=now + timedelta(days=3), code="lead.assign_pm")
        _db.session.commit()

        first = engine.check_workflow(wf.id, now=now)
        second = engine.check_workflow(wf.id, now=now + timedelta(hours=6))

        assert first.alerts_created == 1
        assert second.alerts_created == 0
        assert second.deduplicated == 1
        rows = _alerts(step_id=step.id, category="warning")
        assert len(rows) == 1
        assert rows[0].title == "PM assignment - Jane Doe"
        assert Notification.query.count() == 1

    def test_check_after_cooldown_writes_again(self, engine, now):
        _make_user("ADMIN")
        wf = _make_workflow(_make_project().id)
        _make_step(wf, completed=True)
        step = _make_step(wf, due=now + timedelta(days=3))
        _db.session.commit()

        engine.check_workflow(wf.id, now=now)
        engine.check_workflow(wf.id, now=now + timedelta(hours=25))

        assert len(_alerts(step_id=step.id, category="warning")) == 2

    def test_category_change_is_a_new_condition(self, engine, now):
        _make_user("ADMIN")
        wf = _make_workflow(_make_project().id)
        _make_step(wf, completed=True)
        step = _make_step(wf, due=now + timedelta(days=2))
        _db.session.commit()

        engine.check_workflow(wf.id, now=now)
        engine.check_workflow(wf.id, now=now + timedelta(days=1, hours=6))

        assert [a.category for a in _alerts(step_id=step.id)] == ["warning", "urgent"]


# ═══════════════════════════════════════════════════════════════════════════
#  Suppression
# ═══════════════════════════════════════════════════════════════════════════

class TestSuppression:

    def _setup(self, now):
        _make_user("ADMIN")
        wf = _make_workflow(_make_project().id)
        _make_step(wf, phase="LEAD", completed=True)
        step = _make_step(wf, phase="PROSPECT", section="Inspection", due=now - timedelta(days=2))
        _db.session.commit()
        return wf, step

    def test_override_vetoes_alert_and_audits_once(self, engine, now):
        wf, step = self._setup(now)
        override = create_override(wf.id, "LEAD", "APPROVED", reason="Signed early")

        result = engine.check_workflow(wf.id, now=now)
        engine.check_workflow(wf.id, now=now + timedelta(minutes=5))

        assert result.suppressed == 1
        assert WorkflowAlert.query.count() == 0
        audit = SuppressedAlert.query.all()
        assert len(audit) == 1
        assert audit[0].override_id == override.id
        assert audit[0].step_id == step.id
        assert audit[0].category == "overdue"
        assert audit[0].intended_priority == "high"
        assert audit[0].reason == "phase_override"
        assert "overdue" in audit[0].intended_message

    def test_deactivated_override_resumes_alerts(self, engine, now):
        wf, step = self._setup(now)
        override = create_override(wf.id, "LEAD", "APPROVED")
        engine.check_workflow(wf.id, now=now)
        assert WorkflowAlert.query.count() == 0

        override.is_active = False
        _db.session.commit()
        engine.check_workflow(wf.id, now=now + timedelta(minutes=5))

        assert len(_alerts(step_id=step.id, category="overdue")) == 1

    def test_other_phases_unaffected(self, engine, now):
        _make_user("ADMIN")
        wf = _make_workflow(_make_project().id)
        _make_step(wf, phase="LEAD", completed=True)
        lead_step = _make_step(wf, phase="LEAD", section="Property", due=now - timedelta(days=1))
        _db.session.commit()
        create_override(wf.id, "LEAD", "APPROVED")

        engine.check_workflow(wf.id, now=now)

        assert len(_alerts(step_id=lead_step.id)) == 1
        assert SuppressedAlert.query.count() == 0

    def test_failed_audit_write_is_retried_next_cycle(self, now):
        class _AuditFailsOnce(SuppressionFilter):
            fail = True

            def record(self, override, **kwargs):
                if self.fail:
                    self.fail = False
                    raise RuntimeError("audit insert failed")
                return super().record(override, **kwargs)

        wf, step = self._setup(now)
        create_override(wf.id, "LEAD", "APPROVED")
        engine = AlertEngine(suppression=_AuditFailsOnce())

        first = engine.check_workflow(wf.id, now=now)
        assert first.errors == 1
        assert SuppressedAlert.query.count() == 0

        engine.check_workflow(wf.id, now=now + timedelta(minutes=5))

        audit = SuppressedAlert.query.all()
        assert [a.step_id for a in audit] == [step.id]
        assert WorkflowAlert.query.count() == 0


# ═══════════════════════════════════════════════════════════════════════════
#  Recipients
# ═══════════════════════════════════════════════════════════════════════════

class TestRecipients:

    def test_role_without_users_falls_back_to_admin(self, engine, now):
        admin = _make_user("ADMIN")
        _make_user("WORKER")
        wf = _make_workflow(_make_project().id)
        _make_step(wf, completed=True)
        _make_step(wf, due=now + timedelta(days=2), role="FIELD_DIRECTOR")
        _db.session.commit()

        engine.check_workflow(wf.id, now=now)

        assert [a.recipient_id for a in _alerts()] == [admin.id]

    def test_no_admin_or_manager_creates_nothing_and_logs(self, engine, now, caplog):
        _make_user("WORKER")
        wf = _make_workflow(_make_project().id)
        _make_step(wf, completed=True)
        _make_step(wf, due=now + timedelta(days=2), role="OFFICE")
        _db.session.commit()

        with caplog.at_level(logging.ERROR, logger="buildtrack.services.alert_engine"):
            result = engine.check_workflow(wf.id, now=now)

        assert result.alerts_created == 0
        assert result.errors == 1
        assert WorkflowAlert.query.count() == 0
        assert any("No eligible recipient" in r.getMessage() for r in caplog.records)

    def test_resolution_failure_releases_dedup_reservation(self, engine, now):
        _make_user("WORKER")
        wf = _make_workflow(_make_project().id)
        _make_step(wf, completed=True)
        _make_step(wf, due=now + timedelta(days=2))
        _db.session.commit()
        engine.check_workflow(wf.id, now=now)

        _make_user("ADMIN")
        _db.session.commit()
        result = engine.check_workflow(wf.id, now=now + timedelta(minutes=5))

        assert result.alerts_created == 1

    def test_overdue_notifies_assignee_pm_and_management(self, engine, now):
        admin = _make_user("ADMIN")
        pm_user = _make_user("PROJECT_MANAGER")
        worker = _make_user("WORKER")
        wf = _make_workflow(_make_project(pm=pm_user).id)
        _make_step(wf, completed=True)
        _make_step(wf, due=now - timedelta(days=3), assigned=worker)
        _db.session.commit()

        engine.check_workflow(wf.id, now=now)

        rows = _alerts(category="overdue")
        assert [a.recipient_id for a in rows] == [worker.id, pm_user.id, admin.id]
        assert {a.days_overdue for a in rows} == {3}


# ═══════════════════════════════════════════════════════════════════════════
#  Section start
# ═══════════════════════════════════════════════════════════════════════════

class TestSectionStart:

    def test_brand_new_workflow_alerts_current_phase_steps(self, engine, now):
        admin = _make_user("ADMIN")
        wf = _make_workflow(_make_project().id, status="not_started")
        lead_steps = [
            _make_step(wf, section="Intake"),
            _make_step(wf, section="Intake"),
            _make_step(wf, section="Property", section_order=1),
        ]
        _make_step(wf, phase="PROSPECT", section="Inspection")
        _make_step(wf, phase="PROSPECT", section="Estimate", section_order=1)
        _db.session.commit()

        result = engine.check_workflow(wf.id, now=now)

        rows = _alerts(category="section_start")
        assert result.alerts_created == 3
        assert sorted(a.step_id for a in rows) == sorted(s.id for s in lead_steps)
        assert {a.recipient_id for a in rows} == {admin.id}
        assert {a.priority for a in rows} == {"medium"}

    def test_completed_section_triggers_next_section_via_signal(self, app, engine, now):
        _make_user("ADMIN")
        wf = _make_workflow(_make_project().id)
        _make_step(wf, section="A", completed=True)
        last_in_a = _make_step(wf, section="A")
        b1 = _make_step(wf, section="B", section_order=1)
        b2 = _make_step(wf, section="B", section_order=1)
        _db.session.commit()

        engine.check_workflow(wf.id)
        assert [a.step_id for a in _alerts(category="section_start")] == [last_in_a.id]

        last_in_a.is_completed = True
        _db.session.commit()
        signals.step_completed.send(app, workflow_id=wf.id)

        rows = _alerts(category="section_start", section="B")
        assert sorted(a.step_id for a in rows) == sorted([b1.id, b2.id])

        signals.step_completed.send(app, workflow_id=wf.id)
        assert len(_alerts(category="section_start", section="B")) == 2

    def test_brand_new_steps_not_reannounced_by_section(self, engine, now):
        _make_user("ADMIN")
        wf = _make_workflow(_make_project().id, status="not_started")
        first = _make_step(wf, section="A")
        _make_step(wf, section="A")
        _db.session.commit()
        engine.check_workflow(wf.id, now=now)
        assert len(_alerts(category="section_start")) == 2

        first.is_completed = True
        _db.session.commit()
        engine.check_workflow(wf.id, now=now + timedelta(minutes=1))

        assert len(_alerts(category="section_start")) == 2

    def test_partially_delivered_section_retries_only_missing_step(self, now):
        class _FailsForOneStep(RecipientResolver):
            failing_step_id = None

            def resolve(self, step, project, category):
                if step.id == self.failing_step_id:
                    raise RecipientResolutionError(step.id, step.default_responsible_role, category.value)
                return super().resolve(step, project, category)

        _make_user("ADMIN")
        wf = _make_workflow(_make_project().id)
        _make_step(wf, section="A", completed=True)
        b1 = _make_step(wf, section="B", section_order=1)
        b2 = _make_step(wf, section="B", section_order=1)
        _db.session.commit()
        resolver = _FailsForOneStep()
        resolver.failing_step_id = b2.id
        engine = AlertEngine(resolver=resolver)

        first = engine.check_workflow(wf.id, now=now)
        assert (first.alerts_created, first.errors) == (1, 1)

        resolver.failing_step_id = None
        second = engine.check_workflow(wf.id, now=now + timedelta(minutes=5))
        third = engine.check_workflow(wf.id, now=now + timedelta(minutes=10))

        assert second.alerts_created == 1
        assert third.alerts_created == 0
        rows = _alerts(category="section_start", section="B")
        assert sorted(a.step_id for a in rows) == sorted([b1.id, b2.id])

    def test_project_created_signal_checks_its_workflows(self, app, engine):
        _make_user("ADMIN")
        project = _make_project()
        wf = _make_workflow(project.id, status="not_started")
        _make_step(wf)
        _db.session.commit()

        signals.project_created.send(app, project_id=project.id)

        assert len(_alerts(workflow_id=wf.id)) == 1


# ═══════════════════════════════════════════════════════════════════════════
#  Data integrity & failures
# ═══════════════════════════════════════════════════════════════════════════

class TestFailureHandling:

    def test_orphaned_workflow_deleted_during_sweep(self, engine, now):
        _make_user("ADMIN")
        wf = _make_workflow(project_id=424242, status="not_started")
        _make_step(wf, due=now - timedelta(days=5))
        _db.session.commit()
        wf_id = wf.id

        result = engine.run_full_sweep(now=now)

        assert result.orphans_deleted == 1
        assert _db.session.get(WorkflowInstance, wf_id) is None
        assert WorkflowStep.query.filter_by(workflow_id=wf_id).count() == 0
        assert WorkflowAlert.query.count() == 0

    def test_workflow_without_steps_skipped(self, engine, now):
        wf = _make_workflow(_make_project().id)
        _db.session.commit()
        result = engine.check_workflow(wf.id, now=now)
        assert result.status == "skipped_empty"
        assert _db.session.get(WorkflowInstance, wf.id) is not None

    def test_completed_workflows_not_swept(self, engine, now):
        _make_user("ADMIN")
        wf = _make_workflow(_make_project().id, status="completed")
        _make_step(wf, due=now - timedelta(days=1))
        _db.session.commit()
        result = engine.run_full_sweep(now=now)
        assert result.workflows_checked == 0

    def test_time_budget_exceeded_abandons_workflow(self, now):
        _make_user("ADMIN")
        wf = _make_workflow(_make_project().id, status="not_started")
        _make_step(wf)
        _db.session.commit()
        engine = AlertEngine(timeout_seconds=-1)

        failures = []
        with signals.workflow_check_failed.connected_to(lambda s, **kw: failures.append(kw)):
            result = engine.check_workflow(wf.id, now=now)

        assert result.status == "abandoned"
        assert WorkflowAlert.query.count() == 0
        assert failures and failures[0]["workflow_id"] == wf.id

    def test_transient_error_abandons_workflow(self, now):
        class _FlakyReader:
            def load(self, workflow_id):
                raise OperationalError("SELECT", {}, Exception("connection reset"))

        result = AlertEngine(reader=_FlakyReader()).check_workflow(1, now=now)
        assert result.status == "abandoned"

    def test_step_failure_does_not_abort_workflow(self, now):
        admin = _make_user("ADMIN")
        wf = _make_workflow(_make_project().id)
        _make_step(wf, completed=True)
        bad = _make_step(wf, section="B", section_order=1, due=now - timedelta(days=1))
        good = _make_step(wf, section="B", section_order=1, due=now + timedelta(hours=3))
        _db.session.commit()

        class _BrokenForOneStep(RecipientResolver):
            def resolve(self, step, project, category):
                if step.id == bad.id:
                    raise RuntimeError("boom")
                return super().resolve(step, project, category)

        result = AlertEngine(resolver=_BrokenForOneStep()).check_workflow(wf.id, now=now)

        assert result.errors == 1
        assert [a.step_id for a in _alerts(recipient_id=admin.id)] == [good.id]


# ═══════════════════════════════════════════════════════════════════════════
#  Sweeps
# ═══════════════════════════════════════════════════════════════════════════

class TestSweeps:

    def test_overlapping_sweep_is_skipped(self, engine):
        skipped = []
        engine._sweep_lock.acquire()
        try:
            with signals.sweep_skipped.connected_to(lambda s, **kw: skipped.append(kw["trigger"])):
                scheduled = engine.run_full_sweep()
                manual = engine.trigger_manual_sweep()
        finally:
            engine._sweep_lock.release()

        assert scheduled.status == "skipped"
        assert manual.status == "skipped"
        assert skipped == ["scheduled", "manual"]

    def test_event_check_not_blocked_by_sweep(self, engine, now):
        _make_user("ADMIN")
        wf = _make_workflow(_make_project().id, status="not_started")
        _make_step(wf)
        _db.session.commit()

        engine._sweep_lock.acquire()
        try:
            result = engine.check_workflow(wf.id, now=now)
        finally:
            engine._sweep_lock.release()

        assert result.alerts_created == 1

    def test_sweep_emits_structured_events(self, engine, now):
        _make_user("ADMIN")
        wf = _make_workflow(_make_project().id, status="not_started")
        _make_step(wf)
        _db.session.commit()

        events = []
        with signals.sweep_started.connected_to(lambda s, **kw: events.append("started")), \
                signals.workflow_checked.connected_to(lambda s, **kw: events.append("checked")), \
                signals.sweep_completed.connected_to(lambda s, **kw: events.append(kw["result"])):
            engine.run_full_sweep(now=now)

        assert events[:2] == ["started", "checked"]
        summary = events[2]
        assert summary.status == "completed"
        assert summary.workflows_checked == 1
        assert summary.alerts_created == 1
        assert "checks" not in summary.to_dict()

    def test_fast_sweep_skips_warnings(self, engine, now):
        _make_user("ADMIN")
        wf = _make_workflow(_make_project().id)
        _make_step(wf, completed=True)
        _make_step(wf, section="B", section_order=1, due=now + timedelta(days=2))
        _db.session.commit()

        fast = engine.run_full_sweep(FAST_SWEEP_CATEGORIES, now=now)
        assert fast.alerts_created == 0
        policy = engine.run_full_sweep(now=now)
        assert policy.alerts_created == 1
        assert _alerts()[0].category == "warning"

    def test_purge_history(self, engine, now):
        _make_user("ADMIN")
        wf = _make_workflow(_make_project().id, status="not_started")
        _make_step(wf)
        _db.session.commit()
        engine.check_workflow(wf.id, now=now - timedelta(days=8))
        assert len(engine.dedup) == 1
        assert engine.purge_history(now) == 1
        assert len(engine.dedup) == 0


class TestInjectedCollaborators:
    """The engine runs against plain stand-ins, no rows involved."""

    class _Reader:
        def __init__(self, workflows):
            self.workflows = workflows

        def active_workflow_ids(self):
            return sorted(self.workflows)

        def load(self, workflow_id):
            return self.workflows.get(workflow_id)

        def project_exists(self, project_id):
            return True

        def load_project(self, project_id):
            return ProjectSnapshot(id=project_id, name=f"Project {project_id}")

    class _NoSuppression:
        def check(self, workflow_id, phase):
            return None

    class _Resolver:
        def resolve(self, step, project, category):
            return ["someone"]

    class _Writer:
        def __init__(self):
            self.written = []

        def write(self, candidate, item, composed, recipients, *, project_id):
            from flask import current_app
            assert current_app
            self.written.append((candidate.workflow_id, item.step.id, item.category))
            return list(recipients)

    def _workflows(self):
        return {
            wf_id: WorkflowSnapshot(
                id=wf_id, project_id=wf_id * 10, status="not_started",
                steps=(StepSnapshot(id=wf_id * 100, workflow_id=wf_id, name="Intake",
                                    phase="LEAD", section="Intake"),),
            )
            for wf_id in range(1, 7)
        }

    @pytest.mark.parametrize("workers", [1, 4])
    def test_sweep_with_stand_ins(self, workers, now):
        writer = self._Writer()
        engine = AlertEngine(
            reader=self._Reader(self._workflows()),
            resolver=self._Resolver(),
            suppression=self._NoSuppression(),
            writer=writer,
            max_workers=workers,
        )

        result = engine.run_full_sweep(now=now)

        assert result.workflows_checked == 6
        assert result.alerts_created == 6
        assert sorted(w[0] for w in writer.written) == [1, 2, 3, 4, 5, 6]
        assert {w[2] for w in writer.written} == {AlertCategory.SECTION_START}

    def test_full_sweep_waits_for_fast_sweep_in_flight(self, now):
        started = threading.Event()
        release = threading.Event()
        workflows = self._workflows()

        class _SlowFirstSweepReader(self._Reader):
            calls = 0

            def active_workflow_ids(self):
                self.calls += 1
                if self.calls == 1:
                    started.set()
                    release.wait(5)
                    return []
                return super().active_workflow_ids()

        writer = self._Writer()
        engine = AlertEngine(
            reader=_SlowFirstSweepReader(workflows),
            resolver=self._Resolver(),
            suppression=self._NoSuppression(),
            writer=writer,
            sweep_wait_seconds=5,
        )

        results = {}
        fast = threading.Thread(
            target=lambda: results.update(fast=engine.run_full_sweep(FAST_SWEEP_CATEGORIES, trigger="fast")))
        fast.start()
        assert started.wait(5)

        second_fast = engine.run_full_sweep(FAST_SWEEP_CATEGORIES, trigger="fast", now=now)
        timer = threading.Timer(0.2, release.set)
        timer.start()
        policy = engine.run_full_sweep(trigger="policy", now=now)
        fast.join(5)

        assert second_fast.status == "skipped"
        assert results["fast"].status == "completed"
        assert policy.status == "completed"
        assert policy.workflows_checked == 6
        assert len(writer.written) == 6

    def test_full_sweep_skipped_behind_another_full_sweep(self, now):
        engine = AlertEngine(reader=self._Reader({}), sweep_wait_seconds=5)
        engine._sweep_lock.acquire()
        try:
            result = engine.run_full_sweep(trigger="policy", now=now)
        finally:
            engine._sweep_lock.release()
        assert result.status == "skipped"


# ═══════════════════════════════════════════════════════════════════════════
#  Step completion notices
# ═══════════════════════════════════════════════════════════════════════════

class TestStepCompletionNotice:

    def _setup(self):
        pm_user = _make_user("PROJECT_MANAGER")
        admin = _make_user("ADMIN")
        manager = _make_user("MANAGER")
        worker = _make_user("WORKER")
        project = _make_project(pm=pm_user, customer="Jane Doe")
        project.team_members = [admin, manager, worker]
        wf = _make_workflow(project.id)
        step = _make_step(wf, name="Site Inspection", phase="PROSPECT", section="Inspection", completed=True)
        _make_step(wf, phase="PROSPECT", section="Estimate", section_order=1)
        _db.session.commit()
        return wf, step, pm_user, admin, manager

    def _completion_notices(self):
        return Notification.query.filter_by(entity_type="workflow_step").order_by(Notification.id).all()

    def test_signal_notifies_pm_and_management_except_completer(self, app, engine):
        wf, step, pm_user, admin, manager = self._setup()

        signals.step_completed.send(app, workflow_id=wf.id, step_id=step.id, completed_by=admin.id)

        notices = self._completion_notices()
        assert [n.recipient_id for n in notices] == [pm_user.id, manager.id]
        assert notices[0].message == 'PROSPECT step "Site Inspection" completed for Jane Doe'
        assert notices[0].title == "Step completed - Jane Doe"
        assert {n.entity_id for n in notices} == {step.id}
        assert {n.severity for n in notices} == {"info"}
        # the event-driven check still runs for the next section
        assert len(_alerts(workflow_id=wf.id, category="section_start")) > 0

    def test_signal_without_step_id_sends_no_notice(self, app, engine):
        wf, _step, *_ = self._setup()
        signals.step_completed.send(app, workflow_id=wf.id)
        assert self._completion_notices() == []

    def test_unknown_step_is_ignored(self, engine):
        wf, *_ = self._setup()
        assert engine.notify_step_completed(wf.id, 999999) == 0
        assert self._completion_notices() == []
