"""
BuildTrack Workflow Alerts
Tests — Phase overrides and the suppression filter.
"""

import pytest

from buildtrack.core.exceptions import NotFoundError, ValidationError
from buildtrack.models import db as _db
from buildtrack.models.phase_override import PhaseOverride, SuppressedAlert
from buildtrack.models.workflow import WorkflowInstance
from buildtrack.services.suppression import SuppressionFilter, create_override, phases_between


def _make_workflow(project_id: int = 1) -> WorkflowInstance:
    wf = WorkflowInstance(project_id=project_id, status="in_progress")
    _db.session.add(wf)
    _db.session.flush()
    return wf


class TestPhasesBetween:

    @pytest.mark.parametrize("from_phase, to_phase, expected", [
        ("LEAD", "APPROVED", ["PROSPECT"]),
        ("LEAD", "COMPLETION", ["PROSPECT", "APPROVED", "EXECUTION", "SECOND_SUPPLEMENT"]),
        ("LEAD", "PROSPECT", []),
        ("EXECUTION", "LEAD", []),
        ("LEAD", "LEAD", []),
        ("LEAD", "NOWHERE", []),
    ])
    def test_phases_between(self, from_phase, to_phase, expected):
        assert phases_between(from_phase, to_phase) == expected


class TestCreateOverride:

    def test_records_skipped_phases(self):
        wf = _make_workflow(project_id=7)
        override = create_override(wf.id, "PROSPECT", "EXECUTION", reason="Insurance approved", user_id=None)
        assert override.id is not None
        assert override.is_active is True
        assert override.project_id == 7
        assert override.suppressed_phases == ["APPROVED"]
        assert override.to_dict()["reason"] == "Insurance approved"

    def test_new_override_deactivates_previous(self):
        wf = _make_workflow()
        first = create_override(wf.id, "LEAD", "APPROVED")
        second = create_override(wf.id, "LEAD", "EXECUTION")
        _db.session.refresh(first)
        assert first.is_active is False
        assert second.is_active is True
        assert PhaseOverride.query.filter_by(workflow_id=wf.id, is_active=True).count() == 1

    def test_unknown_workflow(self):
        with pytest.raises(NotFoundError):
            create_override(999, "LEAD", "APPROVED")

    def test_jump_without_skipped_phase_rejected(self):
        wf = _make_workflow()
        with pytest.raises(ValidationError) as exc_info:
            create_override(wf.id, "APPROVED", "LEAD")
        assert exc_info.value.details == {"from_phase": "APPROVED", "to_phase": "LEAD"}


class TestSuppressionFilter:

    def test_check_returns_covering_override(self):
        wf = _make_workflow()
        override = create_override(wf.id, "LEAD", "EXECUTION")
        f = SuppressionFilter()
        assert f.check(wf.id, "PROSPECT").id == override.id
        assert f.check(wf.id, "APPROVED").id == override.id
        assert f.check(wf.id, "LEAD") is None
        assert f.check(wf.id, "EXECUTION") is None

    def test_inactive_override_ignored(self):
        wf = _make_workflow()
        override = create_override(wf.id, "LEAD", "APPROVED")
        override.is_active = False
        _db.session.commit()
        assert SuppressionFilter().check(wf.id, "PROSPECT") is None

    def test_other_workflow_unaffected(self):
        wf = _make_workflow()
        other = _make_workflow()
        create_override(wf.id, "LEAD", "APPROVED")
        assert SuppressionFilter().check(other.id, "PROSPECT") is None

    def test_record_writes_audit_row(self):
        wf = _make_workflow()
        override = create_override(wf.id, "LEAD", "APPROVED")
        SuppressionFilter().record(
            override, workflow_id=wf.id, step_id=None, phase="PROSPECT", section="Inspection",
            category="overdue", title="Site inspection - Jane", message="late", priority="high",
        )
        _db.session.commit()
        row = SuppressedAlert.query.one()
        assert row.override_id == override.id
        assert row.reason == "phase_override"
        assert row.to_dict()["intended_title"] == "Site inspection - Jane"
        assert override.suppressed_alerts.count() == 1
