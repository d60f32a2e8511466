"""
BuildTrack Workflow Alerts
Tests — `flask alerts ...` commands.
"""

import json

from buildtrack.models import db as _db
from buildtrack.models.auth import User
from buildtrack.models.notification import WorkflowAlert
from buildtrack.models.project import Project
from buildtrack.models.workflow import WorkflowInstance, WorkflowStep


def _seed_brand_new_workflow() -> int:
    _db.session.add(User(email="admin@example.com", role="ADMIN", is_active=True))
    project = Project(name="Roof 9", customer_name="Jane Doe")
    _db.session.add(project)
    _db.session.flush()
    wf = WorkflowInstance(project_id=project.id, status="not_started")
    _db.session.add(wf)
    _db.session.flush()
    _db.session.add(WorkflowStep(workflow_id=wf.id, name="Input Customer Information",
                                 step_code="lead.customer_info", phase="LEAD", section="Intake"))
    _db.session.commit()
    return wf.id


class TestAlertsCli:

    def test_sweep(self, runner):
        _seed_brand_new_workflow()
        result = runner.invoke(args=["alerts", "sweep"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["trigger"] == "manual"
        assert data["alerts_created"] == 1
        assert WorkflowAlert.query.one().title == "Customer info - Jane Doe"

    def test_fast_sweep(self, runner):
        result = runner.invoke(args=["alerts", "sweep", "--fast"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["status"] == "completed"

    def test_check(self, runner):
        wf_id = _seed_brand_new_workflow()
        result = runner.invoke(args=["alerts", "check", str(wf_id)])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["workflow_id"] == wf_id
        assert data["status"] == "ok"
        assert data["alerts_created"] == 1

    def test_check_unknown_workflow(self, runner):
        result = runner.invoke(args=["alerts", "check", "9999"])
        assert json.loads(result.output)["status"] == "not_found"

    def test_stats(self, runner):
        _seed_brand_new_workflow()
        runner.invoke(args=["alerts", "sweep"])
        result = runner.invoke(args=["alerts", "stats"])
        data = json.loads(result.output)
        assert data["last_7_days"]["medium"] == 1
        assert data["last_24_hours"] == 1

    def test_cleanup(self, runner):
        result = runner.invoke(args=["alerts", "cleanup"])
        assert json.loads(result.output) == {"removed": 0}

    def test_jobs(self, runner):
        result = runner.invoke(args=["alerts", "jobs"])
        names = {j["job_name"] for j in json.loads(result.output)}
        assert "workflow_alert_fast_sweep" in names
