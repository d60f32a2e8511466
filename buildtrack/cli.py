"""
Operator commands for the alert engine.

    flask alerts sweep [--fast]
    flask alerts check <workflow_id>
    flask alerts stats
    flask alerts cleanup
    flask alerts jobs
"""

import json
from datetime import datetime, timezone

import click
from flask.cli import AppGroup

from buildtrack.services.alert_engine import FAST_SWEEP_CATEGORIES, get_alert_engine
from buildtrack.services.alert_writer import alert_statistics
from buildtrack.services.scheduler_service import SchedulerService

alerts_cli = AppGroup("alerts", help="Workflow alert engine commands.")


def _echo(data) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


@alerts_cli.command("sweep")
@click.option("--fast", is_flag=True, help="Only overdue, urgent and section-start alerts.")
def sweep_cmd(fast):
    """Run a full sweep now (skipped if one is already running)."""
    engine = get_alert_engine()
    result = engine.trigger_manual_sweep(FAST_SWEEP_CATEGORIES if fast else None)
    _echo(result.to_dict())


@alerts_cli.command("check")
@click.argument("workflow_id", type=int)
def check_cmd(workflow_id):
    """Check a single workflow."""
    _echo(get_alert_engine().check_workflow(workflow_id).to_dict())


@alerts_cli.command("stats")
def stats_cmd():
    """Alert counts for the last 7 days / 24 hours."""
    _echo(alert_statistics(datetime.now(timezone.utc)))


@alerts_cli.command("cleanup")
def cleanup_cmd():
    """Evict old dedup history."""
    removed = get_alert_engine().purge_history()
    _echo({"removed": removed})


@alerts_cli.command("jobs")
def jobs_cmd():
    """List scheduled jobs and their last run."""
    SchedulerService.ensure_jobs_registered()
    _echo(SchedulerService.list_jobs())
