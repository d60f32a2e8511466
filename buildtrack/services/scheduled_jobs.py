"""
BuildTrack Workflow Alerts
Scheduled Jobs.

Jobs:
    - workflow_alert_fast_sweep: overdue / urgent / section_start, every 5 minutes
    - workflow_alert_policy_sweep: all categories, hourly
    - alert_history_cleanup: evict dedup history older than 7 days, daily

The two sweeps share the engine's in-progress flag, so a fast sweep firing
while the hourly one is still running is skipped.
"""

from __future__ import annotations

import logging
from typing import Any

from buildtrack.services.alert_engine import FAST_SWEEP_CATEGORIES
from buildtrack.services.scheduler_service import register_job

logger = logging.getLogger(__name__)


@register_job("workflow_alert_fast_sweep")
def fast_sweep(app) -> dict[str, Any]:
    """Check active workflows for overdue, urgent and section-start alerts."""
    engine = app.extensions["alert_engine"]
    return engine.run_full_sweep(FAST_SWEEP_CATEGORIES, trigger="fast").to_dict()


@register_job("workflow_alert_policy_sweep")
def policy_sweep(app) -> dict[str, Any]:
    """Check active workflows against every alert policy, warnings included."""
    engine = app.extensions["alert_engine"]
    return engine.run_full_sweep(trigger="policy").to_dict()


@register_job("alert_history_cleanup")
def cleanup_alert_history(app) -> dict[str, Any]:
    """Evict dedup history entries older than ALERT_DEDUP_MAX_AGE_DAYS."""
    engine = app.extensions["alert_engine"]
    removed = engine.purge_history()
    return {"removed": removed}
