"""
BuildTrack Workflow Alerts
Scheduler Service.

Background job registry plus an APScheduler timer that fires registered
jobs on fixed intervals.

Architecture:
    - Job functions register themselves via @register_job
    - SchedulerService runs a job inside the Flask app context and records
      the run on its ScheduledJob row
    - A job already in flight is skipped (logged + recorded), not queued
    - start_scheduler() starts one BackgroundScheduler per process, only
      when ENABLE_SCHEDULER is true
    - Jobs can also be run manually (flask alerts ..., tests)
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from flask import Flask

from buildtrack.models import db
from buildtrack.models.scheduling import ScheduledJob

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Job Registry
# ═══════════════════════════════════════════════════════════════════════════

_job_registry: dict[str, Callable] = {}


def register_job(name: str):
    """Decorator to register a job function.

    Usage:
        @register_job("workflow_alert_fast_sweep")
        def fast_sweep(app):
            ...
    """
    def decorator(fn: Callable) -> Callable:
        _job_registry[name] = fn
        return fn
    return decorator


def get_registered_jobs() -> dict[str, Callable]:
    """Return all registered job functions."""
    return dict(_job_registry)


class SchedulerService:
    """
    Job registration, persistence and execution.

    Jobs are executed within Flask app context.
    """

    _app: Flask | None = None
    _in_flight: set[str] = set()
    _lock = threading.Lock()

    @classmethod
    def init_app(cls, app: Flask) -> None:
        """Initialize scheduler with Flask app context."""
        cls._app = app
        app.extensions["scheduler"] = cls
        logger.info("SchedulerService initialized with %d registered jobs",
                    len(_job_registry))

    @classmethod
    def ensure_jobs_registered(cls) -> list[ScheduledJob]:
        """
        Ensure all registered jobs have a corresponding DB record.
        Creates missing records with the interval from app config.
        """
        if not cls._app:
            return []

        created = []
        with cls._app.app_context():
            for name, fn in _job_registry.items():
                existing = ScheduledJob.query.filter_by(job_name=name).first()
                if not existing:
                    job = ScheduledJob(
                        job_name=name,
                        description=(fn.__doc__ or f"Scheduled job: {name}").strip().splitlines()[0],
                        schedule_type="interval",
                        schedule_config=default_schedule(name, cls._app.config),
                        status="active",
                        is_enabled=True,
                    )
                    db.session.add(job)
                    created.append(job)
            if created:
                db.session.commit()
                logger.info("Created %d scheduled job records", len(created))
        return created

    @classmethod
    def is_running(cls, job_name: str) -> bool:
        with cls._lock:
            return job_name in cls._in_flight

    @classmethod
    def run_job(cls, job_name: str) -> dict:
        """
        Execute a single job by name.

        Returns:
            Dict with status (success | failed | skipped | error),
            duration_ms, result or error.
        """
        fn = _job_registry.get(job_name)
        if not fn:
            return {"status": "error", "error": f"Unknown job: {job_name}"}

        if not cls._app:
            return {"status": "error", "error": "Scheduler not initialized"}

        with cls._lock:
            if job_name in cls._in_flight:
                logger.warning("Job %s still running, skipping this run", job_name,
                               extra={"event_type": "job_skipped", "job_name": job_name})
                cls._record(job_name, status="skipped", duration_ms=0,
                            result={"reason": "previous run in flight"}, error=None)
                return {"job_name": job_name, "status": "skipped", "duration_ms": 0,
                        "result": None, "error": None}
            cls._in_flight.add(job_name)

        start = time.monotonic()
        result = None
        error = None
        status = "success"

        try:
            with cls._app.app_context():
                result = fn(cls._app)
        except Exception as exc:
            status = "failed"
            error = str(exc)
            logger.exception("Job %s failed: %s", job_name, exc,
                             extra={"event_type": "job_failed", "job_name": job_name})
        finally:
            with cls._lock:
                cls._in_flight.discard(job_name)

        duration_ms = int((time.monotonic() - start) * 1000)
        cls._record(
            job_name,
            status=status,
            duration_ms=duration_ms,
            result=result if isinstance(result, dict) else {"output": str(result)},
            error=error,
        )
        logger.info("Job %s finished: %s in %dms", job_name, status, duration_ms,
                    extra={"event_type": "job_finished", "job_name": job_name,
                           "duration_ms": duration_ms})

        return {
            "job_name": job_name,
            "status": status,
            "duration_ms": duration_ms,
            "result": result,
            "error": error,
        }

    @classmethod
    def _record(cls, job_name, **run) -> None:
        try:
            with cls._app.app_context():
                job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
                if job_record:
                    job_record.record_run(**run)
                    db.session.commit()
        except Exception:
            logger.exception("Failed to update job record for %s", job_name)

    @classmethod
    def list_jobs(cls) -> list[dict]:
        """List all registered jobs with their DB status."""
        jobs = []
        for name in _job_registry:
            job_record = ScheduledJob.query.filter_by(job_name=name).first()
            jobs.append({
                "job_name": name,
                "registered": True,
                "running": cls.is_running(name),
                "db_record": job_record.to_dict() if job_record else None,
            })
        return jobs

    @classmethod
    def toggle_job(cls, job_name: str, enabled: bool) -> dict | None:
        """Enable or disable a scheduled job."""
        job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
        if not job_record:
            return None
        job_record.is_enabled = enabled
        job_record.status = "active" if enabled else "paused"
        db.session.commit()
        return job_record.to_dict()

    @classmethod
    def _run_if_enabled(cls, job_name: str) -> None:
        with cls._app.app_context():
            job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
            enabled = job_record is None or job_record.is_enabled
        if not enabled:
            logger.debug("Job %s is paused, not running", job_name)
            return
        cls.run_job(job_name)


def default_schedule(job_name: str, cfg) -> dict:
    """Interval trigger kwargs for known jobs, read from app config."""
    defaults = {
        "workflow_alert_fast_sweep": {"minutes": cfg.get("ALERT_FAST_SWEEP_MINUTES", 5)},
        "workflow_alert_policy_sweep": {"minutes": cfg.get("ALERT_POLICY_SWEEP_MINUTES", 60)},
        "alert_history_cleanup": {"hours": cfg.get("ALERT_HISTORY_CLEANUP_HOURS", 24)},
    }
    return defaults.get(job_name, {"hours": 24})


def first_run_offset(job_name: str, cfg) -> timedelta:
    """Delay added to a job's first fire on top of its interval.

    The policy sweep is shifted by half a fast-sweep interval, which keeps
    it off the fast sweep's ticks.
    """
    if job_name == "workflow_alert_policy_sweep":
        return timedelta(minutes=cfg.get("ALERT_FAST_SWEEP_MINUTES", 5)) / 2
    return timedelta(0)


# ═══════════════════════════════════════════════════════════════════════════
#  Periodic timer
# ═══════════════════════════════════════════════════════════════════════════

_scheduler: BackgroundScheduler | None = None


def start_scheduler(app: Flask) -> BackgroundScheduler | None:
    """
    Start APScheduler once per process.

    - Respects ENABLE_SCHEDULER
    - No double start (reloader, repeated create_app)
    - max_instances=1 / coalesce=True on every job
    """
    global _scheduler

    if not app.config.get("ENABLE_SCHEDULER", False):
        logger.info("APScheduler disabled via config (ENABLE_SCHEDULER=False)")
        return None

    if _scheduler is not None:
        logger.info("APScheduler already running, skipping initialization")
        return _scheduler

    SchedulerService.ensure_jobs_registered()

    scheduler = BackgroundScheduler(timezone=app.config.get("SCHEDULER_TIMEZONE", "UTC"))
    started_at = datetime.now(timezone.utc)
    for name in _job_registry:
        interval = default_schedule(name, app.config)
        scheduler.add_job(
            SchedulerService._run_if_enabled,
            trigger="interval",
            args=[name],
            id=name,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            start_date=started_at + timedelta(**interval) + first_run_offset(name, app.config),
            **interval,
        )
    scheduler.start()
    _scheduler = scheduler
    logger.info("APScheduler started with jobs: %s", ", ".join(sorted(_job_registry)))
    return scheduler


def shutdown_scheduler() -> None:
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
