"""
BuildTrack Workflow Alerts
Scheduling & alert-history models.

Models:
    - ScheduledJob: Persisted schedule registry (run history + config)
    - AlertDedupEntry: Persisted "alert already sent" marker, unique per time bucket
"""

from datetime import datetime, timezone

from buildtrack.models import db


# ── Constants ────────────────────────────────────────────────────────────────

JOB_STATUSES = {"active", "paused", "completed", "failed"}
RUN_STATUSES = {"success", "failed", "skipped"}


class ScheduledJob(db.Model):
    """
    Registry of scheduled background jobs.

    Tracks job configuration, last run time, and run history.
    The APScheduler timer reads its interval from ``schedule_config``.
    """

    __tablename__ = "scheduled_jobs"

    id = db.Column(db.Integer, primary_key=True)
    job_name = db.Column(db.String(100), unique=True, nullable=False,
                         comment="Unique job identifier: workflow_alert_fast_sweep, etc.")
    description = db.Column(db.String(500), default="")
    schedule_type = db.Column(db.String(30), default="interval",
                              comment="interval, cron, once")
    schedule_config = db.Column(db.JSON, default=dict,
                                comment="Interval or cron config")
    status = db.Column(db.String(20), default="active",
                       comment="active, paused, completed, failed")
    is_enabled = db.Column(db.Boolean, default=True)

    # Execution tracking
    last_run_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_run_status = db.Column(db.String(20), nullable=True,
                                comment="success, failed, skipped")
    last_run_duration_ms = db.Column(db.Integer, nullable=True)
    last_run_result = db.Column(db.JSON, nullable=True,
                                comment="Summary of last execution")
    run_count = db.Column(db.Integer, default=0)
    error_count = db.Column(db.Integer, default=0)
    last_error = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    def record_run(self, *, status="success", duration_ms=0, result=None, error=None):
        """Record a job execution."""
        self.last_run_at = datetime.now(timezone.utc)
        self.last_run_status = status
        self.last_run_duration_ms = duration_ms
        self.last_run_result = result
        self.run_count = (self.run_count or 0) + 1
        if status == "failed":
            self.error_count = (self.error_count or 0) + 1
            self.last_error = str(error) if error else None

    def to_dict(self):
        return {
            "id": self.id,
            "job_name": self.job_name,
            "description": self.description,
            "schedule_type": self.schedule_type,
            "schedule_config": self.schedule_config,
            "status": self.status,
            "is_enabled": self.is_enabled,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_run_status": self.last_run_status,
            "last_run_duration_ms": self.last_run_duration_ms,
            "last_run_result": self.last_run_result,
            "run_count": self.run_count,
            "error_count": self.error_count,
            "last_error": self.last_error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ScheduledJob {self.job_name} [{self.status}]>"


class AlertDedupEntry(db.Model):
    """
    One row per (workflow, step-or-section, category, cooldown bucket).

    The unique constraint is the dedup guarantee for multi-process
    deployments: a second insert for the same bucket fails.
    """

    __tablename__ = "alert_dedup_entries"
    __table_args__ = (
        db.UniqueConstraint("workflow_id", "scope_key", "category", "bucket",
                            name="uq_alert_dedup_bucket"),
    )

    id = db.Column(db.Integer, primary_key=True)
    workflow_id = db.Column(db.Integer, nullable=False)
    scope_key = db.Column(db.String(250), nullable=False,
                          comment="step:<id> or section:<phase>/<section>")
    category = db.Column(db.String(20), nullable=False)
    bucket = db.Column(db.BigInteger, nullable=False, comment="floor(epoch / cooldown_seconds)")
    sent_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True,
                        default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<AlertDedupEntry {self.workflow_id}:{self.scope_key}:{self.category}@{self.bucket}>"
