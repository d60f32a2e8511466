"""
BuildTrack Workflow Alerts
Flask Application Factory.

Usage:
    from buildtrack import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import importlib
import logging
import os

from flask import Flask

from buildtrack.config import config
from buildtrack.models import db
from buildtrack.middleware.logging_config import configure_logging

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    config_cls = config[config_name]
    app.config.from_object(config_cls() if config_name == "production" else config_cls)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)

    # ── Import all models so create_all sees them ────────────────────────
    from buildtrack.models import auth as _auth_models                    # noqa: F401
    from buildtrack.models import project as _project_models              # noqa: F401
    from buildtrack.models import workflow as _workflow_models            # noqa: F401
    from buildtrack.models import phase_override as _phase_override_models  # noqa: F401
    from buildtrack.models import notification as _notification_models    # noqa: F401
    from buildtrack.models import scheduling as _scheduling_models        # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    os.makedirs(app.instance_path, exist_ok=True)   # default SQLite file lives here
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Alert engine (subscribes to step_completed / project_created) ────
    from buildtrack.services.alert_engine import init_alert_engine
    init_alert_engine(app)

    # ── CLI commands ─────────────────────────────────────────────────────
    from buildtrack.cli import alerts_cli
    app.cli.add_command(alerts_cli)

    # ── Scheduler initialization (import jobs to register them) ──────────
    importlib.import_module("buildtrack.services.scheduled_jobs")  # registers @register_job handlers
    from buildtrack.services.scheduler_service import SchedulerService, start_scheduler
    SchedulerService.init_app(app)
    start_scheduler(app)

    return app
