"""
Shared pytest fixtures for the BuildTrack workflow alerts test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - engine: the app's AlertEngine with empty dedup history
    - now: fixed "current time" for a test
"""

from datetime import datetime, timezone

import pytest

from buildtrack import create_app
from buildtrack.models import db as _db
from buildtrack.services.scheduler_service import SchedulerService


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables.

    Ids are reused after the recreate, so in-memory dedup history is
    cleared alongside.
    """
    with app.app_context():
        app.extensions["alert_engine"].dedup.clear()
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()
        app.extensions["alert_engine"].dedup.clear()
        SchedulerService._in_flight.clear()


@pytest.fixture()
def engine(app):
    """The AlertEngine registered on the app."""
    return app.extensions["alert_engine"]


@pytest.fixture()
def now():
    return datetime.now(timezone.utc)


@pytest.fixture()
def runner(app):
    """Flask CLI runner."""
    return app.test_cli_runner()
