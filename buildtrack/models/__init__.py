"""
BuildTrack Workflow Alerts
ORM models package.

All models share the single Flask-SQLAlchemy ``db`` instance defined here.
Model modules import ``db`` from this package; ``create_app`` imports the
modules so their tables are registered before ``db.create_all()``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
