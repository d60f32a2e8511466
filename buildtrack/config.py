"""
BuildTrack Workflow Alerts
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite path for local dev when PostgreSQL is not running
_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'buildtrack_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"


def _env_bool(name, default="false"):
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Config:
    """Base configuration shared across all environments."""

    DEBUG = False
    TESTING = False

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL")             # default: DEBUG in dev/test, INFO otherwise
    LOG_FORMAT = os.getenv("LOG_FORMAT")           # json | text; default: text in dev/test

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,   # recycle connections every 5 min
    }

    # Scheduler
    ENABLE_SCHEDULER = _env_bool("ENABLE_SCHEDULER")
    SCHEDULER_TIMEZONE = os.getenv("SCHEDULER_TIMEZONE", "UTC")
    ALERT_FAST_SWEEP_MINUTES = int(os.getenv("ALERT_FAST_SWEEP_MINUTES", "5"))
    ALERT_POLICY_SWEEP_MINUTES = int(os.getenv("ALERT_POLICY_SWEEP_MINUTES", "60"))
    ALERT_HISTORY_CLEANUP_HOURS = int(os.getenv("ALERT_HISTORY_CLEANUP_HOURS", "24"))

    # Alert engine
    ALERT_DEDUP_BACKEND = os.getenv("ALERT_DEDUP_BACKEND", "memory")   # memory | database
    ALERT_DEDUP_MAX_AGE_DAYS = int(os.getenv("ALERT_DEDUP_MAX_AGE_DAYS", "7"))
    ALERT_WORKFLOW_TIMEOUT_SECONDS = float(os.getenv("ALERT_WORKFLOW_TIMEOUT_SECONDS", "15"))
    ALERT_SWEEP_MAX_WORKERS = int(os.getenv("ALERT_SWEEP_MAX_WORKERS", "1"))
    # How long a full sweep waits for a fast sweep in flight before giving up
    ALERT_SWEEP_WAIT_SECONDS = float(os.getenv("ALERT_SWEEP_WAIT_SECONDS", "120"))
    ALERT_COOLDOWN_HOURS = {
        "warning": 24,
        "urgent": 12,
        "overdue": 24,
        "section_start": 7 * 24,
    }


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = (
        _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else _SQLITE_DEV
    )


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    SQLALCHEMY_ENGINE_OPTIONS = {}
    ENABLE_SCHEDULER = False
    ALERT_DEDUP_BACKEND = "memory"
    ALERT_SWEEP_MAX_WORKERS = 1


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    # Railway/Heroku use postgres:// but SQLAlchemy 2.0 requires postgresql://
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else None

    # Per-statement timeout matches the per-workflow check budget (15s)
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
        "connect_args": {
            "options": "-c statement_timeout=15000",
        },
    }
    ALERT_DEDUP_BACKEND = os.getenv("ALERT_DEDUP_BACKEND", "database")

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
