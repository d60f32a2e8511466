"""
Logging for the alert engine.

Pipeline and scheduler code attach context through ``extra=``:
workflow / step / category for alert decisions, job_name / trigger for
scheduled runs, event_type + duration_ms for sweep and job milestones.
Both formatters render whichever of those fields a record carries.

    LOG_FORMAT=json  one JSON object per line (production default)
    LOG_FORMAT=text  07:38:48 INFO    alert_engine <sweep_completed> Alert sweep ... trigger=policy [412ms]
"""

import json
import logging
import sys
from datetime import datetime, timezone

CONTEXT_FIELDS = (
    "event_type",
    "trigger",
    "job_name",
    "workflow_id",
    "project_id",
    "step_id",
    "category",
    "duration_ms",
)


def record_context(record: logging.LogRecord) -> dict:
    """Alert-engine context fields present on ``record``, in CONTEXT_FIELDS order."""
    return {
        key: getattr(record, key)
        for key in CONTEXT_FIELDS
        if getattr(record, key, None) is not None
    }


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **record_context(record),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Single-line text: event type up front, remaining context as key=value."""

    def __init__(self):
        super().__init__(datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        context = record_context(record)
        event = context.pop("event_type", None)
        duration = context.pop("duration_ms", None)

        parts = [
            self.formatTime(record, self.datefmt),
            f"{record.levelname:<7}",
            record.name.rsplit(".", 1)[-1],
        ]
        if event:
            parts.append(f"<{event}>")
        parts.append(record.getMessage())
        if context:
            parts.append(" ".join(f"{key}={value}" for key, value in context.items()))
        if duration is not None:
            parts.append(f"[{duration}ms]")

        line = " ".join(parts)
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install one stderr handler on the root logger.

    LOG_LEVEL and LOG_FORMAT come from app config; LOG_FORMAT defaults to
    json outside DEBUG / TESTING. Calling it again (a second create_app)
    replaces the handler installed earlier and leaves foreign handlers,
    such as pytest's caplog, in place.
    """
    plain = app.config.get("DEBUG", False) or app.config.get("TESTING", False)
    fmt = (app.config.get("LOG_FORMAT") or ("text" if plain else "json")).lower()
    level_name = (app.config.get("LOG_LEVEL") or ("DEBUG" if plain else "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    for existing in [h for h in root.handlers if getattr(h, "_buildtrack", False)]:
        root.removeHandler(existing)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if fmt == "json" else ReadableFormatter())
    handler.setLevel(level)
    handler._buildtrack = True
    root.addHandler(handler)
    root.setLevel(level)

    # APScheduler logs every job submission at INFO; SchedulerService logs the outcome.
    for noisy in ("apscheduler", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)
    return handler
