"""
Alert Deduplication / Cooldown Store

Remembers "alert already sent for this exact condition" per DedupKey so the
periodic sweep does not re-notify on every pass.

Two backends:
    - InMemoryDedupStore: lock-guarded dict, O(1), no database round-trip.
      Lost on process restart and not shared between processes.
    - DatabaseDedupStore: AlertDedupEntry rows with a unique
      (workflow, scope, category, time bucket) constraint; survives restarts
      and works across instances.

``check_and_mark`` is the only hot-path call and is atomic per key: the
periodic sweep and an event-driven check racing on the same key cannot both
win.
"""

from __future__ import annotations

import logging
import math
import threading
from datetime import datetime, timedelta
from typing import NamedTuple

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from buildtrack.models import db
from buildtrack.models.scheduling import AlertDedupEntry

logger = logging.getLogger(__name__)


DEFAULT_COOLDOWN_HOURS = {
    "warning": 24,
    "urgent": 12,
    "overdue": 24,
    "section_start": 7 * 24,
}

DEFAULT_MAX_AGE = timedelta(days=7)


class DedupKey(NamedTuple):
    workflow_id: int
    scope: str       # "step:<id>" or "section:<phase>/<section>"
    category: str


def cooldown_for(category: str, hours: dict | None = None) -> timedelta:
    """Cooldown window for ``category``; unknown categories use the warning window."""
    table = hours or DEFAULT_COOLDOWN_HOURS
    value = table.get(category, table.get("warning", DEFAULT_COOLDOWN_HOURS["warning"]))
    return timedelta(hours=value)


class DedupStore:
    """Interface shared by the in-memory and database backends."""

    def has_recent_alert(self, key: DedupKey, cooldown: timedelta, now: datetime) -> bool:
        raise NotImplementedError

    def check_and_mark(self, key: DedupKey, cooldown: timedelta, now: datetime) -> bool:
        """Atomically reserve ``key``.

        Returns True when no alert was sent within ``cooldown`` (the key is
        now marked as sent at ``now``), False when the caller must skip.
        """
        raise NotImplementedError

    def release(self, key: DedupKey, marked_at: datetime, cooldown: timedelta) -> None:
        """Undo a reservation whose alert was never written."""
        raise NotImplementedError

    def purge(self, max_age: timedelta, now: datetime) -> int:
        """Evict entries idle longer than ``max_age``; returns the count removed."""
        raise NotImplementedError


# ═════════════════════════════════════════════════════════════════════════════
# In-memory backend
# ═════════════════════════════════════════════════════════════════════════════

class InMemoryDedupStore(DedupStore):

    def __init__(self):
        self._entries: dict[DedupKey, datetime] = {}
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def last_sent(self, key: DedupKey) -> datetime | None:
        with self._lock:
            return self._entries.get(key)

    def has_recent_alert(self, key, cooldown, now):
        with self._lock:
            last = self._entries.get(key)
        return last is not None and (now - last) < cooldown

    def check_and_mark(self, key, cooldown, now):
        with self._lock:
            last = self._entries.get(key)
            if last is not None and (now - last) < cooldown:
                return False
            self._entries[key] = now
            return True

    def mark_sent(self, key: DedupKey, now: datetime) -> None:
        with self._lock:
            self._entries[key] = now

    def release(self, key, marked_at, cooldown):
        with self._lock:
            if self._entries.get(key) == marked_at:
                del self._entries[key]

    def purge(self, max_age, now):
        with self._lock:
            stale = [k for k, ts in self._entries.items() if now - ts > max_age]
            for k in stale:
                del self._entries[k]
        logger.info("Dedup store purge: removed %d stale entries (%d kept)",
                    len(stale), len(self._entries),
                    extra={"event_type": "dedup_purged"})
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


# ═════════════════════════════════════════════════════════════════════════════
# Database backend
# ═════════════════════════════════════════════════════════════════════════════

def _bucket(now: datetime, cooldown: timedelta) -> int:
    return math.floor(now.timestamp() / cooldown.total_seconds())


class DatabaseDedupStore(DedupStore):
    """Unique time-bucket rows; the constraint does the check-and-set."""

    def has_recent_alert(self, key, cooldown, now):
        stmt = select(AlertDedupEntry.id).where(
            AlertDedupEntry.workflow_id == key.workflow_id,
            AlertDedupEntry.scope_key == key.scope,
            AlertDedupEntry.category == key.category,
            AlertDedupEntry.bucket == _bucket(now, cooldown),
        )
        return db.session.execute(stmt).first() is not None

    def check_and_mark(self, key, cooldown, now):
        entry = AlertDedupEntry(
            workflow_id=key.workflow_id,
            scope_key=key.scope,
            category=key.category,
            bucket=_bucket(now, cooldown),
            sent_at=now,
        )
        db.session.add(entry)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            return False
        return True

    def release(self, key, marked_at, cooldown):
        db.session.execute(
            delete(AlertDedupEntry).where(
                AlertDedupEntry.workflow_id == key.workflow_id,
                AlertDedupEntry.scope_key == key.scope,
                AlertDedupEntry.category == key.category,
                AlertDedupEntry.bucket == _bucket(marked_at, cooldown),
            )
        )
        db.session.commit()

    def purge(self, max_age, now):
        result = db.session.execute(
            delete(AlertDedupEntry).where(AlertDedupEntry.sent_at < now - max_age)
        )
        db.session.commit()
        logger.info("Dedup store purge: removed %d stale rows", result.rowcount or 0,
                    extra={"event_type": "dedup_purged"})
        return result.rowcount or 0


def build_dedup_store(backend: str) -> DedupStore:
    if backend == "database":
        return DatabaseDedupStore()
    if backend != "memory":
        logger.warning("Unknown ALERT_DEDUP_BACKEND=%r, using in-memory store", backend)
    return InMemoryDedupStore()
