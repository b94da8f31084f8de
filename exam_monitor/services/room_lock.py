"""
Room Lock - serializes the room/time conflict check with the exam write

Two admins booking overlapping slots in the same room must not both pass the
conflict scan. On PostgreSQL a transaction-scoped advisory lock keyed by
(location, date) is taken; it is released on commit or rollback. Other
dialects fall back to an in-process lock per (location, date), which covers a
single-process deployment such as SQLite.
"""
import logging
import threading
import zlib
from contextlib import contextmanager
from datetime import date
from typing import Dict, Tuple
from sqlalchemy import text
from exam_monitor import db

logger = logging.getLogger(__name__)

_local_locks: Dict[Tuple[str, str], threading.Lock] = {}
_registry_lock = threading.Lock()


def location_key(location: str) -> str:
    """Rooms compare case-insensitively with runs of whitespace collapsed"""
    return " ".join(location.split()).lower()


def _lock_key(location: str, day: date) -> int:
    """Stable signed 32-bit key for pg_advisory_xact_lock"""
    raw = f"{location_key(location)}|{day.isoformat()}".encode("utf-8")
    return zlib.crc32(raw) - 2**31


def _local_lock(location: str, day: date) -> threading.Lock:
    key = (location_key(location), day.isoformat())
    with _registry_lock:
        lock = _local_locks.get(key)
        if lock is None:
            lock = _local_locks[key] = threading.Lock()
        return lock


@contextmanager
def room_day_lock(location: str, day: date):
    """
    Hold the (location, date) lock for the enclosed check-and-write.

    The caller must commit or roll back inside the block so that the
    advisory lock and the written row become visible together.
    """
    if db.session.get_bind().dialect.name == "postgresql":
        db.session.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": _lock_key(location, day)})
        yield
        return

    lock = _local_lock(location, day)
    with lock:
        yield
