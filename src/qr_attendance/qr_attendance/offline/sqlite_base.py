from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional

from ..core.exceptions import StorageError

SCHEMA = """
CREATE TABLE IF NOT EXISTS attendance (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id TEXT NOT NULL,
    event_name TEXT NOT NULL,
    user_id TEXT NOT NULL,
    user_name TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    qr_timestamp TEXT,
    location TEXT,
    device_info TEXT,
    synced INTEGER NOT NULL DEFAULT 0
);
CREATE UNIQUE INDEX IF NOT EXISTS uq_attendance_event_user ON attendance(event_id, user_id);
CREATE INDEX IF NOT EXISTS idx_attendance_event ON attendance(event_id);
CREATE INDEX IF NOT EXISTS idx_attendance_user ON attendance(user_id);
CREATE INDEX IF NOT EXISTS idx_attendance_timestamp ON attendance(timestamp);
CREATE INDEX IF NOT EXISTS idx_attendance_synced ON attendance(synced);

CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    date TEXT,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_events_name ON events(name);
CREATE INDEX IF NOT EXISTS idx_events_date ON events(date);

CREATE TABLE IF NOT EXISTS sync_queue (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    type TEXT NOT NULL,
    action TEXT NOT NULL,
    data TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    attempts INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_sync_queue_timestamp ON sync_queue(timestamp);
CREATE INDEX IF NOT EXISTS idx_sync_queue_type ON sync_queue(type);

CREATE TABLE IF NOT EXISTS sync_meta (
    key TEXT PRIMARY KEY,
    value TEXT
);
"""


class SQLiteDatabase:
    """Connection factory for the on-device database file.

    Note: one short-lived connection per operation, so timer threads and the caller never share one.
    """

    def __init__(self, path: str | Path, *, timeout: float = 5.0):
        self._path = Path(path)
        self._timeout = timeout

    @property
    def path(self) -> Path:
        return self._path

    def connect(self) -> sqlite3.Connection:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._path), timeout=self._timeout)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize(self) -> None:
        with sqlite_cursor(self) as (conn, _):
            conn.executescript(SCHEMA)


@contextmanager
def sqlite_cursor(db: SQLiteDatabase):
    """Same contract as the MySQL ``db_cursor``: commit on success, rollback on error.

    Integrity errors pass through so callers can map them; other sqlite errors become StorageError.
    """
    try:
        conn = db.connect()
    except (sqlite3.Error, OSError) as exc:
        raise StorageError(f"Local storage unavailable: {exc}") from exc

    try:
        cur = conn.cursor()
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except sqlite3.IntegrityError:
        conn.rollback()
        raise
    except sqlite3.Error as exc:
        conn.rollback()
        raise StorageError(f"Local storage operation failed: {exc}") from exc
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def dump_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False)


def load_json(value: Optional[str]) -> Any:
    if value is None or value == "":
        return None
    return json.loads(value)
