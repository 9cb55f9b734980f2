from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

from ..common.datetime_utils import now_utc, to_iso
from ..core.constants import LAST_SYNC_TIME_KEY
from ..core.enums import SyncAction, SyncItemType
from ..core.exceptions import DuplicateAttendanceError
from .model import CachedEvent, LocalAttendance, StorageStats, SyncQueueItem
from .repository import OfflineStorage
from .sqlite_base import SQLiteDatabase, dump_json, load_json, sqlite_cursor

logger = logging.getLogger(__name__)

_ATTENDANCE_COLUMNS = "id, event_id, event_name, user_id, user_name, timestamp, qr_timestamp, location, device_info, synced"


def _to_attendance(r: sqlite3.Row) -> LocalAttendance:
    return LocalAttendance(
        id=int(r["id"]),
        event_id=r["event_id"],
        event_name=r["event_name"],
        user_id=r["user_id"],
        user_name=r["user_name"],
        timestamp=r["timestamp"],
        qr_timestamp=r["qr_timestamp"],
        location=load_json(r["location"]),
        device_info=load_json(r["device_info"]),
        synced=bool(r["synced"]),
    )


def _to_queue_item(r: sqlite3.Row) -> SyncQueueItem:
    return SyncQueueItem(
        id=int(r["id"]),
        type=r["type"],
        action=r["action"],
        data=load_json(r["data"]) or {},
        timestamp=r["timestamp"],
        attempts=int(r["attempts"]),
    )


class SQLiteOfflineStorage(OfflineStorage):
    def __init__(self, db: SQLiteDatabase, *, clock: Callable[[], datetime] = now_utc):
        self._db = db
        self._clock = clock
        self._db.initialize()

    def _now_iso(self) -> str:
        return to_iso(self._clock())

    def _insert_queue_item(self, cur, *, item_type: str, action: str, data: dict[str, Any]) -> int:
        cur.execute(
            "INSERT INTO sync_queue(type, action, data, timestamp, attempts) VALUES(?,?,?,?,0)",
            (item_type, action, dump_json(data), self._now_iso()),
        )
        return int(cur.lastrowid)

    def _select_attendance(self, where: str = "1=1", params: tuple = ()) -> list[LocalAttendance]:
        with sqlite_cursor(self._db) as (_, cur):
            cur.execute(f"SELECT {_ATTENDANCE_COLUMNS} FROM attendance WHERE {where} ORDER BY id", params)
            return [_to_attendance(r) for r in cur.fetchall()]

    def save_attendance(self, record: LocalAttendance) -> int:
        timestamp = record.timestamp or self._now_iso()
        try:
            with sqlite_cursor(self._db) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO attendance(
                        event_id, event_name, user_id, user_name, timestamp, qr_timestamp,
                        location, device_info, synced
                    )
                    VALUES(?,?,?,?,?,?,?,?,0)
                    """,
                    (
                        record.event_id,
                        record.event_name,
                        record.user_id,
                        record.user_name,
                        timestamp,
                        record.qr_timestamp,
                        dump_json(record.location),
                        dump_json(record.device_info),
                    ),
                )
                local_id = int(cur.lastrowid)
                saved = LocalAttendance(
                    id=local_id,
                    event_id=record.event_id,
                    event_name=record.event_name,
                    user_id=record.user_id,
                    user_name=record.user_name,
                    timestamp=timestamp,
                    qr_timestamp=record.qr_timestamp,
                    location=record.location,
                    device_info=record.device_info,
                    synced=False,
                )
                self._insert_queue_item(
                    cur,
                    item_type=SyncItemType.ATTENDANCE.value,
                    action=SyncAction.CREATE.value,
                    data=saved.to_json(),
                )
        except sqlite3.IntegrityError as exc:
            raise DuplicateAttendanceError("Attendance already recorded for this event") from exc

        logger.debug("Saved attendance locally id=%s event=%s user=%s", local_id, record.event_id, record.user_id)
        return local_id

    def get_unsynced(self) -> Sequence[LocalAttendance]:
        return self._select_attendance("synced=0")

    def mark_as_synced(self, local_id: int) -> None:
        with sqlite_cursor(self._db) as (_, cur):
            cur.execute("UPDATE attendance SET synced=1 WHERE id=?", (int(local_id),))

    def get_attendance(self, local_id: int) -> Optional[LocalAttendance]:
        rows = self._select_attendance("id=?", (int(local_id),))
        return rows[0] if rows else None

    def get_all_attendance(self) -> Sequence[LocalAttendance]:
        return self._select_attendance()

    def get_attendance_by_event(self, event_id: str) -> Sequence[LocalAttendance]:
        return self._select_attendance("event_id=?", (str(event_id),))

    def get_attendance_by_user(self, user_id: str) -> Sequence[LocalAttendance]:
        return self._select_attendance("user_id=?", (str(user_id),))

    def save_event(self, event: CachedEvent) -> None:
        with sqlite_cursor(self._db) as (_, cur):
            cur.execute(
                """
                INSERT INTO events(id, name, date, data) VALUES(?,?,?,?)
                ON CONFLICT(id) DO UPDATE SET name=excluded.name, date=excluded.date, data=excluded.data
                """,
                (event.id, event.name, event.date, dump_json(event.to_json())),
            )

    def get_all_events(self) -> Sequence[CachedEvent]:
        with sqlite_cursor(self._db) as (_, cur):
            cur.execute("SELECT data FROM events ORDER BY date DESC, id")
            return [CachedEvent.from_json(load_json(r["data"])) for r in cur.fetchall()]

    def get_event(self, event_id: str) -> Optional[CachedEvent]:
        with sqlite_cursor(self._db) as (_, cur):
            cur.execute("SELECT data FROM events WHERE id=?", (str(event_id),))
            r = cur.fetchone()
            return CachedEvent.from_json(load_json(r["data"])) if r else None

    def add_to_sync_queue(self, *, item_type: str, action: str, data: dict[str, Any]) -> int:
        with sqlite_cursor(self._db) as (_, cur):
            return self._insert_queue_item(cur, item_type=item_type, action=action, data=data)

    def get_sync_queue(self) -> Sequence[SyncQueueItem]:
        with sqlite_cursor(self._db) as (_, cur):
            cur.execute("SELECT id, type, action, data, timestamp, attempts FROM sync_queue ORDER BY id")
            return [_to_queue_item(r) for r in cur.fetchall()]

    def remove_sync_queue_item(self, item_id: int) -> None:
        with sqlite_cursor(self._db) as (_, cur):
            cur.execute("DELETE FROM sync_queue WHERE id=?", (int(item_id),))

    def increment_sync_attempts(self, item_id: int) -> int:
        with sqlite_cursor(self._db) as (_, cur):
            cur.execute("UPDATE sync_queue SET attempts = attempts + 1 WHERE id=?", (int(item_id),))
            cur.execute("SELECT attempts FROM sync_queue WHERE id=?", (int(item_id),))
            r = cur.fetchone()
            return int(r["attempts"]) if r else 0

    def clear_all_data(self) -> None:
        with sqlite_cursor(self._db) as (_, cur):
            cur.execute("DELETE FROM attendance")
            cur.execute("DELETE FROM events")
            cur.execute("DELETE FROM sync_queue")
            cur.execute("DELETE FROM sync_meta")
        logger.info("Cleared all local data")

    def get_storage_stats(self) -> StorageStats:
        with sqlite_cursor(self._db) as (_, cur):
            cur.execute(
                """
                SELECT
                    (SELECT COUNT(*) FROM attendance) AS total_attendance,
                    (SELECT COUNT(*) FROM events) AS total_events,
                    (SELECT COUNT(*) FROM sync_queue) AS pending_sync,
                    (SELECT COUNT(*) FROM attendance WHERE synced=0) AS unsynced_attendance
                """
            )
            r = cur.fetchone()
            return StorageStats(
                total_attendance=int(r["total_attendance"]),
                total_events=int(r["total_events"]),
                pending_sync=int(r["pending_sync"]),
                unsynced_attendance=int(r["unsynced_attendance"]),
            )

    def get_last_sync_time(self) -> Optional[str]:
        with sqlite_cursor(self._db) as (_, cur):
            cur.execute("SELECT value FROM sync_meta WHERE key=?", (LAST_SYNC_TIME_KEY,))
            r = cur.fetchone()
            return r["value"] if r else None

    def set_last_sync_time(self, value: str) -> None:
        with sqlite_cursor(self._db) as (_, cur):
            cur.execute(
                "INSERT INTO sync_meta(key, value) VALUES(?,?) ON CONFLICT(key) DO UPDATE SET value=excluded.value",
                (LAST_SYNC_TIME_KEY, value),
            )
