from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Sequence

from ..common.datetime_utils import parse_iso_datetime
from ..core.exceptions import DuplicateAttendanceError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_db_datetime, db_cursor, dump_json, fetchall, fetchone, is_duplicate_key, load_json
from .model import Attendance, NewAttendance
from .repository import AttendanceRepository

_COLUMNS = """
    attendance_id, event_id, event_name, user_id, user_name, timestamp, qr_timestamp,
    location, device_info, local_id, synced_at, created_at, updated_at
"""


def _to_attendance(r: dict[str, Any]) -> Attendance:
    return Attendance(
        attendance_id=int(r["attendance_id"]),
        event_id=str(r["event_id"]),
        event_name=r["event_name"],
        user_id=str(r["user_id"]),
        user_name=r["user_name"],
        timestamp=parse_iso_datetime(r["timestamp"]),
        qr_timestamp=parse_iso_datetime(r["qr_timestamp"]),
        location=load_json(r.get("location")),
        device_info=load_json(r.get("device_info")),
        local_id=r.get("local_id"),
        synced_at=parse_iso_datetime(r["synced_at"]),
        created_at=parse_iso_datetime(r["created_at"]),
        updated_at=parse_iso_datetime(r["updated_at"]),
    )


def _user_clauses(user_id: str, start: Optional[datetime], end: Optional[datetime]) -> tuple[str, list[object]]:
    clauses = ["user_id=%s"]
    params: list[object] = [user_id]
    if start is not None:
        clauses.append("timestamp >= %s")
        params.append(as_db_datetime(start))
    if end is not None:
        clauses.append("timestamp <= %s")
        params.append(as_db_datetime(end))
    return " AND ".join(clauses), params


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _fetch(self, sql: str, params: tuple) -> list[Attendance]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, params)
            return [_to_attendance(r) for r in fetchall(cur)]

    def _count(self, sql: str, params: tuple) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, params)
            return int(fetchone(cur)["n"])

    def find_for_event_and_user(self, event_id: str, user_id: str) -> Optional[Attendance]:
        rows = self._fetch(f"SELECT {_COLUMNS} FROM attendance WHERE event_id=%s AND user_id=%s", (event_id, user_id))
        return rows[0] if rows else None

    def create(self, attendance: NewAttendance, *, now: datetime) -> Attendance:
        moment = as_db_datetime(now)
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO attendance(
                        event_id, event_name, user_id, user_name, timestamp, qr_timestamp,
                        location, device_info, local_id, synced_at, created_at, updated_at
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        attendance.event_id,
                        attendance.event_name,
                        attendance.user_id,
                        attendance.user_name,
                        as_db_datetime(attendance.timestamp),
                        as_db_datetime(attendance.qr_timestamp),
                        dump_json(attendance.location),
                        dump_json(attendance.device_info),
                        attendance.local_id,
                        moment,
                        moment,
                        moment,
                    ),
                )
                attendance_id = int(cur.lastrowid)
        except Exception as exc:
            if is_duplicate_key(exc):
                raise DuplicateAttendanceError() from exc
            raise

        return Attendance(
            attendance_id=attendance_id,
            event_id=attendance.event_id,
            event_name=attendance.event_name,
            user_id=attendance.user_id,
            user_name=attendance.user_name,
            timestamp=attendance.timestamp,
            qr_timestamp=attendance.qr_timestamp,
            location=attendance.location,
            device_info=attendance.device_info,
            local_id=attendance.local_id,
            synced_at=now,
            created_at=now,
            updated_at=now,
        )

    def list_for_event(self, event_id: str, *, limit: int, offset: int) -> Sequence[Attendance]:
        return self._fetch(
            f"SELECT {_COLUMNS} FROM attendance WHERE event_id=%s ORDER BY timestamp DESC LIMIT %s OFFSET %s",
            (event_id, int(limit), int(offset)),
        )

    def count_for_event(self, event_id: str) -> int:
        return self._count("SELECT COUNT(*) AS n FROM attendance WHERE event_id=%s", (event_id,))

    def list_for_user(
        self,
        user_id: str,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> Sequence[Attendance]:
        where, params = _user_clauses(user_id, start, end)
        sql = f"SELECT {_COLUMNS} FROM attendance WHERE {where} ORDER BY timestamp DESC"
        if limit is not None:
            sql += " LIMIT %s OFFSET %s"
            params += [int(limit), int(offset)]
        return self._fetch(sql, tuple(params))

    def count_for_user(self, user_id: str, *, start: Optional[datetime] = None, end: Optional[datetime] = None) -> int:
        where, params = _user_clauses(user_id, start, end)
        return self._count(f"SELECT COUNT(*) AS n FROM attendance WHERE {where}", tuple(params))

    def list_in_range(
        self,
        *,
        start: datetime,
        end: datetime,
        user_id: Optional[str] = None,
        event_id: Optional[str] = None,
    ) -> Sequence[Attendance]:
        clauses = ["timestamp BETWEEN %s AND %s"]
        params: list[object] = [as_db_datetime(start), as_db_datetime(end)]
        if user_id:
            clauses.append("user_id=%s")
            params.append(user_id)
        if event_id:
            clauses.append("event_id=%s")
            params.append(event_id)
        return self._fetch(
            f"SELECT {_COLUMNS} FROM attendance WHERE {' AND '.join(clauses)} ORDER BY timestamp DESC",
            tuple(params),
        )

    def first_for_user(self, user_id: str) -> Optional[Attendance]:
        rows = self._fetch(
            f"SELECT {_COLUMNS} FROM attendance WHERE user_id=%s ORDER BY timestamp ASC LIMIT 1",
            (user_id,),
        )
        return rows[0] if rows else None
