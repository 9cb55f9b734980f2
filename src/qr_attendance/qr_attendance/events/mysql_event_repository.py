from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Sequence

from ..common.datetime_utils import parse_iso_datetime
from ..core.exceptions import DuplicateEventError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_db_datetime, db_cursor, dump_json, fetchall, fetchone, is_duplicate_key, load_json
from .model import DATETIME_FIELDS, Event
from .repository import EventRepository

_COLUMNS = """
    id, name, description, date, start_time, end_time, location, organizer,
    capacity, is_active, qr_code_data, attendance_count, created_at, updated_at
"""

_JSON_FIELDS = frozenset({"location", "organizer"})


def _aware(value: Any) -> Optional[datetime]:
    return parse_iso_datetime(value) if value is not None else None


def _to_event(r: dict) -> Event:
    return Event(
        id=str(r["id"]),
        name=r["name"],
        description=r.get("description") or "",
        date=_aware(r["date"]),
        start_time=_aware(r["start_time"]),
        end_time=_aware(r["end_time"]),
        location=load_json(r.get("location")),
        organizer=load_json(r.get("organizer")),
        capacity=int(r["capacity"]) if r.get("capacity") is not None else None,
        is_active=bool(r["is_active"]),
        qr_code_data=load_json(r.get("qr_code_data")),
        attendance_count=int(r.get("attendance_count") or 0),
        created_at=_aware(r.get("created_at")),
        updated_at=_aware(r.get("updated_at")),
    )


class MySQLEventRepository(EventRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _select(self, where: str, params: tuple, *, order_by: str, limit: int | None = None, offset: int = 0) -> Sequence[Event]:
        sql = f"SELECT {_COLUMNS} FROM events WHERE {where} ORDER BY {order_by}"
        if limit is not None:
            sql += " LIMIT %s OFFSET %s"
            params = params + (int(limit), int(offset))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, params)
            return [_to_event(r) for r in fetchall(cur)]

    def get(self, event_id: str) -> Optional[Event]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM events WHERE id=%s", (event_id,))
            r = fetchone(cur)
            return _to_event(r) if r else None

    def get_active(self, event_id: str) -> Optional[Event]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM events WHERE id=%s AND is_active=1", (event_id,))
            r = fetchone(cur)
            return _to_event(r) if r else None

    def list(self, *, is_active: Optional[bool], limit: int, offset: int) -> Sequence[Event]:
        if is_active is None:
            return self._select("1=1", (), order_by="date DESC", limit=limit, offset=offset)
        return self._select("is_active=%s", (int(is_active),), order_by="date DESC", limit=limit, offset=offset)

    def count(self, *, is_active: Optional[bool]) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            if is_active is None:
                cur.execute("SELECT COUNT(*) AS n FROM events")
            else:
                cur.execute("SELECT COUNT(*) AS n FROM events WHERE is_active=%s", (int(is_active),))
            return int(fetchone(cur)["n"])

    def list_upcoming(self, *, now: datetime, limit: int, offset: int) -> Sequence[Event]:
        return self._select(
            "is_active=1 AND start_time >= %s",
            (as_db_datetime(now),),
            order_by="start_time ASC",
            limit=limit,
            offset=offset,
        )

    def list_current(self, *, now: datetime, limit: int, offset: int) -> Sequence[Event]:
        moment = as_db_datetime(now)
        return self._select(
            "is_active=1 AND start_time <= %s AND end_time >= %s",
            (moment, moment),
            order_by="start_time ASC",
            limit=limit,
            offset=offset,
        )

    def list_by_date_range(self, *, start: datetime, end: datetime, is_active: Optional[bool]) -> Sequence[Event]:
        clauses = ["date BETWEEN %s AND %s"]
        params: list[object] = [as_db_datetime(start), as_db_datetime(end)]
        if is_active is not None:
            clauses.append("is_active=%s")
            params.append(int(is_active))
        return self._select(" AND ".join(clauses), tuple(params), order_by="date ASC")

    def create(self, event: Event) -> None:
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO events(
                        id, name, description, date, start_time, end_time, location, organizer,
                        capacity, is_active, qr_code_data, attendance_count, created_at, updated_at
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        event.id,
                        event.name,
                        event.description,
                        as_db_datetime(event.date),
                        as_db_datetime(event.start_time),
                        as_db_datetime(event.end_time),
                        dump_json(event.location),
                        dump_json(event.organizer),
                        event.capacity,
                        int(event.is_active),
                        dump_json(event.qr_code_data),
                        event.attendance_count,
                        as_db_datetime(event.created_at),
                        as_db_datetime(event.updated_at),
                    ),
                )
        except Exception as exc:
            if is_duplicate_key(exc):
                raise DuplicateEventError(existing=self.get(event.id)) from exc
            raise

    def update(self, event_id: str, changes: dict[str, Any], *, updated_at: datetime) -> Optional[Event]:
        assignments = []
        params: list[object] = []
        for column, value in changes.items():
            if column in DATETIME_FIELDS:
                value = as_db_datetime(value)
            elif column in _JSON_FIELDS:
                value = dump_json(value)
            elif column == "is_active":
                value = int(bool(value))
            assignments.append(f"{column}=%s")
            params.append(value)
        assignments.append("updated_at=%s")
        params.append(as_db_datetime(updated_at))
        params.append(event_id)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE events SET {', '.join(assignments)} WHERE id=%s", tuple(params))
        return self.get(event_id)

    def increment_attendance_count(self, event_id: str) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE events SET attendance_count = attendance_count + 1 WHERE id=%s", (event_id,))
