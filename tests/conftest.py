from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urlsplit

import pytest
import requests

from src.qr_attendance.qr_attendance.attendance.model import Attendance, NewAttendance
from src.qr_attendance.qr_attendance.container import build_services
from src.qr_attendance.qr_attendance.core.exceptions import DuplicateAttendanceError
from src.qr_attendance.qr_attendance.events.model import Event
from src.qr_attendance.qr_attendance.main import create_app
from src.qr_attendance.qr_attendance.offline.sqlite_base import SQLiteDatabase
from src.qr_attendance.qr_attendance.offline.sqlite_offline_storage import SQLiteOfflineStorage

NOW = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


class InMemoryEvents:
    def __init__(self):
        self.by_id: dict[str, Event] = {}

    def get(self, event_id):
        return self.by_id.get(event_id)

    def get_active(self, event_id):
        e = self.by_id.get(event_id)
        return e if e and e.is_active else None

    def _filtered(self, is_active):
        items = [e for e in self.by_id.values() if is_active is None or e.is_active == is_active]
        return sorted(items, key=lambda e: e.date, reverse=True)

    def list(self, *, is_active, limit, offset):
        return self._filtered(is_active)[offset : offset + limit]

    def count(self, *, is_active):
        return len(self._filtered(is_active))

    def list_upcoming(self, *, now, limit, offset):
        items = sorted((e for e in self.by_id.values() if e.is_active and e.start_time > now), key=lambda e: e.start_time)
        return items[offset : offset + limit]

    def list_current(self, *, now, limit, offset):
        items = [e for e in self.by_id.values() if e.is_currently_active(now)]
        return items[offset : offset + limit]

    def list_by_date_range(self, *, start, end, is_active):
        return [e for e in self._filtered(is_active) if start <= e.date <= end]

    def create(self, event):
        self.by_id[event.id] = event

    def update(self, event_id, changes, *, updated_at):
        e = self.by_id.get(event_id)
        if not e:
            return None
        e = replace(e, updated_at=updated_at, **changes)
        self.by_id[event_id] = e
        return e

    def increment_attendance_count(self, event_id):
        e = self.by_id[event_id]
        self.by_id[event_id] = replace(e, attendance_count=e.attendance_count + 1)


class InMemoryAttendance:
    def __init__(self):
        self.rows: list[Attendance] = []
        self._id = 0

    def find_for_event_and_user(self, event_id, user_id):
        for r in self.rows:
            if r.event_id == event_id and r.user_id == user_id:
                return r
        return None

    def create(self, attendance: NewAttendance, *, now):
        if self.find_for_event_and_user(attendance.event_id, attendance.user_id):
            raise DuplicateAttendanceError()
        self._id += 1
        row = Attendance(
            attendance_id=self._id,
            event_id=attendance.event_id,
            event_name=attendance.event_name,
            user_id=attendance.user_id,
            user_name=attendance.user_name,
            timestamp=attendance.timestamp,
            qr_timestamp=attendance.qr_timestamp,
            synced_at=now,
            created_at=now,
            updated_at=now,
            location=attendance.location,
            device_info=attendance.device_info,
            local_id=attendance.local_id,
        )
        self.rows.append(row)
        return row

    def _newest_first(self, rows):
        return sorted(rows, key=lambda r: r.timestamp, reverse=True)

    def list_for_event(self, event_id, *, limit, offset):
        return self._newest_first(r for r in self.rows if r.event_id == event_id)[offset : offset + limit]

    def count_for_event(self, event_id):
        return sum(1 for r in self.rows if r.event_id == event_id)

    def _for_user(self, user_id, start, end):
        return [
            r
            for r in self.rows
            if r.user_id == user_id and (start is None or r.timestamp >= start) and (end is None or r.timestamp <= end)
        ]

    def list_for_user(self, user_id, *, start=None, end=None, limit=None, offset=0):
        rows = self._newest_first(self._for_user(user_id, start, end))
        return rows[offset : offset + limit] if limit is not None else rows[offset:]

    def count_for_user(self, user_id, *, start=None, end=None):
        return len(self._for_user(user_id, start, end))

    def list_in_range(self, *, start, end, user_id=None, event_id=None):
        rows = [
            r
            for r in self.rows
            if start <= r.timestamp <= end
            and (user_id is None or r.user_id == user_id)
            and (event_id is None or r.event_id == event_id)
        ]
        return self._newest_first(rows)

    def first_for_user(self, user_id):
        rows = sorted((r for r in self.rows if r.user_id == user_id), key=lambda r: r.timestamp)
        return rows[0] if rows else None


class _FlaskResponse:
    def __init__(self, resp):
        self.status_code = resp.status_code
        self.content = resp.data

    def json(self):
        return json.loads(self.content)


class FlaskSession:
    """Stands in for ``requests.Session``; routes calls into a Flask test client.

    Set ``online = False`` to make every call fail like a dropped network.
    """

    def __init__(self, app):
        self._client = app.test_client()
        self.online = True
        self.calls: list[tuple[str, str]] = []

    def request(self, method, url, json=None, params=None, timeout=None):
        if not self.online:
            raise requests.ConnectionError("network unreachable")
        path = urlsplit(url).path
        self.calls.append((method, path))
        return _FlaskResponse(self._client.open(path, method=method, json=json, query_string=params or {}))

    def head(self, url, timeout=None):
        return self.request("HEAD", url, timeout=timeout)


class ManualScheduler:
    def __init__(self):
        self.tasks: list["ManualTask"] = []

    def every(self, interval_seconds, callback):
        task = ManualTask(interval_seconds, callback)
        self.tasks.append(task)
        return task

    def tick(self):
        for task in list(self.tasks):
            if not task.cancelled:
                task.callback()


class ManualTask:
    def __init__(self, interval_seconds, callback):
        self.interval_seconds = interval_seconds
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


def make_event(event_id="E1", name="Orientation", *, capacity: Optional[int] = None, is_active=True, **kw: Any) -> Event:
    return Event(
        id=event_id,
        name=name,
        date=kw.pop("date", NOW),
        start_time=kw.pop("start_time", NOW.replace(hour=8)),
        end_time=kw.pop("end_time", NOW.replace(hour=18)),
        capacity=capacity,
        is_active=is_active,
        created_at=NOW,
        updated_at=NOW,
        **kw,
    )


@pytest.fixture
def events_repo():
    return InMemoryEvents()


@pytest.fixture
def attendance_repo():
    return InMemoryAttendance()


@pytest.fixture
def container(events_repo, attendance_repo):
    return build_services(events_repo=events_repo, attendance_repo=attendance_repo)


@pytest.fixture
def app(monkeypatch, container):
    monkeypatch.setenv("APP_ENV", "testing")
    return create_app(container)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def storage(tmp_path):
    return SQLiteOfflineStorage(SQLiteDatabase(tmp_path / "offline.sqlite3"), clock=lambda: NOW)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def event_factory():
    return make_event


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def flask_session(app):
    return FlaskSession(app)
