from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from src.qr_attendance.qr_attendance.core.exceptions import DuplicateAttendanceError, QRExpiredError, StorageError
from src.qr_attendance.qr_attendance.qr.payload import build_attendance_payload, encode_payload
from src.qr_attendance.qr_attendance.scanning.location import Location
from src.qr_attendance.qr_attendance.scanning.recorder import AttendanceRecorder
from src.qr_attendance.qr_attendance.sync.api_client import AttendanceApiClient
from src.qr_attendance.qr_attendance.sync.connectivity import ConnectivityMonitor
from src.qr_attendance.qr_attendance.sync.engine import SyncEngine
from src.qr_attendance.qr_attendance.sync.performance import PerformanceMonitor


class FixedLocation:
    def get_current_location(self):
        return Location(latitude=10.77, longitude=106.70, accuracy=12.0)


class DeniedLocation:
    def get_current_location(self):
        raise PermissionError("User denied Geolocation")


class HangingLocation:
    def __init__(self):
        self.release = threading.Event()
        self.calls = 0

    def get_current_location(self):
        self.calls += 1
        self.release.wait(5)
        return Location(latitude=0.0, longitude=0.0)


class FullDiskStore:
    def __init__(self, inner):
        self._inner = inner

    def __getattr__(self, name):
        return getattr(self._inner, name)

    def save_attendance(self, record):
        raise StorageError("Local storage operation failed: database or disk is full")


@pytest.fixture
def connectivity():
    return ConnectivityMonitor(initially_online=True)


@pytest.fixture
def monitor():
    return PerformanceMonitor()


@pytest.fixture
def make_recorder(storage, flask_session, connectivity, monitor, now):
    created: list[AttendanceRecorder] = []

    def factory(location_provider=None, geolocation_timeout=5, store=None):
        store = store or storage
        api = AttendanceApiClient("http://testserver/api", session=flask_session, monitor=monitor)
        engine = SyncEngine(store, api, connectivity, monitor=monitor, clock=lambda: now)
        recorder = AttendanceRecorder(
            store,
            engine,
            connectivity,
            monitor=monitor,
            location_provider=location_provider,
            geolocation_timeout=geolocation_timeout,
            clock=lambda: now,
        )
        created.append(recorder)
        return recorder

    yield factory
    for recorder in created:
        recorder.close()


@pytest.fixture
def live_event(events_repo, event_factory):
    events_repo.create(event_factory("E1", "Orientation"))


def _scan(now, event_id="E1"):
    return encode_payload(build_attendance_payload(event_id, "Orientation", now - timedelta(minutes=5)))


def test_online_scan_is_delivered_and_marked_synced(make_recorder, storage, attendance_repo, live_event, now):
    recorder = make_recorder(FixedLocation())

    result = recorder.scan(_scan(now), "U1", "Alice")

    assert result.success is True
    assert result.message == "Attendance recorded successfully"
    assert storage.get_attendance(result.local_id).synced is True
    assert storage.get_attendance(result.local_id).location == {"latitude": 10.77, "longitude": 106.70, "accuracy": 12.0}
    assert [(r.event_id, r.user_id) for r in attendance_repo.rows] == [("E1", "U1")]


def test_outage_keeps_record_durable(make_recorder, storage, flask_session, monitor, live_event, now):
    flask_session.online = False
    recorder = make_recorder()

    result = recorder.scan(_scan(now), "U1", "Alice")

    assert result.success is True
    assert result.message == "Attendance saved offline"
    assert result.synced is False
    assert [r.id for r in storage.get_unsynced()] == [result.local_id]
    assert len(storage.get_sync_queue()) == 1
    assert monitor.offline_operations == 1


def test_offline_device_does_not_try_network(make_recorder, connectivity, flask_session, storage, now):
    connectivity.set_online(False)
    recorder = make_recorder()

    result = recorder.scan(_scan(now), "U1", "Alice")

    assert result.message == "Attendance saved offline"
    assert flask_session.calls == []
    assert len(storage.get_unsynced()) == 1


def test_second_scan_for_same_event_is_refused(make_recorder, connectivity, now):
    connectivity.set_online(False)
    recorder = make_recorder()
    recorder.scan(_scan(now), "U1", "Alice")

    assert recorder.check_duplicate_attendance("E1", "U1") is True
    with pytest.raises(DuplicateAttendanceError):
        recorder.scan(_scan(now), "U1", "Alice")


def test_record_attendance_reports_store_duplicate(make_recorder, connectivity, now):
    connectivity.set_online(False)
    recorder = make_recorder()
    scan = recorder.validate_qr_code(build_attendance_payload("E1", "Orientation", now))
    recorder.record_attendance(scan, "U1", "Alice")

    result = recorder.record_attendance(scan, "U1", "Alice")

    assert result.success is False
    assert "already recorded" in result.error


def test_expired_code_is_not_recorded(make_recorder, storage, now):
    recorder = make_recorder()
    stale = encode_payload(build_attendance_payload("E1", "Orientation", now - timedelta(hours=25)))

    with pytest.raises(QRExpiredError):
        recorder.scan(stale, "U1", "Alice")
    assert storage.get_all_attendance() == []


def test_location_failure_or_timeout_does_not_block(make_recorder, connectivity, storage, now):
    connectivity.set_online(False)
    hanging = HangingLocation()

    denied = make_recorder(DeniedLocation()).scan(_scan(now, "E1"), "U1", "Alice")
    slow = make_recorder(hanging, geolocation_timeout=0.05).scan(_scan(now, "E2"), "U1", "Alice")
    hanging.release.set()

    assert denied.success and slow.success
    assert storage.get_attendance(denied.local_id).location is None
    assert storage.get_attendance(slow.local_id).location is None
    assert storage.get_attendance(slow.local_id).device_info["userAgent"].startswith("qr-attendance")


def test_history_and_stats(make_recorder, connectivity, storage, now):
    connectivity.set_online(False)
    recorder = make_recorder()
    recorder.scan(_scan(now, "E1"), "U1", "Alice")
    recorder.scan(_scan(now, "E2"), "U1", "Alice")
    recorder.scan(_scan(now, "E1"), "U2", "Bob")

    history = recorder.get_attendance_history("U1")
    assert {r.event_id for r in history} == {"E1", "E2"}
    assert len(recorder.get_event_attendance("E1")) == 2

    assert recorder.get_attendance_stats("U1") == {
        "total": 2,
        "today": 2,
        "thisWeek": 2,
        "thisMonth": 2,
        "unsynced": 2,
    }


def test_local_write_failure_is_the_only_failed_result(make_recorder, storage, flask_session, live_event, now):
    recorder = make_recorder(store=FullDiskStore(storage))

    result = recorder.scan(_scan(now), "U1", "Alice")

    assert result.success is False
    assert "disk is full" in result.error
    assert result.to_json() == {"success": False, "error": result.error}
    assert storage.get_all_attendance() == []
    assert storage.get_sync_queue() == []
    assert flask_session.calls == []


def test_result_json_carries_local_id(make_recorder, connectivity, now):
    connectivity.set_online(False)

    result = make_recorder().scan(_scan(now), "U1", "Alice")
    body = result.to_json()

    assert body["localId"] == result.local_id
    assert "id" not in body
    assert body["message"] == "Attendance saved offline"


def test_hung_location_lookup_is_not_queued_behind(make_recorder, connectivity, storage, now):
    connectivity.set_online(False)
    hanging = HangingLocation()
    recorder = make_recorder(hanging, geolocation_timeout=0.05)

    first = recorder.scan(_scan(now, "E1"), "U1", "Alice")
    second = recorder.scan(_scan(now, "E2"), "U1", "Alice")
    hanging.release.set()

    assert first.success and second.success
    assert hanging.calls == 1
    assert storage.get_attendance(second.local_id).location is None
