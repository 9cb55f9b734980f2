from __future__ import annotations

import pytest

from src.qr_attendance.qr_attendance.core.exceptions import RemoteServiceError, StorageError
from src.qr_attendance.qr_attendance.offline.model import CachedEvent, LocalAttendance
from src.qr_attendance.qr_attendance.sync.connectivity import ConnectivityMonitor
from src.qr_attendance.qr_attendance.sync.engine import SyncEngine, merge_attendance_data
from src.qr_attendance.qr_attendance.sync.performance import PerformanceMonitor


class FakeApi:
    def __init__(self):
        self.fail = False
        self.duplicate = False
        self.attendance_posts: list[dict] = []
        self.event_posts: list[dict] = []
        self.events: list[dict] = []
        self.user_attendance: list[dict] = []
        self.on_post = None

    def create_attendance(self, payload):
        self.attendance_posts.append(payload)
        if self.on_post:
            self.on_post()
        if self.fail:
            raise RemoteServiceError("POST /attendance failed: timeout")
        if self.duplicate:
            return {"success": True, "duplicate": True}
        return {"success": True, "attendance": dict(payload, id=len(self.attendance_posts))}

    def create_event(self, payload):
        self.event_posts.append(payload)
        if self.fail:
            raise RemoteServiceError("POST /events failed")
        return {"success": True, "exists": True}

    def list_events(self, **params):
        if self.fail:
            raise RemoteServiceError("GET /events failed")
        return {"events": self.events, "totalCount": len(self.events), "hasMore": False}

    def list_user_attendance(self, user_id, **params):
        if self.fail:
            raise RemoteServiceError("GET /attendance/user failed")
        return {"attendance": self.user_attendance, "totalCount": len(self.user_attendance), "hasMore": False}


def _record(user_id="U1", event_id="E1", timestamp=None):
    return LocalAttendance(
        event_id=event_id, event_name="Orientation", user_id=user_id, user_name="Alice", timestamp=timestamp
    )


class FlakyStorage:
    """Delegates to a real store but fails chosen writes for one id."""

    def __init__(self, inner, fail_on, failing_id):
        self._inner = inner
        self._fail_on = fail_on
        self._failing_id = failing_id

    def __getattr__(self, name):
        target = getattr(self._inner, name)
        if name != self._fail_on:
            return target

        def call(item_id, *args, **kwargs):
            if item_id == self._failing_id:
                raise StorageError(f"{name} failed: disk I/O error")
            return target(item_id, *args, **kwargs)

        return call


@pytest.fixture
def api():
    return FakeApi()


@pytest.fixture
def connectivity():
    return ConnectivityMonitor(initially_online=True)


@pytest.fixture
def monitor():
    return PerformanceMonitor()


@pytest.fixture
def engine(storage, api, connectivity, monitor, scheduler, now):
    return SyncEngine(storage, api, connectivity, monitor=monitor, scheduler=scheduler, clock=lambda: now)


def test_pass_is_skipped_while_offline(engine, storage, api, connectivity):
    storage.save_attendance(_record())
    connectivity.set_online(False)

    assert engine.sync_all() is None
    assert api.attendance_posts == []
    assert len(storage.get_unsynced()) == 1


def test_pass_delivers_queue_and_marks_synced(engine, storage, api, monitor):
    local_id = storage.save_attendance(_record())

    report = engine.sync_all()

    assert report.success is True
    assert report.synced == 1
    assert api.attendance_posts[0]["localId"] == local_id
    assert storage.get_sync_queue() == []
    assert storage.get_unsynced() == []
    assert storage.get_last_sync_time() == "2026-03-02T09:00:00.000Z"
    assert monitor.get_sync_stats()["count"] == 1


def test_second_pass_sends_nothing(engine, storage, api):
    storage.save_attendance(_record())
    engine.sync_all()
    posts = len(api.attendance_posts)

    report = engine.sync_all()

    assert report.synced == 0
    assert len(api.attendance_posts) == posts


def test_server_duplicate_counts_as_delivered(engine, storage, api):
    api.duplicate = True
    storage.save_attendance(_record())

    engine.sync_all()

    assert storage.get_unsynced() == []
    assert storage.get_sync_queue() == []


def test_queue_item_is_dropped_after_exactly_three_failures(engine, storage, api):
    api.fail = True
    storage.save_attendance(_record())

    first = engine.sync_all()
    assert first.failed == 1 and first.dropped == 0
    assert storage.get_sync_queue()[0].attempts == 1

    engine.sync_all()
    assert storage.get_sync_queue()[0].attempts == 2

    third = engine.sync_all()
    assert third.dropped == 1
    assert storage.get_sync_queue() == []

    # the record itself is kept and retried through the unsynced path
    assert len(storage.get_unsynced()) == 1
    api.fail = False
    engine.sync_all()
    assert storage.get_unsynced() == []


def test_failed_pass_leaves_records_untouched(engine, storage, api):
    api.fail = True
    storage.save_attendance(_record("U1"))
    storage.save_attendance(_record("U2"))

    report = engine.sync_all()

    assert report.success is True
    assert report.synced == 0
    assert len(storage.get_unsynced()) == 2


def test_trigger_during_running_pass_is_ignored(engine, storage, api):
    storage.save_attendance(_record())
    nested: list = []
    api.on_post = lambda: nested.append((engine.sync_in_progress, engine.force_sync_all()))

    engine.sync_all()

    assert nested == [(True, None)]
    assert engine.sync_in_progress is False


def test_unknown_queue_item_is_discarded(engine, storage, api):
    storage.add_to_sync_queue(item_type="note", action="create", data={"text": "hi"})

    engine.sync_all()

    assert storage.get_sync_queue() == []
    assert api.attendance_posts == []


def test_event_queue_item_is_posted(engine, storage, api):
    storage.add_to_sync_queue(item_type="event", action="create", data={"id": "E1", "name": "Orientation"})

    engine.sync_all()

    assert api.event_posts == [{"id": "E1", "name": "Orientation"}]
    assert storage.get_sync_queue() == []


def test_reconnect_and_timer_trigger_sync(engine, storage, api, connectivity, scheduler):
    engine.start()
    assert scheduler.tasks[0].interval_seconds == 30

    connectivity.set_online(False)
    storage.save_attendance(_record())
    scheduler.tick()
    assert api.attendance_posts == []

    connectivity.set_online(True)
    assert storage.get_unsynced() == []

    storage.save_attendance(_record("U2"))
    scheduler.tick()
    assert storage.get_unsynced() == []


def test_stop_detaches_triggers(engine, storage, api, connectivity, scheduler):
    engine.start()
    engine.stop()
    assert scheduler.tasks[0].cancelled is True

    connectivity.set_online(False)
    storage.save_attendance(_record())
    connectivity.set_online(True)

    assert api.attendance_posts == []


def test_download_events_caches_and_falls_back(engine, storage, api, connectivity):
    api.events = [{"id": "E1", "name": "Orientation", "date": "2026-03-02T00:00:00.000Z"}]

    assert [e.id for e in engine.download_events()] == ["E1"]
    assert storage.get_event("E1").name == "Orientation"

    connectivity.set_online(False)
    api.events = []
    assert [e.id for e in engine.download_events()] == ["E1"]

    connectivity.set_online(True)
    api.fail = True
    assert [e.id for e in engine.download_events()] == ["E1"]


def test_download_attendance_merges_unsynced_local_rows(engine, storage, api):
    storage.save_attendance(_record("U1", "E2", timestamp="2026-03-02T08:00:00.000Z"))
    api.user_attendance = [{"id": 7, "eventId": "E1", "userId": "U1", "timestamp": "2026-03-01T08:00:00.000Z"}]

    merged = engine.download_attendance_data("U1")

    assert [row["eventId"] for row in merged] == ["E2", "E1"]


def test_merge_skips_rows_the_server_already_has():
    local = [
        {"id": 1, "eventId": "E1", "synced": False, "timestamp": "2026-03-01T08:00:00.000Z"},
        {"id": 2, "eventId": "E2", "synced": True, "timestamp": "2026-03-02T08:00:00.000Z"},
        {"id": 3, "eventId": "E3", "synced": False, "timestamp": "2026-03-03T08:00:00.000Z"},
    ]
    server = [{"id": 40, "localId": "1", "eventId": "E1", "timestamp": "2026-03-01T08:00:00.000Z"}]

    merged = merge_attendance_data(local, server)

    assert [row["eventId"] for row in merged] == ["E3", "E1"]


def test_sync_status(engine, storage):
    storage.save_attendance(_record())

    status = engine.get_sync_status()

    assert status["isOnline"] is True
    assert status["syncInProgress"] is False
    assert status["pendingSync"] == 1
    assert status["unsyncedAttendance"] == 1
    assert status["lastSync"] is None


def test_clear_sync_queue_keeps_records(engine, storage):
    storage.save_attendance(_record())
    engine.clear_sync_queue()

    assert storage.get_sync_queue() == []
    assert len(storage.get_unsynced()) == 1


def test_store_error_on_one_record_does_not_abort_the_sweep(storage, api, connectivity, monitor, now):
    first = storage.save_attendance(_record("U1"))
    second = storage.save_attendance(_record("U2"))
    flaky = FlakyStorage(storage, "mark_as_synced", first)
    engine = SyncEngine(flaky, api, connectivity, monitor=monitor, clock=lambda: now)
    engine.clear_sync_queue()

    report = engine.sync_all()

    assert report.success is True
    assert report.synced == 1
    assert {p["localId"] for p in api.attendance_posts} == {first, second}
    assert [r.id for r in storage.get_unsynced()] == [first]
    assert storage.get_last_sync_time() == "2026-03-02T09:00:00.000Z"


def test_store_error_while_counting_attempts_keeps_queue_moving(storage, api, connectivity, monitor, now):
    storage.save_attendance(_record("U1"))
    storage.save_attendance(_record("U2"))
    first_item, second_item = storage.get_sync_queue()
    flaky = FlakyStorage(storage, "increment_sync_attempts", first_item.id)
    engine = SyncEngine(flaky, api, connectivity, monitor=monitor, clock=lambda: now)
    api.fail = True

    report = engine.sync_all()

    assert report.success is True
    assert report.failed == 2
    attempts = {item.id: item.attempts for item in storage.get_sync_queue()}
    assert attempts == {first_item.id: 0, second_item.id: 1}
