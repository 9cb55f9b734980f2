"""Offline-first reconciliation of the local store with the attendance API.

A pass drains the sync queue in insertion order, then retries every unsynced
attendance record. Only one pass runs at a time; a trigger that arrives while a
pass is running is dropped, and the next timer tick or reconnect picks it up.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from ..common.datetime_utils import now_utc, parse_iso_datetime, to_iso
from ..core.constants import DEFAULT_SYNC_INTERVAL_SECONDS, DEFAULT_SYNC_MAX_RETRIES
from ..core.enums import SyncAction, SyncItemType
from ..core.exceptions import RemoteServiceError, StorageError
from ..offline.model import CachedEvent, LocalAttendance, SyncQueueItem
from ..offline.repository import OfflineStorage
from .api_client import AttendanceApiClient
from .connectivity import ConnectivityMonitor
from .performance import PerformanceMonitor
from .scheduler import ScheduledTask, Scheduler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncReport:
    synced: int = 0
    failed: int = 0
    dropped: int = 0
    success: bool = True


class SyncEngine:
    def __init__(
        self,
        storage: OfflineStorage,
        api: AttendanceApiClient,
        connectivity: ConnectivityMonitor,
        *,
        monitor: Optional[PerformanceMonitor] = None,
        scheduler: Optional[Scheduler] = None,
        max_retries: int = DEFAULT_SYNC_MAX_RETRIES,
        interval_seconds: float = DEFAULT_SYNC_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._storage = storage
        self._api = api
        self._connectivity = connectivity
        self._monitor = monitor or PerformanceMonitor()
        self._scheduler = scheduler
        self._max_retries = int(max_retries)
        self._interval = float(interval_seconds)
        self._clock = clock

        self._sync_lock = threading.Lock()
        self._periodic: Optional[ScheduledTask] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def max_retries(self) -> int:
        return self._max_retries

    @property
    def sync_in_progress(self) -> bool:
        return self._sync_lock.locked()

    # -- triggers -------------------------------------------------------

    def start(self) -> None:
        """Sync on every offline->online transition and on a fixed timer."""
        if self._unsubscribe is None:
            self._unsubscribe = self._connectivity.subscribe(self._on_connectivity_change)
        if self._periodic is None and self._scheduler is not None:
            self._periodic = self._scheduler.every(self._interval, self._on_timer)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._periodic is not None:
            self._periodic.cancel()
            self._periodic = None

    def _on_connectivity_change(self, online: bool) -> None:
        if online:
            logger.info("Connection restored, starting sync...")
            self.sync_all()

    def _on_timer(self) -> None:
        if self._connectivity.is_online and not self.sync_in_progress:
            self.sync_all()

    def force_sync_all(self) -> Optional[SyncReport]:
        return self.sync_all()

    # -- pass -----------------------------------------------------------

    def sync_all(self) -> Optional[SyncReport]:
        """Run one pass; returns None when skipped (offline or already syncing)."""
        if not self._connectivity.is_online:
            logger.debug("Sync skipped: offline")
            return None
        if not self._sync_lock.acquire(blocking=False):
            logger.debug("Sync skipped: already in progress")
            return None

        self._monitor.record_sync_start()
        synced = failed = dropped = 0
        try:
            for item in self._storage.get_sync_queue():
                try:
                    self.process_sync_item(item)
                    self._storage.remove_sync_queue_item(item.id)
                    synced += 1
                except Exception as exc:
                    failed += 1
                    logger.error("Sync error for item %s: %s", item.id, exc)
                    if self._record_failed_attempt(item):
                        dropped += 1

            synced += self.sync_unsynced_attendance()

            self._monitor.record_sync_complete(True, synced)
            self._storage.set_last_sync_time(to_iso(self._clock()))
            return SyncReport(synced=synced, failed=failed, dropped=dropped, success=True)
        except Exception:
            logger.exception("General sync error")
            self._monitor.record_sync_complete(False, synced)
            return SyncReport(synced=synced, failed=failed, dropped=dropped, success=False)
        finally:
            self._sync_lock.release()

    def sync_unsynced_attendance(self) -> int:
        synced = 0
        for record in self._storage.get_unsynced():
            try:
                self.sync_single_attendance(record)
                self._storage.mark_as_synced(record.id)
                synced += 1
            except (RemoteServiceError, StorageError) as exc:
                logger.error("Failed to sync attendance %s: %s", record.id, exc)
        return synced

    def _record_failed_attempt(self, item: SyncQueueItem) -> bool:
        """Bump the attempt counter; True when the item hit the retry limit and was removed."""
        try:
            attempts = self._storage.increment_sync_attempts(item.id)
            if attempts < self._max_retries:
                return False
            logger.warning("Removing item %s after %d failed attempts", item.id, attempts)
            self._storage.remove_sync_queue_item(item.id)
            return True
        except StorageError as exc:
            logger.error("Could not update retry state for item %s: %s", item.id, exc)
            return False

    def process_sync_item(self, item: SyncQueueItem) -> Optional[dict[str, Any]]:
        if item.type == SyncItemType.ATTENDANCE.value and item.action == SyncAction.CREATE.value:
            record = LocalAttendance.from_json(item.data)
            result = self.sync_single_attendance(record)
            if record.id is not None:
                self._storage.mark_as_synced(record.id)
            return result
        if item.type == SyncItemType.EVENT.value and item.action == SyncAction.CREATE.value:
            return self.sync_event(item.data)

        logger.warning("Unknown sync item type: %s/%s", item.type, item.action)
        return None

    def sync_single_attendance(self, record: LocalAttendance) -> dict[str, Any]:
        """Deliver one record; a server-side duplicate counts as delivered."""
        result = self._api.create_attendance(record.to_payload())
        if result.get("duplicate"):
            logger.info("Duplicate attendance detected, marking as synced (local id %s)", record.id)
        return result

    def sync_event(self, event_data: dict[str, Any]) -> dict[str, Any]:
        result = self._api.create_event(event_data)
        if result.get("exists"):
            logger.info("Event %s already exists on server", event_data.get("id"))
        return result

    # -- downloads and status ------------------------------------------

    def download_events(self) -> list[CachedEvent]:
        if not self._connectivity.is_online:
            return list(self._storage.get_all_events())
        try:
            body = self._api.list_events()
        except RemoteServiceError as exc:
            logger.error("Failed to download events: %s", exc)
            return list(self._storage.get_all_events())

        events = [CachedEvent.from_json(doc) for doc in body.get("events", [])]
        for event in events:
            self._storage.save_event(event)
        return events

    def download_attendance_data(self, user_id: str) -> list[dict[str, Any]]:
        local = [r.to_json() for r in self._storage.get_attendance_by_user(user_id)]
        if not self._connectivity.is_online:
            return local
        try:
            body = self._api.list_user_attendance(user_id)
        except RemoteServiceError as exc:
            logger.error("Failed to download attendance data: %s", exc)
            return local
        return merge_attendance_data(local, body.get("attendance", []))

    def get_sync_status(self) -> dict[str, Any]:
        status = self._storage.get_storage_stats().to_json()
        status.update(
            {
                "isOnline": self._connectivity.is_online,
                "syncInProgress": self.sync_in_progress,
                "lastSync": self._storage.get_last_sync_time(),
            }
        )
        return status

    def clear_sync_queue(self) -> None:
        for item in self._storage.get_sync_queue():
            self._storage.remove_sync_queue_item(item.id)


def merge_attendance_data(local: Sequence[dict[str, Any]], server: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    """Server rows win; unsynced local rows the server has not seen yet are appended. Newest first."""
    merged = list(server)
    server_ids = {str(item.get("localId") or item.get("id")) for item in server}
    for item in local:
        if str(item.get("id")) not in server_ids and not item.get("synced"):
            merged.append(item)

    def sort_key(item: dict[str, Any]) -> datetime:
        try:
            return parse_iso_datetime(item.get("timestamp"))
        except (TypeError, ValueError):
            return datetime.min.replace(tzinfo=timezone.utc)

    return sorted(merged, key=sort_key, reverse=True)
