from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence

from .model import CachedEvent, LocalAttendance, StorageStats, SyncQueueItem


class OfflineStorage(Protocol):
    """Local durable store: attendance, event cache and sync queue.

    Every method either completes durably or raises StorageError.
    """

    def save_attendance(self, record: LocalAttendance) -> int:
        """Insert as unsynced and enqueue its ``attendance/create`` item in one transaction."""

        raise NotImplementedError

    def get_unsynced(self) -> Sequence[LocalAttendance]:
        raise NotImplementedError

    def mark_as_synced(self, local_id: int) -> None:
        raise NotImplementedError

    def get_attendance(self, local_id: int) -> Optional[LocalAttendance]:
        raise NotImplementedError

    def get_all_attendance(self) -> Sequence[LocalAttendance]:
        raise NotImplementedError

    def get_attendance_by_event(self, event_id: str) -> Sequence[LocalAttendance]:
        raise NotImplementedError

    def get_attendance_by_user(self, user_id: str) -> Sequence[LocalAttendance]:
        raise NotImplementedError

    def save_event(self, event: CachedEvent) -> None:
        raise NotImplementedError

    def get_all_events(self) -> Sequence[CachedEvent]:
        raise NotImplementedError

    def get_event(self, event_id: str) -> Optional[CachedEvent]:
        raise NotImplementedError

    def add_to_sync_queue(self, *, item_type: str, action: str, data: dict[str, Any]) -> int:
        raise NotImplementedError

    def get_sync_queue(self) -> Sequence[SyncQueueItem]:
        """Insertion order."""

        raise NotImplementedError

    def remove_sync_queue_item(self, item_id: int) -> None:
        raise NotImplementedError

    def increment_sync_attempts(self, item_id: int) -> int:
        """Returns the new attempt count (0 when the item is gone)."""

        raise NotImplementedError

    def clear_all_data(self) -> None:
        raise NotImplementedError

    def get_storage_stats(self) -> StorageStats:
        raise NotImplementedError

    def get_last_sync_time(self) -> Optional[str]:
        raise NotImplementedError

    def set_last_sync_time(self, value: str) -> None:
        raise NotImplementedError
