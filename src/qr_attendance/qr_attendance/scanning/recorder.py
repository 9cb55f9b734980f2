"""Turns a scanned attendance code into a durable local record.

The local write is the commit point: once ``save_attendance`` returns the
record is kept and will reach the server eventually, whether or not the
immediate delivery attempt succeeds.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from ..common.datetime_utils import now_utc, one_month_before, parse_iso_datetime, start_of_day, to_iso
from ..core.constants import DEFAULT_GEOLOCATION_TIMEOUT_SECONDS, DEFAULT_QR_MAX_AGE_HOURS
from ..core.exceptions import DuplicateAttendanceError, RemoteServiceError, StorageError
from ..offline.model import LocalAttendance
from ..offline.repository import OfflineStorage
from ..qr.payload import parse_scan_text
from ..sync.connectivity import ConnectivityMonitor
from ..sync.engine import SyncEngine
from ..sync.performance import PerformanceMonitor
from .location import BestEffortLocator, LocationProvider, device_info
from .validator import ScanPayload, validate_scan_payload

logger = logging.getLogger(__name__)

MSG_RECORDED = "Attendance recorded successfully"
MSG_SAVED_OFFLINE = "Attendance saved offline"


@dataclass(frozen=True)
class RecordResult:
    success: bool
    local_id: Optional[int] = None
    message: str = ""
    error: Optional[str] = None
    synced: bool = False

    def to_json(self) -> dict[str, Any]:
        doc: dict[str, Any] = {"success": self.success}
        if self.success:
            doc.update({"localId": self.local_id, "message": self.message, "synced": self.synced})
        else:
            doc["error"] = self.error
        return doc


class AttendanceRecorder:
    def __init__(
        self,
        storage: OfflineStorage,
        sync_engine: SyncEngine,
        connectivity: ConnectivityMonitor,
        *,
        monitor: Optional[PerformanceMonitor] = None,
        location_provider: Optional[LocationProvider] = None,
        geolocation_timeout: float = DEFAULT_GEOLOCATION_TIMEOUT_SECONDS,
        qr_max_age_hours: float = DEFAULT_QR_MAX_AGE_HOURS,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._storage = storage
        self._sync = sync_engine
        self._connectivity = connectivity
        self._monitor = monitor or PerformanceMonitor()
        self._locator = BestEffortLocator(location_provider, timeout=geolocation_timeout)
        self._max_age = timedelta(hours=qr_max_age_hours)
        self._clock = clock

    def close(self) -> None:
        self._locator.shutdown()

    # -- validation -----------------------------------------------------

    def validate_qr_code(self, payload: Any) -> ScanPayload:
        return validate_scan_payload(payload, now=self._clock(), max_age=self._max_age)

    def check_duplicate_attendance(self, event_id: str, user_id: str) -> bool:
        """Local check only; the server still has the final word."""
        try:
            existing = self._storage.get_attendance_by_event(event_id)
        except StorageError as exc:
            logger.error("Error checking duplicate attendance: %s", exc)
            return False
        return any(r.user_id == user_id for r in existing)

    # -- recording ------------------------------------------------------

    def scan(self, raw: Union[str, Mapping[str, Any]], user_id: str, user_name: str) -> RecordResult:
        """Decode, validate and record one scan.

        Raises ValidationError (or QRExpiredError) for a bad code and
        DuplicateAttendanceError when this device already holds a record for
        the pair.
        """
        if isinstance(raw, str):
            raw = parse_scan_text(raw)

        payload = self.validate_qr_code(raw)
        if self.check_duplicate_attendance(payload.event_id, user_id):
            raise DuplicateAttendanceError("You have already marked attendance for this event")
        return self.record_attendance(payload, user_id, user_name)

    def record_attendance(
        self,
        scan: Union[ScanPayload, Mapping[str, Any]],
        user_id: str,
        user_name: str,
    ) -> RecordResult:
        if not isinstance(scan, ScanPayload):
            scan = ScanPayload.from_json(scan)

        now = self._clock()
        record = LocalAttendance(
            event_id=scan.event_id,
            event_name=scan.event_name,
            user_id=user_id,
            user_name=user_name,
            timestamp=to_iso(now),
            qr_timestamp=scan.timestamp or None,
            location=self._locator.current_location(),
            device_info=device_info(now),
        )

        try:
            local_id = self._storage.save_attendance(record)
        except (StorageError, DuplicateAttendanceError) as exc:
            logger.error("Error recording attendance: %s", exc)
            return RecordResult(success=False, error=str(exc))

        synced = self._deliver_now(record.with_id(local_id))
        if not synced:
            self._monitor.record_offline_operation()

        return RecordResult(
            success=True,
            local_id=local_id,
            message=MSG_RECORDED if synced else MSG_SAVED_OFFLINE,
            synced=synced,
        )

    def _deliver_now(self, record: LocalAttendance) -> bool:
        if not self._connectivity.is_online:
            return False
        try:
            self._sync.sync_single_attendance(record)
            self._storage.mark_as_synced(record.id)
        except (RemoteServiceError, StorageError) as exc:
            logger.warning("Immediate sync failed, will retry later: %s", exc)
            return False
        return True

    # -- queries --------------------------------------------------------

    def get_attendance_history(self, user_id: str) -> list[LocalAttendance]:
        return sorted(self._storage.get_attendance_by_user(user_id), key=_record_time, reverse=True)

    def get_event_attendance(self, event_id: str) -> Sequence[LocalAttendance]:
        return self._storage.get_attendance_by_event(event_id)

    def get_attendance_stats(self, user_id: str) -> dict[str, int]:
        records = self._storage.get_attendance_by_user(user_id)
        now = self._clock()
        today = start_of_day(now)
        week_ago = now - timedelta(days=7)
        month_ago = one_month_before(now)
        times = [_record_time(r) for r in records]
        return {
            "total": len(records),
            "today": sum(1 for t in times if t >= today),
            "thisWeek": sum(1 for t in times if t >= week_ago),
            "thisMonth": sum(1 for t in times if t >= month_ago),
            "unsynced": sum(1 for r in records if not r.synced),
        }


def _record_time(record: LocalAttendance) -> datetime:
    try:
        return parse_iso_datetime(record.timestamp)
    except (TypeError, ValueError):
        return datetime.min.replace(tzinfo=timezone.utc)
