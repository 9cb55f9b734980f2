from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping, Optional, Sequence

from ..common.datetime_utils import now_utc, one_month_before, parse_iso_datetime, start_of_day
from ..common.pagination import Page
from ..common.validators import require_fields
from ..core.constants import DEFAULT_EVENT_ATTENDANCE_LIMIT, DEFAULT_USER_ATTENDANCE_LIMIT
from ..core.enums import BulkResultStatus
from ..core.exceptions import CapacityError, DomainError, DuplicateAttendanceError, NotFoundError, ValidationError
from ..events.repository import EventRepository
from .model import Attendance, NewAttendance
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


def _optional_dt(value: Any, field_name: str, *, default: Optional[datetime]) -> Optional[datetime]:
    if value in (None, ""):
        return default
    try:
        return parse_iso_datetime(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} is not a valid date") from None


class AttendanceService:
    """Canonical attendance rules: one record per (event, user), active events only, capacity check."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        events: EventRepository,
        *,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._attendance = attendance
        self._events = events
        self._clock = clock

    def record(self, data: Mapping[str, Any]) -> Attendance:
        require_fields(data, "eventId", "userId", "userName")
        event_id = str(data["eventId"])
        user_id = str(data["userId"])

        existing = self._attendance.find_for_event_and_user(event_id, user_id)
        if existing:
            raise DuplicateAttendanceError(existing=existing)

        event = self._events.get_active(event_id)
        if not event:
            raise NotFoundError("Event not found or inactive")

        if not event.has_capacity():
            raise CapacityError("Event has reached maximum capacity")

        now = self._clock()
        new = NewAttendance(
            event_id=event_id,
            event_name=str(data.get("eventName") or event.name),
            user_id=user_id,
            user_name=str(data["userName"]),
            timestamp=_optional_dt(data.get("timestamp"), "timestamp", default=now),
            qr_timestamp=_optional_dt(data.get("qrTimestamp"), "qrTimestamp", default=now),
            location=data.get("location"),
            device_info=data.get("deviceInfo"),
            local_id=str(data["localId"]) if data.get("localId") is not None else None,
        )

        try:
            created = self._attendance.create(new, now=now)
        except DuplicateAttendanceError:
            # Lost the race against another device; the unique key decided.
            raise DuplicateAttendanceError(existing=self._attendance.find_for_event_and_user(event_id, user_id))

        self._events.increment_attendance_count(event_id)
        logger.info("Recorded attendance event=%s user=%s localId=%s", event_id, user_id, new.local_id)
        return created

    def record_bulk(self, records: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
        if not isinstance(records, (list, tuple)):
            raise ValidationError("attendanceRecords must be an array")

        results: list[dict[str, Any]] = []
        errors: list[dict[str, Any]] = []
        for record in records:
            local_id = record.get("localId") if isinstance(record, Mapping) else None
            try:
                if not isinstance(record, Mapping):
                    raise ValidationError("Attendance record must be an object")
                created = self.record(record)
                results.append({"localId": local_id, "status": BulkResultStatus.CREATED.value, "attendance": created.to_json()})
            except DuplicateAttendanceError as e:
                existing = e.existing.to_json() if e.existing else None
                results.append({"localId": local_id, "status": BulkResultStatus.DUPLICATE.value, "attendance": existing})
            except DomainError as e:
                errors.append({"localId": local_id, "error": str(e)})

        return {
            "success": True,
            "processed": len(records),
            "created": sum(1 for r in results if r["status"] == BulkResultStatus.CREATED.value),
            "duplicates": sum(1 for r in results if r["status"] == BulkResultStatus.DUPLICATE.value),
            "errorCount": len(errors),
            "results": results,
            "errors": errors,
        }

    def list_for_event(self, event_id: str, *, limit: int = DEFAULT_EVENT_ATTENDANCE_LIMIT, offset: int = 0) -> Page[Attendance]:
        items = self._attendance.list_for_event(event_id, limit=limit, offset=offset)
        total = self._attendance.count_for_event(event_id)
        return Page(items=list(items), total_count=total, offset=offset, limit=limit)

    def list_for_user(
        self,
        user_id: str,
        *,
        limit: int = DEFAULT_USER_ATTENDANCE_LIMIT,
        offset: int = 0,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Page[Attendance]:
        start = _optional_dt(start_date, "startDate", default=None)
        end = _optional_dt(end_date, "endDate", default=None)
        items = self._attendance.list_for_user(user_id, start=start, end=end, limit=limit, offset=offset)
        total = self._attendance.count_for_user(user_id, start=start, end=end)
        return Page(items=list(items), total_count=total, offset=offset, limit=limit)

    def list_in_range(
        self,
        *,
        start_date: Optional[str],
        end_date: Optional[str],
        user_id: Optional[str] = None,
        event_id: Optional[str] = None,
    ) -> list[Attendance]:
        if not start_date or not end_date:
            raise ValidationError("startDate and endDate are required")
        return list(
            self._attendance.list_in_range(
                start=_optional_dt(start_date, "startDate", default=None),
                end=_optional_dt(end_date, "endDate", default=None),
                user_id=user_id,
                event_id=event_id,
            )
        )

    def stats_for_user(self, user_id: str) -> dict[str, int]:
        now = self._clock()
        return {
            "total": self._attendance.count_for_user(user_id),
            "today": self._attendance.count_for_user(user_id, start=start_of_day(now)),
            "thisWeek": self._attendance.count_for_user(user_id, start=now - timedelta(days=7)),
            "thisMonth": self._attendance.count_for_user(user_id, start=one_month_before(now)),
        }
