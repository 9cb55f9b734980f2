from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from ..common.datetime_utils import now_utc, parse_iso_datetime
from ..common.pagination import Page
from ..common.validators import require_fields
from ..core.constants import DEFAULT_EVENTS_LIMIT
from ..core.exceptions import DuplicateEventError, NotFoundError, ValidationError
from ..qr.payload import build_attendance_payload
from .model import DATETIME_FIELDS, PROTECTED_FIELDS, UPDATABLE_FIELDS, Event
from .repository import EventRepository

logger = logging.getLogger(__name__)


def _parse_dt(value: Any, field_name: str) -> datetime:
    try:
        return parse_iso_datetime(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} is not a valid date") from None


def _parse_capacity(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("capacity must be an integer") from None


class EventService:
    def __init__(self, events: EventRepository, *, clock: Callable[[], datetime] = now_utc):
        self._events = events
        self._clock = clock

    def list_events(
        self,
        *,
        limit: int = DEFAULT_EVENTS_LIMIT,
        offset: int = 0,
        active: Optional[bool] = None,
        upcoming: bool = False,
        current: bool = False,
    ) -> Page[Event]:
        now = self._clock()
        if upcoming:
            items = self._events.list_upcoming(now=now, limit=limit, offset=offset)
        elif current:
            items = self._events.list_current(now=now, limit=limit, offset=offset)
        else:
            items = self._events.list(is_active=active, limit=limit, offset=offset)

        total = self._events.count(is_active=active)
        return Page(items=list(items), total_count=total, offset=offset, limit=limit)

    def get_event(self, event_id: str) -> Event:
        event = self._events.get(event_id)
        if not event:
            raise NotFoundError("Event not found")
        return event

    def create_event(self, data: Mapping[str, Any]) -> Event:
        require_fields(data, "id", "name", "date", "startTime", "endTime")

        event_id = str(data["id"])
        existing = self._events.get(event_id)
        if existing:
            raise DuplicateEventError(existing=existing)

        start_time = _parse_dt(data["startTime"], "startTime")
        end_time = _parse_dt(data["endTime"], "endTime")
        if start_time >= end_time:
            raise ValidationError("Start time must be before end time")

        now = self._clock()
        event = Event(
            id=event_id,
            name=str(data["name"]),
            description=str(data.get("description") or ""),
            date=_parse_dt(data["date"], "date"),
            start_time=start_time,
            end_time=end_time,
            location=data.get("location"),
            organizer=data.get("organizer"),
            capacity=_parse_capacity(data.get("capacity")),
            qr_code_data=build_attendance_payload(event_id, str(data["name"]), now),
            created_at=now,
            updated_at=now,
        )
        self._events.create(event)
        logger.info("Created event %s (%s)", event.id, event.name)
        return event

    def update_event(self, event_id: str, data: Mapping[str, Any]) -> Event:
        changes: dict[str, Any] = {}
        for key, value in data.items():
            if key in PROTECTED_FIELDS or key not in UPDATABLE_FIELDS:
                continue
            column = UPDATABLE_FIELDS[key]
            if column in DATETIME_FIELDS:
                value = _parse_dt(value, key)
            elif column == "capacity":
                value = _parse_capacity(value)
            changes[column] = value

        if "start_time" in changes and "end_time" in changes and changes["start_time"] >= changes["end_time"]:
            raise ValidationError("Start time must be before end time")

        if not self._events.get(event_id):
            raise NotFoundError("Event not found")

        event = self._events.update(event_id, changes, updated_at=self._clock())
        if not event:
            raise NotFoundError("Event not found")
        return event

    def deactivate_event(self, event_id: str) -> Event:
        """Soft delete: the event stays stored but stops accepting attendance."""

        if not self._events.get(event_id):
            raise NotFoundError("Event not found")
        event = self._events.update(event_id, {"is_active": False}, updated_at=self._clock())
        if not event:
            raise NotFoundError("Event not found")
        logger.info("Deactivated event %s", event_id)
        return event

    def events_in_range(self, start: str, end: str, *, active: str = "true") -> list[Event]:
        is_active = None if active == "all" else active == "true"
        return list(
            self._events.list_by_date_range(
                start=_parse_dt(start, "startDate"),
                end=_parse_dt(end, "endDate"),
                is_active=is_active,
            )
        )

    def qr_for_event(self, event_id: str) -> dict[str, Any]:
        """Fresh scan payload for a live event, stamped with the current time."""

        event = self._events.get_active(event_id)
        if not event:
            raise NotFoundError("Event not found or inactive")
        return {
            "qrData": build_attendance_payload(event.id, event.name, self._clock()),
            "event": event.summary_json(),
        }
