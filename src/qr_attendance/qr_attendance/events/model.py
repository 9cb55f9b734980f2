from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ..common.datetime_utils import to_iso


@dataclass(frozen=True)
class Event:
    """Thực thể miền (domain): Sự kiện cần điểm danh bằng mã QR."""

    id: str
    name: str
    date: datetime
    start_time: datetime
    end_time: datetime
    description: str = ""
    location: Optional[dict] = None
    organizer: Optional[dict] = None
    capacity: Optional[int] = None
    is_active: bool = True
    qr_code_data: Optional[dict] = None
    attendance_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def has_capacity(self) -> bool:
        return self.capacity is None or self.attendance_count < self.capacity

    def is_currently_active(self, now: datetime) -> bool:
        return self.is_active and self.start_time <= now <= self.end_time

    def summary_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "date": to_iso(self.date),
            "startTime": to_iso(self.start_time),
            "endTime": to_iso(self.end_time),
            "location": self.location,
        }

    def to_json(self) -> dict[str, Any]:
        data = self.summary_json()
        data.update(
            {
                "description": self.description,
                "organizer": self.organizer,
                "capacity": self.capacity,
                "isActive": self.is_active,
                "attendanceCount": self.attendance_count,
                "createdAt": to_iso(self.created_at),
                "updatedAt": to_iso(self.updated_at),
            }
        )
        return data


# Request keys that may be changed through PUT /events/<id>, mapped to model fields.
UPDATABLE_FIELDS: dict[str, str] = {
    "name": "name",
    "description": "description",
    "date": "date",
    "startTime": "start_time",
    "endTime": "end_time",
    "location": "location",
    "organizer": "organizer",
    "capacity": "capacity",
    "isActive": "is_active",
}

PROTECTED_FIELDS = frozenset({"id", "attendanceCount", "createdAt", "updatedAt"})

DATETIME_FIELDS = frozenset({"date", "start_time", "end_time"})

