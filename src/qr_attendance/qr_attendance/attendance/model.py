from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ..common.datetime_utils import to_iso


@dataclass(frozen=True)
class NewAttendance:
    """Dữ liệu điểm danh hợp lệ, chưa được lưu."""

    event_id: str
    event_name: str
    user_id: str
    user_name: str
    timestamp: datetime
    qr_timestamp: datetime
    location: Optional[dict] = None
    device_info: Optional[dict] = None
    local_id: Optional[str] = None


@dataclass(frozen=True)
class Attendance:
    """Thực thể miền (domain): Bản ghi điểm danh đã được máy chủ xác nhận."""

    attendance_id: int
    event_id: str
    event_name: str
    user_id: str
    user_name: str
    timestamp: datetime
    qr_timestamp: datetime
    synced_at: datetime
    created_at: datetime
    updated_at: datetime
    location: Optional[dict] = None
    device_info: Optional[dict] = None
    local_id: Optional[str] = None

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.attendance_id,
            "eventId": self.event_id,
            "eventName": self.event_name,
            "userId": self.user_id,
            "userName": self.user_name,
            "timestamp": to_iso(self.timestamp),
            "qrTimestamp": to_iso(self.qr_timestamp),
            "location": self.location,
            "deviceInfo": self.device_info,
            "localId": self.local_id,
            "syncedAt": to_iso(self.synced_at),
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }
