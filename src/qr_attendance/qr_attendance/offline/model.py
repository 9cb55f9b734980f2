from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class LocalAttendance:
    """Bản ghi điểm danh lưu trên thiết bị, chờ máy chủ xác nhận (synced)."""

    event_id: str
    event_name: str
    user_id: str
    user_name: str
    timestamp: Optional[str] = None
    qr_timestamp: Optional[str] = None
    location: Optional[dict] = None
    device_info: Optional[dict] = None
    synced: bool = False
    id: Optional[int] = None

    def with_id(self, local_id: int) -> "LocalAttendance":
        return replace(self, id=local_id)

    def to_payload(self) -> dict[str, Any]:
        """Body of ``POST /attendance``."""
        return {
            "eventId": self.event_id,
            "eventName": self.event_name,
            "userId": self.user_id,
            "userName": self.user_name,
            "timestamp": self.timestamp,
            "qrTimestamp": self.qr_timestamp,
            "location": self.location,
            "deviceInfo": self.device_info,
            "localId": self.id,
        }

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "eventId": self.event_id,
            "eventName": self.event_name,
            "userId": self.user_id,
            "userName": self.user_name,
            "timestamp": self.timestamp,
            "qrTimestamp": self.qr_timestamp,
            "location": self.location,
            "deviceInfo": self.device_info,
            "synced": self.synced,
        }

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "LocalAttendance":
        return cls(
            id=int(data["id"]) if data.get("id") is not None else None,
            event_id=str(data["eventId"]),
            event_name=str(data.get("eventName") or ""),
            user_id=str(data["userId"]),
            user_name=str(data.get("userName") or ""),
            timestamp=data.get("timestamp"),
            qr_timestamp=data.get("qrTimestamp"),
            location=data.get("location"),
            device_info=data.get("deviceInfo"),
            synced=bool(data.get("synced", False)),
        )


@dataclass(frozen=True)
class SyncQueueItem:
    """Thao tác chờ gửi lên máy chủ; ``attempts`` chỉ tăng."""

    id: int
    type: str
    action: str
    data: dict[str, Any]
    timestamp: str
    attempts: int = 0


@dataclass(frozen=True)
class CachedEvent:
    id: str
    name: str
    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    location: Optional[dict] = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "CachedEvent":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            date=data.get("date"),
            start_time=data.get("startTime"),
            end_time=data.get("endTime"),
            location=data.get("location"),
            data=dict(data),
        )

    def to_json(self) -> dict[str, Any]:
        doc = dict(self.data)
        doc.update(
            {
                "id": self.id,
                "name": self.name,
                "date": self.date,
                "startTime": self.start_time,
                "endTime": self.end_time,
                "location": self.location,
            }
        )
        return doc


@dataclass(frozen=True)
class StorageStats:
    total_attendance: int
    total_events: int
    pending_sync: int
    unsynced_attendance: int

    def to_json(self) -> dict[str, int]:
        return {
            "totalAttendance": self.total_attendance,
            "totalEvents": self.total_events,
            "pendingSync": self.pending_sync,
            "unsyncedAttendance": self.unsynced_attendance,
        }
