from __future__ import annotations

from typing import Any

from ..attendance.repository import AttendanceRepository
from ..attendance.service import AttendanceService
from ..common.datetime_utils import to_iso
from ..core.constants import RECENT_ATTENDANCE_LIMIT


class UserProfileService:
    """Attendee profile derived from attendance; there is no separate user table."""

    def __init__(self, attendance: AttendanceRepository, attendance_service: AttendanceService):
        self._attendance = attendance
        self._attendance_service = attendance_service

    def profile(self, user_id: str) -> dict[str, Any]:
        recent = list(self._attendance.list_for_user(user_id, limit=RECENT_ATTENDANCE_LIMIT, offset=0))
        first = self._attendance.first_for_user(user_id)
        return {
            "userId": user_id,
            "stats": self._attendance_service.stats_for_user(user_id),
            "recentAttendance": [a.to_json() for a in recent],
            "memberSince": to_iso(first.timestamp) if first else None,
            "lastActivity": to_iso(recent[0].timestamp) if recent else None,
        }
