from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import Attendance, NewAttendance


class AttendanceRepository(Protocol):
    def find_for_event_and_user(self, event_id: str, user_id: str) -> Optional[Attendance]:
        raise NotImplementedError

    def create(self, attendance: NewAttendance, *, now: datetime) -> Attendance:
        """Insert; raises DuplicateAttendanceError when (event_id, user_id) already exists."""

        raise NotImplementedError

    def list_for_event(self, event_id: str, *, limit: int, offset: int) -> Sequence[Attendance]:
        raise NotImplementedError

    def count_for_event(self, event_id: str) -> int:
        raise NotImplementedError

    def list_for_user(
        self,
        user_id: str,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> Sequence[Attendance]:
        """Newest first; start/end bound ``timestamp`` inclusively."""

        raise NotImplementedError

    def count_for_user(self, user_id: str, *, start: Optional[datetime] = None, end: Optional[datetime] = None) -> int:
        raise NotImplementedError

    def list_in_range(
        self,
        *,
        start: datetime,
        end: datetime,
        user_id: Optional[str] = None,
        event_id: Optional[str] = None,
    ) -> Sequence[Attendance]:
        raise NotImplementedError

    def first_for_user(self, user_id: str) -> Optional[Attendance]:
        raise NotImplementedError
