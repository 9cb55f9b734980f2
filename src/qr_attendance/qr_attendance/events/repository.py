from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Protocol, Sequence

from .model import Event


class EventRepository(Protocol):
    def get(self, event_id: str) -> Optional[Event]:
        raise NotImplementedError

    def get_active(self, event_id: str) -> Optional[Event]:
        raise NotImplementedError

    def list(self, *, is_active: Optional[bool], limit: int, offset: int) -> Sequence[Event]:
        """Newest event date first."""

        raise NotImplementedError

    def count(self, *, is_active: Optional[bool]) -> int:
        raise NotImplementedError

    def list_upcoming(self, *, now: datetime, limit: int, offset: int) -> Sequence[Event]:
        raise NotImplementedError

    def list_current(self, *, now: datetime, limit: int, offset: int) -> Sequence[Event]:
        raise NotImplementedError

    def list_by_date_range(self, *, start: datetime, end: datetime, is_active: Optional[bool]) -> Sequence[Event]:
        raise NotImplementedError

    def create(self, event: Event) -> None:
        raise NotImplementedError

    def update(self, event_id: str, changes: dict[str, Any], *, updated_at: datetime) -> Optional[Event]:
        """Apply model-field changes; returns the updated event or None when missing."""

        raise NotImplementedError

    def increment_attendance_count(self, event_id: str) -> None:
        raise NotImplementedError
