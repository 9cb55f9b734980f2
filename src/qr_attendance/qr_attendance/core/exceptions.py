from __future__ import annotations

from typing import Any, Optional


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class QRExpiredError(ValidationError):
    """Raised when a scanned code is older than the allowed window."""


class DuplicateAttendanceError(DomainError):
    """Raised when attendance for the (event, user) pair already exists."""

    def __init__(self, message: str = "Attendance already recorded for this event", *, existing: Any = None):
        super().__init__(message)
        self.existing = existing


class DuplicateEventError(DomainError):
    def __init__(self, message: str = "Event with this ID already exists", *, existing: Any = None):
        super().__init__(message)
        self.existing = existing


class NotFoundError(DomainError):
    """Raised when the target event/record does not exist (or is inactive)."""


class CapacityError(DomainError):
    """Raised when an event has reached its maximum capacity."""


class StorageError(Exception):
    """Raised when the local durable store cannot complete a write or read."""


class RemoteServiceError(Exception):
    """Raised for network failures and non-success responses from the API.

    ``status_code`` is None when the request never got a response.
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
