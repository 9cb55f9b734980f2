from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Mapping

from ..common.datetime_utils import parse_iso_datetime
from ..core.constants import DEFAULT_QR_MAX_AGE_HOURS, QR_PAYLOAD_TYPE
from ..core.exceptions import QRExpiredError, ValidationError


@dataclass(frozen=True)
class ScanPayload:
    """Nội dung mã QR sau khi giải mã: sự kiện và thời điểm phát hành mã."""

    event_id: str
    event_name: str
    timestamp: str
    type: str = QR_PAYLOAD_TYPE

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "ScanPayload":
        return cls(
            event_id=str(data["eventId"]),
            event_name=str(data["eventName"]),
            timestamp=str(data.get("timestamp") or ""),
            type=str(data.get("type") or ""),
        )


def validate_scan_payload(
    payload: Any,
    *,
    now: datetime,
    max_age: timedelta = timedelta(hours=DEFAULT_QR_MAX_AGE_HOURS),
) -> ScanPayload:
    if not isinstance(payload, Mapping):
        raise ValidationError("Invalid QR code format")

    if not payload.get("eventId") or not payload.get("eventName"):
        raise ValidationError("Missing required event information")

    if payload.get("type") != QR_PAYLOAD_TYPE:
        raise ValidationError("QR code is not for attendance tracking")

    try:
        issued_at = parse_iso_datetime(payload.get("timestamp"))
    except (TypeError, ValueError):
        raise ValidationError("Invalid QR code timestamp") from None

    if abs(now - issued_at) > max_age:
        raise QRExpiredError("QR code has expired")

    return ScanPayload.from_json(payload)
