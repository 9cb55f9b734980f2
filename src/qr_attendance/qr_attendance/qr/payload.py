"""QR payloads for attendance check-in.

A code carries ``{eventId, eventName, timestamp, type: "attendance"}`` as JSON.
"""
from __future__ import annotations

import io
import json
from datetime import datetime
from typing import Any, Optional

import qrcode

from ..common.datetime_utils import now_utc, to_iso
from ..core.constants import QR_PAYLOAD_TYPE
from ..core.exceptions import ValidationError


def build_attendance_payload(event_id: str, event_name: str, timestamp: Optional[datetime] = None) -> dict[str, Any]:
    return {
        "eventId": event_id,
        "eventName": event_name,
        "timestamp": to_iso(timestamp or now_utc()),
        "type": QR_PAYLOAD_TYPE,
    }


def encode_payload(payload: dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def parse_scan_text(text: str) -> Any:
    """Decode the text read from a code; the result still needs validation."""
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        raise ValidationError("Invalid QR code format") from None


def generate_qr_png(data: str, *, box_size: int = 10, border: int = 2) -> bytes:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def generate_attendance_qr(event_id: str, event_name: str, timestamp: Optional[datetime] = None) -> bytes:
    return generate_qr_png(encode_payload(build_attendance_payload(event_id, event_name, timestamp)))
