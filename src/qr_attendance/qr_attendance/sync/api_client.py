from __future__ import annotations

import logging
import time
from typing import Any, Optional
from urllib.parse import quote, urljoin

import requests

from ..core.constants import DEFAULT_REQUEST_TIMEOUT_SECONDS
from ..core.exceptions import RemoteServiceError
from .performance import PerformanceMonitor

logger = logging.getLogger(__name__)

HTTP_CONFLICT = 409


def _segment(value: Any) -> str:
    return quote(str(value), safe="")


class AttendanceApiClient:
    """HTTP client for the attendance API.

    Every call fails fast at ``timeout`` seconds; network errors and non-2xx
    responses raise RemoteServiceError. 409 handling is left to callers, which
    decide whether a conflict means "already there".
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
        monitor: Optional[PerformanceMonitor] = None,
    ):
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout = timeout
        self._session = session or requests.Session()
        self._monitor = monitor

    def _request(
        self,
        method: str,
        path: str,
        *,
        payload: Optional[Any] = None,
        params: Optional[dict[str, Any]] = None,
        allow_conflict: bool = False,
    ):
        url = urljoin(self.base_url, path.lstrip("/"))
        started = time.perf_counter()
        try:
            response = self._session.request(method, url, json=payload, params=params or {}, timeout=self.timeout)
        except requests.RequestException as exc:
            self._record(url, started, success=False, error=str(exc))
            raise RemoteServiceError(f"{method} {url} failed: {exc}") from exc

        ok = 200 <= response.status_code < 300
        self._record(url, started, success=ok)
        if ok or (allow_conflict and response.status_code == HTTP_CONFLICT):
            return response

        body = _json_or_none(response)
        message = body.get("error") if isinstance(body, dict) and body.get("error") else f"HTTP {response.status_code}"
        raise RemoteServiceError(f"{method} {url}: {message}", status_code=response.status_code, body=body)

    def _record(self, url: str, started: float, *, success: bool, error: Optional[str] = None) -> None:
        if self._monitor is not None:
            self._monitor.record_request(url, (time.perf_counter() - started) * 1000.0, success=success, error=error)

    def create_attendance(self, payload: dict[str, Any]) -> dict[str, Any]:
        """POST /attendance; a 409 comes back as ``{"success": True, "duplicate": True}``."""
        response = self._request("POST", "/attendance", payload=payload, allow_conflict=True)
        if response.status_code == HTTP_CONFLICT:
            return {"success": True, "duplicate": True}
        return _json_or_none(response) or {}

    def bulk_create_attendance(self, records: list[dict[str, Any]]) -> dict[str, Any]:
        return _json_or_none(self._request("POST", "/attendance/bulk", payload={"attendanceRecords": records})) or {}

    def list_event_attendance(self, event_id: str, *, limit: int = 100, offset: int = 0) -> dict[str, Any]:
        response = self._request(
            "GET", f"/attendance/event/{_segment(event_id)}", params={"limit": limit, "offset": offset}
        )
        return _json_or_none(response) or {}

    def list_user_attendance(self, user_id: str, *, limit: int = 50, offset: int = 0) -> dict[str, Any]:
        response = self._request("GET", f"/attendance/user/{_segment(user_id)}", params={"limit": limit, "offset": offset})
        return _json_or_none(response) or {}

    def create_event(self, payload: dict[str, Any]) -> dict[str, Any]:
        """POST /events; a 409 comes back as ``{"success": True, "exists": True}``."""
        response = self._request("POST", "/events", payload=payload, allow_conflict=True)
        if response.status_code == HTTP_CONFLICT:
            return {"success": True, "exists": True}
        return _json_or_none(response) or {}

    def list_events(self, **params: Any) -> dict[str, Any]:
        return _json_or_none(self._request("GET", "/events", params=params)) or {}

    def get_event(self, event_id: str) -> dict[str, Any]:
        return _json_or_none(self._request("GET", f"/events/{_segment(event_id)}")) or {}

    def update_event(self, event_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        return _json_or_none(self._request("PUT", f"/events/{_segment(event_id)}", payload=changes)) or {}

    def delete_event(self, event_id: str) -> dict[str, Any]:
        return _json_or_none(self._request("DELETE", f"/events/{_segment(event_id)}")) or {}

    def get_event_qr(self, event_id: str) -> dict[str, Any]:
        return _json_or_none(self._request("GET", f"/events/{_segment(event_id)}/qr")) or {}

    def health(self) -> dict[str, Any]:
        return _json_or_none(self._request("GET", "/health")) or {}


def _json_or_none(response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None
