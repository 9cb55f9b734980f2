from __future__ import annotations

import logging
import platform
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Protocol

from ..common.datetime_utils import to_iso

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None

    def to_json(self) -> dict[str, Any]:
        return {"latitude": self.latitude, "longitude": self.longitude, "accuracy": self.accuracy}


class LocationProvider(Protocol):
    def get_current_location(self) -> Optional[Location]:
        """May block, raise, or return None when the position is unavailable."""

        raise NotImplementedError


class NoLocationProvider(LocationProvider):
    def get_current_location(self) -> Optional[Location]:
        return None


class BestEffortLocator:
    """Wraps a provider so that a lookup never raises and never waits longer than ``timeout``."""

    def __init__(self, provider: Optional[LocationProvider] = None, *, timeout: float = 5.0):
        self._provider = provider or NoLocationProvider()
        self._timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="geolocation")
        self._pending: Optional[Future] = None

    def current_location(self) -> Optional[dict[str, Any]]:
        if self._pending is not None and not self._pending.done():
            logger.warning("Previous location lookup still running, skipping")
            return None
        future = self._pending = self._executor.submit(self._provider.get_current_location)
        try:
            location = future.result(timeout=self._timeout)
        except FutureTimeoutError:
            future.cancel()
            logger.warning("Location lookup timed out after %.1fs", self._timeout)
            return None
        except Exception as exc:
            logger.warning("Location access denied: %s", exc)
            return None
        return location.to_json() if location else None

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)


def device_info(now: datetime) -> dict[str, Any]:
    return {
        "userAgent": f"qr-attendance Python/{platform.python_version()}",
        "platform": platform.platform(),
        "timestamp": to_iso(now),
    }
