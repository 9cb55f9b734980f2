from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

import requests

logger = logging.getLogger(__name__)

ConnectivityListener = Callable[[bool], None]


class ConnectivityMonitor:
    """Online/offline signal; listeners hear only about transitions."""

    def __init__(
        self,
        *,
        initially_online: bool = True,
        health_url: Optional[str] = None,
        probe_timeout: float = 2.0,
        session: Optional[requests.Session] = None,
    ):
        self._online = bool(initially_online)
        self._health_url = health_url
        self._probe_timeout = probe_timeout
        self._session = session or requests.Session()
        self._listeners: list[ConnectivityListener] = []
        self._lock = threading.Lock()

    @property
    def is_online(self) -> bool:
        return self._online

    def subscribe(self, listener: ConnectivityListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def set_online(self, online: bool) -> None:
        online = bool(online)
        with self._lock:
            changed = online != self._online
            self._online = online
            listeners = list(self._listeners)
        if not changed:
            return

        if online:
            logger.info("Connection restored")
        else:
            logger.info("Connection lost, sync paused")
        for listener in listeners:
            try:
                listener(online)
            except Exception:
                logger.exception("Connectivity listener failed")

    def probe(self) -> bool:
        """Check reachability of the health URL and publish the result."""
        if not self._health_url:
            return self._online
        try:
            response = self._session.head(self._health_url, timeout=self._probe_timeout)
            online = response.status_code < 500
        except requests.RequestException as exc:
            logger.debug("Connectivity probe failed: %s", exc)
            online = False
        self.set_online(online)
        return online
