"""Wiring for the scanning device: local store, sync engine and recorder."""
from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass, field
from types import ModuleType
from typing import Optional

import requests

from config import get_settings_module

from .common.logging_setup import configure_logging
from .core.constants import DEFAULT_CONNECTIVITY_CHECK_SECONDS
from .offline.repository import OfflineStorage
from .offline.sqlite_base import SQLiteDatabase
from .offline.sqlite_offline_storage import SQLiteOfflineStorage
from .scanning.location import LocationProvider
from .scanning.recorder import AttendanceRecorder
from .sync.api_client import AttendanceApiClient
from .sync.connectivity import ConnectivityMonitor
from .sync.engine import SyncEngine
from .sync.performance import PerformanceMonitor
from .sync.scheduler import ScheduledTask, Scheduler, ThreadingScheduler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientContainer:
    storage: OfflineStorage
    connectivity: ConnectivityMonitor
    monitor: PerformanceMonitor
    api: AttendanceApiClient
    sync_engine: SyncEngine
    recorder: AttendanceRecorder
    scheduler: Scheduler
    check_interval_seconds: float = DEFAULT_CONNECTIVITY_CHECK_SECONDS
    _tasks: list[ScheduledTask] = field(default_factory=list)

    def start(self) -> None:
        """Wire sync triggers and poll the health URL so reconnects are noticed."""
        self.sync_engine.start()
        if not self._tasks:
            self._tasks.append(self.scheduler.every(self.check_interval_seconds, self.connectivity.probe))

    def close(self) -> None:
        while self._tasks:
            self._tasks.pop().cancel()
        self.sync_engine.stop()
        self.recorder.close()


def load_settings() -> ModuleType:
    return importlib.import_module(get_settings_module())


def build_client(
    settings: Optional[ModuleType] = None,
    *,
    session: Optional[requests.Session] = None,
    scheduler: Optional[Scheduler] = None,
    location_provider: Optional[LocationProvider] = None,
    initially_online: bool = True,
) -> ClientContainer:
    settings = settings or load_settings()
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))
    session = session or requests.Session()
    scheduler = scheduler or ThreadingScheduler()

    storage = SQLiteOfflineStorage(SQLiteDatabase(settings.OFFLINE_DB_PATH))
    monitor = PerformanceMonitor()
    connectivity = ConnectivityMonitor(
        initially_online=initially_online,
        health_url=getattr(settings, "HEALTH_URL", None),
        session=session,
    )
    api = AttendanceApiClient(
        settings.API_BASE_URL,
        timeout=float(settings.REQUEST_TIMEOUT_SECONDS),
        session=session,
        monitor=monitor,
    )
    sync_engine = SyncEngine(
        storage,
        api,
        connectivity,
        monitor=monitor,
        scheduler=scheduler,
        max_retries=int(settings.SYNC_MAX_RETRIES),
        interval_seconds=float(settings.SYNC_INTERVAL_SECONDS),
    )
    recorder = AttendanceRecorder(
        storage,
        sync_engine,
        connectivity,
        monitor=monitor,
        location_provider=location_provider,
        geolocation_timeout=float(settings.GEOLOCATION_TIMEOUT_SECONDS),
        qr_max_age_hours=float(settings.QR_MAX_AGE_HOURS),
    )
    logger.info("client ready api=%s store=%s", settings.API_BASE_URL, settings.OFFLINE_DB_PATH)

    return ClientContainer(
        storage=storage,
        connectivity=connectivity,
        monitor=monitor,
        api=api,
        sync_engine=sync_engine,
        recorder=recorder,
        scheduler=scheduler,
        check_interval_seconds=float(
            getattr(settings, "CONNECTIVITY_CHECK_SECONDS", DEFAULT_CONNECTIVITY_CHECK_SECONDS)
        ),
    )
