"""Client-side QoS counters: request latency, sync timings and offline operations.

Display is left to callers; this module only records and summarizes.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from ..common.datetime_utils import now_utc, to_iso
from ..core.constants import LATENCY_SAMPLE_LIMIT, SYNC_SAMPLE_LIMIT


@dataclass(frozen=True)
class LatencySample:
    url: str
    latency_ms: float
    timestamp: datetime
    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class SyncSample:
    duration_ms: float
    record_count: int
    success: bool
    timestamp: datetime


class PerformanceMonitor:
    def __init__(self, *, clock: Callable[[], datetime] = now_utc, timer: Callable[[], float] = time.perf_counter):
        self._clock = clock
        self._timer = timer
        self._lock = threading.Lock()
        self._sync_started_at: Optional[float] = None
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self._latency: list[LatencySample] = []
            self._sync_times: list[SyncSample] = []
            self._offline_operations = 0
            self._successful_syncs = 0
            self._failed_syncs = 0
            self._network_requests = 0
            self._network_failures = 0

    @property
    def offline_operations(self) -> int:
        return self._offline_operations

    def record_request(self, url: str, latency_ms: float, *, success: bool, error: Optional[str] = None) -> None:
        with self._lock:
            self._network_requests += 1
            if not success:
                self._network_failures += 1
            self._latency.append(
                LatencySample(url=url, latency_ms=latency_ms, timestamp=self._clock(), success=success, error=error)
            )
            del self._latency[:-LATENCY_SAMPLE_LIMIT]

    def record_offline_operation(self) -> None:
        with self._lock:
            self._offline_operations += 1

    def record_sync_start(self) -> None:
        self._sync_started_at = self._timer()

    def record_sync_complete(self, success: bool = True, record_count: int = 0) -> None:
        if self._sync_started_at is None:
            return
        duration_ms = (self._timer() - self._sync_started_at) * 1000.0
        self._sync_started_at = None
        with self._lock:
            self._sync_times.append(
                SyncSample(duration_ms=duration_ms, record_count=record_count, success=success, timestamp=self._clock())
            )
            if success:
                self._successful_syncs += 1
            else:
                self._failed_syncs += 1
            del self._sync_times[:-SYNC_SAMPLE_LIMIT]

    def get_latency_stats(self) -> dict[str, int]:
        values = sorted(s.latency_ms for s in self._latency if s.success and s.latency_ms > 0)
        if not values:
            return {"min": 0, "max": 0, "avg": 0, "p95": 0, "count": 0}

        p95_index = int(len(values) * 0.95)
        p95 = values[p95_index] if p95_index < len(values) else values[-1]
        return {
            "min": round(values[0]),
            "max": round(values[-1]),
            "avg": round(sum(values) / len(values)),
            "p95": round(p95),
            "count": len(values),
        }

    def get_sync_stats(self) -> dict[str, int]:
        valid = [s for s in self._sync_times if s.success]
        if not valid:
            return {"avgDuration": 0, "maxDuration": 0, "totalRecords": 0, "successRate": 0, "count": 0}

        durations = [s.duration_ms for s in valid]
        total_syncs = self._successful_syncs + self._failed_syncs
        return {
            "avgDuration": round(sum(durations) / len(durations)),
            "maxDuration": round(max(durations)),
            "totalRecords": sum(s.record_count for s in valid),
            "successRate": round(self._successful_syncs / total_syncs * 100) if total_syncs else 0,
            "count": len(valid),
        }

    def get_network_stats(self) -> dict[str, Any]:
        failure_rate = (
            self._network_failures / self._network_requests * 100 if self._network_requests > 0 else 0.0
        )
        return {
            "totalRequests": self._network_requests,
            "failures": self._network_failures,
            "failureRate": round(failure_rate, 2),
            "offlineOperations": self._offline_operations,
        }

    def get_reliability_score(self) -> int:
        network_reliability = max(0.0, 100 - self.get_network_stats()["failureRate"])
        sync_reliability = self.get_sync_stats()["successRate"] or 100
        offline_capability = 100 if self._offline_operations > 0 else 80
        return round(network_reliability * 0.4 + sync_reliability * 0.4 + offline_capability * 0.2)

    @staticmethod
    def calculate_max_users(avg_latency: float) -> int:
        # Rough estimation based on average latency
        if avg_latency < 100:
            return 1000
        if avg_latency < 200:
            return 500
        if avg_latency < 500:
            return 200
        if avg_latency < 1000:
            return 100
        return 50

    def get_scalability_metrics(self) -> dict[str, Any]:
        latency = self.get_latency_stats()
        sync = self.get_sync_stats()

        grade = "A"
        if latency["avg"] > 1000:
            grade = "D"
        elif latency["avg"] > 500:
            grade = "C"
        elif latency["avg"] > 200:
            grade = "B"

        return {
            "performanceGrade": grade,
            "avgLatency": latency["avg"],
            "p95Latency": latency["p95"],
            # records per second
            "syncEfficiency": round(sync["totalRecords"] / sync["avgDuration"] * 1000) if sync["avgDuration"] > 0 else 0,
            "recommendedMaxUsers": self.calculate_max_users(latency["avg"]),
        }

    def generate_report(self) -> dict[str, Any]:
        latency = self.get_latency_stats()
        sync = self.get_sync_stats()
        network = self.get_network_stats()
        return {
            "timestamp": to_iso(self._clock()),
            "qos": {
                "latency": latency,
                "reliability": {
                    "score": self.get_reliability_score(),
                    "syncSuccess": sync["successRate"],
                    "networkFailureRate": network["failureRate"],
                },
                "scalability": self.get_scalability_metrics(),
                "availability": {
                    "offlineCapable": self._offline_operations > 0,
                    "syncEfficiency": sync["avgDuration"],
                },
            },
            "performance": {"sync": sync, "network": network},
            "security": {"dataIntegrity": self._successful_syncs > self._failed_syncs},
        }
