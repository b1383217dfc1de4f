"""Structured logging and cycle metrics aggregation."""

from __future__ import annotations

import json
import logging
import sys
import threading
import time
from dataclasses import dataclass

LOGGER = logging.getLogger("tracker_server.events")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class HealthSnapshot:
    uptime_seconds: float
    cycles_completed: int
    cycles_rejected: int
    quote_successes: int
    quote_failures: int
    cache_hits: int
    cache_misses: int
    avg_cycle_latency_ms: float
    failure_rate: float


class CycleMetrics:
    def __init__(self, started_at: float | None = None) -> None:
        self.started_at = started_at or time.time()
        self._lock = threading.Lock()
        self.cycles_completed = 0
        self.cycles_rejected = 0
        self.quote_successes = 0
        self.quote_failures = 0
        self.cache_hits = 0
        self.cache_misses = 0
        self.total_latency_ms = 0.0

    def record_cycle(self, latency_ms: float, successes: int, failures: int) -> None:
        with self._lock:
            self.cycles_completed += 1
            self.quote_successes += max(0, successes)
            self.quote_failures += max(0, failures)
            self.total_latency_ms += max(0.0, latency_ms)

    def record_rejected_cycle(self) -> None:
        with self._lock:
            self.cycles_rejected += 1

    def record_cache_lookup(self, hit: bool) -> None:
        with self._lock:
            if hit:
                self.cache_hits += 1
            else:
                self.cache_misses += 1

    def snapshot(self) -> HealthSnapshot:
        with self._lock:
            cycles = self.cycles_completed
            fetches = self.quote_successes + self.quote_failures
            return HealthSnapshot(
                uptime_seconds=max(0.0, time.time() - self.started_at),
                cycles_completed=cycles,
                cycles_rejected=self.cycles_rejected,
                quote_successes=self.quote_successes,
                quote_failures=self.quote_failures,
                cache_hits=self.cache_hits,
                cache_misses=self.cache_misses,
                avg_cycle_latency_ms=(self.total_latency_ms / cycles) if cycles else 0.0,
                failure_rate=(self.quote_failures / fetches) if fetches else 0.0,
            )


def configure_logging(level: str = "INFO") -> None:
    """Send logs to stderr; stdout carries the stdio transport."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def log_cycle_event(
    symbols: int,
    successes: int,
    failures: int,
    latency_ms: float,
    actual_total: float,
    warning: str | None = None,
) -> None:
    payload = {
        "event": "quote_cycle",
        "symbols": symbols,
        "successes": successes,
        "failures": failures,
        "latency_ms": round(latency_ms, 3),
        "actual_total": round(actual_total, 4),
        "timestamp": int(time.time()),
    }
    if warning:
        payload["warning"] = warning
    LOGGER.info(json.dumps(payload, ensure_ascii=True))
