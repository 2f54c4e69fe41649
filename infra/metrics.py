"""Prometheus-backed metrics hooks for the scheduler and cycle executor."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from prometheus_client import REGISTRY, Counter, Gauge, Summary, start_http_server

logger = logging.getLogger(__name__)


@dataclass
class CycleStats:
    status: str
    tokens_analyzed: int
    positions_opened: int
    duration_seconds: float


class MetricsRecorder:
    """
    Expose bot stats via Prometheus.

    Singleton pattern to prevent duplicate metric registration errors.
    """
    _instance: Optional['MetricsRecorder'] = None
    _initialized: bool = False

    def __new__(cls, enabled: bool = True, port: int = 9100):
        """Ensure only one MetricsRecorder instance exists."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, enabled: bool = True, port: int = 9100) -> None:
        # Skip re-initialization if already initialized
        if self.__class__._initialized:
            return

        self._enabled = bool(enabled)
        self._port = port
        self._started = False
        self.__class__._initialized = True

        self._last_cycle_stats: Optional[CycleStats] = None
        self._open_positions = 0

        if not self._enabled:
            self._cycle_summary = None
            self._cycle_counter = None
            self._tokens_gauge = None
            self._positions_gauge = None
            self._opened_counter = None
            self._running_gauge = None
            self._skipped_counter = None
            return

        self._cycle_summary = Summary(
            "bot_cycle_duration_seconds",
            "Duration of the analysis stage of a cycle",
        )
        self._cycle_counter = Counter(
            "bot_cycle_total",
            "Total analysis cycles by status",
            labelnames=("status",),
        )
        self._tokens_gauge = Gauge(
            "bot_tokens_analyzed",
            "Tokens returned by the last analysis",
        )
        self._positions_gauge = Gauge(
            "bot_open_positions",
            "Number of currently open positions",
        )
        self._opened_counter = Counter(
            "bot_positions_opened_total",
            "Total positions opened by the trade collaborator",
        )
        self._running_gauge = Gauge(
            "bot_running",
            "1 while the scheduler is running, 0 otherwise",
        )
        self._skipped_counter = Counter(
            "bot_cycle_skipped_total",
            "Timer firings skipped because a cycle was still in flight",
        )

    @classmethod
    def _reset_for_testing(cls) -> None:
        """
        Reset singleton state for testing.
        WARNING: Only call from test fixtures/teardown.
        """
        if cls._instance is not None and cls._instance._enabled:
            for collector in list(REGISTRY._collector_to_names):
                names = REGISTRY._collector_to_names.get(collector, set())
                if any(name.startswith("bot_") for name in names):
                    REGISTRY.unregister(collector)

        cls._instance = None
        cls._initialized = False

    def start(self) -> None:
        if not self._enabled or self._started:
            return
        try:
            start_http_server(self._port)
        except OSError as exc:
            self._enabled = False
            logger.error("Failed to start metrics exporter on port %s: %s", self._port, exc)
            return
        self._started = True
        logger.info("Prometheus metrics exporter listening on 0.0.0.0:%s", self._port)

    def is_enabled(self) -> bool:
        return self._enabled

    def observe_cycle(self, stats: CycleStats) -> None:
        if self._enabled:
            assert self._cycle_summary and self._cycle_counter and self._tokens_gauge and self._opened_counter
            self._cycle_summary.observe(stats.duration_seconds)
            self._cycle_counter.labels(status=stats.status).inc()
            self._tokens_gauge.set(stats.tokens_analyzed)
            if stats.positions_opened:
                self._opened_counter.inc(stats.positions_opened)

        self._last_cycle_stats = stats

    def record_open_positions(self, count: int) -> None:
        self._open_positions = count
        if self._enabled and self._positions_gauge:
            self._positions_gauge.set(count)

    def record_running(self, running: bool) -> None:
        if self._enabled and self._running_gauge:
            self._running_gauge.set(1 if running else 0)

    def record_skipped_cycle(self) -> None:
        if self._enabled and self._skipped_counter:
            self._skipped_counter.inc()

    def last_cycle(self) -> Optional[CycleStats]:
        return self._last_cycle_stats

    def open_positions(self) -> int:
        return self._open_positions
