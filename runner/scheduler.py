"""
Cycle Scheduler

Owns the bot's running/stopped state machine:

    STOPPED --start()--> STARTING --init ok--> RUNNING --stop()--> STOPPING --> STOPPED
                             |
                             +--init failed--> STOPPED

start() initializes services, runs the first cycle on the caller's thread,
then arms a repeating timer. Each firing dispatches a cycle on its own thread.
stop() disarms the timer, asks the trade collaborator to stop and warns when
positions are still open. Both are idempotent and never raise.

All state transitions and the timer's check-and-dispatch happen under one
condition variable, so two timers can never be armed and stop() can never
interleave with start().
"""

import functools
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from core.audit_log import AuditLogger
from core.exceptions import InitializationError
from core.models import CycleOutcome, ServiceSet
from core.position_registry import PositionRegistry
from core.services import ServiceInitializer
from core.trading_cycle import CycleExecutor
from infra.metrics import MetricsRecorder
from infra.timer import RepeatingTimer

logger = logging.getLogger(__name__)

OVERLAP_ALLOW = "allow"
OVERLAP_SKIP = "skip"


class BotPhase(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass
class BotState:
    """Single owned state record. `active_timer` is set iff `running`."""
    phase: BotPhase = BotPhase.STOPPED
    started_at: Optional[datetime] = None
    active_timer: Optional[RepeatingTimer] = None

    @property
    def running(self) -> bool:
        return self.phase == BotPhase.RUNNING


class CycleScheduler:
    """
    Start/stop control around the cycle executor.

    Args:
        initializer: builds the ServiceSet once per start
        executor: runs one cycle, never raises
        trader: trade collaborator; only stop_trading() is used here
        registry: read at stop time for the open-positions warning
        interval_seconds: timer period
        overlap_policy: "allow" (cycles may overlap) or "skip" (single-flight)
        audit: optional structured shutdown record
        metrics: optional running gauge / skipped-firing counter
        config_summary: non-secret settings reported by status()
    """

    def __init__(self,
                 initializer: ServiceInitializer,
                 executor: CycleExecutor,
                 trader,
                 registry: PositionRegistry,
                 interval_seconds: float,
                 overlap_policy: str = OVERLAP_ALLOW,
                 audit: Optional[AuditLogger] = None,
                 metrics: Optional[MetricsRecorder] = None,
                 config_summary: Optional[Dict[str, Any]] = None):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        if overlap_policy not in (OVERLAP_ALLOW, OVERLAP_SKIP):
            raise ValueError(f"Unknown overlap policy: {overlap_policy}")

        self.initializer = initializer
        self.executor = executor
        self.trader = trader
        self.registry = registry
        self.interval_seconds = float(interval_seconds)
        self.overlap_policy = overlap_policy
        self.audit = audit
        self.metrics = metrics
        self.config_summary = dict(config_summary or {})

        self._cond = threading.Condition()
        self._state = BotState()
        self._services: Optional[ServiceSet] = None
        self._cycles_dispatched = 0
        self._cycles_in_flight = 0
        self._cycles_skipped = 0
        self._generation = 0
        self._last_outcome: Optional[CycleOutcome] = None

    # ------------------------------------------------------------------ state

    @property
    def state(self) -> BotState:
        return self._state

    @property
    def is_running(self) -> bool:
        with self._cond:
            return self._state.running

    @property
    def cycles_dispatched(self) -> int:
        with self._cond:
            return self._cycles_dispatched

    @property
    def last_outcome(self) -> Optional[CycleOutcome]:
        with self._cond:
            return self._last_outcome

    # ------------------------------------------------------------------ start

    def start(self) -> Dict[str, Any]:
        """
        Initialize services, run the first cycle synchronously, arm the timer.

        Returns:
            {"success": True, "message": ...} on success
            {"success": False, "reason": "already_running"} when not stopped
            {"success": False, "reason": "initialization_failed", "error": ...}
        """
        with self._cond:
            while self._state.phase == BotPhase.STOPPING:
                self._cond.wait()
            if self._state.phase != BotPhase.STOPPED:
                logger.info("Bot is already running.")
                return {"success": False, "reason": "already_running"}
            self._state.phase = BotPhase.STARTING

        try:
            logger.info("Initializing bot services...")
            services = self.initializer.initialize()
        except InitializationError as e:
            logger.error(f"Failed to start bot: {e}", exc_info=True)
            self._settle(BotPhase.STOPPED)
            return {"success": False, "reason": "initialization_failed", "error": str(e)}
        except Exception as e:
            logger.error(f"Failed to start bot (unexpected initializer error): {e}", exc_info=True)
            self._settle(BotPhase.STOPPED)
            return {"success": False, "reason": "initialization_failed", "error": str(e)}

        self._log_configuration()

        logger.info("Running initial analysis cycle...")
        with self._cond:
            self._cycles_dispatched += 1
            self._cycles_in_flight += 1
        outcome = self._execute(services)
        logger.info(f"Initial analysis found {len(outcome.result.tokens_analyzed)} tokens")

        with self._cond:
            self._generation += 1
            timer = RepeatingTimer(
                self.interval_seconds,
                functools.partial(self._on_timer, self._generation),
                name=f"CycleTimer-{self._generation}",
            )
            self._services = services
            self._state.active_timer = timer
            self._state.started_at = datetime.now(timezone.utc)
            self._state.phase = BotPhase.RUNNING
            timer.start()
            self._cond.notify_all()

        if self.metrics:
            self.metrics.record_running(True)
        logger.info(f"Setting up recurring analysis every {self.interval_seconds / 60.0:g} minutes")
        logger.info("Bot started successfully. Press Ctrl+C to stop the bot.")
        return {"success": True, "message": "Bot started successfully"}

    def _settle(self, phase: BotPhase) -> None:
        with self._cond:
            self._state.phase = phase
            self._cond.notify_all()

    def _log_configuration(self) -> None:
        if not self.config_summary:
            return
        logger.info("Bot Configuration:")
        for key, value in self.config_summary.items():
            logger.info(f"- {key}: {value}")

    # ------------------------------------------------------------------ cycles

    def _on_timer(self, generation: int) -> None:
        """Timer firing: check state and dispatch a cycle thread."""
        with self._cond:
            if not self._state.running or generation != self._generation:
                return
            if self.overlap_policy == OVERLAP_SKIP and self._cycles_in_flight > 0:
                self._cycles_skipped += 1
                logger.warning(
                    f"Previous cycle still running ({self._cycles_in_flight} in flight); skipping this firing"
                )
                if self.metrics:
                    self.metrics.record_skipped_cycle()
                return
            if self._cycles_in_flight > 0:
                logger.warning(f"Starting cycle while {self._cycles_in_flight} cycle(s) still in flight")
            self._cycles_dispatched += 1
            self._cycles_in_flight += 1
            cycle_number = self._cycles_dispatched
            services = self._services

        worker = threading.Thread(
            target=self._execute,
            args=(services,),
            name=f"Cycle-{cycle_number}",
            daemon=True,
        )
        worker.start()

    def _execute(self, services: ServiceSet) -> CycleOutcome:
        """Run one cycle and account for it. Caller has already counted it in flight."""
        try:
            outcome = self.executor.run(services)
        except Exception as e:
            # executor contract says this cannot happen; keep the loop alive anyway
            logger.error(f"Cycle executor raised: {e}", exc_info=True)
            outcome = CycleOutcome.failure(str(e))
        with self._cond:
            self._cycles_in_flight -= 1
            self._last_outcome = outcome
        return outcome

    def run_once(self) -> CycleOutcome:
        """
        Initialize services and run a single cycle without arming the timer.

        Raises:
            InitializationError: if services cannot be created
        """
        services = self.initializer.initialize()
        with self._cond:
            self._cycles_dispatched += 1
            self._cycles_in_flight += 1
        return self._execute(services)

    # ------------------------------------------------------------------ stop

    def stop(self) -> Dict[str, Any]:
        """
        Disarm the timer, stop trading and report open positions.

        Always completes. In-flight cycles are not awaited.
        """
        with self._cond:
            while self._state.phase in (BotPhase.STARTING, BotPhase.STOPPING):
                self._cond.wait()
            if self._state.phase == BotPhase.STOPPED:
                logger.info("Bot is not running.")
                return {"success": True, "message": "not running"}

            logger.info("Stopping bot...")
            timer = self._state.active_timer
            self._state.active_timer = None
            self._state.phase = BotPhase.STOPPING
            if timer:
                timer.cancel()
        logger.info("Analysis interval cleared.")

        try:
            self._shutdown_steps()
        finally:
            with self._cond:
                self._services = None
                self._state.started_at = None
                self._state.phase = BotPhase.STOPPED
                self._cond.notify_all()
            if self.metrics:
                self.metrics.record_running(False)

        logger.info("Bot stopped successfully.")
        return {"success": True, "message": "Bot stopped successfully"}

    def _shutdown_steps(self) -> None:
        try:
            stop_result = self.trader.stop_trading()
            message = getattr(stop_result, "message", None) or "Successfully"
            logger.info(f"Trading stopped: {message}")
        except Exception as e:
            logger.error(f"Error stopping trading activities: {e}", exc_info=True)
            message = f"stop_trading failed: {e}"

        positions = self.registry.get_current_positions()
        if positions:
            logger.warning(
                f"Bot stopped with {len(positions)} open positions. These will need to be managed manually."
            )
        if self.metrics:
            self.metrics.record_open_positions(len(positions))
        if self.audit:
            self.audit.log_shutdown(positions, message)

    # ------------------------------------------------------------------ status

    def status(self) -> Dict[str, Any]:
        """Snapshot for the health endpoint and CLI."""
        with self._cond:
            state = self._state
            started_at = state.started_at
            snapshot = {
                "ok": state.running,
                "running": state.running,
                "phase": state.phase.value,
                "started_at": started_at.isoformat() if started_at else None,
                "uptime_seconds": (
                    round((datetime.now(timezone.utc) - started_at).total_seconds(), 1)
                    if state.running and started_at else 0
                ),
                "cycles_dispatched": self._cycles_dispatched,
                "cycles_in_flight": self._cycles_in_flight,
                "cycles_skipped": self._cycles_skipped,
                "mode": self._services.mode.value if self._services else None,
                "last_cycle": self._describe_outcome(self._last_outcome),
            }
        snapshot["positions"] = [p.to_dict() for p in self.registry.get_current_positions()]
        snapshot["config"] = dict(self.config_summary)
        snapshot["timestamp"] = time.time()
        return snapshot

    @staticmethod
    def _describe_outcome(outcome: Optional[CycleOutcome]) -> Optional[Dict[str, Any]]:
        if outcome is None:
            return None
        return {
            "success": outcome.success,
            "error": outcome.error,
            "tokens_analyzed": len(outcome.result.tokens_analyzed),
            "duration_ms": outcome.result.duration_ms,
        }
