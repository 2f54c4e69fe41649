"""
Runner: Main Loop

Process entry point for the Solana memecoin bot.

Flow:
1. Load and validate config (app.yaml + environment overrides)
2. Configure logging
3. Wire collaborators (RPC, wallet, DexScreener, analysis, paper trader)
4. Start the scheduler (first cycle runs before start() returns)
5. Block until SIGINT/SIGTERM, then stop() and exit once it has completed

Exit codes: 0 clean stop, 1 start failed, 2 invalid configuration.
"""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from core.analysis import MomentumAnalyzer
from core.audit_log import AuditLogger
from core.exceptions import ConfigError, InitializationError
from core.paper_trading import PaperTrader
from core.position_registry import PositionRegistry
from core.services import ServiceInitializer
from core.trading_cycle import CycleExecutor
from infra.healthcheck import HealthServer
from infra.metrics import MetricsRecorder
from runner.scheduler import CycleScheduler
from tools.config_validator import AppConfig, load_config

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_START_FAILED = 1
EXIT_BAD_CONFIG = 2


def configure_logging(config: AppConfig) -> Path:
    """File + console logging; the log directory is created if missing."""
    log_path = config.log_path
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, config.logging.level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[logging.FileHandler(log_path, encoding="utf-8"), logging.StreamHandler()],
    )
    return log_path


def build_scheduler(config: AppConfig,
                    registry: Optional[PositionRegistry] = None,
                    initializer: Optional[ServiceInitializer] = None,
                    metrics: Optional[MetricsRecorder] = None) -> CycleScheduler:
    """Wire the reference collaborators around a CycleScheduler."""
    registry = registry if registry is not None else PositionRegistry.default()
    metrics = metrics or MetricsRecorder(
        enabled=config.monitoring.metrics_enabled,
        port=config.monitoring.metrics_port,
    )
    audit = AuditLogger(audit_file=str(Path(config.logging.dir) / "bot_audit.jsonl"))

    analyzer = MomentumAnalyzer(
        queries=config.market_data.queries,
        chain_id=config.market_data.chain_id,
        min_liquidity_usd=config.market_data.min_liquidity_usd,
    )
    trader = PaperTrader(
        registry=registry,
        min_score=config.trading.min_score,
        max_positions=config.trading.max_positions,
        buy_amount_sol=config.trading.buy_amount_sol,
    )
    executor = CycleExecutor(
        analysis=analyzer.perform_analysis,
        trader=trader,
        trading_enabled=config.trading.enabled,
        min_score=config.trading.min_score,
        audit=audit,
        metrics=metrics,
        registry=registry,
    )
    return CycleScheduler(
        initializer=initializer or ServiceInitializer(config),
        executor=executor,
        trader=trader,
        registry=registry,
        interval_seconds=config.interval_seconds,
        overlap_policy=config.loop.overlap_policy,
        audit=audit,
        metrics=metrics,
        config_summary=config.summary(),
    )


class BotRunner:
    """
    Owns the process lifecycle around one scheduler.

    Signal handlers only set an event; the main thread notices it, runs the
    full stop() and only then returns the exit code.
    """

    def __init__(self, config: AppConfig, scheduler: Optional[CycleScheduler] = None,
                 poll_seconds: float = 1.0):
        self.config = config
        self.scheduler = scheduler or build_scheduler(config)
        self.poll_seconds = poll_seconds
        self._shutdown_requested = threading.Event()
        self.health_server: Optional[HealthServer] = None

    def install_signal_handlers(self) -> None:
        signal.signal(signal.SIGINT, self._handle_signal)
        signal.signal(signal.SIGTERM, self._handle_signal)

    def _handle_signal(self, signum, _frame) -> None:
        logger.info(f"Received shutdown signal ({signal.Signals(signum).name})")
        self._shutdown_requested.set()

    def request_shutdown(self) -> None:
        self._shutdown_requested.set()

    def _start_health_server(self) -> None:
        cfg = self.config.monitoring
        if not cfg.healthcheck_enabled:
            return
        try:
            self.health_server = HealthServer(cfg.healthcheck_port, self.scheduler.status)
            self.health_server.start()
        except OSError as exc:
            logger.warning(f"Health server failed to start on port {cfg.healthcheck_port}: {exc}")
            self.health_server = None

    def _stop_health_server(self) -> None:
        if self.health_server:
            self.health_server.stop()
            self.health_server = None

    def run(self) -> int:
        logger.info("Starting Solana Memecoin Trading Bot...")
        if self.scheduler.metrics:
            self.scheduler.metrics.start()

        result = self.scheduler.start()
        if not result.get("success"):
            logger.error(f"Failed to start bot: {result.get('reason')}")
            return EXIT_START_FAILED

        self._start_health_server()
        try:
            while not self._shutdown_requested.wait(self.poll_seconds):
                pass
        except KeyboardInterrupt:
            logger.info("Received shutdown signal (KeyboardInterrupt)")
        finally:
            self.scheduler.stop()
            self._stop_health_server()

        logger.info("Exiting process...")
        return EXIT_OK

    def run_once(self) -> int:
        try:
            outcome = self.scheduler.run_once()
        except InitializationError as e:
            logger.error(f"Failed to initialize services: {e}")
            return EXIT_START_FAILED
        if not outcome.success:
            logger.error(f"Cycle failed: {outcome.error}")
            return EXIT_START_FAILED
        return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point"""
    parser = argparse.ArgumentParser(description="Solana memecoin trading bot")
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    parser.add_argument("--config-dir", default="config", help="Config directory")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config_dir)
    except ConfigError as e:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
        logger.error("=" * 80)
        logger.error("CONFIGURATION VALIDATION FAILED")
        logger.error("=" * 80)
        for idx, error in enumerate(e.errors, start=1):
            logger.error(f"{idx:>2}. {error}")
        return EXIT_BAD_CONFIG

    configure_logging(config)
    runner = BotRunner(config)

    if args.once:
        return runner.run_once()

    runner.install_signal_handlers()
    return runner.run()


if __name__ == "__main__":
    sys.exit(main())
