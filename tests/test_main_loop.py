"""
Tests for the process runner: wiring, graceful shutdown and exit codes.

The scheduler is replaced by a Mock where the test is about the runner
itself; the wiring tests build the real collaborators around a stub
initializer so nothing touches the network.
"""

import signal
import threading
from unittest.mock import Mock

import pytest
import yaml

from core.dexscreener import MarketPair
from core.exceptions import InitializationError
from core.models import BotMode, CycleOutcome, CycleResult
from runner import main_loop
from runner.main_loop import EXIT_BAD_CONFIG, EXIT_OK, EXIT_START_FAILED, BotRunner, build_scheduler
from tests.helpers import StubInitializer, make_services
from tools.config_validator import AppConfig


@pytest.fixture
def config(tmp_path):
    return AppConfig.model_validate({
        "logging": {"dir": str(tmp_path / "logs")},
        "loop": {"analysis_interval_minutes": 60},
        "market_data": {"queries": ["BONK"], "min_liquidity_usd": 0},
    })


def mock_scheduler(start_result=None):
    scheduler = Mock()
    scheduler.metrics = None
    scheduler.start.return_value = start_result or {"success": True, "message": "Bot started successfully"}
    scheduler.stop.return_value = {"success": True, "message": "Bot stopped successfully"}
    return scheduler


class TestBotRunner:

    def test_clean_shutdown_stops_scheduler(self, config):
        scheduler = mock_scheduler()
        runner = BotRunner(config, scheduler=scheduler, poll_seconds=0.01)
        runner.request_shutdown()

        assert runner.run() == EXIT_OK
        scheduler.start.assert_called_once()
        scheduler.stop.assert_called_once()

    def test_signal_sets_shutdown_and_stop_completes_before_exit(self, config):
        scheduler = mock_scheduler()
        runner = BotRunner(config, scheduler=scheduler, poll_seconds=0.01)
        exit_code = {}

        t = threading.Thread(target=lambda: exit_code.update(code=runner.run()))
        t.start()
        runner._handle_signal(signal.SIGTERM, None)
        t.join(2.0)

        assert exit_code["code"] == EXIT_OK
        scheduler.stop.assert_called_once()

    def test_start_failure(self, config):
        scheduler = mock_scheduler({"success": False, "reason": "initialization_failed", "error": "x"})
        runner = BotRunner(config, scheduler=scheduler)

        assert runner.run() == EXIT_START_FAILED
        scheduler.stop.assert_not_called()

    def test_run_once_success(self, config):
        scheduler = mock_scheduler()
        scheduler.run_once.return_value = CycleOutcome(success=True, result=CycleResult.empty())
        assert BotRunner(config, scheduler=scheduler).run_once() == EXIT_OK

    def test_run_once_cycle_failure(self, config):
        scheduler = mock_scheduler()
        scheduler.run_once.return_value = CycleOutcome.failure("analysis failed: down")
        assert BotRunner(config, scheduler=scheduler).run_once() == EXIT_START_FAILED

    def test_run_once_init_failure(self, config):
        scheduler = mock_scheduler()
        scheduler.run_once.side_effect = InitializationError("wallet", ValueError("bad key"))
        assert BotRunner(config, scheduler=scheduler).run_once() == EXIT_START_FAILED

    def test_health_server_lifecycle(self, tmp_path):
        config = AppConfig.model_validate({
            "logging": {"dir": str(tmp_path)},
            "monitoring": {"healthcheck_enabled": True, "healthcheck_port": 0},
        })
        scheduler = mock_scheduler()
        scheduler.status.return_value = {"ok": True}
        runner = BotRunner(config, scheduler=scheduler, poll_seconds=0.01)

        runner._start_health_server()
        assert runner.health_server is not None
        assert runner.health_server.port
        runner._stop_health_server()
        assert runner.health_server is None


class TestBuildScheduler:

    def test_wiring_follows_config(self, config, registry):
        scheduler = build_scheduler(config, registry=registry, initializer=StubInitializer())

        assert scheduler.interval_seconds == 3600.0
        assert scheduler.overlap_policy == "allow"
        assert scheduler.executor.trading_enabled is False
        assert scheduler.executor.min_score == 5.0
        assert scheduler.trader.registry is registry
        assert scheduler.config_summary["network"] == "mainnet-beta"

    def test_end_to_end_monitoring_cycle(self, config, registry):
        market = Mock()
        market.search_pairs.return_value = [
            MarketPair("solana", "p1", "BONK", "BONKaddr", 0.00002, 25.0, 80.0, 5e6, 2e6),
        ]
        initializer = StubInitializer(make_services(mode=BotMode.MONITORING, market_data=market))
        scheduler = build_scheduler(config, registry=registry, initializer=initializer)

        result = scheduler.start()
        try:
            assert result["success"] is True
            outcome = scheduler.last_outcome
            assert outcome.success is True
            assert [t.symbol for t in outcome.result.tokens_analyzed] == ["BONK"]
            assert scheduler.audit.get_recent(1, record_type="analysis")[0]["token_count"] == 1
        finally:
            scheduler.stop()
        assert scheduler.audit.get_recent(1)[0]["type"] == "shutdown"


class TestMain:

    def test_bad_config_exit_code(self, tmp_path):
        (tmp_path / "app.yaml").write_text(yaml.safe_dump({"loop": {"analysis_interval_minutes": -5}}))
        assert main_loop.main(["--config-dir", str(tmp_path)]) == EXIT_BAD_CONFIG

    def test_non_mapping_section_exit_code(self, tmp_path):
        (tmp_path / "app.yaml").write_text("loop: 5\n")
        assert main_loop.main(["--config-dir", str(tmp_path)]) == EXIT_BAD_CONFIG

    def test_once_flag(self, tmp_path, monkeypatch):
        (tmp_path / "app.yaml").write_text(yaml.safe_dump({"logging": {"dir": str(tmp_path / "logs")}}))
        fake_runner = Mock()
        fake_runner.run_once.return_value = EXIT_OK
        monkeypatch.setattr(main_loop, "configure_logging", Mock())
        monkeypatch.setattr(main_loop, "BotRunner", Mock(return_value=fake_runner))

        assert main_loop.main(["--once", "--config-dir", str(tmp_path)]) == EXIT_OK
        fake_runner.run_once.assert_called_once()
        fake_runner.run.assert_not_called()

    def test_run_installs_signal_handlers(self, tmp_path, monkeypatch):
        fake_runner = Mock()
        fake_runner.run.return_value = EXIT_OK
        monkeypatch.setattr(main_loop, "configure_logging", Mock())
        monkeypatch.setattr(main_loop, "BotRunner", Mock(return_value=fake_runner))

        assert main_loop.main(["--config-dir", str(tmp_path)]) == EXIT_OK
        fake_runner.install_signal_handlers.assert_called_once()
