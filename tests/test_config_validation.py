"""
Tests for configuration validation.

Validates that config_validator correctly identifies invalid configs,
accepts valid configs and applies environment overrides.
"""
from pathlib import Path

import pytest
import yaml

from core.exceptions import ConfigError
from tools.config_validator import (
    AppConfig,
    apply_env_overrides,
    load_config,
    validate_config,
)


@pytest.fixture
def config_dir(tmp_path):
    """Write an app.yaml and return its directory"""
    def _write(data):
        (tmp_path / "app.yaml").write_text(yaml.safe_dump(data))
        return str(tmp_path)
    return _write


class TestAppConfigValidation:
    """Test app.yaml schema"""

    def test_defaults_are_valid(self):
        """Empty config validates to the documented defaults"""
        config = AppConfig.model_validate({})
        assert config.loop.analysis_interval_minutes == 5.0
        assert config.loop.overlap_policy == "allow"
        assert config.trading.enabled is False
        assert config.trading.min_score == 5.0
        assert config.trading.max_positions == 3
        assert config.network.network == "mainnet-beta"

    def test_interval_seconds(self):
        config = AppConfig.model_validate({"loop": {"analysis_interval_minutes": 0.5}})
        assert config.interval_seconds == 30.0

    def test_invalid_interval(self):
        """Non-positive interval is rejected"""
        errors = validate_config({"loop": {"analysis_interval_minutes": 0}})
        assert any("analysis_interval_minutes" in e for e in errors)

    def test_invalid_overlap_policy(self):
        errors = validate_config({"loop": {"overlap_policy": "queue"}})
        assert any("overlap_policy" in e for e in errors)

    def test_min_score_out_of_range(self):
        errors = validate_config({"trading": {"min_score": 11}})
        assert any("trading.min_score" in e for e in errors)

    def test_unknown_network(self):
        errors = validate_config({"network": {"network": "localnet"}})
        assert any("network.network" in e for e in errors)

    def test_empty_queries(self):
        errors = validate_config({"market_data": {"queries": ["", "  "]}})
        assert any("queries" in e for e in errors)

    def test_log_level_normalized(self):
        config = AppConfig.model_validate({"logging": {"level": "warn"}})
        assert config.logging.level == "WARNING"

    def test_multiple_errors_reported(self):
        """Every problem is listed, not just the first"""
        errors = validate_config({
            "loop": {"analysis_interval_minutes": -1},
            "trading": {"max_positions": 0, "buy_amount_sol": 0},
        })
        assert len(errors) == 3

    def test_top_level_must_be_mapping(self):
        assert validate_config(["not", "a", "mapping"]) == ["app.yaml: top level must be a mapping"]

    def test_summary_has_no_wallet(self):
        summary = AppConfig.model_validate({"wallet": {"public_key": "secretish"}}).summary()
        assert "secretish" not in str(summary)
        assert summary["trading_enabled"] is False


class TestEnvOverrides:
    """Recognized environment variables win over app.yaml"""

    def test_overrides_applied(self):
        raw = {"trading": {"enabled": False, "min_score": 5}}
        merged = apply_env_overrides(raw, {
            "TRADING_ENABLED": "true",
            "MIN_SCORE": "7.5",
            "ANALYSIS_INTERVAL_MINUTES": "1",
        })
        config = AppConfig.model_validate(merged)
        assert config.trading.enabled is True
        assert config.trading.min_score == 7.5
        assert config.loop.analysis_interval_minutes == 1.0

    def test_input_not_mutated(self):
        raw = {"trading": {"enabled": False}}
        apply_env_overrides(raw, {"TRADING_ENABLED": "true"})
        assert raw == {"trading": {"enabled": False}}

    def test_empty_values_ignored(self):
        merged = apply_env_overrides({"network": {"network": "devnet"}}, {"NETWORK": ""})
        assert merged["network"]["network"] == "devnet"

    def test_unrelated_env_ignored(self):
        assert apply_env_overrides({}, {"HOME": "/root"}) == {}


class TestLoadConfig:

    def test_load_valid(self, config_dir):
        path = config_dir({"network": {"network": "devnet"}, "trading": {"max_positions": 5}})
        config = load_config(path, environ={})
        assert config.network.network == "devnet"
        assert config.trading.max_positions == 5

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(str(tmp_path), environ={})
        assert config.trading.enabled is False

    def test_invalid_raises_config_error(self, config_dir):
        path = config_dir({"loop": {"analysis_interval_minutes": "often"}})
        with pytest.raises(ConfigError) as exc_info:
            load_config(path, environ={})
        assert len(exc_info.value.errors) == 1
        assert "loop.analysis_interval_minutes" in exc_info.value.errors[0]

    def test_invalid_env_override(self, config_dir):
        path = config_dir({})
        with pytest.raises(ConfigError):
            load_config(path, environ={"MAX_POSITIONS": "many"})

    def test_malformed_yaml(self, tmp_path):
        (tmp_path / "app.yaml").write_text("loop: [unclosed")
        with pytest.raises(ConfigError):
            load_config(str(tmp_path), environ={})

    @pytest.mark.parametrize("section", [5, ["a", "b"], "fast"])
    def test_non_mapping_section(self, config_dir, section):
        """A scalar or list section is reported, not a crash"""
        path = config_dir({"loop": section})
        with pytest.raises(ConfigError) as exc_info:
            load_config(path, environ={})
        assert exc_info.value.errors[0].startswith("loop")

    def test_non_mapping_section_with_env_override(self, config_dir):
        path = config_dir({"loop": 5})
        with pytest.raises(ConfigError) as exc_info:
            load_config(path, environ={"ANALYSIS_INTERVAL_MINUTES": "1"})
        assert exc_info.value.errors[0].startswith("loop")

    def test_empty_section_uses_defaults(self, tmp_path):
        (tmp_path / "app.yaml").write_text("loop:\ntrading:\n  max_positions: 2\n")
        config = load_config(str(tmp_path), environ={})
        assert config.loop.analysis_interval_minutes == 5.0
        assert config.trading.max_positions == 2

    def test_repo_config_is_valid(self):
        """The shipped config/app.yaml validates"""
        config = load_config(str(Path(__file__).resolve().parent.parent / "config"), environ={})
        assert config.market_data.queries == ["SOL", "BONK", "WIF"]
