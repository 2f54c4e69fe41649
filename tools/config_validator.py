"""
Configuration Validation Module

Loads config/app.yaml, applies the recognized environment overrides and
validates the result against Pydantic schemas before the bot starts.

Usage:
    from tools.config_validator import load_config

    config = load_config("config")   # raises ConfigError listing every problem
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from core.exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE = "app.yaml"


class AppSection(BaseModel):
    name: str = Field(default="solana-memecoin-bot", min_length=1)


class NetworkConfig(BaseModel):
    """Solana cluster selection"""
    network: str = Field(default="mainnet-beta", pattern="^(mainnet-beta|devnet|testnet)$")
    rpc_url: Optional[str] = Field(default=None, description="Overrides the public cluster URL")
    rpc_timeout_seconds: float = Field(default=15.0, gt=0)


class WalletConfig(BaseModel):
    public_key: Optional[str] = Field(default=None, description="Falls back to SOLANA_WALLET_PUBLIC_KEY")


class LoopConfig(BaseModel):
    """Cycle scheduling"""
    analysis_interval_minutes: float = Field(default=5.0, gt=0, description="Timer period")
    overlap_policy: str = Field(default="allow", pattern="^(allow|skip)$",
                                description="allow: cycles may overlap; skip: single-flight")


class TradingConfig(BaseModel):
    """Trading gates and sizing"""
    enabled: bool = Field(default=False, description="Global gate for live trading")
    min_score: float = Field(default=5.0, ge=0, le=10, description="Monitoring-mode visibility threshold")
    max_positions: int = Field(default=3, gt=0, description="Enforced by the trade collaborator")
    buy_amount_sol: float = Field(default=0.1, gt=0)
    min_balance_sol: float = Field(default=0.05, ge=0, description="Balance required for trading mode")


class MarketDataConfig(BaseModel):
    base_url: str = Field(default="https://api.dexscreener.com")
    chain_id: str = Field(default="solana", min_length=1)
    queries: List[str] = Field(default_factory=lambda: ["SOL"])
    min_liquidity_usd: float = Field(default=10000.0, ge=0)
    timeout_seconds: float = Field(default=10.0, gt=0)

    @field_validator('queries')
    @classmethod
    def validate_queries(cls, v: List[str]) -> List[str]:
        cleaned = [q.strip() for q in v if q and q.strip()]
        if not cleaned:
            raise ValueError("market_data.queries must contain at least one search term")
        return cleaned


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    dir: str = Field(default="logs", min_length=1)
    file: str = Field(default="bot.log", min_length=1)

    @field_validator('level', mode='before')
    @classmethod
    def upper_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().upper()
            return "WARNING" if v == "WARN" else v
        return v


class MonitoringConfig(BaseModel):
    metrics_enabled: bool = False
    metrics_port: int = Field(default=9100, gt=0, lt=65536)
    healthcheck_enabled: bool = False
    healthcheck_port: int = Field(default=8080, ge=0, lt=65536)


class AppConfig(BaseModel):
    """Complete bot configuration (app.yaml + environment overrides)"""
    app: AppSection = Field(default_factory=AppSection)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    wallet: WalletConfig = Field(default_factory=WalletConfig)
    loop: LoopConfig = Field(default_factory=LoopConfig)
    trading: TradingConfig = Field(default_factory=TradingConfig)
    market_data: MarketDataConfig = Field(default_factory=MarketDataConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    @property
    def interval_seconds(self) -> float:
        return self.loop.analysis_interval_minutes * 60.0

    @property
    def log_path(self) -> Path:
        return Path(self.logging.dir) / self.logging.file

    def summary(self) -> Dict[str, Any]:
        """Non-secret settings, as reported in bot status."""
        return {
            "network": self.network.network,
            "trading_enabled": self.trading.enabled,
            "analysis_interval_minutes": self.loop.analysis_interval_minutes,
            "max_positions": self.trading.max_positions,
            "min_score": self.trading.min_score,
            "buy_amount_sol": self.trading.buy_amount_sol,
            "overlap_policy": self.loop.overlap_policy,
        }


# env var -> (section, key)
ENV_OVERRIDES = {
    "ANALYSIS_INTERVAL_MINUTES": ("loop", "analysis_interval_minutes"),
    "TRADING_ENABLED": ("trading", "enabled"),
    "MIN_SCORE": ("trading", "min_score"),
    "MAX_POSITIONS": ("trading", "max_positions"),
    "BUY_AMOUNT_SOL": ("trading", "buy_amount_sol"),
    "NETWORK": ("network", "network"),
    "SOLANA_RPC_URL": ("network", "rpc_url"),
    "SOLANA_WALLET_PUBLIC_KEY": ("wallet", "public_key"),
    "LOG_LEVEL": ("logging", "level"),
    "LOG_DIR": ("logging", "dir"),
}


def apply_env_overrides(raw: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Return a copy of `raw` with recognized environment variables applied.

    Values stay strings; Pydantic coerces them ("true"/"false", numbers).
    Sections that are not mappings are passed through untouched so validation
    reports them.
    """
    environ = os.environ if environ is None else environ
    merged: Dict[str, Any] = {}
    for section, values in (raw or {}).items():
        if values is None:
            merged[section] = {}
        elif isinstance(values, dict):
            merged[section] = dict(values)
        else:
            merged[section] = values

    for env_key, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(env_key)
        if value is None or value == "":
            continue
        target = merged.setdefault(section, {})
        if not isinstance(target, dict):
            logger.warning(f"Ignoring {env_key}: config section '{section}' is not a mapping")
            continue
        target[key] = value
        logger.debug(f"Config override from environment: {env_key} -> {section}.{key}")
    return merged


def _format_errors(exc: ValidationError) -> List[str]:
    errors = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()))
        errors.append(f"{location}: {err.get('msg')}")
    return errors


def validate_config(raw: Dict[str, Any]) -> List[str]:
    """
    Validate a raw config mapping.

    Returns:
        List of human-readable errors (empty when valid)
    """
    if not isinstance(raw, dict):
        return ["app.yaml: top level must be a mapping"]
    try:
        AppConfig.model_validate(raw)
    except ValidationError as e:
        return _format_errors(e)
    return []


def load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning(f"Config file not found: {path}; using defaults")
        return {}
    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_config(config_dir: str = "config", environ: Optional[Dict[str, str]] = None) -> AppConfig:
    """
    Load app.yaml from `config_dir`, apply environment overrides, validate.

    Raises:
        ConfigError: with every validation error found
    """
    path = Path(config_dir) / CONFIG_FILE
    try:
        raw = load_yaml(path)
    except yaml.YAMLError as e:
        raise ConfigError([f"{path}: {e}"])

    if not isinstance(raw, dict):
        raise ConfigError([f"{path}: top level must be a mapping"])

    merged = apply_env_overrides(raw, environ)
    errors = validate_config(merged)
    if errors:
        raise ConfigError(errors)
    return AppConfig.model_validate(merged)
