"""
Core data types shared by the scheduler, the cycle executor and the
collaborators it drives.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class BotMode(str, Enum):
    """Operating mode resolved at boot from wallet balance and settings."""

    MONITORING = "monitoring"
    TRADING = "trading"


@dataclass(frozen=True)
class ScoredToken:
    """Snapshot of one analysed token as returned by the analysis collaborator."""
    symbol: str
    score: float
    price_usd: float
    price_change_1h: float
    price_change_24h: float
    address: str = ""
    liquidity_usd: float = 0.0
    volume_24h: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "address": self.address,
            "score": round(self.score, 4),
            "price_usd": self.price_usd,
            "price_change_1h": self.price_change_1h,
            "price_change_24h": self.price_change_24h,
        }


@dataclass(frozen=True)
class Position:
    """Open exposure in one token. `amount` is the SOL committed at entry."""
    symbol: str
    entry_price: float
    amount: float
    address: str = ""
    opened_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "address": self.address,
            "entry_price": self.entry_price,
            "amount": self.amount,
            "opened_at": self.opened_at.isoformat(),
        }


@dataclass(frozen=True)
class WalletInfo:
    public_key: str
    balance_sol: float
    has_minimum_balance: bool


@dataclass(frozen=True)
class ServiceSet:
    """
    Handles produced once per start and shared read-only by every cycle.

    Attributes:
        connection: Solana RPC connection
        wallet: Wallet handle (public key only)
        wallet_info: Balance snapshot taken during initialization
        mode: Operating mode for this run
        market_data: Market-data client handed to the analysis collaborator
    """
    connection: Any
    wallet: Any
    wallet_info: WalletInfo
    mode: BotMode
    market_data: Any


@dataclass(frozen=True)
class TradeResult:
    """Outcome reported by the trade-execution collaborator."""
    success: bool
    positions_opened: int = 0
    positions: Tuple[Position, ...] = ()
    reason: Optional[str] = None


@dataclass(frozen=True)
class StopResult:
    message: str


@dataclass(frozen=True)
class CycleResult:
    tokens_analyzed: Tuple[ScoredToken, ...]
    duration_ms: int

    @classmethod
    def empty(cls) -> "CycleResult":
        return cls(tokens_analyzed=(), duration_ms=0)

    @property
    def top_tokens(self) -> Tuple[ScoredToken, ...]:
        return self.tokens_analyzed[:5]


@dataclass(frozen=True)
class CycleOutcome:
    """
    Result type returned by the cycle executor.

    A failed outcome always carries an empty CycleResult and the error text,
    so callers never need to catch exceptions from a cycle.
    """
    success: bool
    result: CycleResult
    error: Optional[str] = None
    trade: Optional[TradeResult] = None
    opportunities: Tuple[ScoredToken, ...] = ()

    @classmethod
    def failure(cls, error: str) -> "CycleOutcome":
        return cls(success=False, result=CycleResult.empty(), error=error)
