"""
Paper trade-execution collaborator.

Simulates buys against the wallet's balance snapshot and records the resulting
positions in the Position Registry. No transaction is built, signed or sent.
"""
import logging
import threading
from typing import List, Optional, Sequence

from core.models import Position, ScoredToken, ServiceSet, StopResult, TradeResult
from core.position_registry import PositionRegistry

logger = logging.getLogger(__name__)


class PaperTrader:
    """
    Opens simulated positions for high-scoring tokens.

    Rules:
    - only tokens with score strictly above `min_score`
    - never a second position in a symbol already held
    - never more than `max_positions` open at once
    - never commit more SOL than the wallet snapshot holds

    Capacity and balance checks and the registry writes happen under one
    lock, so overlapping cycles cannot both claim the last free slot.
    """

    def __init__(self, registry: PositionRegistry, min_score: float,
                 max_positions: int, buy_amount_sol: float):
        self.registry = registry
        self.min_score = float(min_score)
        self.max_positions = int(max_positions)
        self.buy_amount_sol = float(buy_amount_sol)
        self._lock = threading.Lock()

    def _committed_sol(self) -> float:
        return sum(p.amount for p in self.registry.list())

    def execute_strategy(self, tokens: Sequence[ScoredToken], services: ServiceSet) -> TradeResult:
        with self._lock:
            return self._execute(tokens, services)

    def _execute(self, tokens: Sequence[ScoredToken], services: ServiceSet) -> TradeResult:
        capacity = self.max_positions - len(self.registry)
        if capacity <= 0:
            logger.info(f"Max positions reached ({self.max_positions}); no new entries")
            return TradeResult(success=False, reason="max_positions_reached")

        candidates = [
            t for t in tokens
            if t.score > self.min_score and not self.registry.has_position(t.symbol)
        ][:capacity]
        if not candidates:
            return TradeResult(success=True, positions_opened=0)

        available = services.wallet_info.balance_sol - self._committed_sol()
        affordable = int(available // self.buy_amount_sol) if self.buy_amount_sol > 0 else 0
        if affordable <= 0:
            return TradeResult(success=False, reason="insufficient_funds")

        opened: List[Position] = []
        for token in candidates[:affordable]:
            position = Position(
                symbol=token.symbol,
                entry_price=token.price_usd,
                amount=self.buy_amount_sol,
                address=token.address,
            )
            try:
                self.registry.open_position(position)
            except ValueError as e:
                logger.warning(f"Skipping {token.symbol}: {e}")
                continue
            logger.debug(f"PAPER BUY {token.symbol} {self.buy_amount_sol} SOL @ ${token.price_usd}")
            opened.append(position)

        return TradeResult(success=True, positions_opened=len(opened), positions=tuple(opened))

    def close_position(self, symbol: str) -> Optional[Position]:
        """Manually close a paper position."""
        with self._lock:
            closed = self.registry.close_position(symbol)
        if closed:
            logger.info(f"PAPER SELL {symbol} (entry ${closed.entry_price}, amount {closed.amount} SOL)")
        return closed

    def stop_trading(self) -> StopResult:
        open_count = len(self.registry)
        return StopResult(message=f"Paper trading stopped ({open_count} open position(s) left as-is)")
