"""
Cycle Executor

Runs exactly one analysis-then-trade pass:
1. Analyse tokens (analysis collaborator)
2. Report the analysis (audit + log)
3. Trading mode: hand the ranked tokens to the trade collaborator
   Monitoring mode: report the top opportunities above MIN_SCORE
4. Report completion

Every failure is converted into a failed CycleOutcome. Nothing raised by a
collaborator crosses this boundary, so a bad cycle never stops the scheduler.
"""

import logging
import time
from typing import Callable, Optional, Sequence, Tuple

from core.audit_log import AuditLogger
from core.exceptions import CycleError
from core.models import (
    BotMode,
    CycleOutcome,
    CycleResult,
    ScoredToken,
    ServiceSet,
    TradeResult,
)
from core.position_registry import PositionRegistry
from infra.metrics import CycleStats, MetricsRecorder

logger = logging.getLogger(__name__)

MAX_REPORTED_TOKENS = 5


class CycleExecutor:
    """
    Sequences the collaborators for one cycle.

    Args:
        analysis: callable(market_data) -> tokens sorted by descending score
        trader: object exposing execute_strategy(tokens, services) -> TradeResult
        trading_enabled: global live-trading gate (TRADING_ENABLED)
        min_score: monitoring-mode visibility threshold (MIN_SCORE)
        audit: structured analysis/trade records
        metrics: Prometheus recorder
        registry: read for the open-positions gauge only
    """

    def __init__(self,
                 analysis: Callable[[object], Sequence[ScoredToken]],
                 trader,
                 trading_enabled: bool,
                 min_score: float,
                 audit: Optional[AuditLogger] = None,
                 metrics: Optional[MetricsRecorder] = None,
                 registry: Optional[PositionRegistry] = None):
        self.analysis = analysis
        self.trader = trader
        self.trading_enabled = bool(trading_enabled)
        self.min_score = float(min_score)
        self.audit = audit
        self.metrics = metrics
        self.registry = registry

    def run(self, services: ServiceSet) -> CycleOutcome:
        """Execute one cycle. Never raises."""
        started = time.monotonic()
        logger.info("Starting Analysis Cycle")

        try:
            tokens = self._analyze(services)
            duration_ms = max(0, int((time.monotonic() - started) * 1000))
            result = CycleResult(tokens_analyzed=tokens, duration_ms=duration_ms)
            self._report_analysis(result, services)

            trade: Optional[TradeResult] = None
            opportunities: Tuple[ScoredToken, ...] = ()
            if services.mode == BotMode.TRADING and self.trading_enabled:
                trade = self._trade(tokens, services)
            else:
                logger.info(f"Running in {services.mode.value} mode. No trades will be executed.")
                opportunities = self._report_opportunities(tokens)

        except CycleError as e:
            logger.error(f"Cycle Error: {e}", exc_info=True)
            self._observe("failed", 0, 0, time.monotonic() - started)
            return CycleOutcome.failure(str(e))
        except Exception as e:
            logger.error(f"Unexpected cycle error: {e}", exc_info=True)
            self._observe("failed", 0, 0, time.monotonic() - started)
            return CycleOutcome.failure(f"unexpected: {e}")

        logger.info(f"Analysis Cycle Completed in {result.duration_ms}ms")
        opened = trade.positions_opened if trade and trade.success else 0
        self._observe("ok", len(tokens), opened, result.duration_ms / 1000.0)
        return CycleOutcome(
            success=True,
            result=result,
            trade=trade,
            opportunities=opportunities,
        )

    def _analyze(self, services: ServiceSet) -> Tuple[ScoredToken, ...]:
        logger.info("Performing technical analysis...")
        try:
            tokens = tuple(self.analysis(services.market_data) or ())
        except Exception as e:
            raise CycleError("analysis", e) from e

        scores = [t.score for t in tokens]
        if any(a < b for a, b in zip(scores, scores[1:])):
            raise CycleError("analysis", ValueError("results are not sorted by descending score"))
        return tokens

    def _report_analysis(self, result: CycleResult, services: ServiceSet) -> None:
        if self.audit:
            self.audit.log_analysis(
                token_count=len(result.tokens_analyzed),
                top_tokens=result.top_tokens,
                duration_ms=result.duration_ms,
                mode=services.mode.value,
            )
        else:
            logger.info(f"Analysis found {len(result.tokens_analyzed)} tokens in {result.duration_ms}ms")

    def _trade(self, tokens: Tuple[ScoredToken, ...], services: ServiceSet) -> TradeResult:
        logger.info("Executing trading strategy...")
        try:
            trade = self.trader.execute_strategy(list(tokens), services)
        except Exception as e:
            raise CycleError("trade_execution", e) from e

        if trade.success:
            logger.info(f"Trading strategy executed successfully. Positions opened: {trade.positions_opened}")
            for position in trade.positions:
                logger.info(f"Position opened: {position.symbol} at ${position.entry_price}, amount: {position.amount}")
                if self.audit:
                    self.audit.log_trade("buy", position, mode=services.mode.value)
        else:
            logger.warning(f"Trading strategy execution failed: {trade.reason}")
        return trade

    def _report_opportunities(self, tokens: Tuple[ScoredToken, ...]) -> Tuple[ScoredToken, ...]:
        potential = tuple(t for t in tokens if t.score > self.min_score)[:MAX_REPORTED_TOKENS]
        if potential:
            logger.info(f"Found {len(potential)} potential trading opportunities:")
            for token in potential:
                logger.info(
                    f"- {token.symbol}: Score {token.score:.2f}, Price ${token.price_usd:.8f}, "
                    f"Change 1h: {token.price_change_1h:.2f}%"
                )
        return potential

    def _observe(self, status: str, tokens: int, opened: int, duration_seconds: float) -> None:
        if not self.metrics:
            return
        self.metrics.observe_cycle(CycleStats(
            status=status,
            tokens_analyzed=tokens,
            positions_opened=opened,
            duration_seconds=duration_seconds,
        ))
        if self.registry is not None:
            self.metrics.record_open_positions(len(self.registry))
