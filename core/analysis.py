"""
Reference analysis collaborator: momentum ranking over DexScreener pairs.

Contract consumed by the cycle executor:
    perform_analysis(market_data) -> List[ScoredToken], sorted by descending score

Scores live on a 0-10 scale so MIN_SCORE means the same thing whichever
analysis collaborator is plugged in.
"""

import logging
import math
from typing import Dict, Iterable, List

from core.dexscreener import MarketPair
from core.models import ScoredToken

logger = logging.getLogger(__name__)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _log_scale(value: float, decades: float = 7.0) -> float:
    """Map 0..10**decades onto 0..1 logarithmically."""
    if value <= 0:
        return 0.0
    return _clamp(math.log10(value + 1.0) / decades, 0.0, 1.0)


def score_pair(pair: MarketPair) -> float:
    """
    Weighted momentum score.

    1h change contributes up to 4 points, 24h change up to 3, 24h volume up
    to 2 and liquidity up to 1.
    """
    short_term = (_clamp(pair.price_change_1h, -50.0, 50.0) + 50.0) / 100.0 * 4.0
    long_term = (_clamp(pair.price_change_24h, -100.0, 200.0) + 100.0) / 300.0 * 3.0
    volume = _log_scale(pair.volume_24h) * 2.0
    liquidity = _log_scale(pair.liquidity_usd) * 1.0
    return round(short_term + long_term + volume + liquidity, 4)


class MomentumAnalyzer:
    """Collects pairs for the configured queries and ranks their base tokens."""

    def __init__(self, queries: Iterable[str], chain_id: str = "solana",
                 min_liquidity_usd: float = 0.0):
        self.queries = [q for q in queries if q]
        self.chain_id = chain_id
        self.min_liquidity_usd = float(min_liquidity_usd)

    def _collect(self, market_data) -> List[MarketPair]:
        pairs: List[MarketPair] = []
        for query in self.queries:
            pairs.extend(market_data.search_pairs(query))
        return pairs

    def perform_analysis(self, market_data) -> List[ScoredToken]:
        # Keep the most liquid pair per base token
        best: Dict[str, MarketPair] = {}
        for pair in self._collect(market_data):
            if pair.chain_id != self.chain_id:
                continue
            if pair.liquidity_usd < self.min_liquidity_usd:
                continue
            current = best.get(pair.base_address)
            if current is None or pair.liquidity_usd > current.liquidity_usd:
                best[pair.base_address] = pair

        tokens = [
            ScoredToken(
                symbol=pair.base_symbol,
                score=score_pair(pair),
                price_usd=pair.price_usd,
                price_change_1h=pair.price_change_1h,
                price_change_24h=pair.price_change_24h,
                address=pair.base_address,
                liquidity_usd=pair.liquidity_usd,
                volume_24h=pair.volume_24h,
            )
            for pair in best.values()
        ]
        tokens.sort(key=lambda t: t.score, reverse=True)
        logger.debug(f"Momentum analysis ranked {len(tokens)} tokens from {len(self.queries)} queries")
        return tokens

    __call__ = perform_analysis
