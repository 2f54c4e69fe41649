"""
DexScreener market-data client.

Public, unauthenticated REST endpoints. Pairs are normalized into MarketPair
so the analysis collaborator never touches raw JSON.
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from core.exceptions import MarketDataError

logger = logging.getLogger(__name__)

DEXSCREENER_BASE = "https://api.dexscreener.com"


@dataclass(frozen=True)
class MarketPair:
    """One DEX pair, reduced to the fields the bot scores on."""
    chain_id: str
    pair_address: str
    base_symbol: str
    base_address: str
    price_usd: float
    price_change_1h: float
    price_change_24h: float
    volume_24h: float
    liquidity_usd: float


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def parse_pair(raw: Dict[str, Any]) -> Optional[MarketPair]:
    """Normalize a raw pair; returns None when the pair has no usable price."""
    base = raw.get("baseToken") or {}
    price = _as_float(raw.get("priceUsd"))
    if not base.get("address") or price <= 0:
        return None
    change = raw.get("priceChange") or {}
    return MarketPair(
        chain_id=str(raw.get("chainId", "")),
        pair_address=str(raw.get("pairAddress", "")),
        base_symbol=str(base.get("symbol", "")),
        base_address=str(base["address"]),
        price_usd=price,
        price_change_1h=_as_float(change.get("h1")),
        price_change_24h=_as_float(change.get("h24")),
        volume_24h=_as_float((raw.get("volume") or {}).get("h24")),
        liquidity_usd=_as_float((raw.get("liquidity") or {}).get("usd")),
    )


class DexScreenerClient:
    """Read-only DexScreener connector with retry on 429/5xx/network errors."""

    def __init__(self, base_url: str = DEXSCREENER_BASE, timeout: float = 10.0,
                 max_retries: int = 3, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))
        self._session = session or requests.Session()
        logger.info(f"Initialized DexScreenerClient (base_url={self.base_url})")

    def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        url = f"{self.base_url}{path}"
        last_exception: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                response = self._session.get(url, params=params, timeout=self.timeout)
                response.raise_for_status()
                return response.json()

            except requests.exceptions.HTTPError as e:
                status_code = e.response.status_code if e.response is not None else 0
                if 400 <= status_code < 500 and status_code != 429:
                    logger.error(f"DexScreener client error: {status_code} on {path}")
                    raise MarketDataError(f"{path}: HTTP {status_code}") from e
                logger.warning(f"DexScreener {status_code} on {path}, attempt {attempt + 1}/{self.max_retries}")
                last_exception = e

            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                logger.warning(f"Network error on {path}: {e}, attempt {attempt + 1}/{self.max_retries}")
                last_exception = e

            except ValueError as e:
                raise MarketDataError(f"{path}: invalid JSON") from e

            if attempt < self.max_retries - 1:
                backoff = (2 ** attempt) + random.uniform(0, 1)
                time.sleep(backoff)

        raise MarketDataError(f"{path} failed after {self.max_retries} attempts") from last_exception

    def search_pairs(self, query: str) -> List[MarketPair]:
        body = self._get("/latest/dex/search", params={"q": query})
        raw_pairs = body.get("pairs") if isinstance(body, dict) else None
        pairs = [p for p in (parse_pair(raw) for raw in raw_pairs or []) if p]
        logger.debug(f"search_pairs({query!r}): {len(pairs)} pairs")
        return pairs
