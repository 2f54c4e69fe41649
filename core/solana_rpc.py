"""
Solana JSON-RPC connection (read-only).

Only the calls the orchestrator needs at boot: node health and SOL balance.
Nothing here signs or submits transactions.
"""

import itertools
import logging
import random
import time
from typing import Any, List, Optional

import requests

from core.exceptions import RpcError

logger = logging.getLogger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000

CLUSTER_URLS = {
    "mainnet-beta": "https://api.mainnet-beta.solana.com",
    "devnet": "https://api.devnet.solana.com",
    "testnet": "https://api.testnet.solana.com",
}


def cluster_url(network: str) -> str:
    try:
        return CLUSTER_URLS[network]
    except KeyError:
        raise ValueError(f"Unknown Solana network: {network}")


class SolanaRpcClient:
    """
    Minimal JSON-RPC client with exponential backoff.

    Retries on:
    - 429 (rate limit)
    - 5xx (server errors)
    - Network errors (timeout, connection)

    Does NOT retry on other 4xx responses or on JSON-RPC error objects.
    """

    def __init__(self, url: str, timeout: float = 15.0, max_retries: int = 3,
                 session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))
        self._session = session or requests.Session()
        self._ids = itertools.count(1)
        logger.info(f"Initialized SolanaRpcClient (url={url})")

    def _call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        last_exception: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                response = self._session.post(self.url, json=payload, timeout=self.timeout)
                response.raise_for_status()
                body = response.json()
                if "error" in body:
                    error = body["error"] or {}
                    raise RpcError(f"{method}: {error.get('message', error)}")
                if "result" not in body:
                    raise RpcError(f"{method}: response has no result")
                return body["result"]

            except requests.exceptions.HTTPError as e:
                status_code = e.response.status_code if e.response is not None else 0
                if 400 <= status_code < 500 and status_code != 429:
                    logger.error(f"Solana RPC client error: {status_code} on {method}")
                    raise RpcError(f"{method}: HTTP {status_code}") from e
                logger.warning(f"Solana RPC {status_code} on {method}, attempt {attempt + 1}/{self.max_retries}")
                last_exception = e

            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                logger.warning(f"Network error on {method}: {e}, attempt {attempt + 1}/{self.max_retries}")
                last_exception = e

            if attempt < self.max_retries - 1:
                backoff = (2 ** attempt) + random.uniform(0, 1)
                logger.info(f"Retrying {method} in {backoff:.1f}s...")
                time.sleep(backoff)

        logger.error(f"All {self.max_retries} retries exhausted for {method}")
        raise RpcError(f"{method} failed after {self.max_retries} attempts") from last_exception

    def get_health(self) -> bool:
        """True when the node reports `ok`."""
        return self._call("getHealth") == "ok"

    def get_balance(self, public_key: str) -> int:
        """Balance of `public_key` in lamports."""
        result = self._call("getBalance", [public_key, {"commitment": "confirmed"}])
        if isinstance(result, dict):
            result = result.get("value")
        if not isinstance(result, int):
            raise RpcError(f"getBalance: unexpected payload {result!r}")
        return result

    def get_balance_sol(self, public_key: str) -> float:
        return self.get_balance(public_key) / LAMPORTS_PER_SOL
