"""
Wallet handle, balance check and operating-mode resolution.

The bot only ever holds the wallet's public key. Key material and signing
belong to whatever executes live trades, which is outside this repository.
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Optional

from core.models import BotMode, WalletInfo

logger = logging.getLogger(__name__)

_BASE58_PUBKEY = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")

PUBLIC_KEY_ENV = "SOLANA_WALLET_PUBLIC_KEY"


@dataclass(frozen=True)
class Wallet:
    public_key: str

    def __str__(self) -> str:
        return f"{self.public_key[:4]}...{self.public_key[-4:]}"


def load_wallet(public_key: Optional[str] = None) -> Wallet:
    """
    Build the wallet handle from config, falling back to the environment.

    Raises:
        ValueError: if no key is configured or it is not a base58 public key
    """
    key = (public_key or os.getenv(PUBLIC_KEY_ENV, "")).strip()
    if not key:
        raise ValueError(f"No wallet public key configured (set wallet.public_key or {PUBLIC_KEY_ENV})")
    if not _BASE58_PUBKEY.match(key):
        raise ValueError("Wallet public key is not a valid base58 Solana address")
    return Wallet(public_key=key)


def check_wallet_balance(connection, wallet: Wallet, min_balance_sol: float) -> WalletInfo:
    """Query the SOL balance and compare it to the configured minimum."""
    balance = connection.get_balance_sol(wallet.public_key)
    has_minimum = balance >= min_balance_sol
    if not has_minimum:
        logger.warning(
            f"Insufficient wallet balance ({balance:.4f} SOL, minimum {min_balance_sol} SOL) for trading. "
            "The bot can still run in monitoring mode."
        )
    return WalletInfo(
        public_key=wallet.public_key,
        balance_sol=balance,
        has_minimum_balance=has_minimum,
    )


def resolve_mode(wallet_info: WalletInfo, trading_enabled: bool) -> BotMode:
    """Trade only when trading is switched on and the wallet can fund it."""
    if trading_enabled and wallet_info.has_minimum_balance:
        return BotMode.TRADING
    return BotMode.MONITORING
