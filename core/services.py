"""
Service Initializer

Builds the ServiceSet a run needs: RPC connection, wallet handle, balance
snapshot, operating mode and market-data client. Any handle that cannot be
created fails the whole start attempt with InitializationError; a low balance
does not, it only forces monitoring mode.
"""

import logging
from typing import Callable, Optional

from core.dexscreener import DexScreenerClient
from core.exceptions import InitializationError, RpcError
from core.models import ServiceSet
from core.solana_rpc import SolanaRpcClient, cluster_url
from core.wallet import Wallet, check_wallet_balance, load_wallet, resolve_mode
from tools.config_validator import AppConfig

logger = logging.getLogger(__name__)


class ServiceInitializer:
    """
    Creates external handles from configuration.

    Factories are injectable so tests (and alternative deployments) can swap
    the RPC or market-data client without touching the scheduler.
    """

    def __init__(self,
                 config: AppConfig,
                 connection_factory: Optional[Callable[[AppConfig], object]] = None,
                 wallet_loader: Optional[Callable[[AppConfig], Wallet]] = None,
                 market_data_factory: Optional[Callable[[AppConfig], object]] = None):
        self.config = config
        self._connection_factory = connection_factory or self._default_connection
        self._wallet_loader = wallet_loader or (lambda cfg: load_wallet(cfg.wallet.public_key))
        self._market_data_factory = market_data_factory or self._default_market_data

    @staticmethod
    def _default_connection(config: AppConfig) -> SolanaRpcClient:
        url = config.network.rpc_url or cluster_url(config.network.network)
        return SolanaRpcClient(url, timeout=config.network.rpc_timeout_seconds)

    @staticmethod
    def _default_market_data(config: AppConfig) -> DexScreenerClient:
        return DexScreenerClient(
            base_url=config.market_data.base_url,
            timeout=config.market_data.timeout_seconds,
        )

    def initialize(self) -> ServiceSet:
        """
        Create every handle for one run.

        Raises:
            InitializationError: naming the stage that failed
        """
        logger.info("Initializing Solana Memecoin Trading Bot services...")

        try:
            connection = self._connection_factory(self.config)
            if not connection.get_health():
                raise RpcError("RPC node reports unhealthy")
        except Exception as e:
            raise InitializationError("connection", e) from e
        logger.info("Solana RPC connection healthy")

        try:
            wallet = self._wallet_loader(self.config)
        except Exception as e:
            raise InitializationError("wallet", e) from e

        try:
            wallet_info = check_wallet_balance(connection, wallet, self.config.trading.min_balance_sol)
        except Exception as e:
            raise InitializationError("balance_check", e) from e

        mode = resolve_mode(wallet_info, self.config.trading.enabled)

        try:
            market_data = self._market_data_factory(self.config)
        except Exception as e:
            raise InitializationError("market_data", e) from e

        logger.info("Wallet Status:")
        logger.info(f"  Public Key: {wallet_info.public_key}")
        logger.info(f"  Balance: {wallet_info.balance_sol} SOL")
        logger.info(f"  Minimum Balance Check: {'PASSED' if wallet_info.has_minimum_balance else 'FAILED'}")
        logger.info(f"Bot Mode: {mode.value.upper()}")

        return ServiceSet(
            connection=connection,
            wallet=wallet,
            wallet_info=wallet_info,
            mode=mode,
            market_data=market_data,
        )
