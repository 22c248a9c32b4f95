"""
PaymentContext - the explicit bundle of configuration and collaborators a
payment flow runs against.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

import requests

from .backend import BackendClient
from .balances import BalanceReader
from .chain import ChainReader
from .config import DCPConfig, NetworkConfig
from .exceptions import ConfigError
from .models import GasEstimate
from .transaction import check_gas_threshold
from .wallet import WalletProvider

logger = logging.getLogger(__name__)


@dataclass
class PaymentContext:
    """
    Configuration plus the backend, wallet and balance reader one or more
    orchestrators share. The wallet session is owned here; give each
    concurrently running orchestrator its own context.
    """
    config: DCPConfig
    backend: BackendClient
    wallet: WalletProvider
    reader: BalanceReader
    logger: logging.Logger = field(default=logger, repr=False)

    @classmethod
    def create(
        cls,
        config: DCPConfig,
        wallet: WalletProvider,
        reader: Optional[BalanceReader] = None,
        session: Optional[requests.Session] = None
    ) -> "PaymentContext":
        """
        Build a context with a BackendClient and ChainReader derived from ``config``.

        Args:
            config: SDK configuration
            wallet: Wallet session to drive
            reader: Balance source (defaults to a ChainReader over the network table)
            session: Optional requests session for the BackendClient

        Raises:
            ConfigError: If the wallet does not implement WalletProvider
        """
        if not isinstance(wallet, WalletProvider):
            raise ConfigError(f"{type(wallet).__name__} does not implement WalletProvider")
        if config.default_chain_id is not None:
            NetworkConfig.get_network(config.default_chain_id, env=config.env)
        backend = BackendClient(
            config.api_url,
            retry_count=config.retry_count,
            timeout=config.request_timeout,
            session=session,
        )
        return cls(
            config=config,
            backend=backend,
            wallet=wallet,
            reader=reader or ChainReader(timeout=config.request_timeout),
        )

    def check_gas(self, gas_limit: int, max_fee_per_gas: int, payment_amount_wei: int) -> GasEstimate:
        """
        Check a native-currency payment's gas cost against gas_warning_threshold.
        """
        estimate = check_gas_threshold(
            gas_limit,
            max_fee_per_gas,
            payment_amount_wei,
            self.config.gas_warning_threshold,
        )
        if estimate.exceeds_threshold:
            self.logger.warning(
                f"Gas cost {estimate.total_cost_wei} wei is {estimate.percentage_of_payment:.1f}% "
                f"of the payment (threshold {self.config.gas_warning_threshold}%)"
            )
        return estimate

    def close(self) -> None:
        self.backend.close()
