"""
SDK entry points: process-wide ``init()`` and per-payment ``pay()``.

``init()`` only records a default :class:`PaymentContext`; everything below it
takes the context explicitly, so tests and multi-tenant servers can build
their own contexts and never call ``init()`` at all.
"""
import logging
import os
import threading
from typing import Optional

from .config import DCPConfig
from .context import PaymentContext
from .exceptions import ConfigError
from .orchestrator import PaymentOrchestrator, PaymentCallbacks
from .wallet import WalletProvider, Web3WalletProvider

logger = logging.getLogger(__name__)

_default_context: Optional[PaymentContext] = None
_context_lock = threading.RLock()


def init(
    project_id: Optional[str] = None,
    api_url: Optional[str] = None,
    widget_url: Optional[str] = None,
    env: Optional[str] = None,
    default_chain_id: Optional[int] = None,
    gas_warning_threshold: Optional[float] = None,
    wallet: Optional[WalletProvider] = None,
    wallet_rpc_url: Optional[str] = None
) -> PaymentContext:
    """
    Configure the SDK once for this process.

    Unset arguments fall back to DCP_* environment variables and then to the
    defaults in :class:`DCPConfig`. A second call logs a warning and returns
    the context from the first call unchanged.

    Args:
        project_id: WalletConnect project id
        api_url: DirectCryptoPay API base URL
        widget_url: Hosted widget base URL
        env: "test" or "prod"
        default_chain_id: Chain preselected when a tool does not pin one
        gas_warning_threshold: Gas cost, as a percentage of the payment, above
            which a warning is raised
        wallet: Wallet session to drive
        wallet_rpc_url: JSON-RPC endpoint of a wallet, used when ``wallet`` is
            not given (defaults to DCP_WALLET_RPC_URL)

    Returns:
        The default PaymentContext

    Raises:
        ConfigError: If the configuration is invalid or no wallet is available
    """
    global _default_context

    with _context_lock:
        if _default_context is not None:
            logger.warning("DirectCryptoPay: SDK already initialized")
            return _default_context

        config = DCPConfig.from_env(
            project_id=project_id,
            api_url=api_url,
            widget_url=widget_url,
            env=env,
            default_chain_id=default_chain_id,
            gas_warning_threshold=gas_warning_threshold,
        )

        if wallet is None:
            wallet_rpc_url = wallet_rpc_url or os.environ.get("DCP_WALLET_RPC_URL")
            if not wallet_rpc_url:
                raise ConfigError(
                    "DirectCryptoPay: a wallet is required. Pass wallet= or wallet_rpc_url=, "
                    "or set DCP_WALLET_RPC_URL"
                )
            wallet = Web3WalletProvider(wallet_rpc_url, timeout=config.request_timeout)

        _default_context = PaymentContext.create(config, wallet)
        logger.info(f"DirectCryptoPay: SDK initialized ({config.env}, {config.api_url})")
        return _default_context


def is_initialized() -> bool:
    with _context_lock:
        return _default_context is not None


def get_context() -> PaymentContext:
    """
    Raises:
        ConfigError: If init() has not been called
    """
    with _context_lock:
        if _default_context is None:
            raise ConfigError("DirectCryptoPay: SDK not initialized. Call init() first")
        return _default_context


def reset() -> None:
    """Drop the default context so init() can run again."""
    global _default_context

    with _context_lock:
        if _default_context is not None:
            _default_context.close()
        _default_context = None


async def pay(
    tool_id: str,
    callbacks: Optional[PaymentCallbacks] = None,
    context: Optional[PaymentContext] = None
) -> PaymentOrchestrator:
    """
    Start a payment flow for ``tool_id``.

    Args:
        tool_id: Payment tool to pay for
        callbacks: Optional progress hooks
        context: Context to run against (defaults to the one from init())

    Returns:
        The started PaymentOrchestrator, waiting for the user or already failed

    Raises:
        ConfigError: If no context is given and init() has not been called
    """
    orchestrator = PaymentOrchestrator(context or get_context(), tool_id, callbacks)
    await orchestrator.start()
    return orchestrator
