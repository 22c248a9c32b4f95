"""
DirectCryptoPay SDK - accept on-chain payments and verify signed webhooks.
"""
from .version import __version__
from .backend import BackendClient
from .balances import fetch_token_balances, rank_tokens
from .chain import ChainReader
from .client import init, pay, get_context, is_initialized, reset
from .config import DCPConfig, NetworkConfig
from .context import PaymentContext
from .exceptions import (
    DirectCryptoPayError, ConfigError, FetchFailure, WalletRejection,
    ChainMismatch, PaymentRejected, PollingTimeout, VerificationFailure,
    InvalidTransitionError
)
from .models import (
    TokenOption, ToolMetadata, RankedToken, PaymentIntent, SubmittedPayment,
    SubmitPaymentResponse, PaymentStatusRecord, GasEstimate, NativeTransfer,
    ContractCall, TransactionRequest, WebhookEnvelope, TxReceipt
)
from .orchestrator import PaymentOrchestrator, PaymentCallbacks
from .state import PaymentState, OrchestratorState
from .transaction import parse_units, format_units, build_transaction, check_gas_threshold
from .wallet import WalletProvider, WalletAccount, Web3WalletProvider
from .webhook import (
    verify_webhook_signature, parse_signature_header, compute_signature,
    build_signature_header, WebhookVerifier, SIGNATURE_HEADER
)

__all__ = [
    "__version__",
    "init",
    "pay",
    "get_context",
    "is_initialized",
    "reset",
    "BackendClient",
    "ChainReader",
    "DCPConfig",
    "NetworkConfig",
    "PaymentContext",
    "PaymentOrchestrator",
    "PaymentCallbacks",
    "PaymentState",
    "OrchestratorState",
    "WalletProvider",
    "WalletAccount",
    "Web3WalletProvider",
    "fetch_token_balances",
    "rank_tokens",
    "parse_units",
    "format_units",
    "build_transaction",
    "check_gas_threshold",
    "verify_webhook_signature",
    "parse_signature_header",
    "compute_signature",
    "build_signature_header",
    "WebhookVerifier",
    "SIGNATURE_HEADER",
    "TokenOption",
    "ToolMetadata",
    "RankedToken",
    "PaymentIntent",
    "SubmittedPayment",
    "SubmitPaymentResponse",
    "PaymentStatusRecord",
    "GasEstimate",
    "NativeTransfer",
    "ContractCall",
    "TransactionRequest",
    "WebhookEnvelope",
    "TxReceipt",
    "DirectCryptoPayError",
    "ConfigError",
    "FetchFailure",
    "WalletRejection",
    "ChainMismatch",
    "PaymentRejected",
    "PollingTimeout",
    "VerificationFailure",
    "InvalidTransitionError",
]
