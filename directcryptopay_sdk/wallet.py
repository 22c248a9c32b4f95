"""
Wallet access for the payment flow.

The orchestrator only depends on the :class:`WalletProvider` protocol. The
wallet itself holds the keys and does the signing; this package never sees a
private key.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from eth_utils import to_checksum_address
from web3 import Web3

from .exceptions import WalletRejection, ChainMismatch, DirectCryptoPayError
from .models import TransactionRequest, NativeTransfer, ContractCall, TxReceipt

logger = logging.getLogger(__name__)

# EIP-1193 / EIP-3326 provider error codes
USER_REJECTED_REQUEST = 4001
UNAUTHORIZED = 4100
UNRECOGNIZED_CHAIN = 4902


@dataclass(frozen=True)
class WalletAccount:
    address: Optional[str]
    chain_id: Optional[int]
    is_connected: bool


@runtime_checkable
class WalletProvider(Protocol):
    """Protocol for wallet sessions driven by the payment flow"""

    def connect(self) -> None:
        """Ask the user to connect. Raises WalletRejection if they decline."""
        ...

    def is_connected(self) -> bool:
        ...

    def get_account(self) -> WalletAccount:
        ...

    def switch_chain(self, chain_id: int) -> None:
        """Move the wallet to ``chain_id``. Raises ChainMismatch on failure."""
        ...

    def send_transaction(self, tx: TransactionRequest) -> str:
        """Sign and broadcast ``tx``; return the transaction hash."""
        ...

    def wait_for_receipt(self, tx_hash: str, timeout: float = 120) -> TxReceipt:
        ...


class WalletRPCError(DirectCryptoPayError):
    """JSON-RPC error returned by the wallet endpoint."""

    def __init__(self, message: str, code: Optional[int] = None):
        self.code = code
        super().__init__(message)


class Web3WalletProvider:
    """
    WalletProvider over an EIP-1193 style JSON-RPC endpoint.

    The endpoint is expected to be a wallet (or wallet bridge) that prompts
    the user for ``eth_requestAccounts``, ``wallet_switchEthereumChain`` and
    ``eth_sendTransaction``, and signs on its side.
    """

    def __init__(self, rpc_url: str, timeout: float = 30, logger: Optional[logging.Logger] = None):
        """
        Args:
            rpc_url: Wallet JSON-RPC endpoint
            timeout: HTTP timeout for RPC requests in seconds
            logger: Optional logger instance
        """
        self.rpc_url = rpc_url
        self.logger = logger or logging.getLogger(__name__)
        self.w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))

    def _rpc(self, method: str, params: List[Any]) -> Any:
        response = self.w3.provider.make_request(method, params)
        error = response.get("error") if isinstance(response, dict) else None
        if error:
            if isinstance(error, dict):
                raise WalletRPCError(error.get("message", str(error)), error.get("code"))
            raise WalletRPCError(str(error))
        return response.get("result")

    def connect(self) -> None:
        try:
            accounts = self._rpc("eth_requestAccounts", [])
        except WalletRPCError as e:
            if e.code in (USER_REJECTED_REQUEST, UNAUTHORIZED):
                raise WalletRejection(f"Wallet connection rejected: {e}") from e
            raise
        self.logger.info(f"Wallet connected with {len(accounts or [])} account(s)")

    def _accounts(self) -> List[str]:
        return self._rpc("eth_accounts", []) or []

    def is_connected(self) -> bool:
        try:
            return bool(self._accounts())
        except Exception as e:
            self.logger.debug(f"Wallet connection check failed: {e}")
            return False

    def get_account(self) -> WalletAccount:
        accounts = self._accounts()
        if not accounts:
            return WalletAccount(address=None, chain_id=None, is_connected=False)
        chain_id = int(self._rpc("eth_chainId", []), 16)
        return WalletAccount(
            address=to_checksum_address(accounts[0]),
            chain_id=chain_id,
            is_connected=True,
        )

    def switch_chain(self, chain_id: int) -> None:
        try:
            self._rpc("wallet_switchEthereumChain", [{"chainId": hex(chain_id)}])
        except WalletRPCError as e:
            if e.code == UNRECOGNIZED_CHAIN:
                raise ChainMismatch(f"Wallet does not support chain {chain_id}", chain_id) from e
            if e.code == USER_REJECTED_REQUEST:
                raise ChainMismatch(f"Switch to chain {chain_id} was rejected", chain_id) from e
            raise ChainMismatch(f"Failed to switch to chain {chain_id}: {e}", chain_id) from e
        self.logger.info(f"Switched wallet to chain {chain_id}")

    def _to_rpc_tx(self, tx: TransactionRequest, sender: str) -> Dict[str, Any]:
        if isinstance(tx, NativeTransfer):
            return {"from": sender, "to": tx.to, "value": hex(tx.value), "chainId": hex(tx.chain_id)}
        if isinstance(tx, ContractCall):
            return {"from": sender, "to": tx.to, "data": tx.data, "value": "0x0", "chainId": hex(tx.chain_id)}
        raise TypeError(f"Unsupported transaction request: {type(tx).__name__}")

    def send_transaction(self, tx: TransactionRequest) -> str:
        account = self.get_account()
        if not account.is_connected:
            raise WalletRejection("Wallet is not connected")
        try:
            tx_hash = self._rpc("eth_sendTransaction", [self._to_rpc_tx(tx, account.address)])
        except WalletRPCError as e:
            if e.code == USER_REJECTED_REQUEST:
                raise WalletRejection(f"Transaction rejected in wallet: {e}") from e
            raise
        self.logger.info(f"Transaction sent: {tx_hash}")
        return tx_hash

    def wait_for_receipt(self, tx_hash: str, timeout: float = 120) -> TxReceipt:
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout, poll_latency=1)
        receipt_dict = dict(receipt)
        for key, value in list(receipt_dict.items()):
            if isinstance(value, bytes):
                receipt_dict[key] = Web3.to_hex(value)
        receipt_dict["logs"] = [dict(log) for log in receipt_dict.get("logs", [])]
        return TxReceipt.model_validate(receipt_dict)
