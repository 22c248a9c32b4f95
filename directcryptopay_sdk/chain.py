"""
Read-only chain access for balance lookups.
"""
import logging
import threading
from typing import Dict, Optional

from eth_utils import to_checksum_address
from web3 import Web3

from .config import NetworkConfig
from .models import TokenOption

logger = logging.getLogger(__name__)


class ChainReader:
    """
    Reads native and ERC-20 balances, keeping one Web3 client per chain.
    """

    ERC20_ABI = [
        {
            "constant": True,
            "inputs": [{"name": "_owner", "type": "address"}],
            "name": "balanceOf",
            "outputs": [{"name": "balance", "type": "uint256"}],
            "stateMutability": "view",
            "type": "function"
        }
    ]

    def __init__(self, rpc_urls: Optional[Dict[int, str]] = None, timeout: float = 30):
        """
        Args:
            rpc_urls: Per-chain RPC endpoints overriding the bundled network table
            timeout: HTTP timeout for RPC requests in seconds
        """
        self.rpc_urls = dict(rpc_urls or {})
        self.timeout = timeout
        self._clients: Dict[int, Web3] = {}
        self._lock = threading.RLock()

    def web3_for(self, chain_id: int) -> Web3:
        """
        Get (or create) the Web3 client for a chain.

        Raises:
            ConfigError: If no RPC endpoint is known for the chain
        """
        with self._lock:
            if chain_id not in self._clients:
                rpc_url = self.rpc_urls.get(chain_id) or NetworkConfig.get_rpc_url(chain_id)
                self._clients[chain_id] = Web3(
                    Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": self.timeout})
                )
                logger.debug(f"Created Web3 client for chain {chain_id}")
            return self._clients[chain_id]

    def get_native_balance(self, account: str, chain_id: int) -> int:
        w3 = self.web3_for(chain_id)
        return int(w3.eth.get_balance(to_checksum_address(account)))

    def get_token_balance(self, token_address: str, account: str, chain_id: int) -> int:
        w3 = self.web3_for(chain_id)
        contract = w3.eth.contract(address=to_checksum_address(token_address), abi=self.ERC20_ABI)
        return int(contract.functions.balanceOf(to_checksum_address(account)).call())

    def get_balance(self, token: TokenOption, account: str, chain_id: int) -> int:
        """
        Balance of ``token`` held by ``account``, in base units.
        """
        if token.is_native:
            return self.get_native_balance(account, chain_id)
        return self.get_token_balance(token.address, account, chain_id)

    def get_gas_price(self, chain_id: int) -> int:
        return int(self.web3_for(chain_id).eth.gas_price)
