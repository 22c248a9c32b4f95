"""
Configuration for the DirectCryptoPay SDK.

Holds the per-process SDK settings (:class:`DCPConfig`) and the table of
supported networks (:class:`NetworkConfig`).
"""
import os
import json
import logging
import importlib.resources
import urllib.parse
from typing import Dict, Any, Optional, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.directcryptopay.com"
DEFAULT_WIDGET_URL = "https://pay.directcryptopay.com"
DEFAULT_GAS_WARNING_THRESHOLD = 15

ENV_TEST = "test"
ENV_PROD = "prod"


def _validate_https(name: str, url: str) -> str:
    """
    Require https:// unless the host is local or DCP_INSECURE_API=1.

    Raises:
        ValueError: If the URL is not acceptable
    """
    parsed = urllib.parse.urlparse(url)
    host = parsed.hostname or ""
    is_local = host in ("localhost", "127.0.0.1", "::1")
    if parsed.scheme not in ("http", "https") or not host:
        raise ValueError(f"{name} is not a valid URL: {url!r}")
    if parsed.scheme != "https" and not is_local and os.environ.get("DCP_INSECURE_API") != "1":
        raise ValueError(
            f"{name} must use https:// for security (got: {parsed.scheme}://). "
            "Set DCP_INSECURE_API=1 to allow HTTP for development."
        )
    return url.rstrip("/")


def normalize_env(value: Optional[str]) -> str:
    """
    Normalize an environment name to "test" or "prod".

    Unknown values fall back to prod.
    """
    env = (value or ENV_PROD).lower()
    if env in ("prod", "production", "main", "mainnet"):
        return ENV_PROD
    if env in ("test", "testing", "testnet", "dev", "development"):
        return ENV_TEST
    logger.warning(f"Unknown environment: {env}, defaulting to {ENV_PROD}")
    return ENV_PROD


class DCPConfig(BaseModel):
    """
    SDK settings shared by every payment flow of a context.
    """
    model_config = ConfigDict(frozen=True)

    project_id: str = Field(..., min_length=1)
    api_url: str = DEFAULT_API_URL
    widget_url: str = DEFAULT_WIDGET_URL
    env: Literal["test", "prod"] = ENV_PROD
    default_chain_id: Optional[int] = None
    gas_warning_threshold: float = Field(DEFAULT_GAS_WARNING_THRESHOLD, ge=0)
    request_timeout: float = Field(30, gt=0)
    retry_count: int = Field(3, ge=0)
    connection_poll_interval: float = Field(1.0, gt=0)
    status_poll_interval: float = Field(2.0, gt=0)
    max_status_polls: int = Field(150, ge=1)

    @field_validator("api_url", "widget_url")
    @classmethod
    def _check_url(cls, value: str, info) -> str:
        return _validate_https(info.field_name, value)

    @field_validator("env", mode="before")
    @classmethod
    def _check_env(cls, value: Optional[str]) -> str:
        return normalize_env(value)

    @classmethod
    def from_env(cls, **overrides: Any) -> "DCPConfig":
        """
        Build a config from DCP_* environment variables.

        Args:
            **overrides: Explicit values that win over the environment

        Returns:
            DCPConfig instance

        Raises:
            ConfigError: If a value is missing or malformed
        """
        values: Dict[str, Any] = {}
        env_map = {
            "project_id": "DCP_PROJECT_ID",
            "api_url": "DCP_API_URL",
            "widget_url": "DCP_WIDGET_URL",
            "env": "DCP_ENV",
            "default_chain_id": "DCP_DEFAULT_CHAIN_ID",
            "gas_warning_threshold": "DCP_GAS_WARNING_THRESHOLD",
        }
        for field_name, env_key in env_map.items():
            raw = os.environ.get(env_key)
            if raw:
                values[field_name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**values)
        except ValueError as e:
            raise ConfigError(f"Invalid DirectCryptoPay configuration: {e}") from e


class NetworkConfig:
    """
    Supported networks, loaded once from the bundled networks.json.
    """
    _networks_cache: Optional[Dict[str, Dict[str, Any]]] = None

    @classmethod
    def load_networks(cls) -> Dict[str, Dict[str, Any]]:
        """
        Load the network table.

        Returns:
            Mapping of chain id (as string) to network entry
        """
        if cls._networks_cache is not None:
            return cls._networks_cache

        resource = importlib.resources.files("directcryptopay_sdk").joinpath("networks.json")
        with resource.open("r", encoding="utf-8") as f:
            cls._networks_cache = json.load(f)
        logger.debug(f"Loaded {len(cls._networks_cache)} networks")
        return cls._networks_cache

    @classmethod
    def get_network(cls, chain_id: int, env: Optional[str] = None) -> Dict[str, Any]:
        """
        Look up a network by chain id.

        Args:
            chain_id: EVM chain id
            env: When "test", only testnets are accepted

        Returns:
            Network entry with chainId, name, currency, isTestnet, rpc, explorer

        Raises:
            ConfigError: If the chain is not supported (in this environment)
        """
        networks = cls.load_networks()
        network = networks.get(str(chain_id))
        if network is None:
            available = ", ".join(sorted(networks, key=int))
            raise ConfigError(
                f"DirectCryptoPay: Unsupported network with chainId {chain_id}. "
                f"Available: {available}"
            )
        if env == ENV_TEST and not network["isTestnet"]:
            raise ConfigError(f"Network {network['name']} is not available in the test environment")
        return network

    @classmethod
    def get_rpc_url(cls, chain_id: int) -> str:
        """
        Get the RPC endpoint for a chain, honouring DCP_RPC_URL_<chain_id>.
        """
        override = os.environ.get(f"DCP_RPC_URL_{chain_id}")
        if override:
            return override
        return cls.get_network(chain_id)["rpc"]

    @classmethod
    def explorer_tx_url(cls, chain_id: int, tx_hash: str) -> str:
        """Block-explorer link for a transaction hash."""
        explorer = cls.get_network(chain_id)["explorer"].rstrip("/")
        return f"{explorer}/tx/{tx_hash}"
