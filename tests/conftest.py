"""
Pytest fixtures for the DirectCryptoPay SDK tests.
"""
import pytest
from web3.providers.rpc import HTTPProvider

from directcryptopay_sdk import client as sdk_client
from directcryptopay_sdk._rate_limited_log import reset_rate_limited_log
from directcryptopay_sdk.config import NetworkConfig

from tests.test_helpers import (
    FakeWallet, FakeBackend, FakeReader, make_config, make_context,
    TEST_CHAIN_ID
)

DCP_ENV_VARS = (
    "DCP_PROJECT_ID", "DCP_API_URL", "DCP_WIDGET_URL", "DCP_ENV",
    "DCP_DEFAULT_CHAIN_ID", "DCP_GAS_WARNING_THRESHOLD", "DCP_WALLET_RPC_URL",
    "DCP_INSECURE_API", f"DCP_RPC_URL_{TEST_CHAIN_ID}",
)


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch):
    """Keep DCP_* variables from the developer's shell out of the tests."""
    for name in DCP_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _reset_sdk_state():
    """Each test starts without a default context and with an empty log cache."""
    reset_rate_limited_log()
    sdk_client._default_context = None
    NetworkConfig._networks_cache = None
    yield
    sdk_client._default_context = None
    reset_rate_limited_log()


@pytest.fixture(autouse=True)
def _patch_http_provider(monkeypatch):
    """
    Stub every Web3 HTTP call so no DNS / network traffic is triggered.
    Tests that need specific RPC answers patch make_request themselves.
    """
    def _dummy(self, method, params=None, _=None):
        if method == "eth_chainId":
            return {"jsonrpc": "2.0", "id": 1, "result": hex(TEST_CHAIN_ID)}
        if method == "eth_gasPrice":
            return {"jsonrpc": "2.0", "id": 1, "result": "0x3b9aca00"}  # 1 gwei
        return {"jsonrpc": "2.0", "id": 1, "result": "0x0"}

    monkeypatch.setattr(HTTPProvider, "make_request", _dummy, raising=True)


@pytest.fixture
def events():
    """Shared call log for the fakes and the callbacks of one test."""
    return []


@pytest.fixture
def wallet(events):
    return FakeWallet(events=events)


@pytest.fixture
def backend(events):
    return FakeBackend(events=events)


@pytest.fixture
def reader():
    return FakeReader({"ETH": 0, "USDC": 100_000_000})


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def context(wallet, backend, reader):
    return make_context(wallet=wallet, backend=backend, reader=reader)
