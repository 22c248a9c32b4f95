"""
Tests for on-chain balance reads.
"""
from unittest.mock import MagicMock

import pytest

from directcryptopay_sdk.chain import ChainReader
from directcryptopay_sdk.exceptions import ConfigError
from directcryptopay_sdk.models import TokenOption

from tests.test_helpers import TEST_ACCOUNT, TEST_USDC, TEST_CHAIN_ID

ETH = TokenOption(symbol="ETH", decimals=18, is_native=True)
USDC = TokenOption(symbol="USDC", address=TEST_USDC, decimals=6)


@pytest.fixture
def mock_w3():
    w3 = MagicMock()
    w3.eth.get_balance.return_value = 2 * 10**18
    w3.eth.gas_price = 10**9
    balance_of = MagicMock()
    balance_of.return_value.call.return_value = 49_990_000
    w3.eth.contract.return_value.functions.balanceOf = balance_of
    return w3


@pytest.fixture
def reader(mock_w3):
    chain_reader = ChainReader()
    chain_reader._clients[TEST_CHAIN_ID] = mock_w3
    return chain_reader


def test_native_balance(reader, mock_w3):
    assert reader.get_balance(ETH, TEST_ACCOUNT, TEST_CHAIN_ID) == 2 * 10**18
    mock_w3.eth.get_balance.assert_called_once_with(TEST_ACCOUNT)


def test_token_balance(reader, mock_w3):
    assert reader.get_balance(USDC, TEST_ACCOUNT, TEST_CHAIN_ID) == 49_990_000
    _, kwargs = mock_w3.eth.contract.call_args
    assert kwargs["address"] == TEST_USDC
    assert kwargs["abi"] == ChainReader.ERC20_ABI
    mock_w3.eth.contract.return_value.functions.balanceOf.assert_called_once_with(TEST_ACCOUNT)


def test_erc20_abi_only_declares_balance_of():
    assert [entry["name"] for entry in ChainReader.ERC20_ABI] == ["balanceOf"]


def test_gas_price(reader):
    assert reader.get_gas_price(TEST_CHAIN_ID) == 10**9


def test_one_client_per_chain():
    chain_reader = ChainReader()
    first = chain_reader.web3_for(TEST_CHAIN_ID)
    assert chain_reader.web3_for(TEST_CHAIN_ID) is first
    assert chain_reader.web3_for(137) is not first


def test_rpc_url_from_network_table():
    chain_reader = ChainReader(timeout=7)
    w3 = chain_reader.web3_for(TEST_CHAIN_ID)
    assert w3.provider.endpoint_uri == "https://ethereum-sepolia-rpc.publicnode.com"


def test_explicit_rpc_url_wins():
    chain_reader = ChainReader(rpc_urls={TEST_CHAIN_ID: "https://node.example.com"})
    assert chain_reader.web3_for(TEST_CHAIN_ID).provider.endpoint_uri == "https://node.example.com"


def test_unknown_chain():
    with pytest.raises(ConfigError):
        ChainReader().web3_for(999)
