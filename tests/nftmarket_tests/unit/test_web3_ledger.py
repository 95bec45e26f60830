"""
Unit tests for the web3-backed ledger client.

The AsyncWeb3 connection is replaced with mocks; only the mapping of
results and errors is exercised here.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp import ClientError
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from nftmarket.core.constants import INTERFACE_ID_ERC721, ZERO_ADDRESS
from nftmarket.core.contract_calls import approve_erc20
from nftmarket.core.exceptions import LedgerError, RemoteError
from nftmarket.core.web3_ledger import Web3LedgerClient
from tests.nftmarket_tests.ledger_fakes import COLLECTION_ERC721, ONE_ETHER

OWNER = "0x" + "0a" * 20
MANAGER = "0x" + "3e" * 20


@pytest.fixture
def w3():
    return MagicMock()


@pytest.fixture
def functions(w3):
    return w3.eth.contract.return_value.functions


@pytest.fixture
def ledger_client(w3, addresses):
    return Web3LedgerClient(w3, addresses)


def stub(functions, name, return_value=None, side_effect=None):
    call = AsyncMock(return_value=return_value, side_effect=side_effect)
    getattr(functions, name).return_value.call = call
    return call


class TestReads:
    @pytest.mark.asyncio
    async def test_owner_of(self, ledger_client, functions):
        stub(functions, "ownerOf", OWNER)
        assert await ledger_client.owner_of(COLLECTION_ERC721, 1) == OWNER
        functions.ownerOf.assert_called_with(1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [ContractLogicError("ERC721: invalid token ID"), BadFunctionCallOutput("empty")])
    async def test_owner_of_missing_token(self, ledger_client, functions, error):
        stub(functions, "ownerOf", side_effect=error)
        assert await ledger_client.owner_of(COLLECTION_ERC721, 1) is None

    @pytest.mark.asyncio
    async def test_zero_address_means_missing(self, ledger_client, functions):
        stub(functions, "getApproved", ZERO_ADDRESS)
        assert await ledger_client.get_approved(COLLECTION_ERC721, 1) is None

    @pytest.mark.asyncio
    async def test_supports_interface_revert_is_false(self, ledger_client, functions):
        stub(functions, "supportsInterface", side_effect=ContractLogicError("execution reverted"))
        assert await ledger_client.supports_interface(COLLECTION_ERC721, INTERFACE_ID_ERC721) is False

    @pytest.mark.asyncio
    async def test_revert_on_required_read(self, ledger_client, functions):
        stub(functions, "allowance", side_effect=ContractLogicError("execution reverted"))
        with pytest.raises(LedgerError) as exc_info:
            await ledger_client.allowance(COLLECTION_ERC721, OWNER, MANAGER)
        assert exc_info.value.method == "allowance"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [ClientError("connection reset"), asyncio.TimeoutError(), OSError("refused")])
    async def test_transport_errors(self, ledger_client, functions, error):
        stub(functions, "balanceOf", side_effect=error)
        with pytest.raises(LedgerError) as exc_info:
            await ledger_client.balance_of(COLLECTION_ERC721, OWNER)
        assert isinstance(exc_info.value, RemoteError)
        assert exc_info.value.recoverable
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_nonce_state(self, ledger_client, functions):
        stub(functions, "isUserOrderNonceExecutedOrCancelled", False)
        stub(functions, "userMinOrderNonce", 3)
        state = await ledger_client.get_nonce_state(OWNER, 2)
        assert state.executed_or_cancelled is False
        assert state.min_order_nonce == 3
        assert not state.is_usable(2)
        assert state.is_usable(3)

    @pytest.mark.asyncio
    async def test_whitelist_reads_manager_each_time(self, ledger_client, functions):
        manager_call = stub(functions, "currencyManager", MANAGER)
        stub(functions, "isCurrencyWhitelisted", True)
        assert await ledger_client.is_currency_whitelisted(OWNER) is True
        assert await ledger_client.is_currency_whitelisted(OWNER) is True
        assert manager_call.await_count == 2

    @pytest.mark.asyncio
    async def test_royalty_fee(self, ledger_client, functions):
        stub(functions, "royaltyFeeManager", MANAGER)
        stub(functions, "calculateRoyaltyFeeAndGetRecipient", [OWNER, ONE_ETHER // 50])
        assert await ledger_client.royalty_fee(COLLECTION_ERC721, 1, ONE_ETHER) == (OWNER, ONE_ETHER // 50)


class TestDispatch:
    @pytest.mark.asyncio
    async def test_send_estimates_gas(self, ledger_client, w3, addresses):
        w3.eth.estimate_gas = AsyncMock(return_value=50_000)
        w3.eth.send_transaction = AsyncMock(return_value=bytes.fromhex("ab" * 32))
        call = approve_erc20(addresses.WETH, addresses.EXCHANGE)

        tx_hash = await ledger_client.send(call, OWNER)

        assert tx_hash == "0x" + "ab" * 32
        tx = w3.eth.send_transaction.await_args.args[0]
        assert tx["gas"] == 50_000
        assert tx["to"] == addresses.WETH
        assert tx["data"] == "0x" + call.data.hex()

    @pytest.mark.asyncio
    async def test_send_then_wait(self, ledger_client, w3, addresses):
        w3.eth.estimate_gas = AsyncMock(return_value=50_000)
        w3.eth.send_transaction = AsyncMock(return_value=bytes.fromhex("cd" * 32))
        w3.eth.wait_for_transaction_receipt = AsyncMock(return_value={"status": 1, "blockNumber": 9})

        tx_hash = await ledger_client.send(approve_erc20(addresses.WETH, addresses.EXCHANGE), OWNER)
        receipt = await ledger_client.wait_for_receipt(tx_hash)

        assert w3.eth.wait_for_transaction_receipt.await_args.args[0] == "0x" + "cd" * 32
        assert receipt["tx_hash"] == tx_hash

    @pytest.mark.asyncio
    async def test_wait_for_receipt(self, ledger_client, w3):
        w3.eth.wait_for_transaction_receipt = AsyncMock(return_value={"status": 1, "blockNumber": 7})
        receipt = await ledger_client.wait_for_receipt("0x" + "ab" * 32)
        assert receipt == {"status": 1, "tx_hash": "0x" + "ab" * 32, "block": 7}
