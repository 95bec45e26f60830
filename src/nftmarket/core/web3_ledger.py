"""
Ledger client backed by web3.py.

Implements ``LedgerReader`` over an ``AsyncWeb3`` connection with the minimal
ABIs the SDK needs, plus the dispatch helpers (gas estimation, submission,
receipts) for calls assembled in ``contract_calls``. Transport and node
failures surface as ``LedgerError``; reverts that encode "does not exist"
(e.g. ``ownerOf`` of a burnt token) are mapped to ``None``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Dict, List, Optional, Tuple, TypeVar

from aiohttp import ClientError
from eth_utils import to_checksum_address
from web3 import AsyncWeb3, Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError, Web3Exception

from .config import ContractAddresses
from .constants import ZERO_ADDRESS
from .contract_calls import ContractCall
from .exceptions import LedgerError
from .ledger import NonceState

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _fn(name: str, inputs: List[str], outputs: List[str], mutability: str = "view") -> Dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": [{"name": f"arg{i}", "type": t} for i, t in enumerate(inputs)],
        "outputs": [{"name": f"out{i}", "type": t} for i, t in enumerate(outputs)],
    }


ERC165_ABI = [_fn("supportsInterface", ["bytes4"], ["bool"])]

ERC721_ABI = ERC165_ABI + [
    _fn("ownerOf", ["uint256"], ["address"]),
    _fn("getApproved", ["uint256"], ["address"]),
    _fn("isApprovedForAll", ["address", "address"], ["bool"]),
]

ERC1155_ABI = ERC165_ABI + [
    _fn("balanceOf", ["address", "uint256"], ["uint256"]),
    _fn("isApprovedForAll", ["address", "address"], ["bool"]),
]

ERC20_ABI = [
    _fn("balanceOf", ["address"], ["uint256"]),
    _fn("allowance", ["address", "address"], ["uint256"]),
]

EXCHANGE_ABI = [
    _fn("isUserOrderNonceExecutedOrCancelled", ["address", "uint256"], ["bool"]),
    _fn("userMinOrderNonce", ["address"], ["uint256"]),
    _fn("currencyManager", [], ["address"]),
    _fn("executionManager", [], ["address"]),
    _fn("royaltyFeeManager", [], ["address"]),
]

CURRENCY_MANAGER_ABI = [_fn("isCurrencyWhitelisted", ["address"], ["bool"])]
EXECUTION_MANAGER_ABI = [_fn("isStrategyWhitelisted", ["address"], ["bool"])]
STRATEGY_ABI = [_fn("viewProtocolFee", [], ["uint256"])]
ROYALTY_FEE_MANAGER_ABI = [
    _fn("calculateRoyaltyFeeAndGetRecipient", ["address", "uint256", "uint256"], ["address", "uint256"]),
]


class Web3LedgerClient:
    """
    Read chain state and dispatch assembled calls through web3.py.

    The client holds no state besides the connection; every method performs
    fresh remote reads.
    """

    def __init__(self, w3: AsyncWeb3, addresses: ContractAddresses, receipt_timeout: float = 120) -> None:
        self.w3 = w3
        self.addresses = addresses
        self.receipt_timeout = receipt_timeout

    @classmethod
    def from_url(cls, rpc_url: str, addresses: ContractAddresses, **kwargs: Any) -> "Web3LedgerClient":
        return cls(AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url)), addresses, **kwargs)

    def _contract(self, address: str, abi: List[Dict[str, Any]]):
        return self.w3.eth.contract(address=to_checksum_address(address), abi=abi)

    async def _read(self, method: str, call: Awaitable[T], missing_ok: bool = False) -> Optional[T]:
        try:
            return await call
        except (ContractLogicError, BadFunctionCallOutput) as e:
            # A revert on ownerOf/getApproved/supportsInterface means "no such item"
            if missing_ok:
                return None
            raise LedgerError(f"Ledger read {method} reverted: {e}", method=method) from e
        except (Web3Exception, ClientError, OSError, asyncio.TimeoutError) as e:
            logger.error(
                "Ledger read %s failed: %s",
                method,
                type(e).__name__,
                extra={"event": "ledger.read_failed", "method": method},
            )
            raise LedgerError(f"Ledger read {method} failed: {e}", method=method) from e

    # ==================== Collections ====================

    async def supports_interface(self, contract: str, interface_id: bytes) -> bool:
        result = await self._read(
            "supportsInterface",
            self._contract(contract, ERC165_ABI).functions.supportsInterface(interface_id).call(),
            missing_ok=True,
        )
        return bool(result)

    async def is_approved_for_all(self, collection: str, owner: str, operator: str) -> bool:
        return await self._read(
            "isApprovedForAll",
            self._contract(collection, ERC721_ABI)
            .functions.isApprovedForAll(to_checksum_address(owner), to_checksum_address(operator))
            .call(),
        )

    async def get_approved(self, collection: str, token_id: int) -> Optional[str]:
        approved = await self._read(
            "getApproved",
            self._contract(collection, ERC721_ABI).functions.getApproved(token_id).call(),
            missing_ok=True,
        )
        if approved is None or approved == ZERO_ADDRESS:
            return None
        return approved

    async def owner_of(self, collection: str, token_id: int) -> Optional[str]:
        owner = await self._read(
            "ownerOf",
            self._contract(collection, ERC721_ABI).functions.ownerOf(token_id).call(),
            missing_ok=True,
        )
        if owner is None or owner == ZERO_ADDRESS:
            return None
        return owner

    async def erc1155_balance_of(self, collection: str, owner: str, token_id: int) -> int:
        return await self._read(
            "balanceOf",
            self._contract(collection, ERC1155_ABI)
            .functions.balanceOf(to_checksum_address(owner), token_id)
            .call(),
        )

    # ==================== Currencies ====================

    async def allowance(self, currency: str, owner: str, spender: str) -> int:
        return await self._read(
            "allowance",
            self._contract(currency, ERC20_ABI)
            .functions.allowance(to_checksum_address(owner), to_checksum_address(spender))
            .call(),
        )

    async def balance_of(self, currency: str, owner: str) -> int:
        return await self._read(
            "balanceOf",
            self._contract(currency, ERC20_ABI).functions.balanceOf(to_checksum_address(owner)).call(),
        )

    # ==================== Exchange ====================

    @property
    def _exchange(self):
        return self._contract(self.addresses.EXCHANGE, EXCHANGE_ABI)

    async def get_nonce_state(self, signer: str, nonce: int) -> NonceState:
        signer = to_checksum_address(signer)
        executed, min_nonce = await asyncio.gather(
            self._read(
                "isUserOrderNonceExecutedOrCancelled",
                self._exchange.functions.isUserOrderNonceExecutedOrCancelled(signer, nonce).call(),
            ),
            self._read("userMinOrderNonce", self._exchange.functions.userMinOrderNonce(signer).call()),
        )
        return NonceState(executed_or_cancelled=executed, min_order_nonce=min_nonce)

    async def is_currency_whitelisted(self, currency: str) -> bool:
        manager = await self._read("currencyManager", self._exchange.functions.currencyManager().call())
        return await self._read(
            "isCurrencyWhitelisted",
            self._contract(manager, CURRENCY_MANAGER_ABI)
            .functions.isCurrencyWhitelisted(to_checksum_address(currency))
            .call(),
        )

    async def is_strategy_whitelisted(self, strategy: str) -> bool:
        manager = await self._read("executionManager", self._exchange.functions.executionManager().call())
        return await self._read(
            "isStrategyWhitelisted",
            self._contract(manager, EXECUTION_MANAGER_ABI)
            .functions.isStrategyWhitelisted(to_checksum_address(strategy))
            .call(),
        )

    async def protocol_fee(self, strategy: str) -> int:
        return await self._read(
            "viewProtocolFee",
            self._contract(strategy, STRATEGY_ABI).functions.viewProtocolFee().call(),
        )

    async def royalty_fee(self, collection: str, token_id: int, price: int) -> Tuple[str, int]:
        manager = await self._read("royaltyFeeManager", self._exchange.functions.royaltyFeeManager().call())
        recipient, amount = await self._read(
            "calculateRoyaltyFeeAndGetRecipient",
            self._contract(manager, ROYALTY_FEE_MANAGER_ABI)
            .functions.calculateRoyaltyFeeAndGetRecipient(to_checksum_address(collection), token_id, price)
            .call(),
        )
        return recipient, amount

    # ==================== Dispatch ====================

    async def estimate_gas(self, call: ContractCall, sender: str) -> int:
        return await self._read("estimateGas", self.w3.eth.estimate_gas(call.to_tx_params(sender)))

    async def send(self, call: ContractCall, sender: str, gas: Optional[int] = None) -> str:
        """Submit through a node-managed account and return the tx hash."""
        tx = call.to_tx_params(sender)
        tx["gas"] = gas if gas is not None else await self.estimate_gas(call, sender)
        tx_hash = Web3.to_hex(await self._read("sendTransaction", self.w3.eth.send_transaction(tx)))
        logger.info(
            "Submitted %s to %s",
            call.function,
            call.to,
            extra={"event": "ledger.tx_sent", "tx_hash": tx_hash},
        )
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str) -> Dict[str, Any]:
        receipt = await self._read(
            "waitForTransactionReceipt",
            self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout),
        )
        return dict(status=receipt["status"], tx_hash=tx_hash, block=receipt["blockNumber"])
