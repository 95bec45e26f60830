"""
Assembly of state-changing exchange and token calls.

The core never sends transactions. These helpers return the target address,
calldata and native value; the ledger client signs, estimates and submits.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from .constants import MAX_UINT256
from .exceptions import ValidationError
from .orders import MAKER_ORDER_ABI_TYPE, TAKER_ORDER_ABI_TYPE, MakerOrderWithSignature, TakerOrder

# Function signatures of the calls assembled here
FUNCTION_SIGNATURES: Dict[str, str] = {
    "setApprovalForAll": "setApprovalForAll(address,bool)",
    "approve": "approve(address,uint256)",
    "matchAskWithTakerBid": f"matchAskWithTakerBid({TAKER_ORDER_ABI_TYPE},{MAKER_ORDER_ABI_TYPE})",
    "matchAskWithTakerBidUsingETHAndWETH": (
        f"matchAskWithTakerBidUsingETHAndWETH({TAKER_ORDER_ABI_TYPE},{MAKER_ORDER_ABI_TYPE})"
    ),
    "matchBidWithTakerAsk": f"matchBidWithTakerAsk({TAKER_ORDER_ABI_TYPE},{MAKER_ORDER_ABI_TYPE})",
    "cancelAllOrdersForSender": "cancelAllOrdersForSender(uint256)",
    "cancelMultipleMakerOrders": "cancelMultipleMakerOrders(uint256[])",
}


def _abi_types(signature: str) -> List[str]:
    """Top-level argument types of a function signature."""
    inner = signature[signature.index("(") + 1 : -1]
    types, depth, current = [], 0, ""
    for char in inner:
        if char == "," and depth == 0:
            types.append(current)
            current = ""
            continue
        depth += char == "("
        depth -= char == ")"
        current += char
    if current:
        types.append(current)
    return types


@dataclass(frozen=True)
class ContractCall:
    """A call ready to be wrapped in a transaction."""

    function: str
    to: str
    data: bytes
    value: int = 0

    def to_tx_params(self, sender: Optional[str] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "to": self.to,
            "data": "0x" + self.data.hex(),
            "value": self.value,
        }
        if sender:
            params["from"] = to_checksum_address(sender)
        return params


def encode_call(function: str, args: Sequence[Any]) -> bytes:
    signature = FUNCTION_SIGNATURES[function]
    return function_signature_to_4byte_selector(signature) + encode(_abi_types(signature), list(args))


def approve_all_collection_items(collection: str, operator: str, approved: bool = True) -> ContractCall:
    """setApprovalForAll(operator, approved) on an ERC-721/1155 collection."""
    operator = to_checksum_address(operator)
    return ContractCall(
        function="setApprovalForAll",
        to=to_checksum_address(collection),
        data=encode_call("setApprovalForAll", [operator, approved]),
    )


def approve_erc20(currency: str, spender: str, amount: int = MAX_UINT256) -> ContractCall:
    """approve(spender, amount) on an ERC-20 currency."""
    if not 0 <= amount <= MAX_UINT256:
        raise ValidationError(f"Allowance out of uint256 range: {amount}")
    return ContractCall(
        function="approve",
        to=to_checksum_address(currency),
        data=encode_call("approve", [to_checksum_address(spender), amount]),
    )


def execute_order(
    maker: MakerOrderWithSignature,
    taker: TakerOrder,
    exchange: str,
    weth: str,
    value: Optional[int] = None,
) -> ContractCall:
    """
    Match a signed maker order with a taker order.

    Asks priced in WETH are matched through the ETH+WETH entry point so the
    taker may pay with native currency (``value``), topped up from WETH.
    """
    if taker.is_order_ask == maker.order.is_order_ask:
        raise ValidationError("Taker and maker orders must be on opposite sides")

    if maker.order.is_order_ask:
        if maker.order.currency.lower() == weth.lower():
            function = "matchAskWithTakerBidUsingETHAndWETH"
        else:
            function = "matchAskWithTakerBid"
    else:
        function = "matchBidWithTakerAsk"

    if value and function != "matchAskWithTakerBidUsingETHAndWETH":
        raise ValidationError(f"{function} does not accept native currency")

    return ContractCall(
        function=function,
        to=to_checksum_address(exchange),
        data=encode_call(function, [taker.to_contract_tuple(), maker.to_contract_tuple()]),
        value=value or 0,
    )


def cancel_all_orders_for_sender(exchange: str, min_nonce: int) -> ContractCall:
    """Invalidate every order of the sender with a nonce below ``min_nonce``."""
    return ContractCall(
        function="cancelAllOrdersForSender",
        to=to_checksum_address(exchange),
        data=encode_call("cancelAllOrdersForSender", [min_nonce]),
    )


def cancel_multiple_maker_orders(exchange: str, nonces: Sequence[int]) -> ContractCall:
    if not nonces:
        raise ValidationError("At least one nonce is required")
    return ContractCall(
        function="cancelMultipleMakerOrders",
        to=to_checksum_address(exchange),
        data=encode_call("cancelMultipleMakerOrders", [list(nonces)]),
    )
