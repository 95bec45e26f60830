"""
Maker and taker order model.

/!\ ``MAKER_ORDER_TYPES`` is the EIP-712 schema the exchange contract hashes.
Field names, types and order must match the deployed contract exactly; do
not update unless the contract has been updated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from eth_abi import encode
from eth_utils import is_address, is_hex, to_bytes, to_checksum_address

from .constants import COMPACT_SIGNATURE_LENGTH, MAX_UINT256, SIGNATURE_LENGTH
from .exceptions import SignatureFormatError, ValidationError

logger = logging.getLogger(__name__)

BytesLike = Union[bytes, str]

MAKER_ORDER_TYPES: List[Dict[str, str]] = [
    {"name": "isOrderAsk", "type": "bool"},
    {"name": "signer", "type": "address"},
    {"name": "collection", "type": "address"},
    {"name": "price", "type": "uint256"},
    {"name": "tokenId", "type": "uint256"},
    {"name": "amount", "type": "uint256"},
    {"name": "strategy", "type": "address"},
    {"name": "currency", "type": "address"},
    {"name": "nonce", "type": "uint256"},
    {"name": "startTime", "type": "uint256"},
    {"name": "endTime", "type": "uint256"},
    {"name": "minPercentageToAsk", "type": "uint256"},
    {"name": "params", "type": "bytes"},
]

MAKER_ORDER_PRIMARY_TYPE = "MakerOrder"

# Solidity tuple layouts used by the exchange's match functions
MAKER_ORDER_ABI_TYPE = (
    "(bool,address,address,uint256,uint256,uint256,address,address,"
    "uint256,uint256,uint256,uint256,bytes,uint8,bytes32,bytes32)"
)
TAKER_ORDER_ABI_TYPE = "(bool,address,uint256,uint256,uint256,bytes)"


def _to_bytes(value: Optional[BytesLike]) -> bytes:
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str) and (value == "" or is_hex(value)):
        return to_bytes(hexstr=value) if value else b""
    raise ValidationError(f"Expected bytes or 0x-prefixed hex, got {value!r}")


def _check_uint(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer, got {type(value).__name__}")
    if not 0 <= value <= MAX_UINT256:
        raise ValidationError(f"{name} out of uint256 range: {value}", details={"field": name})
    return value


def _check_address(name: str, value: str) -> str:
    if not isinstance(value, str) or not is_address(value):
        raise ValidationError(f"{name} is not a valid address: {value!r}", details={"field": name})
    return to_checksum_address(value)


# ==================== Params encoding ====================


def _infer_abi_type(value: Any) -> str:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "uint256"
    if isinstance(value, (bytes, bytearray)):
        return "bytes"
    if isinstance(value, str):
        return "address" if is_address(value) else "string"
    raise ValidationError(f"Cannot infer ABI type for param {value!r}")


def encode_params(params: Optional[Sequence[Any]], types: Optional[Sequence[str]] = None) -> bytes:
    """
    ABI-encode strategy params.

    An empty or missing list encodes to the canonical empty byte string.

    Args:
        params: Strategy-specific values (e.g. the buyer of a private sale)
        types: ABI types of the values; inferred per value when omitted

    Returns:
        Encoded params
    """
    if not params:
        return b""
    if types is None:
        types = [_infer_abi_type(value) for value in params]
    if len(types) != len(params):
        raise ValidationError(
            f"Strategy expects {len(types)} params, got {len(params)}",
            details={"types": list(types)},
        )
    values = [to_checksum_address(v) if t == "address" else v for t, v in zip(types, params)]
    return encode(list(types), values)


def params_to_hex(params: bytes) -> str:
    return "0x" + params.hex()


# ==================== Signature components ====================


def split_signature(signature: BytesLike) -> Tuple[int, bytes, bytes]:
    """
    Split a 65-byte r || s || v or a 64-byte EIP-2098 r || yParityAndS signature.

    A v of 0 or 1 is normalised to 27 or 28; any other v is kept as-is so the
    validator can report it. In the compact form the top bit of the second
    word is the y parity.

    Returns:
        Tuple of (v, r, s)
    """
    try:
        raw = _to_bytes(signature)
    except ValidationError as exc:
        raise SignatureFormatError(f"Signature is not valid hex: {exc.message}") from exc
    if len(raw) == COMPACT_SIGNATURE_LENGTH:
        r, y_parity_and_s = raw[:32], int.from_bytes(raw[32:], "big")
        s = (y_parity_and_s & ((1 << 255) - 1)).to_bytes(32, "big")
        return 27 + (y_parity_and_s >> 255), r, s
    if len(raw) != SIGNATURE_LENGTH:
        raise SignatureFormatError(
            f"Signature must be {SIGNATURE_LENGTH} or {COMPACT_SIGNATURE_LENGTH} bytes, got {len(raw)}",
            details={"length": len(raw)},
        )
    r, s, v = raw[:32], raw[32:64], raw[64]
    if v in (0, 1):
        v += 27
    return v, r, s


def join_signature(v: int, r: bytes, s: bytes) -> str:
    return "0x" + (r + s + bytes([v])).hex()


# ==================== Orders ====================


@dataclass(frozen=True)
class MakerOrder:
    """
    Signable intent of one party.

    ``is_order_ask`` is True for a seller offering an asset, False for a buyer
    offering currency. ``signer`` is always the identity that built the order.
    """

    is_order_ask: bool
    signer: str
    collection: str
    price: int
    token_id: int
    amount: int
    strategy: str
    currency: str
    nonce: int
    start_time: int
    end_time: int
    min_percentage_to_ask: int
    params: bytes = b""

    def __post_init__(self) -> None:
        for name in ("signer", "collection", "strategy", "currency"):
            object.__setattr__(self, name, _check_address(name, getattr(self, name)))
        for name in ("price", "token_id", "amount", "nonce", "start_time", "end_time", "min_percentage_to_ask"):
            _check_uint(name, getattr(self, name))
        object.__setattr__(self, "is_order_ask", bool(self.is_order_ask))
        object.__setattr__(self, "params", _to_bytes(self.params))

    def to_typed_message(self) -> Dict[str, Any]:
        """Message dict keyed by the EIP-712 field names, in schema order."""
        values = {
            "isOrderAsk": self.is_order_ask,
            "signer": self.signer,
            "collection": self.collection,
            "price": self.price,
            "tokenId": self.token_id,
            "amount": self.amount,
            "strategy": self.strategy,
            "currency": self.currency,
            "nonce": self.nonce,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "minPercentageToAsk": self.min_percentage_to_ask,
            "params": self.params,
        }
        return {field["name"]: values[field["name"]] for field in MAKER_ORDER_TYPES}

    def to_dict(self) -> Dict[str, Any]:
        """JSON friendly representation (integers as decimal strings)."""
        message = self.to_typed_message()
        for key, value in message.items():
            if isinstance(value, bytes):
                message[key] = params_to_hex(value)
            elif isinstance(value, int) and not isinstance(value, bool):
                message[key] = str(value)
        return message

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MakerOrder":
        return cls(
            is_order_ask=bool(data["isOrderAsk"]),
            signer=data["signer"],
            collection=data["collection"],
            price=int(data["price"]),
            token_id=int(data["tokenId"]),
            amount=int(data["amount"]),
            strategy=data["strategy"],
            currency=data["currency"],
            nonce=int(data["nonce"]),
            start_time=int(data["startTime"]),
            end_time=int(data["endTime"]),
            min_percentage_to_ask=int(data["minPercentageToAsk"]),
            params=_to_bytes(data.get("params")),
        )

    def evolve(self, **changes: Any) -> "MakerOrder":
        """Copy with changed fields. The copy needs a fresh signature."""
        return replace(self, **changes)


@dataclass(frozen=True)
class MakerOrderWithSignature:
    """Maker order plus the v, r, s components sent to the exchange."""

    order: MakerOrder
    v: int
    r: bytes
    s: bytes

    @classmethod
    def from_signature(cls, order: MakerOrder, signature: BytesLike) -> "MakerOrderWithSignature":
        v, r, s = split_signature(signature)
        return cls(order=order, v=v, r=r, s=s)

    @property
    def signature(self) -> str:
        return join_signature(self.v, self.r, self.s)

    def to_contract_tuple(self) -> Tuple[Any, ...]:
        o = self.order
        return (
            o.is_order_ask,
            o.signer,
            o.collection,
            o.price,
            o.token_id,
            o.amount,
            o.strategy,
            o.currency,
            o.nonce,
            o.start_time,
            o.end_time,
            o.min_percentage_to_ask,
            o.params,
            self.v,
            self.r,
            self.s,
        )


@dataclass(frozen=True)
class TakerOrder:
    """Counter-intent matched against exactly one maker order."""

    is_order_ask: bool
    taker: str
    price: int
    token_id: int
    min_percentage_to_ask: int
    params: bytes = b""

    def __post_init__(self) -> None:
        object.__setattr__(self, "taker", _check_address("taker", self.taker))
        for name in ("price", "token_id", "min_percentage_to_ask"):
            _check_uint(name, getattr(self, name))
        object.__setattr__(self, "params", _to_bytes(self.params))

    def to_contract_tuple(self) -> Tuple[Any, ...]:
        return (
            self.is_order_ask,
            self.taker,
            self.price,
            self.token_id,
            self.min_percentage_to_ask,
            self.params,
        )
