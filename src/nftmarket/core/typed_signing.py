"""
Maker Order Typed Data Signing - EIP-712

Hash-then-sign of maker orders under a domain bound to the exchange
contract and chain. The domain must be identical to the one the exchange
uses on-chain, otherwise signatures are well formed locally but rejected
remotely.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from eth_account import Account
from eth_account.messages import SignableMessage, encode_typed_data
from eth_keys.exceptions import BadSignature
from eth_keys.exceptions import ValidationError as KeysValidationError
from eth_utils import keccak, to_checksum_address

from .exceptions import SignerError
from .orders import (
    MAKER_ORDER_PRIMARY_TYPE,
    MAKER_ORDER_TYPES,
    BytesLike,
    MakerOrder,
    join_signature,
    split_signature,
)
from .signers import Signer

logger = logging.getLogger(__name__)

EIP712_DOMAIN_TYPE: List[Dict[str, str]] = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]


@dataclass(frozen=True)
class TypedDataDomain:
    """
    EIP-712 domain separator.

    Prevents signature replay across different:
    - Contracts (name, verifyingContract)
    - Chains (chainId)
    - Versions (version)
    """
    name: str
    version: str
    chain_id: int
    verifying_contract: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the dictionary form wallets and eth_account expect."""
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
            "verifyingContract": to_checksum_address(self.verifying_contract),
        }


def maker_order_types() -> Dict[str, List[Dict[str, str]]]:
    return {MAKER_ORDER_PRIMARY_TYPE: [dict(field) for field in MAKER_ORDER_TYPES]}


def encode_maker_order(order: MakerOrder, domain: TypedDataDomain) -> SignableMessage:
    """Build the EIP-712 signable message for a maker order."""
    return encode_typed_data(
        domain_data=domain.to_dict(),
        message_types=maker_order_types(),
        message_data=order.to_typed_message(),
    )


def hash_maker_order(order: MakerOrder, domain: TypedDataDomain) -> bytes:
    """
    32-byte digest that is actually signed:
    keccak256(0x19 || 0x01 || domainSeparator || hashStruct(order)).
    """
    signable = encode_maker_order(order, domain)
    return keccak(b"\x19" + signable.version + signable.header + signable.body)


def create_typed_sign_request(order: MakerOrder, domain: TypedDataDomain) -> Dict[str, Any]:
    """
    Create an eth_signTypedData_v4 request object for external wallets.

    Args:
        order: Maker order to sign
        domain: Domain separator

    Returns:
        Request object with full typed data and its hash
    """
    message = order.to_dict()
    typed_data = {
        "types": {"EIP712Domain": EIP712_DOMAIN_TYPE, **maker_order_types()},
        "primaryType": MAKER_ORDER_PRIMARY_TYPE,
        "domain": domain.to_dict(),
        "message": message,
    }
    return {
        "method": "eth_signTypedData_v4",
        "params": [order.signer, typed_data],
        "hash": "0x" + hash_maker_order(order, domain).hex(),
    }


def sign_maker_order(order: MakerOrder, domain: TypedDataDomain, signer: Optional[Signer]) -> str:
    """
    Sign a maker order.

    Args:
        order: Maker order to sign; its ``signer`` should be the signing identity
        domain: Domain separator matching the exchange contract
        signer: Signing identity

    Returns:
        0x-prefixed 65-byte signature (r || s || v)

    Raises:
        SignerError: If no signer is configured
    """
    if signer is None:
        raise SignerError("A signer is required to sign maker orders")

    if order.signer.lower() != signer.address.lower():
        logger.warning(
            "Signing order %s on behalf of %s with key of %s",
            order.nonce,
            order.signer,
            signer.address,
            extra={"event": "signing.signer_mismatch"},
        )

    raw = signer.sign_typed_data(domain.to_dict(), maker_order_types(), order.to_typed_message())
    v, r, s = split_signature(raw)
    logger.debug(
        "Signed maker order nonce=%s signer=%s",
        order.nonce,
        order.signer,
        extra={"event": "signing.maker_order", "chain_id": domain.chain_id},
    )
    return join_signature(v, r, s)


def recover_signer(order: MakerOrder, domain: TypedDataDomain, signature: BytesLike) -> Optional[str]:
    """
    Recover the address that produced ``signature`` over ``order``.

    Returns:
        Checksummed address, or None when no public key can be recovered
    """
    v, r, s = split_signature(signature)
    try:
        address = Account.recover_message(encode_maker_order(order, domain), vrs=(v, r, s))
    except (BadSignature, KeysValidationError, ValueError) as e:
        logger.debug(
            "Signature recovery failed: %s",
            type(e).__name__,
            extra={"event": "signing.recover_failed"},
        )
        return None
    return to_checksum_address(address)
