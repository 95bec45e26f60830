"""
Read-only ledger interface.

The builder and validator only ever read chain state through this protocol,
so they can run against an in-memory fake as easily as against a node.
Every method is a single remote read; implementations must not cache
results across calls (cancelled nonces have to be visible on the next read).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, Tuple, runtime_checkable

from .config import ContractAddresses
from .constants import INTERFACE_ID_ERC1155, INTERFACE_ID_ERC721

logger = logging.getLogger(__name__)


class AssetType(Enum):
    ERC721 = "erc721"
    ERC1155 = "erc1155"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class NonceState:
    """Nonce status of one signer as seen by the exchange."""

    executed_or_cancelled: bool
    min_order_nonce: int

    def is_usable(self, nonce: int) -> bool:
        return not self.executed_or_cancelled and nonce >= self.min_order_nonce


@runtime_checkable
class LedgerReader(Protocol):
    """Read-only chain state needed to build and validate orders."""

    # Collections

    async def supports_interface(self, contract: str, interface_id: bytes) -> bool:
        ...

    async def is_approved_for_all(self, collection: str, owner: str, operator: str) -> bool:
        ...

    async def get_approved(self, collection: str, token_id: int) -> Optional[str]:
        """Per-token ERC-721 approval; None when the token does not exist."""
        ...

    async def owner_of(self, collection: str, token_id: int) -> Optional[str]:
        """ERC-721 owner; None when the token does not exist."""
        ...

    async def erc1155_balance_of(self, collection: str, owner: str, token_id: int) -> int:
        ...

    # Currencies

    async def allowance(self, currency: str, owner: str, spender: str) -> int:
        ...

    async def balance_of(self, currency: str, owner: str) -> int:
        ...

    # Exchange

    async def get_nonce_state(self, signer: str, nonce: int) -> NonceState:
        ...

    async def is_currency_whitelisted(self, currency: str) -> bool:
        ...

    async def is_strategy_whitelisted(self, strategy: str) -> bool:
        ...

    async def protocol_fee(self, strategy: str) -> int:
        """Protocol fee of a strategy in basis points."""
        ...

    async def royalty_fee(self, collection: str, token_id: int, price: int) -> Tuple[str, int]:
        """Royalty (recipient, amount) due on a sale at ``price``."""
        ...


async def resolve_asset_type(ledger: LedgerReader, collection: str) -> AssetType:
    """Identify a collection through ERC-165."""
    if await ledger.supports_interface(collection, INTERFACE_ID_ERC721):
        return AssetType.ERC721
    if await ledger.supports_interface(collection, INTERFACE_ID_ERC1155):
        return AssetType.ERC1155
    return AssetType.UNKNOWN


def transfer_manager_for(asset_type: AssetType, addresses: ContractAddresses) -> Optional[str]:
    if asset_type is AssetType.ERC721:
        return addresses.TRANSFER_MANAGER_ERC721
    if asset_type is AssetType.ERC1155:
        return addresses.TRANSFER_MANAGER_ERC1155
    return None
