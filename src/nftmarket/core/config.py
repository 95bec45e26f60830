"""
nftmarket Configuration

Contract addresses per chain and the defaults applied when a maker order is
built from sparse input. Environment variables override the protocol
defaults:

- NFTMARKET_MIN_PERCENTAGE_TO_ASK: default minPercentageToAsk in basis points
- NFTMARKET_DOMAIN_NAME / NFTMARKET_DOMAIN_VERSION: EIP-712 domain fields
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from typing import Callable, Dict, Mapping, Optional, Tuple

from eth_utils import is_address, to_checksum_address

from .constants import ADDRESS_BOOK, DOMAIN_NAME, DOMAIN_VERSION, PERCENTAGE_DENOMINATOR
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _get_int_env(env_var: str, default: int) -> int:
    value = os.getenv(env_var, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(
            f"{env_var} must be an integer, got {value!r}",
            details={"env_var": env_var},
        ) from exc


MIN_PERCENTAGE_TO_ASK = _get_int_env("NFTMARKET_MIN_PERCENTAGE_TO_ASK", 8500)
EIP712_DOMAIN_NAME = os.getenv("NFTMARKET_DOMAIN_NAME", DOMAIN_NAME)
EIP712_DOMAIN_VERSION = os.getenv("NFTMARKET_DOMAIN_VERSION", DOMAIN_VERSION)

if not 0 <= MIN_PERCENTAGE_TO_ASK <= PERCENTAGE_DENOMINATOR:
    raise ConfigurationError(
        f"NFTMARKET_MIN_PERCENTAGE_TO_ASK must be within [0, {PERCENTAGE_DENOMINATOR}]",
        details={"value": MIN_PERCENTAGE_TO_ASK},
    )


@dataclass(frozen=True)
class ContractAddresses:
    """Deployed contract addresses the SDK talks to on one chain."""

    EXCHANGE: str
    WETH: str
    TRANSFER_MANAGER_ERC721: str
    TRANSFER_MANAGER_ERC1155: str
    STRATEGY_STANDARD_SALE: str
    STRATEGY_COLLECTION_SALE: str
    STRATEGY_PRIVATE_SALE: Optional[str] = None

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if not is_address(value):
                raise ConfigurationError(
                    f"Invalid address for {f.name}: {value!r}",
                    details={"field": f.name},
                )
            object.__setattr__(self, f.name, to_checksum_address(value))


def get_addresses(
    chain_id: int,
    overrides: Optional[Mapping[str, str] | ContractAddresses] = None,
) -> ContractAddresses:
    """
    Resolve the contract addresses for a chain.

    Args:
        chain_id: EVM chain id
        overrides: Full ContractAddresses, or a mapping replacing some entries

    Returns:
        ContractAddresses for the chain

    Raises:
        ConfigurationError: If the chain is unknown and no complete override was given
    """
    if isinstance(overrides, ContractAddresses):
        return overrides

    book = dict(ADDRESS_BOOK.get(chain_id, {}))
    if overrides:
        book.update(overrides)
    try:
        return ContractAddresses(**book)
    except TypeError as exc:
        raise ConfigurationError(
            f"No contract addresses known for chain {chain_id}; pass explicit addresses",
            details={"chain_id": chain_id},
        ) from exc


@dataclass(frozen=True)
class OrderDefaults:
    """
    Default rules for every optional maker order field.

    The strategy and currency defaults are resolved from ContractAddresses at
    build time; ``strategy_param_types`` maps a strategy address to the ABI
    types of its ``params`` payload.
    """

    amount: int = 1
    min_percentage_to_ask: int = MIN_PERCENTAGE_TO_ASK
    params: bytes = b""
    ask_strategy: Callable[[ContractAddresses], str] = lambda a: a.STRATEGY_STANDARD_SALE
    bid_strategy: Callable[[ContractAddresses], str] = lambda a: a.STRATEGY_STANDARD_SALE
    collection_offer_strategy: Callable[[ContractAddresses], str] = lambda a: a.STRATEGY_COLLECTION_SALE
    currency: Callable[[ContractAddresses], str] = lambda a: a.WETH
    strategy_param_types: Dict[str, Tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def for_addresses(cls, addresses: ContractAddresses, **overrides) -> "OrderDefaults":
        """Defaults with the param types of the known strategies registered."""
        param_types: Dict[str, Tuple[str, ...]] = {}
        if addresses.STRATEGY_PRIVATE_SALE:
            # Private sale params carry the single allowed buyer
            param_types[addresses.STRATEGY_PRIVATE_SALE] = ("address",)
        param_types.update(overrides.pop("strategy_param_types", {}))
        return cls(strategy_param_types=param_types, **overrides)

    def param_types_for(self, strategy: str) -> Optional[Tuple[str, ...]]:
        for registered, types in self.strategy_param_types.items():
            if registered.lower() == strategy.lower():
                return types
        return None

    def with_overrides(self, **changes) -> "OrderDefaults":
        return replace(self, **changes)
