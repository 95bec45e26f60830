"""
Maker and taker order construction.

Sparse user input is resolved against ``OrderDefaults`` into a complete
``MakerOrder``. The only remote interaction is one approval read for the
acting signer, which is reported back but never blocks construction: an
order can be built and signed before any approval exists.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Tuple, Union

from .config import ContractAddresses, OrderDefaults
from .constants import MAX_TIMESTAMP_DIGITS
from .exceptions import SignerError, TimestampError, ValidationError
from .input_schemas import CollectionOfferInput, MakerOrderInput, TakerOrderInput
from .ledger import LedgerReader, resolve_asset_type, transfer_manager_for
from .orders import MakerOrder, TakerOrder, encode_params
from .signers import Signer

logger = logging.getLogger(__name__)

MakerInput = Union[MakerOrderInput, CollectionOfferInput]


def is_timestamp_in_seconds(timestamp: int) -> bool:
    """True when ``timestamp`` is a non-negative UNIX time in seconds."""
    return 0 <= timestamp < 10**MAX_TIMESTAMP_DIGITS


def validate_time_window(start_time: int, end_time: int) -> None:
    """
    Raises:
        TimestampError: If either bound is not in seconds, or start >= end
    """
    for name, value in (("start_time", start_time), ("end_time", end_time)):
        if not is_timestamp_in_seconds(value):
            raise TimestampError(
                f"{name} must be a UNIX timestamp in seconds, got {value}",
                start_time=start_time,
                end_time=end_time,
            )
    if start_time >= end_time:
        raise TimestampError(
            f"start_time ({start_time}) must be before end_time ({end_time})",
            start_time=start_time,
            end_time=end_time,
        )


class OrderBuilder:
    """Builds maker orders for one signer and derives taker orders from them."""

    def __init__(
        self,
        addresses: ContractAddresses,
        ledger: LedgerReader,
        signer: Optional[Signer] = None,
        defaults: Optional[OrderDefaults] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.addresses = addresses
        self.ledger = ledger
        self.signer = signer
        self.defaults = defaults or OrderDefaults.for_addresses(addresses)
        self.clock = clock

    def _require_signer(self) -> Signer:
        if self.signer is None:
            raise SignerError("A signer is required to build maker orders")
        return self.signer

    def _resolve(self, order_input: MakerInput, is_ask: bool, collection_offer: bool, signer_address: str) -> MakerOrder:
        d = self.defaults
        start_time = order_input.start_time if order_input.start_time is not None else int(self.clock())
        validate_time_window(start_time, order_input.end_time)

        if collection_offer:
            strategy = d.collection_offer_strategy(self.addresses)
            if order_input.strategy is not None and order_input.strategy.lower() != strategy.lower():
                raise ValidationError(
                    f"Collection offers use the collection strategy {strategy}, got {order_input.strategy}",
                    details={"strategy": order_input.strategy},
                )
        elif order_input.strategy is not None:
            strategy = order_input.strategy
        elif is_ask:
            strategy = d.ask_strategy(self.addresses)
        else:
            strategy = d.bid_strategy(self.addresses)

        if order_input.params:
            params = encode_params(order_input.params, d.param_types_for(strategy))
        else:
            params = d.params

        return MakerOrder(
            is_order_ask=is_ask,
            signer=signer_address,
            collection=order_input.collection,
            price=order_input.price,
            # Collection offers leave the token to the taker; 0 is a placeholder
            token_id=0 if collection_offer else order_input.token_id,
            amount=order_input.amount if order_input.amount is not None else d.amount,
            strategy=strategy,
            currency=order_input.currency or d.currency(self.addresses),
            nonce=order_input.nonce,
            start_time=start_time,
            end_time=order_input.end_time,
            min_percentage_to_ask=(
                order_input.min_percentage_to_ask
                if order_input.min_percentage_to_ask is not None
                else d.min_percentage_to_ask
            ),
            params=params,
        )

    async def is_collection_approved(self, collection: str, owner: str) -> bool:
        asset_type = await resolve_asset_type(self.ledger, collection)
        operator = transfer_manager_for(asset_type, self.addresses) or self.addresses.TRANSFER_MANAGER_ERC721
        return await self.ledger.is_approved_for_all(collection, owner, operator)

    async def is_currency_approved(self, currency: str, owner: str, amount: int) -> bool:
        current = await self.ledger.allowance(currency, owner, self.addresses.EXCHANGE)
        return current >= amount

    async def build_maker_order(
        self,
        order_input: MakerInput,
        is_ask: bool,
        collection_offer: bool = False,
    ) -> Tuple[MakerOrder, bool]:
        """
        Build a complete maker order from sparse input.

        Args:
            order_input: User-supplied fields
            is_ask: True for a sell order, False for a buy order
            collection_offer: Bid on any token of the collection

        Returns:
            Tuple of (maker order, approval status of the signer)

        Raises:
            SignerError: If no signer is configured
            TimestampError: If the time window is invalid
            ValidationError: If a collection offer names another strategy
        """
        if collection_offer and is_ask:
            raise ValidationError("Collection offers are always bids")
        signer = self._require_signer()
        order = self._resolve(order_input, is_ask, collection_offer, signer.address)

        if is_ask:
            approved = await self.is_collection_approved(order.collection, order.signer)
        else:
            approved = await self.is_currency_approved(order.currency, order.signer, order.price)

        logger.info(
            "Built maker %s nonce=%s collection=%s approved=%s",
            "ask" if is_ask else "bid",
            order.nonce,
            order.collection,
            approved,
            extra={
                "event": "builder.maker_order",
                "collection_offer": collection_offer,
                "strategy": order.strategy,
            },
        )
        return order, approved

    async def build_maker_ask(self, order_input: MakerOrderInput) -> Tuple[MakerOrder, bool]:
        return await self.build_maker_order(order_input, is_ask=True)

    async def build_maker_bid(self, order_input: MakerOrderInput) -> Tuple[MakerOrder, bool]:
        return await self.build_maker_order(order_input, is_ask=False)

    async def build_collection_offer(self, order_input: CollectionOfferInput) -> Tuple[MakerOrder, bool]:
        return await self.build_maker_order(order_input, is_ask=False, collection_offer=True)

    def is_collection_offer(self, maker: MakerOrder) -> bool:
        strategy = self.defaults.collection_offer_strategy(self.addresses)
        return maker.strategy.lower() == strategy.lower()

    def build_taker(
        self,
        maker: MakerOrder,
        taker_input: TakerOrderInput,
        token_id: Optional[int] = None,
    ) -> TakerOrder:
        """
        Derive the counter order of ``maker``.

        Args:
            maker: Maker order being matched
            taker_input: Taker address and optional overrides
            token_id: Token picked by the taker; required for collection offers

        Returns:
            TakerOrder with the opposite side of the maker
        """
        if token_id is None:
            if self.is_collection_offer(maker):
                raise ValidationError("Collection offers need the token id chosen by the taker")
            token_id = maker.token_id

        return TakerOrder(
            is_order_ask=not maker.is_order_ask,
            taker=taker_input.taker,
            price=maker.price,
            token_id=token_id,
            min_percentage_to_ask=(
                taker_input.min_percentage_to_ask
                if taker_input.min_percentage_to_ask is not None
                else maker.min_percentage_to_ask
            ),
            params=encode_params(taker_input.params),
        )

    def build_taker_for_collection_offer(
        self,
        maker: MakerOrder,
        token_id: int,
        taker_input: TakerOrderInput,
    ) -> TakerOrder:
        return self.build_taker(maker, taker_input, token_id=token_id)
