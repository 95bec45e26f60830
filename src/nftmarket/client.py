"""
Exchange client for nftmarket

Single entry point bundling the builder, signing engine and validator for one
chain, one ledger connection and (optionally) one signer. Without a signer
the client is read-only: building, signing, approvals, execution and
cancellation raise ``SignerError``.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple, Union

from .core import contract_calls
from .core.config import (
    EIP712_DOMAIN_NAME,
    EIP712_DOMAIN_VERSION,
    ContractAddresses,
    OrderDefaults,
    get_addresses,
)
from .core.contract_calls import ContractCall
from .core.exceptions import SignerError
from .core.input_schemas import CollectionOfferInput, MakerOrderInput, TakerOrderInput
from .core.builder import OrderBuilder
from .core.ledger import LedgerReader
from .core.order_validator import OrderValidator, OrderValidatorCode
from .core.orders import BytesLike, MakerOrder, MakerOrderWithSignature, TakerOrder
from .core.signers import Signer
from .core.typed_signing import TypedDataDomain, sign_maker_order

logger = logging.getLogger(__name__)

InputLike = Union[Mapping[str, Any], MakerOrderInput, CollectionOfferInput, TakerOrderInput]


def _parse(model, data: InputLike):
    return data if isinstance(data, model) else model.model_validate(dict(data))


class ExchangeClient:
    """
    Build, sign and validate maker/taker orders for one exchange deployment.

    Example:
        >>> client = ExchangeClient(SupportedChainId.MAINNET, ledger, signer)
        >>> maker, approved = await client.create_maker_ask({
        ...     "collection": collection, "price": 10**18, "tokenId": 1,
        ...     "nonce": 0, "endTime": int(time.time()) + 3600,
        ... })
        >>> signature = client.sign_maker_order(maker)
        >>> await client.verify_maker_order(maker, signature)
        [<OrderValidatorCode.ORDER_EXPECTED_TO_BE_VALID: 0>]
    """

    def __init__(
        self,
        chain_id: int,
        ledger: LedgerReader,
        signer: Optional[Signer] = None,
        addresses: Optional[Union[ContractAddresses, Mapping[str, str]]] = None,
        defaults: Optional[OrderDefaults] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the client.

        Args:
            chain_id: EVM chain id of the exchange deployment
            ledger: Read-only ledger access
            signer: Signing identity; None for read-only use
            addresses: Contract addresses overriding the built-in address book
            defaults: Defaults for optional maker order fields
            clock: Source of the current UNIX time in seconds

        Raises:
            ConfigurationError: If no addresses are known for ``chain_id``
        """
        self.chain_id = chain_id
        self.ledger = ledger
        self.signer = signer
        self.addresses = get_addresses(chain_id, addresses)
        self.builder = OrderBuilder(
            self.addresses,
            ledger,
            signer=signer,
            defaults=defaults or OrderDefaults.for_addresses(self.addresses),
            clock=clock,
        )
        self.validator = OrderValidator(ledger, self.addresses, self.get_typed_data_domain(), clock=clock)

    def _require_signer(self, action: str) -> Signer:
        if self.signer is None:
            raise SignerError(f"A signer is required to {action}")
        return self.signer

    def get_typed_data_domain(self) -> TypedDataDomain:
        return TypedDataDomain(
            name=EIP712_DOMAIN_NAME,
            version=EIP712_DOMAIN_VERSION,
            chain_id=self.chain_id,
            verifying_contract=self.addresses.EXCHANGE,
        )

    # ==================== Orders ====================

    async def create_maker_ask(self, order_input: InputLike) -> Tuple[MakerOrder, bool]:
        """Returns the maker ask and whether the collection is approved."""
        return await self.builder.build_maker_ask(_parse(MakerOrderInput, order_input))

    async def create_maker_bid(self, order_input: InputLike) -> Tuple[MakerOrder, bool]:
        """Returns the maker bid and whether the currency allowance covers the price."""
        return await self.builder.build_maker_bid(_parse(MakerOrderInput, order_input))

    async def create_maker_collection_offer(self, order_input: InputLike) -> Tuple[MakerOrder, bool]:
        return await self.builder.build_collection_offer(_parse(CollectionOfferInput, order_input))

    def create_taker(self, maker: MakerOrder, taker_input: InputLike) -> TakerOrder:
        return self.builder.build_taker(maker, _parse(TakerOrderInput, taker_input))

    def create_taker_collection_offer(
        self,
        maker: MakerOrder,
        token_id: int,
        taker_input: InputLike,
    ) -> TakerOrder:
        return self.builder.build_taker_for_collection_offer(maker, token_id, _parse(TakerOrderInput, taker_input))

    def sign_maker_order(self, maker: MakerOrder) -> str:
        signer = self._require_signer("sign maker orders")
        return sign_maker_order(maker, self.get_typed_data_domain(), signer)

    async def verify_maker_order(self, maker: MakerOrder, signature: BytesLike) -> List[OrderValidatorCode]:
        return await self.validator.verify(maker, signature)

    async def verify_maker_orders(
        self,
        makers: Sequence[MakerOrder],
        signatures: Sequence[BytesLike],
    ) -> List[List[OrderValidatorCode]]:
        return await self.validator.verify_many(makers, signatures)

    # ==================== Contract calls ====================

    def approve_all_collection_items(self, collection: str, erc1155: bool = False) -> ContractCall:
        self._require_signer("approve collections")
        operator = self.addresses.TRANSFER_MANAGER_ERC1155 if erc1155 else self.addresses.TRANSFER_MANAGER_ERC721
        return contract_calls.approve_all_collection_items(collection, operator)

    def approve_erc20(self, currency: str, amount: Optional[int] = None) -> ContractCall:
        self._require_signer("approve currencies")
        if amount is None:
            return contract_calls.approve_erc20(currency, self.addresses.EXCHANGE)
        return contract_calls.approve_erc20(currency, self.addresses.EXCHANGE, amount)

    def execute_order(
        self,
        maker: MakerOrder,
        taker: TakerOrder,
        signature: BytesLike,
        value: Optional[int] = None,
    ) -> ContractCall:
        self._require_signer("execute orders")
        return contract_calls.execute_order(
            MakerOrderWithSignature.from_signature(maker, signature),
            taker,
            exchange=self.addresses.EXCHANGE,
            weth=self.addresses.WETH,
            value=value,
        )

    def cancel_all_orders_for_sender(self, min_nonce: int) -> ContractCall:
        self._require_signer("cancel orders")
        return contract_calls.cancel_all_orders_for_sender(self.addresses.EXCHANGE, min_nonce)

    def cancel_multiple_maker_orders(self, nonces: Sequence[int]) -> ContractCall:
        self._require_signer("cancel orders")
        return contract_calls.cancel_multiple_maker_orders(self.addresses.EXCHANGE, nonces)
