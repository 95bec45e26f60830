"""
Off-chain maker order validation.

Runs a fixed battery of independent read-only checks and reports one
``OrderValidatorCode`` per failing check. The codes mirror the exchange's
on-chain order validator so callers can branch on a precise failure before
spending gas. Nothing is cached between calls and nothing is written.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from enum import IntEnum
from typing import Awaitable, Callable, Dict, List, Sequence, Tuple

from eth_utils import to_checksum_address

from .config import ContractAddresses
from .constants import PERCENTAGE_DENOMINATOR, SECP256K1_HALF_N, ZERO_ADDRESS
from .exceptions import SignatureFormatError
from .ledger import AssetType, LedgerReader, resolve_asset_type, transfer_manager_for
from .orders import BytesLike, MakerOrder, split_signature
from .typed_signing import TypedDataDomain, recover_signer

logger = logging.getLogger(__name__)


class OrderValidatorCode(IntEnum):
    ORDER_EXPECTED_TO_BE_VALID = 0

    # Nonce
    NONCE_EXECUTED_OR_CANCELLED = 101
    NONCE_BELOW_MIN_ORDER_NONCE = 102

    # Amounts and signatures
    ORDER_AMOUNT_CANNOT_BE_ZERO = 111
    MAKER_SIGNER_IS_NULL_SIGNER = 112
    INVALID_S_PARAMETER_EOA = 113
    INVALID_V_PARAMETER_EOA = 114
    NULL_SIGNER_EOA = 115
    WRONG_SIGNER_EOA = 116

    # Whitelists
    CURRENCY_NOT_WHITELISTED = 201
    STRATEGY_NOT_WHITELISTED = 211

    # Fees
    MIN_NET_RATIO_ABOVE_PROTOCOL_FEE = 301
    MIN_NET_RATIO_ABOVE_ROYALTY_FEE_AND_PROTOCOL_FEE = 302

    # Timestamps
    TOO_EARLY_TO_EXECUTE_ORDER = 311
    TOO_LATE_TO_EXECUTE_ORDER = 312

    # Transfer managers
    NO_TRANSFER_MANAGER_AVAILABLE_FOR_COLLECTION = 401

    # ERC20
    ERC20_BALANCE_INFERIOR_TO_PRICE = 501
    ERC20_APPROVAL_INFERIOR_TO_PRICE = 502

    # ERC721
    ERC721_TOKEN_ID_DOES_NOT_EXIST = 601
    ERC721_TOKEN_ID_NOT_IN_BALANCE = 602
    ERC721_NO_APPROVAL_FOR_ALL_OR_TOKEN_ID = 603

    # ERC1155
    ERC1155_BALANCE_OF_TOKEN_ID_INFERIOR_TO_AMOUNT = 612
    ERC1155_NO_APPROVAL_FOR_ALL = 614

    @property
    def is_valid(self) -> bool:
        return self is OrderValidatorCode.ORDER_EXPECTED_TO_BE_VALID


VALID = OrderValidatorCode.ORDER_EXPECTED_TO_BE_VALID

Check = Callable[[MakerOrder, BytesLike], Awaitable[OrderValidatorCode]]


def find_duplicate_nonces(makers: Sequence[MakerOrder]) -> Dict[Tuple[str, int], List[int]]:
    """
    Indices of orders sharing a (signer, nonce) pair within one batch.

    Executing one of them consumes the nonce and invalidates the others.
    ``OrderValidator.verify_many`` does not apply this; callers opt in.
    """
    seen: Dict[Tuple[str, int], List[int]] = defaultdict(list)
    for index, maker in enumerate(makers):
        seen[(maker.signer, maker.nonce)].append(index)
    return {key: indices for key, indices in seen.items() if len(indices) > 1}


class OrderValidator:
    """
    Check maker orders against current chain state.

    Each check yields exactly one code; ``ORDER_EXPECTED_TO_BE_VALID`` is
    returned alone when every check passed, so a result is never empty.
    """

    def __init__(
        self,
        ledger: LedgerReader,
        addresses: ContractAddresses,
        domain: TypedDataDomain,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ledger = ledger
        self.addresses = addresses
        self.domain = domain
        self.clock = clock
        self._checks: Tuple[Check, ...] = (
            self.check_nonce,
            self.check_amounts,
            self.check_signature,
            self.check_whitelists,
            self.check_min_percentage_to_ask,
            self.check_timestamps,
            self.check_assets,
        )

    async def check_nonce(self, maker: MakerOrder, signature: BytesLike) -> OrderValidatorCode:
        state = await self.ledger.get_nonce_state(maker.signer, maker.nonce)
        if state.executed_or_cancelled:
            return OrderValidatorCode.NONCE_EXECUTED_OR_CANCELLED
        if maker.nonce < state.min_order_nonce:
            return OrderValidatorCode.NONCE_BELOW_MIN_ORDER_NONCE
        return VALID

    async def check_amounts(self, maker: MakerOrder, signature: BytesLike) -> OrderValidatorCode:
        if maker.amount == 0:
            return OrderValidatorCode.ORDER_AMOUNT_CANNOT_BE_ZERO
        if maker.signer == ZERO_ADDRESS:
            return OrderValidatorCode.MAKER_SIGNER_IS_NULL_SIGNER
        return VALID

    async def check_signature(self, maker: MakerOrder, signature: BytesLike) -> OrderValidatorCode:
        try:
            v, r, s = split_signature(signature)
        except SignatureFormatError:
            # Nothing can be recovered from bytes that are not a signature
            return OrderValidatorCode.NULL_SIGNER_EOA
        if int.from_bytes(s, "big") > SECP256K1_HALF_N:
            return OrderValidatorCode.INVALID_S_PARAMETER_EOA
        if v not in (27, 28):
            return OrderValidatorCode.INVALID_V_PARAMETER_EOA
        recovered = recover_signer(maker, self.domain, signature)
        if recovered is None or recovered == ZERO_ADDRESS:
            return OrderValidatorCode.NULL_SIGNER_EOA
        if recovered != to_checksum_address(maker.signer):
            return OrderValidatorCode.WRONG_SIGNER_EOA
        return VALID

    async def check_whitelists(self, maker: MakerOrder, signature: BytesLike) -> OrderValidatorCode:
        currency_ok, strategy_ok = await asyncio.gather(
            self.ledger.is_currency_whitelisted(maker.currency),
            self.ledger.is_strategy_whitelisted(maker.strategy),
        )
        if not currency_ok:
            return OrderValidatorCode.CURRENCY_NOT_WHITELISTED
        if not strategy_ok:
            return OrderValidatorCode.STRATEGY_NOT_WHITELISTED
        return VALID

    async def check_min_percentage_to_ask(self, maker: MakerOrder, signature: BytesLike) -> OrderValidatorCode:
        # Only asks are protected; a bid's minimum is enforced on the taker ask
        if not maker.is_order_ask:
            return VALID
        protocol_fee, (_, royalty) = await asyncio.gather(
            self.ledger.protocol_fee(maker.strategy),
            self.ledger.royalty_fee(maker.collection, maker.token_id, maker.price),
        )
        # Amounts are floored like the exchange does, so tiny prices may pay no fee
        protocol_fee_amount = maker.price * protocol_fee // PERCENTAGE_DENOMINATOR
        minimum = maker.min_percentage_to_ask * maker.price
        if (maker.price - protocol_fee_amount) * PERCENTAGE_DENOMINATOR < minimum:
            return OrderValidatorCode.MIN_NET_RATIO_ABOVE_PROTOCOL_FEE
        net = maker.price - protocol_fee_amount - royalty
        if net * PERCENTAGE_DENOMINATOR < minimum:
            return OrderValidatorCode.MIN_NET_RATIO_ABOVE_ROYALTY_FEE_AND_PROTOCOL_FEE
        return VALID

    async def check_timestamps(self, maker: MakerOrder, signature: BytesLike) -> OrderValidatorCode:
        now = int(self.clock())
        if maker.start_time > now:
            return OrderValidatorCode.TOO_EARLY_TO_EXECUTE_ORDER
        if maker.end_time < now:
            return OrderValidatorCode.TOO_LATE_TO_EXECUTE_ORDER
        return VALID

    async def check_assets(self, maker: MakerOrder, signature: BytesLike) -> OrderValidatorCode:
        if maker.is_order_ask:
            return await self._check_collection(maker)
        return await self._check_currency(maker)

    async def _check_currency(self, maker: MakerOrder) -> OrderValidatorCode:
        balance, allowance = await asyncio.gather(
            self.ledger.balance_of(maker.currency, maker.signer),
            self.ledger.allowance(maker.currency, maker.signer, self.addresses.EXCHANGE),
        )
        if balance < maker.price:
            return OrderValidatorCode.ERC20_BALANCE_INFERIOR_TO_PRICE
        if allowance < maker.price:
            return OrderValidatorCode.ERC20_APPROVAL_INFERIOR_TO_PRICE
        return VALID

    async def _check_collection(self, maker: MakerOrder) -> OrderValidatorCode:
        asset_type = await resolve_asset_type(self.ledger, maker.collection)
        manager = transfer_manager_for(asset_type, self.addresses)
        if manager is None:
            return OrderValidatorCode.NO_TRANSFER_MANAGER_AVAILABLE_FOR_COLLECTION

        if asset_type is AssetType.ERC1155:
            balance, approved_for_all = await asyncio.gather(
                self.ledger.erc1155_balance_of(maker.collection, maker.signer, maker.token_id),
                self.ledger.is_approved_for_all(maker.collection, maker.signer, manager),
            )
            if balance < maker.amount:
                return OrderValidatorCode.ERC1155_BALANCE_OF_TOKEN_ID_INFERIOR_TO_AMOUNT
            if not approved_for_all:
                return OrderValidatorCode.ERC1155_NO_APPROVAL_FOR_ALL
            return VALID

        owner, approved_for_all, approved = await asyncio.gather(
            self.ledger.owner_of(maker.collection, maker.token_id),
            self.ledger.is_approved_for_all(maker.collection, maker.signer, manager),
            self.ledger.get_approved(maker.collection, maker.token_id),
        )
        if owner is None:
            return OrderValidatorCode.ERC721_TOKEN_ID_DOES_NOT_EXIST
        if owner.lower() != maker.signer.lower():
            return OrderValidatorCode.ERC721_TOKEN_ID_NOT_IN_BALANCE
        if not approved_for_all and (approved or "").lower() != manager.lower():
            return OrderValidatorCode.ERC721_NO_APPROVAL_FOR_ALL_OR_TOKEN_ID
        return VALID

    async def verify(self, maker: MakerOrder, signature: BytesLike) -> List[OrderValidatorCode]:
        """
        Validate one maker order.

        Args:
            maker: Maker order
            signature: Its 65-byte signature

        A v byte of 0 or 1 is read as 27 or 28, so rewriting v between those
        two encodings does not change the result. A signature that cannot be
        split at all yields NULL_SIGNER_EOA instead of raising.

        Returns:
            Failing codes in check order, or [ORDER_EXPECTED_TO_BE_VALID]
        """
        results = await asyncio.gather(*(check(maker, signature) for check in self._checks))
        codes = [code for code in results if not code.is_valid]
        if not codes:
            codes = [VALID]

        logger.debug(
            "Validated maker order signer=%s nonce=%s codes=%s",
            maker.signer,
            maker.nonce,
            [int(code) for code in codes],
            extra={"event": "validator.verify", "valid": codes == [VALID]},
        )
        return codes

    async def verify_many(
        self,
        makers: Sequence[MakerOrder],
        signatures: Sequence[BytesLike],
    ) -> List[List[OrderValidatorCode]]:
        """Validate orders independently; results follow input order."""
        if len(makers) != len(signatures):
            raise ValueError(
                f"Got {len(makers)} maker orders but {len(signatures)} signatures"
            )
        return list(
            await asyncio.gather(*(self.verify(maker, signature) for maker, signature in zip(makers, signatures)))
        )


def is_expected_valid(codes: Sequence[OrderValidatorCode]) -> bool:
    return all(code.is_valid for code in codes)
