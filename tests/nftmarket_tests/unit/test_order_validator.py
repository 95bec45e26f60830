"""
Unit tests for off-chain maker order validation.
"""

import pytest

from nftmarket.core.constants import SECP256K1_HALF_N
from nftmarket.core.exceptions import LedgerError
from nftmarket.core.order_validator import (
    VALID,
    OrderValidatorCode as Code,
    find_duplicate_nonces,
    is_expected_valid,
)
from nftmarket.core.orders import join_signature, split_signature
from tests.nftmarket_tests.ledger_fakes import (
    COLLECTION_ERC1155,
    NOW,
    ONE_ETHER,
    UNKNOWN_COLLECTION,
    USDT,
)

SECP256K1_N = 2 * SECP256K1_HALF_N + 1


def to_compact(signature):
    v, r, s = split_signature(signature)
    y_parity_and_s = int.from_bytes(s, "big") | ((v - 27) << 255)
    return "0x" + (r + y_parity_and_s.to_bytes(32, "big")).hex()


async def signed_ask(client, order_input):
    maker, _ = await client.create_maker_ask(order_input)
    return maker, client.sign_maker_order(maker)


async def signed_bid(client, order_input):
    maker, _ = await client.create_maker_bid(order_input)
    return maker, client.sign_maker_order(maker)


class TestOrderValidatorCode:
    def test_codes(self):
        assert Code.ORDER_EXPECTED_TO_BE_VALID == 0
        assert Code.NONCE_EXECUTED_OR_CANCELLED == 101
        assert Code.WRONG_SIGNER_EOA == 116
        assert Code.ERC721_NO_APPROVAL_FOR_ALL_OR_TOKEN_ID == 603
        assert Code.ERC1155_NO_APPROVAL_FOR_ALL == 614

    def test_is_valid(self):
        assert VALID.is_valid
        assert not Code.TOO_LATE_TO_EXECUTE_ORDER.is_valid
        assert is_expected_valid([VALID])
        assert not is_expected_valid([Code.TOO_LATE_TO_EXECUTE_ORDER])


class TestVerifyMakerAsk:
    @pytest.mark.asyncio
    async def test_approval_then_valid(self, client, ledger, user1, base_maker_input):
        maker, signature = await signed_ask(client, base_maker_input)
        assert await client.verify_maker_order(maker, signature) == [Code.ERC721_NO_APPROVAL_FOR_ALL_OR_TOKEN_ID]

        ledger.apply(client.approve_all_collection_items(maker.collection), user1.address)
        assert await client.verify_maker_order(maker, signature) == [VALID]

    @pytest.mark.asyncio
    async def test_single_token_approval(self, client, ledger, addresses, base_maker_input):
        maker, signature = await signed_ask(client, base_maker_input)
        ledger.token_approvals[(maker.collection.lower(), 0)] = addresses.TRANSFER_MANAGER_ERC721
        assert await client.verify_maker_order(maker, signature) == [VALID]

    @pytest.mark.asyncio
    async def test_is_idempotent(self, client, ledger, user1, base_maker_input):
        maker, signature = await signed_ask(client, base_maker_input)
        ledger.apply(client.approve_all_collection_items(maker.collection), user1.address)
        first = await client.verify_maker_order(maker, signature)
        second = await client.verify_maker_order(maker, signature)
        assert first == second == [VALID]

    @pytest.mark.asyncio
    async def test_token_does_not_exist(self, client, base_maker_input):
        maker, signature = await signed_ask(client, {**base_maker_input, "tokenId": 42})
        assert Code.ERC721_TOKEN_ID_DOES_NOT_EXIST in await client.verify_maker_order(maker, signature)

    @pytest.mark.asyncio
    async def test_token_not_owned(self, client2, ledger, user2, base_maker_input):
        maker, signature = await signed_ask(client2, base_maker_input)
        ledger.apply(client2.approve_all_collection_items(maker.collection), user2.address)
        assert await client2.verify_maker_order(maker, signature) == [Code.ERC721_TOKEN_ID_NOT_IN_BALANCE]

    @pytest.mark.asyncio
    async def test_erc1155(self, client, ledger, user1, base_maker_input):
        order_input = {**base_maker_input, "collection": COLLECTION_ERC1155}
        maker, signature = await signed_ask(client, order_input)
        assert await client.verify_maker_order(maker, signature) == [Code.ERC1155_NO_APPROVAL_FOR_ALL]

        ledger.apply(client.approve_all_collection_items(COLLECTION_ERC1155, erc1155=True), user1.address)
        assert await client.verify_maker_order(maker, signature) == [VALID]

        maker, signature = await signed_ask(client, {**order_input, "amount": 6})
        assert await client.verify_maker_order(maker, signature) == [
            Code.ERC1155_BALANCE_OF_TOKEN_ID_INFERIOR_TO_AMOUNT
        ]

    @pytest.mark.asyncio
    async def test_unknown_collection(self, client, base_maker_input):
        maker, signature = await signed_ask(client, {**base_maker_input, "collection": UNKNOWN_COLLECTION})
        assert await client.verify_maker_order(maker, signature) == [
            Code.NO_TRANSFER_MANAGER_AVAILABLE_FOR_COLLECTION
        ]


class TestVerifyMakerBid:
    @pytest.mark.asyncio
    async def test_approval_then_valid(self, client, ledger, user1, addresses, base_maker_input):
        maker, signature = await signed_bid(client, base_maker_input)
        assert await client.verify_maker_order(maker, signature) == [Code.ERC20_APPROVAL_INFERIOR_TO_PRICE]

        ledger.apply(client.approve_erc20(addresses.WETH), user1.address)
        assert await client.verify_maker_order(maker, signature) == [VALID]

    @pytest.mark.asyncio
    async def test_balance_below_price(self, client, ledger, user1, addresses, base_maker_input):
        ledger.apply(client.approve_erc20(addresses.WETH), user1.address)
        maker, signature = await signed_bid(client, {**base_maker_input, "price": 11 * ONE_ETHER})
        assert await client.verify_maker_order(maker, signature) == [Code.ERC20_BALANCE_INFERIOR_TO_PRICE]

    @pytest.mark.asyncio
    async def test_fee_checks_skipped_for_bids(self, client, ledger, user1, addresses, base_maker_input):
        ledger.apply(client.approve_erc20(addresses.WETH), user1.address)
        maker, signature = await signed_bid(client, {**base_maker_input, "minPercentageToAsk": 10_000})
        assert await client.verify_maker_order(maker, signature) == [VALID]


class TestNonces:
    @pytest.mark.asyncio
    async def test_cancel_multiple(self, client, ledger, user1, base_maker_input):
        ledger.apply(client.approve_all_collection_items(base_maker_input["collection"]), user1.address)
        maker, signature = await signed_ask(client, base_maker_input)

        ledger.apply(client.cancel_multiple_maker_orders([maker.nonce]), user1.address)
        assert await client.verify_maker_order(maker, signature) == [Code.NONCE_EXECUTED_OR_CANCELLED]

    @pytest.mark.asyncio
    async def test_cancel_all(self, client, ledger, user1, base_maker_input):
        ledger.apply(client.approve_all_collection_items(base_maker_input["collection"]), user1.address)
        maker, signature = await signed_ask(client, base_maker_input)

        ledger.apply(client.cancel_all_orders_for_sender(1), user1.address)
        assert await client.verify_maker_order(maker, signature) == [Code.NONCE_BELOW_MIN_ORDER_NONCE]

        fresh, fresh_signature = await signed_ask(client, {**base_maker_input, "nonce": 1})
        assert await client.verify_maker_order(fresh, fresh_signature) == [VALID]


class TestSignatureChecks:
    @pytest.mark.asyncio
    async def test_high_s(self, client, ledger, user1, base_maker_input):
        ledger.apply(client.approve_all_collection_items(base_maker_input["collection"]), user1.address)
        maker, signature = await signed_ask(client, base_maker_input)
        v, r, s = split_signature(signature)
        high_s = (SECP256K1_N - int.from_bytes(s, "big")).to_bytes(32, "big")
        tampered = join_signature(55 - v, r, high_s)
        assert await client.verify_maker_order(maker, tampered) == [Code.INVALID_S_PARAMETER_EOA]

    @pytest.mark.asyncio
    async def test_invalid_v(self, client, ledger, user1, base_maker_input):
        ledger.apply(client.approve_all_collection_items(base_maker_input["collection"]), user1.address)
        maker, signature = await signed_ask(client, base_maker_input)
        _, r, s = split_signature(signature)
        assert await client.verify_maker_order(maker, join_signature(29, r, s)) == [Code.INVALID_V_PARAMETER_EOA]

    @pytest.mark.asyncio
    async def test_signed_by_someone_else(self, client, client2, ledger, user1, base_maker_input):
        ledger.apply(client.approve_all_collection_items(base_maker_input["collection"]), user1.address)
        maker, _ = await client.create_maker_ask(base_maker_input)
        signature = client2.sign_maker_order(maker)
        assert await client.verify_maker_order(maker, signature) == [Code.WRONG_SIGNER_EOA]

    @pytest.mark.asyncio
    async def test_tampered_signature(self, client, ledger, user1, base_maker_input):
        ledger.apply(client.approve_all_collection_items(base_maker_input["collection"]), user1.address)
        maker, signature = await signed_ask(client, base_maker_input)
        v, r, s = split_signature(signature)
        codes = await client.verify_maker_order(maker, join_signature(55 - v, r, s))
        assert len(codes) == 1
        assert codes[0] in {
            Code.INVALID_S_PARAMETER_EOA,
            Code.INVALID_V_PARAMETER_EOA,
            Code.NULL_SIGNER_EOA,
            Code.WRONG_SIGNER_EOA,
        }

    @pytest.mark.asyncio
    async def test_compact_signature(self, client, ledger, user1, base_maker_input):
        ledger.apply(client.approve_all_collection_items(base_maker_input["collection"]), user1.address)
        maker, signature = await signed_ask(client, base_maker_input)
        assert await client.verify_maker_order(maker, to_compact(signature)) == [VALID]

    @pytest.mark.asyncio
    async def test_zero_based_v_is_normalised(self, client, ledger, user1, base_maker_input):
        ledger.apply(client.approve_all_collection_items(base_maker_input["collection"]), user1.address)
        maker, signature = await signed_ask(client, base_maker_input)
        v, r, s = split_signature(signature)
        zero_based = "0x" + (r + s + bytes([v - 27])).hex()
        assert await client.verify_maker_order(maker, zero_based) == [VALID]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("signature", ["0x1234", "0x" + "11" * 66, "not hex"])
    async def test_unsplittable_signature_is_a_code(self, client, ledger, user1, base_maker_input, signature):
        ledger.apply(client.approve_all_collection_items(base_maker_input["collection"]), user1.address)
        maker, _ = await signed_ask(client, base_maker_input)
        assert await client.verify_maker_order(maker, signature) == [Code.NULL_SIGNER_EOA]

    @pytest.mark.asyncio
    async def test_modified_order(self, client, ledger, user1, base_maker_input):
        ledger.apply(client.approve_all_collection_items(base_maker_input["collection"]), user1.address)
        maker, signature = await signed_ask(client, base_maker_input)
        assert await client.verify_maker_order(maker.evolve(price=2 * ONE_ETHER), signature) == [
            Code.WRONG_SIGNER_EOA
        ]


class TestMarketChecks:
    @pytest.fixture(autouse=True)
    def approve(self, client, ledger, user1, addresses, base_maker_input):
        ledger.apply(client.approve_all_collection_items(base_maker_input["collection"]), user1.address)
        ledger.apply(client.approve_erc20(addresses.WETH), user1.address)

    @pytest.mark.asyncio
    async def test_too_early(self, client, base_maker_input):
        maker, signature = await signed_ask(client, {**base_maker_input, "startTime": NOW + 60})
        assert await client.verify_maker_order(maker, signature) == [Code.TOO_EARLY_TO_EXECUTE_ORDER]

    @pytest.mark.asyncio
    async def test_too_late(self, client, base_maker_input):
        maker, signature = await signed_ask(
            client, {**base_maker_input, "startTime": NOW - 120, "endTime": NOW - 60}
        )
        assert await client.verify_maker_order(maker, signature) == [Code.TOO_LATE_TO_EXECUTE_ORDER]

    @pytest.mark.asyncio
    async def test_currency_not_whitelisted(self, client, ledger, base_maker_input):
        ledger.currencies.discard(USDT)
        maker, signature = await signed_ask(client, {**base_maker_input, "currency": USDT})
        assert await client.verify_maker_order(maker, signature) == [Code.CURRENCY_NOT_WHITELISTED]

    @pytest.mark.asyncio
    async def test_strategy_not_whitelisted(self, client, ledger, addresses, base_maker_input):
        ledger.strategies.discard(addresses.STRATEGY_STANDARD_SALE.lower())
        maker, signature = await signed_ask(client, base_maker_input)
        assert await client.verify_maker_order(maker, signature) == [Code.STRATEGY_NOT_WHITELISTED]

    @pytest.mark.asyncio
    async def test_min_percentage_above_protocol_fee(self, client, base_maker_input):
        maker, signature = await signed_ask(client, {**base_maker_input, "minPercentageToAsk": 9_900})
        assert await client.verify_maker_order(maker, signature) == [Code.MIN_NET_RATIO_ABOVE_PROTOCOL_FEE]

    @pytest.mark.asyncio
    async def test_min_percentage_above_royalty_and_protocol_fee(self, client, ledger, user2, base_maker_input):
        ledger.royalties[base_maker_input["collection"].lower()] = (user2.address, 500)
        order_input = {**base_maker_input, "minPercentageToAsk": 9_500}
        maker, signature = await signed_ask(client, order_input)
        assert await client.verify_maker_order(maker, signature) == [
            Code.MIN_NET_RATIO_ABOVE_ROYALTY_FEE_AND_PROTOCOL_FEE
        ]

        maker, signature = await signed_ask(client, {**order_input, "minPercentageToAsk": 9_300})
        assert await client.verify_maker_order(maker, signature) == [VALID]

    @pytest.mark.asyncio
    async def test_tiny_price_fee_is_floored(self, client, base_maker_input):
        # 2% of 49 wei floors to zero, so the seller keeps the full price
        order_input = {**base_maker_input, "price": 49, "minPercentageToAsk": 9_900}
        maker, signature = await signed_ask(client, order_input)
        assert await client.verify_maker_order(maker, signature) == [VALID]

    @pytest.mark.asyncio
    async def test_zero_amount(self, client, base_maker_input):
        maker, signature = await signed_ask(client, {**base_maker_input, "amount": 0})
        assert await client.verify_maker_order(maker, signature) == [Code.ORDER_AMOUNT_CANNOT_BE_ZERO]

    @pytest.mark.asyncio
    async def test_failures_reported_in_check_order(self, client, ledger, user1, base_maker_input):
        ledger.apply(client.cancel_multiple_maker_orders([0]), user1.address)
        maker, signature = await signed_ask(
            client, {**base_maker_input, "startTime": NOW - 120, "endTime": NOW - 60, "amount": 0}
        )
        assert await client.verify_maker_order(maker, signature) == [
            Code.NONCE_EXECUTED_OR_CANCELLED,
            Code.ORDER_AMOUNT_CANNOT_BE_ZERO,
            Code.TOO_LATE_TO_EXECUTE_ORDER,
        ]


class TestVerifyMany:
    @pytest.mark.asyncio
    async def test_results_follow_input_order(self, client, ledger, user1, base_maker_input):
        ledger.apply(client.approve_all_collection_items(base_maker_input["collection"]), user1.address)
        valid, valid_signature = await signed_ask(client, base_maker_input)
        late, late_signature = await signed_ask(
            client, {**base_maker_input, "nonce": 1, "startTime": NOW - 120, "endTime": NOW - 60}
        )

        results = await client.verify_maker_orders([late, valid], [late_signature, valid_signature])
        assert results == [[Code.TOO_LATE_TO_EXECUTE_ORDER], [VALID]]

    @pytest.mark.asyncio
    async def test_duplicate_nonces_are_not_cross_checked(self, client, ledger, user1, base_maker_input):
        ledger.apply(client.approve_all_collection_items(base_maker_input["collection"]), user1.address)
        first, first_signature = await signed_ask(client, base_maker_input)
        second, second_signature = await signed_ask(client, {**base_maker_input, "tokenId": 1})

        results = await client.verify_maker_orders([first, second], [first_signature, second_signature])
        assert results == [[VALID], [VALID]]
        assert find_duplicate_nonces([first, second]) == {(user1.address, 0): [0, 1]}

    @pytest.mark.asyncio
    async def test_malformed_signature_is_isolated(self, client, ledger, user1, base_maker_input):
        ledger.apply(client.approve_all_collection_items(base_maker_input["collection"]), user1.address)
        maker, signature = await signed_ask(client, base_maker_input)

        results = await client.verify_maker_orders(
            [maker, maker, maker],
            [signature, "0x1234", to_compact(signature)],
        )
        assert results == [[VALID], [Code.NULL_SIGNER_EOA], [VALID]]

    @pytest.mark.asyncio
    async def test_length_mismatch(self, client, base_maker_input):
        maker, signature = await signed_ask(client, base_maker_input)
        with pytest.raises(ValueError):
            await client.verify_maker_orders([maker, maker], [signature])


class TestLedgerFailures:
    @pytest.mark.asyncio
    async def test_remote_error_propagates(self, client, ledger, base_maker_input):
        maker, signature = await signed_ask(client, base_maker_input)
        ledger.error = LedgerError("node unavailable", method="eth_call")
        with pytest.raises(LedgerError):
            await client.verify_maker_order(maker, signature)
