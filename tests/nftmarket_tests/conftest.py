import sys
from pathlib import Path

import pytest

# Ensure both the project root (for `tests.nftmarket_tests` helpers) and the
# src directory (for `nftmarket.*`) are on the Python path before collection runs.
project_root = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(project_root / "src"))

from nftmarket.client import ExchangeClient  # noqa: E402
from nftmarket.core.config import ContractAddresses  # noqa: E402
from nftmarket.core.constants import INTERFACE_ID_ERC721, INTERFACE_ID_ERC1155, SupportedChainId  # noqa: E402
from nftmarket.core.signers import LocalSigner  # noqa: E402
from tests.nftmarket_tests.ledger_fakes import (  # noqa: E402
    COLLECTION_ERC721,
    COLLECTION_ERC1155,
    NOW,
    ONE_ETHER,
    USDT,
    FakeLedger,
)


@pytest.fixture
def addresses():
    return ContractAddresses(
        EXCHANGE="0x" + "e1" * 20,
        WETH="0x" + "a1" * 20,
        TRANSFER_MANAGER_ERC721="0x" + "f7" * 20,
        TRANSFER_MANAGER_ERC1155="0x" + "f1" * 20,
        STRATEGY_STANDARD_SALE="0x" + "5a" * 20,
        STRATEGY_COLLECTION_SALE="0x" + "5c" * 20,
        STRATEGY_PRIVATE_SALE="0x" + "5e" * 20,
    )


@pytest.fixture
def user1():
    return LocalSigner.from_key("0x" + "01" * 32)


@pytest.fixture
def user2():
    return LocalSigner.from_key("0x" + "02" * 32)


@pytest.fixture
def ledger(addresses, user1, user2):
    """user1 owns ERC-721 tokens 0 and 1 and five ERC-1155 token 0; both users hold 10 WETH and USDT."""
    fake = FakeLedger(addresses)
    fake.interfaces[COLLECTION_ERC721.lower()] = {INTERFACE_ID_ERC721}
    fake.interfaces[COLLECTION_ERC1155.lower()] = {INTERFACE_ID_ERC1155}
    for token_id in (0, 1):
        fake.owners[(COLLECTION_ERC721.lower(), token_id)] = user1.address
    fake.erc1155_balances[(COLLECTION_ERC1155.lower(), user1.address.lower(), 0)] = 5
    for user in (user1, user2):
        for currency in (addresses.WETH, USDT):
            fake.balances[(currency.lower(), user.address.lower())] = 10 * ONE_ETHER
    fake.currencies = {addresses.WETH.lower(), USDT.lower()}
    fake.strategies = {
        addresses.STRATEGY_STANDARD_SALE.lower(),
        addresses.STRATEGY_COLLECTION_SALE.lower(),
        addresses.STRATEGY_PRIVATE_SALE.lower(),
    }
    fake.protocol_fees = {strategy: 200 for strategy in fake.strategies}
    return fake


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def client(ledger, user1, addresses, clock):
    return ExchangeClient(SupportedChainId.HARDHAT, ledger, user1, addresses=addresses, clock=clock)


@pytest.fixture
def client2(ledger, user2, addresses, clock):
    return ExchangeClient(SupportedChainId.HARDHAT, ledger, user2, addresses=addresses, clock=clock)


@pytest.fixture
def base_maker_input(addresses):
    return {
        "collection": COLLECTION_ERC721,
        "price": ONE_ETHER,
        "tokenId": 0,
        "strategy": addresses.STRATEGY_STANDARD_SALE,
        "nonce": 0,
        "endTime": NOW + 3600,
        "minPercentageToAsk": 0,
    }
