"""
nftmarket Constants

Protocol-level constants shared by the order model, builder and validator.

NOTE: Values marked [SIGNING] are part of the EIP-712 domain or schema that
the exchange contract verifies on-chain. Changing them makes every signature
produced by this library fail remote verification.
"""

from enum import IntEnum
from typing import Dict, Final


class SupportedChainId(IntEnum):
    MAINNET = 1
    RINKEBY = 4
    HARDHAT = 31337


# =============================================================================
# EIP-712 DOMAIN [SIGNING]
# =============================================================================

DOMAIN_NAME: Final[str] = "LooksRareExchange"
DOMAIN_VERSION: Final[str] = "1"

# =============================================================================
# NUMERIC LIMITS
# =============================================================================

MAX_UINT256: Final[int] = 2**256 - 1
ZERO_ADDRESS: Final[str] = "0x0000000000000000000000000000000000000000"

# Basis points denominator for fees and minPercentageToAsk (10000 = 100%)
PERCENTAGE_DENOMINATOR: Final[int] = 10_000

# UNIX timestamps in seconds stay within 10 decimal digits until year 2286
MAX_TIMESTAMP_DIGITS: Final[int] = 10

# Upper bound for a canonical (low-s) ECDSA signature, secp256k1n / 2
SECP256K1_HALF_N: Final[int] = 0x7FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFF5D576E7357A4501DDFE92F46681B20A0

SIGNATURE_LENGTH: Final[int] = 65
COMPACT_SIGNATURE_LENGTH: Final[int] = 64

# =============================================================================
# ERC-165 INTERFACE IDS
# =============================================================================

INTERFACE_ID_ERC721: Final[bytes] = bytes.fromhex("80ac58cd")
INTERFACE_ID_ERC1155: Final[bytes] = bytes.fromhex("d9b67a26")

# =============================================================================
# DEPLOYED CONTRACTS
# =============================================================================

ADDRESS_BOOK: Dict[int, Dict[str, str]] = {
    SupportedChainId.MAINNET: {
        "EXCHANGE": "0x59728544b08ab483533076417fbbb2fd0b17ce3a",
        "WETH": "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2",
        "TRANSFER_MANAGER_ERC721": "0xf42aa99f011a1fa7cda90e5e98b277e306bca83e",
        "TRANSFER_MANAGER_ERC1155": "0xfed24ec7e22f573c2e08aef55aa6797ca2b3a051",
        "STRATEGY_STANDARD_SALE": "0x56244bb70cbd3ea9dc8007399f61dfc065190031",
        "STRATEGY_COLLECTION_SALE": "0x86f909f70813cdb1bc733f4d97dc6b03b8e7e8f3",
        "STRATEGY_PRIVATE_SALE": "0x58d83536d3efedb9f7f2a1ec3bdaad2b1a4dd98c",
    },
}
