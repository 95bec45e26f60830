"""
nftmarket - Maker/Taker Order SDK

Client-side library for an NFT marketplace exchange settling on an EVM chain.

Main Components:
- Orders: Maker/taker order model and EIP-712 signing schema
- Builder: Turns sparse user input into fully populated maker orders
- Signing: Domain-separated typed-data signatures over maker orders
- Validation: Off-chain order validity codes before any gas is spent

Example:
    >>> from nftmarket import ExchangeClient, LocalSigner, SupportedChainId
    >>> client = ExchangeClient(SupportedChainId.MAINNET, ledger, LocalSigner.from_key(key))
    >>> maker, approved = await client.create_maker_ask(order_input)
    >>> signature = client.sign_maker_order(maker)
    >>> codes = await client.verify_maker_order(maker, signature)
"""

from .client import ExchangeClient
from .core.constants import SupportedChainId
from .core.exceptions import (
    ConfigurationError,
    LedgerError,
    MarketplaceError,
    RemoteError,
    SignerError,
    TimestampError,
    ValidationError,
)
from .core.input_schemas import CollectionOfferInput, MakerOrderInput, TakerOrderInput
from .core.order_validator import OrderValidator, OrderValidatorCode
from .core.orders import MakerOrder, MakerOrderWithSignature, TakerOrder
from .core.signers import LocalSigner, Signer

__version__ = "0.1.0"
__author__ = "nftmarket Development Team"

__all__ = [
    "ExchangeClient",
    "SupportedChainId",
    "MakerOrder",
    "MakerOrderWithSignature",
    "TakerOrder",
    "MakerOrderInput",
    "CollectionOfferInput",
    "TakerOrderInput",
    "OrderValidator",
    "OrderValidatorCode",
    "Signer",
    "LocalSigner",
    "MarketplaceError",
    "ConfigurationError",
    "SignerError",
    "ValidationError",
    "TimestampError",
    "RemoteError",
    "LedgerError",
]
