"""
nftmarket Core Module

Order model, builder, typed-data signing and off-chain validation for
maker/taker orders. Ledger access goes through the read-only interface in
``nftmarket.core.ledger``.
"""

__all__ = []
