"""
Signing identities.

A signer reports an address and produces EIP-712 signatures. Hardware or
remote wallets implement the ``Signer`` protocol; ``LocalSigner`` wraps an
in-process eth_account key for scripts and tests.
"""

from __future__ import annotations

from typing import Any, Dict, List, Protocol, runtime_checkable

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_account.signers.local import LocalAccount


@runtime_checkable
class Signer(Protocol):
    """Anything able to sign typed data on behalf of one address."""

    @property
    def address(self) -> str:
        ...

    def sign_typed_data(
        self,
        domain: Dict[str, Any],
        types: Dict[str, List[Dict[str, str]]],
        message: Dict[str, Any],
    ) -> bytes:
        """Return the 65-byte r || s || v signature."""
        ...


class LocalSigner:
    """Signer backed by a private key held in memory."""

    def __init__(self, account: LocalAccount) -> None:
        self._account = account

    @classmethod
    def from_key(cls, private_key: str | bytes) -> "LocalSigner":
        return cls(Account.from_key(private_key))

    @classmethod
    def create(cls) -> "LocalSigner":
        return cls(Account.create())

    @property
    def address(self) -> str:
        return self._account.address

    def sign_typed_data(
        self,
        domain: Dict[str, Any],
        types: Dict[str, List[Dict[str, str]]],
        message: Dict[str, Any],
    ) -> bytes:
        signable = encode_typed_data(domain_data=domain, message_types=types, message_data=message)
        return bytes(self._account.sign_message(signable).signature)

    def __repr__(self) -> str:
        return f"LocalSigner(address={self.address})"
