"""
Exception hierarchy for nftmarket.

Errors are raised eagerly (configuration, validation) or come straight from
the ledger adapter (remote). Nothing in the core recovers locally. Order
validator codes are not exceptions, see ``order_validator.OrderValidatorCode``.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class MarketplaceError(Exception):
    """Base exception for all nftmarket errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Configuration Errors ====================


class ConfigurationError(MarketplaceError):
    """Raised when the client is missing configuration an operation needs."""
    pass


class SignerError(ConfigurationError):
    """Raised when an operation needs a signing identity and none was supplied.

    Always raised before any network call.
    """

    def __init__(self, message: str = "No signer configured for this operation", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


# ==================== Validation Errors ====================


class ValidationError(MarketplaceError):
    """Raised when caller-supplied order data is rejected locally."""
    pass


class TimestampError(ValidationError):
    """Raised when startTime/endTime are not UNIX seconds or not ordered."""

    def __init__(
        self,
        message: str,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.start_time = start_time
        self.end_time = end_time


class SignatureFormatError(ValidationError):
    """Raised when a signature cannot be split into v, r and s."""
    pass


# ==================== Remote Errors ====================


class RemoteError(MarketplaceError):
    """Raised when the ledger endpoint or its transport fails."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)


class LedgerError(RemoteError):
    """Raised by the web3 ledger adapter when a read call fails."""

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.method = method
