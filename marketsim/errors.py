"""Exception hierarchy for marketsim.

Ledger errors are raised synchronously to the caller and never leave the
ledger partially updated. Generator failures are reported as messages by the
background price lane instead of propagating.
"""
from __future__ import annotations


class MarketSimError(Exception):
    """Base class for all simulation errors."""


class LedgerError(MarketSimError):
    """A buy/sell request was rejected by the portfolio ledger."""


class InvalidAmount(LedgerError, ValueError):
    """Amount is non-positive, not finite, or exceeds the available holding."""


class InsufficientFunds(InvalidAmount):
    """Cash amount exceeds the available cash balance."""


class UnknownAsset(LedgerError, LookupError):
    """Symbol is not part of the asset catalogue."""

    def __init__(self, symbol: str):
        super().__init__(f"Asset {symbol} not found")
        self.symbol = symbol


class InvalidStrategyRule(MarketSimError, ValueError):
    """A custom strategy rule uses an unknown indicator, condition or action."""

    def __init__(self, message: str, index: int | None = None):
        if index is not None:
            message = f"Invalid rule at index {index}: {message}"
        super().__init__(message)
        self.index = index


class GeneratorFailure(MarketSimError):
    """Price computation failed for a single asset during a tick."""

    def __init__(self, symbol: str, reason: str):
        super().__init__(f"Price update failed for {symbol}: {reason}")
        self.symbol = symbol
        self.reason = reason
