"""Base classes for strategies."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..market.assets import Asset
from ..paper.ledger import Portfolio, TradeType

# Smallest cash amount a strategy will propose for a buy
MIN_NOTIONAL = 10.0


@dataclass(frozen=True)
class TradeSignal:
    """A proposed trade. Buys carry ``cash_amount``, sells ``asset_amount``."""
    direction: TradeType
    symbol: str
    reason: str
    price: float
    strategy: str
    cash_amount: Optional[float] = None
    asset_amount: Optional[float] = None
    indicators: Dict[str, Any] = field(default_factory=dict)

    @property
    def amount(self) -> float:
        if self.direction == TradeType.BUY:
            return self.cash_amount or 0.0
        return self.asset_amount or 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.direction.value,
            "symbol": self.symbol,
            "reason": self.reason,
            "price": self.price,
            "strategy": self.strategy,
            "cash_amount": self.cash_amount,
            "asset_amount": self.asset_amount,
            "indicators": dict(self.indicators),
        }


class TradingStrategy(ABC):
    """Abstract strategy: inspect one asset's series and the portfolio, maybe emit a signal.

    ``evaluate`` does not look at ``is_active``; the strategy manager only
    calls active strategies.
    """

    kind = "base"
    default_parameters: Dict[str, Any] = {}

    def __init__(self, name: Optional[str] = None, description: str = "",
                 parameters: Optional[Dict[str, Any]] = None):
        self.name = name or self.kind
        self.description = description
        self.is_active = False
        self.parameters: Dict[str, Any] = dict(self.default_parameters)
        if parameters:
            self.update_parameters(parameters)

    def activate(self) -> None:
        self.is_active = True

    def deactivate(self) -> None:
        self.is_active = False

    def update_parameters(self, params: Dict[str, Any]) -> None:
        """Merge ``params`` into the current parameters after validation."""
        merged = {**self.parameters, **params}
        self.validate_parameters(merged)
        self.parameters = merged

    def validate_parameters(self, params: Dict[str, Any]) -> None:
        """Raise ValueError for unusable parameters."""

    @abstractmethod
    def evaluate(self, asset: Asset, portfolio: Portfolio) -> Optional[TradeSignal]:
        raise NotImplementedError

    def state_dict(self) -> Dict[str, Any]:
        """Mutable evaluation state worth persisting."""
        return {}

    def load_state(self, state: Dict[str, Any]) -> None:
        pass

    def info(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.kind,
            "description": self.description,
            "parameters": dict(self.parameters),
            "is_active": self.is_active,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.info()
        data["state"] = self.state_dict()
        return data

    # Helpers for subclasses

    @staticmethod
    def prices(asset: Asset) -> List[float]:
        if asset.series is None:
            return []
        return asset.series.price

    def buy_signal(self, asset: Asset, portfolio: Portfolio, fraction: float, reason: str,
                   indicators: Optional[Dict[str, Any]] = None) -> Optional[TradeSignal]:
        cash_amount = portfolio.cash * fraction
        if cash_amount < MIN_NOTIONAL:
            return None
        return TradeSignal(
            direction=TradeType.BUY,
            symbol=asset.symbol,
            reason=reason,
            price=asset.price,
            strategy=self.name,
            cash_amount=cash_amount,
            indicators=indicators or {},
        )

    def sell_signal(self, asset: Asset, fraction: float, reason: str,
                    indicators: Optional[Dict[str, Any]] = None) -> Optional[TradeSignal]:
        asset_amount = asset.amount * fraction
        if asset_amount <= 0:
            return None
        return TradeSignal(
            direction=TradeType.SELL,
            symbol=asset.symbol,
            reason=reason,
            price=asset.price,
            strategy=self.name,
            asset_amount=asset_amount,
            indicators=indicators or {},
        )
