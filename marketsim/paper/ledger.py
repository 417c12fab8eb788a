"""Paper-trading portfolio ledger.

Holds the cash balance and the asset catalogue (with per-asset holdings) and
applies buy/sell requests. Every request is fully validated before anything
is mutated, so a rejected request leaves the ledger untouched.

Total value and ROI are always derived from cash and holdings; they are
never stored.
"""
from __future__ import annotations

import math
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Deque, Dict, List, Mapping, Optional

from ..errors import InsufficientFunds, InvalidAmount, UnknownAsset
from ..market.assets import Asset
from ..utils.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_INITIAL_CASH = 10_000.0
DEFAULT_HISTORY_LIMIT = 100


class TradeType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class Transaction:
    type: TradeType
    symbol: str
    asset_amount: float
    cash_amount: float
    price: float
    timestamp: datetime
    portfolio_value_after: float
    strategy: Optional[str] = None
    order_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        data["timestamp"] = self.timestamp.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Transaction":
        return cls(
            type=TradeType(data["type"]),
            symbol=data["symbol"],
            asset_amount=float(data["asset_amount"]),
            cash_amount=float(data["cash_amount"]),
            price=float(data["price"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            portfolio_value_after=float(data["portfolio_value_after"]),
            strategy=data.get("strategy"),
            order_type=data.get("order_type"),
        )


@dataclass(frozen=True)
class ValueSnapshot:
    timestamp: datetime
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp.isoformat(), "value": self.value}


def _finite(value: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


class Portfolio:
    """Cash, holdings and bounded histories for one simulated account."""

    def __init__(self, assets: Optional[Mapping[str, Asset]] = None,
                 initial_cash: float = DEFAULT_INITIAL_CASH,
                 history_limit: int = DEFAULT_HISTORY_LIMIT):
        if initial_cash < 0:
            raise ValueError("initial_cash must be >= 0")
        self.cash = float(initial_cash)
        self.initial_investment = float(initial_cash)
        self.history_limit = int(history_limit)
        self.assets: Dict[str, Asset] = {}
        self.selected_symbol: Optional[str] = None
        self.transactions: Deque[Transaction] = deque(maxlen=self.history_limit)
        self.value_history: Deque[ValueSnapshot] = deque(maxlen=self.history_limit)
        for asset in (assets or {}).values():
            self.add_asset(asset)

    # Assets

    def add_asset(self, asset: Asset) -> None:
        self.assets[asset.symbol] = asset
        if self.selected_symbol is None:
            self.selected_symbol = asset.symbol

    def get_asset(self, symbol: str) -> Asset:
        asset = self.assets.get(symbol)
        if asset is None:
            raise UnknownAsset(symbol)
        return asset

    def select_asset(self, symbol: str) -> Asset:
        asset = self.get_asset(symbol)
        self.selected_symbol = symbol
        return asset

    @property
    def selected_asset(self) -> Optional[Asset]:
        if self.selected_symbol is None:
            return None
        return self.assets.get(self.selected_symbol)

    def holding(self, symbol: str) -> float:
        return self.get_asset(symbol).amount

    def holdings(self) -> Dict[str, float]:
        """Non-zero holdings keyed by symbol."""
        return {s: a.amount for s, a in self.assets.items() if a.amount > 0}

    # Trading

    def buy(self, symbol: str, cash_amount: float, strategy: Optional[str] = None,
            order_type: Optional[str] = None) -> Transaction:
        """Spend ``cash_amount`` of cash on ``symbol`` at its current price.

        Raises:
            InvalidAmount: cash_amount is not a positive finite number
            InsufficientFunds: cash_amount exceeds the cash balance
            UnknownAsset: symbol is not in the catalogue
        """
        if not _is_positive(cash_amount):
            raise InvalidAmount(f"Amount must be greater than 0: {cash_amount}")
        cash_amount = float(cash_amount)
        if cash_amount > self.cash:
            raise InsufficientFunds(
                f"Insufficient cash balance: requested {cash_amount}, available {self.cash}"
            )
        asset = self.get_asset(symbol)
        if not _is_positive(asset.price):
            raise InvalidAmount(f"Cannot trade {symbol} at price {asset.price}")

        asset_amount = cash_amount / asset.price
        asset.amount += asset_amount
        self.cash -= cash_amount
        return self._record(TradeType.BUY, asset, asset_amount, cash_amount, strategy, order_type)

    def sell(self, symbol: str, asset_amount: float, strategy: Optional[str] = None,
             order_type: Optional[str] = None) -> Transaction:
        """Sell ``asset_amount`` units of ``symbol`` at its current price.

        Raises:
            UnknownAsset: symbol is not in the catalogue
            InvalidAmount: asset_amount is not positive or exceeds the holding
        """
        asset = self.get_asset(symbol)
        if not _is_positive(asset_amount) or float(asset_amount) > asset.amount:
            raise InvalidAmount(f"Invalid amount: {asset_amount}")
        asset_amount = float(asset_amount)

        cash_amount = asset_amount * asset.price
        asset.amount = max(0.0, asset.amount - asset_amount)
        self.cash += cash_amount
        return self._record(TradeType.SELL, asset, asset_amount, cash_amount, strategy, order_type)

    def _record(self, trade_type: TradeType, asset: Asset, asset_amount: float,
                cash_amount: float, strategy: Optional[str],
                order_type: Optional[str]) -> Transaction:
        transaction = Transaction(
            type=trade_type,
            symbol=asset.symbol,
            asset_amount=asset_amount,
            cash_amount=cash_amount,
            price=asset.price,
            timestamp=datetime.now(),
            portfolio_value_after=self.total_value(),
            strategy=strategy,
            order_type=order_type,
        )
        self.transactions.append(transaction)
        self.record_value()
        LOGGER.info(
            f"{trade_type.value} {asset_amount:.8f} {asset.symbol} for {cash_amount:.2f}",
            extra={
                'symbol': asset.symbol,
                'strategy': strategy,
                'action': trade_type.value,
                'quantity': asset_amount,
                'price': asset.price,
                'order_type': order_type,
            },
        )
        return transaction

    # Valuation

    def total_value(self) -> float:
        """Cash plus the market value of every holding; always finite."""
        return _finite(self.cash) + sum(_finite(a.market_value()) for a in self.assets.values())

    def roi(self) -> float:
        """Return on the initial investment in percent; 0 when undefined."""
        if not _is_positive(self.initial_investment):
            return 0.0
        return (self.total_value() - self.initial_investment) / self.initial_investment * 100

    def record_value(self) -> ValueSnapshot:
        snapshot = ValueSnapshot(timestamp=datetime.now(), value=self.total_value())
        self.value_history.append(snapshot)
        return snapshot

    def asset_allocation(self) -> List[Dict[str, Any]]:
        """Share of total value per held asset and for cash, in percent."""
        total = self.total_value()
        if total <= 0:
            return []
        allocation = []
        for asset in self.assets.values():
            value = asset.market_value()
            if value > 0:
                allocation.append({
                    "symbol": asset.symbol,
                    "name": asset.name,
                    "value": value,
                    "percentage": value / total * 100,
                })
        if self.cash > 0:
            allocation.append({
                "symbol": "USD",
                "name": "US Dollar",
                "value": self.cash,
                "percentage": self.cash / total * 100,
            })
        return allocation

    # Query / persistence

    def snapshot(self) -> Dict[str, Any]:
        return {
            "cash": self.cash,
            "holdings": self.holdings(),
            "prices": {s: a.price for s, a in self.assets.items()},
            "selected_asset": self.selected_symbol,
            "total_value": self.total_value(),
            "roi": self.roi(),
            "transactions": [t.to_dict() for t in self.transactions],
            "value_history": [v.to_dict() for v in self.value_history],
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cash": self.cash,
            "initial_investment": self.initial_investment,
            "history_limit": self.history_limit,
            "selected_asset": self.selected_symbol,
            "assets": {s: a.to_dict() for s, a in self.assets.items()},
            "transactions": [t.to_dict() for t in self.transactions],
            "value_history": [v.to_dict() for v in self.value_history],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any],
                  catalogue: Optional[Mapping[str, Asset]] = None) -> "Portfolio":
        """Restore a portfolio.

        When ``catalogue`` is given, only its symbols are restored and saved
        prices, holdings and series are copied onto those assets. Nothing is
        copied unless the whole snapshot parses.
        """
        portfolio = cls(
            initial_cash=float(data.get("initial_investment", DEFAULT_INITIAL_CASH)),
            history_limit=int(data.get("history_limit", DEFAULT_HISTORY_LIMIT)),
        )
        portfolio.cash = float(data.get("cash", portfolio.initial_investment))
        saved = data.get("assets") or {}
        if not isinstance(saved, Mapping):
            raise TypeError(f"assets must be a mapping, got {type(saved).__name__}")
        restored = {symbol: Asset.from_dict(item) for symbol, item in saved.items()}
        transactions = [Transaction.from_dict(item) for item in data.get("transactions") or []]
        values = [
            ValueSnapshot(datetime.fromisoformat(item["timestamp"]), float(item["value"]))
            for item in data.get("value_history") or []
        ]

        if catalogue is None:
            for asset in restored.values():
                portfolio.add_asset(asset)
        else:
            for symbol, asset in catalogue.items():
                saved_asset = restored.get(symbol)
                if saved_asset is not None:
                    asset.price = saved_asset.price
                    asset.amount = max(0.0, saved_asset.amount)
                    asset.last_change = saved_asset.last_change
                    if saved[symbol].get("series"):
                        asset.series = saved_asset.series
                portfolio.add_asset(asset)

        selected = data.get("selected_asset")
        if selected in portfolio.assets:
            portfolio.selected_symbol = selected
        portfolio.transactions.extend(transactions)
        portfolio.value_history.extend(values)
        return portfolio


def _is_positive(value: Any) -> bool:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and value > 0
