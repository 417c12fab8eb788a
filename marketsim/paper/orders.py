"""Conditional orders evaluated against the latest price every tick.

Trigger rules:
- STOP_LOSS: sell when price <= trigger
- TAKE_PROFIT: sell when price >= trigger
- LIMIT_BUY: buy ``amount`` units when price <= trigger and cash covers it
- LIMIT_SELL: sell when price >= trigger
- TRAILING_STOP: sell when price <= high_watermark * (1 - percentage / 100),
  with the watermark following new highs

Orders execute through Portfolio.buy/sell like any other trade.
"""
from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..errors import InsufficientFunds, LedgerError
from ..utils.logging import TradeLogger, get_logger
from .ledger import Portfolio, Transaction

LOGGER = get_logger(__name__)

_order_ids = itertools.count(1)


@dataclass
class ConditionalOrder:
    """Base order: ``amount`` is always in asset units."""
    symbol: str
    amount: float
    trigger_price: float
    order_id: int = field(default_factory=lambda: next(_order_ids))

    order_type = "CONDITIONAL"

    def __post_init__(self):
        if self.amount <= 0:
            raise ValueError("amount must be > 0")
        if self.trigger_price <= 0:
            raise ValueError("trigger_price must be > 0")

    def observe(self, price: float) -> None:
        """Update any price-tracking state before the trigger check."""

    def is_triggered(self, price: float) -> bool:
        raise NotImplementedError

    def execute(self, portfolio: Portfolio) -> Transaction:
        return portfolio.sell(self.symbol, self.amount, order_type=self.order_type)

    def to_dict(self) -> Dict[str, object]:
        return {
            "order_id": self.order_id,
            "order_type": self.order_type,
            "symbol": self.symbol,
            "amount": self.amount,
            "trigger_price": self.trigger_price,
        }


@dataclass
class StopLoss(ConditionalOrder):
    order_type = "STOP_LOSS"

    def is_triggered(self, price: float) -> bool:
        return price <= self.trigger_price


@dataclass
class TakeProfit(ConditionalOrder):
    order_type = "TAKE_PROFIT"

    def is_triggered(self, price: float) -> bool:
        return price >= self.trigger_price


@dataclass
class LimitBuy(ConditionalOrder):
    order_type = "LIMIT_BUY"

    def is_triggered(self, price: float) -> bool:
        return price <= self.trigger_price

    def execute(self, portfolio: Portfolio) -> Transaction:
        price = portfolio.get_asset(self.symbol).price
        cash_amount = self.amount * price
        if portfolio.cash < cash_amount:
            raise InsufficientFunds(
                f"Insufficient cash for limit buy: requested {cash_amount}, available {portfolio.cash}"
            )
        return portfolio.buy(self.symbol, cash_amount, order_type=self.order_type)


@dataclass
class LimitSell(ConditionalOrder):
    order_type = "LIMIT_SELL"

    def is_triggered(self, price: float) -> bool:
        return price >= self.trigger_price


@dataclass
class TrailingStop(ConditionalOrder):
    """Stop that trails ``percentage`` percent below the highest seen price.

    ``trigger_price`` is the starting watermark (usually the price at
    placement).
    """
    percentage: float = 5.0
    high_watermark: float = 0.0

    order_type = "TRAILING_STOP"

    def __post_init__(self):
        super().__post_init__()
        if not 0 < self.percentage < 100:
            raise ValueError("percentage must be between 0 and 100")
        self.high_watermark = max(self.high_watermark, self.trigger_price)

    @property
    def stop_price(self) -> float:
        return self.high_watermark * (1 - self.percentage / 100)

    def observe(self, price: float) -> None:
        if price > self.high_watermark:
            self.high_watermark = price

    def is_triggered(self, price: float) -> bool:
        return price <= self.stop_price

    def to_dict(self) -> Dict[str, object]:
        data = super().to_dict()
        data.update(percentage=self.percentage, high_watermark=self.high_watermark)
        return data


ORDER_TYPES = {
    cls.order_type: cls
    for cls in (StopLoss, TakeProfit, LimitBuy, LimitSell, TrailingStop)
}


def make_order(order_type: str, **params) -> ConditionalOrder:
    key = order_type.upper()
    if key not in ORDER_TYPES:
        raise KeyError(f"Unknown order type: {order_type}. Available: {list(ORDER_TYPES.keys())}")
    return ORDER_TYPES[key](**params)


class OrderBook:
    """Pending conditional orders, evaluated once per price tick."""

    def __init__(self):
        self._orders: Dict[int, ConditionalOrder] = {}

    def __len__(self) -> int:
        return len(self._orders)

    def add(self, order: ConditionalOrder) -> ConditionalOrder:
        self._orders[order.order_id] = order
        LOGGER.info(
            f"Order {order.order_id} placed: {order.order_type} {order.amount} {order.symbol} @ {order.trigger_price}",
            extra={'symbol': order.symbol, 'order_type': order.order_type, 'price': order.trigger_price},
        )
        return order

    def cancel(self, order_id: int) -> Optional[ConditionalOrder]:
        return self._orders.pop(order_id, None)

    def pending(self, symbol: Optional[str] = None) -> List[ConditionalOrder]:
        return [o for o in self._orders.values() if symbol is None or o.symbol == symbol]

    def evaluate(self, portfolio: Portfolio) -> List[Transaction]:
        """Check every pending order against current prices; execute the triggered ones."""
        executed: List[Transaction] = []
        for order in list(self._orders.values()):
            asset = portfolio.assets.get(order.symbol)
            if asset is None:
                LOGGER.warning(f"Order {order.order_id} cancelled: unknown asset {order.symbol}")
                self._orders.pop(order.order_id, None)
                continue

            order.observe(asset.price)
            if not order.is_triggered(asset.price):
                continue

            with TradeLogger(LOGGER, order.symbol, order.order_type) as trade_log:
                try:
                    transaction = order.execute(portfolio)
                except InsufficientFunds:
                    if isinstance(order, LimitBuy):
                        # Stays pending until cash is available
                        continue
                    LOGGER.warning(f"Order {order.order_id} cancelled: insufficient funds")
                    self._orders.pop(order.order_id, None)
                    continue
                except LedgerError as e:
                    LOGGER.warning(
                        f"Order {order.order_id} cancelled: {e}",
                        extra={'symbol': order.symbol, 'order_type': order.order_type, 'reason': str(e)},
                    )
                    self._orders.pop(order.order_id, None)
                    continue
                trade_log.log_execution(
                    transaction.type.value, transaction.asset_amount, transaction.price,
                    order_type=order.order_type,
                )
            self._orders.pop(order.order_id, None)
            executed.append(transaction)
        return executed

    def to_list(self) -> List[Dict[str, object]]:
        return [o.to_dict() for o in self._orders.values()]

    def load(self, items: List[Dict[str, object]]) -> None:
        for item in items:
            params = dict(item)
            order_type = str(params.pop("order_type"))
            params.pop("order_id", None)
            self.add(make_order(order_type, **params))
