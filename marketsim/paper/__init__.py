"""Paper-trading ledger, conditional orders, recurring buys and persistence."""
from .ledger import Portfolio, Transaction, TradeType, ValueSnapshot
from .orders import (
    ConditionalOrder,
    StopLoss,
    TakeProfit,
    LimitBuy,
    LimitSell,
    TrailingStop,
    OrderBook,
    make_order,
)
from .recurring import RecurringInvestment, RecurringSchedule
from .io import save_state, load_state, restore_portfolio

__all__ = [
    "Portfolio",
    "Transaction",
    "TradeType",
    "ValueSnapshot",
    "ConditionalOrder",
    "StopLoss",
    "TakeProfit",
    "LimitBuy",
    "LimitSell",
    "TrailingStop",
    "OrderBook",
    "make_order",
    "RecurringInvestment",
    "RecurringSchedule",
    "save_state",
    "load_state",
    "restore_portfolio",
]
