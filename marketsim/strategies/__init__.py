"""Trading strategies, registry and signal execution."""
from .base import TradingStrategy, TradeSignal, MIN_NOTIONAL
from .moving_average import MovingAverageStrategy
from .rsi import RSIStrategy
from .custom import CustomStrategy, Rule, Indicator, Condition, RuleAction
from .registry import REGISTRY, make_strategy, StrategyManager
from .executor import SignalExecutor, ExecutionResult

__all__ = [
    "TradingStrategy",
    "TradeSignal",
    "MIN_NOTIONAL",
    "MovingAverageStrategy",
    "RSIStrategy",
    "CustomStrategy",
    "Rule",
    "Indicator",
    "Condition",
    "RuleAction",
    "REGISTRY",
    "make_strategy",
    "StrategyManager",
    "SignalExecutor",
    "ExecutionResult",
]
