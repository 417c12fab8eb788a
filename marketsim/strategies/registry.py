"""Strategy registry and the per-session strategy manager.

REGISTRY maps strategy type names to classes; ``make_strategy`` builds one
by type. StrategyManager holds the named strategy instances of a session,
tracks which are active and evaluates only those.
"""
from __future__ import annotations

from collections.abc import Callable
from typing import Any, Dict, Iterable, List, Optional

from ..market.assets import Asset
from ..paper.ledger import Portfolio, Transaction, TradeType
from ..utils.logging import get_logger
from .base import TradeSignal, TradingStrategy
from .custom import CustomStrategy
from .moving_average import MovingAverageStrategy
from .rsi import RSIStrategy

LOGGER = get_logger(__name__)

REGISTRY: dict[str, Callable[..., TradingStrategy]] = {
    "moving_average": MovingAverageStrategy,
    "rsi": RSIStrategy,
    "custom": CustomStrategy,
}


def make_strategy(name: str, **params: Any) -> TradingStrategy:
    """Factory function to create strategy instances by type name.

    Args:
        name: Strategy type (must be in REGISTRY)
        **params: Strategy-specific parameters

    Returns:
        Strategy instance

    Raises:
        KeyError: If strategy type is not found in registry
    """
    key = name.lower()
    if key not in REGISTRY:
        raise KeyError(f"Unknown strategy: {name}. Available: {list(REGISTRY.keys())}")
    return REGISTRY[key](**params)


class StrategyManager:
    """Named strategies of one session.

    Unknown names raise KeyError. The manager starts with the default moving
    average and RSI strategies, both inactive.
    """

    def __init__(self, defaults: Optional[Dict[str, Dict[str, Any]]] = None,
                 include_defaults: bool = True):
        self.strategies: Dict[str, TradingStrategy] = {}
        if include_defaults:
            defaults = defaults or {}
            self.add(make_strategy("moving_average", **defaults.get("moving_average", {})))
            self.add(make_strategy("rsi", **defaults.get("rsi", {})))

    def __contains__(self, name: str) -> bool:
        return name in self.strategies

    def __len__(self) -> int:
        return len(self.strategies)

    def add(self, strategy: TradingStrategy) -> TradingStrategy:
        self.strategies[strategy.name] = strategy
        return strategy

    def get(self, name: str) -> TradingStrategy:
        if name not in self.strategies:
            raise KeyError(f"Unknown strategy: {name}. Available: {list(self.strategies.keys())}")
        return self.strategies[name]

    def remove(self, name: str) -> TradingStrategy:
        strategy = self.get(name)
        strategy.deactivate()
        del self.strategies[name]
        LOGGER.info(f"Strategy removed: {name}", extra={'strategy': name})
        return strategy

    def activate(self, name: str) -> None:
        self.get(name).activate()
        LOGGER.info(f"Strategy activated: {name}", extra={'strategy': name, 'action': 'activate'})

    def deactivate(self, name: str) -> None:
        self.get(name).deactivate()
        LOGGER.info(f"Strategy deactivated: {name}", extra={'strategy': name, 'action': 'deactivate'})

    def update_parameters(self, name: str, parameters: Dict[str, Any]) -> None:
        self.get(name).update_parameters(parameters)
        LOGGER.info(f"Strategy {name} parameters updated: {parameters}", extra={'strategy': name})

    def create_custom_strategy(self, name: str, rules: Iterable[Any],
                               description: str = "User-defined trading strategy") -> CustomStrategy:
        """Validate ``rules`` and register a new custom strategy under ``name``."""
        if name in self.strategies:
            raise ValueError(f"Strategy already exists: {name}")
        strategy = CustomStrategy(name=name, rules=list(rules), description=description)
        self.add(strategy)
        LOGGER.info(f"Custom strategy created: {name} ({len(strategy.rules)} rules)", extra={'strategy': name})
        return strategy

    def available_strategies(self) -> List[Dict[str, Any]]:
        return [s.info() for s in self.strategies.values()]

    def active_strategies(self) -> List[TradingStrategy]:
        return [s for s in self.strategies.values() if s.is_active]

    def evaluate(self, asset: Asset, portfolio: Portfolio) -> List[TradeSignal]:
        """Signals of every active strategy for ``asset``; inactive ones are not called."""
        signals: List[TradeSignal] = []
        for strategy in self.active_strategies():
            signal = strategy.evaluate(asset, portfolio)
            if signal is not None:
                signals.append(signal)
        return signals

    @staticmethod
    def strategy_performance(name: str, transactions: Iterable[Transaction]) -> Dict[str, Any]:
        """Trade counts and cash flows attributed to one strategy."""
        trades = [t for t in transactions if t.strategy == name]
        buys = [t for t in trades if t.type == TradeType.BUY]
        sells = [t for t in trades if t.type == TradeType.SELL]
        cash_spent = sum(t.cash_amount for t in buys)
        cash_received = sum(t.cash_amount for t in sells)
        return {
            "total_trades": len(trades),
            "buys": len(buys),
            "sells": len(sells),
            "cash_spent": cash_spent,
            "cash_received": cash_received,
            "net_cash_flow": cash_received - cash_spent,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {"strategies": {name: s.to_dict() for name, s in self.strategies.items()}}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StrategyManager":
        if not isinstance(data, dict):
            raise TypeError(f"strategy state must be a mapping, got {type(data).__name__}")
        saved = data.get("strategies") or {}
        if not isinstance(saved, dict):
            raise TypeError(f"strategies must be a mapping, got {type(saved).__name__}")
        manager = cls()
        for name, item in saved.items():
            try:
                if not isinstance(item, dict):
                    raise TypeError(f"expected a mapping, got {type(item).__name__}")
                kind = item.get("type", "custom")
                parameters = dict(item.get("parameters") or {})
                if name in manager.strategies:
                    strategy = manager.strategies[name]
                    strategy.update_parameters(parameters)
                elif kind == "custom":
                    strategy = manager.add(CustomStrategy(
                        name=name,
                        rules=parameters.get("rules", []),
                        description=item.get("description", "User-defined trading strategy"),
                    ))
                else:
                    strategy = manager.add(make_strategy(kind, name=name, **parameters))
                strategy.load_state(item.get("state") or {})
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                LOGGER.warning(f"Skipping saved strategy {name}: {e}", extra={'strategy': name})
                continue
            if item.get("is_active"):
                strategy.activate()
        return manager
