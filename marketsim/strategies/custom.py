"""Rule-based custom strategies.

A rule compares one indicator against one or two thresholds and names the
action to take when the comparison holds. Rules are parsed into closed enums
when the strategy is built, so an unknown indicator, condition or action is
rejected up front with InvalidStrategyRule.

Cross conditions compare the indicator on the full series with the same
indicator recomputed on the series without its last sample.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..errors import InvalidStrategyRule
from ..features.indicators import bollinger_bands, ema, macd, percent_b, rsi, sma
from ..market.assets import Asset
from ..paper.ledger import Portfolio
from .base import TradeSignal, TradingStrategy

DEFAULT_ALLOCATION = 0.1


class Indicator(str, Enum):
    PRICE = "price"
    SMA = "sma"
    EMA = "ema"
    RSI = "rsi"
    MACD = "macd"
    BOLLINGER = "bollinger"


class Condition(str, Enum):
    ABOVE = "above"
    BELOW = "below"
    CROSS_ABOVE = "cross_above"
    CROSS_BELOW = "cross_below"
    BETWEEN = "between"
    OUTSIDE = "outside"


class RuleAction(str, Enum):
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


_CONDITION_ALIASES = {
    "crossabove": Condition.CROSS_ABOVE,
    "crossbelow": Condition.CROSS_BELOW,
}

_PARAMETER_ALIASES = {
    "fastPeriod": "fast",
    "slowPeriod": "slow",
    "signalPeriod": "signal",
    "stdDev": "std_dev",
}

BOLLINGER_COMPONENTS = ("upper", "middle", "lower", "percent_b")


def _parse_enum(enum_cls, value: Any, what: str, index: Optional[int]):
    if isinstance(value, enum_cls):
        return value
    key = str(value).strip()
    if enum_cls is Condition and key.lower().replace("_", "") in _CONDITION_ALIASES:
        return _CONDITION_ALIASES[key.lower().replace("_", "")]
    try:
        return enum_cls(key.lower())
    except ValueError:
        raise InvalidStrategyRule(f"Invalid {what}: {value}", index) from None


def _number(value: Any, what: str, index: Optional[int]) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidStrategyRule(f"{what} must be a number, got {value!r}", index) from None
    if not math.isfinite(number):
        raise InvalidStrategyRule(f"{what} must be finite", index)
    return number


@dataclass(frozen=True)
class Rule:
    indicator: Indicator
    condition: Condition
    action: RuleAction
    value: float
    value2: Optional[float] = None
    parameters: Dict[str, Any] = field(default_factory=dict)
    name: Optional[str] = None

    @property
    def allocation(self) -> float:
        return float(self.parameters.get("allocation", DEFAULT_ALLOCATION))

    @property
    def needs_previous(self) -> bool:
        return self.condition in (Condition.CROSS_ABOVE, Condition.CROSS_BELOW)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], index: Optional[int] = None) -> "Rule":
        if not isinstance(data, Mapping):
            raise InvalidStrategyRule("rule must be a mapping", index)
        for key in ("indicator", "condition", "action"):
            if not data.get(key):
                raise InvalidStrategyRule(f"missing {key}", index)

        indicator = _parse_enum(Indicator, data["indicator"], "indicator", index)
        condition = _parse_enum(Condition, data["condition"], "condition", index)
        action = _parse_enum(RuleAction, data["action"], "action", index)

        if data.get("value") is None:
            raise InvalidStrategyRule("missing value", index)
        value = _number(data["value"], "value", index)
        value2 = None
        if condition in (Condition.BETWEEN, Condition.OUTSIDE):
            if data.get("value2") is None:
                raise InvalidStrategyRule(f"{condition.value} requires value2", index)
            value2 = _number(data["value2"], "value2", index)
            if value2 < value:
                raise InvalidStrategyRule("value2 must be >= value", index)

        parameters = {
            _PARAMETER_ALIASES.get(k, k): v for k, v in dict(data.get("parameters") or {}).items()
        }
        allocation = _number(parameters.get("allocation", DEFAULT_ALLOCATION), "allocation", index)
        if not 0 < allocation <= 1:
            raise InvalidStrategyRule("allocation must be in (0, 1]", index)
        for key in ("period", "fast", "slow", "signal"):
            if key in parameters and _number(parameters[key], key, index) <= 0:
                raise InvalidStrategyRule(f"{key} must be > 0", index)
        component = parameters.get("component", "percent_b")
        if indicator == Indicator.BOLLINGER and component not in BOLLINGER_COMPONENTS:
            raise InvalidStrategyRule(f"Invalid bollinger component: {component}", index)

        return cls(
            indicator=indicator,
            condition=condition,
            action=action,
            value=value,
            value2=value2,
            parameters=parameters,
            name=data.get("name"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "indicator": self.indicator.value,
            "condition": self.condition.value,
            "action": self.action.value,
            "value": self.value,
            "parameters": dict(self.parameters),
        }
        if self.value2 is not None:
            data["value2"] = self.value2
        if self.name:
            data["name"] = self.name
        return data


def indicator_value(rule: Rule, prices: Sequence[float]) -> Optional[float]:
    """Scalar value of the rule's indicator over ``prices``."""
    if len(prices) == 0:
        return None
    params = rule.parameters
    if rule.indicator == Indicator.PRICE:
        return float(prices[-1])
    if rule.indicator == Indicator.SMA:
        return sma(prices, int(params.get("period", 20)))
    if rule.indicator == Indicator.EMA:
        return ema(prices, int(params.get("period", 20)))
    if rule.indicator == Indicator.RSI:
        return rsi(prices, int(params.get("period", 14)))
    if rule.indicator == Indicator.MACD:
        result = macd(
            prices,
            int(params.get("fast", 12)),
            int(params.get("slow", 26)),
            int(params.get("signal", 9)),
        )
        return None if result is None else result.macd
    if rule.indicator == Indicator.BOLLINGER:
        bands = bollinger_bands(prices, int(params.get("period", 20)), float(params.get("std_dev", 2.0)))
        if bands is None:
            return None
        component = params.get("component", "percent_b")
        if component == "percent_b":
            return percent_b(bands, float(prices[-1]))
        return getattr(bands, component)
    return None


def check_condition(rule: Rule, current: Optional[float], previous: Optional[float]) -> bool:
    if current is None:
        return False
    if rule.condition == Condition.ABOVE:
        return current > rule.value
    if rule.condition == Condition.BELOW:
        return current < rule.value
    if rule.condition == Condition.CROSS_ABOVE:
        return previous is not None and previous < rule.value and current > rule.value
    if rule.condition == Condition.CROSS_BELOW:
        return previous is not None and previous > rule.value and current < rule.value
    if rule.condition == Condition.BETWEEN:
        return rule.value < current < rule.value2
    if rule.condition == Condition.OUTSIDE:
        return current < rule.value or current > rule.value2
    return False


def parse_rules(rules: Sequence[Any]) -> Tuple[Rule, ...]:
    if isinstance(rules, (str, bytes)) or not isinstance(rules, Sequence):
        raise InvalidStrategyRule("Rules must be a list")
    return tuple(
        rule if isinstance(rule, Rule) else Rule.from_dict(rule, index)
        for index, rule in enumerate(rules)
    )


class CustomStrategy(TradingStrategy):
    """Strategy built from an ordered list of rules.

    The first matching rule that yields a signal fires. A matching ``hold``
    rule, or a trade below the minimum size, falls through to the next rule.
    """

    kind = "custom"

    def __init__(self, name: str = "custom", rules: Sequence[Any] = (),
                 description: str = "User-defined trading strategy"):
        self.rules: Tuple[Rule, ...] = parse_rules(rules)
        super().__init__(name=name, description=description)
        self.parameters["rules"] = [r.to_dict() for r in self.rules]

    def update_parameters(self, params: Dict[str, Any]) -> None:
        params = dict(params)
        if "rules" in params:
            self.rules = parse_rules(params["rules"])
            params["rules"] = [r.to_dict() for r in self.rules]
        super().update_parameters(params)

    def evaluate(self, asset: Asset, portfolio: Portfolio) -> Optional[TradeSignal]:
        prices = self.prices(asset)
        if not prices:
            return None

        for rule in self.rules:
            current = indicator_value(rule, prices)
            if current is None:
                continue
            previous = indicator_value(rule, prices[:-1]) if rule.needs_previous else None
            if not check_condition(rule, current, previous):
                continue

            indicators = {rule.indicator.value: current}
            signal = None
            if rule.action == RuleAction.BUY:
                signal = self.buy_signal(
                    asset, portfolio, rule.allocation,
                    rule.name or "Custom strategy buy signal", indicators,
                )
            elif rule.action == RuleAction.SELL:
                signal = self.sell_signal(
                    asset, rule.allocation,
                    rule.name or "Custom strategy sell signal", indicators,
                )
            if signal is not None:
                return signal
        return None

    def to_rules(self) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in self.rules]
