"""Moving-average crossover strategy."""
from __future__ import annotations

from typing import Any, Dict, Optional

from ..features.indicators import sma
from ..market.assets import Asset
from ..paper.ledger import Portfolio
from .base import TradeSignal, TradingStrategy


class MovingAverageStrategy(TradingStrategy):
    """Buy 10% of cash when the short SMA is above the long SMA by at least
    ``signal_threshold`` (relative), sell 10% of the holding when below.
    """

    kind = "moving_average"
    default_parameters = {
        "short_period": 10,
        "long_period": 20,
        "signal_threshold": 0.002,
    }
    allocation = 0.1

    def __init__(self, short_period: int = 10, long_period: int = 20,
                 signal_threshold: float = 0.002, name: Optional[str] = None):
        super().__init__(
            name=name or "moving_average",
            description="Generate signals based on SMA crossovers",
            parameters={
                "short_period": short_period,
                "long_period": long_period,
                "signal_threshold": signal_threshold,
            },
        )

    def validate_parameters(self, params: Dict[str, Any]) -> None:
        if int(params["short_period"]) <= 0 or int(params["long_period"]) <= 0:
            raise ValueError("periods must be > 0")
        if float(params["signal_threshold"]) < 0:
            raise ValueError("signal_threshold must be >= 0")

    def evaluate(self, asset: Asset, portfolio: Portfolio) -> Optional[TradeSignal]:
        prices = self.prices(asset)
        short_sma = sma(prices, int(self.parameters["short_period"]))
        long_sma = sma(prices, int(self.parameters["long_period"]))
        if short_sma is None or long_sma is None or long_sma == 0:
            return None

        spread = (short_sma - long_sma) / long_sma
        if abs(spread) < float(self.parameters["signal_threshold"]):
            return None

        indicators = {"short_sma": short_sma, "long_sma": long_sma, "spread": spread}
        if spread > 0:
            return self.buy_signal(
                asset, portfolio, self.allocation,
                "Short-term MA crossed above long-term MA", indicators,
            )
        return self.sell_signal(
            asset, self.allocation,
            "Short-term MA crossed below long-term MA", indicators,
        )
