"""RSI overbought/oversold strategy with a signal cooldown."""
from __future__ import annotations

from typing import Any, Dict, Optional

from ..features.indicators import rsi
from ..market.assets import Asset
from ..paper.ledger import Portfolio
from .base import TradeSignal, TradingStrategy


class RSIStrategy(TradingStrategy):
    """Sell 25% of the holding when RSI >= overbought, buy with 25% of cash
    when RSI <= oversold.

    After a signal no new signal is emitted until ``cooldown_period`` series
    ticks have passed on the same asset. Ticks are counted with the series'
    monotonic ``tick_count`` so the cooldown keeps working once the series
    is full. Evaluating a different asset ends the cooldown.
    """

    kind = "rsi"
    default_parameters = {
        "period": 14,
        "overbought": 70.0,
        "oversold": 30.0,
        "cooldown_period": 6,
    }
    allocation = 0.25

    def __init__(self, period: int = 14, overbought: float = 70.0, oversold: float = 30.0,
                 cooldown_period: int = 6, name: Optional[str] = None):
        super().__init__(
            name=name or "rsi",
            description="Generate signals based on RSI overbought/oversold conditions",
            parameters={
                "period": period,
                "overbought": overbought,
                "oversold": oversold,
                "cooldown_period": cooldown_period,
            },
        )
        self.last_signal_tick: Optional[int] = None
        self.last_signal_symbol: Optional[str] = None

    def validate_parameters(self, params: Dict[str, Any]) -> None:
        if int(params["period"]) <= 0:
            raise ValueError("period must be > 0")
        if not 0 <= float(params["oversold"]) < float(params["overbought"]) <= 100:
            raise ValueError("require 0 <= oversold < overbought <= 100")
        if int(params["cooldown_period"]) < 0:
            raise ValueError("cooldown_period must be >= 0")

    def in_cooldown(self, tick: int, symbol: Optional[str] = None) -> bool:
        if self.last_signal_tick is None:
            return False
        if symbol is not None and self.last_signal_symbol not in (None, symbol):
            return False
        return tick - self.last_signal_tick < int(self.parameters["cooldown_period"])

    def evaluate(self, asset: Asset, portfolio: Portfolio) -> Optional[TradeSignal]:
        prices = self.prices(asset)
        value = rsi(prices, int(self.parameters["period"]))
        if value is None:
            return None

        tick = asset.series.tick_count
        if self.in_cooldown(tick, asset.symbol):
            return None

        indicators = {"rsi": value}
        signal = None
        if value >= float(self.parameters["overbought"]):
            signal = self.sell_signal(asset, self.allocation, f"RSI overbought at {value:.2f}", indicators)
        elif value <= float(self.parameters["oversold"]):
            signal = self.buy_signal(asset, portfolio, self.allocation, f"RSI oversold at {value:.2f}", indicators)

        if signal is not None:
            self.last_signal_tick = tick
            self.last_signal_symbol = asset.symbol
        return signal

    def state_dict(self) -> Dict[str, Any]:
        return {"last_signal_tick": self.last_signal_tick, "last_signal_symbol": self.last_signal_symbol}

    def load_state(self, state: Dict[str, Any]) -> None:
        tick = state.get("last_signal_tick")
        symbol = state.get("last_signal_symbol")
        self.last_signal_tick = None if tick is None else int(tick)
        self.last_signal_symbol = None if symbol is None else str(symbol)
