"""Technical indicators over a bounded price series.

All functions take an ordered sequence of prices (oldest first) and return
``None`` when the sequence is too short for the requested period. They never
extrapolate and never raise on short input.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np
import pandas as pd

Prices = Union[Sequence[float], np.ndarray, pd.Series]


@dataclass(frozen=True)
class MACDResult:
    macd: float
    signal: float
    histogram: float


@dataclass(frozen=True)
class BollingerBands:
    middle: float
    upper: float
    lower: float


def _as_array(prices: Prices) -> np.ndarray:
    if isinstance(prices, pd.Series):
        return prices.to_numpy(dtype=float)
    return np.asarray(prices, dtype=float)


def _check_period(period: int, name: str = "period") -> int:
    period = int(period)
    if period <= 0:
        raise ValueError(f"{name} must be > 0")
    return period


def sma(prices: Prices, period: int) -> Optional[float]:
    """Simple moving average of the last ``period`` prices."""
    period = _check_period(period)
    px = _as_array(prices)
    if len(px) < period:
        return None
    return float(px[-period:].mean())


def ema(prices: Prices, period: int) -> Optional[float]:
    """Exponential moving average seeded with the SMA of the first ``period`` prices."""
    period = _check_period(period)
    px = _as_array(prices)
    if len(px) < period:
        return None
    k = 2.0 / (period + 1)
    value = float(px[:period].mean())
    for price in px[period:]:
        value = (float(price) - value) * k + value
    return value


def rsi(prices: Prices, period: int = 14) -> Optional[float]:
    """Relative Strength Index from simple averages over the trailing window.

    Returns 100 when the window has no losses and 0 when it has no gains.
    """
    period = _check_period(period)
    px = _as_array(prices)
    if len(px) < period + 1:
        return None
    deltas = np.diff(px[-(period + 1):])
    gains = deltas[deltas > 0]
    losses = -deltas[deltas < 0]
    if len(losses) == 0:
        return 100.0
    if len(gains) == 0:
        return 0.0
    avg_gain = gains.sum() / period
    avg_loss = losses.sum() / period
    rs = avg_gain / avg_loss
    return float(min(100.0, max(0.0, 100.0 - 100.0 / (1.0 + rs))))


def macd(prices: Prices, fast: int = 12, slow: int = 26, signal: int = 9) -> Optional[MACDResult]:
    """MACD line as fast EMA minus slow EMA.

    The signal line is not smoothed: it equals the MACD line and the
    histogram is always 0.
    """
    fast = _check_period(fast, "fast")
    slow = _check_period(slow, "slow")
    signal = _check_period(signal, "signal")
    px = _as_array(prices)
    if len(px) < max(fast, slow) + signal:
        return None
    fast_ema = ema(px, fast)
    slow_ema = ema(px, slow)
    if fast_ema is None or slow_ema is None:
        return None
    line = fast_ema - slow_ema
    return MACDResult(macd=line, signal=line, histogram=0.0)


def bollinger_bands(prices: Prices, period: int = 20, std_dev: float = 2.0) -> Optional[BollingerBands]:
    """Bollinger Bands using the population standard deviation of the window."""
    period = _check_period(period)
    px = _as_array(prices)
    if len(px) < period:
        return None
    window = px[-period:]
    middle = float(window.mean())
    std = float(window.std(ddof=0))
    return BollingerBands(
        middle=middle,
        upper=middle + std * std_dev,
        lower=middle - std * std_dev,
    )


def percent_b(bands: Optional[BollingerBands], price: float) -> Optional[float]:
    """Position of ``price`` inside the bands (0 at lower, 1 at upper)."""
    if bands is None:
        return None
    width = bands.upper - bands.lower
    if width == 0:
        return None
    return (price - bands.lower) / width
