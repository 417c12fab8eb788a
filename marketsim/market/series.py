"""Bounded rolling price series per asset.

Every tracked list is appended together and truncated from the front
together, so all lists stay the same length and index-aligned. Indicator
columns hold None until enough history exists.
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Optional, TYPE_CHECKING

import pandas as pd

from ..features.indicators import rsi, sma
from ..utils.logging import get_logger

if TYPE_CHECKING:
    from .assets import Asset
    from .messages import UpdateEvent

LOGGER = get_logger(__name__)

COLUMNS = ("labels", "price", "open", "high", "low", "close", "volume", "sma", "rsi")


class AssetSeries:
    """Fixed-size sliding window of samples for one asset."""

    def __init__(self, max_length: int = 100, sma_period: int = 20, rsi_period: int = 14):
        if max_length <= 0:
            raise ValueError("max_length must be > 0")
        self.max_length = int(max_length)
        self.sma_period = int(sma_period)
        self.rsi_period = int(rsi_period)
        # Total samples ever appended; not reduced by truncation
        self.tick_count = 0
        self.labels: List[str] = []
        self.price: List[float] = []
        self.open: List[float] = []
        self.high: List[float] = []
        self.low: List[float] = []
        self.close: List[float] = []
        self.volume: List[float] = []
        self.sma: List[Optional[float]] = []
        self.rsi: List[Optional[float]] = []

    def __len__(self) -> int:
        return len(self.price)

    def append(self, label: str, price: float, open: Optional[float] = None,
               high: Optional[float] = None, low: Optional[float] = None,
               close: Optional[float] = None, volume: float = 0) -> None:
        """Append one sample, recompute indicators and enforce the length cap."""
        open = price if open is None else open
        close = price if close is None else close
        high = max(open, close) if high is None else high
        low = min(open, close) if low is None else low

        self.labels.append(label)
        self.price.append(price)
        self.open.append(open)
        self.high.append(high)
        self.low.append(low)
        self.close.append(close)
        self.volume.append(volume)
        self.sma.append(sma(self.price, self.sma_period))
        self.rsi.append(rsi(self.price, self.rsi_period))
        self.tick_count += 1

        overflow = len(self.price) - self.max_length
        if overflow > 0:
            for name in COLUMNS:
                del getattr(self, name)[:overflow]

    def latest(self) -> Optional[float]:
        return self.price[-1] if self.price else None

    def to_frame(self) -> pd.DataFrame:
        """OHLCV plus indicator columns indexed by label."""
        return pd.DataFrame(
            {
                "Open": self.open,
                "High": self.high,
                "Low": self.low,
                "Close": self.close,
                "Volume": self.volume,
                "SMA": pd.array(self.sma, dtype="Float64"),
                "RSI": pd.array(self.rsi, dtype="Float64"),
            },
            index=pd.Index(self.labels, name="label"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "max_length": self.max_length,
            "sma_period": self.sma_period,
            "rsi_period": self.rsi_period,
            "tick_count": self.tick_count,
        }
        for name in COLUMNS:
            data[name] = list(getattr(self, name))
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AssetSeries":
        series = cls(
            max_length=data.get("max_length", 100),
            sma_period=data.get("sma_period", 20),
            rsi_period=data.get("rsi_period", 14),
        )
        columns = {name: list(data.get(name) or []) for name in COLUMNS}
        length = min(len(values) for values in columns.values())
        length = min(length, series.max_length)
        # Misaligned snapshots are cut to their common tail
        for name, values in columns.items():
            setattr(series, name, values[len(values) - length:])
        series.tick_count = max(int(data.get("tick_count", length)), length)
        return series


class SeriesStore:
    """Applies price lane batches to the interactive lane's assets."""

    def __init__(self, max_length: int = 100, sma_period: int = 20, rsi_period: int = 14):
        self.max_length = max_length
        self.sma_period = sma_period
        self.rsi_period = rsi_period

    def new_series(self) -> AssetSeries:
        return AssetSeries(self.max_length, self.sma_period, self.rsi_period)

    def seed(self, assets: Mapping[str, "Asset"], label: str) -> None:
        """Record the current price of every asset with an empty series."""
        for asset in assets.values():
            if asset.series is None:
                asset.series = self.new_series()
            if len(asset.series) == 0:
                asset.series.append(label, asset.price)

    def apply(self, assets: Mapping[str, "Asset"], event: "UpdateEvent", label: str) -> List[str]:
        """Apply one batch; returns the symbols that were updated.

        Unknown symbols and non-finite or non-positive prices are skipped for
        that asset only.
        """
        applied: List[str] = []
        for symbol, update in event.updates.items():
            asset = assets.get(symbol)
            if asset is None:
                LOGGER.warning(f"Update for unknown asset {symbol} ignored", extra={'symbol': symbol})
                continue
            if not math.isfinite(update.new_price) or update.new_price <= 0:
                LOGGER.warning(
                    f"Invalid price {update.new_price} for {symbol} ignored",
                    extra={'symbol': symbol, 'tick': event.tick},
                )
                continue
            asset.price = update.new_price
            asset.last_change = update.momentum
            if asset.series is None:
                asset.series = self.new_series()
            asset.series.append(
                label,
                update.new_price,
                open=update.open,
                high=update.high,
                low=update.low,
                close=update.close,
                volume=update.volume,
            )
            applied.append(symbol)

        for symbol, reason in event.failures.items():
            LOGGER.warning(
                f"Price update failed for {symbol}: {reason}",
                extra={'symbol': symbol, 'tick': event.tick, 'reason': reason},
            )
        return applied
