"""Heuristic random-walk price generator.

Each tick moves a price by a symmetric uniform draw scaled by the base
volatility and the asset's volatility factor, plus an asset-type adjustment:

- crypto: 5% chance of a volatility spike ``(U - 0.5) * vol * 2``
- equity: momentum ``0.2 * last_change``
- forex: momentum ``0.4 * last_change`` with volatility halved before the draw
- commodity: 2% chance of a supply shock ``(U - 0.5) * vol * 3``

new_price = old_price * (1 + delta + adjustment), rounded to 8 decimals and
clamped to MIN_PRICE so a pathological draw can never produce a price <= 0.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from ..errors import GeneratorFailure
from .assets import AssetType

MIN_PRICE = 1e-8
PRICE_DECIMALS = 8

CRYPTO_SPIKE_PROBABILITY = 0.05
COMMODITY_SHOCK_PROBABILITY = 0.02
EQUITY_MOMENTUM = 0.2
FOREX_MOMENTUM = 0.4

WICK_MIN = 0.002
WICK_MAX = 0.005


@dataclass
class GeneratorState:
    """Per-asset state carried between ticks inside the price lane."""
    symbol: str
    asset_type: AssetType
    price: float
    volatility: float = 1.0
    last_change: float = 0.0

    def __post_init__(self):
        self.asset_type = AssetType.parse(self.asset_type)


@dataclass(frozen=True)
class PriceUpdate:
    symbol: str
    previous_price: float
    new_price: float
    change: float
    momentum: float
    open: float
    high: float
    low: float
    close: float
    volume: int

    def to_dict(self) -> Dict[str, float]:
        return {
            "symbol": self.symbol,
            "previous_price": self.previous_price,
            "new_price": self.new_price,
            "change": self.change,
            "momentum": self.momentum,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


def states_from_assets(assets) -> List[GeneratorState]:
    """Plain generator snapshot of the interactive lane's assets."""
    return [
        GeneratorState(
            symbol=asset.symbol,
            asset_type=asset.asset_type,
            price=asset.price,
            volatility=asset.volatility,
            last_change=asset.last_change,
        )
        for asset in assets.values()
    ]


def base_volume(asset_type: AssetType, price: float) -> int:
    if asset_type == AssetType.CRYPTO:
        return 1_000_000 if price < 1 else 1_000
    if asset_type == AssetType.EQUITY:
        return 10_000
    if asset_type == AssetType.FOREX:
        return 100_000
    return 1_000


class PriceGenerator:
    """Stateless stepping rules; all per-asset state lives in GeneratorState."""

    def __init__(self, base_volatility: float = 0.02, rng: Optional[np.random.Generator] = None):
        if base_volatility < 0:
            raise ValueError("base_volatility must be >= 0")
        self.base_volatility = float(base_volatility)
        self.rng = rng if rng is not None else np.random.default_rng()

    def _uniform(self, low: float = 0.0, high: float = 1.0) -> float:
        return float(self.rng.uniform(low, high))

    def adjustment(self, state: GeneratorState, volatility: float) -> float:
        """Asset-type specific term added to the random delta."""
        if state.asset_type == AssetType.CRYPTO:
            if self._uniform() < CRYPTO_SPIKE_PROBABILITY:
                return (self._uniform() - 0.5) * volatility * 2
            return 0.0
        if state.asset_type == AssetType.EQUITY:
            return EQUITY_MOMENTUM * state.last_change
        if state.asset_type == AssetType.FOREX:
            return FOREX_MOMENTUM * state.last_change
        if state.asset_type == AssetType.COMMODITY:
            if self._uniform() < COMMODITY_SHOCK_PROBABILITY:
                return (self._uniform() - 0.5) * volatility * 3
            return 0.0
        return 0.0

    def next_price(self, state: GeneratorState) -> float:
        """Advance ``state`` by one tick and return the new price."""
        if not math.isfinite(state.price) or state.price <= 0:
            raise ValueError(f"invalid price {state.price!r}")

        volatility = self.base_volatility * (state.volatility or 1.0)
        if state.asset_type == AssetType.FOREX:
            volatility *= 0.5

        delta = self._uniform(-1.0, 1.0) * volatility
        total_change = delta + self.adjustment(state, volatility)

        new_price = round(state.price * (1 + total_change), PRICE_DECIMALS)
        if not math.isfinite(new_price):
            raise ValueError(f"non-finite price after change {total_change!r}")
        new_price = max(MIN_PRICE, new_price)

        state.last_change = total_change
        return new_price

    def volume(self, asset_type: AssetType, price: float, change: float) -> int:
        factor = 1 + abs(change) * 10
        return int(math.floor(base_volume(asset_type, price) * factor * self._uniform(0.5, 1.5)))

    def candle(self, open_: float, close: float) -> Tuple[float, float]:
        """High/low wicks bracketing the open and close."""
        high = max(open_, close) * (1 + self._uniform(WICK_MIN, WICK_MAX))
        low = min(open_, close) * (1 - self._uniform(WICK_MIN, WICK_MAX))
        return high, max(MIN_PRICE, low)

    def step(self, state: GeneratorState) -> PriceUpdate:
        """Move one asset forward and describe the move."""
        previous = state.price
        new_price = self.next_price(state)
        change = (new_price - previous) / previous
        high, low = self.candle(previous, new_price)
        update = PriceUpdate(
            symbol=state.symbol,
            previous_price=previous,
            new_price=new_price,
            change=change,
            momentum=state.last_change,
            open=previous,
            high=high,
            low=low,
            close=new_price,
            volume=self.volume(state.asset_type, previous, change),
        )
        state.price = new_price
        return update

    def step_all(self, states: Iterable[GeneratorState]) -> Tuple[Dict[str, PriceUpdate], List[GeneratorFailure]]:
        """Step every asset; one asset failing does not stop the batch.

        A failed asset keeps its previous price and momentum and is reported
        in the returned failure list.
        """
        updates: Dict[str, PriceUpdate] = {}
        failures: List[GeneratorFailure] = []
        for state in states:
            snapshot = (state.price, state.last_change)
            try:
                updates[state.symbol] = self.step(state)
            except Exception as exc:
                state.price, state.last_change = snapshot
                failures.append(GeneratorFailure(state.symbol, str(exc)))
        return updates, failures
