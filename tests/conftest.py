"""
Pytest Configuration and Fixtures
==================================
Shared fixtures and configuration for all tests.
"""
import pytest
import numpy as np
from pathlib import Path
import sys

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from marketsim.market.assets import Asset, AssetType, build_assets
from marketsim.market.series import AssetSeries
from marketsim.paper.ledger import Portfolio


class ScriptedRng:
    """Stand-in for numpy's Generator that replays fixed uniform draws."""

    def __init__(self, values):
        self.values = list(values)

    def uniform(self, low=0.0, high=1.0):
        return self.values.pop(0)


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(42)


@pytest.fixture
def scripted_rng():
    return ScriptedRng


@pytest.fixture
def assets():
    """Fresh default catalogue keyed by symbol."""
    return build_assets()


@pytest.fixture
def portfolio(assets) -> Portfolio:
    """Portfolio with 10000 cash over the default catalogue."""
    return Portfolio(assets, initial_cash=10_000.0)


@pytest.fixture
def make_asset():
    """Build an asset whose series already holds ``prices`` (oldest first)."""
    def _make(prices=(), symbol="TEST", asset_type=AssetType.CRYPTO, amount=0.0, max_length=100):
        series = AssetSeries(max_length=max_length)
        for i, price in enumerate(prices):
            series.append(str(i), float(price))
        price = float(prices[-1]) if len(prices) else 100.0
        return Asset(symbol=symbol, name=symbol, asset_type=asset_type, price=price,
                     amount=amount, series=series)
    return _make


@pytest.fixture
def uptrend_prices():
    """30 strictly rising prices."""
    return [100.0 + i for i in range(30)]


@pytest.fixture
def downtrend_prices():
    """30 strictly falling prices."""
    return [200.0 - i for i in range(30)]
