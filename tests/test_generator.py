"""Tests for the random-walk price generator."""
import math

import numpy as np
import pytest

from marketsim.market.assets import AssetType
from marketsim.market.generator import MIN_PRICE, GeneratorState, PriceGenerator


def test_equity_momentum(scripted_rng):
    # delta draw 0.5 -> 0.01, momentum 0.2 * 0.01 -> 0.002
    rng = scripted_rng([0.5, 0.003, 0.003, 1.0])
    gen = PriceGenerator(0.02, rng=rng)
    state = GeneratorState("AAPL", AssetType.EQUITY, price=100.0, last_change=0.01)

    update = gen.step(state)

    assert update.new_price == pytest.approx(101.2)
    assert state.price == update.new_price
    assert state.last_change == pytest.approx(0.012)
    assert update.momentum == pytest.approx(0.012)
    assert update.open == 100.0
    assert update.close == update.new_price
    assert update.high == pytest.approx(101.2 * 1.003)
    assert update.low == pytest.approx(100.0 * 0.997)
    assert update.volume == 11200


def test_forex_halves_volatility(scripted_rng):
    rng = scripted_rng([1.0, 0.002, 0.002, 1.0])
    gen = PriceGenerator(0.02, rng=rng)
    state = GeneratorState("EURUSD", AssetType.FOREX, price=1.0)

    update = gen.step(state)

    assert update.new_price == pytest.approx(1.01)


def test_forex_momentum(scripted_rng):
    rng = scripted_rng([0.0, 0.002, 0.002, 1.0])
    gen = PriceGenerator(0.02, rng=rng)
    state = GeneratorState("EURUSD", AssetType.FOREX, price=1.0, last_change=0.01)

    assert gen.step(state).new_price == pytest.approx(1.004)


def test_crypto_spike(scripted_rng):
    # no delta, spike roll 0.01 < 0.05, spike draw 1.0 -> (0.5) * 0.02 * 2
    rng = scripted_rng([0.0, 0.01, 1.0, 0.002, 0.002, 1.0])
    gen = PriceGenerator(0.02, rng=rng)
    state = GeneratorState("BTC", AssetType.CRYPTO, price=100.0)

    assert gen.step(state).new_price == pytest.approx(102.0)


def test_crypto_without_spike(scripted_rng):
    rng = scripted_rng([0.0, 0.5, 0.002, 0.002, 1.0])
    gen = PriceGenerator(0.02, rng=rng)
    state = GeneratorState("BTC", AssetType.CRYPTO, price=100.0)

    assert gen.step(state).new_price == pytest.approx(100.0)


def test_commodity_shock(scripted_rng):
    rng = scripted_rng([0.0, 0.01, 1.0, 0.002, 0.002, 1.0])
    gen = PriceGenerator(0.02, rng=rng)
    state = GeneratorState("OIL", AssetType.COMMODITY, price=100.0)

    assert gen.step(state).new_price == pytest.approx(103.0)


def test_price_clamped_to_minimum(scripted_rng):
    rng = scripted_rng([-1.0, 0.002, 0.002, 1.0])
    gen = PriceGenerator(0.02, rng=rng)
    state = GeneratorState("AAPL", AssetType.EQUITY, price=100.0, last_change=-10.0)

    update = gen.step(state)

    assert update.new_price == MIN_PRICE
    assert update.low > 0


def test_price_rounded_to_8_decimals(rng):
    gen = PriceGenerator(0.02, rng=rng)
    state = GeneratorState("DOGE", AssetType.CRYPTO, price=0.15, volatility=1.5)
    for _ in range(50):
        update = gen.step(state)
        assert round(update.new_price, 8) == update.new_price


def test_volume_base_by_type(scripted_rng):
    gen = PriceGenerator(0.02, rng=scripted_rng([1.0] * 4))
    assert gen.volume(AssetType.CRYPTO, 0.15, 0.0) == 1_000_000
    assert gen.volume(AssetType.CRYPTO, 40000, 0.0) == 1_000
    assert gen.volume(AssetType.FOREX, 1.09, 0.0) == 100_000
    assert gen.volume(AssetType.COMMODITY, 75.3, 0.0) == 1_000


def test_same_seed_same_path():
    def path(seed):
        gen = PriceGenerator(0.02, rng=np.random.default_rng(seed))
        state = GeneratorState("BTC", AssetType.CRYPTO, price=40000.0)
        return [gen.step(state).new_price for _ in range(100)]

    assert path(1) == path(1)
    assert path(1) != path(2)


def test_prices_stay_positive_and_finite(rng):
    gen = PriceGenerator(0.5, rng=rng)
    states = [
        GeneratorState("BTC", AssetType.CRYPTO, price=40000.0, volatility=1.5),
        GeneratorState("AAPL", AssetType.EQUITY, price=175.25, volatility=1.3),
        GeneratorState("EURUSD", AssetType.FOREX, price=1.09),
        GeneratorState("OIL", AssetType.COMMODITY, price=75.3),
    ]
    for _ in range(500):
        updates, failures = gen.step_all(states)
        assert not failures
        for update in updates.values():
            assert math.isfinite(update.new_price)
            assert update.new_price > 0
            assert update.low <= min(update.open, update.close)
            assert update.high >= max(update.open, update.close)


def test_failure_isolated_to_one_asset(rng):
    gen = PriceGenerator(0.02, rng=rng)
    good = GeneratorState("BTC", AssetType.CRYPTO, price=40000.0)
    bad = GeneratorState("BAD", AssetType.EQUITY, price=float("nan"), last_change=0.3)

    updates, failures = gen.step_all([bad, good])

    assert list(updates) == ["BTC"]
    assert len(failures) == 1
    assert failures[0].symbol == "BAD"
    assert math.isnan(bad.price)
    assert bad.last_change == 0.3
