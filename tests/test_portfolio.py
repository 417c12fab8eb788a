"""Tests for the portfolio ledger."""
import math

import numpy as np
import pytest

from marketsim.errors import InsufficientFunds, InvalidAmount, UnknownAsset
from marketsim.paper.ledger import Portfolio, TradeType


def test_buy_sell_scenario(portfolio):
    """10000 cash, BTC at 40000: buy 4000 then sell 0.05 BTC."""
    tx = portfolio.buy("BTC", 4000)
    assert portfolio.holding("BTC") == pytest.approx(0.1)
    assert portfolio.cash == pytest.approx(6000)
    assert tx.type == TradeType.BUY
    assert tx.asset_amount == pytest.approx(0.1)
    assert tx.price == 40000.0

    tx = portfolio.sell("BTC", 0.05)
    assert portfolio.cash == pytest.approx(8000)
    assert portfolio.holding("BTC") == pytest.approx(0.05)
    assert tx.cash_amount == pytest.approx(2000)
    assert len(portfolio.transactions) == 2


def test_round_trip_restores_cash(portfolio):
    tx = portfolio.buy("DOGE", 1234.56)
    portfolio.sell("DOGE", tx.asset_amount)
    assert portfolio.cash == pytest.approx(10_000.0, abs=1e-6)
    assert portfolio.holding("DOGE") == pytest.approx(0.0, abs=1e-12)


@pytest.mark.parametrize("amount", [0, -5, float("nan"), float("inf")])
def test_buy_invalid_amount(portfolio, amount):
    with pytest.raises(InvalidAmount):
        portfolio.buy("BTC", amount)
    assert portfolio.cash == 10_000.0
    assert not portfolio.transactions


def test_buy_insufficient_funds_does_not_mutate(portfolio):
    with pytest.raises(InsufficientFunds):
        portfolio.buy("BTC", 10_000.01)
    assert portfolio.cash == 10_000.0
    assert portfolio.holding("BTC") == 0.0
    assert not portfolio.value_history


def test_numeric_string_amounts(portfolio):
    portfolio.buy("ETH", "2800")
    assert portfolio.cash == pytest.approx(7200.0)
    with pytest.raises(InsufficientFunds):
        portfolio.buy("BTC", "100000")
    with pytest.raises(InvalidAmount):
        portfolio.buy("BTC", "lots")
    with pytest.raises(InvalidAmount):
        portfolio.sell("ETH", "2")
    portfolio.sell("ETH", "0.5")
    assert portfolio.holding("ETH") == pytest.approx(0.5)
    assert isinstance(portfolio.transactions[-1].asset_amount, float)


def test_insufficient_funds_is_invalid_amount():
    assert issubclass(InsufficientFunds, InvalidAmount)


def test_unknown_asset(portfolio):
    with pytest.raises(UnknownAsset, match="Asset XYZ not found"):
        portfolio.buy("XYZ", 100)
    with pytest.raises(UnknownAsset):
        portfolio.sell("XYZ", 1)


def test_sell_more_than_held(portfolio):
    portfolio.buy("ETH", 2800)
    with pytest.raises(InvalidAmount):
        portfolio.sell("ETH", 1.5)
    with pytest.raises(InvalidAmount):
        portfolio.sell("ETH", 0)
    assert portfolio.holding("ETH") == pytest.approx(1.0)


def test_invariants_random_sequence(portfolio):
    rng = np.random.default_rng(3)
    symbols = list(portfolio.assets)
    for _ in range(300):
        symbol = symbols[rng.integers(len(symbols))]
        asset = portfolio.assets[symbol]
        asset.price = max(1e-8, asset.price * (1 + rng.normal(0, 0.05)))
        try:
            if rng.random() < 0.5:
                portfolio.buy(symbol, float(rng.uniform(-10, portfolio.cash * 0.6 + 1)))
            else:
                portfolio.sell(symbol, float(rng.uniform(-0.1, 1.2)) * asset.amount)
        except InvalidAmount:
            pass
        assert portfolio.cash >= 0
        assert all(a.amount >= 0 for a in portfolio.assets.values())
        assert math.isfinite(portfolio.total_value())


def test_total_value_ignores_invalid_components(portfolio):
    portfolio.buy("BTC", 4000)
    portfolio.assets["ETH"].amount = 1.0
    portfolio.assets["ETH"].price = float("nan")
    assert portfolio.total_value() == pytest.approx(10_000.0)


def test_value_and_roi_idempotent(portfolio):
    portfolio.buy("BTC", 4000)
    portfolio.assets["BTC"].price = 44000.0
    first = (portfolio.total_value(), portfolio.roi())
    assert first == (portfolio.total_value(), portfolio.roi())
    assert first[0] == pytest.approx(10_400.0)
    assert first[1] == pytest.approx(4.0)


def test_roi_zero_initial_investment(assets):
    portfolio = Portfolio(assets, initial_cash=0)
    assert portfolio.roi() == 0.0


def test_histories_capped(assets):
    portfolio = Portfolio(assets, initial_cash=10_000, history_limit=100)
    for _ in range(120):
        portfolio.buy("DOGE", 1)
    assert len(portfolio.transactions) == 100
    assert len(portfolio.value_history) == 100
    for _ in range(10):
        portfolio.record_value()
    assert len(portfolio.value_history) == 100


def test_strategy_attribution(portfolio):
    tx = portfolio.buy("BTC", 100, strategy="rsi")
    assert tx.strategy == "rsi"
    assert tx.portfolio_value_after == pytest.approx(10_000.0)


def test_asset_allocation(portfolio):
    portfolio.buy("BTC", 2500)
    allocation = {a["symbol"]: a["percentage"] for a in portfolio.asset_allocation()}
    assert allocation == pytest.approx({"BTC": 25.0, "USD": 75.0})


def test_select_asset(portfolio):
    assert portfolio.selected_symbol == "BTC"
    portfolio.select_asset("GOLD")
    assert portfolio.selected_asset.symbol == "GOLD"
    with pytest.raises(UnknownAsset):
        portfolio.select_asset("NOPE")


def test_dict_roundtrip(portfolio, assets):
    portfolio.buy("BTC", 4000, strategy="moving_average")
    portfolio.select_asset("ETH")
    data = portfolio.to_dict()

    restored = Portfolio.from_dict(data)

    assert restored.cash == pytest.approx(6000)
    assert restored.holding("BTC") == pytest.approx(0.1)
    assert restored.selected_symbol == "ETH"
    assert restored.transactions[0].strategy == "moving_average"
    assert restored.total_value() == pytest.approx(portfolio.total_value())
