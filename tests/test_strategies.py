"""Tests for the built-in moving average and RSI strategies."""
import pytest

from marketsim.paper.ledger import Portfolio, TradeType
from marketsim.strategies.moving_average import MovingAverageStrategy
from marketsim.strategies.rsi import RSIStrategy


@pytest.fixture
def cash_portfolio(assets):
    return Portfolio(assets, initial_cash=10_000.0)


def test_ma_needs_long_period(make_asset, cash_portfolio):
    strategy = MovingAverageStrategy(short_period=10, long_period=20, signal_threshold=0.002)
    asset = make_asset([100.0 + i for i in range(19)])

    assert strategy.evaluate(asset, cash_portfolio) is None
    strategy.activate()
    assert strategy.evaluate(asset, cash_portfolio) is None


def test_ma_buy_on_uptrend(make_asset, cash_portfolio, uptrend_prices):
    strategy = MovingAverageStrategy()
    asset = make_asset(uptrend_prices, symbol="BTC")

    signal = strategy.evaluate(asset, cash_portfolio)

    assert signal.direction == TradeType.BUY
    assert signal.cash_amount == pytest.approx(1000.0)
    assert signal.asset_amount is None
    assert signal.strategy == "moving_average"
    assert signal.price == uptrend_prices[-1]
    assert "above" in signal.reason


def test_ma_sell_on_downtrend(make_asset, cash_portfolio, downtrend_prices):
    strategy = MovingAverageStrategy()
    asset = make_asset(downtrend_prices, amount=2.0)

    signal = strategy.evaluate(asset, cash_portfolio)

    assert signal.direction == TradeType.SELL
    assert signal.asset_amount == pytest.approx(0.2)


def test_ma_no_sell_without_holding(make_asset, cash_portfolio, downtrend_prices):
    asset = make_asset(downtrend_prices)
    assert MovingAverageStrategy().evaluate(asset, cash_portfolio) is None


def test_ma_threshold_not_met(make_asset, cash_portfolio):
    asset = make_asset([100.0] * 30)
    assert MovingAverageStrategy().evaluate(asset, cash_portfolio) is None


def test_ma_min_notional(make_asset, assets, uptrend_prices):
    poor = Portfolio(assets, initial_cash=99.0)
    asset = make_asset(uptrend_prices)
    assert MovingAverageStrategy().evaluate(asset, poor) is None


def _rsi_path():
    """Choppy prices for ticks 1-9, then a steady decline from tick 10."""
    choppy = [100.0, 101.0] * 4 + [100.0]
    falling = [90.0 - i for i in range(20)]
    return choppy + falling


def test_rsi_cooldown_scenario(make_asset, cash_portfolio):
    strategy = RSIStrategy(period=5, overbought=70, oversold=30, cooldown_period=6)
    asset = make_asset([])

    signal_ticks = []
    for price in _rsi_path():
        asset.price = price
        asset.series.append(str(asset.series.tick_count), price)
        signal = strategy.evaluate(asset, cash_portfolio)
        if signal is not None:
            assert signal.direction == TradeType.BUY
            assert signal.cash_amount == pytest.approx(2500.0)
            signal_ticks.append(asset.series.tick_count)

    assert signal_ticks[:2] == [10, 16]
    assert signal_ticks == [10, 16, 22, 28]


def test_rsi_cooldown_survives_full_series(make_asset, cash_portfolio):
    strategy = RSIStrategy(period=5, cooldown_period=6)
    asset = make_asset([200.0 - i for i in range(100)], max_length=100)

    first = strategy.evaluate(asset, cash_portfolio)
    assert first is not None
    for i in range(5):
        asset.series.append("x", 100.0 - i)
        assert strategy.evaluate(asset, cash_portfolio) is None
    asset.series.append("x", 90.0)
    assert strategy.evaluate(asset, cash_portfolio) is not None


def test_rsi_cooldown_is_per_asset(make_asset, cash_portfolio, downtrend_prices):
    strategy = RSIStrategy(period=5, cooldown_period=6)
    btc = make_asset(downtrend_prices, symbol="BTC")
    eth = make_asset(downtrend_prices[:10], symbol="ETH")

    assert strategy.evaluate(btc, cash_portfolio) is not None
    assert strategy.last_signal_symbol == "BTC"
    # ETH has fewer ticks than BTC; its counter must not be read against the BTC signal
    assert strategy.evaluate(eth, cash_portfolio) is not None
    assert strategy.last_signal_symbol == "ETH"
    assert strategy.evaluate(eth, cash_portfolio) is None

    strategy.load_state({"last_signal_tick": 3, "last_signal_symbol": "ETH"})
    assert strategy.in_cooldown(5, "ETH")
    assert not strategy.in_cooldown(5, "BTC")


def test_rsi_overbought_sells_quarter(make_asset, cash_portfolio, uptrend_prices):
    strategy = RSIStrategy()
    asset = make_asset(uptrend_prices, amount=4.0)

    signal = strategy.evaluate(asset, cash_portfolio)

    assert signal.direction == TradeType.SELL
    assert signal.asset_amount == pytest.approx(1.0)
    assert signal.indicators["rsi"] == 100.0
    assert signal.reason == "RSI overbought at 100.00"


def test_rsi_parameter_validation():
    strategy = RSIStrategy()
    with pytest.raises(ValueError):
        strategy.update_parameters({"oversold": 80})
    assert strategy.parameters["oversold"] == 30.0
    strategy.update_parameters({"cooldown_period": 2})
    assert strategy.parameters["cooldown_period"] == 2


def test_info_and_state():
    strategy = RSIStrategy()
    strategy.activate()
    strategy.last_signal_tick = 12
    data = strategy.to_dict()
    assert data["is_active"] is True
    assert data["type"] == "rsi"
    assert data["state"] == {"last_signal_tick": 12, "last_signal_symbol": None}
