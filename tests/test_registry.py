"""Tests for the strategy registry, manager and signal executor."""
import pytest

from marketsim.paper.ledger import Portfolio, TradeType
from marketsim.strategies import (
    REGISTRY,
    CustomStrategy,
    MovingAverageStrategy,
    RSIStrategy,
    SignalExecutor,
    StrategyManager,
    TradeSignal,
    make_strategy,
)


class SpyStrategy(MovingAverageStrategy):
    def __init__(self, name="spy"):
        super().__init__(name=name)
        self.calls = 0

    def evaluate(self, asset, portfolio):
        self.calls += 1
        return super().evaluate(asset, portfolio)


def test_registry_contents():
    assert set(REGISTRY) == {"moving_average", "rsi", "custom"}
    assert isinstance(make_strategy("RSI", period=7), RSIStrategy)


def test_make_strategy_unknown():
    with pytest.raises(KeyError, match="Unknown strategy: bollinger"):
        make_strategy("bollinger")


def test_defaults_start_inactive():
    manager = StrategyManager()
    assert set(manager.strategies) == {"moving_average", "rsi"}
    assert manager.active_strategies() == []
    assert all(not info["is_active"] for info in manager.available_strategies())


def test_config_defaults_applied():
    manager = StrategyManager({"rsi": {"period": 9, "cooldown_period": 3}})
    assert manager.get("rsi").parameters["period"] == 9
    assert manager.get("rsi").parameters["cooldown_period"] == 3


def test_unknown_name_raises():
    manager = StrategyManager()
    with pytest.raises(KeyError):
        manager.activate("nope")
    with pytest.raises(KeyError):
        manager.get("nope")


def test_only_active_strategies_evaluated(make_asset, portfolio, uptrend_prices):
    manager = StrategyManager(include_defaults=False)
    spy = manager.add(SpyStrategy())
    asset = make_asset(uptrend_prices)

    assert manager.evaluate(asset, portfolio) == []
    assert spy.calls == 0

    manager.activate("spy")
    signals = manager.evaluate(asset, portfolio)
    assert spy.calls == 1
    assert [s.strategy for s in signals] == ["spy"]

    manager.deactivate("spy")
    manager.evaluate(asset, portfolio)
    assert spy.calls == 1


def test_create_custom_strategy():
    manager = StrategyManager()
    rules = [{"indicator": "price", "condition": "above", "value": 1, "action": "buy"}]
    strategy = manager.create_custom_strategy("mine", rules)

    assert isinstance(strategy, CustomStrategy)
    assert not strategy.is_active
    with pytest.raises(ValueError):
        manager.create_custom_strategy("mine", rules)


def test_update_and_remove():
    manager = StrategyManager()
    manager.update_parameters("moving_average", {"short_period": 5})
    assert manager.get("moving_average").parameters["short_period"] == 5

    manager.activate("rsi")
    removed = manager.remove("rsi")
    assert not removed.is_active
    assert "rsi" not in manager


def test_strategy_performance(portfolio):
    portfolio.buy("BTC", 1000, strategy="rsi")
    portfolio.buy("ETH", 500, strategy="rsi")
    portfolio.sell("BTC", 0.01, strategy="rsi")
    portfolio.buy("GOLD", 300)

    stats = StrategyManager.strategy_performance("rsi", portfolio.transactions)

    assert stats["total_trades"] == 3
    assert stats["buys"] == 2
    assert stats["sells"] == 1
    assert stats["cash_spent"] == pytest.approx(1500)
    assert stats["cash_received"] == pytest.approx(400)
    assert stats["net_cash_flow"] == pytest.approx(-1100)


def test_manager_round_trip():
    manager = StrategyManager()
    manager.update_parameters("rsi", {"oversold": 25})
    manager.activate("rsi")
    manager.get("rsi").last_signal_tick = 42
    manager.create_custom_strategy("mine", [
        {"indicator": "rsi", "condition": "crossBelow", "value": 30, "action": "buy"},
    ])
    manager.activate("mine")

    restored = StrategyManager.from_dict(manager.to_dict())

    assert restored.get("rsi").is_active
    assert restored.get("rsi").parameters["oversold"] == 25
    assert restored.get("rsi").last_signal_tick == 42
    assert not restored.get("moving_average").is_active
    assert restored.get("mine").is_active
    assert restored.get("mine").rules[0].condition.value == "cross_below"


def test_round_trip_skips_broken_entries():
    data = {"strategies": {
        "broken": {"type": "custom", "parameters": {"rules": [{"indicator": "vwap"}]}},
        "ghost": {"type": "martingale", "parameters": {}},
    }}
    restored = StrategyManager.from_dict(data)
    assert set(restored.strategies) == {"moving_average", "rsi"}


def test_from_dict_rejects_non_mapping_sections():
    with pytest.raises(TypeError):
        StrategyManager.from_dict({"strategies": ["bad"]})
    with pytest.raises(TypeError):
        StrategyManager.from_dict(["bad"])


def test_from_dict_skips_bad_state():
    data = {"strategies": {
        "rsi": {"type": "rsi", "parameters": {}, "state": {"last_signal_tick": "x"}, "is_active": True},
        "moving_average": "not a mapping",
        "mine": {"type": "custom", "is_active": True, "parameters": {"rules": [
            {"indicator": "price", "condition": "above", "value": 1, "action": "buy"},
        ]}},
    }}
    restored = StrategyManager.from_dict(data)

    assert restored.get("rsi").last_signal_tick is None
    assert not restored.get("rsi").is_active
    assert not restored.get("moving_average").is_active
    assert restored.get("mine").is_active


# Executor

def _signal(direction, **kwargs):
    return TradeSignal(direction=direction, symbol="BTC", reason="test", price=40000.0,
                       strategy="rsi", **kwargs)


def test_executor_applies_signal(portfolio):
    executor = SignalExecutor(portfolio)
    result = executor.execute(_signal(TradeType.BUY, cash_amount=4000))

    assert result.ok
    assert result.transaction.strategy == "rsi"
    assert portfolio.holding("BTC") == pytest.approx(0.1)


def test_executor_reports_rejection(assets):
    portfolio = Portfolio(assets, initial_cash=100)
    executor = SignalExecutor(portfolio)

    results = executor.execute_all([
        _signal(TradeType.BUY, cash_amount=500),
        _signal(TradeType.SELL, asset_amount=1),
        _signal(TradeType.BUY, cash_amount=40),
    ])

    assert [r.ok for r in results] == [False, False, True]
    assert results[0].error.startswith("Insufficient cash balance")
    assert portfolio.cash == pytest.approx(60)
    assert len(portfolio.transactions) == 1
