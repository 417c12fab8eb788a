"""Tests for the background price lane."""
import numpy as np
import pytest

from marketsim.market.assets import AssetType, build_assets
from marketsim.market.generator import GeneratorState, states_from_assets
from marketsim.market.messages import (
    ErrorEvent,
    StartCommand,
    StartedEvent,
    StopCommand,
    UpdateEvent,
    UpdateSpeedCommand,
)
from marketsim.market.worker import PriceEngine, PriceWorker, interval_ms


@pytest.mark.parametrize("speed,expected", [
    (1, 1000),
    (3, 333),
    (2.5, 400),
    (20, 50),
    (100, 50),
])
def test_interval_ms(speed, expected):
    assert interval_ms(speed) == expected


def test_interval_rejects_non_positive_speed():
    with pytest.raises(ValueError):
        interval_ms(0)
    with pytest.raises(ValueError):
        UpdateSpeedCommand(-1)
    with pytest.raises(ValueError):
        StartCommand(0.02, 0, [])


def _states():
    return [
        GeneratorState("BTC", AssetType.CRYPTO, 40000.0, volatility=1.5),
        GeneratorState("EURUSD", "forex", 1.09),
    ]


def test_engine_requires_start():
    engine = PriceEngine(rng=np.random.default_rng(0))
    with pytest.raises(RuntimeError):
        engine.tick()


def test_engine_start_and_tick():
    engine = PriceEngine(rng=np.random.default_rng(0))
    events = engine.handle(StartCommand(0.02, 1.0, _states()))

    assert events == [StartedEvent()]
    assert events[0].message == "Price updates started"

    first = engine.tick()
    second = engine.tick()
    assert isinstance(first, UpdateEvent)
    assert (first.tick, second.tick) == (1, 2)
    assert set(second.updates) == {"BTC", "EURUSD"}
    assert second.updates["BTC"].previous_price == first.updates["BTC"].new_price


def test_start_command_snapshots_assets():
    states = _states()
    command = StartCommand(0.02, 1.0, states)
    states[0].price = 1.0

    engine = PriceEngine(rng=np.random.default_rng(0))
    engine.handle(command)
    engine.tick()

    assert command.assets[0].price == 40000.0
    assert states[0].price == 1.0
    assert engine.states["BTC"] is not command.assets[0]


def test_engine_does_not_touch_interactive_assets():
    assets = build_assets()
    engine = PriceEngine(rng=np.random.default_rng(1))
    engine.handle(StartCommand(0.02, 1.0, states_from_assets(assets)))
    for _ in range(5):
        engine.tick()

    assert assets["BTC"].price == 40000.0
    assert assets["BTC"].last_change == 0.0


def test_speed_change_keeps_state():
    engine = PriceEngine(rng=np.random.default_rng(0))
    engine.handle(StartCommand(0.02, 1.0, _states()))
    last = engine.tick().updates["BTC"].new_price

    assert engine.handle(UpdateSpeedCommand(4.0)) == []
    assert engine.interval_ms == 250
    assert engine.tick().updates["BTC"].previous_price == last
    assert engine.tick_count == 2


def test_stop_halts_engine():
    engine = PriceEngine(rng=np.random.default_rng(0))
    engine.handle(StartCommand(0.02, 1.0, _states()))
    engine.handle(StopCommand())
    assert not engine.running
    with pytest.raises(RuntimeError):
        engine.tick()


def test_same_seed_same_events():
    def run(seed):
        engine = PriceEngine(rng=np.random.default_rng(seed))
        engine.handle(StartCommand(0.02, 1.0, _states()))
        return [engine.tick().updates["BTC"].new_price for _ in range(20)]

    assert run(7) == run(7)


def test_worker_emits_updates():
    worker = PriceWorker(PriceEngine(rng=np.random.default_rng(0)))
    worker.start()
    try:
        worker.send(StartCommand(0.02, 20.0, _states()))
        assert isinstance(worker.poll(timeout=2.0), StartedEvent)
        event = worker.poll(timeout=2.0)
        assert isinstance(event, UpdateEvent)
        assert event.tick == 1
    finally:
        worker.stop()
    assert not worker.is_alive


class ExplodingEngine(PriceEngine):
    def tick(self):
        raise ArithmeticError("boom")


def test_worker_reports_tick_errors():
    worker = PriceWorker(ExplodingEngine(rng=np.random.default_rng(0)))
    worker.start()
    try:
        worker.send(StartCommand(0.02, 20.0, _states()))
        assert isinstance(worker.poll(timeout=2.0), StartedEvent)
        event = worker.poll(timeout=2.0)
        assert isinstance(event, ErrorEvent)
        assert event.message == "boom"
        # Scheduled ticks stop after the failure
        assert worker.poll(timeout=0.3) is None
    finally:
        worker.stop()


def test_poll_without_events():
    worker = PriceWorker()
    assert worker.poll() is None
    assert worker.drain() == []
    worker.stop()
