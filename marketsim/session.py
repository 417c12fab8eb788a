"""Interactive lane of the simulation.

SimulationSession is the single writer of all trading state: it owns the
ledger, strategies, conditional orders and recurring investments, and
consumes price batches from the background PriceWorker. Nothing here is
shared with the price lane except the message payloads.
"""
from __future__ import annotations

import threading
import time
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Optional, Union

import numpy as np

from .config.manager import ConfigManager
from .config.schemas import Config
from .errors import InvalidAmount
from .market.assets import build_assets
from .market.generator import states_from_assets
from .market.messages import ErrorEvent, StartCommand, StartedEvent, UpdateEvent, UpdateSpeedCommand
from .market.series import SeriesStore
from .market.worker import PriceEngine, PriceWorker
from .paper.io import load_state, restore_portfolio, save_state
from .paper.ledger import Portfolio, Transaction, TradeType
from .paper.orders import ConditionalOrder, OrderBook, make_order
from .paper.recurring import RecurringInvestment, RecurringSchedule
from .strategies.custom import CustomStrategy
from .strategies.executor import ExecutionResult, SignalExecutor
from .strategies.registry import StrategyManager
from .utils.logging import TradeLogger, get_logger

LOGGER = get_logger(__name__)


def _time_label() -> str:
    return datetime.now().strftime("%H:%M:%S")


class SimulationSession:
    """One running simulation.

    Usage:
        with SimulationSession(ConfigManager.from_yaml("configs/default.yaml")) as session:
            session.activate_strategy("rsi")
            session.run(duration=60)
            print(session.snapshot()["total_value"])
    """

    def __init__(self, config: Union[ConfigManager, Config, None] = None,
                 worker: Optional[PriceWorker] = None,
                 rng: Optional[np.random.Generator] = None,
                 clock: Callable[[], float] = time.monotonic,
                 label_fn: Callable[[], str] = _time_label):
        if isinstance(config, ConfigManager):
            config = config.config
        self.config: Config = config or Config()
        self.clock = clock
        self.label_fn = label_fn

        sim = self.config.simulation
        series = self.config.series
        self.series_store = SeriesStore(series.max_length, series.sma_period, series.rsi_period)
        self.speed_multiplier = sim.speed_multiplier
        self.state_file: Optional[Path] = (
            Path(self.config.portfolio.state_file) if self.config.portfolio.state_file else None
        )

        assets = build_assets(
            [a.model_dump() for a in self.config.assets],
            max_length=series.max_length,
            sma_period=series.sma_period,
            rsi_period=series.rsi_period,
        )
        self.portfolio = Portfolio(
            assets,
            initial_cash=self.config.portfolio.initial_cash,
            history_limit=self.config.portfolio.history_limit,
        )
        self.strategies = self._build_strategies()
        self.orders = OrderBook()
        self.recurring = RecurringSchedule(self.speed_multiplier, clock=clock)
        self.executed: Deque[ExecutionResult] = deque(maxlen=self.config.portfolio.history_limit)

        if self.config.portfolio.selected_asset:
            self.portfolio.select_asset(self.config.portfolio.selected_asset)
        # A restored snapshot keeps its own selection
        if self.state_file is not None:
            self._restore(self.state_file)
        self.executor = SignalExecutor(self.portfolio)

        if worker is None:
            rng = rng if rng is not None else np.random.default_rng(sim.seed)
            worker = PriceWorker(PriceEngine(rng=rng, min_interval_ms=sim.min_interval_ms))
        self.worker = worker

        self.started = False
        self.closed = False
        self.last_tick = 0
        self._restart_at: Optional[float] = None
        self._last_housekeeping: Optional[float] = None

    # Setup

    def _build_strategies(self) -> StrategyManager:
        cfg = self.config.strategies
        manager = StrategyManager(defaults={
            "moving_average": cfg.moving_average.model_dump(),
            "rsi": cfg.rsi.model_dump(),
        })
        for name, rules in cfg.custom.items():
            manager.create_custom_strategy(name, rules)
        for name in cfg.active:
            manager.activate(name)
        return manager

    def _restore(self, path: Path) -> None:
        data = load_state(path)
        if data is None:
            LOGGER.info("Starting from fresh state")
            return
        portfolio = restore_portfolio(data, catalogue=self.portfolio.assets)
        if portfolio is None:
            return
        self.portfolio = portfolio
        if data.get("strategies"):
            try:
                self.strategies = StrategyManager.from_dict(data["strategies"])
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                LOGGER.warning(f"Ignoring saved strategies: {e}")
        try:
            self.orders.load(data.get("orders") or [])
        except (KeyError, TypeError, ValueError) as e:
            LOGGER.warning(f"Ignoring saved orders: {e}")
        LOGGER.info(f"State restored from {path}")

    def start_command(self) -> StartCommand:
        """Snapshot of current prices and momentum for the price lane."""
        return StartCommand(
            volatility=self.config.simulation.base_volatility,
            speed_multiplier=self.speed_multiplier,
            assets=states_from_assets(self.portfolio.assets),
        )

    # Price lane control

    def start(self) -> None:
        if self.started:
            LOGGER.warning("Session already started")
            return
        self.series_store.seed(self.portfolio.assets, self.label_fn())
        self.worker.start()
        self.worker.send(self.start_command())
        self.started = True
        self._last_housekeeping = self.clock()
        LOGGER.info(f"Session started with {len(self.portfolio.assets)} assets at speed {self.speed_multiplier}x")

    def set_speed(self, multiplier: float) -> None:
        if multiplier <= 0:
            raise ValueError("speed multiplier must be > 0")
        self.speed_multiplier = float(multiplier)
        self.recurring.set_speed(self.speed_multiplier)
        if self.started:
            self.worker.send(UpdateSpeedCommand(self.speed_multiplier))
        LOGGER.info(f"Speed set to {self.speed_multiplier}x")

    def process_events(self, timeout: float = 0.0) -> int:
        """Apply every event waiting from the price lane; returns how many."""
        count = 0
        event = self.worker.poll(timeout)
        while event is not None:
            self.handle_event(event)
            count += 1
            event = self.worker.poll()
        return count

    def handle_event(self, event) -> None:
        if isinstance(event, UpdateEvent):
            self.series_store.apply(self.portfolio.assets, event, self.label_fn())
            self.last_tick = event.tick
            self.orders.evaluate(self.portfolio)
        elif isinstance(event, StartedEvent):
            LOGGER.info(event.message, extra={'event_type': 'started'})
        elif isinstance(event, ErrorEvent):
            delay = self.config.simulation.restart_delay_seconds
            LOGGER.error(
                f"Price lane error: {event.message}; restarting in {delay}s",
                extra={'event_type': 'error', 'reason': event.message},
            )
            self._restart_at = self.clock() + delay
        else:
            LOGGER.warning(f"Unknown event ignored: {event!r}")

    def _maybe_restart(self) -> None:
        if self._restart_at is None or self.clock() < self._restart_at:
            return
        self._restart_at = None
        if not self.worker.is_alive:
            self.worker.start()
        self.worker.send(self.start_command())
        LOGGER.info("Price lane restarted")

    # Interactive loop

    def housekeeping(self) -> List[ExecutionResult]:
        """Record a value snapshot and run active strategies on the selected asset."""
        self.portfolio.record_value()
        asset = self.portfolio.selected_asset
        if asset is None:
            return []
        signals = self.strategies.evaluate(asset, self.portfolio)
        results = self.executor.execute_all(signals)
        self.executed.extend(results)
        return results

    def step(self, timeout: float = 0.0) -> None:
        self.process_events(timeout)
        self._maybe_restart()
        self.recurring.run_due(self.portfolio)
        now = self.clock()
        interval = self.config.simulation.housekeeping_interval_seconds
        if self._last_housekeeping is None or now - self._last_housekeeping >= interval:
            self._last_housekeeping = now
            self.housekeeping()

    def run(self, duration: Optional[float] = None,
            stop_event: Optional[threading.Event] = None, poll_interval: float = 0.05) -> None:
        """Drive the session until ``duration`` seconds pass or ``stop_event`` is set."""
        if not self.started:
            self.start()
        deadline = None if duration is None else self.clock() + duration
        while not self.closed:
            if stop_event is not None and stop_event.is_set():
                break
            if deadline is not None and self.clock() >= deadline:
                break
            self.step(timeout=poll_interval)

    # Manual trading

    def trade(self, symbol: str, direction: Union[str, TradeType], amount: float) -> Transaction:
        """Manual buy (``amount`` in cash) or sell (``amount`` in units).

        Ledger errors propagate to the caller.
        """
        try:
            direction = TradeType(str(getattr(direction, "value", direction)).upper())
        except ValueError:
            raise InvalidAmount(f"Unknown trade direction: {direction}") from None
        with TradeLogger(LOGGER, symbol, None) as trade_log:
            if direction == TradeType.BUY:
                transaction = self.portfolio.buy(symbol, amount)
            else:
                transaction = self.portfolio.sell(symbol, amount)
            trade_log.log_execution(direction.value, transaction.asset_amount, transaction.price)
        return transaction

    def select_asset(self, symbol: str) -> None:
        self.portfolio.select_asset(symbol)

    # Strategies

    def activate_strategy(self, name: str) -> None:
        self.strategies.activate(name)

    def deactivate_strategy(self, name: str) -> None:
        self.strategies.deactivate(name)

    def update_strategy(self, name: str, parameters: Dict[str, Any]) -> None:
        self.strategies.update_parameters(name, parameters)

    def create_custom_strategy(self, name: str, rules: List[Dict[str, Any]]) -> CustomStrategy:
        return self.strategies.create_custom_strategy(name, rules)

    def remove_strategy(self, name: str) -> None:
        self.strategies.remove(name)

    # Orders and recurring investments

    def add_order(self, order_type: str, symbol: str, amount: float,
                  trigger_price: Optional[float] = None, **params: Any) -> ConditionalOrder:
        """Place a conditional order. A trailing stop without a trigger price
        starts its watermark at the current price.
        """
        asset = self.portfolio.get_asset(symbol)
        if trigger_price is None:
            trigger_price = asset.price
        order = make_order(order_type, symbol=symbol, amount=amount, trigger_price=trigger_price, **params)
        return self.orders.add(order)

    def cancel_order(self, order_id: int) -> Optional[ConditionalOrder]:
        return self.orders.cancel(order_id)

    def schedule_recurring(self, symbol: str, cash_amount: float,
                           interval_seconds: float) -> RecurringInvestment:
        self.portfolio.get_asset(symbol)
        return self.recurring.add(RecurringInvestment(symbol, cash_amount, interval_seconds))

    def cancel_recurring(self, plan_id: int) -> Optional[RecurringInvestment]:
        return self.recurring.cancel(plan_id)

    # Queries and teardown

    def snapshot(self) -> Dict[str, Any]:
        data = self.portfolio.snapshot()
        data.update(
            tick=self.last_tick,
            speed_multiplier=self.speed_multiplier,
            strategies=self.strategies.available_strategies(),
            orders=self.orders.to_list(),
            recurring=[p.to_dict() for p in self.recurring.plans()],
            signals=[
                {**r.signal.to_dict(), "executed": r.ok, "error": r.error}
                for r in self.executed
            ],
        )
        return data

    def save(self, path: Optional[Union[str, Path]] = None) -> Optional[Path]:
        path = Path(path) if path is not None else self.state_file
        if path is None:
            return None
        return save_state(
            path,
            self.portfolio,
            strategies=self.strategies,
            settings={"speed_multiplier": self.speed_multiplier},
            orders=self.orders.to_list(),
        )

    def shutdown(self) -> None:
        """Stop the price lane, cancel recurring jobs and save state."""
        if self.closed:
            return
        self.closed = True
        self.worker.stop()
        cancelled = self.recurring.cancel_all()
        if cancelled:
            LOGGER.info(f"Cancelled {cancelled} recurring investment(s)")
        try:
            self.save()
        except OSError as e:
            LOGGER.error(f"Failed to save state: {e}", exc_info=True)
        LOGGER.info("Session shut down")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
        return False
