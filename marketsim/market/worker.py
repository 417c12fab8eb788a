"""Background price lane.

PriceEngine is the lane's state machine: it owns a private copy of the asset
states it was started with and turns commands into events. PriceWorker runs
an engine in a daemon thread and talks to the interactive lane only through
two queues, so no mutable state is shared between the lanes.
"""
from __future__ import annotations

import copy
import math
import queue
import threading
import time
from typing import Dict, List, Optional

import numpy as np

from ..utils.logging import get_logger
from .generator import GeneratorState, PriceGenerator
from .messages import (
    Command,
    ErrorEvent,
    Event,
    StartCommand,
    StartedEvent,
    StopCommand,
    UpdateEvent,
    UpdateSpeedCommand,
)

LOGGER = get_logger(__name__)

MIN_INTERVAL_MS = 50
DEFAULT_VOLATILITY = 0.02


def interval_ms(speed_multiplier: float, min_interval_ms: int = MIN_INTERVAL_MS) -> int:
    """Tick interval for a speed multiplier: max(50, floor(1000 / speed))."""
    if speed_multiplier <= 0:
        raise ValueError("speed_multiplier must be > 0")
    return max(min_interval_ms, int(math.floor(1000 / speed_multiplier)))


class PriceEngine:
    """Price lane state machine, free of any threading concerns."""

    def __init__(self, rng: Optional[np.random.Generator] = None,
                 min_interval_ms: int = MIN_INTERVAL_MS):
        self.rng = rng if rng is not None else np.random.default_rng()
        self.min_interval_ms = min_interval_ms
        self.generator: Optional[PriceGenerator] = None
        self.states: Dict[str, GeneratorState] = {}
        self.speed_multiplier = 1.0
        self.tick_count = 0
        self.running = False

    @property
    def interval_ms(self) -> int:
        return interval_ms(self.speed_multiplier, self.min_interval_ms)

    def handle(self, command: Command) -> List[Event]:
        if isinstance(command, StartCommand):
            self.generator = PriceGenerator(command.volatility or DEFAULT_VOLATILITY, rng=self.rng)
            self.speed_multiplier = command.speed_multiplier
            self.states = {s.symbol: s for s in copy.deepcopy(command.assets)}
            self.running = True
            return [StartedEvent()]
        if isinstance(command, UpdateSpeedCommand):
            # Only the cadence changes; prices and momentum carry over
            self.speed_multiplier = command.multiplier
            return []
        if isinstance(command, StopCommand):
            self.running = False
            return []
        return [ErrorEvent(f"Unknown command: {type(command).__name__}")]

    def tick(self) -> UpdateEvent:
        if not self.running or self.generator is None:
            raise RuntimeError("Price engine is not started")
        updates, failures = self.generator.step_all(self.states.values())
        self.tick_count += 1
        return UpdateEvent(
            tick=self.tick_count,
            updates=updates,
            failures={f.symbol: f.reason for f in failures},
        )


class PriceWorker:
    """Runs a PriceEngine on a background thread."""

    def __init__(self, engine: Optional[PriceEngine] = None):
        self.engine = engine or PriceEngine()
        self.inbox: "queue.Queue[Command]" = queue.Queue()
        self.outbox: "queue.Queue[Event]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.is_alive:
            LOGGER.warning("Price worker already running")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="price-worker", daemon=True)
        self._thread.start()
        LOGGER.info("Price worker started")

    def send(self, command: Command):
        self.inbox.put(command)

    def poll(self, timeout: Optional[float] = None) -> Optional[Event]:
        """Return the next outbound event, or None if none arrives in time."""
        try:
            if timeout is None or timeout <= 0:
                return self.outbox.get_nowait()
            return self.outbox.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[Event]:
        events: List[Event] = []
        while True:
            event = self.poll()
            if event is None:
                return events
            events.append(event)

    def stop(self, timeout: float = 5.0):
        """Stop scheduled ticks and join the thread."""
        if self._thread is None:
            return
        self._stop_event.set()
        self.inbox.put(StopCommand())
        self._thread.join(timeout=timeout)
        self._thread = None
        LOGGER.info("Price worker stopped")

    def _run(self):
        next_tick: Optional[float] = None
        while not self._stop_event.is_set():
            if self.engine.running and next_tick is not None:
                wait = max(0.0, next_tick - time.monotonic())
            else:
                wait = 0.1
            try:
                command = self.inbox.get(timeout=wait)
            except queue.Empty:
                command = None

            if command is not None:
                try:
                    events = self.engine.handle(command)
                except Exception as exc:
                    LOGGER.error(f"Error handling {type(command).__name__}: {exc}", exc_info=True)
                    events = [ErrorEvent(str(exc))]
                for event in events:
                    self.outbox.put(event)
                if isinstance(command, StopCommand):
                    next_tick = None
                elif self.engine.running:
                    # Start and speed changes restart the schedule
                    next_tick = time.monotonic() + self.engine.interval_ms / 1000.0
                continue

            if not self.engine.running or next_tick is None:
                continue
            if time.monotonic() < next_tick:
                continue

            try:
                event = self.engine.tick()
            except Exception as exc:
                LOGGER.error(f"Error in price worker: {exc}", exc_info=True)
                self.engine.running = False
                next_tick = None
                self.outbox.put(ErrorEvent(str(exc)))
                continue
            self.outbox.put(event)
            next_tick += self.engine.interval_ms / 1000.0
            # Do not try to catch up after a stall
            if next_tick < time.monotonic():
                next_tick = time.monotonic() + self.engine.interval_ms / 1000.0
