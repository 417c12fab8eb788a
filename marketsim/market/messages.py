"""Typed messages exchanged between the interactive lane and the price lane.

The lanes share nothing but these payloads. Commands carry plain snapshots
of asset state, never references to the interactive lane's Asset objects.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Dict, List, Union

from .generator import GeneratorState, PriceUpdate


# Inbound (interactive lane -> price lane)

@dataclass(frozen=True)
class StartCommand:
    volatility: float
    speed_multiplier: float
    assets: List[GeneratorState]

    def __post_init__(self):
        if self.speed_multiplier <= 0:
            raise ValueError("speed_multiplier must be > 0")
        object.__setattr__(self, "assets", copy.deepcopy(list(self.assets)))


@dataclass(frozen=True)
class UpdateSpeedCommand:
    multiplier: float

    def __post_init__(self):
        if self.multiplier <= 0:
            raise ValueError("multiplier must be > 0")


@dataclass(frozen=True)
class StopCommand:
    pass


Command = Union[StartCommand, UpdateSpeedCommand, StopCommand]


# Outbound (price lane -> interactive lane)

@dataclass(frozen=True)
class UpdateEvent:
    tick: int
    updates: Dict[str, PriceUpdate]
    # symbol -> failure reason for assets that kept their previous price
    failures: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class StartedEvent:
    message: str = "Price updates started"


@dataclass(frozen=True)
class ErrorEvent:
    message: str


Event = Union[UpdateEvent, StartedEvent, ErrorEvent]
