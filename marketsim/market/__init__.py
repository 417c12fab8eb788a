"""Synthetic market: assets, price generator, series store and price lane."""
from .assets import Asset, AssetType, DEFAULT_CATALOGUE, build_assets
from .generator import GeneratorState, PriceGenerator, PriceUpdate, MIN_PRICE, states_from_assets
from .messages import (
    StartCommand,
    UpdateSpeedCommand,
    StopCommand,
    UpdateEvent,
    StartedEvent,
    ErrorEvent,
)
from .series import AssetSeries, SeriesStore
from .worker import PriceEngine, PriceWorker, interval_ms

__all__ = [
    "Asset",
    "AssetType",
    "DEFAULT_CATALOGUE",
    "build_assets",
    "GeneratorState",
    "PriceGenerator",
    "PriceUpdate",
    "MIN_PRICE",
    "states_from_assets",
    "StartCommand",
    "UpdateSpeedCommand",
    "StopCommand",
    "UpdateEvent",
    "StartedEvent",
    "ErrorEvent",
    "AssetSeries",
    "SeriesStore",
    "PriceEngine",
    "PriceWorker",
    "interval_ms",
]
