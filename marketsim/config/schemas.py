"""Pydantic schemas for configuration validation."""
from __future__ import annotations
from typing import Dict, List, Optional, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..market.assets import AssetType, DEFAULT_CATALOGUE


class _Section(BaseModel):
    model_config = ConfigDict(validate_assignment=True)


class SimulationConfig(_Section):
    """Price lane configuration."""
    base_volatility: float = Field(default=0.02, ge=0, le=1, description="Base per-tick volatility")
    speed_multiplier: float = Field(default=1.0, gt=0, description="Simulation speed multiplier")
    min_interval_ms: int = Field(default=50, ge=1, description="Lower bound of the tick interval")
    restart_delay_seconds: float = Field(default=1.0, ge=0, description="Delay before restarting a failed price lane")
    housekeeping_interval_seconds: float = Field(default=1.0, gt=0, description="Value snapshot / strategy cadence")
    seed: Optional[int] = Field(default=None, description="Random seed for reproducible runs")


class SeriesConfig(_Section):
    """Rolling series configuration."""
    max_length: int = Field(default=100, ge=1, description="Samples retained per asset")
    sma_period: int = Field(default=20, ge=1, description="SMA period stored with each sample")
    rsi_period: int = Field(default=14, ge=1, description="RSI period stored with each sample")


class PortfolioConfig(_Section):
    """Ledger configuration."""
    initial_cash: float = Field(default=10_000.0, ge=0, description="Starting cash balance")
    history_limit: int = Field(default=100, ge=1, description="Transactions / value snapshots retained")
    selected_asset: Optional[str] = Field(default=None, description="Asset evaluated by strategies")
    state_file: Optional[str] = Field(default=None, description="JSON state snapshot path")


class MovingAverageConfig(_Section):
    short_period: int = Field(default=10, ge=1)
    long_period: int = Field(default=20, ge=1)
    signal_threshold: float = Field(default=0.002, ge=0)

    @model_validator(mode="after")
    def validate_periods(self):
        if self.short_period >= self.long_period:
            raise ValueError("short_period must be less than long_period")
        return self


class RSIConfig(_Section):
    period: int = Field(default=14, ge=1)
    overbought: float = Field(default=70.0, gt=0, le=100)
    oversold: float = Field(default=30.0, ge=0, lt=100)
    cooldown_period: int = Field(default=6, ge=0)

    @model_validator(mode="after")
    def validate_thresholds(self):
        if self.oversold >= self.overbought:
            raise ValueError("oversold must be below overbought")
        return self


class StrategiesConfig(_Section):
    """Default strategy parameters and initial activation."""
    moving_average: MovingAverageConfig = Field(default_factory=MovingAverageConfig)
    rsi: RSIConfig = Field(default_factory=RSIConfig)
    active: List[str] = Field(default_factory=list, description="Strategies active at start")
    custom: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict, description="Custom strategy rule sets by name")


class AssetConfig(BaseModel):
    """One catalogue entry."""
    symbol: str = Field(min_length=1)
    name: str = ""
    asset_type: str = Field(default="crypto", description="crypto, equity (stock), forex or commodity")
    price: float = Field(gt=0, description="Starting price")
    volatility: float = Field(default=1.0, gt=0, description="Relative volatility factor")

    @field_validator("asset_type")
    @classmethod
    def validate_asset_type(cls, v):
        return AssetType.parse(v).value

    @model_validator(mode="after")
    def default_name(self):
        if not self.name:
            self.name = self.symbol
        return self


def _default_assets() -> List[AssetConfig]:
    return [AssetConfig(**entry) for entry in DEFAULT_CATALOGUE]


class Config(BaseModel):
    """Main configuration schema."""
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    series: SeriesConfig = Field(default_factory=SeriesConfig)
    portfolio: PortfolioConfig = Field(default_factory=PortfolioConfig)
    strategies: StrategiesConfig = Field(default_factory=StrategiesConfig)
    assets: List[AssetConfig] = Field(default_factory=_default_assets)

    @field_validator("assets")
    @classmethod
    def validate_unique_symbols(cls, v):
        symbols = [a.symbol for a in v]
        if len(set(symbols)) != len(symbols):
            raise ValueError("asset symbols must be unique")
        if not v:
            raise ValueError("at least one asset is required")
        return v
