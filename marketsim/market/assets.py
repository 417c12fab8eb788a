"""Asset model and the static instrument catalogue."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .series import AssetSeries


class AssetType(str, Enum):
    CRYPTO = "crypto"
    EQUITY = "equity"
    FOREX = "forex"
    COMMODITY = "commodity"

    @classmethod
    def parse(cls, value: Any) -> "AssetType":
        """Parse a category name; ``stock`` is accepted for equities."""
        if isinstance(value, AssetType):
            return value
        key = str(value).strip().lower()
        if key == "stock":
            key = "equity"
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown asset type: {value}") from None


@dataclass
class Asset:
    """One tradable instrument.

    ``last_change`` is the realized relative change of the previous tick and
    feeds the generator's momentum term. ``amount`` is only mutated by the
    portfolio ledger.
    """
    symbol: str
    name: str
    asset_type: AssetType
    price: float
    volatility: float = 1.0
    amount: float = 0.0
    last_change: float = 0.0
    series: Optional[AssetSeries] = field(default=None, repr=False)

    def __post_init__(self):
        self.asset_type = AssetType.parse(self.asset_type)
        if self.series is None:
            self.series = AssetSeries()

    def market_value(self) -> float:
        """Holding value; 0 when either component is NaN or infinite."""
        value = self.amount * self.price
        if not math.isfinite(value):
            return 0.0
        return value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "asset_type": self.asset_type.value,
            "price": self.price,
            "volatility": self.volatility,
            "amount": self.amount,
            "last_change": self.last_change,
            "series": self.series.to_dict() if self.series is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Asset":
        series_data = data.get("series")
        return cls(
            symbol=data["symbol"],
            name=data.get("name", data["symbol"]),
            asset_type=AssetType.parse(data.get("asset_type", data.get("type", "crypto"))),
            price=float(data["price"]),
            volatility=float(data.get("volatility", 1.0)),
            amount=float(data.get("amount", 0.0)),
            last_change=float(data.get("last_change", 0.0)),
            series=AssetSeries.from_dict(series_data) if series_data else None,
        )


# symbol, name, type, default price, volatility factor
DEFAULT_CATALOGUE: List[Dict[str, Any]] = [
    {"symbol": "BTC", "name": "Bitcoin", "asset_type": "crypto", "price": 40000.0, "volatility": 1.0},
    {"symbol": "ETH", "name": "Ethereum", "asset_type": "crypto", "price": 2800.0, "volatility": 1.2},
    {"symbol": "DOGE", "name": "Dogecoin", "asset_type": "crypto", "price": 0.15, "volatility": 1.5},
    {"symbol": "AAPL", "name": "Apple Inc.", "asset_type": "equity", "price": 175.25, "volatility": 0.7},
    {"symbol": "MSFT", "name": "Microsoft", "asset_type": "equity", "price": 315.50, "volatility": 0.6},
    {"symbol": "TSLA", "name": "Tesla", "asset_type": "equity", "price": 780.0, "volatility": 1.3},
    {"symbol": "EURUSD", "name": "EUR/USD", "asset_type": "forex", "price": 1.09, "volatility": 0.3},
    {"symbol": "GBPUSD", "name": "GBP/USD", "asset_type": "forex", "price": 1.27, "volatility": 0.4},
    {"symbol": "GOLD", "name": "Gold", "asset_type": "commodity", "price": 1850.25, "volatility": 0.5},
    {"symbol": "OIL", "name": "Crude Oil", "asset_type": "commodity", "price": 75.30, "volatility": 0.9},
]


def build_assets(catalogue: Optional[List[Dict[str, Any]]] = None,
                 max_length: int = 100, sma_period: int = 20,
                 rsi_period: int = 14) -> Dict[str, Asset]:
    """Create fresh assets keyed by symbol from a catalogue."""
    assets: Dict[str, Asset] = {}
    for entry in catalogue or DEFAULT_CATALOGUE:
        asset = Asset(
            symbol=entry["symbol"],
            name=entry.get("name", entry["symbol"]),
            asset_type=AssetType.parse(entry.get("asset_type", entry.get("type"))),
            price=float(entry["price"]),
            volatility=float(entry.get("volatility", 1.0)),
            series=AssetSeries(max_length=max_length, sma_period=sma_period, rsi_period=rsi_period),
        )
        assets[asset.symbol] = asset
    return assets
