"""Technical indicator library."""
from .indicators import (
    MACDResult,
    BollingerBands,
    sma,
    ema,
    rsi,
    macd,
    bollinger_bands,
    percent_b,
)

__all__ = [
    "MACDResult",
    "BollingerBands",
    "sma",
    "ema",
    "rsi",
    "macd",
    "bollinger_bands",
    "percent_b",
]
