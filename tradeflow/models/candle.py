"""OHLC candle for the chart collaborator."""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Candle:
    """Mid-price bar."""
    time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: int = 0  # Tick volume
