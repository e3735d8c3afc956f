"""Core data types for price action analysis."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Direction(Enum):
    """Directional bias of a candle, swing point or level."""
    UP = "up"
    DOWN = "down"

    @property
    def opposite(self) -> "Direction":
        return Direction.DOWN if self is Direction.UP else Direction.UP


class LevelType(Enum):
    """Pattern family a Level belongs to."""
    ORDER_FLOW = "order_flow"
    FAIR_VALUE_GAP = "fair_value_gap"
    ORDER_BLOCK = "order_block"
    BREAKER_BLOCK = "breaker_block"
    REJECTION_BLOCK = "rejection_block"
    CISD = "cisd"
    UNICORN = "unicorn"
    GAUNTLET = "gauntlet"
    PROPULSION_BLOCK = "propulsion_block"


class SwingType(Enum):
    """Structural classification assigned by the market structure analyzer."""
    H = "H"
    L = "L"
    HH = "HH"
    HL = "HL"
    LH = "LH"
    LL = "LL"


@dataclass(frozen=True)
class Candle:
    """Single closed OHLC candle"""
    index: int
    timestamp: int
    open: float
    high: float
    low: float
    close: float

    @property
    def date(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp)

    @property
    def direction(self) -> Direction:
        return Direction.UP if self.close > self.open else Direction.DOWN

    @property
    def body(self) -> float:
        return abs(self.close - self.open)

    @property
    def range(self) -> float:
        return self.high - self.low

    @property
    def body_top(self) -> float:
        return max(self.open, self.close)

    @property
    def body_bottom(self) -> float:
        return min(self.open, self.close)

    @property
    def upper_wick(self) -> float:
        return self.high - self.body_top

    @property
    def lower_wick(self) -> float:
        return self.body_bottom - self.low
