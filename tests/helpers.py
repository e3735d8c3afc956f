"""
Shared candle scenarios for the detector and engine tests.

These are plain data and builders, not pytest fixtures.
"""

import numpy as np

from src.price_action.models import Level
from src.price_action.types import Direction, LevelType

from conftest import make_candle

# Up leg 0-2 (bullish order flow), down leg 3-5 (bullish CISD body from
# candle 3's open to candle 5's low), candle 7 closes back above the CISD,
# candle 8 leaves a gap above candle 6.
CONFLUENCE = [
    (100, 101, 99.5, 100.8),
    (100.8, 102, 100.5, 101.8),
    (101.8, 103, 101.5, 102.8),
    (102.8, 103.2, 101, 101.2),
    (101.2, 101.5, 99, 99.2),
    (99.2, 99.5, 98, 98.3),
    (98.3, 101, 98.1, 100.8),
    (100.8, 103.5, 100.5, 103.2),
    (103.2, 105, 101.5, 104.5),
]


def bullish_order_flow() -> Level:
    return Level(
        level_type=LevelType.ORDER_FLOW,
        direction=Direction.UP,
        low=99.5,
        high=103,
        index=0,
        index_high=2,
        index_low=0,
    )


def confirmed_bullish_cisd(low: float = 98, high: float = 102.8) -> Level:
    return Level(
        level_type=LevelType.CISD,
        direction=Direction.UP,
        low=low,
        high=high,
        index=3,
        index_high=3,
        index_low=5,
        is_confirmed=True,
        index_of_confirming_candle=7,
    )


def synthetic_candles(n: int = 200) -> list:
    """Overlaid sine waves; deterministic, with swings of several sizes."""
    i = np.arange(n + 1)
    closes = 100 + 5 * np.sin(i / 6.0) + 2 * np.sin(i / 2.3) + 0.8 * np.cos(i * 1.7)
    candles = []
    for index in range(n):
        open_, close = float(closes[index]), float(closes[index + 1])
        wick = 0.2 + 0.3 * abs(np.sin(index * 0.9))
        candles.append(make_candle(
            index, open_, max(open_, close) + wick, min(open_, close) - wick, close
        ))
    return candles
