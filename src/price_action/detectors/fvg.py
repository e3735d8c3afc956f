"""
Fair Value Gap detector.

A three-candle imbalance: the first and third candles' ranges do not
overlap. For a bullish gap the first high sits below the third low and the
gap spans [first.high, third.low]; bearish gaps mirror this. The gap is
anchored at the third candle, the bar on which it becomes visible.
"""

import logging
from typing import List

from ..events import FvgDetectedEvent
from ..models import Level
from ..types import Direction, LevelType
from .base import DetectorContext, guarded, run_pipeline, same_geometry

logger = logging.getLogger(__name__)


class FvgDetector:
    """Scans each closed bar for a gap against the bar two back."""

    event_class = FvgDetectedEvent

    def __init__(self, ctx: DetectorContext):
        self.ctx = ctx

    @guarded
    def process_bar(self, index: int) -> List[Level]:
        return run_pipeline(self, self.ctx, index)

    def detect(self, index: int) -> List[Level]:
        first = self.ctx.candles.get(index - 2)
        middle = self.ctx.candles.get(index - 1)
        third = self.ctx.candles.get(index)
        if first is None or middle is None or third is None:
            return []

        gaps = []
        if first.high < third.low:
            gaps.append(Level(
                level_type=LevelType.FAIR_VALUE_GAP,
                direction=Direction.UP,
                low=first.high,
                high=third.low,
                index=index,
                index_high=index,
                index_low=index - 2,
                index_mid=index - 1,
                low_time=first.timestamp,
                high_time=third.timestamp,
                mid_time=middle.timestamp,
            ))
        elif first.low > third.high:
            gaps.append(Level(
                level_type=LevelType.FAIR_VALUE_GAP,
                direction=Direction.DOWN,
                low=third.high,
                high=first.low,
                index=index,
                index_high=index - 2,
                index_low=index,
                index_mid=index - 1,
                low_time=third.timestamp,
                high_time=first.timestamp,
                mid_time=middle.timestamp,
            ))

        for gap in gaps:
            gap.initialize_quadrants()
        return gaps

    def direction_of(self, level: Level) -> Direction:
        return level.direction

    def validate(self, level: Level, peers: List[Level]) -> bool:
        if level.low >= level.high:
            return False
        return not any(
            peer.index == level.index and same_geometry(peer, level, self.ctx.price_tolerance)
            for peer in peers
        )
