"""
Rejection Block detector.

A swing point whose candle left a long wick beyond its body: a swing high
with an upper wick longer than ``wick_multiplier`` bodies gives a bearish
block from the body top to the high; a swing low with a long lower wick
gives a bullish block from the low to the body bottom.
"""

import logging
from typing import List

from ..events import (
    EventKind,
    LevelEvent,
    LevelRemovedEvent,
    RejectionBlockDetectedEvent,
    SwingPointEvent,
)
from ..models import Level, SwingPoint
from ..types import Direction, LevelType
from .base import DetectorContext, run_pipeline

logger = logging.getLogger(__name__)


class RejectionBlockDetector:
    event_class = RejectionBlockDetectedEvent

    def __init__(self, ctx: DetectorContext, wick_multiplier: float = 1.5):
        self.ctx = ctx
        self.wick_multiplier = wick_multiplier

        ctx.event_bus.subscribe(EventKind.SWING_POINT_DETECTED, self.on_swing_point_detected)
        ctx.event_bus.subscribe(EventKind.SWING_POINT_REMOVED, self.on_swing_point_removed)
        ctx.event_bus.subscribe(EventKind.ORDER_BLOCK_DETECTED, self.on_order_block_detected)

    def on_swing_point_detected(self, event: SwingPointEvent) -> None:
        run_pipeline(self, self.ctx, event.bar_index, trigger=event.swing_point)

    def on_swing_point_removed(self, event: SwingPointEvent) -> None:
        self._remove_where(
            lambda level: level.swing_point_index == event.swing_point.index,
            event.bar_index,
            "swing_point_removed",
        )

    def on_order_block_detected(self, event: LevelEvent) -> None:
        block = event.level
        self._remove_where(
            lambda level: level.index == block.index,
            event.bar_index,
            "superseded_by_order_block",
        )

    def detect(self, point: SwingPoint) -> List[Level]:
        candle = point.candle
        if candle.body < self.ctx.price_tolerance:
            return []

        threshold = candle.body * self.wick_multiplier
        if point.is_high and candle.upper_wick > threshold:
            direction, low, high = Direction.DOWN, candle.body_top, candle.high
        elif not point.is_high and candle.lower_wick > threshold:
            direction, low, high = Direction.UP, candle.low, candle.body_bottom
        else:
            return []

        block = Level(
            level_type=LevelType.REJECTION_BLOCK,
            direction=direction,
            low=low,
            high=high,
            index=point.index,
            index_high=point.index,
            index_low=point.index,
            low_time=candle.timestamp,
            high_time=candle.timestamp,
            mid_time=candle.timestamp,
            swing_point_index=point.index,
        )
        block.initialize_quadrants()
        return [block]

    def direction_of(self, level: Level) -> Direction:
        return level.direction

    def validate(self, level: Level, peers: List[Level]) -> bool:
        if self.ctx.levels.exists(
            lambda other: other.level_type is LevelType.ORDER_BLOCK and other.index == level.index
        ):
            return False
        return not any(peer.index == level.index for peer in peers)

    def _remove_where(self, predicate, bar_index: int, reason: str) -> None:
        removed = self.ctx.levels.remove_where(
            lambda level: level.level_type is LevelType.REJECTION_BLOCK and predicate(level)
        )
        for level in removed:
            logger.debug(f"Rejection block at {level.index} removed: {reason}")
            self.ctx.event_bus.publish(LevelRemovedEvent(
                bar_index=bar_index, level=level, reason=reason
            ))
