"""
Order Block detector.

Reacts to fair value gaps. When the gap's first candle is a swing point
of the opposite extreme (a swing low under a bullish gap, a swing high
over a bearish one), the last opposing candle at or before that swing
point is the order block: the final sell candle before the displacement up,
or the final buy candle before the displacement down.

With a swing lookback above two the swing point is confirmed after the gap
prints. Such gaps wait for a SWING_POINT_DETECTED event at their first
candle and expire once they are more than `lookback` candles old.
"""

import logging
from typing import Dict, List, Set

from ..events import (
    EventKind,
    LevelEvent,
    LevelRemovedEvent,
    OrderBlockDetectedEvent,
    SwingPointEvent,
)
from ..models import Level
from ..repository import SwingPointRepository
from ..types import Direction, LevelType
from .base import DetectorContext, run_pipeline

logger = logging.getLogger(__name__)


class OrderBlockDetector:
    """
    Args:
        ctx: Shared handles.
        swing_points: Swing point repository, to check the gap's first candle.
        lookback: Candles searched back from the swing point for the
            opposing candle. Also bounds how long a gap waits for its
            swing point.
    """

    event_class = OrderBlockDetectedEvent

    def __init__(
        self,
        ctx: DetectorContext,
        swing_points: SwingPointRepository,
        lookback: int = 10,
    ):
        self.ctx = ctx
        self.swing_points = swing_points
        self.lookback = lookback
        self._processed_swings: Set[int] = set()
        # swing point index -> order block id
        self._blocks_by_swing: Dict[int, str] = {}
        # swing point index -> gap waiting for that swing point
        self._pending: Dict[int, Level] = {}

        ctx.event_bus.subscribe(EventKind.FVG_DETECTED, self.on_fvg_detected)
        ctx.event_bus.subscribe(EventKind.SWING_POINT_DETECTED, self.on_swing_point_detected)
        ctx.event_bus.subscribe(EventKind.SWING_POINT_REMOVED, self.on_swing_point_removed)

    def on_fvg_detected(self, event: LevelEvent) -> None:
        run_pipeline(self, self.ctx, event.bar_index, trigger=event.level)

    def on_swing_point_detected(self, event: SwingPointEvent) -> None:
        self._expire_pending(event.bar_index)
        fvg = self._pending.pop(event.swing_point.index, None)
        if fvg is None or self.ctx.levels.get_by_id(fvg.id) is None:
            return
        run_pipeline(self, self.ctx, event.bar_index, trigger=fvg)

    def on_swing_point_removed(self, event: SwingPointEvent) -> None:
        swing_index = event.swing_point.index
        self._processed_swings.discard(swing_index)
        level_id = self._blocks_by_swing.pop(swing_index, None)
        block = self.ctx.levels.get_by_id(level_id)
        if block is None:
            return
        self.ctx.levels.remove(block)
        self.ctx.event_bus.publish(LevelRemovedEvent(
            bar_index=event.bar_index, level=block, reason="swing_point_removed"
        ))

    def detect(self, fvg: Level) -> List[Level]:
        if fvg.direction is Direction.UP:
            swing_index = fvg.index_low
        else:
            swing_index = fvg.index_high

        if swing_index in self._processed_swings:
            return []
        swing = self.swing_points.get_by_index(swing_index)
        if swing is None:
            self._pending[swing_index] = fvg
            return []
        if swing.is_high is (fvg.direction is Direction.UP):
            return []

        block_index = self._opposing_candle(swing_index, fvg.direction)
        candle = self.ctx.candles.get(block_index)
        block = Level(
            level_type=LevelType.ORDER_BLOCK,
            direction=fvg.direction,
            low=candle.low,
            high=candle.high,
            index=block_index,
            index_high=block_index,
            index_low=block_index,
            low_time=candle.timestamp,
            high_time=candle.timestamp,
            mid_time=candle.timestamp,
            swing_point_index=swing_index,
        )
        block.initialize_quadrants()
        return [block]

    def direction_of(self, level: Level) -> Direction:
        return level.direction

    def validate(self, level: Level, peers: List[Level]) -> bool:
        return not any(peer.index == level.index for peer in peers)

    def prepare(self, level: Level, bar_index: int) -> None:
        self._processed_swings.add(level.swing_point_index)
        self._blocks_by_swing[level.swing_point_index] = level.id

    def _expire_pending(self, bar_index: int) -> None:
        for swing_index, fvg in list(self._pending.items()):
            if bar_index - fvg.index > self.lookback:
                del self._pending[swing_index]
                logger.debug(f"Gap {fvg.id} expired waiting for swing point {swing_index}")

    def _opposing_candle(self, swing_index: int, direction: Direction) -> int:
        opposing = direction.opposite
        for index in range(swing_index, max(swing_index - self.lookback, -1), -1):
            candle = self.ctx.candles.get(index)
            if candle is not None and candle.direction is opposing:
                return index
        return swing_index
