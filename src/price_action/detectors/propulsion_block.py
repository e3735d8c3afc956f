"""
Propulsion Block detector.

On CISD confirmation, the opposing order flow that launched the move
becomes a propulsion block:

- Bullish CISD: among the swing points after the CISD's low and before
  its confirming candle (at least two), take the most recent swing high.
  The bearish order flow anchored on that high is the block.
- Bearish CISD: mirror, using the CISD's high, the most recent swing low
  and the bullish order flow anchored on it.

The block is a new level in the CISD's direction with the order flow's
geometry; the order flow itself is left untouched.
"""

import logging
from typing import List, Optional

from ..events import EventKind, LevelEvent, PropulsionBlockDetectedEvent
from ..models import Level, SwingPoint
from ..repository import SwingPointRepository
from ..types import Direction, LevelType
from .base import DetectorContext, run_pipeline

logger = logging.getLogger(__name__)

MIN_SWING_POINTS = 2


class PropulsionBlockDetector:
    """
    Args:
        ctx: Shared handles.
        swing_points: Swing point repository, to find the launching swing.
    """

    event_class = PropulsionBlockDetectedEvent

    def __init__(self, ctx: DetectorContext, swing_points: SwingPointRepository):
        self.ctx = ctx
        self.swing_points = swing_points

        ctx.event_bus.subscribe(EventKind.CISD_CONFIRMED, self.on_cisd_confirmed)

    def on_cisd_confirmed(self, event: LevelEvent) -> None:
        cisd = event.level
        for block in run_pipeline(self, self.ctx, event.bar_index, trigger=cisd):
            cisd.propulsion_block_id = block.id

    def detect(self, cisd: Level) -> List[Level]:
        if not cisd.is_confirmed or cisd.propulsion_block_id is not None:
            return []

        launch = self._launching_swing(cisd)
        if launch is None:
            return []

        flow_direction = cisd.direction.opposite
        order_flow = self.ctx.levels.first(
            lambda level: level.level_type is LevelType.ORDER_FLOW
            and level.direction is flow_direction
            and launch.index in (level.index, level.index_high, level.index_low)
        )
        if order_flow is None:
            return []

        block = Level(
            level_type=LevelType.PROPULSION_BLOCK,
            direction=cisd.direction,
            low=order_flow.low,
            high=order_flow.high,
            index=order_flow.index,
            index_high=order_flow.index_high,
            index_low=order_flow.index_low,
            low_time=order_flow.low_time,
            high_time=order_flow.high_time,
            source_level_id=order_flow.id,
            swing_point_index=launch.index,
        )
        block.initialize_quadrants()
        return [block]

    def direction_of(self, level: Level) -> Direction:
        return level.direction

    def validate(self, level: Level, peers: List[Level]) -> bool:
        return not any(peer.source_level_id == level.source_level_id for peer in peers)

    def _launching_swing(self, cisd: Level) -> Optional[SwingPoint]:
        if cisd.direction is Direction.UP:
            start = cisd.index_low
        else:
            start = cisd.index_high
        end = cisd.index_of_confirming_candle

        between = self.swing_points.find(lambda p: start < p.index < end)
        if len(between) < MIN_SWING_POINTS:
            return None

        # Bullish CISDs launch from a swing high, bearish ones from a swing low
        candidates = [p for p in between if p.direction is cisd.direction]
        if not candidates:
            return None
        return max(candidates, key=lambda p: p.index)
