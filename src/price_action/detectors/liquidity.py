"""
Level liquidity tracking.

Swing points interact with stored levels in two ways:

- Liquidity sweeps: a swing high whose candle straddles the high of an
  active bearish order block, rejection block or CISD takes the liquidity
  resting above it; the level is marked liquidity-swept (and so no longer
  active). Swing lows mirror this against bullish levels.
- Quadrant sweeps: a swing point trading into an active level from the
  level's far side sweeps the quadrants it reaches.
"""

import logging
from typing import List

from ..events import EventKind, LevelLiquiditySweptEvent, QuadrantSweptEvent, SwingPointEvent
from ..models import Level, SwingPoint
from ..types import Direction, LevelType
from .base import DetectorContext

logger = logging.getLogger(__name__)

SWEEPABLE_TYPES = (LevelType.ORDER_BLOCK, LevelType.REJECTION_BLOCK, LevelType.CISD)

# Swing point flag and level id field set when it trades into a level of this type
ACTIVATION_FLAGS = {
    LevelType.FAIR_VALUE_GAP: ("activated_fvg", "activated_fvg_level_id"),
    LevelType.REJECTION_BLOCK: ("activated_rejection_block", "activated_rejection_block_level_id"),
    LevelType.CISD: ("activated_cisd", "activated_cisd_level_id"),
    LevelType.UNICORN: ("activated_unicorn", "activated_unicorn_level_id"),
}


class LiquidityTracker:
    """
    Args:
        ctx: Shared handles.
        sweep_levels: Mark levels liquidity-swept.
        sweep_quadrants: Track quadrant sweeps.
        flag_inside_key_level: Flag swing points that trade into a level.
    """

    def __init__(
        self,
        ctx: DetectorContext,
        sweep_levels: bool = True,
        sweep_quadrants: bool = True,
        flag_inside_key_level: bool = True,
    ):
        self.ctx = ctx
        self.sweep_levels = sweep_levels
        self.sweep_quadrants = sweep_quadrants
        self.flag_inside_key_level = flag_inside_key_level

        ctx.event_bus.subscribe(EventKind.SWING_POINT_DETECTED, self.on_swing_point_detected)

    def on_swing_point_detected(self, event: SwingPointEvent) -> None:
        point = event.swing_point
        if self.sweep_levels:
            self.check_liquidity_sweeps(point, event.bar_index)
        if self.sweep_quadrants:
            self.check_quadrant_sweeps(point, event.bar_index)

    def check_liquidity_sweeps(self, point: SwingPoint, bar_index: int) -> List[Level]:
        """Mark active opposing levels whose edge the swing candle wicked through."""
        candle = point.candle
        target = Direction.DOWN if point.is_high else Direction.UP
        swept = []
        for level in self.ctx.levels.find(
            lambda lv: lv.level_type in SWEEPABLE_TYPES
            and lv.direction is target
            and lv.is_active
            and lv.index < point.index
        ):
            if point.is_high:
                hit = candle.low < level.high < point.price
            else:
                hit = point.price < level.low < candle.high
            if not hit:
                continue

            level.is_liquidity_swept = True
            level.swept_index = point.index
            point.swept_key_level = True
            point.swept_key_level_id = level.id
            swept.append(level)
            logger.debug(f"{level.level_type.name} {level.id} liquidity swept at {point.index}")
            self.ctx.event_bus.publish(LevelLiquiditySweptEvent(
                bar_index=bar_index, level=level, swing_point=point
            ))
        return swept

    def check_quadrant_sweeps(self, point: SwingPoint, bar_index: int) -> int:
        """
        Sweep quadrants of active levels the swing candle traded into.

        Only swing points opposite to the level count: swing lows retrace
        into bullish levels, swing highs into bearish ones.

        Returns:
            Number of quadrants newly swept.
        """
        target = Direction.DOWN if point.is_high else Direction.UP
        count = 0
        for level in self.ctx.levels.find(
            lambda lv: lv.quadrants and lv.direction is target
            and lv.is_active and lv.index < point.index
        ):
            quadrants = level.sweep_quadrants(point.candle)
            if not quadrants:
                continue

            if self.flag_inside_key_level:
                point.inside_key_level = True
            fields = ACTIVATION_FLAGS.get(level.level_type)
            if fields is not None:
                flag, id_field = fields
                setattr(point, flag, True)
                setattr(point, id_field, level.id)

            for quadrant in quadrants:
                count += 1
                self.ctx.event_bus.publish(QuadrantSweptEvent(
                    bar_index=bar_index, level=level, quadrant=quadrant
                ))
        return count
