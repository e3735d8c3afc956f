"""
Gauntlet detector.

A gauntlet is the last fair value gap inside an order flow leg whose
displacement took liquidity: the candle that swept the swing point is the
gap's middle candle or its far candle (the high candle of a bullish gap,
the low candle of a bearish one).

Evaluated on every order flow detection. Each FVG sources at most one
gauntlet.
"""

import logging
from typing import List, Optional, Set

from ..events import EventKind, GauntletDetectedEvent, LevelEvent
from ..models import Level
from ..types import Direction, LevelType
from .base import DetectorContext, run_pipeline

logger = logging.getLogger(__name__)


def sweeps_through_gap(fvg: Level, sweeping_index: int) -> bool:
    """True if the sweeping candle is the gap's middle or far candle."""
    if fvg.direction is Direction.UP:
        return sweeping_index in (fvg.index_mid, fvg.index_high)
    return sweeping_index in (fvg.index_mid, fvg.index_low)


class GauntletDetector:
    event_class = GauntletDetectedEvent

    def __init__(self, ctx: DetectorContext):
        self.ctx = ctx
        self._sourced_fvgs: Set[str] = set()

        ctx.event_bus.subscribe(EventKind.ORDER_FLOW_DETECTED, self.on_order_flow_detected)

    def on_order_flow_detected(self, event: LevelEvent) -> None:
        run_pipeline(self, self.ctx, event.bar_index, trigger=event.level)

    def detect(self, order_flow: Level) -> List[Level]:
        sweeping_index = order_flow.index_of_sweeping_candle
        if order_flow.swept_swing_point_index is None or sweeping_index is None:
            return []

        fvg = self.last_gap_in(order_flow)
        if fvg is None or fvg.id in self._sourced_fvgs:
            return []
        if not sweeps_through_gap(fvg, sweeping_index):
            return []

        gauntlet = fvg.clone_as(LevelType.GAUNTLET)
        gauntlet.source_level_id = fvg.id
        gauntlet.order_flow_id = order_flow.id
        gauntlet.swept_swing_point_index = order_flow.swept_swing_point_index
        gauntlet.index_of_sweeping_candle = sweeping_index
        return [gauntlet]

    def direction_of(self, level: Level) -> Direction:
        return level.direction

    def validate(self, level: Level, peers: List[Level]) -> bool:
        return not any(peer.source_level_id == level.source_level_id for peer in peers)

    def prepare(self, level: Level, bar_index: int) -> None:
        self._sourced_fvgs.add(level.source_level_id)

    def last_gap_in(self, order_flow: Level) -> Optional[Level]:
        """Latest same-direction FVG whose three candles lie within the leg."""
        start = min(order_flow.index_low, order_flow.index_high)
        end = max(order_flow.index_low, order_flow.index_high)
        gaps = self.ctx.levels.find(
            lambda level: level.level_type is LevelType.FAIR_VALUE_GAP
            and level.direction is order_flow.direction
            and start <= min(level.index_low, level.index_high)
            and max(level.index_low, level.index_high) <= end
        )
        if not gaps:
            return None
        return max(gaps, key=lambda gap: gap.index)
