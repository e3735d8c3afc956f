"""
Unicorn detector.

A unicorn is a fair value gap that lines up with a confirmed, not yet
activated CISD carrying a breaker block:

1. the CISD's confirming candle is one of the gap's three candles;
2. the gap's near edge sits inside the CISD (bullish: gap low below the
   CISD high; bearish: gap high above the CISD low);
3. the gap's range overlaps the breaker block's range.

Re-evaluated on every FVG and every breaker block detection. Each FVG
sources at most one unicorn.
"""

import logging
from typing import List, Optional, Set

from ..events import EventKind, LevelEvent, UnicornDetectedEvent
from ..models import Level
from ..types import Direction, LevelType
from .base import DetectorContext, run_pipeline

logger = logging.getLogger(__name__)


def qualifies(fvg: Level, cisd: Level, breaker: Level) -> bool:
    """Confluence rule for one FVG / CISD / breaker block triple."""
    if cisd.index_of_confirming_candle is None:
        return False
    candles = {fvg.index_low, fvg.index_mid, fvg.index_high}
    if cisd.index_of_confirming_candle not in candles:
        return False

    if fvg.direction is Direction.UP:
        if not fvg.low < cisd.high:
            return False
    elif not fvg.high > cisd.low:
        return False

    return fvg.intersects(breaker)


class UnicornDetector:
    event_class = UnicornDetectedEvent

    def __init__(self, ctx: DetectorContext):
        self.ctx = ctx
        self._sourced_fvgs: Set[str] = set()

        ctx.event_bus.subscribe(EventKind.FVG_DETECTED, self.on_fvg_detected)
        ctx.event_bus.subscribe(EventKind.BREAKER_BLOCK_DETECTED, self.on_breaker_block_detected)

    def on_fvg_detected(self, event: LevelEvent) -> None:
        run_pipeline(self, self.ctx, event.bar_index, trigger=event.level)

    def on_breaker_block_detected(self, event: LevelEvent) -> None:
        for fvg in self.ctx.levels.get_by_type(LevelType.FAIR_VALUE_GAP):
            run_pipeline(self, self.ctx, event.bar_index, trigger=fvg)

    def detect(self, fvg: Level) -> List[Level]:
        if fvg.id in self._sourced_fvgs:
            return []

        match = self._find_match(fvg)
        if match is None:
            return []
        cisd, breaker = match

        unicorn = fvg.clone_as(LevelType.UNICORN)
        unicorn.source_level_id = fvg.id
        unicorn.breaker_block_id = breaker.id
        unicorn.index_of_confirming_candle = cisd.index_of_confirming_candle
        unicorn.is_confirmed = True
        return [unicorn]

    def direction_of(self, level: Level) -> Direction:
        return level.direction

    def validate(self, level: Level, peers: List[Level]) -> bool:
        return not any(peer.source_level_id == level.source_level_id for peer in peers)

    def prepare(self, level: Level, bar_index: int) -> None:
        self._sourced_fvgs.add(level.source_level_id)

    def _find_match(self, fvg: Level) -> Optional[tuple]:
        candidates = self.ctx.levels.find(
            lambda level: level.level_type is LevelType.CISD
            and level.direction is fvg.direction
            and level.is_confirmed
            and not level.activated
            and level.breaker_block_id is not None
        )
        for cisd in candidates:
            breaker = self.ctx.levels.get_by_id(cisd.breaker_block_id)
            if breaker is not None and qualifies(fvg, cisd, breaker):
                return cisd, breaker
        return None
