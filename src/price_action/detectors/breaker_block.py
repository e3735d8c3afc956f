"""
Breaker Block detector.

Breaker blocks come from two sources:

- CISD confirmation: a confirmed CISD without a breaker block looks back
  to the most recent order flow in its own direction and takes that flow's
  last run of same-direction candles as the block. The block is attached to
  the CISD, which is what the unicorn confluence keys off.
- Inversion: an order block or fair value gap that price closes through
  against its direction is marked inverted (it stays in the repository)
  and a breaker block of the opposite direction is derived from its range.
"""

import logging
from typing import List, Optional

from ..events import (
    BreakerBlockDetectedEvent,
    EventKind,
    LevelEvent,
    LevelInvertedEvent,
)
from ..models import Level
from ..types import Candle, Direction, LevelType
from .base import DetectorContext, find_last_run, guarded, run_pipeline

logger = logging.getLogger(__name__)

INVERTIBLE_TYPES = (LevelType.ORDER_BLOCK, LevelType.FAIR_VALUE_GAP)


class CisdBreakerStrategy:
    """Derives the breaker block attached to a confirmed CISD."""

    event_class = BreakerBlockDetectedEvent

    def __init__(self, ctx: DetectorContext):
        self.ctx = ctx
        self._cisd: Optional[Level] = None

    def detect(self, cisd: Level) -> List[Level]:
        self._cisd = cisd
        order_flows = self.ctx.levels.find(
            lambda level: level.level_type is LevelType.ORDER_FLOW
            and level.direction is cisd.direction
            and level.index < cisd.index
        )
        if not order_flows:
            return []
        order_flow = max(order_flows, key=lambda level: level.index)

        start = min(order_flow.index_low, order_flow.index_high)
        end = max(order_flow.index_low, order_flow.index_high)
        run = find_last_run(self.ctx.candles, start, end, cisd.direction)
        if not run:
            return []
        first = self.ctx.candles.get(run[0])
        last = self.ctx.candles.get(run[-1])

        if cisd.direction is Direction.UP:
            block = Level(
                level_type=LevelType.BREAKER_BLOCK,
                direction=Direction.UP,
                low=first.low,
                high=last.high,
                index=first.index,
                index_high=last.index,
                index_low=first.index,
                low_time=first.timestamp,
                high_time=last.timestamp,
            )
        else:
            block = Level(
                level_type=LevelType.BREAKER_BLOCK,
                direction=Direction.DOWN,
                low=last.low,
                high=first.high,
                index=first.index,
                index_high=first.index,
                index_low=last.index,
                low_time=last.timestamp,
                high_time=first.timestamp,
            )
        block.order_flow_id = order_flow.id
        block.source_level_id = cisd.id
        return [block]

    def direction_of(self, level: Level) -> Direction:
        return level.direction

    def validate(self, level: Level, peers: List[Level]) -> bool:
        cisd = self._cisd
        if cisd is None or cisd.breaker_block_id is not None:
            return False
        if level.direction is Direction.UP:
            return level.low <= cisd.high
        return level.high >= cisd.low

    def prepare(self, level: Level, bar_index: int) -> None:
        self._cisd.breaker_block_id = level.id


class InversionBreakerStrategy:
    """Turns order blocks and FVGs that price closed through into breakers."""

    event_class = BreakerBlockDetectedEvent

    def __init__(self, ctx: DetectorContext):
        self.ctx = ctx

    def detect(self, sources: List[Level]) -> List[Level]:
        breakers = []
        for source in sources:
            breaker = Level(
                level_type=LevelType.BREAKER_BLOCK,
                direction=source.direction.opposite,
                low=source.low,
                high=source.high,
                index=source.inversion_index,
                index_high=source.index_high,
                index_low=source.index_low,
                index_mid=source.index_mid,
                low_time=source.low_time,
                high_time=source.high_time,
                mid_time=source.mid_time,
                source_level_id=source.id,
                order_flow_id=source.order_flow_id,
            )
            breaker.initialize_quadrants()
            breakers.append(breaker)
        return breakers

    def direction_of(self, level: Level) -> Direction:
        return level.direction

    def validate(self, level: Level, peers: List[Level]) -> bool:
        return not any(peer.source_level_id == level.source_level_id for peer in peers)


class BreakerBlockDetector:
    def __init__(self, ctx: DetectorContext):
        self.ctx = ctx
        self.cisd_strategy = CisdBreakerStrategy(ctx)
        self.inversion_strategy = InversionBreakerStrategy(ctx)

        ctx.event_bus.subscribe(EventKind.CISD_CONFIRMED, self.on_cisd_confirmed)

    def on_cisd_confirmed(self, event: LevelEvent) -> None:
        run_pipeline(self.cisd_strategy, self.ctx, event.bar_index, trigger=event.level)

    @guarded
    def check_inversions(self, candle: Candle) -> List[Level]:
        """
        Invert order blocks and FVGs the candle closes through.

        Returns:
            Breaker blocks stored on this bar.
        """
        broken = []
        for level in self.ctx.levels.find(self._is_invertible):
            if candle.index <= level.index:
                continue
            if level.direction is Direction.UP:
                hit = candle.close < level.low
            else:
                hit = candle.close > level.high
            if hit:
                level.is_inverted = True
                level.inversion_index = candle.index
                broken.append(level)

        if not broken:
            return []

        stored = run_pipeline(self.inversion_strategy, self.ctx, candle.index, trigger=broken)
        by_source = {breaker.source_level_id: breaker for breaker in stored}
        for level in broken:
            logger.debug(f"{level.level_type.name} {level.id} inverted at {candle.index}")
            self.ctx.event_bus.publish(LevelInvertedEvent(
                bar_index=candle.index,
                level=level,
                breaker_block=by_source.get(level.id),
            ))
        return stored

    @staticmethod
    def _is_invertible(level: Level) -> bool:
        return level.level_type in INVERTIBLE_TYPES and not level.is_inverted
