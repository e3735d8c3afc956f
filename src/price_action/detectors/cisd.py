"""
CISD (change in state of delivery) detector.

A CISD is born from an order flow that swept liquidity. The last run of
candles delivering in the order flow's direction defines the price the
market must close back through to confirm a reversal:

- bullish order flow -> bearish CISD spanning the open of the first up
  candle to the high of the last one;
- bearish order flow -> bullish CISD spanning the low of the last down
  candle to the open of the first one.

Lifecycle, checked on every later bar:

- confirmation: a bullish CISD confirms when an up candle opens below and
  closes above its high; a bearish one when a down candle opens above and
  closes below its low.
- activation: a confirmed bullish CISD activates on the first close below
  its low, a bearish one on the first close above its high. Activation is
  terminal.
"""

import logging
from typing import List

from ..events import (
    CisdActivatedEvent,
    CisdConfirmedEvent,
    CisdDetectedEvent,
    EventKind,
    LevelEvent,
    LevelRemovedEvent,
)
from ..models import Level
from ..repository import SwingPointRepository
from ..types import Candle, Direction, LevelType
from .base import DetectorContext, guarded, run_pipeline, same_geometry

logger = logging.getLogger(__name__)


class CisdDetector:
    """
    Args:
        ctx: Shared handles.
        swing_points: Swing point repository, for the order flow boundary.
        max_per_direction: Unconfirmed CISDs kept per direction.
    """

    event_class = CisdDetectedEvent

    def __init__(
        self,
        ctx: DetectorContext,
        swing_points: SwingPointRepository,
        max_per_direction: int = 2,
    ):
        self.ctx = ctx
        self.swing_points = swing_points
        self.max_per_direction = max_per_direction

        ctx.event_bus.subscribe(EventKind.ORDER_FLOW_DETECTED, self.on_order_flow_detected)

    def on_order_flow_detected(self, event: LevelEvent) -> None:
        if event.level.swept_swing_point_index is None:
            return
        run_pipeline(self, self.ctx, event.bar_index, trigger=event.level)

    # Strategy hooks

    def detect(self, order_flow: Level) -> List[Level]:
        start = min(order_flow.index_low, order_flow.index_high)
        end = max(order_flow.index_low, order_flow.index_high)
        if not (self.ctx.candles.contains(start) and self.ctx.candles.contains(end)):
            return []

        run = self._last_delivery_run(start, end, order_flow.direction)
        if not run:
            return []
        first = self.ctx.candles.get(run[0])
        last = self.ctx.candles.get(run[-1])

        if order_flow.direction is Direction.UP:
            cisd = Level(
                level_type=LevelType.CISD,
                direction=Direction.DOWN,
                low=first.open,
                high=last.high,
                index=first.index,
                index_high=last.index,
                index_low=first.index,
                low_time=first.timestamp,
                high_time=last.timestamp,
            )
            boundary = self.swing_points.get_by_index(order_flow.index_high)
        else:
            cisd = Level(
                level_type=LevelType.CISD,
                direction=Direction.UP,
                low=last.low,
                high=first.open,
                index=first.index,
                index_high=first.index,
                index_low=last.index,
                low_time=last.timestamp,
                high_time=first.timestamp,
            )
            boundary = self.swing_points.get_by_index(order_flow.index_low)

        cisd.order_flow_id = order_flow.id
        if boundary is not None:
            cisd.swept_liquidity = boundary.swept_liquidity
        return [cisd]

    def direction_of(self, level: Level) -> Direction:
        return level.direction

    def validate(self, level: Level, peers: List[Level]) -> bool:
        return not any(
            peer.index == level.index and same_geometry(peer, level, self.ctx.price_tolerance)
            for peer in peers
        )

    def prepare(self, level: Level, bar_index: int) -> None:
        self._enforce_max_count(level.direction, bar_index)

    # Per-bar lifecycle

    @guarded
    def check_activation(self, candle: Candle) -> List[Level]:
        """Activate confirmed CISDs the candle closes through."""
        activated = []
        for cisd in self.ctx.levels.find(self._is_pending_activation):
            confirming = cisd.index_of_confirming_candle
            if confirming is not None and candle.index <= confirming:
                continue
            if cisd.direction is Direction.UP:
                hit = candle.close < cisd.low
            else:
                hit = candle.close > cisd.high
            if not hit:
                continue

            cisd.activated = True
            cisd.activation_index = candle.index
            activated.append(cisd)
            logger.debug(f"CISD {cisd.direction.name} {cisd.id} activated at {candle.index}")
            self.ctx.event_bus.publish(CisdActivatedEvent(bar_index=candle.index, level=cisd))
        return activated

    @guarded
    def check_confirmation(self, candle: Candle) -> List[Level]:
        """Confirm CISDs the candle closes beyond."""
        confirmed = []
        for cisd in self.ctx.levels.find(self._is_unconfirmed):
            if candle.index <= max(cisd.index_high, cisd.index_low):
                continue
            if cisd.direction is Direction.UP:
                hit = (
                    candle.direction is Direction.UP
                    and candle.open < cisd.high
                    and candle.close > cisd.high
                )
            else:
                hit = (
                    candle.direction is Direction.DOWN
                    and candle.open > cisd.low
                    and candle.close < cisd.low
                )
            if not hit:
                continue

            cisd.is_confirmed = True
            cisd.index_of_confirming_candle = candle.index
            confirmed.append(cisd)
            logger.debug(f"CISD {cisd.direction.name} {cisd.id} confirmed at {candle.index}")
            self.ctx.event_bus.publish(CisdConfirmedEvent(bar_index=candle.index, level=cisd))
        return confirmed

    # Helpers

    @staticmethod
    def _is_unconfirmed(level: Level) -> bool:
        return level.level_type is LevelType.CISD and not level.is_confirmed

    @staticmethod
    def _is_pending_activation(level: Level) -> bool:
        return (
            level.level_type is LevelType.CISD
            and level.is_confirmed
            and not level.activated
        )

    def _last_delivery_run(self, start: int, end: int, direction: Direction) -> List[int]:
        """
        Last run of ``direction`` candles in [start, end].

        An opposite candle sitting exactly at ``end`` right after a run joins
        that run.
        """
        runs: List[List[int]] = []
        current: List[int] = []
        for candle in self.ctx.candles.range(start, end):
            if candle.direction is direction:
                current.append(candle.index)
            elif current:
                if candle.index == end:
                    current.append(candle.index)
                runs.append(current)
                current = []
        if current:
            runs.append(current)
        return runs[-1] if runs else []

    def _enforce_max_count(self, direction: Direction, bar_index: int) -> None:
        pending = sorted(
            self.ctx.levels.find(
                lambda level: self._is_unconfirmed(level) and level.direction is direction
            ),
            key=lambda level: level.index,
        )
        while len(pending) >= self.max_per_direction:
            oldest = pending.pop(0)
            self.ctx.levels.remove(oldest)
            logger.debug(f"CISD {oldest.id} dropped: max {self.max_per_direction} per direction")
            self.ctx.event_bus.publish(LevelRemovedEvent(
                bar_index=bar_index, level=oldest, reason="max_cisd_count"
            ))
