"""
Order Flow / Liquidity Sweep detector.

An order flow is the leg between two swing points, confirmed when the
next opposite swing point forms: a new swing low confirms the bullish leg
from the previous low up to the most recent high, a new swing high confirms
the bearish leg from the previous high down to the most recent low.

Each leg is annotated with the liquidity it took: earlier opposing swing
points (highs for a bullish leg) priced inside the leg that had not yet been
claimed by another order flow. The most extreme of them is the leg's
primary swept point, and CISD detection keys off it.
"""

import logging
from typing import Dict, List, Set

from sortedcontainers import SortedList

from ..events import (
    EventKind,
    LevelEvent,
    LevelRemovedEvent,
    OrderFlowDetectedEvent,
    SwingPointEvent,
)
from ..models import Level, SwingPoint
from ..types import Direction, LevelType
from .base import DetectorContext, first_breach, run_pipeline

logger = logging.getLogger(__name__)


class OrderFlowDetector:
    """
    Keeps its own index-ordered swing history so each new point only needs
    the last two points of each direction.
    """

    event_class = OrderFlowDetectedEvent

    def __init__(self, ctx: DetectorContext):
        self.ctx = ctx
        self._history = SortedList(key=lambda p: p.index)
        # Swing indices already attributed to an order flow
        self._claimed: Set[int] = set()
        self._pending_fvgs: Dict[Direction, List[str]] = {
            Direction.UP: [],
            Direction.DOWN: [],
        }

        ctx.event_bus.subscribe(EventKind.SWING_POINT_DETECTED, self.on_swing_point_detected)
        ctx.event_bus.subscribe(EventKind.SWING_POINT_REMOVED, self.on_swing_point_removed)
        ctx.event_bus.subscribe(EventKind.FVG_DETECTED, self.on_fvg_detected)

    @property
    def history(self) -> List[SwingPoint]:
        return list(self._history)

    def pending_fvg_ids(self, direction: Direction) -> List[str]:
        return list(self._pending_fvgs[direction])

    # Event handlers

    def on_swing_point_detected(self, event: SwingPointEvent) -> None:
        point = event.swing_point
        if any(existing is point for existing in self._history):
            return
        self._history.add(point)
        run_pipeline(self, self.ctx, event.bar_index, trigger=point)

    def on_swing_point_removed(self, event: SwingPointEvent) -> None:
        point = event.swing_point
        for i, existing in enumerate(self._history):
            if existing is point:
                del self._history[i]
                break

        removed = self.ctx.levels.remove_where(
            lambda level: level.level_type is LevelType.ORDER_FLOW
            and point.index in (level.index_low, level.index_high)
        )
        for level in removed:
            self.ctx.event_bus.publish(LevelRemovedEvent(
                bar_index=event.bar_index, level=level, reason="swing_point_removed"
            ))

    def on_fvg_detected(self, event: LevelEvent) -> None:
        self._pending_fvgs[event.level.direction].append(event.level.id)

    # Strategy hooks

    def detect(self, point: SwingPoint) -> List[Level]:
        highs = [p for p in self._history if p.is_high and p.index <= point.index]
        lows = [p for p in self._history if not p.is_high and p.index <= point.index]

        if not point.is_high:
            if len(highs) < 1 or len(lows) < 2:
                return []
            top, bottom = highs[-1], lows[-2]
            if bottom.index >= top.index:
                return []
            level = Level(
                level_type=LevelType.ORDER_FLOW,
                direction=Direction.UP,
                low=bottom.price,
                high=top.price,
                index=bottom.index,
                index_high=top.index,
                index_low=bottom.index,
                low_time=bottom.timestamp,
                high_time=top.timestamp,
            )
        else:
            if len(lows) < 1 or len(highs) < 2:
                return []
            top, bottom = highs[-2], lows[-1]
            if top.index >= bottom.index:
                return []
            level = Level(
                level_type=LevelType.ORDER_FLOW,
                direction=Direction.DOWN,
                low=bottom.price,
                high=top.price,
                index=top.index,
                index_high=top.index,
                index_low=bottom.index,
                low_time=bottom.timestamp,
                high_time=top.timestamp,
            )

        self._annotate_swept(level)
        return [level]

    def direction_of(self, level: Level) -> Direction:
        return level.direction

    def validate(self, level: Level, peers: List[Level]) -> bool:
        return not any(
            peer.index_low == level.index_low and peer.index_high == level.index_high
            for peer in peers
        )

    def prepare(self, level: Level, bar_index: int) -> None:
        end = max(level.index_low, level.index_high)
        for index in level.swept_swing_point_indices:
            point = self._point_at(index)
            if point is None:
                continue
            if not point.swept:
                sweep_at = first_breach(
                    self.ctx.candles, point.index + 1, end, point.price, point.direction
                )
                if sweep_at is not None:
                    point.mark_swept(sweep_at)
            self._claimed.add(index)

        boundary_index = level.index_high if level.direction is Direction.UP else level.index_low
        boundary = self._point_at(boundary_index)
        if boundary is not None and level.swept_swing_point_index is not None:
            boundary.swept_liquidity = True

        pending = self._pending_fvgs[level.direction]
        for fvg_id in pending:
            fvg = self.ctx.levels.get_by_id(fvg_id)
            if fvg is not None:
                fvg.order_flow_id = level.id
        pending.clear()

    # Helpers

    def _annotate_swept(self, level: Level) -> None:
        """Record the liquidity the leg took, most extreme point first."""
        start = min(level.index_low, level.index_high)
        end = max(level.index_low, level.index_high)

        if level.direction is Direction.UP:
            candidates = [
                p for p in self._history
                if p.is_high
                and p.index not in self._claimed
                and level.low < p.price < level.high
                and p.index < level.index_high
            ]
            candidates.sort(key=lambda p: p.price, reverse=True)
            breach_direction = Direction.UP
        else:
            candidates = [
                p for p in self._history
                if not p.is_high
                and p.index not in self._claimed
                and level.low < p.price < level.high
                and p.index < level.index_low
            ]
            candidates.sort(key=lambda p: p.price)
            breach_direction = Direction.DOWN

        if not candidates:
            return

        primary = candidates[0]
        sweep_at = first_breach(self.ctx.candles, start, end, primary.price, breach_direction)
        level.swept_swing_point_index = primary.index
        level.swept_swing_point_indices = sorted(p.index for p in candidates)
        level.index_of_sweeping_candle = sweep_at if sweep_at is not None else end
        level.swept_liquidity = True

    def _point_at(self, index: int):
        for point in self._history:
            if point.index == index:
                return point
        return None
