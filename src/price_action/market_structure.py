"""
Market Structure Analyzer

Tracks directional bias from the swing point stream and classifies each
new swing point as a break of structure (BOS), a change of character
(CHOCH), an inducement update, or nothing.

The classification itself is the pure function ``transition``: given the
same starting state, the same point and the same protected opposite
extreme, it always yields the same result. ``MarketStructureAnalyzer``
applies it to the event stream, tags points, maintains external liquidity
and standard-deviation projections, and publishes structure events.

Rules for a new swing high ``p`` (lows mirror them):

- bias UP and ``p`` above the BOS high: BOS(UP). ``p`` becomes the BOS
  high; the last low before ``p`` becomes BOS low and CHOCH low.
- bias DOWN and ``p`` above the CHOCH high: CHOCH(UP). Bias flips, BOS and
  CHOCH anchors reset, ``p`` becomes the BOS high and the last low before
  it the CHOCH low.
- bias DOWN otherwise: ``p`` is the new inducement high.
- bias UP otherwise: no structural change.
"""

import logging
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import List, Optional, Set

from sortedcontainers import SortedList

from .event_bus import EventBus
from .events import (
    BreakOfStructureEvent,
    ChangeOfCharacterEvent,
    EventKind,
    InducementUpdatedEvent,
    StandardDeviationCreatedEvent,
    StandardDeviationSweptEvent,
    SwingPointEvent,
)
from .models import StandardDeviation, SwingPoint
from .types import Candle, Direction, SwingType

logger = logging.getLogger(__name__)


class StructureOutcome(Enum):
    BOS = "bos"
    CHOCH = "choch"
    INDUCEMENT = "inducement"
    NONE = "none"


@dataclass(frozen=True)
class StructureState:
    """Bias plus the swing points anchoring it."""
    bias: Direction = Direction.UP
    bos_high: Optional[SwingPoint] = None
    bos_low: Optional[SwingPoint] = None
    choch_high: Optional[SwingPoint] = None
    choch_low: Optional[SwingPoint] = None
    inducement_high: Optional[SwingPoint] = None
    inducement_low: Optional[SwingPoint] = None

    def without(self, point: SwingPoint) -> "StructureState":
        """Copy with every anchor that is ``point`` cleared."""
        cleared = {
            f.name: None
            for f in fields(self)
            if f.name != "bias" and getattr(self, f.name) is point
        }
        return replace(self, **cleared) if cleared else self


@dataclass(frozen=True)
class Transition:
    """
    Result of classifying one swing point.

    Attributes:
        state: State after the point.
        outcome: Exactly one of BOS, CHOCH, INDUCEMENT or NONE.
        swing_type: Tag for the point.
        broken: Anchor the point broke (BOS / CHOCH).
        projection_from: Opposite extreme for a standard-deviation
            projection (BOS only).
        previous_inducement: Inducement replaced (INDUCEMENT only).
    """
    state: StructureState
    outcome: StructureOutcome
    swing_type: SwingType
    broken: Optional[SwingPoint] = None
    projection_from: Optional[SwingPoint] = None
    previous_inducement: Optional[SwingPoint] = None


def _beyond(point: SwingPoint, anchor: SwingPoint) -> bool:
    if point.is_high:
        return point.price > anchor.price
    return point.price < anchor.price


def transition(
    state: StructureState,
    point: SwingPoint,
    protected: Optional[SwingPoint] = None,
) -> Transition:
    """
    Classify a swing point against the current structure.

    Args:
        state: Structure before the point.
        point: New swing point.
        protected: Most recent opposite-direction swing point before
            ``point``, the extreme a BOS or CHOCH leaves behind.

    Returns:
        Transition holding the new state and the single outcome.
    """
    if point.is_high:
        with_trend = Direction.UP
        bos, choch, ind = "bos_high", "choch_high", "inducement_high"
        opp_bos, opp_choch = "bos_low", "choch_low"
        extend_tag, seed_tag, pullback_tag = SwingType.HH, SwingType.H, SwingType.LH
    else:
        with_trend = Direction.DOWN
        bos, choch, ind = "bos_low", "choch_low", "inducement_low"
        opp_bos, opp_choch = "bos_high", "choch_high"
        extend_tag, seed_tag, pullback_tag = SwingType.LL, SwingType.L, SwingType.HL

    if state.bias is with_trend:
        anchor = getattr(state, bos)
        if anchor is None:
            return Transition(replace(state, **{bos: point}), StructureOutcome.NONE, seed_tag)
        if _beyond(point, anchor):
            updates = {bos: point}
            if protected is not None:
                updates[opp_bos] = protected
                updates[opp_choch] = protected
            return Transition(
                replace(state, **updates),
                StructureOutcome.BOS,
                extend_tag,
                broken=anchor,
                projection_from=protected if protected is not None else getattr(state, opp_bos),
            )
        return Transition(state, StructureOutcome.NONE, pullback_tag)

    anchor = getattr(state, choch)
    if anchor is not None and _beyond(point, anchor):
        flipped = StructureState(
            bias=with_trend,
            inducement_high=state.inducement_high,
            inducement_low=state.inducement_low,
        )
        flipped = replace(flipped, **{bos: point, opp_choch: protected})
        return Transition(flipped, StructureOutcome.CHOCH, extend_tag, broken=anchor)

    updates = {ind: point}
    tag = pullback_tag
    if anchor is None:
        updates[choch] = point
        tag = seed_tag
    return Transition(
        replace(state, **updates),
        StructureOutcome.INDUCEMENT,
        tag,
        previous_inducement=getattr(state, ind),
    )


class MarketStructureAnalyzer:
    """
    Applies ``transition`` to the swing point event stream.

    Args:
        event_bus: Bus to subscribe to swing point events and publish on.
        show_standard_deviation: Create projections on BOS.
        initial_bias: Bias before any structure exists.
    """

    def __init__(
        self,
        event_bus: EventBus,
        show_standard_deviation: bool = True,
        initial_bias: Direction = Direction.UP,
    ):
        self.event_bus = event_bus
        self.show_standard_deviation = show_standard_deviation
        self._state = StructureState(bias=initial_bias)
        self._processed: Set[int] = set()

        self._highs = SortedList(key=lambda p: p.index)
        self._lows = SortedList(key=lambda p: p.index)
        self._ordered_highs = SortedList(key=lambda p: -p.price)
        self._ordered_lows = SortedList(key=lambda p: p.price)
        self._external_liquidity = SortedList(key=lambda p: p.index)
        self._standard_deviations: List[StandardDeviation] = []

        event_bus.subscribe(EventKind.SWING_POINT_DETECTED, self.on_swing_point_detected)
        event_bus.subscribe(EventKind.SWING_POINT_REMOVED, self.on_swing_point_removed)
        event_bus.subscribe(EventKind.SWING_POINT_SWEPT, self.on_swing_point_swept)

    # Queries

    @property
    def state(self) -> StructureState:
        return self._state

    @property
    def bias(self) -> Direction:
        return self._state.bias

    def standard_deviations(self) -> List[StandardDeviation]:
        return list(self._standard_deviations)

    def external_liquidity(self) -> List[SwingPoint]:
        """Unswept higher highs and lower lows in index order."""
        return list(self._external_liquidity)

    def ordered_highs(self) -> List[SwingPoint]:
        return list(self._ordered_highs)

    def ordered_lows(self) -> List[SwingPoint]:
        return list(self._ordered_lows)

    # Event handlers

    def on_swing_point_detected(self, event: SwingPointEvent) -> None:
        self.process_swing_point(event.swing_point, event.bar_index)

    def on_swing_point_removed(self, event: SwingPointEvent) -> None:
        point = event.swing_point
        for collection in (
            self._highs,
            self._lows,
            self._ordered_highs,
            self._ordered_lows,
            self._external_liquidity,
        ):
            self._discard(collection, point)

        self._state = self._state.without(point)
        self._standard_deviations = [
            sd for sd in self._standard_deviations
            if sd.index != point.index and sd.from_index != point.index
        ]

    def on_swing_point_swept(self, event: SwingPointEvent) -> None:
        self._discard(self._external_liquidity, event.swing_point)

    # Processing

    def process_swing_point(self, point: SwingPoint, bar_index: int) -> StructureOutcome:
        """
        Classify a swing point and publish the resulting structure event.

        A point whose index was already processed is ignored.
        """
        if point is None or point.index in self._processed:
            logger.debug(f"Ignoring duplicate swing point at {getattr(point, 'index', None)}")
            return StructureOutcome.NONE
        self._processed.add(point.index)

        protected = self._last_before(self._lows if point.is_high else self._highs, point.index)
        self._mark_std_dev_activation(point)

        if point.is_high:
            self._highs.add(point)
            self._ordered_highs.add(point)
        else:
            self._lows.add(point)
            self._ordered_lows.add(point)

        result = transition(self._state, point, protected)
        self._state = result.state
        point.swing_type = result.swing_type

        if result.outcome is StructureOutcome.BOS:
            self._external_liquidity.add(point)
            logger.debug(f"BOS {self.bias.name} at {point.index} price={point.price}")
            self.event_bus.publish(BreakOfStructureEvent(
                bar_index=bar_index,
                swing_point=point,
                direction=self.bias,
                broken_price=result.broken.price,
            ))
            if self.show_standard_deviation and result.projection_from is not None:
                self._create_standard_deviation(result.projection_from, point, bar_index)
        elif result.outcome is StructureOutcome.CHOCH:
            self._external_liquidity.add(point)
            logger.debug(f"CHOCH {self.bias.name} at {point.index} price={point.price}")
            self.event_bus.publish(ChangeOfCharacterEvent(
                bar_index=bar_index,
                swing_point=point,
                direction=self.bias,
                broken_price=result.broken.price,
            ))
        elif result.outcome is StructureOutcome.INDUCEMENT:
            self.event_bus.publish(InducementUpdatedEvent(
                bar_index=bar_index,
                swing_point=point,
                previous=result.previous_inducement,
            ))

        return result.outcome

    def process_bar(self, candle: Candle) -> None:
        """Mark standard-deviation projections reached by the candle."""
        for sd in self._standard_deviations:
            if candle.index <= sd.index:
                continue
            for projection in sd.sweep(candle):
                self.event_bus.publish(StandardDeviationSweptEvent(
                    bar_index=candle.index,
                    standard_deviation=sd,
                    projection=projection,
                ))

    def _create_standard_deviation(
        self, origin: SwingPoint, point: SwingPoint, bar_index: int
    ) -> None:
        sd = StandardDeviation(
            index=point.index,
            direction=Direction.UP if point.is_high else Direction.DOWN,
            anchor_from=origin.price,
            anchor_to=point.price,
            from_index=origin.index,
        )
        self._standard_deviations.append(sd)
        self.event_bus.publish(StandardDeviationCreatedEvent(
            bar_index=bar_index, standard_deviation=sd
        ))

    def _mark_std_dev_activation(self, point: SwingPoint) -> None:
        for sd in self._standard_deviations:
            if sd.direction is not point.direction:
                continue
            if point.is_high:
                reached = point.price >= sd.minus_two
            else:
                reached = point.price <= sd.minus_two
            if reached:
                point.activated_std_dev = True
                point.swept_std_dev_index = sd.index

    @staticmethod
    def _last_before(points: SortedList, index: int) -> Optional[SwingPoint]:
        position = points.bisect_key_left(index)
        return points[position - 1] if position > 0 else None

    @staticmethod
    def _discard(collection: SortedList, point: SwingPoint) -> None:
        for i, existing in enumerate(collection):
            if existing is point:
                del collection[i]
                return
