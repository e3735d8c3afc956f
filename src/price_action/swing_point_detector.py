"""
Swing Point Detector

Confirms swing highs and lows as bars close, tracks when stored swing
points are swept, and supersedes a swing point when a later, more extreme
point of the same direction is confirmed before any opposite point.

A candle at index c is a swing high when its high is the maximum of the
window [c - k, c + k] and no earlier candle in the window ties it, so the
earliest of equal highs wins. The candidate for bar N is therefore N - k;
confirmation lags by k bars.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from .candle_store import CandleStore
from .event_bus import EventBus
from .events import (
    SwingPointDetectedEvent,
    SwingPointRemovedEvent,
    SwingPointSweptEvent,
)
from .models import SwingPoint
from .repository import SwingPointRepository
from .types import Candle, Direction

logger = logging.getLogger(__name__)


def is_swing_high(idx: int, highs: Sequence[float], lookback: int) -> bool:
    """
    Check if bar at idx is a swing high.

    Every earlier bar in the ±lookback window must be strictly lower; later
    bars may equal it (earliest of equal highs wins).

    Example:
        >>> is_swing_high(2, [1.0, 2.0, 5.0, 3.0, 5.0], 2)
        True
        >>> is_swing_high(2, [1.0, 5.0, 5.0, 3.0, 2.0], 2)
        False
    """
    n = len(highs)
    if idx < lookback or idx >= n - lookback:
        return False

    window = np.asarray(highs[idx - lookback:idx + lookback + 1], dtype=float)
    center = window[lookback]
    return bool(np.all(window[:lookback] < center) and np.all(window[lookback + 1:] <= center))


def is_swing_low(idx: int, lows: Sequence[float], lookback: int) -> bool:
    """
    Check if bar at idx is a swing low.

    Mirror of is_swing_high: earlier bars strictly higher, later bars may tie.
    """
    n = len(lows)
    if idx < lookback or idx >= n - lookback:
        return False

    window = np.asarray(lows[idx - lookback:idx + lookback + 1], dtype=float)
    center = window[lookback]
    return bool(np.all(window[:lookback] > center) and np.all(window[lookback + 1:] >= center))


class SwingPointDetector:
    """
    Incremental swing point detection over a candle store.

    Args:
        candles: Shared candle history.
        repository: Swing point repository this detector owns.
        event_bus: Bus for detection, sweep and removal events.
        lookback: Candles on each side of a candidate (k).
    """

    def __init__(
        self,
        candles: CandleStore,
        repository: SwingPointRepository,
        event_bus: EventBus,
        lookback: int = 2,
    ):
        self.candles = candles
        self.repository = repository
        self.event_bus = event_bus
        self.lookback = lookback

    def process_bar(self, index: int) -> List[SwingPoint]:
        """
        Process the closed candle at index.

        Marks sweeps caused by this candle, then checks the candidate at
        index - lookback.

        Returns:
            Swing points confirmed on this bar (zero or one).
        """
        candle = self.candles.get(index)
        if candle is None:
            logger.warning(f"Swing scan skipped: candle {index} not available")
            return []

        self._mark_sweeps(candle)

        candidate = index - self.lookback
        if candidate < self.lookback:
            return []

        direction = self._classify(candidate)
        if direction is None:
            return []

        point = SwingPoint.from_candle(self.candles.get(candidate), direction)
        if not self._register(point, index):
            return []
        return [point]

    def _classify(self, candidate: int) -> Optional[Direction]:
        window = self.candles.range(candidate - self.lookback, candidate + self.lookback)
        highs = [c.high for c in window]
        lows = [c.low for c in window]

        high = is_swing_high(self.lookback, highs, self.lookback)
        low = is_swing_low(self.lookback, lows, self.lookback)
        if high and low:
            # Outside bar: one direction only, picked by candle direction
            return Direction.UP if self.candles.direction(candidate) is Direction.UP else Direction.DOWN
        if high:
            return Direction.UP
        if low:
            return Direction.DOWN
        return None

    def _register(self, point: SwingPoint, bar_index: int) -> bool:
        last = self.repository.get_last()
        if last is not None and last.direction is point.direction:
            if point.is_high:
                more_extreme = point.price > last.price
            else:
                more_extreme = point.price < last.price
            if not more_extreme:
                logger.debug(
                    f"Discarded swing {point.direction.name} at {point.index}: "
                    f"not beyond {last.price} at {last.index}"
                )
                return False
            if last.swept_liquidity:
                point.swept_liquidity = True
            self._remove(last, bar_index)

        self.repository.add(point)
        logger.debug(f"Swing {point.direction.name} at {point.index} price={point.price}")
        self.event_bus.publish(SwingPointDetectedEvent(bar_index=bar_index, swing_point=point))
        return True

    def _remove(self, point: SwingPoint, bar_index: int) -> None:
        self.repository.remove(point)
        logger.debug(f"Swing {point.direction.name} at {point.index} superseded")
        self.event_bus.publish(SwingPointRemovedEvent(bar_index=bar_index, swing_point=point))

    def _mark_sweeps(self, candle: Candle) -> None:
        for point in self.repository.get_unswept():
            if point.index < candle.index and point.breached_by(candle):
                point.mark_swept(candle.index)
                self.event_bus.publish(
                    SwingPointSweptEvent(bar_index=candle.index, swing_point=point)
                )
