"""
Tests for incremental swing point detection.

Covers the window rule and its tie-break, confirmation lag, sweep marking,
outside bars, and superseding of same-direction points.
"""

import pytest

from src.price_action.events import EventKind
from src.price_action.swing_point_detector import (
    SwingPointDetector,
    is_swing_high,
    is_swing_low,
)
from src.price_action.types import Direction

from conftest import make_candle, of_kind


@pytest.fixture
def detector(candles, swing_points, bus):
    return SwingPointDetector(candles, swing_points, bus, lookback=2)


def run(detector, candles, rows):
    """Append rows one at a time, processing each bar like the engine does."""
    confirmed = []
    for row in rows:
        candles.append(make_candle(len(candles), *row))
        confirmed.extend(detector.process_bar(len(candles) - 1))
    return confirmed


RISING_THEN_PULLBACK = [
    (10, 11, 9, 10.5),
    (10.5, 12, 10, 11.5),
    (11.5, 15, 11, 14),
    (14, 14.5, 12, 12.5),
    (12.5, 13, 11.5, 12),
]


class TestWindowFunctions:
    """Test the pure window checks."""

    def test_strict_maximum_is_swing_high(self):
        assert is_swing_high(2, [1.0, 2.0, 5.0, 3.0, 2.0], 2)

    def test_earliest_of_equal_highs_wins(self):
        highs = [11, 12, 15, 15, 13, 12]

        assert is_swing_high(2, highs, 2)
        assert not is_swing_high(3, highs, 2)

    def test_earliest_of_equal_lows_wins(self):
        lows = [11, 10, 7, 7, 8, 9]

        assert is_swing_low(2, lows, 2)
        assert not is_swing_low(3, lows, 2)

    def test_incomplete_window_is_not_a_swing(self):
        assert not is_swing_high(1, [1.0, 5.0, 2.0, 1.0], 2)
        assert not is_swing_high(3, [1.0, 2.0, 3.0, 5.0, 1.0], 2)


class TestConfirmation:
    """Test incremental confirmation."""

    def test_swing_high_confirmed_after_lookback(self, detector, candles, swing_points, bus):
        """The candidate at N - k is confirmed on bar N."""
        confirmed = run(detector, candles, RISING_THEN_PULLBACK[:4])
        assert confirmed == []

        confirmed = run(detector, candles, RISING_THEN_PULLBACK[4:])

        assert len(confirmed) == 1
        point = confirmed[0]
        assert point.index == 2
        assert point.price == 15
        assert point.direction is Direction.UP
        assert swing_points.get_all() == [point]

        detected = of_kind(bus.history, EventKind.SWING_POINT_DETECTED)
        assert len(detected) == 1
        assert detected[0].bar_index == 4
        assert detected[0].swing_point is point

    def test_swing_low_confirmed(self, detector, candles, swing_points):
        confirmed = run(detector, candles, [
            (15, 15.5, 14, 14.2),
            (14.2, 14.5, 13, 13.1),
            (13.1, 13.2, 10, 10.5),
            (10.5, 12, 10.4, 11.8),
            (11.8, 13, 11.5, 12.9),
        ])

        assert [(p.index, p.price, p.direction) for p in confirmed] == [(2, 10, Direction.DOWN)]

    def test_missing_candle_is_skipped(self, detector, caplog):
        assert detector.process_bar(7) == []
        assert "not available" in caplog.text


class TestOutsideBar:
    """A candle with both the window high and low yields one point."""

    def test_up_outside_bar_is_swing_high(self, detector, candles):
        confirmed = run(detector, candles, [
            (10, 11, 9, 10.5),
            (10.5, 11.5, 9.5, 11),
            (11, 13, 8, 12.5),
            (12.5, 12.8, 9, 10),
            (10, 12, 9.2, 11),
        ])

        assert [(p.index, p.direction) for p in confirmed] == [(2, Direction.UP)]

    def test_down_outside_bar_is_swing_low(self, detector, candles):
        confirmed = run(detector, candles, [
            (10, 11, 9, 10.5),
            (10.5, 11.5, 9.5, 11),
            (11, 13, 8, 9),
            (9, 12.8, 9, 10),
            (10, 12, 9.2, 11),
        ])

        assert [(p.index, p.direction) for p in confirmed] == [(2, Direction.DOWN)]


class TestSweeps:
    """Test sweep marking."""

    def test_first_breaching_candle_sweeps(self, detector, candles, bus):
        run(detector, candles, RISING_THEN_PULLBACK)
        point = detector.repository.get_by_index(2)

        run(detector, candles, [(12, 15, 11.8, 14.8)])
        assert not point.swept

        run(detector, candles, [(14.8, 15.5, 14, 15.2), (15.2, 16, 15, 15.8)])

        assert point.swept
        assert point.index_of_sweeping_candle == 6
        swept = of_kind(bus.history, EventKind.SWING_POINT_SWEPT)
        assert len(swept) == 1
        assert swept[0].swing_point is point

    def test_swept_points_are_retained(self, detector, candles, swing_points):
        run(detector, candles, RISING_THEN_PULLBACK + [(12, 15.5, 11.8, 15.2)])

        assert len(swing_points) == 1
        assert swing_points.get_unswept() == []


class TestSupersede:
    """Test same-direction points with no opposite point between them."""

    def test_more_extreme_point_replaces_previous(self, detector, candles, swing_points, bus):
        confirmed = run(detector, candles, [
            (10, 11, 9, 10.5),
            (10.5, 12, 10, 11.5),
            (11.5, 15, 11, 14),
            (14, 14.5, 12, 12.5),
            (12.5, 13, 12.2, 12.8),
            (12.8, 17, 12.5, 16.5),
            (16.5, 16.8, 14, 15),
            (15, 16, 14.5, 15.5),
        ])

        assert [p.index for p in confirmed] == [2, 5]
        assert [p.index for p in swing_points] == [5]

        removed = of_kind(bus.history, EventKind.SWING_POINT_REMOVED)
        assert [e.swing_point.index for e in removed] == [2]
        assert removed[0].bar_index == 7

    def test_less_extreme_point_discarded(self, detector, candles, swing_points, bus):
        confirmed = run(detector, candles, [
            (10, 11, 9, 10.5),
            (10.5, 12, 10, 11.5),
            (11.5, 15, 11, 14),
            (14, 14.2, 12, 12.5),
            (12.5, 13, 12.2, 12.8),
            (12.8, 14.6, 12.5, 14),
            (14, 14.4, 13, 13.5),
            (13.5, 14, 13.2, 13.8),
        ])

        assert [p.index for p in confirmed] == [2]
        assert [p.index for p in swing_points] == [2]
        assert of_kind(bus.history, EventKind.SWING_POINT_REMOVED) == []

    def test_replacement_inherits_swept_liquidity(self, detector, candles, swing_points):
        rows = [
            (10, 11, 9, 10.5),
            (10.5, 12, 10, 11.5),
            (11.5, 15, 11, 14),
            (14, 14.5, 12, 12.5),
            (12.5, 13, 12.2, 12.8),
            (12.8, 17, 12.5, 16.5),
            (16.5, 16.8, 14, 15),
            (15, 16, 14.5, 15.5),
        ]
        [first] = run(detector, candles, rows[:5])
        first.swept_liquidity = True

        [replacement] = run(detector, candles, rows[5:])

        assert replacement.index == 5
        assert replacement.swept_liquidity
        assert [p.index for p in swing_points] == [5]
