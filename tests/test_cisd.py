"""
Tests for CISD detection, confirmation and activation.
"""

import pytest

from src.price_action.detectors import CisdDetector
from src.price_action.events import EventKind, OrderFlowDetectedEvent
from src.price_action.models import Level
from src.price_action.types import Direction, LevelType

from conftest import fill_store, make_candle, of_kind

CANDLES = [
    (100, 101, 99, 100.5),
    (100.5, 101, 98, 98.5),
    (98.5, 99, 97, 97.5),        # swing low
    (97.5, 100, 97.2, 99.5),     # up run starts
    (99.5, 102, 99, 101.5),
    (101.5, 102.5, 101, 102),
    (102, 104, 101.8, 103.5),    # swing high, up run ends
    (103.5, 103.8, 101, 101.5),
    (101.5, 102, 96, 96.5),      # closes below 97.5 from above
    (96.5, 105, 96, 104.5),      # closes above 104
    (104.5, 107, 104, 106),
]


def flow(direction, index_low, index_high, swept=0):
    low_price = CANDLES[index_low][2]
    high_price = CANDLES[index_high][1]
    return Level(
        level_type=LevelType.ORDER_FLOW,
        direction=direction,
        low=low_price,
        high=high_price,
        index=min(index_low, index_high),
        index_high=index_high,
        index_low=index_low,
        swept_swing_point_index=swept,
    )


def cisd(direction, index, low, high, **kwargs):
    return Level(
        level_type=LevelType.CISD,
        direction=direction,
        low=low,
        high=high,
        index=index,
        index_high=index,
        index_low=index,
        **kwargs,
    )


@pytest.fixture
def detector(ctx, candles, swing_points):
    fill_store(candles, CANDLES)
    return CisdDetector(ctx, swing_points, max_per_direction=2)


def cisds(levels, direction=None):
    return [
        level for level in levels.get_by_type(LevelType.CISD)
        if direction is None or level.direction is direction
    ]


class TestCisdDetection:

    def test_bullish_flow_gives_bearish_cisd(self, detector, levels, bus):
        """Spans the open of the first up candle to the high of the last."""
        bus.publish(OrderFlowDetectedEvent(bar_index=6, level=flow(Direction.UP, 2, 6)))

        [level] = cisds(levels)
        assert level.direction is Direction.DOWN
        assert (level.low, level.high) == (97.5, 104)
        assert level.index == 3
        assert (level.index_low, level.index_high) == (3, 6)
        assert not level.is_confirmed
        assert len(of_kind(bus.history, EventKind.CISD_DETECTED)) == 1

    def test_bearish_flow_gives_bullish_cisd(self, detector, levels, bus):
        bus.publish(OrderFlowDetectedEvent(bar_index=8, level=flow(Direction.DOWN, 8, 6)))

        [level] = cisds(levels)
        assert level.direction is Direction.UP
        assert (level.low, level.high) == (96, 103.5)
        assert (level.index_high, level.index_low) == (7, 8)

    def test_flow_without_swept_liquidity_ignored(self, detector, levels, bus):
        bus.publish(OrderFlowDetectedEvent(bar_index=6, level=flow(Direction.UP, 2, 6, swept=None)))

        assert cisds(levels) == []

    def test_same_cisd_not_stored_twice(self, detector, levels, bus):
        source = flow(Direction.UP, 2, 6)
        bus.publish(OrderFlowDetectedEvent(bar_index=6, level=source))
        bus.publish(OrderFlowDetectedEvent(bar_index=6, level=source))

        assert len(cisds(levels)) == 1

    def test_trailing_opposite_candle_joins_run(self, detector):
        """An opposite candle closing the range right after a run belongs to it."""
        assert detector._last_delivery_run(2, 7, Direction.UP) == [3, 4, 5, 6, 7]
        assert detector._last_delivery_run(2, 5, Direction.UP) == [3, 4, 5]


class TestMaxCount:

    def test_oldest_unconfirmed_dropped(self, detector, levels, bus):
        old = cisd(Direction.DOWN, 0, 99, 101)
        newer = cisd(Direction.DOWN, 1, 98, 101)
        levels.add(old)
        levels.add(newer)

        bus.publish(OrderFlowDetectedEvent(bar_index=6, level=flow(Direction.UP, 2, 6)))

        assert [level.index for level in cisds(levels, Direction.DOWN)] == [1, 3]
        [removed] = of_kind(bus.history, EventKind.LEVEL_REMOVED)
        assert removed.level is old
        assert removed.reason == "max_cisd_count"

    def test_confirmed_cisds_not_counted(self, detector, levels, bus):
        levels.add(cisd(
            Direction.DOWN, 0, 99, 101, is_confirmed=True, index_of_confirming_candle=2
        ))
        levels.add(cisd(Direction.DOWN, 1, 98, 101))

        bus.publish(OrderFlowDetectedEvent(bar_index=6, level=flow(Direction.UP, 2, 6)))

        assert len(cisds(levels, Direction.DOWN)) == 3
        assert of_kind(bus.history, EventKind.LEVEL_REMOVED) == []


class TestLifecycle:

    @pytest.fixture
    def bearish(self, detector, levels, bus):
        bus.publish(OrderFlowDetectedEvent(bar_index=6, level=flow(Direction.UP, 2, 6)))
        return cisds(levels)[0]

    def test_confirmed_by_close_through_low(self, detector, candles, bearish, bus):
        assert detector.check_confirmation(candles.get(7)) == []

        assert detector.check_confirmation(candles.get(8)) == [bearish]
        assert bearish.is_confirmed
        assert bearish.index_of_confirming_candle == 8
        assert len(of_kind(bus.history, EventKind.CISD_CONFIRMED)) == 1

    def test_candles_before_cisd_end_never_confirm(self, detector, bearish):
        assert detector.check_confirmation(make_candle(5, 101.5, 102, 96, 96.5)) == []

    def test_activation_requires_confirmation(self, detector, candles, bearish):
        assert detector.check_activation(candles.get(9)) == []
        assert not bearish.activated

    def test_activated_once(self, detector, candles, bearish, bus):
        detector.check_confirmation(candles.get(8))

        assert detector.check_activation(candles.get(9)) == [bearish]
        assert detector.check_activation(candles.get(10)) == []
        assert bearish.activated
        assert bearish.activation_index == 9
        assert len(of_kind(bus.history, EventKind.CISD_ACTIVATED)) == 1

    def test_not_activated_on_confirming_candle(self, detector, levels):
        level = cisd(
            Direction.UP, 3, 100, 105, is_confirmed=True, index_of_confirming_candle=9
        )
        levels.add(level)

        assert detector.check_activation(make_candle(9, 101, 101.5, 98, 99)) == []
        assert detector.check_activation(make_candle(10, 101, 101.5, 98, 99)) == [level]
