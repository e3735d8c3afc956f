"""
Tests for order flow / liquidity sweep detection.
"""

import pytest

from src.price_action.detectors import OrderFlowDetector, run_pipeline
from src.price_action.events import (
    EventKind,
    FvgDetectedEvent,
    SwingPointDetectedEvent,
    SwingPointRemovedEvent,
)
from src.price_action.models import Level
from src.price_action.types import Direction, LevelType

from conftest import fill_store, of_kind, swing_at

FILLER = (106, 107, 105, 106.5)
CANDLES = {
    2: (101, 102, 100, 101.5),    # swing low 100
    5: (108, 110, 107.5, 109),    # swing high 110
    8: (105, 106, 104, 105.5),    # swing low 104
    10: (106, 112, 105.5, 111),   # trades through 110
    11: (111, 115, 110.5, 114),   # swing high 115
    14: (109, 110, 108, 109.5),   # swing low 108
}
SWINGS = [
    (2, Direction.DOWN),
    (5, Direction.UP),
    (8, Direction.DOWN),
    (11, Direction.UP),
    (14, Direction.DOWN),
]


@pytest.fixture
def setup(ctx, candles):
    fill_store(candles, [CANDLES.get(i, FILLER) for i in range(15)])
    detector = OrderFlowDetector(ctx)
    points = {index: swing_at(candles, index, direction) for index, direction in SWINGS}
    return detector, points


def publish(bus, point):
    bus.publish(SwingPointDetectedEvent(bar_index=14, swing_point=point))


def order_flows(levels, direction=None):
    return [
        level for level in levels.get_by_type(LevelType.ORDER_FLOW)
        if direction is None or level.direction is direction
    ]


class TestOrderFlowLegs:

    def test_new_low_confirms_bullish_leg(self, setup, levels, bus):
        _, points = setup
        for index in (2, 5, 8):
            publish(bus, points[index])

        [flow] = order_flows(levels)
        assert flow.direction is Direction.UP
        assert (flow.low, flow.high) == (100, 110)
        assert (flow.index_low, flow.index_high) == (2, 5)
        assert flow.index == 2
        assert flow.swept_swing_point_index is None

    def test_new_high_confirms_bearish_leg(self, setup, levels, bus):
        _, points = setup
        for index in (2, 5, 8, 11):
            publish(bus, points[index])

        [flow] = order_flows(levels, Direction.DOWN)
        assert (flow.low, flow.high) == (104, 110)
        assert (flow.index_high, flow.index_low) == (5, 8)
        assert flow.index == 5

    def test_leg_records_swept_liquidity(self, setup, levels, bus):
        _, points = setup
        for index in (2, 5, 8, 11, 14):
            publish(bus, points[index])

        flow = max(order_flows(levels, Direction.UP), key=lambda level: level.index)
        assert (flow.low, flow.high) == (104, 115)
        assert flow.swept_swing_point_index == 5
        assert flow.swept_swing_point_indices == [5]
        assert flow.index_of_sweeping_candle == 10
        assert flow.swept_liquidity

        assert points[5].swept
        assert points[5].index_of_sweeping_candle == 10
        assert points[11].swept_liquidity
        assert len(of_kind(bus.history, EventKind.ORDER_FLOW_DETECTED)) == 3

    def test_claimed_point_not_reused(self, setup, levels, bus):
        detector, points = setup
        for index in (2, 5, 8, 11, 14):
            publish(bus, points[index])

        run_pipeline(detector, detector.ctx, 14, trigger=points[14])

        flows = [
            level for level in order_flows(levels)
            if (level.index_low, level.index_high) == (8, 11)
        ]
        assert len(flows) == 1

    def test_duplicate_leg_rejected(self, setup):
        detector, _ = setup
        level = Level(
            level_type=LevelType.ORDER_FLOW, direction=Direction.UP,
            low=100, high=110, index=2, index_high=5, index_low=2,
        )
        twin = Level(
            level_type=LevelType.ORDER_FLOW, direction=Direction.UP,
            low=100, high=110, index=2, index_high=5, index_low=2,
        )

        assert detector.validate(twin, [level]) is False
        assert detector.validate(twin, []) is True

    def test_republished_point_ignored(self, setup, levels, bus):
        _, points = setup
        for index in (2, 5, 8):
            publish(bus, points[index])

        publish(bus, points[8])

        assert len(order_flows(levels)) == 1


class TestOrderFlowLinks:

    def test_pending_fvg_claimed_by_next_flow(self, setup, levels, bus):
        detector, points = setup
        for index in (2, 5, 8, 11):
            publish(bus, points[index])
        fvg = Level(
            level_type=LevelType.FAIR_VALUE_GAP, direction=Direction.UP,
            low=110, high=110.5, index=12, index_high=12, index_low=10, index_mid=11,
        )
        levels.add(fvg)
        bus.publish(FvgDetectedEvent(bar_index=12, level=fvg))
        assert detector.pending_fvg_ids(Direction.UP) == [fvg.id]

        publish(bus, points[14])

        flow = max(order_flows(levels, Direction.UP), key=lambda level: level.index)
        assert fvg.order_flow_id == flow.id
        assert detector.pending_fvg_ids(Direction.UP) == []

    def test_removed_swing_point_removes_flow(self, setup, levels, bus):
        detector, points = setup
        for index in (2, 5, 8, 11, 14):
            publish(bus, points[index])

        bus.publish(SwingPointRemovedEvent(bar_index=14, swing_point=points[11]))

        assert all(11 not in (lv.index_low, lv.index_high) for lv in order_flows(levels))
        assert len(order_flows(levels)) == 2
        assert points[11] not in detector.history
        removed = of_kind(bus.history, EventKind.LEVEL_REMOVED)
        assert [e.reason for e in removed] == ["swing_point_removed"]
