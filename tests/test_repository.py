"""
Tests for the swing point and level repositories.
"""

import pytest

from src.price_action.models import Level, SwingPoint
from src.price_action.repository import LevelRepository, Repository, SwingPointRepository
from src.price_action.types import Direction, LevelType

from conftest import make_candle


def point(index, price, direction):
    candle = make_candle(index, price, price + 1, price - 1, price)
    sp = SwingPoint.from_candle(candle, direction)
    sp.price = price
    return sp


def level(level_type, direction, index, low=100.0, high=101.0):
    return Level(
        level_type=level_type,
        direction=direction,
        low=low,
        high=high,
        index=index,
        index_high=index,
        index_low=index,
    )


class TestRepository:
    """Test the generic collection."""

    def test_add_none_raises(self):
        with pytest.raises(ValueError):
            Repository().add(None)

    def test_remove_by_identity(self):
        repo = LevelRepository()
        a = level(LevelType.FAIR_VALUE_GAP, Direction.UP, 2)
        twin = level(LevelType.FAIR_VALUE_GAP, Direction.UP, 2)
        twin.id = a.id
        repo.add(a)

        assert not repo.remove(twin)
        assert repo.remove(a)
        assert len(repo) == 0

    def test_remove_where_returns_removed(self):
        repo = LevelRepository()
        for i in range(4):
            repo.add(level(LevelType.FAIR_VALUE_GAP, Direction.UP, i))

        removed = repo.remove_where(lambda lv: lv.index % 2 == 0)

        assert [lv.index for lv in removed] == [0, 2]
        assert [lv.index for lv in repo] == [1, 3]

    def test_get_all_is_a_copy(self):
        repo = LevelRepository()
        repo.add(level(LevelType.FAIR_VALUE_GAP, Direction.UP, 2))

        repo.get_all().clear()

        assert len(repo) == 1

    def test_first_and_exists(self):
        repo = LevelRepository()
        repo.add(level(LevelType.ORDER_BLOCK, Direction.DOWN, 4))

        assert repo.first(lambda lv: lv.index == 4) is not None
        assert repo.first(lambda lv: lv.index == 5) is None
        assert repo.exists(lambda lv: lv.direction is Direction.DOWN)


class TestSwingPointRepository:

    def test_last_by_direction(self):
        repo = SwingPointRepository()
        repo.add(point(2, 110, Direction.UP))
        repo.add(point(5, 100, Direction.DOWN))
        repo.add(point(8, 112, Direction.UP))

        assert repo.get_last().index == 8
        assert repo.get_last_high().index == 8
        assert repo.get_last_low().index == 5
        assert [p.index for p in repo.get_highs()] == [2, 8]
        assert repo.get_by_index(5).price == 100
        assert repo.get_by_index(6) is None

    def test_swept_partition(self):
        repo = SwingPointRepository()
        a, b = point(2, 110, Direction.UP), point(5, 100, Direction.DOWN)
        repo.add(a)
        repo.add(b)
        a.mark_swept(7)

        assert repo.get_swept() == [a]
        assert repo.get_unswept() == [b]

    def test_empty_queries(self):
        repo = SwingPointRepository()

        assert repo.get_last() is None
        assert repo.get_last_high() is None


class TestLevelRepository:

    def test_filters(self):
        repo = LevelRepository()
        fvg = level(LevelType.FAIR_VALUE_GAP, Direction.UP, 2)
        ob = level(LevelType.ORDER_BLOCK, Direction.DOWN, 3)
        repo.add(fvg)
        repo.add(ob)

        assert repo.get_by_id(ob.id) is ob
        assert repo.get_by_id(None) is None
        assert repo.get_by_type(LevelType.FAIR_VALUE_GAP) == [fvg]
        assert repo.get_by_direction(Direction.DOWN) == [ob]
        assert repo.get_by_type_and_direction(LevelType.ORDER_BLOCK, Direction.UP) == []

    def test_get_active_skips_swept(self):
        repo = LevelRepository()
        live = level(LevelType.ORDER_BLOCK, Direction.UP, 2)
        dead = level(LevelType.ORDER_BLOCK, Direction.UP, 3)
        dead.is_liquidity_swept = True
        repo.add(live)
        repo.add(dead)

        assert repo.get_active() == [live]
        assert repo.get_active(LevelType.FAIR_VALUE_GAP) == []

    def test_get_most_recent_by_index(self):
        repo = LevelRepository()
        repo.add(level(LevelType.CISD, Direction.UP, 9))
        repo.add(level(LevelType.CISD, Direction.DOWN, 12))
        repo.add(level(LevelType.CISD, Direction.UP, 4))

        assert repo.get_most_recent(LevelType.CISD).index == 12
        assert repo.get_most_recent(LevelType.CISD, Direction.UP).index == 9
        assert repo.get_most_recent(LevelType.UNICORN) is None
