"""
Shared test fixtures and helpers for price action tests.
"""

from typing import Iterable, Tuple

import pytest

from src.price_action.candle_store import CandleStore
from src.price_action.detectors import DetectorContext
from src.price_action.event_bus import EventBus
from src.price_action.events import EventKind
from src.price_action.models import SwingPoint
from src.price_action.repository import LevelRepository, SwingPointRepository
from src.price_action.types import Candle, Direction


def make_candle(
    index: int,
    open_: float,
    high: float,
    low: float,
    close: float,
    timestamp: int = None,
) -> Candle:
    """Helper to create Candle objects for testing.

    Args:
        index: Candle index in the sequence
        open_: Opening price
        high: High price
        low: Low price
        close: Closing price
        timestamp: Unix timestamp (defaults to 1700000000 + index * 60)

    Returns:
        Candle object for use in detector tests
    """
    return Candle(
        index=index,
        timestamp=timestamp or 1700000000 + index * 60,
        open=open_,
        high=high,
        low=low,
        close=close,
    )


def fill_store(store: CandleStore, rows: Iterable[Tuple[float, float, float, float]]) -> None:
    """Append (open, high, low, close) rows as consecutive candles."""
    for row in rows:
        store.append(make_candle(len(store), *row))


def swing_at(store: CandleStore, index: int, direction: Direction) -> SwingPoint:
    """SwingPoint built from the stored candle at index."""
    return SwingPoint.from_candle(store.get(index), direction)


def kinds(events) -> list:
    return [e.event_type for e in events]


def of_kind(events, kind: EventKind) -> list:
    return [e for e in events if e.event_type is kind]


@pytest.fixture
def bus():
    return EventBus(record=True)


@pytest.fixture
def candles():
    return CandleStore()


@pytest.fixture
def levels():
    return LevelRepository()


@pytest.fixture
def swing_points():
    return SwingPointRepository()


@pytest.fixture
def ctx(candles, levels, bus):
    return DetectorContext(candles=candles, levels=levels, event_bus=bus)
