"""
Shared detection pipeline.

Every level detector runs the same sequence: pre-validate the bar index,
detect candidate levels, post-validate them (geometry plus the detector's
own dedup rule), store, publish, log. Detectors plug into it through the
DetectionStrategy protocol rather than a base class.

Faults inside the pipeline are caught here, logged with traceback, and the
bar continues with the remaining detectors.
"""

import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol, Type

from ..candle_store import CandleStore
from ..event_bus import EventBus
from ..events import LevelEvent
from ..models import Level
from ..repository import LevelRepository
from ..types import Direction

logger = logging.getLogger(__name__)


@dataclass
class DetectorContext:
    """Handles shared by every detector, injected at construction."""
    candles: CandleStore
    levels: LevelRepository
    event_bus: EventBus
    price_tolerance: float = 0.0001
    min_bars_required: int = 2


class DetectionStrategy(Protocol):
    """
    Per-family hooks for ``run_pipeline``.

    ``direction_of`` classifies a candidate so the pipeline can hand
    ``validate`` the stored levels of the same type and direction (the
    dedup scope). A strategy may also define ``prepare(level, bar_index)``,
    called on an accepted level just before it is stored.

    Attributes:
        event_class: LevelEvent subclass published for each stored level.
    """

    event_class: Type[LevelEvent]

    def detect(self, trigger: Any) -> List[Level]:
        ...

    def direction_of(self, level: Level) -> Direction:
        ...

    def validate(self, level: Level, peers: List[Level]) -> bool:
        ...


def run_pipeline(
    strategy: DetectionStrategy,
    ctx: DetectorContext,
    bar_index: int,
    trigger: Any = None,
) -> List[Level]:
    """
    Run one detection pass.

    Args:
        strategy: Detector hooks.
        ctx: Shared handles.
        bar_index: Bar being processed; must already be in the candle store.
        trigger: Passed to ``strategy.detect``; defaults to bar_index.

    Returns:
        Levels stored and published by this pass.
    """
    name = type(strategy).__name__
    if not ctx.candles.contains(bar_index) or bar_index < ctx.min_bars_required:
        return []

    stored: List[Level] = []
    try:
        candidates = strategy.detect(bar_index if trigger is None else trigger)
        for level in candidates:
            if level is None or not level.is_valid:
                logger.debug(f"{name}: rejected degenerate level at bar {bar_index}")
                continue
            peers = ctx.levels.get_by_type_and_direction(
                level.level_type, strategy.direction_of(level)
            )
            if not strategy.validate(level, peers):
                logger.debug(f"{name}: rejected duplicate level at {level.index}")
                continue

            prepare = getattr(strategy, "prepare", None)
            if prepare is not None:
                prepare(level, bar_index)
            ctx.levels.add(level)
            ctx.event_bus.publish(strategy.event_class(bar_index=bar_index, level=level))
            logger.debug(
                f"{name}: {level.level_type.name} {level.direction.name} "
                f"[{level.low}, {level.high}] at {level.index}"
            )
            stored.append(level)
    except Exception:
        logger.exception(f"{name} failed at bar {bar_index}")
    return stored


def guarded(method: Callable) -> Callable:
    """Give a detector entry point the pipeline's fault boundary."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except Exception:
            logger.exception(f"{type(self).__name__}.{method.__name__} failed")
            return None

    return wrapper


def same_geometry(a: Level, b: Level, tolerance: float) -> bool:
    return abs(a.low - b.low) <= tolerance and abs(a.high - b.high) <= tolerance


def find_last_run(
    candles: CandleStore, start: int, end: int, direction: Direction
) -> List[int]:
    """
    Indices of the last run of ``direction`` candles in [start, end].

    Scans backward from end, skipping non-matching candles until the first
    match, then collects until the run breaks.
    """
    run: List[int] = []
    for i in range(end, start - 1, -1):
        candle = candles.get(i)
        if candle is None:
            return []
        if candle.direction is direction:
            run.insert(0, i)
        elif run:
            break
    return run


def first_breach(
    candles: CandleStore, start: int, end: int, price: float, direction: Direction
) -> Optional[int]:
    """First index in [start, end] trading above (UP) or below (DOWN) price."""
    for candle in candles.range(start, end):
        if direction is Direction.UP and candle.high > price:
            return candle.index
        if direction is Direction.DOWN and candle.low < price:
            return candle.index
    return None
