"""
Pattern Repositories

In-memory collections holding recognized patterns, one per family.

All repositories assume single-threaded use: the engine mutates them from
inside ``process_bar`` and its event cascade, and readers query between
bars. Concurrent mutation needs external synchronization.
"""

from typing import Callable, Generic, Iterator, List, Optional, TypeVar

from .models import Level, SwingPoint
from .types import Direction, LevelType

T = TypeVar("T")
Predicate = Callable[[T], bool]


class Repository(Generic[T]):
    """Insertion-ordered collection with predicate queries."""

    def __init__(self):
        self._items: List[T] = []

    def add(self, item: T) -> None:
        if item is None:
            raise ValueError("Cannot add None to a repository")
        self._items.append(item)

    def remove(self, item: T) -> bool:
        for i, existing in enumerate(self._items):
            if existing is item:
                del self._items[i]
                return True
        return False

    def remove_where(self, predicate: Predicate) -> List[T]:
        """Remove every item matching predicate; returns the removed items."""
        removed = [item for item in self._items if predicate(item)]
        if removed:
            self._items = [item for item in self._items if not predicate(item)]
        return removed

    def find(self, predicate: Predicate) -> List[T]:
        return [item for item in self._items if predicate(item)]

    def first(self, predicate: Predicate) -> Optional[T]:
        for item in self._items:
            if predicate(item):
                return item
        return None

    def exists(self, predicate: Predicate) -> bool:
        return any(predicate(item) for item in self._items)

    def get_all(self) -> List[T]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))


class SwingPointRepository(Repository[SwingPoint]):
    """Swing points in confirmation order (which is also index order)."""

    def get_highs(self) -> List[SwingPoint]:
        return self.find(lambda p: p.is_high)

    def get_lows(self) -> List[SwingPoint]:
        return self.find(lambda p: not p.is_high)

    def get_last(self) -> Optional[SwingPoint]:
        return self._items[-1] if self._items else None

    def get_last_high(self) -> Optional[SwingPoint]:
        for point in reversed(self._items):
            if point.is_high:
                return point
        return None

    def get_last_low(self) -> Optional[SwingPoint]:
        for point in reversed(self._items):
            if not point.is_high:
                return point
        return None

    def get_by_index(self, index: int) -> Optional[SwingPoint]:
        return self.first(lambda p: p.index == index)

    def get_unswept(self) -> List[SwingPoint]:
        return self.find(lambda p: not p.swept)

    def get_swept(self) -> List[SwingPoint]:
        return self.find(lambda p: p.swept)


class LevelRepository(Repository[Level]):
    """Levels of every family; query by type and direction."""

    def get_by_id(self, level_id: Optional[str]) -> Optional[Level]:
        if level_id is None:
            return None
        return self.first(lambda level: level.id == level_id)

    def get_by_type(self, level_type: LevelType) -> List[Level]:
        return self.find(lambda level: level.level_type is level_type)

    def get_by_direction(self, direction: Direction) -> List[Level]:
        return self.find(lambda level: level.direction is direction)

    def get_by_type_and_direction(
        self, level_type: LevelType, direction: Direction
    ) -> List[Level]:
        return self.find(
            lambda level: level.level_type is level_type and level.direction is direction
        )

    def get_active(self, level_type: Optional[LevelType] = None) -> List[Level]:
        return self.find(
            lambda level: level.is_active
            and (level_type is None or level.level_type is level_type)
        )

    def get_most_recent(
        self, level_type: LevelType, direction: Optional[Direction] = None
    ) -> Optional[Level]:
        """Level of the given type with the highest anchor index."""
        candidates = self.find(
            lambda level: level.level_type is level_type
            and (direction is None or level.direction is direction)
        )
        if not candidates:
            return None
        return max(candidates, key=lambda level: level.index)
