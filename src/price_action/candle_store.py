"""
Candle Store

Append-only history of closed candles. Every other component refers to
candles by index and reads them from here.
"""

from typing import List, Optional

import numpy as np

from .types import Candle, Direction


class CandleStore:
    """
    Ordered candle history with random access by index.

    Out-of-range reads return None (or an empty slice) rather than raising;
    callers treat that as "not yet available".
    """

    def __init__(self):
        self._candles: List[Candle] = []
        self._highs: List[float] = []
        self._lows: List[float] = []
        self._closes: List[float] = []

    def append(self, candle: Candle) -> None:
        """
        Append the next closed candle.

        Raises:
            ValueError: If candle.index is not the next index in sequence.
        """
        expected = len(self._candles)
        if candle.index != expected:
            raise ValueError(
                f"Candle index {candle.index} out of sequence, expected {expected}"
            )
        self._candles.append(candle)
        self._highs.append(candle.high)
        self._lows.append(candle.low)
        self._closes.append(candle.close)

    @property
    def count(self) -> int:
        return len(self._candles)

    def __len__(self) -> int:
        return len(self._candles)

    @property
    def last(self) -> Optional[Candle]:
        return self._candles[-1] if self._candles else None

    def get(self, index: int) -> Optional[Candle]:
        if 0 <= index < len(self._candles):
            return self._candles[index]
        return None

    def contains(self, index: int) -> bool:
        return 0 <= index < len(self._candles)

    def range(self, start: int, end: int) -> List[Candle]:
        """Candles from start to end inclusive, clamped to the stored history."""
        start = max(start, 0)
        end = min(end, len(self._candles) - 1)
        if start > end:
            return []
        return self._candles[start:end + 1]

    def direction(self, index: int) -> Optional[Direction]:
        candle = self.get(index)
        return candle.direction if candle is not None else None

    def highs(self) -> np.ndarray:
        return np.asarray(self._highs, dtype=float)

    def lows(self) -> np.ndarray:
        return np.asarray(self._lows, dtype=float)

    def closes(self) -> np.ndarray:
        return np.asarray(self._closes, dtype=float)
