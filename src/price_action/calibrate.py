"""
Batch ingestion for the pattern engine.

Provides batch processing of historical candles and DataFrame conversion
utilities.
"""

from typing import Callable, List, Optional, Tuple

import numpy as np
import pandas as pd

from .config import DetectionConfig
from .engine import PatternEngine
from .events import PriceActionEvent
from .types import Candle


def calibrate(
    candles: List[Candle],
    config: Optional[DetectionConfig] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> Tuple[PatternEngine, List[PriceActionEvent]]:
    """
    Run detection on historical candles.

    This is process_bar() in a loop, so the result is identical to feeding
    the same candles incrementally.

    Args:
        candles: Historical candles, indices 0..n-1 in order.
        config: Detection configuration (defaults to DetectionConfig.default()).
        progress_callback: Optional callback(current, total) for progress reporting.

    Returns:
        Tuple of (engine with state, all events generated).

    Example:
        >>> engine, events = calibrate(candles)
        >>> print(f"Found {len(engine.swing_points)} swing points")
        >>> # Continue processing new candles
        >>> new_events = engine.process_bar(new_candle)
    """
    engine = PatternEngine(config or DetectionConfig.default())
    all_events: List[PriceActionEvent] = []
    total = len(candles)

    for i, candle in enumerate(candles):
        all_events.extend(engine.process_bar(candle))
        if progress_callback:
            progress_callback(i + 1, total)

    return engine, all_events


def dataframe_to_candles(df: pd.DataFrame) -> List[Candle]:
    """
    Convert DataFrame with OHLC columns to Candle list.

    Column names are matched case-insensitively (open/Open/OPEN...). The
    timestamp is read from the first of timestamp/time/date/datetime that
    exists; rows without one get sequential one-minute timestamps. Candle
    indices are positional, whatever the DataFrame index is.

    Raises:
        ValueError: If an OHLC column is missing.

    Example:
        >>> df = pd.read_csv("market_data.csv")
        >>> candles = dataframe_to_candles(df)
        >>> engine, events = calibrate(candles)
    """
    col_map = {str(c).lower(): c for c in df.columns}
    missing = [name for name in ("open", "high", "low", "close") if name not in col_map]
    if missing:
        raise ValueError(f"DataFrame is missing OHLC columns: {missing}")

    ts_col = next(
        (col_map[name] for name in ("timestamp", "time", "date", "datetime") if name in col_map),
        None,
    )

    candles = []
    for position, (_, row) in enumerate(df.iterrows()):
        timestamp = None
        if ts_col is not None:
            ts_value = row[ts_col]
            if isinstance(ts_value, (int, float, np.integer, np.floating)):
                timestamp = float(ts_value)
            elif hasattr(ts_value, "timestamp"):
                timestamp = ts_value.timestamp()
            elif isinstance(ts_value, str):
                timestamp = pd.Timestamp(ts_value).timestamp()

        if timestamp is None:
            timestamp = 1700000000 + position * 60

        candles.append(
            Candle(
                index=position,
                timestamp=int(timestamp),
                open=float(row[col_map["open"]]),
                high=float(row[col_map["high"]]),
                low=float(row[col_map["low"]]),
                close=float(row[col_map["close"]]),
            )
        )

    return candles


def calibrate_from_dataframe(
    df: pd.DataFrame,
    config: Optional[DetectionConfig] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> Tuple[PatternEngine, List[PriceActionEvent]]:
    """
    Convenience wrapper for DataFrame input.

    Example:
        >>> import pandas as pd
        >>> df = pd.read_csv("ES-5m.csv")
        >>> engine, events = calibrate_from_dataframe(df)
    """
    return calibrate(dataframe_to_candles(df), config, progress_callback)
