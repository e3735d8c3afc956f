# Price Action Module
#
# Incremental detection of price action patterns over a stream of closed
# candles: swing points, market structure and key levels.

from .types import Candle, Direction, LevelType, SwingType
from .models import Level, Quadrant, StandardDeviation, SwingPoint
from .config import DetectionConfig, PatternToggles
from .candle_store import CandleStore

# Event plumbing
from .events import (
    EventKind,
    PriceActionEvent,
    SwingPointEvent,
    SwingPointDetectedEvent,
    SwingPointRemovedEvent,
    SwingPointSweptEvent,
    BreakOfStructureEvent,
    ChangeOfCharacterEvent,
    InducementUpdatedEvent,
    StandardDeviationEvent,
    StandardDeviationCreatedEvent,
    StandardDeviationSweptEvent,
    LevelEvent,
    FvgDetectedEvent,
    OrderBlockDetectedEvent,
    BreakerBlockDetectedEvent,
    RejectionBlockDetectedEvent,
    OrderFlowDetectedEvent,
    CisdDetectedEvent,
    CisdConfirmedEvent,
    CisdActivatedEvent,
    UnicornDetectedEvent,
    GauntletDetectedEvent,
    PropulsionBlockDetectedEvent,
    LevelInvertedEvent,
    LevelRemovedEvent,
    LevelLiquiditySweptEvent,
    QuadrantSweptEvent,
)
from .event_bus import EventBus
from .repository import Repository, SwingPointRepository, LevelRepository

# Analysis
from .swing_point_detector import SwingPointDetector, is_swing_high, is_swing_low
from .market_structure import (
    MarketStructureAnalyzer,
    StructureOutcome,
    StructureState,
    Transition,
    transition,
)

# Composition and batch ingestion
from .engine import PatternEngine
from .calibrate import calibrate, calibrate_from_dataframe, dataframe_to_candles
