"""
Pattern Engine

Composition root. Builds the candle store, event bus, repositories, market
structure analyzer and the detectors the config enables, handing each one
explicit handles. Hosts feed it one closed candle at a time via
process_bar() and read patterns back from the query surface.

Per-bar order of operations:
1. Append the candle
2. CISD activation
3. CISD confirmation (may derive a breaker block, then a unicorn, and a
   propulsion block)
4. Swing detection (structure, order flow, CISD, rejection blocks and
   liquidity all react through events; gauntlets follow order flow)
5. Standard-deviation projection sweeps
6. Fair value gap detection (order blocks and unicorns react)
7. Order block / FVG inversion into breaker blocks
"""

import logging
from typing import List, Optional

from .candle_store import CandleStore
from .config import DetectionConfig
from .event_bus import EventBus
from .events import PriceActionEvent
from .market_structure import MarketStructureAnalyzer
from .models import Level, SwingPoint
from .repository import LevelRepository, SwingPointRepository
from .swing_point_detector import SwingPointDetector
from .types import Candle, Direction, LevelType
from .detectors import (
    BreakerBlockDetector,
    CisdDetector,
    DetectorContext,
    FvgDetector,
    GauntletDetector,
    LiquidityTracker,
    OrderBlockDetector,
    OrderFlowDetector,
    PropulsionBlockDetector,
    RejectionBlockDetector,
    UnicornDetector,
)

logger = logging.getLogger(__name__)


class PatternEngine:
    """
    Incremental price action pattern engine.

    Args:
        config: Detection configuration (defaults to DetectionConfig.default()).
        event_bus: Bus to publish on; a new one is created if omitted. The
            engine switches it to recording mode so process_bar() can
            return the events of each bar.

    Example:
        >>> engine = PatternEngine()
        >>> events = engine.process_bar(Candle(0, 1700000000, 10, 12, 8, 11))
        >>> engine.bar_count
        1
    """

    def __init__(
        self,
        config: Optional[DetectionConfig] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.config = config or DetectionConfig.default()
        toggles = self.config.toggles

        self.event_bus = event_bus if event_bus is not None else EventBus()
        self.event_bus.record = True

        self.candles = CandleStore()
        self.swing_repository = SwingPointRepository()
        self.level_repository = LevelRepository()
        self.context = DetectorContext(
            candles=self.candles,
            levels=self.level_repository,
            event_bus=self.event_bus,
            price_tolerance=self.config.price_tolerance,
            min_bars_required=self.config.min_bars_required,
        )

        self.swing_detector = SwingPointDetector(
            self.candles,
            self.swing_repository,
            self.event_bus,
            lookback=self.config.swing_lookback,
        )

        # Subscription order is delivery order: structure tags a swing point
        # before the level detectors see it.
        self.structure: Optional[MarketStructureAnalyzer] = None
        if toggles.show_structure:
            self.structure = MarketStructureAnalyzer(
                self.event_bus,
                show_standard_deviation=toggles.show_standard_deviation,
            )

        self.order_flow: Optional[OrderFlowDetector] = None
        if toggles.show_order_flow:
            self.order_flow = OrderFlowDetector(self.context)

        self.cisd: Optional[CisdDetector] = None
        if toggles.show_cisd and self.order_flow is not None:
            self.cisd = CisdDetector(
                self.context,
                self.swing_repository,
                max_per_direction=self.config.max_cisds_per_direction,
            )

        self.rejection_block: Optional[RejectionBlockDetector] = None
        if toggles.show_rejection_block:
            self.rejection_block = RejectionBlockDetector(
                self.context, wick_multiplier=self.config.rejection_wick_multiplier
            )

        self.liquidity: Optional[LiquidityTracker] = None
        if toggles.show_liquidity_sweep or toggles.show_quadrants:
            self.liquidity = LiquidityTracker(
                self.context,
                sweep_levels=toggles.show_liquidity_sweep,
                sweep_quadrants=toggles.show_quadrants,
                flag_inside_key_level=toggles.show_inside_key_level,
            )

        self.fvg: Optional[FvgDetector] = None
        if toggles.show_fvg:
            self.fvg = FvgDetector(self.context)

        self.order_block: Optional[OrderBlockDetector] = None
        if toggles.show_order_block and self.fvg is not None:
            self.order_block = OrderBlockDetector(
                self.context,
                self.swing_repository,
                lookback=self.config.order_block_lookback,
            )

        self.breaker_block: Optional[BreakerBlockDetector] = None
        if toggles.show_breaker_block:
            self.breaker_block = BreakerBlockDetector(self.context)

        self.unicorn: Optional[UnicornDetector] = None
        if (
            toggles.show_unicorn
            and self.fvg is not None
            and self.cisd is not None
            and self.breaker_block is not None
        ):
            self.unicorn = UnicornDetector(self.context)

        self.gauntlet: Optional[GauntletDetector] = None
        if toggles.show_gauntlet and self.order_flow is not None and self.fvg is not None:
            self.gauntlet = GauntletDetector(self.context)

        self.propulsion_block: Optional[PropulsionBlockDetector] = None
        if toggles.show_propulsion_block and self.cisd is not None:
            self.propulsion_block = PropulsionBlockDetector(self.context, self.swing_repository)

        logger.debug(
            f"PatternEngine wired with {self.event_bus.total_subscriptions()} subscriptions"
        )

    # Processing

    def process_bar(self, candle: Candle) -> List[PriceActionEvent]:
        """
        Process a single closed candle.

        Args:
            candle: Next candle; its index must follow the last one processed.

        Returns:
            Every event published while processing this bar, in publish order.

        Raises:
            ValueError: If the candle is out of sequence.
        """
        self.event_bus.drain_history()
        self.candles.append(candle)

        if self.cisd is not None:
            self.cisd.check_activation(candle)
            self.cisd.check_confirmation(candle)

        self.swing_detector.process_bar(candle.index)

        if self.structure is not None:
            self.structure.process_bar(candle)

        if self.fvg is not None:
            self.fvg.process_bar(candle.index)

        if self.breaker_block is not None:
            self.breaker_block.check_inversions(candle)

        return self.event_bus.drain_history()

    # Queries

    @property
    def bar_count(self) -> int:
        return len(self.candles)

    @property
    def swing_points(self) -> List[SwingPoint]:
        return self.swing_repository.get_all()

    @property
    def levels(self) -> List[Level]:
        return self.level_repository.get_all()

    @property
    def bias(self) -> Optional[Direction]:
        """Current market bias, or None when structure analysis is disabled."""
        return self.structure.bias if self.structure is not None else None

    def get_levels(
        self,
        level_type: Optional[LevelType] = None,
        direction: Optional[Direction] = None,
    ) -> List[Level]:
        """Stored levels filtered by type and/or direction."""
        return self.level_repository.find(
            lambda level: (level_type is None or level.level_type is level_type)
            and (direction is None or level.direction is direction)
        )

    def get_most_recent(
        self, level_type: LevelType, direction: Optional[Direction] = None
    ) -> Optional[Level]:
        return self.level_repository.get_most_recent(level_type, direction)
