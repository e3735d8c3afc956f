"""
Pattern Detection Configuration

Centralized configuration for the price action engine. The engine reads
it once at construction and treats it as immutable for the session.

Hosts usually hold a flat mapping of named toggles (``ShowFVG``,
``MaxCisdsPerDirection``...); ``DetectionConfig.from_mapping`` accepts
that shape.
"""

from dataclasses import dataclass, field, asdict, fields
from typing import Any, Dict, Mapping


@dataclass(frozen=True)
class PatternToggles:
    """
    Which detectors the engine wires.

    Disabling a detector also disables everything that only reacts to its
    events (no order flow means no CISD, no CISD means no unicorn).

    Attributes:
        show_fvg: Fair value gap detection.
        show_order_flow: Order flow / liquidity sweep detection.
        show_liquidity_sweep: Level liquidity sweeps by swing points.
        show_rejection_block: Rejection block detection.
        show_order_block: Order block detection.
        show_breaker_block: Breaker blocks (CISD attachment and inversion).
        show_cisd: CISD detection, confirmation and activation.
        show_unicorn: FVG / breaker block / CISD confluence.
        show_gauntlet: FVG built by the candle that swept an order flow's
            liquidity.
        show_propulsion_block: Propulsion block from the opposing order
            flow on CISD confirmation.
        show_quadrants: Quadrant sweeps of active levels.
        show_inside_key_level: Flag swing points that sweep quadrants.
        show_standard_deviation: Projections on break of structure.
        show_structure: Market structure analysis.
    """
    show_fvg: bool = True
    show_order_flow: bool = True
    show_liquidity_sweep: bool = True
    show_rejection_block: bool = True
    show_order_block: bool = True
    show_breaker_block: bool = True
    show_cisd: bool = True
    show_unicorn: bool = True
    show_gauntlet: bool = True
    show_propulsion_block: bool = True
    show_quadrants: bool = True
    show_inside_key_level: bool = True
    show_standard_deviation: bool = True
    show_structure: bool = True


# Host-facing toggle names -> PatternToggles / DetectionConfig field names
_MAPPING_ALIASES: Dict[str, str] = {
    "ShowFVG": "show_fvg",
    "ShowOrderFlow": "show_order_flow",
    "ShowLiquiditySweep": "show_liquidity_sweep",
    "ShowRejectionBlock": "show_rejection_block",
    "ShowOrderBlock": "show_order_block",
    "ShowBreakerBlock": "show_breaker_block",
    "ShowCISD": "show_cisd",
    "ShowUnicorn": "show_unicorn",
    "ShowGauntlet": "show_gauntlet",
    "ShowPropulsionBlock": "show_propulsion_block",
    "ShowQuadrants": "show_quadrants",
    "ShowInsideKeyLevel": "show_inside_key_level",
    "ShowStandardDeviation": "show_standard_deviation",
    "ShowStructure": "show_structure",
    "MaxCisdsPerDirection": "max_cisds_per_direction",
    "SwingLookback": "swing_lookback",
    "OrderBlockLookback": "order_block_lookback",
    "RejectionWickMultiplier": "rejection_wick_multiplier",
    "PriceTolerance": "price_tolerance",
}


@dataclass(frozen=True)
class DetectionConfig:
    """
    All configurable parameters for pattern detection.

    Attributes:
        toggles: Which detectors are wired.
        swing_lookback: Candles on each side of a swing point candidate.
        order_block_lookback: Candles searched before an FVG for the
            opposing candle that forms the order block.
        rejection_wick_multiplier: Wick must exceed body times this to form
            a rejection block.
        max_cisds_per_direction: Unconfirmed CISDs kept per direction; the
            oldest is dropped when a new one would exceed it.
        price_tolerance: Price equality tolerance for dedup and body checks.
        min_bars_required: Bars required before per-bar detectors run.

    Example:
        >>> config = DetectionConfig.default()
        >>> config.swing_lookback
        2
        >>> config.with_toggles(show_unicorn=False).toggles.show_unicorn
        False
    """
    toggles: PatternToggles = field(default_factory=PatternToggles)
    swing_lookback: int = 2
    order_block_lookback: int = 10
    rejection_wick_multiplier: float = 1.5
    max_cisds_per_direction: int = 2
    price_tolerance: float = 0.0001
    min_bars_required: int = 2

    def __post_init__(self):
        if self.swing_lookback < 1:
            raise ValueError(f"swing_lookback must be >= 1, got {self.swing_lookback}")
        if self.max_cisds_per_direction < 1:
            raise ValueError(
                f"max_cisds_per_direction must be >= 1, got {self.max_cisds_per_direction}"
            )

    @classmethod
    def default(cls) -> "DetectionConfig":
        """Create a config with default values."""
        return cls()

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "DetectionConfig":
        """
        Build a config from a flat mapping of named toggles.

        Keys may be host-style names (``ShowFVG``) or field names
        (``show_fvg``). Unknown keys raise ValueError.

        Example:
            >>> config = DetectionConfig.from_mapping(
            ...     {"ShowFVG": False, "MaxCisdsPerDirection": 3}
            ... )
            >>> config.toggles.show_fvg, config.max_cisds_per_direction
            (False, 3)
        """
        toggle_names = {f.name for f in fields(PatternToggles)}
        config_names = {f.name for f in fields(cls)} - {"toggles"}

        toggle_values: Dict[str, Any] = {}
        config_values: Dict[str, Any] = {}
        for key, value in values.items():
            name = _MAPPING_ALIASES.get(key, key)
            if name in toggle_names:
                toggle_values[name] = bool(value)
            elif name in config_names:
                config_values[name] = value
            else:
                raise ValueError(f"Unknown configuration key: {key}")

        return cls(toggles=PatternToggles(**toggle_values), **config_values)

    def with_toggles(self, **kwargs: Any) -> "DetectionConfig":
        """
        Create a new config with modified detector toggles.

        Since DetectionConfig is frozen, this creates a new instance.
        """
        toggle_dict = asdict(self.toggles)
        toggle_dict.update(kwargs)
        return DetectionConfig(
            toggles=PatternToggles(**toggle_dict),
            swing_lookback=self.swing_lookback,
            order_block_lookback=self.order_block_lookback,
            rejection_wick_multiplier=self.rejection_wick_multiplier,
            max_cisds_per_direction=self.max_cisds_per_direction,
            price_tolerance=self.price_tolerance,
            min_bars_required=self.min_bars_required,
        )

    def with_thresholds(
        self,
        swing_lookback: int = None,
        order_block_lookback: int = None,
        rejection_wick_multiplier: float = None,
        max_cisds_per_direction: int = None,
        price_tolerance: float = None,
    ) -> "DetectionConfig":
        """
        Create a new config with modified numeric thresholds.

        Parameters left as None keep their current value.
        """
        return DetectionConfig(
            toggles=self.toggles,
            swing_lookback=(
                swing_lookback if swing_lookback is not None else self.swing_lookback
            ),
            order_block_lookback=(
                order_block_lookback
                if order_block_lookback is not None
                else self.order_block_lookback
            ),
            rejection_wick_multiplier=(
                rejection_wick_multiplier
                if rejection_wick_multiplier is not None
                else self.rejection_wick_multiplier
            ),
            max_cisds_per_direction=(
                max_cisds_per_direction
                if max_cisds_per_direction is not None
                else self.max_cisds_per_direction
            ),
            price_tolerance=(
                price_tolerance if price_tolerance is not None else self.price_tolerance
            ),
            min_bars_required=self.min_bars_required,
        )
