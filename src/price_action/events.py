"""
Price Action Events

Defines the event variants published on the event bus. Each variant is a
dataclass whose ``event_type`` is fixed to one EventKind member, so
subscribers route on the kind rather than on the Python class.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, TYPE_CHECKING

from .types import Direction

if TYPE_CHECKING:
    from .models import Level, Quadrant, StandardDeviation, SwingPoint


class EventKind(Enum):
    """Every event variant the engine publishes."""
    SWING_POINT_DETECTED = "swing_point_detected"
    SWING_POINT_REMOVED = "swing_point_removed"
    SWING_POINT_SWEPT = "swing_point_swept"
    BREAK_OF_STRUCTURE = "break_of_structure"
    CHANGE_OF_CHARACTER = "change_of_character"
    INDUCEMENT_UPDATED = "inducement_updated"
    STANDARD_DEVIATION_CREATED = "standard_deviation_created"
    STANDARD_DEVIATION_SWEPT = "standard_deviation_swept"
    FVG_DETECTED = "fvg_detected"
    ORDER_BLOCK_DETECTED = "order_block_detected"
    BREAKER_BLOCK_DETECTED = "breaker_block_detected"
    REJECTION_BLOCK_DETECTED = "rejection_block_detected"
    ORDER_FLOW_DETECTED = "order_flow_detected"
    CISD_DETECTED = "cisd_detected"
    CISD_CONFIRMED = "cisd_confirmed"
    CISD_ACTIVATED = "cisd_activated"
    UNICORN_DETECTED = "unicorn_detected"
    GAUNTLET_DETECTED = "gauntlet_detected"
    PROPULSION_BLOCK_DETECTED = "propulsion_block_detected"
    LEVEL_INVERTED = "level_inverted"
    LEVEL_REMOVED = "level_removed"
    LEVEL_LIQUIDITY_SWEPT = "level_liquidity_swept"
    QUADRANT_SWEPT = "quadrant_swept"


@dataclass
class PriceActionEvent:
    """
    Base event.

    Attributes:
        event_type: Discriminator for routing on the bus.
        bar_index: Index of the candle being processed when the event fired.
    """

    event_type: EventKind
    bar_index: int


# Swing point events

@dataclass
class SwingPointEvent(PriceActionEvent):
    swing_point: Optional["SwingPoint"] = None


@dataclass
class SwingPointDetectedEvent(SwingPointEvent):
    """
    Emitted when a swing high or low is confirmed.

    Example:
        >>> event = SwingPointDetectedEvent(bar_index=7, swing_point=None)
        >>> event.event_type
        <EventKind.SWING_POINT_DETECTED: 'swing_point_detected'>
    """

    event_type: EventKind = field(default=EventKind.SWING_POINT_DETECTED, init=False)


@dataclass
class SwingPointRemovedEvent(SwingPointEvent):
    """
    Emitted when a stored swing point is superseded by a more extreme one.

    Holders of the point purge it and anything anchored on it.
    """

    event_type: EventKind = field(default=EventKind.SWING_POINT_REMOVED, init=False)


@dataclass
class SwingPointSweptEvent(SwingPointEvent):
    """Emitted the first time a candle trades through a swing point."""

    event_type: EventKind = field(default=EventKind.SWING_POINT_SWEPT, init=False)


# Market structure events

@dataclass
class BreakOfStructureEvent(SwingPointEvent):
    """
    Emitted when a swing point extends the trend in the current bias.

    Attributes:
        direction: Bias being extended.
        broken_price: Price of the previous structural extreme.
    """

    event_type: EventKind = field(default=EventKind.BREAK_OF_STRUCTURE, init=False)
    direction: Direction = Direction.UP
    broken_price: Optional[float] = None


@dataclass
class ChangeOfCharacterEvent(SwingPointEvent):
    """
    Emitted when a swing point breaks the level that flips the bias.

    Attributes:
        direction: The new bias.
        broken_price: Price of the change-of-character level that broke.
    """

    event_type: EventKind = field(default=EventKind.CHANGE_OF_CHARACTER, init=False)
    direction: Direction = Direction.UP
    broken_price: Optional[float] = None


@dataclass
class InducementUpdatedEvent(SwingPointEvent):
    """Emitted when a new inducement candidate replaces the previous one."""

    event_type: EventKind = field(default=EventKind.INDUCEMENT_UPDATED, init=False)
    previous: Optional["SwingPoint"] = None


@dataclass
class StandardDeviationEvent(PriceActionEvent):
    standard_deviation: Optional["StandardDeviation"] = None


@dataclass
class StandardDeviationCreatedEvent(StandardDeviationEvent):
    event_type: EventKind = field(default=EventKind.STANDARD_DEVIATION_CREATED, init=False)


@dataclass
class StandardDeviationSweptEvent(StandardDeviationEvent):
    """
    Emitted when price reaches one projection.

    Attributes:
        projection: "minus_two" or "minus_four".
    """

    event_type: EventKind = field(default=EventKind.STANDARD_DEVIATION_SWEPT, init=False)
    projection: str = ""


# Level events

@dataclass
class LevelEvent(PriceActionEvent):
    level: Optional["Level"] = None


@dataclass
class FvgDetectedEvent(LevelEvent):
    event_type: EventKind = field(default=EventKind.FVG_DETECTED, init=False)


@dataclass
class OrderBlockDetectedEvent(LevelEvent):
    event_type: EventKind = field(default=EventKind.ORDER_BLOCK_DETECTED, init=False)


@dataclass
class BreakerBlockDetectedEvent(LevelEvent):
    event_type: EventKind = field(default=EventKind.BREAKER_BLOCK_DETECTED, init=False)


@dataclass
class RejectionBlockDetectedEvent(LevelEvent):
    event_type: EventKind = field(default=EventKind.REJECTION_BLOCK_DETECTED, init=False)


@dataclass
class OrderFlowDetectedEvent(LevelEvent):
    event_type: EventKind = field(default=EventKind.ORDER_FLOW_DETECTED, init=False)


@dataclass
class CisdDetectedEvent(LevelEvent):
    event_type: EventKind = field(default=EventKind.CISD_DETECTED, init=False)


@dataclass
class CisdConfirmedEvent(LevelEvent):
    """Emitted when a candle closes beyond a CISD's defining price."""

    event_type: EventKind = field(default=EventKind.CISD_CONFIRMED, init=False)


@dataclass
class CisdActivatedEvent(LevelEvent):
    """Emitted once, when a confirmed CISD is closed through."""

    event_type: EventKind = field(default=EventKind.CISD_ACTIVATED, init=False)


@dataclass
class UnicornDetectedEvent(LevelEvent):
    event_type: EventKind = field(default=EventKind.UNICORN_DETECTED, init=False)


@dataclass
class GauntletDetectedEvent(LevelEvent):
    event_type: EventKind = field(default=EventKind.GAUNTLET_DETECTED, init=False)


@dataclass
class PropulsionBlockDetectedEvent(LevelEvent):
    """Emitted on CISD confirmation; level is the new propulsion block."""

    event_type: EventKind = field(default=EventKind.PROPULSION_BLOCK_DETECTED, init=False)


@dataclass
class LevelInvertedEvent(LevelEvent):
    """
    Emitted when price closes through an order block or FVG.

    Attributes:
        level: The original level, now marked inverted.
        breaker_block: Breaker block derived from it, if one was stored.
    """

    event_type: EventKind = field(default=EventKind.LEVEL_INVERTED, init=False)
    breaker_block: Optional["Level"] = None


@dataclass
class LevelRemovedEvent(LevelEvent):
    """
    Emitted when a level is purged from its repository.

    Attributes:
        reason: Short machine-readable cause ("swing_point_removed",
            "max_cisd_count", "superseded_by_order_block"...).
    """

    event_type: EventKind = field(default=EventKind.LEVEL_REMOVED, init=False)
    reason: str = ""


@dataclass
class LevelLiquiditySweptEvent(LevelEvent):
    event_type: EventKind = field(default=EventKind.LEVEL_LIQUIDITY_SWEPT, init=False)
    swing_point: Optional["SwingPoint"] = None


@dataclass
class QuadrantSweptEvent(LevelEvent):
    event_type: EventKind = field(default=EventKind.QUADRANT_SWEPT, init=False)
    quadrant: Optional["Quadrant"] = None
