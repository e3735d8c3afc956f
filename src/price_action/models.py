"""
Pattern Models

Mutable records produced by the detectors: swing points, levels (the
generic record behind every detected structure), their quadrants, and the
standard-deviation projections emitted on a break of structure.

Cross references between records are stored as ids or candle indices and
resolved through the repositories at read time. Candles are immutable
values and may be held directly.
"""

import uuid
from dataclasses import dataclass, field, replace
from typing import List, Optional

from .types import Candle, Direction, LevelType, SwingType


QUADRANT_PERCENTS = (0, 25, 50, 75, 100)


def generate_id() -> str:
    """Generate a unique 8-character identifier."""
    return str(uuid.uuid4())[:8]


@dataclass
class SwingPoint:
    """
    A confirmed local extreme.

    Attributes:
        index: Candle index of the extreme.
        price: High for an UP (swing high) point, low for a DOWN point.
        timestamp: Timestamp of the originating candle.
        direction: UP for a swing high, DOWN for a swing low.
        candle: The originating candle.
        swept: True once a later candle traded through price.
        index_of_sweeping_candle: First candle that swept the point.
        swing_type: Structural tag assigned by the market structure analyzer.
    """
    index: int
    price: float
    timestamp: int
    direction: Direction
    candle: Candle
    swept: bool = False
    index_of_sweeping_candle: Optional[int] = None
    swing_type: Optional[SwingType] = None

    # Activation flags set by level detectors
    activated_fvg: bool = False
    activated_cisd: bool = False
    activated_rejection_block: bool = False
    activated_std_dev: bool = False
    activated_unicorn: bool = False
    swept_liquidity: bool = False
    inside_key_level: bool = False
    swept_key_level: bool = False

    # Ids of the levels behind the flags above
    activated_fvg_level_id: Optional[str] = None
    activated_cisd_level_id: Optional[str] = None
    activated_rejection_block_level_id: Optional[str] = None
    activated_unicorn_level_id: Optional[str] = None
    swept_key_level_id: Optional[str] = None
    swept_std_dev_index: Optional[int] = None

    @classmethod
    def from_candle(cls, candle: Candle, direction: Direction) -> "SwingPoint":
        price = candle.high if direction is Direction.UP else candle.low
        return cls(
            index=candle.index,
            price=price,
            timestamp=candle.timestamp,
            direction=direction,
            candle=candle,
        )

    @property
    def is_high(self) -> bool:
        return self.direction is Direction.UP

    @property
    def candle_direction(self) -> Direction:
        return self.candle.direction

    @property
    def score(self) -> int:
        score = 0
        if self.activated_fvg:
            score += 1
        if self.activated_rejection_block:
            score += 1
        if self.activated_std_dev:
            score += 1
        if self.swept_liquidity:
            score += 1
        if self.activated_unicorn:
            score += 3
        return score

    def breached_by(self, candle: Candle) -> bool:
        """True if the candle trades strictly beyond this extreme."""
        if self.is_high:
            return candle.high > self.price
        return candle.low < self.price

    def mark_swept(self, index: int) -> None:
        self.swept = True
        self.index_of_sweeping_candle = index


@dataclass
class Quadrant:
    """A 0/25/50/75/100% marker inside a Level's price range."""
    percent: int
    price: float
    is_swept: bool = False
    swept_by_index: Optional[int] = None


@dataclass
class Level:
    """
    Generic pattern record underlying every detected structure.

    Geometry is fixed at creation; lifecycle flags (confirmation,
    activation, inversion, liquidity sweeps, quadrant sweeps) are mutated in
    place by the detectors that own them.

    Attributes:
        level_type: Pattern family.
        direction: Directional bias of the pattern.
        low: Lower price bound.
        high: Upper price bound.
        index: Anchor candle index.
        index_high: Candle that defines the high.
        index_low: Candle that defines the low.
        index_mid: Middle candle, where the pattern has one (FVG).
        quadrants: Retracement markers, empty unless initialized.
        order_flow_id: Order flow this level is rooted in.
        breaker_block_id: Breaker block attached to a CISD or unicorn.
        propulsion_block_id: Propulsion block formed when a CISD confirmed.
        source_level_id: Level this one was derived from (unicorn and
            gauntlet source FVG, breaker block source order block/FVG,
            propulsion block source order flow).
        swing_point_index: Swing point the level is anchored on (order and
            rejection blocks).
    """
    level_type: LevelType
    direction: Direction
    low: float
    high: float
    index: int
    index_high: int
    index_low: int
    low_time: Optional[int] = None
    high_time: Optional[int] = None
    mid_time: Optional[int] = None
    index_mid: Optional[int] = None
    id: str = field(default_factory=generate_id)

    is_confirmed: bool = False
    index_of_confirming_candle: Optional[int] = None
    activated: bool = False
    activation_index: Optional[int] = None
    is_inverted: bool = False
    inversion_index: Optional[int] = None
    is_liquidity_swept: bool = False
    swept_index: Optional[int] = None

    swept_swing_point_index: Optional[int] = None
    swept_swing_point_indices: List[int] = field(default_factory=list)
    index_of_sweeping_candle: Optional[int] = None

    order_flow_id: Optional[str] = None
    breaker_block_id: Optional[str] = None
    propulsion_block_id: Optional[str] = None
    source_level_id: Optional[str] = None
    swing_point_index: Optional[int] = None

    swept_liquidity: bool = False
    quadrants: List[Quadrant] = field(default_factory=list)

    @property
    def mid(self) -> float:
        return (self.low + self.high) / 2

    @property
    def is_valid(self) -> bool:
        return self.low <= self.high

    @property
    def is_active(self) -> bool:
        if self.is_liquidity_swept:
            return False
        if not self.quadrants:
            return True
        return any(not q.is_swept for q in self.quadrants)

    @property
    def defining_indices(self) -> List[int]:
        """Distinct candle indices that define this level."""
        indices = [self.index, self.index_low, self.index_high]
        if self.index_mid is not None:
            indices.append(self.index_mid)
        return sorted(set(indices))

    def initialize_quadrants(self) -> None:
        """
        Create the five retracement markers.

        UP levels measure from low to high, DOWN levels from high to low.
        """
        span = self.high - self.low
        self.quadrants = []
        for percent in QUADRANT_PERCENTS:
            if self.direction is Direction.UP:
                price = self.low + span * percent / 100
            else:
                price = self.high - span * percent / 100
            self.quadrants.append(Quadrant(percent=percent, price=price))

    def sweep_quadrants(self, candle: Candle) -> List[Quadrant]:
        """
        Mark quadrants traded into by the candle.

        A quadrant of an UP level is swept when the candle opened above it and
        traded down to it; DOWN levels mirror this.

        Returns:
            Quadrants newly marked swept.
        """
        swept = []
        for quadrant in self.quadrants:
            if quadrant.is_swept:
                continue
            if self.direction is Direction.UP:
                hit = candle.open > quadrant.price and candle.low <= quadrant.price
            else:
                hit = candle.open < quadrant.price and candle.high >= quadrant.price
            if hit:
                quadrant.is_swept = True
                quadrant.swept_by_index = candle.index
                swept.append(quadrant)
        return swept

    def intersects(self, other: "Level") -> bool:
        return not (self.high < other.low or self.low > other.high)

    def clone_as(self, level_type: LevelType) -> "Level":
        """Copy geometry into a fresh level of another type."""
        clone = replace(
            self,
            level_type=level_type,
            id=generate_id(),
            swept_swing_point_indices=list(self.swept_swing_point_indices),
            quadrants=[],
        )
        if self.quadrants:
            clone.initialize_quadrants()
        return clone


@dataclass
class StandardDeviation:
    """
    Projection levels derived from the two most recent opposing extremes.

    Attributes:
        index: Candle index of the swing point that broke structure.
        direction: Direction of the move from anchor_from to anchor_to.
        anchor_from: Price of the opposing structural extreme.
        anchor_to: Price of the breaking swing point.
        minus_two: First projection beyond anchor_to.
        minus_four: Second projection beyond anchor_to.
    """
    index: int
    direction: Direction
    anchor_from: float
    anchor_to: float
    from_index: int
    minus_two: float = 0.0
    minus_four: float = 0.0
    minus_two_swept: bool = False
    minus_two_swept_index: Optional[int] = None
    minus_four_swept: bool = False
    minus_four_swept_index: Optional[int] = None

    def __post_init__(self):
        self.recompute()

    def recompute(self) -> None:
        # Fib anchored with 0 at anchor_to and 1 at anchor_from
        leg = self.anchor_to - self.anchor_from
        self.minus_two = self.anchor_to + 2 * leg
        self.minus_four = self.anchor_to + 4 * leg

    def _reached(self, candle: Candle, price: float) -> bool:
        if self.direction is Direction.UP:
            return candle.high >= price
        return candle.low <= price

    def sweep(self, candle: Candle) -> List[str]:
        """Mark projections reached by the candle; returns newly swept names."""
        swept = []
        if not self.minus_two_swept and self._reached(candle, self.minus_two):
            self.minus_two_swept = True
            self.minus_two_swept_index = candle.index
            swept.append("minus_two")
        if not self.minus_four_swept and self._reached(candle, self.minus_four):
            self.minus_four_swept = True
            self.minus_four_swept_index = candle.index
            swept.append("minus_four")
        return swept
