"""Domain Types: rich types that replace bare primitives across the codebase.

Invariants:
    - GroupKey, AccountId, RoundId, BetRef wrap primitives; never mix them in domain logic
    - DiceRange.low is always 1 and low <= high
    - All valid states encoded as Enums, no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON and DB columns without custom encoders
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

GroupKey = NewType("GroupKey", str)
AccountId = NewType("AccountId", str)
RoundId = NewType("RoundId", str)
BetRef = NewType("BetRef", str)


# ─── Enums ───────────────────────────────────────────────────────

class RoundStatus(str, Enum):
    """Round lifecycle states. Maps to the `games.status` column."""
    OPEN = "open"
    RESOLVING = "resolving"
    SETTLED = "settled"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RoundStatus.SETTLED, RoundStatus.CANCELLED)


class ResolutionMethod(str, Enum):
    """How the outcome is obtained. Never affects settlement arithmetic."""
    VISUAL = "visual"   # transport performs a displayed roll and supplies the value
    RANDOM = "random"   # core asks the RandomnessSource after the countdown


class StakeUnit(str, Enum):
    """Supported stake denominations. Pots are tracked per unit, never converted."""
    SOL = "SOL"
    USDC = "USDC"

    @property
    def decimals(self) -> int:
        return _UNIT_DECIMALS[self]

    @property
    def quantum(self) -> Decimal:
        """Smallest representable amount of this unit."""
        return Decimal(1).scaleb(-self.decimals)


_UNIT_DECIMALS: dict[StakeUnit, int] = {
    StakeUnit.SOL: 9,
    StakeUnit.USDC: 6,
}


class DiceType(str, Enum):
    """Dice catalogue offered when a round is opened."""
    D6 = "D6"
    D10 = "D10"
    D20 = "D20"
    D100 = "D100"

    @property
    def range(self) -> "DiceRange":
        return DiceRange(1, _DICE_FACES[self])


_DICE_FACES: dict[DiceType, int] = {
    DiceType.D6: 6,
    DiceType.D10: 10,
    DiceType.D20: 20,
    DiceType.D100: 100,
}


# ─── Value Types ─────────────────────────────────────────────────

@dataclass(frozen=True)
class DiceRange:
    """Inclusive guess domain of a round."""
    low: int
    high: int

    def __post_init__(self):
        if self.low != 1 or self.high < self.low:
            raise ValueError(f"invalid dice range [{self.low}, {self.high}]")

    def __contains__(self, value: int) -> bool:
        return self.low <= value <= self.high

    def to_dict(self) -> dict:
        return {"min": self.low, "max": self.high}
