"""Round Schemas: Pydantic models for the round and bet endpoints.

Invariants:
    - JoinRequest.amount is a Decimal parsed from string or number, never float
    - display_name is stripped and non-empty
    - Range checks against the round (guess, outcome) stay in the core;
      schemas only reject values that can never be valid

Design Decisions:
    - Money rendered as strings in responses: exact and JSON-safe
"""

from decimal import Decimal

from pydantic import BaseModel, Field, field_serializer, field_validator

from diceit.core.domain_types import (
    DiceType, ResolutionMethod, RoundStatus, StakeUnit,
)
from diceit.core.round_state import Participant, Round
from diceit.core.round_stats import compute_win_rate


class OpenRoundRequest(BaseModel):
    """Open a round in a group."""
    dice_type: str = Field(DiceType.D6.value, max_length=10)
    resolution_method: ResolutionMethod = ResolutionMethod.RANDOM
    group_name: str | None = Field(None, max_length=200)


class JoinRequest(BaseModel):
    """Place one stake on one number."""
    account: str = Field(min_length=1, max_length=64)
    display_name: str = Field(min_length=1, max_length=100)
    amount: Decimal
    unit: StakeUnit
    guess: int

    @field_validator("display_name")
    @classmethod
    def strip_display_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("display_name cannot be empty or whitespace")
        return v


class ResolveRequest(BaseModel):
    """Force resolution. outcome is supplied only for visual rolls."""
    outcome: int | None = None


class ParticipantView(BaseModel):
    account: str
    display_name: str
    unit: StakeUnit
    amount: Decimal
    guess: int

    @field_serializer("amount")
    def render_amount(self, v: Decimal) -> str:
        return str(v)

    @classmethod
    def from_participant(cls, p: Participant) -> "ParticipantView":
        return cls(
            account=p.account, display_name=p.display_name,
            unit=p.unit, amount=p.amount, guess=p.guess,
        )


class RoundView(BaseModel):
    """Public view of an active round."""
    round_id: str
    group_key: str
    status: RoundStatus
    dice_type: DiceType | None
    resolution_method: ResolutionMethod
    range: dict[str, int]
    pot: dict[str, str]
    participants: list[ParticipantView]

    @classmethod
    def from_round(cls, round_: Round) -> "RoundView":
        return cls(
            round_id=round_.round_id,
            group_key=round_.group_key,
            status=round_.status,
            dice_type=round_.dice_type,
            resolution_method=round_.resolution_method,
            range=round_.range.to_dict(),
            pot={unit.value: str(amount) for unit, amount in round_.pot.items()},
            participants=[
                ParticipantView.from_participant(p) for p in round_.participants
            ],
        )


class PotSnapshot(BaseModel):
    pot: dict[str, str]
    participant_count: int
    range: dict[str, int]

    @classmethod
    def from_snapshot(cls, snapshot: dict) -> "PotSnapshot":
        return cls(
            pot={unit: str(amount) for unit, amount in snapshot["pot"].items()},
            participant_count=snapshot["participant_count"],
            range=snapshot["range"],
        )


class DiceTypeView(BaseModel):
    dice_type: DiceType
    min: int
    max: int


class UserStatsView(BaseModel):
    """Cumulative results for one account; win_rate is a percentage."""
    account: str
    username: str
    total_games: int
    total_wins: int
    win_rate: Decimal
    wagered: dict[str, str]
    won: dict[str, str]

    @field_serializer("win_rate")
    def render_win_rate(self, v: Decimal) -> str:
        return str(v)

    @classmethod
    def from_stats(cls, account: str, stats: dict) -> "UserStatsView":
        return cls(
            account=account,
            username=stats["username"],
            total_games=stats["total_games"],
            total_wins=stats["total_wins"],
            win_rate=compute_win_rate(stats["total_games"], stats["total_wins"]),
            wagered={
                u.value: str(stats[f"total_wagered_{u.value.lower()}"]) for u in StakeUnit
            },
            won={u.value: str(stats[f"total_won_{u.value.lower()}"]) for u in StakeUnit},
        )
