"""Round State: in-memory aggregate for one group's active round.

Invariants:
    - participants keep join order; no two share an account
    - pot[unit] == sum(p.amount for p in participants if p.unit == unit)
    - only add_participant mutates pot; only OPEN rounds accept participants
    - claim() is a compare-and-set out of OPEN (to RESOLVING or CANCELLED)
    - SETTLED and CANCELLED are terminal

Design Decisions:
    - Pure dataclasses, no IO, no locks: the registry owns exclusion
    - pot pre-seeded with zero for every StakeUnit so snapshots always list both units
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from diceit.core.domain_types import (
    AccountId, BetRef, DiceRange, DiceType, GroupKey, ResolutionMethod,
    RoundId, RoundStatus, StakeUnit,
)


_TRANSITIONS: dict[RoundStatus, frozenset[RoundStatus]] = {
    RoundStatus.OPEN: frozenset({RoundStatus.RESOLVING, RoundStatus.CANCELLED}),
    RoundStatus.RESOLVING: frozenset({RoundStatus.SETTLED, RoundStatus.CANCELLED}),
    RoundStatus.SETTLED: frozenset(),
    RoundStatus.CANCELLED: frozenset(),
}


def _empty_pot() -> dict[StakeUnit, Decimal]:
    return {unit: Decimal(0) for unit in StakeUnit}


@dataclass(frozen=True)
class Participant:
    """One account's stake-and-guess entry within a round."""
    account: AccountId
    display_name: str
    unit: StakeUnit
    amount: Decimal
    guess: int
    bet_ref: BetRef

    def distance_to(self, outcome: int) -> int:
        return abs(self.guess - outcome)


@dataclass
class Round:
    """One game instance scoped to a single group."""

    round_id: RoundId
    group_key: GroupKey
    range: DiceRange
    resolution_method: ResolutionMethod
    dice_type: DiceType | None = None
    status: RoundStatus = RoundStatus.OPEN
    participants: list[Participant] = field(default_factory=list)
    pot: dict[StakeUnit, Decimal] = field(default_factory=_empty_pot)
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_open(self) -> bool:
        return self.status == RoundStatus.OPEN

    @property
    def participant_count(self) -> int:
        return len(self.participants)

    def has_participant(self, account: AccountId) -> bool:
        return any(p.account == account for p in self.participants)

    def add_participant(self, participant: Participant) -> None:
        """Append a participant and grow the pot. Caller validated admission."""
        if not self.is_open:
            raise ValueError(f"round {self.round_id} is {self.status.value}")
        if self.has_participant(participant.account):
            raise ValueError(f"account {participant.account} already joined")
        self.participants.append(participant)
        self.pot[participant.unit] += participant.amount

    def claim(self, target: RoundStatus) -> bool:
        """Compare-and-set OPEN -> target. False if another trigger already won."""
        if self.status != RoundStatus.OPEN:
            return False
        self.transition(target)
        return True

    def transition(self, target: RoundStatus) -> None:
        if target not in _TRANSITIONS[self.status]:
            raise ValueError(
                f"illegal round transition {self.status.value} -> {target.value}",
            )
        self.status = target

    def pot_snapshot(self) -> dict:
        return {
            "pot": {unit.value: amount for unit, amount in self.pot.items()},
            "participant_count": self.participant_count,
            "range": self.range.to_dict(),
        }
