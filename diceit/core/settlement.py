"""Settlement Math: pure computation of winners, fees and payouts for a round.

Invariants:
    - distance = |guess - outcome|; every participant at the minimum distance wins
    - ties always split, never broken by join order or amount
    - fee[u] = pot[u] * fee_rate, rounded down to the unit's quantum
    - a winner only draws from the pool of the unit they staked
    - for every unit: pot == fee + distributable
      and distributable == paid + residue + unclaimed

Design Decisions:
    - Decimal arithmetic, quantized per StakeUnit: payouts are always representable
    - Division residue and pools with no winner in that unit go to the house,
      reported separately so reconciliation can see them
    - compute_settlement is PURE: the SettlementEngine applies the side effects
"""

from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_DOWN
from typing import Mapping, Sequence

from diceit.core.domain_types import StakeUnit
from diceit.core.round_state import Participant


DEFAULT_FEE_RATE = Decimal("0.02")


@dataclass(frozen=True)
class ParticipantResult:
    """Settlement verdict for one participant."""
    participant: Participant
    distance: int
    won: bool
    payout: Decimal = Decimal(0)


@dataclass
class SettlementPlan:
    """Everything settlement needs to apply, computed without IO."""
    outcome: int
    min_distance: int
    results: list[ParticipantResult]
    fee: dict[StakeUnit, Decimal] = field(default_factory=dict)
    distributable: dict[StakeUnit, Decimal] = field(default_factory=dict)
    payout_per_winner: dict[StakeUnit, Decimal] = field(default_factory=dict)
    residue: dict[StakeUnit, Decimal] = field(default_factory=dict)
    unclaimed: dict[StakeUnit, Decimal] = field(default_factory=dict)

    @property
    def winners(self) -> list[ParticipantResult]:
        return [r for r in self.results if r.won]

    @property
    def losers(self) -> list[ParticipantResult]:
        return [r for r in self.results if not r.won]

    def paid(self, unit: StakeUnit) -> Decimal:
        return sum(
            (r.payout for r in self.winners if r.participant.unit == unit),
            Decimal(0),
        )


def select_winners(
    participants: Sequence[Participant], outcome: int,
) -> tuple[int, list[Participant]]:
    """Return (min_distance, winners in join order)."""
    if not participants:
        raise ValueError("cannot select winners from an empty round")
    min_distance = min(p.distance_to(outcome) for p in participants)
    winners = [p for p in participants if p.distance_to(outcome) == min_distance]
    return min_distance, winners


def split_fee(
    amount: Decimal, unit: StakeUnit, fee_rate: Decimal,
) -> tuple[Decimal, Decimal]:
    """Split a pot into (fee, distributable)."""
    fee = (amount * fee_rate).quantize(unit.quantum, rounding=ROUND_DOWN)
    return fee, amount - fee


def compute_settlement(
    participants: Sequence[Participant],
    pot: Mapping[StakeUnit, Decimal],
    outcome: int,
    fee_rate: Decimal = DEFAULT_FEE_RATE,
) -> SettlementPlan:
    """Compute winners, fee and payouts for a non-empty round. Pure."""
    min_distance, winners = select_winners(participants, outcome)
    winner_accounts = {w.account for w in winners}
    winners_per_unit = Counter(w.unit for w in winners)

    plan = SettlementPlan(outcome=outcome, min_distance=min_distance, results=[])

    for unit, amount in pot.items():
        fee, distributable = split_fee(amount, unit, fee_rate)
        plan.fee[unit] = fee
        plan.distributable[unit] = distributable

        count = winners_per_unit.get(unit, 0)
        if count == 0:
            plan.payout_per_winner[unit] = Decimal(0)
            plan.residue[unit] = Decimal(0)
            plan.unclaimed[unit] = distributable
            continue

        share = (distributable / count).quantize(unit.quantum, rounding=ROUND_DOWN)
        plan.payout_per_winner[unit] = share
        plan.residue[unit] = distributable - share * count
        plan.unclaimed[unit] = Decimal(0)

    for p in participants:
        won = p.account in winner_accounts
        plan.results.append(ParticipantResult(
            participant=p,
            distance=p.distance_to(outcome),
            won=won,
            payout=plan.payout_per_winner[p.unit] if won else Decimal(0),
        ))

    return plan
