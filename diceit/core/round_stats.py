"""Round Stats: pure computation of per-user stat deltas from a settlement plan.

Invariants:
    - Returns plain deltas; the store applies them (no server-side SQL arithmetic assumed)
    - Every participant gets total_games +1 and total_wagered_<unit> +amount
    - Winners additionally get total_wins +1 and total_won_<unit> +payout
    - Win rate is derived on read, never stored
"""

from decimal import ROUND_HALF_UP, Decimal

from diceit.core.domain_types import StakeUnit
from diceit.core.settlement import ParticipantResult

STAT_FIELDS: tuple[str, ...] = (
    "total_games",
    "total_wins",
    *(f"total_wagered_{u.value.lower()}" for u in StakeUnit),
    *(f"total_won_{u.value.lower()}" for u in StakeUnit),
)


def compute_stat_deltas(result: ParticipantResult) -> dict[str, int | Decimal]:
    """Stat deltas for one settled participant. Pure, no IO."""
    unit = result.participant.unit.value.lower()
    deltas: dict[str, int | Decimal] = {
        "total_games": 1,
        f"total_wagered_{unit}": result.participant.amount,
    }
    if result.won:
        deltas["total_wins"] = 1
        deltas[f"total_won_{unit}"] = result.payout
    return deltas


def compute_win_rate(total_games: int, total_wins: int) -> Decimal:
    """Win percentage to one decimal place; 0 for a user with no games."""
    if total_games <= 0:
        return Decimal(0)
    rate = Decimal(total_wins) * 100 / Decimal(total_games)
    return rate.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
