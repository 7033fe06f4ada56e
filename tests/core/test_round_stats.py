"""Tests for compute_stat_deltas: plain per-user deltas, no IO."""

from decimal import Decimal

from diceit.core.domain_types import StakeUnit
from diceit.core.round_state import Participant
from diceit.core.round_stats import (
    STAT_FIELDS, compute_stat_deltas, compute_win_rate,
)
from diceit.core.settlement import ParticipantResult


def _result(won, unit=StakeUnit.SOL, payout="0"):
    p = Participant("a", "A", unit, Decimal("2"), 3, "b1")
    return ParticipantResult(p, distance=1, won=won, payout=Decimal(payout))


def test_loser_gets_games_and_wagered_only():
    assert compute_stat_deltas(_result(False)) == {
        "total_games": 1, "total_wagered_sol": Decimal("2"),
    }


def test_winner_also_gets_wins_and_won():
    deltas = compute_stat_deltas(_result(True, StakeUnit.USDC, "9.8"))
    assert deltas == {
        "total_games": 1,
        "total_wagered_usdc": Decimal("2"),
        "total_wins": 1,
        "total_won_usdc": Decimal("9.8"),
    }


def test_deltas_only_use_known_fields():
    for won in (True, False):
        for unit in StakeUnit:
            assert set(compute_stat_deltas(_result(won, unit))) <= set(STAT_FIELDS)


def test_win_rate_one_decimal():
    assert compute_win_rate(3, 1) == Decimal("33.3")
    assert compute_win_rate(3, 2) == Decimal("66.7")
    assert compute_win_rate(4, 4) == Decimal("100.0")


def test_win_rate_without_games_is_zero():
    assert compute_win_rate(0, 0) == 0
