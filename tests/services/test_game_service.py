"""Game Service: end-to-end rounds over fake ports.

Invariants:
    - exactly one settlement per round, whichever trigger wins the claim
    - an empty round is cancelled with no ledger calls
    - cancel and draw failure refund every stake
"""

import asyncio
from decimal import Decimal

import pytest

from diceit.core.domain_types import (
    DiceType, ResolutionMethod, RoundStatus, StakeUnit,
)
from diceit.core.errors import (
    AlreadyActiveError, EmptyRoundError, InvalidDiceTypeError,
    InvalidOutcomeError, NoActiveRoundError,
)
from diceit.services.game_service import GameService
from diceit.services.settlement_engine import CancelReason
from tests.fakes import FailingRandomness, FixedRandomness


async def _join(service, account, guess, amount="10", unit=StakeUnit.SOL, group="g1"):
    return await service.join(group, account, account.title(), Decimal(amount), unit, guess)


async def test_tie_scenario_pays_each_winner(service, ledger, store):
    await service.open_round("g1", DiceType.D6)
    await _join(service, "alice", 3)
    await _join(service, "bob", 5)

    result = await service.force_resolve("g1", 4)

    assert result.status == RoundStatus.SETTLED
    assert result.plan.fee[StakeUnit.SOL] == Decimal("0.4")
    assert {r.participant.account for r in result.winners} == {"alice", "bob"}
    assert ledger.balance("alice") == Decimal("99.8")
    assert ledger.balance("bob") == Decimal("99.8")
    assert service.get_active_round("g1") is None

    game = next(iter(store.rounds.values()))
    assert game["status"] == "settled"
    assert game["dice_result"] == 4
    assert game["house_fee_sol"] == Decimal("0.4")


async def test_closest_guess_wins_on_d100(service, ledger, store):
    await service.open_round("g1", "d100")
    await _join(service, "alice", 10, "5")
    await _join(service, "bob", 50, "5")
    await _join(service, "carol", 90, "5")

    result = await service.force_resolve("g1", 52)

    assert [r.participant.account for r in result.winners] == ["bob"]
    assert ledger.balance("bob") == Decimal("109.7")
    assert ledger.balance("alice") == Decimal("95")
    assert store.stats["bob"]["total_wins"] == 1
    assert store.stats["alice"]["total_games"] == 1
    assert "total_wins" not in store.stats["alice"]
    statuses = sorted(b["status"] for b in store.bets.values())
    assert statuses == ["lost", "lost", "won"]


async def test_random_outcome_drawn_when_not_supplied(service, randomness):
    await service.open_round("g1")
    await _join(service, "alice", 4)
    result = await service.force_resolve("g1")
    assert randomness.draws == 1
    assert result.outcome == 4


async def test_out_of_range_outcome_rejected_without_claiming(service):
    await service.open_round("g1")
    await _join(service, "alice", 4)
    with pytest.raises(InvalidOutcomeError):
        await service.force_resolve("g1", 7)
    assert service.get_active_round("g1").status == RoundStatus.OPEN


async def test_force_resolve_empty_round(service, ledger, store):
    await service.open_round("g1")
    with pytest.raises(EmptyRoundError):
        await service.force_resolve("g1")
    assert ledger.adjustments == []
    assert service.get_active_round("g1") is None
    assert next(iter(store.rounds.values()))["status"] == "cancelled"


async def test_unknown_dice_type(service):
    with pytest.raises(InvalidDiceTypeError):
        await service.open_round("g1", "d7")


async def test_second_open_is_already_active(service):
    await service.open_round("g1")
    with pytest.raises(AlreadyActiveError):
        await service.open_round("g1", DiceType.D20)


async def test_concurrent_force_resolves_credit_once(service, ledger):
    await service.open_round("g1")
    await _join(service, "alice", 4)
    await _join(service, "bob", 1)

    first, second = await asyncio.gather(
        service.force_resolve("g1", 4), service.force_resolve("g1", 4),
    )

    assert first is second
    assert len(ledger.credits) == 1
    assert ledger.balance("alice") == Decimal("109.6")


async def test_force_resolve_after_settlement_has_no_round(service, ledger):
    await service.open_round("g1")
    await _join(service, "alice", 4)
    await service.force_resolve("g1", 4)
    with pytest.raises(NoActiveRoundError):
        await service.force_resolve("g1", 4)
    assert len(ledger.credits) == 1


async def test_cancel_refunds_every_stake(service, ledger, store):
    await service.open_round("g1")
    await _join(service, "alice", 2, "3")
    await _join(service, "bob", 5, "7")

    result = await service.cancel_round("g1")

    assert result.status == RoundStatus.CANCELLED
    assert result.cancel_reason == CancelReason.ADMIN_ABORT
    assert ledger.balance("alice") == Decimal("100")
    assert ledger.balance("bob") == Decimal("100")
    assert all(b["status"] == "refunded" for b in store.bets.values())
    assert service.get_active_round("g1") is None


async def test_draw_failure_cancels_with_refunds(ledger, store):
    svc = GameService(ledger, store, FailingRandomness(), countdown_seconds=3600)
    await svc.open_round("g1")
    await _join(svc, "alice", 2)

    result = await svc.force_resolve("g1")

    assert result.cancel_reason == CancelReason.DRAW_FAILED
    assert ledger.balance("alice") == Decimal("100")
    await svc.shutdown()


async def test_credit_failure_reported_and_round_still_settles(service, ledger):
    await service.open_round("g1")
    await _join(service, "alice", 4)
    await _join(service, "bob", 4)
    ledger.fail_adjust_for.add("bob")

    result = await service.force_resolve("g1", 4)

    assert result.status == RoundStatus.SETTLED
    assert result.needs_reconciliation
    assert [f.account for f in result.failed_credits] == ["bob"]
    assert ledger.balance("alice") == Decimal("99.8")


async def test_store_failures_do_not_block_settlement(service, ledger, store):
    await service.open_round("g1")
    await _join(service, "alice", 4)
    store.fail_updates = True

    result = await service.force_resolve("g1", 4)

    assert result.status == RoundStatus.SETTLED
    assert ledger.balance("alice") == Decimal("99.8")
    assert result.failed_writes


async def test_pot_snapshot(service):
    assert service.get_pot_snapshot("g1") is None
    await service.open_round("g1", DiceType.D10)
    await _join(service, "alice", 4, "2.5")
    snap = service.get_pot_snapshot("g1")
    assert snap["pot"]["SOL"] == Decimal("2.5")
    assert snap["participant_count"] == 1
    assert snap["range"] == {"min": 1, "max": 10}


# ─── Timer-driven resolution ────────────────────────────────────

async def test_timer_cancels_empty_round_without_ledger_calls(ledger, store):
    svc = GameService(ledger, store, FixedRandomness(3), countdown_seconds=0.01)
    await svc.open_round("g1")
    await asyncio.sleep(0.1)

    assert svc.get_active_round("g1") is None
    assert ledger.adjustments == []
    assert next(iter(store.rounds.values()))["status"] == "cancelled"
    await svc.shutdown()


async def test_timer_settles_and_notifies_listener(ledger, store):
    seen = []

    async def listener(group_key, result):
        seen.append((group_key, result.outcome))

    svc = GameService(
        ledger, store, FixedRandomness(3), countdown_seconds=0.05,
        on_resolved=listener,
    )
    await svc.open_round("g1", resolution_method=ResolutionMethod.VISUAL)
    await _join(svc, "alice", 3)
    await asyncio.sleep(0.2)

    assert seen == [("g1", 3)]
    assert ledger.balance("alice") == Decimal("99.8")
    await svc.shutdown()


async def test_force_resolve_cancels_pending_timer(ledger, store):
    svc = GameService(ledger, store, FixedRandomness(3), countdown_seconds=0.05)
    await svc.open_round("g1")
    await _join(svc, "alice", 3)
    await svc.force_resolve("g1", 3)
    await asyncio.sleep(0.1)

    assert len(ledger.credits) == 1
    assert not svc.timer.is_pending("g1")
    await svc.shutdown()


async def test_drawn_outcome_outside_range_cancels_with_refunds(ledger, store):
    svc = GameService(ledger, store, FixedRandomness(9), countdown_seconds=3600)
    await svc.open_round("g1", DiceType.D6)
    await _join(svc, "alice", 6)

    result = await svc.force_resolve("g1")

    assert result.status == RoundStatus.CANCELLED
    assert result.cancel_reason == CancelReason.DRAW_FAILED
    assert result.outcome is None
    assert ledger.balance("alice") == Decimal("100")
    assert ledger.credits == [("alice", StakeUnit.SOL, Decimal("10"))]
    await svc.shutdown()
