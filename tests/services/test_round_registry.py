"""Round Registry: admission, atomic joins, one round per group, claim races.

Invariants:
    - pot[unit] equals the sum of admitted stakes in that unit
    - failed admission leaves pot, ledger and participants untouched
    - a failed debit voids the recorded bet and adds no participant
"""

import asyncio
from decimal import Decimal

import pytest

from diceit.core.domain_types import (
    DiceType, ResolutionMethod, RoundStatus, StakeUnit,
)
from diceit.core.errors import (
    AccountNotFoundError, AlreadyActiveError, AlreadyJoinedError,
    InsufficientFundsError, InvalidGuessError, InvalidStakeError,
    LedgerFailureError, NoActiveRoundError, PersistenceFailureError,
    RoundClosedError,
)
from diceit.services.round_registry import RoundRegistry
from diceit.services.round_timer import RoundTimer


@pytest.fixture
async def registry(ledger, store):
    timer = RoundTimer(3600)
    yield RoundRegistry(ledger, store, timer)
    await timer.shutdown()


async def _open(registry, group="g1", dice=DiceType.D6):
    return await registry.open_round(
        group, dice.range, ResolutionMethod.RANDOM, dice_type=dice,
    )


async def test_open_round_persists_and_registers(registry, store):
    round_ = await _open(registry, dice=DiceType.D20)
    assert registry.get("g1") is round_
    assert store.rounds[round_.round_id]["dice_max"] == 20
    assert store.rounds[round_.round_id]["status"] == "open"


async def test_open_twice_raises_already_active(registry):
    await _open(registry)
    with pytest.raises(AlreadyActiveError):
        await _open(registry)


async def test_reopen_after_teardown(registry):
    first = await _open(registry)
    await registry.teardown(first)
    second = await _open(registry)
    assert second.round_id != first.round_id


async def test_groups_are_independent(registry):
    await _open(registry, "g1")
    await _open(registry, "g2")
    assert registry.active_count() == 2


async def test_failed_create_round_registers_nothing(registry, store):
    store.fail_create_round = True
    with pytest.raises(PersistenceFailureError):
        await _open(registry)
    assert registry.get("g1") is None


async def test_pot_sums_stakes_and_debits_ledger(registry, ledger, store):
    round_ = await _open(registry)
    ledger.fund("dave", "50", StakeUnit.USDC)
    await registry.join("g1", "alice", "Alice", Decimal("1.5"), StakeUnit.SOL, 2)
    await registry.join("g1", "bob", "Bob", Decimal("2.5"), StakeUnit.SOL, 4)
    await registry.join("g1", "dave", "Dave", Decimal("10"), StakeUnit.USDC, 6)

    assert round_.pot == {StakeUnit.SOL: Decimal("4"), StakeUnit.USDC: Decimal("10")}
    assert ledger.balance("alice") == Decimal("98.5")
    assert ledger.balance("dave", StakeUnit.USDC) == Decimal("40")
    assert store.rounds[round_.round_id]["num_players"] == 3
    assert store.rounds[round_.round_id]["pot_sol"] == Decimal("4")
    assert len(store.bets) == 3


async def test_second_join_same_account_fails(registry, ledger):
    round_ = await _open(registry)
    await registry.join("g1", "alice", "Alice", Decimal("1"), StakeUnit.SOL, 2)
    with pytest.raises(AlreadyJoinedError):
        await registry.join("g1", "alice", "Alice", Decimal("1"), StakeUnit.SOL, 3)
    assert round_.participant_count == 1
    assert len(ledger.debits) == 1


async def test_guess_above_range_changes_nothing(registry, ledger, store):
    round_ = await _open(registry)
    with pytest.raises(InvalidGuessError):
        await registry.join("g1", "alice", "Alice", Decimal("1"), StakeUnit.SOL, 7)
    assert round_.pot[StakeUnit.SOL] == 0
    assert ledger.adjustments == []
    assert store.bets == {}


async def test_join_without_round(registry):
    with pytest.raises(NoActiveRoundError):
        await registry.join("nope", "alice", "Alice", Decimal("1"), StakeUnit.SOL, 1)


async def test_insufficient_funds_checked_before_bet(registry, ledger, store):
    await _open(registry)
    with pytest.raises(InsufficientFundsError) as exc:
        await registry.join("g1", "alice", "Alice", Decimal("101"), StakeUnit.SOL, 1)
    assert exc.value.context.group_key == "g1"
    assert store.bets == {}


async def test_unknown_account_rejected(registry):
    await _open(registry)
    with pytest.raises(AccountNotFoundError):
        await registry.join("g1", "mallory", "M", Decimal("1"), StakeUnit.SOL, 1)


async def test_failed_debit_voids_bet_and_adds_no_participant(registry, ledger, store):
    round_ = await _open(registry)
    ledger.fail_adjust_for.add("alice")
    with pytest.raises(LedgerFailureError):
        await registry.join("g1", "alice", "Alice", Decimal("1"), StakeUnit.SOL, 1)
    assert round_.participant_count == 0
    assert round_.pot[StakeUnit.SOL] == 0
    assert [b["status"] for b in store.bets.values()] == ["void"]


async def test_failed_bet_record_aborts_join(registry, ledger, store):
    round_ = await _open(registry)
    store.fail_create_bet = True
    with pytest.raises(PersistenceFailureError):
        await registry.join("g1", "alice", "Alice", Decimal("1"), StakeUnit.SOL, 1)
    assert ledger.adjustments == []
    assert round_.participant_count == 0


async def test_claim_has_exactly_one_winner(registry):
    await _open(registry)
    results = await asyncio.gather(registry.claim("g1"), registry.claim("g1"))
    won = [r[2] for r in results]
    assert sorted(won) == [False, True]
    assert results[0][1] is results[1][1]


async def test_join_after_claim_is_rejected(registry):
    round_ = await _open(registry)
    await registry.claim("g1")
    with pytest.raises(RoundClosedError):
        await registry.join("g1", "alice", "Alice", Decimal("1"), StakeUnit.SOL, 1)
    assert round_.status == RoundStatus.RESOLVING


async def test_teardown_completes_claim_future(registry):
    round_ = await _open(registry)
    _, future, _ = await registry.claim("g1")
    await registry.teardown(round_, "done")
    assert future.result() == "done"
    assert registry.get("g1") is None


async def test_teardown_propagates_error_to_waiters(registry):
    round_ = await _open(registry)
    _, future, _ = await registry.claim("g1")
    await registry.teardown(round_, error=RuntimeError("boom"))
    with pytest.raises(RuntimeError):
        await future


async def test_concurrent_joins_sum_exactly(registry, ledger):
    round_ = await _open(registry, dice=DiceType.D100)
    accounts = [f"user{i}" for i in range(20)]
    for a in accounts:
        ledger.fund(a, "10")
    await asyncio.gather(*(
        registry.join("g1", a, a, Decimal("0.5"), StakeUnit.SOL, i + 1)
        for i, a in enumerate(accounts)
    ))
    assert round_.pot[StakeUnit.SOL] == Decimal("10")
    assert round_.participant_count == 20


async def test_huge_stake_is_a_domain_error(registry, ledger):
    round_ = await _open(registry)
    with pytest.raises(InvalidStakeError):
        await registry.join("g1", "alice", "Alice", Decimal("1e20"), StakeUnit.SOL, 3)
    assert round_.participant_count == 0
    assert ledger.adjustments == []


async def test_unknown_groups_leave_no_lock_behind(registry):
    for i in range(200):
        with pytest.raises(NoActiveRoundError):
            await registry.join(f"ghost-{i}", "alice", "Alice", Decimal("1"), StakeUnit.SOL, 1)
        with pytest.raises(NoActiveRoundError):
            await registry.claim(f"ghost-{i}")
    assert registry.lock_count() == 0


async def test_lock_released_after_teardown(registry, store):
    round_ = await _open(registry)
    assert registry.lock_count() == 1
    await registry.teardown(round_)
    assert registry.lock_count() == 0

    store.fail_create_round = True
    with pytest.raises(PersistenceFailureError):
        await _open(registry)
    assert registry.lock_count() == 0


async def test_lock_kept_while_joins_wait_on_teardown(registry, ledger):
    round_ = await _open(registry)
    await registry.claim("g1")
    results = await asyncio.gather(
        registry.teardown(round_, "done"),
        registry.join("g1", "alice", "Alice", Decimal("1"), StakeUnit.SOL, 1),
        return_exceptions=True,
    )
    assert isinstance(results[1], (NoActiveRoundError, RoundClosedError))
    assert registry.lock_count() == 0
    assert ledger.adjustments == []
