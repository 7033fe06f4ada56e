"""In-memory port implementations for core and service tests.

FakeLedger, FakeStore and FixedRandomness satisfy the LedgerPort, RoundStore
and RandomnessSource protocols structurally and record every call so tests can
assert on side effects (or their absence).
"""

from decimal import Decimal

from diceit.core.domain_types import StakeUnit
from diceit.core.errors import (
    AccountNotFoundError, InsufficientFundsError, LedgerFailureError,
)
from diceit.core.round_stats import STAT_FIELDS


class FakeLedger:
    """Balances keyed by (account, unit). Unknown accounts raise AccountNotFound."""

    def __init__(self, balances: dict[tuple[str, StakeUnit], Decimal] | None = None):
        self.balances: dict[tuple[str, StakeUnit], Decimal] = dict(balances or {})
        self.adjustments: list[tuple[str, StakeUnit, Decimal]] = []
        self.fail_adjust_for: set[str] = set()

    def fund(self, account: str, amount: str | Decimal, unit: StakeUnit = StakeUnit.SOL):
        self.balances[(account, unit)] = Decimal(amount)

    def balance(self, account: str, unit: StakeUnit = StakeUnit.SOL) -> Decimal:
        return self.balances.get((account, unit), Decimal(0))

    @property
    def credits(self) -> list[tuple[str, StakeUnit, Decimal]]:
        return [a for a in self.adjustments if a[2] > 0]

    @property
    def debits(self) -> list[tuple[str, StakeUnit, Decimal]]:
        return [a for a in self.adjustments if a[2] < 0]

    async def get_balance(self, account, unit):
        if not any(key[0] == account for key in self.balances):
            raise AccountNotFoundError(account)
        return self.balance(account, unit)

    async def adjust_balance(self, account, unit, delta):
        if account in self.fail_adjust_for:
            raise LedgerFailureError(f"ledger unavailable for {account}")
        current = self.balance(account, unit)
        if current + delta < 0:
            raise InsufficientFundsError(unit.value, current)
        self.balances[(account, unit)] = current + delta
        self.adjustments.append((account, unit, delta))


class FakeStore:
    """Records rounds, bets and stat deltas in dicts."""

    def __init__(self):
        self.rounds: dict[str, dict] = {}
        self.bets: dict[str, dict] = {}
        self.stats: dict[str, dict] = {}
        self.fail_create_round = False
        self.fail_create_bet = False
        self.fail_updates = False
        self._seq = 0

    def _next_id(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}-{self._seq}"

    async def create_round(self, fields):
        if self.fail_create_round:
            raise RuntimeError("games table unavailable")
        round_id = self._next_id("round")
        self.rounds[round_id] = dict(fields)
        return round_id

    async def update_round_aggregate(self, round_id, fields):
        if self.fail_updates:
            raise RuntimeError("games table unavailable")
        self.rounds[round_id].update(fields)

    async def create_bet(self, fields):
        if self.fail_create_bet:
            raise RuntimeError("bets table unavailable")
        bet_ref = self._next_id("bet")
        self.bets[bet_ref] = {"status": "active", **fields}
        return bet_ref

    async def update_bet(self, bet_ref, fields):
        if self.fail_updates:
            raise RuntimeError("bets table unavailable")
        self.bets[bet_ref].update(fields)

    async def get_user_stats(self, account):
        if account not in self.stats:
            raise AccountNotFoundError(account)
        totals = self.stats[account]
        return {
            "username": account,
            **{key: totals.get(key, 0) for key in STAT_FIELDS},
        }

    async def increment_user_stats(self, account, deltas):
        if self.fail_updates:
            raise RuntimeError("users table unavailable")
        totals = self.stats.setdefault(account, {})
        for key, delta in deltas.items():
            totals[key] = totals.get(key, 0) + delta


class FixedRandomness:
    """Returns a preset outcome and counts draws."""

    def __init__(self, outcome: int = 1):
        self.outcome = outcome
        self.draws = 0

    async def draw(self, low, high):
        self.draws += 1
        return self.outcome


class FailingRandomness:
    async def draw(self, low, high):
        raise RuntimeError("entropy source unavailable")
