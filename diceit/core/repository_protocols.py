"""Boundary Protocols: contracts between the game core and its collaborators.

Invariants:
    - Core NEVER imports from infrastructure; dependency arrows point inward only
    - All IO is accessed through these Protocol types
    - Implementations are provided by the shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no inheritance
    - Async methods: every implementation does IO (database, RPC, chat transport)
    - Ledger errors are raised, not returned: AccountNotFoundError from get_balance,
      InsufficientFundsError or LedgerFailureError from adjust_balance
"""

from decimal import Decimal
from typing import Protocol

from diceit.core.domain_types import AccountId, BetRef, RoundId, StakeUnit


class LedgerPort(Protocol):
    """Balance management. Each adjust_balance call is atomic."""
    async def get_balance(self, account: AccountId, unit: StakeUnit) -> Decimal: ...
    async def adjust_balance(
        self, account: AccountId, unit: StakeUnit, delta: Decimal,
    ) -> None: ...


class RoundStore(Protocol):
    """Audit/history persistence. The core writes, never reads back."""
    async def create_round(self, fields: dict) -> RoundId: ...
    async def update_round_aggregate(self, round_id: RoundId, fields: dict) -> None: ...
    async def create_bet(self, fields: dict) -> BetRef: ...
    async def update_bet(self, bet_ref: BetRef, fields: dict) -> None: ...
    async def increment_user_stats(self, account: AccountId, deltas: dict) -> None: ...


class RandomnessSource(Protocol):
    """Supplies an outcome in [low, high] when the transport does not."""
    async def draw(self, low: int, high: int) -> int: ...


class ResolutionListener(Protocol):
    """Notified when a timer-driven resolution finishes (transport renders it)."""
    async def __call__(self, group_key: str, result: object) -> None: ...


class UserStatsReader(Protocol):
    """Read side of the stats written through RoundStore.increment_user_stats.

    Returns {"username": str, <STAT_FIELDS>: value}; raises AccountNotFoundError.
    """
    async def get_user_stats(self, account: AccountId) -> dict: ...
