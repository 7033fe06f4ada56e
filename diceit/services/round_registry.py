"""Round Registry: the table of active rounds, one per group, with per-group exclusion.

Invariants:
    - At most one Round per group key
    - Every mutation of a group's round runs under that group's asyncio.Lock;
      groups never block each other
    - A join is validated, bet-recorded, debited and appended as one unit:
      a failed debit leaves no participant and an unchanged pot
    - claim() is the only exit from OPEN; the loser of a claim race receives the
      winner's pending future instead of resolving twice
    - teardown() removes the entry and completes the claim future

Design Decisions:
    - Locks created lazily per key and never shared across keys; a key's lock is
      dropped once nobody holds or awaits it and the group has no round, so
      the table is bounded by active rounds plus in-flight calls
    - Store writes that do not gate the operation are fire-and-forget (logged)
    - Port exceptions that are not DiceItError are mapped to PersistenceFailureError
      (store) or LedgerFailureError (ledger) so nothing else crosses the boundary
"""

import asyncio
import logging
from collections import Counter
from contextlib import asynccontextmanager
from decimal import Decimal

from diceit.core.domain_types import (
    AccountId, DiceRange, DiceType, GroupKey, ResolutionMethod, RoundStatus,
    StakeUnit,
)
from diceit.core.enforce_admission import check_join
from diceit.core.errors import (
    AlreadyActiveError, DiceItError, ErrorContext, InsufficientFundsError,
    LedgerFailureError, NoActiveRoundError, PersistenceFailureError,
)
from diceit.core.repository_protocols import LedgerPort, RoundStore
from diceit.core.round_state import Participant, Round
from diceit.services.round_timer import RoundTimer, TimerCallback

logger = logging.getLogger(__name__)


class RoundRegistry:
    """Admission control, pot accounting and lifecycle transitions per group."""

    def __init__(
        self,
        ledger: LedgerPort,
        store: RoundStore,
        timer: RoundTimer,
        on_timeout: TimerCallback | None = None,
    ):
        self.ledger = ledger
        self.store = store
        self.timer = timer
        self.on_timeout = on_timeout
        self._rounds: dict[GroupKey, Round] = {}
        self._locks: dict[GroupKey, asyncio.Lock] = {}
        self._lock_users: Counter[GroupKey] = Counter()
        self._claims: dict[str, asyncio.Future] = {}

    # ─── Queries ────────────────────────────────────────────────

    def get(self, group_key: GroupKey) -> Round | None:
        return self._rounds.get(group_key)

    def require(self, group_key: GroupKey) -> Round:
        round_ = self._rounds.get(group_key)
        if round_ is None:
            raise NoActiveRoundError(group_key, ErrorContext(group_key=group_key))
        return round_

    def active_count(self) -> int:
        return len(self._rounds)

    # ─── Transitions ────────────────────────────────────────────

    async def open_round(
        self,
        group_key: GroupKey,
        dice_range: DiceRange,
        resolution_method: ResolutionMethod,
        dice_type: DiceType | None = None,
        group_name: str | None = None,
    ) -> Round:
        """Create an OPEN round and start its countdown."""
        async with self._exclusive(group_key):
            if group_key in self._rounds:
                raise AlreadyActiveError(group_key, ErrorContext(group_key=group_key))

            round_ = Round(
                round_id="",
                group_key=group_key,
                range=dice_range,
                resolution_method=resolution_method,
                dice_type=dice_type,
            )
            try:
                round_.round_id = await self.store.create_round({
                    "group_id": group_key,
                    "group_name": group_name,
                    "dice_type": dice_type.value if dice_type else None,
                    "dice_min": dice_range.low,
                    "dice_max": dice_range.high,
                    "randomness_method": resolution_method.value,
                    "status": RoundStatus.OPEN.value,
                    "started_at": round_.created_at,
                })
            except DiceItError:
                raise
            except Exception as e:
                logger.error(
                    f"Error creating round: {e}", extra={"group_key": group_key},
                )
                raise PersistenceFailureError(
                    str(e), "create_round", ErrorContext(group_key=group_key),
                ) from e

            self._rounds[group_key] = round_
            if self.on_timeout is not None:
                self.timer.schedule(group_key, round_.round_id, self.on_timeout)

        logger.info(
            f"Round opened with range [{dice_range.low}, {dice_range.high}] "
            f"({resolution_method.value})",
            extra={"group_key": group_key, "round_id": round_.round_id},
        )
        return round_

    async def join(
        self,
        group_key: GroupKey,
        account: AccountId,
        display_name: str,
        amount: Decimal,
        unit: StakeUnit,
        guess: int,
    ) -> Participant:
        """Admit one stake into the group's OPEN round."""
        async with self._exclusive(group_key):
            round_ = self.require(group_key)
            check_join(round_, account, amount, unit, guess)
            ctx = ErrorContext(
                group_key=group_key, round_id=round_.round_id, account=account,
            )

            balance = await self._get_balance(account, unit, ctx)
            if balance < amount:
                raise InsufficientFundsError(unit.value, balance, ctx)

            bet_ref = await self._create_bet(round_, account, amount, unit, guess, ctx)
            try:
                await self._adjust(account, unit, -amount, ctx)
            except DiceItError:
                await self._void_bet(bet_ref, ctx)
                raise

            participant = Participant(
                account=account,
                display_name=display_name,
                unit=unit,
                amount=amount,
                guess=guess,
                bet_ref=bet_ref,
            )
            round_.add_participant(participant)
            await self._persist_aggregate(round_)

        logger.info(
            f"{display_name} joined with {amount} {unit.value} on number {guess}",
            extra={
                "group_key": group_key, "round_id": round_.round_id,
                "account": account, "unit": unit.value,
            },
        )
        return participant

    async def claim(
        self, group_key: GroupKey, target: RoundStatus = RoundStatus.RESOLVING,
    ) -> tuple[Round, asyncio.Future, bool]:
        """Move the round out of OPEN exactly once.

        Returns (round, future, won). The winner (won=True) must settle or
        cancel the round and then call teardown(); losers await the future
        to observe the winner's result.
        """
        async with self._exclusive(group_key):
            round_ = self.require(group_key)
            if not round_.claim(target):
                logger.info(
                    f"Round already {round_.status.value}, joining in-progress resolution",
                    extra={"group_key": group_key, "round_id": round_.round_id},
                )
                return round_, self._claims[round_.round_id], False

            self.timer.cancel(group_key)
            future = asyncio.get_running_loop().create_future()
            self._claims[round_.round_id] = future
            await self.update_aggregate(round_, {"status": target.value})
            return round_, future, True

    async def transition_to_resolving(
        self, group_key: GroupKey,
    ) -> tuple[Round, asyncio.Future, bool]:
        return await self.claim(group_key, RoundStatus.RESOLVING)

    async def teardown(
        self,
        round_: Round,
        result: object = None,
        error: BaseException | None = None,
    ) -> None:
        """Remove the round and release everyone awaiting its claim future."""
        async with self._exclusive(round_.group_key):
            if self._rounds.get(round_.group_key) is round_:
                del self._rounds[round_.group_key]
            self.timer.cancel(round_.group_key)
            future = self._claims.pop(round_.round_id, None)
        if future is not None and not future.done():
            if error is not None:
                future.set_exception(error)
                future.exception()  # mark retrieved; waiters still re-raise
            else:
                future.set_result(result)
        logger.info(
            f"Round torn down ({round_.status.value})",
            extra={"group_key": round_.group_key, "round_id": round_.round_id},
        )

    # ─── Exclusion ──────────────────────────────────────────────

    @asynccontextmanager
    async def _exclusive(self, group_key: GroupKey):
        """Hold the group's lock; drop it when idle and no round remains."""
        lock = self._locks.setdefault(group_key, asyncio.Lock())
        self._lock_users[group_key] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[group_key] -= 1
            if self._lock_users[group_key] <= 0:
                del self._lock_users[group_key]
                if group_key not in self._rounds:
                    self._locks.pop(group_key, None)

    def lock_count(self) -> int:
        return len(self._locks)

    # ─── Port helpers ───────────────────────────────────────────

    async def update_aggregate(self, round_: Round, fields: dict) -> bool:
        """Fire-and-forget round aggregate write. Returns False on failure."""
        try:
            await self.store.update_round_aggregate(round_.round_id, fields)
            return True
        except Exception as e:
            logger.error(
                f"Failed to update round aggregate: {e}",
                extra={"group_key": round_.group_key, "round_id": round_.round_id},
            )
            return False

    async def _persist_aggregate(self, round_: Round) -> None:
        await self.update_aggregate(round_, {
            "num_players": round_.participant_count,
            **{
                f"pot_{unit.value.lower()}": amount
                for unit, amount in round_.pot.items()
            },
        })

    async def _get_balance(
        self, account: AccountId, unit: StakeUnit, ctx: ErrorContext,
    ) -> Decimal:
        try:
            return await self.ledger.get_balance(account, unit)
        except DiceItError as e:
            e.context = ctx
            raise
        except Exception as e:
            raise LedgerFailureError(str(e), ctx) from e

    async def _adjust(
        self, account: AccountId, unit: StakeUnit, delta: Decimal, ctx: ErrorContext,
    ) -> None:
        try:
            await self.ledger.adjust_balance(account, unit, delta)
        except DiceItError as e:
            e.context = ctx
            raise
        except Exception as e:
            raise LedgerFailureError(str(e), ctx) from e

    async def _create_bet(
        self,
        round_: Round,
        account: AccountId,
        amount: Decimal,
        unit: StakeUnit,
        guess: int,
        ctx: ErrorContext,
    ) -> str:
        try:
            return await self.store.create_bet({
                "game_id": round_.round_id,
                "user_id": account,
                "chosen_number": guess,
                "stake_amount": amount,
                "token": unit.value,
            })
        except DiceItError:
            raise
        except Exception as e:
            logger.error(f"Error creating bet: {e}", extra={"account": account})
            raise PersistenceFailureError(str(e), "create_bet", ctx) from e

    async def _void_bet(self, bet_ref: str, ctx: ErrorContext) -> None:
        try:
            await self.store.update_bet(bet_ref, {"status": "void"})
        except Exception as e:
            logger.error(
                f"Failed to void bet {bet_ref} after debit failure: {e}",
                extra={"account": ctx.account, "round_id": ctx.round_id},
            )
