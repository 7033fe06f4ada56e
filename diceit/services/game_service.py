"""Game Service: the exposed contract of the round engine.

Invariants:
    - Public operations raise only DiceItError subclasses
    - Exactly one resolution per round: timer and force_resolve race through
      RoundRegistry.claim(); the loser awaits the winner's SettlementResult
    - A transport-supplied outcome is range-checked BEFORE the round is claimed
    - A draw failure, or a drawn outcome outside the range, cancels the round
      with full refunds (no stake left held)
    - Timer-driven results are pushed to the optional ResolutionListener

Design Decisions:
    - VISUAL rounds resolved by the timer fall back to the RandomnessSource
      (the transport only supplies outcomes on forced resolution)
    - asyncio.shield on the claim future: a cancelled waiter never cancels the
      settlement it is waiting on
"""

import asyncio
import logging
from decimal import Decimal

from diceit.core.domain_types import (
    AccountId, DiceType, GroupKey, ResolutionMethod, RoundStatus, StakeUnit,
)
from diceit.core.enforce_admission import check_outcome, resolve_dice_type
from diceit.core.errors import (
    DiceItError, EmptyRoundError, ErrorContext, PersistenceFailureError,
)
from diceit.core.repository_protocols import (
    LedgerPort, RandomnessSource, ResolutionListener, RoundStore,
    UserStatsReader,
)
from diceit.core.round_state import Participant, Round
from diceit.core.settlement import DEFAULT_FEE_RATE
from diceit.services.round_registry import RoundRegistry
from diceit.services.round_timer import RoundTimer
from diceit.services.settlement_engine import (
    CancelReason, SettlementEngine, SettlementResult,
)

logger = logging.getLogger(__name__)


class GameService:
    """Wires registry, timer, settlement and randomness into one API."""

    def __init__(
        self,
        ledger: LedgerPort,
        store: RoundStore,
        randomness: RandomnessSource,
        fee_rate: Decimal = DEFAULT_FEE_RATE,
        countdown_seconds: float = 30.0,
        on_resolved: ResolutionListener | None = None,
        stats: UserStatsReader | None = None,
    ):
        self.timer = RoundTimer(countdown_seconds)
        self.registry = RoundRegistry(ledger, store, self.timer, on_timeout=self._on_timer)
        self.engine = SettlementEngine(ledger, store, fee_rate)
        self.randomness = randomness
        self.on_resolved = on_resolved
        self.stats = stats

    # ─── Queries ────────────────────────────────────────────────

    def get_active_round(self, group_key: GroupKey) -> Round | None:
        return self.registry.get(group_key)

    def get_pot_snapshot(self, group_key: GroupKey) -> dict | None:
        round_ = self.registry.get(group_key)
        return round_.pot_snapshot() if round_ else None

    async def get_user_stats(self, account: AccountId) -> dict:
        """Cumulative counters for one account (see UserStatsReader)."""
        if self.stats is None:
            raise PersistenceFailureError("no stats reader configured", "get_user_stats")
        try:
            return await self.stats.get_user_stats(account)
        except DiceItError:
            raise
        except Exception as e:
            raise PersistenceFailureError(
                str(e), "get_user_stats", ErrorContext(account=account),
            ) from e

    # ─── Commands ───────────────────────────────────────────────

    async def open_round(
        self,
        group_key: GroupKey,
        dice_type: DiceType | str = DiceType.D6,
        resolution_method: ResolutionMethod = ResolutionMethod.RANDOM,
        group_name: str | None = None,
    ) -> Round:
        if not isinstance(dice_type, DiceType):
            dice_type = resolve_dice_type(dice_type)
        return await self.registry.open_round(
            group_key,
            dice_type.range,
            resolution_method,
            dice_type=dice_type,
            group_name=group_name,
        )

    async def join(
        self,
        group_key: GroupKey,
        account: AccountId,
        display_name: str,
        amount: Decimal,
        unit: StakeUnit,
        guess: int,
    ) -> Participant:
        return await self.registry.join(
            group_key, account, display_name, amount, unit, guess,
        )

    async def force_resolve(
        self, group_key: GroupKey, outcome: int | None = None,
    ) -> SettlementResult:
        """Resolve now. Raises EmptyRoundError if nobody joined."""
        if outcome is not None:
            check_outcome(self.registry.require(group_key), outcome)
        result = await self._resolve(group_key, outcome)
        if result.cancel_reason == CancelReason.EMPTY_ROUND:
            raise EmptyRoundError(
                result.round_id,
                ErrorContext(group_key=group_key, round_id=result.round_id),
            )
        return result

    async def cancel_round(self, group_key: GroupKey) -> SettlementResult:
        """Admin abort: refund every stake and tear the round down."""
        round_, future, won = await self.registry.claim(
            group_key, RoundStatus.CANCELLED,
        )
        if not won:
            return await asyncio.shield(future)
        return await self._finish(
            round_, self.engine.refund(round_, CancelReason.ADMIN_ABORT),
        )

    async def shutdown(self) -> None:
        await self.timer.shutdown()

    # ─── Resolution ─────────────────────────────────────────────

    async def _resolve(
        self, group_key: GroupKey, outcome: int | None,
    ) -> SettlementResult:
        round_, future, won = await self.registry.transition_to_resolving(group_key)
        if not won:
            return await asyncio.shield(future)

        if outcome is None and round_.participants:
            try:
                outcome = await self.randomness.draw(round_.range.low, round_.range.high)
                check_outcome(round_, outcome)
            except Exception as e:
                logger.error(
                    f"Outcome draw failed, cancelling round: {e}",
                    extra={"group_key": group_key, "round_id": round_.round_id},
                )
                return await self._finish(
                    round_, self.engine.refund(round_, CancelReason.DRAW_FAILED),
                )
        return await self._finish(round_, self.engine.settle(round_, outcome))

    async def _finish(self, round_: Round, work) -> SettlementResult:
        try:
            result = await work
        except Exception as e:
            await self.registry.teardown(round_, error=e)
            raise
        await self.registry.teardown(round_, result)
        return result

    async def _on_timer(self, group_key: str, round_id: str) -> None:
        round_ = self.registry.get(group_key)
        if round_ is None or round_.round_id != round_id:
            return
        try:
            result = await self._resolve(group_key, None)
        except DiceItError as e:
            logger.info(
                f"Timer resolution skipped: {e.message}",
                extra={"group_key": group_key, "round_id": round_id},
            )
            return
        if self.on_resolved is None:
            return
        try:
            await self.on_resolved(group_key, result)
        except Exception as e:
            logger.error(
                f"Resolution listener failed: {e}",
                extra={"group_key": group_key, "round_id": round_id},
                exc_info=True,
            )
