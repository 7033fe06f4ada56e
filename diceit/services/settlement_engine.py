"""Settlement Engine: applies a round's terminal disposition exactly once.

Invariants:
    - Called only by the winner of RoundRegistry.claim(); never twice per round
    - Empty round -> CANCELLED with zero ledger calls
    - Every winner is credited, every participant's bet and stats are written
    - A failed credit or write never aborts the rest: it is logged and reported
      in SettlementResult for manual reconciliation, no automatic retry
    - Refund path credits each participant's full stake back to (account, unit)

Design Decisions:
    - Pure math lives in core/settlement.py; this module only sequences IO
    - Round still transitions to SETTLED when credits fail: outcome and winners
      are fixed facts once drawn
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from diceit.core.domain_types import RoundStatus, StakeUnit
from diceit.core.repository_protocols import LedgerPort, RoundStore
from diceit.core.round_state import Participant, Round
from diceit.core.round_stats import compute_stat_deltas
from diceit.core.settlement import (
    DEFAULT_FEE_RATE, ParticipantResult, SettlementPlan, compute_settlement,
)

logger = logging.getLogger(__name__)


class CancelReason(str, Enum):
    EMPTY_ROUND = "empty_round"
    ADMIN_ABORT = "admin_abort"
    DRAW_FAILED = "draw_failed"


@dataclass(frozen=True)
class CreditFailure:
    """A payout or refund the ledger did not accept."""
    account: str
    unit: StakeUnit
    amount: Decimal
    reason: str


@dataclass
class SettlementResult:
    """Terminal report for one round, rendered by the transport."""
    round_id: str
    group_key: str
    status: RoundStatus
    pot: dict[StakeUnit, Decimal]
    total_players: int
    outcome: int | None = None
    cancel_reason: CancelReason | None = None
    plan: SettlementPlan | None = None
    refunded: list[Participant] = field(default_factory=list)
    failed_credits: list[CreditFailure] = field(default_factory=list)
    failed_writes: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.total_players == 0

    @property
    def winners(self) -> list[ParticipantResult]:
        return self.plan.winners if self.plan else []

    @property
    def needs_reconciliation(self) -> bool:
        return bool(self.failed_credits)

    def to_dict(self) -> dict:
        plan = self.plan
        return {
            "round_id": self.round_id,
            "group_key": self.group_key,
            "status": self.status.value,
            "outcome": self.outcome,
            "cancel_reason": self.cancel_reason.value if self.cancel_reason else None,
            "total_players": self.total_players,
            "pot": {u.value: str(a) for u, a in self.pot.items()},
            "winners": [
                {
                    "account": r.participant.account,
                    "display_name": r.participant.display_name,
                    "unit": r.participant.unit.value,
                    "payout": str(r.payout),
                    "distance": r.distance,
                }
                for r in self.winners
            ],
            "fee": {u.value: str(a) for u, a in plan.fee.items()} if plan else {},
            "payout_per_winner": (
                {u.value: str(a) for u, a in plan.payout_per_winner.items()}
                if plan else {}
            ),
            "residue": {u.value: str(a) for u, a in plan.residue.items()} if plan else {},
            "unclaimed": {u.value: str(a) for u, a in plan.unclaimed.items()} if plan else {},
            "refunded": [p.account for p in self.refunded],
            "failed_credits": [
                {
                    "account": f.account, "unit": f.unit.value,
                    "amount": str(f.amount), "reason": f.reason,
                }
                for f in self.failed_credits
            ],
            "needs_reconciliation": self.needs_reconciliation,
        }


class SettlementEngine:
    """Turns (Round, outcome) into ledger credits and persisted history."""

    def __init__(
        self,
        ledger: LedgerPort,
        store: RoundStore,
        fee_rate: Decimal = DEFAULT_FEE_RATE,
    ):
        self.ledger = ledger
        self.store = store
        self.fee_rate = fee_rate

    async def settle(self, round_: Round, outcome: int | None) -> SettlementResult:
        """Settle a RESOLVING round against the drawn outcome."""
        result = SettlementResult(
            round_id=round_.round_id,
            group_key=round_.group_key,
            status=round_.status,
            pot=dict(round_.pot),
            total_players=round_.participant_count,
            outcome=outcome,
        )

        if not round_.participants:
            round_.transition(RoundStatus.CANCELLED)
            result.status = round_.status
            result.cancel_reason = CancelReason.EMPTY_ROUND
            await self._write_round(round_, result, {
                "status": RoundStatus.CANCELLED.value,
                "finished_at": datetime.now(timezone.utc),
            })
            logger.info(
                "Round cancelled: no participants",
                extra={"group_key": round_.group_key, "round_id": round_.round_id},
            )
            return result

        plan = compute_settlement(
            round_.participants, round_.pot, outcome, self.fee_rate,
        )
        result.plan = plan

        for r in plan.winners:
            await self._credit(r.participant, r.payout, result)
            await self._write_bet(r.participant, {
                "won": True,
                "status": "won",
                "payout": r.payout,
                "distance_from_result": r.distance,
            }, result)
            await self._write_stats(r, result)

        for r in plan.losers:
            await self._write_bet(r.participant, {
                "won": False,
                "status": "lost",
                "distance_from_result": r.distance,
            }, result)
            await self._write_stats(r, result)

        round_.transition(RoundStatus.SETTLED)
        result.status = round_.status
        await self._write_round(round_, result, {
            "status": RoundStatus.SETTLED.value,
            "dice_result": outcome,
            "winner_ids": [r.participant.account for r in plan.winners],
            **{f"house_fee_{u.value.lower()}": a for u, a in plan.fee.items()},
            **{
                f"house_residue_{u.value.lower()}": plan.residue[u] + plan.unclaimed[u]
                for u in plan.fee
            },
            "finished_at": datetime.now(timezone.utc),
        })

        logger.info(
            f"Round settled! Result: {outcome}, Winners: {len(plan.winners)}",
            extra={"group_key": round_.group_key, "round_id": round_.round_id},
        )
        if result.needs_reconciliation:
            logger.critical(
                f"{len(result.failed_credits)} payout(s) need manual reconciliation",
                extra={"group_key": round_.group_key, "round_id": round_.round_id},
            )
        return result

    async def refund(
        self, round_: Round, reason: CancelReason = CancelReason.ADMIN_ABORT,
    ) -> SettlementResult:
        """Cancel the round and refund every stake."""
        if round_.status != RoundStatus.CANCELLED:
            round_.transition(RoundStatus.CANCELLED)
        result = SettlementResult(
            round_id=round_.round_id,
            group_key=round_.group_key,
            status=round_.status,
            pot=dict(round_.pot),
            total_players=round_.participant_count,
            cancel_reason=reason,
        )
        for p in round_.participants:
            if await self._credit(p, p.amount, result):
                result.refunded.append(p)
                await self._write_bet(p, {"status": "refunded"}, result)

        await self._write_round(round_, result, {
            "status": RoundStatus.CANCELLED.value,
            "finished_at": datetime.now(timezone.utc),
        })
        logger.info(
            f"Round cancelled, refunded {len(result.refunded)} participant(s)",
            extra={"group_key": round_.group_key, "round_id": round_.round_id},
        )
        return result

    # ─── IO helpers (never raise) ───────────────────────────────

    async def _credit(
        self, participant: Participant, amount: Decimal, result: SettlementResult,
    ) -> bool:
        try:
            await self.ledger.adjust_balance(
                participant.account, participant.unit, amount,
            )
            return True
        except Exception as e:
            logger.error(
                f"Ledger credit of {amount} {participant.unit.value} failed: {e}",
                extra={
                    "round_id": result.round_id, "account": participant.account,
                    "unit": participant.unit.value, "error_code": "LEDGER_FAILURE",
                },
            )
            result.failed_credits.append(CreditFailure(
                participant.account, participant.unit, amount, str(e),
            ))
            return False

    async def _write_bet(
        self, participant: Participant, fields: dict, result: SettlementResult,
    ) -> None:
        try:
            await self.store.update_bet(participant.bet_ref, fields)
        except Exception as e:
            logger.error(
                f"Failed to update bet {participant.bet_ref}: {e}",
                extra={"round_id": result.round_id, "account": participant.account},
            )
            result.failed_writes.append(f"bet:{participant.bet_ref}")

    async def _write_stats(
        self, participant_result: ParticipantResult, result: SettlementResult,
    ) -> None:
        account = participant_result.participant.account
        try:
            await self.store.increment_user_stats(
                account, compute_stat_deltas(participant_result),
            )
        except Exception as e:
            logger.error(
                f"Failed to update user stats: {e}",
                extra={"round_id": result.round_id, "account": account},
            )
            result.failed_writes.append(f"stats:{account}")

    async def _write_round(
        self, round_: Round, result: SettlementResult, fields: dict,
    ) -> None:
        try:
            await self.store.update_round_aggregate(round_.round_id, fields)
        except Exception as e:
            logger.error(
                f"Failed to persist final round state: {e}",
                extra={"group_key": round_.group_key, "round_id": round_.round_id},
            )
            result.failed_writes.append(f"round:{round_.round_id}")
