"""Round Routes: open, join, resolve, cancel and inspect a group's round.

Invariants:
    - One active round per group, addressed as /groups/{group_key}/rounds/current
    - DiceItError propagates to the global handler (structured JSON, mapped status)
    - Resolve and cancel require the admin key

Design Decisions:
    - Settlement results returned verbatim from SettlementResult.to_dict()
    - Timer-driven resolutions are not pushed over HTTP; callers poll the
      current round (404 once torn down)
"""

import logging

from fastapi import APIRouter, Depends, status

from diceit.api.dependencies import get_game_service, require_admin
from diceit.core.domain_types import AccountId, DiceType, GroupKey
from diceit.core.errors import ErrorContext, NoActiveRoundError
from diceit.schemas.rounds import (
    DiceTypeView, JoinRequest, OpenRoundRequest, ParticipantView, PotSnapshot,
    ResolveRequest, RoundView,
)
from diceit.services.game_service import GameService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["rounds"])


@router.get("/dice-types", response_model=list[DiceTypeView])
async def list_dice_types():
    return [
        DiceTypeView(dice_type=d, min=d.range.low, max=d.range.high)
        for d in DiceType
    ]


@router.post(
    "/groups/{group_key}/rounds", response_model=RoundView,
    status_code=status.HTTP_201_CREATED,
)
async def open_round(
    group_key: str,
    body: OpenRoundRequest,
    service: GameService = Depends(get_game_service),
):
    """Open a round; the countdown starts immediately."""
    round_ = await service.open_round(
        GroupKey(group_key),
        body.dice_type,
        body.resolution_method,
        group_name=body.group_name,
    )
    return RoundView.from_round(round_)


@router.get("/groups/{group_key}/rounds/current", response_model=RoundView)
async def get_current_round(
    group_key: str, service: GameService = Depends(get_game_service),
):
    round_ = service.get_active_round(GroupKey(group_key))
    if round_ is None:
        raise NoActiveRoundError(group_key, ErrorContext(group_key=group_key))
    return RoundView.from_round(round_)


@router.get("/groups/{group_key}/pot", response_model=PotSnapshot)
async def get_pot(
    group_key: str, service: GameService = Depends(get_game_service),
):
    snapshot = service.get_pot_snapshot(GroupKey(group_key))
    if snapshot is None:
        raise NoActiveRoundError(group_key, ErrorContext(group_key=group_key))
    return PotSnapshot.from_snapshot(snapshot)


@router.post(
    "/groups/{group_key}/rounds/current/bets", response_model=ParticipantView,
    status_code=status.HTTP_201_CREATED,
)
async def join_round(
    group_key: str,
    body: JoinRequest,
    service: GameService = Depends(get_game_service),
):
    """Debit the stake and add the caller to the open round."""
    participant = await service.join(
        GroupKey(group_key),
        AccountId(body.account),
        body.display_name,
        body.amount,
        body.unit,
        body.guess,
    )
    return ParticipantView.from_participant(participant)


@router.post(
    "/groups/{group_key}/rounds/current/resolve",
    dependencies=[Depends(require_admin)],
)
async def resolve_round(
    group_key: str,
    body: ResolveRequest | None = None,
    service: GameService = Depends(get_game_service),
):
    outcome = body.outcome if body else None
    result = await service.force_resolve(GroupKey(group_key), outcome)
    return result.to_dict()


@router.delete(
    "/groups/{group_key}/rounds/current",
    dependencies=[Depends(require_admin)],
)
async def cancel_round(
    group_key: str, service: GameService = Depends(get_game_service),
):
    """Abort the round and refund every stake."""
    result = await service.cancel_round(GroupKey(group_key))
    logger.info(
        f"Round cancelled by admin, {len(result.refunded)} refunds",
        extra={"group_key": group_key, "round_id": result.round_id},
    )
    return result.to_dict()
