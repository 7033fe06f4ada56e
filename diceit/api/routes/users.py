"""User Routes: read side of per-account game statistics."""

from fastapi import APIRouter, Depends

from diceit.api.dependencies import get_game_service
from diceit.core.domain_types import AccountId
from diceit.schemas.rounds import UserStatsView
from diceit.services.game_service import GameService

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.get("/{account}/stats", response_model=UserStatsView)
async def get_user_stats(
    account: str, service: GameService = Depends(get_game_service),
):
    """Games played, wins, win rate, and amounts wagered and won per unit."""
    stats = await service.get_user_stats(AccountId(account))
    return UserStatsView.from_stats(account, stats)
