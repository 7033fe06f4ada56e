"""Request dependencies: the process-wide GameService and the admin key guard."""

import hmac

from fastapi import Header, HTTPException, Request, status

from diceit.config import get_settings
from diceit.services.game_service import GameService


def get_game_service(request: Request) -> GameService:
    service = getattr(request.app.state, "game_service", None)
    if service is None:
        raise HTTPException(
            status.HTTP_503_SERVICE_UNAVAILABLE, detail="Game service not started",
        )
    return service


async def require_admin(x_admin_key: str | None = Header(None)) -> None:
    """Force-resolve and cancel need X-Admin-Key. An unset key locks them."""
    expected = get_settings().admin_api_key
    if not expected or not x_admin_key or not hmac.compare_digest(
        x_admin_key, expected,
    ):
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail="Admin key required")
