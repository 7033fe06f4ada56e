"""Bet ORM: one participant's stake and guess within a game.

Invariants:
    - Always belongs to a Game (game_id FK) and a User (user_id FK)
    - status transitions: active -> won | lost | refunded, or active -> void
      when the stake debit failed after the record was created
    - won/payout/distance_from_result are filled in at settlement
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from diceit.db.base import Base


class Bet(Base):
    """Stake-and-guess entry."""
    __tablename__ = "bets"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    game_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("games.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True,
    )
    chosen_number: Mapped[int] = mapped_column(Integer, nullable=False)
    stake_amount: Mapped[Decimal] = mapped_column(Numeric(28, 9), nullable=False)
    token: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    won: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    payout: Mapped[Decimal | None] = mapped_column(Numeric(28, 9), nullable=True)
    distance_from_result: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    game: Mapped["Game"] = relationship("Game", back_populates="bets")
