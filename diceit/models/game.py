"""Game ORM: persisted audit record of one round.

Invariants:
    - id is the RoundId the core carries for the round's lifetime
    - status mirrors RoundStatus values: open -> resolving -> settled | cancelled
    - Written by SqlRoundStore only; the core never reads it back for decisions

Design Decisions:
    - Per-unit columns (pot_sol/pot_usdc, house_fee_*, house_residue_*) instead of a
      JSON map: queryable for house reconciliation reports
    - winner_ids as JSON list of account ids
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import JSON, DateTime, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from diceit.db.base import Base


class Game(Base):
    """One round, from open to terminal state."""
    __tablename__ = "games"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    group_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    group_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    dice_type: Mapped[str | None] = mapped_column(String(10), nullable=True)
    dice_min: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    dice_max: Mapped[int] = mapped_column(Integer, nullable=False)
    randomness_method: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="open")

    num_players: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pot_sol: Mapped[Decimal] = mapped_column(
        Numeric(28, 9), nullable=False, default=Decimal(0),
    )
    pot_usdc: Mapped[Decimal] = mapped_column(
        Numeric(28, 9), nullable=False, default=Decimal(0),
    )

    dice_result: Mapped[int | None] = mapped_column(Integer, nullable=True)
    winner_ids: Mapped[list | None] = mapped_column(JSON, nullable=True)
    house_fee_sol: Mapped[Decimal | None] = mapped_column(Numeric(28, 9), nullable=True)
    house_fee_usdc: Mapped[Decimal | None] = mapped_column(Numeric(28, 9), nullable=True)
    house_residue_sol: Mapped[Decimal | None] = mapped_column(
        Numeric(28, 9), nullable=True,
    )
    house_residue_usdc: Mapped[Decimal | None] = mapped_column(
        Numeric(28, 9), nullable=True,
    )

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    finished_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    bets: Mapped[list["Bet"]] = relationship(
        "Bet", back_populates="game", cascade="all, delete-orphan",
        lazy="selectin",
    )
