"""User ORM: a wagering account and its cumulative game statistics.

Invariants:
    - id is the AccountId the core sees (stringified UUID)
    - Stats only grow; written through SqlRoundStore.increment_user_stats deltas
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import BigInteger, DateTime, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from diceit.db.base import Base


class User(Base):
    """Player account."""
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    telegram_id: Mapped[int | None] = mapped_column(
        BigInteger, unique=True, nullable=True,
    )
    username: Mapped[str] = mapped_column(String(100), nullable=False)

    total_games: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_wagered_sol: Mapped[Decimal] = mapped_column(
        Numeric(28, 9), nullable=False, default=Decimal(0),
    )
    total_wagered_usdc: Mapped[Decimal] = mapped_column(
        Numeric(28, 9), nullable=False, default=Decimal(0),
    )
    total_won_sol: Mapped[Decimal] = mapped_column(
        Numeric(28, 9), nullable=False, default=Decimal(0),
    )
    total_won_usdc: Mapped[Decimal] = mapped_column(
        Numeric(28, 9), nullable=False, default=Decimal(0),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
