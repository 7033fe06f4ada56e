"""ORM Models: SQLAlchemy declarative models for users, wallets, games and bets.

Invariants:
    - All models inherit from Base (db/base.py)
    - Game is the aggregate root for bets

Design Decisions:
    - One file per entity
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from diceit.models.user import User  # noqa: F401
from diceit.models.wallet import Wallet  # noqa: F401
from diceit.models.game import Game  # noqa: F401
from diceit.models.bet import Bet  # noqa: F401
