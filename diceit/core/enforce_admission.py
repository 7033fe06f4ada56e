"""Join Admission: pure validation run before any ledger or store side effect.

Invariants:
    - Checks run in a fixed order: status, guess range, duplicate account, stake shape
    - A failed check raises exactly one DiceItError and mutates nothing
    - Balance checks are NOT here: they need the ledger (services layer)
"""

from decimal import Decimal

from diceit.core.domain_types import AccountId, DiceType, StakeUnit
from diceit.core.errors import (
    AlreadyJoinedError, ErrorContext, InvalidDiceTypeError, InvalidGuessError,
    InvalidOutcomeError, InvalidStakeError, RoundClosedError,
)
from diceit.core.round_state import Round


def _context(round_: Round, account: str | None = None) -> ErrorContext:
    return ErrorContext(
        group_key=round_.group_key, round_id=round_.round_id, account=account,
    )


# Ledger and store columns are Numeric(28, 9): at most 19 integer digits
MAX_STAKE = Decimal(10) ** 19


def check_stake(amount: Decimal, unit: StakeUnit) -> None:
    """Stake must be positive, below MAX_STAKE and representable in its unit."""
    if not amount.is_finite() or amount <= 0:
        raise InvalidStakeError(f"Stake must be positive (got {amount})")
    if amount >= MAX_STAKE:
        raise InvalidStakeError(f"Stake must be below {MAX_STAKE:,} {unit.value}")
    if amount != amount.quantize(unit.quantum):
        raise InvalidStakeError(
            f"{unit.value} supports at most {unit.decimals} decimal places",
        )


def check_join(
    round_: Round,
    account: AccountId,
    amount: Decimal,
    unit: StakeUnit,
    guess: int,
) -> None:
    """Raise the first admission failure for this join request."""
    ctx = _context(round_, account)
    if not round_.is_open:
        raise RoundClosedError(round_.status.value, ctx)
    if guess not in round_.range:
        raise InvalidGuessError(guess, round_.range.low, round_.range.high, ctx)
    if round_.has_participant(account):
        raise AlreadyJoinedError(account, ctx)
    try:
        check_stake(amount, unit)
    except InvalidStakeError as e:
        e.context = ctx
        raise


def check_outcome(round_: Round, outcome: int) -> None:
    if outcome not in round_.range:
        raise InvalidOutcomeError(
            outcome, round_.range.low, round_.range.high, _context(round_),
        )


def resolve_dice_type(dice_type: str) -> DiceType:
    """Map a dice-type name ("d20", "D20") to the catalogue entry."""
    try:
        return DiceType(dice_type.strip().upper())
    except ValueError:
        raise InvalidDiceTypeError(dice_type) from None
