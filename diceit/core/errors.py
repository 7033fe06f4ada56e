"""Error Hierarchy: typed, categorized exceptions for all DiceIt failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are detected before any side effect
    - Infrastructure errors (500-level) wrap ledger/store failures
    - to_response() produces the REST envelope; no internal details leaked
    - Game service operations raise only subclasses of DiceItError

Design Decisions:
    - Single hierarchy with DiceItError base: FastAPI global handler catches all
    - ErrorContext as dataclass: observability fields without coupling to logging
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"
    DATABASE = "database"
    LEDGER = "ledger"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    group_key: str | None = None
    round_id: str | None = None
    account: str | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None


class DiceItError(Exception):
    """Base exception for all DiceIt errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.context.user_message or self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "group_key": self.context.group_key,
                    "round_id": self.context.round_id,
                    "account": self.context.account,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class AlreadyActiveError(DiceItError):
    """A round is already open or resolving for this group."""
    def __init__(self, group_key: str, context: ErrorContext | None = None):
        super().__init__(
            f"A round is already in progress for group '{group_key}'",
            "ALREADY_ACTIVE", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, context, 409,
        )


class NoActiveRoundError(DiceItError):
    """No round exists for this group."""
    def __init__(self, group_key: str, context: ErrorContext | None = None):
        super().__init__(
            f"No active round for group '{group_key}'",
            "NO_ACTIVE_ROUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.WARNING, context, 404,
        )


class RoundClosedError(DiceItError):
    """The round exists but no longer accepts bets."""
    def __init__(self, status: str, context: ErrorContext | None = None):
        super().__init__(
            f"Round is {status} and no longer accepts bets",
            "ROUND_CLOSED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 409,
        )
        self.status = status


class InvalidGuessError(DiceItError):
    """Guess lies outside the round's dice range."""
    def __init__(
        self, guess: int, low: int, high: int, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Choose a number between {low} and {high} (got {guess})",
            "INVALID_GUESS", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.guess = guess


class AlreadyJoinedError(DiceItError):
    """Account already holds a bet in this round."""
    def __init__(self, account: str, context: ErrorContext | None = None):
        super().__init__(
            f"Account '{account}' already joined this round",
            "ALREADY_JOINED", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, context, 409,
        )


class InvalidStakeError(DiceItError):
    """Stake amount is not positive or too precise for its unit."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "INVALID_STAKE", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )


class InvalidDiceTypeError(DiceItError):
    """Requested dice type is not in the catalogue."""
    def __init__(self, dice_type: str, context: ErrorContext | None = None):
        super().__init__(
            f"Unknown dice type '{dice_type}'",
            "INVALID_DICE_TYPE", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )


class InvalidOutcomeError(DiceItError):
    """Supplied outcome lies outside the round's dice range."""
    def __init__(
        self, outcome: int, low: int, high: int, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Outcome {outcome} outside dice range [{low}, {high}]",
            "INVALID_OUTCOME", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )


class InsufficientFundsError(DiceItError):
    """Ledger balance is lower than the requested stake."""
    def __init__(
        self, unit: str, balance: Any = None, context: ErrorContext | None = None,
    ):
        message = f"Insufficient {unit} balance"
        if balance is not None:
            message += f". You have {balance} {unit}"
        super().__init__(
            message, "INSUFFICIENT_FUNDS", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 400,
        )
        self.unit = unit
        self.balance = balance


class AccountNotFoundError(DiceItError):
    """Ledger holds no wallet for the account."""
    def __init__(self, account: str, context: ErrorContext | None = None):
        super().__init__(
            f"Wallet not found for account '{account}'",
            "ACCOUNT_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )


class EmptyRoundError(DiceItError):
    """Round reached resolution with no participants and was cancelled."""
    def __init__(self, round_id: str, context: ErrorContext | None = None):
        super().__init__(
            "No players in game! Round cancelled.",
            "EMPTY_ROUND", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.INFO, context, 409,
        )
        self.round_id = round_id


# ─── Infrastructure Errors (500-level) ──────────────────────────

class PersistenceFailureError(DiceItError):
    """Round Store rejected a write the operation depends on."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Round store {operation} failed: {message}",
            "PERSISTENCE_FAILURE", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class LedgerFailureError(DiceItError):
    """Ledger adjustment failed for a reason other than funds."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            f"Ledger operation failed: {message}",
            "LEDGER_FAILURE", ErrorCategory.LEDGER,
            ErrorSeverity.CRITICAL, context, 503,
        )


class DatabaseError(DiceItError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
