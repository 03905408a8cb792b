"""
SynthStake Validation and Hardening Module

Error types, input validation and invariant enforcement shared by every
SynthStake component. It addresses:

1. A single exception hierarchy rooted at StakeError
2. Amount validation (finite, positive, at most 18 fractional digits)
3. Checked epoch arithmetic
4. Accounting invariant enforcement

Security Model:
    - All amounts are untrusted until validated
    - All state mutations are atomic (see stake.transactional)
    - Arithmetic on epochs is bounded

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Context, Decimal, DivisionByZero, InvalidOperation, Overflow, localcontext
from typing import Any, List, Optional


# =============================================================================
# ERROR TYPES
# =============================================================================

class StakeError(Exception):
    """Base exception for every aborted SynthStake operation."""

    error_code = "stake_error"


class ValidationError(StakeError):
    """An input failed validation."""

    error_code = "validation_error"

    def __init__(self, field: str, message: str, value: Any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")


class InvalidAmount(ValidationError):
    """Amount is zero, negative, non-finite or not a number."""

    error_code = "invalid_amount"


class InvalidResource(ValidationError):
    """A bucket of the wrong resource was presented."""

    error_code = "invalid_resource"


class WrongTicketCount(ValidationError):
    """Exactly one claim ticket must be presented."""

    error_code = "wrong_ticket_count"


class WrongInputShape(ValidationError):
    """The shares/ticket combination is not accepted in the current status."""

    error_code = "wrong_input_shape"


class InvariantViolation(StakeError):
    """State machine or accounting invariant violated."""

    error_code = "invariant_violation"


class ContractInactive(StakeError):
    error_code = "contract_inactive"


class PoolInactive(StakeError):
    error_code = "pool_inactive"


class InvalidStatusCombination(StakeError):
    """Contract On with pool Off is never a legal operating state."""

    error_code = "invalid_status_combination"


class TicketNotFound(StakeError):
    """Ticket is unknown to the registry or already burned."""

    error_code = "ticket_not_found"


class ImmutableFieldError(StakeError):
    error_code = "immutable_field"


class MaturityNotReached(StakeError):
    error_code = "maturity_not_reached"


class ArithmeticOverflow(StakeError):
    error_code = "arithmetic_overflow"


class InsufficientBalance(InvariantViolation):
    error_code = "insufficient_balance"


class PoolLedgerError(StakeError):
    error_code = "pool_ledger_error"


# =============================================================================
# VALIDATION RESULT
# =============================================================================

@dataclass
class ValidationResult:
    """Result of a validation operation."""
    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    sanitized_value: Any = None

    def raise_if_invalid(self) -> None:
        """Raise the first error if validation failed."""
        if not self.is_valid:
            raise self.errors[0]

    @classmethod
    def success(cls, sanitized_value: Any = None) -> 'ValidationResult':
        return cls(is_valid=True, sanitized_value=sanitized_value)

    @classmethod
    def failure(cls, errors: List[ValidationError]) -> 'ValidationResult':
        return cls(is_valid=False, errors=errors)


# =============================================================================
# INPUT VALIDATORS
# =============================================================================

# Radix-style fixed point: 18 fractional digits
DEFAULT_DECIMAL_PLACES = 18

# Epochs are unsigned 64-bit counters
MAX_EPOCH = 2 ** 64 - 1


def quantum(decimal_places: int = DEFAULT_DECIMAL_PLACES) -> Decimal:
    return Decimal(1).scaleb(-decimal_places)


# Wide enough for 192-bit fixed point amounts plus intermediate products
AMOUNT_CONTEXT = Context(prec=96, rounding=ROUND_DOWN, traps=[InvalidOperation, DivisionByZero, Overflow])


def amount_context():
    """Context manager running Decimal arithmetic at amount precision."""
    return localcontext(AMOUNT_CONTEXT)


def quantize_down(value: Decimal, decimal_places: int = DEFAULT_DECIMAL_PLACES) -> Decimal:
    """Truncate to the configured number of fractional digits."""
    return value.quantize(quantum(decimal_places), rounding=ROUND_DOWN, context=AMOUNT_CONTEXT)


def mul_div_down(a: Decimal, b: Decimal, divisor: Decimal, decimal_places: int = DEFAULT_DECIMAL_PLACES) -> Decimal:
    """Compute a * b / divisor at amount precision, truncated."""
    with amount_context():
        return quantize_down(a * b / divisor, decimal_places)


class Validators:
    """Collection of input validators."""

    @classmethod
    def validate_amount(
        cls,
        value: Any,
        field_name: str = "amount",
        allow_zero: bool = False,
        decimal_places: int = DEFAULT_DECIMAL_PLACES,
    ) -> ValidationResult:
        """
        Validate a token amount and coerce it to Decimal.

        Amounts finer than ``decimal_places`` fractional digits are rejected,
        not rounded.
        """
        if isinstance(value, bool):
            return ValidationResult.failure([
                InvalidAmount(field_name, "Cannot convert bool to Decimal", value)
            ])
        try:
            if isinstance(value, Decimal):
                amount = value
            elif isinstance(value, (int, str)):
                amount = Decimal(value)
            elif isinstance(value, float):
                amount = Decimal(str(value))
            else:
                return ValidationResult.failure([
                    InvalidAmount(field_name, f"Cannot convert {type(value).__name__} to Decimal", value)
                ])
        except InvalidOperation:
            return ValidationResult.failure([InvalidAmount(field_name, "Invalid decimal value", value)])

        if not amount.is_finite():
            return ValidationResult.failure([InvalidAmount(field_name, "Must be a finite number", value)])

        if amount < 0 or (amount == 0 and not allow_zero):
            return ValidationResult.failure([
                InvalidAmount(field_name, "Must be greater than zero", value)
            ])

        try:
            exact = quantize_down(amount, decimal_places) == amount
        except InvalidOperation:
            return ValidationResult.failure([InvalidAmount(field_name, "Exceeds amount precision", value)])
        if not exact:
            return ValidationResult.failure([
                InvalidAmount(field_name, f"More than {decimal_places} fractional digits", value)
            ])

        return ValidationResult.success(amount)

    @classmethod
    def validate_epoch_delay(cls, value: Any, field_name: str = "unstake_delay") -> ValidationResult:
        """Validate a positive whole number of epochs."""
        if isinstance(value, bool) or not isinstance(value, int):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected int, got {type(value).__name__}", value)
            ])
        if value <= 0:
            return ValidationResult.failure([
                ValidationError(field_name, "Unstake period must be greater than zero", value)
            ])
        if value > MAX_EPOCH:
            return ValidationResult.failure([
                ValidationError(field_name, "Exceeds epoch range", value)
            ])
        return ValidationResult.success(value)


def require_amount(
    value: Any,
    field_name: str = "amount",
    decimal_places: int = DEFAULT_DECIMAL_PLACES,
) -> Decimal:
    """Validate and return a strictly positive Decimal amount."""
    result = Validators.validate_amount(value, field_name, decimal_places=decimal_places)
    result.raise_if_invalid()
    return result.sanitized_value


def checked_add_epoch(current: int, delay: int, max_epoch: int = MAX_EPOCH) -> int:
    """Add an epoch delay, failing instead of wrapping past the epoch range."""
    total = current + delay
    if total > max_epoch:
        raise ArithmeticOverflow(f"Epoch overflow: {current} + {delay} exceeds {max_epoch}")
    return total


# =============================================================================
# STATE MACHINE INVARIANTS
# =============================================================================

class InvariantChecker:
    """Enforces state machine and accounting invariants."""

    @staticmethod
    def check_monotonic_increase(
        field_name: str,
        old_value: int,
        new_value: int,
    ) -> None:
        """Ensure value never decreases."""
        if new_value < old_value:
            raise InvariantViolation(
                f"{field_name} must be monotonically increasing: "
                f"cannot go from {old_value} to {new_value}"
            )

    @staticmethod
    def check_non_negative(field_name: str, value: Decimal) -> None:
        """Ensure value is non-negative."""
        if value < 0:
            raise InvariantViolation(f"{field_name} cannot be negative: {value}")

    @staticmethod
    def check_balance_sufficient(
        available: Decimal,
        required: Decimal,
        field_name: str = "balance",
    ) -> None:
        """Ensure sufficient balance for operation."""
        if available < required:
            raise InsufficientBalance(
                f"Insufficient {field_name}: have {available}, need {required}"
            )

    @staticmethod
    def check_equal(
        field_name: str,
        left: Decimal,
        right: Decimal,
        detail: Optional[str] = None,
    ) -> None:
        """Ensure two tracked quantities agree."""
        if left != right:
            raise InvariantViolation(
                f"{field_name} mismatch: {left} != {right}" + (f" ({detail})" if detail else "")
            )
