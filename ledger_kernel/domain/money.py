"""
Module: ledger_kernel.domain.money
Responsibility: Decimal helpers for monetary amounts.  Centralizes the
    precision and rounding rule so that every engine rounds identically.
Architecture position: Kernel > Domain.  Imported by domain records and
    engines.  MUST NOT import from engines, config or services.

Invariants enforced:
    CRITICAL: No floats anywhere in the engine.  ``to_money`` rejects float
           input; callers pass ``Decimal``, ``int`` or ``str``.
    MONETARY_DECIMAL_PLACES is the canonical precision (2) and
           ``round_money`` / ``truncate_money`` are the only sanctioned
           rounding functions for money.

Failure modes:
    - InvalidInputError on float input or a non-numeric string.
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation

from ledger_kernel.exceptions import InvalidInputError

# Rounding constants
MONETARY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP
ZERO = Decimal("0")


def quantum(decimal_places: int = MONETARY_DECIMAL_PLACES) -> Decimal:
    """Smallest representable unit, e.g. Decimal('0.01') for 2 places."""
    return Decimal(1).scaleb(-decimal_places)


def to_money(value: Decimal | int | str, field: str = "amount") -> Decimal:
    """
    Coerce a value to Decimal without rounding.

    Preconditions: value is a Decimal, an int, or a numeric string.
    Postconditions: Returns a finite Decimal.

    Raises:
        InvalidInputError: For floats, booleans, non-numeric strings and
            non-finite values.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidInputError(field, f"expected Decimal, int or str, got {type(value).__name__}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise InvalidInputError(field, f"not a number: {value!r}") from exc
    else:
        raise InvalidInputError(field, f"expected Decimal, int or str, got {type(value).__name__}")
    if not result.is_finite():
        raise InvalidInputError(field, f"not a finite number: {value!r}")
    return result


def round_money(
    amount: Decimal,
    decimal_places: int = MONETARY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """Round a monetary amount to ``decimal_places`` (half-up by default)."""
    return amount.quantize(quantum(decimal_places), rounding=rounding)


def truncate_money(
    amount: Decimal,
    decimal_places: int = MONETARY_DECIMAL_PLACES,
) -> Decimal:
    """Truncate toward zero to ``decimal_places`` (floor for non-negatives)."""
    return amount.quantize(quantum(decimal_places), rounding=ROUND_DOWN)


def sign_for(amount: Decimal) -> int:
    """Return -1 for negative amounts, 1 otherwise."""
    return -1 if amount < ZERO else 1
