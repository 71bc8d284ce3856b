"""
Module: erp_kernel.db.types
Responsibility: The sanctioned conversion and rounding helpers for money, cost and quantity values.
Architecture position: Kernel > DB.  Imported by ORM modules and by the
    payload parsers; MUST NOT import from modules or the API layer.

Invariants enforced:
    - No floats.  ``to_decimal`` rejects float input outright so that binary
      rounding error can never enter a stored amount.
    - Quantities are whole units.  ``to_quantity`` rejects fractional and
      boolean values.
    - ``round_money`` / ``round_cost`` are the only rounding functions.

Failure modes:
    - InvalidQuantityError on non-numeric, float, NaN or infinite input.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from erp_kernel.exceptions import InvalidQuantityError

MONEY_DECIMAL_PLACES = 2
COST_DECIMAL_PLACES = 9
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """
    Convert a JSON-ish scalar (str, int, Decimal) to Decimal.

    Floats are refused: callers must send amounts as strings or integers.

    Raises:
        InvalidQuantityError: if the value is missing, boolean, float,
            non-numeric, NaN or infinite.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidQuantityError(field, value, "must be a number")
    if isinstance(value, float):
        raise InvalidQuantityError(field, value, "send decimals as strings, not floats")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidQuantityError(field, value, "must be a number") from None
    else:
        raise InvalidQuantityError(field, value, "must be a number")
    if not result.is_finite():
        raise InvalidQuantityError(field, value, "must be finite")
    return result


def to_quantity(value: Any, field: str = "quantity") -> int:
    """
    Convert a scalar to a whole-unit quantity (sign is not checked here).

    Raises:
        InvalidQuantityError: if the value is not an integral number.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    dec = to_decimal(value, field)
    if dec != dec.to_integral_value():
        raise InvalidQuantityError(field, value, "must be a whole number of units")
    return int(dec)


def round_money(value: Decimal, decimal_places: int = MONEY_DECIMAL_PLACES) -> Decimal:
    """Round a monetary value (invoice totals, payments) half-up."""
    quantizer = Decimal(10) ** -decimal_places
    return value.quantize(quantizer, rounding=DEFAULT_ROUNDING)


def round_cost(value: Decimal) -> Decimal:
    """Round a unit cost (average cost) to storage precision."""
    return round_money(value, COST_DECIMAL_PLACES)


def to_money(value: Any, field: str = "amount") -> Decimal:
    """
    Convert a scalar to a monetary amount with at most 2 decimal places.

    Raises:
        InvalidQuantityError: as ``to_decimal``, or if the value carries
            sub-cent precision.
    """
    amount = to_decimal(value, field)
    if amount != round_money(amount):
        raise InvalidQuantityError(field, value, "must have at most 2 decimal places")
    return amount
