"""
Module: pharmacy_kernel.db.types
Responsibility: Money rounding and datetime normalization shared by models,
    services and selectors, so that every layer handles amounts and
    timestamps identically.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats for money.  Prices and costs use Decimal with two places;
      round_money() is the ONLY sanctioned rounding function.
    - All datetimes handed to callers are timezone-aware (as_utc()).  SQLite
      returns naive values for DateTime(timezone=True) columns.
"""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP


MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    Preconditions: value is a Decimal.
    Postconditions: Returns value quantized to the specified decimal places
        using the specified rounding mode.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from the store."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
