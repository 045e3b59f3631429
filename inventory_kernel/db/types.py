"""
Module: inventory_kernel.db.types
Responsibility: Annotated type aliases and rounding helpers for price and cost
    columns.  Centralizes precision so that every model and service uses
    identical type definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats for money.  Prices and costs use Decimal with explicit
      precision; round_money() is the only sanctioned rounding function.
    - Stock quantities are whole units (int / BigInteger).
    - Timestamps load back timezone-aware, in UTC, on every backend.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Annotated

from sqlalchemy import BigInteger, DateTime, Numeric, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.types import TypeDecorator


# Prices and costs: 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Whole stock-keeping units
Quantity = Annotated[int, BigInteger]

# Generated codes (MAT-000001, BOM-000001, ...)
ShortCode = Annotated[str, String(50)]

# Long text for descriptions and notes
LongText = Annotated[str, String(4000)]


MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def to_money(value: Decimal | int | str) -> Decimal:
    """
    Coerce a price/cost input to Decimal.

    Floats are rejected: binary floating point cannot represent most
    decimal prices exactly.

    Raises:
        TypeError: If value is a float.
        ValueError: If value is not a valid decimal number.
    """
    if isinstance(value, float):
        raise TypeError("Monetary values must be Decimal, int or str, not float")
    try:
        return Decimal(value)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid monetary value: {value!r}") from exc


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the specified decimal places.

    This is the ONLY sanctioned rounding function for prices and costs.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def line_total(quantity: int, unit_cost: Decimal) -> Decimal:
    """Total cost of a line: quantity * unit_cost, rounded to cents."""
    return round_money(Decimal(quantity) * unit_cost)


def enum_column(enum_cls: type[Enum], length: int = 30) -> SAEnum:
    """
    Column type for a str Enum, stored as its value in a VARCHAR.

    native_enum=False keeps the schema identical on PostgreSQL and SQLite
    and lets new members be added without a migration of a database type.
    Rows load back as enum members, not bare strings.
    """
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp that always loads back as UTC.

    SQLite drops tzinfo on storage, so a reloaded value would otherwise be
    naive while values still in the identity map are aware.

    Guarantees:
        - process_bind_param: aware values are normalized to UTC; naive
          values are taken to already be UTC.
        - process_result_value: naive values get tzinfo=UTC attached.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: datetime | None, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
