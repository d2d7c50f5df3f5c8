"""Conversion between raw editor input, stored values and display text.

Every field carries a declared data type.  The same type drives three
conversions:

* ``coerce_input`` turns what a user typed into the value tracked by an edit
  session (and sent over the wire),
* ``format_display`` turns a stored value back into read-only display text,
* ``to_storage`` turns a wire value into the Python value written to a column.

Text-like types are never numerically coerced so identifiers such as phone
numbers or queue numbers keep their exact spelling.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional, Union

from sqlalchemy import Column
from sqlalchemy.sql import sqltypes

from projecthub.config import get_settings

NOT_APPLICABLE_VALUES = frozenset({"N/A", "Not Applicable"})
DISPLAY_PLACEHOLDER = "-"

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_ISO_DATE_PREFIX = re.compile(r"^(\d{4}-\d{2}-\d{2})")
_ISO_TIMESTAMP_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}T")
_MIDNIGHT_TIMESTAMP = re.compile(r"^(\d{4}-\d{2}-\d{2})T00:00(:00(\.0+)?)?(Z|[+-]00:?00)?$")

Number = Union[int, float]


class CoercionError(ValueError):
    """Raised when a value cannot be converted to its declared data type."""


class DataType(str, Enum):
    TEXT = "text"
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    PERCENTAGE = "percentage"
    CURRENCY = "currency"
    DOLLAR = "dollar"
    DATE = "date"
    DROPDOWN = "dropdown"

    @classmethod
    def parse(cls, raw: Any) -> "DataType":
        """Return the data type for a catalog value, defaulting to text."""
        if isinstance(raw, cls):
            return raw
        normalized = str(raw or "").strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            return cls.TEXT

    @property
    def is_numeric(self) -> bool:
        return self in _NUMERIC_TYPES

    @property
    def is_text(self) -> bool:
        return self in _TEXT_TYPES


_NUMERIC_TYPES = frozenset(
    {DataType.NUMBER, DataType.INTEGER, DataType.PERCENTAGE, DataType.CURRENCY, DataType.DOLLAR}
)
_TEXT_TYPES = frozenset({DataType.TEXT, DataType.STRING, DataType.DROPDOWN})


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def is_not_applicable(value: Any) -> bool:
    return isinstance(value, str) and value.strip() in NOT_APPLICABLE_VALUES


def _strip_number_text(text: str, data_type: DataType) -> str:
    cleaned = text.strip().replace(",", "")
    if data_type in (DataType.CURRENCY, DataType.DOLLAR):
        cleaned = cleaned.replace("$", "")
    elif data_type is DataType.PERCENTAGE:
        cleaned = cleaned.replace("%", "")
    return cleaned.strip()


def _to_decimal(value: Any, data_type: DataType) -> Decimal:
    if isinstance(value, bool):
        raise CoercionError(f"Boolean value is not a valid {data_type.value}")
    if isinstance(value, (int, float, Decimal)):
        number = Decimal(str(value))
    elif isinstance(value, str):
        try:
            number = Decimal(_strip_number_text(value, data_type))
        except InvalidOperation:
            raise CoercionError(f"'{value}' is not a valid {data_type.value}") from None
    else:
        raise CoercionError(f"Unsupported {data_type.value} value: {value!r}")
    if not number.is_finite():
        raise CoercionError(f"'{value}' is not a finite {data_type.value}")
    return number


def _to_number(value: Any, data_type: DataType) -> Number:
    number = _to_decimal(value, data_type)
    integral = number == number.to_integral_value()
    if data_type is DataType.INTEGER:
        if not integral:
            raise CoercionError(f"'{value}' is not a whole number")
        return int(number)
    if integral and not isinstance(value, float) and "." not in str(value) and "e" not in str(value).lower():
        return int(number)
    return _finite_float(number, value, data_type)


def _finite_float(number: Decimal, raw: Any, data_type: DataType) -> float:
    converted = float(number)
    if not math.isfinite(converted):
        raise CoercionError(f"'{raw}' is out of range for a {data_type.value}")
    return converted


def _plain_number(number: Decimal, *, grouped: bool = False) -> str:
    if number == number.to_integral_value():
        number = number.quantize(Decimal(1))
    else:
        number = number.normalize()
    return format(number, ",f" if grouped else "f")


def _date_from_text(text: str) -> date:
    """Parse an exact ``YYYY-MM-DD`` date or a full ISO timestamp (``Z`` allowed)."""
    cleaned = text.strip()
    try:
        if _ISO_DATE.match(cleaned):
            return date.fromisoformat(cleaned)
        if _ISO_TIMESTAMP_PREFIX.match(cleaned):
            if cleaned.endswith("Z"):
                cleaned = f"{cleaned[:-1]}+00:00"
            return datetime.fromisoformat(cleaned).date()
    except ValueError:
        raise CoercionError(f"'{text}' is not a valid calendar date") from None
    raise CoercionError(f"'{text}' is not a YYYY-MM-DD date")


def _as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return _date_from_text(value)
    raise CoercionError(f"Unsupported date value: {value!r}")


def coerce_input(raw: Any, data_type: Any, *, clamp: bool = True) -> Any:
    """Convert raw editor input into the value tracked for a field.

    Percentages are clamped to ``[0, 100]`` while editing unless ``clamp`` is
    false.  Dates become midnight-UTC timestamps (``YYYY-MM-DDT00:00:00.000Z``).
    ``"N/A"`` style markers are passed through untouched.
    """
    data_type = DataType.parse(data_type)
    if data_type.is_text or raw is None:
        return raw
    if is_not_applicable(raw):
        return raw
    if is_blank(raw):
        return None

    if data_type is DataType.DATE:
        return f"{_as_date(raw).isoformat()}T00:00:00.000Z"

    number = _to_number(raw, data_type)
    if data_type is DataType.PERCENTAGE and clamp:
        number = min(max(number, 0), 100)
    return number


def format_display(
    value: Any,
    data_type: Any,
    *,
    currency_prefix: Optional[str] = None,
    placeholder: str = DISPLAY_PLACEHOLDER,
) -> str:
    """Render a stored value as read-only display text.

    Currency values are prefixed with ``currency_prefix``, falling back to the
    configured ``CURRENCY_SYMBOL``.
    """
    if is_blank(value) or is_not_applicable(value):
        return placeholder

    data_type = DataType.parse(data_type)
    if data_type is DataType.DATE:
        if isinstance(value, (date, datetime)):
            return _as_date(value).isoformat()
        match = _ISO_DATE_PREFIX.match(str(value))
        return match.group(1) if match else str(value)

    if data_type.is_numeric:
        try:
            number = _to_decimal(value, data_type)
        except CoercionError:
            return str(value)
        if data_type in (DataType.CURRENCY, DataType.DOLLAR):
            prefix = get_settings().currency_symbol if currency_prefix is None else currency_prefix
            return f"{prefix}{_plain_number(number, grouped=True)}"
        if data_type is DataType.PERCENTAGE:
            return _plain_number(number)
        return _plain_number(number, grouped=abs(number) > 9999)

    if isinstance(value, (date, datetime)):
        return _as_date(value).isoformat()
    return str(value)


def to_storage(value: Any, data_type: Any) -> Any:
    """Convert a wire value into the Python value written to a column.

    Blank strings become ``None``.  Text columns keep ``"N/A"`` verbatim while
    typed columns treat it as ``None``.
    """
    data_type = DataType.parse(data_type)
    if is_blank(value):
        return None

    if data_type.is_text:
        if isinstance(value, str):
            return value
        if isinstance(value, (date, datetime)):
            return _as_date(value).isoformat()
        if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
            return _plain_number(Decimal(str(value)))
        return str(value)

    if is_not_applicable(value):
        return None
    if data_type is DataType.DATE:
        return _as_date(value)
    number = _to_number(value, data_type)
    if data_type is DataType.INTEGER:
        return number
    return _finite_float(Decimal(number), value, data_type)


def data_type_for_column(column: Column) -> DataType:
    column_type = column.type
    if isinstance(column_type, sqltypes.Integer):
        return DataType.INTEGER
    if isinstance(column_type, sqltypes.Numeric):
        return DataType.NUMBER
    if isinstance(column_type, (sqltypes.Date, sqltypes.DateTime)):
        return DataType.DATE
    return DataType.TEXT


def to_audit_text(value: Any) -> Optional[str]:
    """Normalize a value for audit storage and comparison; blanks become ``None``."""
    if is_blank(value):
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal)):
        return _plain_number(Decimal(str(value)))
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    match = _MIDNIGHT_TIMESTAMP.match(text)
    if match:
        return match.group(1)
    return text


def normalize_for_comparison(value: Any) -> Optional[str]:
    return to_audit_text(value)


def values_differ(old: Any, new: Any) -> bool:
    """Compare two values after string/number/date normalization (``None == ""``)."""
    return normalize_for_comparison(old) != normalize_for_comparison(new)


__all__ = [
    "DISPLAY_PLACEHOLDER",
    "NOT_APPLICABLE_VALUES",
    "CoercionError",
    "DataType",
    "coerce_input",
    "data_type_for_column",
    "format_display",
    "is_blank",
    "is_not_applicable",
    "normalize_for_comparison",
    "to_audit_text",
    "to_storage",
    "values_differ",
]
