"""Milestone dates paired with an estimated/actual confidence marker.

A milestone table stores each date column ``<key>`` next to ``<key>_type``.
The pair is always read and written together.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from projecthub.services.value_coercion import (
    DISPLAY_PLACEHOLDER,
    CoercionError,
    DataType,
    coerce_input,
    is_blank,
    to_storage,
)

CONFIDENCE_SUFFIX = "_type"


class DateConfidence(str, Enum):
    ESTIMATED = "estimated"
    ACTUAL = "actual"

    @classmethod
    def parse(cls, raw: Any) -> Optional["DateConfidence"]:
        """Normalise a stored or submitted marker; blanks mean "not stated"."""
        if isinstance(raw, cls):
            return raw
        if is_blank(raw):
            return None
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            allowed = ", ".join(member.value for member in cls)
            raise CoercionError(f"'{raw}' is not a valid date type (expected one of: {allowed})") from None

    @property
    def label(self) -> str:
        return self.value.capitalize()


def confidence_key(field_key: str) -> str:
    return f"{field_key}{CONFIDENCE_SUFFIX}"


def paired_date_keys(column_names: Iterable[str]) -> list[str]:
    """Return the date columns that have a ``_type`` companion column."""
    names = set(column_names)
    return sorted(
        name[: -len(CONFIDENCE_SUFFIX)]
        for name in names
        if name.endswith(CONFIDENCE_SUFFIX) and name[: -len(CONFIDENCE_SUFFIX)] in names
    )


@dataclass(frozen=True)
class MilestoneDate:
    date: Optional[date] = None
    confidence: Optional[DateConfidence] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any], field_key: str) -> "MilestoneDate":
        return cls(
            date=to_storage(record.get(field_key), DataType.DATE),
            confidence=DateConfidence.parse(record.get(confidence_key(field_key))),
        )

    def to_fields(self, field_key: str) -> dict[str, Any]:
        return {
            field_key: coerce_input(self.date, DataType.DATE) if self.date else None,
            confidence_key(field_key): self.confidence.value if self.confidence else None,
        }

    def display(self, placeholder: str = DISPLAY_PLACEHOLDER) -> str:
        if self.date is None:
            return placeholder
        if self.confidence is None:
            return self.date.isoformat()
        return f"{self.date.isoformat()} ({self.confidence.label})"


def normalize_confidence_fields(values: Mapping[str, Any], date_keys: Iterable[str]) -> dict[str, Any]:
    """Lower-case every supplied ``<key>_type`` value; unknown markers raise ``CoercionError``."""
    normalized = dict(values)
    for key in date_keys:
        type_key = confidence_key(key)
        if type_key in normalized:
            confidence = DateConfidence.parse(normalized[type_key])
            normalized[type_key] = confidence.value if confidence else None
    return normalized


__all__ = [
    "CONFIDENCE_SUFFIX",
    "DateConfidence",
    "MilestoneDate",
    "confidence_key",
    "normalize_confidence_fields",
    "paired_date_keys",
]
