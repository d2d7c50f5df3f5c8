from __future__ import annotations

from datetime import date

import pytest

from projecthub.services.milestones import (
    DateConfidence,
    MilestoneDate,
    normalize_confidence_fields,
    paired_date_keys,
)
from projecthub.services.value_coercion import CoercionError


def test_confidence_parse_is_case_insensitive() -> None:
    assert DateConfidence.parse("Actual") is DateConfidence.ACTUAL
    assert DateConfidence.parse(" ESTIMATED ") is DateConfidence.ESTIMATED
    assert DateConfidence.parse("") is None
    with pytest.raises(CoercionError):
        DateConfidence.parse("tentative")


def test_milestone_display() -> None:
    record = {"target_date": "2024-03-15", "target_date_type": "actual"}

    milestone = MilestoneDate.from_record(record, "target_date")

    assert milestone == MilestoneDate(date(2024, 3, 15), DateConfidence.ACTUAL)
    assert milestone.display() == "2024-03-15 (Actual)"
    assert MilestoneDate().display() == "-"
    assert MilestoneDate(date(2024, 3, 15)).display() == "2024-03-15"


def test_paired_date_keys() -> None:
    columns = ["id", "target_date", "target_date_type", "completion_date", "completion_date_type", "notes_type"]
    assert paired_date_keys(columns) == ["completion_date", "target_date"]


def test_normalize_confidence_fields() -> None:
    values = {"target_date": date(2024, 3, 15), "target_date_type": "Estimated", "completion_date_type": None}

    normalized = normalize_confidence_fields(values, ["target_date", "completion_date"])

    assert normalized == {"target_date": date(2024, 3, 15), "target_date_type": "estimated", "completion_date_type": None}
