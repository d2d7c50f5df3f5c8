from __future__ import annotations

from datetime import date

import pytest

from projecthub.services.value_coercion import (
    CoercionError,
    DataType,
    coerce_input,
    format_display,
    to_audit_text,
    to_storage,
    values_differ,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("150", 100), ("-5", 0), ("42.5", 42.5), ("", None), ("   ", None)],
)
def test_percentage_input_is_clamped(raw: str, expected: object) -> None:
    assert coerce_input(raw, DataType.PERCENTAGE) == expected


def test_percentage_clamp_can_be_disabled() -> None:
    assert coerce_input("150", "percentage", clamp=False) == 150


def test_currency_input_strips_symbols_and_grouping() -> None:
    assert coerce_input("$1,250,000", DataType.CURRENCY) == 1250000
    assert coerce_input("1,250.75", DataType.DOLLAR) == 1250.75


def test_date_input_becomes_midnight_utc_timestamp() -> None:
    assert coerce_input("2024-03-15", DataType.DATE) == "2024-03-15T00:00:00.000Z"
    assert coerce_input(date(2024, 3, 15), DataType.DATE) == "2024-03-15T00:00:00.000Z"


def test_invalid_number_raises() -> None:
    with pytest.raises(CoercionError):
        coerce_input("twelve", DataType.NUMBER)


def test_text_input_keeps_exact_spelling() -> None:
    assert coerce_input("00123", DataType.TEXT) == "00123"
    assert coerce_input("555-0100", "string") == "555-0100"


def test_not_applicable_passes_through_typed_input() -> None:
    assert coerce_input("N/A", DataType.NUMBER) == "N/A"


def test_unknown_data_type_defaults_to_text() -> None:
    assert DataType.parse("Mystery") is DataType.TEXT
    assert DataType.parse(None) is DataType.TEXT
    assert DataType.parse(" Currency ") is DataType.CURRENCY


def test_display_formats_by_type() -> None:
    assert format_display(1500000, DataType.CURRENCY) == "$1,500,000"
    assert format_display(1500000, DataType.CURRENCY, currency_prefix="€") == "€1,500,000"
    assert format_display(12345, DataType.NUMBER) == "12,345"
    assert format_display(1234, DataType.NUMBER) == "1234"
    assert format_display(7.5, DataType.PERCENTAGE) == "7.5"
    assert format_display("2024-03-15T00:00:00.000Z", DataType.DATE) == "2024-03-15"


@pytest.mark.parametrize("value", [None, "", "N/A", "Not Applicable"])
def test_display_uses_placeholder_for_empty_values(value: object) -> None:
    assert format_display(value, DataType.NUMBER) == "-"


def test_storage_conversion() -> None:
    assert to_storage("", DataType.NUMBER) is None
    assert to_storage("N/A", DataType.NUMBER) is None
    assert to_storage("N/A", DataType.TEXT) == "N/A"
    assert to_storage("2024-03-15T00:00:00.000Z", DataType.DATE) == date(2024, 3, 15)
    assert to_storage("12", DataType.INTEGER) == 12
    assert to_storage("12", DataType.CURRENCY) == 12.0
    assert to_storage(1.45, DataType.TEXT) == "1.45"


def test_storage_rejects_invalid_dates() -> None:
    with pytest.raises(CoercionError):
        to_storage("2024-02-30", DataType.DATE)


def test_values_differ_normalizes_types() -> None:
    assert not values_differ(None, "")
    assert not values_differ(12, "12")
    assert not values_differ(12.0, 12)
    assert not values_differ(date(2024, 3, 15), "2024-03-15T00:00:00.000Z")
    assert values_differ(10, 12)
    assert values_differ("1.30", "1.45")


def test_audit_text() -> None:
    assert to_audit_text(True) == "true"
    assert to_audit_text(0.1) == "0.1"
    assert to_audit_text("  spaced  ") == "spaced"


def test_display_text_coerces_back_to_the_same_value() -> None:
    for value, data_type in ((1500000, DataType.CURRENCY), (12345, DataType.NUMBER), (42.5, DataType.PERCENTAGE)):
        assert coerce_input(format_display(value, data_type), data_type) == value


@pytest.mark.parametrize("raw", ["2024-03-150", "2024-03-15abc", "2024-03-15 extra", "20240315", "2024-03-15T25:00:00Z"])
def test_malformed_dates_are_rejected(raw: str) -> None:
    with pytest.raises(CoercionError):
        coerce_input(raw, DataType.DATE)
    with pytest.raises(CoercionError):
        to_storage(raw, DataType.DATE)


def test_full_iso_timestamps_are_accepted_as_dates() -> None:
    assert to_storage("2024-03-15T13:45:00Z", DataType.DATE) == date(2024, 3, 15)
    assert coerce_input("2024-03-15T00:00:00.000+00:00", DataType.DATE) == "2024-03-15T00:00:00.000Z"


@pytest.mark.parametrize("raw", ["1e400", "-1e400", "1" + "0" * 400])
def test_numbers_beyond_float_range_are_rejected(raw: str) -> None:
    with pytest.raises(CoercionError):
        to_storage(raw, DataType.NUMBER)
    with pytest.raises(CoercionError):
        to_storage(raw, DataType.CURRENCY)


def test_out_of_range_exponent_is_rejected_while_editing() -> None:
    with pytest.raises(CoercionError):
        coerce_input("1e400", DataType.NUMBER)
