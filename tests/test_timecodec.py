from __future__ import annotations

import pytest

from rowing_bot.timecodec import format_time, parse_time


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("45.55", 45.55),
        ("7:45.55", 465.55),
        ("7.45.55", 465.55),
        ("  6:30  ", 390.0),
        ("390", 390.0),
        ("0:45", 45.0),
    ],
)
def test_parse_accepts_supported_shapes(text: str, expected: float) -> None:
    assert parse_time(text) == pytest.approx(expected)


@pytest.mark.parametrize(
    "text",
    [
        "not a time", "", "   ", "7:", ":30", "7:75.00", "1:2:3", "7.4a.55", "-5", "nan", "inf", "a.b.c", None,
        "9" * 307, "9" * 400 + ":00", "90000", "²:30",
    ],
)
def test_parse_returns_zero_for_invalid_input(text: str | None) -> None:
    assert parse_time(text) == 0


def test_format_pads_seconds() -> None:
    assert format_time(425.3) == "7:05.30"
    assert format_time(45) == "0:45.00"
    assert format_time(465.55) == "7:45.55"


def test_format_carries_rounding_into_minutes() -> None:
    assert format_time(119.999) == "2:00.00"


@pytest.mark.parametrize("text", ["45.55", "7:45.55", "7.45.55", "6:05.3", "59.999", "12.05.07"])
def test_canonical_form_reparses_to_same_value(text: str) -> None:
    seconds = parse_time(text)
    canonical = format_time(seconds)
    assert parse_time(canonical) == pytest.approx(seconds, abs=0.01)
