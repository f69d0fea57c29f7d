from __future__ import annotations

import pytest

from rowing_bot.calculator import average, calculate_model_percentage


def test_equal_time_over_reference_distance_is_hundred_percent() -> None:
    assert calculate_model_percentage(390, 2000, 390) == pytest.approx(100.0)


def test_percentage_is_normalised_by_distance() -> None:
    assert calculate_model_percentage(390, 1000, 195) == pytest.approx(100.0)
    assert calculate_model_percentage(390, 6000, 1170) == pytest.approx(100.0)


def test_slower_time_gives_lower_percentage() -> None:
    assert calculate_model_percentage(390, 2000, 400) == pytest.approx(97.5)


@pytest.mark.parametrize(
    ("baseline", "distance", "elapsed"),
    [(0, 2000, 100), (None, 2000, 100), (390, 0, 100), (390, 2000, 0), (390, None, None), (-390, 2000, 100)],
)
def test_missing_inputs_give_zero(baseline, distance, elapsed) -> None:
    assert calculate_model_percentage(baseline, distance, elapsed) == 0


def test_average() -> None:
    assert average([]) == 0
    assert average([90.0, 100.0, 110.0]) == pytest.approx(100.0)
    assert average(x for x in (1.0, 2.0)) == pytest.approx(1.5)
