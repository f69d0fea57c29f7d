from __future__ import annotations

from typing import Iterable

REFERENCE_DISTANCE = 2000


def calculate_model_percentage(
    baseline_seconds: float | None,
    distance: float | None,
    elapsed_seconds: float | None,
) -> float:
    """Average-speed ratio against the reference boat, in percent.

    The baseline is the model time over REFERENCE_DISTANCE, so a race over a
    different distance is compared by speed rather than by raw time.
    """
    if not baseline_seconds or not distance or not elapsed_seconds:
        return 0.0
    if baseline_seconds < 0 or distance < 0 or elapsed_seconds < 0:
        return 0.0

    model_speed = REFERENCE_DISTANCE / baseline_seconds
    athlete_speed = distance / elapsed_seconds
    return athlete_speed / model_speed * 100


def average(values: Iterable[float]) -> float:
    items = list(values)
    if not items:
        return 0.0
    return sum(items) / len(items)
