from __future__ import annotations

import logging
import math

logger = logging.getLogger(__name__)

MAX_SECONDS = 24 * 60 * 60


def _to_number(raw: str) -> float | None:
    try:
        value = float(raw)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def _minutes_and_seconds(minutes_raw: str, seconds_raw: str) -> float | None:
    minutes_raw = minutes_raw.strip()
    if not minutes_raw.isdecimal() or len(minutes_raw) > 4:
        return None

    seconds = _to_number(seconds_raw.strip())
    if seconds is None or seconds < 0 or seconds >= 60:
        return None

    return int(minutes_raw) * 60 + seconds


def parse_time(text: str | None) -> float:
    """Parse "SS.ss", "M:SS.ss" or "M.SS.ss" into seconds.

    Returns 0 for anything that cannot be parsed or is longer than a day;
    callers treat a non-positive result as invalid input.
    """
    raw = (text or "").strip()
    if not raw:
        return 0.0

    if ":" in raw:
        parts = raw.split(":")
        total = _minutes_and_seconds(parts[0], parts[1]) if len(parts) == 2 else None
    else:
        parts = raw.split(".")
        if len(parts) == 3:
            if parts[1].isdecimal() and parts[2].isdecimal():
                total = _minutes_and_seconds(parts[0], f"{parts[1]}.{parts[2]}")
            else:
                total = None
        else:
            total = _to_number(raw)

    if total is None or total < 0 or total > MAX_SECONDS:
        logger.info("Unparseable time input: %r", text)
        return 0.0

    return round(total, 2)


def format_time(seconds: float) -> str:
    cents = max(int(round(seconds * 100)), 0)
    minutes, rest = divmod(cents, 6000)
    return f"{minutes}:{rest / 100:05.2f}"
