"""Minute-of-day helpers shared by the scheduling core.

All times are minutes since midnight of a single day. There is no day
rollover: overnight shifts and bookings are not representable.
"""
from __future__ import annotations

import re
from datetime import date, datetime

from ..errors import InvalidInput

MINUTES_PER_DAY = 24 * 60

# 0=Sunday .. 6=Saturday, the weekday order used by shift templates.
WEEKDAY_KEYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")


def _to_int(part: str) -> int:
    digits = re.match(r"\s*-?\d+", part or "")
    return int(digits.group()) if digits else 0


def time_to_minutes(hhmm: object) -> int:
    """Convert ``"HH:MM"`` to minutes; missing or garbage parts count as 0."""
    parts = str(hhmm).split(":")
    hours = _to_int(parts[0]) if parts else 0
    minutes = _to_int(parts[1]) if len(parts) > 1 else 0
    return hours * 60 + minutes


def parse_hhmm(value: object, field: str = "time") -> int:
    """Strict counterpart of :func:`time_to_minutes` for user input."""
    match = _HHMM.match(str(value or "").strip())
    if not match:
        raise InvalidInput(f"{field} must be in HH:MM format")
    hours, minutes = int(match.group(1)), int(match.group(2))
    total = hours * 60 + minutes
    if minutes > 59 or total > MINUTES_PER_DAY:
        raise InvalidInput(f"{field} is not a valid time of day")
    return total


def minutes_to_time(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    # Half-open: touching intervals do not overlap.
    return max(a_start, b_start) < min(a_end, b_end)


def clamp(n: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, n))


def date_key(day: date) -> str:
    return day.strftime("%Y-%m-%d")


def parse_date_key(value: object) -> date:
    try:
        return datetime.strptime(str(value or ""), "%Y-%m-%d").date()
    except ValueError as exc:
        raise InvalidInput("date must be in YYYY-MM-DD format") from exc


def parse_month(value: object) -> tuple[int, int]:
    try:
        parsed = datetime.strptime(str(value or ""), "%Y-%m")
    except ValueError as exc:
        raise InvalidInput("month must be in YYYY-MM format") from exc
    return parsed.year, parsed.month


def weekday_index(day: date) -> int:
    """Return 0 for Sunday through 6 for Saturday."""
    return (day.weekday() + 1) % 7
