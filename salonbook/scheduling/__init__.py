"""Scheduling core: time arithmetic, shift merging and slot generation.

Only the pure modules are re-exported here; ``guard`` and ``templates``
talk to the database and are imported directly.
"""
from __future__ import annotations

from .aggregator import combine_slots, eligible_employees, is_eligible, select_slots, slots_by_employee
from .availability import DEFAULT_STEP_MINUTES, Slot, compute_slots, validate_duration
from .lanes import assign_lanes
from .segments import Interval, covering_segment, merge_segments, normalize_segments
from .timeutils import (clamp, date_key, intervals_overlap, minutes_to_time, parse_date_key,
                        parse_hhmm, time_to_minutes, weekday_index)

__all__ = [
    "DEFAULT_STEP_MINUTES",
    "Interval",
    "Slot",
    "assign_lanes",
    "clamp",
    "combine_slots",
    "compute_slots",
    "covering_segment",
    "date_key",
    "eligible_employees",
    "intervals_overlap",
    "is_eligible",
    "merge_segments",
    "minutes_to_time",
    "normalize_segments",
    "parse_date_key",
    "parse_hhmm",
    "select_slots",
    "slots_by_employee",
    "time_to_minutes",
    "validate_duration",
    "weekday_index",
]
