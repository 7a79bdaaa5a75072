"""Normalization of an employee's shift segments for one day."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from .timeutils import clamp, minutes_to_time, time_to_minutes


@dataclass(frozen=True)
class Interval:
    """Half-open ``[start, end)`` interval in minutes of the day."""

    start: int
    end: int

    def contains(self, start: int, end: int) -> bool:
        return self.start <= start and end <= self.end

    def to_dict(self) -> dict[str, object]:
        return {
            "start": minutes_to_time(self.start),
            "end": minutes_to_time(self.end),
            "startMin": self.start,
            "endMin": self.end,
        }


def merge_segments(intervals: Iterable[Interval]) -> list[Interval]:
    ordered = sorted(intervals, key=lambda iv: (iv.start, iv.end))
    merged: list[Interval] = []
    for iv in ordered:
        if merged and iv.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = Interval(last.start, max(last.end, iv.end))
        else:
            merged.append(iv)
    return merged


def normalize_segments(
    segments: Iterable[Mapping[str, object]],
    open_min: int,
    close_min: int,
) -> list[Interval]:
    """Clamp raw ``{start, end}`` segments to salon hours, drop empties, merge."""
    clamped = []
    for seg in segments or ():
        start = clamp(time_to_minutes(seg.get("start")), open_min, close_min)
        end = clamp(time_to_minutes(seg.get("end")), open_min, close_min)
        if end > start:
            clamped.append(Interval(start, end))
    return merge_segments(clamped)


def covering_segment(segments: Iterable[Interval], start: int, end: int) -> Interval | None:
    for seg in segments:
        if seg.contains(start, end):
            return seg
    return None
