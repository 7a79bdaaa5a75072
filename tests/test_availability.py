"""Tests for free slot computation on one employee's day."""
from __future__ import annotations

import random

import pytest

from salonbook.errors import InvalidInput
from salonbook.scheduling.availability import compute_slots
from salonbook.scheduling.segments import Interval, merge_segments
from salonbook.scheduling.timeutils import intervals_overlap, minutes_to_time


def _starts(slots):
    return [minutes_to_time(s.start) for s in slots]


def test_slots_around_a_booking():
    slots = compute_slots([Interval(540, 1020)], [Interval(600, 630)], 30, 15)
    starts = _starts(slots)

    assert starts[:4] == ["09:00", "09:15", "09:30", "10:30"]
    assert "09:45" not in starts
    assert "10:00" not in starts
    assert starts[-1] == "16:30"
    assert all(s.end - s.start == 30 for s in slots)


def test_slots_resume_at_busy_end_off_step():
    slots = compute_slots([Interval(540, 660)], [Interval(540, 580)], 30, 15)
    assert _starts(slots) == ["09:40", "09:55", "10:10", "10:25"]


def test_no_segments_means_no_slots():
    assert compute_slots([], [], 30) == []


def test_duration_longer_than_segment():
    assert compute_slots([Interval(540, 560)], [], 30) == []


def test_overlapping_and_unsorted_busy_intervals():
    busy = [Interval(700, 760), Interval(600, 720), Interval(650, 660)]
    slots = compute_slots([Interval(540, 900)], busy, 60, 30)
    assert _starts(slots) == ["09:00", "12:40", "13:10", "13:40"]


def test_busy_outside_segment_is_ignored():
    slots = compute_slots([Interval(540, 600)], [Interval(300, 400), Interval(700, 800)], 30, 30)
    assert _starts(slots) == ["09:00", "09:30"]


@pytest.mark.parametrize("duration", [0, -15, "abc", None])
def test_invalid_duration(duration):
    with pytest.raises(InvalidInput):
        compute_slots([Interval(540, 600)], [], duration)


def test_invalid_step():
    with pytest.raises(InvalidInput):
        compute_slots([Interval(540, 600)], [], 30, 0)


def test_slot_containment_on_random_days():
    rng = random.Random(42)
    for _ in range(200):
        segments = merge_segments(
            Interval(s, s + rng.randint(15, 240))
            for s in (rng.randint(480, 1200) for _ in range(rng.randint(1, 3)))
        )
        busy = [
            Interval(s, s + rng.randint(10, 120))
            for s in (rng.randint(480, 1300) for _ in range(rng.randint(0, 5)))
        ]
        duration = rng.choice([15, 30, 45, 60, 90])
        step = rng.choice([5, 10, 15, 30])

        slots = compute_slots(segments, busy, duration, step)

        for slot in slots:
            assert any(seg.start <= slot.start and slot.end <= seg.end for seg in segments)
            assert not any(intervals_overlap(slot.start, slot.end, b.start, b.end) for b in busy)


def test_slot_count_without_busy_intervals():
    rng = random.Random(7)
    for _ in range(200):
        start = rng.randint(0, 1200)
        length = rng.randint(0, 240)
        duration = rng.randint(1, 120)
        step = rng.choice([1, 5, 10, 15, 30])

        slots = compute_slots([Interval(start, start + length)], [], duration, step)

        expected = (length - duration) // step + 1 if length >= duration else 0
        assert len(slots) == expected
