"""Bulk shift and vacation generation for one month."""
from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Iterable

from flask import current_app

from .. import store
from ..errors import InvalidInput
from ..extensions import db
from ..models import Appointment, Shift
from . import guard
from .segments import Interval
from .timeutils import clamp, date_key, minutes_to_time, parse_date_key, parse_hhmm, parse_month, time_to_minutes, weekday_index


def month_days(year: int, month: int) -> list[date]:
    total = calendar.monthrange(year, month)[1]
    return [date(year, month, day) for day in range(1, total + 1)]


def vacation_id(employee_id: str, day_key: str, start_min: int) -> str:
    return f"vac_{employee_id}_{day_key}_{minutes_to_time(start_min).replace(':', '')}"


def _weekday_set(weekdays: Iterable[object]) -> set[int]:
    try:
        picked = {int(d) for d in weekdays or ()}
    except (TypeError, ValueError) as exc:
        raise InvalidInput("weekdays must be integers 0 (Sunday) to 6 (Saturday)") from exc
    if not picked:
        raise InvalidInput("pick at least one weekday")
    if not picked <= set(range(7)):
        raise InvalidInput("weekdays must be integers 0 (Sunday) to 6 (Saturday)")
    return picked


def apply_weekly_template(
    employee_id: str,
    weekdays: Iterable[object],
    start: str,
    end: str,
    month: str,
) -> list[Shift]:
    """Write one clamped segment per matching day of ``month``.

    Existing shift documents for those days are replaced, so running the
    same template twice leaves the same documents behind.
    """
    employee = store.get_employee(employee_id)
    picked = _weekday_set(weekdays)
    start_min = parse_hhmm(start, "start")
    end_min = parse_hhmm(end, "end")
    if end_min <= start_min:
        raise InvalidInput("template end must be after its start")
    year, month_no = parse_month(month)

    written: list[Shift] = []
    for day in month_days(year, month_no):
        dow = weekday_index(day)
        if dow not in picked:
            continue
        hours = store.get_salon_hours(dow)
        seg_start = clamp(start_min, hours.start, hours.end)
        seg_end = clamp(end_min, hours.start, hours.end)
        if seg_end <= seg_start:
            continue
        written.append(
            store.upsert_shift(employee.employee_id, date_key(day), [Interval(seg_start, seg_end)])
        )
    db.session.commit()

    current_app.logger.info(
        "Applied shift template for employee=%s month=%s: %d day(s)",
        employee.employee_id,
        month,
        len(written),
    )
    return written


def apply_vacation(
    employee_id: str,
    start: str,
    days: object,
    month: str | None = None,
) -> list[Appointment]:
    """Cover every existing shift segment from ``start`` for ``days`` days.

    Only days inside ``month`` (default: the month of ``start``) are
    touched. One vacation record is written per segment, spanning
    exactly that segment, under a deterministic id so that re-running
    the same range overwrites instead of duplicating. Nothing is written
    if any segment would overlap an active booking, block or break.
    """
    employee = store.get_employee(employee_id)
    first = parse_date_key(start)
    try:
        count = int(days)
    except (TypeError, ValueError) as exc:
        raise InvalidInput("days must be a whole number") from exc
    if count < 1:
        raise InvalidInput("days must be at least 1")
    year, month_no = parse_month(month) if month else (first.year, first.month)

    records: list[tuple[str, str, Interval]] = []
    for offset in range(count):
        day = first + timedelta(days=offset)
        if (day.year, day.month) != (year, month_no):
            continue
        day_key = date_key(day)
        for seg in store.get_employee_shift(employee.employee_id, day_key):
            seg_start = time_to_minutes(seg.get("start"))
            seg_end = time_to_minutes(seg.get("end"))
            if seg_end <= seg_start:
                continue
            records.append(
                (vacation_id(employee.employee_id, day_key, seg_start), day_key, Interval(seg_start, seg_end))
            )

    written = guard.write_time_off("vacation", employee, records) if records else []
    current_app.logger.info(
        "Recorded vacation for employee=%s from %s (%d day(s)): %d segment(s)",
        employee.employee_id,
        start,
        count,
        len(written),
    )
    return written
