"""Slot aggregation across the employees qualified for a service."""
from __future__ import annotations

from typing import Callable, Iterable, Mapping, Sequence

from .availability import DEFAULT_STEP_MINUTES, Slot, compute_slots, validate_duration
from .segments import Interval, normalize_segments

# employee id -> (raw shift segments, busy intervals) for the target day
DayLoader = Callable[[str], tuple[Sequence[Mapping[str, object]], Sequence[Interval]]]


def is_eligible(employee: object, service_id: str, category_id: str | None) -> bool:
    """An employee covers a service by its category or by the service itself."""
    services = set(getattr(employee, "services", None) or ())
    categories = set(getattr(employee, "categories", None) or ())
    return service_id in services or bool(category_id and category_id in categories)


def eligible_employees(
    employees: Iterable[object], service_id: str, category_id: str | None
) -> list[object]:
    return [e for e in employees if is_eligible(e, service_id, category_id)]


def slots_by_employee(
    employee_ids: Sequence[str],
    load_day: DayLoader,
    duration: int,
    open_min: int,
    close_min: int,
    step: int = DEFAULT_STEP_MINUTES,
) -> dict[str, list[Slot]]:
    duration = validate_duration(duration)
    result: dict[str, list[Slot]] = {}
    for employee_id in employee_ids:
        raw_segments, busy = load_day(employee_id)
        segments = normalize_segments(raw_segments, open_min, close_min)
        if not segments:
            result[employee_id] = []
            continue
        result[employee_id] = [
            slot.for_employee(employee_id)
            for slot in compute_slots(segments, busy, duration, step)
        ]
    return result


def combine_slots(by_employee: Mapping[str, Sequence[Slot]]) -> list[Slot]:
    """Union of all employees' slots ordered by start time.

    ``sorted`` is stable, so equal start times keep employee order.
    """
    combined = [slot for slots in by_employee.values() for slot in slots]
    return sorted(combined, key=lambda slot: slot.start)


def select_slots(by_employee: Mapping[str, Sequence[Slot]], employee_id: str | None = None) -> list[Slot]:
    if employee_id:
        return list(by_employee.get(employee_id, ()))
    return combine_slots(by_employee)
