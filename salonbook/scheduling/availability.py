"""Free slot computation for one employee on one day."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, Sequence

from ..errors import InvalidInput
from .segments import Interval
from .timeutils import minutes_to_time

DEFAULT_STEP_MINUTES = 15


@dataclass(frozen=True)
class Slot:
    start: int
    end: int
    employee_id: str | None = None

    def for_employee(self, employee_id: str) -> "Slot":
        return replace(self, employee_id=employee_id)

    def to_dict(self) -> dict[str, object]:
        return {
            "start": minutes_to_time(self.start),
            "end": minutes_to_time(self.end),
            "startMin": self.start,
            "endMin": self.end,
            "employeeId": self.employee_id,
        }


def validate_duration(duration: object) -> int:
    try:
        value = int(duration)
    except (TypeError, ValueError) as exc:
        raise InvalidInput("duration must be a whole number of minutes") from exc
    if value <= 0:
        raise InvalidInput("duration must be greater than zero")
    return value


def _window_slots(start: int, end: int, duration: int, step: int) -> list[Slot]:
    return [Slot(t, t + duration) for t in range(start, end - duration + 1, step)]


def compute_slots(
    segments: Sequence[Interval],
    busy: Iterable[Interval],
    duration: int,
    step: int = DEFAULT_STEP_MINUTES,
) -> list[Slot]:
    """Return bookable ``[t, t + duration)`` slots inside ``segments``.

    ``segments`` must already be merged (see ``merge_segments``). Busy
    intervals may overlap each other and come in any order. Start times
    inside each free window are ``cur, cur + step, ...`` where ``cur`` is
    the window start, so slots resume right where a busy interval ends.
    """
    duration = validate_duration(duration)
    if step <= 0:
        raise InvalidInput("step must be greater than zero")

    taken = sorted(
        (iv for iv in busy if iv.end > iv.start),
        key=lambda iv: (iv.start, iv.end),
    )
    slots: list[Slot] = []
    for seg in segments:
        cur = seg.start
        for b in taken:
            if b.end <= seg.start or b.start >= seg.end:
                continue
            slots.extend(_window_slots(cur, min(b.start, seg.end), duration, step))
            cur = max(cur, b.end)
        slots.extend(_window_slots(cur, seg.end, duration, step))
    return slots
