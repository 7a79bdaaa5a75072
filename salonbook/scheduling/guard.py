"""Commit-time validation and writing of appointments.

Every write that puts something on an employee's timeline goes through
here. The checks never trust the slot list a client saw earlier: salon
hours, shift containment and overlap are re-read inside the same
database transaction that performs the write.

Concurrent writers are serialized per ``employeeId_dateKey`` through a
version row in ``day_ledgers``. The row is read (locked where the
database supports ``SELECT ... FOR UPDATE``) before the checks and
bumped with a compare-and-set just before commit. If another writer
committed to the same timeline in between, the compare-and-set matches
no row and the booking is rejected with :class:`SlotTaken`.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass

from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from .. import store
from ..errors import InvalidInput, InvalidTransition, OutOfSalonHours, OutsideShift, SchedulingError, SlotTaken
from ..extensions import db
from ..models import Appointment, Booking, DayLedger, Service
from .aggregator import is_eligible
from .availability import validate_duration
from .segments import Interval, covering_segment, normalize_segments
from .timeutils import MINUTES_PER_DAY, intervals_overlap, minutes_to_time, parse_date_key, weekday_index


@dataclass(frozen=True)
class Candidate:
    employee_id: str
    date_key: str
    start: int
    end: int
    exclude_id: str | None = None

    @property
    def ledger_key(self) -> str:
        return f"{self.employee_id}_{self.date_key}"


def _new_id() -> str:
    return uuid.uuid4().hex


# --- version ledger ---

def _read_ledger(key: str) -> int:
    stmt = select(DayLedger).where(DayLedger.ledger_key == key).with_for_update()
    ledger = db.session.scalars(stmt).first()
    if ledger is None:
        ledger = DayLedger(ledger_key=key, version=0)
        db.session.add(ledger)
        try:
            db.session.flush()
        except IntegrityError as exc:
            db.session.rollback()
            raise SlotTaken() from exc
    return ledger.version


def _bump_ledger(key: str, seen: int) -> None:
    result = db.session.execute(
        update(DayLedger)
        .where(DayLedger.ledger_key == key, DayLedger.version == seen)
        .values(version=DayLedger.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise SlotTaken(employeeId=key.rsplit("_", 1)[0], dateKey=key.rsplit("_", 1)[-1])


def _read_ledgers(keys) -> dict[str, int]:
    # Sorted so two writers touching the same pair of days lock in the same order.
    return {key: _read_ledger(key) for key in sorted(set(keys))}


def _commit(seen: dict[str, int]) -> None:
    for key, version in seen.items():
        _bump_ledger(key, version)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise SlotTaken() from exc


# --- checks ---

def check_candidate(candidate: Candidate, require_shift: bool = True) -> None:
    """Raise the first rule ``candidate`` breaks, in a fixed order.

    1. inside the salon's opening hours for that weekday
    2. inside one merged shift segment of the employee (``require_shift``)
    3. not overlapping anything active on the employee's timeline
    """
    day = parse_date_key(candidate.date_key)
    hours = store.get_salon_hours(weekday_index(day))
    if (
        candidate.end <= candidate.start
        or candidate.start < hours.start
        or candidate.end > hours.end
    ):
        raise OutOfSalonHours(
            open=minutes_to_time(hours.start), close=minutes_to_time(hours.end)
        )

    if require_shift:
        segments = normalize_segments(
            store.get_employee_shift(candidate.employee_id, candidate.date_key),
            hours.start,
            hours.end,
        )
        if covering_segment(segments, candidate.start, candidate.end) is None:
            raise OutsideShift(shift=[seg.to_dict() for seg in segments])

    for other in store.get_active_appointments(
        candidate.employee_id, candidate.date_key, candidate.exclude_id
    ):
        if intervals_overlap(candidate.start, candidate.end, other.start_min, other.end_min):
            raise SlotTaken(conflictId=other.appointment_id)


def _validate_range(start: int, end: int) -> None:
    if not (0 <= start < end <= MINUTES_PER_DAY):
        raise InvalidInput("start must be before end and both within one day")


def _check_performs(employee, service_id: str, category_id: str | None) -> None:
    if not is_eligible(employee, service_id, category_id):
        raise InvalidInput("This employee does not perform the selected service")


def _reject(exc: SchedulingError, candidate: Candidate) -> None:
    db.session.rollback()
    current_app.logger.warning(
        "Rejected %s for employee=%s date=%s %s-%s",
        exc.code,
        candidate.employee_id,
        candidate.date_key,
        minutes_to_time(candidate.start),
        minutes_to_time(candidate.end),
    )


# --- guarded writes ---

def create_booking(
    employee_id: str,
    date_key: str,
    start_min: int,
    service_id: str,
    client_name: str = "",
    client_phone: str = "",
    note: str | None = None,
) -> Booking:
    """Book ``service_id`` with ``employee_id`` starting at ``start_min``."""
    employee = store.get_employee(employee_id)
    service = store.get_service(service_id)
    _check_performs(employee, service.service_id, service.category_id)
    duration = validate_duration(service.duration_min)
    candidate = Candidate(employee.employee_id, date_key, start_min, start_min + duration)
    _validate_range(candidate.start, candidate.end)

    try:
        seen = _read_ledgers([candidate.ledger_key])
        check_candidate(candidate)
        booking = store.create_appointment(
            "booking",
            _new_id(),
            employee_id=employee.employee_id,
            employee_name=employee.name,
            date_key=date_key,
            start_min=candidate.start,
            end_min=candidate.end,
            start_hhmm=minutes_to_time(candidate.start),
            end_hhmm=minutes_to_time(candidate.end),
            service_id=service.service_id,
            service_name=service.name,
            duration_min=duration,
            price=service.final_price,
            color=service.color,
            client_name=(client_name or "").strip(),
            client_phone=(client_phone or "").strip(),
            note=note,
        )
        _commit(seen)
    except SchedulingError as exc:
        _reject(exc, candidate)
        raise
    return booking


def create_block(
    employee_id: str,
    date_key: str,
    start_min: int,
    end_min: int,
    kind: str = "block",
    note: str | None = None,
) -> Appointment:
    """Admin-created busy interval (``block``) or a single ``break``."""
    if kind not in ("block", "break"):
        raise InvalidInput("kind must be 'block' or 'break'")
    employee = store.get_employee(employee_id)
    candidate = Candidate(employee.employee_id, date_key, start_min, end_min)
    _validate_range(start_min, end_min)

    try:
        seen = _read_ledgers([candidate.ledger_key])
        check_candidate(candidate)
        record = store.create_appointment(
            kind,
            _new_id(),
            employee_id=employee.employee_id,
            employee_name=employee.name,
            date_key=date_key,
            start_min=start_min,
            end_min=end_min,
            start_hhmm=minutes_to_time(start_min),
            end_hhmm=minutes_to_time(end_min),
            note=note,
        )
        _commit(seen)
    except SchedulingError as exc:
        _reject(exc, candidate)
        raise
    return record


def reschedule(
    appointment_id: str,
    start_min: int | None = None,
    end_min: int | None = None,
    employee_id: str | None = None,
    date_key: str | None = None,
) -> Appointment:
    """Move an appointment in time, to another day, or to another employee.

    The length is kept unless ``end_min`` is given for a non-booking
    entry. The record being moved never conflicts with itself.
    """
    appointment = store.get_appointment(appointment_id)
    if not appointment.is_active:
        raise InvalidTransition(
            f"Cannot reschedule an appointment with status '{appointment.status}'"
        )

    target = store.get_employee(employee_id) if employee_id else store.get_employee(appointment.employee_id)
    if appointment.type == "booking" and target.employee_id != appointment.employee_id:
        # The service may have been removed from the catalog since booking.
        service = db.session.get(Service, appointment.service_id) if appointment.service_id else None
        _check_performs(target, appointment.service_id, service.category_id if service else None)
    new_start = appointment.start_min if start_min is None else start_min
    if end_min is not None and appointment.type != "booking":
        new_end = end_min
    else:
        new_end = new_start + (appointment.end_min - appointment.start_min)
    candidate = Candidate(
        target.employee_id,
        date_key or appointment.date_key,
        new_start,
        new_end,
        exclude_id=appointment.appointment_id,
    )
    _validate_range(candidate.start, candidate.end)
    old_key = f"{appointment.employee_id}_{appointment.date_key}"

    try:
        seen = _read_ledgers([old_key, candidate.ledger_key])
        check_candidate(candidate, require_shift=appointment.type != "vacation")
        store.update_appointment(appointment, target, candidate.date_key, Interval(candidate.start, candidate.end))
        _commit(seen)
    except SchedulingError as exc:
        _reject(exc, candidate)
        raise
    return appointment


def write_time_off(kind: str, employee, records: list[tuple[str, str, Interval]]) -> list[Appointment]:
    """Upsert ``(id, dateKey, interval)`` time-off records, all or nothing.

    Each interval is checked for overlap against the live timeline,
    ignoring only the record it would overwrite under the same id.
    """
    seen = _read_ledgers(f"{employee.employee_id}_{dk}" for _, dk, _ in records)
    for record_id, dk, interval in records:
        for other in store.get_active_appointments(employee.employee_id, dk, exclude_id=record_id):
            if intervals_overlap(interval.start, interval.end, other.start_min, other.end_min):
                db.session.rollback()
                raise SlotTaken(
                    f"Time off on {dk} overlaps an existing entry",
                    conflictId=other.appointment_id,
                    dateKey=dk,
                )
    written = [
        store.create_time_off(kind, record_id, employee, dk, interval)
        for record_id, dk, interval in records
    ]
    _commit(seen)
    return written
