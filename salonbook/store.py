"""Query surface the scheduling core reads from and writes to.

Functions here never commit; callers own the transaction. Reads return
fresh rows from the current session so the booking guard always checks
live data.
"""
from __future__ import annotations

from typing import Iterable, Mapping

from sqlalchemy import select

from .errors import InvalidInput, NotFound
from .extensions import db
from .models import (APPOINTMENT_TYPES, DEFAULT_STATUS, Appointment, Client, Employee, Service,
                     Setting, Shift, TimeOff)
from .scheduling.aggregator import eligible_employees
from .scheduling.segments import Interval
from .scheduling.timeutils import WEEKDAY_KEYS, minutes_to_time, parse_hhmm, time_to_minutes

SALON_HOURS_KEY = "salonHours"

DEFAULT_SALON_HOURS = {
    "mon": {"open": "08:00", "close": "22:00"},
    "tue": {"open": "08:00", "close": "22:00"},
    "wed": {"open": "08:00", "close": "22:00"},
    "thu": {"open": "08:00", "close": "22:00"},
    "fri": {"open": "08:00", "close": "22:00"},
    "sat": {"open": "08:00", "close": "20:00"},
    "sun": {"open": "09:00", "close": "17:00"},
}


# --- Salon hours ---

def get_salon_hours_table() -> dict[str, dict[str, str]]:
    """Defaults overlaid with the stored per-weekday overrides."""
    setting = db.session.get(Setting, SALON_HOURS_KEY)
    overrides = (setting.value if setting else None) or {}
    table = {key: dict(hours) for key, hours in DEFAULT_SALON_HOURS.items()}
    for key, hours in overrides.items():
        if key in table and isinstance(hours, Mapping) and hours.get("open") and hours.get("close"):
            table[key] = {"open": hours["open"], "close": hours["close"]}
    return table


def get_salon_hours(weekday: int) -> Interval:
    """Opening window for ``weekday`` (0=Sunday .. 6=Saturday)."""
    hours = get_salon_hours_table()[WEEKDAY_KEYS[weekday]]
    return Interval(time_to_minutes(hours["open"]), time_to_minutes(hours["close"]))


def set_salon_hours(overrides: Mapping[str, Mapping[str, str]]) -> dict[str, dict[str, str]]:
    cleaned: dict[str, dict[str, str]] = {}
    for key, hours in overrides.items():
        if key not in WEEKDAY_KEYS:
            raise InvalidInput(f"unknown weekday '{key}'")
        if not isinstance(hours, Mapping):
            raise InvalidInput(f"hours for '{key}' must be {{open, close}}")
        open_min = parse_hhmm(hours.get("open"), f"{key} open")
        close_min = parse_hhmm(hours.get("close"), f"{key} close")
        if close_min <= open_min:
            raise InvalidInput(f"closing time must be after opening time for '{key}'")
        cleaned[key] = {"open": minutes_to_time(open_min), "close": minutes_to_time(close_min)}

    setting = db.session.get(Setting, SALON_HOURS_KEY)
    if setting is None:
        setting = Setting(key=SALON_HOURS_KEY, value=cleaned)
        db.session.add(setting)
    else:
        setting.value = cleaned
    db.session.flush()
    return get_salon_hours_table()


# --- Employees and services ---

def get_employee(employee_id: str) -> Employee:
    employee = db.session.get(Employee, employee_id)
    if employee is None:
        raise NotFound("Employee not found")
    return employee


def get_service(service_id: str) -> Service:
    service = db.session.get(Service, service_id)
    if service is None:
        raise NotFound("Service not found")
    return service


def get_employees_by_service(service_id: str, category_id: str | None) -> list[Employee]:
    employees = Employee.query.order_by(Employee.name.asc(), Employee.employee_id.asc()).all()
    return eligible_employees(employees, service_id, category_id)


# --- Shifts ---

def get_shift(employee_id: str, date_key: str) -> Shift | None:
    return db.session.get(Shift, Shift.key_for(employee_id, date_key))


def get_employee_shift(employee_id: str, date_key: str) -> list[dict[str, str]]:
    """Raw stored segments; empty when the employee does not work that day."""
    shift = get_shift(employee_id, date_key)
    return list(shift.segments or []) if shift else []


def upsert_shift(employee_id: str, date_key: str, segments: Iterable[Interval]) -> Shift:
    stored = [{"start": minutes_to_time(s.start), "end": minutes_to_time(s.end)} for s in segments]
    shift = get_shift(employee_id, date_key)
    if shift is None:
        shift = Shift(
            shift_id=Shift.key_for(employee_id, date_key),
            employee_id=employee_id,
            date_key=date_key,
            segments=stored,
        )
        db.session.add(shift)
    else:
        shift.segments = stored
    return shift


def delete_shift(employee_id: str, date_key: str) -> bool:
    shift = get_shift(employee_id, date_key)
    if shift is None:
        return False
    db.session.delete(shift)
    return True


def delete_employee_shifts(employee_id: str) -> int:
    return Shift.query.filter_by(employee_id=employee_id).delete(synchronize_session=False)


def shifts_for_day(date_key: str) -> list[Shift]:
    return Shift.query.filter_by(date_key=date_key).order_by(Shift.employee_id.asc()).all()


def shifts_between(first_key: str, last_key: str) -> list[Shift]:
    return (
        Shift.query.filter(Shift.date_key >= first_key, Shift.date_key <= last_key)
        .order_by(Shift.date_key.asc(), Shift.employee_id.asc())
        .all()
    )


# --- Appointments ---

def get_appointment(appointment_id: str) -> Appointment:
    appointment = db.session.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFound("Appointment not found")
    return appointment


def get_active_appointments(
    employee_id: str, date_key: str, exclude_id: str | None = None
) -> list[Appointment]:
    """Everything still occupying the employee's timeline that day."""
    stmt = (
        select(Appointment)
        .where(
            Appointment.employee_id == employee_id,
            Appointment.date_key == date_key,
            Appointment.status.notin_(Appointment.INACTIVE_STATUSES),
        )
        .order_by(Appointment.start_min.asc())
    )
    if exclude_id:
        stmt = stmt.where(Appointment.appointment_id != exclude_id)
    return list(db.session.scalars(stmt))


def get_busy_intervals(
    employee_id: str, date_key: str, exclude_id: str | None = None
) -> list[Interval]:
    return [a.as_interval() for a in get_active_appointments(employee_id, date_key, exclude_id)]


def appointments_for_day(date_key: str) -> list[Appointment]:
    return (
        Appointment.query.filter_by(date_key=date_key)
        .order_by(Appointment.employee_id.asc(), Appointment.start_min.asc())
        .all()
    )


def time_off_between(first_key: str, last_key: str) -> list[Appointment]:
    return (
        Appointment.query.filter(
            Appointment.type.in_(("break", "vacation")),
            Appointment.date_key >= first_key,
            Appointment.date_key <= last_key,
        )
        .order_by(Appointment.date_key.asc(), Appointment.start_min.asc())
        .all()
    )


def create_appointment(kind: str, appointment_id: str, **fields: object) -> Appointment:
    model = APPOINTMENT_TYPES.get(kind)
    if model is None:
        raise InvalidInput(f"unknown appointment type '{kind}'")
    fields.setdefault("status", DEFAULT_STATUS[kind])
    appointment = model(appointment_id=appointment_id, **fields)
    db.session.add(appointment)
    return appointment


def set_interval(appointment: Appointment, start_min: int, end_min: int) -> None:
    appointment.start_min = start_min
    appointment.end_min = end_min
    appointment.start_hhmm = minutes_to_time(start_min)
    appointment.end_hhmm = minutes_to_time(end_min)


def update_appointment(
    appointment: Appointment, employee: Employee, date_key: str, interval: Interval
) -> Appointment:
    """Move ``appointment`` onto ``employee``'s timeline for ``date_key``."""
    appointment.employee_id = employee.employee_id
    appointment.employee_name = employee.name
    appointment.date_key = date_key
    set_interval(appointment, interval.start, interval.end)
    return appointment


def create_time_off(
    kind: str, appointment_id: str, employee: Employee, date_key: str, interval: Interval
) -> TimeOff:
    """Insert or overwrite a break/vacation record under a fixed id."""
    if kind not in ("break", "vacation"):
        raise InvalidInput("time off must be a break or a vacation")
    existing = db.session.get(Appointment, appointment_id)
    if existing is not None:
        if existing.type != kind:
            raise InvalidInput(f"id '{appointment_id}' is already used by a {existing.type}")
        existing.status = DEFAULT_STATUS[kind]
        return update_appointment(existing, employee, date_key, interval)
    record = create_appointment(
        kind,
        appointment_id,
        employee_id=employee.employee_id,
        employee_name=employee.name,
        date_key=date_key,
        start_min=interval.start,
        end_min=interval.end,
        start_hhmm=minutes_to_time(interval.start),
        end_hhmm=minutes_to_time(interval.end),
    )
    return record


# --- Clients ---

def normalize_phone(value: object) -> str:
    return "".join(ch for ch in str(value or "") if ch.isdigit())


def record_no_show(phone: str, name: str) -> Client | None:
    key = normalize_phone(phone)
    if not key:
        return None
    client = db.session.get(Client, key)
    if client is None:
        client = Client(phone=key, name=name or "", no_show_count=0)
        db.session.add(client)
    client.no_show_count = (client.no_show_count or 0) + 1
    if name:
        client.name = name
    return client
