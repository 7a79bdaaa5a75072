"""HTTP routes for booking, the admin calendar and shift planning."""
from __future__ import annotations

from datetime import datetime, timezone

from flask import Blueprint, Flask, current_app, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from . import store
from .auth import admin_required, build_token, current_user, login_required
from .errors import InvalidInput, InvalidTransition, StoreUnavailable
from .extensions import db
from .models import Booking, Client, Employee, User
from .scheduling import (assign_lanes, normalize_segments, parse_date_key, parse_hhmm, select_slots,
                         slots_by_employee, validate_duration, weekday_index)
from .scheduling import guard, templates
from .scheduling.timeutils import MINUTES_PER_DAY, date_key, minutes_to_time, parse_month

bp = Blueprint("api", __name__)


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _minutes(payload: dict, name: str, required: bool = True) -> int | None:
    """Read ``<name>Min`` (integer) or ``<name>`` (``HH:MM``) from a payload."""
    if payload.get(f"{name}Min") is not None:
        try:
            value = int(payload[f"{name}Min"])
        except (TypeError, ValueError) as exc:
            raise InvalidInput(f"{name}Min must be an integer") from exc
        if not 0 <= value <= MINUTES_PER_DAY:
            raise InvalidInput(f"{name}Min must be within one day")
        return value
    if payload.get(name):
        return parse_hhmm(payload[name], name)
    if required:
        raise InvalidInput(f"{name} is required")
    return None


def _required(payload: dict, *names: str) -> list:
    missing = [name for name in names if not payload.get(name)]
    if missing:
        raise InvalidInput(f"{', '.join(missing)} {'is' if len(missing) == 1 else 'are'} required")
    return [payload[name] for name in names]


def _step() -> int:
    raw = request.args.get("step")
    if raw is None or raw == "":
        return current_app.config["SLOT_STEP_MINUTES"]
    try:
        step = int(raw)
    except ValueError as exc:
        raise InvalidInput("step must be a positive integer") from exc
    if step < 1:
        raise InvalidInput("step must be a positive integer")
    return step


def _database_error(exc: SQLAlchemyError, message: str):
    db.session.rollback()
    current_app.logger.exception(message, exc_info=exc)
    return jsonify(StoreUnavailable().to_dict()), StoreUnavailable.status


@bp.get("/health")
def health_check() -> tuple[dict[str, str], int]:
    """
    Expose a simple uptime check endpoint.
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy and running.
    """
    return jsonify({"status": "ok"}), 200


@bp.get("/db-health")
def database_health() -> tuple[dict[str, str], int]:
    """Check connectivity to the configured database."""
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        current_app.logger.exception("Database connectivity check failed", exc_info=exc)
        return jsonify({"database": "unavailable"}), 500

    return jsonify({"database": "ok"}), 200


# --- Auth ---

@bp.post("/auth/login")
def login() -> tuple[dict[str, object], int]:
    """Log in (or sign up) by phone number and return an access token.
    ---
    tags:
      - Authentication
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            phone:
              type: string
            firstName:
              type: string
            lastName:
              type: string
          required:
            - phone
    responses:
      200:
        description: Login successful, returns access token
      400:
        description: Missing or malformed phone number
    """
    payload = _payload()
    phone = store.normalize_phone(payload.get("phone"))
    if len(phone) < 6:
        raise InvalidInput("a valid phone number is required")

    first_name = (payload.get("firstName") or "").strip()
    last_name = (payload.get("lastName") or "").strip()

    try:
        user = User.query.filter_by(phone=phone).first()
        if user is None:
            # New accounts are always clients; admins are provisioned separately.
            user = User(phone=phone, first_name=first_name, last_name=last_name, role="client")
            db.session.add(user)
        else:
            if first_name:
                user.first_name = first_name
            if last_name:
                user.last_name = last_name
        user.last_login_at = datetime.now(timezone.utc)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to log in user")

    return jsonify({"token": build_token(user), "user": user.to_dict_basic()}), 200


# --- Availability and booking ---

@bp.get("/availability")
def get_availability() -> tuple[dict[str, object], int]:
    """Bookable start times for a service on a day.
    ---
    tags:
      - Booking
    parameters:
      - name: date
        in: query
        type: string
        required: true
      - name: serviceId
        in: query
        type: string
        required: true
      - name: employeeId
        in: query
        type: string
        description: Only this employee's slots; omit for "any employee".
      - name: step
        in: query
        type: integer
    responses:
      200:
        description: Slots sorted by start time
      400:
        description: Invalid input
      404:
        description: Service or employee not found
    """
    day = parse_date_key(request.args.get("date"))
    service_id = request.args.get("serviceId")
    if not service_id:
        raise InvalidInput("serviceId is required")
    employee_id = request.args.get("employeeId") or None
    step = _step()

    try:
        service = store.get_service(service_id)
        duration = validate_duration(service.duration_min)
        dk = date_key(day)
        hours = store.get_salon_hours(weekday_index(day))
        eligible = store.get_employees_by_service(service.service_id, service.category_id)
        names = {e.employee_id: e.name for e in eligible}

        if employee_id:
            if employee_id not in names:
                store.get_employee(employee_id)
                raise InvalidInput("This employee does not perform the selected service")
            employee_ids = [employee_id]
        else:
            employee_ids = list(names)

        by_employee = slots_by_employee(
            employee_ids,
            lambda eid: (store.get_employee_shift(eid, dk), store.get_busy_intervals(eid, dk)),
            duration,
            hours.start,
            hours.end,
            step,
        )
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to compute availability")

    slots = []
    for slot in select_slots(by_employee, employee_id):
        entry = slot.to_dict()
        entry["employeeName"] = names.get(slot.employee_id, "")
        slots.append(entry)

    return jsonify({
        "date": dk,
        "serviceId": service.service_id,
        "durationMin": duration,
        "mode": "specific" if employee_id else "any",
        "slots": slots,
    }), 200


@bp.post("/appointments")
@login_required
def create_appointment() -> tuple[dict[str, object], int]:
    """Create a booking (clients and admins) or a block (admins only).

    Clients book under their own name and phone. Admins may enter any
    client. The booking guard re-validates the slot before writing.
    """
    payload = _payload()
    user = current_user()
    kind = payload.get("type") or "booking"
    employee_id, dk = _required(payload, "employeeId", "dateKey")
    parse_date_key(dk)
    start_min = _minutes(payload, "start")
    note = (payload.get("note") or "").strip() or None

    try:
        if kind == "booking":
            (service_id,) = _required(payload, "serviceId")
            if user.role == "admin":
                client_name = payload.get("clientName") or ""
                client_phone = payload.get("clientPhone") or ""
            else:
                client_name = user.full_name
                client_phone = user.phone
            appointment = guard.create_booking(
                employee_id,
                dk,
                start_min,
                service_id,
                client_name=client_name,
                client_phone=client_phone,
                note=note,
            )
        elif kind in ("block", "break"):
            if user.role != "admin":
                return jsonify({"error": "forbidden", "message": "Admin access required"}), 403
            end_min = _minutes(payload, "end")
            appointment = guard.create_block(employee_id, dk, start_min, end_min, kind=kind, note=note)
        else:
            raise InvalidInput("type must be one of: booking, block, break")
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to create appointment")

    return jsonify({"appointment": appointment.to_dict()}), 201


@bp.put("/appointments/<appointment_id>")
@admin_required
def reschedule_appointment(appointment_id: str) -> tuple[dict[str, object], int]:
    """Move an appointment to a new time, day, or employee.
    ---
    tags:
      - Appointments
    parameters:
      - in: path
        name: appointment_id
        required: true
        schema:
          type: string
      - in: body
        name: body
        schema:
          properties:
            start:
              type: string
            end:
              type: string
            employeeId:
              type: string
            dateKey:
              type: string
    responses:
      200:
        description: Appointment moved
      404:
        description: Appointment or employee not found
      409:
        description: Time slot conflict
      422:
        description: Outside salon hours or outside the employee's shift
    """
    payload = _payload()
    dk = payload.get("dateKey") or None
    if dk:
        parse_date_key(dk)

    try:
        appointment = guard.reschedule(
            appointment_id,
            start_min=_minutes(payload, "start", required=False),
            end_min=_minutes(payload, "end", required=False),
            employee_id=payload.get("employeeId") or None,
            date_key=dk,
        )
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to reschedule appointment")

    return jsonify({"appointment": appointment.to_dict()}), 200


@bp.put("/appointments/<appointment_id>/status")
@admin_required
def update_appointment_status(appointment_id: str) -> tuple[dict[str, object], int]:
    """Change a booking's status: booked -> confirmed | cancelled | noshow.

    Cancelled and no-show bookings stay in the store for reporting but no
    longer block their time. A no-show also bumps the client's counter.
    """
    payload = _payload()
    (new_status,) = _required(payload, "status")
    valid = tuple(Booking.TRANSITIONS)
    if new_status not in valid:
        raise InvalidInput(f"status must be one of: {', '.join(valid)}")

    try:
        appointment = store.get_appointment(appointment_id)
        if not isinstance(appointment, Booking):
            raise InvalidTransition("Only bookings have a status workflow")
        if not appointment.can_transition(new_status):
            raise InvalidTransition(
                f"Cannot change status from '{appointment.status}' to '{new_status}'"
            )
        changed = appointment.status != new_status
        appointment.status = new_status
        if changed and new_status == "noshow":
            store.record_no_show(appointment.client_phone, appointment.client_name)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to update appointment status")

    return jsonify({"appointment": appointment.to_dict()}), 200


@bp.delete("/appointments/<appointment_id>")
@admin_required
def delete_appointment(appointment_id: str) -> tuple[dict[str, object], int]:
    """Permanently remove an appointment. Cancelling is a status change instead."""
    try:
        appointment = store.get_appointment(appointment_id)
        db.session.delete(appointment)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to delete appointment")

    return jsonify({"message": "Appointment deleted", "id": appointment_id}), 200


# --- Admin calendar ---

@bp.get("/calendar/day")
@admin_required
def get_day_calendar() -> tuple[dict[str, object], int]:
    """Day view: merged shifts and appointments per employee.

    ``onlyWorking=true`` hides employees without a shift that day. The
    ``schedule`` list holds the day's bookings with lane layout for the
    overlapping-events grid.
    """
    day = parse_date_key(request.args.get("date"))
    dk = date_key(day)
    only_working = request.args.get("onlyWorking", "false").lower() == "true"

    try:
        hours = store.get_salon_hours(weekday_index(day))
        employees = Employee.query.order_by(Employee.name.asc()).all()
        segments_by_emp: dict[str, list] = {}
        for shift in store.shifts_for_day(dk):
            segments_by_emp.setdefault(shift.employee_id, []).extend(shift.segments or [])
        appts_by_emp: dict[str, list] = {}
        for appt in store.appointments_for_day(dk):
            appts_by_emp.setdefault(appt.employee_id, []).append(appt)
        no_shows = {
            c.phone: c.no_show_count
            for c in Client.query.filter(Client.no_show_count > 0).all()
        }
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to load day calendar")

    def _appt_dict(appt):
        data = appt.to_dict()
        if isinstance(appt, Booking):
            data["clientNoShows"] = no_shows.get(store.normalize_phone(appt.client_phone), 0)
        return data

    columns = []
    for employee in employees:
        if only_working and employee.employee_id not in segments_by_emp:
            continue
        merged = normalize_segments(segments_by_emp.get(employee.employee_id, []), hours.start, hours.end)
        columns.append({
            "employee": employee.to_dict(),
            "shift": [seg.to_dict() for seg in merged],
            "appointments": [_appt_dict(a) for a in appts_by_emp.get(employee.employee_id, [])],
        })

    bookings = [
        _appt_dict(a)
        for appts in appts_by_emp.values()
        for a in appts
        if isinstance(a, Booking)
    ]

    return jsonify({
        "date": dk,
        "hours": {"open": minutes_to_time(hours.start), "close": minutes_to_time(hours.end)},
        "employees": columns,
        "schedule": assign_lanes(bookings),
    }), 200


@bp.get("/calendar/month")
@admin_required
def get_month_roster() -> tuple[dict[str, object], int]:
    """Month roster: who works each day, first break, vacation marker."""
    year, month_no = parse_month(request.args.get("month"))
    days = templates.month_days(year, month_no)
    first_key, last_key = date_key(days[0]), date_key(days[-1])

    try:
        shifts = store.shifts_between(first_key, last_key)
        time_off = store.time_off_between(first_key, last_key)
        names = {e.employee_id: e.name for e in Employee.query.all()}
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to load month roster")

    working: dict[str, list[str]] = {}
    for shift in shifts:
        ids = working.setdefault(shift.date_key, [])
        if shift.employee_id not in ids:
            ids.append(shift.employee_id)
    offs: dict[tuple[str, str], list] = {}
    for entry in time_off:
        offs.setdefault((entry.date_key, entry.employee_id), []).append(entry)

    roster = []
    for day in days:
        dk = date_key(day)
        entries = []
        for employee_id in working.get(dk, []):
            items = offs.get((dk, employee_id), [])
            first_break = next((x for x in items if x.type == "break"), None)
            has_vacation = any(x.type == "vacation" for x in items)
            entries.append({
                "employeeId": employee_id,
                "name": names.get(employee_id, ""),
                "firstBreak": first_break.start_hhmm if first_break else None,
                "hasVacation": has_vacation,
                "more": max(0, len(items) - (1 if first_break else 0) - (1 if has_vacation else 0)),
            })
        roster.append({"dateKey": dk, "weekday": weekday_index(day), "employees": entries})

    return jsonify({"month": f"{year:04d}-{month_no:02d}", "days": roster}), 200


# --- Shifts and time off ---

@bp.get("/shifts")
@admin_required
def list_shifts() -> tuple[dict[str, object], int]:
    dk = date_key(parse_date_key(request.args.get("date")))
    try:
        shifts = store.shifts_for_day(dk)
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to fetch shifts")
    return jsonify({"shifts": [s.to_dict() for s in shifts]}), 200


@bp.put("/shifts/<employee_id>/<date_key_value>")
@admin_required
def put_shift(employee_id: str, date_key_value: str) -> tuple[dict[str, object], int]:
    """Replace one employee's segments for one day.

    Segments are clamped to salon hours and merged before saving; an
    empty result removes the shift (the employee is off that day).
    """
    day = parse_date_key(date_key_value)
    raw = _payload().get("segments")
    if not isinstance(raw, list):
        raise InvalidInput("segments must be a list of {start, end}")
    for seg in raw:
        if not isinstance(seg, dict):
            raise InvalidInput("segments must be a list of {start, end}")
        parse_hhmm(seg.get("start"), "segment start")
        parse_hhmm(seg.get("end"), "segment end")

    try:
        store.get_employee(employee_id)
        hours = store.get_salon_hours(weekday_index(day))
        merged = normalize_segments(raw, hours.start, hours.end)
        dk = date_key(day)
        if merged:
            shift = store.upsert_shift(employee_id, dk, merged)
        else:
            store.delete_shift(employee_id, dk)
            shift = None
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to save shift")

    return jsonify({"shift": shift.to_dict() if shift else None}), 200


@bp.post("/shifts/template")
@admin_required
def apply_shift_template() -> tuple[dict[str, object], int]:
    """Apply a weekly template to every matching day of a month.
    ---
    tags:
      - Shifts
    parameters:
      - in: body
        name: body
        required: true
        schema:
          properties:
            employeeId:
              type: string
            weekdays:
              type: array
              items:
                type: integer
              description: 0=Sunday .. 6=Saturday
            start:
              type: string
            end:
              type: string
            month:
              type: string
              example: "2025-03"
    responses:
      200:
        description: Shifts written
      400:
        description: Invalid template
      404:
        description: Employee not found
    """
    payload = _payload()
    employee_id, start, end, month = _required(payload, "employeeId", "start", "end", "month")

    try:
        shifts = templates.apply_weekly_template(employee_id, payload.get("weekdays"), start, end, month)
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to apply shift template")

    return jsonify({"count": len(shifts), "shifts": [s.to_dict() for s in shifts]}), 200


@bp.post("/time-off")
@admin_required
def create_break() -> tuple[dict[str, object], int]:
    payload = _payload()
    employee_id, dk = _required(payload, "employeeId", "dateKey")
    parse_date_key(dk)
    start_min = _minutes(payload, "start")
    end_min = _minutes(payload, "end")
    note = (payload.get("note") or "").strip() or None

    try:
        record = guard.create_block(employee_id, dk, start_min, end_min, kind="break", note=note)
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to create break")

    return jsonify({"appointment": record.to_dict()}), 201


@bp.post("/time-off/vacation")
@admin_required
def create_vacation() -> tuple[dict[str, object], int]:
    """Mark whole shifts as vacation for a run of days."""
    payload = _payload()
    employee_id, start = _required(payload, "employeeId", "start")

    try:
        records = templates.apply_vacation(
            employee_id, start, payload.get("days", 1), payload.get("month") or None
        )
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to record vacation")

    return jsonify({"count": len(records), "timeOff": [r.to_dict() for r in records]}), 201


# --- Settings ---

@bp.get("/settings/salon-hours")
def get_salon_hours() -> tuple[dict[str, object], int]:
    try:
        hours = store.get_salon_hours_table()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to fetch salon hours")
    return jsonify({"salonHours": hours}), 200


@bp.put("/settings/salon-hours")
@admin_required
def put_salon_hours() -> tuple[dict[str, object], int]:
    """Replace the per-weekday overrides; days left out use the defaults."""
    overrides = _payload().get("salonHours")
    if not isinstance(overrides, dict) or not all(isinstance(v, dict) for v in overrides.values()):
        raise InvalidInput("salonHours must map weekday keys to {open, close}")

    try:
        hours = store.set_salon_hours(overrides)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to save salon hours")

    return jsonify({"salonHours": hours}), 200


def register_routes(app: Flask) -> None:
    from .routes_extended import bp_ext

    app.register_blueprint(bp)
    app.register_blueprint(bp_ext)
