"""Database models for the salon booking backend."""
from __future__ import annotations

import math
from datetime import datetime, timezone

from .extensions import db
from .scheduling.segments import Interval


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class User(db.Model):
    """Phone-number login account. ``role`` is provisioned, never inferred."""

    __tablename__ = "users"

    user_id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(100), nullable=False, server_default="")
    last_name = db.Column(db.String(100), nullable=False, server_default="")
    phone = db.Column(db.String(30), unique=True, nullable=False)
    role = db.Column(
        db.Enum(
            "client",
            "admin",
            name="user_role",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="client",
    )
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def to_dict_basic(self) -> dict[str, object]:
        return {
            "id": self.user_id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "phone": self.phone,
            "role": self.role,
        }


class Category(db.Model):
    __tablename__ = "categories"

    category_id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {"id": self.category_id, "name": self.name, "order": self.order}


class Service(db.Model):
    """A bookable service. Bookings snapshot name, duration and price."""

    __tablename__ = "services"

    service_id = db.Column(db.String(64), primary_key=True)
    category_id = db.Column(db.String(64), db.ForeignKey("categories.category_id"), nullable=True)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text)
    duration_min = db.Column(db.Integer, nullable=False)
    base_price = db.Column(db.Integer)
    discount_percent = db.Column(db.Integer, nullable=False, default=0)
    color = db.Column(db.String(16))
    order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    category = db.relationship("Category")

    @property
    def final_price(self) -> int | None:
        if self.base_price is None:
            return None
        discount = max(0, min(100, self.discount_percent or 0))
        # Half-up rounding, not Python's banker's rounding.
        return math.floor(self.base_price * (100 - discount) / 100 + 0.5)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.service_id,
            "categoryId": self.category_id,
            "name": self.name,
            "description": self.description,
            "durationMin": self.duration_min,
            "basePrice": self.base_price,
            "discountPercent": self.discount_percent or 0,
            "finalPrice": self.final_price,
            "color": self.color,
            "order": self.order,
        }


class Employee(db.Model):
    __tablename__ = "employees"

    employee_id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    phone = db.Column(db.String(30))
    # Category ids covered completely, and single service ids covered on top.
    categories = db.Column(db.JSON, nullable=False, default=list)
    services = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.employee_id,
            "name": self.name,
            "phone": self.phone,
            "categories": list(self.categories or []),
            "services": list(self.services or []),
        }


class Shift(db.Model):
    """Working segments of one employee on one day, keyed ``employeeId_dateKey``."""

    __tablename__ = "shifts"

    shift_id = db.Column(db.String(100), primary_key=True)
    employee_id = db.Column(db.String(64), db.ForeignKey("employees.employee_id"), nullable=False)
    date_key = db.Column(db.String(10), nullable=False, index=True)
    segments = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (db.UniqueConstraint("employee_id", "date_key", name="uq_shift_employee_day"),)

    @staticmethod
    def key_for(employee_id: str, date_key: str) -> str:
        return f"{employee_id}_{date_key}"

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.shift_id,
            "employeeId": self.employee_id,
            "dateKey": self.date_key,
            "segments": list(self.segments or []),
            "updatedAt": _iso(self.updated_at),
        }


class Appointment(db.Model):
    """Anything that occupies an employee's timeline on a given day.

    Single-table hierarchy discriminated by ``type``: :class:`Booking`,
    :class:`Block`, and the time-off kinds :class:`Break` and
    :class:`Vacation`. Overlap checks only look at the common columns.
    """

    __tablename__ = "appointments"

    appointment_id = db.Column(db.String(100), primary_key=True)
    type = db.Column(db.String(20), nullable=False)
    status = db.Column(
        db.Enum(
            "booked",
            "confirmed",
            "cancelled",
            "noshow",
            "blocked",
            "break",
            "vacation",
            name="appointment_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
    )
    employee_id = db.Column(db.String(64), db.ForeignKey("employees.employee_id"), nullable=False)
    employee_name = db.Column(db.String(150), nullable=False, server_default="")
    date_key = db.Column(db.String(10), nullable=False)
    start_hhmm = db.Column(db.String(5), nullable=False)
    end_hhmm = db.Column(db.String(5), nullable=False)
    start_min = db.Column(db.Integer, nullable=False)
    end_min = db.Column(db.Integer, nullable=False)
    note = db.Column(db.Text)

    # Booking snapshot; empty for the other types.
    service_id = db.Column(db.String(64))
    service_name = db.Column(db.String(150))
    duration_min = db.Column(db.Integer)
    price = db.Column(db.Integer)
    client_name = db.Column(db.String(150))
    client_phone = db.Column(db.String(30))
    color = db.Column(db.String(16))

    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (db.Index("ix_appointments_employee_day", "employee_id", "date_key"),)
    __mapper_args__ = {"polymorphic_on": "type", "polymorphic_abstract": True}

    # Statuses that no longer occupy the timeline.
    INACTIVE_STATUSES = ("cancelled", "noshow")

    @property
    def is_active(self) -> bool:
        return self.status not in self.INACTIVE_STATUSES

    def as_interval(self) -> Interval:
        return Interval(self.start_min, self.end_min)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.appointment_id,
            "type": self.type,
            "status": self.status,
            "employeeId": self.employee_id,
            "employeeName": self.employee_name,
            "dateKey": self.date_key,
            "startHHMM": self.start_hhmm,
            "endHHMM": self.end_hhmm,
            "startMin": self.start_min,
            "endMin": self.end_min,
            "note": self.note,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class Booking(Appointment):
    __mapper_args__ = {"polymorphic_identity": "booking"}

    # booked -> confirmed | cancelled | noshow; confirmed -> cancelled | noshow
    TRANSITIONS = {
        "booked": ("confirmed", "cancelled", "noshow"),
        "confirmed": ("cancelled", "noshow"),
        "cancelled": (),
        "noshow": (),
    }

    def can_transition(self, new_status: str) -> bool:
        return new_status == self.status or new_status in self.TRANSITIONS.get(self.status, ())

    def to_dict(self) -> dict[str, object]:
        data = super().to_dict()
        data.update(
            {
                "serviceId": self.service_id,
                "serviceName": self.service_name,
                "durationMin": self.duration_min,
                "price": self.price,
                "clientName": self.client_name,
                "clientPhone": self.client_phone,
                "color": self.color,
            }
        )
        return data


class Block(Appointment):
    __mapper_args__ = {"polymorphic_identity": "block"}


class TimeOff(Appointment):
    __mapper_args__ = {"polymorphic_abstract": True}


class Break(TimeOff):
    __mapper_args__ = {"polymorphic_identity": "break"}


class Vacation(TimeOff):
    __mapper_args__ = {"polymorphic_identity": "vacation"}


APPOINTMENT_TYPES: dict[str, type[Appointment]] = {
    "booking": Booking,
    "block": Block,
    "break": Break,
    "vacation": Vacation,
}

DEFAULT_STATUS = {
    "booking": "booked",
    "block": "blocked",
    "break": "break",
    "vacation": "vacation",
}


class Client(db.Model):
    """Per-phone client record, currently only used for no-show counts."""

    __tablename__ = "clients"

    phone = db.Column(db.String(30), primary_key=True)
    name = db.Column(db.String(150), nullable=False, server_default="")
    no_show_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)


class Setting(db.Model):
    __tablename__ = "settings"

    key = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.JSON, nullable=False, default=dict)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)


class DayLedger(db.Model):
    """Version token per ``employeeId_dateKey`` timeline, bumped on every write."""

    __tablename__ = "day_ledgers"

    ledger_key = db.Column(db.String(100), primary_key=True)
    version = db.Column(db.Integer, nullable=False, default=0)


class ExpenseTemplate(db.Model):
    """Recurring monthly cost that can be copied into a month."""

    __tablename__ = "expense_templates"

    template_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {"id": self.template_id, "name": self.name, "amount": self.amount}


class Expense(db.Model):
    __tablename__ = "expenses"

    expense_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    month = db.Column(db.String(7), nullable=False, index=True)
    template_id = db.Column(db.Integer, db.ForeignKey("expense_templates.template_id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.expense_id,
            "name": self.name,
            "amount": self.amount,
            "month": self.month,
            "templateId": self.template_id,
            "createdAt": _iso(self.created_at),
        }
