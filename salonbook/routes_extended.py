"""Back-office routes: catalog, employees, clients and finances."""
from __future__ import annotations

import unicodedata
import uuid

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from . import store
from .auth import admin_required
from .errors import InvalidInput, NotFound, StoreUnavailable
from .extensions import db
from .models import Appointment, Booking, Category, Client, Employee, Expense, ExpenseTemplate, Service
from .scheduling.timeutils import parse_month

bp_ext = Blueprint("api_ext", __name__)


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _database_error(exc: SQLAlchemyError, message: str):
    db.session.rollback()
    current_app.logger.exception(message, exc_info=exc)
    return jsonify(StoreUnavailable().to_dict()), StoreUnavailable.status


def _name(payload: dict, required: bool = True) -> str | None:
    name = (payload.get("name") or "").strip()
    if required and not name:
        raise InvalidInput("name is required")
    return name or None


def _int(payload: dict, key: str, minimum: int | None = None, maximum: int | None = None):
    value = payload.get(key)
    if value is None or value == "":
        return None
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"{key} must be a whole number") from exc
    if minimum is not None and number < minimum:
        raise InvalidInput(f"{key} must be at least {minimum}")
    if maximum is not None and number > maximum:
        raise InvalidInput(f"{key} must be at most {maximum}")
    return number


def _id_list(payload: dict, key: str) -> list[str] | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise InvalidInput(f"{key} must be a list of ids")
    return list(dict.fromkeys(value))


def _get_or_404(model, key, message: str):
    record = db.session.get(model, key)
    if record is None:
        raise NotFound(message)
    return record


# --- Categories ---

@bp_ext.get("/categories")
def list_categories() -> tuple[dict[str, object], int]:
    try:
        categories = Category.query.order_by(Category.order.asc(), Category.name.asc()).all()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to fetch categories")
    return jsonify({"categories": [c.to_dict() for c in categories]}), 200


@bp_ext.post("/categories")
@admin_required
def create_category() -> tuple[dict[str, object], int]:
    payload = _payload()
    category = Category(
        category_id=payload.get("id") or uuid.uuid4().hex,
        name=_name(payload),
        order=_int(payload, "order") or 0,
    )
    try:
        db.session.add(category)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to create category")
    return jsonify({"category": category.to_dict()}), 201


@bp_ext.put("/categories/<category_id>")
@admin_required
def update_category(category_id: str) -> tuple[dict[str, object], int]:
    payload = _payload()
    try:
        category = _get_or_404(Category, category_id, "Category not found")
        if "name" in payload:
            category.name = _name(payload)
        if "order" in payload:
            category.order = _int(payload, "order") or 0
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to update category")
    return jsonify({"category": category.to_dict()}), 200


@bp_ext.delete("/categories/<category_id>")
@admin_required
def delete_category(category_id: str) -> tuple[dict[str, object], int]:
    """Delete a category; its services stay but lose their category."""
    try:
        category = _get_or_404(Category, category_id, "Category not found")
        Service.query.filter_by(category_id=category_id).update({"category_id": None})
        db.session.delete(category)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to delete category")
    return jsonify({"message": "Category deleted"}), 200


# --- Services ---

def _apply_service_fields(service: Service, payload: dict) -> None:
    if "name" in payload:
        service.name = _name(payload)
    if "description" in payload:
        service.description = (payload.get("description") or "").strip() or None
    if "durationMin" in payload:
        duration = _int(payload, "durationMin", minimum=1)
        if duration is None:
            raise InvalidInput("durationMin must be greater than zero")
        service.duration_min = duration
    if "basePrice" in payload:
        service.base_price = _int(payload, "basePrice", minimum=0)
    if "discountPercent" in payload:
        service.discount_percent = _int(payload, "discountPercent", minimum=0, maximum=100) or 0
    if "categoryId" in payload:
        category_id = payload.get("categoryId") or None
        if category_id:
            _get_or_404(Category, category_id, "Category not found")
        service.category_id = category_id
    if "color" in payload:
        service.color = payload.get("color") or None
    if "order" in payload:
        service.order = _int(payload, "order") or 0


@bp_ext.get("/services")
def list_services() -> tuple[dict[str, object], int]:
    """List services, optionally for one category (``?categoryId=``)."""
    try:
        query = Service.query
        category_id = request.args.get("categoryId")
        if category_id:
            query = query.filter_by(category_id=category_id)
        services = query.order_by(Service.order.asc(), Service.name.asc()).all()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to fetch services")
    return jsonify({"services": [s.to_dict() for s in services]}), 200


@bp_ext.post("/services")
@admin_required
def create_service() -> tuple[dict[str, object], int]:
    payload = _payload()
    if "durationMin" not in payload:
        raise InvalidInput("durationMin is required")
    service = Service(service_id=payload.get("id") or uuid.uuid4().hex, discount_percent=0, order=0)
    try:
        service.name = _name(payload)
        _apply_service_fields(service, payload)
        db.session.add(service)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to create service")
    return jsonify({"service": service.to_dict()}), 201


@bp_ext.put("/services/<service_id>")
@admin_required
def update_service(service_id: str) -> tuple[dict[str, object], int]:
    """Update a service. Existing bookings keep their snapshot."""
    payload = _payload()
    try:
        service = store.get_service(service_id)
        _apply_service_fields(service, payload)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to update service")
    return jsonify({"service": service.to_dict()}), 200


@bp_ext.delete("/services/<service_id>")
@admin_required
def delete_service(service_id: str) -> tuple[dict[str, object], int]:
    try:
        service = store.get_service(service_id)
        db.session.delete(service)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to delete service")
    return jsonify({"message": "Service deleted"}), 200


# --- Employees ---

@bp_ext.get("/employees")
def list_employees() -> tuple[dict[str, object], int]:
    """List employees; ``?serviceId=`` narrows to those who perform it."""
    try:
        service_id = request.args.get("serviceId")
        if service_id:
            service = store.get_service(service_id)
            employees = store.get_employees_by_service(service.service_id, service.category_id)
        else:
            employees = Employee.query.order_by(Employee.name.asc()).all()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to fetch employees")
    return jsonify({"employees": [e.to_dict() for e in employees]}), 200


@bp_ext.post("/employees")
@admin_required
def create_employee() -> tuple[dict[str, object], int]:
    payload = _payload()
    employee = Employee(
        employee_id=payload.get("id") or uuid.uuid4().hex,
        name=_name(payload),
        phone=(payload.get("phone") or "").strip() or None,
        categories=_id_list(payload, "categories") or [],
        services=_id_list(payload, "services") or [],
    )
    try:
        db.session.add(employee)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to create employee")
    return jsonify({"employee": employee.to_dict()}), 201


@bp_ext.put("/employees/<employee_id>")
@admin_required
def update_employee(employee_id: str) -> tuple[dict[str, object], int]:
    payload = _payload()
    try:
        employee = store.get_employee(employee_id)
        if "name" in payload:
            employee.name = _name(payload)
        if "phone" in payload:
            employee.phone = (payload.get("phone") or "").strip() or None
        categories = _id_list(payload, "categories")
        if categories is not None:
            employee.categories = categories
        services = _id_list(payload, "services")
        if services is not None:
            employee.services = services
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to update employee")
    return jsonify({"employee": employee.to_dict()}), 200


@bp_ext.delete("/employees/<employee_id>")
@admin_required
def delete_employee(employee_id: str) -> tuple[dict[str, object], int]:
    """Delete an employee who has nothing on record; otherwise 400."""
    try:
        employee = store.get_employee(employee_id)
        if Appointment.query.filter_by(employee_id=employee_id).first():
            raise InvalidInput("Employee has appointments on record and cannot be deleted")
        store.delete_employee_shifts(employee_id)
        db.session.delete(employee)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to delete employee")
    return jsonify({"message": "Employee deleted"}), 200


# --- Clients ---

def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text or "")
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower().strip()


@bp_ext.get("/clients")
@admin_required
def list_clients() -> tuple[dict[str, object], int]:
    """Distinct clients seen in bookings, most recent booking first.

    ``?search=`` matches the name ignoring case and accents, or any run
    of digits in the phone number.
    """
    search = request.args.get("search", "")
    try:
        bookings = Booking.query.order_by(Booking.created_at.desc()).all()
        no_shows = {c.phone: c.no_show_count for c in Client.query.all()}
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to fetch clients")

    seen: dict[str, dict[str, object]] = {}
    for booking in bookings:
        key = f"{_fold(booking.client_name or '')}_{(booking.client_phone or '').strip()}"
        if key in seen:
            continue
        seen[key] = {
            "name": booking.client_name or "",
            "phone": booking.client_phone or "",
            "lastService": booking.service_name or "",
            "lastDate": booking.date_key,
            "noShowCount": no_shows.get(store.normalize_phone(booking.client_phone), 0),
        }

    clients = list(seen.values())
    text_query = _fold(search)
    digit_query = store.normalize_phone(search)
    if text_query or digit_query:
        clients = [
            c for c in clients
            if (text_query and text_query in _fold(c["name"]))
            or (digit_query and digit_query in store.normalize_phone(c["phone"]))
        ]
    return jsonify({"clients": clients}), 200


# --- Finances ---

@bp_ext.get("/finances/templates")
@admin_required
def list_expense_templates() -> tuple[dict[str, object], int]:
    try:
        items = ExpenseTemplate.query.order_by(ExpenseTemplate.name.asc()).all()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to fetch expense templates")
    return jsonify({"templates": [t.to_dict() for t in items]}), 200


@bp_ext.post("/finances/templates")
@admin_required
def create_expense_template() -> tuple[dict[str, object], int]:
    payload = _payload()
    amount = _int(payload, "amount", minimum=1)
    if amount is None:
        raise InvalidInput("amount is required")
    template = ExpenseTemplate(name=_name(payload), amount=amount)
    try:
        db.session.add(template)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to create expense template")
    return jsonify({"template": template.to_dict()}), 201


@bp_ext.post("/finances/templates/<int:template_id>/apply")
@admin_required
def apply_expense_template(template_id: int) -> tuple[dict[str, object], int]:
    """Copy a recurring cost into a month's expenses."""
    month = _payload().get("month")
    year, month_no = parse_month(month)
    try:
        template = _get_or_404(ExpenseTemplate, template_id, "Expense template not found")
        expense = Expense(
            name=template.name,
            amount=template.amount,
            month=f"{year:04d}-{month_no:02d}",
            template_id=template.template_id,
        )
        db.session.add(expense)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to apply expense template")
    return jsonify({"expense": expense.to_dict()}), 201


@bp_ext.get("/finances/expenses")
@admin_required
def list_expenses() -> tuple[dict[str, object], int]:
    year, month_no = parse_month(request.args.get("month"))
    try:
        items = Expense.query.filter_by(month=f"{year:04d}-{month_no:02d}").order_by(Expense.created_at.asc()).all()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to fetch expenses")
    return jsonify({"expenses": [e.to_dict() for e in items]}), 200


@bp_ext.post("/finances/expenses")
@admin_required
def create_expense() -> tuple[dict[str, object], int]:
    payload = _payload()
    year, month_no = parse_month(payload.get("month"))
    amount = _int(payload, "amount", minimum=1)
    if amount is None:
        raise InvalidInput("amount is required")
    expense = Expense(name=_name(payload), amount=amount, month=f"{year:04d}-{month_no:02d}")
    try:
        db.session.add(expense)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to create expense")
    return jsonify({"expense": expense.to_dict()}), 201


@bp_ext.delete("/finances/expenses/<int:expense_id>")
@admin_required
def delete_expense(expense_id: int) -> tuple[dict[str, object], int]:
    try:
        expense = _get_or_404(Expense, expense_id, "Expense not found")
        db.session.delete(expense)
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to delete expense")
    return jsonify({"message": "Expense deleted"}), 200


@bp_ext.get("/finances/report")
@admin_required
def get_finance_report() -> tuple[dict[str, object], int]:
    """Monthly revenue, costs and earnings per employee.

    Revenue counts every booking of the month that was not cancelled.
    """
    year, month_no = parse_month(request.args.get("month"))
    month = f"{year:04d}-{month_no:02d}"
    try:
        bookings = (
            Booking.query.filter(
                Booking.date_key.like(f"{month}-%"),
                Booking.status != "cancelled",
            )
            .order_by(Booking.date_key.asc(), Booking.start_min.asc())
            .all()
        )
        expenses = Expense.query.filter_by(month=month).all()
        names = {e.employee_id: e.name for e in Employee.query.all()}
    except SQLAlchemyError as exc:
        return _database_error(exc, "Failed to build finance report")

    revenue = sum(b.price or 0 for b in bookings)
    costs = sum(e.amount or 0 for e in expenses)

    per_employee: dict[str, dict[str, object]] = {}
    for booking in bookings:
        entry = per_employee.setdefault(booking.employee_id, {
            "employeeId": booking.employee_id,
            "name": names.get(booking.employee_id) or booking.employee_name or "",
            "total": 0,
            "appointments": [],
        })
        entry["total"] += booking.price or 0
        entry["appointments"].append(booking.to_dict())
    earnings = sorted(per_employee.values(), key=lambda e: (-e["total"], e["name"]))

    return jsonify({
        "month": month,
        "revenue": revenue,
        "costs": costs,
        "net": revenue - costs,
        "byEmployee": earnings,
    }), 200
