"""pytest configuration: path management and shared app fixtures."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the project root is available on sys.path so tests can import the app package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from salonbook import create_app  # noqa: E402
from salonbook.auth import build_token  # noqa: E402
from salonbook.config import TestingConfig  # noqa: E402
from salonbook.extensions import db  # noqa: E402
from salonbook.models import Category, Employee, Service, Shift, User  # noqa: E402

# 2025-03-10 is a Monday (salon open 08:00-22:00), 2025-03-09 a Sunday (09:00-17:00).
MONDAY = "2025-03-10"
SUNDAY = "2025-03-09"


@pytest.fixture
def app():
    flask_app = create_app(TestingConfig)
    with flask_app.app_context():
        db.create_all()
    yield flask_app
    with flask_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def salon(app):
    """Two hair stylists with 09:00-17:00 shifts on MONDAY and SUNDAY."""
    with app.app_context():
        db.session.add_all([
            User(user_id=1, phone="5550001", first_name="Ada", last_name="Admin", role="admin"),
            User(user_id=2, phone="5550002", first_name="Cleo", last_name="Client", role="client"),
            Category(category_id="hair", name="Hair", order=1),
            Category(category_id="nails", name="Nails", order=2),
            Service(service_id="cut", category_id="hair", name="Haircut", duration_min=30,
                    base_price=2500, discount_percent=0, color="#f4a261"),
            Service(service_id="color", category_id="hair", name="Coloring", duration_min=90,
                    base_price=7000, discount_percent=15),
            Service(service_id="mani", category_id="nails", name="Manicure", duration_min=45,
                    base_price=3000),
            Employee(employee_id="anna", name="Anna", categories=["hair"], services=[]),
            Employee(employee_id="bella", name="Bella", categories=[], services=["cut"]),
            Employee(employee_id="nina", name="Nina", categories=["nails"], services=[]),
        ])
        for employee_id in ("anna", "bella", "nina"):
            for day in (MONDAY, SUNDAY):
                db.session.add(Shift(
                    shift_id=Shift.key_for(employee_id, day),
                    employee_id=employee_id,
                    date_key=day,
                    segments=[{"start": "09:00", "end": "17:00"}],
                ))
        db.session.commit()
    return app


@pytest.fixture
def admin_headers(salon):
    with salon.app_context():
        token = build_token(db.session.get(User, 1))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client_headers(salon):
    with salon.app_context():
        token = build_token(db.session.get(User, 2))
    return {"Authorization": f"Bearer {token}"}
