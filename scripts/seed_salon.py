#!/usr/bin/env python3
"""Seed the database with a sample catalog, staff and an admin account."""
import sys
from pathlib import Path

# Add the parent directory to the path so we can import the app
sys.path.insert(0, str(Path(__file__).parent.parent))

from salonbook import create_app
from salonbook.extensions import db
from salonbook.models import Category, Employee, Service, Setting, User
from salonbook.scheduling import templates
from salonbook.store import DEFAULT_SALON_HOURS, SALON_HOURS_KEY, normalize_phone, set_salon_hours


def seed_salon(admin_phone: str, month: str | None = None):
    """Create the admin user, catalog and employees if missing.

    With ``month`` (YYYY-MM) every employee also gets Monday to Friday
    09:00-17:00 shifts for that month.
    """
    app = create_app()

    with app.app_context():
        db.create_all()

        phone = normalize_phone(admin_phone)
        if len(phone) < 6:
            print("❌ Please pass a valid admin phone number.")
            return

        admin = User.query.filter_by(phone=phone).first()
        if admin is None:
            admin = User(phone=phone, first_name="Salon", last_name="Admin", role="admin")
            db.session.add(admin)
            print(f"👤 Created admin account for {phone}")
        elif admin.role != "admin":
            admin.role = "admin"
            print(f"🔑 Promoted {phone} to admin")
        else:
            print(f"⏭️  {phone} is already an admin. Skipping...")

        sample_categories = [
            {"id": "hair", "name": "Hair", "order": 1},
            {"id": "nails", "name": "Nails", "order": 2},
        ]
        sample_services = [
            {
                "id": "haircut",
                "category": "hair",
                "name": "Haircut",
                "duration": 30,
                "price": 2500,
                "discount": 0,
                "color": "#f4a261",
            },
            {
                "id": "coloring",
                "category": "hair",
                "name": "Coloring",
                "duration": 90,
                "price": 7000,
                "discount": 10,
                "color": "#e76f51",
            },
            {
                "id": "manicure",
                "category": "nails",
                "name": "Manicure",
                "duration": 45,
                "price": 3000,
                "discount": 0,
                "color": "#2a9d8f",
            },
        ]
        sample_employees = [
            {"id": "anna", "name": "Anna", "categories": ["hair"], "services": []},
            {"id": "maria", "name": "Maria", "categories": ["nails"], "services": ["haircut"]},
        ]

        for data in sample_categories:
            if db.session.get(Category, data["id"]):
                continue
            db.session.add(Category(category_id=data["id"], name=data["name"], order=data["order"]))
            print(f"📁 Added category {data['name']}")

        for order, data in enumerate(sample_services, start=1):
            if db.session.get(Service, data["id"]):
                continue
            db.session.add(Service(
                service_id=data["id"],
                category_id=data["category"],
                name=data["name"],
                duration_min=data["duration"],
                base_price=data["price"],
                discount_percent=data["discount"],
                color=data["color"],
                order=order,
            ))
            print(f"✂️  Added service {data['name']} ({data['duration']} min)")

        for data in sample_employees:
            if db.session.get(Employee, data["id"]):
                continue
            db.session.add(Employee(
                employee_id=data["id"],
                name=data["name"],
                categories=data["categories"],
                services=data["services"],
            ))
            print(f"💇 Added employee {data['name']}")

        if db.session.get(Setting, SALON_HOURS_KEY) is None:
            set_salon_hours(DEFAULT_SALON_HOURS)
            print("🕘 Stored default salon hours")

        db.session.commit()

        if month:
            for data in sample_employees:
                shifts = templates.apply_weekly_template(data["id"], [1, 2, 3, 4, 5], "09:00", "17:00", month)
                print(f"📅 {data['name']}: {len(shifts)} shift(s) in {month}")

        print("\n✅ Seeding complete")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python scripts/seed_salon.py <admin-phone> [YYYY-MM]")
        sys.exit(1)
    seed_salon(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else None)
