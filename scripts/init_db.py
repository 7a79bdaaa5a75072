#!/usr/bin/env python3
"""Initialize database tables"""
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from salonbook import create_app
from salonbook.extensions import db
from salonbook.store import DEFAULT_SALON_HOURS, set_salon_hours


def init_database():
    app = create_app()
    with app.app_context():
        db.create_all()
        print("✅ Database tables initialized successfully")
        if "--with-default-hours" in sys.argv:
            set_salon_hours(DEFAULT_SALON_HOURS)
            db.session.commit()
            print("🕘 Stored default salon hours")

if __name__ == "__main__":
    init_database()
