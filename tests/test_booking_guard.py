"""Tests for the commit-time booking guard."""
from __future__ import annotations

import random

import pytest
from sqlalchemy import update

from salonbook import store
from salonbook.errors import InvalidInput, InvalidTransition, OutOfSalonHours, OutsideShift, SchedulingError, SlotTaken
from salonbook.extensions import db
from salonbook.models import Appointment, Booking, Break, DayLedger
from salonbook.scheduling import guard
from salonbook.scheduling.timeutils import intervals_overlap

MONDAY = "2025-03-10"
SUNDAY = "2025-03-09"


def test_create_booking_snapshots_service(salon):
    with salon.app_context():
        booking = guard.create_booking("anna", MONDAY, 600, "color", client_name=" Cleo ", client_phone="555-0002")

        assert booking.type == "booking"
        assert booking.status == "booked"
        assert (booking.start_hhmm, booking.end_hhmm) == ("10:00", "11:30")
        assert booking.service_name == "Coloring"
        assert booking.duration_min == 90
        # 7000 with 15% off
        assert booking.price == 5950
        assert booking.client_name == "Cleo"
        assert booking.employee_name == "Anna"
        assert db.session.get(DayLedger, f"anna_{MONDAY}").version == 1


def test_booking_past_closing_time_is_out_of_salon_hours(salon):
    with salon.app_context():
        with pytest.raises(OutOfSalonHours) as excinfo:
            guard.create_booking("anna", SUNDAY, 16 * 60 + 50, "cut")

        assert excinfo.value.details == {"open": "09:00", "close": "17:00"}
        assert Appointment.query.count() == 0


def test_booking_before_shift_is_outside_shift(salon):
    with salon.app_context():
        # The salon opens at 08:00 on Mondays but Anna starts at 09:00.
        with pytest.raises(OutsideShift):
            guard.create_booking("anna", MONDAY, 8 * 60, "cut")


def test_booking_on_day_off_is_outside_shift(salon):
    with salon.app_context():
        with pytest.raises(OutsideShift):
            guard.create_booking("anna", "2025-03-11", 600, "cut")


def test_overlapping_booking_is_rejected(salon):
    with salon.app_context():
        first = guard.create_booking("anna", MONDAY, 600, "cut")
        with pytest.raises(SlotTaken) as excinfo:
            guard.create_booking("anna", MONDAY, 615, "cut")

        assert excinfo.value.details["conflictId"] == first.appointment_id
        assert Booking.query.count() == 1


def test_adjacent_bookings_are_allowed(salon):
    with salon.app_context():
        guard.create_booking("anna", MONDAY, 600, "cut")
        guard.create_booking("anna", MONDAY, 630, "cut")
        guard.create_booking("anna", MONDAY, 570, "cut")
        assert Booking.query.count() == 3


def test_other_employee_is_independent(salon):
    with salon.app_context():
        guard.create_booking("anna", MONDAY, 600, "cut")
        guard.create_booking("bella", MONDAY, 600, "cut")
        assert Booking.query.count() == 2


def test_cancelled_booking_frees_its_slot(salon):
    with salon.app_context():
        booking = guard.create_booking("anna", MONDAY, 600, "cut")
        booking.status = "cancelled"
        db.session.commit()

        again = guard.create_booking("anna", MONDAY, 600, "cut")
        assert again.appointment_id != booking.appointment_id


def test_block_and_break_occupy_the_timeline(salon):
    with salon.app_context():
        block = guard.create_block("anna", MONDAY, 720, 780, kind="block", note="Training")
        pause = guard.create_block("anna", MONDAY, 780, 800, kind="break")

        assert block.status == "blocked"
        assert isinstance(pause, Break)
        assert pause.status == "break"
        with pytest.raises(SlotTaken):
            guard.create_booking("anna", MONDAY, 750, "cut")


def test_block_rejects_unknown_kind_and_bad_range(salon):
    with salon.app_context():
        with pytest.raises(InvalidInput):
            guard.create_block("anna", MONDAY, 600, 630, kind="vacation")
        with pytest.raises(InvalidInput):
            guard.create_block("anna", MONDAY, 630, 600)


def test_reschedule_keeps_duration_and_ignores_itself(salon):
    with salon.app_context():
        booking = guard.create_booking("anna", MONDAY, 600, "color")
        moved = guard.reschedule(booking.appointment_id, start_min=630)

        assert (moved.start_min, moved.end_min) == (630, 720)
        assert db.session.get(DayLedger, f"anna_{MONDAY}").version == 2


def test_reschedule_to_another_employee_checks_their_timeline(salon):
    with salon.app_context():
        booking = guard.create_booking("anna", MONDAY, 600, "cut")
        busy = guard.create_booking("bella", MONDAY, 600, "cut")

        with pytest.raises(SlotTaken):
            guard.reschedule(booking.appointment_id, employee_id="bella")

        moved = guard.reschedule(booking.appointment_id, start_min=660, employee_id="bella")
        assert moved.employee_id == "bella"
        assert moved.employee_name == "Bella"
        assert busy.appointment_id != moved.appointment_id
        assert db.session.get(DayLedger, f"bella_{MONDAY}").version == 2


def test_reschedule_block_may_change_length(salon):
    with salon.app_context():
        block = guard.create_block("anna", MONDAY, 600, 630)
        moved = guard.reschedule(block.appointment_id, start_min=660, end_min=720)
        assert (moved.start_hhmm, moved.end_hhmm) == ("11:00", "12:00")


def test_reschedule_cancelled_booking_is_refused(salon):
    with salon.app_context():
        booking = guard.create_booking("anna", MONDAY, 600, "cut")
        booking.status = "cancelled"
        db.session.commit()

        with pytest.raises(InvalidTransition):
            guard.reschedule(booking.appointment_id, start_min=660)


def test_sequential_bookings_never_overlap(salon):
    rng = random.Random(1234)
    with salon.app_context():
        for _ in range(80):
            start = rng.randrange(8 * 60, 17 * 60, 5)
            service = rng.choice(["cut", "color"])
            try:
                guard.create_booking("anna", MONDAY, start, service)
            except SchedulingError:
                continue

        accepted = store.get_active_appointments("anna", MONDAY)
        assert accepted
        for i, left in enumerate(accepted):
            assert 9 * 60 <= left.start_min and left.end_min <= 17 * 60
            for right in accepted[i + 1:]:
                assert not intervals_overlap(left.start_min, left.end_min, right.start_min, right.end_min)


def test_concurrent_writer_between_check_and_commit_is_rejected(salon, monkeypatch):
    real_reader = store.get_active_appointments

    def racing_reader(employee_id, date_key, exclude_id=None):
        result = real_reader(employee_id, date_key, exclude_id)
        # Another request commits to the same timeline while this one is checking.
        db.session.execute(
            update(DayLedger)
            .where(DayLedger.ledger_key == f"{employee_id}_{date_key}")
            .values(version=DayLedger.version + 1)
        )
        return result

    monkeypatch.setattr(store, "get_active_appointments", racing_reader)
    with salon.app_context():
        with pytest.raises(SlotTaken):
            guard.create_booking("anna", MONDAY, 600, "cut")

    monkeypatch.undo()
    with salon.app_context():
        assert Booking.query.count() == 0


def test_booking_with_unqualified_employee_is_rejected(salon):
    with salon.app_context():
        # Nina only covers nails; Bella only has the haircut service.
        with pytest.raises(InvalidInput):
            guard.create_booking("nina", MONDAY, 600, "cut")
        with pytest.raises(InvalidInput):
            guard.create_booking("bella", MONDAY, 600, "color")

        assert Appointment.query.count() == 0
        assert db.session.get(DayLedger, f"nina_{MONDAY}") is None


def test_reassigning_booking_to_unqualified_employee_is_rejected(salon):
    with salon.app_context():
        booking = guard.create_booking("anna", MONDAY, 600, "color")

        with pytest.raises(InvalidInput):
            guard.reschedule(booking.appointment_id, employee_id="nina")
        with pytest.raises(InvalidInput):
            guard.reschedule(booking.appointment_id, employee_id="bella")

        db.session.expire_all()
        stored = db.session.get(Appointment, booking.appointment_id)
        assert stored.employee_id == "anna"


def test_block_can_move_to_any_employee(salon):
    with salon.app_context():
        block = guard.create_block("anna", MONDAY, 600, 630)
        moved = guard.reschedule(block.appointment_id, employee_id="nina")
        assert moved.employee_id == "nina"
