"""Tests for PUT /appointments/<id> (move and reassign)."""
from __future__ import annotations

import pytest

from salonbook.scheduling import guard

MONDAY = "2025-03-10"


@pytest.fixture
def setup_data(salon):
    with salon.app_context():
        first = guard.create_booking("anna", MONDAY, 600, "cut", client_name="Cleo")
        second = guard.create_booking("anna", MONDAY, 660, "cut", client_name="Dora")
        return first.appointment_id, second.appointment_id


def test_reschedule_success_200(client, admin_headers, setup_data):
    first_id, _ = setup_data

    response = client.put(f"/appointments/{first_id}", json={"start": "14:00"}, headers=admin_headers)
    data = response.get_json()["appointment"]

    assert response.status_code == 200
    assert (data["startHHMM"], data["endHHMM"]) == ("14:00", "14:30")


def test_reschedule_conflict_409(client, admin_headers, setup_data):
    first_id, _ = setup_data

    response = client.put(f"/appointments/{first_id}", json={"start": "10:45"}, headers=admin_headers)

    assert response.status_code == 409
    assert response.get_json()["error"] == "slot_taken"


def test_reassign_to_other_employee(client, admin_headers, setup_data):
    first_id, _ = setup_data

    response = client.put(f"/appointments/{first_id}", json={"employeeId": "bella"}, headers=admin_headers)
    data = response.get_json()["appointment"]

    assert response.status_code == 200
    assert data["employeeId"] == "bella"
    assert data["startHHMM"] == "10:00"


def test_move_to_day_off_422(client, admin_headers, setup_data):
    first_id, _ = setup_data

    response = client.put(f"/appointments/{first_id}", json={"dateKey": "2025-03-11"}, headers=admin_headers)

    assert response.status_code == 422
    assert response.get_json()["error"] == "outside_shift"


def test_reschedule_not_found_404(client, admin_headers, setup_data):
    response = client.put("/appointments/missing", json={"start": "14:00"}, headers=admin_headers)

    assert response.status_code == 404


def test_reschedule_requires_admin(client, client_headers, setup_data):
    first_id, _ = setup_data

    response = client.put(f"/appointments/{first_id}", json={"start": "14:00"}, headers=client_headers)

    assert response.status_code == 403


def test_reassign_to_unqualified_employee_400(client, admin_headers, setup_data):
    first_id, _ = setup_data

    response = client.put(f"/appointments/{first_id}", json={"employeeId": "nina"}, headers=admin_headers)

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_input"
