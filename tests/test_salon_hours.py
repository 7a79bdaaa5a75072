"""Tests for salon opening hours settings."""
from __future__ import annotations

SUNDAY = "2025-03-09"


def test_defaults_are_public(client, app):
    response = client.get("/settings/salon-hours")
    hours = response.get_json()["salonHours"]

    assert response.status_code == 200
    assert hours["mon"] == {"open": "08:00", "close": "22:00"}
    assert hours["sat"] == {"open": "08:00", "close": "20:00"}
    assert hours["sun"] == {"open": "09:00", "close": "17:00"}


def test_override_changes_availability(client, admin_headers):
    response = client.put(
        "/settings/salon-hours",
        json={"salonHours": {"sun": {"open": "10:00", "close": "16:00"}}},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.get_json()["salonHours"]["sun"] == {"open": "10:00", "close": "16:00"}
    assert response.get_json()["salonHours"]["mon"] == {"open": "08:00", "close": "22:00"}

    slots = client.get(f"/availability?date={SUNDAY}&serviceId=cut&employeeId=anna").get_json()["slots"]
    assert slots[0]["start"] == "10:00"
    assert slots[-1]["end"] == "16:00"


def test_override_rejects_bad_values(client, admin_headers):
    bad = [
        {"salonHours": {"sun": {"open": "17:00", "close": "09:00"}}},
        {"salonHours": {"funday": {"open": "09:00", "close": "17:00"}}},
        {"salonHours": "always"},
        {"salonHours": {"mon": {"open": "8am", "close": "22:00"}}},
        {"salonHours": {"mon": {"open": "08:00", "close": "25:70"}}},
        {"salonHours": {"mon": {"open": "08:00"}}},
    ]
    for payload in bad:
        response = client.put("/settings/salon-hours", json=payload, headers=admin_headers)
        assert response.status_code == 400


def test_override_requires_admin(client, client_headers):
    response = client.put(
        "/settings/salon-hours",
        json={"salonHours": {"sun": {"open": "10:00", "close": "16:00"}}},
        headers=client_headers,
    )

    assert response.status_code == 403


def test_rejected_override_keeps_stored_hours(client, admin_headers):
    client.put(
        "/settings/salon-hours",
        json={"salonHours": {"mon": {"open": "8am", "close": "25:70"}}},
        headers=admin_headers,
    )

    hours = client.get("/settings/salon-hours").get_json()["salonHours"]
    assert hours["mon"] == {"open": "08:00", "close": "22:00"}
