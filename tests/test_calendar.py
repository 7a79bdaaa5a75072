"""Tests for the admin day calendar and month roster."""
from __future__ import annotations

from salonbook import store
from salonbook.extensions import db
from salonbook.scheduling import guard, templates

MONDAY = "2025-03-10"
SUNDAY = "2025-03-09"


def test_day_calendar_columns(client, admin_headers, salon):
    with salon.app_context():
        guard.create_booking("anna", MONDAY, 600, "cut", client_name="Cleo", client_phone="555-0002")
        guard.create_booking("bella", MONDAY, 615, "cut", client_name="Dora", client_phone="555-0003")
        guard.create_block("anna", MONDAY, 720, 750, kind="break")
        store.record_no_show("5550002", "Cleo")
        db.session.commit()

    response = client.get(f"/calendar/day?date={MONDAY}", headers=admin_headers)
    data = response.get_json()

    assert response.status_code == 200
    assert data["hours"] == {"open": "08:00", "close": "22:00"}
    assert [c["employee"]["id"] for c in data["employees"]] == ["anna", "bella", "nina"]
    anna = data["employees"][0]
    assert anna["shift"] == [{"start": "09:00", "end": "17:00", "startMin": 540, "endMin": 1020}]
    assert [a["type"] for a in anna["appointments"]] == ["booking", "break"]
    assert anna["appointments"][0]["clientNoShows"] == 1

    schedule = sorted(data["schedule"], key=lambda e: e["startMin"])
    assert [e["clientName"] for e in schedule] == ["Cleo", "Dora"]
    assert [e["lane"] for e in schedule] == [0, 1]
    assert {e["cols"] for e in schedule} == {2}


def test_day_calendar_only_working(client, admin_headers):
    response = client.get("/calendar/day?date=2025-03-11&onlyWorking=true", headers=admin_headers)

    assert response.status_code == 200
    assert response.get_json()["employees"] == []


def test_day_calendar_bad_date_400(client, admin_headers):
    response = client.get("/calendar/day?date=tomorrow", headers=admin_headers)

    assert response.status_code == 400


def test_month_roster(client, admin_headers, salon):
    with salon.app_context():
        guard.create_block("anna", MONDAY, 720, 750, kind="break")
        guard.create_block("anna", MONDAY, 900, 915, kind="break")
        templates.apply_vacation("nina", SUNDAY, 1)

    response = client.get("/calendar/month?month=2025-03", headers=admin_headers)
    data = response.get_json()

    assert response.status_code == 200
    assert data["month"] == "2025-03"
    assert len(data["days"]) == 31
    days = {d["dateKey"]: d for d in data["days"]}
    assert days["2025-03-11"]["employees"] == []

    monday = {e["employeeId"]: e for e in days[MONDAY]["employees"]}
    assert monday["anna"]["firstBreak"] == "12:00"
    assert monday["anna"]["more"] == 1
    assert monday["anna"]["hasVacation"] is False
    assert monday["bella"]["firstBreak"] is None

    sunday = {e["employeeId"]: e for e in days[SUNDAY]["employees"]}
    assert sunday["nina"]["hasVacation"] is True
    assert days[SUNDAY]["weekday"] == 0


def test_month_roster_bad_month_400(client, admin_headers):
    assert client.get("/calendar/month?month=2025-3x", headers=admin_headers).status_code == 400
