"""Tests for phone-number login."""
from __future__ import annotations

from salonbook.models import User


def test_login_existing_admin_200(client, salon):
    response = client.post("/auth/login", json={"phone": "555-0001"})
    data = response.get_json()

    assert response.status_code == 200
    assert data["token"]
    assert data["user"]["role"] == "admin"
    assert data["user"]["id"] == 1


def test_login_new_phone_creates_client(client, salon):
    response = client.post(
        "/auth/login",
        json={"phone": "+1 (555) 123-4567", "firstName": "Nora", "lastName": "New"},
    )

    assert response.status_code == 200
    assert response.get_json()["user"]["role"] == "client"
    with salon.app_context():
        user = User.query.filter_by(phone="15551234567").first()
        assert user is not None
        assert user.full_name == "Nora New"
        assert user.last_login_at is not None


def test_login_never_grants_admin_by_number(client, app):
    response = client.post("/auth/login", json={"phone": "0000000000", "role": "admin"})

    assert response.status_code == 200
    assert response.get_json()["user"]["role"] == "client"


def test_login_missing_phone_400(client, app):
    response = client.post("/auth/login", json={"phone": "12"})

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_input"


def test_token_grants_access(client, salon):
    token = client.post("/auth/login", json={"phone": "5550001"}).get_json()["token"]

    response = client.get("/calendar/day?date=2025-03-10", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200


def test_bad_token_is_unauthorized(client, salon):
    response = client.get("/calendar/day?date=2025-03-10", headers={"Authorization": "Bearer nope"})

    assert response.status_code == 401
    assert response.get_json()["error"] == "unauthorized"


def test_client_token_is_forbidden_on_admin_routes(client, client_headers):
    response = client.get("/calendar/day?date=2025-03-10", headers=client_headers)

    assert response.status_code == 403
    assert response.get_json()["error"] == "forbidden"
