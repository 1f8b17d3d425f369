"""
Tests for attendance and weapon custody endpoints
"""
import pytest
from fastapi import status

from fieldops.models.attendance import AttendanceRecord
from fieldops.models.guard import Guard, GuardStatus
from fieldops.models.weapon import WeaponLogEntry
from fieldops.tests.conftest import POST_LAT, POST_LNG

AT_POST = {"lat": POST_LAT, "lng": POST_LNG, "accuracy": 10}
FAR_FROM_POST = {"lat": POST_LAT + 0.0054, "lng": POST_LNG, "accuracy": 15}


@pytest.fixture
def guard_headers(auth_headers, test_guard):
    return auth_headers(test_guard.user_id)


@pytest.fixture
def supervisor_headers(auth_headers):
    return auth_headers("user-ops-1", role="OPERATIONS")


def test_state_starts_idle(client, guard_headers, test_guard):
    response = client.get("/api/v1/attendance/state", headers=guard_headers)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["guard_id"] == test_guard.id
    assert data["state"] == "IDLE"
    assert data["allowed_actions"] == ["REQUEST_LOCATION"]
    assert data["record"] is None


def test_requires_auth(client, test_guard):
    response = client.get("/api/v1/attendance/state")
    assert response.status_code in [status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN]


def test_invalid_token_rejected(client, test_guard):
    response = client.get(
        "/api/v1/attendance/state",
        headers={"Authorization": "Bearer invalid_token_here"}
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_unarmed_check_in_and_out(client, db, guard_headers):
    response = client.post("/api/v1/attendance/location", json=AT_POST, headers=guard_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["state"] == "LOCATION_READY"
    assert response.json()["check_in_fix"]["latitude"] == POST_LAT

    response = client.post("/api/v1/attendance/check-in", headers=guard_headers)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["state"] == "CHECKED_IN"
    assert data["geofence"]["inside"] is True
    assert data["record"]["status"] == "CONFIRMED"
    assert data["record"]["check_out_at"] is None
    assert data["record"]["check_in_at"].endswith("+00:00")

    response = client.post("/api/v1/attendance/location", json=FAR_FROM_POST, headers=guard_headers)
    assert response.json()["state"] == "CHECKED_IN"
    assert response.json()["check_out_fix"]["latitude"] == pytest.approx(FAR_FROM_POST["lat"])

    response = client.post("/api/v1/attendance/check-out", headers=guard_headers)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["state"] == "CHECKED_OUT"
    assert data["allowed_actions"] == []
    assert data["record"]["check_out_at"] is not None
    assert db.query(AttendanceRecord).count() == 1


def test_check_in_outside_geofence_is_flagged(client, guard_headers):
    client.post("/api/v1/attendance/location", json=FAR_FROM_POST, headers=guard_headers)
    response = client.post("/api/v1/attendance/check-in", headers=guard_headers)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["record"]["status"] == "FLAGGED"
    assert data["geofence"]["inside"] is False
    assert data["geofence"]["distance_meters"] > 500


def test_location_error_reported_with_kind(client, guard_headers):
    response = client.post(
        "/api/v1/attendance/location",
        json={"error": "PERMISSION_DENIED", "error_message": "User denied Geolocation"},
        headers=guard_headers,
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["kind"] == "GeolocationDenied"

    state = client.get("/api/v1/attendance/state", headers=guard_headers).json()
    assert state["state"] == "LOCATION_ERROR"
    assert state["last_error"] == "GeolocationDenied"
    assert state["allowed_actions"] == ["REQUEST_LOCATION"]


@pytest.mark.parametrize("code,http_status,kind", [
    ("POSITION_UNAVAILABLE", status.HTTP_503_SERVICE_UNAVAILABLE, "GeolocationUnavailable"),
    ("TIMEOUT", status.HTTP_504_GATEWAY_TIMEOUT, "GeolocationTimeout"),
])
def test_location_error_statuses(client, guard_headers, code, http_status, kind):
    response = client.post("/api/v1/attendance/location", json={"error": code}, headers=guard_headers)
    assert response.status_code == http_status
    assert response.json()["kind"] == kind


@pytest.mark.parametrize("body", [
    {},
    {"lat": POST_LAT},
    {"lat": POST_LAT, "lng": POST_LNG, "error": "TIMEOUT"},
    {"lat": 95, "lng": POST_LNG},
    {"error": "SOMETHING_ELSE"},
])
def test_location_request_validation(client, guard_headers, body):
    response = client.post("/api/v1/attendance/location", json=body, headers=guard_headers)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_check_in_before_location_is_invalid_transition(client, guard_headers):
    response = client.post("/api/v1/attendance/check-in", headers=guard_headers)
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["kind"] == "InvalidTransition"


def test_check_out_without_fresh_location(client, guard_headers):
    client.post("/api/v1/attendance/location", json=AT_POST, headers=guard_headers)
    client.post("/api/v1/attendance/check-in", headers=guard_headers)

    response = client.post("/api/v1/attendance/check-out", headers=guard_headers)
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["kind"] == "LocationRequired"


def test_armed_check_in_with_shortfall(client, db, guard_headers, test_weapon):
    client.post("/api/v1/attendance/location", json=AT_POST, headers=guard_headers)
    response = client.post("/api/v1/attendance/check-in", headers=guard_headers)
    data = response.json()
    assert data["state"] == "AWAITING_CUSTODY_CHECK_IN"
    assert data["pending_custody"] == {
        "action": "CHECKIN",
        "weapon_id": test_weapon.id,
        "serial_number": "TAU-000123",
        "expected_ammo": 10,
    }
    assert sorted(data["allowed_actions"]) == ["CANCEL_CUSTODY", "CONFIRM_CUSTODY"]

    response = client.post("/api/v1/attendance/custody", json={"observed_ammo": 8, "notes": ""},
                           headers=guard_headers)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["kind"] == "ValidationMissingJustification"
    assert db.query(AttendanceRecord).count() == 0

    response = client.post(
        "/api/v1/attendance/custody",
        json={"observed_ammo": 8, "notes": "2 rounds fired in training"},
        headers=guard_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["state"] == "CHECKED_IN"
    assert data["pending_custody"] is None
    assert data["handover"]["action"] == "CHECKIN"
    assert data["handover"]["ammo_observed"] == 8
    assert data["handover"]["ammo_expected"] == 10
    assert data["handover"]["notes"] == "Ammo received: 8 | Notes: 2 rounds fired in training"

    db.refresh(test_weapon)
    assert test_weapon.ammo_count == 8
    assert db.query(WeaponLogEntry).count() == 1


def test_cancel_custody(client, db, guard_headers, test_weapon):
    client.post("/api/v1/attendance/location", json=AT_POST, headers=guard_headers)
    client.post("/api/v1/attendance/check-in", headers=guard_headers)

    response = client.post("/api/v1/attendance/custody/cancel", headers=guard_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["state"] == "LOCATION_READY"
    assert db.query(AttendanceRecord).count() == 0
    assert db.query(WeaponLogEntry).count() == 0


def test_negative_ammo_rejected(client, guard_headers, test_weapon):
    client.post("/api/v1/attendance/location", json=AT_POST, headers=guard_headers)
    client.post("/api/v1/attendance/check-in", headers=guard_headers)

    response = client.post("/api/v1/attendance/custody", json={"observed_ammo": -3}, headers=guard_headers)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["kind"] == "ValidationError"


def test_state_restored_after_restart(client, guard_headers):
    from fieldops.services.workflow_registry import registry

    client.post("/api/v1/attendance/location", json=AT_POST, headers=guard_headers)
    client.post("/api/v1/attendance/check-in", headers=guard_headers)

    registry.clear()
    response = client.get("/api/v1/attendance/state", headers=guard_headers)
    data = response.json()
    assert data["state"] == "CHECKED_IN"
    assert data["record"]["status"] == "CONFIRMED"


def test_password_change_required(client, auth_headers, test_guard):
    headers = auth_headers(test_guard.user_id, requires_password_change=True)
    response = client.get("/api/v1/attendance/state", headers=headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["kind"] == "PasswordChangeRequired"


def test_client_role_denied(client, auth_headers, test_guard):
    response = client.get("/api/v1/attendance/state", headers=auth_headers(test_guard.user_id, role="CLIENT"))
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["kind"] == "AccessDenied"


def test_unknown_user_has_no_guard(client, auth_headers, test_guard):
    response = client.get("/api/v1/attendance/state", headers=auth_headers("nobody"))
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["kind"] == "GuardNotFound"


def test_inactive_guard_rejected(client, db, guard_headers, test_guard):
    test_guard.status = GuardStatus.SUSPENDED.value
    db.commit()
    response = client.get("/api/v1/attendance/state", headers=guard_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["kind"] == "GuardInactive"


def test_on_duty_board(client, db, guard_headers, supervisor_headers, test_post, test_guard):
    other = Guard(user_id="user-guard-2", ci="5123456", first_name="Ana", last_name="Gómez",
                  status=GuardStatus.ACTIVE.value, current_post_id=test_post.id)
    db.add(other)
    db.commit()

    client.post("/api/v1/attendance/location", json=AT_POST, headers=guard_headers)
    client.post("/api/v1/attendance/check-in", headers=guard_headers)

    response = client.get("/api/v1/attendance/on-duty", headers=supervisor_headers)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["guard_id"] == test_guard.id
    assert data["items"][0]["guard_name"] == "Juan Benítez"
    assert data["items"][0]["post_name"] == "Palacio"


def test_on_duty_board_requires_supervisor(client, guard_headers):
    response = client.get("/api/v1/attendance/on-duty", headers=guard_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["kind"] == "AccessDenied"


def test_weapon_logs(client, guard_headers, supervisor_headers, test_weapon):
    client.post("/api/v1/attendance/location", json=AT_POST, headers=guard_headers)
    client.post("/api/v1/attendance/check-in", headers=guard_headers)
    client.post("/api/v1/attendance/custody", json={"observed_ammo": 10}, headers=guard_headers)
    client.post("/api/v1/attendance/location", json=AT_POST, headers=guard_headers)
    client.post("/api/v1/attendance/check-out", headers=guard_headers)
    client.post("/api/v1/attendance/custody", json={"observed_ammo": 9, "notes": "one round misfired"},
                headers=guard_headers)

    response = client.get(f"/api/v1/weapons/{test_weapon.id}/logs", headers=supervisor_headers)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["total"] == 2
    assert [item["action"] for item in data["items"]] == ["CHECKIN", "CHECKOUT"]
    assert data["items"][1]["ammo_expected"] == 10
    assert data["items"][1]["ammo_observed"] == 9

    response = client.get(f"/api/v1/weapons/{test_weapon.id}/logs", headers=guard_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
