from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.api import deps
from app.core.errors import AuthenticationFailure
from app.core.events import LocalChangeFeed
from app.models.driver import DriverRole
from app.schemas.session import SessionContext
from app.services.auth_service import AuthService
from main import app

from conftest import FakeCache, TestingSessionLocal

API = "/api/v1"

MASTER = SessionContext(uid="M1", name="Maya Master", role=DriverRole.VEHICLE_MASTER)
DRIVER = SessionContext(uid="D1", name="Dan Driver", role=DriverRole.DRIVER)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def caller():
    """Whoever the next request is made as; tests switch it between calls."""
    return {"ctx": MASTER}


@pytest.fixture
def feed():
    return LocalChangeFeed()


@pytest.fixture
def client(db, users, caller, feed):
    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_session_factory] = lambda: TestingSessionLocal
    app.dependency_overrides[deps.get_session_context] = lambda: caller["ctx"]
    app.dependency_overrides[deps.get_ws_session_context] = lambda: caller["ctx"]
    app.dependency_overrides[deps.get_change_feed] = lambda: feed
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def create_vehicle(client, vehicle_id="V1"):
    response = client.post(f"{API}/vehicle", json={"id": vehicle_id, "warehouse": "Warehouse A"})
    assert response.status_code == 201
    return response.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["database"] == "ok"
    assert response.json()["change_feed"] == "local"


def test_trip_over_http(client, caller):
    vehicle = create_vehicle(client)
    assert vehicle["status"] == "AVAILABLE"
    assert vehicle["timestamps"] == {
        "assigned_at": None,
        "started_at": None,
        "reached_destination_at": None,
        "returned_at": None,
    }

    response = client.post(f"{API}/vehicle/V1/assign", json={"driver_id": "D1", "destination": "Warehouse B"})
    assert response.status_code == 200
    assert response.json()["status"] == "ASSIGNED"
    assert response.json()["timestamps"]["assigned_at"] is not None

    caller["ctx"] = DRIVER
    assert client.get(f"{API}/vehicle/mine").json()["id"] == "V1"

    response = client.post(f"{API}/vehicle/V1/start-trip")
    assert response.status_code == 200
    assert response.json()["status"] == "IN_TRANSIT"

    response = client.post(f"{API}/vehicle/V1/start-trip")
    assert response.status_code == 409
    assert response.json()["code"] == "state_conflict"

    timeline = client.get(f"{API}/vehicle/V1/timeline").json()
    assert [step["status"] for step in timeline["steps"]] == ["completed", "active", "pending"]
    assert timeline["steps"][1]["is_estimate"] is True

    assert client.post(f"{API}/vehicle/V1/start-return").json()["status"] == "RETURNING"
    response = client.post(f"{API}/vehicle/V1/complete-trip")
    assert response.status_code == 200
    assert response.json()["status"] == "AVAILABLE"
    assert response.json()["driver_id"] is None
    assert client.get(f"{API}/vehicle/mine").json() is None

    trips = client.get(f"{API}/driver/D1/trips").json()
    assert len(trips) == 1
    assert trips[0]["destination"] == "Warehouse B"

    caller["ctx"] = MASTER
    assert len(client.get(f"{API}/vehicle/V1/trips").json()) == 1


def test_driver_cannot_manage_vehicles(client, caller):
    caller["ctx"] = DRIVER

    response = client.post(f"{API}/vehicle", json={"warehouse": "Warehouse A"})

    assert response.status_code == 403
    assert response.json()["code"] == "permission_denied"


def test_other_driver_cannot_start_trip(client, caller):
    create_vehicle(client)
    client.post(f"{API}/vehicle/V1/assign", json={"driver_id": "D1", "destination": "Dock"})

    caller["ctx"] = SessionContext(uid="D2", name="Dee Driver", role=DriverRole.DRIVER)
    response = client.post(f"{API}/vehicle/V1/start-trip")

    assert response.status_code == 403


def test_missing_vehicle(client):
    response = client.get(f"{API}/vehicle/nope")

    assert response.status_code == 404
    assert response.json() == {"detail": "Vehicle not found", "code": "not_found"}


def test_cannot_delete_vehicle_on_trip(client):
    create_vehicle(client)
    client.post(f"{API}/vehicle/V1/assign", json={"driver_id": "D1", "destination": "Dock"})

    assert client.delete(f"{API}/vehicle/V1").status_code == 409

    create_vehicle(client, "V2")
    assert client.delete(f"{API}/vehicle/V2").status_code == 200
    assert client.get(f"{API}/vehicle/V2").status_code == 404


def test_vehicle_edit_with_stale_version_conflicts(client):
    create_vehicle(client)
    client.post(f"{API}/vehicle/V1/assign", json={"driver_id": "D1", "destination": "Dock"})

    response = client.put(f"{API}/vehicle/V1", json={"current_location": "Yard", "version": 1})
    assert response.status_code == 409
    assert response.json()["code"] == "state_conflict"

    response = client.put(f"{API}/vehicle/V1", json={"current_location": "Yard", "version": 2})
    assert response.status_code == 200
    assert response.json()["current_location"] == "Yard"
    assert response.json()["status"] == "ASSIGNED"
    assert response.json()["version"] == 3


def test_driver_with_vehicle_keeps_role_and_status(client):
    create_vehicle(client)
    client.post(f"{API}/vehicle/V1/assign", json={"driver_id": "D1", "destination": "Dock"})

    response = client.put(f"{API}/driver/D1", json={"is_active": False})
    assert response.status_code == 409
    response = client.put(f"{API}/driver/D1", json={"role": "VEHICLE_MASTER"})
    assert response.status_code == 409

    response = client.put(f"{API}/driver/D1", json={"name": "Daniel Driver", "is_active": True})
    assert response.status_code == 200
    assert response.json()["name"] == "Daniel Driver"
    assert response.json()["current_vehicle_id"] == "V1"

    response = client.put(f"{API}/driver/D2", json={"is_active": False})
    assert response.status_code == 200
    assert response.json()["is_active"] is False
    assert [d["id"] for d in client.get(f"{API}/driver/available").json()] == []


def test_blank_destination_is_rejected(client):
    create_vehicle(client)

    response = client.post(f"{API}/vehicle/V1/assign", json={"driver_id": "D1", "destination": "   "})

    assert response.status_code == 422


def test_request_approval_flow(client, caller):
    create_vehicle(client, "V2")

    caller["ctx"] = DRIVER
    response = client.post(
        f"{API}/request", json={"vehicle_id": "V2", "destination": "Warehouse C", "reason": "Restock"}
    )
    assert response.status_code == 201
    request_id = response.json()["id"]
    assert response.json()["status"] == "PENDING"

    response = client.post(f"{API}/request/{request_id}/approve")
    assert response.status_code == 403

    caller["ctx"] = MASTER
    assert client.get(f"{API}/vehicle/stats").json()["pending_requests"] == 1
    assert [d["id"] for d in client.get(f"{API}/driver/available").json()] == ["D1", "D2"]

    response = client.post(f"{API}/request/{request_id}/approve")
    assert response.status_code == 200
    assert response.json()["status"] == "APPROVED"
    assert response.json()["responded_by"] == "M1"

    vehicle = client.get(f"{API}/vehicle/V2").json()
    assert vehicle["status"] == "ASSIGNED"
    assert vehicle["driver_id"] == "D1"
    assert vehicle["destination"] == "Warehouse C"
    assert [d["id"] for d in client.get(f"{API}/driver/available").json()] == ["D2"]

    assert client.post(f"{API}/request/{request_id}/approve").status_code == 409
    assert client.post(f"{API}/request/{request_id}/reject").status_code == 409


def test_missing_token_is_unauthorized(client):
    app.dependency_overrides.pop(deps.get_session_context)
    app.dependency_overrides[deps.get_identity_client] = lambda: AsyncMock()

    response = client.get(f"{API}/auth/me")

    assert response.status_code == 401
    assert response.json()["code"] == "authentication_failed"


def test_rejected_token_is_unauthorized(client):
    app.dependency_overrides.pop(deps.get_session_context)
    identity = AsyncMock()
    identity.lookup.side_effect = AuthenticationFailure("Invalid email or password")
    app.dependency_overrides[deps.get_identity_client] = lambda: identity

    response = client.get(f"{API}/auth/me", headers={"Authorization": "Bearer expired"})

    assert response.status_code == 401
    identity.lookup.assert_awaited_once_with("expired")


def test_sign_in(client):
    identity = AsyncMock()
    identity.sign_in_with_password.return_value = {
        "uid": "M1",
        "email": "maya@example.com",
        "id_token": "id-token",
        "refresh_token": "refresh-token",
        "expires_in": 3600,
    }
    app.dependency_overrides[deps.get_identity_client] = lambda: identity

    response = client.post(f"{API}/auth/sign-in", json={"email": "maya@example.com", "password": "secret"})

    assert response.status_code == 200
    body = response.json()
    assert body["role"] == "VEHICLE_MASTER"
    assert body["id_token"] == "id-token"
    assert body["driver"]["email"] == "maya@example.com"


def test_signed_out_token_stops_working(client):
    app.dependency_overrides.pop(deps.get_session_context)
    identity = AsyncMock()
    identity.lookup.return_value = "D1"
    service = AuthService(identity, cache=FakeCache())
    app.dependency_overrides[deps.get_auth_service] = lambda: service
    headers = {"Authorization": "Bearer id-token"}

    assert client.get(f"{API}/auth/me", headers=headers).json()["uid"] == "D1"
    assert client.post(f"{API}/auth/sign-out", headers=headers).status_code == 204

    response = client.get(f"{API}/auth/me", headers=headers)
    assert response.status_code == 401
    assert response.json()["detail"] == "Session has been signed out"


def test_missing_identity_key_is_a_server_error(client, monkeypatch):
    monkeypatch.setattr("app.services.clients.identity.settings.IDENTITY_API_KEY", None)
    deps.get_identity_client.cache_clear()

    response = client.post(f"{API}/auth/sign-in", json={"email": "maya@example.com", "password": "secret"})

    assert response.status_code == 500
    assert response.json()["code"] == "configuration_error"


def test_vehicle_subscription_pushes_snapshots(client, feed):
    create_vehicle(client, "V1")

    with client.websocket_connect(f"{API}/subscribe/vehicles?token=test") as websocket:
        first = websocket.receive_json()
        assert first["collection"] == "vehicles"
        assert [v["id"] for v in first["documents"]] == ["V1"]

        create_vehicle(client, "V2")

        second = websocket.receive_json()
        assert {v["id"] for v in second["documents"]} == {"V1", "V2"}

    assert feed.listener_count == 0


def test_unknown_subscription_is_refused(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(f"{API}/subscribe/invoices?token=test") as websocket:
            websocket.receive_json()
