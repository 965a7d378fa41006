"""
HTTP flow tests.

Drives the FastAPI app end to end: auth boundary, trip lifecycle, SOS
and route optimization, with the error envelope checked on failures.
"""

from datetime import timedelta

import pytest

from climaroute.app.core.jwt import create_access_token, decode_access_token
from climaroute.app.schemas.notification import NotificationCategory

from conftest import auth_headers, DRIVER_EMAIL, OTHER_DRIVER_EMAIL, ADMIN_EMAIL

TRIP_REQUEST = {"vehicle_id": "TRUCK-7", "origin": "Warehouse-1", "destination": "Depot-9"}


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_correlation_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Correlation-ID": "dispatch-42"})
    assert response.headers["X-Correlation-ID"] == "dispatch-42"
    assert float(response.headers["X-Process-Time-Ms"]) >= 0

    generated = await client.get("/health")
    assert generated.headers["X-Correlation-ID"]


def test_token_carries_driver_identity():
    token = create_access_token(DRIVER_EMAIL, "user", vehicle_id="TRUCK-7")
    claims = decode_access_token(token)
    assert claims["sub"] == DRIVER_EMAIL
    assert claims["role"] == "user"
    assert claims["vehicle_id"] == "TRUCK-7"

    assert "role" not in decode_access_token(create_access_token(DRIVER_EMAIL))
    expired = create_access_token(DRIVER_EMAIL, "user", expires_delta=timedelta(seconds=-1))
    assert decode_access_token(expired) is None


@pytest.mark.asyncio
async def test_requests_without_token_are_rejected(client):
    response = await client.get("/v1/trips")
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_invalid_token_is_unauthorized(client):
    response = await client.get("/v1/trips", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["error_code"] == "ERR_AUTH_001"


@pytest.mark.asyncio
async def test_trip_lifecycle_over_http(client):
    headers = auth_headers()

    response = await client.post("/v1/trips", json=TRIP_REQUEST, headers=headers)
    assert response.status_code == 201
    trip = response.json()
    assert trip["status"] == "InProgress"
    assert trip["driver_email"] == DRIVER_EMAIL

    response = await client.post(
        f"/v1/trips/{trip['id']}/telemetry",
        json={"latitude": 1.0, "longitude": 2.0, "speed": 40, "eta": "10:45"},
        headers=headers
    )
    assert response.status_code == 200
    assert response.json()["eta"] == "10:45"

    response = await client.post(
        f"/v1/trips/{trip['id']}/complete",
        json={"end_time": "11:00", "latitude": 1.0, "longitude": 2.0},
        headers=headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "Completed"
    assert response.json()["end_time"] == "11:00"

    response = await client.post(
        f"/v1/trips/{trip['id']}/telemetry",
        json={"latitude": 1.1, "longitude": 2.1, "speed": 10},
        headers=headers
    )
    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_INVALID_TRANSITION"


@pytest.mark.asyncio
async def test_trip_visibility_follows_token(client):
    response = await client.post("/v1/trips", json=TRIP_REQUEST, headers=auth_headers())
    trip_id = response.json()["id"]

    other = await client.get(f"/v1/trips/{trip_id}", headers=auth_headers(OTHER_DRIVER_EMAIL))
    assert other.status_code == 403
    assert other.json()["error_code"] == "ERR_PERM_001"

    listing = await client.get("/v1/trips", headers=auth_headers(OTHER_DRIVER_EMAIL))
    assert listing.json()["total"] == 0

    admin = await client.get("/v1/trips/active", headers=auth_headers(ADMIN_EMAIL, "admin"))
    assert admin.json()["total"] == 1

    missing = await client.get("/v1/trips/9999", headers=auth_headers())
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_token_without_role_is_forbidden(client):
    token = create_access_token(DRIVER_EMAIL)
    response = await client.get("/v1/trips", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_negative_speed_is_validation_error(client):
    response = await client.post("/v1/trips", json=TRIP_REQUEST, headers=auth_headers())
    trip_id = response.json()["id"]

    response = await client.post(
        f"/v1/trips/{trip_id}/telemetry",
        json={"latitude": 1.0, "longitude": 2.0, "speed": -1},
        headers=auth_headers()
    )
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_sos_flow_over_http(client, sink):
    headers = auth_headers()
    body = {"type": "Medical", "location": "40.75,-73.95"}

    response = await client.post("/v1/sos", json=body, headers=headers)
    assert response.status_code == 201
    alert = response.json()
    assert alert["is_active"] is True

    duplicate = await client.post("/v1/sos", json=body, headers=headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["error_code"] == "ERR_CONFLICT"

    active = await client.get("/v1/sos/active", headers=headers)
    assert active.json()["id"] == alert["id"]

    foreign = await client.post(f"/v1/sos/{alert['id']}/resolve", headers=auth_headers(OTHER_DRIVER_EMAIL))
    assert foreign.status_code == 403

    resolved = await client.post(f"/v1/sos/{alert['id']}/resolve", headers=headers)
    assert resolved.status_code == 200
    assert resolved.json()["is_active"] is False

    again = await client.post(f"/v1/sos/{alert['id']}/resolve", headers=headers)
    assert again.status_code == 409
    assert again.json()["error_code"] == "ERR_ALREADY_RESOLVED"

    assert len(sink.of_category(NotificationCategory.SOS)) == 1


@pytest.mark.asyncio
async def test_sos_listing_is_admin_only(client):
    await client.post("/v1/sos", json={"type": "Theft", "location": "Lot 3"}, headers=auth_headers())

    forbidden = await client.get("/v1/sos", headers=auth_headers())
    assert forbidden.status_code == 403

    listing = await client.get("/v1/sos", headers=auth_headers(ADMIN_EMAIL, "admin"))
    assert listing.status_code == 200
    assert listing.json()["total"] == 1

    lookup = await client.get(
        "/v1/sos/active", params={"driver_email": DRIVER_EMAIL}, headers=auth_headers(OTHER_DRIVER_EMAIL)
    )
    assert lookup.status_code == 403


@pytest.mark.asyncio
async def test_movement_and_break_mode(client):
    headers = auth_headers()
    await client.post("/v1/trips", json=TRIP_REQUEST, headers=headers)

    response = await client.put("/v1/sos/break-mode", json={"active": True}, headers=headers)
    assert response.json() == {"driver_email": DRIVER_EMAIL, "break_mode": True}

    response = await client.post(
        "/v1/sos/movement",
        json={"location": "lot", "is_moving": False, "timestamp": "2026-03-01T08:00:00Z"},
        headers=headers
    )
    assert response.status_code == 200
    assert response.json()["break_mode"] is True
    assert response.json()["alert_emitted"] is False


@pytest.mark.asyncio
async def test_optimize_route_over_http(client):
    response = await client.post(
        "/v1/routes/optimize",
        json={"origin": "Warehouse-1", "destination": "Depot-9"},
        headers=auth_headers()
    )
    assert response.status_code == 200
    result = response.json()
    assert result["geometry_source"] == "provider"
    assert len(result["alternatives"]) == 3
    scores = [c["risk_score"] for c in result["alternatives"]]
    assert scores == sorted(scores)


@pytest.mark.asyncio
async def test_optimize_unknown_place(client):
    response = await client.post(
        "/v1/routes/optimize",
        json={"origin": "Atlantis", "destination": "Depot-9"},
        headers=auth_headers()
    )
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_optimize_path_source_down_is_503(client, orchestration, mocker):
    mocker.patch.object(
        orchestration.path_source, "find_paths", side_effect=ConnectionError("routing backend down")
    )
    response = await client.post(
        "/v1/routes/optimize",
        json={"origin": "Warehouse-1", "destination": "Depot-9"},
        headers=auth_headers()
    )
    assert response.status_code == 503
    assert response.json()["details"]["retryable"] is True
