"""Tests for the HTTP API."""

from uuid import uuid4

import pytest
from httpx import AsyncClient

PICKUP = {"lat": 40.7128, "lng": -74.0060}
DROPOFF = {"lat": 40.7580, "lng": -73.9855}


async def create_ride(client: AsyncClient, vehicle_class: str = "compact") -> str:
    response = await client.post(
        "/api/v1/rides",
        json={
            "rider_id": "rider-1",
            "pickup": PICKUP,
            "dropoff": DROPOFF,
            "vehicle_class": vehicle_class,
        },
    )
    assert response.status_code == 201
    return response.json()["ride_id"]


@pytest.mark.asyncio
async def test_health_check(test_client: AsyncClient) -> None:
    response = await test_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "ride-dispatch"}


@pytest.mark.asyncio
async def test_request_ride(test_client: AsyncClient) -> None:
    response = await test_client.post(
        "/api/v1/rides",
        json={
            "rider_id": "rider-1",
            "pickup": PICKUP,
            "dropoff": DROPOFF,
            "vehicle_class": "premium",
        },
    )

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "pending"
    assert data["estimated_fare"] == "80.00"


@pytest.mark.asyncio
async def test_request_ride_rejects_bad_coordinates(test_client: AsyncClient) -> None:
    response = await test_client.post(
        "/api/v1/rides",
        json={
            "rider_id": "rider-1",
            "pickup": {"lat": 123.0, "lng": 0.0},
            "dropoff": DROPOFF,
            "vehicle_class": "compact",
        },
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_get_ride(test_client: AsyncClient) -> None:
    ride_id = await create_ride(test_client)

    response = await test_client.get(f"/api/v1/rides/{ride_id}")

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == ride_id
    assert data["rider_id"] == "rider-1"
    assert data["estimated_fare"] == "30.00"


@pytest.mark.asyncio
async def test_get_unknown_ride(test_client: AsyncClient) -> None:
    response = await test_client.get(f"/api/v1/rides/{uuid4()}")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_second_accept_conflicts(test_client: AsyncClient) -> None:
    ride_id = await create_ride(test_client)

    first = await test_client.post(f"/api/v1/rides/{ride_id}/accept", json={"driver_id": "d1"})
    second = await test_client.post(f"/api/v1/rides/{ride_id}/accept", json={"driver_id": "d2"})

    assert first.status_code == 200
    assert first.json()["driver_id"] == "d1"
    assert second.status_code == 409
    assert second.json()["detail"] == "Ride is no longer available"


@pytest.mark.asyncio
async def test_ride_through_completion(test_client: AsyncClient) -> None:
    ride_id = await create_ride(test_client)
    await test_client.post(f"/api/v1/rides/{ride_id}/accept", json={"driver_id": "d1"})

    started = await test_client.post(f"/api/v1/rides/{ride_id}/start")
    completed = await test_client.post(
        f"/api/v1/rides/{ride_id}/complete", json={"actual_fare": "35.50"}
    )

    assert started.status_code == 200
    assert started.json()["status"] == "in_progress"
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"
    assert completed.json()["actual_fare"] == "35.50"


@pytest.mark.asyncio
async def test_complete_before_start_conflicts(test_client: AsyncClient) -> None:
    ride_id = await create_ride(test_client)
    await test_client.post(f"/api/v1/rides/{ride_id}/accept", json={"driver_id": "d1"})

    response = await test_client.post(f"/api/v1/rides/{ride_id}/complete")

    assert response.status_code == 409
    assert "accepted" in response.json()["detail"]


@pytest.mark.asyncio
async def test_cancel_ride(test_client: AsyncClient) -> None:
    ride_id = await create_ride(test_client)

    cancelled = await test_client.post(
        f"/api/v1/rides/{ride_id}/cancel", json={"reason": "changed_plans"}
    )
    accept = await test_client.post(f"/api/v1/rides/{ride_id}/accept", json={"driver_id": "d1"})

    assert cancelled.status_code == 200
    assert cancelled.json()["cancellation_reason"] == "changed_plans"
    assert accept.status_code == 409


@pytest.mark.asyncio
async def test_transition_on_unknown_ride(test_client: AsyncClient) -> None:
    response = await test_client.post(f"/api/v1/rides/{uuid4()}/start")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_presence_and_nearby(test_client: AsyncClient, channel) -> None:
    response = await test_client.put(
        "/api/v1/drivers/veteran/presence",
        json={"online": True, "location": {"lat": 40.72, "lng": -74.0}, "vehicle_class": "compact"},
    )

    assert response.status_code == 200
    assert response.json()["online"] is True
    assert "channel_ref" not in response.json()
    assert channel.events("driver_status_changed")[-1]["driver_id"] == "veteran"

    nearby = await test_client.get(
        "/api/v1/drivers/nearby",
        params={"lat": PICKUP["lat"], "lng": PICKUP["lng"], "vehicle_class": "compact"},
    )

    assert nearby.status_code == 200
    drivers = nearby.json()
    assert [d["driver_id"] for d in drivers] == ["veteran"]
    assert drivers[0]["name"] == "Maria Garcia"
    assert drivers[0]["rating"] == 4.8


@pytest.mark.asyncio
async def test_offline_report_for_unknown_driver(test_client: AsyncClient) -> None:
    response = await test_client.put("/api/v1/drivers/nobody/presence", json={"online": False})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_views(test_client: AsyncClient, online_driver) -> None:
    online_driver("d1", 1)
    ride_id = await create_ride(test_client)

    drivers = await test_client.get("/api/v1/admin/drivers")
    sessions = await test_client.get("/api/v1/admin/dispatch/sessions")

    assert [d["driver_id"] for d in drivers.json()] == ["d1"]
    data = sessions.json()
    assert data["active_sessions"] == 1
    assert data["sessions"][0]["ride_id"] == ride_id
    assert data["sessions"][0]["notified_driver_ids"] == ["d1"]
