"""API routes for the ride dispatch engine."""

from decimal import Decimal
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from ridedispatch.api.websocket import manager
from ridedispatch.config import get_settings
from ridedispatch.engine.service import DispatchService
from ridedispatch.models.dispatch import NearbyDriver, TransitionResult
from ridedispatch.models.driver import DriverPresence, Location, VehicleClass
from ridedispatch.models.ride import Ride
from ridedispatch.state.drivers import InMemoryDriverDirectory, RedisDriverDirectory
from ridedispatch.state.manager import get_state_manager
from ridedispatch.state.rides import InMemoryRideStore, RedisRideStore
from ridedispatch.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


# Request/Response Models


class RideRequest(BaseModel):
    """Rider asking for a ride."""

    rider_id: str
    pickup: Location
    dropoff: Location
    vehicle_class: VehicleClass


class RideRequestResponse(BaseModel):
    """Created ride details."""

    ride_id: UUID
    status: str
    estimated_fare: Decimal


class AcceptRideRequest(BaseModel):
    """Driver accepting a ride."""

    driver_id: str


class CompleteRideRequest(BaseModel):
    """Driver finishing a ride."""

    actual_fare: Decimal | None = Field(default=None, ge=0)


class CancelRideRequest(BaseModel):
    """Rider or admin cancelling a ride."""

    reason: str = "rider_cancelled"


class PresenceReport(BaseModel):
    """Driver availability report."""

    online: bool
    location: Location | None = None
    vehicle_class: VehicleClass | None = None
    rating: float | None = Field(default=None, ge=0, le=5)


# Dependency to get the dispatch service

_dispatch_service: DispatchService | None = None


async def get_dispatch_service() -> DispatchService:
    """Get the global dispatch service, built on first use."""
    global _dispatch_service
    if _dispatch_service is None:
        settings = get_settings()

        if settings.state_backend == "redis":
            state_manager = await get_state_manager()
            store = RedisRideStore(state_manager, ttl=settings.ride_ttl)
            directory = RedisDriverDirectory(state_manager)
        else:
            store = InMemoryRideStore()
            directory = InMemoryDriverDirectory()

        _dispatch_service = DispatchService(store, directory, manager, settings)
        logger.info("dispatch_service_initialized", state_backend=settings.state_backend)

    return _dispatch_service


def _raise_for_failure(result: TransitionResult) -> Ride:
    if result.success:
        return result.ride

    if result.current_status is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ride not found")

    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=result.error)


# Ride routes


@router.post(
    "/rides",
    response_model=RideRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_ride(
    request: RideRequest,
    service: DispatchService = Depends(get_dispatch_service),
) -> RideRequestResponse:
    """
    Request a ride.

    Creates a pending ride and starts notifying nearby drivers.
    """
    ride_id = await service.request_ride(
        request.rider_id,
        request.pickup,
        request.dropoff,
        request.vehicle_class,
    )
    ride = await service.get_ride(ride_id)

    return RideRequestResponse(
        ride_id=ride_id,
        status=ride.status.value,
        estimated_fare=ride.estimated_fare,
    )


@router.get("/rides/{ride_id}", response_model=Ride)
async def get_ride(
    ride_id: UUID,
    service: DispatchService = Depends(get_dispatch_service),
) -> Ride:
    """Get ride details."""
    ride = await service.get_ride(ride_id)

    if not ride:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Ride not found",
        )

    return ride


@router.post("/rides/{ride_id}/accept", response_model=Ride)
async def accept_ride(
    ride_id: UUID,
    request: AcceptRideRequest,
    service: DispatchService = Depends(get_dispatch_service),
) -> Ride:
    """Accept a ride on behalf of a driver. Only the first driver wins."""
    result = await service.accept_ride(ride_id, request.driver_id)

    if not result.accepted:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=result.message,
        )

    return result.ride


@router.post("/rides/{ride_id}/start", response_model=Ride)
async def start_ride(
    ride_id: UUID,
    service: DispatchService = Depends(get_dispatch_service),
) -> Ride:
    """Mark the rider as picked up."""
    return _raise_for_failure(await service.start_ride(ride_id))


@router.post("/rides/{ride_id}/complete", response_model=Ride)
async def complete_ride(
    ride_id: UUID,
    request: CompleteRideRequest = CompleteRideRequest(),
    service: DispatchService = Depends(get_dispatch_service),
) -> Ride:
    """Finish a ride."""
    return _raise_for_failure(await service.complete_ride(ride_id, request.actual_fare))


@router.post("/rides/{ride_id}/cancel", response_model=Ride)
async def cancel_ride(
    ride_id: UUID,
    request: CancelRideRequest = CancelRideRequest(),
    service: DispatchService = Depends(get_dispatch_service),
) -> Ride:
    """Cancel a pending or accepted ride."""
    return _raise_for_failure(await service.cancel_ride(ride_id, request.reason))


# Driver routes


@router.put("/drivers/{driver_id}/presence", response_model=DriverPresence)
async def report_presence(
    driver_id: str,
    report: PresenceReport,
    service: DispatchService = Depends(get_dispatch_service),
) -> DriverPresence:
    """Report a driver's availability and location."""
    presence = await service.report_presence(
        driver_id,
        report.online,
        location=report.location,
        vehicle_class=report.vehicle_class,
        rating=report.rating,
    )

    if presence is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Driver not known",
        )

    return presence


@router.get("/drivers/nearby", response_model=list[NearbyDriver])
async def nearby_drivers(
    lat: float = Query(ge=-90, le=90),
    lng: float = Query(ge=-180, le=180),
    vehicle_class: VehicleClass = VehicleClass.COMPACT,
    service: DispatchService = Depends(get_dispatch_service),
) -> list[NearbyDriver]:
    """Closest online drivers around a point."""
    return await service.nearby_drivers(Location(lat=lat, lng=lng), vehicle_class)


# Admin endpoints


@router.get("/admin/drivers", response_model=list[DriverPresence])
async def get_driver_presence(
    service: DispatchService = Depends(get_dispatch_service),
) -> list[DriverPresence]:
    """All known drivers, online or not."""
    return service.registry.snapshot()


@router.get("/admin/dispatch/sessions")
async def get_dispatch_sessions(
    service: DispatchService = Depends(get_dispatch_service),
) -> dict[str, Any]:
    """Rides currently being dispatched."""
    sessions = service.coordinator.active_sessions()

    return {
        "active_sessions": len(sessions),
        "sessions": sessions,
        "connected_drivers": len(manager.driver_connections),
        "observers": len(manager.observer_connections),
    }
