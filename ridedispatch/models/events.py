"""Payloads pushed to drivers and broadcast to observers."""

from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel

from ridedispatch.models.dispatch import DispatchPhase
from ridedispatch.models.driver import Location, VehicleClass


class RideRequestPayload(BaseModel):
    """Ride offer pushed to a single candidate driver."""

    type: Literal["ride_request"] = "ride_request"

    ride_id: UUID
    pickup: Location
    dropoff: Location
    vehicle_class: VehicleClass
    estimated_fare: Decimal
    distance_km: float


class MatchingUpdatePayload(BaseModel):
    """Dispatch phase change for observers."""

    ride_id: UUID
    phase: DispatchPhase
    radius_km: float


class RideTimeoutPayload(BaseModel):
    """No driver accepted before the final phase elapsed."""

    ride_id: UUID
    message: str = "No drivers available, please retry"


class RideAcceptedPayload(BaseModel):
    """A driver won the claim for a ride."""

    ride_id: UUID
    driver_id: str


class RideStatusPayload(BaseModel):
    """Generic ride status change (started, completed, cancelled)."""

    ride_id: UUID
    status: str
    driver_id: str | None = None
    reason: str | None = None


class DriverStatusPayload(BaseModel):
    """Driver availability change for admin consoles."""

    driver_id: str
    online: bool
    location: Location | None = None
