"""Dispatch session, candidate and result models."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from pydantic import BaseModel

from ridedispatch.models.driver import Location, VehicleClass
from ridedispatch.models.ride import Ride, RideStatus
from ridedispatch.utils.tracing import DispatchTracer


class DispatchPhase(str, Enum):
    """Rounds of the dispatch protocol."""

    INITIAL = "initial"
    EXPANDED = "expanded"
    EXPIRED = "expired"


class DispatchCandidate(BaseModel):
    """A driver ranked for one dispatch phase."""

    driver_id: str
    distance_km: float
    score: float
    vehicle_class: VehicleClass | None = None
    rating: float
    completion_rate: float


@dataclass
class DispatchSession:
    """Ephemeral matching state of one pending ride."""

    ride_id: UUID
    current_radius_km: float
    phase: DispatchPhase = DispatchPhase.INITIAL
    notified_driver_ids: set[str] = field(default_factory=set)
    active: bool = True
    timer_failures: int = 0
    timer: asyncio.Task | None = field(default=None, repr=False)
    tracer: DispatchTracer | None = field(default=None, repr=False)

    def summary(self) -> dict:
        return {
            "ride_id": str(self.ride_id),
            "phase": self.phase.value,
            "current_radius_km": self.current_radius_km,
            "notified_driver_ids": sorted(self.notified_driver_ids),
        }


class RejectReason(str, Enum):
    """Why a claim did not bind a driver to a ride."""

    ALREADY_RESOLVED = "already_resolved"
    RIDE_NOT_FOUND = "ride_not_found"


class ClaimResult(BaseModel):
    """Outcome of a driver's attempt to accept a ride."""

    accepted: bool
    ride: Ride | None = None
    reason: RejectReason | None = None
    message: str | None = None


class TransitionResult(BaseModel):
    """Outcome of a lifecycle operation as returned to API callers."""

    success: bool
    ride: Ride | None = None
    error: str | None = None
    current_status: RideStatus | None = None
    requested_status: RideStatus | None = None


class NearbyDriver(BaseModel):
    """Online driver close to a point, for rider-facing maps."""

    driver_id: str
    name: str | None = None
    rating: float
    vehicle_class: VehicleClass | None = None
    location: Location
    distance_km: float
