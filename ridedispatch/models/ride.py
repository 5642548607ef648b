"""Ride models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from ridedispatch.models.driver import Location, VehicleClass


class RideStatus(str, Enum):
    """Ride status progression."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Check if no further transition is possible."""
        return self in (RideStatus.COMPLETED, RideStatus.CANCELLED)


class Ride(BaseModel):
    """Complete ride record."""

    id: UUID = Field(default_factory=uuid4)
    rider_id: str
    driver_id: str | None = None
    status: RideStatus = RideStatus.PENDING

    # Route
    pickup: Location
    dropoff: Location
    vehicle_class: VehicleClass

    # Pricing
    estimated_fare: Decimal = Field(ge=0)
    actual_fare: Decimal | None = Field(default=None, ge=0)

    # Timing
    requested_at: datetime = Field(default_factory=datetime.utcnow)
    accepted_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None

    cancellation_reason: str | None = None
