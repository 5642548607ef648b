"""Driver presence and profile models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class VehicleClass(str, Enum):
    """Vehicle categories offered to riders."""

    COMPACT = "compact"
    COMFORT = "comfort"
    PREMIUM = "premium"


class Location(BaseModel):
    """Geographic location."""

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class DriverPresence(BaseModel):
    """A driver's live availability as known to the dispatch engine."""

    driver_id: str
    online: bool = False
    location: Location | None = None
    vehicle_class: VehicleClass | None = None
    rating_snapshot: float | None = Field(default=None, ge=0, le=5)
    channel_ref: Any = Field(default=None, exclude=True)
    last_updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_connected(self) -> bool:
        """Check if the driver has a live channel."""
        return self.channel_ref is not None

    @property
    def is_matchable(self) -> bool:
        """Check if the entry can be considered for dispatch."""
        return self.online and self.location is not None


class DriverProfile(BaseModel):
    """Authoritative driver attributes served by the driver directory."""

    driver_id: str
    name: str
    rating: float | None = Field(default=None, ge=0, le=5)
    vehicle_class: VehicleClass | None = None
    total_rides: int = Field(default=0, ge=0)
