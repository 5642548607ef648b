"""Fare estimate quoted when a ride is requested."""

from decimal import ROUND_HALF_UP, Decimal

from ridedispatch.config import Settings
from ridedispatch.engine.geo import haversine_km
from ridedispatch.models.driver import Location, VehicleClass


def estimate_fare(
    pickup: Location,
    dropoff: Location,
    vehicle_class: VehicleClass,
    settings: Settings,
) -> Decimal:
    """Flat base fare per vehicle class plus an optional per-km component."""
    base = Decimal(str(settings.fare_base.get(vehicle_class.value, 0.0)))
    per_km = Decimal(str(settings.fare_per_km))
    trip_km = Decimal(str(haversine_km(pickup, dropoff)))

    return (base + per_km * trip_km).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
