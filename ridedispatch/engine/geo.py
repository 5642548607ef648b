"""Great-circle distance."""

import math

from ridedispatch.models.driver import Location

EARTH_RADIUS_KM = 6371.0


def haversine_km(origin: Location, destination: Location) -> float:
    """Calculate distance between two locations in km."""
    lat1, lng1 = math.radians(origin.lat), math.radians(origin.lng)
    lat2, lng2 = math.radians(destination.lat), math.radians(destination.lng)

    dlat = lat2 - lat1
    dlng = lng2 - lng1

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    c = 2 * math.asin(min(1.0, math.sqrt(a)))

    return EARTH_RADIUS_KM * c
