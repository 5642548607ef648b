"""Exceptions raised inside the dispatch engine."""

from uuid import UUID


class DispatchError(Exception):
    """Base class for dispatch engine errors."""


class RideNotFound(DispatchError):
    """Raised when a ride id does not resolve to a stored ride."""

    def __init__(self, ride_id: UUID):
        self.ride_id = ride_id
        super().__init__(f"Ride {ride_id} not found")


class InvalidTransition(DispatchError):
    """Raised when a ride status change is not allowed from its current status."""

    def __init__(self, ride_id: UUID, current: str, requested: str):
        self.ride_id = ride_id
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move ride {ride_id} from {current} to {requested}")


class ChannelUnavailable(DispatchError):
    """Raised by a notification channel when a driver cannot be reached."""

    def __init__(self, driver_id: str):
        self.driver_id = driver_id
        super().__init__(f"No live channel for driver {driver_id}")
