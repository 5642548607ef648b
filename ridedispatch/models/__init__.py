"""Data models for the ride dispatch engine."""

from ridedispatch.models.dispatch import (
    ClaimResult,
    DispatchCandidate,
    DispatchPhase,
    DispatchSession,
    NearbyDriver,
    RejectReason,
    TransitionResult,
)
from ridedispatch.models.driver import DriverPresence, DriverProfile, Location, VehicleClass
from ridedispatch.models.ride import Ride, RideStatus

__all__ = [
    # Driver
    "Location",
    "VehicleClass",
    "DriverPresence",
    "DriverProfile",
    # Ride
    "Ride",
    "RideStatus",
    # Dispatch
    "DispatchCandidate",
    "DispatchPhase",
    "DispatchSession",
    "NearbyDriver",
    "RejectReason",
    "ClaimResult",
    "TransitionResult",
]
