"""State management modules."""

from ridedispatch.state.drivers import (
    DriverDirectory,
    InMemoryDriverDirectory,
    RedisDriverDirectory,
)
from ridedispatch.state.manager import StateManager
from ridedispatch.state.rides import InMemoryRideStore, RedisRideStore, RideStore

__all__ = [
    "StateManager",
    "RideStore",
    "InMemoryRideStore",
    "RedisRideStore",
    "DriverDirectory",
    "InMemoryDriverDirectory",
    "RedisDriverDirectory",
]
