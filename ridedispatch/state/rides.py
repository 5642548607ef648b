"""Ride persistence with an atomic compare-and-set on ride status."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Iterable
from uuid import UUID

from redis.exceptions import WatchError

from ridedispatch.models.ride import Ride, RideStatus
from ridedispatch.state.manager import StateManager
from ridedispatch.utils.logging import get_logger

logger = get_logger(__name__)


class RideStore(ABC):
    """Storage contract the lifecycle manager relies on."""

    @abstractmethod
    async def create_ride(self, ride: Ride) -> Ride:
        """Persist a new ride."""

    @abstractmethod
    async def get_ride(self, ride_id: UUID) -> Ride | None:
        """Load a ride, or None if it does not exist."""

    @abstractmethod
    async def update_ride_status(
        self,
        ride_id: UUID,
        expected_status: RideStatus,
        fields: dict[str, Any],
    ) -> Ride | None:
        """
        Apply fields only if the stored status still equals expected_status.

        Returns the updated ride, or None when the ride is missing or its
        status changed since the caller last read it.
        """

    @abstractmethod
    async def list_rides(self, statuses: Iterable[RideStatus] | None = None) -> list[Ride]:
        """List rides, optionally restricted to some statuses."""


class InMemoryRideStore(RideStore):
    """Process-local ride store with one lock per ride."""

    def __init__(self) -> None:
        self._rides: dict[UUID, Ride] = {}
        self._locks: dict[UUID, asyncio.Lock] = {}

    def _lock_for(self, ride_id: UUID) -> asyncio.Lock:
        return self._locks.setdefault(ride_id, asyncio.Lock())

    async def create_ride(self, ride: Ride) -> Ride:
        self._rides[ride.id] = ride.model_copy()
        return ride

    async def get_ride(self, ride_id: UUID) -> Ride | None:
        ride = self._rides.get(ride_id)
        return ride.model_copy() if ride else None

    async def update_ride_status(
        self,
        ride_id: UUID,
        expected_status: RideStatus,
        fields: dict[str, Any],
    ) -> Ride | None:
        async with self._lock_for(ride_id):
            ride = self._rides.get(ride_id)
            if ride is None or ride.status != expected_status:
                return None

            updated = ride.model_copy(update=fields)
            self._rides[ride_id] = updated

        if updated.status.is_terminal:
            self._locks.pop(ride_id, None)

        return updated.model_copy()

    async def list_rides(self, statuses: Iterable[RideStatus] | None = None) -> list[Ride]:
        wanted = set(statuses) if statuses is not None else None
        return [
            ride.model_copy()
            for ride in self._rides.values()
            if wanted is None or ride.status in wanted
        ]


class RedisRideStore(RideStore):
    """Ride store keeping JSON documents in Redis."""

    def __init__(self, state_manager: StateManager, ttl: int | None = None):
        self.state = state_manager
        self.ttl = ttl

    def _ride_key(self, ride_id: UUID) -> str:
        """Generate Redis key for a ride."""
        return f"ride:{ride_id}"

    async def create_ride(self, ride: Ride) -> Ride:
        await self.state.set(
            self._ride_key(ride.id),
            ride.model_dump(mode="json"),
            ttl=self.ttl,
        )
        return ride

    async def get_ride(self, ride_id: UUID) -> Ride | None:
        data = await self.state.get(self._ride_key(ride_id))

        if not data:
            return None

        return Ride(**data)

    async def update_ride_status(
        self,
        ride_id: UUID,
        expected_status: RideStatus,
        fields: dict[str, Any],
    ) -> Ride | None:
        key = self._ride_key(ride_id)
        client = await self.state.client()

        async with client.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if not raw:
                        return None

                    ride = Ride.model_validate_json(raw)
                    if ride.status != expected_status:
                        return None

                    updated = ride.model_copy(update=fields)
                    pipe.multi()
                    pipe.set(key, updated.model_dump_json(), ex=self.ttl)
                    await pipe.execute()
                    return updated
                except WatchError:
                    # Another writer touched the ride; re-read and compare again
                    logger.debug("ride_update_retry", ride_id=str(ride_id))
                    continue

    async def list_rides(self, statuses: Iterable[RideStatus] | None = None) -> list[Ride]:
        wanted = set(statuses) if statuses is not None else None
        rides = []

        async for key in self.state.scan_keys("ride:*"):
            data = await self.state.get(key)
            if not data:
                continue
            ride = Ride(**data)
            if wanted is None or ride.status in wanted:
                rides.append(ride)

        return rides
