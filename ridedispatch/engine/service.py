"""Dispatch service: the operations the surrounding application calls."""

from datetime import timedelta
from decimal import Decimal
from typing import Any, Awaitable
from uuid import UUID

from ridedispatch.config import Settings, get_settings
from ridedispatch.engine.coordinator import DispatchCoordinator
from ridedispatch.engine.fares import estimate_fare
from ridedispatch.engine.lifecycle import RideLifecycleManager
from ridedispatch.engine.notifications import NotificationChannel
from ridedispatch.engine.presence import PresenceRegistry
from ridedispatch.engine.scorer import CandidateScorer, ScoringConfig
from ridedispatch.errors import InvalidTransition, RideNotFound
from ridedispatch.models.dispatch import ClaimResult, NearbyDriver, TransitionResult
from ridedispatch.models.driver import DriverPresence, Location, VehicleClass
from ridedispatch.models.events import DriverStatusPayload
from ridedispatch.models.ride import Ride, RideStatus
from ridedispatch.state.drivers import DriverDirectory
from ridedispatch.state.rides import RideStore
from ridedispatch.utils.logging import get_logger

logger = get_logger(__name__)


class DispatchService:
    """
    Wires the dispatch engine together.

    Lifecycle errors never escape this class: InvalidTransition and
    RideNotFound come back as TransitionResult / ClaimResult values.
    """

    def __init__(
        self,
        store: RideStore,
        directory: DriverDirectory,
        channel: NotificationChannel,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.channel = channel

        self.registry = PresenceRegistry()
        self.scorer = CandidateScorer(
            self.registry,
            directory,
            ScoringConfig.from_settings(self.settings),
        )
        self.lifecycle = RideLifecycleManager(store, channel)
        self.coordinator = DispatchCoordinator(
            self.registry,
            self.scorer,
            self.lifecycle,
            channel,
            settings=self.settings,
        )

    # Rides

    async def request_ride(
        self,
        rider_id: str,
        pickup: Location,
        dropoff: Location,
        vehicle_class: VehicleClass,
    ) -> UUID:
        """Create a pending ride and start dispatching it."""
        fare = estimate_fare(pickup, dropoff, vehicle_class, self.settings)
        ride = await self.lifecycle.create_ride(rider_id, pickup, dropoff, vehicle_class, fare)

        await self.coordinator.start(ride)

        return ride.id

    async def accept_ride(self, ride_id: UUID, driver_id: str) -> ClaimResult:
        """A driver accepts a ride; exactly one driver can win."""
        return await self.lifecycle.claim(ride_id, driver_id)

    async def cancel_ride(self, ride_id: UUID, reason: str) -> TransitionResult:
        return await self._run_transition(
            ride_id, RideStatus.CANCELLED, self.lifecycle.cancel(ride_id, reason)
        )

    async def start_ride(self, ride_id: UUID) -> TransitionResult:
        return await self._run_transition(
            ride_id, RideStatus.IN_PROGRESS, self.lifecycle.start(ride_id)
        )

    async def complete_ride(
        self,
        ride_id: UUID,
        actual_fare: Decimal | None = None,
    ) -> TransitionResult:
        return await self._run_transition(
            ride_id, RideStatus.COMPLETED, self.lifecycle.complete(ride_id, actual_fare)
        )

    async def get_ride(self, ride_id: UUID) -> Ride | None:
        return await self.lifecycle.get_ride(ride_id)

    async def _run_transition(
        self,
        ride_id: UUID,
        requested: RideStatus,
        operation: Awaitable[Ride],
    ) -> TransitionResult:
        try:
            ride = await operation
        except RideNotFound as e:
            return TransitionResult(success=False, error=str(e), requested_status=requested)
        except InvalidTransition as e:
            logger.info(
                "invalid_transition",
                ride_id=str(ride_id),
                current=e.current,
                requested=e.requested,
            )
            return TransitionResult(
                success=False,
                error=str(e),
                current_status=RideStatus(e.current),
                requested_status=requested,
            )

        return TransitionResult(success=True, ride=ride)

    # Presence

    async def report_presence(
        self,
        driver_id: str,
        online: bool,
        location: Location | None = None,
        vehicle_class: VehicleClass | None = None,
        rating: float | None = None,
        channel_ref: Any = None,
    ) -> DriverPresence | None:
        """Apply a driver's availability report."""
        if online:
            self.registry.set_online(driver_id, location, vehicle_class, rating)
            if channel_ref is not None:
                self.registry.attach_channel(driver_id, channel_ref)
        else:
            self.registry.set_offline(driver_id)

        presence = self.registry.get(driver_id)

        if presence is not None:
            await self._broadcast_driver_status(presence)

        return presence

    def update_location(self, driver_id: str, location: Location) -> None:
        self.registry.update_location(driver_id, location)

    async def connect_driver(self, driver_id: str, channel_ref: Any) -> DriverPresence:
        """Bind a driver's live connection."""
        presence = self.registry.attach_channel(driver_id, channel_ref)
        await self._broadcast_driver_status(presence)
        return presence

    async def disconnect_driver(self, channel_ref: Any) -> None:
        driver_id = self.registry.detach_channel(channel_ref)

        if driver_id is None:
            return

        presence = self.registry.get(driver_id)
        if presence is not None:
            await self._broadcast_driver_status(presence)

    async def nearby_drivers(
        self,
        pickup: Location,
        vehicle_class: VehicleClass,
    ) -> list[NearbyDriver]:
        return await self.scorer.nearest(
            pickup,
            vehicle_class,
            max_km=self.settings.nearby_radius_km,
            limit=self.settings.nearby_limit,
        )

    def sweep_presence(self) -> list[str]:
        return self.registry.sweep(timedelta(seconds=self.settings.presence_inactivity_seconds))

    async def shutdown(self) -> None:
        await self.coordinator.shutdown()

    async def _broadcast_driver_status(self, presence: DriverPresence) -> None:
        payload = DriverStatusPayload(
            driver_id=presence.driver_id,
            online=presence.online,
            location=presence.location,
        )
        await self.channel.broadcast("driver_status_changed", payload.model_dump(mode="json"))
