"""Authoritative ride state machine."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Callable
from uuid import UUID

from ridedispatch.engine.notifications import NotificationChannel
from ridedispatch.errors import InvalidTransition, RideNotFound
from ridedispatch.models.dispatch import ClaimResult, RejectReason
from ridedispatch.models.driver import Location, VehicleClass
from ridedispatch.models.events import RideAcceptedPayload, RideStatusPayload
from ridedispatch.models.ride import Ride, RideStatus
from ridedispatch.state.rides import RideStore
from ridedispatch.utils.logging import DispatchLogger

RIDE_UNAVAILABLE_MESSAGE = "Ride is no longer available"


class RideLifecycleManager:
    """
    Owns every ride status change.

    All writes go through the ride store's compare-and-set, so two
    concurrent changes to the same ride never both commit. Rides are
    independent of each other; no lock spans more than one ride.
    """

    TRANSITIONS = {
        RideStatus.PENDING: [RideStatus.ACCEPTED, RideStatus.CANCELLED],
        RideStatus.ACCEPTED: [RideStatus.IN_PROGRESS, RideStatus.CANCELLED],
        RideStatus.IN_PROGRESS: [RideStatus.COMPLETED],
    }

    def __init__(self, store: RideStore, channel: NotificationChannel):
        self.store = store
        self.channel = channel
        self.logger = DispatchLogger("ride_lifecycle")
        self._pending_exit_hooks: list[Callable[[UUID], None]] = []

    @classmethod
    def can_transition(cls, from_status: RideStatus, to_status: RideStatus) -> bool:
        """Check if a status transition is valid."""
        return to_status in cls.TRANSITIONS.get(from_status, [])

    def on_leave_pending(self, hook: Callable[[UUID], None]) -> None:
        """Register a callback run once a ride stops being pending."""
        self._pending_exit_hooks.append(hook)

    async def create_ride(
        self,
        rider_id: str,
        pickup: Location,
        dropoff: Location,
        vehicle_class: VehicleClass,
        estimated_fare: Decimal,
    ) -> Ride:
        """Create a pending ride."""
        ride = Ride(
            rider_id=rider_id,
            pickup=pickup,
            dropoff=dropoff,
            vehicle_class=vehicle_class,
            estimated_fare=estimated_fare,
        )
        ride = await self.store.create_ride(ride)

        self.logger.logger.info(
            "ride_created",
            ride_id=str(ride.id),
            rider_id=rider_id,
            vehicle_class=vehicle_class.value,
            estimated_fare=str(estimated_fare),
        )

        return ride

    async def get_ride(self, ride_id: UUID) -> Ride | None:
        return await self.store.get_ride(ride_id)

    async def is_pending(self, ride_id: UUID) -> bool:
        ride = await self.store.get_ride(ride_id)
        return ride is not None and ride.status == RideStatus.PENDING

    async def claim(self, ride_id: UUID, driver_id: str) -> ClaimResult:
        """
        Bind a driver to a pending ride.

        Succeeds only if the ride is pending at the moment of the write.
        A losing driver gets a rejection and nothing else changes.

        Args:
            ride_id: Ride being accepted
            driver_id: Driver accepting it

        Returns:
            ClaimResult with the accepted ride, or the rejection reason
        """
        ride = await self.store.update_ride_status(
            ride_id,
            RideStatus.PENDING,
            {
                "status": RideStatus.ACCEPTED,
                "driver_id": driver_id,
                "accepted_at": datetime.utcnow(),
            },
        )

        if ride is None:
            existing = await self.store.get_ride(ride_id)
            reason = (
                RejectReason.RIDE_NOT_FOUND if existing is None
                else RejectReason.ALREADY_RESOLVED
            )
            self.logger.log_rejection(str(ride_id), reason.value, driver_id=driver_id)
            return ClaimResult(
                accepted=False,
                reason=reason,
                message=RIDE_UNAVAILABLE_MESSAGE,
            )

        self._left_pending(ride_id)
        self.logger.log_transition(
            str(ride_id),
            RideStatus.PENDING.value,
            RideStatus.ACCEPTED.value,
            driver_id=driver_id,
        )

        await self.channel.broadcast(
            "ride_accepted",
            RideAcceptedPayload(ride_id=ride_id, driver_id=driver_id).model_dump(mode="json"),
        )

        return ClaimResult(accepted=True, ride=ride)

    async def start(self, ride_id: UUID) -> Ride:
        """Driver picked the rider up."""
        ride = await self._transition(
            ride_id,
            RideStatus.IN_PROGRESS,
            lambda current: {"started_at": datetime.utcnow()},
        )
        await self._broadcast_status("ride_started", ride)
        return ride

    async def complete(self, ride_id: UUID, actual_fare: Decimal | None = None) -> Ride:
        """Ride reached its destination; the fare defaults to the estimate."""
        ride = await self._transition(
            ride_id,
            RideStatus.COMPLETED,
            lambda current: {
                "completed_at": datetime.utcnow(),
                "actual_fare": actual_fare if actual_fare is not None else current.estimated_fare,
            },
        )
        await self._broadcast_status("ride_completed", ride)
        return ride

    async def cancel(self, ride_id: UUID, reason: str) -> Ride:
        """Cancel a pending or accepted ride."""
        ride = await self._transition(
            ride_id,
            RideStatus.CANCELLED,
            lambda current: {
                "cancelled_at": datetime.utcnow(),
                "cancellation_reason": reason,
            },
        )
        await self._broadcast_status("ride_cancelled", ride, reason=reason)
        return ride

    async def _transition(
        self,
        ride_id: UUID,
        target: RideStatus,
        build_fields: Callable[[Ride], dict[str, Any]],
    ) -> Ride:
        """
        Move a ride to target through the store's compare-and-set.

        Raises:
            RideNotFound: No ride with this id
            InvalidTransition: target is not reachable from the current status
        """
        while True:
            current = await self.store.get_ride(ride_id)

            if current is None:
                raise RideNotFound(ride_id)

            if not self.can_transition(current.status, target):
                raise InvalidTransition(ride_id, current.status.value, target.value)

            fields = {"status": target, **build_fields(current)}
            updated = await self.store.update_ride_status(ride_id, current.status, fields)

            if updated is not None:
                break

            # Lost a race with another writer; judge the new status instead

        if current.status == RideStatus.PENDING:
            self._left_pending(ride_id)

        self.logger.log_transition(str(ride_id), current.status.value, target.value)

        return updated

    def _left_pending(self, ride_id: UUID) -> None:
        for hook in self._pending_exit_hooks:
            hook(ride_id)

    async def _broadcast_status(self, event: str, ride: Ride, reason: str | None = None) -> None:
        payload = RideStatusPayload(
            ride_id=ride.id,
            status=ride.status.value,
            driver_id=ride.driver_id,
            reason=reason,
        )
        await self.channel.broadcast(event, payload.model_dump(mode="json"))
