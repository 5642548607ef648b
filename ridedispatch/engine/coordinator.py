"""Multi-phase notify/wait/escalate/timeout protocol for pending rides."""

import asyncio
from uuid import UUID

from ridedispatch.config import Settings, get_settings
from ridedispatch.engine.lifecycle import RideLifecycleManager
from ridedispatch.engine.notifications import NotificationChannel
from ridedispatch.engine.presence import PresenceRegistry
from ridedispatch.engine.scorer import CandidateScorer
from ridedispatch.errors import ChannelUnavailable, InvalidTransition, RideNotFound
from ridedispatch.models.dispatch import DispatchCandidate, DispatchPhase, DispatchSession
from ridedispatch.models.events import (
    MatchingUpdatePayload,
    RideRequestPayload,
    RideTimeoutPayload,
)
from ridedispatch.models.ride import Ride
from ridedispatch.utils.logging import DispatchLogger
from ridedispatch.utils.tracing import DispatchTracer

NO_DRIVER_REASON = "no_driver_available"

# Consecutive failed timer callbacks before a session is abandoned
MAX_TIMER_FAILURES = 3


class DispatchCoordinator:
    """
    Drives each pending ride through its dispatch phases.

    Phases:
    - INITIAL: notify the best drivers within the initial radius
    - EXPANDED: after one timeout, notify fresh drivers within the wider radius
    - EXPIRED: after the second timeout, cancel the ride and announce the timeout

    One DispatchSession exists per pending ride and is discarded as soon as
    the ride leaves pending, whichever way that happens.
    """

    def __init__(
        self,
        registry: PresenceRegistry,
        scorer: CandidateScorer,
        lifecycle: RideLifecycleManager,
        channel: NotificationChannel,
        settings: Settings | None = None,
    ):
        settings = settings or get_settings()

        self.registry = registry
        self.scorer = scorer
        self.lifecycle = lifecycle
        self.channel = channel
        self.logger = DispatchLogger("dispatch_coordinator")

        self.initial_radius_km = settings.dispatch_initial_radius_km
        self.expanded_radius_km = settings.dispatch_expanded_radius_km
        self.phase_timeout = settings.dispatch_phase_timeout_seconds
        self.batch_size = settings.dispatch_batch_size

        self.sessions: dict[UUID, DispatchSession] = {}

        # Claims and cancellations tear the session down
        lifecycle.on_leave_pending(self.stop)

    async def start(self, ride: Ride) -> DispatchSession:
        """Open a session for a new ride and run its initial phase."""
        existing = self.sessions.get(ride.id)
        if existing is not None:
            return existing

        session = DispatchSession(
            ride_id=ride.id,
            current_radius_km=self.initial_radius_km,
            tracer=DispatchTracer(ride.id),
        )
        self.sessions[ride.id] = session

        if not await self.lifecycle.is_pending(ride.id):
            self.stop(ride.id)
            return session

        await self._run_phase(session, ride, DispatchPhase.INITIAL, self.initial_radius_km)
        self._arm(session, ride)

        return session

    def stop(self, ride_id: UUID) -> None:
        """Discard a ride's session and cancel its timer. Safe to call repeatedly."""
        session = self.sessions.pop(ride_id, None)

        if session is None:
            return

        session.active = False

        timer = session.timer
        if timer is not None and not timer.done() and timer is not asyncio.current_task():
            timer.cancel()

        trace = session.tracer.get_trace_summary() if session.tracer else {}
        self.logger.logger.info(
            "dispatch_session_closed",
            ride_id=str(ride_id),
            phase=session.phase.value,
            notified=len(session.notified_driver_ids),
            **trace,
        )

    def active_sessions(self) -> list[dict]:
        return [session.summary() for session in self.sessions.values()]

    async def shutdown(self) -> None:
        """Stop every live session."""
        timers = [s.timer for s in self.sessions.values() if s.timer is not None]

        for ride_id in list(self.sessions):
            self.stop(ride_id)

        await asyncio.gather(*timers, return_exceptions=True)

    def _arm(self, session: DispatchSession, ride: Ride) -> None:
        if not session.active:
            return

        session.timer = asyncio.create_task(
            self._wait_phase(session, ride),
            name=f"dispatch:{ride.id}:{session.phase.value}",
        )

    async def _wait_phase(self, session: DispatchSession, ride: Ride) -> None:
        await asyncio.sleep(self.phase_timeout)

        try:
            await self._on_phase_timeout(session, ride)
        except Exception:
            session.timer_failures += 1
            self.logger.logger.exception(
                "dispatch_timer_failed",
                ride_id=str(ride.id),
                phase=session.phase.value,
                failures=session.timer_failures,
            )

            if session.timer_failures >= MAX_TIMER_FAILURES:
                self.stop(ride.id)
                return

            # Retry the step that failed one timeout later
            self._arm(session, ride)
        else:
            session.timer_failures = 0

    async def _on_phase_timeout(self, session: DispatchSession, ride: Ride) -> None:
        # The timer may fire in the same instant a claim lands
        if not session.active or not await self.lifecycle.is_pending(ride.id):
            self.stop(ride.id)
            return

        if session.phase == DispatchPhase.INITIAL:
            await self._run_phase(session, ride, DispatchPhase.EXPANDED, self.expanded_radius_km)
            self._arm(session, ride)
        else:
            await self._expire(session, ride)

    async def _run_phase(
        self,
        session: DispatchSession,
        ride: Ride,
        phase: DispatchPhase,
        radius_km: float,
    ) -> None:
        session.phase = phase
        session.current_radius_km = radius_km

        with session.tracer.trace_operation("rank", phase=phase.value, radius_km=radius_km):
            candidates = await self.scorer.rank(ride.pickup, ride.vehicle_class, radius_km)

        fresh = [c for c in candidates if c.driver_id not in session.notified_driver_ids]

        if not fresh:
            self.logger.logger.info(
                "no_candidates",
                ride_id=str(ride.id),
                phase=phase.value,
                radius_km=radius_km,
            )

        await self._notify(session, ride, fresh[: self.batch_size])

        if not session.active:
            return

        session.tracer.add_event("phase_started", phase=phase.value, radius_km=radius_km)
        self.logger.logger.info(
            "dispatch_phase_started",
            ride_id=str(ride.id),
            phase=phase.value,
            radius_km=radius_km,
            candidates=len(candidates),
            notified=len(session.notified_driver_ids),
        )

        await self.channel.broadcast(
            "matching_update",
            MatchingUpdatePayload(
                ride_id=ride.id,
                phase=phase,
                radius_km=radius_km,
            ).model_dump(mode="json"),
        )

    async def _notify(
        self,
        session: DispatchSession,
        ride: Ride,
        batch: list[DispatchCandidate],
    ) -> None:
        """Push the ride to each candidate; unreachable drivers are skipped."""
        for candidate in batch:
            if not session.active:
                return

            if self.registry.channel_for(candidate.driver_id) is None:
                self.logger.log_skip(
                    str(ride.id), candidate.driver_id, "disconnected", phase=session.phase.value
                )
                continue

            payload = RideRequestPayload(
                ride_id=ride.id,
                pickup=ride.pickup,
                dropoff=ride.dropoff,
                vehicle_class=ride.vehicle_class,
                estimated_fare=ride.estimated_fare,
                distance_km=round(candidate.distance_km, 3),
            )

            try:
                await self.channel.push_to_driver(
                    candidate.driver_id, payload.model_dump(mode="json")
                )
            except ChannelUnavailable:
                self.logger.log_skip(
                    str(ride.id), candidate.driver_id, "push_failed", phase=session.phase.value
                )
                continue

            session.notified_driver_ids.add(candidate.driver_id)
            session.tracer.add_event("driver_notified", driver_id=candidate.driver_id)
            self.logger.log_push(
                str(ride.id),
                candidate.driver_id,
                session.phase.value,
                distance_km=candidate.distance_km,
                score=round(candidate.score, 4),
            )

    async def _expire(self, session: DispatchSession, ride: Ride) -> None:
        session.phase = DispatchPhase.EXPIRED

        try:
            await self.lifecycle.cancel(ride.id, NO_DRIVER_REASON)
        except (InvalidTransition, RideNotFound):
            # A claim or rider cancellation committed first
            self.stop(ride.id)
            return

        await self.channel.broadcast(
            "ride_timeout",
            RideTimeoutPayload(ride_id=ride.id).model_dump(mode="json"),
        )
        self.logger.logger.info("dispatch_expired", ride_id=str(ride.id))
