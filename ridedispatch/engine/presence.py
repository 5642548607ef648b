"""In-memory registry of connected drivers."""

from datetime import datetime, timedelta
from typing import Any

from ridedispatch.models.driver import DriverPresence, Location, VehicleClass
from ridedispatch.utils.logging import get_logger

logger = get_logger(__name__)


class PresenceRegistry:
    """
    Index of drivers currently known to the dispatch engine.

    Each entry is keyed by driver id and updated independently; every
    method runs without awaiting, so an update is never interleaved with
    another coroutine's read of the same entry. Unknown driver ids are
    handled as no-ops or empty results, never as errors.
    """

    def __init__(self) -> None:
        self._drivers: dict[str, DriverPresence] = {}

    def __len__(self) -> int:
        return len(self._drivers)

    def set_online(
        self,
        driver_id: str,
        location: Location | None = None,
        vehicle_class: VehicleClass | None = None,
        rating: float | None = None,
    ) -> DriverPresence:
        """Upsert a driver entry and mark it online."""
        presence = self._drivers.get(driver_id) or DriverPresence(driver_id=driver_id)

        presence.online = True
        if location is not None:
            presence.location = location
        if vehicle_class is not None:
            presence.vehicle_class = vehicle_class
        if rating is not None:
            presence.rating_snapshot = rating
        presence.last_updated_at = datetime.utcnow()

        self._drivers[driver_id] = presence
        return presence

    def set_offline(self, driver_id: str) -> None:
        """Mark a driver offline and drop their channel."""
        presence = self._drivers.get(driver_id)

        if presence is None:
            return

        presence.online = False
        presence.channel_ref = None
        presence.last_updated_at = datetime.utcnow()

    def update_location(self, driver_id: str, location: Location) -> None:
        """Record a location report from an online driver."""
        presence = self._drivers.get(driver_id)

        # Reports from offline drivers must not resurrect stale entries
        if presence is None or not presence.online:
            return

        presence.location = location
        presence.last_updated_at = datetime.utcnow()

    def refresh_rating(self, driver_id: str, rating: float) -> None:
        """Cache a rating learned from the driver directory."""
        presence = self._drivers.get(driver_id)
        if presence is not None:
            presence.rating_snapshot = rating

    def attach_channel(self, driver_id: str, channel_ref: Any) -> DriverPresence:
        """Bind a live connection to a driver, which brings them online."""
        presence = self.set_online(driver_id)
        presence.channel_ref = channel_ref
        return presence

    def detach_channel(self, channel_ref: Any) -> str | None:
        """
        Mark offline the driver bound to this connection.

        A connection closing after the driver reconnected elsewhere leaves
        the newer binding untouched. Returns the affected driver id.
        """
        for driver_id, presence in self._drivers.items():
            if presence.channel_ref is not None and presence.channel_ref is channel_ref:
                self.set_offline(driver_id)
                return driver_id
        return None

    def query(self, vehicle_class: VehicleClass) -> list[DriverPresence]:
        """Return online drivers of a vehicle class with a known location."""
        return [
            presence.model_copy()
            for presence in self._drivers.values()
            if presence.is_matchable and presence.vehicle_class == vehicle_class
        ]

    def channel_for(self, driver_id: str) -> Any | None:
        """Get the live channel handle for a driver, if any."""
        presence = self._drivers.get(driver_id)
        return presence.channel_ref if presence else None

    def get(self, driver_id: str) -> DriverPresence | None:
        presence = self._drivers.get(driver_id)
        return presence.model_copy() if presence else None

    def snapshot(self) -> list[DriverPresence]:
        """Copy of every entry, online or not, for diagnostics."""
        return [presence.model_copy() for presence in self._drivers.values()]

    def sweep(self, max_idle: timedelta, now: datetime | None = None) -> list[str]:
        """
        Expire idle entries.

        Online entries idle past max_idle are marked offline; offline
        entries idle past max_idle are removed. Returns removed driver ids.
        """
        now = now or datetime.utcnow()
        cutoff = now - max_idle
        removed = []

        for driver_id, presence in list(self._drivers.items()):
            if presence.last_updated_at > cutoff:
                continue

            if presence.online:
                presence.online = False
                presence.channel_ref = None
                logger.info("presence_stale", driver_id=driver_id)
            else:
                del self._drivers[driver_id]
                removed.append(driver_id)

        if removed:
            logger.info("presence_swept", removed=len(removed))

        return removed
