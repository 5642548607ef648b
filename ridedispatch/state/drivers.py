"""Driver directory: authoritative driver profiles."""

from abc import ABC, abstractmethod

from ridedispatch.models.driver import DriverProfile
from ridedispatch.state.manager import StateManager


class DriverDirectory(ABC):
    """Resolves a driver id to profile attributes."""

    @abstractmethod
    async def get_driver_profile(self, driver_id: str) -> DriverProfile | None:
        """Return the driver's profile, or None if unknown."""


class InMemoryDriverDirectory(DriverDirectory):
    """Directory backed by a dict, seeded by the caller."""

    def __init__(self, profiles: list[DriverProfile] | None = None):
        self._profiles = {profile.driver_id: profile for profile in profiles or []}

    def add_profile(self, profile: DriverProfile) -> None:
        self._profiles[profile.driver_id] = profile

    async def get_driver_profile(self, driver_id: str) -> DriverProfile | None:
        return self._profiles.get(driver_id)


class RedisDriverDirectory(DriverDirectory):
    """Directory reading JSON profiles from Redis."""

    def __init__(self, state_manager: StateManager):
        self.state = state_manager

    def _profile_key(self, driver_id: str) -> str:
        """Generate Redis key for a driver profile."""
        return f"driver_profile:{driver_id}"

    async def save_profile(self, profile: DriverProfile) -> None:
        await self.state.set(
            self._profile_key(profile.driver_id),
            profile.model_dump(mode="json"),
        )

    async def get_driver_profile(self, driver_id: str) -> DriverProfile | None:
        data = await self.state.get(self._profile_key(driver_id))

        if not data:
            return None

        return DriverProfile(**data)
