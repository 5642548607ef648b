"""Candidate ranking for dispatch phases."""

import asyncio
from dataclasses import dataclass, field

from ridedispatch.config import Settings, get_settings
from ridedispatch.engine.geo import haversine_km
from ridedispatch.engine.presence import PresenceRegistry
from ridedispatch.models.dispatch import DispatchCandidate, NearbyDriver
from ridedispatch.models.driver import DriverPresence, DriverProfile, Location, VehicleClass
from ridedispatch.state.drivers import DriverDirectory
from ridedispatch.utils.logging import get_logger

logger = get_logger(__name__)

# Rider-perceived vehicle quality, independent of distance
DEFAULT_COMFORT = {
    VehicleClass.PREMIUM: 1.0,
    VehicleClass.COMFORT: 0.8,
    VehicleClass.COMPACT: 0.6,
}

# Comfort credit for a class missing from the configured table
UNLISTED_CLASS_COMFORT = 0.7


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(high, max(low, value))


@dataclass(frozen=True)
class ScoringConfig:
    """Weights and fallbacks used by the candidate scorer."""

    weight_distance: float = 0.6
    weight_rating: float = 0.2
    weight_completion: float = 0.1
    weight_comfort: float = 0.1
    default_rating: float = 4.5
    default_completion_rate: float = 0.85
    max_candidates: int = 10
    comfort: dict[VehicleClass, float] = field(default_factory=lambda: dict(DEFAULT_COMFORT))

    @classmethod
    def from_settings(cls, settings: Settings) -> "ScoringConfig":
        return cls(
            weight_distance=settings.scoring_weight_distance,
            weight_rating=settings.scoring_weight_rating,
            weight_completion=settings.scoring_weight_completion,
            weight_comfort=settings.scoring_weight_comfort,
            default_rating=settings.scoring_default_rating,
            default_completion_rate=settings.scoring_default_completion_rate,
            max_candidates=settings.scoring_max_candidates,
            comfort={
                VehicleClass(name): value for name, value in settings.scoring_comfort.items()
            },
        )

    def completion_rate_for(self, total_rides: int | None) -> float:
        """Approximate a completion rate from ride history."""
        if not total_rides:
            return self.default_completion_rate
        return min(0.99, 0.8 + min(0.19, total_rides / 1000))


class CandidateScorer:
    """
    Ranks online drivers for a pickup point.

    Responsibilities:
    - Filter presence entries by vehicle class and radius
    - Resolve best-effort rating and completion rate per driver
    - Produce a deterministic, score-ordered candidate list
    """

    def __init__(
        self,
        registry: PresenceRegistry,
        directory: DriverDirectory,
        config: ScoringConfig | None = None,
    ):
        self.registry = registry
        self.directory = directory
        self.config = config or ScoringConfig.from_settings(get_settings())

    def score(
        self,
        distance_km: float,
        radius_km: float,
        rating: float,
        completion_rate: float,
        comfort: float,
    ) -> float:
        """Weighted score in [0, 1]; 1 at the pickup point, 0 distance credit at the radius."""
        distance_score = max(0.0, 1 - distance_km / max(radius_km, 0.001))
        rating_score = _clamp(rating / 5)
        completion_score = _clamp(completion_rate)
        comfort_score = _clamp(comfort)

        return (
            self.config.weight_distance * distance_score
            + self.config.weight_rating * rating_score
            + self.config.weight_completion * completion_score
            + self.config.weight_comfort * comfort_score
        )

    async def rank(
        self,
        pickup: Location,
        vehicle_class: VehicleClass,
        radius_km: float,
    ) -> list[DispatchCandidate]:
        """
        Rank drivers within radius_km of pickup.

        Args:
            pickup: Ride pickup point
            vehicle_class: Requested vehicle class
            radius_km: Search radius; nothing farther is returned

        Returns:
            Up to max_candidates candidates, best first. Empty when no
            driver is in range.
        """
        in_range = self._within(pickup, self.registry.query(vehicle_class), radius_km)

        if not in_range:
            return []

        profiles = await asyncio.gather(
            *(self._profile(presence.driver_id) for presence, _ in in_range)
        )

        comfort = self.config.comfort.get(vehicle_class, UNLISTED_CLASS_COMFORT)
        candidates = []

        for (presence, distance_km), profile in zip(in_range, profiles):
            rating = self._rating(presence, profile)
            completion_rate = self.config.completion_rate_for(
                profile.total_rides if profile else None
            )

            candidates.append(
                DispatchCandidate(
                    driver_id=presence.driver_id,
                    distance_km=distance_km,
                    score=self.score(distance_km, radius_km, rating, completion_rate, comfort),
                    vehicle_class=presence.vehicle_class,
                    rating=rating,
                    completion_rate=completion_rate,
                )
            )

        candidates.sort(key=lambda c: (-c.score, c.distance_km, c.driver_id))

        return candidates[: self.config.max_candidates]

    async def nearest(
        self,
        pickup: Location,
        vehicle_class: VehicleClass,
        max_km: float = 10.0,
        limit: int = 5,
    ) -> list[NearbyDriver]:
        """Closest online drivers, nearest first, then best rated."""
        in_range = self._within(pickup, self.registry.query(vehicle_class), max_km)

        profiles = await asyncio.gather(
            *(self._profile(presence.driver_id) for presence, _ in in_range)
        )

        drivers = [
            NearbyDriver(
                driver_id=presence.driver_id,
                name=profile.name if profile else None,
                rating=self._rating(presence, profile),
                vehicle_class=presence.vehicle_class,
                location=presence.location,
                distance_km=round(distance_km, 3),
            )
            for (presence, distance_km), profile in zip(in_range, profiles)
        ]

        drivers.sort(key=lambda d: (d.distance_km, -d.rating, d.driver_id))

        return drivers[:limit]

    def _within(
        self,
        pickup: Location,
        entries: list[DriverPresence],
        radius_km: float,
    ) -> list[tuple[DriverPresence, float]]:
        matches = []
        for presence in entries:
            distance_km = haversine_km(pickup, presence.location)
            if distance_km <= radius_km:
                matches.append((presence, distance_km))
        return matches

    def _rating(self, presence: DriverPresence, profile: DriverProfile | None) -> float:
        if profile is not None and profile.rating is not None:
            self.registry.refresh_rating(presence.driver_id, profile.rating)
            return profile.rating
        if presence.rating_snapshot is not None:
            return presence.rating_snapshot
        return self.config.default_rating

    async def _profile(self, driver_id: str) -> DriverProfile | None:
        try:
            return await self.directory.get_driver_profile(driver_id)
        except Exception as e:
            logger.warning("driver_profile_unavailable", driver_id=driver_id, error=str(e))
            return None
