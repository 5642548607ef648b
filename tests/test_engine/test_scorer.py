"""Tests for candidate scoring and ranking."""

import pytest

from ridedispatch.config import Settings
from ridedispatch.engine.presence import PresenceRegistry
from ridedispatch.engine.scorer import UNLISTED_CLASS_COMFORT, CandidateScorer, ScoringConfig
from ridedispatch.models.driver import DriverProfile, Location, VehicleClass
from ridedispatch.state.drivers import DriverDirectory, InMemoryDriverDirectory


class FailingDirectory(DriverDirectory):
    async def get_driver_profile(self, driver_id: str) -> DriverProfile | None:
        raise RuntimeError("directory offline")


@pytest.fixture
def registry() -> PresenceRegistry:
    return PresenceRegistry()


@pytest.fixture
def scorer(registry: PresenceRegistry, directory: InMemoryDriverDirectory) -> CandidateScorer:
    return CandidateScorer(registry, directory, ScoringConfig())


def test_score_far_highly_rated_comfort_driver(scorer: CandidateScorer) -> None:
    score = scorer.score(distance_km=4, radius_km=5, rating=4.8, completion_rate=0.9, comfort=0.8)

    assert score == pytest.approx(0.482)


def test_score_close_compact_driver_beats_better_rating(scorer: CandidateScorer) -> None:
    near = scorer.score(distance_km=1, radius_km=5, rating=4.0, completion_rate=0.85, comfort=0.6)
    far = scorer.score(distance_km=4, radius_km=5, rating=4.8, completion_rate=0.9, comfort=0.8)

    assert near == pytest.approx(0.785)
    assert near > far


def test_score_clamps_inputs(scorer: CandidateScorer) -> None:
    score = scorer.score(distance_km=9, radius_km=5, rating=7, completion_rate=1.4, comfort=-1)

    assert score == pytest.approx(0.2 + 0.1)


def test_injected_weights_are_used(registry: PresenceRegistry) -> None:
    distance_only = CandidateScorer(
        registry,
        InMemoryDriverDirectory(),
        ScoringConfig(weight_distance=1.0, weight_rating=0, weight_completion=0, weight_comfort=0),
    )

    assert distance_only.score(2.5, 5, 5.0, 1.0, 1.0) == pytest.approx(0.5)


@pytest.mark.parametrize(
    "total_rides,expected",
    [(None, 0.85), (0, 0.85), (100, 0.9), (150, 0.95), (5000, 0.99)],
)
def test_completion_rate_from_history(total_rides: int | None, expected: float) -> None:
    assert ScoringConfig().completion_rate_for(total_rides) == pytest.approx(expected)


@pytest.mark.asyncio
async def test_rank_prefers_closer_driver(
    registry: PresenceRegistry,
    scorer: CandidateScorer,
    pickup: Location,
    north_of,
) -> None:
    registry.set_online("veteran", north_of(pickup, 4), VehicleClass.COMPACT)
    registry.set_online("rookie", north_of(pickup, 1), VehicleClass.COMPACT, rating=4.0)

    ranked = await scorer.rank(pickup, VehicleClass.COMPACT, 5)

    assert [c.driver_id for c in ranked] == ["rookie", "veteran"]
    assert ranked[0].rating == 4.0
    assert ranked[0].completion_rate == pytest.approx(0.85)
    # Directory rating and ride history win over defaults
    assert ranked[1].rating == 4.8
    assert ranked[1].completion_rate == pytest.approx(0.9)
    assert ranked[1].distance_km == pytest.approx(4, abs=1e-6)


@pytest.mark.asyncio
async def test_rank_never_exceeds_radius(
    registry: PresenceRegistry,
    scorer: CandidateScorer,
    pickup: Location,
    north_of,
) -> None:
    for i, km in enumerate([0.5, 2.0, 4.9, 5.1, 6.5, 12.0]):
        registry.set_online(f"d{i}", north_of(pickup, km), VehicleClass.COMPACT)

    ranked = await scorer.rank(pickup, VehicleClass.COMPACT, 5)

    assert {c.driver_id for c in ranked} == {"d0", "d1", "d2"}
    assert all(c.distance_km <= 5 for c in ranked)


@pytest.mark.asyncio
async def test_rank_only_requested_class(
    registry: PresenceRegistry,
    scorer: CandidateScorer,
    pickup: Location,
    north_of,
) -> None:
    registry.set_online("compact", north_of(pickup, 1), VehicleClass.COMPACT)
    registry.set_online("premium", north_of(pickup, 1), VehicleClass.PREMIUM)

    ranked = await scorer.rank(pickup, VehicleClass.PREMIUM, 5)

    assert [c.driver_id for c in ranked] == ["premium"]
    assert ranked[0].vehicle_class == VehicleClass.PREMIUM


@pytest.mark.asyncio
async def test_rank_is_deterministic_with_ties(
    registry: PresenceRegistry,
    scorer: CandidateScorer,
    pickup: Location,
    north_of,
) -> None:
    for driver_id in ["charlie", "alpha", "bravo"]:
        registry.set_online(driver_id, north_of(pickup, 2), VehicleClass.COMFORT, rating=4.5)

    first = await scorer.rank(pickup, VehicleClass.COMFORT, 5)
    second = await scorer.rank(pickup, VehicleClass.COMFORT, 5)

    assert first == second
    assert [c.driver_id for c in first] == ["alpha", "bravo", "charlie"]


@pytest.mark.asyncio
async def test_rank_returns_at_most_ten(
    registry: PresenceRegistry,
    scorer: CandidateScorer,
    pickup: Location,
    north_of,
) -> None:
    for i in range(15):
        registry.set_online(f"d{i:02d}", north_of(pickup, 0.2 * (i + 1)), VehicleClass.COMPACT)

    ranked = await scorer.rank(pickup, VehicleClass.COMPACT, 5)

    assert len(ranked) == 10
    assert [c.driver_id for c in ranked] == [f"d{i:02d}" for i in range(10)]


@pytest.mark.asyncio
async def test_rank_empty_when_nobody_in_range(
    registry: PresenceRegistry,
    scorer: CandidateScorer,
    pickup: Location,
    north_of,
) -> None:
    assert await scorer.rank(pickup, VehicleClass.COMPACT, 5) == []

    registry.set_online("far", north_of(pickup, 20), VehicleClass.COMPACT)

    assert await scorer.rank(pickup, VehicleClass.COMPACT, 5) == []


@pytest.mark.asyncio
async def test_rank_survives_directory_failure(
    registry: PresenceRegistry,
    pickup: Location,
    north_of,
) -> None:
    scorer = CandidateScorer(registry, FailingDirectory(), ScoringConfig())
    registry.set_online("snapshot", north_of(pickup, 1), VehicleClass.COMPACT, rating=3.9)
    registry.set_online("unknown", north_of(pickup, 2), VehicleClass.COMPACT)

    ranked = await scorer.rank(pickup, VehicleClass.COMPACT, 5)

    ratings = {c.driver_id: c.rating for c in ranked}
    assert ratings == {"snapshot": 3.9, "unknown": 4.5}


@pytest.mark.asyncio
async def test_directory_rating_refreshes_snapshot(
    registry: PresenceRegistry,
    scorer: CandidateScorer,
    pickup: Location,
    north_of,
) -> None:
    registry.set_online("veteran", north_of(pickup, 1), VehicleClass.COMPACT, rating=3.0)

    await scorer.rank(pickup, VehicleClass.COMPACT, 5)

    assert registry.get("veteran").rating_snapshot == 4.8


@pytest.mark.asyncio
async def test_nearest_sorted_by_distance_then_rating(
    registry: PresenceRegistry,
    scorer: CandidateScorer,
    pickup: Location,
    north_of,
) -> None:
    registry.set_online("low", north_of(pickup, 1), VehicleClass.COMPACT, rating=4.1)
    registry.set_online("high", north_of(pickup, 1), VehicleClass.COMPACT, rating=4.9)
    registry.set_online("veteran", north_of(pickup, 3), VehicleClass.COMPACT)
    registry.set_online("outside", north_of(pickup, 11), VehicleClass.COMPACT)

    nearby = await scorer.nearest(pickup, VehicleClass.COMPACT, max_km=10, limit=5)

    assert [d.driver_id for d in nearby] == ["high", "low", "veteran"]
    assert nearby[2].name == "Maria Garcia"


def test_comfort_table_comes_from_settings() -> None:
    settings = Settings(scoring_comfort={"premium": 0.5, "comfort": 0.5, "compact": 1.0})

    config = ScoringConfig.from_settings(settings)

    assert config.comfort == {
        VehicleClass.PREMIUM: 0.5,
        VehicleClass.COMFORT: 0.5,
        VehicleClass.COMPACT: 1.0,
    }


@pytest.mark.asyncio
async def test_unlisted_class_gets_fallback_comfort(
    registry: PresenceRegistry,
    pickup: Location,
    north_of,
) -> None:
    config = ScoringConfig(comfort={VehicleClass.PREMIUM: 1.0})
    scorer = CandidateScorer(registry, InMemoryDriverDirectory(), config)
    registry.set_online("d1", north_of(pickup, 0), VehicleClass.COMPACT, rating=5.0)

    ranked = await scorer.rank(pickup, VehicleClass.COMPACT, 5)

    expected = 0.6 + 0.2 + 0.1 * 0.85 + 0.1 * UNLISTED_CLASS_COMFORT
    assert ranked[0].score == pytest.approx(expected)
