"""Pytest configuration and fixtures."""

import asyncio
import inspect
import math
from typing import Any, AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from ridedispatch.config import Settings
from ridedispatch.engine.notifications import NotificationChannel
from ridedispatch.engine.service import DispatchService
from ridedispatch.errors import ChannelUnavailable
from ridedispatch.models.driver import DriverProfile, Location, VehicleClass
from ridedispatch.state.drivers import InMemoryDriverDirectory
from ridedispatch.state.rides import InMemoryRideStore

KM_PER_DEGREE_LAT = 6371.0 * math.pi / 180

PHASE_TIMEOUT = 0.1


def point_north_of(origin: Location, km: float) -> Location:
    """A point exactly km north of origin along its meridian."""
    return Location(lat=origin.lat + km / KM_PER_DEGREE_LAT, lng=origin.lng)


class RecordingChannel(NotificationChannel):
    """Notification channel that remembers everything it was asked to send."""

    def __init__(self) -> None:
        self.pushes: list[tuple[str, dict[str, Any]]] = []
        self.broadcasts: list[tuple[str, dict[str, Any]]] = []
        self.unreachable: set[str] = set()

    async def push_to_driver(self, driver_id: str, payload: dict[str, Any]) -> None:
        if driver_id in self.unreachable:
            raise ChannelUnavailable(driver_id)
        self.pushes.append((driver_id, payload))

    async def broadcast(self, event: str, payload: dict[str, Any]) -> None:
        self.broadcasts.append((event, payload))

    def pushed_drivers(self, ride_id: Any) -> list[str]:
        return [driver_id for driver_id, p in self.pushes if p["ride_id"] == str(ride_id)]

    def events(self, event: str, ride_id: Any | None = None) -> list[dict[str, Any]]:
        return [
            payload
            for name, payload in self.broadcasts
            if name == event and (ride_id is None or payload.get("ride_id") == str(ride_id))
        ]


async def wait_for(predicate: Callable[[], Any], timeout: float = 2.0) -> None:
    """Poll a predicate, plain or async, until it holds."""
    deadline = asyncio.get_running_loop().time() + timeout
    while True:
        result = predicate()
        if inspect.isawaitable(result):
            result = await result
        if result:
            return
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


@pytest.fixture
def settings() -> Settings:
    """Settings with a short phase timer."""
    return Settings(
        state_backend="memory",
        log_format="text",
        dispatch_phase_timeout_seconds=PHASE_TIMEOUT,
    )


@pytest.fixture
def pickup() -> Location:
    return Location(lat=40.7128, lng=-74.0060)


@pytest.fixture
def dropoff() -> Location:
    return Location(lat=40.7580, lng=-73.9855)


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def store() -> InMemoryRideStore:
    return InMemoryRideStore()


@pytest.fixture
def directory() -> InMemoryDriverDirectory:
    return InMemoryDriverDirectory(
        [
            DriverProfile(driver_id="veteran", name="Maria Garcia", rating=4.8, total_rides=100),
        ]
    )


@pytest_asyncio.fixture
async def service(
    store: InMemoryRideStore,
    directory: InMemoryDriverDirectory,
    channel: RecordingChannel,
    settings: Settings,
) -> AsyncGenerator[DispatchService, None]:
    """Dispatch service over in-memory collaborators."""
    dispatch_service = DispatchService(store, directory, channel, settings)
    yield dispatch_service
    await dispatch_service.shutdown()


@pytest.fixture
def online_driver(
    service: DispatchService,
    pickup: Location,
) -> Callable[..., None]:
    """Put a driver online at a given distance north of the pickup."""

    def _online(
        driver_id: str,
        km: float,
        vehicle_class: VehicleClass = VehicleClass.COMPACT,
        rating: float | None = None,
        connected: bool = True,
    ) -> None:
        service.registry.set_online(driver_id, point_north_of(pickup, km), vehicle_class, rating)
        if connected:
            service.registry.attach_channel(driver_id, object())

    return _online


@pytest_asyncio.fixture
async def test_client(service: DispatchService) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app, using the test dispatch service."""
    from ridedispatch.api.routes import get_dispatch_service
    from ridedispatch.main import app

    app.dependency_overrides[get_dispatch_service] = lambda: service
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def phase_timeout() -> float:
    return PHASE_TIMEOUT


@pytest.fixture
def north_of() -> Callable[[Location, float], Location]:
    return point_north_of


@pytest.fixture
def wait_until() -> Callable[..., Awaitable[None]]:
    return wait_for
