"""Seed driver profiles into the Redis driver directory."""

import asyncio

from ridedispatch.models.driver import DriverProfile, VehicleClass
from ridedispatch.state.drivers import RedisDriverDirectory
from ridedispatch.state.manager import StateManager


async def seed_driver_profiles() -> None:
    """Seed driver profiles."""
    print("Seeding driver profiles...")

    state_manager = StateManager()
    await state_manager.connect()
    directory = RedisDriverDirectory(state_manager)

    profiles = [
        DriverProfile(
            driver_id="driver-001",
            name="John Smith",
            rating=4.9,
            vehicle_class=VehicleClass.PREMIUM,
            total_rides=820,
        ),
        DriverProfile(
            driver_id="driver-002",
            name="Maria Garcia",
            rating=4.8,
            vehicle_class=VehicleClass.COMFORT,
            total_rides=310,
        ),
        DriverProfile(
            driver_id="driver-003",
            name="Ahmed Khan",
            rating=4.7,
            vehicle_class=VehicleClass.COMPACT,
            total_rides=95,
        ),
        DriverProfile(
            driver_id="driver-004",
            name="Sarah Johnson",
            rating=4.6,
            vehicle_class=VehicleClass.COMPACT,
            total_rides=0,
        ),
        DriverProfile(
            driver_id="driver-005",
            name="Carlos Rodriguez",
            rating=4.8,
            vehicle_class=VehicleClass.COMFORT,
            total_rides=1500,
        ),
    ]

    for profile in profiles:
        await directory.save_profile(profile)
        print(
            f"  ✓ Added {profile.name} "
            f"({profile.vehicle_class.value}, rating: {profile.rating}, rides: {profile.total_rides})"
        )

    await state_manager.disconnect()
    print("✓ Driver profiles seeded successfully\n")


async def main() -> None:
    """Run all seed functions."""
    print("\n" + "=" * 50)
    print("  Seeding Ride Dispatch Data")
    print("=" * 50 + "\n")

    await seed_driver_profiles()

    print("=" * 50)
    print("  ✓ All data seeded successfully!")
    print("=" * 50 + "\n")


if __name__ == "__main__":
    asyncio.run(main())
