import asyncio
import unittest

from workday.schemas import ProductivityUpdateRequest
from workday.services.geo import GeoPoint
from workday.services.providers import (
    StaticLocationProvider,
    StaticSignalProvider,
    acquire_location,
    collect_signals,
)


class _SlowLocationProvider:
    async def current_location(self) -> GeoPoint | None:
        await asyncio.sleep(1)
        return GeoPoint(latitude=1.0, longitude=1.0)


class _BrokenLocationProvider:
    async def current_location(self) -> GeoPoint | None:
        raise PermissionError("location permission denied")


class _BrokenSignalProvider:
    async def productivity_signals(self) -> ProductivityUpdateRequest:
        raise RuntimeError("agent offline")


class ProviderTests(unittest.TestCase):
    def test_location_timeout_yields_none(self) -> None:
        self.assertIsNone(asyncio.run(acquire_location(_SlowLocationProvider(), timeout_seconds=0.01)))

    def test_location_failure_yields_none(self) -> None:
        self.assertIsNone(asyncio.run(acquire_location(_BrokenLocationProvider(), timeout_seconds=1)))

    def test_location_without_coordinates_yields_none(self) -> None:
        provider = StaticLocationProvider(GeoPoint(latitude=None, longitude=None, address="unknown"))
        self.assertIsNone(asyncio.run(acquire_location(provider, timeout_seconds=1)))

    def test_location_fix_is_returned(self) -> None:
        point = GeoPoint(latitude=19.16, longitude=72.83, accuracy_m=15.0)
        self.assertEqual(asyncio.run(acquire_location(StaticLocationProvider(point), timeout_seconds=1)), point)

    def test_signal_failure_falls_back_to_empty_signals(self) -> None:
        self.assertEqual(asyncio.run(collect_signals(_BrokenSignalProvider(), timeout_seconds=1)), ProductivityUpdateRequest())

    def test_signals_are_passed_through(self) -> None:
        signals = ProductivityUpdateRequest(keystroke_count=2000, active_minutes=200.0)
        self.assertEqual(asyncio.run(collect_signals(StaticSignalProvider(signals), timeout_seconds=1)), signals)


if __name__ == "__main__":
    unittest.main()
