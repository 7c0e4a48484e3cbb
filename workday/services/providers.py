from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from workday.schemas import ProductivityUpdateRequest
from workday.services.geo import GeoPoint

logger = logging.getLogger("workday.providers")


class LocationProvider(Protocol):
    async def current_location(self) -> GeoPoint | None: ...


class DeviceSignalProvider(Protocol):
    async def productivity_signals(self) -> ProductivityUpdateRequest: ...


class StaticLocationProvider:
    def __init__(self, point: GeoPoint | None) -> None:
        self._point = point

    async def current_location(self) -> GeoPoint | None:
        return self._point


class StaticSignalProvider:
    def __init__(self, signals: ProductivityUpdateRequest) -> None:
        self._signals = signals

    async def productivity_signals(self) -> ProductivityUpdateRequest:
        return self._signals


async def acquire_location(provider: LocationProvider, timeout_seconds: float) -> GeoPoint | None:
    """Ask the provider for a fix, treating timeouts and failures as no location."""
    try:
        point = await asyncio.wait_for(provider.current_location(), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning("location_timeout", extra={"timeout_seconds": timeout_seconds})
        return None
    except Exception as exc:
        logger.warning("location_unavailable", extra={"reason": str(exc)})
        return None

    if point is None or not point.has_coordinates:
        return None
    return point


async def collect_signals(provider: DeviceSignalProvider, timeout_seconds: float) -> ProductivityUpdateRequest:
    # An empty request leaves the stored counters untouched.
    try:
        return await asyncio.wait_for(provider.productivity_signals(), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning("signals_timeout", extra={"timeout_seconds": timeout_seconds})
    except Exception as exc:
        logger.warning("signals_unavailable", extra={"reason": str(exc)})
    return ProductivityUpdateRequest()
