from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from math import asin, cos, isfinite, radians, sin, sqrt
from typing import Any

from workday.errors import ApiError
from workday.settings import Settings

logger = logging.getLogger("workday.geo")

EARTH_RADIUS_M = 6371000.0


@dataclass(frozen=True)
class GeoPoint:
    latitude: float | None
    longitude: float | None
    accuracy_m: float | None = None
    address: str | None = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "latitude": self.latitude if _is_usable(self.latitude) else None,
            "longitude": self.longitude if _is_usable(self.longitude) else None,
            "accuracy": self.accuracy_m if _is_usable(self.accuracy_m) else None,
            "address": self.address,
        }


@dataclass(frozen=True)
class Office:
    id: str
    name: str
    latitude: float
    longitude: float
    radius_m: float
    address: str | None = None


@dataclass(frozen=True)
class PerimeterCheck:
    within: bool
    office: Office | None
    distance_m: float | None
    closest_office: Office | None
    closest_distance_m: float | None
    accuracy_percent: int

    def to_flags(self) -> dict[str, Any]:
        office = self.office or self.closest_office
        return {
            "within_perimeter": self.within,
            "office_id": office.id if office else None,
            "office_name": office.name if office else None,
            "distance_m": round(self.closest_distance_m, 2) if self.closest_distance_m is not None else None,
            "radius_m": office.radius_m if office else None,
            "accuracy_percent": self.accuracy_percent,
        }


def _is_usable(value: float | None) -> bool:
    return value is not None and isfinite(value)


def distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    lat1_rad = radians(lat1)
    lon1_rad = radians(lon1)
    lat2_rad = radians(lat2)
    lon2_rad = radians(lon2)

    delta_lat = lat2_rad - lat1_rad
    delta_lon = lon2_rad - lon1_rad

    a = sin(delta_lat / 2) ** 2 + cos(lat1_rad) * cos(lat2_rad) * sin(delta_lon / 2) ** 2
    # Rounding can push a slightly above 1.0 for antipodal points.
    c = 2 * asin(sqrt(min(1.0, a)))
    return EARTH_RADIUS_M * c


def point_distance_m(a: GeoPoint, b: GeoPoint) -> float:
    if not all(_is_usable(v) for v in (a.latitude, a.longitude, b.latitude, b.longitude)):
        return float("nan")
    return distance_m(a.latitude, a.longitude, b.latitude, b.longitude)  # type: ignore[arg-type]


def is_within_perimeter(point: GeoPoint, center: GeoPoint, radius_m: float) -> bool:
    distance_value = point_distance_m(point, center)
    if not isfinite(distance_value):
        return False
    return distance_value <= radius_m


def accuracy_percent(distance_value: float, radius_m: float) -> int:
    if radius_m <= 0 or distance_value > radius_m:
        return 0
    return max(0, round((1 - distance_value / radius_m) * 100))


def validate_coordinates(latitude: float | None, longitude: float | None) -> None:
    # Non-finite values are left to the perimeter check, which treats them as outside.
    if _is_usable(latitude) and not -90 <= latitude <= 90:  # type: ignore[operator]
        raise ApiError(status_code=422, code="INVALID_COORDINATES", message="Latitude must be within [-90, 90].")
    if _is_usable(longitude) and not -180 <= longitude <= 180:  # type: ignore[operator]
        raise ApiError(status_code=422, code="INVALID_COORDINATES", message="Longitude must be within [-180, 180].")


def evaluate_office_location(point: GeoPoint, offices: list[Office]) -> PerimeterCheck:
    closest_office: Office | None = None
    closest_distance: float | None = None
    matched_office: Office | None = None
    matched_distance: float | None = None

    for office in offices:
        center = GeoPoint(latitude=office.latitude, longitude=office.longitude)
        office_distance = point_distance_m(point, center)
        if not isfinite(office_distance):
            continue

        if closest_distance is None or office_distance < closest_distance:
            closest_distance = office_distance
            closest_office = office

        if office_distance <= office.radius_m:
            if matched_distance is None or office_distance < matched_distance:
                matched_distance = office_distance
                matched_office = office

    if matched_office is not None and matched_distance is not None:
        return PerimeterCheck(
            within=True,
            office=matched_office,
            distance_m=matched_distance,
            closest_office=matched_office,
            closest_distance_m=matched_distance,
            accuracy_percent=accuracy_percent(matched_distance, matched_office.radius_m),
        )

    return PerimeterCheck(
        within=False,
        office=None,
        distance_m=None,
        closest_office=closest_office,
        closest_distance_m=closest_distance,
        accuracy_percent=0,
    )


def load_offices(settings: Settings) -> list[Office]:
    offices = [
        Office(
            id="main",
            name=settings.office_name,
            latitude=settings.office_lat,
            longitude=settings.office_lon,
            radius_m=settings.office_radius_m,
            address=settings.office_address,
        )
    ]

    raw = (settings.additional_offices or "").strip()
    if not raw:
        return offices

    try:
        items = json.loads(raw)
        if not isinstance(items, list):
            raise ValueError("additional_offices must be a JSON array")
        for index, item in enumerate(items, start=1):
            offices.append(
                Office(
                    id=str(item.get("id") or f"office_{index}"),
                    name=str(item.get("name") or f"Office {index}"),
                    latitude=float(item["latitude"]),
                    longitude=float(item["longitude"]),
                    radius_m=float(item.get("radius") or settings.office_radius_m),
                    address=item.get("address"),
                )
            )
    except (ValueError, TypeError, KeyError, AttributeError) as exc:
        logger.warning("additional_offices_ignored", extra={"reason": str(exc)})
        return offices[:1]

    return offices
