"""Geofence validation for kiosk check-ins."""
import math
from dataclasses import dataclass
from typing import Optional

EARTH_RADIUS_METERS = 6371000


@dataclass(frozen=True)
class GeoResult:
    distance_meters: float  # math.inf when coordinates are unusable
    within_radius: bool
    effective_radius: float

    @property
    def coordinates_valid(self) -> bool:
        return math.isfinite(self.distance_meters)


def _valid_coordinate(lat, lng) -> bool:
    try:
        lat, lng = float(lat), float(lng)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180


def haversine_distance(lat1, lng1, lat2, lng2) -> float:
    """Calculate distance in meters between two GPS coordinates."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def effective_radius(radius_override: Optional[float], default_radius: float) -> float:
    if radius_override is not None and float(radius_override) > 0:
        return float(radius_override)
    return float(default_radius)


def validate_location(latitude, longitude, kiosk_latitude, kiosk_longitude,
                      radius_meters: float) -> GeoResult:
    """Inside/outside check with an inclusive boundary (distance <= radius).

    Missing or invalid coordinates on either side fail closed. Device accuracy
    is deliberately not an input.
    """
    if not (_valid_coordinate(latitude, longitude)
            and _valid_coordinate(kiosk_latitude, kiosk_longitude)):
        return GeoResult(math.inf, False, float(radius_meters))

    distance = haversine_distance(
        float(latitude), float(longitude), float(kiosk_latitude), float(kiosk_longitude)
    )
    return GeoResult(distance, distance <= radius_meters, float(radius_meters))
