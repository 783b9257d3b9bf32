"""Great-circle distance and travel feasibility.

Pure functions over (lat, lon) pairs in decimal degrees. Finite but
out-of-range coordinates are clamped onto the valid range; NaN or
infinite coordinates are caller bugs and raise InvalidInputError.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Mean Earth radius (IUGG)
EARTH_RADIUS_KM = 6371.0088

DEFAULT_MAX_SPEED_KMH = 900.0


class InvalidInputError(ValueError):
    """Raised when a caller passes malformed input (NaN coordinates, negative deltas)."""


def normalize_coordinates(lat: float, lon: float) -> tuple[float, float]:
    """Validate a coordinate pair and clamp it onto the valid range.

    Args:
        lat: Latitude in decimal degrees.
        lon: Longitude in decimal degrees.

    Returns:
        Tuple of (lat, lon) clamped to [-90, 90] and [-180, 180].

    Raises:
        InvalidInputError: If either value is NaN or infinite.
    """
    lat = float(lat)
    lon = float(lon)
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise InvalidInputError(f"Coordinates must be finite, got ({lat}, {lon})")

    clamped_lat = max(-90.0, min(90.0, lat))
    clamped_lon = max(-180.0, min(180.0, lon))
    if clamped_lat != lat or clamped_lon != lon:
        logger.debug(
            "Clamped out-of-range coordinates (%s, %s) to (%s, %s)",
            lat,
            lon,
            clamped_lat,
            clamped_lon,
        )
    return clamped_lat, clamped_lon


def haversine_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return the great-circle distance between two points in kilometres."""
    lat1, lon1 = normalize_coordinates(lat1, lon1)
    lat2, lon2 = normalize_coordinates(lat2, lon2)

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Rounding can push a marginally above 1.0 for antipodal points
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


@dataclass(frozen=True)
class TravelAssessment:
    """Feasibility of moving between two observed positions.

    Attributes:
        impossible: True if the required speed exceeds the ceiling.
        distance_km: Great-circle distance between the two positions.
        time_diff_seconds: Elapsed time between the observations.
        required_speed_kmh: Speed needed to cover the distance; ``inf`` when
            the positions differ and no time elapsed.
        max_speed_kmh: Configured feasibility ceiling.
    """

    impossible: bool
    distance_km: float
    time_diff_seconds: float
    required_speed_kmh: float
    max_speed_kmh: float

    @property
    def speed_ratio(self) -> float:
        """Return the required speed as a fraction of the ceiling."""
        return self.required_speed_kmh / self.max_speed_kmh

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        finite = math.isfinite(self.required_speed_kmh)
        return {
            "impossible": self.impossible,
            "distance_km": round(self.distance_km, 3),
            "time_diff_seconds": self.time_diff_seconds,
            "required_speed_kmh": round(self.required_speed_kmh, 3) if finite else None,
            "max_speed_kmh": self.max_speed_kmh,
        }


def is_impossible_travel(
    last_lat: float,
    last_lon: float,
    lat: float,
    lon: float,
    time_diff_seconds: float,
    *,
    max_speed_kmh: float = DEFAULT_MAX_SPEED_KMH,
) -> TravelAssessment:
    """Assess whether moving between two positions in the given time is feasible.

    A non-positive time difference yields an infinite required speed: the
    move is impossible by definition, even between identical positions.

    Args:
        last_lat: Latitude of the previous observation.
        last_lon: Longitude of the previous observation.
        lat: Latitude of the current observation.
        lon: Longitude of the current observation.
        time_diff_seconds: Seconds elapsed between the observations.
        max_speed_kmh: Feasibility ceiling in km/h.

    Returns:
        TravelAssessment with the required speed and verdict.

    Raises:
        InvalidInputError: If coordinates or the time difference are NaN.
    """
    if math.isnan(time_diff_seconds):
        raise InvalidInputError("time_diff_seconds must not be NaN")

    distance = haversine_distance_km(last_lat, last_lon, lat, lon)

    if time_diff_seconds <= 0:
        required = math.inf
    else:
        required = distance / (time_diff_seconds / 3600.0)

    return TravelAssessment(
        impossible=required > max_speed_kmh,
        distance_km=distance,
        time_diff_seconds=float(time_diff_seconds),
        required_speed_kmh=required,
        max_speed_kmh=max_speed_kmh,
    )
