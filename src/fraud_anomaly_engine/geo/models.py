"""Data models for the geo module."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from fraud_anomaly_engine.geo.distance import InvalidInputError, normalize_coordinates


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string, epoch seconds or datetime into an aware datetime.

    Raises:
        InvalidInputError: If the value is a naive datetime or unparseable.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, int | float):
        parsed = datetime.fromtimestamp(float(value), tz=UTC)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise InvalidInputError(f"Invalid timestamp: {value!r}") from e
    else:
        raise InvalidInputError(f"Unsupported timestamp type: {type(value).__name__}")

    if parsed.tzinfo is None:
        raise InvalidInputError(f"Timestamp must be timezone-aware: {value!r}")
    return parsed


@dataclass(frozen=True)
class LocationPoint:
    """An observed position, optionally with the time it was seen."""

    lat: float
    lon: float
    timestamp: datetime | None = None

    def __post_init__(self) -> None:
        lat, lon = normalize_coordinates(self.lat, self.lon)
        object.__setattr__(self, "lat", lat)
        object.__setattr__(self, "lon", lon)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LocationPoint:
        """Create a LocationPoint from a dictionary."""
        timestamp = data.get("timestamp")
        return cls(
            lat=float(data["lat"]),
            lon=float(data["lon"]),
            timestamp=parse_timestamp(timestamp) if timestamp is not None else None,
        )

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "lat": self.lat,
            "lon": self.lon,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass(frozen=True)
class LocationCluster:
    """A dense group of location points.

    Attributes:
        centroid: Spherical mean of the member positions.
        radius_km: Distance from the centroid to the farthest member.
        members: Member points in input order.
    """

    centroid: LocationPoint
    radius_km: float
    members: tuple[LocationPoint, ...]

    @property
    def size(self) -> int:
        """Return the number of member points."""
        return len(self.members)

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "centroid": {"lat": self.centroid.lat, "lon": self.centroid.lon},
            "radius_km": round(self.radius_km, 3),
            "size": self.size,
        }


@dataclass(frozen=True)
class ClusteringResult:
    """Partition of a location history into clusters and noise."""

    clusters: tuple[LocationCluster, ...] = ()
    noise: tuple[LocationPoint, ...] = ()

    @property
    def point_count(self) -> int:
        """Return the total number of clustered and unclustered points."""
        return sum(c.size for c in self.clusters) + len(self.noise)

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "clusters": [c.to_dict() for c in self.clusters],
            "noise_count": len(self.noise),
        }


@dataclass(frozen=True)
class ClusterProximity:
    """Distance from a position to the closest known cluster.

    ``distance_km`` is ``inf`` and ``nearest`` is None when there are no
    clusters to compare against.
    """

    distance_km: float
    outside_cluster: bool
    nearest: LocationCluster | None = None
    margin_km: float = 0.0

    @property
    def nearest_centroid(self) -> LocationPoint | None:
        """Return the centroid of the nearest cluster, if any."""
        return self.nearest.centroid if self.nearest else None

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        finite = math.isfinite(self.distance_km)
        return {
            "distance_km": round(self.distance_km, 3) if finite else None,
            "outside_cluster": self.outside_cluster,
            "nearest_cluster": self.nearest.to_dict() if self.nearest else None,
            "margin_km": self.margin_km,
        }


@dataclass(frozen=True)
class GeoClusterCheck:
    """Evidence for the geo-clustering finding."""

    clustering: ClusteringResult
    proximity: ClusterProximity | None
    reason: str = field(default="")

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            **self.clustering.to_dict(),
            "distance_check": self.proximity.to_dict() if self.proximity else None,
            "reason": self.reason or None,
        }
