"""Location clustering using DBSCAN over great-circle distance.

Groups a subject's location history into dense clusters so that a new
position can be checked against the places the subject usually acts
from. Clustering runs scikit-learn's DBSCAN with the haversine metric,
which is deterministic for a given input ordering: clusters are labelled
in the order their first core point appears, and border points reachable
from several clusters join the one discovered first.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

import numpy as np
from sklearn.cluster import DBSCAN

from fraud_anomaly_engine.geo.distance import EARTH_RADIUS_KM, haversine_distance_km
from fraud_anomaly_engine.geo.models import (
    ClusteringResult,
    ClusterProximity,
    LocationCluster,
    LocationPoint,
)

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_EPSILON_KM = 50.0
DEFAULT_MIN_POINTS = 3
DEFAULT_MAX_POINTS = 1000


def cluster_locations(
    points: Sequence[LocationPoint],
    *,
    epsilon_km: float = DEFAULT_EPSILON_KM,
    min_points: int = DEFAULT_MIN_POINTS,
    max_points: int = DEFAULT_MAX_POINTS,
) -> ClusteringResult:
    """Partition location points into dense clusters and noise.

    Args:
        points: Location history, oldest first.
        epsilon_km: Neighbourhood radius in kilometres.
        min_points: Minimum points (including the point itself) for a core point.
        max_points: Only the most recent ``max_points`` points are clustered.

    Returns:
        ClusteringResult. With fewer than ``min_points`` points there are no
        clusters and every point is noise.
    """
    points = list(points)[-max_points:]

    if len(points) < min_points:
        logger.debug(
            "Not enough points for clustering: %d < %d",
            len(points),
            min_points,
        )
        return ClusteringResult(clusters=(), noise=tuple(points))

    coords = np.radians([[p.lat, p.lon] for p in points])

    clustering = DBSCAN(
        eps=epsilon_km / EARTH_RADIUS_KM,
        min_samples=min_points,
        metric="haversine",
        algorithm="ball_tree",
    ).fit(coords)

    members: dict[int, list[LocationPoint]] = {}
    noise: list[LocationPoint] = []
    for point, label in zip(points, clustering.labels_, strict=True):
        if label == -1:
            noise.append(point)
        else:
            members.setdefault(int(label), []).append(point)

    clusters = tuple(_build_cluster(members[label]) for label in sorted(members))

    logger.debug(
        "Clustered %d points into %d clusters (%d noise)",
        len(points),
        len(clusters),
        len(noise),
    )
    return ClusteringResult(clusters=clusters, noise=tuple(noise))


def _build_cluster(members: list[LocationPoint]) -> LocationCluster:
    """Compute the centroid and radius for a group of member points.

    The centroid is the normalised mean of the members' unit vectors, which
    stays correct across the antimeridian where averaging degrees does not.
    """
    lat = np.radians([p.lat for p in members])
    lon = np.radians([p.lon for p in members])
    vectors = np.column_stack(
        (np.cos(lat) * np.cos(lon), np.cos(lat) * np.sin(lon), np.sin(lat))
    )
    mean = vectors.mean(axis=0)
    norm = float(np.linalg.norm(mean))

    if norm < 1e-12:
        centroid = LocationPoint(lat=members[0].lat, lon=members[0].lon)
    else:
        x, y, z = mean / norm
        centroid = LocationPoint(
            lat=math.degrees(math.asin(max(-1.0, min(1.0, float(z))))),
            lon=math.degrees(math.atan2(float(y), float(x))),
        )

    radius = max(
        haversine_distance_km(centroid.lat, centroid.lon, p.lat, p.lon) for p in members
    )
    return LocationCluster(centroid=centroid, radius_km=radius, members=tuple(members))


def distance_to_nearest_cluster(
    lat: float,
    lon: float,
    clusters: Sequence[LocationCluster],
    *,
    margin_km: float = 0.0,
) -> ClusterProximity:
    """Find the cluster whose centroid is closest to a position.

    Ties on distance keep the cluster that comes first.

    Args:
        lat: Latitude of the position.
        lon: Longitude of the position.
        clusters: Clusters to compare against.
        margin_km: Slack added to the nearest cluster's radius.

    Returns:
        ClusterProximity; the position is outside when its distance exceeds
        the nearest cluster's radius plus the margin, or when there are no
        clusters at all.
    """
    nearest: LocationCluster | None = None
    best = math.inf

    for cluster in clusters:
        distance = haversine_distance_km(lat, lon, cluster.centroid.lat, cluster.centroid.lon)
        if distance < best:
            best = distance
            nearest = cluster

    if nearest is None:
        return ClusterProximity(distance_km=math.inf, outside_cluster=True, margin_km=margin_km)

    return ClusterProximity(
        distance_km=best,
        outside_cluster=best > nearest.radius_km + margin_km,
        nearest=nearest,
        margin_km=margin_km,
    )
