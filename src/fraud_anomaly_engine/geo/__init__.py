"""Geospatial math - distance, travel feasibility and location clustering."""

from fraud_anomaly_engine.geo.clustering import cluster_locations, distance_to_nearest_cluster
from fraud_anomaly_engine.geo.distance import (
    EARTH_RADIUS_KM,
    InvalidInputError,
    TravelAssessment,
    haversine_distance_km,
    is_impossible_travel,
    normalize_coordinates,
)
from fraud_anomaly_engine.geo.models import (
    ClusteringResult,
    ClusterProximity,
    GeoClusterCheck,
    LocationCluster,
    LocationPoint,
    parse_timestamp,
)

__all__ = [
    "EARTH_RADIUS_KM",
    "ClusterProximity",
    "ClusteringResult",
    "GeoClusterCheck",
    "InvalidInputError",
    "LocationCluster",
    "LocationPoint",
    "TravelAssessment",
    "cluster_locations",
    "distance_to_nearest_cluster",
    "haversine_distance_km",
    "is_impossible_travel",
    "normalize_coordinates",
    "parse_timestamp",
]
