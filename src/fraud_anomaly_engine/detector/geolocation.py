"""Geolocation anomaly detection.

Scores where an event comes from: physically impossible movement since
the last known position, the reputation of the source IP, and distance
from the places the subject usually acts from.
"""

from __future__ import annotations

import logging
import math

from fraud_anomaly_engine.config import GeoSettings, ReputationSettings
from fraud_anomaly_engine.events.models import EvaluationContext
from fraud_anomaly_engine.geo.clustering import cluster_locations, distance_to_nearest_cluster
from fraud_anomaly_engine.geo.distance import TravelAssessment, is_impossible_travel
from fraud_anomaly_engine.geo.models import GeoClusterCheck, LocationPoint
from fraud_anomaly_engine.models import (
    AnomalyResult,
    AnomalyType,
    DetectionMethod,
    Finding,
    score_confidence,
)
from fraud_anomaly_engine.profiler.models import BehavioralProfile
from fraud_anomaly_engine.reputation.ip import (
    HeuristicIpReputation,
    IpReputation,
    IpReputationProvider,
)

logger = logging.getLogger(__name__)


class GeolocationDetector:
    """Detects geographic anomalies for an event.

    Sub-checks and their required inputs:
        impossible_travel: lat, lon, last_lat, last_lon, time_diff_seconds
        ip_reputation: ip (or a pre-resolved ip_reputation score)
        geo_clustering: lat, lon and at least ``cluster_min_history`` (3)
            location history points (from the context, else the profile)

    Scoring:
        impossible_travel = 85 when impossible; otherwise, for a finite
            speed above 70% of the ceiling, ((ratio - 0.7) / 0.3) * 60
        ip_reputation = the provider's risk score
        geo_clustering = 0 inside a cluster,
            min(distance / 500 * 40, 80) outside all clusters,
            30 when history exists but forms no cluster yet

    The overall score is the highest among the sub-checks that ran.

    Example:
        ```python
        detector = GeolocationDetector(settings.geo)
        result = detector.evaluate(context)
        if result.highest_method is DetectionMethod.IMPOSSIBLE_TRAVEL:
            print("impossible travel", result.score)
        ```
    """

    def __init__(
        self,
        settings: GeoSettings | None = None,
        *,
        reputation_settings: ReputationSettings | None = None,
        ip_reputation: IpReputationProvider | None = None,
    ) -> None:
        """Initialize the geolocation detector.

        Args:
            settings: Geo settings. Defaults to GeoSettings().
            reputation_settings: IP reputation settings. Defaults to
                ReputationSettings().
            ip_reputation: Reputation provider for IP lookups. Defaults to a
                HeuristicIpReputation with no threat-intel lists.
        """
        self._settings = settings or GeoSettings()
        self._reputation_settings = reputation_settings or ReputationSettings()
        self._ip_reputation = ip_reputation or HeuristicIpReputation()

    @property
    def anomaly_type(self) -> AnomalyType:
        """Return the anomaly family this detector scores."""
        return AnomalyType.GEOLOCATION

    def evaluate(
        self,
        context: EvaluationContext,
        profile: BehavioralProfile | None = None,
    ) -> AnomalyResult:
        """Score the geographic plausibility of ``context``.

        Args:
            context: The event under evaluation.
            profile: Optional profile supplying location history when the
                context carries none.

        Returns:
            AnomalyResult with a finding per sub-check that had its inputs.
        """
        findings: dict[DetectionMethod, Finding] = {}

        travel = self.check_impossible_travel(context)
        if travel is not None:
            findings[DetectionMethod.IMPOSSIBLE_TRAVEL] = travel

        ip = self.check_ip_reputation(context)
        if ip is not None:
            findings[DetectionMethod.IP_REPUTATION] = ip

        clustering = self.check_geo_clustering(context, profile)
        if clustering is not None:
            findings[DetectionMethod.GEO_CLUSTERING] = clustering

        metadata = {} if findings else {"reason": "insufficient_inputs"}
        result = AnomalyResult.from_findings(
            AnomalyType.GEOLOCATION,
            findings,
            metadata=metadata,
        )
        if result.detected:
            logger.debug(
                "Geolocation anomaly: score=%.2f via %s",
                result.score,
                result.highest_method.value if result.highest_method else None,
            )
        return result

    def check_impossible_travel(self, context: EvaluationContext) -> Finding | None:
        """Score the move from the last known position, if both are known."""
        lat, lon = context.lat, context.lon
        last_lat, last_lon = context.last_lat, context.last_lon
        elapsed = context.time_diff_seconds
        if lat is None or lon is None or last_lat is None or last_lon is None or elapsed is None:
            logger.debug("Skipping impossible travel: missing position or time inputs")
            return None

        assessment = is_impossible_travel(
            last_lat,
            last_lon,
            lat,
            lon,
            elapsed,
            max_speed_kmh=self._settings.max_speed_kmh,
        )
        score = self._travel_score(assessment)
        return Finding(
            method=DetectionMethod.IMPOSSIBLE_TRAVEL,
            detected=assessment.impossible,
            score=score,
            confidence=score_confidence(score),
            details=assessment,
        )

    def _travel_score(self, assessment: TravelAssessment) -> float:
        """Score a travel assessment, with gradient credit for near-limit speeds."""
        s = self._settings
        if assessment.impossible:
            return s.impossible_travel_score
        if not math.isfinite(assessment.required_speed_kmh):
            return 0.0

        ratio = assessment.speed_ratio
        if ratio <= s.travel_gradient_ratio:
            return 0.0
        return (
            (ratio - s.travel_gradient_ratio)
            / (1.0 - s.travel_gradient_ratio)
            * s.travel_gradient_max_score
        )

    def check_ip_reputation(self, context: EvaluationContext) -> Finding | None:
        """Score the source IP from a pre-resolved value or the provider."""
        if context.ip_reputation is not None:
            reputation = IpReputation(
                ip=context.ip or "",
                risk_score=context.ip_reputation,
                details={"source": "context"},
            )
        elif context.ip is not None:
            reputation = self._ip_reputation.assess_ip_reputation(context.ip)
        else:
            logger.debug("Skipping IP reputation: no IP")
            return None

        score = reputation.risk_score
        return Finding(
            method=DetectionMethod.IP_REPUTATION,
            detected=score >= self._reputation_settings.ip_reputation_threshold,
            score=score,
            confidence=score_confidence(score),
            details=reputation,
        )

    def check_geo_clustering(
        self,
        context: EvaluationContext,
        profile: BehavioralProfile | None = None,
    ) -> Finding | None:
        """Score the current position against clusters of past positions."""
        s = self._settings
        history: tuple[LocationPoint, ...] = context.location_history
        if not history and profile is not None:
            history = profile.location_history

        lat, lon = context.lat, context.lon
        if lat is None or lon is None or len(history) < s.cluster_min_history:
            logger.debug(
                "Skipping geo clustering: position known=%s, history=%d points",
                context.has_position,
                len(history),
            )
            return None

        result = cluster_locations(
            history,
            epsilon_km=s.cluster_epsilon_km,
            min_points=s.cluster_min_points,
            max_points=s.cluster_max_points,
        )

        if not result.clusters:
            score = s.cluster_noise_score
            return Finding(
                method=DetectionMethod.GEO_CLUSTERING,
                detected=False,
                score=score,
                confidence=score_confidence(score),
                details=GeoClusterCheck(
                    clustering=result,
                    proximity=None,
                    reason="no_established_clusters",
                ),
            )

        proximity = distance_to_nearest_cluster(
            lat,
            lon,
            result.clusters,
            margin_km=s.cluster_margin_km,
        )
        if proximity.outside_cluster:
            score = min(
                proximity.distance_km
                / s.cluster_outside_max_distance_km
                * s.cluster_outside_score_multiplier,
                s.cluster_outside_max_score,
            )
        else:
            score = 0.0

        return Finding(
            method=DetectionMethod.GEO_CLUSTERING,
            detected=proximity.outside_cluster,
            score=score,
            confidence=score_confidence(score),
            details=GeoClusterCheck(clustering=result, proximity=proximity),
        )
