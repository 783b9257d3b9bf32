"""Tests for the geolocation detector."""

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from fraud_anomaly_engine.config import GeoSettings, ReputationSettings
from fraud_anomaly_engine.detector.geolocation import GeolocationDetector
from fraud_anomaly_engine.events.models import EvaluationContext
from fraud_anomaly_engine.geo.distance import haversine_distance_km
from fraud_anomaly_engine.geo.models import LocationPoint
from fraud_anomaly_engine.models import AnomalyType, DetectionMethod
from fraud_anomaly_engine.profiler.models import BehavioralProfile
from fraud_anomaly_engine.reputation.ip import IpReputation, StaticIpReputation

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)

NYC = (40.7128, -74.0060)
LONDON = (51.5074, -0.1278)
LOS_ANGELES = (34.0522, -118.2437)
TOKYO = (35.6762, 139.6503)

NYC_HISTORY = tuple(
    LocationPoint(lat=NYC[0] + 0.01 * i, lon=NYC[1] - 0.01 * i) for i in range(5)
)


@pytest.fixture
def detector() -> GeolocationDetector:
    """Create a geolocation detector with default settings."""
    return GeolocationDetector(GeoSettings(), reputation_settings=ReputationSettings())


# ============================================================================
# Impossible Travel Tests
# ============================================================================


class TestImpossibleTravel:
    """Tests for the impossible travel sub-check."""

    def test_new_york_to_london_in_ten_minutes(self, detector: GeolocationDetector) -> None:
        """Test that a transatlantic move in 600 seconds is impossible."""
        context = EvaluationContext(
            timestamp=NOW,
            lat=LONDON[0],
            lon=LONDON[1],
            last_lat=NYC[0],
            last_lon=NYC[1],
            time_diff_seconds=600,
        )
        result = detector.evaluate(context)
        finding = result.findings[DetectionMethod.IMPOSSIBLE_TRAVEL]

        assert finding.detected is True
        assert finding.score == 85.0
        assert finding.details.to_dict()["impossible"] is True
        assert result.score == 85.0
        assert result.confidence == 0.95
        assert result.highest_method is DetectionMethod.IMPOSSIBLE_TRAVEL

    def test_feasible_slow_travel(self, detector: GeolocationDetector) -> None:
        """Test that a leisurely move scores zero."""
        context = EvaluationContext(
            timestamp=NOW,
            lat=LONDON[0],
            lon=LONDON[1],
            last_lat=NYC[0],
            last_lon=NYC[1],
            time_diff_seconds=2 * 86400,
        )
        finding = detector.check_impossible_travel(context)

        assert finding is not None
        assert finding.detected is False
        assert finding.score == 0.0

    def test_near_limit_speed_gets_gradient_score(self, detector: GeolocationDetector) -> None:
        """Test that travel at 85% of the ceiling scores halfway up the gradient."""
        distance = haversine_distance_km(NYC[0], NYC[1], LONDON[0], LONDON[1])
        elapsed = distance / (900.0 * 0.85) * 3600.0
        context = EvaluationContext(
            timestamp=NOW,
            lat=LONDON[0],
            lon=LONDON[1],
            last_lat=NYC[0],
            last_lon=NYC[1],
            time_diff_seconds=elapsed,
        )
        finding = detector.check_impossible_travel(context)

        assert finding is not None
        assert finding.detected is False
        assert finding.score == pytest.approx(30.0, abs=0.01)

    def test_zero_elapsed_different_place(self, detector: GeolocationDetector) -> None:
        """Test that moving in zero time is impossible."""
        context = EvaluationContext(
            timestamp=NOW,
            lat=LONDON[0],
            lon=LONDON[1],
            last_lat=NYC[0],
            last_lon=NYC[1],
            time_diff_seconds=0,
        )
        finding = detector.check_impossible_travel(context)

        assert finding is not None
        assert finding.detected is True
        assert finding.score == 85.0

    def test_missing_inputs_skip(self, detector: GeolocationDetector) -> None:
        """Test that the check is skipped without a previous position."""
        context = EvaluationContext(timestamp=NOW, lat=NYC[0], lon=NYC[1], time_diff_seconds=60)
        assert detector.check_impossible_travel(context) is None


# ============================================================================
# IP Reputation Tests
# ============================================================================


class TestIpReputation:
    """Tests for the IP reputation sub-check."""

    def test_provider_lookup(self) -> None:
        """Test that the provider is consulted for the context IP."""
        provider = MagicMock()
        provider.assess_ip_reputation.return_value = IpReputation(
            ip="10.0.0.1", risk_score=65.0, flags=("proxy_detected",)
        )
        detector = GeolocationDetector(ip_reputation=provider)

        finding = detector.check_ip_reputation(EvaluationContext(timestamp=NOW, ip="10.0.0.1"))

        provider.assess_ip_reputation.assert_called_once_with("10.0.0.1")
        assert finding is not None
        assert finding.detected is True
        assert finding.score == 65.0
        assert finding.confidence == 0.85

    def test_below_threshold(self) -> None:
        """Test that a low-risk IP is reported but not detected."""
        detector = GeolocationDetector(ip_reputation=StaticIpReputation({"10.0.0.1": 20.0}))
        finding = detector.check_ip_reputation(EvaluationContext(timestamp=NOW, ip="10.0.0.1"))

        assert finding is not None
        assert finding.detected is False
        assert finding.score == 20.0

    def test_threshold_is_inclusive(self) -> None:
        """Test that a score equal to the threshold is detected."""
        detector = GeolocationDetector(ip_reputation=StaticIpReputation({"10.0.0.1": 60.0}))
        finding = detector.check_ip_reputation(EvaluationContext(timestamp=NOW, ip="10.0.0.1"))

        assert finding is not None
        assert finding.detected is True

    def test_pre_resolved_score_overrides_provider(self) -> None:
        """Test that a score supplied on the context skips the provider."""
        provider = MagicMock()
        detector = GeolocationDetector(ip_reputation=provider)
        context = EvaluationContext(timestamp=NOW, ip="10.0.0.1", ip_reputation=75.0)

        finding = detector.check_ip_reputation(context)

        provider.assess_ip_reputation.assert_not_called()
        assert finding is not None
        assert finding.score == 75.0
        assert finding.details.to_dict()["source"] == "context"

    def test_no_ip_skips(self, detector: GeolocationDetector) -> None:
        """Test that the check is skipped without an IP."""
        assert detector.check_ip_reputation(EvaluationContext(timestamp=NOW)) is None


# ============================================================================
# Geo Clustering Tests
# ============================================================================


class TestGeoClustering:
    """Tests for the geo clustering sub-check."""

    def test_inside_home_cluster(self, detector: GeolocationDetector) -> None:
        """Test that an event at home scores zero."""
        context = EvaluationContext(
            timestamp=NOW, lat=NYC[0], lon=NYC[1], location_history=NYC_HISTORY
        )
        finding = detector.check_geo_clustering(context)

        assert finding is not None
        assert finding.detected is False
        assert finding.score == 0.0

    def test_far_from_every_cluster(self, detector: GeolocationDetector) -> None:
        """Test that an event across the continent hits the clustering cap."""
        context = EvaluationContext(
            timestamp=NOW,
            lat=LOS_ANGELES[0],
            lon=LOS_ANGELES[1],
            location_history=NYC_HISTORY,
        )
        finding = detector.check_geo_clustering(context)

        assert finding is not None
        assert finding.detected is True
        assert finding.score == 80.0
        assert finding.details.to_dict()["distance_check"]["outside_cluster"] is True

    def test_noise_only_history(self, detector: GeolocationDetector) -> None:
        """Test that scattered history scores the noise baseline without detecting."""
        history = tuple(LocationPoint(lat=lat, lon=lon) for lat, lon in (NYC, LONDON, TOKYO))
        context = EvaluationContext(
            timestamp=NOW, lat=NYC[0], lon=NYC[1], location_history=history
        )
        finding = detector.check_geo_clustering(context)

        assert finding is not None
        assert finding.detected is False
        assert finding.score == 30.0
        assert finding.details.to_dict()["reason"] == "no_established_clusters"

    def test_too_little_history_skips(self, detector: GeolocationDetector) -> None:
        """Test that fewer than the minimum points skips the check."""
        context = EvaluationContext(
            timestamp=NOW, lat=NYC[0], lon=NYC[1], location_history=NYC_HISTORY[:2]
        )
        assert detector.check_geo_clustering(context) is None

    def test_history_gate_independent_of_min_points(self) -> None:
        """Test that a larger cluster size still scores sparse history as noise."""
        detector = GeolocationDetector(GeoSettings(cluster_min_points=5))
        context = EvaluationContext(
            timestamp=NOW, lat=NYC[0], lon=NYC[1], location_history=NYC_HISTORY[:4]
        )
        finding = detector.check_geo_clustering(context)

        assert finding is not None
        assert finding.detected is False
        assert finding.score == 30.0
        assert finding.details.to_dict()["reason"] == "no_established_clusters"

    def test_history_gate_configurable(self) -> None:
        """Test that the required history size is configurable."""
        detector = GeolocationDetector(GeoSettings(cluster_min_history=6))
        context = EvaluationContext(
            timestamp=NOW, lat=NYC[0], lon=NYC[1], location_history=NYC_HISTORY
        )
        assert detector.check_geo_clustering(context) is None

    def test_profile_history_fallback(self, detector: GeolocationDetector) -> None:
        """Test that the profile's history is used when the context has none."""
        profile = BehavioralProfile(
            subject_id="acct-1", established=True, location_history=NYC_HISTORY
        )
        context = EvaluationContext(timestamp=NOW, lat=LOS_ANGELES[0], lon=LOS_ANGELES[1])

        finding = detector.check_geo_clustering(context, profile)

        assert finding is not None
        assert finding.detected is True


# ============================================================================
# Evaluate Tests
# ============================================================================


class TestGeolocationEvaluate:
    """Tests for GeolocationDetector.evaluate."""

    def test_anomaly_type(self, detector: GeolocationDetector) -> None:
        """Test the detector's anomaly type."""
        assert detector.anomaly_type is AnomalyType.GEOLOCATION

    def test_no_inputs(self, detector: GeolocationDetector) -> None:
        """Test that a context without location inputs has no findings."""
        result = detector.evaluate(EvaluationContext(timestamp=NOW))

        assert result.findings == {}
        assert result.score == 0.0
        assert result.detected is False
        assert result.metadata == {"reason": "insufficient_inputs"}

    def test_highest_sub_check_wins(self) -> None:
        """Test that the overall score is the maximum sub-check score."""
        detector = GeolocationDetector(ip_reputation=StaticIpReputation({"10.0.0.1": 20.0}))
        context = EvaluationContext(
            timestamp=NOW,
            ip="10.0.0.1",
            lat=LONDON[0],
            lon=LONDON[1],
            last_lat=NYC[0],
            last_lon=NYC[1],
            time_diff_seconds=600,
        )
        result = detector.evaluate(context)

        assert result.score == 85.0
        assert result.highest_method is DetectionMethod.IMPOSSIBLE_TRAVEL
        assert result.findings[DetectionMethod.IP_REPUTATION].score == 20.0
