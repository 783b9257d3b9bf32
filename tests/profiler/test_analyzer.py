"""Tests for the behavioral analyzer."""

from datetime import UTC, datetime, timedelta

import pytest

from fraud_anomaly_engine.config import BehavioralSettings
from fraud_anomaly_engine.events.models import EventType, RecentEvent
from fraud_anomaly_engine.profiler.analyzer import BehavioralAnalyzer
from fraud_anomaly_engine.profiler.models import AmountStats, BehavioralProfile, Segment

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)


def _recent(
    amounts: list[float],
    event_type: EventType = EventType.TRANSACTION,
) -> list[RecentEvent]:
    return [
        RecentEvent(timestamp=NOW - timedelta(hours=i + 1), amount=a, event_type=event_type)
        for i, a in enumerate(amounts)
    ]


def _profile(
    *,
    mean: float = 100.0,
    stddev: float = 20.0,
    baseline: float = 5.0,
    age: float | None = 200.0,
    established: bool = True,
) -> BehavioralProfile:
    return BehavioralProfile(
        subject_id="acct-1",
        established=established,
        amount_stats=AmountStats(mean=mean, stddev=stddev, p05=mean * 0.7, p95=mean * 1.4),
        frequency_baseline=baseline,
        account_age_days=age,
    )


@pytest.fixture
def analyzer() -> BehavioralAnalyzer:
    """Create an analyzer with default settings."""
    return BehavioralAnalyzer(BehavioralSettings())


# ============================================================================
# Adaptive Threshold Tests
# ============================================================================


class TestAdaptiveThresholds:
    """Tests for compute_adaptive_thresholds and check_thresholds."""

    def test_mean_plus_minus_k_stddev(self, analyzer: BehavioralAnalyzer) -> None:
        """Test the default threshold formula."""
        thresholds = analyzer.compute_adaptive_thresholds(_profile())

        assert thresholds.amount_upper == pytest.approx(130.0)
        assert thresholds.amount_lower == pytest.approx(70.0)
        # 5 + ceil(1.5 * sqrt(5))
        assert thresholds.count_upper == 9

    def test_lower_bound_floored_at_zero(self, analyzer: BehavioralAnalyzer) -> None:
        """Test that wide distributions do not produce negative lower bounds."""
        thresholds = analyzer.compute_adaptive_thresholds(_profile(stddev=100.0))

        assert thresholds.amount_lower == 0.0
        assert thresholds.amount_upper == pytest.approx(250.0)

    def test_upper_never_below_lower(self, analyzer: BehavioralAnalyzer) -> None:
        """Test the ordering invariant for degenerate profiles."""
        for stddev in (0.0, 0.5, 1000.0):
            thresholds = analyzer.compute_adaptive_thresholds(_profile(stddev=stddev))
            assert thresholds.amount_upper >= thresholds.amount_lower

    def test_zero_baseline_count(self, analyzer: BehavioralAnalyzer) -> None:
        """Test the count bound when the subject has no frequency baseline."""
        thresholds = analyzer.compute_adaptive_thresholds(_profile(baseline=0.0))
        assert thresholds.count_upper == 2

    def test_sensitivity_widens_range(self) -> None:
        """Test that a higher sensitivity gives wider thresholds."""
        narrow = BehavioralAnalyzer(BehavioralSettings(adaptive_sensitivity=1.0))
        wide = BehavioralAnalyzer(BehavioralSettings(adaptive_sensitivity=3.0))
        profile = _profile()

        assert (
            wide.compute_adaptive_thresholds(profile).amount_width
            > narrow.compute_adaptive_thresholds(profile).amount_width
        )

    def test_amount_above_upper(self, analyzer: BehavioralAnalyzer) -> None:
        """Test an amount above the upper threshold."""
        breach = analyzer.check_thresholds(_profile(), amount=160.0, observed_count=1)

        assert breach.breaches == ("amount_above_upper",)
        assert breach.amount_excess == pytest.approx(30.0)
        assert breach.segment is Segment.RETAIL_CONSUMER

    def test_amount_below_lower(self, analyzer: BehavioralAnalyzer) -> None:
        """Test an amount below the lower threshold."""
        breach = analyzer.check_thresholds(_profile(), amount=50.0, observed_count=1)

        assert breach.breaches == ("amount_below_lower",)
        assert breach.amount_excess == pytest.approx(20.0)

    def test_count_breach(self, analyzer: BehavioralAnalyzer) -> None:
        """Test a frequency count above the upper bound."""
        breach = analyzer.check_thresholds(_profile(), amount=100.0, observed_count=10)

        assert breach.breaches == ("count_above_upper",)
        assert breach.amount_excess == 0.0

    def test_amount_check_skipped(self, analyzer: BehavioralAnalyzer) -> None:
        """Test that events without an amount only check the count."""
        breach = analyzer.check_thresholds(
            _profile(), amount=0.0, observed_count=1, check_amount=False
        )
        assert breach.breaches == ()


# ============================================================================
# Drift Tests
# ============================================================================


class TestDetectDrift:
    """Tests for detect_drift."""

    def test_no_recent_activity(self, analyzer: BehavioralAnalyzer) -> None:
        """Test that no recent events means no drift."""
        drift = analyzer.detect_drift(_profile(), [])

        assert drift.drifted is False
        assert drift.drift_score == 0.0
        assert drift.reason == "no_recent_activity"

    def test_matching_behavior_has_no_drift(self, analyzer: BehavioralAnalyzer) -> None:
        """Test that activity matching the baseline scores zero."""
        # Baseline 5/day over a 7-day window is 35 events
        drift = analyzer.detect_drift(_profile(), _recent([100.0] * 35))

        assert drift.drift_score == pytest.approx(0.0)
        assert drift.drifted is False

    def test_amount_shift(self, analyzer: BehavioralAnalyzer) -> None:
        """Test that a three-sigma mean shift drifts with a score above 1."""
        drift = analyzer.detect_drift(_profile(), _recent([160.0] * 35))

        assert drift.normalized_shift == pytest.approx(3.0)
        assert drift.drift_score == pytest.approx(1.8)
        assert drift.drifted is True

    def test_frequency_shift(self, analyzer: BehavioralAnalyzer) -> None:
        """Test that doubling the event count drifts."""
        drift = analyzer.detect_drift(_profile(), _recent([100.0] * 70))

        assert drift.count_ratio == pytest.approx(1.0)
        assert drift.drift_score == pytest.approx(0.4)
        assert drift.drifted is True

    def test_zero_stddev_shift(self, analyzer: BehavioralAnalyzer) -> None:
        """Test that any shift against a constant baseline counts as one unit."""
        drift = analyzer.detect_drift(_profile(stddev=0.0), _recent([101.0] * 35))
        assert drift.normalized_shift == 1.0

    def test_logins_ignored(self, analyzer: BehavioralAnalyzer) -> None:
        """Test that login events do not contribute amounts."""
        drift = analyzer.detect_drift(_profile(), _recent([0.0] * 10, EventType.LOGIN))
        assert drift.reason == "no_recent_activity"

    def test_no_baseline(self, analyzer: BehavioralAnalyzer) -> None:
        """Test that a profile without amount stats never drifts."""
        profile = BehavioralProfile(subject_id="s", established=True)
        drift = analyzer.detect_drift(profile, _recent([100.0]))

        assert drift.drifted is False
        assert drift.reason == "no_baseline"

    def test_threshold_configurable(self) -> None:
        """Test that the drift threshold is configurable."""
        strict = BehavioralAnalyzer(BehavioralSettings(drift_threshold=2.0))
        assert strict.detect_drift(_profile(), _recent([160.0] * 35)).drifted is False


# ============================================================================
# Segment Tests
# ============================================================================


class TestClassifySegment:
    """Tests for classify_segment."""

    @pytest.mark.parametrize(
        ("kwargs", "expected"),
        [
            ({"age": 10.0}, Segment.NEW_ACCOUNT),
            ({"baseline": 0.01}, Segment.DORMANT_REACTIVATED),
            ({"mean": 20000.0, "baseline": 1.0}, Segment.HIGH_VALUE_TRADER),
            ({"mean": 20.0, "baseline": 5.0}, Segment.HIGH_FREQUENCY_LOW_VALUE),
            ({"baseline": 0.1}, Segment.OCCASIONAL_USER),
            ({}, Segment.RETAIL_CONSUMER),
            ({"baseline": 0.01, "age": None}, Segment.OCCASIONAL_USER),
        ],
    )
    def test_segments(
        self,
        analyzer: BehavioralAnalyzer,
        kwargs: dict[str, float | None],
        expected: Segment,
    ) -> None:
        """Test each segment rule."""
        assert analyzer.classify_segment(_profile(**kwargs)) is expected  # type: ignore[arg-type]
