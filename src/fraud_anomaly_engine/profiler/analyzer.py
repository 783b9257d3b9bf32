"""Behavioral analysis against a subject's established profile.

This module provides the BehavioralAnalyzer class, which turns a
BehavioralProfile into per-subject adaptive thresholds, measures drift
between the profile baseline and recent activity, and classifies the
subject into an informational behavioral segment.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

from fraud_anomaly_engine.config import BehavioralSettings
from fraud_anomaly_engine.events.models import EventType, RecentEvent
from fraud_anomaly_engine.profiler.models import (
    AdaptiveThresholds,
    BehavioralProfile,
    DriftAssessment,
    Segment,
    ThresholdBreach,
)

logger = logging.getLogger(__name__)

# Segment boundaries
NEW_ACCOUNT_MAX_AGE_DAYS = 30
DORMANT_MIN_AGE_DAYS = 90
DORMANT_MAX_MONTHLY = 1.0
HIGH_VALUE_MIN_MEAN = 10_000.0
HIGH_VALUE_MIN_MONTHLY = 20.0
HIGH_FREQUENCY_MIN_MONTHLY = 100.0
LOW_VALUE_MAX_MEAN = 50.0
OCCASIONAL_MAX_MONTHLY = 5.0

SECONDS_PER_MONTH = 30 * 86400.0


def monetary_amounts(events: Sequence[RecentEvent]) -> list[float]:
    """Return the amounts of events that move money (logins are skipped)."""
    return [e.amount for e in events if e.event_type != EventType.LOGIN]


class BehavioralAnalyzer:
    """Derives per-subject expectations from a behavioral profile.

    The analyzer is stateless: every method reads the profile it is given
    and returns a fresh result. It never mutates the profile.

    Thresholds:
        amount_upper = mean + k * stddev
        amount_lower = max(0, mean - k * stddev)
        count_upper  = floor(baseline) + ceil(k * sqrt(max(1, baseline)))

    Drift:
        normalized_shift = |recent_mean - baseline_mean| / stddev
        count_ratio      = |recent_count - expected_count| / expected_count
        drift_score      = 0.6 * normalized_shift + 0.4 * count_ratio

    Example:
        ```python
        analyzer = BehavioralAnalyzer(BehavioralSettings())
        thresholds = analyzer.compute_adaptive_thresholds(profile)
        drift = analyzer.detect_drift(profile, context.events_in_window(7 * 86400))
        print(thresholds.amount_upper, drift.drifted, analyzer.classify_segment(profile))
        ```
    """

    def __init__(self, settings: BehavioralSettings | None = None) -> None:
        """Initialize the analyzer.

        Args:
            settings: Behavioral settings. Defaults to BehavioralSettings().
        """
        self._settings = settings or BehavioralSettings()

    @property
    def settings(self) -> BehavioralSettings:
        """Return the settings in use."""
        return self._settings

    def compute_adaptive_thresholds(self, profile: BehavioralProfile) -> AdaptiveThresholds:
        """Derive amount and count bounds from the profile.

        Profiles without amount statistics get an unbounded upper amount
        threshold. The upper bound never falls below the lower bound.

        Args:
            profile: The subject's behavioral profile.

        Returns:
            AdaptiveThresholds for the subject.
        """
        k = self._settings.adaptive_sensitivity
        baseline = profile.frequency_baseline
        count_upper = int(math.floor(baseline)) + math.ceil(k * math.sqrt(max(1.0, baseline)))

        stats = profile.amount_stats
        if stats is None:
            return AdaptiveThresholds(
                amount_upper=math.inf,
                amount_lower=0.0,
                count_upper=count_upper,
            )

        upper = stats.mean + k * stats.stddev
        lower = max(0.0, stats.mean - k * stats.stddev)
        return AdaptiveThresholds(
            amount_upper=max(upper, lower),
            amount_lower=lower,
            count_upper=count_upper,
        )

    def check_thresholds(
        self,
        profile: BehavioralProfile,
        *,
        amount: float,
        observed_count: int,
        check_amount: bool = True,
        segment: Segment | None = None,
    ) -> ThresholdBreach:
        """Compare an event against the profile's adaptive thresholds.

        Args:
            profile: The subject's behavioral profile.
            amount: Amount of the event under evaluation.
            observed_count: Events in the current frequency period, including
                the event under evaluation.
            check_amount: False for events that carry no amount (logins).
            segment: Pre-computed segment; classified from the profile if None.

        Returns:
            ThresholdBreach listing which bounds were crossed.
        """
        thresholds = self.compute_adaptive_thresholds(profile)
        breaches: list[str] = []
        excess = 0.0

        if check_amount:
            if amount > thresholds.amount_upper:
                excess = amount - thresholds.amount_upper
                breaches.append("amount_above_upper")
            elif amount < thresholds.amount_lower:
                excess = thresholds.amount_lower - amount
                breaches.append("amount_below_lower")

        if observed_count > thresholds.count_upper:
            breaches.append("count_above_upper")

        return ThresholdBreach(
            thresholds=thresholds,
            amount=amount,
            amount_excess=excess,
            observed_count=observed_count,
            breaches=tuple(breaches),
            segment=segment or self.classify_segment(profile),
        )

    def detect_drift(
        self,
        profile: BehavioralProfile,
        recent_transactions: Sequence[RecentEvent],
    ) -> DriftAssessment:
        """Measure divergence between the baseline and recent activity.

        ``recent_transactions`` should already be limited to the drift
        window; the expected count is the frequency baseline scaled to
        that window.

        Args:
            profile: The subject's behavioral profile.
            recent_transactions: Events inside the drift window.

        Returns:
            DriftAssessment; never drifted when there is no amount baseline
            or no recent monetary activity.
        """
        stats = profile.amount_stats
        if stats is None or stats.mean <= 0:
            return DriftAssessment(drifted=False, drift_score=0.0, reason="no_baseline")

        amounts = monetary_amounts(recent_transactions)
        if not amounts:
            return DriftAssessment(
                drifted=False,
                drift_score=0.0,
                baseline_mean=stats.mean,
                reason="no_recent_activity",
            )

        recent_mean = sum(amounts) / len(amounts)
        shift = abs(recent_mean - stats.mean)
        if stats.stddev > 0:
            normalized_shift = shift / stats.stddev
        else:
            normalized_shift = 1.0 if shift > 0 else 0.0

        s = self._settings
        periods = s.drift_window_seconds / s.frequency_period_seconds
        expected = profile.frequency_baseline * periods
        count_ratio = abs(len(amounts) - expected) / expected if expected > 0 else 0.0

        drift_score = s.drift_shift_weight * normalized_shift + s.drift_count_weight * count_ratio
        drifted = drift_score > s.drift_threshold

        if drifted:
            logger.debug(
                "Drift for %s: score=%.4f (shift=%.4f, count_ratio=%.4f)",
                profile.subject_id,
                drift_score,
                normalized_shift,
                count_ratio,
            )

        return DriftAssessment(
            drifted=drifted,
            drift_score=drift_score,
            baseline_mean=stats.mean,
            recent_mean=recent_mean,
            normalized_shift=normalized_shift,
            count_ratio=count_ratio,
            recent_count=len(amounts),
        )

    def classify_segment(self, profile: BehavioralProfile) -> Segment:
        """Classify the subject into a behavioral segment.

        The segment is informational only and never affects scoring.
        """
        monthly = profile.frequency_baseline * (
            SECONDS_PER_MONTH / self._settings.frequency_period_seconds
        )
        mean = profile.amount_stats.mean if profile.amount_stats else 0.0
        age = profile.account_age_days

        if age is not None and age < NEW_ACCOUNT_MAX_AGE_DAYS:
            return Segment.NEW_ACCOUNT
        if (
            profile.established
            and age is not None
            and age > DORMANT_MIN_AGE_DAYS
            and monthly < DORMANT_MAX_MONTHLY
        ):
            return Segment.DORMANT_REACTIVATED
        if mean > HIGH_VALUE_MIN_MEAN and monthly > HIGH_VALUE_MIN_MONTHLY:
            return Segment.HIGH_VALUE_TRADER
        if monthly > HIGH_FREQUENCY_MIN_MONTHLY and mean < LOW_VALUE_MAX_MEAN:
            return Segment.HIGH_FREQUENCY_LOW_VALUE
        if monthly < OCCASIONAL_MAX_MONTHLY:
            return Segment.OCCASIONAL_USER
        return Segment.RETAIL_CONSUMER
