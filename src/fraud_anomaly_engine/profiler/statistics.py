"""Statistical outlier analysis.

Compares the numeric dimensions of an event (amount, frequency) against
the distribution summarized in a behavioral profile, and the amount
against the interquartile range of recent transactions.
"""

from __future__ import annotations

import logging
import math

import numpy as np

from fraud_anomaly_engine.config import BehavioralSettings, StatisticalSettings
from fraud_anomaly_engine.events.models import EvaluationContext, EventType
from fraud_anomaly_engine.models import DetectionMethod, Finding, clamp_score
from fraud_anomaly_engine.profiler.analyzer import monetary_amounts
from fraud_anomaly_engine.profiler.models import BehavioralProfile, IqrOutlier, ZScoreOutlier

logger = logging.getLogger(__name__)

IQR_SCORE_MULTIPLIER = 40.0


class StatisticalAnalyzer:
    """Flags events that are statistical outliers for their subject.

    Methods:
        statistical_outlier: z-score of the amount against the profile's
            amount mean and stddev.
        frequency_outlier: z-score of the event count in the current
            frequency period against the profile baseline, using the
            Poisson approximation stddev = sqrt(baseline).
        iqr_outlier: distance of the amount beyond the Tukey fences of
            recent transaction amounts.

    A z-score finding is detected when ``|z| > z_score_threshold``; its
    score rises linearly from 0 at the threshold to 100 at
    ``z_score_saturation``. Dimensions that cannot be computed (zero
    stddev, no baseline, too few samples) are left out of the result.
    """

    def __init__(
        self,
        settings: StatisticalSettings | None = None,
        *,
        frequency_period_seconds: float | None = None,
    ) -> None:
        """Initialize the analyzer.

        Args:
            settings: Statistical settings. Defaults to StatisticalSettings().
            frequency_period_seconds: Period the profile frequency baseline
                is expressed in. Defaults to the behavioral settings default.
        """
        self._settings = settings or StatisticalSettings()
        self._period = frequency_period_seconds or BehavioralSettings().frequency_period_seconds

    def analyze(
        self,
        context: EvaluationContext,
        profile: BehavioralProfile | None,
    ) -> dict[DetectionMethod, Finding]:
        """Run every applicable outlier check.

        Args:
            context: The event under evaluation.
            profile: The subject's profile, or None if unavailable.

        Returns:
            Findings keyed by method, in evaluation order. Empty when the
            profile is missing or not established, which means "no signal
            available" rather than "clean".
        """
        if profile is None or not profile.established:
            return {}

        findings: dict[DetectionMethod, Finding] = {}
        has_amount = context.event_type != EventType.LOGIN

        if has_amount:
            amount = self.amount_z_score(context, profile)
            if amount is not None:
                findings[DetectionMethod.STATISTICAL_OUTLIER] = amount

        frequency = self.frequency_z_score(context, profile)
        if frequency is not None:
            findings[DetectionMethod.FREQUENCY_OUTLIER] = frequency

        if has_amount:
            iqr = self.iqr_outlier(context)
            if iqr is not None:
                findings[DetectionMethod.IQR_OUTLIER] = iqr

        return findings

    def amount_z_score(
        self,
        context: EvaluationContext,
        profile: BehavioralProfile,
    ) -> Finding | None:
        """Score the event amount against the profile's amount distribution."""
        stats = profile.amount_stats
        if stats is None or stats.stddev <= 0:
            return None

        return self._z_score_finding(
            DetectionMethod.STATISTICAL_OUTLIER,
            dimension="amount",
            value=context.amount,
            mean=stats.mean,
            stddev=stats.stddev,
            confidence=self._settings.amount_confidence,
        )

    def frequency_z_score(
        self,
        context: EvaluationContext,
        profile: BehavioralProfile,
    ) -> Finding | None:
        """Score the current period's event count against the frequency baseline."""
        baseline = profile.frequency_baseline
        if baseline <= 0:
            return None

        observed = len(context.events_in_window(self._period)) + 1
        return self._z_score_finding(
            DetectionMethod.FREQUENCY_OUTLIER,
            dimension="frequency",
            value=float(observed),
            mean=baseline,
            stddev=math.sqrt(baseline),
            confidence=self._settings.frequency_confidence,
        )

    def iqr_outlier(self, context: EvaluationContext) -> Finding | None:
        """Check the amount against the interquartile fences of recent amounts."""
        s = self._settings
        amounts = monetary_amounts(context.recent_transactions)
        if len(amounts) < s.iqr_min_samples:
            logger.debug(
                "Skipping IQR check: %d samples < %d",
                len(amounts),
                s.iqr_min_samples,
            )
            return None

        q1, q3 = (float(q) for q in np.percentile(np.asarray(amounts, dtype=float), [25, 75]))
        iqr = q3 - q1
        lower = q1 - s.iqr_multiplier * iqr
        upper = q3 + s.iqr_multiplier * iqr

        amount = context.amount
        if amount > upper:
            distance = amount - upper
        elif amount < lower:
            distance = lower - amount
        else:
            distance = 0.0

        detected = distance > 0
        score = min(100.0, distance / iqr * IQR_SCORE_MULTIPLIER) if iqr > 0 else 0.0

        return Finding(
            method=DetectionMethod.IQR_OUTLIER,
            detected=detected,
            score=score,
            confidence=s.iqr_confidence,
            details=IqrOutlier(
                amount=amount,
                q1=q1,
                q3=q3,
                lower_fence=lower,
                upper_fence=upper,
                sample_count=len(amounts),
            ),
        )

    def _z_score_finding(
        self,
        method: DetectionMethod,
        *,
        dimension: str,
        value: float,
        mean: float,
        stddev: float,
        confidence: float,
    ) -> Finding:
        """Build a z-score finding with linear threshold-to-saturation scoring."""
        threshold = self._settings.z_score_threshold
        saturation = self._settings.z_score_saturation

        z = (value - mean) / stddev
        magnitude = abs(z)
        detected = magnitude > threshold
        score = clamp_score((magnitude - threshold) / (saturation - threshold) * 100.0)

        if detected:
            logger.debug("%s outlier: z=%.3f (threshold %.1f)", dimension, z, threshold)

        return Finding(
            method=method,
            detected=detected,
            score=score,
            confidence=confidence,
            details=ZScoreOutlier(
                dimension=dimension,
                value=value,
                mean=mean,
                stddev=stddev,
                z_score=z,
                threshold=threshold,
                saturation=saturation,
            ),
        )
