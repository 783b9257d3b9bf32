"""Behavioral anomaly detection.

Scores an event against what is normal for this particular subject:
amounts and counts outside the subject's adaptive thresholds, and drift
of recent activity away from the established baseline.
"""

from __future__ import annotations

import logging

from fraud_anomaly_engine.config import BehavioralSettings
from fraud_anomaly_engine.detector.base import INSUFFICIENT_DATA_CONFIDENCE
from fraud_anomaly_engine.events.models import EvaluationContext, EventType
from fraud_anomaly_engine.models import (
    AnomalyResult,
    AnomalyType,
    DetectionMethod,
    Finding,
    score_confidence,
)
from fraud_anomaly_engine.profiler.analyzer import BehavioralAnalyzer
from fraud_anomaly_engine.profiler.models import BehavioralProfile, ThresholdBreach

logger = logging.getLogger(__name__)


class BehavioralDetector:
    """Detects departures from a subject's established behavior.

    Requires an established profile with amount statistics. Without one
    the detector returns ``detected=False, score=0, confidence=0.2``:
    "insufficient data", not "safe".

    Scoring:
        adaptive_threshold = max(
            min(80, amount_excess / threshold_width * 100) on an amount breach,
            25 on a count breach,
        )
        drift_detection = min(100, drift_score * 100)

    The subject's behavioral segment is attached as metadata and never
    affects the score.

    Example:
        ```python
        detector = BehavioralDetector(BehavioralAnalyzer(settings.behavioral))
        result = detector.evaluate(context, profile)
        print(result.score, result.metadata["segment"])
        ```
    """

    def __init__(self, analyzer: BehavioralAnalyzer | None = None) -> None:
        """Initialize the behavioral detector.

        Args:
            analyzer: Behavioral analyzer. Defaults to one built from
                BehavioralSettings().
        """
        self._analyzer = analyzer or BehavioralAnalyzer(BehavioralSettings())

    @property
    def anomaly_type(self) -> AnomalyType:
        """Return the anomaly family this detector scores."""
        return AnomalyType.BEHAVIORAL

    def evaluate(
        self,
        context: EvaluationContext,
        profile: BehavioralProfile | None = None,
    ) -> AnomalyResult:
        """Score ``context`` against the subject's profile.

        Args:
            context: The event under evaluation.
            profile: The subject's profile, or None if unavailable.

        Returns:
            AnomalyResult with adaptive-threshold and drift findings, or a
            low-confidence empty result for a missing or unestablished profile.
        """
        if profile is None or not profile.is_usable:
            logger.debug("Skipping behavioral detection: profile missing or not established")
            return AnomalyResult(
                anomaly_type=AnomalyType.BEHAVIORAL,
                detected=False,
                score=0.0,
                confidence=INSUFFICIENT_DATA_CONFIDENCE,
                metadata={"reason": "insufficient_profile"},
            )

        settings = self._analyzer.settings
        segment = self._analyzer.classify_segment(profile)

        breach = self._analyzer.check_thresholds(
            profile,
            amount=context.amount,
            observed_count=len(context.events_in_window(settings.frequency_period_seconds)) + 1,
            check_amount=context.event_type != EventType.LOGIN,
            segment=segment,
        )
        adaptive_score = self._threshold_score(breach)

        drift = self._analyzer.detect_drift(
            profile,
            context.events_in_window(settings.drift_window_seconds),
        )
        drift_score = min(100.0, drift.drift_score * 100.0)

        findings = {
            DetectionMethod.ADAPTIVE_THRESHOLD: Finding(
                method=DetectionMethod.ADAPTIVE_THRESHOLD,
                detected=bool(breach.breaches),
                score=adaptive_score,
                confidence=score_confidence(adaptive_score),
                details=breach,
            ),
            DetectionMethod.DRIFT_DETECTION: Finding(
                method=DetectionMethod.DRIFT_DETECTION,
                detected=drift.drifted,
                score=drift_score,
                confidence=score_confidence(drift_score),
                details=drift,
            ),
        }

        result = AnomalyResult.from_findings(
            AnomalyType.BEHAVIORAL,
            findings,
            metadata={"segment": segment.value},
        )
        if result.detected:
            logger.debug(
                "Behavioral anomaly for %s: score=%.2f via %s (segment %s)",
                profile.subject_id,
                result.score,
                result.highest_method.value if result.highest_method else None,
                segment.value,
            )
        return result

    def _threshold_score(self, breach: ThresholdBreach) -> float:
        """Score a threshold breach relative to the width of the accepted range."""
        settings = self._analyzer.settings
        score = 0.0

        if breach.amount_excess > 0:
            width = breach.thresholds.amount_width
            if width > 0:
                score = min(settings.adaptive_max_score, breach.amount_excess / width * 100.0)
            else:
                score = settings.adaptive_max_score

        if "count_above_upper" in breach.breaches:
            score = max(score, settings.count_breach_score)

        return score
