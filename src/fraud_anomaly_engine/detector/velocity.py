"""Velocity anomaly detection.

Scores how fast a subject is generating events: sliding-window limits,
short-term bursts, and the same device or IP fanning out across several
accounts.
"""

from __future__ import annotations

import logging

from fraud_anomaly_engine.config import VelocitySettings
from fraud_anomaly_engine.events.models import EvaluationContext
from fraud_anomaly_engine.models import AnomalyResult, AnomalyType, DetectionMethod, Finding
from fraud_anomaly_engine.profiler.models import BehavioralProfile
from fraud_anomaly_engine.rules.engine import RuleEngine

logger = logging.getLogger(__name__)

# Scoring policy
WINDOW_SCORE_PER_EXCEEDED = 25.0
BURST_SCORE_PER_RATIO = 20.0
CROSS_ACCOUNT_SCORE = 70.0
CROSS_ACCOUNT_CONFIDENCE = 0.8
FIRED_CONFIDENCE = 0.85
BASELINE_CONFIDENCE = 0.5


class VelocityDetector:
    """Detects abnormal event rates for a subject.

    Scoring:
        sliding_window = min(100, exceeded_windows * 25)
        burst_detection = min(100, burst_ratio * 20) when a burst fired, else 0
        cross_account_correlation = 70 when fired, else 0 (confidence 0.8)

    Window and burst findings carry confidence 0.85 when either of them
    fired and 0.5 otherwise. Cross-account correlation needs an IP or a
    device fingerprint and is omitted without both.

    Example:
        ```python
        detector = VelocityDetector(RuleEngine(settings.velocity))
        result = detector.evaluate(context)
        print(result.score, result.highest_method)
        ```
    """

    def __init__(self, rule_engine: RuleEngine | None = None) -> None:
        """Initialize the velocity detector.

        Args:
            rule_engine: Rule engine to evaluate. Defaults to one built from
                VelocitySettings().
        """
        self._rules = rule_engine or RuleEngine(VelocitySettings())

    @property
    def anomaly_type(self) -> AnomalyType:
        """Return the anomaly family this detector scores."""
        return AnomalyType.VELOCITY

    def evaluate(
        self,
        context: EvaluationContext,
        profile: BehavioralProfile | None = None,
    ) -> AnomalyResult:
        """Score the event rate around ``context``.

        Args:
            context: The event under evaluation.
            profile: Unused; accepted for a uniform detector interface.

        Returns:
            AnomalyResult with sliding-window, burst and (when possible)
            cross-account findings.
        """
        windows = self._rules.evaluate_sliding_windows(context)
        burst = self._rules.detect_burst(context)

        fired = windows.exceeded or burst.burst_detected
        confidence = FIRED_CONFIDENCE if fired else BASELINE_CONFIDENCE

        findings: dict[DetectionMethod, Finding] = {
            DetectionMethod.SLIDING_WINDOW: Finding(
                method=DetectionMethod.SLIDING_WINDOW,
                detected=windows.exceeded,
                score=min(100.0, windows.exceeded_count * WINDOW_SCORE_PER_EXCEEDED),
                confidence=confidence,
                details=windows,
            ),
            DetectionMethod.BURST_DETECTION: Finding(
                method=DetectionMethod.BURST_DETECTION,
                detected=burst.burst_detected,
                score=(
                    min(100.0, burst.burst_ratio * BURST_SCORE_PER_RATIO)
                    if burst.burst_detected
                    else 0.0
                ),
                confidence=confidence,
                details=burst,
            ),
        }

        if context.ip or context.device_fingerprint:
            cross = self._rules.detect_cross_account_activity(context)
            findings[DetectionMethod.CROSS_ACCOUNT_CORRELATION] = Finding(
                method=DetectionMethod.CROSS_ACCOUNT_CORRELATION,
                detected=cross.detected,
                score=CROSS_ACCOUNT_SCORE if cross.detected else 0.0,
                confidence=CROSS_ACCOUNT_CONFIDENCE,
                details=cross,
            )
        else:
            logger.debug("Skipping cross-account check: no IP or device fingerprint")

        result = AnomalyResult.from_findings(AnomalyType.VELOCITY, findings)
        if result.detected:
            logger.debug(
                "Velocity anomaly: score=%.2f via %s",
                result.score,
                result.highest_method.value if result.highest_method else None,
            )
        return result
