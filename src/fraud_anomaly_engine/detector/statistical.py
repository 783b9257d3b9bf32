"""Statistical anomaly detection."""

from __future__ import annotations

import logging

from fraud_anomaly_engine.detector.base import INSUFFICIENT_DATA_CONFIDENCE
from fraud_anomaly_engine.events.models import EvaluationContext
from fraud_anomaly_engine.models import AnomalyResult, AnomalyType
from fraud_anomaly_engine.profiler.models import BehavioralProfile
from fraud_anomaly_engine.profiler.statistics import StatisticalAnalyzer

logger = logging.getLogger(__name__)


class StatisticalDetector:
    """Reports the strongest statistical outlier finding for an event.

    ``detected``, ``score`` and ``confidence`` all come from the
    highest-scoring finding. An empty finding map (no usable profile)
    yields score 0 with confidence 0.2.
    """

    def __init__(self, analyzer: StatisticalAnalyzer | None = None) -> None:
        self._analyzer = analyzer or StatisticalAnalyzer()

    @property
    def anomaly_type(self) -> AnomalyType:
        """Return the anomaly family this detector scores."""
        return AnomalyType.STATISTICAL

    def evaluate(
        self,
        context: EvaluationContext,
        profile: BehavioralProfile | None = None,
    ) -> AnomalyResult:
        """Score ``context`` for statistical outliers against ``profile``."""
        findings = self._analyzer.analyze(context, profile)
        metadata = {} if findings else {"reason": "no_statistical_signal"}

        result = AnomalyResult.from_findings(
            AnomalyType.STATISTICAL,
            findings,
            empty_confidence=INSUFFICIENT_DATA_CONFIDENCE,
            metadata=metadata,
            detected_by_winner=True,
        )
        if result.detected:
            logger.debug(
                "Statistical anomaly: score=%.2f via %s",
                result.score,
                result.highest_method.value if result.highest_method else None,
            )
        return result
