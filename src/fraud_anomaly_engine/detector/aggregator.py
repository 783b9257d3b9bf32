"""Composite verdicts across all detectors.

This module provides the Aggregator class, which runs the detectors for
an event (concurrently when awaited) and reduces their results into a
single CompositeVerdict with a transparent max-reduce.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence

from fraud_anomaly_engine.config import EngineSettings
from fraud_anomaly_engine.detector.base import Detector
from fraud_anomaly_engine.detector.behavioral import BehavioralDetector
from fraud_anomaly_engine.detector.geolocation import GeolocationDetector
from fraud_anomaly_engine.detector.statistical import StatisticalDetector
from fraud_anomaly_engine.detector.velocity import VelocityDetector
from fraud_anomaly_engine.events.models import EvaluationContext
from fraud_anomaly_engine.models import AnomalyResult, AnomalyType, CompositeVerdict
from fraud_anomaly_engine.profiler.analyzer import BehavioralAnalyzer
from fraud_anomaly_engine.profiler.models import BehavioralProfile
from fraud_anomaly_engine.profiler.statistics import StatisticalAnalyzer
from fraud_anomaly_engine.reputation.ip import IpReputationProvider
from fraud_anomaly_engine.rules.engine import RuleEngine

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_REPORT_THRESHOLD = 40.0


class Aggregator:
    """Runs detectors and reduces their results into one verdict.

    Reduction:
        overall_score = max(result.score for result in results)
        overall_confidence = confidence of that same result

        Ties go to the detector earlier in the priority order
        Velocity > Geolocation > Behavioral > Statistical.

    No weighting or blending is applied, so one strong signal is never
    diluted by weak ones. Every detector's result is kept in the verdict.
    Exceptions raised by a detector propagate to the caller unchanged.

    Example:
        ```python
        aggregator = Aggregator.from_settings(get_settings())

        verdict = await aggregator.evaluate(context, profile)
        print(verdict.overall_score, verdict.winning_detector, verdict.explanation)

        # A single pipeline step
        result = aggregator.evaluate_detector(AnomalyType.GEOLOCATION, context)
        ```
    """

    def __init__(
        self,
        detectors: Iterable[Detector] | None = None,
        *,
        report_threshold: float = DEFAULT_REPORT_THRESHOLD,
    ) -> None:
        """Initialize the aggregator.

        Args:
            detectors: Detectors to run, at most one per anomaly type.
                Defaults to all four detectors with default settings.
            report_threshold: Detector score at which a result is flagged.

        Raises:
            ValueError: If two detectors share an anomaly type.
        """
        if detectors is None:
            detectors = (
                VelocityDetector(),
                GeolocationDetector(),
                BehavioralDetector(),
                StatisticalDetector(),
            )

        self._detectors: dict[AnomalyType, Detector] = {}
        for detector in detectors:
            if detector.anomaly_type in self._detectors:
                raise ValueError(f"Duplicate detector for {detector.anomaly_type.value}")
            self._detectors[detector.anomaly_type] = detector

        self._report_threshold = report_threshold

    @classmethod
    def from_settings(
        cls,
        settings: EngineSettings,
        *,
        ip_reputation: IpReputationProvider | None = None,
    ) -> Aggregator:
        """Build an aggregator with all four detectors from engine settings.

        Args:
            settings: Engine settings.
            ip_reputation: Optional IP reputation provider for the
                geolocation detector.

        Returns:
            A configured Aggregator.
        """
        return cls(
            (
                VelocityDetector(RuleEngine(settings.velocity)),
                GeolocationDetector(
                    settings.geo,
                    reputation_settings=settings.reputation,
                    ip_reputation=ip_reputation,
                ),
                BehavioralDetector(BehavioralAnalyzer(settings.behavioral)),
                StatisticalDetector(
                    StatisticalAnalyzer(
                        settings.statistical,
                        frequency_period_seconds=settings.behavioral.frequency_period_seconds,
                    )
                ),
            ),
            report_threshold=settings.report_threshold,
        )

    @property
    def detector_types(self) -> tuple[AnomalyType, ...]:
        """Return the configured anomaly types in priority order."""
        return tuple(t for t in AnomalyType if t in self._detectors)

    @property
    def report_threshold(self) -> float:
        """Return the score at which a detector result is flagged."""
        return self._report_threshold

    def evaluate_detector(
        self,
        anomaly_type: AnomalyType,
        context: EvaluationContext,
        profile: BehavioralProfile | None = None,
    ) -> AnomalyResult:
        """Run a single detector as a discrete pipeline step.

        Args:
            anomaly_type: Detector to run.
            context: The event under evaluation.
            profile: The subject's profile, or None.

        Returns:
            The detector's AnomalyResult.

        Raises:
            KeyError: If no detector is configured for ``anomaly_type``.
        """
        detector = self._detectors.get(anomaly_type)
        if detector is None:
            raise KeyError(f"No detector configured for {anomaly_type.value}")
        return detector.evaluate(context, profile)

    async def evaluate(
        self,
        context: EvaluationContext,
        profile: BehavioralProfile | None = None,
        *,
        types: Iterable[AnomalyType] | None = None,
    ) -> CompositeVerdict:
        """Run detectors concurrently and reduce their results.

        Each detector runs in a worker thread; the detectors share no
        mutable state.

        Args:
            context: The event under evaluation.
            profile: The subject's profile, or None.
            types: Subset of detectors to run. Defaults to all configured.

        Returns:
            CompositeVerdict for the event.
        """
        selected = self._select(types)
        results = await asyncio.gather(
            *(
                asyncio.to_thread(self._detectors[t].evaluate, context, profile)
                for t in selected
            )
        )
        return self.reduce(results)

    def evaluate_sync(
        self,
        context: EvaluationContext,
        profile: BehavioralProfile | None = None,
        *,
        types: Iterable[AnomalyType] | None = None,
    ) -> CompositeVerdict:
        """Run detectors sequentially in the calling thread and reduce their results."""
        selected = self._select(types)
        return self.reduce([self._detectors[t].evaluate(context, profile) for t in selected])

    async def evaluate_batch(
        self,
        items: Sequence[tuple[EvaluationContext, BehavioralProfile | None]],
    ) -> list[CompositeVerdict]:
        """Evaluate several events concurrently.

        Args:
            items: ``(context, profile)`` pairs.

        Returns:
            Verdicts in the same order as ``items``.
        """
        tasks = [self.evaluate(context, profile) for context, profile in items]
        return list(await asyncio.gather(*tasks))

    def reduce(self, results: Iterable[AnomalyResult]) -> CompositeVerdict:
        """Reduce detector results into a composite verdict.

        Args:
            results: At most one result per anomaly type, in any order.

        Returns:
            CompositeVerdict. With no results the overall score and
            confidence are 0 and there is no winning detector.

        Raises:
            ValueError: If two results share an anomaly type.
        """
        per_detector: dict[AnomalyType, AnomalyResult] = {}
        for result in sorted(results, key=lambda r: r.anomaly_type.priority):
            if result.anomaly_type in per_detector:
                raise ValueError(f"Duplicate result for {result.anomaly_type.value}")
            per_detector[result.anomaly_type] = result

        winner: AnomalyResult | None = None
        for result in per_detector.values():
            if winner is None or result.score > winner.score:
                winner = result

        flagged = tuple(
            t for t, r in per_detector.items() if r.score >= self._report_threshold
        )

        verdict = CompositeVerdict(
            overall_score=winner.score if winner else 0.0,
            overall_confidence=winner.confidence if winner else 0.0,
            per_detector=per_detector,
            winning_detector=winner.anomaly_type if winner else None,
            flagged=flagged,
        )

        if flagged:
            logger.info(
                "Anomaly verdict %s: score=%.2f, severity=%s, flagged=%s",
                verdict.verdict_id,
                verdict.overall_score,
                verdict.severity.value,
                ",".join(t.value for t in flagged),
            )
        return verdict

    def _select(self, types: Iterable[AnomalyType] | None) -> tuple[AnomalyType, ...]:
        """Resolve the detectors to run, in priority order."""
        if types is None:
            return self.detector_types

        wanted = set(types)
        missing = wanted - set(self._detectors)
        if missing:
            names = ", ".join(sorted(t.value for t in missing))
            raise KeyError(f"No detector configured for {names}")
        return tuple(t for t in AnomalyType if t in wanted)
