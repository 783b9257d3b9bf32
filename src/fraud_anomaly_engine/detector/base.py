"""Common interface for anomaly detectors."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from fraud_anomaly_engine.events.models import EvaluationContext
from fraud_anomaly_engine.models import AnomalyResult, AnomalyType
from fraud_anomaly_engine.profiler.models import BehavioralProfile

# Confidence reported when a detector has no data to work with
INSUFFICIENT_DATA_CONFIDENCE = 0.2


@runtime_checkable
class Detector(Protocol):
    """A side-effect-free scorer of one anomaly family.

    Implementations must not mutate the context or profile, must not
    perform I/O, and must skip sub-checks whose inputs are absent rather
    than raise.
    """

    @property
    def anomaly_type(self) -> AnomalyType:
        """Return the anomaly family this detector scores."""
        ...

    def evaluate(
        self,
        context: EvaluationContext,
        profile: BehavioralProfile | None = None,
    ) -> AnomalyResult:
        """Score one event."""
        ...
