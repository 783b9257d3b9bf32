"""Fraud anomaly detection engine.

Composable velocity, geolocation, behavioral and statistical detectors
that score financial events against a subject's behavioral profile, and
an aggregator that reduces their findings into a single verdict.
"""

from fraud_anomaly_engine.config import EngineSettings, get_settings
from fraud_anomaly_engine.detector import (
    Aggregator,
    BehavioralDetector,
    GeolocationDetector,
    StatisticalDetector,
    VelocityDetector,
)
from fraud_anomaly_engine.events import EvaluationContext, EventType, RecentEvent
from fraud_anomaly_engine.geo.distance import InvalidInputError
from fraud_anomaly_engine.models import (
    AnomalyResult,
    AnomalyType,
    CompositeVerdict,
    DetectionMethod,
    Finding,
    Severity,
)
from fraud_anomaly_engine.profiler import AmountStats, BehavioralProfile

__version__ = "0.1.0"

__all__ = [
    "Aggregator",
    "AmountStats",
    "AnomalyResult",
    "AnomalyType",
    "BehavioralDetector",
    "BehavioralProfile",
    "CompositeVerdict",
    "DetectionMethod",
    "EngineSettings",
    "EvaluationContext",
    "EventType",
    "Finding",
    "GeolocationDetector",
    "InvalidInputError",
    "RecentEvent",
    "Severity",
    "StatisticalDetector",
    "VelocityDetector",
    "__version__",
    "get_settings",
]
