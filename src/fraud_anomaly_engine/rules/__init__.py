"""Velocity rules - sliding windows, bursts and cross-account correlation."""

from fraud_anomaly_engine.rules.engine import (
    BurstAssessment,
    CrossAccountAssessment,
    RuleEngine,
    SlidingWindowCheck,
    WindowEvaluation,
)

__all__ = [
    "BurstAssessment",
    "CrossAccountAssessment",
    "RuleEngine",
    "SlidingWindowCheck",
    "WindowEvaluation",
]
