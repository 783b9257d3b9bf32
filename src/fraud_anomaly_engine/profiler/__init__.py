"""Behavioral profiles and the analyzers that compare events against them."""

from fraud_anomaly_engine.profiler.analyzer import BehavioralAnalyzer
from fraud_anomaly_engine.profiler.models import (
    AdaptiveThresholds,
    AmountStats,
    BehavioralProfile,
    DriftAssessment,
    IqrOutlier,
    Segment,
    ThresholdBreach,
    ZScoreOutlier,
)
from fraud_anomaly_engine.profiler.statistics import StatisticalAnalyzer

__all__ = [
    "AdaptiveThresholds",
    "AmountStats",
    "BehavioralAnalyzer",
    "BehavioralProfile",
    "DriftAssessment",
    "IqrOutlier",
    "Segment",
    "StatisticalAnalyzer",
    "ThresholdBreach",
    "ZScoreOutlier",
]
