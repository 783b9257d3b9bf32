"""Anomaly detection layer - velocity, geolocation, behavioral and statistical detectors."""

from fraud_anomaly_engine.detector.aggregator import Aggregator
from fraud_anomaly_engine.detector.base import Detector
from fraud_anomaly_engine.detector.behavioral import BehavioralDetector
from fraud_anomaly_engine.detector.geolocation import GeolocationDetector
from fraud_anomaly_engine.detector.statistical import StatisticalDetector
from fraud_anomaly_engine.detector.velocity import VelocityDetector
from fraud_anomaly_engine.models import (
    AnomalyResult,
    AnomalyType,
    CompositeVerdict,
    DetectionMethod,
    Finding,
    Severity,
)

__all__ = [
    "Aggregator",
    "AnomalyResult",
    "AnomalyType",
    "BehavioralDetector",
    "CompositeVerdict",
    "DetectionMethod",
    "Detector",
    "Finding",
    "GeolocationDetector",
    "Severity",
    "StatisticalDetector",
    "VelocityDetector",
]
