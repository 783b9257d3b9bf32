"""Evaluation inputs - the event under scrutiny and its recent history."""

from fraud_anomaly_engine.events.models import EvaluationContext, EventType, RecentEvent

__all__ = [
    "EvaluationContext",
    "EventType",
    "RecentEvent",
]
