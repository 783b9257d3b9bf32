"""Data models for the profiler module."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

from fraud_anomaly_engine.geo.distance import InvalidInputError
from fraud_anomaly_engine.geo.models import LocationPoint


@dataclass(frozen=True)
class AmountStats:
    """Distribution summary of a subject's historical transaction amounts."""

    mean: float
    stddev: float
    p05: float
    p95: float

    def __post_init__(self) -> None:
        values = (self.mean, self.stddev, self.p05, self.p95)
        if not all(math.isfinite(v) for v in values):
            raise InvalidInputError("Amount statistics must be finite")
        if self.stddev < 0:
            raise InvalidInputError("Amount stddev must not be negative")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AmountStats:
        """Create AmountStats from a dictionary."""
        return cls(
            mean=float(data["mean"]),
            stddev=float(data["stddev"]),
            p05=float(data.get("p05", data["mean"])),
            p95=float(data.get("p95", data["mean"])),
        )

    def to_dict(self) -> dict[str, float]:
        """Serialize to a JSON-compatible dictionary."""
        return {"mean": self.mean, "stddev": self.stddev, "p05": self.p05, "p95": self.p95}


@dataclass(frozen=True)
class BehavioralProfile:
    """Precomputed summary of a subject's historical activity.

    Profiles are built and refreshed by an external aggregation job and
    are read-only to the engine.

    Attributes:
        subject_id: Identifier of the profiled subject.
        established: True once enough history exists for adaptive thresholds.
        amount_stats: Distribution of historical amounts, if any.
        frequency_baseline: Typical number of events per frequency period.
        location_history: Recent positions, oldest first.
        total_transaction_count: Lifetime event count.
        account_age_days: Days since the subject's first activity.
    """

    subject_id: str
    established: bool
    amount_stats: AmountStats | None = None
    frequency_baseline: float = 0.0
    location_history: tuple[LocationPoint, ...] = ()
    total_transaction_count: int = 0
    account_age_days: float | None = None

    def __post_init__(self) -> None:
        if not math.isfinite(self.frequency_baseline) or self.frequency_baseline < 0:
            raise InvalidInputError("frequency_baseline must be a finite, non-negative number")
        object.__setattr__(self, "location_history", tuple(self.location_history))

    @property
    def is_usable(self) -> bool:
        """Return True if the profile can back adaptive detection."""
        return self.established and self.amount_stats is not None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BehavioralProfile:
        """Create a BehavioralProfile from a dictionary."""
        stats = data.get("amount_stats")
        age = data.get("account_age_days")
        return cls(
            subject_id=str(data["subject_id"]),
            established=bool(data.get("established", False)),
            amount_stats=AmountStats.from_dict(stats) if stats else None,
            frequency_baseline=float(data.get("frequency_baseline", 0.0)),
            location_history=tuple(
                LocationPoint.from_dict(p) for p in data.get("location_history") or []
            ),
            total_transaction_count=int(data.get("total_transaction_count", 0)),
            account_age_days=float(age) if age is not None else None,
        )

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "subject_id": self.subject_id,
            "established": self.established,
            "amount_stats": self.amount_stats.to_dict() if self.amount_stats else None,
            "frequency_baseline": self.frequency_baseline,
            "location_history": [p.to_dict() for p in self.location_history],
            "total_transaction_count": self.total_transaction_count,
            "account_age_days": self.account_age_days,
        }


class Segment(str, Enum):
    """Behavioral segment a subject falls into (informational only)."""

    NEW_ACCOUNT = "new_account"
    DORMANT_REACTIVATED = "dormant_reactivated"
    HIGH_VALUE_TRADER = "high_value_trader"
    HIGH_FREQUENCY_LOW_VALUE = "high_frequency_low_value"
    OCCASIONAL_USER = "occasional_user"
    RETAIL_CONSUMER = "retail_consumer"


@dataclass(frozen=True)
class AdaptiveThresholds:
    """Per-subject bounds derived from the profile."""

    amount_upper: float
    amount_lower: float
    count_upper: int

    @property
    def amount_width(self) -> float:
        """Return the width of the accepted amount range."""
        return self.amount_upper - self.amount_lower

    def to_dict(self) -> dict[str, float]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "amount_upper": (
                round(self.amount_upper, 4) if math.isfinite(self.amount_upper) else None
            ),
            "amount_lower": round(self.amount_lower, 4),
            "count_upper": self.count_upper,
        }


@dataclass(frozen=True)
class ThresholdBreach:
    """Evidence for the adaptive-threshold finding."""

    thresholds: AdaptiveThresholds
    amount: float
    amount_excess: float
    observed_count: int
    breaches: tuple[str, ...]
    segment: Segment

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "thresholds": self.thresholds.to_dict(),
            "amount": self.amount,
            "amount_excess": round(self.amount_excess, 4),
            "observed_count": self.observed_count,
            "breaches": list(self.breaches),
            "segment": self.segment.value,
        }


@dataclass(frozen=True)
class DriftAssessment:
    """Divergence between the profile baseline and recent activity.

    ``drift_score`` is unbounded above 1.0 for extreme drift.
    """

    drifted: bool
    drift_score: float
    baseline_mean: float = 0.0
    recent_mean: float = 0.0
    normalized_shift: float = 0.0
    count_ratio: float = 0.0
    recent_count: int = 0
    reason: str = ""

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "drifted": self.drifted,
            "drift_score": round(self.drift_score, 4),
            "baseline_mean": self.baseline_mean,
            "recent_mean": round(self.recent_mean, 4),
            "normalized_shift": round(self.normalized_shift, 4),
            "count_ratio": round(self.count_ratio, 4),
            "recent_count": self.recent_count,
            "reason": self.reason or None,
        }


@dataclass(frozen=True)
class ZScoreOutlier:
    """Evidence for a z-score outlier finding on one dimension."""

    dimension: str
    value: float
    mean: float
    stddev: float
    z_score: float
    threshold: float
    saturation: float

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "dimension": self.dimension,
            "value": self.value,
            "mean": self.mean,
            "stddev": round(self.stddev, 4),
            "z_score": round(self.z_score, 4),
            "threshold": self.threshold,
            "saturation": self.saturation,
        }


@dataclass(frozen=True)
class IqrOutlier:
    """Evidence for the interquartile-range outlier finding."""

    amount: float
    q1: float
    q3: float
    lower_fence: float
    upper_fence: float
    sample_count: int

    @property
    def iqr(self) -> float:
        """Return the interquartile range."""
        return self.q3 - self.q1

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "amount": self.amount,
            "q1": round(self.q1, 4),
            "q3": round(self.q3, 4),
            "iqr": round(self.iqr, 4),
            "lower_fence": round(self.lower_fence, 4),
            "upper_fence": round(self.upper_fence, 4),
            "sample_count": self.sample_count,
        }
