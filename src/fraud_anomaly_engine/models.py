"""Result models shared by the analyzers, detectors and aggregator.

Every detection method produces a Finding; a detector folds its findings
into an AnomalyResult; the aggregator reduces the per-detector results
into a CompositeVerdict. All three are immutable and serialize to plain
JSON-compatible dictionaries for audit trails.
"""

from __future__ import annotations

import math
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol


class DetectionMethod(str, Enum):
    """Closed set of detection methods that can produce a finding."""

    ADAPTIVE_THRESHOLD = "adaptive_threshold"
    DRIFT_DETECTION = "drift_detection"
    IMPOSSIBLE_TRAVEL = "impossible_travel"
    IP_REPUTATION = "ip_reputation"
    GEO_CLUSTERING = "geo_clustering"
    SLIDING_WINDOW = "sliding_window"
    BURST_DETECTION = "burst_detection"
    CROSS_ACCOUNT_CORRELATION = "cross_account_correlation"
    STATISTICAL_OUTLIER = "statistical_outlier"
    FREQUENCY_OUTLIER = "frequency_outlier"
    IQR_OUTLIER = "iqr_outlier"


class AnomalyType(str, Enum):
    """Detector families, listed in tie-break priority order."""

    VELOCITY = "velocity"
    GEOLOCATION = "geolocation"
    BEHAVIORAL = "behavioral"
    STATISTICAL = "statistical"

    @property
    def priority(self) -> int:
        """Return the tie-break rank (lower wins)."""
        return list(AnomalyType).index(self)


class Severity(str, Enum):
    """Severity band of a 0-100 score."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @classmethod
    def from_score(cls, score: float) -> Severity:
        """Map a score onto its band; out-of-range scores fall into the edge bands."""
        if score >= 80.0:
            return cls.CRITICAL
        if score >= 60.0:
            return cls.HIGH
        if score >= 40.0:
            return cls.MEDIUM
        return cls.LOW


def score_confidence(score: float) -> float:
    """Return a confidence that grows with the strength of a score."""
    if score >= 80.0:
        return 0.95
    if score >= 60.0:
        return 0.85
    if score >= 40.0:
        return 0.70
    return 0.50


def clamp_score(score: float) -> float:
    """Clamp a raw score into [0, 100]."""
    return max(0.0, min(100.0, score))


class FindingDetails(Protocol):
    """Method-specific evidence attached to a finding."""

    def to_dict(self) -> dict[str, object]:
        """Serialize the evidence to a JSON-compatible dictionary."""
        ...


@dataclass(frozen=True)
class Finding:
    """Output of one detection method.

    Attributes:
        method: The detection method that produced this finding.
        detected: Whether the method considers the event anomalous.
        score: Anomaly score from 0 to 100 (clamped on construction).
        confidence: Confidence in the score from 0.0 to 1.0.
        details: Method-specific evidence, always present for auditability.
    """

    method: DetectionMethod
    detected: bool
    score: float
    confidence: float
    details: FindingDetails

    def __post_init__(self) -> None:
        if math.isnan(self.score) or math.isnan(self.confidence):
            raise ValueError(f"Finding {self.method.value} has a NaN score or confidence")
        object.__setattr__(self, "score", round(clamp_score(self.score), 2))
        object.__setattr__(self, "confidence", max(0.0, min(1.0, self.confidence)))

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "method": self.method.value,
            "detected": self.detected,
            "score": self.score,
            "confidence": self.confidence,
            "details": self.details.to_dict(),
        }


@dataclass(frozen=True)
class AnomalyResult:
    """Result of one detector.

    ``score`` is the highest finding score and ``confidence`` comes from
    that same finding; on equal scores the finding evaluated first wins.

    Attributes:
        anomaly_type: Detector family that produced this result.
        detected: Whether the detector reports an anomaly.
        score: Highest finding score (0 when no finding is available).
        confidence: Confidence of the winning finding.
        findings: Findings keyed by method, in evaluation order.
        highest_method: Method of the winning finding, if any.
        metadata: Non-scoring context such as skip reasons or segments.
    """

    anomaly_type: AnomalyType
    detected: bool
    score: float
    confidence: float
    findings: Mapping[DetectionMethod, Finding] = field(default_factory=dict)
    highest_method: DetectionMethod | None = None
    metadata: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_findings(
        cls,
        anomaly_type: AnomalyType,
        findings: Mapping[DetectionMethod, Finding],
        *,
        empty_confidence: float = 0.0,
        metadata: Mapping[str, str] | None = None,
        detected_by_winner: bool = False,
    ) -> AnomalyResult:
        """Fold findings into a result using highest-score-wins.

        Args:
            anomaly_type: Detector family.
            findings: Findings in evaluation order.
            empty_confidence: Confidence reported when there are no findings.
            metadata: Optional non-scoring metadata.
            detected_by_winner: Take ``detected`` from the winning finding
                instead of from any finding.

        Returns:
            AnomalyResult.
        """
        winner: Finding | None = None
        for finding in findings.values():
            if winner is None or finding.score > winner.score:
                winner = finding

        if winner is None:
            return cls(
                anomaly_type=anomaly_type,
                detected=False,
                score=0.0,
                confidence=empty_confidence,
                findings=dict(findings),
                metadata=dict(metadata or {}),
            )

        return cls(
            anomaly_type=anomaly_type,
            detected=(
                winner.detected
                if detected_by_winner
                else any(f.detected for f in findings.values())
            ),
            score=winner.score,
            confidence=winner.confidence,
            findings=dict(findings),
            highest_method=winner.method,
            metadata=dict(metadata or {}),
        )

    @property
    def severity(self) -> Severity:
        """Return the severity band of the score."""
        return Severity.from_score(self.score)

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "anomaly_type": self.anomaly_type.value,
            "detected": self.detected,
            "score": self.score,
            "confidence": self.confidence,
            "severity": self.severity.value,
            "highest_method": self.highest_method.value if self.highest_method else None,
            "findings": {m.value: f.to_dict() for m, f in self.findings.items()},
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class CompositeVerdict:
    """Single risk verdict across all detectors that ran.

    Attributes:
        overall_score: Score of the winning detector.
        overall_confidence: Confidence of the winning detector.
        per_detector: Every detector's full result, kept for explainability.
        winning_detector: Detector whose score was selected, if any ran.
        flagged: Detectors scoring at or above the report threshold.
        verdict_id: Unique identifier for this verdict.
        evaluated_at: When this verdict was produced.
    """

    overall_score: float
    overall_confidence: float
    per_detector: Mapping[AnomalyType, AnomalyResult]
    winning_detector: AnomalyType | None
    flagged: tuple[AnomalyType, ...] = ()
    verdict_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    evaluated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def severity(self) -> Severity:
        """Return the severity band of the overall score."""
        return Severity.from_score(self.overall_score)

    @property
    def detected(self) -> bool:
        """Return True if any detector reported an anomaly."""
        return any(r.detected for r in self.per_detector.values())

    @property
    def explanation(self) -> str:
        """Return a one-line, human-readable summary of the verdict."""
        if self.winning_detector is None:
            return "No detectors ran"
        winner = self.per_detector[self.winning_detector]
        if winner.score <= 0:
            return "No anomaly signal from any detector"
        method = winner.highest_method.value if winner.highest_method else "unknown"
        return (
            f"{self.winning_detector.value.capitalize()} anomaly via {method} "
            f"with score {winner.score:.2f} ({self.severity.value})"
        )

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "verdict_id": self.verdict_id,
            "overall_score": self.overall_score,
            "overall_confidence": self.overall_confidence,
            "severity": self.severity.value,
            "detected": self.detected,
            "winning_detector": self.winning_detector.value if self.winning_detector else None,
            "flagged": [t.value for t in self.flagged],
            "explanation": self.explanation,
            "per_detector": {t.value: r.to_dict() for t, r in self.per_detector.items()},
            "evaluated_at": self.evaluated_at.isoformat(),
        }
