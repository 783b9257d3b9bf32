"""Tests for the shared result models."""

import json
import math
from dataclasses import dataclass

import pytest

from fraud_anomaly_engine.models import (
    AnomalyResult,
    AnomalyType,
    CompositeVerdict,
    DetectionMethod,
    Finding,
    Severity,
    clamp_score,
    score_confidence,
)


@dataclass(frozen=True)
class Evidence:
    """Minimal finding details."""

    note: str = "test"

    def to_dict(self) -> dict[str, object]:
        return {"note": self.note}


def _finding(
    method: DetectionMethod,
    score: float,
    *,
    detected: bool = True,
    confidence: float = 0.5,
) -> Finding:
    return Finding(
        method=method, detected=detected, score=score, confidence=confidence, details=Evidence()
    )


class TestScoreHelpers:
    """Tests for severity bands and score helpers."""

    @pytest.mark.parametrize(
        ("score", "severity"),
        [
            (0.0, Severity.LOW),
            (39.99, Severity.LOW),
            (40.0, Severity.MEDIUM),
            (60.0, Severity.HIGH),
            (80.0, Severity.CRITICAL),
            (100.0, Severity.CRITICAL),
        ],
    )
    def test_severity_bands(self, score: float, severity: Severity) -> None:
        """Test severity band boundaries."""
        assert Severity.from_score(score) is severity

    @pytest.mark.parametrize(
        ("score", "confidence"),
        [(10.0, 0.50), (40.0, 0.70), (60.0, 0.85), (85.0, 0.95)],
    )
    def test_score_confidence(self, score: float, confidence: float) -> None:
        """Test that confidence grows with score strength."""
        assert score_confidence(score) == confidence

    def test_clamp_score(self) -> None:
        """Test clamping into [0, 100]."""
        assert clamp_score(-5.0) == 0.0
        assert clamp_score(250.0) == 100.0
        assert clamp_score(42.0) == 42.0

    def test_priority_order(self) -> None:
        """Test the detector tie-break order."""
        assert [t.priority for t in AnomalyType] == [0, 1, 2, 3]
        assert AnomalyType.VELOCITY.priority < AnomalyType.STATISTICAL.priority


class TestFinding:
    """Tests for Finding."""

    def test_score_clamped_and_rounded(self) -> None:
        """Test that scores are clamped and rounded to two decimals."""
        assert _finding(DetectionMethod.IP_REPUTATION, 150.0).score == 100.0
        assert _finding(DetectionMethod.IP_REPUTATION, 33.3333).score == 33.33

    def test_nan_score_raises(self) -> None:
        """Test that a NaN score is never emitted."""
        with pytest.raises(ValueError, match="NaN"):
            _finding(DetectionMethod.IP_REPUTATION, math.nan)

    def test_confidence_clamped(self) -> None:
        """Test that confidence is clamped into [0, 1]."""
        assert _finding(DetectionMethod.IP_REPUTATION, 10.0, confidence=1.5).confidence == 1.0


class TestAnomalyResult:
    """Tests for AnomalyResult.from_findings."""

    def test_highest_score_wins(self) -> None:
        """Test that score and confidence come from the highest finding."""
        findings = {
            DetectionMethod.SLIDING_WINDOW: _finding(
                DetectionMethod.SLIDING_WINDOW, 25.0, confidence=0.85
            ),
            DetectionMethod.BURST_DETECTION: _finding(
                DetectionMethod.BURST_DETECTION, 60.0, confidence=0.9
            ),
        }
        result = AnomalyResult.from_findings(AnomalyType.VELOCITY, findings)

        assert result.score == 60.0
        assert result.confidence == 0.9
        assert result.highest_method is DetectionMethod.BURST_DETECTION
        assert result.severity is Severity.HIGH

    def test_tie_goes_to_first_finding(self) -> None:
        """Test that equal scores keep the earlier finding."""
        findings = {
            DetectionMethod.IMPOSSIBLE_TRAVEL: _finding(
                DetectionMethod.IMPOSSIBLE_TRAVEL, 50.0, confidence=0.7
            ),
            DetectionMethod.IP_REPUTATION: _finding(
                DetectionMethod.IP_REPUTATION, 50.0, confidence=0.9
            ),
        }
        result = AnomalyResult.from_findings(AnomalyType.GEOLOCATION, findings)

        assert result.highest_method is DetectionMethod.IMPOSSIBLE_TRAVEL
        assert result.confidence == 0.7

    def test_detected_by_any_finding(self) -> None:
        """Test that any detected finding marks the result detected by default."""
        findings = {
            DetectionMethod.SLIDING_WINDOW: _finding(
                DetectionMethod.SLIDING_WINDOW, 50.0, detected=False
            ),
            DetectionMethod.BURST_DETECTION: _finding(DetectionMethod.BURST_DETECTION, 0.0),
        }

        assert AnomalyResult.from_findings(AnomalyType.VELOCITY, findings).detected is True
        assert (
            AnomalyResult.from_findings(
                AnomalyType.VELOCITY, findings, detected_by_winner=True
            ).detected
            is False
        )

    def test_empty_findings(self) -> None:
        """Test the result with no findings."""
        result = AnomalyResult.from_findings(
            AnomalyType.STATISTICAL, {}, empty_confidence=0.2, metadata={"reason": "none"}
        )

        assert result.score == 0.0
        assert result.confidence == 0.2
        assert result.highest_method is None
        assert result.metadata == {"reason": "none"}


class TestCompositeVerdict:
    """Tests for CompositeVerdict."""

    def test_explanation_without_signal(self) -> None:
        """Test the explanation when every detector scored zero."""
        result = AnomalyResult(AnomalyType.VELOCITY, False, 0.0, 0.5)
        verdict = CompositeVerdict(
            overall_score=0.0,
            overall_confidence=0.5,
            per_detector={AnomalyType.VELOCITY: result},
            winning_detector=AnomalyType.VELOCITY,
        )

        assert verdict.explanation == "No anomaly signal from any detector"
        assert verdict.detected is False

    def test_to_dict_is_json_serializable(self) -> None:
        """Test that the full verdict serializes to JSON."""
        finding = _finding(DetectionMethod.IP_REPUTATION, 72.0)
        result = AnomalyResult.from_findings(
            AnomalyType.GEOLOCATION, {DetectionMethod.IP_REPUTATION: finding}
        )
        verdict = CompositeVerdict(
            overall_score=result.score,
            overall_confidence=result.confidence,
            per_detector={AnomalyType.GEOLOCATION: result},
            winning_detector=AnomalyType.GEOLOCATION,
            flagged=(AnomalyType.GEOLOCATION,),
        )

        data = json.loads(json.dumps(verdict.to_dict()))

        assert data["severity"] == "high"
        assert data["winning_detector"] == "geolocation"
        assert data["flagged"] == ["geolocation"]
        assert data["per_detector"]["geolocation"]["findings"]["ip_reputation"]["details"] == {
            "note": "test"
        }
        assert data["explanation"] == (
            "Geolocation anomaly via ip_reputation with score 72.00 (high)"
        )

    def test_verdict_ids_unique(self) -> None:
        """Test that each verdict gets its own identifier."""
        first = CompositeVerdict(0.0, 0.0, {}, None)
        second = CompositeVerdict(0.0, 0.0, {}, None)

        assert first.verdict_id != second.verdict_id
