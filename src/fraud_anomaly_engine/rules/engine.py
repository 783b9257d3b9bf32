"""Rate-based rules over a context's recent events.

This module provides the RuleEngine class, which counts recent events in
trailing windows, compares short-term to baseline event rates, and looks
for the same device or IP shared across several accounts.

All windows are closed intervals ``[timestamp - duration, timestamp]``:
an event exactly ``duration`` seconds old is counted, events after the
context timestamp are not. The event under evaluation is never part of
``recent_transactions`` and is not counted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fraud_anomaly_engine.config import SlidingWindow, VelocitySettings
from fraud_anomaly_engine.events.models import EvaluationContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WindowEvaluation:
    """Event count inside one sliding window."""

    window: SlidingWindow
    count: int

    @property
    def exceeded(self) -> bool:
        """Return True if the count is above the window's limit."""
        return self.count > self.window.limit

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "window": self.window.label,
            "duration_seconds": self.window.duration_seconds,
            "count": self.count,
            "limit": self.window.limit,
            "exceeded": self.exceeded,
        }


@dataclass(frozen=True)
class SlidingWindowCheck:
    """Evidence for the sliding-window finding."""

    windows: tuple[WindowEvaluation, ...]

    @property
    def exceeded_count(self) -> int:
        """Return the number of windows whose limit was exceeded."""
        return sum(1 for w in self.windows if w.exceeded)

    @property
    def exceeded(self) -> bool:
        """Return True if any window's limit was exceeded."""
        return self.exceeded_count > 0

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "windows": [w.to_dict() for w in self.windows],
            "exceeded_count": self.exceeded_count,
        }


@dataclass(frozen=True)
class BurstAssessment:
    """Short-window event rate relative to the preceding baseline rate.

    Rates are events per second. The baseline rate covers the part of the
    baseline window before the short window, so a steady event stream
    yields a ratio of 1.0. ``reason`` is set when no burst could fire:
    ``no_baseline`` when nothing preceded the short window and
    ``too_few_events`` when the short window holds fewer than the
    configured minimum.
    """

    burst_detected: bool
    burst_ratio: float
    short_count: int
    baseline_count: int
    short_rate: float
    baseline_rate: float
    threshold: float
    reason: str | None = None

    @property
    def prior_count(self) -> int:
        """Return the baseline events that precede the short window."""
        return self.baseline_count - self.short_count

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "burst_detected": self.burst_detected,
            "burst_ratio": round(self.burst_ratio, 4),
            "short_count": self.short_count,
            "baseline_count": self.baseline_count,
            "prior_count": self.prior_count,
            "short_rate": self.short_rate,
            "baseline_rate": self.baseline_rate,
            "threshold": self.threshold,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class CrossAccountAssessment:
    """Distinct other accounts seen on the same device or IP."""

    detected: bool
    shared_device_accounts: int
    shared_ip_accounts: int
    device_threshold: int
    ip_threshold: int
    window_seconds: float

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "detected": self.detected,
            "shared_device_accounts": self.shared_device_accounts,
            "shared_ip_accounts": self.shared_ip_accounts,
            "device_threshold": self.device_threshold,
            "ip_threshold": self.ip_threshold,
            "window_seconds": self.window_seconds,
        }


class RuleEngine:
    """Evaluates velocity rules against a context's recent events.

    Example:
        ```python
        engine = RuleEngine(VelocitySettings())
        check = engine.evaluate_sliding_windows(context)
        for window in check.windows:
            print(window.window.label, window.count, window.exceeded)
        ```
    """

    def __init__(self, settings: VelocitySettings | None = None) -> None:
        """Initialize the rule engine.

        Args:
            settings: Velocity settings. Defaults to VelocitySettings().
        """
        self._settings = settings or VelocitySettings()

    @property
    def settings(self) -> VelocitySettings:
        """Return the settings in use."""
        return self._settings

    def evaluate_sliding_windows(self, context: EvaluationContext) -> SlidingWindowCheck:
        """Count recent events in every configured trailing window.

        Args:
            context: The event under evaluation.

        Returns:
            SlidingWindowCheck with one evaluation per window, in
            configuration order.
        """
        evaluations = tuple(
            WindowEvaluation(
                window=window,
                count=len(context.events_in_window(window.duration_seconds)),
            )
            for window in self._settings.sliding_windows
        )

        for evaluation in evaluations:
            if evaluation.exceeded:
                logger.debug(
                    "Sliding window %s exceeded: %d > %d",
                    evaluation.window.label,
                    evaluation.count,
                    evaluation.window.limit,
                )
        return SlidingWindowCheck(windows=evaluations)

    def detect_burst(self, context: EvaluationContext) -> BurstAssessment:
        """Compare the short-window event rate with the preceding baseline rate.

        The baseline rate counts events in the baseline window that fall
        before the short window, over the remaining span. Without such
        events there is no baseline and the ratio is 0. A burst also needs
        at least ``burst_min_events`` events in the short window.

        Args:
            context: The event under evaluation.

        Returns:
            BurstAssessment; detected when the ratio exceeds the threshold.
        """
        s = self._settings
        short_span = s.burst_short_window_seconds
        prior_span = s.burst_baseline_window_seconds - short_span
        short_count = len(context.events_in_window(short_span))
        baseline_count = len(context.events_in_window(s.burst_baseline_window_seconds))
        prior_count = baseline_count - short_count

        short_rate = short_count / short_span
        baseline_rate = prior_count / prior_span

        if prior_count <= 0:
            return BurstAssessment(
                burst_detected=False,
                burst_ratio=0.0,
                short_count=short_count,
                baseline_count=baseline_count,
                short_rate=short_rate,
                baseline_rate=0.0,
                threshold=s.burst_ratio_threshold,
                reason="no_baseline",
            )

        # Cross-multiplied so equal rates give exactly 1.0
        ratio = (short_count * prior_span) / (prior_count * short_span)
        reason = "too_few_events" if short_count < s.burst_min_events else None
        detected = reason is None and ratio > s.burst_ratio_threshold

        if detected:
            logger.debug(
                "Burst detected: ratio=%.2f (%d in %ss vs %d in the preceding %ss)",
                ratio,
                short_count,
                short_span,
                prior_count,
                prior_span,
            )

        return BurstAssessment(
            burst_detected=detected,
            burst_ratio=ratio,
            short_count=short_count,
            baseline_count=baseline_count,
            short_rate=short_rate,
            baseline_rate=baseline_rate,
            threshold=s.burst_ratio_threshold,
            reason=reason,
        )

    def detect_cross_account_activity(self, context: EvaluationContext) -> CrossAccountAssessment:
        """Count other accounts sharing the context's device or IP.

        Only recent events with an account identifier different from the
        context's account are counted; each account counts once per
        dimension.

        Args:
            context: The event under evaluation.

        Returns:
            CrossAccountAssessment; detected when either count reaches its
            threshold.
        """
        s = self._settings
        device_accounts: set[str] = set()
        ip_accounts: set[str] = set()

        device = context.device_fingerprint
        for event in context.events_in_window(s.cross_account_window_seconds):
            if event.account_id is None or event.account_id == context.account_id:
                continue
            if device and event.device_fingerprint == device:
                device_accounts.add(event.account_id)
            if context.ip and event.ip == context.ip:
                ip_accounts.add(event.account_id)

        detected = (
            len(device_accounts) >= s.shared_device_threshold
            or len(ip_accounts) >= s.shared_ip_threshold
        )

        if detected:
            logger.debug(
                "Cross-account activity: %d accounts on device, %d on IP",
                len(device_accounts),
                len(ip_accounts),
            )

        return CrossAccountAssessment(
            detected=detected,
            shared_device_accounts=len(device_accounts),
            shared_ip_accounts=len(ip_accounts),
            device_threshold=s.shared_device_threshold,
            ip_threshold=s.shared_ip_threshold,
            window_seconds=s.cross_account_window_seconds,
        )
