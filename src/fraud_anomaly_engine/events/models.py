"""Data models for the events module.

An EvaluationContext is the event under scrutiny together with the
short-term history the caller has already materialized for it. Contexts
are validated on construction: malformed values (NaN coordinates,
negative time deltas, naive timestamps, unparseable IPs) raise
InvalidInputError immediately, while optional fields may simply be
absent, in which case the detectors that need them skip.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from fraud_anomaly_engine.geo.distance import InvalidInputError, normalize_coordinates
from fraud_anomaly_engine.geo.models import LocationPoint, parse_timestamp
from fraud_anomaly_engine.reputation.ip import parse_ip

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY_SIZE = 1000


class EventType(str, Enum):
    """Kind of financial event being evaluated."""

    TRANSACTION = "transaction"
    LOGIN = "login"
    TRANSFER = "transfer"


@dataclass(frozen=True)
class RecentEvent:
    """Summary of one event from the subject's short-term history."""

    timestamp: datetime
    amount: float = 0.0
    account_id: str | None = None
    ip: str | None = None
    device_fingerprint: str | None = None
    event_type: EventType = EventType.TRANSACTION

    def __post_init__(self) -> None:
        if self.timestamp.tzinfo is None:
            raise InvalidInputError("RecentEvent timestamp must be timezone-aware")
        if not math.isfinite(self.amount):
            raise InvalidInputError("RecentEvent amount must be finite")
        if self.ip is not None:
            object.__setattr__(self, "ip", str(parse_ip(self.ip)))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RecentEvent:
        """Create a RecentEvent from a dictionary."""
        account_id = data.get("account_id")
        return cls(
            timestamp=parse_timestamp(data["timestamp"]),
            amount=float(data.get("amount", 0.0)),
            account_id=str(account_id) if account_id is not None else None,
            ip=data.get("ip"),
            device_fingerprint=data.get("device_fingerprint"),
            event_type=EventType(data.get("event_type", EventType.TRANSACTION.value)),
        )

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "amount": self.amount,
            "account_id": self.account_id,
            "ip": self.ip,
            "device_fingerprint": self.device_fingerprint,
            "event_type": self.event_type.value,
        }


@dataclass(frozen=True)
class EvaluationContext:
    """The event under evaluation plus its short-term history.

    Attributes:
        timestamp: When the event occurred (timezone-aware).
        amount: Monetary amount of the event (0 for logins).
        account_id: Account the event belongs to.
        event_type: Transaction, login or transfer.
        ip: Source IP address, if known.
        device_fingerprint: Device fingerprint hash, if known.
        lat: Current latitude, if known.
        lon: Current longitude, if known.
        last_lat: Latitude of the previous known position.
        last_lon: Longitude of the previous known position.
        time_diff_seconds: Seconds since the previous known position.
        recent_transactions: Recent events, oldest first.
        location_history: Recent positions used for clustering, oldest first.
        ip_reputation: Pre-resolved IP risk score (0-100), used instead of
            a reputation provider lookup when present.
    """

    timestamp: datetime
    amount: float = 0.0
    account_id: str | None = None
    event_type: EventType = EventType.TRANSACTION
    ip: str | None = None
    device_fingerprint: str | None = None
    lat: float | None = None
    lon: float | None = None
    last_lat: float | None = None
    last_lon: float | None = None
    time_diff_seconds: float | None = None
    recent_transactions: tuple[RecentEvent, ...] = ()
    location_history: tuple[LocationPoint, ...] = ()
    ip_reputation: float | None = None

    def __post_init__(self) -> None:
        if self.timestamp.tzinfo is None:
            raise InvalidInputError("Context timestamp must be timezone-aware")
        if not math.isfinite(self.amount):
            raise InvalidInputError("Context amount must be finite")

        self._normalize_pair("lat", "lon")
        self._normalize_pair("last_lat", "last_lon")

        if self.time_diff_seconds is not None:
            if math.isnan(self.time_diff_seconds):
                raise InvalidInputError("time_diff_seconds must not be NaN")
            if self.time_diff_seconds < 0:
                raise InvalidInputError(
                    f"time_diff_seconds must not be negative, got {self.time_diff_seconds}"
                )

        if self.ip is not None:
            object.__setattr__(self, "ip", str(parse_ip(self.ip)))

        if self.ip_reputation is not None and not 0.0 <= self.ip_reputation <= 100.0:
            raise InvalidInputError(
                f"ip_reputation must be within [0, 100], got {self.ip_reputation}"
            )

        object.__setattr__(self, "recent_transactions", tuple(self.recent_transactions))
        object.__setattr__(self, "location_history", tuple(self.location_history))

    def _normalize_pair(self, lat_field: str, lon_field: str) -> None:
        """Validate and clamp a latitude/longitude field pair."""
        lat = getattr(self, lat_field)
        lon = getattr(self, lon_field)
        if lat is None and lon is None:
            return
        if lat is None or lon is None:
            raise InvalidInputError(f"{lat_field} and {lon_field} must be given together")
        lat, lon = normalize_coordinates(lat, lon)
        object.__setattr__(self, lat_field, lat)
        object.__setattr__(self, lon_field, lon)

    @property
    def has_position(self) -> bool:
        """Return True if the current position is known."""
        return self.lat is not None and self.lon is not None

    @property
    def has_travel_inputs(self) -> bool:
        """Return True if both positions and the elapsed time are known."""
        return (
            self.has_position
            and self.last_lat is not None
            and self.last_lon is not None
            and self.time_diff_seconds is not None
        )

    def events_in_window(self, duration_seconds: float) -> tuple[RecentEvent, ...]:
        """Return recent events within the trailing window ending at ``timestamp``.

        The window is closed at both ends: an event exactly
        ``duration_seconds`` before the context timestamp is included, and
        events after the context timestamp are excluded.
        """
        start = self.timestamp - timedelta(seconds=duration_seconds)
        return tuple(e for e in self.recent_transactions if start <= e.timestamp <= self.timestamp)

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        *,
        max_history_size: int = DEFAULT_MAX_HISTORY_SIZE,
    ) -> EvaluationContext:
        """Create a sanitized EvaluationContext from a dictionary.

        A negative amount is clamped to zero and history lists are cut down
        to their most recent ``max_history_size`` entries.

        Args:
            data: Raw context, e.g. decoded from JSON.
            max_history_size: Most recent history entries to keep.

        Returns:
            The validated context.

        Raises:
            InvalidInputError: If a value is malformed.
        """
        amount = float(data.get("amount", 0.0))
        if amount < 0:
            logger.debug("Clamped negative context amount %s to 0", amount)
            amount = 0.0

        recent = [RecentEvent.from_dict(e) for e in data.get("recent_transactions") or []]
        history = [LocationPoint.from_dict(p) for p in data.get("location_history") or []]

        account_id = data.get("account_id")
        return cls(
            timestamp=parse_timestamp(data["timestamp"]),
            amount=amount,
            account_id=str(account_id) if account_id is not None else None,
            event_type=EventType(data.get("event_type", EventType.TRANSACTION.value)),
            ip=data.get("ip"),
            device_fingerprint=data.get("device_fingerprint"),
            lat=_optional_float(data.get("lat")),
            lon=_optional_float(data.get("lon")),
            last_lat=_optional_float(data.get("last_lat")),
            last_lon=_optional_float(data.get("last_lon")),
            time_diff_seconds=_optional_float(data.get("time_diff_seconds")),
            recent_transactions=tuple(recent[-max_history_size:]),
            location_history=tuple(history[-max_history_size:]),
            ip_reputation=_optional_float(data.get("ip_reputation")),
        )

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "amount": self.amount,
            "account_id": self.account_id,
            "event_type": self.event_type.value,
            "ip": self.ip,
            "device_fingerprint": self.device_fingerprint,
            "lat": self.lat,
            "lon": self.lon,
            "last_lat": self.last_lat,
            "last_lon": self.last_lon,
            "time_diff_seconds": self.time_diff_seconds,
            "recent_transactions": [e.to_dict() for e in self.recent_transactions],
            "location_history": [p.to_dict() for p in self.location_history],
            "ip_reputation": self.ip_reputation,
        }


def _optional_float(value: Any) -> float | None:
    """Convert a value to float, passing None through."""
    return None if value is None else float(value)
