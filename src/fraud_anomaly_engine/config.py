"""Configuration management with Pydantic Settings.

Every tunable used by the detection engine lives here as an immutable,
validated settings object. Each group reads its own environment prefix,
so thresholds can be tuned per environment or per tenant without code
changes, and the flat option names understood by orchestrators are
mapped onto the groups by ``EngineSettings.from_options``.
"""

from __future__ import annotations

import logging
import logging.config
from collections.abc import Iterable, Mapping
from functools import lru_cache
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SlidingWindow(BaseModel):
    """A trailing time window with the maximum number of events it allows."""

    model_config = ConfigDict(frozen=True)

    label: str
    duration_seconds: float = Field(gt=0)
    limit: int = Field(ge=0)

    @classmethod
    def from_pair(cls, duration_seconds: float, limit: int) -> SlidingWindow:
        """Build a window from a ``(duration, limit)`` pair with a derived label."""
        return cls(
            label=window_label(duration_seconds),
            duration_seconds=duration_seconds,
            limit=limit,
        )


def window_label(duration_seconds: float) -> str:
    """Return a short human label for a window duration (``60`` -> ``"1m"``)."""
    seconds = float(duration_seconds)
    for unit, size in (("d", 86400), ("h", 3600), ("m", 60)):
        if seconds >= size and seconds % size == 0:
            return f"{int(seconds // size)}{unit}"
    return f"{seconds:g}s"


DEFAULT_SLIDING_WINDOWS = (
    SlidingWindow(label="1m", duration_seconds=60, limit=10),
    SlidingWindow(label="5m", duration_seconds=300, limit=30),
    SlidingWindow(label="1h", duration_seconds=3600, limit=100),
)


class GeoSettings(BaseSettings):
    """Travel feasibility and location clustering settings."""

    model_config = SettingsConfigDict(env_prefix="FRAUD_GEO_", frozen=True, extra="ignore")

    max_speed_kmh: float = Field(
        default=900.0,
        gt=0,
        description="Travel feasibility ceiling (commercial flight speed)",
    )
    cluster_epsilon_km: float = Field(default=50.0, gt=0, description="DBSCAN radius")
    cluster_min_points: int = Field(default=3, ge=1, description="Minimum points per cluster")
    cluster_min_history: int = Field(
        default=3,
        ge=1,
        description="Location history points required before clustering runs",
    )
    cluster_margin_km: float = Field(
        default=5.0,
        ge=0,
        description="Slack added to a cluster radius before a point counts as outside",
    )
    cluster_max_points: int = Field(
        default=1000,
        ge=1,
        description="Most recent location points considered for clustering",
    )
    cluster_outside_max_distance_km: float = Field(default=500.0, gt=0)
    cluster_outside_score_multiplier: float = Field(default=40.0, ge=0)
    cluster_outside_max_score: float = Field(default=80.0, ge=0, le=100)
    cluster_noise_score: float = Field(
        default=30.0,
        ge=0,
        le=100,
        description="Score when history exists but forms no cluster yet",
    )
    impossible_travel_score: float = Field(default=85.0, ge=0, le=100)
    travel_gradient_ratio: float = Field(
        default=0.7,
        gt=0,
        lt=1,
        description="Speed ratio above which feasible travel starts to score",
    )
    travel_gradient_max_score: float = Field(default=60.0, ge=0, le=100)


class VelocitySettings(BaseSettings):
    """Rate-based rule settings."""

    model_config = SettingsConfigDict(env_prefix="FRAUD_VELOCITY_", frozen=True, extra="ignore")

    sliding_windows: tuple[SlidingWindow, ...] = Field(default=DEFAULT_SLIDING_WINDOWS)
    burst_short_window_seconds: float = Field(default=60.0, gt=0)
    burst_baseline_window_seconds: float = Field(default=3600.0, gt=0)
    burst_ratio_threshold: float = Field(default=3.0, gt=0)
    burst_min_events: int = Field(
        default=3,
        ge=1,
        description="Short-window events required before a burst can fire",
    )
    cross_account_window_seconds: float = Field(default=3600.0, gt=0)
    shared_device_threshold: int = Field(default=3, ge=1)
    shared_ip_threshold: int = Field(default=5, ge=1)

    @field_validator("sliding_windows")
    @classmethod
    def validate_windows(cls, v: tuple[SlidingWindow, ...]) -> tuple[SlidingWindow, ...]:
        """Require at least one window with unique labels."""
        if not v:
            raise ValueError("At least one sliding window must be configured")
        labels = [w.label for w in v]
        if len(set(labels)) != len(labels):
            raise ValueError("Sliding window labels must be unique")
        return v

    @model_validator(mode="after")
    def validate_burst_windows(self) -> VelocitySettings:
        """The burst baseline must be longer than the short window."""
        if self.burst_baseline_window_seconds <= self.burst_short_window_seconds:
            raise ValueError("Burst baseline window must be longer than the short window")
        return self


class BehavioralSettings(BaseSettings):
    """Adaptive threshold, drift and segmentation settings."""

    model_config = SettingsConfigDict(env_prefix="FRAUD_BEHAVIORAL_", frozen=True, extra="ignore")

    adaptive_sensitivity: float = Field(default=1.5, gt=0)
    adaptive_max_score: float = Field(default=80.0, ge=0, le=100)
    count_breach_score: float = Field(default=25.0, ge=0, le=100)
    drift_threshold: float = Field(default=0.3, gt=0)
    drift_window_seconds: float = Field(default=7 * 86400.0, gt=0)
    drift_shift_weight: float = Field(default=0.6, ge=0)
    drift_count_weight: float = Field(default=0.4, ge=0)
    frequency_period_seconds: float = Field(
        default=86400.0,
        gt=0,
        description="Period the profile frequency baseline is expressed in",
    )


class StatisticalSettings(BaseSettings):
    """Outlier detection settings."""

    model_config = SettingsConfigDict(
        env_prefix="FRAUD_STATISTICAL_", frozen=True, extra="ignore"
    )

    z_score_threshold: float = Field(default=3.0, gt=0)
    z_score_saturation: float = Field(default=6.0, gt=0)
    amount_confidence: float = Field(default=0.8, ge=0, le=1)
    frequency_confidence: float = Field(default=0.7, ge=0, le=1)
    iqr_multiplier: float = Field(default=1.5, gt=0)
    iqr_min_samples: int = Field(default=10, ge=4)
    iqr_confidence: float = Field(default=0.6, ge=0, le=1)

    @model_validator(mode="after")
    def validate_saturation(self) -> StatisticalSettings:
        """Saturation must lie beyond the detection threshold."""
        if self.z_score_saturation <= self.z_score_threshold:
            raise ValueError("z_score_saturation must be greater than z_score_threshold")
        return self


class ReputationSettings(BaseSettings):
    """IP reputation settings."""

    model_config = SettingsConfigDict(
        env_prefix="FRAUD_REPUTATION_", frozen=True, extra="ignore"
    )

    ip_reputation_threshold: float = Field(default=60.0, ge=0, le=100)


# Flat option names understood by orchestrators, mapped to (group, field)
OPTION_FIELDS: dict[str, tuple[str, str]] = {
    "maxSpeedKmh": ("geo", "max_speed_kmh"),
    "clusterEpsilonKm": ("geo", "cluster_epsilon_km"),
    "clusterMinPoints": ("geo", "cluster_min_points"),
    "clusterMinHistory": ("geo", "cluster_min_history"),
    "clusterMarginKm": ("geo", "cluster_margin_km"),
    "clusterMaxPoints": ("geo", "cluster_max_points"),
    "clusterOutsideMaxDistanceKm": ("geo", "cluster_outside_max_distance_km"),
    "clusterOutsideScoreMultiplier": ("geo", "cluster_outside_score_multiplier"),
    "clusterOutsideMaxScore": ("geo", "cluster_outside_max_score"),
    "clusterNoiseScore": ("geo", "cluster_noise_score"),
    "impossibleTravelScore": ("geo", "impossible_travel_score"),
    "travelGradientRatio": ("geo", "travel_gradient_ratio"),
    "travelGradientMaxScore": ("geo", "travel_gradient_max_score"),
    "slidingWindows": ("velocity", "sliding_windows"),
    "burstShortWindowSeconds": ("velocity", "burst_short_window_seconds"),
    "burstBaselineWindowSeconds": ("velocity", "burst_baseline_window_seconds"),
    "burstRatioThreshold": ("velocity", "burst_ratio_threshold"),
    "burstMinEvents": ("velocity", "burst_min_events"),
    "crossAccountWindowSeconds": ("velocity", "cross_account_window_seconds"),
    "sharedDeviceThreshold": ("velocity", "shared_device_threshold"),
    "sharedIpThreshold": ("velocity", "shared_ip_threshold"),
    "adaptiveSensitivity": ("behavioral", "adaptive_sensitivity"),
    "driftThreshold": ("behavioral", "drift_threshold"),
    "driftWindowSeconds": ("behavioral", "drift_window_seconds"),
    "frequencyPeriodSeconds": ("behavioral", "frequency_period_seconds"),
    "zScoreThreshold": ("statistical", "z_score_threshold"),
    "zScoreSaturation": ("statistical", "z_score_saturation"),
    "iqrMultiplier": ("statistical", "iqr_multiplier"),
    "iqrMinSamples": ("statistical", "iqr_min_samples"),
    "ipReputationThreshold": ("reputation", "ip_reputation_threshold"),
    "maxHistorySize": ("", "max_history_size"),
    "reportThreshold": ("", "report_threshold"),
}


class EngineSettings(BaseSettings):
    """Main engine settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from fraud_anomaly_engine.config import EngineSettings, get_settings

        settings = get_settings()
        print(settings.geo.max_speed_kmh)

        tuned = EngineSettings.from_options({"maxSpeedKmh": 1000, "driftThreshold": 0.4})
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Nested configuration groups
    geo: GeoSettings = Field(default_factory=GeoSettings)
    velocity: VelocitySettings = Field(default_factory=VelocitySettings)
    behavioral: BehavioralSettings = Field(default_factory=BehavioralSettings)
    statistical: StatisticalSettings = Field(default_factory=StatisticalSettings)
    reputation: ReputationSettings = Field(default_factory=ReputationSettings)

    # Engine settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    max_history_size: int = Field(
        default=1000,
        ge=1,
        alias="FRAUD_MAX_HISTORY_SIZE",
        description="Most recent history entries kept when sanitizing a context",
    )
    report_threshold: float = Field(
        default=40.0,
        ge=0,
        le=100,
        alias="FRAUD_REPORT_THRESHOLD",
        description="Detector score at which a result is flagged in the verdict",
    )

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> EngineSettings:
        """Build settings from flat, named numeric options.

        Args:
            options: Mapping of option name (e.g. ``maxSpeedKmh``) to value.
                ``slidingWindows`` takes ``(duration_seconds, limit)`` pairs
                or mappings with ``duration_seconds``/``limit``/``label``.

        Returns:
            A new EngineSettings; options not given keep their defaults.

        Raises:
            ValueError: If an option name is not recognized.
            ValidationError: If a value fails validation.
        """
        unknown = sorted(set(options) - set(OPTION_FIELDS))
        if unknown:
            raise ValueError(f"Unrecognized option(s): {', '.join(unknown)}")

        groups: dict[str, dict[str, Any]] = {
            "geo": {},
            "velocity": {},
            "behavioral": {},
            "statistical": {},
            "reputation": {},
        }
        root: dict[str, Any] = {}

        for name, value in options.items():
            group, field_name = OPTION_FIELDS[name]
            if field_name == "sliding_windows":
                value = _parse_windows(value)
            if group:
                groups[group][field_name] = value
            else:
                root[field_name] = value

        return cls(
            geo=GeoSettings(**groups["geo"]),
            velocity=VelocitySettings(**groups["velocity"]),
            behavioral=BehavioralSettings(**groups["behavioral"]),
            statistical=StatisticalSettings(**groups["statistical"]),
            reputation=ReputationSettings(**groups["reputation"]),
            **{cls.model_fields[k].alias or k: v for k, v in root.items()},
        )

    def as_options(self) -> dict[str, Any]:
        """Return the flat option view of these settings."""
        options: dict[str, Any] = {}
        for name, (group, field_name) in OPTION_FIELDS.items():
            source = getattr(self, group) if group else self
            value = getattr(source, field_name)
            if field_name == "sliding_windows":
                value = [(w.duration_seconds, w.limit) for w in value]
            options[name] = value
        return options

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level


def _parse_windows(value: Iterable[Any]) -> tuple[SlidingWindow, ...]:
    """Normalize the accepted ``slidingWindows`` shapes into SlidingWindow objects."""
    windows: list[SlidingWindow] = []
    for item in value:
        if isinstance(item, SlidingWindow):
            windows.append(item)
        elif isinstance(item, Mapping):
            duration = float(item["duration_seconds"])
            windows.append(
                SlidingWindow(
                    label=str(item.get("label") or window_label(duration)),
                    duration_seconds=duration,
                    limit=int(item["limit"]),
                )
            )
        else:
            duration, limit = item
            windows.append(SlidingWindow.from_pair(float(duration), int(limit)))
    return tuple(windows)


@lru_cache(maxsize=1)
def get_settings() -> EngineSettings:
    """Get the engine settings singleton.

    Uses LRU cache to ensure settings are loaded only once and
    reused across the application.

    Returns:
        The EngineSettings instance.

    Raises:
        ValidationError: If environment variables hold invalid values.
    """
    return EngineSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()


def configure_logging(level: str) -> None:
    """Configure console logging for an application embedding the engine.

    Args:
        level: Logging level string (DEBUG, INFO, etc.)
    """
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "detailed" if level == "DEBUG" else "standard",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        # Quieter logging for noisy libraries
        "loggers": {
            "sklearn": {"level": "WARNING"},
            "asyncio": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)
