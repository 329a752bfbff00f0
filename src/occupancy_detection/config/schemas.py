"""
Pydantic schemas for configuration validation.

Provides type-safe, declarative validation with clear error messages.
DetectionConfig is also the runtime snapshot each detection cycle reads,
so it is frozen and replaced wholesale on update.
"""

from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from ..errors import ConfigError, ConfigErrorKind
from ..utils.constants import (
    DEFAULT_CAMERA_TIMEOUT_MS,
    DEFAULT_CONFIDENCE_THRESHOLD,
    DEFAULT_DETECTION_INTERVAL_MS,
    DEFAULT_JSON_DIR,
    DEFAULT_MAX_PEOPLE_ALERT,
    DEFAULT_MIN_PEOPLE_ALERT,
    DEFAULT_RTSP_PORT,
    DEFAULT_SNAPSHOT_PROXY_URL,
    DEFAULT_STREAM_PATH,
    HISTORY_SIZE,
    RECENT_EVENTS_LIMIT,
    SMOOTHING_BUFFER_SIZE,
    SMOOTHING_HOLD_WINDOW_MS,
    STATS_WINDOW_HOURS,
)


class StrictModel(BaseModel):
    """Base model that rejects unknown fields."""

    model_config = ConfigDict(extra="forbid")


class DetectionConfig(StrictModel):
    """Per-cycle detection settings, updatable at runtime."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = True
    confidence_threshold: float = Field(
        default=DEFAULT_CONFIDENCE_THRESHOLD,
        ge=0.0,
        le=1.0,
        description="Minimum person confidence",
    )
    detection_interval_ms: int = Field(
        default=DEFAULT_DETECTION_INTERVAL_MS,
        gt=0,
        description="Period of the recurring detection timer",
    )
    tracking_enabled: bool = True
    save_detection_events: bool = True
    alert_on_count_change: bool = True
    max_people_alert: int | None = Field(default=DEFAULT_MAX_PEOPLE_ALERT, ge=0)
    min_people_alert: int | None = Field(default=DEFAULT_MIN_PEOPLE_ALERT, ge=0)

    @model_validator(mode="after")
    def validate_alert_range(self):
        if (
            self.max_people_alert is not None
            and self.min_people_alert is not None
            and self.min_people_alert > self.max_people_alert
        ):
            raise ValueError("min_people_alert must be <= max_people_alert")
        return self

    def merged(self, partial: dict[str, Any]) -> "DetectionConfig":
        """
        Return a new config with partial applied on top of this one.

        Args:
            partial: Subset of DetectionConfig fields

        Returns:
            Validated DetectionConfig

        Raises:
            ConfigError: invalid_interval if detection_interval_ms is rejected,
                invalid_value for any other rejected field
        """
        unknown = set(partial) - set(type(self).model_fields)
        if unknown:
            raise ConfigError(
                ConfigErrorKind.INVALID_VALUE,
                f"Unknown detection option(s): {', '.join(sorted(unknown))}",
            )

        data = self.model_dump()
        data.update(partial)
        try:
            return type(self).model_validate(data)
        except ValidationError as e:
            fields = {str(err["loc"][0]) for err in e.errors() if err["loc"]}
            kind = (
                ConfigErrorKind.INVALID_INTERVAL
                if "detection_interval_ms" in fields
                else ConfigErrorKind.INVALID_VALUE
            )
            raise ConfigError(kind, _format_validation_error(e)) from e


class CameraConfig(StrictModel):
    """Camera addressing and transport settings."""

    camera_id: str = Field(..., min_length=1)
    room_id: str = Field(..., min_length=1)
    source: Literal["snapshot", "rtsp"] = "snapshot"
    host: str | None = None
    port: int = Field(default=DEFAULT_RTSP_PORT, ge=1, le=65535)
    stream_path: str = DEFAULT_STREAM_PATH
    username: str | None = None
    password: str | None = None
    snapshot_url: str | None = Field(
        default=None, description="Direct snapshot URL (skips the proxy)"
    )
    proxy_url: str = DEFAULT_SNAPSHOT_PROXY_URL
    timeout_ms: int = Field(default=DEFAULT_CAMERA_TIMEOUT_MS, gt=0)

    @model_validator(mode="after")
    def validate_address(self):
        if self.source == "rtsp" and not self.host:
            raise ValueError("camera.host is required for rtsp source")
        if self.source == "snapshot" and not (self.snapshot_url or self.host):
            raise ValueError("camera.snapshot_url or camera.host is required")
        return self


class DetectorConfig(StrictModel):
    """Detection model settings."""

    model_file: str = Field(default="yolov8n.pt", description="YOLO weights (.pt)")
    device: str | None = Field(default=None, description="cuda, cpu, or auto")

    @field_validator("model_file")
    @classmethod
    def validate_model_file(cls, v: str) -> str:
        if not v.endswith(".pt"):
            raise ValueError("Model file must be .pt format")
        return v


class SmoothingConfig(StrictModel):
    """Occupancy smoothing settings."""

    buffer_size: int = Field(default=SMOOTHING_BUFFER_SIZE, ge=1)
    hold_window_ms: int = Field(default=SMOOTHING_HOLD_WINDOW_MS, ge=0)


class ErrorPolicyConfig(StrictModel):
    """How per-cycle failures are surfaced."""

    surface_cycle_errors: bool = False
    failure_escalation_threshold: int | None = Field(default=None, ge=1)


class TrackerConfig(StrictModel):
    """Tracker bookkeeping settings."""

    history_size: int = Field(default=HISTORY_SIZE, ge=1)
    recent_events_limit: int = Field(default=RECENT_EVENTS_LIMIT, ge=1)
    stats_window_hours: float = Field(default=STATS_WINDOW_HOURS, gt=0)
    allow_background: bool = False
    max_dimension: int | None = Field(
        default=None, ge=32, description="Downscale frames to this longest side"
    )
    errors: ErrorPolicyConfig = Field(default_factory=ErrorPolicyConfig)


class OutputConfig(StrictModel):
    """Output configuration."""

    json_dir: str | None = Field(default=DEFAULT_JSON_DIR)
    webhook_url: str | None = None
    webhook_include_results: bool = False


class Config(StrictModel):
    """Complete configuration schema."""

    camera: CameraConfig
    detector: DetectorConfig = Field(default_factory=DetectorConfig)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    smoothing: SmoothingConfig = Field(default_factory=SmoothingConfig)
    tracker: TrackerConfig = Field(default_factory=TrackerConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


def validate_config_pydantic(config: dict) -> Config:
    """
    Validate configuration using Pydantic.

    Args:
        config: Raw configuration dictionary

    Returns:
        Validated Config object

    Raises:
        pydantic.ValidationError: If validation fails
    """
    return Config(**config)


def _format_validation_error(error: ValidationError) -> str:
    """Flatten a pydantic error into 'field: message' lines."""
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "config"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)
