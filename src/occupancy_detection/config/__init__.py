"""
Configuration loading and validation.

- load_config: YAML + environment overrides + validation
- validate_config_full: Validation with errors/warnings for --validate
- DetectionConfig: Runtime detection snapshot, updatable via the tracker
"""

from .loader import (
    ValidationResult,
    config_summary,
    load_config,
    load_config_file,
    load_config_with_env,
    print_validation_result,
    validate_config_full,
)
from .schemas import (
    CameraConfig,
    Config,
    DetectionConfig,
    DetectorConfig,
    ErrorPolicyConfig,
    OutputConfig,
    SmoothingConfig,
    TrackerConfig,
    validate_config_pydantic,
)

__all__ = [
    "CameraConfig",
    "Config",
    "DetectionConfig",
    "DetectorConfig",
    "ErrorPolicyConfig",
    "OutputConfig",
    "SmoothingConfig",
    "TrackerConfig",
    "ValidationResult",
    "config_summary",
    "load_config",
    "load_config_file",
    "load_config_with_env",
    "print_validation_result",
    "validate_config_full",
    "validate_config_pydantic",
]
