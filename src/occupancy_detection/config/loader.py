"""
Configuration loading and validation.

Loads YAML, applies environment overrides (credentials rarely belong in a
checked-in file), validates with the Pydantic schemas and collects semantic
warnings that are legal but probably unintended.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ..utils.constants import (
    ENV_CAMERA_HOST,
    ENV_CAMERA_PASSWORD,
    ENV_CAMERA_USER,
    ENV_MODEL_FILE,
    ENV_SNAPSHOT_URL,
)
from .schemas import Config, validate_config_pydantic

logger = logging.getLogger(__name__)

# env var -> (section, key)
_ENV_OVERRIDES = {
    ENV_CAMERA_HOST: ("camera", "host"),
    ENV_CAMERA_USER: ("camera", "username"),
    ENV_CAMERA_PASSWORD: ("camera", "password"),
    ENV_SNAPSHOT_URL: ("camera", "snapshot_url"),
    ENV_MODEL_FILE: ("detector", "model_file"),
}


@dataclass
class ValidationResult:
    """Result of config validation."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    config: Config | None = None


def load_config_file(path: str | Path) -> dict:
    """
    Read a YAML config file.

    Args:
        path: Path to YAML file

    Returns:
        Raw configuration dictionary (empty dict for an empty file)

    Raises:
        ValueError: If the file is not valid YAML or not a mapping
    """
    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def load_config_with_env(config: dict) -> dict:
    """
    Apply environment variable overrides to config.

    Args:
        config: Base configuration dictionary

    Returns:
        Configuration with environment variables applied
    """
    for env_var, (section, key) in _ENV_OVERRIDES.items():
        if env_var in os.environ:
            logger.info(f"Using {section}.{key} from environment: {env_var}")
            config.setdefault(section, {})[key] = os.environ[env_var]
    return config


def validate_config_full(config: dict) -> ValidationResult:
    """
    Validate config syntax and flag suspicious-but-legal settings.

    Args:
        config: Configuration dictionary to validate

    Returns:
        ValidationResult with errors, warnings, and the parsed Config when valid
    """
    result = ValidationResult(valid=True)

    try:
        parsed = validate_config_pydantic(config)
    except ValidationError as e:
        result.valid = False
        for err in e.errors():
            loc = ".".join(str(p) for p in err["loc"]) or "config"
            result.errors.append(f"{loc}: {err['msg']}")
        return result

    result.config = parsed
    _collect_warnings(parsed, result)
    return result


def _collect_warnings(config: Config, result: ValidationResult) -> None:
    detection = config.detection
    camera = config.camera

    if detection.confidence_threshold < 0.2:
        result.warnings.append(
            f"detection.confidence_threshold={detection.confidence_threshold} "
            "is low; expect false positives"
        )

    # A hung fetch may occupy several ticks; that is tolerated but worth noting
    if camera.timeout_ms > detection.detection_interval_ms * 5:
        result.warnings.append(
            f"camera.timeout_ms ({camera.timeout_ms}) exceeds 5x the detection "
            f"interval ({detection.detection_interval_ms}ms)"
        )

    if camera.source == "snapshot" and not camera.snapshot_url and not (
        camera.username and camera.password
    ):
        result.warnings.append("camera credentials not set; proxy will connect anonymously")

    if not config.output.json_dir and not config.output.webhook_url:
        result.warnings.append("no output sink configured; events are kept in memory only")


def load_config(path: str | Path, skip_validation: bool = False) -> Config:
    """
    Load, override and validate configuration.

    Args:
        path: YAML config path
        skip_validation: Skip warning collection (schema validation always runs)

    Returns:
        Parsed Config

    Raises:
        ValueError: If the configuration is invalid
    """
    raw = load_config_with_env(load_config_file(path))

    if skip_validation:
        return validate_config_pydantic(raw)

    result = validate_config_full(raw)
    if not result.valid:
        raise ValueError("Invalid configuration:\n  " + "\n  ".join(result.errors))
    for warning in result.warnings:
        logger.warning(f"Config: {warning}")
    return result.config


def print_validation_result(result: ValidationResult) -> None:
    """Print validation outcome for the --validate command."""
    if result.valid:
        print("Configuration is valid.")
    else:
        print("Configuration is INVALID:")
        for error in result.errors:
            print(f"  error: {error}")
    for warning in result.warnings:
        print(f"  warning: {warning}")


def config_summary(config: Config) -> dict[str, Any]:
    """Short, secret-free description of the config for the startup banner."""
    camera = config.camera
    return {
        "camera": camera.camera_id,
        "room": camera.room_id,
        "source": camera.source,
        "model": config.detector.model_file,
        "interval_ms": config.detection.detection_interval_ms,
        "threshold": config.detection.confidence_threshold,
    }
