"""
Error taxonomy for the occupancy pipeline.

Every failure a detection cycle can hit is expressed as one of four exception
families, each carrying a ``kind`` so the tracker can count and report them:

- AcquisitionError: camera/network problems (expected, tolerated)
- PreprocessError: frame bytes that do not decode to an RGB image
- InferenceError: detector not loaded or backend failure
- ConfigError: invalid runtime configuration
"""

from enum import Enum


class AcquisitionErrorKind(str, Enum):
    TIMEOUT = "timeout"
    UNREACHABLE = "unreachable"
    AUTH_FAILURE = "auth_failure"
    MALFORMED_IMAGE = "malformed_image"


class PreprocessErrorKind(str, Enum):
    INVALID_SHAPE = "invalid_shape"
    EMPTY_DIMENSIONS = "empty_dimensions"
    DECODE_FAILED = "decode_failed"


class InferenceErrorKind(str, Enum):
    MODEL_NOT_LOADED = "model_not_loaded"
    BACKEND_FAILURE = "backend_failure"


class ConfigErrorKind(str, Enum):
    INVALID_INTERVAL = "invalid_interval"
    INVALID_VALUE = "invalid_value"


class OccupancyError(Exception):
    """Base class for all classified pipeline errors."""

    kind: Enum

    def __init__(self, kind: Enum, message: str = ""):
        self.kind = kind
        self.message = message or kind.value
        super().__init__(self.message)

    @property
    def category(self) -> str:
        """Short family name used in logs and diagnostics."""
        return type(self).__name__.replace("Error", "").lower()

    @property
    def code(self) -> str:
        """Stable identifier such as ``acquisition.timeout``."""
        return f"{self.category}.{self.kind.value}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.value}: {self.message})"


class AcquisitionError(OccupancyError):
    """Frame could not be fetched from the camera."""

    def __init__(self, kind: AcquisitionErrorKind, message: str = ""):
        super().__init__(kind, message)


class PreprocessError(OccupancyError):
    """Frame bytes did not decode to a usable H x W x 3 image."""

    def __init__(self, kind: PreprocessErrorKind, message: str = ""):
        super().__init__(kind, message)


class InferenceError(OccupancyError):
    """Detector could not produce predictions."""

    def __init__(self, kind: InferenceErrorKind, message: str = ""):
        super().__init__(kind, message)


class ConfigError(OccupancyError):
    """Runtime configuration update was rejected."""

    def __init__(self, kind: ConfigErrorKind, message: str = ""):
        super().__init__(kind, message)


# Fallback kind per pipeline stage for exceptions raised outside the taxonomy
_STAGE_FALLBACKS = {
    "acquire": lambda msg: AcquisitionError(AcquisitionErrorKind.UNREACHABLE, msg),
    "preprocess": lambda msg: PreprocessError(PreprocessErrorKind.DECODE_FAILED, msg),
    "detect": lambda msg: InferenceError(InferenceErrorKind.BACKEND_FAILURE, msg),
}


def classify(exc: BaseException, stage: str) -> OccupancyError:
    """
    Map any exception raised during a cycle onto the error taxonomy.

    Args:
        exc: Exception raised by a pipeline step
        stage: Pipeline stage that raised it ("acquire", "preprocess", "detect")

    Returns:
        The exception itself if already classified, otherwise a wrapped error
        of the stage's fallback kind
    """
    if isinstance(exc, OccupancyError):
        return exc

    factory = _STAGE_FALLBACKS.get(stage, _STAGE_FALLBACKS["detect"])
    wrapped = factory(f"{type(exc).__name__}: {exc}")
    wrapped.__cause__ = exc
    return wrapped
