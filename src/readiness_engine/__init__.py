"""Readiness Engine - daily sleep, recovery and strain scoring for endurance athletes."""

__version__ = "0.1.0"

from .config import EngineSettings, get_settings
from .exceptions import (
    DataSourceUnavailableError,
    ErrorCode,
    InsufficientDataError,
    InvalidSessionError,
    OutOfOrderBackfillError,
    ReadinessEngineError,
    StaleDependencyError,
)
from .services.engine import ReadinessEngine

__all__ = [
    "__version__",
    "EngineSettings",
    "get_settings",
    "ErrorCode",
    "ReadinessEngineError",
    "InsufficientDataError",
    "InvalidSessionError",
    "DataSourceUnavailableError",
    "StaleDependencyError",
    "OutOfOrderBackfillError",
    "ReadinessEngine",
]
