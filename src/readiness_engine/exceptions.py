"""
Custom exceptions for the readiness engine.

This module defines a hierarchy of exceptions used by the calculators and
the scoring engine. Each exception includes:
- A descriptive message
- An error code
- Whether the engine can recover from it locally
- Optional details for debugging
"""

from datetime import date
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Error codes for consistent error reporting."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    # Data errors
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    INVALID_SESSION = "INVALID_SESSION"
    DATA_SOURCE_UNAVAILABLE = "DATA_SOURCE_UNAVAILABLE"

    # Dependency / ordering errors
    STALE_DEPENDENCY = "STALE_DEPENDENCY"
    OUT_OF_ORDER_BACKFILL = "OUT_OF_ORDER_BACKFILL"


class ReadinessEngineError(Exception):
    """
    Base exception for all readiness engine errors.

    Attributes:
        message: Human-readable error message
        code: Error code from ErrorCode enum
        recoverable: True when the engine degrades gracefully instead of failing
        details: Optional dictionary with additional error details
    """

    recoverable = True

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary."""
        result: Dict[str, Any] = {
            "error": {
                "code": self.code.value,
                "message": self.message,
            }
        }
        if self.details:
            result["error"]["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"


class ConfigurationError(ReadinessEngineError):
    """Raised when engine settings are inconsistent."""

    recoverable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message=message, code=ErrorCode.CONFIGURATION_ERROR, details=details)


# ============================================================================
# Data Errors
# ============================================================================

class InsufficientDataError(ReadinessEngineError):
    """Raised when there is not enough data for a meaningful answer."""

    def __init__(
        self,
        message: str,
        required: Optional[int] = None,
        available: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        if required is not None:
            error_details["required"] = required
        if available is not None:
            error_details["available"] = available
        super().__init__(
            message=message,
            code=ErrorCode.INSUFFICIENT_DATA,
            details=error_details,
        )


class InvalidSessionError(ReadinessEngineError):
    """Raised when a sleep session cannot be scored (e.g. zero time in bed)."""

    def __init__(
        self,
        session_date: date,
        reason: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        error_details["date"] = session_date.isoformat()
        error_details["reason"] = reason
        super().__init__(
            message=f"Sleep session for {session_date.isoformat()} is invalid: {reason}",
            code=ErrorCode.INVALID_SESSION,
            details=error_details,
        )
        self.session_date = session_date


class DataSourceUnavailableError(ReadinessEngineError):
    """Raised by a feed when its source disappears mid-fetch."""

    def __init__(
        self,
        source: str,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        error_details["source"] = source
        super().__init__(
            message=message or f"Data source '{source}' is unavailable",
            code=ErrorCode.DATA_SOURCE_UNAVAILABLE,
            details=error_details,
        )
        self.source = source


# ============================================================================
# Dependency / Ordering Errors
# ============================================================================

class StaleDependencyError(ReadinessEngineError):
    """Raised when a score is requested before the score it depends on exists."""

    def __init__(
        self,
        dependency: str,
        score_date: date,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        error_details["dependency"] = dependency
        error_details["date"] = score_date.isoformat()
        super().__init__(
            message=f"{dependency} for {score_date.isoformat()} is not available yet",
            code=ErrorCode.STALE_DEPENDENCY,
            details=error_details,
        )


class OutOfOrderBackfillError(ReadinessEngineError):
    """
    Raised when CTL/ATL is advanced without its chronological predecessor.

    This is a programmer error: the recurrence cannot be computed out of
    order, so it is never recovered locally.
    """

    recoverable = False

    def __init__(
        self,
        requested: date,
        expected: Optional[date],
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        error_details["requested"] = requested.isoformat()
        error_details["expected"] = expected.isoformat() if expected else None
        expected_str = expected.isoformat() if expected else "a seeded start date"
        super().__init__(
            message=(
                f"Training load for {requested.isoformat()} requested out of order; "
                f"expected {expected_str}"
            ),
            code=ErrorCode.OUT_OF_ORDER_BACKFILL,
            details=error_details,
        )
        self.requested = requested
        self.expected = expected
