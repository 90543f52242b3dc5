"""
Base service classes and collaborator protocols.

Defines the interfaces the engine consumes and the base class for services.
"""

from abc import ABC
from datetime import date
from typing import List, Optional, Protocol, runtime_checkable
import logging

from ..models.enums import AccountTier
from ..models.records import Activity, BiometricSample, SleepSession


@runtime_checkable
class WearableFeed(Protocol):
    """
    Protocol for the wearable platform feed.

    May return partial or no data. An empty result means "insufficient
    data", never zero. Implementations raise DataSourceUnavailableError when
    the source disappears mid-fetch.
    """

    async def fetch_samples(self, start: date, end: date) -> List[BiometricSample]:
        """Biometric samples with timestamps between start 00:00 and end 23:59."""
        ...

    async def fetch_sleep(self, night: date) -> Optional[SleepSession]:
        """Sleep session for the night ending on `night`."""
        ...


@runtime_checkable
class ActivityFeed(Protocol):
    """Protocol for third-party activity platforms (possibly several merged)."""

    async def fetch_activities(self, start: date, end: date) -> List[Activity]:
        """Activities starting on any date in [start, end], possibly duplicated across platforms."""
        ...


@runtime_checkable
class TierProvider(Protocol):
    """Protocol for the account tier signal."""

    def current_tier(self) -> AccountTier:
        ...


class BaseService(ABC):
    """
    Abstract base class for services.

    Provides common functionality:
    - Logging setup
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    @property
    def logger(self) -> logging.Logger:
        """Get the logger instance."""
        return self._logger
