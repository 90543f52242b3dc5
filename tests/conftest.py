"""Shared fixtures: in-memory feeds and record factories."""

import asyncio
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional

import pytest

from readiness_engine.config import EngineSettings
from readiness_engine.exceptions import DataSourceUnavailableError
from readiness_engine.models.enums import (
    AccountTier,
    ActivityType,
    BiometricMetric,
    SleepStage,
    SourcePlatform,
)
from readiness_engine.models.records import (
    Activity,
    BiometricSample,
    SleepSession,
    SleepStageInterval,
)


TODAY = date(2024, 6, 15)


def sample(metric: BiometricMetric, value: float, day: date, hour: int = 4) -> BiometricSample:
    """Overnight sample attributed to `day`."""
    return BiometricSample(metric=metric, value=value, timestamp=datetime.combine(day, time(hour, 0)))


def daily_samples(
    day: date,
    hrv: Optional[float] = 60.0,
    resting_hr: Optional[float] = 50.0,
    respiratory_rate: Optional[float] = 14.0,
    steps: Optional[float] = 8000.0,
) -> List[BiometricSample]:
    samples = []
    if hrv is not None:
        samples.append(sample(BiometricMetric.HRV, hrv, day))
    if resting_hr is not None:
        samples.append(sample(BiometricMetric.RESTING_HR, resting_hr, day))
    if respiratory_rate is not None:
        samples.append(sample(BiometricMetric.RESPIRATORY_RATE, respiratory_rate, day))
    if steps is not None:
        samples.append(sample(BiometricMetric.STEP_COUNT, steps, day, hour=12))
    return samples


def make_session(
    night: date,
    total_sleep: float = 27000.0,
    time_in_bed: float = 28800.0,
    deep_share: float = 0.2,
    rem_share: float = 0.2,
    wake_events: int = 1,
    bedtime: Optional[datetime] = None,
) -> SleepSession:
    """Sleep session ending the morning of `night` with contiguous stage intervals."""
    bedtime = bedtime or datetime.combine(night - timedelta(days=1), time(23, 0))
    deep = total_sleep * deep_share
    rem = total_sleep * rem_share
    core = total_sleep - deep - rem

    stages = []
    cursor = bedtime
    for stage, seconds in ((SleepStage.CORE, core), (SleepStage.DEEP, deep), (SleepStage.REM, rem)):
        end = cursor + timedelta(seconds=seconds)
        stages.append(SleepStageInterval(stage=stage, start=cursor, end=end))
        cursor = end

    return SleepSession(
        date=night,
        stages=tuple(stages),
        total_sleep=total_sleep,
        time_in_bed=time_in_bed,
        wake_event_count=wake_events,
        bedtime=bedtime,
        wake_time=bedtime + timedelta(seconds=time_in_bed),
    )


def make_activity(
    activity_id: str,
    day: date,
    hour: int = 8,
    duration_seconds: float = 3600.0,
    platform: SourcePlatform = SourcePlatform.STRAVA,
    activity_type: ActivityType = ActivityType.CYCLING,
    **fields,
) -> Activity:
    return Activity(
        id=activity_id,
        start=datetime.combine(day, time(hour, 0)),
        duration_seconds=duration_seconds,
        source_platform=platform,
        activity_type=activity_type,
        **fields,
    )


class FakeWearable:
    """In-memory wearable feed with call counters and failure injection."""

    def __init__(
        self,
        samples: Optional[List[BiometricSample]] = None,
        sessions: Optional[Dict[date, SleepSession]] = None,
        sleep_delay: float = 0.0,
    ) -> None:
        self.samples = list(samples or [])
        self.sessions = dict(sessions or {})
        self.sleep_delay = sleep_delay
        self.fail = False
        self.sample_calls = 0
        self.sleep_calls = 0

    async def fetch_samples(self, start: date, end: date) -> List[BiometricSample]:
        self.sample_calls += 1
        await asyncio.sleep(0)
        if self.fail:
            raise DataSourceUnavailableError("wearable", "connection dropped mid-fetch")
        return [s for s in self.samples if start <= s.timestamp.date() <= end]

    async def fetch_sleep(self, night: date) -> Optional[SleepSession]:
        self.sleep_calls += 1
        if self.sleep_delay:
            await asyncio.sleep(self.sleep_delay)
        if self.fail:
            raise DataSourceUnavailableError("wearable", "connection dropped mid-fetch")
        return self.sessions.get(night)


class FakeActivityFeed:
    def __init__(self, activities: Optional[List[Activity]] = None) -> None:
        self.activities = list(activities or [])
        self.calls = 0

    async def fetch_activities(self, start: date, end: date) -> List[Activity]:
        self.calls += 1
        await asyncio.sleep(0)
        return [a for a in self.activities if start <= a.start.date() <= end]


class FakeTierProvider:
    def __init__(self, tier: AccountTier = AccountTier.FREE) -> None:
        self.tier = tier

    def current_tier(self) -> AccountTier:
        return self.tier


@pytest.fixture
def settings() -> EngineSettings:
    """Settings independent of the environment."""
    return EngineSettings(_env_file=None)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def steady_wearable(today) -> FakeWearable:
    """Two weeks of steady biometrics and sleep ending on `today`."""
    samples = []
    sessions = {}
    for offset in range(14, -1, -1):
        day = today - timedelta(days=offset)
        samples.extend(daily_samples(day))
        sessions[day] = make_session(day)
    return FakeWearable(samples=samples, sessions=sessions)


@pytest.fixture
def activity_feed(today) -> FakeActivityFeed:
    activities = [
        make_activity(f"ride-{offset}", today - timedelta(days=offset), tss=60.0, average_hr=140.0, max_hr=175.0)
        for offset in range(1, 30, 2)
    ]
    return FakeActivityFeed(activities)


@pytest.fixture
def tier_provider() -> FakeTierProvider:
    return FakeTierProvider()
