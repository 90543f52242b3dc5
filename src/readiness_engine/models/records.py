"""Immutable input records supplied by the wearable and activity platforms."""

from datetime import date as date_type, datetime
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import ActivityType, BiometricMetric, SleepStage, SourcePlatform


def to_camel(string: str) -> str:
    """Convert snake_case to camelCase."""
    components = string.split("_")
    return components[0] + "".join(x.title() for x in components[1:])


class RecordModel(BaseModel):
    """Base for frozen records with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# =============================================================================
# Biometrics
# =============================================================================

class BiometricSample(RecordModel):
    """Single wearable measurement."""

    metric: BiometricMetric
    value: float = Field(..., ge=0)
    timestamp: datetime
    source_device: str = "unknown"


# =============================================================================
# Sleep
# =============================================================================

class SleepStageInterval(RecordModel):
    """One contiguous stage sample within a night."""

    stage: SleepStage
    start: datetime
    end: datetime

    @model_validator(mode="after")
    def _check_order(self) -> "SleepStageInterval":
        if self.end < self.start:
            raise ValueError("stage interval ends before it starts")
        return self

    @property
    def seconds(self) -> float:
        return (self.end - self.start).total_seconds()


_ASLEEP_STAGES = (SleepStage.CORE, SleepStage.DEEP, SleepStage.REM)


class SleepSession(RecordModel):
    """One night of sleep, keyed by the date the athlete woke up."""

    date: date_type = Field(..., description="Night ending on this date")
    stages: Tuple[SleepStageInterval, ...] = ()
    total_sleep: float = Field(..., ge=0, description="Seconds asleep")
    time_in_bed: float = Field(..., ge=0, description="Seconds in bed")
    wake_event_count: int = Field(0, ge=0)
    bedtime: Optional[datetime] = None
    wake_time: Optional[datetime] = None

    def _stage_seconds(self, stage: SleepStage) -> float:
        return sum(s.seconds for s in self.stages if s.stage == stage)

    @property
    def deep_seconds(self) -> float:
        return self._stage_seconds(SleepStage.DEEP)

    @property
    def rem_seconds(self) -> float:
        return self._stage_seconds(SleepStage.REM)

    @property
    def efficiency(self) -> Optional[float]:
        if self.time_in_bed <= 0:
            return None
        return self.total_sleep / self.time_in_bed

    @classmethod
    def from_stages(cls, stages: Sequence[SleepStageInterval]) -> "SleepSession":
        """
        Build a session from raw stage samples.

        Total sleep is the sum of core, deep and REM intervals. Time in bed
        spans the in-bed intervals when the wearable reports them, otherwise
        all intervals. A wake event is an awake interval that falls between
        two sleep intervals.
        """
        if not stages:
            raise ValueError("cannot build a sleep session without stage samples")

        ordered = sorted(stages, key=lambda s: (s.start, s.end))
        asleep = [s for s in ordered if s.stage in _ASLEEP_STAGES]
        in_bed = [s for s in ordered if s.stage == SleepStage.IN_BED]

        span = in_bed or ordered
        bedtime = min(s.start for s in span)
        wake_time = max(s.end for s in span)

        wake_events = 0
        if asleep:
            first_sleep = asleep[0].start
            last_sleep = max(s.end for s in asleep)
            wake_events = sum(
                1 for s in ordered
                if s.stage == SleepStage.AWAKE and s.start >= first_sleep and s.end <= last_sleep
            )

        return cls(
            date=wake_time.date(),
            stages=tuple(ordered),
            total_sleep=sum(s.seconds for s in asleep),
            time_in_bed=(wake_time - bedtime).total_seconds(),
            wake_event_count=wake_events,
            bedtime=bedtime,
            wake_time=wake_time,
        )


# =============================================================================
# Activities
# =============================================================================

class Activity(RecordModel):
    """Training activity from a third-party platform."""

    id: str
    start: datetime
    duration_seconds: float = Field(..., ge=0)
    source_platform: SourcePlatform = SourcePlatform.OTHER
    activity_type: ActivityType = ActivityType.OTHER
    distance: Optional[float] = Field(None, ge=0, description="Metres")
    average_power: Optional[float] = Field(None, ge=0)
    normalized_power: Optional[float] = Field(None, ge=0)
    average_hr: Optional[float] = Field(None, ge=0)
    max_hr: Optional[float] = Field(None, ge=0)
    tss: Optional[float] = Field(None, ge=0)
    intensity_factor: Optional[float] = Field(None, ge=0)
    active_energy_kcal: Optional[float] = Field(None, ge=0)
    rpe: Optional[float] = Field(None, ge=1, le=10)
    heart_rate_samples: Tuple[float, ...] = ()
    power_samples: Tuple[float, ...] = ()
    sample_rate_hz: int = Field(1, ge=1)

    @property
    def duration_minutes(self) -> float:
        return self.duration_seconds / 60.0

    def completeness(self) -> int:
        """Number of populated power/HR/load fields, used to pick canonical records."""
        fields: List[object] = [
            self.average_power,
            self.normalized_power,
            self.average_hr,
            self.max_hr,
            self.tss,
            self.intensity_factor,
            self.heart_rate_samples or None,
            self.power_samples or None,
        ]
        return sum(1 for f in fields if f is not None)
