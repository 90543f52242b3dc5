"""Reduce raw wearable samples to one value per metric per day."""

import statistics
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Dict, Iterable, List, Optional

from .models.enums import BiometricMetric
from .models.records import BiometricSample


OVERNIGHT_START = time(20, 0)  # previous evening
OVERNIGHT_END = time(10, 0)    # scored morning


@dataclass(frozen=True)
class DailyBiometrics:
    """Aggregated biometrics for one day. None means no data, never zero."""

    date: date
    hrv: Optional[float] = None
    resting_hr: Optional[float] = None
    respiratory_rate: Optional[float] = None
    steps: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return all(v is None for v in (self.hrv, self.resting_hr, self.respiratory_rate, self.steps))


def wall_clock(moment: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Naive local time. Aware timestamps are converted to `tz` (system zone when None) first."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(tz).replace(tzinfo=None)


def _overnight_window(day: date) -> tuple:
    return (
        datetime.combine(day - timedelta(days=1), OVERNIGHT_START),
        datetime.combine(day, OVERNIGHT_END),
    )


def _overnight_values(samples: List[BiometricSample], day: date, tz: Optional[tzinfo]) -> List[float]:
    start, end = _overnight_window(day)
    overnight = [
        s.value for s in samples
        if start <= wall_clock(s.timestamp, tz) <= end
    ]
    if overnight:
        return overnight
    return [s.value for s in samples if wall_clock(s.timestamp, tz).date() == day]


def aggregate_day(
    samples: Iterable[BiometricSample],
    day: date,
    tz: Optional[tzinfo] = None,
) -> DailyBiometrics:
    """Aggregate one day's samples.

    HRV and respiratory rate use the overnight mean, resting HR the overnight
    minimum, steps the calendar-day sum. Windows are in local wall-clock time;
    samples carrying a UTC offset are converted to `tz` before bucketing.
    """
    by_metric: Dict[BiometricMetric, List[BiometricSample]] = defaultdict(list)
    for sample in samples:
        by_metric[sample.metric].append(sample)

    hrv = _overnight_values(by_metric[BiometricMetric.HRV], day, tz)
    rhr = _overnight_values(by_metric[BiometricMetric.RESTING_HR], day, tz)
    resp = _overnight_values(by_metric[BiometricMetric.RESPIRATORY_RATE], day, tz)
    steps = [
        s.value for s in by_metric[BiometricMetric.STEP_COUNT]
        if wall_clock(s.timestamp, tz).date() == day
    ]

    return DailyBiometrics(
        date=day,
        hrv=round(statistics.fmean(hrv), 2) if hrv else None,
        resting_hr=min(rhr) if rhr else None,
        respiratory_rate=round(statistics.fmean(resp), 2) if resp else None,
        steps=sum(steps) if steps else None,
    )


def aggregate_range(
    samples: Iterable[BiometricSample],
    start: date,
    end: date,
    tz: Optional[tzinfo] = None,
) -> Dict[date, DailyBiometrics]:
    """Aggregate every day in [start, end]. Days without samples map to empty records."""
    sample_list = list(samples)
    result: Dict[date, DailyBiometrics] = {}
    day = start
    while day <= end:
        result[day] = aggregate_day(sample_list, day, tz)
        day += timedelta(days=1)
    return result
