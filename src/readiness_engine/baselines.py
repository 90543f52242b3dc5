"""Personal baseline calculations for all metrics.

The core idea: "Your HRV vs *your* 7-day avg, not 'normal'".

Key concepts:
- Trailing N-day rolling mean and standard deviation per metric
- Missing days are skipped, never zero-filled
- Fewer than 3 days of history flags the baseline as low confidence
- Every update writes a new dated record; existing records are never mutated
"""

import logging
import statistics
from datetime import date, timedelta
from typing import Dict, List, Optional

from .models.enums import Metric
from .models.scores import DailyBaseline


logger = logging.getLogger(__name__)


def percent_change(current: Optional[float], baseline: Optional[float]) -> Optional[float]:
    """Percentage deviation of current from baseline, None when undefined."""
    if current is None or baseline is None or baseline <= 0:
        return None
    return (current - baseline) / baseline * 100


class BaselineTracker:
    """Rolling per-metric baselines with dated, append-only records.

    Daily input values are kept per (metric, date). Each call to `update`
    recomputes the trailing window ending on that date and appends a new
    DailyBaseline; `latest` returns the newest record before a scoring date.
    """

    def __init__(self, window_days: int = 7, min_days: int = 3) -> None:
        self.window_days = window_days
        self.min_days = min_days
        self._values: Dict[Metric, Dict[date, float]] = {}
        self._records: Dict[Metric, List[DailyBaseline]] = {}

    def update(self, metric: Metric, new_value: float, day: date) -> DailyBaseline:
        """Record a day's value and return the recomputed baseline for that day."""
        self._values.setdefault(metric, {})[day] = float(new_value)
        baseline = self.compute(metric, day)
        self._records.setdefault(metric, []).append(baseline)
        if baseline.low_confidence:
            logger.debug(
                f"Low-confidence {metric.value} baseline on {day}: "
                f"{baseline.sample_count}/{self.min_days} days"
            )
        return baseline

    def refresh(self, metric: Metric, day: date) -> Optional[DailyBaseline]:
        """Append a superseding record for a day whose window gained earlier values."""
        if self.value_on(metric, day) is None:
            return None
        baseline = self.compute(metric, day)
        self._records.setdefault(metric, []).append(baseline)
        return baseline

    def compute(self, metric: Metric, day: date) -> DailyBaseline:
        """Compute the trailing-window baseline ending on `day` without storing it."""
        window = self.window_values(metric, day)
        if window:
            mean = statistics.fmean(window)
            std_dev = statistics.stdev(window) if len(window) >= 2 else 0.0
        else:
            mean = 0.0
            std_dev = 0.0

        return DailyBaseline(
            metric=metric,
            date=day,
            rolling_mean=round(mean, 4),
            rolling_std_dev=round(std_dev, 4),
            window_size_days=self.window_days,
            sample_count=len(window),
            low_confidence=len(window) < self.min_days,
        )

    def window_values(self, metric: Metric, day: date) -> List[float]:
        """Values within [day - window + 1, day], oldest first. Gaps are skipped."""
        start = day - timedelta(days=self.window_days - 1)
        series = self._values.get(metric, {})
        return [series[d] for d in sorted(series) if start <= d <= day]

    def value_on(self, metric: Metric, day: date) -> Optional[float]:
        return self._values.get(metric, {}).get(day)

    def history(self, metric: Metric, end: date, days: int) -> List[Optional[float]]:
        """Daily values for the `days` days ending on `end`, oldest first, None for gaps."""
        series = self._values.get(metric, {})
        return [series.get(end - timedelta(days=offset)) for offset in range(days - 1, -1, -1)]

    def latest(self, metric: Metric, before: Optional[date] = None) -> Optional[DailyBaseline]:
        """Newest baseline record, optionally restricted to records dated before `before`.

        When several records share a date (a re-update), the last written wins.
        """
        records = self._records.get(metric, [])
        candidates = [r for r in records if before is None or r.date < before]
        if not candidates:
            return None
        newest_date = max(r.date for r in candidates)
        return [r for r in candidates if r.date == newest_date][-1]

    def baseline_value(
        self,
        metric: Metric,
        before: date,
        allow_low_confidence: bool = True,
    ) -> Optional[float]:
        """Rolling mean usable at scoring time, or None when there is nothing to compare to."""
        record = self.latest(metric, before=before)
        if record is None or record.sample_count == 0:
            return None
        if record.low_confidence and not allow_low_confidence:
            return None
        return record.rolling_mean

    def records(self, metric: Metric) -> List[DailyBaseline]:
        return list(self._records.get(metric, []))
