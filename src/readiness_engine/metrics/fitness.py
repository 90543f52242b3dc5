"""Fitness-Fatigue model calculations (CTL, ATL, TSB).

CTL and ATL follow a strict day-to-day recurrence. The tracker only ever
advances by exactly one day; backfilling missing days means replaying them
in order from a known or estimated seed.
"""

import logging
import statistics
from datetime import date, timedelta
from typing import Dict, List, Mapping, Optional, Tuple

from ..exceptions import OutOfOrderBackfillError
from ..models.scores import DailyLoad


logger = logging.getLogger(__name__)


CTL_ALPHA = 2 / 43  # 42-day time constant
ATL_ALPHA = 2 / 8   # 7-day time constant

SEED_CTL_FACTOR = 0.7
SEED_ATL_FACTOR = 0.4
SEED_WINDOW_DAYS = 14


def calculate_ewma(current_value: float, previous_ewma: float, alpha: float) -> float:
    """
    Exponentially Weighted Moving Average.

    Uses the formula: EWMA_n = value * alpha + EWMA_{n-1} * (1 - alpha)

    Args:
        current_value: Today's training load
        previous_ewma: Yesterday's EWMA value
        alpha: Smoothing factor (2/43 for CTL, 2/8 for ATL)

    Returns:
        New EWMA value
    """
    return current_value * alpha + previous_ewma * (1 - alpha)


def estimate_seed(daily_tss: Mapping[date, float]) -> Tuple[float, float]:
    """
    Estimate a starting (ctl, atl) from the first two weeks of history.

    Seeding from zero produces an artificially low CTL for athletes with an
    established training history, so the seed is derived from the mean TSS of
    the first 14 days that have data: ctl = 0.7 * mean, atl = 0.4 * mean.

    Returns:
        (ctl, atl), or (0.0, 0.0) when there is no history
    """
    if not daily_tss:
        return 0.0, 0.0

    first_day = min(daily_tss)
    window_end = first_day + timedelta(days=SEED_WINDOW_DAYS - 1)
    values = [tss for day, tss in daily_tss.items() if first_day <= day <= window_end]
    mean_tss = statistics.fmean(values)
    return mean_tss * SEED_CTL_FACTOR, mean_tss * SEED_ATL_FACTOR


class TrainingLoadTracker:
    """
    Day-by-day CTL/ATL/TSB recurrence with per-day TSS kept alongside.

    `advance` is the only way to add a day and it must be called with the day
    right after the last one. `replay` recomputes every stored day from the
    original seed and stored TSS, so it always agrees with the incremental
    path.
    """

    def __init__(self, seed: Optional[Tuple[float, float]] = None, seed_date: Optional[date] = None) -> None:
        self._seed: Tuple[float, float] = seed or (0.0, 0.0)
        self._seed_given = seed is not None
        self._seed_date = seed_date
        self._loads: Dict[date, DailyLoad] = {}
        self._last: Optional[date] = None

    @property
    def last_date(self) -> Optional[date]:
        return self._last

    @property
    def seed(self) -> Tuple[float, float]:
        return self._seed

    def current(self) -> Tuple[float, float]:
        """(ctl, atl) after the most recent day, or the seed."""
        if self._last is None:
            return self._seed
        load = self._loads[self._last]
        return load.ctl, load.atl

    def get(self, day: date) -> Optional[DailyLoad]:
        return self._loads.get(day)

    def loads(self) -> List[DailyLoad]:
        return [self._loads[d] for d in sorted(self._loads)]

    def daily_tss(self) -> Dict[date, float]:
        return {d: load.tss for d, load in self._loads.items()}

    def advance(self, day: date, tss: float) -> DailyLoad:
        """Apply one day of TSS. Raises OutOfOrderBackfillError unless `day` follows the last day."""
        expected = self._expected_next()
        if expected is not None and day != expected:
            raise OutOfOrderBackfillError(requested=day, expected=expected)

        ctl, atl = self.current()
        ctl = calculate_ewma(tss, ctl, CTL_ALPHA)
        atl = calculate_ewma(tss, atl, ATL_ALPHA)
        load = DailyLoad(date=day, tss=tss, ctl=ctl, atl=atl, tsb=ctl - atl)

        if self._last is None and self._seed_date is None:
            self._seed_date = day - timedelta(days=1)
        self._loads[day] = load
        self._last = day
        return load

    def _expected_next(self) -> Optional[date]:
        if self._last is not None:
            return self._last + timedelta(days=1)
        if self._seed_date is not None:
            return self._seed_date + timedelta(days=1)
        return None

    def backfill(
        self,
        daily_tss: Mapping[date, float],
        start: date,
        end: date,
    ) -> List[DailyLoad]:
        """
        Replay [start, end] chronologically. Days without TSS are applied as 0.

        On an empty tracker the seed is estimated from the supplied history
        unless one was given at construction.
        """
        if end < start:
            return []

        if self._last is None and not self._seed_given:
            self._seed = estimate_seed({d: t for d, t in daily_tss.items() if d >= start})
            self._seed_given = True
            logger.debug(f"Estimated training-load seed ctl={self._seed[0]:.1f} atl={self._seed[1]:.1f}")

        results = []
        day = start
        while day <= end:
            results.append(self.advance(day, float(daily_tss.get(day, 0.0))))
            day += timedelta(days=1)
        return results

    def replay(self) -> List[DailyLoad]:
        """Recompute every stored day from the seed and stored TSS."""
        ctl, atl = self._seed
        results = []
        for day in sorted(self._loads):
            tss = self._loads[day].tss
            ctl = calculate_ewma(tss, ctl, CTL_ALPHA)
            atl = calculate_ewma(tss, atl, ATL_ALPHA)
            load = DailyLoad(date=day, tss=tss, ctl=ctl, atl=atl, tsb=ctl - atl)
            self._loads[day] = load
            results.append(load)
        return results
