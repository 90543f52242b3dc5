"""
Sleep Score Calculation

Combines five factors into a 0-100 sleep score:
- Performance: time asleep vs personal sleep need (30%)
- Stage quality: deep + REM share of sleep (32%)
- Efficiency: time asleep vs time in bed (22%)
- Disturbances: wake events during the night (14%)
- Timing: bed/wake time consistency vs baseline (2%)
"""

import logging
from dataclasses import dataclass, asdict
from datetime import date, datetime
from typing import Dict, List, Optional

from ..config import EngineSettings, get_settings
from ..exceptions import InvalidSessionError
from ..models.enums import ScoreType, SleepBand
from ..models.records import SleepSession
from ..models.scores import DailyScore, SleepDebt


logger = logging.getLogger(__name__)


SLEEP_WEIGHTS = {
    "performance": 0.30,
    "stage_quality": 0.32,
    "efficiency": 0.22,
    "disturbances": 0.14,
    "timing": 0.02,
}

NEUTRAL_FACTOR = 50


@dataclass
class SleepFactors:
    """Individual factors contributing to the sleep score (each 0-100)."""

    performance: int
    stage_quality: int
    efficiency: int
    disturbances: int
    timing: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def _clamp_int(value: float) -> int:
    return int(max(0.0, min(100.0, value)))


def bedtime_minutes(moment: datetime) -> float:
    """Minutes relative to midnight: 23:00 -> -60, 00:30 -> 30."""
    minutes = moment.hour * 60 + moment.minute + moment.second / 60
    return minutes - 1440 if moment.hour >= 12 else minutes


def wake_minutes(moment: datetime) -> float:
    return moment.hour * 60 + moment.minute + moment.second / 60


def calculate_sleep_need(
    baseline_seconds: Optional[float],
    prior_day_tss: Optional[float] = None,
    settings: Optional[EngineSettings] = None,
) -> float:
    """
    Personal sleep need in seconds.

    Baseline duration (default 8h when missing or outside 4-12h), plus 30
    minutes after a day above 100 TSS.
    """
    settings = settings or get_settings()
    default_need = settings.default_sleep_need_hours * 3600
    need = baseline_seconds if baseline_seconds else default_need

    if not settings.min_sleep_need_hours * 3600 <= need <= settings.max_sleep_need_hours * 3600:
        logger.warning(f"Sleep need baseline {need / 3600:.1f}h out of range, using default")
        need = default_need

    if prior_day_tss is not None and prior_day_tss > settings.sleep_need_tss_threshold:
        need += settings.sleep_need_uplift_minutes * 60

    return need


def calculate_performance_score(total_sleep: float, sleep_need: float) -> int:
    if sleep_need <= 0:
        return NEUTRAL_FACTOR
    return _clamp_int(min(100.0, total_sleep / sleep_need * 100))


def calculate_stage_quality_score(deep_rem_share: float) -> int:
    """
    Score from the deep + REM share of total sleep.

    40%+ scores 100; 30-40% maps onto 50-100; below 30% scales linearly.
    """
    if deep_rem_share >= 0.40:
        return 100
    elif deep_rem_share >= 0.30:
        return _clamp_int(50 + (deep_rem_share - 0.30) * 500)
    return _clamp_int(deep_rem_share * 166.67)


def calculate_efficiency_score(total_sleep: float, time_in_bed: float) -> int:
    if time_in_bed <= 0:
        return 0
    return _clamp_int(total_sleep / time_in_bed * 100)


def calculate_disturbance_score(wake_events: int) -> int:
    if wake_events <= 2:
        return 100
    elif wake_events <= 5:
        return 75
    elif wake_events <= 8:
        return 50
    return 25


def calculate_timing_score(
    bedtime: Optional[datetime],
    wake_time: Optional[datetime],
    bedtime_baseline: Optional[float],
    wake_baseline: Optional[float],
) -> Optional[int]:
    """
    Score from mean absolute deviation (minutes) of bed and wake times.

    Returns:
        Timing score, or None when no baseline can be compared
    """
    deviations: List[float] = []
    if bedtime is not None and bedtime_baseline is not None:
        deviations.append(abs(bedtime_minutes(bedtime) - bedtime_baseline))
    if wake_time is not None and wake_baseline is not None:
        deviations.append(abs(wake_minutes(wake_time) - wake_baseline))

    if not deviations:
        return None

    deviation = sum(deviations) / len(deviations)
    if deviation <= 30:
        return 100
    elif deviation <= 60:
        return 75
    elif deviation <= 90:
        return 50
    return 25


def determine_sleep_band(score: int) -> SleepBand:
    if score >= 80:
        return SleepBand.OPTIMAL
    elif score >= 60:
        return SleepBand.GOOD
    elif score >= 40:
        return SleepBand.FAIR
    return SleepBand.PAY_ATTENTION


class SleepScoreCalculator:
    """Stateless sleep score calculator. Inputs in, DailyScore out."""

    def __init__(self, settings: Optional[EngineSettings] = None) -> None:
        self.settings = settings or get_settings()

    def calculate(
        self,
        session: SleepSession,
        duration_baseline: Optional[float] = None,
        bedtime_baseline: Optional[float] = None,
        wake_baseline: Optional[float] = None,
        prior_day_tss: Optional[float] = None,
        computed_at: Optional[datetime] = None,
    ) -> DailyScore:
        """
        Score one night.

        Args:
            session: The night being scored
            duration_baseline: Rolling mean of seconds asleep
            bedtime_baseline: Rolling mean bedtime, minutes relative to midnight
            wake_baseline: Rolling mean wake time, minutes after midnight
            prior_day_tss: Training stress of the day before the night

        Raises:
            InvalidSessionError: when the session has no time in bed
        """
        if session.time_in_bed <= 0:
            raise InvalidSessionError(session.date, "zero time in bed")

        flags: List[str] = []
        need = calculate_sleep_need(duration_baseline, prior_day_tss, self.settings)
        if duration_baseline is None:
            flags.append("default_sleep_need")

        if session.total_sleep > 0 and session.stages:
            share = (session.deep_seconds + session.rem_seconds) / session.total_sleep
            stage_quality = calculate_stage_quality_score(share)
        else:
            stage_quality = NEUTRAL_FACTOR
            flags.append("no_stage_data")

        timing = calculate_timing_score(
            session.bedtime, session.wake_time, bedtime_baseline, wake_baseline
        )
        if timing is None:
            timing = NEUTRAL_FACTOR
            flags.append("no_timing_baseline")

        factors = SleepFactors(
            performance=calculate_performance_score(session.total_sleep, need),
            stage_quality=stage_quality,
            efficiency=calculate_efficiency_score(session.total_sleep, session.time_in_bed),
            disturbances=calculate_disturbance_score(session.wake_event_count),
            timing=timing,
        )

        sub_scores = factors.to_dict()
        weighted = sum(sub_scores[name] * weight for name, weight in SLEEP_WEIGHTS.items())
        value = int(round(max(0.0, min(100.0, weighted))))

        logger.debug(f"Sleep {session.date}: {sub_scores} -> {value}")

        return DailyScore(
            date=session.date,
            score_type=ScoreType.SLEEP,
            value=value,
            band=determine_sleep_band(value).value,
            sub_scores={k: float(v) for k, v in sub_scores.items()},
            computed_at=computed_at or datetime.now(),
            low_confidence=duration_baseline is None,
            flags=tuple(flags),
        )


class SleepDebtTracker:
    """
    Running sleep debt across nights.

    A deficit adds in full; a surplus repays only a fraction of itself
    (50% by default). Debt never drops below zero. Nights must be applied in
    date order.
    """

    def __init__(self, repayment_fraction: Optional[float] = None) -> None:
        if repayment_fraction is None:
            repayment_fraction = get_settings().sleep_debt_repayment_fraction
        self.repayment_fraction = repayment_fraction
        self._debt = 0.0
        self._last: Optional[date] = None
        self._history: List[SleepDebt] = []

    @property
    def debt_seconds(self) -> float:
        return self._debt

    def apply(self, night: date, slept_seconds: float, need_seconds: float) -> SleepDebt:
        if self._last is not None and night <= self._last:
            raise ValueError(f"Sleep debt night {night} applied after {self._last}")

        balance = need_seconds - slept_seconds
        if balance > 0:
            self._debt += balance
        else:
            self._debt = max(0.0, self._debt + balance * self.repayment_fraction)

        self._last = night
        record = SleepDebt(date=night, debt_seconds=self._debt)
        self._history.append(record)
        return record

    def history(self) -> List[SleepDebt]:
        return list(self._history)
