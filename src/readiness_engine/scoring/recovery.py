"""
Recovery Score Calculation

Weighted fusion of five factors into a 0-100 recovery score:
- HRV vs baseline (30%)
- Sleep score (30%)
- Resting HR vs baseline (20%)
- Respiratory rate vs baseline (10%)
- Training load from TSB and yesterday's TSS (10%)

Missing factors fall back to a neutral 50 and are flagged. An illness
indicator caps the final score and disables the alcohol check; otherwise a
large HRV drop applies an alcohol-signature penalty.
"""

import logging
from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from typing import Dict, List, Optional

from ..baselines import percent_change
from ..config import EngineSettings, get_settings
from ..models.enums import RecoveryBand, ScoreType
from ..models.scores import DailyScore, IllnessIndicator


logger = logging.getLogger(__name__)


RECOVERY_WEIGHTS = {
    "hrv": 0.30,
    "sleep": 0.30,
    "rhr": 0.20,
    "respiratory": 0.10,
    "load": 0.10,
}

NEUTRAL_FACTOR = 50.0

# (HRV drop beyond, penalty points), most severe first
ALCOHOL_PENALTIES = ((-25.0, 30.0), (-20.0, 20.0), (-15.0, 10.0))

# (yesterday TSS at least, penalty points), most severe first
YESTERDAY_TSS_PENALTIES = ((250, 30), (200, 20), (150, 15), (100, 10), (50, 5))


@dataclass
class RecoveryInputs:
    """Everything the recovery score needs for one date."""

    hrv: Optional[float] = None
    hrv_baseline: Optional[float] = None
    resting_hr: Optional[float] = None
    resting_hr_baseline: Optional[float] = None
    respiratory_rate: Optional[float] = None
    respiratory_baseline: Optional[float] = None
    sleep_score: Optional[float] = None
    tsb: Optional[float] = None
    yesterday_tss: Optional[float] = None
    illness: Optional[IllnessIndicator] = None


@dataclass
class RecoveryFactors:
    hrv: float
    rhr: float
    sleep: float
    respiratory: float
    load: float
    flags: List[str] = field(default_factory=list)

    def weighted(self) -> float:
        return sum(getattr(self, name) * weight for name, weight in RECOVERY_WEIGHTS.items())

    def to_dict(self) -> Dict[str, float]:
        data = asdict(self)
        data.pop("flags")
        return data


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def calculate_hrv_factor(hrv: float, baseline: float) -> float:
    """
    HRV sub-score from the drop below baseline.

    At or above baseline scores 100; drop bands at 10%, 20% and 35%.
    """
    if hrv >= baseline:
        return 100.0

    drop = (baseline - hrv) / baseline
    if drop <= 0.10:
        return max(85.0, 100 - drop * 150)
    elif drop <= 0.20:
        return max(60.0, 85 - (drop - 0.10) * 250)
    elif drop <= 0.35:
        return max(30.0, 60 - (drop - 0.20) * 200)
    return _clamp(30 - (drop - 0.35) * 60)


def calculate_rhr_factor(rhr: float, baseline: float) -> float:
    """
    Resting HR sub-score from the rise above baseline.

    At or below baseline scores 100; rise bands at 8%, 15% and 25%.
    """
    if rhr <= baseline:
        return 100.0

    rise = (rhr - baseline) / baseline
    if rise <= 0.08:
        return max(88.0, 100 - rise * 150)
    elif rise <= 0.15:
        return max(67.0, 88 - (rise - 0.08) * 300)
    elif rise <= 0.25:
        return max(37.0, 67 - (rise - 0.15) * 300)
    return _clamp(37 - (rise - 0.25) * 100)


def calculate_respiratory_factor(rate: float, baseline: float) -> float:
    """Respiratory sub-score from absolute deviation: within 10% scores 100."""
    deviation = abs(rate - baseline) / baseline
    if deviation <= 0.10:
        return 100.0
    elif deviation <= 0.20:
        return max(50.0, 100 - (deviation - 0.10) * 500)
    return _clamp(50 - (deviation - 0.20) * 125)


def calculate_load_factor(tsb: float, yesterday_tss: Optional[float] = None) -> float:
    """
    Training-load sub-score.

    TSB of +10 or more scores 100, falling linearly to 0 at TSB -40. A hard
    session yesterday takes off up to 30 points.
    """
    if tsb >= 10:
        score = 100.0
    else:
        score = max(0.0, (tsb + 40) / 50 * 100)

    if yesterday_tss:
        for threshold, penalty in YESTERDAY_TSS_PENALTIES:
            if yesterday_tss >= threshold:
                score -= penalty
                break

    return _clamp(score)


def alcohol_penalty(hrv_change_pct: Optional[float]) -> float:
    """Penalty for an alcohol-like HRV suppression (drop beyond -15%)."""
    if hrv_change_pct is None:
        return 0.0
    for threshold, penalty in ALCOHOL_PENALTIES:
        if hrv_change_pct < threshold:
            return penalty
    return 0.0


def determine_recovery_band(score: int, limited_data: bool = False) -> RecoveryBand:
    if limited_data:
        return RecoveryBand.LIMITED_DATA
    if score >= 90:
        return RecoveryBand.OPTIMAL
    elif score >= 75:
        return RecoveryBand.GOOD
    elif score >= 60:
        return RecoveryBand.FAIR
    elif score >= 40:
        return RecoveryBand.POOR
    return RecoveryBand.LIMITED_DATA


class RecoveryScoreCalculator:
    """Stateless recovery calculator."""

    def __init__(self, settings: Optional[EngineSettings] = None) -> None:
        self.settings = settings or get_settings()

    def factors(self, inputs: RecoveryInputs) -> RecoveryFactors:
        flags: List[str] = []

        if inputs.hrv is not None and inputs.hrv_baseline:
            hrv = calculate_hrv_factor(inputs.hrv, inputs.hrv_baseline)
        else:
            hrv = NEUTRAL_FACTOR
            flags.append("hrv_missing")

        if inputs.resting_hr is not None and inputs.resting_hr_baseline:
            rhr = calculate_rhr_factor(inputs.resting_hr, inputs.resting_hr_baseline)
        else:
            rhr = NEUTRAL_FACTOR
            flags.append("rhr_missing")

        if inputs.sleep_score is not None:
            sleep = _clamp(inputs.sleep_score)
        else:
            sleep = NEUTRAL_FACTOR
            flags.append("sleep_missing")

        if inputs.respiratory_rate is not None and inputs.respiratory_baseline:
            respiratory = calculate_respiratory_factor(inputs.respiratory_rate, inputs.respiratory_baseline)
        else:
            respiratory = NEUTRAL_FACTOR
            flags.append("respiratory_missing")

        if inputs.tsb is not None:
            load = calculate_load_factor(inputs.tsb, inputs.yesterday_tss)
        else:
            load = NEUTRAL_FACTOR
            flags.append("load_missing")

        return RecoveryFactors(
            hrv=round(hrv, 1),
            rhr=round(rhr, 1),
            sleep=round(sleep, 1),
            respiratory=round(respiratory, 1),
            load=round(load, 1),
            flags=flags,
        )

    def calculate(
        self,
        day: date,
        inputs: RecoveryInputs,
        computed_at: Optional[datetime] = None,
    ) -> DailyScore:
        factors = self.factors(inputs)
        flags = list(factors.flags)
        score = factors.weighted()

        if inputs.illness is not None:
            ceiling = self.settings.recovery_illness_ceiling
            if score > ceiling:
                logger.info(
                    f"Recovery {day}: body stress ({inputs.illness.severity.value}) caps "
                    f"{score:.0f} at {ceiling:.0f}"
                )
            score = min(score, ceiling)
            flags.append("illness_ceiling")
        elif inputs.sleep_score is not None:
            penalty = alcohol_penalty(percent_change(inputs.hrv, inputs.hrv_baseline))
            if penalty:
                logger.debug(f"Recovery {day}: alcohol signature, -{penalty:.0f}")
                score -= penalty
                flags.append("alcohol_signature")

        value = int(round(_clamp(score)))
        limited = inputs.hrv is None and inputs.resting_hr is None

        logger.debug(f"Recovery {day}: {factors.to_dict()} -> {value}")

        return DailyScore(
            date=day,
            score_type=ScoreType.RECOVERY,
            value=value,
            band=determine_recovery_band(value, limited).value,
            sub_scores=factors.to_dict(),
            computed_at=computed_at or datetime.now(),
            low_confidence=inputs.sleep_score is None or limited,
            flags=tuple(flags),
        )
