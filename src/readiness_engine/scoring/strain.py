"""
Strain Score Calculation

Daily strain blends three loads, each 0-100:
- Cardio: zone-weighted TRIMP of all endurance activities
- Strength: session RPE x minutes
- General activity: steps, walking and active energy

The blend saturates towards 100 and is modulated by a recovery factor
(0.85-1.15) from HRV, resting HR and sleep vs baseline.
"""

import logging
import math
from dataclasses import dataclass, asdict
from datetime import date, datetime
from typing import Iterable, List, Optional

from ..models.enums import ActivityType, ScoreType, StrainBand
from ..models.records import Activity
from ..models.scores import DailyScore
from ..metrics.load import (
    activity_trimp,
    activity_tss,
    calculate_cardio_load,
    calculate_non_exercise_load,
    calculate_strength_load,
)


logger = logging.getLogger(__name__)


LOAD_WEIGHTS = {
    "cardio": 1.0,
    "strength": 0.6,
    "non_exercise": 0.3,
}

SATURATION_CONSTANT = 60.0
RECOVERY_MODULATION = 0.15
STRAIN_21_SCALE = 0.21

_NON_CARDIO = (ActivityType.STRENGTH, ActivityType.WALKING)


@dataclass
class RecoveryContext:
    """Today's recovery signals used to modulate strain."""

    hrv: Optional[float] = None
    hrv_baseline: Optional[float] = None
    resting_hr: Optional[float] = None
    resting_hr_baseline: Optional[float] = None
    sleep_score: Optional[float] = None


@dataclass
class StrainBreakdown:
    cardio_load: int
    strength_load: int
    non_exercise_load: int
    cardio_trimp: float
    recovery_factor: float

    def to_dict(self) -> dict:
        return asdict(self)


def calculate_recovery_factor(context: Optional[RecoveryContext]) -> float:
    """
    Recovery modulation: 1 + 0.15 * clamp(0.6*dHRV + 0.3*dRHR + 0.1*dSleep, -1, 1).

    dHRV and dRHR are fractional changes vs baseline (RHR inverted so lower
    is positive); dSleep centres the sleep score on 75.
    """
    if context is None:
        return 1.0

    z_hrv = z_rhr = z_sleep = 0.0
    if context.hrv is not None and context.hrv_baseline:
        z_hrv = (context.hrv - context.hrv_baseline) / context.hrv_baseline
    if context.resting_hr is not None and context.resting_hr_baseline:
        z_rhr = (context.resting_hr_baseline - context.resting_hr) / context.resting_hr_baseline
    if context.sleep_score is not None:
        z_sleep = (context.sleep_score - 75.0) / 25.0

    signal = 0.6 * z_hrv + 0.3 * z_rhr + 0.1 * z_sleep
    signal = max(-1.0, min(1.0, signal))
    return 1.0 + RECOVERY_MODULATION * signal


def to_strain_21(value: float) -> float:
    """Convert a 0-100 strain value to the 0-21 scale."""
    return round(value * STRAIN_21_SCALE, 1)


def determine_strain_band(strain_21: float) -> StrainBand:
    if strain_21 <= 5:
        return StrainBand.LIGHT
    elif strain_21 <= 11:
        return StrainBand.MODERATE
    elif strain_21 <= 16:
        return StrainBand.HARD
    elif strain_21 <= 18:
        return StrainBand.VERY_HARD
    return StrainBand.ALL_OUT


def calculate_daily_tss(
    activities: Iterable[Activity],
    ftp: Optional[float],
    rest_hr: float,
    max_hr: float,
) -> float:
    """Sum of per-activity TSS for one day's (deduplicated) activities."""
    return round(sum(activity_tss(a, ftp, rest_hr, max_hr) for a in activities), 1)


class StrainScoreCalculator:
    """Stateless strain calculator."""

    def __init__(self, rest_hr: float = 60.0, max_hr: float = 180.0, ftp: Optional[float] = None) -> None:
        self.rest_hr = rest_hr
        self.max_hr = max_hr
        self.ftp = ftp

    def breakdown(
        self,
        activities: List[Activity],
        steps: Optional[float] = None,
        active_energy_kcal: Optional[float] = None,
        recovery: Optional[RecoveryContext] = None,
    ) -> StrainBreakdown:
        cardio = [a for a in activities if a.activity_type not in _NON_CARDIO]
        strength = [a for a in activities if a.activity_type == ActivityType.STRENGTH]
        walking = [a for a in activities if a.activity_type == ActivityType.WALKING]

        cardio_trimp = sum(activity_trimp(a, self.rest_hr, self.max_hr, self.ftp) for a in cardio)
        cardio_minutes = sum(a.duration_minutes for a in cardio)
        intensities = [a.intensity_factor for a in cardio if a.intensity_factor is not None]
        cardio_load = calculate_cardio_load(
            cardio_trimp,
            cardio_minutes or None,
            max(intensities) if intensities else None,
        )

        strength_load = 0
        strength_minutes = sum(a.duration_minutes for a in strength)
        if strength_minutes > 0:
            rated = [a for a in strength if a.rpe is not None]
            if rated:
                rpe = sum(a.rpe * a.duration_minutes for a in rated) / sum(a.duration_minutes for a in rated)
            else:
                rpe = 6.5  # moderate-hard when the session was not rated
            strength_load = calculate_strength_load(rpe, strength_minutes)

        walking_kcal = sum(a.active_energy_kcal or 0.0 for a in walking)
        kcal = (active_energy_kcal or 0.0) + walking_kcal
        non_exercise_load = calculate_non_exercise_load(steps, kcal or None)

        return StrainBreakdown(
            cardio_load=cardio_load,
            strength_load=strength_load,
            non_exercise_load=non_exercise_load,
            cardio_trimp=round(cardio_trimp, 1),
            recovery_factor=calculate_recovery_factor(recovery),
        )

    def calculate(
        self,
        day: date,
        activities: List[Activity],
        steps: Optional[float] = None,
        active_energy_kcal: Optional[float] = None,
        recovery: Optional[RecoveryContext] = None,
        computed_at: Optional[datetime] = None,
    ) -> DailyScore:
        """
        Score one day's strain.

        Args:
            day: Date being scored
            activities: The day's deduplicated activities
            steps: Daily step count
            active_energy_kcal: Active energy outside logged activities
            recovery: Recovery signals for modulation
        """
        parts = self.breakdown(activities, steps, active_energy_kcal, recovery)

        raw = (
            parts.cardio_load * LOAD_WEIGHTS["cardio"]
            + parts.strength_load * LOAD_WEIGHTS["strength"]
            + parts.non_exercise_load * LOAD_WEIGHTS["non_exercise"]
        )
        saturated = 100.0 * (1.0 - math.exp(-raw / SATURATION_CONSTANT))
        value = int(round(max(0.0, min(100.0, saturated * parts.recovery_factor))))
        strain_21 = to_strain_21(value)

        flags = []
        if recovery is None or recovery.hrv is None:
            flags.append("no_recovery_modulation")

        logger.debug(
            f"Strain {day}: cardio={parts.cardio_load} strength={parts.strength_load} "
            f"activity={parts.non_exercise_load} factor={parts.recovery_factor:.2f} -> {value}"
        )

        return DailyScore(
            date=day,
            score_type=ScoreType.STRAIN,
            value=value,
            band=determine_strain_band(strain_21).value,
            sub_scores={
                "cardio": float(parts.cardio_load),
                "strength": float(parts.strength_load),
                "non_exercise": float(parts.non_exercise_load),
            },
            computed_at=computed_at or datetime.now(),
            low_confidence=not activities and steps is None,
            flags=tuple(flags),
        )
