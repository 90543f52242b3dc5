"""Training load calculations (TRIMP, HRSS, per-activity TSS)."""

import logging
import math
from typing import Optional, Sequence

from ..models.enums import ActivityType
from ..models.records import Activity
from .power import calculate_normalized_power, calculate_tss_simple


logger = logging.getLogger(__name__)


# Edwards-style zone multipliers, keyed by upper bound of the intensity band.
HR_RESERVE_BANDS = ((0.5, 1.0), (0.6, 2.0), (0.7, 3.0), (0.8, 4.0))
POWER_FTP_BANDS = ((0.55, 1.0), (0.75, 2.0), (0.90, 3.0), (1.05, 4.0))
TOP_BAND_MULTIPLIER = 5.0

# Energy-based TRIMP multipliers when no HR or power is available.
ENERGY_MULTIPLIERS = {
    ActivityType.STRENGTH: 1.5,
    ActivityType.CYCLING: 0.8,
    ActivityType.RUNNING: 1.0,
    ActivityType.SWIMMING: 0.9,
    ActivityType.WALKING: 0.5,
    ActivityType.OTHER: 0.7,
}


def _band_multiplier(intensity: float, bands) -> float:
    for upper, multiplier in bands:
        if intensity < upper:
            return multiplier
    return TOP_BAND_MULTIPLIER


def calculate_hrss(
    duration_min: float,
    avg_hr: float,
    threshold_hr: float,
    max_hr: float,
    rest_hr: float,
) -> float:
    """
    Heart Rate Stress Score - TSS equivalent for HR-based training.

    Args:
        duration_min: Duration of activity in minutes
        avg_hr: Average heart rate during activity
        threshold_hr: Lactate threshold heart rate
        max_hr: Maximum heart rate
        rest_hr: Resting heart rate

    Returns:
        HRSS value (similar scale to TSS: 100 = 1 hour at threshold)
    """
    hr_reserve = max_hr - rest_hr
    if hr_reserve <= 0:
        return 0.0

    normalized_hr = (avg_hr - rest_hr) / hr_reserve
    normalized_hr = max(0, min(1, normalized_hr))

    threshold_reserve_ratio = (threshold_hr - rest_hr) / hr_reserve
    if threshold_reserve_ratio <= 0:
        threshold_reserve_ratio = 0.85

    intensity_factor = normalized_hr / threshold_reserve_ratio

    # ~100 HRSS for 1 hour at threshold
    hrss = (duration_min * (intensity_factor ** 2)) / 60 * 100
    return round(hrss, 1)


def calculate_trimp(
    duration_min: float,
    avg_hr: float,
    rest_hr: float,
    max_hr: float,
    gender: str = "male",
) -> float:
    """
    Training Impulse using Banister's exponential formula.

    Used when only an average heart rate is known for a session.

    Args:
        duration_min: Duration of activity in minutes
        avg_hr: Average heart rate during activity
        rest_hr: Resting heart rate
        max_hr: Maximum heart rate
        gender: 'male' or 'female' (different exponential coefficients)

    Returns:
        TRIMP value (arbitrary units, typical session: 50-150)
    """
    hr_reserve = max_hr - rest_hr
    if hr_reserve <= 0:
        return 0.0

    delta_hr = (avg_hr - rest_hr) / hr_reserve
    delta_hr = max(0, min(1, delta_hr))

    if gender.lower() == "female":
        a, b = 0.86, 1.67
    else:
        a, b = 0.64, 1.92

    trimp = duration_min * delta_hr * a * math.exp(b * delta_hr)
    return round(trimp, 1)


def calculate_zone_trimp(
    hr_samples: Sequence[float],
    rest_hr: float,
    max_hr: float,
    sample_rate_hz: int = 1,
) -> float:
    """
    Zone-weighted TRIMP from a heart-rate stream.

    Each sample contributes minutes * HRR fraction * zone multiplier, where
    the multiplier rises from 1 (<50% HRR) to 5 (>=80% HRR).

    Args:
        hr_samples: Heart rate values, evenly spaced
        rest_hr: Resting heart rate
        max_hr: Maximum heart rate
        sample_rate_hz: Samples per second

    Returns:
        TRIMP value, 0.0 when the HR range is invalid
    """
    hr_reserve_range = max_hr - rest_hr
    if hr_reserve_range <= 0 or not hr_samples or sample_rate_hz <= 0:
        return 0.0

    minutes_per_sample = 1.0 / (60.0 * sample_rate_hz)
    trimp = 0.0
    for hr in hr_samples:
        hr_reserve = max(0.0, min(1.0, (hr - rest_hr) / hr_reserve_range))
        trimp += minutes_per_sample * hr_reserve * _band_multiplier(hr_reserve, HR_RESERVE_BANDS)
    return round(trimp, 1)


def calculate_power_trimp(
    power_samples: Sequence[float],
    ftp: float,
    sample_rate_hz: int = 1,
) -> float:
    """
    Power analogue of the zone-weighted TRIMP.

    Intensity is power / FTP (capped at 1.5) with multipliers from 1
    (<55% FTP) to 5 (>=105% FTP).
    """
    if ftp <= 0 or not power_samples or sample_rate_hz <= 0:
        return 0.0

    minutes_per_sample = 1.0 / (60.0 * sample_rate_hz)
    trimp = 0.0
    for watts in power_samples:
        intensity = max(0.0, min(1.5, watts / ftp))
        trimp += minutes_per_sample * intensity * _band_multiplier(intensity, POWER_FTP_BANDS)
    return round(trimp, 1)


def estimate_trimp_from_energy(activity: Activity) -> float:
    """Fallback TRIMP from active energy when no HR or power exists."""
    calories = activity.active_energy_kcal or 0.0
    multiplier = ENERGY_MULTIPLIERS.get(activity.activity_type, ENERGY_MULTIPLIERS[ActivityType.OTHER])
    return round(calories * multiplier * 0.1, 1)


def activity_trimp(
    activity: Activity,
    rest_hr: float,
    max_hr: float,
    ftp: Optional[float] = None,
    prefer_power: bool = True,
) -> float:
    """
    Training impulse for one activity.

    Power stream (when FTP known and preferred) > HR stream > average HR >
    active-energy estimate.
    """
    if prefer_power and ftp and activity.power_samples:
        return calculate_power_trimp(activity.power_samples, ftp, activity.sample_rate_hz)
    if activity.heart_rate_samples:
        return calculate_zone_trimp(activity.heart_rate_samples, rest_hr, max_hr, activity.sample_rate_hz)
    if activity.average_hr:
        return calculate_trimp(activity.duration_minutes, activity.average_hr, rest_hr, max_hr)
    if ftp and activity.power_samples:
        return calculate_power_trimp(activity.power_samples, ftp, activity.sample_rate_hz)

    logger.debug(f"No HR or power for activity {activity.id}, estimating TRIMP from energy")
    return estimate_trimp_from_energy(activity)


def activity_tss(
    activity: Activity,
    ftp: Optional[float],
    rest_hr: float,
    max_hr: float,
    threshold_hr: Optional[float] = None,
) -> float:
    """
    Training Stress Score for one activity.

    Supplied TSS > power TSS from NP and FTP > HRSS from average HR > TRIMP.
    """
    if activity.tss is not None:
        return activity.tss

    if ftp and ftp > 0:
        np_watts = activity.normalized_power
        if not np_watts and activity.power_samples:
            np_watts = calculate_normalized_power(activity.power_samples, activity.sample_rate_hz)
        if np_watts:
            return calculate_tss_simple(int(activity.duration_seconds), np_watts, int(ftp))

    if activity.average_hr:
        lthr = threshold_hr or (rest_hr + 0.85 * (max_hr - rest_hr))
        return calculate_hrss(activity.duration_minutes, activity.average_hr, lthr, max_hr, rest_hr)

    return activity_trimp(activity, rest_hr, max_hr, ftp)


def calculate_cardio_load(
    trimp: Optional[float],
    duration_min: Optional[float] = None,
    intensity_factor: Optional[float] = None,
) -> int:
    """
    Cardio load (0-100) from daily TRIMP with log compression.

    Sustained efforts over 60 minutes and intensity factors above 0.8 earn
    small bonuses.
    """
    if trimp is None or trimp <= 0:
        return 0

    load = 35.0 * math.log10(trimp + 1.0)

    if duration_min is not None and duration_min > 60:
        load += min(10.0, (duration_min - 60) * 0.1)

    if intensity_factor is not None and intensity_factor > 0.8:
        load += min(15.0, (intensity_factor - 0.8) * 75.0)

    return max(0, min(100, int(load)))


def calculate_strength_load(
    rpe: Optional[float],
    duration_min: Optional[float],
    sets: Optional[int] = None,
) -> int:
    """Strength load (0-100) from session RPE x minutes with log compression."""
    if rpe is None or duration_min is None or duration_min <= 0 or not 1.0 <= rpe <= 10.0:
        return 0

    base_load = 1.2 * (rpe * duration_min)
    if sets is not None and sets > 0:
        base_load *= min(1.3, 1.0 + (sets - 1) * 0.05)

    compressed = 35.0 * 0.8 * math.log10(base_load + 1.0)
    return max(0, min(100, int(compressed)))


def calculate_non_exercise_load(
    steps: Optional[float],
    active_calories: Optional[float],
    daily_cap: float = 20.0,
) -> int:
    """General-activity load (0-100) from steps and active energy."""
    total = 0.0
    if steps is not None and steps > 0:
        total += 20.0 * (steps / 2000.0)  # MET-minutes
    if active_calories is not None and active_calories > 0:
        total += active_calories * 0.003

    capped = min(total, daily_cap * 1.5)
    compressed = 25.0 * math.log1p(capped)
    return max(0, min(100, int(compressed)))
