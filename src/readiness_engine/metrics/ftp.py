"""Adaptive FTP estimation from a power-duration curve.

Stages:
1. Best power for 5, 20 and 60 minutes across the history window
2. Three FTP candidates (60-min x 0.99, 20-min x 0.95, 5-min x 0.87), weighted
3. Confidence from total weight, with a small upward buffer
4. Bounds against the highest NP seen, then smoothing against the previous FTP
"""

import logging
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from ..models.enums import AccountTier, FTPSource
from ..models.records import Activity
from ..models.scores import AthleteProfile
from .power import best_average_power, calculate_normalized_power, calculate_power_zones
from .zones import calculate_hr_zones, estimate_max_hr


logger = logging.getLogger(__name__)


ULTRA_ENDURANCE_SECONDS = 3 * 3600

# (minimum duration, NP multiplier to estimate 60-min power)
ULTRA_BOOSTS = ((5 * 3600, 1.12), (4 * 3600, 1.10), (3 * 3600, 1.07))

CONFIDENCE_WEIGHT_DIVISOR = 2.5


@dataclass
class PowerDurationCurve:
    """Best power for 5, 20 and 60 minutes over a set of activities."""

    best_5min: float = 0.0
    best_20min: float = 0.0
    best_60min: float = 0.0
    max_np: float = 0.0
    ultra_boost: Optional[float] = None
    activity_count: int = 0

    @property
    def is_empty(self) -> bool:
        return self.best_5min <= 0 and self.best_20min <= 0 and self.best_60min <= 0


@dataclass
class FTPCandidate:
    method: str
    ftp: float
    weight: float


@dataclass
class FTPEstimate:
    """Result of one FTP estimation pass."""

    ftp: float
    weighted_ftp: float
    confidence: float
    buffer: float
    candidates: List[FTPCandidate] = field(default_factory=list)
    ultra_endurance: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def history_window_days(tier: AccountTier, free_days: int = 90, pro_days: int = 120) -> int:
    """Length of the FTP history window for an account tier."""
    return pro_days if tier == AccountTier.PRO else free_days


def activities_in_window(
    activities: Iterable[Activity],
    reference_date: date,
    window_days: int,
) -> List[Activity]:
    start = reference_date - timedelta(days=window_days)
    return [a for a in activities if start < a.start.date() <= reference_date]


def _activity_np(activity: Activity) -> float:
    if activity.normalized_power:
        return activity.normalized_power
    if activity.power_samples:
        return calculate_normalized_power(activity.power_samples, activity.sample_rate_hz)
    return 0.0


def build_power_duration_curve(activities: Iterable[Activity]) -> PowerDurationCurve:
    """
    Build the power-duration curve.

    Activities with a power stream contribute their best rolling means.
    Activities with only NP contribute it to every bucket their duration
    covers; rides of 3+ hours have NP boosted into the 60-minute slot.
    """
    curve = PowerDurationCurve()

    for activity in activities:
        np_watts = _activity_np(activity)
        if np_watts <= 0 and not activity.power_samples:
            continue

        curve.activity_count += 1
        curve.max_np = max(curve.max_np, np_watts)
        duration = activity.duration_seconds

        if activity.power_samples:
            rate = activity.sample_rate_hz
            for attr, seconds in (("best_5min", 300), ("best_20min", 1200), ("best_60min", 3600)):
                best = best_average_power(activity.power_samples, seconds, rate)
                if best and best > getattr(curve, attr):
                    setattr(curve, attr, best)
        else:
            if duration >= 3600 and duration < ULTRA_ENDURANCE_SECONDS:
                curve.best_60min = max(curve.best_60min, np_watts)
            if duration >= 1200:
                curve.best_20min = max(curve.best_20min, np_watts)
            if duration >= 300:
                curve.best_5min = max(curve.best_5min, np_watts)

        if duration >= ULTRA_ENDURANCE_SECONDS and np_watts > 0:
            boost = next(b for threshold, b in ULTRA_BOOSTS if duration >= threshold)
            estimated = np_watts * boost
            if estimated > curve.best_60min:
                logger.debug(
                    f"Ultra-endurance ride {activity.id}: NP {np_watts:.0f}W -> "
                    f"estimated 60-min {estimated:.0f}W"
                )
                curve.best_60min = estimated
                curve.ultra_boost = boost

    return curve


def ftp_candidates(curve: PowerDurationCurve) -> List[FTPCandidate]:
    candidates = []
    if curve.best_60min > 0:
        weight = 1.5 if curve.ultra_boost is not None else 1.0
        candidates.append(FTPCandidate("60-min x 0.99", curve.best_60min * 0.99, weight))
    if curve.best_20min > 0:
        candidates.append(FTPCandidate("20-min x 0.95", curve.best_20min * 0.95, 0.9))
    if curve.best_5min > 0:
        candidates.append(FTPCandidate("5-min x 0.87", curve.best_5min * 0.87, 0.6))
    return candidates


def confidence_buffer(confidence: float) -> float:
    """Upward buffer: +2% at high confidence, +3% at medium, +5% otherwise."""
    if confidence >= 0.9:
        return 1.02
    elif confidence >= 0.7:
        return 1.03
    return 1.05


def _smoothing_ratio(confidence: float, ultra: bool) -> float:
    """Weight kept on the previous FTP."""
    if ultra and confidence >= 0.9:
        return 0.5
    if confidence >= 0.9:
        return 0.6
    return 0.7


def estimate_ftp(
    curve: PowerDurationCurve,
    previous_ftp: Optional[float] = None,
) -> Optional[FTPEstimate]:
    """
    Estimate FTP from a power-duration curve.

    Returns:
        FTPEstimate, or None when the curve holds no power data
    """
    candidates = ftp_candidates(curve)
    if not candidates:
        logger.info("No power data available, cannot compute FTP")
        return None

    total_weight = sum(c.weight for c in candidates)
    weighted_ftp = sum(c.ftp * c.weight for c in candidates) / total_weight
    confidence = min(total_weight / CONFIDENCE_WEIGHT_DIVISOR, 1.0)
    buffer = confidence_buffer(confidence)
    ftp = weighted_ftp * buffer

    if curve.max_np > 0:
        lower, upper = curve.max_np * 0.85, curve.max_np * 1.05
        if ftp < lower or ftp > upper:
            logger.debug(f"Buffered FTP {ftp:.0f}W outside [{lower:.0f}, {upper:.0f}], clamping")
            ftp = min(max(ftp, lower), upper)

    if previous_ftp and previous_ftp > 0:
        keep = _smoothing_ratio(confidence, curve.ultra_boost is not None)
        ftp = previous_ftp * keep + ftp * (1 - keep)

    logger.info(
        f"Adaptive FTP {ftp:.0f}W (weighted {weighted_ftp:.0f}W, "
        f"confidence {confidence:.2f}, {len(candidates)} duration points)"
    )
    return FTPEstimate(
        ftp=ftp,
        weighted_ftp=weighted_ftp,
        confidence=confidence,
        buffer=buffer,
        candidates=candidates,
        ultra_endurance=curve.ultra_boost is not None,
    )


def build_athlete_profile(
    activities: Iterable[Activity],
    reference_date: date,
    tier: AccountTier = AccountTier.FREE,
    manual_ftp: Optional[float] = None,
    external_ftp: Optional[float] = None,
    previous: Optional[AthleteProfile] = None,
    free_window_days: int = 90,
    pro_window_days: int = 120,
) -> AthleteProfile:
    """
    Build a profile with FTP, max HR and both zone sets regenerated together.

    FTP source priority: manual override > computed > external.
    """
    window = history_window_days(tier, free_window_days, pro_window_days)
    recent = activities_in_window(activities, reference_date, window)

    previous_computed = None
    if previous is not None and previous.ftp_source == FTPSource.COMPUTED:
        previous_computed = previous.ftp

    estimate = estimate_ftp(build_power_duration_curve(recent), previous_computed)

    ftp: Optional[float] = None
    source: Optional[FTPSource] = None
    confidence: Optional[float] = None
    if manual_ftp:
        ftp, source, confidence = manual_ftp, FTPSource.MANUAL, 1.0
    elif estimate is not None:
        ftp, source, confidence = estimate.ftp, FTPSource.COMPUTED, estimate.confidence
    elif external_ftp:
        ftp, source = external_ftp, FTPSource.EXTERNAL
        logger.info(f"No local FTP estimate, using external FTP {external_ftp:.0f}W")

    max_hr = estimate_max_hr(
        [a.max_hr for a in recent if a.max_hr],
        previous.max_hr if previous is not None else None,
    )

    if ftp:
        ftp = int(round(ftp))

    return AthleteProfile(
        ftp=ftp,
        ftp_source=source,
        ftp_confidence=confidence,
        power_zones=calculate_power_zones(ftp) if ftp else (),
        hr_zones=calculate_hr_zones(max_hr) if max_hr else (),
        max_hr=max_hr,
        estimated_at=datetime.combine(reference_date, datetime.min.time()),
    )
