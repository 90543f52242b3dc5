"""Cycling power metrics calculations (NP, IF, TSS, best efforts, power zones)."""

from itertools import accumulate
from typing import Dict, Optional, Sequence, Tuple

from ..models.scores import ZoneRange


# Coggan 7-zone model, lower bounds as a fraction of FTP.
POWER_ZONE_FRACTIONS = (0.0, 0.55, 0.75, 0.90, 1.05, 1.20, 1.50)
POWER_ZONE_CEILING = 3.00  # practical upper bound for zone 7


def get_power_zone_names() -> Dict[int, str]:
    """
    Get descriptive names for each power zone.

    Returns:
        Dictionary mapping zone number to zone name
    """
    return {
        1: "Active Recovery",
        2: "Endurance",
        3: "Tempo",
        4: "Threshold",
        5: "VO2max",
        6: "Anaerobic",
        7: "Neuromuscular",
    }


def calculate_power_zones(ftp: int) -> Tuple[ZoneRange, ...]:
    """
    Calculate 7-zone power zones based on FTP.

    Uses the classic Coggan power zones model:
    - Zone 1: Active Recovery (<55% FTP)
    - Zone 2: Endurance (55-75% FTP)
    - Zone 3: Tempo (75-90% FTP)
    - Zone 4: Threshold (90-105% FTP)
    - Zone 5: VO2max (105-120% FTP)
    - Zone 6: Anaerobic (120-150% FTP)
    - Zone 7: Neuromuscular (>150% FTP)

    Args:
        ftp: Functional Threshold Power in watts

    Returns:
        Seven ZoneRange entries, or an empty tuple for a non-positive FTP
    """
    if ftp <= 0:
        return ()

    names = get_power_zone_names()
    bounds = [int(ftp * f) for f in POWER_ZONE_FRACTIONS] + [int(ftp * POWER_ZONE_CEILING)]
    return tuple(
        ZoneRange(zone=i + 1, name=names[i + 1], lower=bounds[i], upper=bounds[i + 1])
        for i in range(7)
    )


def calculate_normalized_power(power_samples: Sequence[float], sample_rate_hz: int = 1) -> float:
    """
    Calculate Normalized Power (NP) using 30-second rolling average.

    Formula: NP = (mean(rolling_30s_power^4))^0.25

    Args:
        power_samples: Power values in watts (one per sample)
        sample_rate_hz: Sample rate in Hz (samples per second), default 1

    Returns:
        Normalized Power in watts, or 0.0 if insufficient data
    """
    if not power_samples:
        return 0.0

    window_size = 30 * sample_rate_hz

    if len(power_samples) < window_size:
        if len(power_samples) < 3 * sample_rate_hz:
            return 0.0
        window_size = len(power_samples)

    rolling_averages = _rolling_means(power_samples, window_size)
    if not rolling_averages:
        return 0.0

    fourth_power_mean = sum(avg ** 4 for avg in rolling_averages) / len(rolling_averages)
    return round(fourth_power_mean ** 0.25, 1)


def _rolling_means(samples: Sequence[float], window_size: int):
    prefix = [0.0] + list(accumulate(samples))
    return [
        (prefix[i + window_size] - prefix[i]) / window_size
        for i in range(len(samples) - window_size + 1)
    ]


def best_average_power(
    power_samples: Sequence[float],
    duration_seconds: int,
    sample_rate_hz: int = 1,
) -> Optional[float]:
    """
    Highest mean power sustained over any window of `duration_seconds`.

    Returns:
        Best mean power in watts, or None when the stream is shorter than the window
    """
    window_size = duration_seconds * sample_rate_hz
    if window_size <= 0 or len(power_samples) < window_size:
        return None
    return round(max(_rolling_means(power_samples, window_size)), 1)


def calculate_intensity_factor(normalized_power: float, ftp: int) -> float:
    """
    Calculate Intensity Factor (IF) = NP / FTP.

    Returns:
        Intensity Factor (dimensionless ratio)
    """
    if ftp <= 0:
        return 0.0

    return round(normalized_power / ftp, 3)


def calculate_tss(
    duration_sec: int,
    normalized_power: float,
    intensity_factor: float,
    ftp: int,
) -> float:
    """
    Calculate Training Stress Score from power.

    A TSS of 100 represents one hour at FTP.

    Formula: TSS = (duration_sec * NP * IF) / (FTP * 3600) * 100
    """
    if ftp <= 0 or duration_sec <= 0:
        return 0.0

    tss = (duration_sec * normalized_power * intensity_factor) / (ftp * 3600) * 100
    return round(tss, 1)


def calculate_tss_simple(
    duration_sec: int,
    normalized_power: float,
    ftp: int,
) -> float:
    """Calculate Training Stress Score with automatic IF calculation."""
    if ftp <= 0:
        return 0.0

    intensity_factor = calculate_intensity_factor(normalized_power, ftp)
    return calculate_tss(duration_sec, normalized_power, intensity_factor, ftp)
