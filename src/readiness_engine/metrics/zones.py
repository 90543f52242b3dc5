"""Heart rate zone calculations and max HR estimation."""

from typing import Dict, Optional, Sequence, Tuple

from ..models.scores import ZoneRange


# 7-zone model, lower bounds as a fraction of max HR.
HR_ZONE_FRACTIONS = (0.0, 0.68, 0.83, 0.90, 0.95, 0.98, 1.00)

MAX_HR_BUFFER = 1.02
MAX_HR_SMOOTHING = 0.8  # weight kept on the previous max HR


def get_hr_zone_names() -> Dict[int, str]:
    return {
        1: "Recovery",
        2: "Endurance",
        3: "Tempo",
        4: "Threshold",
        5: "VO2max",
        6: "Anaerobic",
        7: "Max",
    }


def calculate_hr_zones(max_hr: int) -> Tuple[ZoneRange, ...]:
    """
    Calculate 7 heart rate zones from maximum heart rate.

    Zone boundaries (% of max HR):
    - Zone 1: <68% - Recovery
    - Zone 2: 68-83% - Endurance
    - Zone 3: 83-90% - Tempo
    - Zone 4: 90-95% - Threshold
    - Zone 5: 95-98% - VO2max
    - Zone 6: 98-100% - Anaerobic
    - Zone 7: 100%+ - Max

    Args:
        max_hr: Maximum heart rate

    Returns:
        Seven ZoneRange entries, or an empty tuple for a non-positive max HR
    """
    if max_hr <= 0:
        return ()

    names = get_hr_zone_names()
    bounds = [int(max_hr * f) for f in HR_ZONE_FRACTIONS] + [max_hr + 10]
    return tuple(
        ZoneRange(zone=i + 1, name=names[i + 1], lower=bounds[i], upper=bounds[i + 1])
        for i in range(7)
    )


def estimate_max_hr(
    observed_max_hrs: Sequence[float],
    previous_max_hr: Optional[float] = None,
) -> Optional[int]:
    """
    Estimate max HR from activity peaks.

    Takes the highest recorded peak plus a 2% buffer (athletes rarely hit a
    true max in training) and smooths it against the previous estimate.

    Returns:
        Max HR in bpm, or None when no peaks are available
    """
    peaks = [hr for hr in observed_max_hrs if hr and hr > 0]
    if not peaks:
        return int(round(previous_max_hr)) if previous_max_hr else None

    computed = max(peaks) * MAX_HR_BUFFER
    if previous_max_hr and previous_max_hr > 0:
        computed = previous_max_hr * MAX_HR_SMOOTHING + computed * (1 - MAX_HR_SMOOTHING)
    return int(round(computed))
