"""Training metrics calculations."""

from .load import (
    activity_trimp,
    activity_tss,
    calculate_cardio_load,
    calculate_hrss,
    calculate_non_exercise_load,
    calculate_power_trimp,
    calculate_strength_load,
    calculate_trimp,
    calculate_zone_trimp,
    estimate_trimp_from_energy,
)
from .fitness import (
    TrainingLoadTracker,
    calculate_ewma,
    estimate_seed,
)
from .zones import (
    calculate_hr_zones,
    estimate_max_hr,
)
from .power import (
    best_average_power,
    calculate_intensity_factor,
    calculate_normalized_power,
    calculate_power_zones,
    calculate_tss,
    calculate_tss_simple,
    get_power_zone_names,
)
from .ftp import (
    FTPEstimate,
    PowerDurationCurve,
    build_athlete_profile,
    build_power_duration_curve,
    estimate_ftp,
)

__all__ = [
    # Load
    "activity_trimp",
    "activity_tss",
    "calculate_cardio_load",
    "calculate_hrss",
    "calculate_non_exercise_load",
    "calculate_power_trimp",
    "calculate_strength_load",
    "calculate_trimp",
    "calculate_zone_trimp",
    "estimate_trimp_from_energy",
    # Fitness
    "TrainingLoadTracker",
    "calculate_ewma",
    "estimate_seed",
    # Zones
    "calculate_hr_zones",
    "estimate_max_hr",
    # Power
    "best_average_power",
    "calculate_intensity_factor",
    "calculate_normalized_power",
    "calculate_power_zones",
    "calculate_tss",
    "calculate_tss_simple",
    "get_power_zone_names",
    # FTP
    "FTPEstimate",
    "PowerDurationCurve",
    "build_athlete_profile",
    "build_power_duration_curve",
    "estimate_ftp",
]
