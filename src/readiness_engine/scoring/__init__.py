"""Daily score calculators: sleep, strain, recovery and body-stress detection."""

from .sleep import SleepDebtTracker, SleepScoreCalculator, calculate_sleep_need
from .strain import RecoveryContext, StrainScoreCalculator, calculate_daily_tss
from .illness import IllnessDetector
from .recovery import RecoveryInputs, RecoveryScoreCalculator

__all__ = [
    "SleepScoreCalculator",
    "SleepDebtTracker",
    "calculate_sleep_need",
    "StrainScoreCalculator",
    "RecoveryContext",
    "calculate_daily_tss",
    "IllnessDetector",
    "RecoveryInputs",
    "RecoveryScoreCalculator",
]
