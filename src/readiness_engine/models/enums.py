"""Enumerations shared across the readiness engine."""

from enum import Enum


class BiometricMetric(str, Enum):
    """Raw metric carried by a wearable sample."""
    HRV = "hrv"
    RESTING_HR = "resting_hr"
    RESPIRATORY_RATE = "respiratory_rate"
    STEP_COUNT = "step_count"


class Metric(str, Enum):
    """Daily metric tracked by the baseline tracker."""
    HRV = "hrv"
    RESTING_HR = "resting_hr"
    RESPIRATORY_RATE = "respiratory_rate"
    SLEEP_DURATION = "sleep_duration"    # seconds asleep
    SLEEP_SCORE = "sleep_score"
    BEDTIME = "bedtime"                  # minutes relative to midnight
    WAKE_TIME = "wake_time"              # minutes after midnight
    STEP_COUNT = "step_count"
    TRAINING_VOLUME = "training_volume"  # daily TSS


class SleepStage(str, Enum):
    """Sleep stage reported by the wearable."""
    AWAKE = "awake"
    CORE = "core"
    DEEP = "deep"
    REM = "rem"
    IN_BED = "in_bed"


class ActivityType(str, Enum):
    """Coarse activity category."""
    CYCLING = "cycling"
    RUNNING = "running"
    SWIMMING = "swimming"
    WALKING = "walking"
    STRENGTH = "strength"
    OTHER = "other"


class SourcePlatform(str, Enum):
    """Platform an activity was ingested from."""
    INTERVALS = "intervals"
    STRAVA = "strava"
    WEARABLE = "wearable"
    OTHER = "other"


class ScoreType(str, Enum):
    """Daily score kinds."""
    SLEEP = "sleep"
    RECOVERY = "recovery"
    STRAIN = "strain"


class SleepBand(str, Enum):
    OPTIMAL = "Optimal"
    GOOD = "Good"
    FAIR = "Fair"
    PAY_ATTENTION = "Pay Attention"


class RecoveryBand(str, Enum):
    OPTIMAL = "Optimal"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"
    LIMITED_DATA = "Limited Data"


class StrainBand(str, Enum):
    LIGHT = "Light"
    MODERATE = "Moderate"
    HARD = "Hard"
    VERY_HARD = "Very Hard"
    ALL_OUT = "All Out"


class IllnessSignalType(str, Enum):
    """Physiological signals evaluated by the body-stress detector."""
    HRV_DROP = "hrv_drop"
    HRV_SPIKE = "hrv_spike"
    ELEVATED_RHR = "elevated_rhr"
    SLEEP_DISRUPTION = "sleep_disruption"
    RESPIRATORY_CHANGE = "respiratory_change"
    ACTIVITY_DROP = "activity_drop"


class IllnessSeverity(str, Enum):
    LOW = "low"            # confidence 50-65
    MODERATE = "moderate"  # confidence 66-79
    HIGH = "high"          # confidence 80+


class SleepDisruptionRule(str, Enum):
    """
    How a sleep-score change counts as a disruption signal.

    RELATIVE_DROP: score more than the configured percentage below baseline.
    FAIR_BAND_DROP: any drop below baseline while the score sits in 60-84.
    """
    RELATIVE_DROP = "relative_drop"
    FAIR_BAND_DROP = "fair_band_drop"


class FTPSource(str, Enum):
    COMPUTED = "computed"
    EXTERNAL = "external"
    MANUAL = "manual"


class AccountTier(str, Enum):
    FREE = "free"
    PRO = "pro"


class ComputationState(str, Enum):
    """Lifecycle of one (date, score type) computation."""
    NOT_STARTED = "not_started"
    IN_FLIGHT = "in_flight"
    COMPUTED = "computed"
