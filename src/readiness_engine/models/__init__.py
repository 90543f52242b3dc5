"""Data models for the readiness engine."""

from .enums import (
    AccountTier,
    ActivityType,
    BiometricMetric,
    ComputationState,
    FTPSource,
    IllnessSeverity,
    IllnessSignalType,
    Metric,
    RecoveryBand,
    ScoreType,
    SleepBand,
    SleepDisruptionRule,
    SleepStage,
    SourcePlatform,
    StrainBand,
)
from .records import (
    Activity,
    BiometricSample,
    SleepSession,
    SleepStageInterval,
    to_camel,
)
from .scores import (
    AthleteProfile,
    DailyBaseline,
    DailyLoad,
    DailyScore,
    IllnessIndicator,
    IllnessSignal,
    SleepDebt,
    ZoneRange,
)

__all__ = [
    # Enums
    "AccountTier",
    "ActivityType",
    "BiometricMetric",
    "ComputationState",
    "FTPSource",
    "IllnessSeverity",
    "IllnessSignalType",
    "Metric",
    "RecoveryBand",
    "ScoreType",
    "SleepBand",
    "SleepDisruptionRule",
    "SleepStage",
    "SourcePlatform",
    "StrainBand",
    # Input records
    "Activity",
    "BiometricSample",
    "SleepSession",
    "SleepStageInterval",
    "to_camel",
    # Outputs
    "AthleteProfile",
    "DailyBaseline",
    "DailyLoad",
    "DailyScore",
    "IllnessIndicator",
    "IllnessSignal",
    "SleepDebt",
    "ZoneRange",
]
