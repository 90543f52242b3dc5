"""Configuration settings for the readiness engine."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .models.enums import SleepDisruptionRule


PACKAGE_ROOT = Path(__file__).parent.parent.parent  # repository root in a src layout


class EngineSettings(BaseSettings):
    """Engine settings loaded from environment variables (READINESS_*)."""

    model_config = SettingsConfigDict(
        env_prefix="READINESS_",
        env_file=str(PACKAGE_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Baselines
    baseline_window_days: int = 7
    baseline_min_days: int = 3

    # Sleep
    default_sleep_need_hours: float = 8.0
    min_sleep_need_hours: float = 4.0
    max_sleep_need_hours: float = 12.0
    sleep_need_uplift_minutes: float = 30.0
    sleep_need_tss_threshold: float = 100.0
    sleep_debt_repayment_fraction: float = 0.5

    # Illness detection
    illness_window_days: int = 7
    illness_min_days: int = 3
    illness_hrv_drop_pct: float = -15.0
    illness_hrv_spike_pct: float = 100.0
    illness_rhr_elevation_pct: float = 5.0
    illness_sleep_drop_pct: float = -20.0
    illness_respiratory_change_pct: float = 10.0
    illness_activity_drop_pct: float = -30.0
    illness_min_confidence: float = 50.0
    illness_min_signals: int = 2
    sleep_disruption_rule: SleepDisruptionRule = SleepDisruptionRule.RELATIVE_DROP

    # Training load
    training_load_history_days: int = 42

    # Recovery
    recovery_illness_ceiling: float = 60.0
    recovery_sleep_wait_seconds: float = 5.0

    # Activity deduplication
    dedup_start_tolerance_seconds: float = 5400.0
    dedup_duration_tolerance_pct: float = 0.10
    dedup_distance_tolerance_pct: float = 0.10

    # Athlete physiology defaults
    default_resting_hr: float = 60.0
    default_max_hr: float = 180.0

    # Threshold estimation
    ftp_window_days_free: int = 90
    ftp_window_days_pro: int = 120


@lru_cache
def get_settings() -> EngineSettings:
    """Get cached settings instance."""
    return EngineSettings()
