"""Output records produced by the calculators."""

from datetime import date as date_type, datetime
from typing import Dict, List, Optional, Tuple

from pydantic import Field, field_validator

from .enums import (
    FTPSource,
    IllnessSeverity,
    IllnessSignalType,
    Metric,
    ScoreType,
)
from .records import RecordModel


# =============================================================================
# Baselines
# =============================================================================

class DailyBaseline(RecordModel):
    """Rolling baseline for one metric as of one date. Superseded, never mutated."""

    metric: Metric
    date: date_type
    rolling_mean: float
    rolling_std_dev: float = 0.0
    window_size_days: int = 7
    sample_count: int = 0
    low_confidence: bool = False


# =============================================================================
# Scores
# =============================================================================

class DailyScore(RecordModel):
    """Sleep, recovery or strain score for one date."""

    date: date_type
    score_type: ScoreType
    value: int = Field(..., ge=0, le=100)
    band: str
    sub_scores: Dict[str, float] = Field(default_factory=dict)
    computed_at: datetime = Field(default_factory=datetime.now)
    low_confidence: bool = False
    flags: Tuple[str, ...] = ()

    @field_validator("sub_scores")
    @classmethod
    def _sub_scores_in_range(cls, v: Dict[str, float]) -> Dict[str, float]:
        for name, value in v.items():
            if not 0 <= value <= 100:
                raise ValueError(f"sub-score '{name}' out of range: {value}")
        return v

    def same_result(self, other: "DailyScore") -> bool:
        """Compare everything except the computation timestamp."""
        return self.model_dump(exclude={"computed_at"}) == other.model_dump(exclude={"computed_at"})


class SleepDebt(RecordModel):
    """Accumulated sleep debt after applying the night ending on `date`."""

    date: date_type
    debt_seconds: float = Field(..., ge=0)

    @property
    def debt_hours(self) -> float:
        return round(self.debt_seconds / 3600.0, 2)


# =============================================================================
# Training load
# =============================================================================

class DailyLoad(RecordModel):
    """Fitness-fatigue state for one day. TSS is stored, never derived lazily."""

    date: date_type
    tss: float = Field(..., ge=0)
    ctl: float
    atl: float
    tsb: float


# =============================================================================
# Illness
# =============================================================================

class IllnessSignal(RecordModel):
    """One physiological deviation contributing to an illness indicator."""

    signal_type: IllnessSignalType
    deviation_pct: float
    value: float
    baseline: Optional[float] = None


class IllnessIndicator(RecordModel):
    """Body-stress indicator. Transient: recomputed on every detection pass."""

    date: date_type
    signals: Tuple[IllnessSignal, ...]
    confidence_score: float = Field(..., ge=0, le=100)
    severity: IllnessSeverity
    recommendation: str = ""

    @property
    def signal_types(self) -> List[IllnessSignalType]:
        return [s.signal_type for s in self.signals]

    @property
    def primary_signal(self) -> Optional[IllnessSignal]:
        if not self.signals:
            return None
        return max(self.signals, key=lambda s: abs(s.deviation_pct))


# =============================================================================
# Athlete profile
# =============================================================================

class ZoneRange(RecordModel):
    """One training zone with inclusive lower and exclusive upper bound."""

    zone: int = Field(..., ge=1, le=7)
    name: str
    lower: int
    upper: int


class AthleteProfile(RecordModel):
    """Threshold and zones. Always regenerated together."""

    ftp: Optional[int] = None
    ftp_source: Optional[FTPSource] = None
    ftp_confidence: Optional[float] = Field(None, ge=0, le=1)
    power_zones: Tuple[ZoneRange, ...] = ()
    hr_zones: Tuple[ZoneRange, ...] = ()
    max_hr: Optional[int] = None
    estimated_at: datetime = Field(default_factory=datetime.now)

    def power_zone(self, zone: int) -> Optional[ZoneRange]:
        for z in self.power_zones:
            if z.zone == zone:
                return z
        return None

    def hr_zone(self, zone: int) -> Optional[ZoneRange]:
        for z in self.hr_zones:
            if z.zone == zone:
                return z
        return None
