"""In-memory store owned by the engine: ingested inputs and published results."""

from datetime import date
from typing import Dict, List, Optional, Set, Tuple

from ..aggregation import DailyBiometrics
from ..baselines import BaselineTracker
from ..metrics.fitness import TrainingLoadTracker
from ..models.enums import ScoreType
from ..models.records import Activity, SleepSession
from ..models.scores import AthleteProfile, DailyScore, IllnessIndicator, SleepDebt


class ReadinessStore:
    """
    Keyed lookups by date. Scores are replaced whole, never mutated.

    The baseline tracker and training-load tracker live here so a single
    store instance can be handed to a fresh engine.
    """

    def __init__(self, baseline_window_days: int = 7, baseline_min_days: int = 3) -> None:
        self.baselines = BaselineTracker(window_days=baseline_window_days, min_days=baseline_min_days)
        self.training_load = TrainingLoadTracker()
        self.profile: Optional[AthleteProfile] = None

        self._scores: Dict[Tuple[date, ScoreType], DailyScore] = {}
        self._illness: Dict[date, Optional[IllnessIndicator]] = {}
        self._sleep_debt: Dict[date, SleepDebt] = {}
        self._biometrics: Dict[date, DailyBiometrics] = {}
        self._sessions: Dict[date, Optional[SleepSession]] = {}
        self._activities: Dict[date, List[Activity]] = {}
        self._ingested: Set[date] = set()

    # Scores

    def put_score(self, score: DailyScore) -> None:
        self._scores[(score.date, score.score_type)] = score

    def get_score(self, day: date, score_type: ScoreType) -> Optional[DailyScore]:
        return self._scores.get((day, score_type))

    def remove_score(self, day: date, score_type: ScoreType) -> None:
        self._scores.pop((day, score_type), None)

    # Illness

    def put_illness(self, day: date, indicator: Optional[IllnessIndicator]) -> None:
        self._illness[day] = indicator

    def get_illness(self, day: date) -> Optional[IllnessIndicator]:
        return self._illness.get(day)

    # Ingested inputs

    def put_day(
        self,
        day: date,
        biometrics: DailyBiometrics,
        session: Optional[SleepSession],
        activities: List[Activity],
    ) -> None:
        self._biometrics[day] = biometrics
        self._sessions[day] = session
        self._activities[day] = list(activities)
        self._ingested.add(day)

    def is_ingested(self, day: date) -> bool:
        return day in self._ingested

    def ingested_days(self) -> List[date]:
        return sorted(self._ingested)

    def biometrics(self, day: date) -> Optional[DailyBiometrics]:
        return self._biometrics.get(day)

    def session(self, day: date) -> Optional[SleepSession]:
        return self._sessions.get(day)

    def activities(self, day: date) -> List[Activity]:
        return list(self._activities.get(day, []))

    def forget_day(self, day: date) -> None:
        """Mark a day for re-ingestion. Baseline records already written stay in place."""
        self._ingested.discard(day)

    # Sleep debt

    def set_sleep_debt(self, history: List[SleepDebt]) -> None:
        """Replace the whole ledger; it is rebuilt in date order on each ingestion."""
        self._sleep_debt = {record.date: record for record in history}

    def sleep_debt(self, day: date) -> Optional[SleepDebt]:
        return self._sleep_debt.get(day)
