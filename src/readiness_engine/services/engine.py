"""
Readiness engine service.

Orchestrates the daily pipeline:
raw records -> daily aggregation -> baselines -> strain -> sleep ->
illness (7-day window) -> recovery. Threshold estimation runs separately
over the tier-gated history window.

Each score is computed at most once at a time per (date, score type) via
the ComputationRegistry. Pure calculators run in worker threads on
snapshotted inputs; results are published on the EventBus.
"""

import asyncio
from datetime import date, timedelta
from typing import Awaitable, Callable, Dict, List, Optional, Tuple
import logging

from ..aggregation import aggregate_day
from ..config import EngineSettings, get_settings
from ..dedup import deduplicate_activities
from ..exceptions import (
    ConfigurationError,
    InsufficientDataError,
    OutOfOrderBackfillError,
    ReadinessEngineError,
    StaleDependencyError,
)
from ..metrics.ftp import build_athlete_profile, history_window_days
from ..models.enums import Metric, ScoreType
from ..models.records import Activity, BiometricSample, SleepSession
from ..models.scores import AthleteProfile, DailyLoad, DailyScore, IllnessIndicator, SleepDebt
from ..scoring.illness import IllnessDetector
from ..scoring.recovery import RecoveryInputs, RecoveryScoreCalculator
from ..scoring.sleep import (
    SleepDebtTracker,
    SleepScoreCalculator,
    bedtime_minutes,
    calculate_sleep_need,
    wake_minutes,
)
from ..scoring.strain import RecoveryContext, StrainScoreCalculator, calculate_daily_tss
from .base import ActivityFeed, BaseService, TierProvider, WearableFeed
from .events import ComputationFailed, EventBus, IllnessEvaluated, LoadUpdated, ScoreComputed
from .registry import ComputationRegistry, score_key
from .store import ReadinessStore


ONE_DAY = timedelta(days=1)

_BIOMETRIC_METRICS = (
    (Metric.HRV, "hrv"),
    (Metric.RESTING_HR, "resting_hr"),
    (Metric.RESPIRATORY_RATE, "respiratory_rate"),
    (Metric.STEP_COUNT, "steps"),
)

_SLEEP_DEPENDENT = (ScoreType.RECOVERY, ScoreType.STRAIN)


def validate_settings(settings: EngineSettings) -> None:
    """Reject settings combinations the calculators cannot work with."""
    problems: Dict[str, str] = {}
    if settings.baseline_min_days > settings.baseline_window_days:
        problems["baseline_min_days"] = "exceeds baseline_window_days"
    if settings.min_sleep_need_hours > settings.max_sleep_need_hours:
        problems["min_sleep_need_hours"] = "exceeds max_sleep_need_hours"
    if settings.recovery_sleep_wait_seconds < 0:
        problems["recovery_sleep_wait_seconds"] = "must not be negative"
    if not 0 < settings.sleep_debt_repayment_fraction <= 1:
        problems["sleep_debt_repayment_fraction"] = "must be in (0, 1]"
    if problems:
        raise ConfigurationError("Invalid engine settings", details=problems)


class ReadinessEngine(BaseService):
    """
    Async facade over the calculators.

    Missing scores are returned as None ("not enough data"), never as a
    fabricated value. Recoverable errors are logged, published as
    ComputationFailed and turned into None; OutOfOrderBackfillError is
    raised to the caller.
    """

    def __init__(
        self,
        wearable: WearableFeed,
        activity_feed: ActivityFeed,
        tier_provider: TierProvider,
        settings: Optional[EngineSettings] = None,
        store: Optional[ReadinessStore] = None,
        event_bus: Optional[EventBus] = None,
        manual_ftp: Optional[float] = None,
        external_ftp: Optional[float] = None,
        today: Optional[Callable[[], date]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(logger)
        self.settings = settings or get_settings()
        validate_settings(self.settings)
        self.store = store or ReadinessStore(
            baseline_window_days=self.settings.baseline_window_days,
            baseline_min_days=self.settings.baseline_min_days,
        )
        self.events = event_bus or EventBus()
        self.registry = ComputationRegistry()

        self._wearable = wearable
        self._activity_feed = activity_feed
        self._tier_provider = tier_provider
        self._manual_ftp = manual_ftp
        self._external_ftp = external_ftp
        self._today = today or date.today

        self._sleep_calculator = SleepScoreCalculator(self.settings)
        self._recovery_calculator = RecoveryScoreCalculator(self.settings)
        self._illness_detector = IllnessDetector(self.settings)

        self._ingest_lock = asyncio.Lock()
        self._load_lock = asyncio.Lock()

    # =========================================================================
    # Public API
    # =========================================================================

    async def get_sleep_score(self, day: date) -> Optional[DailyScore]:
        """Sleep score for the night ending on `day`, or None."""
        return await self._score(day, ScoreType.SLEEP, self._compute_sleep)

    async def get_recovery_score(self, day: date) -> Optional[DailyScore]:
        """Recovery score for `day`, or None. Waits (bounded) for the same-date sleep score."""
        return await self._score(day, ScoreType.RECOVERY, self._compute_recovery)

    async def get_strain_score(self, day: date) -> Optional[DailyScore]:
        """
        Strain score for `day`, or None when there is no activity or step data.

        Waits (bounded) for the same-date sleep score, like recovery.
        """
        return await self._score(day, ScoreType.STRAIN, self._compute_strain)

    async def get_training_load(self, day: date) -> Optional[DailyLoad]:
        """
        CTL/ATL/TSB for `day`.

        Extends the tracker chronologically up to `day` when needed. Days
        before the tracker's seed return None.
        """
        existing = self.store.training_load.get(day)
        if existing is not None:
            return existing

        tracker = self.store.training_load
        if tracker.last_date is not None and day < tracker.last_date:
            return None

        try:
            await self._advance_training_load(day)
        except ReadinessEngineError as e:
            if not e.recoverable:
                raise
            self._report_failure(day, "training_load", e)
            return None
        return tracker.get(day)

    async def get_illness_indicator(self, day: Optional[date] = None) -> Optional[IllnessIndicator]:
        """Body-stress indicator for `day` (default today). Recomputed on every call."""
        day = day or self._today()
        try:
            await self._ensure_history(day)
        except ReadinessEngineError as e:
            if not e.recoverable:
                raise
            self._report_failure(day, "illness", e)
            return None

        window, baselines = self._illness_detector.inputs_from_tracker(self.store.baselines, day)
        indicator = await asyncio.to_thread(self._illness_detector.detect, day, window, baselines)
        self.store.put_illness(day, indicator)
        self.events.publish(IllnessEvaluated(date=day, indicator=indicator))
        return indicator

    async def get_athlete_profile(self) -> AthleteProfile:
        """FTP, max HR and both zone sets, estimated once per day."""
        today = self._today()
        try:
            return await self.registry.run(("profile", today), lambda: self._compute_profile(today))
        except ReadinessEngineError as e:
            if not e.recoverable:
                raise
            self._report_failure(today, "athlete_profile", e)
            return self.store.profile or AthleteProfile()

    def set_manual_ftp(self, ftp: Optional[float]) -> None:
        """Override FTP (None clears it). The profile is regenerated on next request."""
        self._manual_ftp = ftp
        self.registry.invalidate(("profile", self._today()))

    async def get_sleep_debt(self, day: date) -> Optional[SleepDebt]:
        """Running sleep debt after the night ending on `day`, or None when that night was not scored."""
        try:
            await self._ensure_history(day)
        except ReadinessEngineError as e:
            if not e.recoverable:
                raise
            self._report_failure(day, "sleep_debt", e)
            return None
        return self.store.sleep_debt(day)

    async def force_recompute(self, score_type: ScoreType, day: date) -> Optional[DailyScore]:
        """
        Drop the cached score and its day's ingested inputs, then compute again.

        Recovery and strain both read the same-date sleep score, so that is
        dropped with them.
        """
        self.logger.info(f"Forcing recompute of {score_type.value} for {day}")
        stale = [score_type]
        if score_type in _SLEEP_DEPENDENT:
            stale.append(ScoreType.SLEEP)
        for stale_type in stale:
            self.registry.invalidate(score_key(day, stale_type))
            self.store.remove_score(day, stale_type)
        self.store.forget_day(day)

        getters: Dict[ScoreType, Callable[[date], Awaitable[Optional[DailyScore]]]] = {
            ScoreType.SLEEP: self.get_sleep_score,
            ScoreType.RECOVERY: self.get_recovery_score,
            ScoreType.STRAIN: self.get_strain_score,
        }
        return await getters[score_type](day)

    def backfill_training_load(self, start: date, end: date) -> "asyncio.Task[List[DailyLoad]]":
        """Replay [start, end] in one ordered batch on a background task."""
        return asyncio.create_task(self._backfill_training_load(start, end))

    # =========================================================================
    # Score plumbing
    # =========================================================================

    async def _score(
        self,
        day: date,
        score_type: ScoreType,
        compute: Callable[[date], Awaitable[Optional[DailyScore]]],
    ) -> Optional[DailyScore]:
        key = score_key(day, score_type)
        try:
            return await self.registry.run(key, lambda: self._compute_and_publish(day, score_type, compute))
        except ReadinessEngineError as e:
            if not e.recoverable:
                raise
            return None

    async def _compute_and_publish(
        self,
        day: date,
        score_type: ScoreType,
        compute: Callable[[date], Awaitable[Optional[DailyScore]]],
    ) -> Optional[DailyScore]:
        try:
            score = await compute(day)
        except InsufficientDataError as e:
            self.logger.info(f"Not enough data for {score_type.value} score on {day}: {e.message}")
            return None
        except ReadinessEngineError as e:
            self._report_failure(day, score_type.value, e)
            raise

        self.store.put_score(score)
        self.events.publish(ScoreComputed(score=score))
        self.logger.info(f"{score_type.value.title()} score for {day}: {score.value} ({score.band})")
        return score

    def _report_failure(self, day: date, computation: str, error: ReadinessEngineError) -> None:
        self.logger.warning(f"{computation} for {day} failed: {error.message}")
        self.events.publish(ComputationFailed.from_error(day, computation, error))

    # =========================================================================
    # Calculators
    # =========================================================================

    async def _compute_sleep(self, day: date) -> Optional[DailyScore]:
        await self._ensure_history(day)
        session = self.store.session(day)
        if session is None:
            raise InsufficientDataError("no sleep session recorded")
        return await asyncio.to_thread(
            self._sleep_calculator.calculate, session, **self._sleep_inputs(day)
        )

    async def _compute_recovery(self, day: date) -> Optional[DailyScore]:
        sleep = await self._await_sleep(day)

        await self._ensure_history(day)
        tracker = self.store.baselines
        biometrics = self.store.biometrics(day)
        if sleep is None and (biometrics is None or biometrics.is_empty):
            raise InsufficientDataError("no biometrics and no sleep score")

        illness = await self.get_illness_indicator(day)
        previous_load = await self.get_training_load(day - ONE_DAY)

        inputs = RecoveryInputs(
            hrv=biometrics.hrv if biometrics else None,
            hrv_baseline=tracker.baseline_value(Metric.HRV, before=day),
            resting_hr=biometrics.resting_hr if biometrics else None,
            resting_hr_baseline=tracker.baseline_value(Metric.RESTING_HR, before=day),
            respiratory_rate=biometrics.respiratory_rate if biometrics else None,
            respiratory_baseline=tracker.baseline_value(Metric.RESPIRATORY_RATE, before=day),
            sleep_score=sleep.value if sleep else None,
            tsb=previous_load.tsb if previous_load else None,
            yesterday_tss=previous_load.tss if previous_load else None,
            illness=illness,
        )
        return await asyncio.to_thread(self._recovery_calculator.calculate, day, inputs)

    async def _await_sleep(self, day: date) -> Optional[DailyScore]:
        """Same-date sleep score, waiting at most `recovery_sleep_wait_seconds`."""
        sleep_task = asyncio.ensure_future(self.get_sleep_score(day))
        try:
            return await asyncio.wait_for(
                asyncio.shield(sleep_task),
                timeout=self.settings.recovery_sleep_wait_seconds,
            )
        except asyncio.TimeoutError:
            stale = StaleDependencyError("sleep score", day)
            self.logger.warning(f"{stale.message}; using neutral sleep factor")
            return None

    async def _compute_strain(self, day: date) -> Optional[DailyScore]:
        sleep = await self._await_sleep(day)

        await self._ensure_history(day)
        activities = self.store.activities(day)
        biometrics = self.store.biometrics(day)
        steps = biometrics.steps if biometrics else None
        if not activities and steps is None:
            raise InsufficientDataError("no activities and no step count")

        profile = await self.get_athlete_profile()
        rest_hr, max_hr, ftp = self._physiology(day, profile)
        tracker = self.store.baselines
        context = RecoveryContext(
            hrv=biometrics.hrv if biometrics else None,
            hrv_baseline=tracker.baseline_value(Metric.HRV, before=day),
            resting_hr=biometrics.resting_hr if biometrics else None,
            resting_hr_baseline=tracker.baseline_value(Metric.RESTING_HR, before=day),
            sleep_score=sleep.value if sleep else None,
        )
        calculator = StrainScoreCalculator(rest_hr=rest_hr, max_hr=max_hr, ftp=ftp)
        return await asyncio.to_thread(calculator.calculate, day, activities, steps, None, context)

    async def _compute_profile(self, today: date) -> AthleteProfile:
        tier = self._tier_provider.current_tier()
        window = history_window_days(
            tier, self.settings.ftp_window_days_free, self.settings.ftp_window_days_pro
        )
        activities = self._dedup(
            await self._activity_feed.fetch_activities(today - timedelta(days=window), today)
        )
        profile = await asyncio.to_thread(
            build_athlete_profile,
            activities,
            today,
            tier,
            self._manual_ftp,
            self._external_ftp,
            self.store.profile,
            self.settings.ftp_window_days_free,
            self.settings.ftp_window_days_pro,
        )
        self.store.profile = profile
        self.logger.info(
            f"Athlete profile ({tier.value}, {window}d window): FTP={profile.ftp} "
            f"({profile.ftp_source.value if profile.ftp_source else 'none'}), max HR={profile.max_hr}"
        )
        return profile

    # =========================================================================
    # Ingestion
    # =========================================================================

    def _sleep_inputs(self, day: date) -> dict:
        tracker = self.store.baselines
        return {
            "duration_baseline": tracker.baseline_value(Metric.SLEEP_DURATION, before=day),
            "bedtime_baseline": tracker.baseline_value(Metric.BEDTIME, before=day),
            "wake_baseline": tracker.baseline_value(Metric.WAKE_TIME, before=day),
            "prior_day_tss": tracker.value_on(Metric.TRAINING_VOLUME, day - ONE_DAY),
        }

    def _physiology(self, day: date, profile: AthleteProfile) -> Tuple[float, float, Optional[float]]:
        rest_hr = (
            self.store.baselines.baseline_value(Metric.RESTING_HR, before=day)
            or self.settings.default_resting_hr
        )
        max_hr = profile.max_hr or self.settings.default_max_hr
        return rest_hr, max_hr, profile.ftp

    def _dedup(self, activities: List[Activity]) -> List[Activity]:
        return deduplicate_activities(
            activities,
            start_tolerance_seconds=self.settings.dedup_start_tolerance_seconds,
            duration_tolerance_pct=self.settings.dedup_duration_tolerance_pct,
            distance_tolerance_pct=self.settings.dedup_distance_tolerance_pct,
        )

    async def _ensure_history(self, day: date) -> None:
        """
        Ingest `day` and the baseline window before it.

        Everything is fetched before anything is committed, so a source that
        fails mid-fetch leaves no partial day behind.
        """
        first = day - timedelta(days=self.settings.baseline_window_days)
        needed = [first + timedelta(days=i) for i in range((day - first).days + 1)]
        if all(self.store.is_ingested(d) for d in needed):
            return

        profile = await self.get_athlete_profile()

        async with self._ingest_lock:
            missing = [d for d in needed if not self.store.is_ingested(d)]
            if not missing:
                return

            samples = await self._wearable.fetch_samples(missing[0] - ONE_DAY, missing[-1])
            # Duplicates can straddle midnight, so dedup the batch before splitting it by day
            activities = self._dedup(await self._activity_feed.fetch_activities(missing[0], missing[-1]))
            sessions: Dict[date, Optional[SleepSession]] = {}
            for d in missing:
                sessions[d] = await self._wearable.fetch_sleep(d)

            already = self.store.ingested_days()
            for d in missing:
                self._commit_day(d, samples, sessions[d], activities, profile)

            later = [d for d in already if d > missing[0]]
            if later:
                self._refresh_baselines(later)
            self._replay_sleep_debt()

        self.logger.debug(f"Ingested {len(missing)} day(s) ending {missing[-1]}")

    def _commit_day(
        self,
        day: date,
        samples: List[BiometricSample],
        session: Optional[SleepSession],
        activities: List[Activity],
        profile: AthleteProfile,
    ) -> None:
        tracker = self.store.baselines
        biometrics = aggregate_day(samples, day)
        day_activities = [a for a in activities if a.start.date() == day]
        self.store.put_day(day, biometrics, session, day_activities)

        for metric, attr in _BIOMETRIC_METRICS:
            value = getattr(biometrics, attr)
            if value is not None:
                tracker.update(metric, value, day)

        if day_activities:
            rest_hr, max_hr, ftp = self._physiology(day, profile)
            tracker.update(Metric.TRAINING_VOLUME, calculate_daily_tss(day_activities, ftp, rest_hr, max_hr), day)

        if session is None or session.time_in_bed <= 0:
            return

        tracker.update(Metric.SLEEP_DURATION, session.total_sleep, day)
        if session.bedtime is not None:
            tracker.update(Metric.BEDTIME, bedtime_minutes(session.bedtime), day)
        if session.wake_time is not None:
            tracker.update(Metric.WAKE_TIME, wake_minutes(session.wake_time), day)

        score = self._sleep_calculator.calculate(session, **self._sleep_inputs(day))
        tracker.update(Metric.SLEEP_SCORE, score.value, day)

    def _refresh_baselines(self, days: List[date]) -> None:
        tracker = self.store.baselines
        for d in sorted(days):
            for metric in Metric:
                tracker.refresh(metric, d)

    def _replay_sleep_debt(self) -> None:
        """
        Rebuild the sleep debt ledger over every ingested night.

        Days can be ingested out of order (an older date requested after a
        newer one), while debt must accumulate in date order, so the whole
        ledger is replayed after each ingestion batch.
        """
        debt = SleepDebtTracker(self.settings.sleep_debt_repayment_fraction)
        for d in self.store.ingested_days():
            session = self.store.session(d)
            if session is None or session.time_in_bed <= 0:
                continue
            inputs = self._sleep_inputs(d)
            need = calculate_sleep_need(inputs["duration_baseline"], inputs["prior_day_tss"], self.settings)
            debt.apply(d, session.total_sleep, need)
        self.store.set_sleep_debt(debt.history())

    # =========================================================================
    # Training load
    # =========================================================================

    async def _daily_tss(self, start: date, end: date) -> Dict[date, float]:
        profile = await self.get_athlete_profile()
        activities = self._dedup(await self._activity_feed.fetch_activities(start, end))

        by_day: Dict[date, List[Activity]] = {}
        for activity in activities:
            by_day.setdefault(activity.start.date(), []).append(activity)

        daily: Dict[date, float] = {}
        for d, day_activities in by_day.items():
            if start <= d <= end:
                rest_hr, max_hr, ftp = self._physiology(d, profile)
                daily[d] = calculate_daily_tss(day_activities, ftp, rest_hr, max_hr)
        return daily

    def _load_origin(self, end: date) -> date:
        """
        First day of an implicit seed window.

        Anchored on today, not on the requested date, so CTL/ATL for a day
        do not depend on which day was asked for first. Requests older than
        the horizon fall back to a window ending on the requested day.
        """
        horizon = timedelta(days=self.settings.training_load_history_days)
        origin = self._today() - horizon
        return origin if origin <= end else end - horizon

    async def _advance_training_load(self, end: date, start: Optional[date] = None) -> List[DailyLoad]:
        """Extend the tracker through `end`. Runs under the load lock as one ordered batch."""
        async with self._load_lock:
            tracker = self.store.training_load
            if tracker.last_date is None:
                start = start or self._load_origin(end)
            else:
                first = tracker.loads()[0].date
                if start is not None and start < first:
                    raise OutOfOrderBackfillError(requested=start, expected=tracker.last_date + ONE_DAY)
                start = tracker.last_date + ONE_DAY

            if start > end:
                return []

            daily_tss = await self._daily_tss(start, end)
            loads = tracker.backfill(daily_tss, start, end)

        self.logger.info(f"Training load advanced {start} -> {end} ({len(loads)} days)")
        for load in loads:
            self.events.publish(LoadUpdated(load=load))
        return loads

    async def _backfill_training_load(self, start: date, end: date) -> List[DailyLoad]:
        await self._advance_training_load(end, start=start)
        return [load for load in self.store.training_load.loads() if start <= load.date <= end]
