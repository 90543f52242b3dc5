"""Integration tests for the readiness engine service."""

import asyncio
from datetime import datetime, time, timedelta

import pytest

from readiness_engine.config import EngineSettings
from readiness_engine.exceptions import ConfigurationError, OutOfOrderBackfillError
from readiness_engine.models.enums import FTPSource, IllnessSeverity, Metric, ScoreType, SourcePlatform
from readiness_engine.models.records import Activity, SleepSession
from readiness_engine.services import (
    ComputationFailed,
    IllnessEvaluated,
    LoadUpdated,
    ReadinessEngine,
    ScoreComputed,
)

from conftest import FakeActivityFeed, FakeTierProvider, FakeWearable, daily_samples, make_session


def build_engine(wearable, activity_feed, tier_provider, settings, today):
    return ReadinessEngine(wearable, activity_feed, tier_provider, settings=settings, today=lambda: today)


def drain(queue):
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


@pytest.fixture
def engine(steady_wearable, activity_feed, tier_provider, settings, today):
    return build_engine(steady_wearable, activity_feed, tier_provider, settings, today)


class TestScores:
    """Score requests, publication and caching."""

    @pytest.mark.asyncio
    async def test_sleep_score_is_published(self, engine, today):
        queue = engine.events.subscribe()

        score = await engine.get_sleep_score(today)

        assert score is not None
        assert score.score_type == ScoreType.SLEEP
        assert engine.store.get_score(today, ScoreType.SLEEP) == score
        events = [e for e in drain(queue) if isinstance(e, ScoreComputed)]
        assert [e.score for e in events] == [score]

    @pytest.mark.asyncio
    async def test_concurrent_requests_compute_once(self, engine, steady_wearable, today):
        queue = engine.events.subscribe()

        results = await asyncio.gather(*(engine.get_sleep_score(today) for _ in range(5)))

        assert all(r is results[0] for r in results)
        assert steady_wearable.sample_calls == 1
        assert len([e for e in drain(queue) if isinstance(e, ScoreComputed)]) == 1

    @pytest.mark.asyncio
    async def test_strain_on_a_ride_day(self, engine, today):
        score = await engine.get_strain_score(today - timedelta(days=1))
        assert score.score_type == ScoreType.STRAIN
        assert score.sub_scores["cardio"] > 0

    @pytest.mark.asyncio
    async def test_recovery_uses_sleep_and_load(self, engine, today):
        score = await engine.get_recovery_score(today)

        assert score.score_type == ScoreType.RECOVERY
        assert "sleep_missing" not in score.flags
        assert "load_missing" not in score.flags
        assert "illness_ceiling" not in score.flags

    @pytest.mark.asyncio
    async def test_force_recompute_is_idempotent(self, engine, today):
        first = await engine.get_sleep_score(today)
        second = await engine.force_recompute(ScoreType.SLEEP, today)

        assert second is not first
        assert first.same_result(second)

    @pytest.mark.asyncio
    async def test_strain_does_not_depend_on_sleep_request_order(
        self, steady_wearable, activity_feed, tier_provider, settings, today
    ):
        ride_day = today - timedelta(days=1)
        strain_first = build_engine(steady_wearable, activity_feed, tier_provider, settings, today)
        sleep_first = build_engine(steady_wearable, activity_feed, tier_provider, settings, today)

        direct = await strain_first.get_strain_score(ride_day)
        await sleep_first.get_sleep_score(ride_day)
        after_sleep = await sleep_first.get_strain_score(ride_day)

        assert direct.same_result(after_sleep)
        assert strain_first.store.get_score(ride_day, ScoreType.SLEEP) is not None

    @pytest.mark.asyncio
    async def test_force_recompute_recovery_refreshes_sleep(self, engine, steady_wearable, today):
        await engine.get_recovery_score(today)
        first_sleep = engine.store.get_score(today, ScoreType.SLEEP)

        steady_wearable.sessions[today] = make_session(
            today, total_sleep=14400, time_in_bed=16000, deep_share=0.05, rem_share=0.05, wake_events=9
        )
        recovery = await engine.force_recompute(ScoreType.RECOVERY, today)
        second_sleep = engine.store.get_score(today, ScoreType.SLEEP)

        assert second_sleep.value < first_sleep.value
        assert recovery.sub_scores["sleep"] == second_sleep.value

    @pytest.mark.asyncio
    async def test_no_data_returns_none(self, settings, today):
        engine = ReadinessEngine(
            FakeWearable(), FakeActivityFeed(), FakeTierProvider(), settings=settings, today=lambda: today
        )
        queue = engine.events.subscribe()

        assert await engine.get_sleep_score(today) is None
        assert await engine.get_strain_score(today) is None
        assert await engine.get_recovery_score(today) is None
        assert not [e for e in drain(queue) if isinstance(e, (ScoreComputed, ComputationFailed))]


class TestFailures:
    """Source failures degrade to None and are published."""

    @pytest.mark.asyncio
    async def test_unavailable_source(self, engine, steady_wearable, today):
        queue = engine.events.subscribe()
        steady_wearable.fail = True

        assert await engine.get_sleep_score(today) is None
        assert engine.store.ingested_days() == []

        failures = [e for e in drain(queue) if isinstance(e, ComputationFailed)]
        assert len(failures) == 1
        assert failures[0].computation == "sleep"
        assert failures[0].error["error"]["code"] == "DATA_SOURCE_UNAVAILABLE"

        steady_wearable.fail = False
        assert await engine.get_sleep_score(today) is not None

    @pytest.mark.asyncio
    async def test_recovery_stops_waiting_for_sleep(self, today, activity_feed, tier_provider):
        settings = EngineSettings(_env_file=None, recovery_sleep_wait_seconds=0.01)
        wearable = FakeWearable(
            samples=[s for offset in range(10) for s in daily_samples(today - timedelta(days=offset))],
            sessions={today - timedelta(days=o): make_session(today - timedelta(days=o)) for o in range(10)},
            sleep_delay=0.05,
        )
        engine = ReadinessEngine(wearable, activity_feed, tier_provider, settings=settings, today=lambda: today)

        score = await engine.get_recovery_score(today)

        assert "sleep_missing" in score.flags
        assert score.sub_scores["sleep"] == 50
        assert await engine.get_sleep_score(today) is not None

    @pytest.mark.asyncio
    async def test_invalid_session_uses_neutral_sleep(self, engine, steady_wearable, today):
        steady_wearable.sessions[today] = SleepSession(date=today, total_sleep=0, time_in_bed=0)
        queue = engine.events.subscribe()

        assert await engine.get_sleep_score(today) is None
        failures = [e for e in drain(queue) if isinstance(e, ComputationFailed)]
        assert failures[0].error["error"]["code"] == "INVALID_SESSION"

        score = await engine.get_recovery_score(today)
        assert "sleep_missing" in score.flags
        assert score.sub_scores["sleep"] == 50
        assert await engine.get_sleep_debt(today) is None

    def test_invalid_settings(self, steady_wearable, activity_feed, tier_provider):
        settings = EngineSettings(_env_file=None, baseline_window_days=7, baseline_min_days=10)
        with pytest.raises(ConfigurationError) as exc_info:
            ReadinessEngine(steady_wearable, activity_feed, tier_provider, settings=settings)
        assert "baseline_min_days" in exc_info.value.details


class TestIllness:
    """Body-stress detection flows into recovery."""

    @pytest.fixture
    def stressed_engine(self, settings, activity_feed, tier_provider, today):
        samples = []
        sessions = {}
        for offset in range(14, 0, -1):
            day = today - timedelta(days=offset)
            samples.extend(daily_samples(day, hrv=50.0))
            sessions[day] = make_session(day)
        samples.extend(daily_samples(today, hrv=160.0, resting_hr=55.0))
        sessions[today] = make_session(
            today, total_sleep=14400, time_in_bed=16000, deep_share=0.05, rem_share=0.05, wake_events=9
        )
        return ReadinessEngine(
            FakeWearable(samples=samples, sessions=sessions),
            activity_feed,
            tier_provider,
            settings=settings,
            today=lambda: today,
        )

    @pytest.mark.asyncio
    async def test_indicator_published(self, stressed_engine, today):
        queue = stressed_engine.events.subscribe()

        indicator = await stressed_engine.get_illness_indicator()

        assert indicator is not None
        assert indicator.severity == IllnessSeverity.HIGH
        assert len(indicator.signals) >= 2
        assert stressed_engine.store.get_illness(today) == indicator
        evaluated = [e for e in drain(queue) if isinstance(e, IllnessEvaluated)]
        assert evaluated[-1].indicator == indicator

    @pytest.mark.asyncio
    async def test_recovery_ceiling(self, stressed_engine, today):
        score = await stressed_engine.get_recovery_score(today)

        assert score.value <= 60
        assert "illness_ceiling" in score.flags
        assert "alcohol_signature" not in score.flags

    @pytest.mark.asyncio
    async def test_steady_history_has_no_indicator(self, engine, today):
        assert await engine.get_illness_indicator(today) is None


class TestTrainingLoad:
    """Training load extension and backfill ordering."""

    @pytest.mark.asyncio
    async def test_training_load_for_today(self, engine, today):
        queue = engine.events.subscribe()

        load = await engine.get_training_load(today)

        assert load.date == today
        assert load.ctl > 0
        updates = [e for e in drain(queue) if isinstance(e, LoadUpdated)]
        assert updates[-1].load == load
        assert await engine.get_training_load(today) == load

    @pytest.mark.asyncio
    async def test_backfill_task(self, engine, today):
        start, end = today - timedelta(days=20), today - timedelta(days=10)

        task = engine.backfill_training_load(start, end)
        loads = await task

        assert [l.date for l in loads] == [start + timedelta(days=i) for i in range(11)]
        assert await engine.get_training_load(today - timedelta(days=25)) is None

    @pytest.mark.asyncio
    async def test_out_of_order_backfill_raises(self, engine, today):
        await engine.backfill_training_load(today - timedelta(days=20), today - timedelta(days=10))

        with pytest.raises(OutOfOrderBackfillError):
            await engine.backfill_training_load(today - timedelta(days=30), today)

    @pytest.mark.asyncio
    async def test_extension_continues_after_backfill(self, engine, today):
        await engine.backfill_training_load(today - timedelta(days=20), today - timedelta(days=10))
        load = await engine.get_training_load(today)

        dates = [l.date for l in engine.store.training_load.loads()]
        assert load.date == today
        assert dates == sorted(dates)
        assert len(dates) == 21

    @pytest.mark.asyncio
    async def test_seed_does_not_depend_on_request_order(
        self, steady_wearable, activity_feed, tier_provider, settings, today
    ):
        direct = build_engine(steady_wearable, activity_feed, tier_provider, settings, today)
        stepped = build_engine(steady_wearable, activity_feed, tier_provider, settings, today)

        load = await direct.get_training_load(today)
        await stepped.get_training_load(today - timedelta(days=10))
        stepped_load = await stepped.get_training_load(today)

        assert stepped_load.ctl == pytest.approx(load.ctl)
        assert stepped_load.atl == pytest.approx(load.atl)
        first = today - timedelta(days=settings.training_load_history_days)
        assert direct.store.training_load.loads()[0].date == first
        assert stepped.store.training_load.loads()[0].date == first


class TestIngestion:
    """Per-day inputs written during ingestion."""

    @pytest.mark.asyncio
    async def test_duplicate_across_midnight_counted_once(self, steady_wearable, tier_provider, settings, today):
        evening = today - timedelta(days=1)
        feed = FakeActivityFeed([
            Activity(
                id="intervals-late",
                start=datetime.combine(evening, time(23, 50)),
                duration_seconds=3600,
                source_platform=SourcePlatform.INTERVALS,
                tss=80.0,
            ),
            Activity(
                id="strava-late",
                start=datetime.combine(today, time(0, 5)),
                duration_seconds=3600,
                source_platform=SourcePlatform.STRAVA,
                tss=80.0,
            ),
        ])
        engine = build_engine(steady_wearable, feed, tier_provider, settings, today)

        await engine.get_sleep_score(today)

        tracker = engine.store.baselines
        volumes = [tracker.value_on(Metric.TRAINING_VOLUME, d) for d in (evening, today)]
        assert sorted(v or 0.0 for v in volumes) == [0.0, 80.0]
        assert len(engine.store.activities(evening) + engine.store.activities(today)) == 1


class TestSleepDebt:
    """Sleep debt ledger built from ingested nights."""

    @pytest.fixture
    def short_nights(self, today):
        samples = []
        sessions = {}
        for offset in range(14, -1, -1):
            day = today - timedelta(days=offset)
            samples.extend(daily_samples(day))
            slept = 18000.0 if offset <= 1 else 28800.0
            sessions[day] = make_session(day, total_sleep=slept, time_in_bed=30600)
        return FakeWearable(samples=samples, sessions=sessions)

    @pytest.mark.asyncio
    async def test_debt_accumulates_after_short_nights(self, short_nights, tier_provider, settings, today):
        engine = build_engine(short_nights, FakeActivityFeed(), tier_provider, settings, today)

        assert (await engine.get_sleep_debt(today - timedelta(days=2))).debt_seconds == 0
        yesterday = await engine.get_sleep_debt(today - timedelta(days=1))
        assert yesterday.debt_hours == 3.0
        assert (await engine.get_sleep_debt(today)).debt_seconds > yesterday.debt_seconds

    @pytest.mark.asyncio
    async def test_debt_does_not_depend_on_ingestion_order(self, short_nights, tier_provider, settings, today):
        forward = build_engine(short_nights, FakeActivityFeed(), tier_provider, settings, today)
        backward = build_engine(short_nights, FakeActivityFeed(), tier_provider, settings, today)

        expected = await forward.get_sleep_debt(today)
        await backward.get_sleep_score(today)
        await backward.get_sleep_debt(today - timedelta(days=10))

        assert backward.store.sleep_debt(today) == expected


class TestAthleteProfile:
    """Threshold profile through the service."""

    @pytest.mark.asyncio
    async def test_manual_ftp_override(self, engine):
        engine.set_manual_ftp(275)
        profile = await engine.get_athlete_profile()

        assert profile.ftp == 275
        assert profile.ftp_source == FTPSource.MANUAL
        assert len(profile.power_zones) == 7
        assert profile.power_zone(4).upper == int(275 * 1.05)

    @pytest.mark.asyncio
    async def test_max_hr_from_history(self, engine):
        profile = await engine.get_athlete_profile()
        assert profile.ftp is None
        assert profile.max_hr is not None
        assert len(profile.hr_zones) == 7
        assert profile.hr_zone(7).lower == profile.max_hr
