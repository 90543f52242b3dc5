"""Tests for recovery scoring."""

from datetime import date

import pytest

from readiness_engine.models.enums import IllnessSeverity, IllnessSignalType, ScoreType
from readiness_engine.models.scores import IllnessIndicator, IllnessSignal
from readiness_engine.scoring.recovery import (
    RecoveryInputs,
    RecoveryScoreCalculator,
    alcohol_penalty,
    calculate_hrv_factor,
    calculate_load_factor,
    calculate_respiratory_factor,
    calculate_rhr_factor,
    determine_recovery_band,
)


DAY = date(2024, 2, 10)


@pytest.fixture
def calculator(settings):
    return RecoveryScoreCalculator(settings)


@pytest.fixture
def illness():
    return IllnessIndicator(
        date=DAY,
        signals=(
            IllnessSignal(signal_type=IllnessSignalType.HRV_SPIKE, deviation_pct=220.0, value=160, baseline=50),
            IllnessSignal(signal_type=IllnessSignalType.ELEVATED_RHR, deviation_pct=5.0, value=52.5, baseline=50),
        ),
        confidence_score=80,
        severity=IllnessSeverity.HIGH,
    )


def ideal_inputs(**overrides) -> RecoveryInputs:
    values = dict(
        hrv=65.0,
        hrv_baseline=60.0,
        resting_hr=48.0,
        resting_hr_baseline=50.0,
        respiratory_rate=14.0,
        respiratory_baseline=14.0,
        sleep_score=95.0,
        tsb=20.0,
        yesterday_tss=0.0,
    )
    values.update(overrides)
    return RecoveryInputs(**values)


class TestFactorCurves:
    """Tests for the sub-score curves."""

    def test_hrv_factor(self):
        assert calculate_hrv_factor(65, 60) == 100
        assert calculate_hrv_factor(57, 60) == pytest.approx(92.5)
        assert calculate_hrv_factor(45, 60) == pytest.approx(50.0)
        assert calculate_hrv_factor(1, 60) >= 0

    def test_rhr_factor(self):
        assert calculate_rhr_factor(48, 50) == 100
        assert calculate_rhr_factor(52, 50) == pytest.approx(94.0)
        assert calculate_rhr_factor(200, 50) == 0

    def test_respiratory_factor(self):
        assert calculate_respiratory_factor(15, 14) == 100
        assert calculate_respiratory_factor(17.5, 14) == pytest.approx(43.75)

    def test_load_factor(self):
        assert calculate_load_factor(15) == 100
        assert calculate_load_factor(-15) == pytest.approx(50.0)
        assert calculate_load_factor(-60) == 0
        assert calculate_load_factor(15, yesterday_tss=210) == 80

    @pytest.mark.parametrize("change,penalty", [(-10, 0), (-16, 10), (-21, 20), (-30, 30), (None, 0)])
    def test_alcohol_tiers(self, change, penalty):
        assert alcohol_penalty(change) == penalty

    @pytest.mark.parametrize(
        "score,band",
        [(95, "Optimal"), (80, "Good"), (65, "Fair"), (45, "Poor"), (30, "Limited Data")],
    )
    def test_bands(self, score, band):
        assert determine_recovery_band(score).value == band


class TestRecoveryScore:
    """Tests for the weighted recovery score."""

    def test_ideal_day(self, calculator):
        score = calculator.calculate(DAY, ideal_inputs())
        assert score.value >= 95
        assert score.band == "Optimal"
        assert score.score_type == ScoreType.RECOVERY
        assert set(score.sub_scores) == {"hrv", "rhr", "sleep", "respiratory", "load"}

    def test_missing_sleep_is_neutral_and_flagged(self, calculator):
        score = calculator.calculate(DAY, ideal_inputs(sleep_score=None))
        assert score.sub_scores["sleep"] == 50
        assert "sleep_missing" in score.flags
        assert score.low_confidence

    def test_limited_data_when_hrv_and_rhr_missing(self, calculator):
        score = calculator.calculate(DAY, ideal_inputs(hrv=None, resting_hr=None))
        assert score.band == "Limited Data"

    def test_scores_stay_in_range(self, calculator):
        """Near-zero baselines and absurd readings still clamp."""
        inputs = RecoveryInputs(
            hrv=500, hrv_baseline=0.01, resting_hr=300, resting_hr_baseline=0.01,
            respiratory_rate=80, respiratory_baseline=0.01, sleep_score=150, tsb=-500, yesterday_tss=900,
        )
        score = calculator.calculate(DAY, inputs)
        assert 0 <= score.value <= 100
        assert all(0 <= v <= 100 for v in score.sub_scores.values())


class TestIllnessOverride:
    """A body-stress indicator caps recovery and disables the alcohol check."""

    def test_ceiling_despite_strongly_positive_tsb(self, calculator, illness):
        score = calculator.calculate(DAY, ideal_inputs(tsb=40.0, illness=illness))
        assert score.value <= 60
        assert "illness_ceiling" in score.flags

    def test_ceiling_never_raises_a_low_score(self, calculator, illness):
        low = ideal_inputs(hrv=30.0, resting_hr=70.0, sleep_score=30.0, tsb=-30.0, illness=illness)
        score = calculator.calculate(DAY, low)
        assert score.value == round(calculator.factors(low).weighted())
        assert score.value < 60

    def test_alcohol_penalty_without_illness(self, calculator):
        sober = calculator.calculate(DAY, ideal_inputs(hrv=60.0))
        drop = calculator.calculate(DAY, ideal_inputs(hrv=45.0))
        assert "alcohol_signature" in drop.flags
        assert drop.value < sober.value

    def test_mutual_exclusion(self, calculator, illness):
        """Same HRV drop with an indicator: ceiling only, never both."""
        score = calculator.calculate(DAY, ideal_inputs(hrv=45.0, illness=illness))
        assert "illness_ceiling" in score.flags
        assert "alcohol_signature" not in score.flags

    def test_no_alcohol_check_without_sleep(self, calculator):
        score = calculator.calculate(DAY, ideal_inputs(hrv=45.0, sleep_score=None))
        assert "alcohol_signature" not in score.flags

    def test_idempotent(self, calculator, illness):
        inputs = ideal_inputs(illness=illness)
        assert calculator.calculate(DAY, inputs).same_result(calculator.calculate(DAY, inputs))
