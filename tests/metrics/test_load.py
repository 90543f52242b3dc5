"""Tests for training load calculations (TRIMP, HRSS, per-activity TSS)."""

from datetime import date

import pytest

from readiness_engine.metrics.load import (
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
from readiness_engine.models.enums import ActivityType

from conftest import make_activity


DAY = date(2024, 6, 1)


class TestHRSSCalculation:
    """Tests for Heart Rate Stress Score calculation."""

    def test_hrss_at_threshold_for_one_hour(self):
        """One hour at threshold should give approximately 100 HRSS."""
        hrss = calculate_hrss(duration_min=60, avg_hr=165, threshold_hr=165, max_hr=185, rest_hr=55)
        assert abs(hrss - 100) < 1, f"Expected ~100, got {hrss}"

    def test_hrss_below_threshold(self):
        hrss = calculate_hrss(duration_min=60, avg_hr=140, threshold_hr=165, max_hr=185, rest_hr=55)
        assert 0 < hrss < 100

    def test_invalid_hr_range(self):
        assert calculate_hrss(60, 150, 160, max_hr=50, rest_hr=60) == 0.0


class TestTRIMPCalculation:
    """Tests for the TRIMP variants."""

    def test_banister_increases_with_intensity(self):
        easy = calculate_trimp(60, avg_hr=120, rest_hr=50, max_hr=190)
        hard = calculate_trimp(60, avg_hr=170, rest_hr=50, max_hr=190)
        assert hard > easy > 0

    def test_banister_female_coefficients_differ(self):
        male = calculate_trimp(60, 150, 50, 190)
        female = calculate_trimp(60, 150, 50, 190, gender="female")
        assert male != female

    def test_zone_trimp_top_band(self):
        """An hour at 90% HRR earns the top multiplier: 60 * 0.9 * 5."""
        samples = [50 + 0.9 * 140] * 3600
        assert calculate_zone_trimp(samples, rest_hr=50, max_hr=190) == pytest.approx(270.0, abs=0.2)

    def test_zone_trimp_weights_bands(self):
        """Twice the intensity is worth far more than twice the TRIMP."""
        easy = calculate_zone_trimp([50 + 0.4 * 140] * 3600, 50, 190)
        hard = calculate_zone_trimp([50 + 0.8 * 140] * 3600, 50, 190)
        assert hard > easy * 4

    def test_zone_trimp_invalid_range(self):
        assert calculate_zone_trimp([150] * 60, rest_hr=60, max_hr=60) == 0.0

    def test_power_trimp_at_ftp(self):
        """An hour at FTP: 60 * 1.0 * 4."""
        assert calculate_power_trimp([200] * 3600, ftp=200) == pytest.approx(240.0, abs=0.2)

    def test_energy_fallback(self):
        activity = make_activity("lift", DAY, activity_type=ActivityType.STRENGTH, active_energy_kcal=500)
        assert estimate_trimp_from_energy(activity) == pytest.approx(75.0)


class TestActivityTRIMP:
    """Tests for the per-activity TRIMP source selection."""

    def test_power_preferred_when_ftp_known(self):
        activity = make_activity(
            "ride", DAY, power_samples=tuple([200] * 600), heart_rate_samples=tuple([150] * 600)
        )
        assert activity_trimp(activity, 50, 190, ftp=200) == calculate_power_trimp([200] * 600, 200)

    def test_heart_rate_stream_without_ftp(self):
        activity = make_activity(
            "ride", DAY, power_samples=tuple([200] * 600), heart_rate_samples=tuple([150] * 600)
        )
        assert activity_trimp(activity, 50, 190) == calculate_zone_trimp([150] * 600, 50, 190)

    def test_average_hr_only(self):
        activity = make_activity("run", DAY, activity_type=ActivityType.RUNNING, average_hr=150)
        assert activity_trimp(activity, 50, 190) == calculate_trimp(60, 150, 50, 190)


class TestActivityTSS:
    """Tests for per-activity TSS source selection."""

    def test_supplied_tss_wins(self):
        activity = make_activity("ride", DAY, tss=87.0, normalized_power=250)
        assert activity_tss(activity, ftp=200, rest_hr=50, max_hr=190) == 87.0

    def test_power_tss_from_np(self):
        activity = make_activity("ride", DAY, normalized_power=200)
        assert activity_tss(activity, ftp=200, rest_hr=50, max_hr=190) == pytest.approx(100.0)

    def test_hrss_without_power(self):
        activity = make_activity("run", DAY, activity_type=ActivityType.RUNNING, average_hr=150)
        lthr = 50 + 0.85 * 140
        expected = calculate_hrss(60, 150, lthr, 190, 50)
        assert activity_tss(activity, ftp=None, rest_hr=50, max_hr=190) == expected


class TestDailyLoadComponents:
    """Tests for the 0-100 strain components."""

    def test_cardio_load_log_compressed(self):
        assert calculate_cardio_load(None) == 0
        assert calculate_cardio_load(100) == 70

    def test_cardio_load_bonuses(self):
        base = calculate_cardio_load(100)
        assert calculate_cardio_load(100, duration_min=120) > base
        assert calculate_cardio_load(100, intensity_factor=0.95) > base

    def test_cardio_load_capped(self):
        assert calculate_cardio_load(1e9, duration_min=600, intensity_factor=2.0) == 100

    def test_strength_load(self):
        assert calculate_strength_load(7, 45) == 72
        assert calculate_strength_load(11, 45) == 0
        assert calculate_strength_load(7, 0) == 0

    def test_non_exercise_load(self):
        assert calculate_non_exercise_load(None, None) == 0
        assert calculate_non_exercise_load(10000, None) == 85
        assert calculate_non_exercise_load(1000, None) < calculate_non_exercise_load(2000, None)
