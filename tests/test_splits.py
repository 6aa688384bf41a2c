"""
Tests for the split-time profiler.

Marker times come from x(t) = V0 (t - tau (1 - exp(-t / tau))) with
V0 = 10 m/s and tau = 1.2 s, sampled once per second.
"""

import math

import pytest

from sprint_analysis.errors import RegressionError
from sprint_analysis.hfvp.modeler import QualityLevel
from sprint_analysis.hfvp.splits import SplitProfileConfig, SplitTimeProfiler, cumulative

DISTANCES = [0.0, 3.215, 10.267, 18.985, 28.428, 38.186, 48.081]
TIMES = [0.0, 1.0, 2.0, 3.0, 4.0, 5.0, 6.0]


@pytest.fixture
def profiler():
    return SplitTimeProfiler()


class TestCumulative:
    """Split to cumulative conversion"""

    def test_running_total(self):
        assert cumulative([1.0, 2.0, 3.0]) == [0.0, 1.0, 3.0, 6.0]

    def test_rejects_non_positive(self):
        with pytest.raises(ValueError):
            cumulative([1.0, 0.0])


class TestSplitProfile:
    """Profile from synthetic gate times"""

    def test_physically_valid(self, profiler):
        profile = profiler.profile(DISTANCES, TIMES, 70.0)

        assert profile.is_physically_valid
        assert 550.0 < profile.f0 < 800.0
        assert 9.5 < profile.v0 < 11.5
        assert profile.pmax == pytest.approx(profile.f0 * profile.v0 / 4)
        assert profile.fv_r_squared > 0.9

    def test_derived_values(self, profiler):
        profile = profiler.profile(DISTANCES, TIMES, 70.0)

        assert profile.f0_relative == pytest.approx(profile.f0 / 70.0)
        assert profile.tau == pytest.approx(profile.v0 / profile.f0_relative)
        assert profile.peak_velocity == pytest.approx(48.081 - 38.186)
        assert profile.position_r_squared > 0.92
        assert profile.drf < 0

    def test_deceleration_phase_excluded(self, profiler):
        profile = profiler.profile(DISTANCES, TIMES, 70.0)

        assert len(profile.sections) == 6
        assert len(profile.used_sections) == 5
        assert profile.excluded_sections == ("38-48m",)
        assert profile.sections[-1].excluded
        assert profile.level != QualityLevel.POOR

    def test_first_section_from_rest(self, profiler):
        profile = profiler.profile(DISTANCES, TIMES, 70.0)
        first = profile.sections[0]
        assert first.label == "0-3m"
        assert first.acceleration == pytest.approx(2 * 3.215 / 1.0 ** 2)
        assert first.force == pytest.approx(70.0 * first.acceleration)

    def test_offset_start(self, profiler):
        """Distances and times are taken relative to the first marker"""
        shifted = profiler.profile([d + 10.0 for d in DISTANCES], [t + 2.0 for t in TIMES], 70.0)
        base = profiler.profile(DISTANCES, TIMES, 70.0)
        assert shifted.f0 == pytest.approx(base.f0)
        assert shifted.v0 == pytest.approx(base.v0)

    def test_ols_regression(self):
        profiler = SplitTimeProfiler(SplitProfileConfig(regression="ols", remove_outliers=False))
        profile = profiler.profile(DISTANCES, TIMES, 70.0)
        assert profile.is_physically_valid
        assert profile.fv_r_squared > 0.9


class TestInvalidProfiles:
    """Data that cannot give a physical profile"""

    def test_constant_speed_is_not_valid(self, profiler):
        distances = [0.0, 10.0, 20.0, 30.0, 40.0]
        times = [0.0, 1.0, 2.0, 3.0, 4.0]
        # Every section has the same speed; no line can be fitted
        with pytest.raises(RegressionError):
            profiler.profile(distances, times, 70.0)

    def test_accelerating_force_is_flagged(self, profiler):
        # Speed gains grow with time: force increases with speed
        distances = [0.0, 1.0, 3.0, 7.0, 15.0]
        times = [0.0, 1.0, 2.0, 3.0, 4.0]
        profile = profiler.profile(distances, times, 70.0)

        assert not profile.is_physically_valid
        assert profile.level == QualityLevel.POOR
        assert math.isnan(profile.v0)


class TestInputValidation:
    """Argument errors"""

    def test_non_positive_mass(self, profiler):
        with pytest.raises(ValueError):
            profiler.profile(DISTANCES, TIMES, 0.0)

    def test_too_few_markers(self, profiler):
        with pytest.raises(ValueError):
            profiler.profile([0.0, 5.0], [0.0, 1.0], 70.0)

    def test_non_increasing_times(self, profiler):
        with pytest.raises(ValueError):
            profiler.profile([0.0, 5.0, 10.0], [0.0, 1.5, 1.5], 70.0)

    def test_unknown_first_section(self):
        with pytest.raises(ValueError):
            SplitTimeProfiler(SplitProfileConfig(first_section="guess"))
