"""Tests for gap detection, Laplacian inpainting and composite markers."""

import numpy as np
import pytest
from hypothesis import given
from hypothesis import strategies as st
from numpy.testing import assert_allclose, assert_array_equal

from objvec.config import ProcessingConfig
from objvec.errors import MalformedInputError, UnrecoverableGapError
from objvec.gaps import (
    add_composite_markers,
    detect_gaps,
    estimate_sample_rate,
    fill_gaps,
    inpaint_nans,
    round_pixels,
)
from objvec.trajectory import LOST, Trajectory


def _ramp_trajectory(n_samples=200, gap=None, marker="light1"):
    """Two lights drifting diagonally at 30 Hz, optionally with a lost block."""
    t = np.arange(n_samples) / 30
    base = np.column_stack([100 + np.arange(n_samples) * 0.7, 200 + np.sin(t) * 40])
    light1 = np.round(base)
    light2 = np.round(base + [12.0, 3.0])
    if gap is not None:
        start, stop = gap
        target = light1 if marker == "light1" else light2
        target[start:stop] = np.nan
    return Trajectory(timestamps=t, markers={"light1": light1, "light2": light2})


class TestRoundPixels:
    def test_half_away_from_zero(self):
        """Halves round away from zero and NaN is preserved."""
        result = round_pixels(np.array([0.5, 1.5, 2.5, -0.5, -1.4, np.nan]))
        assert_array_equal(result[:5], [1.0, 2.0, 3.0, -1.0, -1.0])
        assert np.isnan(result[5])


class TestEstimateSampleRate:
    def test_uses_reference_pair(self):
        """The step between samples 98 and 99 sets the rate."""
        t = np.arange(200) / 30
        # Irregular start-up intervals are ignored
        t[:5] = [-1.0, -0.7, -0.6, -0.2, -0.1]
        assert estimate_sample_rate(t) == 30.0

    def test_rounds_to_whole_rate(self):
        """Jitter in the reference step is rounded away."""
        t = np.arange(200) / 29.97
        assert estimate_sample_rate(t) == 30.0

    def test_short_recording_falls_back_to_first_pair(self):
        """Recordings shorter than 100 samples use samples 0 and 1."""
        assert estimate_sample_rate(np.array([0.0, 0.04, 0.08])) == 25.0

    def test_too_few_samples(self):
        """A single sample cannot define a rate."""
        with pytest.raises(MalformedInputError, match="at least 2"):
            estimate_sample_rate(np.array([0.0]))


class TestDetectGaps:
    """Gap boundaries from lost-flag transitions."""

    def test_rising_and_falling_edges(self):
        """Gaps are [start, stop) runs of lost samples."""
        lost = np.array([0, 1, 1, 0, 0, 1, 0], dtype=bool)
        gaps = detect_gaps(lost, max_gap=5, marker="light1")
        assert [(g.start, g.stop) for g in gaps] == [(1, 3), (5, 6)]
        assert all(g.marker == "light1" for g in gaps)

    def test_open_gap_closes_at_length(self):
        """A gap still open at the last sample stops at n_samples."""
        gaps = detect_gaps(np.array([0, 0, 1, 1], dtype=bool), max_gap=5)
        assert (gaps[0].start, gaps[0].stop) == (2, 4)

    def test_fillable_threshold_is_inclusive(self):
        """A gap exactly max_gap long is fillable; one sample more is not."""
        lost = np.zeros(40, dtype=bool)
        lost[2:17] = True  # 15 samples
        lost[20:36] = True  # 16 samples
        gaps = detect_gaps(lost, max_gap=15)
        assert [g.fillable for g in gaps] == [True, False]

    def test_no_gaps(self):
        """A fully tracked marker has no gaps."""
        assert detect_gaps(np.zeros(10, dtype=bool), max_gap=5) == ()


class TestInpaintNans:
    """Laplacian fill of NaN runs."""

    def test_interior_gap_is_linear(self):
        """An interior gap is filled on the line between its neighbours."""
        values = np.array([0.0, 1.0, np.nan, np.nan, np.nan, 9.0, 3.0])
        assert_allclose(inpaint_nans(values), [0, 1, 3, 5, 7, 9, 3], atol=1e-9)

    def test_single_sample_gap_is_midpoint(self):
        """An isolated lost sample becomes the mean of its neighbours."""
        values = np.array([5.0, 2.0, np.nan, 8.0, 1.0])
        assert inpaint_nans(values)[2] == pytest.approx(5.0)

    def test_open_ends_extrapolate(self):
        """Leading and trailing gaps continue the nearest slope."""
        values = np.array([np.nan, np.nan, 4.0, 6.0, 5.0, np.nan])
        assert_allclose(inpaint_nans(values), [0, 2, 4, 6, 5, 4], atol=1e-9)

    def test_single_known_value_is_constant(self):
        """With one known sample every unknown takes its value."""
        values = np.array([np.nan, 7.0, np.nan, np.nan])
        assert_allclose(inpaint_nans(values), [7.0, 7.0, 7.0, 7.0])

    def test_columns_are_independent(self):
        """Each column of a 2D array is filled from its own samples."""
        values = np.array([[0.0, 10.0], [np.nan, np.nan], [2.0, 30.0]])
        assert_allclose(inpaint_nans(values), [[0, 10], [1, 20], [2, 30]], atol=1e-9)

    def test_known_values_untouched(self):
        """Known samples are returned unchanged and the input is not modified."""
        values = np.array([1.5, np.nan, 2.5, 10.0])
        result = inpaint_nans(values)
        assert_array_equal(result[[0, 2, 3]], [1.5, 2.5, 10.0])
        assert np.isnan(values[1])

    def test_all_unknown_raises(self):
        """A column without known samples cannot be filled."""
        with pytest.raises(ValueError, match="no known samples"):
            inpaint_nans(np.full(4, np.nan))


class TestFillGapsScenario:
    """1000 samples at 30 Hz, two lights, maxGap = 15 samples."""

    def test_short_gap_is_filled(self, two_light_trajectory, with_gap):
        """A 10-sample gap is filled with whole pixels on the bridging line."""
        raw = with_gap(two_light_trajectory, "light1", 300, 310)
        result = fill_gaps(raw)

        assert result.sample_rate == 30.0
        assert result.max_gap == 15.0
        gap = slice(300, 310)
        assert result.flags.lost["light1"][gap].all()
        assert result.flags.filled["light1"][gap].all()
        assert not result.flags.unfilled["light1"][gap].any()

        filled = result.trajectory["light1"][gap]
        assert not np.isnan(filled).any()
        assert_array_equal(filled, np.round(filled))

        x_before, x_after = raw["light1"][299, 0], raw["light1"][310, 0]
        expected_x = round_pixels(np.interp(np.arange(300, 310), [299, 310], [x_before, x_after]))
        assert_array_equal(filled[:, 0], expected_x)
        assert_array_equal(filled[:, 1], 240.0)

    def test_long_gap_stays_lost(self, two_light_trajectory, with_gap):
        """A 20-sample gap is reset to lost and tagged unfilled."""
        raw = with_gap(two_light_trajectory, "light1", 500, 520)
        result = fill_gaps(raw)

        gap = slice(500, 520)
        assert result.flags.unfilled["light1"][gap].all()
        assert not result.flags.filled["light1"][gap].any()
        assert np.isnan(result.trajectory["light1"][gap]).all()
        assert result.trajectory.position("light1", 510) is LOST
        assert [g.fillable for g in result.gaps["light1"]] == [False]

    def test_tracked_samples_unchanged(self, two_light_trajectory, with_gap):
        """Samples that were never lost keep their positions."""
        raw = with_gap(two_light_trajectory, "light1", 300, 310)
        result = fill_gaps(raw)
        tracked = ~raw.lost("light1")
        assert_array_equal(result.trajectory["light1"][tracked], raw["light1"][tracked])
        assert_array_equal(result.trajectory["light2"], raw["light2"])

    def test_input_not_mutated(self, two_light_trajectory, with_gap):
        """The raw trajectory still holds its lost samples."""
        raw = with_gap(two_light_trajectory, "light1", 300, 310)
        fill_gaps(raw)
        assert np.isnan(raw["light1"][300:310]).all()

    def test_composites_added(self, two_light_trajectory):
        """The filled trajectory carries average and mashup markers."""
        result = fill_gaps(two_light_trajectory)
        assert result.trajectory.marker_names == ("light1", "light2", "average", "mashup")
        assert_array_equal(
            result.trajectory["average"],
            round_pixels((two_light_trajectory["light1"] + two_light_trajectory["light2"]) / 2),
        )

    def test_summary_counts(self, two_light_trajectory, with_gap):
        """summary() tabulates lost, filled and unfilled samples per marker."""
        raw = with_gap(two_light_trajectory, "light1", 300, 310)
        raw = with_gap(raw, "light1", 500, 520)
        summary = fill_gaps(raw).summary()
        row = summary.loc["light1"]
        assert row["n_lost"] == 30
        assert row["n_filled"] == 10
        assert row["n_unfilled"] == 20
        assert row["n_gaps"] == 2
        assert row["n_unfillable_gaps"] == 1
        assert summary.loc["light2", "n_lost"] == 0
        assert summary.loc["mashup", "n_unfilled"] == 0


class TestFillGapsProperties:
    """Fill policy holds for any single gap."""

    @given(
        start=st.integers(min_value=0, max_value=185),
        length=st.integers(min_value=1, max_value=15),
    )
    def test_gap_within_limit_is_filled_in_frame(self, start, length):
        """Gaps up to maxGap hold whole-pixel positions inside the camera frame."""
        stop = min(start + length, 200)
        result = fill_gaps(_ramp_trajectory(gap=(start, stop)))
        filled = result.trajectory["light1"][start:stop]
        assert not np.isnan(filled).any()
        assert_array_equal(filled, np.round(filled))
        assert (filled >= 1).all()
        assert (filled[:, 0] <= 640).all()
        assert (filled[:, 1] <= 480).all()
        assert result.flags.filled["light1"][start:stop].all()

    @given(
        start=st.integers(min_value=0, max_value=150),
        length=st.integers(min_value=16, max_value=45),
    )
    def test_gap_over_limit_is_unfilled(self, start, length):
        """Gaps longer than maxGap are entirely lost and unfilled."""
        stop = min(start + length, 200)
        result = fill_gaps(_ramp_trajectory(gap=(start, stop)))
        assert np.isnan(result.trajectory["light1"][start:stop]).all()
        assert result.flags.unfilled["light1"][start:stop].all()
        assert not result.flags.filled["light1"].any()


class TestFillGapsEdgeCases:
    def test_extrapolation_is_clipped_to_frame(self):
        """Extrapolated leading samples never leave the camera frame."""
        light1 = np.array([[np.nan, np.nan]] * 3 + [[2.0, 10.0], [5.0, 10.0], [8.0, 10.0]])
        light2 = np.full((6, 2), 50.0)
        raw = Trajectory(np.arange(6) / 30, {"light1": light1, "light2": light2})
        result = fill_gaps(raw, sample_rate=30)
        assert_array_equal(result.trajectory["light1"][:3, 0], [1.0, 1.0, 1.0])
        assert_array_equal(result.trajectory["light1"][:3, 1], [10.0, 10.0, 10.0])

    def test_marker_never_tracked(self, two_light_trajectory, with_gap):
        """A marker lost in every sample is unrecoverable."""
        raw = with_gap(two_light_trajectory, "light2", 0, 1000)
        with pytest.raises(UnrecoverableGapError, match=r"\[E2002\].*light2") as info:
            fill_gaps(raw)
        assert info.value.marker == "light2"
        assert info.value.n_samples == 1000

    def test_custom_gap_limit(self, two_light_trajectory, with_gap):
        """max_gap_seconds controls the fillable length."""
        raw = with_gap(two_light_trajectory, "light1", 300, 310)
        result = fill_gaps(raw, config=ProcessingConfig(max_gap_seconds=0.2))
        assert result.max_gap == pytest.approx(6.0)
        assert result.flags.unfilled["light1"][300:310].all()

    def test_missing_head_marker(self):
        """Composite markers need both configured head markers."""
        raw = Trajectory(np.arange(5) / 30, {"light1": np.ones((5, 2))})
        with pytest.raises(MalformedInputError, match="Head markers"):
            fill_gaps(raw, sample_rate=30)


class TestCompositeMarkers:
    """average and mashup follow the unfilled flags."""

    @pytest.fixture
    def heads(self):
        light1 = np.array([[10.0, 10.0], [10.0, 10.0], [np.nan, np.nan], [np.nan, np.nan]])
        light2 = np.array([[13.0, 20.0], [np.nan, np.nan], [30.0, 30.0], [np.nan, np.nan]])
        traj = Trajectory(np.arange(4.0), {"light1": light1, "light2": light2})
        unfilled = {
            "light1": np.array([False, False, True, True]),
            "light2": np.array([False, True, False, True]),
        }
        return traj, unfilled

    def test_average(self, heads):
        """average is the rounded mean where both lights are usable."""
        traj, unfilled = heads
        combined, composite_unfilled = add_composite_markers(traj, unfilled)
        assert_array_equal(combined["average"][0], [12.0, 15.0])
        assert np.isnan(combined["average"][1:]).all()
        assert_array_equal(composite_unfilled["average"], [False, True, True, True])

    def test_mashup(self, heads):
        """mashup falls back to whichever light is usable."""
        traj, unfilled = heads
        combined, composite_unfilled = add_composite_markers(traj, unfilled)
        assert_array_equal(combined["mashup"][:3], [[12.0, 15.0], [10.0, 10.0], [30.0, 30.0]])
        assert np.isnan(combined["mashup"][3]).all()
        assert_array_equal(composite_unfilled["mashup"], [False, False, False, True])

    def test_composite_flags_in_fill_result(self, two_light_trajectory, with_gap):
        """Composite markers are lost exactly where they are unfilled."""
        raw = with_gap(two_light_trajectory, "light1", 500, 520)
        flags = fill_gaps(raw).flags
        assert_array_equal(flags.lost["average"], flags.unfilled["light1"])
        assert not flags.unfilled["mashup"].any()
        assert not flags.filled["average"].any()
