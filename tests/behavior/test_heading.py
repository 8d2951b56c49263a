"""Tests for head direction estimation."""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from objvec.behavior import head_direction, object_relative_head_direction
from objvec.gaps import fill_gaps
from objvec.trajectory import Trajectory


@pytest.fixture
def compass_trajectory():
    """light1 east, north, west and south of light2."""
    light2 = np.full((4, 2), 100.0)
    light1 = light2 + np.array([[10.0, 0.0], [0.0, 10.0], [-10.0, 0.0], [0.0, -10.0]])
    return Trajectory(np.arange(4.0), {"light1": light1, "light2": light2})


class TestHeadDirection:
    def test_points_from_second_to_first_light(self, compass_trajectory):
        """HD is the angle of light1 - light2."""
        assert_allclose(
            head_direction(compass_trajectory), [0.0, np.pi / 2, np.pi, -np.pi / 2]
        )

    def test_custom_markers(self, compass_trajectory):
        """Swapping the markers reverses the direction."""
        result = head_direction(compass_trajectory, markers=("light2", "light1"))
        assert_allclose(result, [np.pi, -np.pi / 2, 0.0, np.pi / 2], atol=1e-12)

    def test_unfilled_samples_excluded(self, two_light_trajectory, with_gap):
        """HD is undefined where either head light is unfilled."""
        raw = with_gap(two_light_trajectory, "light2", 100, 140)
        filled = fill_gaps(raw)
        hd = head_direction(filled.trajectory, filled.flags)
        assert np.isnan(hd[100:140]).all()
        assert not np.isnan(hd[:100]).any()
        assert_allclose(hd[:100], 0.0)

    def test_lost_without_flags_is_nan(self):
        """NaN positions give NaN even without flags."""
        traj = Trajectory(
            np.arange(2.0),
            {
                "light1": np.array([[1.0, 1.0], [np.nan, np.nan]]),
                "light2": np.zeros((2, 2)),
            },
        )
        assert np.isnan(head_direction(traj)[1])


class TestObjectRelativeHeadDirection:
    def test_adds_orientation(self, compass_trajectory):
        """Relative HD is HD plus the object orientation, wrapped."""
        hd = head_direction(compass_trajectory)
        relative = object_relative_head_direction(hd, np.full(4, np.pi / 2))
        assert_allclose(relative, [np.pi / 2, np.pi, -np.pi / 2, 0.0], atol=1e-12)

    def test_range(self, compass_trajectory):
        """Relative HD stays in (-pi, pi] under both policies."""
        hd = head_direction(compass_trajectory)
        for policy in ("circular", "remainder"):
            relative = object_relative_head_direction(hd, np.full(4, 3.0), policy)
            assert (relative > -np.pi).all()
            assert (relative <= np.pi).all()
