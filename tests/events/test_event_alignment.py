"""Tests for nearest-preceding-sample alignment."""

import numpy as np
import pytest
from hypothesis import given
from hypothesis import strategies as st
from hypothesis.extra import numpy as hnp
from numpy.testing import assert_array_equal

from objvec.errors import MalformedInputError
from objvec.events import nearest_preceding_index

METHODS = ["search", "merge"]


@st.composite
def samples_and_events(draw, max_samples=60, max_events=40):
    """Strictly increasing sample times and events inside (t[0], t[-1]]."""
    steps = draw(
        hnp.arrays(
            np.float64,
            st.integers(min_value=1, max_value=max_samples - 1),
            elements=st.floats(min_value=0.01, max_value=1.0),
        )
    )
    sample_times = np.concatenate([[0.0], np.cumsum(steps)])
    # Some events land exactly on samples to exercise the tie rule
    on_sample = draw(
        st.lists(st.integers(min_value=1, max_value=len(sample_times) - 1), max_size=5)
    )
    fractions = draw(
        st.lists(
            st.floats(min_value=1e-6, max_value=1.0),
            max_size=max_events,
        )
    )
    events = np.concatenate(
        [sample_times[on_sample], np.asarray(fractions) * sample_times[-1]]
    )
    return sample_times, draw(st.permutations(list(events)))


class TestNearestPreceding:
    """Largest index with sample_time < event_time."""

    @pytest.mark.parametrize("method", METHODS)
    def test_tie_excludes_equal_sample(self, method):
        """An event exactly on a sample maps to the sample before it."""
        samples = np.array([4.8, 4.9, 5.0, 5.1])
        assert_array_equal(
            nearest_preceding_index(samples, np.array([5.0]), method=method), [1]
        )

    @pytest.mark.parametrize("method", METHODS)
    def test_reward_between_samples(self, method):
        """A reward at 5.0 between samples at 4.9 and 5.1 maps to 4.9."""
        samples = np.array([4.7, 4.9, 5.1, 5.3])
        index = nearest_preceding_index(samples, np.array([5.0]), method=method)
        assert samples[index[0]] == 4.9

    @pytest.mark.parametrize("method", METHODS)
    def test_unsorted_events_keep_input_order(self, method):
        """Results are returned in the order events were given."""
        samples = np.array([0.0, 1.0, 2.0, 3.0])
        events = np.array([2.5, 0.5, 3.0, 1.5])
        assert_array_equal(
            nearest_preceding_index(samples, events, method=method), [2, 0, 2, 1]
        )

    @pytest.mark.parametrize("method", METHODS)
    def test_last_sample_time_is_allowed(self, method):
        """An event at the final sample time maps to the previous sample."""
        samples = np.array([0.0, 1.0, 2.0])
        assert_array_equal(
            nearest_preceding_index(samples, np.array([2.0]), method=method), [1]
        )

    def test_empty_events(self):
        """No events give an empty index array."""
        result = nearest_preceding_index(np.array([0.0, 1.0]), np.array([]))
        assert result.shape == (0,)
        assert result.dtype == np.int64

    def test_scalar_event(self):
        """A scalar event time is accepted."""
        assert_array_equal(nearest_preceding_index(np.array([0.0, 1.0]), 0.5), [0])


class TestAlignmentErrors:
    """Events that cannot be placed reject the whole alignment."""

    @pytest.mark.parametrize("method", METHODS)
    def test_event_at_first_sample(self, method):
        """An event at t[0] has no preceding sample."""
        with pytest.raises(MalformedInputError, match=r"\[E2001\]") as info:
            nearest_preceding_index(
                np.array([1.0, 2.0, 3.0]), np.array([1.5, 1.0]), method=method
            )
        assert info.value.indices == (1,)

    def test_event_after_last_sample(self):
        """An event after t[-1] has no following sample."""
        with pytest.raises(MalformedInputError, match="outside the sampled time range"):
            nearest_preceding_index(np.array([1.0, 2.0, 3.0]), np.array([3.5]))

    def test_nan_event(self):
        """An undefined event time is rejected."""
        with pytest.raises(MalformedInputError, match="NaN"):
            nearest_preceding_index(np.array([1.0, 2.0]), np.array([np.nan]))

    def test_unsorted_samples(self):
        """Sample times must be strictly increasing."""
        with pytest.raises(MalformedInputError, match="strictly increasing"):
            nearest_preceding_index(np.array([0.0, 2.0, 1.0]), np.array([0.5]))

    def test_single_sample(self):
        """At least two samples are needed to bracket an event."""
        with pytest.raises(MalformedInputError, match="at least 2"):
            nearest_preceding_index(np.array([0.0]), np.array([0.5]))

    def test_unknown_method(self):
        """Only 'search' and 'merge' exist."""
        with pytest.raises(ValueError, match="Invalid alignment method"):
            nearest_preceding_index(np.array([0.0, 1.0]), np.array([0.5]), method="scan")


class TestAlignmentProperties:
    """Invariants over random sample grids."""

    @given(samples_and_events())
    def test_search_and_merge_agree(self, data):
        """Binary search and two-pointer merge give identical indices."""
        sample_times, events = data
        events = np.asarray(events, dtype=np.float64)
        assert_array_equal(
            nearest_preceding_index(sample_times, events, method="search"),
            nearest_preceding_index(sample_times, events, method="merge"),
        )

    @given(samples_and_events())
    def test_index_brackets_event(self, data):
        """sample[i] < event <= sample[i + 1] for every event."""
        sample_times, events = data
        events = np.asarray(events, dtype=np.float64)
        indices = nearest_preceding_index(sample_times, events)
        assert (sample_times[indices] < events).all()
        assert (events <= sample_times[indices + 1]).all()

    @given(samples_and_events())
    def test_sorted_events_give_non_decreasing_indices(self, data):
        """Increasing events map to non-decreasing sample indices."""
        sample_times, events = data
        events = np.unique(np.asarray(events, dtype=np.float64))
        indices = nearest_preceding_index(sample_times, events, method="merge")
        assert (np.diff(indices) >= 0).all()
