"""Shared test fixtures for the objvec test suite.

Fixture Naming Convention
=========================

**Recording fixtures** describe one synthetic session:
    - sample_times: 1000 samples at 30 Hz
    - two_light_trajectory: two head lights sweeping through the object
    - object_scene: object poses (one per reward) and inner runs

**Factory fixtures** return helper callables:
    - with_gap(trajectory, marker, start, stop): copy with a lost block
    - make_event(timestamp, vertex=..., arm_a_offset=..., arm_c_offset=...)

The synthetic animal moves along x through the object vertex at
(320, 240), passing it at 2.5 s, 7.5 s, 12.5 s, ... and peaking 150 px away.
Rewards are delivered just after three of those passes, each inside an
inner run. Object arms are 20 px long.
"""

import os

import numpy as np
import pytest
from hypothesis import Phase, Verbosity, settings

from objvec.events import ObjectMarkerEvent
from objvec.trajectory import Trajectory

# =============================================================================
# Hypothesis Configuration for Performance
# =============================================================================
# Register Hypothesis profiles for different testing scenarios:
# - "ci": Fast profile for CI pipelines (fewer examples, no deadline)
# - "dev": Standard development profile (moderate examples)
# - "thorough": Full property testing (many examples, for pre-release)

settings.register_profile(
    "ci",
    max_examples=10,
    deadline=None,  # Disable deadline in CI (variable performance)
    suppress_health_check=[],
    phases=[Phase.explicit, Phase.reuse, Phase.generate],
    verbosity=Verbosity.quiet,
)

settings.register_profile(
    "dev",
    max_examples=25,
    deadline=5000,  # 5 second deadline
    verbosity=Verbosity.normal,
)

settings.register_profile(
    "thorough",
    max_examples=100,
    deadline=None,
    verbosity=Verbosity.verbose,
)

# Load profile based on environment variable (default to "dev")
# Set HYPOTHESIS_PROFILE=ci in CI environments for faster tests
_profile = os.environ.get("HYPOTHESIS_PROFILE", "dev")
settings.load_profile(_profile)

# =============================================================================
# Synthetic Session Constants
# =============================================================================

N_SAMPLES = 1000
SAMPLE_RATE = 30

OBJECT_VERTEX = (320.0, 240.0)
ARM_LENGTH = 20.0
CYCLE_SECONDS = 10.0
CYCLE_AMPLITUDE = 150.0
REWARD_TIMES = (2.55, 12.55, 22.55)
# The second run (6.0 - 6.5 s) holds no reward
INNER_RUNS = ((2.0, 3.0), (6.0, 6.5), (12.0, 13.0), (22.0, 23.0))


def _with_gap(trajectory: Trajectory, marker: str, start: int, stop: int) -> Trajectory:
    positions = np.array(trajectory[marker])
    positions[start:stop] = np.nan
    return trajectory.with_markers({marker: positions})


def _make_event(
    timestamp: float,
    vertex=OBJECT_VERTEX,
    arm_a_offset=(ARM_LENGTH, 0.0),
    arm_c_offset=(0.0, ARM_LENGTH),
) -> ObjectMarkerEvent:
    vertex = np.asarray(vertex, dtype=np.float64)
    return ObjectMarkerEvent(
        timestamp=timestamp,
        arm_a=vertex + np.asarray(arm_a_offset, dtype=np.float64),
        vertex=vertex,
        arm_c=vertex + np.asarray(arm_c_offset, dtype=np.float64),
    )


@pytest.fixture
def with_gap():
    """Factory: copy of a trajectory with one marker lost on [start, stop)."""
    return _with_gap


@pytest.fixture
def make_event():
    """Factory: object pose with arms at the given offsets from the vertex."""
    return _make_event


@pytest.fixture
def sample_times() -> np.ndarray:
    """1000 timestamps at exactly 30 Hz."""
    return np.arange(N_SAMPLES) / SAMPLE_RATE


@pytest.fixture
def two_light_trajectory(sample_times) -> Trajectory:
    """Two head lights on whole pixels, 10 px apart along x."""
    x = OBJECT_VERTEX[0] + CYCLE_AMPLITUDE * np.cos(
        2 * np.pi * sample_times / CYCLE_SECONDS
    )
    centre = np.column_stack([np.round(x), np.full(N_SAMPLES, OBJECT_VERTEX[1])])
    return Trajectory(
        timestamps=sample_times,
        markers={
            "light1": centre + [5.0, 0.0],
            "light2": centre - [5.0, 0.0],
        },
    )


@pytest.fixture
def object_scene():
    """Object poses (one per reward) and the inner run table."""
    events = [_make_event(t) for t in REWARD_TIMES]
    return events, np.array(INNER_RUNS)
