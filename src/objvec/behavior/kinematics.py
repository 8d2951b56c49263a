"""Velocity and acceleration of tracked markers.

Two estimates are produced for every marker:

- **Instantaneous**: first differences between consecutive samples, scaled
  by the sample rate.
- **Smoothed**: displacement across a fixed time window, divided by the
  window length; acceleration is the per-sample change of that velocity.

Each estimate is reported as a magnitude and a direction, in the world frame
and relative to the object (direction plus object orientation, wrapped back
into (-pi, pi]). Sample pairs with a lost endpoint give ``NaN``.

Examples
--------
>>> import numpy as np
>>> from objvec.behavior.kinematics import instantaneous_kinematics
>>> positions = np.array([[0.0, 0.0], [1.0, 0.0], [3.0, 0.0]])
>>> velocity, acceleration = instantaneous_kinematics(positions, sample_rate=10.0)
>>> velocity.magnitude
array([10., 20.])
>>> acceleration.magnitude
array([100.])
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Literal

import numpy as np
from numpy.typing import NDArray

from objvec.config import ProcessingConfig
from objvec.reference_frames import wrap_angle
from objvec.trajectory import TrackingFlags, Trajectory

__all__ = [
    "KinematicSet",
    "Kinematics",
    "MotionRecord",
    "compute_kinematics",
    "instantaneous_kinematics",
    "object_relative_motion",
    "smoothed_kinematics",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MotionRecord:
    """Polar form of a per-sample vector quantity.

    Attributes
    ----------
    magnitude : NDArray[np.float64], shape (n,)
        Vector length (>= 0), ``NaN`` where undefined.
    direction : NDArray[np.float64], shape (n,)
        Vector angle in (-pi, pi], ``NaN`` where undefined.
    """

    magnitude: NDArray[np.float64]
    direction: NDArray[np.float64]

    def __len__(self) -> int:
        return len(self.magnitude)

    @classmethod
    def from_vectors(cls, vectors: NDArray[np.float64]) -> MotionRecord:
        """Polar decomposition of ``(n, 2)`` vectors."""
        vectors = np.asarray(vectors, dtype=np.float64).reshape(-1, 2)
        magnitude = np.hypot(vectors[:, 0], vectors[:, 1])
        direction = np.arctan2(vectors[:, 1], vectors[:, 0])
        # atan2 returns -pi for a -0.0 y component
        direction = np.where(direction <= -np.pi, np.pi, direction)
        return cls(magnitude=magnitude, direction=direction)


@dataclass(frozen=True)
class KinematicSet:
    """Velocity and acceleration estimates for every marker in one frame.

    Attributes
    ----------
    instantaneous_velocity : Mapping[str, MotionRecord]
        Length ``n_samples - 1``; entry ``i`` spans samples ``i`` and ``i + 1``.
    instantaneous_acceleration : Mapping[str, MotionRecord]
        Length ``n_samples - 2``.
    smoothed_velocity : Mapping[str, MotionRecord]
        Length ``n_samples - window``; entry ``i`` spans samples ``i`` and
        ``i + window``.
    smoothed_acceleration : Mapping[str, MotionRecord]
        Length ``n_samples - window - 1``.
    """

    instantaneous_velocity: Mapping[str, MotionRecord]
    instantaneous_acceleration: Mapping[str, MotionRecord]
    smoothed_velocity: Mapping[str, MotionRecord]
    smoothed_acceleration: Mapping[str, MotionRecord]


@dataclass(frozen=True)
class Kinematics:
    """World and object-relative kinematics of a recording.

    Attributes
    ----------
    world : KinematicSet
        Directions in camera coordinates.
    object : KinematicSet
        Directions relative to the object orientation. Magnitudes equal the
        world ones.
    window_samples : int
        Smoothing window in samples.
    """

    world: KinematicSet
    object: KinematicSet
    window_samples: int


def instantaneous_kinematics(
    positions: NDArray[np.float64],
    sample_rate: float,
) -> tuple[MotionRecord, MotionRecord]:
    """Sample-to-sample velocity and acceleration.

    Parameters
    ----------
    positions : NDArray[np.float64], shape (n_samples, 2)
        Marker positions; ``NaN`` rows are lost.
    sample_rate : float
        Samples per second.

    Returns
    -------
    velocity : MotionRecord
        Length ``n_samples - 1``, pixels per second.
    acceleration : MotionRecord
        Length ``n_samples - 2``, pixels per second squared.
    """
    positions = np.asarray(positions, dtype=np.float64)
    velocity = np.diff(positions, axis=0) * sample_rate
    acceleration = np.diff(velocity, axis=0) * sample_rate
    return MotionRecord.from_vectors(velocity), MotionRecord.from_vectors(acceleration)


def smoothed_kinematics(
    positions: NDArray[np.float64],
    sample_rate: float,
    window_seconds: float = 0.1,
) -> tuple[MotionRecord, MotionRecord]:
    """Velocity over a fixed window and its per-sample change.

    Parameters
    ----------
    positions : NDArray[np.float64], shape (n_samples, 2)
        Marker positions; ``NaN`` rows are lost.
    sample_rate : float
        Samples per second.
    window_seconds : float, default=0.1
        Span of the displacement, rounded to whole samples with
        :meth:`ProcessingConfig.smoothing_window_samples`.

    Returns
    -------
    velocity : MotionRecord
        Length ``n_samples - window``, pixels per second.
    acceleration : MotionRecord
        Length ``n_samples - window - 1``, pixels per second squared.
    """
    window = ProcessingConfig(
        smoothing_window_seconds=window_seconds
    ).smoothing_window_samples(sample_rate)
    positions = np.asarray(positions, dtype=np.float64)
    if window >= len(positions):
        empty = np.empty((0, 2))
        return MotionRecord.from_vectors(empty), MotionRecord.from_vectors(empty)
    velocity = (positions[window:] - positions[:-window]) / window_seconds
    acceleration = np.diff(velocity, axis=0) * sample_rate
    return MotionRecord.from_vectors(velocity), MotionRecord.from_vectors(acceleration)


def object_relative_motion(
    record: MotionRecord,
    orientation: NDArray[np.float64],
    policy: Literal["circular", "remainder"] = "circular",
) -> MotionRecord:
    """Re-express a direction relative to the object.

    The object orientation at the first sample of each pair is added to the
    world direction, and the sum is wrapped with ``policy``.

    Parameters
    ----------
    record : MotionRecord
        World-frame record; entry ``i`` starts at sample ``i``.
    orientation : NDArray[np.float64], shape (n_samples,)
        Object orientation per sample.
    policy : {"circular", "remainder"}, default="circular"
        See :func:`objvec.reference_frames.wrap_angle`.

    Returns
    -------
    MotionRecord
        Same magnitudes, object-relative directions.
    """
    offset = np.asarray(orientation, dtype=np.float64)[: len(record)]
    return MotionRecord(
        magnitude=record.magnitude,
        direction=wrap_angle(record.direction + offset, policy),
    )


def compute_kinematics(
    trajectory: Trajectory,
    orientation: NDArray[np.float64],
    sample_rate: float,
    *,
    flags: TrackingFlags | None = None,
    markers: Sequence[str] | None = None,
    config: ProcessingConfig | None = None,
) -> Kinematics:
    """World and object-relative kinematics for each tracked marker.

    Parameters
    ----------
    trajectory : Trajectory
        Filled trajectory.
    orientation : NDArray[np.float64], shape (n_samples,)
        Object orientation, shared with the other object-relative estimates.
    sample_rate : float
        Samples per second.
    flags : TrackingFlags, optional
        When given, samples flagged ``unfilled`` are excluded even if the
        trajectory holds a value there.
    markers : sequence of str, optional
        Markers to process. Defaults to the tracked (non-composite) markers.
    config : ProcessingConfig, optional
        Smoothing window and angle wrap policy.

    Returns
    -------
    Kinematics
    """
    config = config or ProcessingConfig()
    markers = tuple(markers) if markers is not None else trajectory.tracked_markers

    world: dict[str, dict[str, MotionRecord]] = {
        name: {} for name in KinematicSet.__dataclass_fields__
    }
    relative: dict[str, dict[str, MotionRecord]] = {
        name: {} for name in KinematicSet.__dataclass_fields__
    }

    for marker in markers:
        positions = np.array(trajectory[marker])
        if flags is not None:
            positions[flags.unfilled[marker]] = np.nan

        inst_vel, inst_acc = instantaneous_kinematics(positions, sample_rate)
        smooth_vel, smooth_acc = smoothed_kinematics(
            positions, sample_rate, config.smoothing_window_seconds
        )
        records = {
            "instantaneous_velocity": inst_vel,
            "instantaneous_acceleration": inst_acc,
            "smoothed_velocity": smooth_vel,
            "smoothed_acceleration": smooth_acc,
        }
        for name, record in records.items():
            world[name][marker] = record
            relative[name][marker] = object_relative_motion(
                record, orientation, config.angle_wrap
            )

    window = config.smoothing_window_samples(sample_rate)
    logger.info(
        "Computed kinematics for %d markers (smoothing window %d samples)",
        len(markers),
        window,
    )
    return Kinematics(
        world=KinematicSet(**world),
        object=KinematicSet(**relative),
        window_samples=window,
    )
