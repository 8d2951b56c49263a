"""Process one recording end to end.

Stages run in dependency order, each returning a new record:

1. gap filling of the raw trajectory (flags and composite markers)
2. reward and run alignment on the raw timestamps
3. per-sample object pose and orientation, computed once
4. object-frame trajectory
5. world and object-relative kinematics, head direction and object vector
6. approach/retreat phases around each reward

Any error aborts the whole recording; no partial result is returned.

Examples
--------
>>> from objvec.pipeline import process_recording  # doctest: +SKIP
>>> result = process_recording(raw, object_events, inner_runs)  # doctest: +SKIP
>>> result.phases[0].pre_reward_index  # doctest: +SKIP
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, fields, is_dataclass
from typing import TYPE_CHECKING, Any

import numpy as np
from numpy.typing import NDArray

from objvec.behavior.heading import head_direction, object_relative_head_direction
from objvec.behavior.kinematics import KinematicSet, compute_kinematics
from objvec.behavior.object_vector import (
    ObjectRelativeVector,
    ObjectVector,
    object_relative_vector,
    object_vector,
)
from objvec.behavior.segmentation import RunPhase, mean_arm_length, segment_run_phases
from objvec.config import ProcessingConfig
from objvec.events._core import (
    ObjectMarkerEvent,
    inner_runs_from_dataframe,
    object_events_from_dataframe,
)
from objvec.events.runs import EventAlignment, align_events
from objvec.gaps import fill_gaps
from objvec.reference_frames import (
    ObjectPose,
    object_pose_from_events,
    transform_trajectory,
)
from objvec.trajectory import GapRecord, TrackingFlags, Trajectory, trajectory_from_array

if TYPE_CHECKING:
    import pandas as pd

__all__ = [
    "FrameResult",
    "RecordingResult",
    "process_recording",
    "process_recording_tables",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameResult:
    """Derived quantities in one reference frame.

    Attributes
    ----------
    trajectory : Trajectory
        Filled trajectory, composite markers included.
    pose : ObjectPose
        Object lights at every sample.
    kinematics : KinematicSet
        Velocity and acceleration estimates.
    head_direction : NDArray[np.float64], shape (n_samples,)
        Head direction (world) or object-relative head direction (object).
    object_vector : ObjectVector or ObjectRelativeVector
        Distance with bearing (world) or with relative heading (object).
    """

    trajectory: Trajectory
    pose: ObjectPose
    kinematics: KinematicSet
    head_direction: NDArray[np.float64]
    object_vector: ObjectVector | ObjectRelativeVector


@dataclass(frozen=True)
class RecordingResult:
    """Everything derived from one recording.

    Attributes
    ----------
    sample_rate : float
        Samples per second.
    max_gap : float
        Longest interpolated gap, in samples.
    flags : TrackingFlags
        Lost / filled / unfilled masks per marker.
    gaps : Mapping[str, tuple[GapRecord, ...]]
        Gaps per tracked marker.
    world : FrameResult
        Camera-frame results.
    object : FrameResult
        Object-frame results.
    orientation : NDArray[np.float64], shape (n_samples,)
        Object orientation shared by all object-relative quantities.
    events : EventAlignment
        Reward, inner, rewarded and outer run alignment.
    reward_events : tuple of ObjectMarkerEvent
        Object poses reported with the rewards.
    arm_length : float
        Mean object arm length used for phase segmentation.
    phases : tuple of RunPhase
        Approach/retreat boundaries per rewarded run.
    spikes : Any
        Spike data, passed through untouched.
    config : ProcessingConfig
        Settings that produced this result.
    """

    sample_rate: float
    max_gap: float
    flags: TrackingFlags
    gaps: Mapping[str, tuple[GapRecord, ...]]
    world: FrameResult
    object: FrameResult
    orientation: NDArray[np.float64]
    events: EventAlignment
    reward_events: tuple[ObjectMarkerEvent, ...]
    arm_length: float
    phases: tuple[RunPhase, ...]
    spikes: Any
    config: ProcessingConfig

    @property
    def n_runs(self) -> int:
        return len(self.phases)

    def to_dict(self) -> dict[str, Any]:
        """Nested plain mapping of the result, for persistence.

        Dataclasses and mappings become dicts and tuples become lists; arrays
        and the spike data are kept as they are.
        """
        result = {f.name: _to_plain(getattr(self, f.name)) for f in fields(self)}
        result["spikes"] = self.spikes
        return result


def _to_plain(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _to_plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Mapping):
        return {key: _to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_plain(item) for item in value]
    return value


def process_recording(
    raw: Trajectory,
    object_events: Sequence[ObjectMarkerEvent],
    inner_runs: NDArray[np.float64],
    spikes: Any = None,
    *,
    sample_rate: float | None = None,
    config: ProcessingConfig | None = None,
) -> RecordingResult:
    """
    Run every processing stage on one recording.

    Parameters
    ----------
    raw : Trajectory
        Raw trajectory with lost samples as ``NaN``.
    object_events : sequence of ObjectMarkerEvent
        One object pose per reward; their timestamps are the reward times.
    inner_runs : NDArray[np.float64], shape (n_runs, 2)
        ``(start, stop)`` of every inner-zone run.
    spikes : Any, optional
        Spike data, stored on the result untouched.
    sample_rate : float, optional
        Samples per second; estimated from the timestamps when omitted.
    config : ProcessingConfig, optional
        Processing parameters.

    Returns
    -------
    RecordingResult

    Raises
    ------
    MalformedInputError
        For structurally invalid inputs or events outside the recording.
    UnrecoverableGapError
        If a marker is never tracked.
    DegenerateGeometryError
        If the object orientation is undefined at some sample.
    BoundaryNotFoundError
        If a reward has no approach or retreat boundary.
    """
    config = config or ProcessingConfig()
    object_events = tuple(object_events)

    filled = fill_gaps(raw, sample_rate, config=config)
    rate = filled.sample_rate
    logger.info(
        "Sample rate %g Hz, filling gaps up to %g samples", rate, filled.max_gap
    )

    reward_times = np.array([event.timestamp for event in object_events], dtype=np.float64)
    events = align_events(
        raw.timestamps, reward_times, inner_runs, method=config.alignment_method
    )

    if events.n_runs:
        run_poses = [object_events[i] for i in events.run_rewards]
        run_starts = events.rewarded_indices[:, 0]
    else:
        run_poses = list(object_events[:1])
        run_starts = np.zeros(len(run_poses), dtype=np.int64)
    pose = object_pose_from_events(run_poses, run_starts, raw.n_samples)
    orientation = pose.orientation()
    orientation.flags.writeable = False

    trajectory = filled.trajectory
    object_frame = transform_trajectory(trajectory, pose, orientation)

    kinematics = compute_kinematics(
        trajectory,
        orientation,
        rate,
        flags=filled.flags,
        markers=trajectory.marker_names,
        config=config,
    )
    hd = head_direction(trajectory, filled.flags, config.head_markers)
    hd_relative = object_relative_head_direction(hd, orientation, config.angle_wrap)
    vector = object_vector(trajectory, pose, config.vector_marker)
    vector_relative = object_relative_vector(vector, hd_relative)

    arm_length = mean_arm_length(object_events)
    phases = segment_run_phases(
        vector.distance,
        events.run_reward_indices,
        arm_length,
        factor=config.phase_distance_factor,
        run_ids=range(events.n_runs),
    )
    logger.info("Segmented %d rewarded runs", len(phases))

    return RecordingResult(
        sample_rate=rate,
        max_gap=filled.max_gap,
        flags=filled.flags,
        gaps=filled.gaps,
        world=FrameResult(
            trajectory=trajectory,
            pose=pose,
            kinematics=kinematics.world,
            head_direction=hd,
            object_vector=vector,
        ),
        object=FrameResult(
            trajectory=object_frame.trajectory,
            pose=object_frame.pose,
            kinematics=kinematics.object,
            head_direction=hd_relative,
            object_vector=vector_relative,
        ),
        orientation=orientation,
        events=events,
        reward_events=object_events,
        arm_length=arm_length,
        phases=tuple(phases),
        spikes=spikes,
        config=config,
    )


def process_recording_tables(
    raw_rows: NDArray[np.float64],
    object_table: pd.DataFrame,
    run_table: pd.DataFrame,
    spikes: Any = None,
    *,
    config: ProcessingConfig | None = None,
    object_columns: Mapping[str, str] | None = None,
    run_columns: Mapping[str, str] | None = None,
) -> RecordingResult:
    """
    Process a recording from its loaded tracking matrix and event tables.

    Parameters
    ----------
    raw_rows : NDArray[np.float64], shape (n_samples, 2 + 2 * n_lights)
        Tracking matrix ``index, timestamp, x1, y1, ...`` in encoded units.
    object_table : pd.DataFrame
        Object marker rows, see
        :func:`~objvec.events.object_events_from_dataframe`.
    run_table : pd.DataFrame
        Zone run rows, see :func:`~objvec.events.inner_runs_from_dataframe`.
    spikes : Any, optional
        Spike data passed through.
    config : ProcessingConfig, optional
        Processing parameters.
    object_columns, run_columns : Mapping[str, str], optional
        Keyword overrides (label and column names) for the two adapters.

    Returns
    -------
    RecordingResult
    """
    config = config or ProcessingConfig()
    raw = trajectory_from_array(raw_rows, pixel_max=config.frame_size[0] - 1)
    object_events = object_events_from_dataframe(
        object_table,
        acquisition_size=config.acquisition_size,
        frame_size=config.frame_size,
        **(object_columns or {}),
    )
    inner_runs = inner_runs_from_dataframe(run_table, **(run_columns or {}))
    return process_recording(raw, object_events, inner_runs, spikes, config=config)
