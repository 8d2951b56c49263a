"""Object-centred reference frame transformations.

Supports conversions between:
- World: camera-fixed pixel coordinates
- Object: origin at the object's vertex light, +x axis along arm A

Coordinate Conventions
----------------------
**Object orientation**:
``orientation = -atan2(armA.y - vertex.y, armA.x - vertex.x)``, the rotation
that turns the vertex-to-arm-A vector onto the +x axis.

**Object frame**:
- Origin at the vertex light
- +x axis toward arm A
- Recomputed at every sample, because the object can be moved between runs

Lost positions (``NaN`` rows) stay lost through every transform.

Examples
--------
>>> import numpy as np
>>> from objvec.reference_frames import to_object_frame
>>> points = np.array([[110.0, 100.0]])
>>> vertex = np.array([[100.0, 100.0]])
>>> orientation = np.array([-np.pi / 2])  # arm A points along +y
>>> np.round(to_object_frame(points, vertex, orientation), 6)
array([[  0., -10.]])
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

import numpy as np
from numpy.typing import NDArray

from objvec.errors import DegenerateGeometryError, MalformedInputError
from objvec.events._core import ObjectMarkerEvent
from objvec.trajectory import Trajectory

__all__ = [
    "ObjectFrame",
    "ObjectPose",
    "from_object_frame",
    "object_orientation",
    "object_pose_from_events",
    "to_object_frame",
    "transform_trajectory",
    "wrap_angle",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ObjectPose:
    """Positions of the three object lights at every sample.

    Attributes
    ----------
    arm_a : NDArray[np.float64], shape (n_samples, 2)
        Light at the end of arm A (right of the vertex).
    vertex : NDArray[np.float64], shape (n_samples, 2)
        Light at the vertex.
    arm_c : NDArray[np.float64], shape (n_samples, 2)
        Light at the end of arm C.

    Examples
    --------
    >>> import numpy as np
    >>> pose = ObjectPose(
    ...     arm_a=np.array([[110.0, 100.0]]),
    ...     vertex=np.array([[100.0, 100.0]]),
    ...     arm_c=np.array([[100.0, 110.0]]),
    ... )
    >>> float(pose.orientation()[0])
    -0.0
    """

    arm_a: NDArray[np.float64]
    vertex: NDArray[np.float64]
    arm_c: NDArray[np.float64]

    def __post_init__(self) -> None:
        shapes = {np.shape(self.arm_a), np.shape(self.vertex), np.shape(self.arm_c)}
        if len(shapes) != 1:
            raise MalformedInputError(
                f"Object light arrays differ in shape: {sorted(shapes)}."
            )
        shape = shapes.pop()
        if len(shape) != 2 or shape[1] != 2:
            raise MalformedInputError(
                f"Object light arrays must have shape (n_samples, 2), got {shape}."
            )
        for name in ("arm_a", "vertex", "arm_c"):
            array = np.array(getattr(self, name), dtype=np.float64)
            array.flags.writeable = False
            object.__setattr__(self, name, array)

    def __len__(self) -> int:
        return len(self.vertex)

    def orientation(self) -> NDArray[np.float64]:
        """Object orientation at every sample, see :func:`object_orientation`."""
        return object_orientation(self.arm_a, self.vertex)

    def lights(self) -> dict[str, NDArray[np.float64]]:
        """The three lights keyed by name."""
        return {"arm_a": self.arm_a, "vertex": self.vertex, "arm_c": self.arm_c}


@dataclass(frozen=True)
class ObjectFrame:
    """A trajectory and object pose expressed in the object frame.

    Attributes
    ----------
    trajectory : Trajectory
        Every marker translated to the vertex and rotated by the orientation.
    pose : ObjectPose
        The object lights in their own frame (vertex at the origin, arm A on
        the +x axis).
    orientation : NDArray[np.float64], shape (n_samples,)
        Orientation used at each sample.
    """

    trajectory: Trajectory
    pose: ObjectPose
    orientation: NDArray[np.float64]


def object_orientation(
    arm_a: NDArray[np.float64],
    vertex: NDArray[np.float64],
) -> NDArray[np.float64]:
    """Rotation taking the vertex-to-arm-A vector onto the +x axis.

    Parameters
    ----------
    arm_a, vertex : NDArray[np.float64], shape (n_samples, 2)
        Arm A and vertex lights.

    Returns
    -------
    NDArray[np.float64], shape (n_samples,)
        ``-atan2(armA.y - vertex.y, armA.x - vertex.x)`` in radians.

    Raises
    ------
    DegenerateGeometryError
        If arm A coincides with the vertex at any sample.
    """
    arm_vector = np.asarray(arm_a, dtype=np.float64) - np.asarray(vertex, dtype=np.float64)
    degenerate = np.flatnonzero(np.all(arm_vector == 0, axis=-1))
    if degenerate.size:
        raise DegenerateGeometryError(degenerate)
    return -np.arctan2(arm_vector[..., 1], arm_vector[..., 0])


def object_pose_from_events(
    events: Sequence[ObjectMarkerEvent],
    start_indices: Sequence[int],
    n_samples: int,
) -> ObjectPose:
    """Expand per-run object poses into a per-sample pose.

    The pose of ``events[k]`` holds from sample ``start_indices[k]`` until the
    next run starts. The first pose also covers the samples before the first
    run, so every sample has a defined object position.

    Parameters
    ----------
    events : sequence of ObjectMarkerEvent
        One pose per rewarded run, in run order.
    start_indices : sequence of int
        Start sample of each rewarded run (non-decreasing).
    n_samples : int
        Length of the recording.

    Returns
    -------
    ObjectPose

    Raises
    ------
    MalformedInputError
        If there are no events, the two sequences differ in length, or the
        start indices decrease.
    """
    if len(events) == 0:
        raise MalformedInputError(
            "No object marker events.\n"
            "  WHY: The object frame needs at least one reported object pose.\n"
            "  HOW: Check the label used to select object rows."
        )
    if len(events) != len(start_indices):
        raise MalformedInputError(
            f"{len(events)} object poses for {len(start_indices)} run starts."
        )
    starts = np.asarray(start_indices, dtype=np.int64)
    decreasing = np.flatnonzero(np.diff(starts) < 0) + 1
    if decreasing.size:
        raise MalformedInputError(
            "Run start samples decrease.\n"
            "  WHY: Each pose holds until the next run starts, so runs must be "
            "in time order.\n"
            "  HOW: Pass the rewarded runs sorted by start time.",
            indices=decreasing,
        )

    lights = {name: np.empty((n_samples, 2)) for name in ("arm_a", "vertex", "arm_c")}
    boundaries = [0, *(int(i) for i in starts[1:]), n_samples]
    for event, start, stop in zip(events, boundaries[:-1], boundaries[1:], strict=True):
        lights["arm_a"][start:stop] = event.arm_a
        lights["vertex"][start:stop] = event.vertex
        lights["arm_c"][start:stop] = event.arm_c
    return ObjectPose(**lights)


def _rotation_matrices(angles: NDArray[np.float64]) -> NDArray[np.float64]:
    cos_a = np.cos(angles)
    sin_a = np.sin(angles)
    rot = np.zeros((len(angles), 2, 2), dtype=np.float64)
    rot[:, 0, 0] = cos_a
    rot[:, 0, 1] = -sin_a
    rot[:, 1, 0] = sin_a
    rot[:, 1, 1] = cos_a
    return rot


def to_object_frame(
    points: NDArray[np.float64],
    vertex: NDArray[np.float64],
    orientation: NDArray[np.float64],
) -> NDArray[np.float64]:
    """Translate points to the vertex and rotate by the object orientation.

    Parameters
    ----------
    points : NDArray[np.float64], shape (n_samples, 2) or (n_samples, n_points, 2)
        World positions. ``NaN`` rows are lost and stay ``NaN``.
    vertex : NDArray[np.float64], shape (n_samples, 2)
        Vertex light at each sample.
    orientation : NDArray[np.float64], shape (n_samples,)
        Object orientation at each sample.

    Returns
    -------
    NDArray[np.float64]
        Points in the object frame, same shape as ``points``.
    """
    points = np.asarray(points, dtype=np.float64)
    vertex = np.asarray(vertex, dtype=np.float64)
    orientation = np.asarray(orientation, dtype=np.float64)
    _check_frame_shapes(points, vertex, orientation)

    single = points.ndim == 2
    if single:
        points = points[:, np.newaxis, :]
    centered = points - vertex[:, np.newaxis, :]
    result: NDArray[np.float64] = np.einsum(
        "tij,tpj->tpi", _rotation_matrices(orientation), centered
    )
    return result[:, 0, :] if single else result


def from_object_frame(
    points: NDArray[np.float64],
    vertex: NDArray[np.float64],
    orientation: NDArray[np.float64],
) -> NDArray[np.float64]:
    """Inverse of :func:`to_object_frame`: rotate by ``-orientation`` and add
    the vertex back."""
    points = np.asarray(points, dtype=np.float64)
    vertex = np.asarray(vertex, dtype=np.float64)
    orientation = np.asarray(orientation, dtype=np.float64)
    _check_frame_shapes(points, vertex, orientation)

    single = points.ndim == 2
    if single:
        points = points[:, np.newaxis, :]
    rotated = np.einsum("tij,tpj->tpi", _rotation_matrices(-orientation), points)
    result: NDArray[np.float64] = rotated + vertex[:, np.newaxis, :]
    return result[:, 0, :] if single else result


def _check_frame_shapes(
    points: NDArray[np.float64],
    vertex: NDArray[np.float64],
    orientation: NDArray[np.float64],
) -> None:
    if points.ndim not in (2, 3) or points.shape[-1] != 2:
        raise ValueError(
            f"Cannot transform points: invalid shape {points.shape}.\n\n"
            "WHAT: points must be (n_samples, 2) or (n_samples, n_points, 2)\n"
            "WHY: Each sample needs (x, y) coordinates for transformation\n\n"
            "HOW to fix:\n"
            "1. Reshape your array: points.reshape(n_samples, -1, 2)"
        )
    n_time = len(points)
    if vertex.shape != (n_time, 2) or orientation.shape != (n_time,):
        raise ValueError(
            "Points/vertex/orientation length mismatch.\n\n"
            f"WHAT: points {points.shape}, vertex {vertex.shape}, orientation "
            f"{orientation.shape}\n"
            "WHY: Need one vertex and one orientation per sample\n\n"
            "HOW to fix:\n"
            "1. Build the pose with object_pose_from_events(..., n_samples)"
        )


def transform_trajectory(
    trajectory: Trajectory,
    pose: ObjectPose,
    orientation: NDArray[np.float64] | None = None,
) -> ObjectFrame:
    """Express a trajectory and the object itself in the object frame.

    Parameters
    ----------
    trajectory : Trajectory
        Filled world trajectory.
    pose : ObjectPose
        Per-sample object lights, same length as ``trajectory``.
    orientation : NDArray[np.float64], optional
        Precomputed orientation; computed from ``pose`` when omitted.

    Returns
    -------
    ObjectFrame

    Raises
    ------
    DegenerateGeometryError
        If orientation is undefined at any sample.
    """
    if len(pose) != trajectory.n_samples:
        raise MalformedInputError(
            f"Object pose has {len(pose)} samples, trajectory has "
            f"{trajectory.n_samples}."
        )
    if orientation is None:
        orientation = pose.orientation()

    markers = {
        name: to_object_frame(positions, pose.vertex, orientation)
        for name, positions in trajectory.markers.items()
    }
    object_lights = {
        name: to_object_frame(light, pose.vertex, orientation)
        for name, light in pose.lights().items()
    }
    logger.debug("Transformed %d markers into the object frame", len(markers))
    return ObjectFrame(
        trajectory=Trajectory(trajectory.timestamps, markers, trajectory.sample_ids),
        pose=ObjectPose(**object_lights),
        orientation=np.asarray(orientation, dtype=np.float64),
    )


def _half_open(angle: NDArray[np.float64]) -> NDArray[np.float64]:
    return np.where(angle <= -np.pi, angle + 2 * np.pi, angle)


def wrap_angle(
    angle: NDArray[np.float64],
    policy: Literal["circular", "remainder"] = "circular",
) -> NDArray[np.float64]:
    """Bring angles into (-pi, pi].

    Parameters
    ----------
    angle : NDArray[np.float64]
        Angles in radians, typically a direction plus an orientation offset,
        so within (-2*pi, 2*pi]. ``NaN`` is preserved.
    policy : {"circular", "remainder"}, default="circular"
        ``"circular"`` wraps modulo 2*pi. ``"remainder"`` replaces values
        outside [-pi, pi] by their remainder after division by pi (sign of the
        dividend), reproducing legacy output.

    Returns
    -------
    NDArray[np.float64]
        Angles in (-pi, pi].

    Examples
    --------
    >>> import numpy as np
    >>> angles = np.array([1.5 * np.pi, -1.5 * np.pi, np.pi])
    >>> np.round(wrap_angle(angles) / np.pi, 6)
    array([-0.5,  0.5,  1. ])
    >>> np.round(wrap_angle(angles, "remainder") / np.pi, 6)
    array([ 0.5, -0.5,  1. ])
    """
    angle = np.asarray(angle, dtype=np.float64)
    match policy:
        case "circular":
            wrapped = np.mod(angle + np.pi, 2 * np.pi) - np.pi
        case "remainder":
            outside = np.abs(angle) > np.pi
            wrapped = np.where(outside, np.fmod(angle, np.pi), angle)
        case _:
            raise ValueError(
                f"Invalid wrap policy: '{policy}'. Use 'circular' or 'remainder'."
            )
    return _half_open(wrapped)
