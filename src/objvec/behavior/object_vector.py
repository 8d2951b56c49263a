"""Distance and angle between the animal and the object vertex.

In the world frame the angle is the *bearing*: the polar angle of the
displacement from the object vertex to the animal. In the object frame the
same slot carries the animal's *object-relative head direction* instead. The
two records are separate types so the two meanings cannot be mixed up.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from objvec.reference_frames import ObjectPose
from objvec.trajectory import MASHUP_MARKER, Trajectory

__all__ = [
    "ObjectRelativeVector",
    "ObjectVector",
    "object_relative_vector",
    "object_vector",
]


@dataclass(frozen=True)
class ObjectVector:
    """World-frame object vector.

    Attributes
    ----------
    distance : NDArray[np.float64], shape (n_samples,)
        Pixels between the tracked marker and the object vertex.
    bearing : NDArray[np.float64], shape (n_samples,)
        Polar angle of ``marker - vertex`` in (-pi, pi].
    """

    distance: NDArray[np.float64]
    bearing: NDArray[np.float64]


@dataclass(frozen=True)
class ObjectRelativeVector:
    """Object-frame object vector.

    Attributes
    ----------
    distance : NDArray[np.float64], shape (n_samples,)
        Same distance as the world-frame vector.
    relative_heading : NDArray[np.float64], shape (n_samples,)
        Head direction relative to the object orientation.
    """

    distance: NDArray[np.float64]
    relative_heading: NDArray[np.float64]


def object_vector(
    trajectory: Trajectory,
    pose: ObjectPose,
    marker: str = MASHUP_MARKER,
) -> ObjectVector:
    """
    Polar form of the displacement from the object vertex to a marker.

    Parameters
    ----------
    trajectory : Trajectory
        Filled world trajectory.
    pose : ObjectPose
        World-frame object pose.
    marker : str, default="mashup"
        Marker standing for the animal's position.

    Returns
    -------
    ObjectVector
        ``NaN`` where the marker is lost.

    Examples
    --------
    >>> import numpy as np
    >>> from objvec.reference_frames import ObjectPose
    >>> from objvec.trajectory import Trajectory
    >>> traj = Trajectory(np.array([0.0]), {"mashup": np.array([[103.0, 104.0]])})
    >>> pose = ObjectPose(
    ...     arm_a=np.array([[110.0, 100.0]]),
    ...     vertex=np.array([[100.0, 100.0]]),
    ...     arm_c=np.array([[100.0, 110.0]]),
    ... )
    >>> object_vector(traj, pose).distance
    array([5.])
    """
    displacement = trajectory[marker] - pose.vertex
    distance = np.hypot(displacement[:, 0], displacement[:, 1])
    bearing = np.arctan2(displacement[:, 1], displacement[:, 0])
    bearing = np.where(bearing <= -np.pi, np.pi, bearing)
    return ObjectVector(distance=distance, bearing=bearing)


def object_relative_vector(
    vector: ObjectVector,
    relative_heading: NDArray[np.float64],
) -> ObjectRelativeVector:
    """Pair the world distance with the object-relative head direction."""
    return ObjectRelativeVector(
        distance=vector.distance,
        relative_heading=np.asarray(relative_heading, dtype=np.float64),
    )
