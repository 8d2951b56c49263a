"""Head direction from the two head-mounted lights."""

from __future__ import annotations

from typing import Literal

import numpy as np
from numpy.typing import NDArray

from objvec.reference_frames import wrap_angle
from objvec.trajectory import TrackingFlags, Trajectory

__all__ = ["head_direction", "object_relative_head_direction"]


def head_direction(
    trajectory: Trajectory,
    flags: TrackingFlags | None = None,
    markers: tuple[str, str] = ("light1", "light2"),
) -> NDArray[np.float64]:
    """
    Angle of the vector from the second head light to the first.

    Parameters
    ----------
    trajectory : Trajectory
        Filled trajectory.
    flags : TrackingFlags, optional
        When given, samples where either light is ``unfilled`` are excluded.
    markers : tuple of str, default=("light1", "light2")
        First and second head light.

    Returns
    -------
    NDArray[np.float64], shape (n_samples,)
        ``atan2(y1 - y2, x1 - x2)`` in (-pi, pi]; ``NaN`` where either light
        is lost.

    Examples
    --------
    >>> import numpy as np
    >>> from objvec.trajectory import Trajectory
    >>> traj = Trajectory(
    ...     timestamps=np.array([0.0, 0.1]),
    ...     markers={
    ...         "light1": np.array([[10.0, 5.0], [5.0, 10.0]]),
    ...         "light2": np.array([[5.0, 5.0], [5.0, 5.0]]),
    ...     },
    ... )
    >>> head_direction(traj) / np.pi
    array([0. , 0.5])
    """
    first, second = markers
    diff = trajectory[first] - trajectory[second]
    hd = np.arctan2(diff[:, 1], diff[:, 0])
    hd = np.where(hd <= -np.pi, np.pi, hd)
    if flags is not None:
        hd[flags.unfilled[first] | flags.unfilled[second]] = np.nan
    return hd


def object_relative_head_direction(
    hd: NDArray[np.float64],
    orientation: NDArray[np.float64],
    policy: Literal["circular", "remainder"] = "circular",
) -> NDArray[np.float64]:
    """
    Head direction relative to the object orientation.

    Parameters
    ----------
    hd : NDArray[np.float64], shape (n_samples,)
        World head direction.
    orientation : NDArray[np.float64], shape (n_samples,)
        Object orientation.
    policy : {"circular", "remainder"}, default="circular"
        See :func:`objvec.reference_frames.wrap_angle`.

    Returns
    -------
    NDArray[np.float64], shape (n_samples,)
    """
    return wrap_angle(np.asarray(hd) + np.asarray(orientation)[: len(hd)], policy)
