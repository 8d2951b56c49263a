"""
Reward and run bookkeeping on the sample grid.

Inner runs are traversals of the interior zone. Only *rewarded* inner runs,
those containing at least one reward time, are kept. Outer runs are the
intervals between consecutive rewarded inner runs. Reward times and the
boundaries of both run kinds are aligned to sample indices with
:func:`~objvec.events.alignment.nearest_preceding_index`.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Literal

import numpy as np
from numpy.typing import NDArray

from objvec.errors import MalformedInputError
from objvec.events.alignment import nearest_preceding_index

__all__ = [
    "EventAlignment",
    "align_events",
    "align_runs",
    "outer_runs",
    "select_rewarded_runs",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventAlignment:
    """
    Event times and their sample indices for one recording.

    Attributes
    ----------
    reward_times : NDArray[np.float64], shape (n_rewards,)
        Reward times in input order.
    reward_indices : NDArray[np.int64], shape (n_rewards,)
        Nearest preceding sample of each reward.
    inner_times : NDArray[np.float64], shape (n_inner, 2)
        All inner runs, rewarded or not.
    rewarded_run_ids : NDArray[np.int64], shape (n_rewarded,)
        Row of ``inner_times`` for each rewarded run.
    rewarded_times : NDArray[np.float64], shape (n_rewarded, 2)
        ``(start, stop)`` times of rewarded inner runs.
    rewarded_indices : NDArray[np.int64], shape (n_rewarded, 2)
        Sample indices of the rewarded run boundaries.
    run_rewards : NDArray[np.int64], shape (n_rewarded,)
        Index into ``reward_times`` of the first reward inside each
        rewarded run.
    outer_times : NDArray[np.float64], shape (n_rewarded - 1, 2)
        ``(stop of run k, start of run k + 1)`` times.
    outer_indices : NDArray[np.int64], shape (n_rewarded - 1, 2)
        Sample indices of the outer run boundaries.
    """

    reward_times: NDArray[np.float64]
    reward_indices: NDArray[np.int64]
    inner_times: NDArray[np.float64]
    rewarded_run_ids: NDArray[np.int64]
    rewarded_times: NDArray[np.float64]
    rewarded_indices: NDArray[np.int64]
    run_rewards: NDArray[np.int64]
    outer_times: NDArray[np.float64]
    outer_indices: NDArray[np.int64]

    @property
    def n_runs(self) -> int:
        """Number of rewarded inner runs."""
        return len(self.rewarded_times)

    @property
    def run_reward_indices(self) -> NDArray[np.int64]:
        """Reward sample index of each rewarded run."""
        return self.reward_indices[self.run_rewards]


def _as_runs(runs: NDArray[np.float64]) -> NDArray[np.float64]:
    runs = np.asarray(runs, dtype=np.float64)
    if runs.size == 0:
        return np.empty((0, 2), dtype=np.float64)
    if runs.ndim != 2 or runs.shape[1] != 2:
        raise MalformedInputError(
            f"Runs must have shape (n_runs, 2), got {runs.shape}.\n"
            "  HOW: Pass one (start, stop) pair per row."
        )
    return runs


def _check_run_order(runs: NDArray[np.float64]) -> None:
    reversed_runs = np.flatnonzero(runs[:, 1] < runs[:, 0])
    if reversed_runs.size:
        raise MalformedInputError(
            "Inner runs stop before they start.\n"
            "  WHY: A run is the interval from its start time to its stop time.\n"
            "  HOW: Check that the start and stop columns are not swapped.",
            indices=reversed_runs,
        )
    # Run k + 1 must not start before run k stops
    out_of_order = np.flatnonzero(runs[1:, 0] < runs[:-1, 1]) + 1
    if out_of_order.size:
        raise MalformedInputError(
            "Inner runs are not in time order or overlap.\n"
            "  WHY: Object poses and outer runs follow the rewarded runs in "
            "time order.\n"
            "  HOW: Sort the run table by start time and merge overlapping runs.",
            indices=out_of_order,
        )


def select_rewarded_runs(
    inner_runs: NDArray[np.float64],
    reward_times: NDArray[np.float64],
) -> NDArray[np.int64]:
    """
    Find inner runs containing at least one reward.

    A reward at time ``t`` belongs to a run when ``start <= t <= stop``.

    Parameters
    ----------
    inner_runs : NDArray[np.float64], shape (n_runs, 2)
        ``(start, stop)`` times.
    reward_times : NDArray[np.float64], shape (n_rewards,)
        Reward times.

    Returns
    -------
    NDArray[np.int64]
        Row indices of the rewarded runs, in run order.

    Examples
    --------
    >>> import numpy as np
    >>> runs = np.array([[0.0, 1.0], [2.0, 3.0], [4.0, 5.0]])
    >>> select_rewarded_runs(runs, np.array([2.5, 5.0]))
    array([1, 2])
    """
    inner_runs = _as_runs(inner_runs)
    reward_times = np.asarray(reward_times, dtype=np.float64).ravel()
    inside = (reward_times[np.newaxis, :] >= inner_runs[:, [0]]) & (
        reward_times[np.newaxis, :] <= inner_runs[:, [1]]
    )
    return np.flatnonzero(inside.any(axis=1)).astype(np.int64)


def outer_runs(rewarded_runs: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Intervals between consecutive rewarded inner runs.

    Parameters
    ----------
    rewarded_runs : NDArray[np.float64], shape (n_runs, 2)

    Returns
    -------
    NDArray[np.float64], shape (max(n_runs - 1, 0), 2)
        ``(stop of run k, start of run k + 1)``.

    Examples
    --------
    >>> import numpy as np
    >>> outer_runs(np.array([[0.0, 1.0], [2.0, 3.0], [4.0, 5.0]]))
    array([[1., 2.],
           [3., 4.]])
    """
    rewarded_runs = _as_runs(rewarded_runs)
    if len(rewarded_runs) < 2:
        return np.empty((0, 2), dtype=np.float64)
    return np.column_stack([rewarded_runs[:-1, 1], rewarded_runs[1:, 0]])


def align_runs(
    sample_times: NDArray[np.float64],
    runs: NDArray[np.float64],
    *,
    method: Literal["search", "merge"] = "search",
) -> NDArray[np.int64]:
    """Sample indices of each run's start and stop, shape (n_runs, 2)."""
    runs = _as_runs(runs)
    indices = nearest_preceding_index(sample_times, runs.ravel(), method=method)
    return indices.reshape(-1, 2)


def align_events(
    sample_times: NDArray[np.float64],
    reward_times: NDArray[np.float64],
    inner_runs: NDArray[np.float64],
    *,
    method: Literal["search", "merge"] = "search",
) -> EventAlignment:
    """
    Align rewards, rewarded inner runs and outer runs to the sample grid.

    Parameters
    ----------
    sample_times : NDArray[np.float64], shape (n_samples,)
        Raw trajectory timestamps.
    reward_times : NDArray[np.float64], shape (n_rewards,)
        Reward delivery times.
    inner_runs : NDArray[np.float64], shape (n_runs, 2)
        ``(start, stop)`` of every inner run.
    method : {"search", "merge"}, default="search"
        Alignment algorithm.

    Returns
    -------
    EventAlignment

    Raises
    ------
    MalformedInputError
        If any reward or retained run boundary lies outside the sampled time
        range, or the inner runs are reversed, out of time order or overlap.
    """
    reward_times = np.asarray(reward_times, dtype=np.float64).ravel()
    inner_runs = _as_runs(inner_runs)
    _check_run_order(inner_runs)

    reward_indices = nearest_preceding_index(sample_times, reward_times, method=method)

    run_ids = select_rewarded_runs(inner_runs, reward_times)
    rewarded = inner_runs[run_ids]
    rewarded_indices = align_runs(sample_times, rewarded, method=method)

    run_rewards = np.empty(len(run_ids), dtype=np.int64)
    assigned = np.zeros(len(reward_times), dtype=bool)
    for k, (start, stop) in enumerate(rewarded):
        inside = np.flatnonzero((reward_times >= start) & (reward_times <= stop))
        first = inside[np.argmin(reward_times[inside])]
        run_rewards[k] = first
        assigned[inside] = True
        if len(inside) > 1:
            warnings.warn(
                f"Inner run {run_ids[k]} contains {len(inside)} rewards; using the "
                f"first at t={reward_times[first]:.3f}.",
                UserWarning,
                stacklevel=2,
            )
    if not assigned.all():
        warnings.warn(
            f"{int((~assigned).sum())} reward(s) fall outside every inner run and "
            "do not start a rewarded run.",
            UserWarning,
            stacklevel=2,
        )

    outer = outer_runs(rewarded)
    outer_indices = align_runs(sample_times, outer, method=method)

    logger.info(
        "Aligned %d rewards; %d of %d inner runs rewarded, %d outer runs",
        len(reward_times),
        len(run_ids),
        len(inner_runs),
        len(outer),
    )
    return EventAlignment(
        reward_times=reward_times,
        reward_indices=reward_indices,
        inner_times=inner_runs,
        rewarded_run_ids=run_ids,
        rewarded_times=rewarded,
        rewarded_indices=rewarded_indices,
        run_rewards=run_rewards,
        outer_times=outer,
        outer_indices=outer_indices,
    )
