"""Approach and retreat phases around each reward.

A rewarded run is split at the reward sample. The approach phase starts at
the last sample before the reward where the animal is farther from the
object vertex than ``factor`` times the mean object arm length; the retreat
phase ends at the first such sample after the reward.

Classes
-------
RunPhase
    Dataclass with the reward sample and both phase boundaries of one run.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from objvec.errors import BoundaryNotFoundError, MalformedInputError
from objvec.events._core import ObjectMarkerEvent

__all__ = ["RunPhase", "mean_arm_length", "segment_run_phases"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunPhase:
    """Reward-centred phase boundaries of one rewarded run.

    Attributes
    ----------
    run_id : int
        Index of the rewarded run.
    reward_index : int
        Sample at which the reward was delivered.
    pre_reward_index : int
        Last sample before the reward beyond the distance threshold.
    post_reward_index : int
        First sample after the reward beyond the distance threshold.
    """

    run_id: int
    reward_index: int
    pre_reward_index: int
    post_reward_index: int

    @property
    def approach(self) -> slice:
        """Samples from leaving the threshold to the reward."""
        return slice(self.pre_reward_index, self.reward_index + 1)

    @property
    def retreat(self) -> slice:
        """Samples from the reward to crossing the threshold again."""
        return slice(self.reward_index, self.post_reward_index + 1)


def mean_arm_length(events: Sequence[ObjectMarkerEvent]) -> float:
    """
    Mean length of both object arms over all object observations.

    Parameters
    ----------
    events : sequence of ObjectMarkerEvent
        Object poses in camera pixels.

    Returns
    -------
    float
        Mean of the arm A and arm C lengths, pooled across events.

    Raises
    ------
    MalformedInputError
        If ``events`` is empty.
    """
    if len(events) == 0:
        raise MalformedInputError("Cannot measure arm length without object events.")
    return float(np.mean(np.concatenate([event.arm_lengths() for event in events])))


def segment_run_phases(
    distance: NDArray[np.float64],
    reward_indices: NDArray[np.int64],
    arm_length: float,
    *,
    factor: float = 1.5,
    run_ids: Sequence[int] | None = None,
) -> list[RunPhase]:
    """
    Find approach/retreat boundaries around each reward.

    Parameters
    ----------
    distance : NDArray[np.float64], shape (n_samples,)
        World-frame distance to the object vertex; ``NaN`` never crosses.
    reward_indices : NDArray[np.int64], shape (n_runs,)
        Reward sample of each rewarded run.
    arm_length : float
        Mean object arm length (pixels).
    factor : float, default=1.5
        Threshold is ``factor * arm_length``.
    run_ids : sequence of int, optional
        Identifier of each run. Defaults to ``0 .. n_runs - 1``.

    Returns
    -------
    list of RunPhase

    Raises
    ------
    BoundaryNotFoundError
        If the threshold is never exceeded before or after a reward.

    Examples
    --------
    >>> import numpy as np
    >>> distance = np.array([40.0, 20.0, 5.0, 10.0, 35.0])
    >>> phases = segment_run_phases(distance, np.array([2]), arm_length=20.0)
    >>> phases[0].pre_reward_index, phases[0].post_reward_index
    (0, 4)
    """
    distance = np.asarray(distance, dtype=np.float64)
    reward_indices = np.asarray(reward_indices, dtype=np.int64).ravel()
    if run_ids is None:
        run_ids = range(len(reward_indices))
    threshold = factor * arm_length
    n_samples = len(distance)
    with np.errstate(invalid="ignore"):
        away = distance > threshold

    phases = []
    for run_id, reward in zip(run_ids, reward_indices, strict=True):
        reward = int(reward)
        before = np.flatnonzero(away[:reward])
        if before.size == 0:
            raise BoundaryNotFoundError(int(run_id), "pre", (0, reward), threshold)
        after = np.flatnonzero(away[reward + 1 :])
        if after.size == 0:
            raise BoundaryNotFoundError(
                int(run_id), "post", (reward + 1, n_samples), threshold
            )
        phase = RunPhase(
            run_id=int(run_id),
            reward_index=reward,
            pre_reward_index=int(before[-1]),
            post_reward_index=int(reward + 1 + after[0]),
        )
        logger.debug(
            "Run %d: approach from %d, reward at %d, retreat until %d",
            phase.run_id,
            phase.pre_reward_index,
            phase.reward_index,
            phase.post_reward_index,
        )
        phases.append(phase)
    return phases
