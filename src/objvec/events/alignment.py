"""
Alignment of event timestamps to position samples.

An event is assigned the *nearest preceding* sample: the largest index ``i``
with ``sample_times[i] < event_time``. A sample taken at exactly the event
time is excluded, so the event maps to the sample before it.

Two interchangeable algorithms are provided:

- ``"search"``: one binary search per event, O(M log N).
- ``"merge"``: a single two-pointer pass over both sorted sequences, O(N + M).

Events need not be sorted; results are returned in input order.
"""

from __future__ import annotations

from typing import Literal

import numpy as np
from numpy.typing import NDArray

from objvec.errors import MalformedInputError

__all__ = ["nearest_preceding_index"]


def _validate_sample_times(sample_times: NDArray[np.float64]) -> None:
    if sample_times.ndim != 1 or len(sample_times) < 2:
        raise MalformedInputError(
            f"sample_times must be 1D with at least 2 samples, got shape "
            f"{sample_times.shape}."
        )
    bad = np.flatnonzero(~(np.diff(sample_times) > 0))
    if bad.size:
        raise MalformedInputError(
            "Sample timestamps are not strictly increasing.\n"
            "  WHY: Nearest-preceding lookup needs ordered samples.\n"
            "  HOW: Sort the tracking rows or drop duplicated samples.",
            indices=bad + 1,
        )


def _search(
    sample_times: NDArray[np.float64], event_times: NDArray[np.float64]
) -> NDArray[np.int64]:
    # side="left" puts an event equal to a sample before it, excluding that sample
    return np.searchsorted(sample_times, event_times, side="left").astype(np.int64) - 1


def _merge(
    sample_times: NDArray[np.float64], event_times: NDArray[np.float64]
) -> NDArray[np.int64]:
    order = np.argsort(event_times, kind="stable")
    indices = np.empty(len(event_times), dtype=np.int64)
    i = 0
    n_samples = len(sample_times)
    for k in order:
        event = event_times[k]
        while i < n_samples and sample_times[i] < event:
            i += 1
        indices[k] = i - 1
    return indices


def nearest_preceding_index(
    sample_times: NDArray[np.float64],
    event_times: NDArray[np.float64],
    *,
    method: Literal["search", "merge"] = "search",
) -> NDArray[np.int64]:
    """
    Map each event to the last sample strictly before it.

    Parameters
    ----------
    sample_times : NDArray[np.float64], shape (n_samples,)
        Strictly increasing sample times.
    event_times : NDArray[np.float64], shape (n_events,)
        Event times, in any order.
    method : {"search", "merge"}, default="search"
        Binary search per event or a single merge pass. Results are identical.

    Returns
    -------
    NDArray[np.int64], shape (n_events,)
        Sample index for each event, in input order. For every event,
        ``sample_times[i] < event <= sample_times[i + 1]``.

    Raises
    ------
    MalformedInputError
        If sample times are not strictly increasing, an event time is NaN, or
        an event lies at or before the first sample or after the last.
    ValueError
        If ``method`` is not recognised.

    Examples
    --------
    >>> import numpy as np
    >>> from objvec.events.alignment import nearest_preceding_index
    >>> samples = np.array([4.8, 4.9, 5.1, 5.2])
    >>> nearest_preceding_index(samples, np.array([5.0, 5.15, 5.1]))
    array([1, 2, 1])
    """
    sample_times = np.asarray(sample_times, dtype=np.float64)
    event_times = np.atleast_1d(np.asarray(event_times, dtype=np.float64))
    _validate_sample_times(sample_times)

    if event_times.size == 0:
        return np.empty(0, dtype=np.int64)

    undefined = np.flatnonzero(np.isnan(event_times))
    if undefined.size:
        raise MalformedInputError(
            "Event times contain NaN.\n"
            "  WHY: An undefined time cannot be placed among samples.\n"
            "  HOW: Drop events without a timestamp.",
            indices=undefined,
        )

    outside = np.flatnonzero(
        (event_times <= sample_times[0]) | (event_times > sample_times[-1])
    )
    if outside.size:
        raise MalformedInputError(
            f"Events fall outside the sampled time range "
            f"({sample_times[0]:.4f}, {sample_times[-1]:.4f}].\n"
            "  WHY: Every event needs a preceding and a following sample.\n"
            "  HOW: Check that the event file belongs to this recording, or "
            "trim events recorded after tracking stopped.",
            indices=outside,
        )

    match method:
        case "search":
            return _search(sample_times, event_times)
        case "merge":
            return _merge(sample_times, event_times)
        case _:
            raise ValueError(
                f"Invalid alignment method: '{method}'. Use 'search' or 'merge'."
            )
