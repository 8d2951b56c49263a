"""Detection and bounded filling of tracking dropouts.

Each tracked marker is filled independently:

1. Lost samples are found and grouped into maximal gaps.
2. *All* lost positions are inpainted at once from the tracked samples by a
   sparse solve of the discrete Laplacian (see :func:`inpaint_nans`), then
   rounded to whole pixels.
3. Gaps longer than the fillable maximum are reset to lost, so a long gap is
   never reported with a fabricated position.

After filling, two composite markers are synthesized from the head markers:
``average`` (mean of both, lost unless both are usable) and ``mashup``
(average when possible, otherwise whichever head marker is usable).

Examples
--------
>>> import numpy as np
>>> from objvec.gaps import inpaint_nans
>>> inpaint_nans(np.array([0.0, np.nan, np.nan, 3.0]))
array([0., 1., 2., 3.])
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
import scipy.sparse
import scipy.sparse.linalg
from numpy.typing import NDArray

from objvec.config import ProcessingConfig
from objvec.errors import MalformedInputError, UnrecoverableGapError
from objvec.trajectory import (
    AVERAGE_MARKER,
    MASHUP_MARKER,
    GapRecord,
    TrackingFlags,
    Trajectory,
)

if TYPE_CHECKING:
    import pandas as pd

__all__ = [
    "FilledTrajectory",
    "add_composite_markers",
    "detect_gaps",
    "estimate_sample_rate",
    "fill_gaps",
    "inpaint_nans",
    "round_pixels",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilledTrajectory:
    """Output of :func:`fill_gaps`.

    Attributes
    ----------
    trajectory : Trajectory
        Filled positions, including the ``average`` and ``mashup`` markers.
    flags : TrackingFlags
        Lost / filled / unfilled masks for every marker.
    gaps : Mapping[str, tuple[GapRecord, ...]]
        Gaps of each tracked marker, in sample order.
    sample_rate : float
        Samples per second used to size the fillable maximum.
    max_gap : float
        Longest gap (in samples) that was interpolated.
    """

    trajectory: Trajectory
    flags: TrackingFlags
    gaps: Mapping[str, tuple[GapRecord, ...]]
    sample_rate: float
    max_gap: float

    def summary(self) -> pd.DataFrame:
        """Per-marker counts of lost, filled and unfilled samples and gaps.

        Returns
        -------
        pd.DataFrame
            Indexed by marker with columns ``n_lost``, ``n_filled``,
            ``n_unfilled``, ``n_gaps``, ``n_unfillable_gaps``.
        """
        import pandas as pd

        rows = []
        for marker, lost in self.flags.lost.items():
            gaps = self.gaps.get(marker, ())
            rows.append(
                {
                    "marker": marker,
                    "n_lost": int(lost.sum()),
                    "n_filled": int(self.flags.filled[marker].sum()),
                    "n_unfilled": int(self.flags.unfilled[marker].sum()),
                    "n_gaps": len(gaps),
                    "n_unfillable_gaps": sum(not gap.fillable for gap in gaps),
                }
            )
        return pd.DataFrame(rows).set_index("marker")


def round_pixels(values: NDArray[np.float64]) -> NDArray[np.float64]:
    """Round half away from zero to whole pixels; ``NaN`` is preserved."""
    values = np.asarray(values, dtype=np.float64)
    return np.sign(values) * np.floor(np.abs(values) + 0.5)


def estimate_sample_rate(
    timestamps: NDArray[np.float64],
    reference_index: int = 98,
) -> float:
    """Estimate samples per second from one pair of consecutive timestamps.

    Parameters
    ----------
    timestamps : NDArray[np.float64], shape (n_samples,)
        Strictly increasing sample times (seconds).
    reference_index : int, default=98
        Index of the first timestamp of the pair. Recordings too short for
        this index fall back to the first two samples.

    Returns
    -------
    float
        ``round(1 / (t[k + 1] - t[k]))``.

    Raises
    ------
    MalformedInputError
        If fewer than two samples are available or the step is not positive.
    """
    timestamps = np.asarray(timestamps, dtype=np.float64)
    if len(timestamps) < 2:
        raise MalformedInputError(
            f"Need at least 2 samples to estimate the sample rate, got {len(timestamps)}."
        )
    k = reference_index if reference_index + 1 < len(timestamps) else 0
    step = timestamps[k + 1] - timestamps[k]
    if not step > 0:
        raise MalformedInputError(
            f"Non-increasing timestamps at samples {k} and {k + 1} "
            f"({timestamps[k]} -> {timestamps[k + 1]}).",
            indices=(k + 1,),
        )
    return float(round_pixels(np.array(1.0 / step)))


def detect_gaps(
    lost: NDArray[np.bool_],
    max_gap: float,
    *,
    marker: str = "",
) -> tuple[GapRecord, ...]:
    """Group lost samples into maximal gaps.

    Gap starts are rising edges of ``lost`` and gap ends are falling edges.
    A gap still open at the final sample ends at ``len(lost)``.

    Parameters
    ----------
    lost : NDArray[np.bool_], shape (n_samples,)
        True where the marker is lost.
    max_gap : float
        Gaps with ``length <= max_gap`` are fillable.
    marker : str, optional
        Marker name stored on each record.

    Returns
    -------
    tuple of GapRecord

    Examples
    --------
    >>> import numpy as np
    >>> gaps = detect_gaps(np.array([1, 0, 0, 1, 1, 1], dtype=bool), max_gap=2)
    >>> [(g.start, g.stop, g.fillable) for g in gaps]
    [(0, 1, True), (3, 6, False)]
    """
    lost = np.asarray(lost, dtype=bool)
    edges = np.diff(np.concatenate([[0], lost.astype(np.int8), [0]]))
    starts = np.flatnonzero(edges == 1)
    stops = np.flatnonzero(edges == -1)
    return tuple(
        GapRecord(
            marker=marker,
            start=int(start),
            stop=int(stop),
            fillable=bool(stop - start <= max_gap),
        )
        for start, stop in zip(starts, stops, strict=True)
    )


def _second_difference_rows(unknown: NDArray[np.bool_]) -> scipy.sparse.csr_matrix:
    """Second-difference operator rows, one per unknown sample.

    Rows are centred on interior unknown samples. An unknown first or last
    sample has no centred row; the row at the known sample bordering that
    open gap takes its place.
    """
    n = len(unknown)
    interior = np.flatnonzero(unknown[1:-1]) + 1
    known = np.flatnonzero(~unknown)
    ends = []
    if unknown[0]:
        ends.append(known[0])
    if unknown[-1]:
        ends.append(known[-1])
    centers = np.sort(np.concatenate([interior, np.asarray(ends, dtype=np.int64)]))
    m = len(centers)
    rows = np.repeat(np.arange(m), 3)
    cols = (centers[:, np.newaxis] + np.array([-1, 0, 1])).ravel()
    data = np.tile([1.0, -2.0, 1.0], m)
    return scipy.sparse.csr_matrix((data, (rows, cols)), shape=(m, n))


def inpaint_nans(values: NDArray[np.float64]) -> NDArray[np.float64]:
    """Fill ``NaN`` entries of each column by solving the discrete Laplacian.

    Known samples are held fixed and unknown samples are chosen so the second
    difference vanishes at every unknown sample (and, for a gap open to
    either end of the recording, at the known sample bordering it). All gaps
    of a column are solved together as one sparse system. The result is
    linear interpolation inside a gap and linear extrapolation from the two
    nearest samples over an open gap. A column with a single known value is
    filled with that value.

    Parameters
    ----------
    values : NDArray[np.float64], shape (n_samples,) or (n_samples, n_columns)
        Signal with ``NaN`` at unknown samples.

    Returns
    -------
    NDArray[np.float64]
        Copy of ``values`` with every ``NaN`` replaced.

    Raises
    ------
    ValueError
        If a column has no known sample.
    """
    values = np.asarray(values, dtype=np.float64)
    squeeze = values.ndim == 1
    if squeeze:
        values = values[:, np.newaxis]
    filled = values.copy()

    for column in range(values.shape[1]):
        signal = values[:, column]
        unknown = np.isnan(signal)
        if not unknown.any():
            continue
        known = ~unknown
        if not known.any():
            raise ValueError(f"Column {column} has no known samples to inpaint from.")
        if known.sum() == 1 or len(signal) < 3:
            filled[unknown, column] = signal[known].mean()
            continue

        operator = _second_difference_rows(unknown).tocsc()
        a_unknown = operator[:, np.flatnonzero(unknown)]
        rhs = -(operator[:, np.flatnonzero(known)] @ signal[known])
        filled[unknown, column] = np.atleast_1d(
            scipy.sparse.linalg.spsolve(a_unknown.tocsc(), rhs)
        )

    return filled[:, 0] if squeeze else filled


def add_composite_markers(
    trajectory: Trajectory,
    unfilled: Mapping[str, NDArray[np.bool_]],
    head_markers: tuple[str, str] = ("light1", "light2"),
) -> tuple[Trajectory, dict[str, NDArray[np.bool_]]]:
    """Synthesize the ``average`` and ``mashup`` markers.

    Parameters
    ----------
    trajectory : Trajectory
        Filled trajectory.
    unfilled : Mapping[str, NDArray[np.bool_]]
        Unfilled masks of the head markers.
    head_markers : tuple of str
        The two markers mounted on the head.

    Returns
    -------
    trajectory : Trajectory
        Copy with the two composite markers added.
    unfilled : dict[str, NDArray[np.bool_]]
        Samples where each composite marker is lost.
    """
    first, second = head_markers
    missing = [name for name in head_markers if name not in trajectory.markers]
    if missing:
        raise MalformedInputError(
            f"Head markers {missing} not found in trajectory with markers "
            f"{list(trajectory.markers)}.\n"
            "  WHY: Composite markers and head direction need both head lights.\n"
            "  HOW: Set ProcessingConfig.head_markers to the recorded names."
        )

    a, b = trajectory[first], trajectory[second]
    a_ok, b_ok = ~unfilled[first], ~unfilled[second]
    both = a_ok & b_ok

    average = np.full_like(a, np.nan)
    average[both] = round_pixels((a[both] + b[both]) / 2)

    mashup = average.copy()
    mashup[a_ok & ~b_ok] = a[a_ok & ~b_ok]
    mashup[b_ok & ~a_ok] = b[b_ok & ~a_ok]

    composite_unfilled = {
        AVERAGE_MARKER: ~both,
        MASHUP_MARKER: ~(a_ok | b_ok),
    }
    combined = trajectory.with_markers({AVERAGE_MARKER: average, MASHUP_MARKER: mashup})
    return combined, composite_unfilled


def fill_gaps(
    trajectory: Trajectory,
    sample_rate: float | None = None,
    *,
    config: ProcessingConfig | None = None,
) -> FilledTrajectory:
    """Interpolate short tracking gaps and flag the ones left unfilled.

    Parameters
    ----------
    trajectory : Trajectory
        Raw trajectory; lost samples are ``NaN``. Not modified.
    sample_rate : float, optional
        Samples per second. Estimated with :func:`estimate_sample_rate` when
        omitted.
    config : ProcessingConfig, optional
        Gap length limit, frame size and head markers.

    Returns
    -------
    FilledTrajectory

    Raises
    ------
    UnrecoverableGapError
        If a tracked marker is lost in every sample.
    MalformedInputError
        If the head markers are missing from the trajectory.
    """
    config = config or ProcessingConfig()
    if sample_rate is None:
        sample_rate = estimate_sample_rate(
            trajectory.timestamps, config.sample_rate_reference_index
        )
    max_gap = config.max_gap_samples(sample_rate)
    width, height = config.frame_size
    n_samples = trajectory.n_samples

    filled_markers: dict[str, NDArray[np.float64]] = {}
    lost_flags: dict[str, NDArray[np.bool_]] = {}
    filled_flags: dict[str, NDArray[np.bool_]] = {}
    unfilled_flags: dict[str, NDArray[np.bool_]] = {}
    gaps: dict[str, tuple[GapRecord, ...]] = {}

    for marker in trajectory.tracked_markers:
        positions = np.array(trajectory[marker])
        lost = np.isnan(positions).any(axis=1)
        if lost.all():
            raise UnrecoverableGapError(marker, n_samples)
        positions[lost] = np.nan

        marker_gaps = detect_gaps(lost, max_gap, marker=marker)
        filled = round_pixels(inpaint_nans(positions))
        # Extrapolated ends can leave the camera frame.
        filled[lost] = np.clip(filled[lost], [1, 1], [width, height])
        for gap in marker_gaps:
            if not gap.fillable:
                filled[gap.start : gap.stop] = np.nan
            logger.debug(
                "%s gap [%d, %d) length %d %s",
                marker,
                gap.start,
                gap.stop,
                gap.length,
                "filled" if gap.fillable else "left unfilled",
            )

        unfilled = lost & np.isnan(filled[:, 0])
        filled_markers[marker] = filled
        lost_flags[marker] = lost
        filled_flags[marker] = lost & ~unfilled
        unfilled_flags[marker] = unfilled
        gaps[marker] = marker_gaps
        logger.info(
            "%s: %d lost samples, %d filled, %d unfilled (%d gaps, max fillable %g)",
            marker,
            lost.sum(),
            filled_flags[marker].sum(),
            unfilled.sum(),
            len(marker_gaps),
            max_gap,
        )

    filled_trajectory = Trajectory(
        trajectory.timestamps, filled_markers, trajectory.sample_ids
    )
    filled_trajectory, composite_unfilled = add_composite_markers(
        filled_trajectory, unfilled_flags, config.head_markers
    )
    for marker, unfilled in composite_unfilled.items():
        lost_flags[marker] = unfilled
        filled_flags[marker] = np.zeros(n_samples, dtype=bool)
        unfilled_flags[marker] = unfilled

    return FilledTrajectory(
        trajectory=filled_trajectory,
        flags=TrackingFlags(lost=lost_flags, filled=filled_flags, unfilled=unfilled_flags),
        gaps=gaps,
        sample_rate=float(sample_rate),
        max_gap=float(max_gap),
    )
