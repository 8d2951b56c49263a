"""Tracked-marker trajectories and their validity bookkeeping.

A :class:`Trajectory` maps marker names to ``(n_samples, 2)`` position arrays
sharing one timestamp column. Positions are stored as float arrays in which a
row of ``NaN`` encodes a lost marker; scalar access goes through
:meth:`Trajectory.position`, which returns the tagged value :class:`Valid` or
:data:`LOST`. The numeric "invalid light" code of the acquisition system is
decoded once, in :func:`trajectory_from_array`, and never appears downstream.

Examples
--------
>>> import numpy as np
>>> from objvec.trajectory import LOST, Trajectory, Valid
>>> traj = Trajectory(
...     timestamps=np.array([0.0, 0.1, 0.2]),
...     markers={"light1": np.array([[1.0, 2.0], [np.nan, np.nan], [3.0, 4.0]])},
... )
>>> traj.position("light1", 0)
Valid(x=1.0, y=2.0)
>>> traj.position("light1", 1) is LOST
True
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Final

import numpy as np
from numpy.typing import NDArray

from objvec.config import ENCODED_MAX, FRAME_SIZE
from objvec.errors import MalformedInputError

__all__ = [
    "AVERAGE_MARKER",
    "COMPOSITE_MARKERS",
    "LOST",
    "MASHUP_MARKER",
    "GapRecord",
    "Lost",
    "Position",
    "TrackingFlags",
    "Trajectory",
    "Valid",
    "decode_light_positions",
    "trajectory_from_array",
]

AVERAGE_MARKER: Final = "average"
MASHUP_MARKER: Final = "mashup"
COMPOSITE_MARKERS: Final = (AVERAGE_MARKER, MASHUP_MARKER)


@dataclass(frozen=True)
class Valid:
    """A resolved marker position in pixel coordinates."""

    x: float
    y: float


class Lost:
    """Marker position that tracking could not resolve."""

    _instance: Lost | None = None

    def __new__(cls) -> Lost:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "LOST"

    def __bool__(self) -> bool:
        return False


LOST: Final = Lost()

Position = Valid | Lost


def _readonly(array: NDArray) -> NDArray:
    array = np.array(array, copy=True)
    array.flags.writeable = False
    return array


@dataclass(frozen=True)
class Trajectory:
    """Immutable multi-marker position record.

    Attributes
    ----------
    timestamps : NDArray[np.float64], shape (n_samples,)
        Strictly increasing sample times (seconds).
    markers : Mapping[str, NDArray[np.float64]]
        Marker name to positions of shape (n_samples, 2). ``NaN`` rows are
        lost samples.
    sample_ids : NDArray[np.int64], shape (n_samples,), optional
        Row identifiers from the acquisition file. Defaults to ``arange``.

    Raises
    ------
    MalformedInputError
        If timestamps are not strictly increasing or a marker array does not
        match the number of samples.
    """

    timestamps: NDArray[np.float64]
    markers: Mapping[str, NDArray[np.float64]]
    sample_ids: NDArray[np.int64] | None = field(default=None)

    def __post_init__(self) -> None:
        timestamps = np.asarray(self.timestamps, dtype=np.float64)
        if timestamps.ndim != 1:
            raise MalformedInputError(
                f"timestamps must be 1D, got shape {timestamps.shape}."
            )
        steps = np.diff(timestamps)
        bad = np.flatnonzero(~(steps > 0))
        if bad.size:
            raise MalformedInputError(
                "Sample timestamps are not strictly increasing.\n"
                "  WHY: Event alignment and derivatives assume ordered samples.\n"
                "  HOW: Sort the tracking rows or drop duplicated samples.",
                indices=bad + 1,
            )

        n_samples = len(timestamps)
        markers: dict[str, NDArray[np.float64]] = {}
        for name, positions in self.markers.items():
            positions = np.asarray(positions, dtype=np.float64)
            if positions.shape != (n_samples, 2):
                raise MalformedInputError(
                    f"Marker '{name}' has shape {positions.shape}, expected "
                    f"({n_samples}, 2).\n"
                    "  WHY: Every marker needs one (x, y) pair per sample.\n"
                    "  HOW: Check the number of light columns in the input."
                )
            markers[name] = _readonly(positions)

        if self.sample_ids is None:
            sample_ids = np.arange(n_samples, dtype=np.int64)
        else:
            sample_ids = np.asarray(self.sample_ids, dtype=np.int64)
            if sample_ids.shape != (n_samples,):
                raise MalformedInputError(
                    f"sample_ids has shape {sample_ids.shape}, expected ({n_samples},)."
                )

        object.__setattr__(self, "timestamps", _readonly(timestamps))
        object.__setattr__(self, "markers", MappingProxyType(markers))
        object.__setattr__(self, "sample_ids", _readonly(sample_ids))

    def __len__(self) -> int:
        return len(self.timestamps)

    def __iter__(self) -> Iterator[str]:
        return iter(self.markers)

    def __getitem__(self, marker: str) -> NDArray[np.float64]:
        try:
            return self.markers[marker]
        except KeyError:
            raise KeyError(
                f"Unknown marker '{marker}'. Available: {list(self.markers)}"
            ) from None

    @property
    def n_samples(self) -> int:
        return len(self.timestamps)

    @property
    def marker_names(self) -> tuple[str, ...]:
        return tuple(self.markers)

    @property
    def tracked_markers(self) -> tuple[str, ...]:
        """Physical markers, excluding the synthesized composites."""
        return tuple(name for name in self.markers if name not in COMPOSITE_MARKERS)

    def lost(self, marker: str) -> NDArray[np.bool_]:
        """Boolean mask of samples where ``marker`` is lost."""
        return np.isnan(self[marker]).any(axis=1)

    def position(self, marker: str, index: int) -> Position:
        """Tagged position of ``marker`` at sample ``index``."""
        x, y = self[marker][index]
        if np.isnan(x) or np.isnan(y):
            return LOST
        return Valid(float(x), float(y))

    def with_markers(self, markers: Mapping[str, NDArray[np.float64]]) -> Trajectory:
        """New trajectory on the same samples with ``markers`` replacing or
        extending the current ones."""
        merged = dict(self.markers)
        merged.update(markers)
        return Trajectory(self.timestamps, merged, self.sample_ids)


@dataclass(frozen=True)
class GapRecord:
    """A maximal run of lost samples for one marker.

    Attributes
    ----------
    marker : str
        Marker the gap belongs to.
    start : int
        First lost sample.
    stop : int
        One past the last lost sample.
    fillable : bool
        True when the gap is short enough to be interpolated.
    """

    marker: str
    start: int
    stop: int
    fillable: bool

    @property
    def length(self) -> int:
        return self.stop - self.start


@dataclass(frozen=True)
class TrackingFlags:
    """Per-marker validity masks produced by gap filling.

    ``filled`` and ``unfilled`` partition ``lost``: a lost sample is either
    interpolated or remains lost.

    Attributes
    ----------
    lost : Mapping[str, NDArray[np.bool_]]
        Sample was lost in the raw recording.
    filled : Mapping[str, NDArray[np.bool_]]
        Sample was lost and now holds an interpolated position.
    unfilled : Mapping[str, NDArray[np.bool_]]
        Sample was lost and is still lost.
    """

    lost: Mapping[str, NDArray[np.bool_]]
    filled: Mapping[str, NDArray[np.bool_]]
    unfilled: Mapping[str, NDArray[np.bool_]]

    def __post_init__(self) -> None:
        for name in ("lost", "filled", "unfilled"):
            masks = {key: _readonly(np.asarray(value, dtype=bool))
                     for key, value in getattr(self, name).items()}
            object.__setattr__(self, name, MappingProxyType(masks))
        for marker, lost in self.lost.items():
            filled = self.filled[marker]
            unfilled = self.unfilled[marker]
            if np.any(filled & unfilled) or np.any(lost != (filled | unfilled)):
                raise ValueError(
                    f"Inconsistent flags for marker '{marker}': filled and "
                    "unfilled must partition lost."
                )

    def valid(self, marker: str) -> NDArray[np.bool_]:
        """Samples holding a usable (tracked or filled) position."""
        return ~self.unfilled[marker]


def decode_light_positions(
    encoded: NDArray[np.float64],
    *,
    encoded_max: int = ENCODED_MAX,
    pixel_max: int = FRAME_SIZE[0] - 1,
    lost_code: float = 0.0,
) -> NDArray[np.float64]:
    """Convert encoded light coordinates to 1-based camera pixels.

    The acquisition system reports lights on a ``0..encoded_max`` grid with
    ``(lost_code, lost_code)`` meaning lost. Coordinates are rescaled as
    ``v * pixel_max / encoded_max + 1`` and lost pairs become ``NaN``.

    Parameters
    ----------
    encoded : NDArray, shape (n_samples, 2)
        Encoded (x, y) columns for one light.
    encoded_max : int, default=1023
        Largest encoded coordinate.
    pixel_max : int, default=639
        Largest 0-based camera pixel.
    lost_code : float, default=0.0
        Encoded value of a lost light.

    Returns
    -------
    NDArray[np.float64], shape (n_samples, 2)

    Examples
    --------
    >>> import numpy as np
    >>> decode_light_positions(np.array([[0.0, 0.0], [1023.0, 0.0]]))
    array([[ nan,  nan],
           [640.,   1.]])
    """
    encoded = np.asarray(encoded, dtype=np.float64)
    pixels = encoded * pixel_max / encoded_max + 1.0
    lost = np.all(encoded == lost_code, axis=1)
    pixels[lost] = np.nan
    return pixels


def trajectory_from_array(
    rows: NDArray[np.float64],
    *,
    marker_names: tuple[str, ...] | None = None,
    encoded_max: int = ENCODED_MAX,
    pixel_max: int = FRAME_SIZE[0] - 1,
    lost_code: float = 0.0,
) -> Trajectory:
    """Build a trajectory from a raw tracking matrix.

    Parameters
    ----------
    rows : NDArray, shape (n_samples, 2 + 2 * n_lights)
        Columns ``index, timestamp, x1, y1, x2, y2, ...``.
    marker_names : tuple of str, optional
        Names for the lights. Defaults to ``light1, light2, ...``.
    encoded_max, pixel_max, lost_code
        Passed to :func:`decode_light_positions`.

    Returns
    -------
    Trajectory

    Raises
    ------
    MalformedInputError
        If the column count is not ``2 + 2 * n_lights`` or names do not match.
    """
    rows = np.asarray(rows, dtype=np.float64)
    if rows.ndim != 2 or rows.shape[1] < 4 or rows.shape[1] % 2:
        raise MalformedInputError(
            f"Raw tracking matrix has shape {rows.shape}.\n\n"
            "WHAT: expected columns index, timestamp, then an (x, y) pair per light\n"
            "WHY: lights are read as consecutive coordinate pairs\n\n"
            "HOW to fix:\n"
            "1. Check that the file was loaded without a header row\n"
            "2. Check for a truncated trailing column"
        )
    n_lights = rows.shape[1] // 2 - 1
    if marker_names is None:
        marker_names = tuple(f"light{i + 1}" for i in range(n_lights))
    if len(marker_names) != n_lights:
        raise MalformedInputError(
            f"{len(marker_names)} marker names given for {n_lights} lights."
        )
    markers = {
        name: decode_light_positions(
            rows[:, 2 + 2 * i : 4 + 2 * i],
            encoded_max=encoded_max,
            pixel_max=pixel_max,
            lost_code=lost_code,
        )
        for i, name in enumerate(marker_names)
    }
    return Trajectory(
        timestamps=rows[:, 1],
        markers=markers,
        sample_ids=rows[:, 0].astype(np.int64),
    )
