"""
Core event records and table adapters for the events module.

This module provides:
- Result dataclass: ObjectMarkerEvent
- Validation helper: validate_events_dataframe
- Table adapters: object_events_from_dataframe, inner_runs_from_dataframe

Event tables are read elsewhere; the adapters here only select rows by label,
group object marker rows and convert coordinates into camera pixels.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from objvec.config import ACQUISITION_SIZE, FRAME_SIZE
from objvec.errors import MalformedInputError

if TYPE_CHECKING:
    import pandas as pd


@dataclass(frozen=True)
class ObjectMarkerEvent:
    """
    Object pose reported with a reward delivery.

    The object is an angle with a light on each arm end and one on the
    vertex. Arm A is the arm to the right of the vertex.

    Attributes
    ----------
    timestamp : float
        Reward time (seconds).
    arm_a : NDArray[np.float64], shape (2,)
        Arm A light in camera pixels.
    vertex : NDArray[np.float64], shape (2,)
        Vertex light in camera pixels.
    arm_c : NDArray[np.float64], shape (2,)
        Arm C light in camera pixels.

    Examples
    --------
    >>> import numpy as np
    >>> event = ObjectMarkerEvent(
    ...     timestamp=12.5,
    ...     arm_a=np.array([110.0, 100.0]),
    ...     vertex=np.array([100.0, 100.0]),
    ...     arm_c=np.array([100.0, 110.0]),
    ... )
    >>> float(event.arm_lengths()[0])
    10.0
    """

    timestamp: float
    arm_a: NDArray[np.float64]
    vertex: NDArray[np.float64]
    arm_c: NDArray[np.float64]

    def arm_lengths(self) -> NDArray[np.float64]:
        """Lengths of the (arm A, vertex) and (vertex, arm C) segments."""
        return np.array(
            [
                np.linalg.norm(np.asarray(self.arm_a) - np.asarray(self.vertex)),
                np.linalg.norm(np.asarray(self.arm_c) - np.asarray(self.vertex)),
            ]
        )


def validate_events_dataframe(
    df: pd.DataFrame,
    *,
    time_columns: Sequence[str] = ("timestamp",),
    required_columns: Sequence[str] = (),
    table: str = "event table",
) -> None:
    """
    Check that an event table can be turned into typed event records.

    Parameters
    ----------
    df : pd.DataFrame
        Loaded event table.
    time_columns : sequence of str, default=("timestamp",)
        Columns holding times in seconds; they must be numeric and complete.
    required_columns : sequence of str, optional
        Other columns the caller reads (labels, coordinates).
    table : str, default="event table"
        Name of the table, used in error messages.

    Raises
    ------
    TypeError
        If ``df`` is not a DataFrame.
    MalformedInputError
        If a column is missing, or a time column is non-numeric or holds
        missing values.
    """
    import pandas as pd

    if not isinstance(df, pd.DataFrame):
        raise TypeError(
            f"Expected pd.DataFrame for the {table}, got {type(df).__name__}.\n"
            "  HOW: Load the table with pd.read_csv before processing."
        )

    missing = [col for col in [*time_columns, *required_columns] if col not in df.columns]
    if missing:
        raise MalformedInputError(
            f"The {table} is missing columns {missing}.\n"
            f"  WHY: These columns are read to build the {table} records.\n"
            "  HOW: Rename the table columns or pass the column names explicitly.\n"
            f"  Available columns: {list(df.columns)}"
        )

    for column in time_columns:
        if not pd.api.types.is_numeric_dtype(df[column]):
            raise MalformedInputError(
                f"Time column '{column}' of the {table} contains non-numeric values.\n"
                "  WHY: Event times are seconds on the tracking clock.\n"
                f"  HOW: Convert with df['{column}'] = df['{column}'].astype(float)"
            )
        absent = np.flatnonzero(df[column].isna().to_numpy())
        if absent.size:
            raise MalformedInputError(
                f"Time column '{column}' of the {table} has missing values.\n"
                "  WHY: An event without a time cannot be placed among samples.\n"
                "  HOW: Drop the incomplete rows.",
                indices=absent,
            )


def _rows_with_label(df: pd.DataFrame, label_column: str, label: str) -> pd.DataFrame:
    labels = df[label_column].astype(str).str.lower()
    return df[labels == label.lower()]


def object_events_from_dataframe(
    df: pd.DataFrame,
    *,
    label: str = "lego",
    label_column: str = "label",
    timestamp_column: str = "timestamp",
    x_column: str = "x",
    y_column: str = "y",
    acquisition_size: tuple[int, int] = ACQUISITION_SIZE,
    frame_size: tuple[int, int] = FRAME_SIZE,
) -> list[ObjectMarkerEvent]:
    """
    Group object marker rows into one event per reward.

    Rows whose label matches ``label`` (case-insensitive) come in consecutive
    triples: arm A, vertex, arm C. The timestamp of the first row of each
    triple is the reward time. Coordinates are rescaled from the acquisition
    resolution to camera pixels.

    Parameters
    ----------
    df : pd.DataFrame
        Object marker table.
    label : str, default="lego"
        Label identifying object marker rows.
    label_column, timestamp_column, x_column, y_column : str
        Column names.
    acquisition_size : tuple of int, default=(1024, 768)
        Resolution of the marker coordinates.
    frame_size : tuple of int, default=(640, 480)
        Camera resolution.

    Returns
    -------
    list of ObjectMarkerEvent
        In table order.

    Raises
    ------
    MalformedInputError
        If columns are missing or the matching rows are not a multiple of 3.

    Examples
    --------
    >>> import pandas as pd
    >>> df = pd.DataFrame(
    ...     {
    ...         "label": ["Lego", "Lego", "Lego", "inner"],
    ...         "timestamp": [5.0, 5.0, 5.0, 6.0],
    ...         "x": [1024.0, 512.0, 512.0, 0.0],
    ...         "y": [384.0, 384.0, 0.0, 0.0],
    ...     }
    ... )
    >>> events = object_events_from_dataframe(df)
    >>> events[0].arm_a
    array([640., 240.])
    """
    validate_events_dataframe(
        df,
        time_columns=[timestamp_column],
        required_columns=[label_column, x_column, y_column],
        table="object marker table",
    )
    rows = _rows_with_label(df, label_column, label)
    if len(rows) % 3:
        raise MalformedInputError(
            f"Found {len(rows)} '{label}' rows; object events need 3 rows each "
            "(arm A, vertex, arm C).\n"
            "  WHY: Each reward reports all three object lights.\n"
            "  HOW: Check the marker file for a missing or duplicated row."
        )

    scale = np.array(frame_size, dtype=np.float64) / np.array(acquisition_size)
    xy = rows[[x_column, y_column]].to_numpy(dtype=np.float64) * scale
    times = rows[timestamp_column].to_numpy(dtype=np.float64)
    return [
        ObjectMarkerEvent(
            timestamp=float(times[i]),
            arm_a=xy[i],
            vertex=xy[i + 1],
            arm_c=xy[i + 2],
        )
        for i in range(0, len(rows), 3)
    ]


def inner_runs_from_dataframe(
    df: pd.DataFrame,
    *,
    label: str = "inner",
    label_column: str = "label",
    start_column: str = "start_time",
    stop_column: str = "stop_time",
) -> NDArray[np.float64]:
    """
    Extract inner-zone run intervals.

    Parameters
    ----------
    df : pd.DataFrame
        Run table with one row per zone crossing.
    label : str, default="inner"
        Label of inner runs (case-insensitive).
    label_column, start_column, stop_column : str
        Column names.

    Returns
    -------
    NDArray[np.float64], shape (n_runs, 2)
        ``(start, stop)`` times in table order.

    Raises
    ------
    MalformedInputError
        If columns are missing or a run ends before it starts.
    """
    validate_events_dataframe(
        df,
        time_columns=[start_column, stop_column],
        required_columns=[label_column],
        table="run table",
    )
    rows = _rows_with_label(df, label_column, label)
    runs = rows[[start_column, stop_column]].to_numpy(dtype=np.float64)
    backwards = np.flatnonzero(runs[:, 1] < runs[:, 0])
    if backwards.size:
        raise MalformedInputError(
            "Inner runs end before they start.\n"
            f"  HOW: Check the '{start_column}' and '{stop_column}' columns.",
            indices=backwards,
        )
    return runs.reshape(-1, 2)
