"""Error kinds raised while processing a recording.

Every error is fatal to the recording being processed: no stage retries and
no partial result is emitted. Messages carry a bracketed error code and the
context (marker, event indices, sample range) needed to find the problem in
the source recording.

Error codes
-----------
E2001 : MalformedInputError
    Non-increasing timestamps, mismatched marker columns, or an event outside
    the sampled time range.
E2002 : UnrecoverableGapError
    A marker has no valid sample anywhere in the recording.
E2003 : BoundaryNotFoundError
    The approach/retreat distance threshold is never crossed around a reward.
E2004 : DegenerateGeometryError
    Object arm marker coincides with the vertex marker, so orientation is
    undefined.

A gap longer than the fillable maximum is *not* an error; those samples are
tagged ``unfilled`` and stay ``Lost``.
"""

from __future__ import annotations

from collections.abc import Sequence

__all__ = [
    "BoundaryNotFoundError",
    "DegenerateGeometryError",
    "MalformedInputError",
    "ObjvecError",
    "UnrecoverableGapError",
]


def _format_indices(indices: Sequence[int], limit: int = 10) -> str:
    shown = ", ".join(str(int(i)) for i in list(indices)[:limit])
    if len(indices) > limit:
        shown += f", ... ({len(indices)} total)"
    return f"[{shown}]"


class ObjvecError(Exception):
    """Base class for recording-processing failures.

    Parameters
    ----------
    message : str
        Human-readable description (WHAT / WHY / HOW layout).
    error_code : str
        Code prefixed to the message in brackets.
    """

    error_code = "E2000"

    def __init__(self, message: str, error_code: str | None = None) -> None:
        if error_code is not None:
            self.error_code = error_code
        super().__init__(f"[{self.error_code}] {message}")


class MalformedInputError(ObjvecError, ValueError):
    """Input stream violates its structural contract.

    Attributes
    ----------
    indices : tuple of int
        Offending row or event indices, when known.
    """

    error_code = "E2001"

    def __init__(self, message: str, indices: Sequence[int] = ()) -> None:
        self.indices = tuple(int(i) for i in indices)
        if self.indices:
            message = f"{message}\n  Offending indices: {_format_indices(self.indices)}"
        super().__init__(message)


class UnrecoverableGapError(ObjvecError, ValueError):
    """A marker was never tracked, so there is nothing to interpolate from."""

    error_code = "E2002"

    def __init__(self, marker: str, n_samples: int) -> None:
        self.marker = marker
        self.n_samples = n_samples
        super().__init__(
            f"Marker '{marker}' has no valid sample in {n_samples} samples.\n\n"
            "WHAT: every position of this marker is lost\n"
            "WHY: gap filling needs at least one tracked sample as a boundary "
            "condition\n\n"
            "HOW to fix:\n"
            "1. Check that the marker columns in the tracking file are correct\n"
            "2. Drop the marker from the recording if it was never lit"
        )


class BoundaryNotFoundError(ObjvecError, RuntimeError):
    """Distance threshold never crossed on one side of a reward."""

    error_code = "E2003"

    def __init__(
        self,
        run_id: int,
        side: str,
        search_range: tuple[int, int],
        threshold: float,
    ) -> None:
        self.run_id = run_id
        self.side = side
        self.search_range = search_range
        self.threshold = threshold
        start, stop = search_range
        super().__init__(
            f"No {side}-reward boundary for run {run_id}.\n\n"
            f"WHAT: object distance never exceeds {threshold:.2f} px in samples "
            f"[{start}, {stop})\n"
            "WHY: the animal must leave the object's vicinity before and after "
            "each reward for the phases to be defined\n\n"
            "HOW to fix:\n"
            "1. Inspect tracking around this run for long unfilled gaps\n"
            "2. Lower phase_distance_factor in ProcessingConfig"
        )


class DegenerateGeometryError(ObjvecError, ValueError):
    """Object markers coincide, so the object orientation is undefined."""

    error_code = "E2004"

    def __init__(self, sample_indices: Sequence[int]) -> None:
        self.indices = tuple(int(i) for i in sample_indices)
        first = self.indices[0] if self.indices else -1
        last = self.indices[-1] if self.indices else -1
        super().__init__(
            f"Object arm A coincides with the vertex in {len(self.indices)} "
            f"samples (first {first}, last {last}).\n\n"
            "WHAT: orientation = -atan2(armA - vertex) has a zero-length vector\n"
            "WHY: the object frame cannot be oriented without a distinct arm\n\n"
            "HOW to fix:\n"
            "1. Check the object marker table for duplicated rows\n"
            f"2. Samples affected: {_format_indices(self.indices)}"
        )
