"""Processing parameters for a single recording.

All tunables of the pipeline live on one frozen dataclass so a result can be
traced back to the exact settings that produced it.

Examples
--------
>>> from objvec.config import ProcessingConfig
>>> config = ProcessingConfig(smoothing_window_seconds=0.2)
>>> config.smoothing_window_samples(30)
6
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Literal

__all__ = [
    "ACQUISITION_SIZE",
    "ENCODED_MAX",
    "FRAME_SIZE",
    "ProcessingConfig",
]

# Plexon encodes tracked lights on a 0-1023 grid with 0 meaning "lost".
ENCODED_MAX = 1023
# Native camera resolution (pixels).
FRAME_SIZE = (640, 480)
# Resolution of the object marker annotations.
ACQUISITION_SIZE = (1024, 768)

AngleWrap = Literal["circular", "remainder"]
AlignmentMethod = Literal["search", "merge"]


@dataclass(frozen=True)
class ProcessingConfig:
    """Parameters controlling gap filling, kinematics and segmentation.

    Attributes
    ----------
    smoothing_window_seconds : float, default=0.1
        Time span of the displacement used for smoothed velocity.
    max_gap_seconds : float, default=0.5
        Longest gap that is interpolated; longer gaps stay lost.
    sample_rate_reference_index : int, default=98
        Index of the first of the two consecutive timestamps used to estimate
        the sample rate. Early samples are skipped because acquisition start-up
        can produce irregular intervals.
    phase_distance_factor : float, default=1.5
        Multiple of the mean object arm length the animal must exceed to leave
        the reward phase.
    frame_size : tuple of int, default=(640, 480)
        Camera frame (width, height) in pixels; filled positions are clipped
        to ``[1, width] x [1, height]``.
    acquisition_size : tuple of int, default=(1024, 768)
        Resolution of the object marker coordinates.
    angle_wrap : {"circular", "remainder"}, default="circular"
        How an object-relative angle outside (-pi, pi] is brought back into
        range. ``"circular"`` wraps modulo 2*pi. ``"remainder"`` keeps the
        legacy ``rem(angle, pi)`` output of earlier processed datasets.
    head_markers : tuple of str, default=("light1", "light2")
        Markers defining head direction and the composite markers.
    vector_marker : str, default="mashup"
        Marker used for the object vector.
    alignment_method : {"search", "merge"}, default="search"
        Event alignment algorithm; both give identical indices.
    """

    smoothing_window_seconds: float = 0.1
    max_gap_seconds: float = 0.5
    sample_rate_reference_index: int = 98
    phase_distance_factor: float = 1.5
    frame_size: tuple[int, int] = FRAME_SIZE
    acquisition_size: tuple[int, int] = ACQUISITION_SIZE
    angle_wrap: AngleWrap = "circular"
    head_markers: tuple[str, str] = field(default=("light1", "light2"))
    vector_marker: str = "mashup"
    alignment_method: AlignmentMethod = "search"

    def __post_init__(self) -> None:
        if self.smoothing_window_seconds <= 0:
            raise ValueError(
                f"smoothing_window_seconds must be positive, got "
                f"{self.smoothing_window_seconds}.\n"
                "  WHY: Smoothed velocity divides by the window length.\n"
                "  HOW: Use a window such as 0.1 seconds."
            )
        if self.max_gap_seconds < 0:
            raise ValueError(
                f"max_gap_seconds must be non-negative, got {self.max_gap_seconds}."
            )
        if self.sample_rate_reference_index < 0:
            raise ValueError(
                "sample_rate_reference_index must be non-negative, got "
                f"{self.sample_rate_reference_index}."
            )
        if self.phase_distance_factor <= 0:
            raise ValueError(
                "phase_distance_factor must be positive, got "
                f"{self.phase_distance_factor}."
            )
        if self.angle_wrap not in ("circular", "remainder"):
            raise ValueError(
                f"Invalid angle_wrap: '{self.angle_wrap}'.\n"
                "  WHY: Only 'circular' and 'remainder' policies exist.\n"
                "  HOW: Use 'circular' unless matching legacy output."
            )
        if self.alignment_method not in ("search", "merge"):
            raise ValueError(
                f"Invalid alignment_method: '{self.alignment_method}'. "
                "Use 'search' or 'merge'."
            )
        if len(self.head_markers) != 2 or self.head_markers[0] == self.head_markers[1]:
            raise ValueError(
                f"head_markers must name two distinct markers, got {self.head_markers}."
            )

    def smoothing_window_samples(self, sample_rate: float) -> int:
        """Number of samples spanned by the smoothing window (at least 1).

        Halves round away from zero, so a 0.1 s window at 25 Hz spans 3
        samples.
        """
        return max(1, math.floor(sample_rate * self.smoothing_window_seconds + 0.5))

    def max_gap_samples(self, sample_rate: float) -> float:
        """Longest fillable gap in samples."""
        return sample_rate * self.max_gap_seconds
