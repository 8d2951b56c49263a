"""Trajectory reconstruction and object-frame kinematics for tracking data.

**objvec** turns a gap-ridden multi-light position stream into continuous
trajectories and derives velocity, acceleration, head direction and the
vector to a tracked three-light object, both in the camera ("world") frame
and in a frame centred on and rotating with the object.

Core Objects (Top-Level Exports)
--------------------------------
Trajectory : Immutable multi-marker position record
Valid, LOST : Tagged marker positions
ProcessingConfig : All tunable parameters of a run
process_recording : Run every stage on one recording
RecordingResult : Aggregated output of a recording

Submodule Organization
----------------------
gaps : Gap detection, bounded interpolation, composite markers

    >>> from objvec.gaps import fill_gaps

events : Reward and run alignment to samples

    >>> from objvec.events import nearest_preceding_index, align_events

reference_frames : Object pose, orientation and the object frame

    >>> from objvec.reference_frames import to_object_frame, wrap_angle

behavior : Kinematics, head direction, object vector, run phases

    >>> from objvec.behavior import compute_kinematics, segment_run_phases

metrics : Skaggs spatial information

    >>> from objvec.metrics import spatial_information

errors : Error kinds (MalformedInputError, UnrecoverableGapError,
BoundaryNotFoundError, DegenerateGeometryError)

Logging
-------
Modules log through ``logging.getLogger(__name__)``. Enable stage summaries
with::

    import logging
    logging.getLogger("objvec").setLevel(logging.INFO)
"""

import logging

from objvec.config import ProcessingConfig
from objvec.pipeline import RecordingResult, process_recording
from objvec.trajectory import LOST, Trajectory, Valid

# Add NullHandler to prevent "No handler found" warnings if user doesn't configure logging
logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "LOST",
    "ProcessingConfig",
    "RecordingResult",
    "Trajectory",
    "Valid",
    "process_recording",
]
