"""Behavioral measures derived from a filled trajectory.

Submodules
----------
kinematics
    Instantaneous and smoothed velocity and acceleration.
heading
    Head direction, world and object-relative.
object_vector
    Distance and bearing to the object vertex.
segmentation
    Approach and retreat phases around rewards.

Examples
--------
>>> from objvec.behavior import compute_kinematics, head_direction
>>> from objvec.behavior.segmentation import RunPhase, segment_run_phases
"""

from objvec.behavior.heading import head_direction, object_relative_head_direction
from objvec.behavior.kinematics import (
    KinematicSet,
    Kinematics,
    MotionRecord,
    compute_kinematics,
    instantaneous_kinematics,
    object_relative_motion,
    smoothed_kinematics,
)
from objvec.behavior.object_vector import (
    ObjectRelativeVector,
    ObjectVector,
    object_relative_vector,
    object_vector,
)
from objvec.behavior.segmentation import RunPhase, mean_arm_length, segment_run_phases

__all__ = [
    "KinematicSet",
    "Kinematics",
    "MotionRecord",
    "ObjectRelativeVector",
    "ObjectVector",
    "RunPhase",
    "compute_kinematics",
    "head_direction",
    "instantaneous_kinematics",
    "mean_arm_length",
    "object_relative_head_direction",
    "object_relative_motion",
    "object_relative_vector",
    "object_vector",
    "segment_run_phases",
    "smoothed_kinematics",
]
