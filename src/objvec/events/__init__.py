"""
Events module for objvec.

Aligns sparse behavioural events (rewards, zone runs) to the position
sample grid.

Public API
----------
Records:
    ObjectMarkerEvent : Object pose reported with a reward
    EventAlignment : Rewards and runs with their sample indices

Table Adapters:
    validate_events_dataframe : Validate events DataFrame structure
    object_events_from_dataframe : Group object marker rows into events
    inner_runs_from_dataframe : Extract inner-run intervals

Alignment:
    nearest_preceding_index : Last sample strictly before each event
    select_rewarded_runs : Inner runs containing a reward
    outer_runs : Intervals between rewarded inner runs
    align_runs : Sample indices of run boundaries
    align_events : Full reward/run alignment for a recording

Examples
--------
>>> import numpy as np
>>> from objvec.events import nearest_preceding_index
>>> nearest_preceding_index(np.array([4.9, 5.1]), np.array([5.0]))
array([0])
"""

from objvec.events._core import (
    ObjectMarkerEvent,
    inner_runs_from_dataframe,
    object_events_from_dataframe,
    validate_events_dataframe,
)
from objvec.events.alignment import nearest_preceding_index
from objvec.events.runs import (
    EventAlignment,
    align_events,
    align_runs,
    outer_runs,
    select_rewarded_runs,
)

__all__ = [
    "EventAlignment",
    "ObjectMarkerEvent",
    "align_events",
    "align_runs",
    "inner_runs_from_dataframe",
    "nearest_preceding_index",
    "object_events_from_dataframe",
    "outer_runs",
    "select_rewarded_runs",
    "validate_events_dataframe",
]
