"""Single-cell spatial metrics.

>>> from objvec.metrics import spatial_information
"""

from objvec.metrics.spatial_information import (
    SpatialInformation,
    occupancy_mask,
    spatial_information,
)

__all__ = ["SpatialInformation", "occupancy_mask", "spatial_information"]
