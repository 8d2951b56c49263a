"""
Skaggs spatial information of a rate map.

Scores how much a cell's firing rate, conditioned on location, tells about
position compared with its overall mean rate. The rate and occupancy maps
are built elsewhere; this module only scores them.

References
----------
.. [1] Skaggs et al. (1993). An information-theoretic approach to
       deciphering the hippocampal code. NIPS.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

__all__ = ["SpatialInformation", "occupancy_mask", "spatial_information"]


@dataclass(frozen=True)
class SpatialInformation:
    """
    Result of :func:`spatial_information`.

    Attributes
    ----------
    info_per_second : float
        Bits per second.
    info_per_spike : float
        Bits per spike.
    occupancy_probability : NDArray[np.float64]
        Occupancy normalised over included bins; ``NaN`` for excluded bins.
    """

    info_per_second: float
    info_per_spike: float
    occupancy_probability: NDArray[np.float64]


def occupancy_mask(
    occupancy: NDArray[np.float64],
    occupancy_threshold: float | tuple[float, float],
) -> NDArray[np.bool_]:
    """
    Bins whose occupancy passes the threshold.

    Parameters
    ----------
    occupancy : NDArray[np.float64]
        Occupancy counts.
    occupancy_threshold : float or (float, float)
        A scalar keeps bins with ``occupancy > threshold``. A pair
        ``(low, high)`` keeps bins with ``low < occupancy < high``.

    Returns
    -------
    NDArray[np.bool_]
        True for included bins.

    Examples
    --------
    >>> import numpy as np
    >>> occupancy_mask(np.array([0, 1, 5, 10]), (0, 10))
    array([False,  True,  True, False])
    """
    occupancy = np.asarray(occupancy, dtype=np.float64)
    threshold = np.atleast_1d(np.asarray(occupancy_threshold, dtype=np.float64))
    with np.errstate(invalid="ignore"):
        match threshold.size:
            case 1:
                return occupancy > threshold[0]
            case 2:
                return (occupancy > threshold[0]) & (occupancy < threshold[1])
            case _:
                raise ValueError(
                    f"occupancy_threshold must be a scalar or a (low, high) pair, "
                    f"got {occupancy_threshold!r}.\n"
                    "  HOW: Use e.g. occupancy_threshold=0 or (0, 1000)."
                )


def spatial_information(
    rate_map: NDArray[np.float64],
    occupancy: NDArray[np.float64],
    mean_rate: float,
    occupancy_threshold: float | tuple[float, float] = 0.0,
) -> SpatialInformation:
    """
    Compute Skaggs spatial information per second and per spike.

    Parameters
    ----------
    rate_map : NDArray[np.float64]
        Firing rate per spatial bin (Hz). ``NaN`` bins are excluded.
    occupancy : NDArray[np.float64]
        Occupancy counts, same shape as ``rate_map``.
    mean_rate : float
        Overall mean firing rate (total spikes / total time).
    occupancy_threshold : float or (float, float), default=0.0
        Bins failing :func:`occupancy_mask` are excluded from both maps.

    Returns
    -------
    SpatialInformation

    Raises
    ------
    ValueError
        If the maps differ in shape.

    Notes
    -----
    With :math:`p_i` the occupancy probability of included bin :math:`i`,
    :math:`R_i` its rate and :math:`R_o` the mean rate:

    .. math::

        I_{sec} = \\sum_i p_i R_i \\log_2 \\frac{R_i}{R_o} \\qquad
        I_{spike} = \\sum_i p_i \\frac{R_i}{R_o} \\log_2 \\frac{R_i}{R_o}

    Excluded bins, bins with zero rate and a zero ``mean_rate`` contribute 0.

    Examples
    --------
    >>> import numpy as np
    >>> rate_map = np.full((3, 3), 2.0)
    >>> occupancy = np.full((3, 3), 10.0)
    >>> result = spatial_information(rate_map, occupancy, mean_rate=2.0)
    >>> result.info_per_second, result.info_per_spike
    (0.0, 0.0)
    """
    rate_map = np.asarray(rate_map, dtype=np.float64)
    occupancy = np.asarray(occupancy, dtype=np.float64)
    if rate_map.shape != occupancy.shape:
        raise ValueError(
            f"Rate map shape {rate_map.shape} does not match occupancy shape "
            f"{occupancy.shape}.\n"
            "  WHY: Bins are paired one-to-one.\n"
            "  HOW: Build both maps on the same spatial binning."
        )

    included = occupancy_mask(occupancy, occupancy_threshold)
    masked_occupancy = np.where(included, occupancy, np.nan)
    masked_rate = np.where(included, rate_map, np.nan)

    total = np.nansum(masked_occupancy)
    if total > 0:
        probability = masked_occupancy / total
    else:
        probability = np.full_like(masked_occupancy, np.nan)

    contributes = np.isfinite(masked_rate) & (masked_rate > 0) & np.isfinite(probability)
    if mean_rate == 0 or not contributes.any():
        return SpatialInformation(0.0, 0.0, probability)

    p = probability[contributes]
    ratio = masked_rate[contributes] / mean_rate
    log_ratio = np.log2(ratio)
    info_per_second = float(np.sum(p * masked_rate[contributes] * log_ratio))
    info_per_spike = float(np.sum(p * ratio * log_ratio))
    return SpatialInformation(info_per_second, info_per_spike, probability)
