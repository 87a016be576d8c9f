"""
Per-phase maximum-extent compositing.

For each phase, counts how many acquisition dates every pixel spent in
that phase, finds the region-wide maximum of that count, and builds the
max composite of the pixels that ever reached the phase.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np
from rasterstats import zonal_stats

from ..exceptions import EmptySeriesError
from ..raster.model import Raster


@dataclass(frozen=True)
class PhaseExtent:
    """Occurrence statistics for one phase across a series."""

    phase: int
    occurrence: Raster  # Dates spent in the phase, per pixel
    max_count: Optional[int]  # Region-wide maximum of occurrence
    max_extent: Raster  # True where occurrence reaches max_count
    composite: Raster  # Phase code where the pixel ever had it

    @property
    def area_pixels(self) -> int:
        """Number of pixels that reached the phase at least once."""
        return int(self.composite.valid.sum())


def _stack(series: Iterable[Raster]) -> tuple[np.ma.MaskedArray, Raster]:
    rasters = list(series)
    if not rasters:
        raise EmptySeriesError("Phase series is empty")
    return np.ma.stack([r.data for r in rasters]), rasters[0]


def phase_occurrence(series: Iterable[Raster], phase: int) -> Raster:
    """
    Count, per pixel, the dates on which it was in a phase.

    Pixels that are no-data on every date stay no-data.

    Args:
        series: Phase rasters in time order
        phase: Phase code

    Returns:
        int16 count Raster on the series grid
    """
    stack, first = _stack(series)
    hits = (stack == phase).filled(False)
    counts = hits.sum(axis=0).astype(np.int16)
    never_valid = np.ma.getmaskarray(stack).all(axis=0)

    return first.replace(data=np.ma.MaskedArray(counts, mask=never_valid), timestamp=None)


def max_phase_composite(series: Iterable[Raster], phase: int) -> Raster:
    """
    Max composite of the series restricted to one phase.

    Args:
        series: Phase rasters in time order
        phase: Phase code

    Returns:
        uint8 Raster holding ``phase`` where any date had it, no-data elsewhere
    """
    stack, first = _stack(series)
    only_phase = np.ma.masked_where(np.ma.getmaskarray(stack) | (stack.filled(0) != phase), stack)
    composite = only_phase.max(axis=0)

    return first.replace(
        data=np.ma.MaskedArray(composite.filled(0).astype(np.uint8), mask=np.ma.getmaskarray(composite)),
        timestamp=None,
    )


def region_max(raster: Raster, geometry) -> Optional[float]:
    """
    Maximum valid value of a raster within a region.

    Args:
        raster: Raster to reduce
        geometry: Region geometry in the raster CRS

    Returns:
        Maximum value, or None if the region holds no valid pixel
    """
    nodata = -1.0
    values = raster.data.astype(np.float64).filled(nodata)

    stats = zonal_stats(
        [geometry],
        values,
        affine=raster.transform,
        nodata=nodata,
        stats=["max"],
    )
    return stats[0]["max"]


def phase_max_extent(series: Iterable[Raster], phase: int, geometry) -> PhaseExtent:
    """
    Occurrence, region maximum and max composite for one phase.

    Args:
        series: Phase rasters in time order (restartable)
        phase: Phase code
        geometry: Region geometry in the series CRS

    Returns:
        PhaseExtent
    """
    occurrence = phase_occurrence(series, phase)
    maximum = region_max(occurrence, geometry)
    max_count = None if maximum is None else int(maximum)

    reached = occurrence.data.filled(0) == max_count if max_count else np.zeros(occurrence.shape, dtype=bool)
    max_extent = occurrence.replace(data=np.ma.MaskedArray(reached, mask=~reached))

    return PhaseExtent(
        phase=phase,
        occurrence=occurrence,
        max_count=max_count,
        max_extent=max_extent,
        composite=max_phase_composite(series, phase),
    )


def phase_extents(series, phases: Iterable[int], geometry) -> list[PhaseExtent]:
    """Compute PhaseExtent for each phase code, in the given order."""
    series = list(series)
    return [phase_max_extent(series, phase, geometry) for phase in phases]
