"""
Growth-phase classification of vegetation-index rasters.

Buckets each valid pixel into an ordinal phase by counting the
breakpoints it meets or exceeds.
"""

import dataclasses
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import numpy as np

from ..exceptions import InvalidBreakpointsError
from ..raster.model import Raster, RasterSeries

# Fill value for no-data pixels in written phase rasters
PHASE_NODATA = 255


@dataclass(frozen=True)
class PhaseScheme:
    """Breakpoints plus the display metadata for each phase."""

    name: str
    breakpoints: tuple[float, ...]
    below_category: Optional[int]  # None maps below-lowest values to no-data
    labels: dict[int, str]
    palette: dict[int, str]

    @property
    def categories(self) -> list[int]:
        """Phase codes assigned to valid values, ascending."""
        codes = list(range(1, len(self.breakpoints) + 1))
        if self.below_category is not None and self.below_category not in codes:
            codes.insert(0, self.below_category)
        return sorted(codes)

    def with_breakpoints(self, breakpoints: Sequence[float]) -> "PhaseScheme":
        return dataclasses.replace(self, breakpoints=tuple(float(b) for b in breakpoints))

    def with_below_category(self, below_category: Optional[int]) -> "PhaseScheme":
        return dataclasses.replace(self, below_category=below_category)


# Animation variant: 0 also stands for no data / bare soil
FIVE_CLASS = PhaseScheme(
    name="five_class",
    breakpoints=(0.2, 0.4, 0.6, 0.8),
    below_category=0,
    labels={
        0: "No Data/Bare Soil",
        1: "Initial Growth (0.2-0.4)",
        2: "Transplanting (0.4-0.6)",
        3: "Heading (0.6-0.8)",
        4: "Maturity (>0.8)",
    },
    palette={
        0: "#FFFFFF",
        1: "#FFD700",
        2: "#00FF00",
        3: "#32CD32",
        4: "#006400",
    },
)

# Snapshot variant: bare soil folded into the first growth phase
FOUR_CLASS = PhaseScheme(
    name="four_class",
    breakpoints=(-1.0, 0.4, 0.6, 0.8),
    below_category=0,
    labels={
        1: "Initial Growth (<0.4)",
        2: "Transplanting (0.4-0.6)",
        3: "Heading (0.6-0.8)",
        4: "Maturity (>0.8)",
    },
    palette={
        1: "#FFD700",
        2: "#00FF00",
        3: "#32CD32",
        4: "#006400",
    },
)

PHASE_SCHEMES = {
    FIVE_CLASS.name: FIVE_CLASS,
    FOUR_CLASS.name: FOUR_CLASS,
}


def validate_breakpoints(breakpoints: Iterable[float]) -> np.ndarray:
    """
    Check that breakpoints are non-empty, finite and strictly ascending.

    Args:
        breakpoints: Phase thresholds

    Returns:
        Breakpoints as a float64 array

    Raises:
        InvalidBreakpointsError: If the list is unusable
    """
    values = np.asarray(list(breakpoints), dtype=np.float64)

    if values.ndim != 1 or values.size == 0:
        raise InvalidBreakpointsError("At least one breakpoint is required")
    if not np.all(np.isfinite(values)):
        raise InvalidBreakpointsError(f"Breakpoints must be finite: {values.tolist()}")
    if np.any(np.diff(values) <= 0):
        raise InvalidBreakpointsError(f"Breakpoints must be strictly ascending: {values.tolist()}")
    if values.size >= PHASE_NODATA:
        raise InvalidBreakpointsError(f"At most {PHASE_NODATA - 1} breakpoints are supported")

    return values


def classify_raster(
    raster: Raster,
    breakpoints: Sequence[float],
    below_category: Optional[int] = 0,
) -> Raster:
    """
    Convert vegetation-index values to phase categories.

    For ascending breakpoints t1 < ... < tn, a value v gets the number of
    breakpoints with t_i <= v, so [t_i, t_i+1) maps to i. Values below t1
    get below_category (None makes them no-data). No-data stays no-data.

    Args:
        raster: Processed vegetation-index raster
        breakpoints: Ascending thresholds
        below_category: Category for values below the lowest breakpoint

    Returns:
        uint8 phase Raster with the same grid and timestamp
    """
    bins = validate_breakpoints(breakpoints)
    if below_category is not None and not 0 <= below_category < PHASE_NODATA:
        raise ValueError(f"below_category must be in [0, {PHASE_NODATA - 1}], got {below_category}")

    values = raster.data.astype(np.float64).filled(np.nan)
    nodata = np.ma.getmaskarray(raster.data) | np.isnan(values)

    categories = np.digitize(np.where(nodata, bins[0], values), bins, right=False)

    below = ~nodata & (categories == 0)
    if below_category is None:
        nodata = nodata | below
    else:
        categories[below] = below_category

    categories = np.where(nodata, PHASE_NODATA, categories).astype(np.uint8)

    return raster.replace(data=np.ma.MaskedArray(categories, mask=nodata))


def classify_series(
    series: Iterable[Raster],
    breakpoints: Sequence[float],
    below_category: Optional[int] = 0,
) -> RasterSeries:
    """
    Classify every raster of a series, preserving order and timestamps.

    Args:
        series: Processed rasters in time order
        breakpoints: Ascending thresholds
        below_category: Category for values below the lowest breakpoint

    Returns:
        Lazy, restartable RasterSeries of phase rasters
    """
    bins = tuple(validate_breakpoints(breakpoints).tolist())
    return RasterSeries(
        series,
        lambda raster: classify_raster(raster, bins, below_category=below_category),
    )


def classify_with_scheme(series: Iterable[Raster], scheme: PhaseScheme) -> RasterSeries:
    """Classify a series with a named PhaseScheme."""
    return classify_series(series, scheme.breakpoints, below_category=scheme.below_category)
