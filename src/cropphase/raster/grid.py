"""
Analysis grid definition and resampling.

Re-expresses rasters on a common target grid (CRS, transform, shape)
using rasterio's warp with nearest-neighbour sampling.
"""

import math
from dataclasses import dataclass

import numpy as np
from rasterio.crs import CRS
from rasterio.transform import Affine, from_origin
from rasterio.warp import Resampling, reproject

from .model import Raster

# Nominal length of one degree at the equator, used to express a
# metric resolution on geographic grids
METERS_PER_DEGREE = 111320.0


@dataclass(frozen=True)
class Grid:
    """Target pixel grid shared by every raster after resampling."""

    crs: CRS
    transform: Affine
    width: int
    height: int

    def __post_init__(self):
        object.__setattr__(self, "crs", CRS.from_user_input(self.crs))

    @property
    def shape(self) -> tuple[int, int]:
        return (self.height, self.width)

    @classmethod
    def from_bounds(
        cls,
        bounds: tuple[float, float, float, float],
        crs,
        resolution: float,
    ) -> "Grid":
        """
        Build a grid covering bounds, snapped outward to whole pixels.

        Args:
            bounds: (minx, miny, maxx, maxy) in ``crs`` units
            crs: Target coordinate reference system
            resolution: Pixel size in ``crs`` units

        Returns:
            Grid instance
        """
        if resolution <= 0:
            raise ValueError(f"Resolution must be positive, got {resolution}")

        minx, miny, maxx, maxy = bounds
        left = math.floor(minx / resolution) * resolution
        bottom = math.floor(miny / resolution) * resolution
        right = math.ceil(maxx / resolution) * resolution
        top = math.ceil(maxy / resolution) * resolution

        width = max(1, int(round((right - left) / resolution)))
        height = max(1, int(round((top - bottom) / resolution)))

        return cls(
            crs=crs,
            transform=from_origin(left, top, resolution, resolution),
            width=width,
            height=height,
        )

    @classmethod
    def of(cls, raster: Raster) -> "Grid":
        """Grid a raster currently sits on."""
        height, width = raster.shape
        return cls(crs=raster.crs, transform=raster.transform, width=width, height=height)

    def matches(self, raster: Raster) -> bool:
        """True if the raster already sits on this grid."""
        return (
            raster.shape == self.shape
            and raster.crs == self.crs
            and np.allclose(tuple(raster.transform)[:6], tuple(self.transform)[:6], rtol=0.0, atol=1e-9)
        )


def resolution_in_crs_units(crs, meters: float) -> float:
    """
    Express a metric pixel size in the units of a CRS.

    Geographic CRSs get the nominal equatorial conversion; projected CRSs
    are assumed to be in meters.

    Args:
        crs: Target CRS
        meters: Pixel size in meters

    Returns:
        Pixel size in CRS units
    """
    if CRS.from_user_input(crs).is_geographic:
        return meters / METERS_PER_DEGREE
    return meters


def resample(
    raster: Raster,
    grid: Grid,
    resampling: Resampling = Resampling.nearest,
) -> Raster:
    """
    Resample a raster onto a grid.

    No-data pixels stay no-data; destination pixels that receive no
    source data are no-data. The dtype and timestamp are preserved.

    Args:
        raster: Input raster
        grid: Target grid
        resampling: Rasterio resampling method (default nearest)

    Returns:
        New Raster on ``grid``
    """
    if grid.matches(raster):
        return raster

    # Carry no-data through the warp as NaN
    source = raster.data.astype(np.float64).filled(np.nan)
    destination = np.full(grid.shape, np.nan, dtype=np.float64)

    reproject(
        source=source,
        destination=destination,
        src_transform=raster.transform,
        src_crs=raster.crs,
        src_nodata=np.nan,
        dst_transform=grid.transform,
        dst_crs=grid.crs,
        dst_nodata=np.nan,
        resampling=resampling,
    )

    missing = np.isnan(destination)
    values = np.where(missing, 0, destination).astype(raster.data.dtype)

    return Raster(
        data=np.ma.MaskedArray(values, mask=missing),
        transform=grid.transform,
        crs=grid.crs,
        timestamp=raster.timestamp,
    )
