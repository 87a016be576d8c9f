"""
Immutable raster values passed between pipeline stages.

Every stage returns a new Raster; arrays are flagged read-only on
construction so a stage cannot write back into its input.
"""

import dataclasses
from dataclasses import dataclass
from datetime import date
from typing import Optional

import numpy as np
from rasterio.crs import CRS
from rasterio.transform import Affine, array_bounds


@dataclass(frozen=True)
class Raster:
    """Single-band georeferenced raster with a no-data mask."""

    data: np.ma.MaskedArray
    transform: Affine
    crs: CRS
    timestamp: Optional[date] = None

    def __post_init__(self):
        data = np.ma.asarray(self.data)
        if data.ndim != 2:
            raise ValueError(f"Raster data must be 2-D, got shape {data.shape}")

        # Always carry a full boolean mask so it can be frozen
        values = np.array(data.data)
        mask = np.ma.getmaskarray(data).copy()
        values.setflags(write=False)
        mask.setflags(write=False)

        object.__setattr__(self, "data", np.ma.MaskedArray(values, mask=mask, copy=False))
        object.__setattr__(self, "crs", CRS.from_user_input(self.crs))

    @property
    def shape(self) -> tuple[int, int]:
        return self.data.shape

    @property
    def valid(self) -> np.ndarray:
        """Boolean array, True where the pixel holds data."""
        return ~np.ma.getmaskarray(self.data)

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """(left, bottom, right, top) in raster CRS units."""
        height, width = self.shape
        west, south, east, north = array_bounds(height, width, self.transform)
        return (west, south, east, north)

    def replace(self, **changes) -> "Raster":
        """Return a new Raster with the given fields replaced."""
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class VegetationIndexRaster:
    """Raw vegetation-index scene with its per-pixel reliability bitfield."""

    index: Raster
    quality: np.ndarray

    def __post_init__(self):
        if self.quality.shape != self.index.shape:
            raise ValueError(
                f"Quality shape {self.quality.shape} does not match index shape {self.index.shape}"
            )
        quality = np.array(self.quality)
        quality.setflags(write=False)
        object.__setattr__(self, "quality", quality)

    @property
    def timestamp(self) -> Optional[date]:
        return self.index.timestamp


class RasterSeries:
    """
    Ordered, lazy, restartable sequence of rasters.

    Each iteration re-applies ``func`` to the source items in order, so the
    series can be consumed more than once with identical results.
    """

    def __init__(self, source, func=None):
        # Chained series stay lazy; anything else is snapshotted
        self._source = source if isinstance(source, RasterSeries) else tuple(source)
        self._func = func

    def __iter__(self):
        for item in self._source:
            yield item if self._func is None else self._func(item)

    def __len__(self) -> int:
        return len(self._source)

    def materialize(self) -> "RasterSeries":
        """Evaluate every item once and return a series over the results."""
        return RasterSeries(list(self))

    @property
    def timestamps(self) -> list[Optional[date]]:
        if isinstance(self._source, RasterSeries):
            return self._source.timestamps
        return [item.timestamp for item in self._source]
