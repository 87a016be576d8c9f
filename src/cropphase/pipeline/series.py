"""
Vegetation-index series processing.

Scales raw index values, drops pixels failing the reliability bit,
resamples onto the analysis grid and restricts them to cropland. Every
scene is processed independently and keeps its acquisition date.
"""

from typing import Sequence

import numpy as np

from ..exceptions import EmptySeriesError
from ..raster.grid import Grid, resample
from ..raster.model import Raster, RasterSeries, VegetationIndexRaster


def resample_cropland_mask(mask: Raster, grid: Grid) -> Raster:
    """
    Resample a cropland mask onto the analysis grid.

    Args:
        mask: Boolean cropland mask raster (masked outside cropland)
        grid: Analysis grid

    Returns:
        Boolean Raster on ``grid``, True for cropland
    """
    resampled = resample(mask, grid)
    cropland = resampled.data.filled(False).astype(bool)
    return resampled.replace(data=np.ma.MaskedArray(cropland, mask=~cropland))


def quality_pass(quality: np.ndarray, bit: int = 0) -> np.ndarray:
    """True where the given reliability bit is 0 (good)."""
    return (np.right_shift(quality.astype(np.int64), bit) & 1) == 0


def process_raster(
    scene: VegetationIndexRaster,
    mask: Raster,
    grid: Grid,
    quality_bit: int = 0,
    scale_factor: float = 0.0001,
) -> Raster:
    """
    Process one vegetation-index scene.

    Args:
        scene: Raw index scene with reliability bitfield
        mask: Cropland mask already on ``grid``
        grid: Analysis grid
        quality_bit: Reliability bit that must be 0 for a pixel to pass
        scale_factor: Multiplier from raw integers to index units

    Returns:
        float32 Raster on ``grid``, valid only for quality-passing cropland
    """
    if not grid.matches(mask):
        raise ValueError("Cropland mask is not on the analysis grid; resample it first")

    scaled = scene.index.data.astype(np.float32) * np.float32(scale_factor)
    invalid = np.ma.getmaskarray(scaled) | ~quality_pass(scene.quality, quality_bit)
    quality_masked = scene.index.replace(data=np.ma.MaskedArray(scaled.filled(np.nan), mask=invalid))

    resampled = resample(quality_masked, grid)

    outside = ~mask.data.filled(False).astype(bool)
    return resampled.replace(
        data=np.ma.MaskedArray(resampled.data.data, mask=np.ma.getmaskarray(resampled.data) | outside),
    )


def process_series(
    series: Sequence[VegetationIndexRaster],
    mask: Raster,
    grid: Grid,
    quality_bit: int = 0,
    scale_factor: float = 0.0001,
) -> RasterSeries:
    """
    Process a time series of scenes, preserving order and timestamps.

    Args:
        series: Scenes in time order
        mask: Cropland mask already on ``grid``
        grid: Analysis grid
        quality_bit: Reliability bit that must be 0 for a pixel to pass
        scale_factor: Multiplier from raw integers to index units

    Returns:
        Lazy, restartable RasterSeries of processed rasters
    """
    scenes = tuple(series)
    if not scenes:
        raise EmptySeriesError("No vegetation-index scenes to process")
    if not grid.matches(mask):
        raise ValueError("Cropland mask is not on the analysis grid; resample it first")

    return RasterSeries(
        scenes,
        lambda scene: process_raster(
            scene,
            mask,
            grid,
            quality_bit=quality_bit,
            scale_factor=scale_factor,
        ),
    )
