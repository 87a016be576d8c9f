"""Raster processing modules for cropphase."""

from .cropland import CroplandMask, build_cropland_mask
from .grid import Grid, resample
from .io import load_index_series, read_land_cover, write_raster
from .model import Raster, RasterSeries, VegetationIndexRaster

__all__ = [
    "CroplandMask",
    "build_cropland_mask",
    "Grid",
    "resample",
    "load_index_series",
    "read_land_cover",
    "write_raster",
    "Raster",
    "RasterSeries",
    "VegetationIndexRaster",
]
