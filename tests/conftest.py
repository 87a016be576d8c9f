"""
Shared fixtures for cropphase tests.

Synthetic rasters sit on a small UTM grid (EPSG:32644) anchored at
(500000, 2300000) so pixel sizes are in meters.
"""

from datetime import date

import geopandas as gpd
import numpy as np
import pytest
import rasterio
from rasterio.transform import from_origin
from shapely.geometry import box

from cropphase.raster.model import Raster, VegetationIndexRaster

CRS = "EPSG:32644"
ORIGIN_X = 500000.0
ORIGIN_Y = 2300000.0


def make_raster(values, resolution=1.0, mask=None, timestamp=None, crs=CRS):
    """Raster on the test grid with optional no-data mask."""
    values = np.asarray(values)
    if mask is None:
        mask = np.zeros(values.shape, dtype=bool)
    return Raster(
        data=np.ma.MaskedArray(values, mask=mask),
        transform=from_origin(ORIGIN_X, ORIGIN_Y, resolution, resolution),
        crs=crs,
        timestamp=timestamp,
    )


def make_scene(raw, quality=None, resolution=1.0, timestamp=date(2020, 1, 1), mask=None):
    """Raw vegetation-index scene with an all-good quality band by default."""
    raw = np.asarray(raw, dtype=np.int16)
    if quality is None:
        quality = np.zeros(raw.shape, dtype=np.uint16)
    return VegetationIndexRaster(
        index=make_raster(raw, resolution=resolution, mask=mask, timestamp=timestamp),
        quality=np.asarray(quality, dtype=np.uint16),
    )


def write_geotiff(path, bands, resolution, nodata=None, crs=CRS):
    """Write a (count, height, width) array as a GeoTIFF on the test grid."""
    bands = np.asarray(bands)
    if bands.ndim == 2:
        bands = bands[np.newaxis]
    count, height, width = bands.shape
    profile = {
        "driver": "GTiff",
        "dtype": bands.dtype.name,
        "width": width,
        "height": height,
        "count": count,
        "crs": crs,
        "transform": from_origin(ORIGIN_X, ORIGIN_Y, resolution, resolution),
        "nodata": nodata,
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    with rasterio.open(path, "w", **profile) as dst:
        dst.write(bands)
    return path


@pytest.fixture
def district_boundaries():
    """Three districts in two states; Dhamtari covers the test grid's first 100 m."""
    return gpd.GeoDataFrame(
        {
            "ADM1_NAME": ["Chhattisgarh", "Chhattisgarh", "Odisha"],
            "ADM2_NAME": ["Dhamtari", "Raipur", "Dhamtari"],
        },
        geometry=[
            box(ORIGIN_X, ORIGIN_Y - 100, ORIGIN_X + 100, ORIGIN_Y),
            box(ORIGIN_X + 100, ORIGIN_Y - 100, ORIGIN_X + 200, ORIGIN_Y),
            box(ORIGIN_X + 200, ORIGIN_Y - 100, ORIGIN_X + 300, ORIGIN_Y),
        ],
        crs=CRS,
    )


@pytest.fixture
def dhamtari_filters():
    return [("ADM1_NAME", "Chhattisgarh"), ("ADM2_NAME", "Dhamtari")]
