"""
Raster I/O utilities for cropphase.

Reads land-cover rasters clipped to a region, discovers dated
vegetation-index scenes on disk, and writes rasters back out as
compressed GeoTIFFs.
"""

import re
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional

import numpy as np
import rasterio
from pyproj import Transformer
from rasterio.mask import mask
from rasterio.windows import Window
from shapely.geometry import box, mapping

from ..exceptions import EmptySeriesError
from .model import Raster, VegetationIndexRaster

# Date stamps recognized in scene file names
ISO_DATE = re.compile(r"(?<!\d)(\d{4})-(\d{2})-(\d{2})(?!\d)")
COMPACT_DATE = re.compile(r"(?<!\d)(\d{4})(\d{2})(\d{2})(?!\d)")
MODIS_DATE = re.compile(r"A(\d{4})(\d{3})(?!\d)")  # MOD13Q1.A2020001...

SCENE_SUFFIXES = (".tif", ".tiff")


def read_raster(
    raster_path: Path,
    band: int = 1,
    window: Optional[Window] = None,
    timestamp: Optional[date] = None,
) -> Raster:
    """
    Read one band of a raster, optionally for a specific window.

    Args:
        raster_path: Path to raster
        band: Band index (1-indexed)
        window: Optional rasterio Window for subset reading
        timestamp: Acquisition date to attach

    Returns:
        Raster with the file's nodata masked
    """
    with rasterio.open(raster_path) as src:
        data = src.read(band, window=window, masked=True)
        transform = src.window_transform(window) if window is not None else src.transform
        crs = src.crs

    return Raster(data=data, transform=transform, crs=crs, timestamp=timestamp)


def read_land_cover(
    raster_path: Path,
    region,
    band: int = 1,
) -> Raster:
    """
    Read a land-cover raster cropped and masked to a region.

    Args:
        raster_path: Path to land-cover raster
        region: Region to clip to (reprojected to the raster CRS if needed)
        band: Band index (1-indexed)

    Returns:
        Raster where pixels outside the region are masked
    """
    with rasterio.open(raster_path) as src:
        clip_region = region.to_crs(src.crs)
        out_image, out_transform = mask(
            src,
            [mapping(clip_region.geometry)],
            crop=True,
            filled=False,
            indexes=band,
        )
        crs = src.crs

    return Raster(data=out_image, transform=out_transform, crs=crs)


def parse_scene_date(name: str) -> Optional[date]:
    """
    Extract an acquisition date from a scene file name.

    Recognizes ``YYYY-MM-DD``, ``YYYYMMDD`` and MODIS ``AYYYYDDD`` stamps.

    Args:
        name: File name

    Returns:
        Parsed date, or None if the name carries no date
    """
    match = MODIS_DATE.search(name)
    if match:
        year, day_of_year = int(match.group(1)), int(match.group(2))
        return date(year, 1, 1) + timedelta(days=day_of_year - 1)

    for pattern in (ISO_DATE, COMPACT_DATE):
        match = pattern.search(name)
        if match:
            try:
                return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
            except ValueError:
                continue

    return None


def find_index_rasters(
    base_path: Path,
    start_date: date,
    end_date: date,
) -> list[tuple[date, Path]]:
    """
    Find vegetation-index scenes acquired within a date range.

    Every matching file is kept, including several tiles sharing one
    acquisition date.

    Args:
        base_path: Directory containing scene GeoTIFFs (searched recursively)
        start_date: First date to include
        end_date: End of the range (exclusive)

    Returns:
        List of (acquisition date, path) pairs sorted by date, then path
    """
    scenes = []

    for path in sorted(base_path.rglob("*")):
        if path.suffix.lower() not in SCENE_SUFFIXES:
            continue

        scene_date = parse_scene_date(path.name)
        if scene_date is None:
            continue

        if start_date <= scene_date < end_date:
            scenes.append((scene_date, path))

    return sorted(scenes)


def read_index_scene(
    raster_path: Path,
    timestamp: Optional[date] = None,
    index_band: int = 1,
    quality_band: int = 2,
) -> VegetationIndexRaster:
    """
    Read a raw vegetation-index scene and its reliability band.

    Args:
        raster_path: Path to a multi-band scene GeoTIFF
        timestamp: Acquisition date (parsed from the name if None)
        index_band: Band holding the raw index values
        quality_band: Band holding the reliability bitfield

    Returns:
        VegetationIndexRaster
    """
    if timestamp is None:
        timestamp = parse_scene_date(Path(raster_path).name)

    with rasterio.open(raster_path) as src:
        index = src.read(index_band, masked=True)
        quality = src.read(quality_band)
        transform = src.transform
        crs = src.crs

    return VegetationIndexRaster(
        index=Raster(data=index, transform=transform, crs=crs, timestamp=timestamp),
        quality=quality,
    )


def scene_intersects(raster_path: Path, region) -> bool:
    """True if a raster's footprint intersects the region geometry."""
    with rasterio.open(raster_path) as src:
        bounds = src.bounds
        crs = src.crs

    if crs != region.crs:
        transformer = Transformer.from_crs(crs, region.crs, always_xy=True)
        bounds = transformer.transform_bounds(*bounds)

    return box(*bounds).intersects(region.geometry)


def load_index_series(
    base_path: Path,
    start_date: date,
    end_date: date,
    region=None,
    index_band: int = 1,
    quality_band: int = 2,
) -> list[VegetationIndexRaster]:
    """
    Load the dated scenes covering a region within a date range.

    Args:
        base_path: Directory containing scene GeoTIFFs
        start_date: First date to include
        end_date: End of the range (exclusive)
        region: Optional Region; scenes not touching it are skipped
        index_band: Band holding the raw index values
        quality_band: Band holding the reliability bitfield

    Returns:
        List of VegetationIndexRaster ordered by acquisition date, then path
    """
    scenes = find_index_rasters(base_path, start_date, end_date)

    if region is not None:
        scenes = [(d, p) for d, p in scenes if scene_intersects(p, region)]

    if not scenes:
        raise EmptySeriesError(
            f"No vegetation-index scenes in {base_path} between {start_date} and {end_date}"
        )

    return [
        read_index_scene(path, timestamp=scene_date, index_band=index_band, quality_band=quality_band)
        for scene_date, path in scenes
    ]


def write_raster(
    raster: Raster,
    output_path: Path,
    nodata: Optional[float] = None,
    dtype: Optional[str] = None,
) -> Path:
    """
    Write a raster to a compressed GeoTIFF.

    Args:
        raster: Raster to write
        output_path: Output path
        nodata: Value written for masked pixels (default: dtype-based)
        dtype: Output dtype (default: the raster's dtype; bool becomes uint8)

    Returns:
        Path to written raster
    """
    if dtype is None:
        dtype = "uint8" if raster.data.dtype == np.bool_ else raster.data.dtype.name

    if nodata is None:
        nodata = np.nan if np.issubdtype(np.dtype(dtype), np.floating) else np.iinfo(dtype).max

    height, width = raster.shape
    profile = {
        "driver": "GTiff",
        "dtype": dtype,
        "width": width,
        "height": height,
        "count": 1,
        "crs": raster.crs,
        "transform": raster.transform,
        "nodata": nodata,
        "compress": "lzw",
    }

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with rasterio.open(output_path, "w", **profile) as dst:
        dst.write(raster.data.astype(dtype).filled(nodata), 1)
        if raster.timestamp is not None:
            dst.update_tags(timestamp=raster.timestamp.isoformat())

    return output_path


def read_timestamp_tag(raster_path: Path) -> Optional[date]:
    """Read the acquisition date tag written by write_raster."""
    with rasterio.open(raster_path) as src:
        value = src.tags().get("timestamp")
    return datetime.strptime(value, "%Y-%m-%d").date() if value else None
