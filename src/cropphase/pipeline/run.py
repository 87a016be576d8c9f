"""
End-to-end cropphase pipeline.

Resolves the district boundary, derives the cropland mask, processes and
classifies the vegetation-index series, and renders either a time-lapse
of phase frames or per-phase maximum-extent snapshots.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from joblib import Parallel, delayed
from tqdm import tqdm

from ..config import CropPhaseConfig
from ..raster.cropland import CroplandMask, build_cropland_mask
from ..raster.grid import Grid, resolution_in_crs_units
from ..raster.io import load_index_series, read_land_cover, write_raster
from ..raster.model import Raster, RasterSeries
from ..render.display import DisplaySession
from ..vector.boundary import Region, resolve_region
from .classify import PHASE_NODATA, PhaseScheme, classify_with_scheme
from .composite import phase_extents
from .series import process_raster, process_series, resample_cropland_mask


@dataclass
class PipelineResult:
    """Everything the presentation steps need from one run."""

    region: Region  # In the analysis CRS
    grid: Grid
    cropland: CroplandMask
    cropland_on_grid: Raster
    scheme: PhaseScheme
    phases: RasterSeries


def build_analysis_grid(region: Region, crs: str, resolution_m: float) -> Grid:
    """
    Grid covering a region at a metric resolution.

    Args:
        region: Region to cover
        crs: Analysis CRS
        resolution_m: Pixel size in meters

    Returns:
        Grid in ``crs``
    """
    projected = region.to_crs(crs)
    return Grid.from_bounds(projected.bounds, crs, resolution_in_crs_units(crs, resolution_m))


def run_phase_pipeline(
    config: CropPhaseConfig,
    progress: bool = True,
) -> PipelineResult:
    """
    Run every stage up to the classified phase series.

    Args:
        config: cropphase configuration
        progress: Show progress information

    Returns:
        PipelineResult
    """
    params = config.params
    scheme = config.phase_scheme()

    # Step 1: Resolve boundary
    if progress:
        print("\n1. Resolving region boundary...")

    region = resolve_region(config.data.admin_boundaries, config.region)

    if progress:
        print(f"   Region: {region.name}")

    # Step 2: Cropland mask
    if progress:
        print("\n2. Building cropland mask...")

    land_cover = read_land_cover(config.data.land_cover, region)
    cropland = build_cropland_mask(
        land_cover,
        crop_class_code=config.mask.crop_class_code,
        keep_probability=config.mask.keep_probability,
        component_connectivity=config.mask.component_connectivity,
        max_component_pixels=config.mask.max_component_pixels,
        patch_connectivity=config.mask.patch_connectivity,
        max_patch_pixels=config.mask.max_patch_pixels,
        min_patch_pixels=config.mask.min_patch_pixels,
        seed=config.mask.seed,
    )

    if progress:
        print(f"   Retained {int(cropland.data.sum())} cropland pixels in {cropland.n_components} components")
        if cropland.saturated_groups:
            print(f"   {len(cropland.saturated_groups)} groups hit a count ceiling")

    # Step 3: Analysis grid
    if progress:
        print("\n3. Resampling cropland mask to analysis grid...")

    grid = build_analysis_grid(region, params.target_crs, params.target_resolution)
    cropland_on_grid = resample_cropland_mask(cropland.raster, grid)

    if progress:
        print(f"   Grid: {grid.width}x{grid.height} pixels, {grid.crs}")

    # Step 4: Vegetation-index series
    if progress:
        print("\n4. Loading vegetation-index scenes...")

    scenes = load_index_series(
        config.data.vegetation_index,
        params.start_date,
        params.end_date,
        region=region,
        index_band=params.index_band,
        quality_band=params.quality_band,
    )

    if progress:
        print(f"   Found {len(scenes)} scenes: {scenes[0].timestamp} .. {scenes[-1].timestamp}")

    if params.n_jobs == 1:
        processed = process_series(
            scenes,
            cropland_on_grid,
            grid,
            quality_bit=params.quality_bit,
            scale_factor=params.scale_factor,
        )
        iterator = tqdm(processed, total=len(processed), desc="Processing scenes") if progress else processed
        processed = RasterSeries(list(iterator))
    else:
        processed = RasterSeries(
            Parallel(n_jobs=params.n_jobs)(
                delayed(process_raster)(
                    scene,
                    cropland_on_grid,
                    grid,
                    quality_bit=params.quality_bit,
                    scale_factor=params.scale_factor,
                )
                for scene in scenes
            )
        )

    # Step 5: Classify
    if progress:
        print(f"\n5. Classifying phases ({scheme.name}, breakpoints {list(scheme.breakpoints)})...")

    phases = classify_with_scheme(processed, scheme).materialize()

    return PipelineResult(
        region=region.to_crs(grid.crs),
        grid=grid,
        cropland=cropland,
        cropland_on_grid=cropland_on_grid,
        scheme=scheme,
        phases=phases,
    )


def create_animation(
    config: CropPhaseConfig,
    progress: bool = True,
    result: Optional[PipelineResult] = None,
) -> Path:
    """
    Render one phase frame per acquisition date.

    Args:
        config: cropphase configuration
        progress: Show progress information
        result: Precomputed pipeline result (run here if None)

    Returns:
        Path to the frames directory
    """
    config.ensure_directories()

    if result is None:
        result = run_phase_pipeline(config, progress=progress)

    if progress:
        print("\n6. Rendering animation frames...")

    frames_dir = config.output.frames_dir
    session = DisplaySession(frames_dir, result.scheme, boundary=result.region.geometry)

    used_stems = set()
    iterator = tqdm(result.phases, total=len(result.phases), desc="Frames") if progress else result.phases
    for index, phase_raster in enumerate(iterator):
        stem = phase_raster.timestamp.isoformat() if phase_raster.timestamp else f"{index:03d}"
        # Tiles sharing an acquisition date get their own frame
        if stem in used_stems:
            stem = f"{stem}_{index:03d}"
        used_stems.add(stem)
        write_raster(phase_raster, frames_dir / "phase" / f"phase_{stem}.tif", nodata=PHASE_NODATA)
        session.add_layer(f"frame_{stem}", phase_raster)

    write_raster(result.cropland_on_grid, frames_dir / "cropland_mask.tif")
    session.write_legend(title=f"NDVI Crop Phase Animation ({result.region.name})")

    if progress:
        print(f"\nAnimation complete: {len(session.layers)} frames")
        print(f"Output: {frames_dir}")

    return frames_dir


def create_snapshots(
    config: CropPhaseConfig,
    progress: bool = True,
    result: Optional[PipelineResult] = None,
) -> Path:
    """
    Render the maximum-extent composite of each growth phase.

    Args:
        config: cropphase configuration
        progress: Show progress information
        result: Precomputed pipeline result (run here if None)

    Returns:
        Path to the snapshots directory
    """
    config.ensure_directories()

    if result is None:
        result = run_phase_pipeline(config, progress=progress)

    if progress:
        print("\n6. Computing per-phase maximum extents...")

    snapshots_dir = config.output.snapshots_dir
    session = DisplaySession(snapshots_dir, result.scheme, boundary=result.region.geometry)

    phases = [code for code in result.scheme.categories if code in result.scheme.palette]
    extents = phase_extents(result.phases, phases, result.region.geometry)

    summary = []
    for extent in extents:
        session.add_layer(f"max_area_phase_{extent.phase}", extent.composite)
        write_raster(extent.occurrence, snapshots_dir / "counts" / f"count_phase_{extent.phase}.tif", nodata=-1)
        summary.append({
            "phase": extent.phase,
            "label": result.scheme.labels.get(extent.phase, str(extent.phase)),
            "max_count": extent.max_count,
            "area_pixels": extent.area_pixels,
        })

        if progress:
            print(f"   Phase {extent.phase}: max count {extent.max_count}, {extent.area_pixels} pixels")

    with open(snapshots_dir / "summary.json", "w") as f:
        json.dump({"region": result.region.name, "dates": len(result.phases), "phases": summary}, f, indent=2)

    session.write_legend(title=f"NDVI Phase Max Area ({result.region.name})")

    if progress:
        print(f"\nSnapshots complete: {len(extents)} phases")
        print(f"Output: {snapshots_dir}")

    return snapshots_dir


def run(
    config: CropPhaseConfig,
    mode: Optional[str] = None,
    progress: bool = True,
) -> Path:
    """
    Run the pipeline in animation or snapshots mode.

    Args:
        config: cropphase configuration
        mode: "animation" or "snapshots" (default: config.mode)
        progress: Show progress information

    Returns:
        Path to the output directory
    """
    mode = mode or config.mode

    if progress:
        print(f"cropphase: {config.params.start_date} to {config.params.end_date}, mode={mode}")

    if mode == "animation":
        return create_animation(config, progress=progress)
    if mode == "snapshots":
        return create_snapshots(config, progress=progress)
    raise ValueError(f"Unknown mode: {mode}")
