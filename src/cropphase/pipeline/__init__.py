"""Pipeline stages for cropphase."""

from .classify import FIVE_CLASS, FOUR_CLASS, PhaseScheme, classify_raster, classify_series
from .composite import PhaseExtent, phase_extents, phase_max_extent
from .run import create_animation, create_snapshots, run, run_phase_pipeline
from .series import process_raster, process_series, resample_cropland_mask

__all__ = [
    "FIVE_CLASS",
    "FOUR_CLASS",
    "PhaseScheme",
    "classify_raster",
    "classify_series",
    "PhaseExtent",
    "phase_extents",
    "phase_max_extent",
    "create_animation",
    "create_snapshots",
    "run",
    "run_phase_pipeline",
    "process_raster",
    "process_series",
    "resample_cropland_mask",
]
