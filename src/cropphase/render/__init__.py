"""Rendering of phase rasters for cropphase."""

from .display import DisplaySession, legend_entries, paint_boundary, visualize

__all__ = [
    "DisplaySession",
    "legend_entries",
    "paint_boundary",
    "visualize",
]
