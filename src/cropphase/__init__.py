"""
cropphase: cropland NDVI growth-phase classification.

This package derives a scattered cropland mask from a land-cover raster,
masks and resamples a time series of vegetation-index rasters onto it, and
buckets every pixel into ordinal growth phases for animation frames or
per-phase maximum-extent snapshots.
"""

__version__ = "0.1.0"
