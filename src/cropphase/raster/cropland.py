"""
Cropland mask derivation.

Selects the cropland class from a land-cover raster, thins it by random
sampling to simulate sparse field observations, and keeps only pixels
belonging to small connected patches.
"""

import warnings
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.ndimage import generate_binary_structure, label

from ..exceptions import CapacitySaturationWarning
from .model import Raster


@dataclass(frozen=True)
class CroplandMask:
    """Boolean cropland mask with the capped group counts behind it."""

    raster: Raster
    n_components: int
    component_counts: np.ndarray  # Capped component size per pixel (0 outside)
    patch_counts: np.ndarray  # Capped patch size per pixel (0 outside)
    saturated_groups: tuple[int, ...]  # Component labels whose counts were capped

    @property
    def data(self) -> np.ndarray:
        """Plain boolean array, True for retained cropland."""
        return self.raster.data.filled(False).astype(bool)


def connectivity_structure(connectivity: int) -> np.ndarray:
    """
    Structuring element for 4- or 8-connected labeling.

    Args:
        connectivity: 4 (cardinal, plus kernel) or 8 (include diagonals)

    Returns:
        3x3 boolean structure for scipy.ndimage.label
    """
    if connectivity == 4:
        return generate_binary_structure(2, 1)
    if connectivity == 8:
        return generate_binary_structure(2, 2)
    raise ValueError(f"Connectivity must be 4 or 8, got {connectivity}")


def select_class(land_cover: Raster, class_code: int) -> np.ndarray:
    """Boolean array of valid pixels equal to class_code."""
    return land_cover.valid & (land_cover.data.filled(0) == class_code)


def scatter(
    selection: np.ndarray,
    keep_probability: float,
    seed: Optional[int] = 0,
) -> np.ndarray:
    """
    Randomly thin a selection, keeping each pixel with keep_probability.

    Args:
        selection: Boolean array of candidate pixels
        keep_probability: Probability in [0, 1] of keeping a pixel
        seed: Random seed (None draws fresh entropy)

    Returns:
        Boolean array, a subset of ``selection``
    """
    if not 0.0 <= keep_probability <= 1.0:
        raise ValueError(f"keep_probability must be in [0, 1], got {keep_probability}")

    rng = np.random.default_rng(seed)
    draws = rng.random(selection.shape, dtype=np.float32)
    return selection & (draws < keep_probability)


def capped_group_counts(
    pixels: np.ndarray,
    structure: np.ndarray,
    max_pixels: int,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Label connected groups and count their pixels up to a ceiling.

    Args:
        pixels: Boolean array of foreground pixels
        structure: Connectivity structure (see connectivity_structure)
        max_pixels: Count ceiling; larger groups report max_pixels

    Returns:
        Tuple of:
            - Integer label array (0 = background)
            - Capped group size per pixel (0 = background)
            - True group size per label (index 0 = background)
    """
    labels, _ = label(pixels, structure=structure)
    sizes = np.bincount(labels.ravel())
    sizes[0] = 0

    counts = np.minimum(sizes, max_pixels)[labels]
    return labels, counts, sizes


def build_cropland_mask(
    land_cover: Raster,
    crop_class_code: int = 40,
    keep_probability: float = 0.2,
    component_connectivity: int = 4,
    max_component_pixels: int = 100,
    patch_connectivity: int = 8,
    max_patch_pixels: int = 128,
    min_patch_pixels: int = 150,
    seed: Optional[int] = 0,
) -> CroplandMask:
    """
    Derive the scattered, patch-filtered cropland mask.

    Steps:
        1. Select pixels equal to crop_class_code
        2. Keep each with probability keep_probability
        3. Label connected components (component_connectivity), counting
           up to max_component_pixels
        4. Count each pixel's same-label patch (patch_connectivity), up to
           max_patch_pixels
        5. Keep pixels whose patch count is below min_patch_pixels

    Both ceilings are resource limits: groups larger than a ceiling get a
    capped count and raise one CapacitySaturationWarning each. A
    min_patch_pixels of 0 or less disables step 5.

    Args:
        land_cover: Categorical land-cover raster
        crop_class_code: Class code for cropland (WorldCover: 40)
        keep_probability: Per-pixel keep probability
        component_connectivity: 4 or 8 for component labeling
        max_component_pixels: Component count ceiling
        patch_connectivity: 4 or 8 for patch counting
        max_patch_pixels: Patch count ceiling
        min_patch_pixels: Patches with this many pixels or more are dropped
        seed: Random seed (None draws fresh entropy)

    Returns:
        CroplandMask on the land-cover grid
    """
    patch_structure = connectivity_structure(patch_connectivity)
    component_structure = connectivity_structure(component_connectivity)

    cropland = select_class(land_cover, crop_class_code)
    scattered = scatter(cropland, keep_probability, seed=seed)

    components, component_counts, component_sizes = capped_group_counts(
        scattered,
        component_structure,
        max_component_pixels,
    )

    # Same-label patches coincide with components labeled under the
    # narrower of the two connectivities
    patches, patch_counts, patch_sizes = capped_group_counts(
        scattered,
        component_structure & patch_structure,
        max_patch_pixels,
    )

    # One saturation record per component, whichever ceiling it hit
    saturated = set(np.flatnonzero(component_sizes > max_component_pixels).tolist())
    saturated_patch_pixels = (patch_sizes > max_patch_pixels)[patches] & scattered
    saturated.update(np.unique(components[saturated_patch_pixels]).tolist())
    saturated_groups = tuple(sorted(int(g) for g in saturated))

    for group in saturated_groups:
        warnings.warn(
            f"Connected group {group} has {int(component_sizes[group])} pixels; "
            f"counts capped at {max_component_pixels} (component) / "
            f"{max_patch_pixels} (patch)",
            CapacitySaturationWarning,
            stacklevel=2,
        )

    if min_patch_pixels > 0:
        retained = scattered & (patch_counts < min_patch_pixels)
    else:
        retained = scattered

    raster = Raster(
        data=np.ma.MaskedArray(retained, mask=~retained),
        transform=land_cover.transform,
        crs=land_cover.crs,
    )

    return CroplandMask(
        raster=raster,
        n_components=int(components.max()) if components.size else 0,
        component_counts=np.where(scattered, component_counts, 0),
        patch_counts=np.where(scattered, patch_counts, 0),
        saturated_groups=saturated_groups,
    )
