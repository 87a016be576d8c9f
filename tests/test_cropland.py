"""Tests for cropland mask derivation."""

import warnings

import numpy as np
import pytest

from conftest import make_raster
from cropphase.exceptions import CapacitySaturationWarning
from cropphase.raster.cropland import build_cropland_mask, connectivity_structure, scatter

CROP = 40


def no_filter(land_cover, **kwargs):
    """Build with scattering and the patch filter switched off."""
    params = dict(keep_probability=1.0, min_patch_pixels=0)
    params.update(kwargs)
    return build_cropland_mask(land_cover, **params)


def test_mask_is_subset_of_cropland_class():
    rng = np.random.default_rng(7)
    codes = rng.choice([10, 30, CROP, 50], size=(40, 40))
    land_cover = make_raster(codes)

    result = build_cropland_mask(land_cover, keep_probability=0.5, min_patch_pixels=3, seed=1)

    assert not np.any(result.data & (codes != CROP))


def test_no_scatter_and_no_patch_filter_keeps_raw_selection():
    codes = np.array([
        [CROP, CROP, 10, CROP],
        [10, CROP, CROP, 10],
        [CROP, 10, 10, CROP],
    ])
    nodata = np.zeros(codes.shape, dtype=bool)
    nodata[0, 0] = True  # outside the region
    land_cover = make_raster(codes, mask=nodata)

    result = no_filter(land_cover)

    expected = (codes == CROP) & ~nodata
    np.testing.assert_array_equal(result.data, expected)
    assert result.raster.transform == land_cover.transform


def test_fixed_seed_is_reproducible():
    land_cover = make_raster(np.full((30, 30), CROP))

    first = build_cropland_mask(land_cover, keep_probability=0.5, min_patch_pixels=0, seed=42)
    second = build_cropland_mask(land_cover, keep_probability=0.5, min_patch_pixels=0, seed=42)
    other = build_cropland_mask(land_cover, keep_probability=0.5, min_patch_pixels=0, seed=43)

    np.testing.assert_array_equal(first.data, second.data)
    assert not np.array_equal(first.data, other.data)


def test_scatter_keep_probability_bounds():
    selection = np.ones((5, 5), dtype=bool)

    assert not scatter(selection, 0.0, seed=0).any()
    assert scatter(selection, 1.0, seed=0).all()
    with pytest.raises(ValueError):
        scatter(selection, 1.5)


def test_scatter_keeps_expected_fraction():
    selection = np.ones((400, 400), dtype=bool)

    kept = scatter(selection, 0.2, seed=5)

    assert kept.dtype == np.bool_
    assert abs(kept.mean() - 0.2) < 0.01


def test_small_patch_filter_drops_large_blocks():
    codes = np.full((6, 6), 10)
    codes[0:3, 0:3] = CROP  # 9-pixel block
    codes[5, 5] = CROP  # isolated pixel
    land_cover = make_raster(codes)

    result = no_filter(land_cover, min_patch_pixels=5, max_component_pixels=1000, max_patch_pixels=1000)

    expected = np.zeros((6, 6), dtype=bool)
    expected[5, 5] = True
    np.testing.assert_array_equal(result.data, expected)
    assert result.patch_counts[1, 1] == 9
    assert result.patch_counts[5, 5] == 1


def test_diagonal_neighbours_follow_component_connectivity():
    codes = np.full((3, 3), 10)
    codes[0, 0] = CROP
    codes[1, 1] = CROP

    # 4-connected components keep diagonal pixels apart even with 8-connected patches
    four = no_filter(make_raster(codes), component_connectivity=4, patch_connectivity=8, min_patch_pixels=2)
    assert four.n_components == 2
    assert four.data[0, 0] and four.data[1, 1]

    # 8-connected components join them into one patch of 2, which is filtered
    eight = no_filter(make_raster(codes), component_connectivity=8, patch_connectivity=8, min_patch_pixels=2)
    assert eight.n_components == 1
    assert not eight.data.any()


def test_component_ceiling_caps_counts_and_warns_once_per_group():
    codes = np.full((7, 7), 10)
    codes[0:3, 0:3] = CROP  # 9 pixels
    codes[4:7, 4:7] = CROP  # 9 pixels
    codes[0, 6] = CROP  # 1 pixel
    land_cover = make_raster(codes)

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        result = no_filter(land_cover, max_component_pixels=4, max_patch_pixels=6)

    saturation = [w for w in caught if issubclass(w.category, CapacitySaturationWarning)]
    assert len(saturation) == 2
    assert len(result.saturated_groups) == 2

    block = codes == CROP
    assert np.all(np.isfinite(result.component_counts[block]))
    assert result.component_counts[1, 1] == 4
    assert result.patch_counts[5, 5] == 6
    assert result.component_counts[0, 6] == 1


def test_default_ceilings_do_not_warn_on_small_groups():
    codes = np.full((5, 5), 10)
    codes[2, 2] = CROP

    with warnings.catch_warnings():
        warnings.simplefilter("error", CapacitySaturationWarning)
        result = no_filter(make_raster(codes))

    assert result.saturated_groups == ()


def test_invalid_connectivity():
    with pytest.raises(ValueError):
        connectivity_structure(6)
    with pytest.raises(ValueError):
        no_filter(make_raster(np.full((2, 2), CROP)), patch_connectivity=5)


def test_mask_raster_is_read_only():
    result = no_filter(make_raster(np.full((2, 2), CROP)))

    with pytest.raises(ValueError):
        result.raster.data.data[0, 0] = False
