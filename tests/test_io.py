"""Tests for raster reading, scene discovery and writing."""

from datetime import date

import numpy as np
import pytest

from conftest import ORIGIN_X, ORIGIN_Y, make_raster, write_geotiff
from cropphase.exceptions import EmptySeriesError
from cropphase.raster.io import (
    find_index_rasters,
    load_index_series,
    parse_scene_date,
    read_index_scene,
    read_land_cover,
    read_raster,
    read_timestamp_tag,
    write_raster,
)
from cropphase.vector.boundary import resolve_region


def write_scene(path, ndvi=3000, quality=0, size=4, resolution=20.0):
    bands = np.stack([
        np.full((size, size), ndvi, dtype=np.int16),
        np.full((size, size), quality, dtype=np.int16),
    ])
    return write_geotiff(path, bands, resolution, nodata=-3000)


@pytest.mark.parametrize(
    "name, expected",
    [
        ("MOD13Q1.A2020049.h25v07.061.tif", date(2020, 2, 18)),
        ("ndvi_2020-03-05.tif", date(2020, 3, 5)),
        ("ndvi_20200305.tif", date(2020, 3, 5)),
        ("ndvi_20201399.tif", None),
        ("cropland.tif", None),
    ],
)
def test_parse_scene_date(name, expected):
    assert parse_scene_date(name) == expected


def test_find_index_rasters_is_end_exclusive(tmp_path):
    for stamp in ["2019-12-31", "2020-01-01", "2020-06-15", "2020-12-31"]:
        write_scene(tmp_path / f"ndvi_{stamp}.tif")
    (tmp_path / "notes_2020-02-01.txt").write_text("not a raster")

    found = find_index_rasters(tmp_path, date(2020, 1, 1), date(2020, 12, 31))

    assert [scene_date for scene_date, _ in found] == [date(2020, 1, 1), date(2020, 6, 15)]


def test_load_index_series_in_date_order(tmp_path):
    write_scene(tmp_path / "b" / "ndvi_2020-02-02.tif", ndvi=5000)
    write_scene(tmp_path / "a" / "ndvi_2020-01-17.tif", ndvi=4000, quality=1)

    scenes = load_index_series(tmp_path, date(2020, 1, 1), date(2021, 1, 1))

    assert [s.timestamp for s in scenes] == [date(2020, 1, 17), date(2020, 2, 2)]
    assert scenes[0].index.data[0, 0] == 4000
    assert scenes[0].quality[0, 0] == 1
    assert scenes[1].quality[0, 0] == 0


def test_load_index_series_keeps_tiles_sharing_a_date(tmp_path):
    write_scene(tmp_path / "MOD13Q1.A2020049.h25v07.061.tif", ndvi=4000)
    write_scene(tmp_path / "MOD13Q1.A2020049.h25v06.061.tif", ndvi=6000)
    write_scene(tmp_path / "MOD13Q1.A2020033.h25v07.061.tif", ndvi=2000)

    scenes = load_index_series(tmp_path, date(2020, 1, 1), date(2021, 1, 1))

    assert [s.timestamp for s in scenes] == [date(2020, 2, 2), date(2020, 2, 18), date(2020, 2, 18)]
    # Same-date tiles are ordered by path
    assert [int(s.index.data[0, 0]) for s in scenes] == [2000, 6000, 4000]


def test_load_index_series_skips_scenes_outside_region(tmp_path, district_boundaries):
    write_scene(tmp_path / "ndvi_2020-01-01.tif")
    region = resolve_region(district_boundaries, [("ADM2_NAME", "Raipur")])
    far_away = region.to_crs("EPSG:4326")

    # Raipur starts 100 m east of the 80 m scene footprint
    with pytest.raises(EmptySeriesError):
        load_index_series(tmp_path, date(2020, 1, 1), date(2021, 1, 1), region=far_away)


def test_load_index_series_empty(tmp_path):
    with pytest.raises(EmptySeriesError):
        load_index_series(tmp_path, date(2020, 1, 1), date(2021, 1, 1))


def test_read_index_scene_masks_nodata(tmp_path):
    path = write_scene(tmp_path / "ndvi_2020-04-06.tif", ndvi=-3000)

    scene = read_index_scene(path)

    assert scene.timestamp == date(2020, 4, 6)
    assert not scene.index.valid.any()


def test_read_land_cover_clips_to_region(tmp_path, district_boundaries, dhamtari_filters):
    # 30 x 20 pixels at 10 m; Dhamtari covers the first 10 x 10
    codes = np.full((30, 20), 40, dtype=np.uint8)
    path = write_geotiff(tmp_path / "landcover.tif", codes, 10.0, nodata=0)
    region = resolve_region(district_boundaries, dhamtari_filters)

    land_cover = read_land_cover(path, region)

    assert land_cover.crs.to_epsg() == 32644
    assert land_cover.shape == (10, 10)
    assert land_cover.transform.c == pytest.approx(ORIGIN_X)
    assert land_cover.transform.f == pytest.approx(ORIGIN_Y)
    assert land_cover.valid.all()


def test_read_land_cover_reprojects_region(tmp_path, district_boundaries, dhamtari_filters):
    codes = np.full((30, 20), 40, dtype=np.uint8)
    path = write_geotiff(tmp_path / "landcover.tif", codes, 10.0, nodata=0)
    region = resolve_region(district_boundaries, dhamtari_filters, crs="EPSG:4326")

    land_cover = read_land_cover(path, region)

    assert land_cover.crs.to_epsg() == 32644
    assert land_cover.shape[0] <= 12 and land_cover.shape[1] <= 12
    assert 81 <= land_cover.valid.sum() <= 121


def test_write_and_read_back(tmp_path):
    values = np.array([[0.1, 0.2], [0.3, 0.4]], dtype=np.float32)
    mask = np.array([[False, True], [False, False]])
    raster = make_raster(values, resolution=250.0, mask=mask, timestamp=date(2020, 5, 8))

    path = write_raster(raster, tmp_path / "out" / "ndvi.tif")
    restored = read_raster(path)

    np.testing.assert_array_equal(restored.valid, ~mask)
    np.testing.assert_allclose(restored.data.compressed(), [0.1, 0.3, 0.4], rtol=1e-6)
    assert restored.transform == raster.transform
    assert read_timestamp_tag(path) == date(2020, 5, 8)


def test_write_boolean_mask(tmp_path):
    selected = np.array([[True, False]])
    raster = make_raster(selected, mask=~selected)

    restored = read_raster(write_raster(raster, tmp_path / "mask.tif"))

    assert restored.data.dtype == np.uint8
    np.testing.assert_array_equal(restored.data.filled(0), [[1, 0]])
    assert read_timestamp_tag(tmp_path / "mask.tif") is None
