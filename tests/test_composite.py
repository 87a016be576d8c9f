"""Tests for per-phase maximum-extent compositing."""

from datetime import date, timedelta

import numpy as np
import pytest
from shapely.geometry import box

from conftest import ORIGIN_X, ORIGIN_Y, make_raster
from cropphase.exceptions import EmptySeriesError
from cropphase.pipeline.composite import (
    max_phase_composite,
    phase_extents,
    phase_max_extent,
    phase_occurrence,
    region_max,
)

REGION = box(ORIGIN_X, ORIGIN_Y - 2, ORIGIN_X + 3, ORIGIN_Y)


def phase_series():
    # 2x3 grid, three dates; pixel (1, 2) is no-data throughout
    frames = [
        [[1, 2, 2], [0, 1, 9]],
        [[1, 2, 3], [0, 2, 9]],
        [[1, 3, 3], [1, 2, 9]],
    ]
    nodata = np.zeros((2, 3), dtype=bool)
    nodata[1, 2] = True
    first = date(2020, 1, 1)
    return [
        make_raster(np.array(frame, dtype=np.uint8), mask=nodata, timestamp=first + timedelta(days=16 * i))
        for i, frame in enumerate(frames)
    ]


def test_series_spans_month_boundary():
    assert [r.timestamp for r in phase_series()] == [date(2020, 1, 1), date(2020, 1, 17), date(2020, 2, 2)]


def test_occurrence_counts():
    occurrence = phase_occurrence(phase_series(), 2)

    np.testing.assert_array_equal(occurrence.data.filled(-1), [[0, 2, 1], [0, 2, -1]])
    assert occurrence.timestamp is None


def test_max_phase_composite():
    composite = max_phase_composite(phase_series(), 3)

    np.testing.assert_array_equal(composite.valid, [[False, True, True], [False, False, False]])
    assert composite.data.data[0, 1] == 3


def test_region_max():
    occurrence = phase_occurrence(phase_series(), 1)

    assert region_max(occurrence, REGION) == 3


def test_region_max_without_valid_pixels():
    empty = make_raster(np.zeros((2, 3)), mask=np.ones((2, 3), dtype=bool))

    assert region_max(empty, REGION) is None


def test_phase_max_extent():
    extent = phase_max_extent(phase_series(), 2, REGION)

    assert extent.phase == 2
    assert extent.max_count == 2
    np.testing.assert_array_equal(extent.max_extent.valid, [[False, True, False], [False, True, False]])
    assert extent.area_pixels == 3


def test_phase_extents_in_order():
    extents = phase_extents(phase_series(), [1, 2, 3, 4], REGION)

    assert [e.phase for e in extents] == [1, 2, 3, 4]
    assert extents[3].max_count == 0
    assert extents[3].area_pixels == 0


def test_empty_series():
    with pytest.raises(EmptySeriesError):
        phase_occurrence([], 1)
