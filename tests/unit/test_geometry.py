"""
Unit tests for the projection, extents and the density-limited sampler
"""

import pytest

from streetcam.geo.extent import GeoExtent
from streetcam.geo.projection import MercatorProjection, scale_to_zoom, zoom_to_scale
from streetcam.geo.viewport import partition_viewport, search_limited, viewport_extent
from streetcam.storage.spatial_index import SpatialIndex
from tests.conftest import make_record


@pytest.fixture
def small_view():
    """64 x 48 px view -> 4 x 3 = 12 cells of 16 px."""
    return MercatorProjection.at_zoom((13.405, 52.52), zoom=18.5, size=(64, 48))


class TestMercatorProjection:

    def test_zoom_scale_round_trip(self):
        assert scale_to_zoom(zoom_to_scale(16.25)) == pytest.approx(16.25)
        assert scale_to_zoom(1e-6) == 0.0

    def test_center_maps_to_viewport_center(self):
        proj = MercatorProjection.at_zoom((2.35, 48.85), zoom=16, size=(800, 600))
        x, y = proj.project((2.35, 48.85))
        assert x == pytest.approx(400.0, abs=1e-6)
        assert y == pytest.approx(300.0, abs=1e-6)

    def test_invert_project(self):
        proj = MercatorProjection.at_zoom((2.35, 48.85), zoom=16, size=(800, 600))
        lon, lat = proj.invert(proj.project((2.36, 48.86)))
        assert lon == pytest.approx(2.36, abs=1e-9)
        assert lat == pytest.approx(48.86, abs=1e-9)

    def test_pixel_y_grows_southward(self):
        proj = MercatorProjection.at_zoom((2.35, 48.85), zoom=16, size=(800, 600))
        assert proj.invert((400, 0))[1] > proj.invert((400, 600))[1]


class TestGeoExtent:

    def test_corners_normalised(self):
        e = GeoExtent.from_corners((10.0, 5.0), (8.0, 7.0))
        assert e.bbox() == (8.0, 5.0, 10.0, 7.0)
        assert e.center() == (9.0, 6.0)

    def test_point_extent(self):
        e = GeoExtent.from_corners((1.0, 2.0))
        assert e.bbox() == (1.0, 2.0, 1.0, 2.0)
        assert e.contains((1.0, 2.0))

    def test_pad_by_meters_at_equator(self):
        e = GeoExtent.from_corners((0.0, 0.0)).pad_by_meters(1000.0)
        # ~1 km is ~0.009 degrees at the equator
        assert e.max[1] == pytest.approx(0.00904, abs=1e-4)
        assert e.min[1] == pytest.approx(-0.00904, abs=1e-4)
        assert e.max[0] == pytest.approx(0.00898, abs=1e-4)
        assert e.min[0] == pytest.approx(-0.00898, abs=1e-4)

    def test_pad_widens_longitude_at_high_latitude(self):
        e = GeoExtent.from_corners((10.0, 60.0)).pad_by_meters(1000.0)
        assert (e.max[0] - 10.0) > 2 * (e.max[1] - 60.0) * 0.9


class TestViewportSampler:

    def test_partition_count_and_coverage(self, small_view):
        cells = partition_viewport(small_view, 16)
        assert len(cells) == 12
        whole = viewport_extent(small_view)
        assert cells[0].min[0] == pytest.approx(whole.min[0])
        assert cells[0].max[1] == pytest.approx(whole.max[1])
        assert cells[-1].max[0] == pytest.approx(whole.max[0])
        assert cells[-1].min[1] == pytest.approx(whole.min[1])

    def test_partial_cells_are_included(self):
        proj = MercatorProjection.at_zoom((13.405, 52.52), zoom=18.5, size=(40, 20))
        assert len(partition_viewport(proj, 16)) == 3 * 2

    def test_cap_per_cell(self, small_view):
        lon, lat = small_view.invert((8, 8))   # centre of the top-left cell
        index = SpatialIndex()
        index.load([((lon, lat, lon, lat), make_record(lon, lat, key=str(i)))
                    for i in range(10)])
        hits = search_limited(small_view, index, cell_px=16, limit=3)
        assert [r.key for r in hits] == ["0", "1", "2"]

    def test_result_bounded_for_dense_data(self, small_view):
        whole = viewport_extent(small_view)
        (min_x, min_y, max_x, max_y) = whole.bbox()
        index = SpatialIndex()
        entries = []
        n = 40
        for i in range(n):
            for j in range(n):
                lon = min_x + (i + 0.5) / n * (max_x - min_x)
                lat = min_y + (j + 0.5) / n * (max_y - min_y)
                entries.append(((lon, lat, lon, lat), make_record(lon, lat, key=f"{i}-{j}")))
        index.load(entries)

        hits = search_limited(small_view, index, cell_px=16, limit=3)
        assert len(hits) <= 12 * 3
        assert len(hits) >= 12   # every cell has data

    def test_empty_index(self, small_view):
        assert search_limited(small_view, SpatialIndex()) == []
