"""
Unit tests for the viewport tile grid
"""

import pytest

from streetcam.geo.projection import MercatorProjection
from streetcam.geo.tile_grid import (
    TILE_ZOOM, Tile, effective_zoom, get_tiles, near_null_island,
)
from tests.conftest import SF_TILE, tile_center, tile_edge_lon


class TestNearNullIsland:
    """Suppression band around lon/lat 0,0"""

    def test_center_tile_suppressed(self):
        assert near_null_island(8192, 8192, 14)

    def test_band_edges_at_zoom_14(self):
        # width 2^8 = 256 tiles, centred on 8192
        assert near_null_island(8064, 8064, 14)
        assert near_null_island(8319, 8319, 14)
        assert not near_null_island(8063, 8192, 14)
        assert not near_null_island(8192, 8320, 14)

    def test_band_at_zoom_7(self):
        # centre 64, width 2 -> tiles 63 and 64
        assert near_null_island(63, 64, 7)
        assert near_null_island(64, 63, 7)
        assert not near_null_island(62, 64, 7)
        assert not near_null_island(65, 64, 7)

    def test_no_suppression_below_zoom_7(self):
        for z in range(0, 7):
            c = 2 ** max(z - 1, 0)
            assert not near_null_island(c, c, z)


class TestGetTiles:
    """Viewport -> tile decomposition"""

    def test_single_tile_view(self, sf_projection):
        tiles = get_tiles(sf_projection)
        assert [t.xyz for t in tiles] == [(SF_TILE[0], SF_TILE[1], TILE_ZOOM)]

    def test_extent_contains_tile_center(self, sf_projection):
        tile = get_tiles(sf_projection)[0]
        assert tile.extent.contains(tile_center(*SF_TILE))
        assert tile.extent.min[0] == pytest.approx(tile_edge_lon(SF_TILE[0]), abs=1e-7)
        assert tile.extent.max[0] == pytest.approx(tile_edge_lon(SF_TILE[0] + 1), abs=1e-7)

    def test_view_straddling_two_columns(self):
        x, y = SF_TILE
        center = (tile_edge_lon(x + 1), tile_center(x, y)[1])
        proj = MercatorProjection.at_zoom(center, zoom=17.5, size=(256, 256))
        assert [t.xyz[:2] for t in get_tiles(proj)] == [(x, y), (x + 1, y)]

    def test_deterministic(self):
        proj = MercatorProjection.at_zoom((-122.42, 37.77), zoom=15.5, size=(1024, 768))
        first = get_tiles(proj)
        second = get_tiles(proj)
        assert first == second
        assert len({t.id for t in first}) == len(first)
        assert len(first) > 1

    def test_null_island_tiles_dropped(self):
        proj = MercatorProjection.at_zoom((0.001, 0.001), zoom=17.5, size=(256, 256))
        assert get_tiles(proj) == []
        kept = get_tiles(proj, skip_null_island=False)
        assert kept and all(near_null_island(*t.xyz) for t in kept)

    def test_effective_zoom(self, sf_projection):
        assert effective_zoom(sf_projection) == pytest.approx(17.5)

    def test_tile_identity_is_structural(self, sf_projection):
        a = get_tiles(sf_projection)[0]
        b = Tile(x=a.x, y=a.y, z=a.z, extent=a.extent)
        assert a == b
        assert a.id == f"{a.x},{a.y},{a.z}"
