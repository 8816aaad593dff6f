"""
Viewport tile grid for catalog queries.

The visible map area is covered by a set of square slippy-map tiles at a
fixed indexing zoom (14).  Each tile is the unit of catalog querying: the
loader pages through the catalog once per tile, using the tile's lon/lat
extent as the query box.

Tiles are recomputed from the projection on every call and never cached.
Tiles in a small band around (0°, 0°) are dropped: a lot of badly geotagged
imagery lands there and querying it is pure waste.

Usage
-----
    tiles = get_tiles(projection)
    for tile in tiles:
        print(tile.id, tile.extent.bbox())
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Tuple

from .extent import GeoExtent
from .projection import TILE_PX, scale_to_zoom

TILE_ZOOM = 14

# Null-island suppression only makes sense once tiles are small
_NULL_ISLAND_MIN_ZOOM = 7


@dataclass(frozen=True)
class Tile:
    """One catalog tile at the indexing zoom."""

    x: int
    y: int
    z: int
    extent: GeoExtent

    @property
    def id(self) -> str:
        return f"{self.x},{self.y},{self.z}"

    @property
    def xyz(self) -> Tuple[int, int, int]:
        return (self.x, self.y, self.z)


def effective_zoom(projection) -> float:
    """Fractional zoom implied by the projection scale."""
    return scale_to_zoom(projection.scale())


def near_null_island(x: int, y: int, z: int) -> bool:
    """True if tile (x, y, z) lies in the square band around lon/lat 0,0.

    The band is ``2^(z-6)`` tiles wide and centred on tile ``2^(z-1)``.
    Below zoom 7 nothing is suppressed.
    """
    if z < _NULL_ISLAND_MIN_ZOOM:
        return False
    center = 2 ** (z - 1)
    width = 2 ** (z - 6)
    lo = center - width // 2
    hi = center + width // 2 - 1
    return lo <= x <= hi and lo <= y <= hi


def _tile_coords(projection, tile_zoom: int) -> List[Tuple[int, int, int]]:
    """Tile indices at *tile_zoom* overlapping the projection viewport."""
    s = projection.scale() * 2.0 * math.pi
    tx, ty = projection.translate()
    width, height = projection.clip_extent()[1]

    z = max(math.log2(s) - 8.0, 0.0)
    k = 2.0 ** (z - tile_zoom + 8.0)
    origin_x = (tx - s / 2.0) / k
    origin_y = (ty - s / 2.0) / k
    world = 2 ** tile_zoom

    cols = range(
        min(world, max(0, math.floor(-origin_x))),
        min(world, max(0, math.ceil(width / k - origin_x))),
    )
    rows = range(
        min(world, max(0, math.floor(-origin_y))),
        min(world, max(0, math.ceil(height / k - origin_y))),
    )
    return [(x, y, tile_zoom) for y in rows for x in cols]


def get_tiles(
    projection,
    tile_zoom: int = TILE_ZOOM,
    skip_null_island: bool = True,
) -> List[Tile]:
    """Tiles covering the projection viewport.

    Parameters
    ----------
    projection
        Anything with ``scale()``, ``translate()``, ``invert(point)`` and
        ``clip_extent()``; see :mod:`streetcam.geo.projection`.
    tile_zoom : int
        Indexing zoom (default 14).
    skip_null_island : bool
        Drop tiles in the band around lon/lat 0,0.

    Returns
    -------
    list[Tile]
        Deduplicated tiles in row-major order.
    """
    s = projection.scale() * 2.0 * math.pi
    tx, ty = projection.translate()
    z = effective_zoom(projection)
    ts = TILE_PX * 2.0 ** (z - tile_zoom)
    origin_x = s / 2.0 - tx
    origin_y = s / 2.0 - ty

    tiles: List[Tile] = []
    seen = set()
    for x, y, tz in _tile_coords(projection, tile_zoom):
        if (x, y, tz) in seen:
            continue
        seen.add((x, y, tz))
        if skip_null_island and near_null_island(x, y, tz):
            continue

        px = x * ts - origin_x
        py = y * ts - origin_y
        extent = GeoExtent.from_corners(
            projection.invert((px, py + ts)),
            projection.invert((px + ts, py)),
        )
        tiles.append(Tile(x=x, y=y, z=tz, extent=extent))

    return tiles
