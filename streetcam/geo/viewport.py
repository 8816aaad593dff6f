"""
Density-limited viewport queries.

Dense city blocks can hold thousands of photos per screen.  Rather than
ranking globally, the viewport is cut into a grid of small pixel cells and
each cell contributes at most ``limit`` hits, so markers stay spread out
and the total is bounded by ``cells × limit``.
"""
from __future__ import annotations

import math
from typing import Any, List

from .extent import GeoExtent

DEFAULT_CELL_PX = 16
DEFAULT_CELL_LIMIT = 3


def viewport_extent(projection) -> GeoExtent:
    """Lon/lat extent of the whole clip extent."""
    (x0, y0), (x1, y1) = projection.clip_extent()
    return GeoExtent.from_corners(
        projection.invert((x0, y1)),
        projection.invert((x1, y0)),
    )


def partition_viewport(projection, cell_px: int = DEFAULT_CELL_PX) -> List[GeoExtent]:
    """Split the viewport into ``cell_px`` × ``cell_px`` cells, row-major."""
    cell_px = cell_px or DEFAULT_CELL_PX
    width, height = projection.clip_extent()[1]
    cells = []
    for y in range(0, math.ceil(height), cell_px):
        for x in range(0, math.ceil(width), cell_px):
            cells.append(GeoExtent.from_corners(
                projection.invert((x, y + cell_px)),
                projection.invert((x + cell_px, y)),
            ))
    return cells


def search_limited(
    projection,
    index,
    cell_px: int = DEFAULT_CELL_PX,
    limit: int = DEFAULT_CELL_LIMIT,
) -> List[Any]:
    """At most *limit* index hits per viewport cell, concatenated."""
    limit = limit or DEFAULT_CELL_LIMIT
    results: List[Any] = []
    for cell in partition_viewport(projection, cell_px):
        results.extend(index.search(cell.bbox())[:limit])
    return results