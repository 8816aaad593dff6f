"""
Bulk-loadable bounding-box index.

Thin wrapper over :class:`shapely.STRtree`.  An STRtree is immutable once
built, so entries are appended to a pending list and the tree is rebuilt
lazily on the next search.  Loading a whole catalog page in one ``load()``
call costs one rebuild instead of one per record.

Entries are never removed individually.  ``clear()`` drops everything.

Usage
-----
    index = SpatialIndex()
    index.load([((lon, lat, lon, lat), record) for record in page])
    hits = index.search((min_lon, min_lat, max_lon, max_lat))
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Iterable, List, Optional, Tuple

import numpy as np
from shapely import STRtree
from shapely.geometry import LineString, Point, box

log = logging.getLogger(__name__)

BBox = Tuple[float, float, float, float]


def _bbox_geometry(bbox: BBox):
    min_x, min_y, max_x, max_y = bbox
    if min_x > max_x or min_y > max_y:
        raise ValueError(f"Inverted bbox: {bbox}")
    if min_x == max_x and min_y == max_y:
        return Point(min_x, min_y)
    if min_x == max_x or min_y == max_y:
        return LineString([(min_x, min_y), (max_x, max_y)])
    return box(min_x, min_y, max_x, max_y)


class SpatialIndex:
    """Append-only R-tree style index of (bbox, payload) entries.

    Thread-safe: the lazy rebuild is guarded by a lock so concurrent
    searches never observe a half-built tree.
    """

    def __init__(self) -> None:
        self._geoms: List[Any] = []
        self._payloads: List[Any] = []
        self._tree: Optional[STRtree] = None
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._payloads)

    def load(self, entries: Iterable[Tuple[BBox, Any]]) -> int:
        """Bulk-insert (bbox, payload) pairs.  Returns the number added."""
        geoms = []
        payloads = []
        for bbox, payload in entries:
            geoms.append(_bbox_geometry(bbox))
            payloads.append(payload)
        if not geoms:
            return 0
        with self._lock:
            self._geoms.extend(geoms)
            self._payloads.extend(payloads)
            self._tree = None
        log.debug("Spatial index: +%d entries (%d total)", len(geoms), len(self._payloads))
        return len(geoms)

    def insert(self, bbox: BBox, payload: Any) -> None:
        self.load([(bbox, payload)])

    def search(self, bbox: BBox) -> List[Any]:
        """Payloads whose bbox intersects *bbox*, in insertion order."""
        with self._lock:
            if not self._geoms:
                return []
            if self._tree is None:
                self._tree = STRtree(self._geoms)
            idx = self._tree.query(_bbox_geometry(bbox), predicate="intersects")
            payloads = self._payloads
        return [payloads[i] for i in np.sort(idx)]

    def clear(self) -> None:
        with self._lock:
            self._geoms = []
            self._payloads = []
            self._tree = None

    def all(self) -> List[Any]:
        with self._lock:
            return list(self._payloads)
