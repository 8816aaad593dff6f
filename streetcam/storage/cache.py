"""
Session cache for loaded imagery.

One ImageCache holds everything the loader knows about the current session:

  - ``loaded``     (tile id, page) pairs that have completed
  - ``inflight``   (tile id, page) → InflightRequest for pending fetches
  - ``next_page``  per-tile page cursor (missing = page 1)
  - ``index``      SpatialIndex of ImageRecords
  - ``sequences``  SequenceAssembler

A cache is only ever replaced wholesale (see ``PaginatedTileLoader.reset``).
"""
from __future__ import annotations

from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Dict, Set, Tuple

from ..geo.tile_grid import Tile
from .sequences import SequenceAssembler
from .spatial_index import SpatialIndex

# Cursor value meaning "no more pages for this tile"
EXHAUSTED = float("inf")

PageKey = Tuple[str, int]   # (tile id, page)


@dataclass(eq=False)
class InflightRequest:
    """A submitted page fetch."""
    tile: Tile
    page: int
    zoom: int           # floored view zoom when the request was issued
    future: Future

    @property
    def key(self) -> PageKey:
        return (self.tile.id, self.page)


@dataclass
class ImageCache:
    loaded: Set[PageKey] = field(default_factory=set)
    inflight: Dict[PageKey, InflightRequest] = field(default_factory=dict)
    next_page: Dict[str, float] = field(default_factory=dict)
    index: SpatialIndex = field(default_factory=SpatialIndex)
    sequences: SequenceAssembler = field(default_factory=SequenceAssembler)

    def cursor(self, tile_id: str) -> float:
        return self.next_page.get(tile_id, 1)

    def is_pending_or_loaded(self, key: PageKey) -> bool:
        return key in self.loaded or key in self.inflight

    def stats(self) -> Dict[str, int]:
        return {
            "loaded_pages": len(self.loaded),
            "inflight_pages": len(self.inflight),
            "images": len(self.index),
            "sequences": len(self.sequences),
            "exhausted_tiles": sum(1 for v in self.next_page.values() if v == EXHAUSTED),
        }
