"""
Street-level imagery service: the renderer-facing facade.

Wires the catalog client, the paginated tile loader and the viewport
sampler together, and tells the renderer when to redraw.

Signals
-------
images_loaded()
    Emitted after each page of images has been indexed.  It is emitted
    from a fetch worker thread; connect with ``QtCore.Qt.QueuedConnection``
    to handle it on the GUI thread.

Usage
-----
    service = StreetcamService(load_config())
    service.images_loaded.connect(layer.redraw)
    service.load_images(projection)          # on every map move
    markers = service.images(projection)     # at most cells × 3
    lines = service.sequences(projection)
"""
from __future__ import annotations

import logging
from concurrent.futures import Executor
from typing import List, Optional

from PyQt5 import QtCore

from .config import StreetcamConfig
from .geo.viewport import search_limited, viewport_extent
from .ingest.catalog_client import CatalogClient, ImageRecord
from .ingest.tile_loader import PaginatedTileLoader
from .storage.cache import ImageCache

log = logging.getLogger(__name__)


class StreetcamService(QtCore.QObject):
    """Imagery loading and querying for one map session."""

    images_loaded = QtCore.pyqtSignal()

    def __init__(
        self,
        config: Optional[StreetcamConfig] = None,
        client: Optional[CatalogClient] = None,
        executor: Optional[Executor] = None,
        parent: Optional[QtCore.QObject] = None,
    ):
        super().__init__(parent)
        self.config = config or StreetcamConfig()
        self.client = client or CatalogClient(
            api_base=self.config.api_base,
            timeout=self.config.timeout,
            retry=self.config.retry_policy,
        )
        self._loader = PaginatedTileLoader(
            self.client,
            executor=executor,
            page_size=self.config.page_size,
            max_workers=self.config.max_workers,
            tile_zoom=self.config.tile_zoom,
            on_page_loaded=self.images_loaded.emit,
        )
        log.info(
            "StreetcamService ready (api %s, page size %d, %d workers)",
            self.config.api_base, self.config.page_size, self.config.max_workers,
        )

    # ── loading ───────────────────────────────────────────────────────

    def load_images(self, projection) -> None:
        """Fetch imagery for the tiles in view (non-blocking)."""
        self._loader.load_tiles(projection)

    def reset(self) -> None:
        self._loader.reset()

    def shutdown(self) -> None:
        self._loader.shutdown()

    @property
    def cache(self) -> ImageCache:
        return self._loader.cache

    @property
    def loader(self) -> PaginatedTileLoader:
        return self._loader

    # ── queries ───────────────────────────────────────────────────────

    def images(self, projection) -> List[ImageRecord]:
        """Markers to draw: at most ``cell_limit`` per viewport cell."""
        with self._loader.lock:
            return search_limited(
                projection,
                self._loader.cache.index,
                cell_px=self.config.cell_px,
                limit=self.config.cell_limit,
            )

    def sequences(self, projection) -> List[dict]:
        """LineStrings for every sequence with an image in view."""
        bbox = viewport_extent(projection).bbox()
        with self._loader.lock:
            cache = self._loader.cache
            keys = dict.fromkeys(r.sequence_id for r in cache.index.search(bbox))
            return cache.sequences.line_strings(keys)

    def get_sequence_key_for_image(self, record: Optional[ImageRecord]) -> Optional[str]:
        return record.sequence_id if record is not None else None

    def sequence_image_keys(self, record: Optional[ImageRecord]) -> List[str]:
        """Keys of all loaded images sharing *record*'s sequence."""
        key = self.get_sequence_key_for_image(record)
        if key is None:
            return []
        with self._loader.lock:
            return self._loader.cache.sequences.image_keys(key)

    # ── attribution ───────────────────────────────────────────────────

    def image_url(self, record: ImageRecord) -> str:
        return self.client.image_url(record)

    def details_url(self, record: ImageRecord) -> str:
        return self.client.details_url(record)

    def user_url(self, username: str) -> str:
        return self.client.user_url(username)
