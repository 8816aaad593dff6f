"""
Paginated, tile-by-tile catalog loader.

For every tile covering the viewport the loader walks the catalog's pages
one at a time: page N+1 is requested only after page N came back full.
Each (tile, page) moves through

    INIT → IN_FLIGHT → LOADED_FULL      (next page requested)
                     → LOADED_TERMINAL  (short or empty page, tile exhausted)
                     → FAILED           (transport / schema error, no retry)
    IN_FLIGHT → ABORTED                 (tile scrolled out of view)

Fetches run on a bounded thread pool.  All cache mutations happen under a
single lock inside the completion callback; the decision itself is made
by :func:`plan_completion`, which only reads its arguments.

A completion is discarded without touching the cache when its tile is no
longer wanted, when its request was aborted or superseded, or when the
cache was reset while it was running.

Usage
-----
    loader = PaginatedTileLoader(CatalogClient(), on_page_loaded=redraw)
    loader.load_tiles(projection)        # on every viewport change
"""
from __future__ import annotations

import enum
import functools
import logging
import math
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Collection, Dict, List, Optional, Tuple

from ..geo.tile_grid import TILE_ZOOM, Tile, effective_zoom, get_tiles
from ..storage.cache import EXHAUSTED, ImageCache, InflightRequest, PageKey
from .catalog_client import DEFAULT_PAGE_SIZE, ImageRecord

log = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8


class PageOutcome(enum.Enum):
    """Result of a finished page fetch."""
    LOADED_FULL = "loaded_full"
    LOADED_TERMINAL = "loaded_terminal"
    FAILED = "failed"
    DISCARDED = "discarded"


def max_page_at_zoom(z: int) -> int:
    """Page cap per tile for a (floored) view zoom."""
    if z < 15:
        return 2
    if z == 15:
        return 5
    if z == 16:
        return 10
    if z == 17:
        return 20
    if z == 18:
        return 40
    return 80


@dataclass
class CompletionPlan:
    """What to do with a finished page fetch."""
    outcome: PageOutcome
    key: PageKey
    records: List[ImageRecord] = field(default_factory=list)
    next_page: Optional[float] = None    # new cursor, None = unchanged
    error: Optional[BaseException] = None

    @property
    def chain(self) -> bool:
        return self.outcome is PageOutcome.LOADED_FULL


def plan_completion(
    cache: ImageCache,
    wanted_ids: Collection[str],
    request: InflightRequest,
    records: Optional[List[ImageRecord]] = None,
    error: Optional[BaseException] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> CompletionPlan:
    """Decide the outcome of a page fetch.  Does not modify *cache*."""
    key = request.key
    if cache.inflight.get(key) is not request or request.tile.id not in wanted_ids:
        return CompletionPlan(PageOutcome.DISCARDED, key)

    if error is not None:
        return CompletionPlan(PageOutcome.FAILED, key, error=error)

    records = records or []
    if len(records) == page_size:
        return CompletionPlan(
            PageOutcome.LOADED_FULL, key, records=records, next_page=request.page + 1,
        )
    return CompletionPlan(
        PageOutcome.LOADED_TERMINAL, key, records=records, next_page=EXHAUSTED,
    )


class PaginatedTileLoader:
    """Keeps the image cache filled for the tiles in view.

    Parameters
    ----------
    client
        Object with ``fetch_page(bbox, page, page_size) -> list[ImageRecord]``
        raising :class:`~streetcam.ingest.errors.CatalogError` on failure.
    executor : concurrent.futures.Executor, optional
        Where fetches run.  Defaults to a private thread pool of
        *max_workers* threads, which bounds the number of concurrent
        requests across all tiles.
    on_page_loaded : callable, optional
        Called with no arguments, outside the cache lock, after a page
        with images has been indexed.
    """

    def __init__(
        self,
        client,
        executor: Optional[Executor] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_workers: int = DEFAULT_MAX_WORKERS,
        tile_zoom: int = TILE_ZOOM,
        on_page_loaded: Optional[Callable[[], None]] = None,
    ):
        self._client = client
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="streetcam-page",
        )
        self.page_size = page_size
        self.tile_zoom = tile_zoom
        self.on_page_loaded = on_page_loaded

        self._lock = threading.RLock()
        self._cache = ImageCache()
        self._wanted: Dict[str, Tile] = {}

    # ── accessors ─────────────────────────────────────────────────────

    @property
    def cache(self) -> ImageCache:
        return self._cache

    @property
    def lock(self) -> threading.RLock:
        """Held for every cache mutation; take it for consistent reads."""
        return self._lock

    @property
    def wanted_tiles(self) -> List[Tile]:
        with self._lock:
            return list(self._wanted.values())

    # ── control ───────────────────────────────────────────────────────

    def load_tiles(self, projection) -> List[Tile]:
        """Reconcile in-flight requests against the viewport and fetch.

        Returns the wanted tiles.
        """
        curr_zoom = math.floor(effective_zoom(projection))
        tiles = get_tiles(projection, tile_zoom=self.tile_zoom)

        with self._lock:
            cache = self._cache
            self._wanted = {t.id: t for t in tiles}
            aborted = self._abort_unwanted(cache)
            issued = []
            for tile in tiles:
                request = self._load_next_page(cache, tile, curr_zoom)
                if request is not None:
                    issued.append(request)

        log.debug(
            "load_tiles: zoom %d, %d tiles wanted, %d requests issued, %d aborted",
            curr_zoom, len(tiles), len(issued), len(aborted),
        )
        self._watch(issued)
        return tiles

    def reset(self) -> None:
        """Cancel everything in flight and start over with an empty cache."""
        with self._lock:
            old = self._cache
            for request in old.inflight.values():
                request.future.cancel()
            self._cache = ImageCache()
            self._wanted = {}
        log.info("Image cache reset (%d requests cancelled)", len(old.inflight))

    def shutdown(self) -> None:
        self.reset()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    # ── internals ─────────────────────────────────────────────────────

    def _abort_unwanted(self, cache: ImageCache) -> List[PageKey]:
        aborted = []
        for key, request in list(cache.inflight.items()):
            if request.tile.id in self._wanted:
                continue
            del cache.inflight[key]
            request.future.cancel()
            aborted.append(key)
        if aborted:
            log.debug("Aborted %d requests for tiles out of view", len(aborted))
        return aborted

    def _load_next_page(
        self, cache: ImageCache, tile: Tile, zoom: int,
    ) -> Optional[InflightRequest]:
        """Submit the tile's next page.  The caller must :meth:`_watch` it."""
        page = cache.cursor(tile.id)
        if page > max_page_at_zoom(zoom):
            return None
        page = int(page)
        key = (tile.id, page)
        if cache.is_pending_or_loaded(key):
            return None

        future: Future = self._executor.submit(
            self._client.fetch_page, tile.extent.bbox(), page, self.page_size,
        )
        request = InflightRequest(tile=tile, page=page, zoom=zoom, future=future)
        cache.inflight[key] = request
        return request

    def _watch(self, requests: List[InflightRequest]) -> None:
        # A future that is already done runs its callback right here, so
        # this must never be called with the lock held.
        for request in requests:
            request.future.add_done_callback(functools.partial(self._on_page_done, request))

    def _on_page_done(self, request: InflightRequest, future: Future) -> None:
        if future.cancelled():
            log.debug("Page %s cancelled", request.key)
            return

        error = future.exception()
        records = None if error is not None else future.result()

        with self._lock:
            cache = self._cache
            plan = plan_completion(
                cache, self._wanted, request,
                records=records, error=error, page_size=self.page_size,
            )
            plan, chained = self._apply(cache, request, plan)

        if plan.records and self.on_page_loaded is not None:
            self.on_page_loaded()
        if chained is not None:
            self._watch([chained])

    def _apply(
        self, cache: ImageCache, request: InflightRequest, plan: CompletionPlan,
    ) -> Tuple[CompletionPlan, Optional[InflightRequest]]:
        if plan.outcome is PageOutcome.DISCARDED:
            log.debug("Discarding stale page %s", plan.key)
            return plan, None

        # Data goes in before any bookkeeping changes.  SpatialIndex.load is
        # all-or-nothing; if it fails the page is treated as failed.
        if plan.records:
            try:
                cache.index.load([(r.bbox, r) for r in plan.records])
            except Exception as exc:
                log.exception("Could not index page %s", plan.key)
                plan = CompletionPlan(PageOutcome.FAILED, plan.key, error=exc)
            else:
                cache.sequences.add_all(plan.records)

        del cache.inflight[plan.key]
        cache.loaded.add(plan.key)

        if plan.outcome is PageOutcome.FAILED:
            log.warning("Catalog page %s failed: %s", plan.key, plan.error)
            return plan, None

        if plan.next_page is not None:
            cache.next_page[request.tile.id] = plan.next_page

        log.debug("Page %s: %d images (%s)", plan.key, len(plan.records), plan.outcome.value)

        chained = None
        if plan.chain:
            chained = self._load_next_page(cache, request.tile, request.zoom)
        return plan, chained
