"""
Imagery offset database client.

Aerial imagery layers are often shifted by a few metres.  The offset
database stores crowd-measured corrections per imagery source; this client
looks them up around a location and caches the answers in a spatial index
so nearby lookups are served locally.

The service answers a JSON list whose first row is metadata; the rest are
offsets.  An answer with fewer than two rows means nothing is known near
the location, reported as :class:`OffsetNotFoundError`.

Usage
-----
    svc = ImageryOffsetService()
    offsets = svc.search((-0.1276, 51.5072)).result(timeout=30)
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlencode

import requests

from ..geo.extent import GeoExtent
from ..storage.spatial_index import SpatialIndex
from . import NO_RETRY, RetryPolicy, fetch_with_retry
from .errors import OffsetLookupError, OffsetNotFoundError

log = logging.getLogger(__name__)

DEFAULT_OFFSET_API = "http://offsets.textual.ru/get"
DEFAULT_RADIUS_KM = 20          # service default is 10
DEFAULT_PAD_M = 1000.0


@dataclass(frozen=True)
class ImageryOffset:
    """One measured offset."""
    loc: Tuple[float, float]                    # (lon, lat) of the measurement
    imagery: str = ""
    imagery_loc: Optional[Tuple[float, float]] = None
    author: str = ""
    date: str = ""
    description: str = ""
    raw: dict = field(default_factory=dict, compare=False, repr=False)


def _parse_offset(row: dict) -> Optional[ImageryOffset]:
    """Parse one offset row; None if it has no usable location."""
    try:
        lon = float(row["lon"])
        lat = float(row["lat"])
    except (KeyError, TypeError, ValueError) as exc:
        log.debug("Skipping offset row without location: %s", exc)
        return None

    im_loc = None
    if "imlon" in row and "imlat" in row:
        try:
            im_loc = (float(row["imlon"]), float(row["imlat"]))
        except (TypeError, ValueError):
            im_loc = None

    return ImageryOffset(
        loc=(lon, lat),
        imagery=str(row.get("imagery", "") or ""),
        imagery_loc=im_loc,
        author=str(row.get("author", "") or ""),
        date=str(row.get("date", "") or ""),
        description=str(row.get("description", "") or ""),
        raw=dict(row),
    )


class ImageryOffsetService:
    """Cached, de-duplicated offset lookups.

    Lookups run on *executor* (a small private pool by default) and are
    returned as futures.  While a lookup for a URL is pending, asking again
    returns the same future.
    """

    def __init__(
        self,
        api_base: str = DEFAULT_OFFSET_API,
        radius_km: int = DEFAULT_RADIUS_KM,
        pad_m: float = DEFAULT_PAD_M,
        timeout: float = 20.0,
        retry: RetryPolicy = NO_RETRY,
        executor: Optional[Executor] = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_base = api_base
        self.radius_km = radius_km
        self.pad_m = pad_m
        self.timeout = timeout
        self.retry = retry
        self.session = session or requests.Session()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="streetcam-offset",
        )
        self._lock = threading.Lock()
        self._inflight: Dict[str, Future] = {}
        self._index = SpatialIndex()

    @classmethod
    def from_config(cls, cfg, **kwargs) -> "ImageryOffsetService":
        """Build from a :class:`~streetcam.config.StreetcamConfig`."""
        return cls(
            api_base=cfg.offset_api_base,
            radius_km=cfg.offset_radius_km,
            pad_m=cfg.offset_pad_m,
            timeout=cfg.timeout,
            retry=cfg.retry_policy,
            **kwargs,
        )

    @property
    def index(self) -> SpatialIndex:
        return self._index

    def build_url(self, location: Tuple[float, float]) -> str:
        params = {
            "radius": self.radius_km,
            "format": "json",
            "lat": location[1],
            "lon": location[0],
        }
        return f"{self.api_base}?{urlencode(params)}"

    def search(self, location: Tuple[float, float]) -> Future:
        """Offsets near *location* (lon, lat), as a Future.

        The future's result is a list of :class:`ImageryOffset`.  It fails
        with :class:`OffsetNotFoundError` when the service knows nothing
        nearby and :class:`OffsetLookupError` on any other failure.
        """
        lon, lat = location
        cached = self._index.search((lon, lat, lon, lat))
        if cached:
            done: Future = Future()
            done.set_result(cached)
            return done

        url = self.build_url(location)
        with self._lock:
            pending = self._inflight.get(url)
            if pending is not None:
                return pending
            future = self._executor.submit(self._lookup, url, self._index)
            self._inflight[url] = future
        future.add_done_callback(lambda f, u=url: self._forget(u, f))
        return future

    def reset(self) -> None:
        """Cancel pending lookups and drop cached offsets."""
        with self._lock:
            pending = list(self._inflight.values())
            self._inflight = {}
            self._index = SpatialIndex()
        # cancel() runs done callbacks, which take the lock
        for future in pending:
            future.cancel()

    def shutdown(self) -> None:
        self.reset()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    # ── internals ─────────────────────────────────────────────────────

    def _forget(self, url: str, future: Future) -> None:
        with self._lock:
            if self._inflight.get(url) is future:
                del self._inflight[url]

    def _lookup(self, url: str, index: SpatialIndex) -> List[ImageryOffset]:
        try:
            resp = fetch_with_retry(
                url, timeout=self.timeout, policy=self.retry, session=self.session,
            )
            result = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise OffsetLookupError(f"Offset lookup failed: {exc}") from exc

        if isinstance(result, dict):
            raise OffsetLookupError(str(result.get("error") or "Unexpected offset response"))
        if not isinstance(result, list) or len(result) < 2:
            raise OffsetNotFoundError("No imagery offset found.")

        offsets = []
        entries = []
        for row in result[1:]:
            if not isinstance(row, dict):
                continue
            offset = _parse_offset(row)
            if offset is None:
                continue
            offsets.append(offset)
            extent = GeoExtent.from_corners(offset.loc).pad_by_meters(self.pad_m)
            entries.append((extent.bbox(), offset))

        index.load(entries)
        log.info("Offset lookup: %d offsets cached from %s", len(offsets), url[:80])
        return offsets
