"""Shared fixtures: a hand-cranked executor, a scripted catalog, projections."""
from __future__ import annotations

import math
from collections import deque
from concurrent.futures import Executor, Future
from typing import Dict, List, Tuple

import pytest

from streetcam.geo.projection import MercatorProjection
from streetcam.ingest.catalog_client import ImageRecord

# Downtown San Francisco, well away from null island
SF_TILE = (2620, 6331)


class ManualExecutor(Executor):
    """Queues submitted calls until the test runs them."""

    def __init__(self):
        self.pending = deque()

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_next(self) -> Future:
        future, fn, args, kwargs = self.pending.popleft()
        if not future.set_running_or_notify_cancel():
            return future
        try:
            result = fn(*args, **kwargs)
        except BaseException as exc:
            future.set_exception(exc)
        else:
            future.set_result(result)
        return future

    def run_all(self, limit: int = 1000) -> int:
        n = 0
        while self.pending and n < limit:
            self.run_next()
            n += 1
        return n

    def shutdown(self, wait=True, *, cancel_futures=False):
        if cancel_futures:
            for future, *_ in self.pending:
                future.cancel()
            self.pending.clear()


class FakeCatalog:
    """Catalog stand-in answering from a script of pages.

    ``pages[page]`` is a record count, a list of records, or an exception.
    Anything unscripted answers with an empty page.
    """

    def __init__(self, pages: Dict[int, object] = None, sequence_id: str = "seq-1"):
        self.pages = pages or {}
        self.sequence_id = sequence_id
        self.calls: List[Tuple[tuple, int, int]] = []

    def fetch_page(self, bbox, page, page_size):
        self.calls.append((bbox, page, page_size))
        answer = self.pages.get(page, [])
        if isinstance(answer, BaseException):
            raise answer
        if isinstance(answer, int):
            start = (page - 1) * page_size
            return records_in(bbox, answer, sequence_id=self.sequence_id, start=start)
        return answer


def tile_center(x: int, y: int, z: int = 14) -> Tuple[float, float]:
    """Lon/lat of the centre of slippy tile (x, y, z)."""
    n = 2 ** z
    lon = (x + 0.5) / n * 360.0 - 180.0
    lat = math.degrees(math.atan(math.sinh(math.pi * (1 - 2 * (y + 0.5) / n))))
    return lon, lat


def tile_edge_lon(x: int, z: int = 14) -> float:
    """Longitude of the western edge of tile column *x*."""
    return x / 2 ** z * 360.0 - 180.0


def make_record(
    lon: float,
    lat: float,
    key: str = "img",
    sequence_id: str = "seq-1",
    sequence_index: int = 0,
) -> ImageRecord:
    return ImageRecord(
        loc=(lon, lat),
        key=key,
        heading=90.0,
        captured_at=None,
        captured_by="mapper",
        image_path=f"files/photo/{key}.jpg",
        sequence_id=sequence_id,
        sequence_index=sequence_index,
    )


def records_in(bbox, count: int, sequence_id: str = "seq-1", start: int = 0) -> List[ImageRecord]:
    """*count* records spread along the diagonal of *bbox*."""
    min_x, min_y, max_x, max_y = bbox
    out = []
    for i in range(count):
        t = (i + 1) / (count + 1)
        out.append(make_record(
            min_x + t * (max_x - min_x),
            min_y + t * (max_y - min_y),
            key=f"{sequence_id}-{start + i}",
            sequence_id=sequence_id,
            sequence_index=start + i,
        ))
    return out


@pytest.fixture
def executor():
    return ManualExecutor()


@pytest.fixture
def sf_projection():
    """256 px view inside a single zoom-14 tile, view zoom 17 (floored)."""
    return MercatorProjection.at_zoom(tile_center(*SF_TILE), zoom=17.5, size=(256, 256))
