"""
Street-level imagery catalog client.

Queries the "nearby photos" endpoint of the imagery catalog for one page of
images inside a bounding box, and validates each item into an
:class:`ImageRecord`.

The endpoint takes a form-encoded POST:

    ipp            items per page
    page           1-based page number
    bbTopLeft      "maxLat,minLon"
    bbBottomRight  "minLat,maxLon"

and answers ``{"currentPageItems": [...]}``.  A page holding exactly
``ipp`` items means more pages may follow.

Usage
-----
    client = CatalogClient()
    records = client.fetch_page((-122.43, 37.76, -122.41, 37.78), page=1)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple
from urllib.parse import quote

import requests

from . import NO_RETRY, RetryPolicy, fetch_with_retry
from .errors import MalformedResponseError, TransportError

log = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://openstreetcam.org"
NEARBY_PHOTOS_PATH = "/1.0/list/nearby-photos/"
DEFAULT_PAGE_SIZE = 1000

BBox = Tuple[float, float, float, float]


@dataclass(frozen=True)
class ImageRecord:
    """One street-level photo."""
    loc: Tuple[float, float]          # (lon, lat)
    key: str
    heading: Optional[float]          # camera angle, degrees
    captured_at: Optional[datetime]
    captured_by: Optional[str]
    image_path: str                   # relative to the API base
    sequence_id: str
    sequence_index: int

    @property
    def bbox(self) -> BBox:
        lon, lat = self.loc
        return (lon, lat, lon, lat)


def _parse_date(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def _optional_float(value) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _index(value) -> int:
    """Strict integer: no bools, no fractional or non-finite numbers."""
    if isinstance(value, bool):
        raise TypeError(f"expected an integer, got {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"expected an integer, got {value!r}")
    return int(value)


def parse_item(item: dict) -> ImageRecord:
    """Validate one catalog item.

    Raises
    ------
    MalformedResponseError
        If a required field (id, lng, lat, sequence_id, sequence_index) is
        missing or not a number where one is expected, or if
        sequence_index is not a whole number.
    """
    try:
        lon = float(item["lng"])
        lat = float(item["lat"])
        seq_index = _index(item["sequence_index"])
        key = str(item["id"])
        seq_id = str(item["sequence_id"])
    except (KeyError, TypeError, ValueError, OverflowError) as exc:
        raise MalformedResponseError(f"Bad catalog item {item!r}: {exc}") from exc

    if not (-180.0 <= lon <= 180.0 and -90.0 <= lat <= 90.0):
        raise MalformedResponseError(f"Item {key} location out of range: {lon}, {lat}")
    if seq_index < 0:
        raise MalformedResponseError(f"Item {key} has negative sequence_index {seq_index}")

    return ImageRecord(
        loc=(lon, lat),
        key=key,
        heading=_optional_float(item.get("heading")),
        captured_at=_parse_date(item.get("shot_date") or item.get("date_added")),
        captured_by=item.get("username") or None,
        image_path=item.get("lth_name") or "",
        sequence_id=seq_id,
        sequence_index=seq_index,
    )


def parse_page(payload) -> List[ImageRecord]:
    """Validate a whole response body.  One bad item fails the page."""
    if not isinstance(payload, dict):
        raise MalformedResponseError(f"Expected a JSON object, got {type(payload).__name__}")
    items = payload.get("currentPageItems")
    if items is None:
        return []
    if not isinstance(items, list):
        raise MalformedResponseError("currentPageItems is not a list")
    return [parse_item(item) for item in items]


class CatalogClient:
    """Paged bbox queries against the imagery catalog."""

    def __init__(
        self,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 20.0,
        retry: RetryPolicy = NO_RETRY,
        session: Optional[requests.Session] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.retry = retry
        self.session = session or requests.Session()

    @property
    def nearby_url(self) -> str:
        return self.api_base + NEARBY_PHOTOS_PATH

    @staticmethod
    def build_params(bbox: BBox, page: int, page_size: int = DEFAULT_PAGE_SIZE) -> dict:
        """Form fields for one page request."""
        min_x, min_y, max_x, max_y = bbox
        return {
            "ipp": int(page_size),
            "page": int(page),
            "bbTopLeft": f"{max_y},{min_x}",
            "bbBottomRight": f"{min_y},{max_x}",
        }

    def fetch_page(
        self,
        bbox: BBox,
        page: int,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> List[ImageRecord]:
        """Fetch and validate one page of images inside *bbox*.

        Raises
        ------
        TransportError
            Network failure or HTTP error.
        MalformedResponseError
            Body is not JSON or an item fails validation.
        """
        try:
            resp = fetch_with_retry(
                self.nearby_url,
                method="POST",
                data=self.build_params(bbox, page, page_size),
                headers={"Accept": "application/json"},
                timeout=self.timeout,
                policy=self.retry,
                session=self.session,
            )
        except requests.RequestException as exc:
            raise TransportError(f"Catalog request failed (page {page}): {exc}") from exc

        try:
            payload = resp.json()
        except ValueError as exc:
            raise MalformedResponseError(f"Catalog page {page} is not JSON: {exc}") from exc

        records = parse_page(payload)
        log.debug("Catalog page %d: %d items", page, len(records))
        return records

    # ── attribution links ─────────────────────────────────────────────

    def image_url(self, record: ImageRecord) -> str:
        return f"{self.api_base}/{record.image_path.lstrip('/')}"

    def details_url(self, record: ImageRecord) -> str:
        return f"{self.api_base}/details/{record.sequence_id}/{record.sequence_index}"

    def user_url(self, username: str) -> str:
        return f"{self.api_base}/user/{quote(username, safe='')}"
