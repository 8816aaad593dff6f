"""
Geographic extents (lon/lat bounding rectangles).

A GeoExtent is built from two corners in any order and normalised so that
``min`` is the south-west corner and ``max`` the north-east corner.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import pyproj

_GEOD = pyproj.Geod(ellps="WGS84")

BBox = Tuple[float, float, float, float]  # (min_x, min_y, max_x, max_y)


@dataclass(frozen=True)
class GeoExtent:
    """Axis-aligned lon/lat rectangle."""

    min: Tuple[float, float]
    max: Tuple[float, float]

    @classmethod
    def from_corners(
        cls,
        a: Tuple[float, float],
        b: Optional[Tuple[float, float]] = None,
    ) -> "GeoExtent":
        """Extent spanning two corners; a single corner gives a point extent."""
        if b is None:
            b = a
        return cls(
            (min(a[0], b[0]), min(a[1], b[1])),
            (max(a[0], b[0]), max(a[1], b[1])),
        )

    def bbox(self) -> BBox:
        return (self.min[0], self.min[1], self.max[0], self.max[1])

    def center(self) -> Tuple[float, float]:
        return (
            (self.min[0] + self.max[0]) / 2.0,
            (self.min[1] + self.max[1]) / 2.0,
        )

    def contains(self, lonlat: Tuple[float, float]) -> bool:
        lon, lat = lonlat
        return (self.min[0] <= lon <= self.max[0]
                and self.min[1] <= lat <= self.max[1])

    def pad_by_meters(self, meters: float) -> "GeoExtent":
        """Grow the extent by *meters* on every side (geodesic, WGS84)."""
        lon_c, lat_c = self.center()
        _, north, _ = _GEOD.fwd(lon_c, self.max[1], 0.0, meters)
        _, south, _ = _GEOD.fwd(lon_c, self.min[1], 180.0, meters)
        east, _, _ = _GEOD.fwd(self.max[0], lat_c, 90.0, meters)
        west, _, _ = _GEOD.fwd(self.min[0], lat_c, 270.0, meters)
        return GeoExtent((west, south), (east, north))
