"""
Web Mercator viewport projection.

The loader and the viewport sampler only need four things from the map
view: ``scale()``, ``translate()``, ``invert(point)`` and ``clip_extent()``.
Any object with those methods will do; this module provides one backed by
pyproj so the engine can run outside a browser-style renderer (and so tests
have a real projection to drive).

Conventions follow the slippy-map renderers:

* ``scale`` is pixels per radian, so the whole world is ``scale * 2π``
  pixels wide.  Zoom 0 is a single 256 px tile.
* ``translate`` is the pixel position of (lon 0, lat 0).
* pixel y grows downward.

Usage
-----
    proj = MercatorProjection.at_zoom((-122.42, 37.77), zoom=17,
                                      size=(1024, 768))
    lon, lat = proj.invert((512, 384))
"""
from __future__ import annotations

import math
from typing import Tuple

import pyproj

WGS84 = pyproj.CRS("EPSG:4326")
WEB_MERCATOR = pyproj.CRS("EPSG:3857")

_to_metric = pyproj.Transformer.from_crs(WGS84, WEB_MERCATOR, always_xy=True).transform
_to_lonlat = pyproj.Transformer.from_crs(WEB_MERCATOR, WGS84, always_xy=True).transform

# EPSG:3857 sphere radius; metres / radius = radians on the projection plane
_EARTH_RADIUS_M = 6378137.0

TILE_PX = 256


def zoom_to_scale(zoom: float) -> float:
    """Projection scale (px per radian) for a fractional zoom level."""
    return TILE_PX * (2.0 ** zoom) / (2.0 * math.pi)


def scale_to_zoom(scale: float) -> float:
    """Effective zoom for a projection scale, floored at 0."""
    return max(math.log2(scale * 2.0 * math.pi) - 8.0, 0.0)


class MercatorProjection:
    """Spherical Mercator projection with a pixel viewport."""

    def __init__(
        self,
        scale: float,
        translate: Tuple[float, float],
        clip_extent: Tuple[Tuple[float, float], Tuple[float, float]],
    ):
        self._scale = float(scale)
        self._translate = (float(translate[0]), float(translate[1]))
        self._clip_extent = (
            (float(clip_extent[0][0]), float(clip_extent[0][1])),
            (float(clip_extent[1][0]), float(clip_extent[1][1])),
        )

    @classmethod
    def at_zoom(
        cls,
        center: Tuple[float, float],
        zoom: float,
        size: Tuple[int, int],
    ) -> "MercatorProjection":
        """Build a projection centred on *center* (lon, lat) at *zoom*."""
        scale = zoom_to_scale(zoom)
        mx, my = _to_metric(center[0], center[1])
        w, h = size
        tx = w / 2.0 - scale * mx / _EARTH_RADIUS_M
        ty = h / 2.0 + scale * my / _EARTH_RADIUS_M
        return cls(scale, (tx, ty), ((0.0, 0.0), (float(w), float(h))))

    # ── viewport accessors ────────────────────────────────────────────

    def scale(self) -> float:
        return self._scale

    def translate(self) -> Tuple[float, float]:
        return self._translate

    def clip_extent(self) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        return self._clip_extent

    @property
    def zoom(self) -> float:
        return scale_to_zoom(self._scale)

    # ── projection ────────────────────────────────────────────────────

    def project(self, lonlat: Tuple[float, float]) -> Tuple[float, float]:
        """(lon, lat) → pixel (x, y)."""
        mx, my = _to_metric(lonlat[0], lonlat[1])
        tx, ty = self._translate
        return (
            tx + self._scale * mx / _EARTH_RADIUS_M,
            ty - self._scale * my / _EARTH_RADIUS_M,
        )

    def invert(self, point: Tuple[float, float]) -> Tuple[float, float]:
        """Pixel (x, y) → (lon, lat)."""
        tx, ty = self._translate
        mx = (point[0] - tx) * _EARTH_RADIUS_M / self._scale
        my = (ty - point[1]) * _EARTH_RADIUS_M / self._scale
        lon, lat = _to_lonlat(mx, my)
        return (lon, lat)

    def __repr__(self) -> str:
        return (
            f"MercatorProjection(zoom={self.zoom:.2f}, "
            f"translate={self._translate}, clip_extent={self._clip_extent})"
        )
