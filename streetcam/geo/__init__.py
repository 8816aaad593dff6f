"""Viewport geometry: projection, extents, catalog tiles, cell sampling."""
