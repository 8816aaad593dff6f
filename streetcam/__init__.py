"""
streetcam: street-level imagery loading for map editors.

Finds crowd-sourced street photos around the visible map area, pages
through the remote catalog tile by tile, indexes the results spatially and
rebuilds capture sequences for drawing.
"""
__version__ = "0.1.0"
