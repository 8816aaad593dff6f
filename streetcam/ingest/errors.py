"""
Ingestion error types.

Transport and schema failures for a catalog page are absorbed by the tile
loader (the page counts as loaded, nothing is inserted).  Callers that need
data, like the imagery offset lookup, see the specific subclass.
"""
from __future__ import annotations


class StreetcamError(Exception):
    """Base class for streetcam errors."""


class CatalogError(StreetcamError):
    """A catalog page could not be used."""


class TransportError(CatalogError):
    """Network failure or HTTP error status."""


class MalformedResponseError(CatalogError):
    """Response body is not JSON or lacks required fields."""


class OffsetError(StreetcamError):
    """Imagery offset lookup failed."""


class OffsetLookupError(OffsetError):
    """The offset service reported an error or could not be reached."""


class OffsetNotFoundError(OffsetError):
    """No imagery offset is recorded near the requested location."""
