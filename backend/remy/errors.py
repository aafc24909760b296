"""Exception types shared across the conversation core."""

from __future__ import annotations


class RemyError(RuntimeError):
    """Base class for errors raised by the conversation core."""


class GeocodingUnavailable(RemyError):
    """The geocoding lookup failed (transport, status or payload)."""


class SearchSourceUnavailable(RemyError):
    """The live map-data source failed (transport, status or payload)."""


class DatasetError(RemyError):
    """The curated venue dataset could not be parsed. Fatal at startup."""


class NLUUnavailable(RemyError):
    """The LLM slot extractor cannot be used for this message."""


__all__ = [
    "DatasetError",
    "GeocodingUnavailable",
    "NLUUnavailable",
    "RemyError",
    "SearchSourceUnavailable",
]
