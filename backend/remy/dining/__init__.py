"""Venue search: curated dataset first, live OpenStreetMap fallback second."""

from .canonical import CanonicalDataset, haversine_km
from .engine import SearchEngine
from .types import CanonicalRecord, Coordinate, Venue

__all__ = [
    "CanonicalDataset",
    "CanonicalRecord",
    "Coordinate",
    "SearchEngine",
    "Venue",
    "haversine_km",
]
