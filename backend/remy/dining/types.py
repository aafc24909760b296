from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Coordinate:
    lat: float
    lon: float


@dataclass(frozen=True, slots=True)
class CanonicalRecord:
    """One venue of the curated dataset; immutable for the process lifetime."""

    slug: str
    name: str
    lat: float
    lon: float
    cuisine: str
    prestige: float = 0.0
    address: str = ""
    guide_tier: str | None = None  # e.g. "1 star", "bib gourmand"
    best_of_rank: int | None = None
    sustainable: bool = False
    website: str | None = None

    @property
    def cuisines(self) -> list[str]:
        return [part.strip() for part in self.cuisine.split(";") if part.strip()]

    @property
    def accolades(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.guide_tier:
            out["guide_tier"] = self.guide_tier
        if self.best_of_rank is not None:
            out["best_of_rank"] = self.best_of_rank
        if self.sustainable:
            out["sustainable"] = True
        return out


@dataclass
class Venue:
    id: str
    name: str
    cuisines: list[str] = field(default_factory=list)
    address: str = ""
    lat: float | None = None
    lon: float | None = None
    score: float = 0.0
    has_contact: bool = False
    source: str = "live"
    amenity: str = ""
    tags: dict[str, str] = field(default_factory=dict)
    distance_km: float | None = None
    website: str | None = None
    accolades: dict[str, Any] = field(default_factory=dict)

    @property
    def map_url(self) -> str | None:
        if self.source == "live" and "/" in self.id:
            return f"https://www.openstreetmap.org/{self.id}"
        if self.lat is None or self.lon is None:
            return None
        return f"https://www.openstreetmap.org/?mlat={self.lat:.5f}&mlon={self.lon:.5f}#map=18/{self.lat:.5f}/{self.lon:.5f}"


@dataclass(frozen=True, slots=True)
class CuisineExpansion:
    """Name-pattern and cuisine-tag alternatives for one requested cuisine."""

    name_pattern: str = ""
    cuisine_pattern: str = ""
    diet: bool = False

    @property
    def match_pattern(self) -> str:
        return self.cuisine_pattern or self.name_pattern
