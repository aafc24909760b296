"""Client for the Overpass map-data query source (OpenStreetMap)."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from ..circuit_breaker import UPSTREAM_ERRORS, CircuitOpenError, get_circuit_breaker
from ..errors import SearchSourceUnavailable
from ..metrics import external_call_duration_seconds, external_call_failures_total
from ..settings import settings
from .types import CuisineExpansion, Venue

logger = logging.getLogger(__name__)

MIN_RADIUS_M = 700
MAX_RADIUS_M = 6000
ELEMENT_LIMIT = 120


def clamp_radius(radius_m: int) -> int:
    return max(MIN_RADIUS_M, min(MAX_RADIUS_M, int(radius_m)))


def build_query(
    lat: float,
    lon: float,
    radius_m: int,
    expansion: CuisineExpansion,
    include_fast_food: bool = False,
) -> str:
    around = f"around:{clamp_radius(radius_m)},{lat},{lon}"
    amenities = "restaurant|fast_food|cafe" if include_fast_food else "restaurant|cafe"
    amenity_f = f'["amenity"~"^({amenities})$"]'
    cuisine_f = f'["cuisine"~"{expansion.cuisine_pattern}",i]' if expansion.cuisine_pattern else ""
    name_f = f'["name"~"{expansion.name_pattern}",i]' if expansion.name_pattern else ""

    statements: list[str] = []
    for element in ("node", "way", "relation"):
        statements.append(f"  {element}{amenity_f}{cuisine_f}({around});")
    for element in ("node", "way", "relation"):
        statements.append(f"  {element}{amenity_f}{name_f}({around});")
    if expansion.diet:
        for diet_tag in ("diet:vegetarian", "diet:vegan"):
            for element in ("node", "way", "relation"):
                statements.append(f'  {element}["{diet_tag}"~"yes",i]({around});')

    body = "\n".join(statements)
    return f"[out:json][timeout:25];\n(\n{body}\n);\nout center tags {ELEMENT_LIMIT};"


def _address(tags: dict[str, str]) -> str:
    street = tags.get("addr:street", "")
    if street and tags.get("addr:housenumber"):
        street = f"{street} {tags['addr:housenumber']}"
    parts = [
        street,
        tags.get("addr:suburb") or tags.get("addr:neighbourhood") or "",
        tags.get("addr:city", ""),
    ]
    return ", ".join(part for part in parts if part)


def element_to_venue(element: dict[str, Any]) -> Venue:
    tags = element.get("tags") or {}
    if element.get("type") == "node":
        lat, lon = element.get("lat"), element.get("lon")
    else:
        center = element.get("center") or {}
        lat, lon = center.get("lat"), center.get("lon")
    website = tags.get("website") or tags.get("contact:website")
    return Venue(
        id=f"{element.get('type')}/{element.get('id')}",
        name=tags.get("name", ""),
        cuisines=[c.strip() for c in tags.get("cuisine", "").split(";") if c.strip()],
        address=_address(tags),
        lat=lat,
        lon=lon,
        has_contact=bool(
            website or tags.get("phone") or tags.get("contact:phone")
        ),
        source="live",
        amenity=tags.get("amenity", ""),
        tags=dict(tags),
        website=website,
    )


def dedupe(venues: list[Venue]) -> list[Venue]:
    seen: set[str] = set()
    out: list[Venue] = []
    for venue in venues:
        key = f"{venue.name}|{venue.address}".lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(venue)
    return out


class OverpassClient:
    def __init__(self, client: httpx.Client | None = None, url: str | None = None) -> None:
        self._client = client
        self.url = url or settings.OVERPASS_URL
        self.breaker = get_circuit_breaker("overpass", trips_on=UPSTREAM_ERRORS)

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=settings.OVERPASS_TIMEOUT_SECONDS,
                headers={"User-Agent": settings.user_agent},
            )
        return self._client

    def _post(self, query: str) -> list[dict[str, Any]]:
        resp = self._http().post(self.url, data={"data": query})
        resp.raise_for_status()
        payload = resp.json()
        elements = payload.get("elements") if isinstance(payload, dict) else None
        if not isinstance(elements, list):
            raise ValueError("Overpass payload without an elements list")
        return elements

    def fetch(
        self,
        lat: float,
        lon: float,
        radius_m: int,
        expansion: CuisineExpansion,
        include_fast_food: bool = False,
    ) -> list[Venue]:
        query = build_query(lat, lon, radius_m, expansion, include_fast_food)
        started = time.perf_counter()
        try:
            elements = self.breaker.call(self._post, query)
        except CircuitOpenError as exc:
            raise SearchSourceUnavailable(str(exc)) from exc
        except UPSTREAM_ERRORS as exc:
            external_call_failures_total.labels(service="overpass").inc()
            raise SearchSourceUnavailable(f"Overpass request failed: {exc}") from exc
        finally:
            external_call_duration_seconds.labels(service="overpass").observe(
                time.perf_counter() - started
            )

        venues = [element_to_venue(e) for e in elements if isinstance(e, dict)]
        logger.info(
            "Overpass search lat=%.4f lon=%.4f radius=%sm elements=%d latency=%.1fms",
            lat,
            lon,
            clamp_radius(radius_m),
            len(venues),
            (time.perf_counter() - started) * 1000,
        )
        return venues


__all__ = [
    "OverpassClient",
    "build_query",
    "clamp_radius",
    "dedupe",
    "element_to_venue",
]
