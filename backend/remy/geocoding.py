"""Locality resolution through the Nominatim geocoder."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from .circuit_breaker import UPSTREAM_ERRORS, CircuitOpenError, get_circuit_breaker
from .dining.types import Coordinate
from .errors import GeocodingUnavailable
from .metrics import external_call_duration_seconds, external_call_failures_total
from .settings import settings
from .utils import fold_accents

logger = logging.getLogger(__name__)

# folded alias -> canonical locality
LOCALITY_ALIASES: dict[str, str] = {
    "mx": "Ciudad de México",
    "mexico": "Ciudad de México",
    "cdmx": "Ciudad de México",
    "df": "Ciudad de México",
    "ciudad de mexico": "Ciudad de México",
    "mexico city": "Ciudad de México",
    "gdl": "Guadalajara",
    "guadalajara": "Guadalajara",
    "mty": "Monterrey",
    "monterrey": "Monterrey",
    "nyc": "New York",
    "new york city": "New York",
    "bcn": "Barcelona",
    "bsas": "Buenos Aires",
    "baires": "Buenos Aires",
    "sf": "San Francisco",
}

COARSE_RESULT_TYPES = {"country"}


def canonical_locality(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        return ""
    key = " ".join(fold_accents(cleaned).replace(".", " ").split())
    return LOCALITY_ALIASES.get(key, cleaned)


def _usable(result: dict[str, Any] | None) -> Coordinate | None:
    if not result:
        return None
    if result.get("type") in COARSE_RESULT_TYPES or result.get("addresstype") in COARSE_RESULT_TYPES:
        return None
    try:
        return Coordinate(lat=float(result["lat"]), lon=float(result["lon"]))
    except (KeyError, TypeError, ValueError):
        return None


class NominatimGeocoder:
    def __init__(self, client: httpx.Client | None = None, base_url: str | None = None) -> None:
        self._client = client
        self.base_url = (base_url or settings.NOMINATIM_BASE_URL).rstrip("/")
        self.breaker = get_circuit_breaker("nominatim", trips_on=UPSTREAM_ERRORS)

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=settings.GEOCODER_TIMEOUT_SECONDS,
                headers={"User-Agent": settings.user_agent},
            )
        return self._client

    def _get(self, query: str) -> dict[str, Any] | None:
        params = {
            "q": query,
            "format": "jsonv2",
            "addressdetails": "1",
            "limit": "1",
            "email": settings.NOMINATIM_EMAIL,
        }
        resp = self._http().get(f"{self.base_url}/search", params=params)
        resp.raise_for_status()
        payload = resp.json()
        if not isinstance(payload, list):
            raise ValueError("Nominatim payload is not a list")
        return payload[0] if payload else None

    def lookup(self, query: str) -> dict[str, Any] | None:
        started = time.perf_counter()
        try:
            return self.breaker.call(self._get, query)
        except CircuitOpenError as exc:
            raise GeocodingUnavailable(str(exc)) from exc
        except UPSTREAM_ERRORS as exc:
            external_call_failures_total.labels(service="nominatim").inc()
            raise GeocodingUnavailable(f"Nominatim lookup failed: {exc}") from exc
        finally:
            external_call_duration_seconds.labels(service="nominatim").observe(
                time.perf_counter() - started
            )


class LocalityResolver:
    """Turns a locality (plus optional sub-area) into a coordinate, or ``None``."""

    def __init__(self, geocoder: NominatimGeocoder | None = None) -> None:
        self.geocoder = geocoder or NominatimGeocoder()

    def _attempt(self, query: str) -> Coordinate | None:
        try:
            return _usable(self.geocoder.lookup(query))
        except GeocodingUnavailable as exc:
            logger.warning("Geocoding %r failed: %s", query, exc)
            return None

    def resolve(self, locality: str, sub_area: str = "") -> Coordinate | None:
        locality = (locality or "").strip()
        sub_area = (sub_area or "").strip()
        if not locality:
            return None

        def query_for(place: str) -> str:
            return f"{sub_area}, {place}" if sub_area else place

        coordinate = self._attempt(query_for(locality))
        if coordinate is not None:
            return coordinate

        canonical = canonical_locality(locality)
        if canonical == locality:
            logger.info("Could not place %r", query_for(locality))
            return None
        coordinate = self._attempt(query_for(canonical))
        if coordinate is None:
            logger.info("Could not place %r (canonical %r)", query_for(locality), canonical)
        return coordinate


__all__ = ["LocalityResolver", "NominatimGeocoder", "canonical_locality"]
