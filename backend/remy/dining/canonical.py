from __future__ import annotations

import json
import logging
import math
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from ..errors import DatasetError
from .types import CanonicalRecord, Venue

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres."""
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def _slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def _optional_float(value: Any, field_name: str, index: int) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise DatasetError(f"record {index}: {field_name} is not numeric: {value!r}") from exc


def _record_from_raw(item: Any, index: int) -> CanonicalRecord | None:
    if not isinstance(item, dict):
        raise DatasetError(f"record {index}: expected an object, got {type(item).__name__}")
    name = str(item.get("name") or "").strip()
    if not name:
        raise DatasetError(f"record {index}: missing name")

    lat = _optional_float(item.get("lat"), "lat", index)
    lon = _optional_float(item.get("lng", item.get("lon")), "lng", index)
    if lat is None or lon is None:
        logger.debug("Skipping canonical record without coordinates: %s", name)
        return None

    rank = item.get("best_of_rank")
    try:
        best_of_rank = int(rank) if rank not in (None, "") else None
    except (TypeError, ValueError) as exc:
        raise DatasetError(f"record {index}: best_of_rank is not an integer: {rank!r}") from exc

    return CanonicalRecord(
        slug=str(item.get("slug") or _slugify(name)),
        name=name,
        lat=lat,
        lon=lon,
        cuisine=str(item.get("cuisine") or ""),
        prestige=_optional_float(item.get("prestige"), "prestige", index) or 0.0,
        address=str(item.get("address") or ""),
        guide_tier=item.get("guide_tier") or None,
        best_of_rank=best_of_rank,
        sustainable=bool(item.get("sustainable", False)),
        website=item.get("website") or None,
    )


class CanonicalDataset:
    """Curated venues with a prestige score, searched by distance."""

    def __init__(self, records: Iterable[CanonicalRecord] = ()) -> None:
        self._records: tuple[CanonicalRecord, ...] = tuple(records)

    @classmethod
    def from_raw(cls, payload: Any) -> CanonicalDataset:
        if not isinstance(payload, list):
            raise DatasetError("canonical dataset must be a JSON array of records")
        records = [
            record
            for index, item in enumerate(payload)
            if (record := _record_from_raw(item, index)) is not None
        ]
        return cls(records)

    @classmethod
    def load(cls, path: Path) -> CanonicalDataset:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.warning("Canonical dataset not found at %s; live search only", path)
            return cls()
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise DatasetError(f"canonical dataset {path} is not valid JSON: {exc}") from exc
        dataset = cls.from_raw(payload)
        logger.info("Loaded canonical dataset: %d venues from %s", len(dataset), path)
        return dataset

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    def find_top(
        self,
        lat: float,
        lon: float,
        radius_km: float,
        cuisine: str = "",
        limit: int = 9,
    ) -> list[Venue]:
        want = cuisine.lower().strip()
        rows: list[tuple[CanonicalRecord, float]] = []
        for record in self._records:
            dist = haversine_km(lat, lon, record.lat, record.lon)
            if dist > radius_km:
                continue
            if want and want not in record.cuisine.lower():
                continue
            rows.append((record, dist))
        rows.sort(key=lambda row: (-row[0].prestige, row[1]))
        return [_to_venue(record, dist) for record, dist in rows[:limit]]


def _to_venue(record: CanonicalRecord, distance_km: float) -> Venue:
    return Venue(
        id=f"canonical/{record.slug}",
        name=record.name,
        cuisines=record.cuisines,
        address=record.address,
        lat=record.lat,
        lon=record.lon,
        score=record.prestige,
        has_contact=bool(record.website),
        source="canonical",
        amenity="restaurant",
        distance_km=round(distance_km, 3),
        website=record.website,
        accolades=record.accolades,
    )


__all__ = ["CanonicalDataset", "haversine_km"]
