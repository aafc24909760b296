from __future__ import annotations

import logging

from ..errors import SearchSourceUnavailable
from ..metrics import search_tier_total
from .canonical import CanonicalDataset
from .overpass import MAX_RADIUS_M, OverpassClient, dedupe
from .ranking import MAX_RESULTS, cuisine_synonyms, rank, wants_street_food
from .types import Coordinate, Venue

logger = logging.getLogger(__name__)

# Curated tier radii (km)
CANONICAL_RADIUS_SUB_AREA_KM = 3.0
CANONICAL_RADIUS_KM = 7.0
CANONICAL_AUTHORITATIVE_MIN = 3

# Live tier radii (m)
LIVE_RADIUS_SUB_AREA_M = 1500
LIVE_RADIUS_STREET_M = 2500
LIVE_RADIUS_M = 3500
LIVE_WIDEN_STEP_M = 2500


class SearchEngine:
    """
    Two-tier venue search.

    The curated dataset answers alone when it has at least three matches in
    range; otherwise the live map-data source is queried, widened once when
    empty, scored and filtered. Live failures leave that tier empty.
    """

    def __init__(self, dataset: CanonicalDataset, live: OverpassClient | None = None) -> None:
        self.dataset = dataset
        self.live = live or OverpassClient()

    def search(self, coordinate: Coordinate, cuisine: str = "", has_sub_area: bool = False) -> list[Venue]:
        radius_km = CANONICAL_RADIUS_SUB_AREA_KM if has_sub_area else CANONICAL_RADIUS_KM
        curated = self.dataset.find_top(
            coordinate.lat, coordinate.lon, radius_km, cuisine, limit=MAX_RESULTS
        )
        if len(curated) >= CANONICAL_AUTHORITATIVE_MIN:
            search_tier_total.labels(tier="canonical").inc()
            return curated

        live = self._search_live(coordinate, cuisine, has_sub_area)
        if not curated and not live:
            search_tier_total.labels(tier="empty").inc()
            return []

        search_tier_total.labels(tier="live").inc()
        curated_names = {v.name.lower() for v in curated}
        merged = curated + [v for v in live if v.name.lower() not in curated_names]
        return merged[:MAX_RESULTS]

    def _search_live(self, coordinate: Coordinate, cuisine: str, has_sub_area: bool) -> list[Venue]:
        expansion = cuisine_synonyms(cuisine)
        want_street = wants_street_food(cuisine)
        if has_sub_area:
            radius = LIVE_RADIUS_SUB_AREA_M
        elif want_street:
            radius = LIVE_RADIUS_STREET_M
        else:
            radius = LIVE_RADIUS_M

        try:
            found = self.live.fetch(
                coordinate.lat, coordinate.lon, radius, expansion, include_fast_food=want_street
            )
            if not found:
                radius = min(MAX_RADIUS_M, radius + LIVE_WIDEN_STEP_M)
                found = self.live.fetch(
                    coordinate.lat,
                    coordinate.lon,
                    radius,
                    expansion,
                    include_fast_food=want_street,
                )
        except SearchSourceUnavailable as exc:
            logger.warning("Live venue search unavailable: %s", exc)
            return []

        return rank(dedupe(found), cuisine)


__all__ = ["SearchEngine"]
