"""Quality scoring for live map-data venues."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

from .types import CuisineExpansion, Venue

CHAIN_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"vips",
        r"sanborns",
        r"\btoks\b",
        r"starbucks",
        r"domino",
        r"little\s*caesars",
        r"papa\s*john",
        r"pizza\s*hut",
        r"\bkfc\b",
        r"burger\s*king|\bbk\b",
        r"subway",
        r"\bihop\b",
        r"chili'?s",
        r"applebee'?s",
        r"olive\s*garden",
        r"denny'?s?",
        r"sushi\s*roll",
        r"sushi\s*itto",
        r"wingstop",
        r"potzollcalli|potzolcalli",
        r"farolito",
        r"mc\s*donald",
        r"carl'?s\s*jr",
        r"italianni'?s",
        r"taco\s*bell",
    )
)

BRAND_TAGS = ("brand", "brand:wikidata", "brand:wikipedia")

FINE_DINING_RE = re.compile(
    r"trattoria|osteria|bistro|brasserie|steakhouse|asador|omakase|kaiseki|chef|tasting"
    r"|degustaci[oó]n|alta\s*cocina|fine|gastronom|izakaya",
    re.IGNORECASE,
)
WINE_RE = re.compile(r"wine|bar\s*a\s*vins|enoteca|vinoteca", re.IGNORECASE)
STREET_HINT_RE = re.compile(
    r"street\s*food|callejer|tacos?|birria|pastor|barbacoa|antojitos?|garnachas?|mariscos?"
    r"|pozole|tlayuda|arepa|empanada",
    re.IGNORECASE,
)
STREET_VENDOR_RE = re.compile(r"taco|taquer|birria|pastor|barbacoa", re.IGNORECASE)

# Scoring table; one consistent set of magnitudes for every search.
SCORE_RESTAURANT = 3
SCORE_HAS_CUISINE_TAG = 2
SCORE_HAS_CONTACT = 2
SCORE_WINE = 1
SCORE_NAME_MATCH = 3
SCORE_CUISINE_TAG_MATCH = 2
SCORE_FINE_DINING = 3
SCORE_STREET_VENDOR = 2
PENALTY_FAST_FOOD_OFF_REQUEST = -2
PENALTY_FAST_FOOD = -5
REJECTED = -999
QUALITY_FLOOR = 2
MAX_RESULTS = 9

# (request pattern, name alternatives, cuisine-tag alternatives, dietary flag)
_EXPANSIONS: tuple[tuple[re.Pattern[str], str, str, bool], ...] = tuple(
    (re.compile(trigger, re.IGNORECASE), name_re, cuisine_re, diet)
    for trigger, name_re, cuisine_re, diet in (
        (r"vegetari|vegan", "(veg|vegetari|vegan)", "(vegetarian|vegan)", True),
        (r"ramen", "(ramen|noodle|izakaya|japanese)", "(ramen|noodle|japanese)", False),
        (r"sushi", "(sushi|izakaya|omakase)", "(sushi|japanese|omakase)", False),
        (
            r"pizza|italian|trattoria|pasta|osteria",
            "(pizza|trattoria|italian|pasta|osteria)",
            "(pizza|italian|pasta|trattoria|osteria)",
            False,
        ),
        (
            r"taco|pastor|birria|barbacoa|taquer",
            "(taco|taquer|pastor|birria|barbacoa)",
            "(mexican|taco|pastor|birria|barbacoa)",
            False,
        ),
        (r"burger|hamburg", "(burger|hamburg)", "(burger|hamburg|american)", False),
        (
            r"seafood|mariscos?|fish|oyster",
            "(mariscos|marisquer|seafood|fish|ostion|oyster)",
            "(seafood|fish|oyster)",
            False,
        ),
        (r"japanese|japon", "(japanese|japon|sushi|izakaya|ramen)", "(japanese|sushi|ramen)", False),
        (r"chinese|china|dim\s*sum", "(china|chinese|dim sum|dumpling)", "(chinese|dim_sum|cantonese)", False),
        (
            r"street\s*food|callejer",
            "(taco|taquer|antojito|garnacha|tlayuda|quesadilla)",
            "(mexican|taco|street_food)",
            False,
        ),
        (r"mexican|mexicana", "(mexican|cocina|fonda|antojito)", "(mexican|regional)", False),
    )
)


def cuisine_synonyms(term: str = "") -> CuisineExpansion:
    """Expand a requested cuisine into name and cuisine-tag alternatives."""
    lowered = (term or "").lower().strip()
    for trigger, name_re, cuisine_re, diet in _EXPANSIONS:
        if trigger.search(lowered):
            return CuisineExpansion(name_pattern=name_re, cuisine_pattern=cuisine_re, diet=diet)
    return CuisineExpansion(name_pattern=re.escape(lowered) if lowered else "")


def wants_street_food(cuisine: str) -> bool:
    return bool(STREET_HINT_RE.search(cuisine or ""))


def is_chain(name: str, tags: Mapping[str, str] | None = None) -> bool:
    if not name:
        return False
    if any(pattern.search(name) for pattern in CHAIN_PATTERNS):
        return True
    return any((tags or {}).get(key) for key in BRAND_TAGS)


def score_base(venue: Venue) -> int:
    score = 0
    if venue.amenity == "restaurant":
        score += SCORE_RESTAURANT
    if venue.cuisines:
        score += SCORE_HAS_CUISINE_TAG
    if venue.has_contact:
        score += SCORE_HAS_CONTACT
    if WINE_RE.search(venue.name):
        score += SCORE_WINE
    return score


def score_cuisine_match(venue: Venue, want_cuisine: str) -> int:
    if not want_cuisine:
        return 0
    pattern = cuisine_synonyms(want_cuisine).match_pattern
    if not pattern:
        return 0
    matcher = re.compile(pattern, re.IGNORECASE)
    score = 0
    if matcher.search(venue.name):
        score += SCORE_NAME_MATCH
    if any(matcher.search(c) for c in venue.cuisines):
        score += SCORE_CUISINE_TAG_MATCH
    return score


def score_fast_food(venue: Venue, want_street: bool) -> int:
    if venue.amenity != "fast_food":
        return 0
    if not want_street:
        return PENALTY_FAST_FOOD
    if STREET_VENDOR_RE.search(venue.name):
        return SCORE_STREET_VENDOR
    return PENALTY_FAST_FOOD_OFF_REQUEST


def score_quality(venue: Venue, want_street: bool, want_cuisine: str) -> int:
    if not venue.name:
        return REJECTED
    if is_chain(venue.name, venue.tags):
        return REJECTED

    score = score_base(venue)
    score += score_cuisine_match(venue, want_cuisine)
    if FINE_DINING_RE.search(venue.name):
        score += SCORE_FINE_DINING
    score += score_fast_food(venue, want_street)
    return score


def rank(venues: Iterable[Venue], cuisine: str, limit: int = MAX_RESULTS) -> list[Venue]:
    """Score, drop everything at or below the quality floor, best first."""
    want_street = wants_street_food(cuisine)
    scored: list[Venue] = []
    for venue in venues:
        venue.score = score_quality(venue, want_street, cuisine)
        if venue.score > QUALITY_FLOOR:
            scored.append(venue)
    # stable sort keeps source order among ties
    scored.sort(key=lambda v: v.score, reverse=True)
    return scored[:limit]


__all__ = [
    "QUALITY_FLOOR",
    "cuisine_synonyms",
    "is_chain",
    "rank",
    "score_quality",
    "wants_street_food",
]
