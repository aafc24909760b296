"""
Rule-based extraction of slot values from a raw message.

Every field is evaluated independently, so one message can carry a
locality and a cuisine at once. Rules match against an accent-folded,
lowercased copy of the message that has the same length as the original;
captured values are sliced from the original text so accents survive.
Unmatched fields come back as empty strings.
"""

from __future__ import annotations

import re

from .slots import Slots
from .utils import fold_accents

_VALUE = r"[a-z0-9][a-z0-9'’ -]*?"
_END = (
    r"(?=\s*(?:[,.;:!?]|$)"
    r"|\s+(?:y|e|and|pero|but|con|with|quiero|i want|busco|para|for|por|cerca|near|zona"
    r"|colonia|barrio|area|neighbou?rhood|tengo|se me|antojo|craving|hoy|today|tonight)\b)"
)

LOCALITY_RULES: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"\b(?:estoy|ahora|ando|andamos|estamos|i am|i['’]m|im|we['’]re|we are|now)\s+(?:en|in)\s+"
        rf"(?P<value>[a-z][a-z'’ -]*?){_END}"
    ),
    re.compile(r"^\s*(?:en|in)\s+(?P<value>[a-z][a-z'’ -]*?)\s*[.!]?\s*$"),
    re.compile(
        r"\b(?P<value>ciudad de mexico|mexico city|cdmx|guadalajara|monterrey|gdl|mty|mexico)\b"
    ),
)

SUB_AREA_RULE = re.compile(
    r"\b(?:zona|colonia|col\.?|barrio|rumbo|area|neighbou?rhood|district)\s+"
    rf"(?:(?:de|of|the)\s+(?:la\s+)?)?(?P<value>{_VALUE}){_END}"
)

# Synonym groups, checked in order; the first hit is the canonical cuisine.
CUISINE_TABLE: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(pattern), canonical)
    for pattern, canonical in (
        (r"ramen|noodle", "ramen"),
        (r"sushi|omakase|izakaya", "sushi"),
        (r"pizza|trattoria|pasta|italian|osteria", "italian"),
        (r"\btacos?\b|pastor|birria|barbacoa|taquer", "tacos"),
        (r"vegetarian|vegan|\bveggie\b", "vegetarian"),
        (r"mariscos?|sea ?food", "seafood"),
        (r"burg(?:er|uesa)|hamburg", "burger"),
        (r"japones|japanese", "japanese"),
        (r"\bchin[ao]\b|chinese", "chinese"),
        (r"mexicana|\bmexican\b", "mexican"),
        (r"comida callejera|street ?food|callejer", "street food"),
    )
)

CUISINE_FALLBACK_RULE = re.compile(
    r"(?:tengo antojo de|se me antojan?|antojo de|quiero comer|quiero|busco|i want|"
    r"i'm craving|im craving|craving|i feel like)\s+"
    r"(?:(?:un|una|unos|unas|algo de|some|a|an)\s+)?"
    rf"(?P<value>[a-z][a-z'’ -]*?){_END}"
)

BUDGET_RULE = re.compile(r"\$?\s?(\d{2,6})")

# Follow-up vocabulary shared with the intent router
PHOTO_RE = re.compile(r"\b(?:fotos?|photos?|pictures?|pics?|imagen(?:es)?|menu|carta)\b")
DISH_RE = re.compile(
    r"(?:\b(?:que|what)\s+(?:pido|pedir|ordeno|ordenar|como|me recomiendas pedir|should i (?:order|get|eat)"
    r"|to order|to get|is good)|\bwhat['’]?s good)\s+(?:en|at|in)\s+(?P<value>.+)$"
)

_LOCALITY_REJECT_RE = re.compile(r"^(?:the mood|mood|casa|home|la casa|mi casa|camino|the way)\b")

_FALLBACK_REJECT_RE = re.compile(
    r"\b(?:fotos?|photos?|pictures?|pics?|menu|carta|pedir|order|ir|go|reset|empezar|saber|know)\b"
)
_FALLBACK_REJECT_WORDS = {"algo", "comer", "something", "eat", "food", "comida", "ver", "see"}

_ES_WORDS = re.compile(
    r"\b(?:hola|buenas|ciudad|zona|colonia|antojo|antoja|presupuesto|quiero|estoy|donde|"
    r"gracias|olvida|reinicia|comida|pesos|que|por favor|sorprendeme|recomiendame|fotos|"
    r"algo|busco|tengo|rico|barato)\b"
)
_EN_WORDS = re.compile(
    r"\b(?:hello|hi|hey|i'm|i am|want|craving|where|thanks|please|city|neighborhood|budget|"
    r"food|reset|start over|what|photos|pictures|surprise me|recommend|cheap|looking for)\b"
)
_ES_CHARS = re.compile(r"[áéíóúñü¿¡]")

_PLAIN_TEXT_RE = re.compile(r"^[a-z][a-z'’ -]{0,40}$")


def _span_value(message: str, match: re.Match[str]) -> tuple[str, tuple[int, int]]:
    start, end = match.span("value")
    return message[start:end].strip(" -'’"), (start, end)


def extract_locality(message: str, folded: str | None = None) -> tuple[str, tuple[int, int] | None]:
    folded = folded if folded is not None else fold_accents(message)
    for rule in LOCALITY_RULES:
        match = rule.search(folded)
        if match:
            value, span = _span_value(message, match)
            if value and not _LOCALITY_REJECT_RE.match(fold_accents(value)):
                return value, span
    return "", None


def extract_sub_area(message: str, folded: str | None = None) -> tuple[str, tuple[int, int] | None]:
    folded = folded if folded is not None else fold_accents(message)
    match = SUB_AREA_RULE.search(folded)
    if not match:
        return "", None
    value, span = _span_value(message, match)
    return (value, span) if value else ("", None)


def match_cuisine_table(text: str) -> str:
    folded = fold_accents(text)
    for rule, canonical in CUISINE_TABLE:
        if rule.search(folded):
            return canonical
    return ""


def extract_cuisine(message: str, folded: str | None = None) -> str:
    folded = folded if folded is not None else fold_accents(message)
    canonical = match_cuisine_table(message)
    if canonical:
        return canonical
    match = CUISINE_FALLBACK_RULE.search(folded)
    if not match:
        return ""
    value, _ = _span_value(message, match)
    folded_value = fold_accents(value)
    if _FALLBACK_REJECT_RE.search(folded_value) or folded_value in _FALLBACK_REJECT_WORDS:
        return ""
    return value


def extract_budget(message: str, taken: list[tuple[int, int]] | None = None) -> str:
    for match in BUDGET_RULE.finditer(message):
        start, end = match.span(1)
        if any(start < t_end and end > t_start for t_start, t_end in taken or ()):
            continue
        return match.group(1)
    return ""


def extract(message: str) -> Slots:
    """Partial slot update for one message; unmatched fields are ``""``."""
    message = message or ""
    folded = fold_accents(message)
    locality, locality_span = extract_locality(message, folded)
    sub_area, sub_area_span = extract_sub_area(message, folded)
    taken = [span for span in (locality_span, sub_area_span) if span]
    return Slots(
        locality=locality,
        sub_area=sub_area,
        cuisine=extract_cuisine(message, folded),
        budget=extract_budget(message, taken),
    )


def canonicalize_cuisine(text: str) -> str:
    """Resolve a cuisine through the synonym table; unknown values pass through trimmed."""
    cleaned = (text or "").strip()
    if not cleaned:
        return ""
    return match_cuisine_table(cleaned) or cleaned


def detect_language(text: str) -> str | None:
    """Return ``"es"``, ``"en"``, or ``None`` when the text gives no clear signal."""
    if not text or not text.strip():
        return None
    lowered = text.lower()
    if _ES_CHARS.search(lowered):
        return "es"
    folded = fold_accents(text)
    es_hits = len(_ES_WORDS.findall(folded))
    en_hits = len(_EN_WORDS.findall(folded))
    if es_hits > en_hits:
        return "es"
    if en_hits > es_hits:
        return "en"
    return None


def is_short_plain_text(message: str, max_words: int = 3) -> bool:
    folded = fold_accents((message or "").strip()).rstrip(".!")
    if not folded or not _PLAIN_TEXT_RE.match(folded):
        return False
    return len(folded.split()) <= max_words


__all__ = [
    "DISH_RE",
    "PHOTO_RE",
    "canonicalize_cuisine",
    "detect_language",
    "extract",
    "extract_budget",
    "extract_cuisine",
    "extract_locality",
    "extract_sub_area",
    "is_short_plain_text",
]
