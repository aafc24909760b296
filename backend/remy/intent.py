"""
Priority-ordered intent classification.

``RULES`` is evaluated top to bottom and the first predicate that matches
decides the intent. Locality changes and resets come before cuisine
mentions; photo and dish follow-ups come before a fresh search.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from enum import Enum

from .extract import DISH_RE, PHOTO_RE
from .slots import Slots
from .utils import fold_accents


class Intent(str, Enum):
    RESET = "reset"
    NEW_LOCALITY = "new_locality"
    PHOTO_REQUEST = "photo_request"
    DISH_INQUIRY = "dish_inquiry"
    RECOMMEND = "recommend"
    UPDATE_SLOT = "update_slot"
    CHITCHAT = "chitchat"
    UNKNOWN = "unknown"


SEARCH_INTENTS = frozenset({Intent.NEW_LOCALITY, Intent.RECOMMEND, Intent.UPDATE_SLOT})
FOLLOW_UP_INTENTS = frozenset({Intent.PHOTO_REQUEST, Intent.DISH_INQUIRY})

RESET_RE = re.compile(
    r"\b(?:olvida|olvidalo|reinicia|reiniciar|empecemos de nuevo|empezar de nuevo|desde cero"
    r"|reset|restart|start over|forget)\b"
)
SURPRISE_RE = re.compile(
    r"\b(?:sorprendeme|recomiendame|recomienda|recomiendas|lo que tu sugieras|que me sugieres"
    r"|surprise me|recommend|suggest|dealer'?s choice)\b"
)
GREET_RE = re.compile(r"\b(?:hola|que onda|buenas|buenos dias|buenas tardes|hello|hi|hey)\b")

Predicate = Callable[[str, Slots], bool]


def is_reset(folded: str, extraction: Slots) -> bool:
    return bool(RESET_RE.search(folded))


def is_new_locality(folded: str, extraction: Slots) -> bool:
    return bool(extraction.locality)


def is_photo_request(folded: str, extraction: Slots) -> bool:
    return bool(PHOTO_RE.search(folded))


def is_dish_inquiry(folded: str, extraction: Slots) -> bool:
    return bool(DISH_RE.search(folded))


def is_recommend(folded: str, extraction: Slots) -> bool:
    return bool(extraction.cuisine) or bool(SURPRISE_RE.search(folded))


def is_update_slot(folded: str, extraction: Slots) -> bool:
    return bool(extraction.sub_area or extraction.budget)


def is_chitchat(folded: str, extraction: Slots) -> bool:
    return bool(GREET_RE.search(folded))


RULES: tuple[tuple[Intent, Predicate], ...] = (
    (Intent.RESET, is_reset),
    (Intent.NEW_LOCALITY, is_new_locality),
    (Intent.PHOTO_REQUEST, is_photo_request),
    (Intent.DISH_INQUIRY, is_dish_inquiry),
    (Intent.RECOMMEND, is_recommend),
    (Intent.UPDATE_SLOT, is_update_slot),
    (Intent.CHITCHAT, is_chitchat),
)


def route(message: str, extraction: Slots) -> Intent:
    folded = fold_accents(message or "")
    for intent, predicate in RULES:
        if predicate(folded, extraction):
            return intent
    return Intent.UNKNOWN


__all__ = ["FOLLOW_UP_INTENTS", "Intent", "RULES", "SEARCH_INTENTS", "route"]
