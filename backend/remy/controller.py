"""
Per-turn state machine.

A turn reads the conversation state under its key lock, works on a copy,
and commits the copy only when the turn finishes cleanly. Every decision
carries at most one clarifying question.
"""

from __future__ import annotations

import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

import structlog

from .dining.engine import SearchEngine
from .dining.types import Venue
from .extract import DISH_RE, PHOTO_RE, canonicalize_cuisine, detect_language, is_short_plain_text
from .geocoding import LocalityResolver
from .intent import FOLLOW_UP_INTENTS, SEARCH_INTENTS, Intent, route
from .llm_nlu import extract_with_llm
from .logging_config import get_logger
from .metrics import decisions_total, turns_total
from .settings import settings
from .slots import AwaitedSlot, ConversationState, ConversationStore, Slots, merge, reset
from .utils import fold_accents

logger = get_logger(__name__)

# Order in which optional refinements are asked after results are shown
REFINEMENT_ORDER = (AwaitedSlot.SUB_AREA, AwaitedSlot.CUISINE, AwaitedSlot.BUDGET)

ACKNOWLEDGEMENTS = {
    "ok", "okay", "oki", "va", "vale", "sale", "si", "no", "nop", "nel", "gracias",
    "muchas gracias", "thanks", "thank you", "yes", "yep", "nope", "cool", "great",
    "perfecto", "genial", "listo", "nada", "bye", "adios",
}

# Words too generic to identify one venue by name
_GENERIC_NAME_TOKENS = {
    "restaurante", "restaurant", "taqueria", "cafe", "bar", "cocina", "comedor", "the",
    "los", "las", "del", "casa", "sushi", "ramen", "tacos", "pizza", "pizzeria",
}

Extractor = Callable[[str, Slots], Slots]


class DecisionKind(str, Enum):
    GREETING = "greeting"
    RESET = "reset"
    ASK_SLOT = "ask_slot"
    COULD_NOT_LOCATE = "could_not_locate"
    NUDGE = "nudge"
    RESULTS = "results"
    PLACE_DETAIL = "place_detail"
    ASK_PLACE = "ask_place"
    TECHNICAL_ERROR = "technical_error"


@dataclass(frozen=True)
class TurnRequest:
    conversation_id: str
    message: str = ""
    slots: Slots = field(default_factory=Slots)
    display_name: str = ""


@dataclass
class Decision:
    kind: DecisionKind
    question: AwaitedSlot | None = None
    venues: list[Venue] = field(default_factory=list)
    venue: Venue | None = None
    detail: str = ""
    context: dict[str, str] = field(default_factory=dict)


@dataclass
class TurnOutcome:
    state: ConversationState
    decision: Decision
    intent: Intent


class TurnController:
    def __init__(
        self,
        store: ConversationStore,
        resolver: LocalityResolver,
        engine: SearchEngine,
        extractor: Extractor = extract_with_llm,
        clock: Callable[[], float] = time.time,
        idle_seconds: float | None = None,
    ) -> None:
        self.store = store
        self.resolver = resolver
        self.engine = engine
        self.extractor = extractor
        self.clock = clock
        self.idle_seconds = idle_seconds if idle_seconds is not None else settings.SESSION_IDLE_SECONDS

    def handle(self, request: TurnRequest) -> TurnOutcome:
        if not request.conversation_id:
            raise ValueError("conversation_id is required")
        with structlog.contextvars.bound_contextvars(conversation_id=request.conversation_id):
            return self._run(request)

    def _run(self, request: TurnRequest) -> TurnOutcome:
        with self.store.session(request.conversation_id) as current:
            state = current.copy()
            try:
                decision, intent = self._turn(state, request)
                decision.context.setdefault("name", request.display_name)
            except Exception:
                logger.exception("turn_failed")
                decision, intent = Decision(DecisionKind.TECHNICAL_ERROR), Intent.UNKNOWN
                decisions_total.labels(kind=decision.kind.value).inc()
                return TurnOutcome(state=current, decision=decision, intent=intent)

            state.last_activity_at = self.clock()
            self.store.commit(state)

        turns_total.labels(intent=intent.value).inc()
        decisions_total.labels(kind=decision.kind.value).inc()
        logger.info(
            "turn_completed",
            intent=intent.value,
            decision=decision.kind.value,
            awaited=decision.question.value if decision.question else "",
            results=len(decision.venues),
        )
        return TurnOutcome(state=state, decision=decision, intent=intent)

    # ---------- turn ----------

    def _turn(self, state: ConversationState, request: TurnRequest) -> tuple[Decision, Intent]:
        message = request.message or ""
        language = detect_language(message) if message.strip() else detect_language(request.display_name)
        if language:
            state.language = language

        idle = state.is_idle(self.clock(), self.idle_seconds)
        previously_awaited = state.pending_question
        extraction = self.extractor(message, state.slots)
        intent = route(message, extraction)

        if intent is Intent.RESET:
            reset(state)
            return self._ask(state, DecisionKind.RESET, AwaitedSlot.LOCALITY), intent

        if idle:
            reset(state)
            previously_awaited = None
        state.slots = merge(merge(state.slots, request.slots), extraction)

        if idle:
            question = self._next_question(
                state.slots, (AwaitedSlot.LOCALITY, AwaitedSlot.CUISINE, AwaitedSlot.SUB_AREA)
            )
            return self._ask(state, DecisionKind.GREETING, question), intent

        if intent is Intent.UNKNOWN and is_short_plain_text(message):
            intent = self._answer_awaited(state, message)

        if intent in FOLLOW_UP_INTENTS:
            return self._follow_up(state, message, intent), intent

        if intent in SEARCH_INTENTS:
            return self._search(state, intent, previously_awaited), intent

        # chitchat / unknown
        if not state.slots.locality:
            return self._ask(state, DecisionKind.GREETING, AwaitedSlot.LOCALITY), intent
        question = self._next_question(state.slots, REFINEMENT_ORDER)
        if intent is Intent.CHITCHAT:
            return self._ask(state, DecisionKind.GREETING, question), intent
        if question is not None:
            return self._ask(state, DecisionKind.ASK_SLOT, question), intent
        return self._search(state, intent, previously_awaited), intent

    def _answer_awaited(self, state: ConversationState, message: str) -> Intent:
        text = message.strip(" .!¡?¿")
        if fold_accents(text) in ACKNOWLEDGEMENTS:
            return Intent.UNKNOWN

        awaited = state.pending_question
        if awaited is AwaitedSlot.LOCALITY or not state.slots.locality:
            state.slots = merge(state.slots, Slots(locality=text))
            return Intent.NEW_LOCALITY
        if awaited is AwaitedSlot.CUISINE:
            state.slots = merge(state.slots, Slots(cuisine=canonicalize_cuisine(text)))
            return Intent.RECOMMEND
        if awaited is AwaitedSlot.PLACE:
            return Intent.UNKNOWN
        state.slots = merge(state.slots, Slots(sub_area=text))
        return Intent.UPDATE_SLOT

    def _search(
        self,
        state: ConversationState,
        intent: Intent,
        previously_awaited: AwaitedSlot | None,
    ) -> Decision:
        slots = state.slots
        if not slots.locality:
            return self._ask(state, DecisionKind.ASK_SLOT, AwaitedSlot.LOCALITY)

        coordinate = self.resolver.resolve(slots.locality, slots.sub_area)
        if coordinate is None:
            return self._ask(state, DecisionKind.COULD_NOT_LOCATE, AwaitedSlot.SUB_AREA)

        venues = self.engine.search(coordinate, slots.cuisine, has_sub_area=bool(slots.sub_area))
        if not venues:
            question = AwaitedSlot.CUISINE if slots.sub_area else AwaitedSlot.SUB_AREA
            return self._ask(state, DecisionKind.NUDGE, question)

        # A question left unanswered after results is not repeated right away;
        # one asked before any results (greeting, nudge) still stands.
        skip = previously_awaited if state.last_intent_satisfied else None
        state.last_results = venues
        state.last_intent_satisfied = intent.value
        question = self._next_question(slots, REFINEMENT_ORDER, skip=skip)
        state.pending_question = question
        return Decision(DecisionKind.RESULTS, question=question, venues=venues)

    def _follow_up(self, state: ConversationState, message: str, intent: Intent) -> Decision:
        venue = find_referent(state.last_results, message)
        if venue is None:
            return self._ask(state, DecisionKind.ASK_PLACE, AwaitedSlot.PLACE)
        state.pending_question = None
        detail = "photos" if intent is Intent.PHOTO_REQUEST else "dish"
        return Decision(DecisionKind.PLACE_DETAIL, venue=venue, detail=detail)

    # ---------- helpers ----------

    @staticmethod
    def _ask(state: ConversationState, kind: DecisionKind, question: AwaitedSlot | None) -> Decision:
        state.pending_question = question
        return Decision(kind, question=question)

    @staticmethod
    def _next_question(
        slots: Slots,
        order: tuple[AwaitedSlot, ...],
        skip: AwaitedSlot | None = None,
    ) -> AwaitedSlot | None:
        for slot in order:
            if slot is skip or slots.is_filled(slot):
                continue
            return slot
        return None


def _name_tokens(name: str) -> set[str]:
    return {
        tok
        for tok in re.findall(r"[a-z0-9]+", fold_accents(name))
        if len(tok) >= 4 and tok not in _GENERIC_NAME_TOKENS
    }


def _mentions(text: str, phrase: str) -> bool:
    """True when ``phrase`` occurs in ``text`` as whole words."""
    return bool(phrase) and re.search(rf"(?<!\w){re.escape(phrase)}(?!\w)", text) is not None


def find_referent(results: list[Venue], message: str) -> Venue | None:
    """Pick the remembered venue a follow-up message talks about."""
    if not results:
        return None
    folded = fold_accents(message or "")
    dish = DISH_RE.search(folded)
    target = dish.group("value").strip(" ?!.") if dish else ""

    for venue in results:
        name = fold_accents(venue.name)
        if _mentions(folded, name) or _mentions(name, target) or _mentions(target, name):
            return venue

    message_tokens = set(re.findall(r"[a-z0-9]+", folded))
    best: Venue | None = None
    best_hits = 0
    for venue in results:
        hits = len(_name_tokens(venue.name) & message_tokens)
        if hits > best_hits:
            best, best_hits = venue, hits
    if best is not None:
        return best

    if len(results) == 1 and (PHOTO_RE.search(folded) or dish):
        return results[0]
    return None


__all__ = [
    "Decision",
    "DecisionKind",
    "TurnController",
    "TurnOutcome",
    "TurnRequest",
    "find_referent",
]
