"""Per-conversation slot state and the conversation-keyed store that owns it."""

from __future__ import annotations

import re
import time
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from threading import Lock
from typing import Any

from .dining.types import Venue
from .metrics import conversations_active
from .settings import settings

BUDGET_RE = re.compile(r"\d{2,6}")

# Inbound payload keys accepted for each slot (flat body fields and nested `slots`)
SLOT_ALIASES: dict[str, tuple[str, ...]] = {
    "locality": ("locality", "city"),
    "sub_area": ("sub_area", "subArea", "zone"),
    "cuisine": ("cuisine",),
    "budget": ("budget",),
}


class AwaitedSlot(str, Enum):
    """The single question the conversation is waiting on."""

    LOCALITY = "locality"
    SUB_AREA = "sub_area"
    CUISINE = "cuisine"
    BUDGET = "budget"
    PLACE = "place"


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_budget(value: Any) -> str:
    match = BUDGET_RE.search(_clean(value))
    return match.group(0) if match else ""


@dataclass(frozen=True, slots=True)
class Slots:
    locality: str = ""
    sub_area: str = ""
    cuisine: str = ""
    budget: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> Slots:
        if not data:
            return cls()
        values: dict[str, str] = {}
        for name, aliases in SLOT_ALIASES.items():
            for alias in aliases:
                cleaned = _clean(data.get(alias))
                if cleaned:
                    values[name] = cleaned
                    break
        return cls(**values)

    def is_empty(self) -> bool:
        return not any(getattr(self, f.name) for f in fields(self))

    def as_dict(self) -> dict[str, str]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def is_filled(self, slot: AwaitedSlot) -> bool:
        if slot is AwaitedSlot.PLACE:
            return False
        return bool(getattr(self, slot.value))


def merge(current: Slots, updates: Slots) -> Slots:
    """
    Apply every non-empty field of ``updates`` over ``current``.

    Values are trimmed; a budget is reduced to its first 2-6 digit run and is
    emptied when it has none. Empty update fields never overwrite.
    """
    merged: dict[str, str] = {}
    for f in fields(current):
        incoming = _clean(getattr(updates, f.name))
        if not incoming:
            merged[f.name] = getattr(current, f.name)
        elif f.name == "budget":
            merged[f.name] = normalize_budget(incoming)
        else:
            merged[f.name] = incoming
    return Slots(**merged)


@dataclass
class ConversationState:
    conversation_id: str
    slots: Slots = field(default_factory=Slots)
    language: str = "es"
    last_intent_satisfied: str = ""
    pending_question: AwaitedSlot | None = None
    last_results: list[Venue] = field(default_factory=list)
    last_activity_at: float = 0.0

    def copy(self) -> ConversationState:
        return replace(self, last_results=list(self.last_results))

    def is_idle(self, now: float, idle_seconds: float) -> bool:
        # A brand new conversation has no prior flow to interrupt.
        if not self.last_activity_at:
            return False
        return now - self.last_activity_at > idle_seconds


def reset(state: ConversationState) -> ConversationState:
    """Clear slots and routing metadata; identity and language survive."""
    state.slots = Slots()
    state.last_intent_satisfied = ""
    state.pending_question = None
    state.last_results = []
    return state


class ConversationStore:
    """
    In-memory conversation states keyed by conversation id.

    Access goes through :meth:`session`, which holds the key's lock for the
    whole turn so messages for one conversation are applied one at a time.
    Locks are sharded by key hash. Conversations idle for longer than the TTL
    are pruned periodically.
    """

    def __init__(
        self,
        shards: int | None = None,
        default_language: str | None = None,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        count = shards if shards is not None else settings.SESSION_LOCK_SHARDS
        self._locks = [Lock() for _ in range(max(1, count))]
        self._states: dict[str, ConversationState] = {}
        self._registry_lock = Lock()
        self._default_language = default_language or settings.DEFAULT_LANGUAGE
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.SESSION_TTL_SECONDS
        self._clock = clock
        self._last_cleanup = 0.0

    def _lock_for(self, conversation_id: str) -> Lock:
        return self._locks[hash(conversation_id) % len(self._locks)]

    def _get_or_create(self, conversation_id: str) -> ConversationState:
        with self._registry_lock:
            self._maybe_cleanup(self._clock(), keep=conversation_id)
            state = self._states.get(conversation_id)
            if state is None:
                state = ConversationState(
                    conversation_id=conversation_id, language=self._default_language
                )
                self._states[conversation_id] = state
            conversations_active.set(len(self._states))
            return state

    def _maybe_cleanup(self, now: float, keep: str) -> None:
        # Caller holds the registry lock.
        if now - self._last_cleanup < self._ttl:
            return
        cutoff = now - self._ttl
        stale = [
            key
            for key, state in self._states.items()
            if key != keep and state.last_activity_at < cutoff
        ]
        for key in stale:
            self._states.pop(key, None)
        self._last_cleanup = now

    @contextmanager
    def session(self, conversation_id: str) -> Iterator[ConversationState]:
        with self._lock_for(conversation_id):
            yield self._get_or_create(conversation_id)

    def commit(self, state: ConversationState) -> None:
        with self._registry_lock:
            self._states[state.conversation_id] = state

    def get(self, conversation_id: str) -> ConversationState | None:
        with self._registry_lock:
            return self._states.get(conversation_id)

    def clear(self) -> None:
        with self._registry_lock:
            self._states.clear()
            self._last_cleanup = 0.0
            conversations_active.set(0)

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._states)


__all__ = [
    "AwaitedSlot",
    "ConversationState",
    "ConversationStore",
    "Slots",
    "merge",
    "normalize_budget",
    "reset",
]
