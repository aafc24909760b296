"""Slot merge semantics and the conversation-keyed store."""

import threading
import time

import pytest
from backend.remy.slots import (
    AwaitedSlot,
    ConversationState,
    ConversationStore,
    Slots,
    merge,
    normalize_budget,
    reset,
)

SAMPLE_STATES = [
    Slots(),
    Slots(locality="CDMX"),
    Slots(locality="Ciudad de México", sub_area="Roma", cuisine="ramen", budget="300"),
    Slots(cuisine="tacos", budget="150"),
]


@pytest.mark.parametrize("current", SAMPLE_STATES)
def test_merging_empty_update_is_identity(current):
    assert merge(current, Slots()) == current


@pytest.mark.parametrize("current", SAMPLE_STATES)
def test_non_empty_update_fields_win(current):
    update = Slots(sub_area="  Condesa ", budget="$450 pesos")
    merged = merge(current, update)
    assert merged.sub_area == "Condesa"
    assert merged.budget == "450"
    assert merged.locality == current.locality
    assert merged.cuisine == current.cuisine


def test_budget_without_digits_empties_the_slot():
    merged = merge(Slots(budget="300"), Slots(budget="barato"))
    assert merged.budget == ""


@pytest.mark.parametrize(
    "raw,expected",
    [("300", "300"), ("$ 1200 mxn", "1200"), ("9", ""), ("", ""), (None, ""), (250, "250")],
)
def test_normalize_budget(raw, expected):
    assert normalize_budget(raw) == expected


def test_locality_change_keeps_sub_area():
    merged = merge(Slots(locality="CDMX", sub_area="Roma"), Slots(locality="Guadalajara"))
    assert merged == Slots(locality="Guadalajara", sub_area="Roma")


def test_from_mapping_accepts_wire_aliases():
    slots = Slots.from_mapping({"city": "CDMX", "zone": "Roma", "cuisine": " sushi ", "budget": 300})
    assert slots == Slots(locality="CDMX", sub_area="Roma", cuisine="sushi", budget="300")
    assert Slots.from_mapping({"locality": "Monterrey", "subArea": "Centro"}).sub_area == "Centro"
    assert Slots.from_mapping(None).is_empty()


def test_reset_clears_slots_but_keeps_language():
    state = ConversationState(
        conversation_id="abc",
        slots=Slots(locality="CDMX", sub_area="Roma", cuisine="ramen", budget="300"),
        language="en",
        last_intent_satisfied="recommend",
        pending_question=AwaitedSlot.BUDGET,
    )
    reset(state)
    assert state.slots.is_empty()
    assert state.pending_question is None
    assert state.last_intent_satisfied == ""
    assert state.language == "en"
    assert state.conversation_id == "abc"


def test_idle_detection():
    state = ConversationState(conversation_id="x")
    assert not state.is_idle(time.time(), 900)
    state.last_activity_at = 1000.0
    assert not state.is_idle(1500.0, 900)
    assert state.is_idle(2000.0, 900)


def test_store_creates_state_with_default_language():
    store = ConversationStore(shards=2, default_language="en")
    with store.session("u1") as state:
        assert state.language == "en"
        assert state.slots.is_empty()
    assert len(store) == 1
    assert store.get("missing") is None


def test_copy_does_not_leak_until_commit():
    store = ConversationStore(shards=2)
    with store.session("u1") as current:
        draft = current.copy()
        draft.slots = Slots(locality="CDMX")
        assert store.get("u1").slots.is_empty()
        store.commit(draft)
    assert store.get("u1").slots.locality == "CDMX"


def test_session_serializes_same_key():
    store = ConversationStore(shards=1)
    order: list[str] = []
    entered = threading.Event()

    def first():
        with store.session("same"):
            entered.set()
            time.sleep(0.05)
            order.append("first")

    def second():
        entered.wait()
        with store.session("same"):
            order.append("second")

    threads = [threading.Thread(target=first), threading.Thread(target=second)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert order == ["first", "second"]


def test_store_prunes_conversations_past_the_ttl():
    now = [10_000.0]
    store = ConversationStore(shards=2, ttl_seconds=3_600, clock=lambda: now[0])
    for cid, seen_at in (("old", 5_000.0), ("recent", 14_000.0)):
        with store.session(cid) as current:
            draft = current.copy()
            draft.last_activity_at = seen_at
            store.commit(draft)

    now[0] = 15_000.0
    with store.session("new"):
        pass
    assert store.get("old") is None
    assert store.get("recent") is not None
    assert len(store) == 2

    # The conversation being opened is never pruned, however stale.
    now[0] = 100_000.0
    with store.session("recent") as current:
        assert current.last_activity_at == 14_000.0
    assert store.get("new") is None
