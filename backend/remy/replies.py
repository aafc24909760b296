"""Spanish/English reply text for turn decisions."""

from __future__ import annotations

from dataclasses import dataclass

from .controller import Decision, DecisionKind
from .dining.types import Venue
from .slots import AwaitedSlot, Slots

LIST_LIMIT = 3

_ASK_PLACE_ES = "Dime el nombre del lugar y te cuento."
_ASK_PLACE_EN = "Tell me the place's name and I'll fill you in."

QUESTIONS: dict[str, dict[AwaitedSlot, str]] = {
    "es": {
        AwaitedSlot.LOCALITY: "¿En qué ciudad estás?",
        AwaitedSlot.SUB_AREA: "¿Alguna zona/colonia preferida?",
        AwaitedSlot.CUISINE: "¿Qué se te antoja?",
        AwaitedSlot.BUDGET: "¿Presupuesto aproximado por persona?",
        AwaitedSlot.PLACE: "¿De cuál de los lugares me hablas?",
    },
    "en": {
        AwaitedSlot.LOCALITY: "Which city are you in?",
        AwaitedSlot.SUB_AREA: "Any preferred area/neighborhood?",
        AwaitedSlot.CUISINE: "What are you craving?",
        AwaitedSlot.BUDGET: "Approx budget per person?",
        AwaitedSlot.PLACE: "Which of the places do you mean?",
    },
}

# What to order, keyed by canonical cuisine
DISH_HINTS: dict[str, dict[str, str]] = {
    "es": {
        "ramen": "un tonkotsu o un shoyu clásico",
        "sushi": "nigiris de temporada o el omakase si lo hay",
        "japanese": "algo de la barra, nigiris o un donburi",
        "tacos": "los de pastor y uno de suadero",
        "mexican": "el mole de la casa",
        "seafood": "una tostada de atún y un aguachile",
        "italian": "una pasta fresca",
        "burger": "la hamburguesa de la casa",
        "chinese": "dumplings y algo al wok",
        "vegetarian": "el plato de temporada",
    },
    "en": {
        "ramen": "a tonkotsu or a classic shoyu",
        "sushi": "seasonal nigiri, or the omakase if they have one",
        "japanese": "something from the counter, nigiri or a donburi",
        "tacos": "al pastor plus one suadero",
        "mexican": "the house mole",
        "seafood": "a tuna tostada and an aguachile",
        "italian": "a fresh pasta",
        "burger": "the house burger",
        "chinese": "dumplings and something from the wok",
        "vegetarian": "the seasonal plate",
    },
}


@dataclass(frozen=True)
class Reply:
    reply: str
    followup: str = ""


def _lang(language: str) -> str:
    return "en" if language == "en" else "es"


def ask(slot: AwaitedSlot | None, language: str) -> str:
    if slot is None:
        return ""
    return QUESTIONS[_lang(language)][slot]


def greet(language: str, name: str = "") -> str:
    if _lang(language) == "es":
        hello = f"¡Hola {name}!" if name else "¡Hola!"
        return f"{hello} Soy Remy 👋 Chef de cabecera y cazador de buenos lugares. ¿En qué ciudad estás y qué se te antoja?"
    hello = f"Hey {name}!" if name else "Hey!"
    return f"{hello} I'm Remy 👋 a chef-y guide to great spots. Which city are you in and what are you craving?"


def list_message(venues: list[Venue], language: str, context: str) -> str:
    if _lang(language) == "es":
        head = f"Te dejo opciones en {context}:" if context else "Te dejo opciones:"
    else:
        head = f"Here are some options in {context}:" if context else "Here are some options:"
    lines = [head]
    for venue in venues[:LIST_LIMIT]:
        cuisines = f" ({', '.join(venue.cuisines[:2])})" if venue.cuisines else ""
        address = f" · {venue.address}" if venue.address else ""
        lines.append(f"• {venue.name}{cuisines}{address}")
    return "\n".join(lines)


def soft_nudge(language: str, locality: str, cuisine: str) -> str:
    if _lang(language) == "es":
        extra = f" para {cuisine}" if cuisine else ""
        return (
            f"Para darte algo top en {locality}{extra}, dime si tienes **zona** "
            "(p. ej. Roma/Condesa/Polanco) o si prefieres ajustar el antojo."
        )
    extra = f" for {cuisine}" if cuisine else ""
    return f"To land something great in {locality}{extra}, tell me a **neighborhood** or tweak the craving."


def _place(slots: Slots) -> str:
    return ", ".join(part for part in (slots.sub_area, slots.locality) if part)


def _ask_slot(question: AwaitedSlot | None, slots: Slots, es: bool) -> str:
    if question is AwaitedSlot.LOCALITY:
        return "Para ayudarte bien, dime tu ciudad." if es else "To help properly, tell me your city."
    if question is AwaitedSlot.CUISINE:
        return f"Perfecto, {slots.locality}. ¿Qué se te antoja hoy?" if es else f"Great, {slots.locality}. What are you craving today?"
    return f"Va, seguimos en {_place(slots)}." if es else f"Okay, sticking with {_place(slots)}."


def _place_detail(decision: Decision, es: bool) -> str:
    venue = decision.venue
    if venue is None:
        return _ASK_PLACE_ES if es else _ASK_PLACE_EN
    if decision.detail == "photos":
        link = venue.website or venue.map_url
        if not link:
            return f"No tengo enlace para {venue.name}, pero búscalo por nombre en mapas." if es else f"I don't have a link for {venue.name}, try searching it by name on a map."
        return f"Fotos y menú de {venue.name}: {link}" if es else f"Photos and menu for {venue.name}: {link}"

    table = DISH_HINTS["es" if es else "en"]
    hint = next((table[c] for c in venue.cuisines if c in table), "")
    if not hint:
        return f"En {venue.name} pregunta por el platillo de la casa." if es else f"At {venue.name}, ask for the house special."
    return f"En {venue.name} ve por {hint}." if es else f"At {venue.name}, go for {hint}."


def render(decision: Decision, slots: Slots, language: str) -> Reply:
    """Turn a decision into the reply text and its single follow-up question."""
    lang = _lang(language)
    es = lang == "es"
    followup = ask(decision.question, lang)
    kind = decision.kind

    if kind is DecisionKind.RESET:
        text = (
            "Listo, reinicié la conversación. ¿En qué ciudad estás y qué se te antoja?"
            if es
            else "Done, I reset our chat. Which city are you in and what are you craving?"
        )
    elif kind is DecisionKind.GREETING:
        if decision.question is AwaitedSlot.LOCALITY or not slots.locality:
            text = greet(lang, decision.context.get("name", ""))
        else:
            text = f"¡Hola de nuevo! Seguimos en {_place(slots)}." if es else f"Hi again! Still in {_place(slots)}."
    elif kind is DecisionKind.ASK_SLOT:
        text = _ask_slot(decision.question, slots, es)
    elif kind is DecisionKind.COULD_NOT_LOCATE:
        text = (
            f"No ubico bien {_place(slots)}. ¿Qué colonia te queda cómodo?"
            if es
            else f"I couldn't place {_place(slots)}. Which neighborhood works for you?"
        )
    elif kind is DecisionKind.NUDGE:
        text = soft_nudge(lang, slots.locality, slots.cuisine)
    elif kind is DecisionKind.RESULTS:
        text = list_message(decision.venues, lang, _place(slots))
    elif kind is DecisionKind.PLACE_DETAIL:
        text = _place_detail(decision, es)
    elif kind is DecisionKind.ASK_PLACE:
        text = _ASK_PLACE_ES if es else _ASK_PLACE_EN
    else:
        text = "Tuve un problema técnico. Probemos de nuevo." if es else "Technical hiccup. Let's try again."
        followup = ""

    return Reply(reply=text, followup=followup)


__all__ = ["Reply", "ask", "render"]
