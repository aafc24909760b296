import pytest
from backend.remy.extract import (
    canonicalize_cuisine,
    detect_language,
    extract,
    is_short_plain_text,
)
from backend.remy.slots import Slots


def test_locality_and_cuisine_from_one_message():
    slots = extract("Estoy en CDMX y quiero ramen")
    assert slots == Slots(locality="CDMX", cuisine="ramen")


def test_english_locality_stops_at_punctuation():
    slots = extract("I'm in Mexico City, craving sushi")
    assert slots.locality == "Mexico City"
    assert slots.cuisine == "sushi"


def test_bare_locality_message():
    assert extract("en Guadalajara").locality == "Guadalajara"


def test_accents_survive_extraction():
    assert extract("Estoy en Querétaro").locality == "Querétaro"


def test_sub_area_and_budget():
    slots = extract("Estoy en CDMX zona Roma, $400")
    assert slots.locality == "CDMX"
    assert slots.sub_area == "Roma"
    assert slots.budget == "400"


def test_sub_area_with_craving():
    slots = extract("colonia Condesa, tengo antojo de tacos")
    assert slots.sub_area == "Condesa"
    assert slots.cuisine == "tacos"


@pytest.mark.parametrize(
    "message,cuisine",
    [
        ("se me antojan unos noodles", "ramen"),
        ("algo de omakase", "sushi"),
        ("unos tacos al pastor", "tacos"),
        ("something vegan please", "vegetarian"),
        ("quiero mariscos", "seafood"),
        ("tengo antojo de pozole", "pozole"),
    ],
)
def test_cuisine_table_then_fallback(message, cuisine):
    assert extract(message).cuisine == cuisine


@pytest.mark.parametrize("message", ["quiero comer algo", "quiero ver fotos", "hola"])
def test_generic_phrasing_is_not_a_cuisine(message):
    assert extract(message).cuisine == ""


def test_figure_of_speech_is_not_a_locality():
    slots = extract("I'm in the mood for ramen")
    assert slots.locality == ""
    assert slots.cuisine == "ramen"


def test_unmatched_fields_are_empty_strings():
    slots = extract("")
    assert slots == Slots()
    assert all(value == "" for value in slots.as_dict().values())


@pytest.mark.parametrize(
    "text,expected",
    [
        ("¿Dónde como?", "es"),
        ("hola, busco algo rico", "es"),
        ("I want sushi please", "en"),
        ("sushi", None),
        ("ok", None),
        ("", None),
    ],
)
def test_detect_language(text, expected):
    assert detect_language(text) == expected


@pytest.mark.parametrize(
    "text,expected",
    [("Roma", True), ("Roma Norte.", True), ("300", False), ("quiero tacos al pastor por favor", False)],
)
def test_short_plain_text(text, expected):
    assert is_short_plain_text(text) is expected


def test_canonicalize_cuisine():
    assert canonicalize_cuisine("Noodles") == "ramen"
    assert canonicalize_cuisine(" pozole ") == "pozole"
    assert canonicalize_cuisine("") == ""
