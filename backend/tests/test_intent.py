import pytest
from backend.remy.extract import extract
from backend.remy.intent import RULES, Intent, is_photo_request, is_reset, route
from backend.remy.slots import Slots
from backend.remy.utils import fold_accents


def classify(message: str) -> Intent:
    return route(message, extract(message))


@pytest.mark.parametrize(
    "message,intent",
    [
        ("olvida todo", Intent.RESET),
        ("reset", Intent.RESET),
        ("Estoy en CDMX y quiero ramen", Intent.NEW_LOCALITY),
        ("fotos de Rokai", Intent.PHOTO_REQUEST),
        ("¿qué pido en Contramar?", Intent.DISH_INQUIRY),
        ("what's good at Rokai", Intent.DISH_INQUIRY),
        ("sorpréndeme", Intent.RECOMMEND),
        ("tengo antojo de sushi", Intent.RECOMMEND),
        ("zona Condesa", Intent.UPDATE_SLOT),
        ("$300", Intent.UPDATE_SLOT),
        ("hola", Intent.CHITCHAT),
        ("asdf qwer", Intent.UNKNOWN),
    ],
)
def test_route(message, intent):
    assert classify(message) is intent


def test_reset_beats_cuisine():
    message = "olvida todo, quiero sushi"
    assert extract(message).cuisine == "sushi"
    assert classify(message) is Intent.RESET


def test_locality_beats_cuisine():
    assert classify("ahora estoy en Monterrey, quiero tacos") is Intent.NEW_LOCALITY


def test_greeting_with_cuisine_is_a_recommendation():
    assert classify("hola, quiero tacos") is Intent.RECOMMEND


def test_rules_are_ordered_and_individually_testable():
    order = [intent for intent, _ in RULES]
    assert order.index(Intent.RESET) < order.index(Intent.NEW_LOCALITY)
    assert order.index(Intent.PHOTO_REQUEST) < order.index(Intent.RECOMMEND)
    assert is_reset(fold_accents("Empecemos de nuevo"), Slots())
    assert is_photo_request("tienes el menu?", Slots())
    assert not is_photo_request("quiero sushi", Slots())
