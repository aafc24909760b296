"""HTTP surface: /recommendation, /, /health and /metrics."""

from backend.remy.api.routes.recommendation import STORE, get_controller
from backend.remy.controller import TurnController
from backend.remy.dining import CanonicalDataset, SearchEngine
from backend.remy.main import app
from backend.remy.settings import APP_VERSION
from conftest import FakeLive, FakeResolver, canonical_row

ROWS = [canonical_row(f"ramen-{i}", "japanese; ramen", 60 + i, website=f"https://ramen{i}.example") for i in range(3)]


def use_fake_controller(rows=ROWS, extractor=None) -> TurnController:
    kwargs = {"extractor": extractor} if extractor else {}
    controller = TurnController(
        STORE, FakeResolver(), SearchEngine(CanonicalDataset.from_raw(rows), FakeLive()), **kwargs
    )
    app.dependency_overrides[get_controller] = lambda: controller
    return controller


def test_root_reports_version(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.text == f"remy-chef {APP_VERSION}"


def test_missing_conversation_id_is_rejected(client):
    use_fake_controller()
    resp = client.post("/recommendation", json={"message": "hola"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "manychat_user_id is required"}
    assert len(STORE) == 0


def test_numeric_conversation_id_is_accepted(client):
    use_fake_controller()
    resp = client.post("/recommendation", json={"manychat_user_id": 123456789, "message": "hola"})
    assert resp.status_code == 200
    assert resp.json()["intent"] == "chitchat"
    assert STORE.get("123456789") is not None


def test_turn_response_shape(client):
    use_fake_controller()
    resp = client.post(
        "/recommendation",
        json={"manychat_user_id": "u-1", "message": "quiero ramen", "city": "CDMX"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["slots"] == {"city": "CDMX", "zone": "", "cuisine": "ramen", "budget": ""}
    assert body["next_slot"] == "zone"
    assert body["intent"] == "recommend"
    assert body["lang"] == "es"
    assert body["followup"] == "¿Alguna zona/colonia preferida?"
    assert body["reply"].startswith("Te dejo opciones en CDMX:")
    assert [r["name"] for r in body["results"]] == ["Ramen 2", "Ramen 1", "Ramen 0"]
    assert body["results"][0]["source"] == "canonical"
    assert "error" not in body
    assert resp.headers.get("X-Request-ID")


def test_nested_slots_and_conversation_id_alias(client):
    use_fake_controller()
    resp = client.post(
        "/recommendation",
        json={
            "conversation_id": "u-2",
            "message": "",
            "slots": {"locality": "CDMX", "sub_area": "Roma", "budget": "$300"},
        },
    )
    assert resp.status_code == 200
    assert resp.json()["slots"] == {"city": "CDMX", "zone": "Roma", "cuisine": "", "budget": "300"}


def test_reset_round_trip(client):
    use_fake_controller()
    client.post("/recommendation", json={"manychat_user_id": "u-3", "message": "Estoy en CDMX y quiero ramen"})
    resp = client.post("/recommendation", json={"manychat_user_id": "u-3", "message": "olvida todo"})
    body = resp.json()
    assert body["intent"] == "reset"
    assert body["next_slot"] == "city"
    assert body["slots"] == {"city": "", "zone": "", "cuisine": "", "budget": ""}


def test_internal_fault_returns_localized_500(client):
    def broken(message, previous):
        raise RuntimeError("boom")

    use_fake_controller(extractor=broken)
    resp = client.post("/recommendation", json={"manychat_user_id": "u-4", "message": "I want sushi"})
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"] == "internal_error"
    assert body["reply"] == "Tuve un problema técnico. Probemos de nuevo."
    assert body["followup"] == ""


def test_health_reports_dataset_and_breakers(client):
    use_fake_controller()
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["service"] == "remy-chef"
    assert body["checks"]["dataset"] == {"status": "ok", "records": 3}
    assert body["checks"]["upstreams"]["status"] == "ok"
    assert body["checks"]["nlu"] == {"status": "disabled"}


def test_health_stays_up_without_dataset(client):
    use_fake_controller(rows=[])
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["checks"]["dataset"]["status"] == "disabled"
    assert body["checks"]["dataset"]["reason"] == "live search only"


def test_metrics_endpoint_exposes_turn_counters(client):
    use_fake_controller()
    client.post("/recommendation", json={"manychat_user_id": "u-5", "message": "hola"})
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "remy_turns_total" in resp.text
    assert "http_requests_total" in resp.text
