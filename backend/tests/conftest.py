import os
import sys
from pathlib import Path

import pytest
import sentry_sdk
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Disable outbound Sentry calls during tests
sentry_sdk.init = lambda *args, **kwargs: None  # type: ignore[assignment]
os.environ["SENTRY_DSN"] = ""
os.environ["NLU_MODE"] = "regex"
os.environ.pop("OPENAI_API_KEY", None)

from backend.remy.api.routes.recommendation import STORE  # noqa: E402
from backend.remy.circuit_breaker import reset_all_circuit_breakers  # noqa: E402
from backend.remy.controller import TurnController  # noqa: E402
from backend.remy.dining import CanonicalDataset, Coordinate, SearchEngine, Venue  # noqa: E402
from backend.remy.main import app  # noqa: E402
from backend.remy.settings import settings  # noqa: E402
from backend.remy.slots import ConversationStore  # noqa: E402

ROMA_NORTE = Coordinate(lat=19.4180, lon=-99.1630)


class FakeResolver:
    """Resolves every locality to a fixed coordinate, or to nothing."""

    def __init__(self, coordinate: Coordinate | None = ROMA_NORTE) -> None:
        self.coordinate = coordinate
        self.calls: list[tuple[str, str]] = []

    def resolve(self, locality: str, sub_area: str = "") -> Coordinate | None:
        self.calls.append((locality, sub_area))
        return self.coordinate


class FakeLive:
    """Stands in for the Overpass client and counts calls."""

    def __init__(self, batches: list[list[Venue]] | None = None, error: Exception | None = None) -> None:
        self.batches = list(batches or [])
        self.error = error
        self.calls: list[dict] = []

    def fetch(self, lat, lon, radius_m, expansion, include_fast_food=False):
        self.calls.append(
            {"radius_m": radius_m, "expansion": expansion, "include_fast_food": include_fast_food}
        )
        if self.error is not None:
            raise self.error
        if self.batches:
            return self.batches.pop(0)
        return []


def canonical_row(slug: str, cuisine: str, prestige: float, lat: float = 19.4180, lng: float = -99.1630, **extra):
    row = {"slug": slug, "name": slug.replace("-", " ").title(), "lat": lat, "lng": lng,
           "cuisine": cuisine, "prestige": prestige}
    row.update(extra)
    return row


@pytest.fixture(scope="session")
def client() -> TestClient:
    return TestClient(app, base_url="http://api.testserver")


@pytest.fixture(autouse=True)
def clean_state() -> None:
    settings.OPENAI_API_KEY = None
    settings.NLU_MODE = "regex"
    settings.SENTRY_DSN = None
    STORE.clear()
    reset_all_circuit_breakers()
    yield
    app.dependency_overrides.clear()
    STORE.clear()


@pytest.fixture
def make_controller():
    """Build a controller over fakes; returns (controller, resolver, live)."""

    def _build(rows=None, coordinate=ROMA_NORTE, live=None, **kwargs):
        dataset = CanonicalDataset.from_raw(rows or [])
        resolver = FakeResolver(coordinate)
        live = live if live is not None else FakeLive()
        controller = TurnController(
            ConversationStore(shards=4),
            resolver,
            SearchEngine(dataset, live),
            **kwargs,
        )
        return controller, resolver, live

    return _build
