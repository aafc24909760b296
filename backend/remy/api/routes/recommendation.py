from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ...controller import DecisionKind, TurnController, TurnOutcome, TurnRequest
from ...dining import CanonicalDataset, SearchEngine, Venue
from ...dining.overpass import OverpassClient
from ...geocoding import LocalityResolver, NominatimGeocoder
from ...replies import render
from ...settings import settings
from ...slots import AwaitedSlot, ConversationStore, Slots, merge

router = APIRouter(tags=["recommendation"])

STORE = ConversationStore()
_controller: TurnController | None = None

# Wire names of the awaited slot
NEXT_SLOT_NAMES: dict[AwaitedSlot, str] = {
    AwaitedSlot.LOCALITY: "city",
    AwaitedSlot.SUB_AREA: "zone",
    AwaitedSlot.CUISINE: "cuisine",
    AwaitedSlot.BUDGET: "budget",
    AwaitedSlot.PLACE: "place",
}


class RecommendationRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    manychat_user_id: str = Field(
        "",
        validation_alias=AliasChoices("manychat_user_id", "conversation_id"),
        description="Conversation identifier; one conversation per id",
    )
    message: str = ""
    username: str = Field("", description="Display name, used as a language hint")
    city: str = ""
    zone: str = ""
    cuisine: str = ""
    budget: str | int = ""
    slots: dict[str, Any] | None = None

    @field_validator("manychat_user_id", mode="before")
    @classmethod
    def _manychat_user_id(cls, value):  # type: ignore[override]
        # ManyChat sends {{user_id}} as a number
        if value is None:
            return ""
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    def preset_slots(self) -> Slots:
        flat = Slots.from_mapping(
            {"city": self.city, "zone": self.zone, "cuisine": self.cuisine, "budget": self.budget}
        )
        return merge(flat, Slots.from_mapping(self.slots))


class SlotSnapshot(BaseModel):
    city: str = ""
    zone: str = ""
    cuisine: str = ""
    budget: str = ""


class VenueSummary(BaseModel):
    id: str
    name: str
    cuisines: list[str] = []
    address: str | None = None
    score: float = 0.0
    source: str
    distance_km: float | None = None
    website: str | None = None
    map_url: str | None = None
    accolades: dict[str, Any] | None = None


class RecommendationResponse(BaseModel):
    reply: str
    followup: str = ""
    slots: SlotSnapshot
    next_slot: str = ""
    intent: str = ""
    lang: str = "es"
    results: list[VenueSummary] = []
    error: str | None = None


def build_controller(dataset: CanonicalDataset | None = None) -> TurnController:
    if dataset is None:
        dataset = CanonicalDataset.load(settings.dataset_path)
    engine = SearchEngine(dataset, OverpassClient())
    return TurnController(STORE, LocalityResolver(NominatimGeocoder()), engine)


def get_controller() -> TurnController:
    global _controller
    if _controller is None:
        _controller = build_controller()
    return _controller


def _summary(venue: Venue) -> VenueSummary:
    return VenueSummary(
        id=venue.id,
        name=venue.name,
        cuisines=venue.cuisines,
        address=venue.address or None,
        score=round(venue.score, 4),
        source=venue.source,
        distance_km=round(venue.distance_km, 3) if venue.distance_km is not None else None,
        website=venue.website,
        map_url=venue.map_url,
        accolades=venue.accolades or None,
    )


def build_response(outcome: TurnOutcome) -> RecommendationResponse:
    state, decision = outcome.state, outcome.decision
    text = render(decision, state.slots, state.language)
    if decision.kind is DecisionKind.PLACE_DETAIL and decision.venue is not None:
        results = [_summary(decision.venue)]
    else:
        results = [_summary(v) for v in decision.venues]
    slots = state.slots
    return RecommendationResponse(
        reply=text.reply,
        followup=text.followup,
        slots=SlotSnapshot(
            city=slots.locality, zone=slots.sub_area, cuisine=slots.cuisine, budget=slots.budget
        ),
        next_slot=NEXT_SLOT_NAMES.get(decision.question, "") if decision.question else "",
        intent=outcome.intent.value,
        lang=state.language,
        results=results,
        error="internal_error" if decision.kind is DecisionKind.TECHNICAL_ERROR else None,
    )


@router.post("/recommendation", response_model=RecommendationResponse, response_model_exclude_none=True)
def recommendation(
    req: RecommendationRequest,
    controller: TurnController = Depends(get_controller),
):
    conversation_id = req.manychat_user_id.strip()
    if not conversation_id:
        return JSONResponse(status_code=400, content={"error": "manychat_user_id is required"})

    outcome = controller.handle(
        TurnRequest(
            conversation_id=conversation_id,
            message=req.message,
            slots=req.preset_slots(),
            display_name=req.username,
        )
    )
    body = build_response(outcome)
    if body.error:
        return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))
    return body
