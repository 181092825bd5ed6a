from pydantic import BaseModel, Field

from app.schemas.contestants import ContestantSummary


class EventTypeResponse(BaseModel):
    id: int
    name: str
    display_name: str
    category: str
    point_value: int
    description: str | None
    is_active: bool

    model_config = {"from_attributes": True}


class EventTypesGrouped(BaseModel):
    basic: list[EventTypeResponse]
    penalty: list[EventTypeResponse]
    bonus: list[EventTypeResponse]


class EventTypeUpdate(BaseModel):
    point_value: int = Field(..., strict=True)


class EventTypeBrief(BaseModel):
    id: int
    name: str
    display_name: str
    category: str

    model_config = {"from_attributes": True}


class LedgerEventResponse(BaseModel):
    id: int
    contestant_id: int
    event_type_id: int
    point_value: int
    reverses_event_id: int | None = None
    event_type: EventTypeBrief

    model_config = {"from_attributes": True}


class ContestantEpisodeEvents(BaseModel):
    contestant_id: int
    contestant: ContestantSummary
    events: list[LedgerEventResponse]
    episode_score: int


class EventAdd(BaseModel):
    contestant_id: int
    event_type_id: int


class EventsCreate(BaseModel):
    events: list[EventAdd] = Field(..., min_length=1)


class BulkEventUpdate(BaseModel):
    add: list[EventAdd] = []
    remove: list[int] = []


class PredictionOutcome(BaseModel):
    contestant_id: int
    correct: int
    incorrect: int
    points_awarded: int


class LedgerChangeResponse(BaseModel):
    added: list[LedgerEventResponse]
    reversals: list[LedgerEventResponse]
    episode_scores: dict[int, int]
    prediction_results: list[PredictionOutcome] = []
    draft_replacements: list[dict] = []
