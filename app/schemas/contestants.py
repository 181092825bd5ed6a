from pydantic import BaseModel, Field


class ContestantCreate(BaseModel):
    name: str = Field(..., max_length=100)
    profession: str | None = None
    image_url: str | None = None
    current_tribe: str | None = None


class ContestantUpdate(BaseModel):
    name: str | None = None
    profession: str | None = None
    image_url: str | None = None
    current_tribe: str | None = None
    is_eliminated: bool | None = None
    is_winner: bool | None = None


class ContestantSummary(BaseModel):
    id: int
    name: str
    image_url: str | None = None
    current_tribe: str | None = None

    model_config = {"from_attributes": True}


class ContestantResponse(ContestantSummary):
    profession: str | None
    is_eliminated: bool
    is_winner: bool
    total_score: int


class ContestantUpdateResponse(BaseModel):
    contestant: ContestantResponse
    draft_replacements: list[dict] = []


class ContestantPerformance(BaseModel):
    id: int
    name: str
    image_url: str | None
    profession: str | None
    is_eliminated: bool
    total_score: int
    average_per_episode: float | None
    trend: str
    episodes_participated: int
    idols_found: int
    reward_wins: int
    immunity_wins: int
    rank: int


class EpisodeScoreItem(BaseModel):
    episode_number: int
    score: int


class ScoreBreakdownResponse(BaseModel):
    contestant_id: int
    name: str
    total_score: int
    episode_scores: list[EpisodeScoreItem]


class CacheDriftItem(BaseModel):
    contestant_id: int
    name: str
    cached_total: int
    ledger_total: int


class ReplacementItem(BaseModel):
    player_id: int
    replaced_contestant_id: int
    new_contestant_id: int | None


class FixEliminationsResponse(BaseModel):
    replacements: list[ReplacementItem]
