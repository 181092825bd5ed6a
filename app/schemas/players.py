from pydantic import BaseModel, Field

from app.schemas.contestants import ContestantSummary


class RankingItem(BaseModel):
    contestant_id: int
    rank: int = Field(..., gt=0)


class RankingsSubmit(BaseModel):
    rankings: list[RankingItem]
    sole_survivor_id: int | None = None


class RankingResponse(BaseModel):
    contestant_id: int
    rank: int

    model_config = {"from_attributes": True}


class SoleSurvivorUpdate(BaseModel):
    contestant_id: int


class SoleSurvivorHistoryItem(BaseModel):
    id: int
    contestant_id: int
    start_episode: int
    end_episode: int | None

    model_config = {"from_attributes": True}


class DraftReplacement(BaseModel):
    player_id: int
    replaced_contestant_id: int
    new_contestant_id: int | None


class SoleSurvivorUpdateResponse(BaseModel):
    message: str
    sole_survivor_id: int
    history: SoleSurvivorHistoryItem | None = None
    draft_replacement: DraftReplacement | None = None


class DraftPickCreate(BaseModel):
    player_id: int
    contestant_id: int
    pick_number: int = Field(..., gt=0)


class DraftPickResponse(BaseModel):
    id: int
    player_id: int
    contestant_id: int
    pick_number: int
    start_episode: int
    end_episode: int | None
    is_replacement: bool
    replaced_contestant_id: int | None

    model_config = {"from_attributes": True}


class DraftPickScore(DraftPickResponse):
    contestant: ContestantSummary
    score: int
