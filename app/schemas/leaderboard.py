from pydantic import BaseModel

from app.schemas.contestants import ContestantSummary


class BonusBreakdown(BaseModel):
    episode_bonus: int
    winner_bonus: int
    total_bonus: int
    episode_count: int


class PlayerScoreResponse(BaseModel):
    player_id: int
    draft_score: int
    sole_survivor_score: int
    sole_survivor_bonus: int
    prediction_bonus: int
    total: int
    bonus_breakdown: BonusBreakdown


class LeaderboardEntry(BaseModel):
    rank: int
    player_id: int
    name: str
    profile_image_url: str | None = None
    draft_score: int
    sole_survivor_score: int
    sole_survivor_bonus: int
    prediction_bonus: int
    total_score: int
    bonus_breakdown: BonusBreakdown | None = None
    weekly_change: int
    drafted_contestants: list[ContestantSummary]
    sole_survivor: ContestantSummary | None = None
