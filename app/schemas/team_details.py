from pydantic import BaseModel
from datetime import datetime

from app.schemas.contestants import ContestantSummary


class AuditEpisode(BaseModel):
    id: int
    episode_number: int
    aired_date: datetime | None


class AuditTeam(BaseModel):
    drafted_contestants: list[ContestantSummary]
    sole_survivor: ContestantSummary | None


class AuditScores(BaseModel):
    draft_score: int
    sole_survivor_score: int
    sole_survivor_bonus: int
    prediction_bonus: int
    total_episode_score: int


class PredictionBonusItem(BaseModel):
    prediction_text: str
    points: int


class AuditEpisodeRow(BaseModel):
    episode: AuditEpisode
    team: AuditTeam
    scores: AuditScores
    prediction_bonuses: list[PredictionBonusItem]


class OverallTotals(BaseModel):
    draft_score: int
    sole_survivor_score: int
    sole_survivor_bonus: int
    prediction_bonus: int
    total: int


class TeamInfo(BaseModel):
    name: str
    sole_survivor: ContestantSummary | None
    drafted_contestants: list[ContestantSummary]


class TeamAuditResponse(BaseModel):
    player_id: int
    team_info: TeamInfo
    episodes: list[AuditEpisodeRow]
    overall_totals: OverallTotals
    unattributed_bonus: int
    is_consistent: bool
