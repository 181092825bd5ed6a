from pydantic import BaseModel, Field
from datetime import datetime


class PredictionItem(BaseModel):
    tribe: str = Field(..., min_length=1)
    contestant_id: int


class PredictionSubmit(BaseModel):
    episode_id: int
    predictions: list[PredictionItem] = Field(..., min_length=1)


class PredictionResponse(BaseModel):
    id: int
    player_id: int
    episode_id: int
    tribe: str
    contestant_id: int
    contestant_name: str = ""
    is_correct: bool | None
    scored_at: datetime | None = None

    model_config = {"from_attributes": True}


class CurrentPredictionsResponse(BaseModel):
    episode_id: int | None
    episode_number: int | None
    predictions_locked: bool
    tribes: dict[str, list[PredictionResponse]]


class PredictionHistoryItem(PredictionResponse):
    episode_number: int
    eliminated_contestant_name: str | None = None
    points: int


class PredictionHistoryResponse(BaseModel):
    predictions: list[PredictionHistoryItem]
    total: int
    limit: int
    offset: int


class EpisodePredictionsResponse(BaseModel):
    episode_id: int
    episode_number: int
    predictions_locked: bool
    tribes: dict[str, list[PredictionResponse]]


class ScoringSummary(BaseModel):
    correct: int
    incorrect: int
    points_awarded: int


class EpisodeStatistics(BaseModel):
    episode_id: int
    episode_number: int
    total_predictions: int
    scored_predictions: int
    correct_predictions: int
    participants: int
    accuracy: float
    participation_rate: float


class OverallStatistics(BaseModel):
    total_predictions: int
    scored_predictions: int
    correct_predictions: int
    accuracy: float


class PredictionStatisticsResponse(BaseModel):
    overall: OverallStatistics
    episodes: list[EpisodeStatistics]
