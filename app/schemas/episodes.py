from pydantic import BaseModel, Field
from datetime import datetime


class EpisodeCreate(BaseModel):
    episode_number: int = Field(..., gt=0)
    title: str | None = None
    aired_date: datetime | None = None


class EpisodeUpdate(BaseModel):
    title: str | None = None
    aired_date: datetime | None = None


class EpisodeResponse(BaseModel):
    id: int
    episode_number: int
    title: str | None
    aired_date: datetime | None
    predictions_locked: bool
    is_current: bool = False

    model_config = {"from_attributes": True}


class PredictionLockRequest(BaseModel):
    locked: bool = Field(..., strict=True)


class PredictionLockResponse(BaseModel):
    episode_id: int
    predictions_locked: bool
