import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.core.database import get_db
from app.models.models import Contestant, Episode, Player, Prediction
from app.schemas.episodes import (
    EpisodeCreate, EpisodeUpdate, EpisodeResponse,
    PredictionLockRequest, PredictionLockResponse,
)
from app.schemas.events import (
    BulkEventUpdate, ContestantEpisodeEvents, EventsCreate, LedgerChangeResponse,
)
from app.schemas.predictions import (
    EpisodePredictionsResponse, PredictionResponse, ScoringSummary,
)
from app.api.deps import get_current_user, require_admin
from app.services.episode_scores import get_episode_events_grouped
from app.services.ledger import LedgerResult, apply_ledger_changes, record_events, reverse_event
from app.services.league import get_current_episode, set_current_episode
from app.services.prediction_scoring import recalculate_predictions, set_predictions_locked

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/episodes", tags=["Episodes"])


async def _get_episode_or_404(db: AsyncSession, episode_id: int) -> Episode:
    result = await db.execute(select(Episode).where(Episode.id == episode_id))
    episode = result.scalar_one_or_none()
    if not episode:
        raise HTTPException(status_code=404, detail="Episode not found")
    return episode


def _episode_response(episode: Episode, current: Episode | None) -> EpisodeResponse:
    response = EpisodeResponse.model_validate(episode)
    response.is_current = current is not None and current.id == episode.id
    return response


def _ledger_response(result: LedgerResult) -> LedgerChangeResponse:
    return LedgerChangeResponse(
        added=result.added,
        reversals=result.reversals,
        episode_scores=result.episode_scores,
        prediction_results=result.prediction_results,
        draft_replacements=result.draft_replacements,
    )


@router.get("", response_model=list[EpisodeResponse])
async def list_episodes(
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(get_current_user),
):
    result = await db.execute(select(Episode).order_by(Episode.episode_number))
    current = await get_current_episode(db)
    return [_episode_response(e, current) for e in result.scalars().all()]


@router.post("", response_model=EpisodeResponse, status_code=201)
async def create_episode(
    body: EpisodeCreate,
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(require_admin),
):
    existing = await db.execute(
        select(Episode).where(Episode.episode_number == body.episode_number)
    )
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail=f"Episode {body.episode_number} already exists")

    episode = Episode(
        episode_number=body.episode_number,
        title=body.title,
        aired_date=body.aired_date,
    )
    db.add(episode)
    await db.flush()
    await db.refresh(episode)
    return _episode_response(episode, await get_current_episode(db))


@router.get("/current", response_model=EpisodeResponse)
async def current_episode(
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(get_current_user),
):
    current = await get_current_episode(db)
    if current is None:
        raise HTTPException(status_code=404, detail="No episodes yet")
    return _episode_response(current, current)


@router.patch("/{episode_id}", response_model=EpisodeResponse)
async def update_episode(
    episode_id: int,
    body: EpisodeUpdate,
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(require_admin),
):
    episode = await _get_episode_or_404(db, episode_id)
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(episode, field, value)
    await db.flush()
    await db.refresh(episode)
    return _episode_response(episode, await get_current_episode(db))


@router.put("/{episode_id}/current", response_model=EpisodeResponse)
async def make_current(
    episode_id: int,
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(require_admin),
):
    episode = await set_current_episode(db, episode_id)
    return _episode_response(episode, episode)


@router.put("/{episode_id}/lock-predictions", response_model=PredictionLockResponse)
async def lock_predictions(
    episode_id: int,
    body: PredictionLockRequest,
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(require_admin),
):
    episode = await set_predictions_locked(db, episode_id, body.locked)
    return PredictionLockResponse(episode_id=episode.id, predictions_locked=episode.predictions_locked)


# --- Event ledger ---

@router.get("/{episode_id}/events", response_model=list[ContestantEpisodeEvents])
async def get_episode_events(
    episode_id: int,
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(get_current_user),
):
    return await get_episode_events_grouped(db, episode_id)


@router.post("/{episode_id}/events", response_model=LedgerChangeResponse, status_code=201)
async def add_events(
    episode_id: int,
    body: EventsCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Player = Depends(require_admin),
):
    result = await record_events(
        db, episode_id, [e.model_dump() for e in body.events], created_by=current_user.id
    )
    return _ledger_response(result)


@router.post("/{episode_id}/events/bulk", response_model=LedgerChangeResponse)
async def bulk_update_events(
    episode_id: int,
    body: BulkEventUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Player = Depends(require_admin),
):
    """Apply adds and removals together; one invalid item rejects the whole request."""
    result = await apply_ledger_changes(
        db,
        episode_id,
        add=[e.model_dump() for e in body.add],
        remove=body.remove,
        created_by=current_user.id,
    )
    return _ledger_response(result)


@router.delete("/{episode_id}/events/{event_id}", response_model=LedgerChangeResponse)
async def delete_event(
    episode_id: int,
    event_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Player = Depends(require_admin),
):
    result = await reverse_event(db, episode_id, event_id, created_by=current_user.id)
    return _ledger_response(result)


# --- Predictions for an episode ---

@router.get("/{episode_id}/predictions", response_model=EpisodePredictionsResponse)
async def episode_predictions(
    episode_id: int,
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(require_admin),
):
    episode = await _get_episode_or_404(db, episode_id)
    result = await db.execute(
        select(Prediction, Contestant.name)
        .join(Contestant, Contestant.id == Prediction.contestant_id)
        .where(Prediction.episode_id == episode_id)
        .order_by(Prediction.tribe, Prediction.player_id)
    )
    tribes: dict[str, list[PredictionResponse]] = {}
    for prediction, contestant_name in result.all():
        item = PredictionResponse.model_validate(prediction)
        item.contestant_name = contestant_name
        tribes.setdefault(prediction.tribe, []).append(item)
    return EpisodePredictionsResponse(
        episode_id=episode.id,
        episode_number=episode.episode_number,
        predictions_locked=episode.predictions_locked,
        tribes=tribes,
    )


@router.post("/{episode_id}/score-predictions", response_model=ScoringSummary)
async def rescore_predictions(
    episode_id: int,
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(require_admin),
):
    return await recalculate_predictions(db, episode_id)
