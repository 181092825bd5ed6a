from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from app.core.database import get_db
from app.models.models import Contestant, Episode, Player, Prediction
from app.schemas.predictions import (
    PredictionSubmit, PredictionResponse, CurrentPredictionsResponse,
    PredictionHistoryItem, PredictionHistoryResponse, PredictionStatisticsResponse,
)
from app.api.deps import get_current_user, require_admin
from app.services.league import get_current_episode
from app.services.prediction_scoring import (
    POINTS_PER_CORRECT_PREDICTION, get_elimination_events,
    prediction_statistics, submit_predictions,
)

router = APIRouter(prefix="/api/predictions", tags=["Predictions"])


async def _with_names(db: AsyncSession, predictions: list[Prediction]) -> list[PredictionResponse]:
    ids = {p.contestant_id for p in predictions}
    names = {}
    if ids:
        result = await db.execute(select(Contestant.id, Contestant.name).where(Contestant.id.in_(ids)))
        names = dict(result.all())
    items = []
    for prediction in predictions:
        item = PredictionResponse.model_validate(prediction)
        item.contestant_name = names.get(prediction.contestant_id, "")
        items.append(item)
    return items


@router.get("/current", response_model=CurrentPredictionsResponse)
async def current_predictions(
    db: AsyncSession = Depends(get_db),
    current_user: Player = Depends(get_current_user),
):
    """The caller's predictions for the current episode, grouped by tribe."""
    episode = await get_current_episode(db)
    if episode is None:
        return CurrentPredictionsResponse(
            episode_id=None, episode_number=None, predictions_locked=False, tribes={}
        )

    result = await db.execute(
        select(Prediction).where(
            Prediction.player_id == current_user.id,
            Prediction.episode_id == episode.id,
        )
    )
    tribes: dict[str, list[PredictionResponse]] = {}
    for item in await _with_names(db, result.scalars().all()):
        tribes.setdefault(item.tribe, []).append(item)
    return CurrentPredictionsResponse(
        episode_id=episode.id,
        episode_number=episode.episode_number,
        predictions_locked=episode.predictions_locked,
        tribes=tribes,
    )


@router.post("", response_model=list[PredictionResponse], status_code=201)
async def create_predictions(
    body: PredictionSubmit,
    db: AsyncSession = Depends(get_db),
    current_user: Player = Depends(get_current_user),
):
    predictions = await submit_predictions(
        db, current_user.id, body.episode_id, [p.model_dump() for p in body.predictions]
    )
    return await _with_names(db, predictions)


@router.get("/history", response_model=PredictionHistoryResponse)
async def prediction_history(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: Player = Depends(get_current_user),
):
    """The caller's scored predictions, newest episode first, with who actually left."""
    scored = (
        Prediction.player_id == current_user.id,
        Prediction.is_correct.is_not(None),
    )
    total_result = await db.execute(select(func.count(Prediction.id)).where(*scored))
    total = total_result.scalar_one()

    result = await db.execute(
        select(Prediction, Episode.episode_number)
        .join(Episode, Episode.id == Prediction.episode_id)
        .where(*scored)
        .order_by(Episode.episode_number.desc(), Prediction.tribe)
        .limit(limit)
        .offset(offset)
    )
    rows = result.all()

    eliminated_by_tribe: dict[tuple[int, str], str] = {}
    for episode_id in {p.episode_id for p, _ in rows}:
        for event in await get_elimination_events(db, episode_id):
            contestant_result = await db.execute(
                select(Contestant).where(Contestant.id == event.contestant_id)
            )
            contestant = contestant_result.scalar_one()
            key = (episode_id, contestant.current_tribe)
            eliminated_by_tribe.setdefault(key, contestant.name)

    named = await _with_names(db, [p for p, _ in rows])
    items = [
        PredictionHistoryItem(
            **item.model_dump(),
            episode_number=episode_number,
            eliminated_contestant_name=eliminated_by_tribe.get((item.episode_id, item.tribe)),
            points=POINTS_PER_CORRECT_PREDICTION if item.is_correct else 0,
        )
        for item, (_, episode_number) in zip(named, rows)
    ]
    return PredictionHistoryResponse(predictions=items, total=total, limit=limit, offset=offset)


@router.get("/statistics", response_model=PredictionStatisticsResponse)
async def statistics(
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(require_admin),
):
    return await prediction_statistics(db)


@router.get("/all-current")
async def all_current_predictions(
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(require_admin),
):
    """Every player's predictions for the current episode, including players who have not submitted."""
    episode = await get_current_episode(db)
    players_result = await db.execute(select(Player).order_by(Player.name))
    players = players_result.scalars().all()

    by_player: dict[int, list[PredictionResponse]] = {p.id: [] for p in players}
    if episode is not None:
        result = await db.execute(select(Prediction).where(Prediction.episode_id == episode.id))
        for item in await _with_names(db, result.scalars().all()):
            by_player.setdefault(item.player_id, []).append(item)

    submitted = []
    missing = []
    for player in players:
        entry = {"player_id": player.id, "name": player.name, "predictions": by_player[player.id]}
        (submitted if entry["predictions"] else missing).append(entry)
    return {
        "episode_id": episode.id if episode else None,
        "players_with_predictions": submitted,
        "players_without_predictions": missing,
    }
