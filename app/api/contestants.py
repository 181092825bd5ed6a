import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.core.database import get_db
from app.models.models import Contestant, ContestantEvent, Player
from app.schemas.contestants import (
    ContestantCreate, ContestantUpdate, ContestantResponse, ContestantUpdateResponse,
    ContestantPerformance, ScoreBreakdownResponse, EpisodeScoreItem,
    CacheDriftItem, FixEliminationsResponse,
)
from app.schemas.events import LedgerEventResponse
from app.api.deps import get_current_user, require_admin
from app.services.draft_replacement import fix_missed_eliminations, replace_eliminated_draft_picks
from app.services.episode_scores import (
    effective_events, find_cache_drift, get_ledger_entries, scores_by_episode,
)
from app.services.league import get_current_episode_number
from app.services.performance import get_contestant_performance

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contestants", tags=["Contestants"])


async def _get_contestant_or_404(db: AsyncSession, contestant_id: int) -> Contestant:
    result = await db.execute(select(Contestant).where(Contestant.id == contestant_id))
    contestant = result.scalar_one_or_none()
    if not contestant:
        raise HTTPException(status_code=404, detail="Contestant not found")
    return contestant


@router.get("", response_model=list[ContestantResponse])
async def list_contestants(
    episode_id: int | None = Query(None, description="Only contestants with events in this episode"),
    include_eliminated: bool = True,
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(get_current_user),
):
    query = select(Contestant).order_by(Contestant.name)
    if episode_id is not None:
        query = query.where(
            Contestant.id.in_(
                select(ContestantEvent.contestant_id).where(ContestantEvent.episode_id == episode_id)
            )
        )
    if not include_eliminated:
        query = query.where(Contestant.is_eliminated == False)  # noqa: E712
    result = await db.execute(query)
    return result.scalars().all()


@router.post("", response_model=ContestantResponse, status_code=201)
async def create_contestant(
    body: ContestantCreate,
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(require_admin),
):
    existing = await db.execute(select(Contestant).where(Contestant.name == body.name))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail=f"Contestant '{body.name}' already exists")

    contestant = Contestant(**body.model_dump())
    db.add(contestant)
    await db.flush()
    await db.refresh(contestant)
    return contestant


@router.get("/performance", response_model=list[ContestantPerformance])
async def contestant_performance(
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(get_current_user),
):
    return await get_contestant_performance(db)


@router.get("/reconcile", response_model=list[CacheDriftItem])
async def reconcile_totals(
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(require_admin),
):
    """Contestants whose cached total no longer matches the event ledger."""
    return await find_cache_drift(db)


@router.post("/fix-eliminations", response_model=FixEliminationsResponse)
async def fix_eliminations(
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(require_admin),
):
    episode_number = await get_current_episode_number(db)
    return FixEliminationsResponse(replacements=await fix_missed_eliminations(db, episode_number))


@router.get("/{contestant_id}", response_model=ContestantResponse)
async def get_contestant(
    contestant_id: int,
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(get_current_user),
):
    return await _get_contestant_or_404(db, contestant_id)


@router.patch("/{contestant_id}", response_model=ContestantUpdateResponse)
async def update_contestant(
    contestant_id: int,
    body: ContestantUpdate,
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(require_admin),
):
    contestant = await _get_contestant_or_404(db, contestant_id)
    was_eliminated = contestant.is_eliminated
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(contestant, field, value)
    await db.flush()

    replacements = []
    if contestant.is_eliminated and not was_eliminated:
        episode_number = await get_current_episode_number(db)
        replacements = await replace_eliminated_draft_picks(db, contestant.id, episode_number)

    await db.refresh(contestant)
    return ContestantUpdateResponse(
        contestant=ContestantResponse.model_validate(contestant),
        draft_replacements=replacements,
    )


@router.get("/{contestant_id}/events", response_model=list[LedgerEventResponse])
async def contestant_events(
    contestant_id: int,
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(get_current_user),
):
    await _get_contestant_or_404(db, contestant_id)
    return effective_events(await get_ledger_entries(db, contestant_id=contestant_id))


@router.get("/{contestant_id}/score-breakdown", response_model=ScoreBreakdownResponse)
async def score_breakdown(
    contestant_id: int,
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(get_current_user),
):
    contestant = await _get_contestant_or_404(db, contestant_id)
    by_episode = await scores_by_episode(db, contestant_id)
    return ScoreBreakdownResponse(
        contestant_id=contestant.id,
        name=contestant.name,
        total_score=sum(by_episode.values()),
        episode_scores=[
            EpisodeScoreItem(episode_number=n, score=s) for n, s in by_episode.items()
        ],
    )
