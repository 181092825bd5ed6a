import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.core.database import get_db
from app.models.models import Contestant, DraftPick, Player
from app.schemas.auth import PlayerResponse
from app.schemas.contestants import ContestantSummary
from app.schemas.leaderboard import PlayerScoreResponse
from app.schemas.players import (
    RankingsSubmit, RankingResponse, SoleSurvivorUpdate, SoleSurvivorUpdateResponse,
    SoleSurvivorHistoryItem, DraftPickCreate, DraftPickResponse, DraftPickScore,
)
from app.api.deps import get_current_user, require_admin, require_self_or_admin
from app.services.draft_replacement import (
    get_active_picks, get_pick_scores, replace_pick_taken_as_sole_survivor,
)
from app.services.league import get_current_episode_number
from app.services.rankings import get_rankings, submit_rankings
from app.services.sole_survivor import change_sole_survivor, get_history
from app.services.team_score import calculate_player_score

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Players"])

MAX_ACTIVE_PICKS = 2


async def _get_player_or_404(db: AsyncSession, player_id: int) -> Player:
    result = await db.execute(select(Player).where(Player.id == player_id))
    player = result.scalar_one_or_none()
    if not player:
        raise HTTPException(status_code=404, detail="Player not found")
    return player


@router.get("/players", response_model=list[PlayerResponse])
async def list_players(
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(get_current_user),
):
    result = await db.execute(select(Player).order_by(Player.id))
    return result.scalars().all()


# --- Rankings ---

@router.post("/rankings", response_model=list[RankingResponse], status_code=201)
async def save_rankings(
    body: RankingsSubmit,
    db: AsyncSession = Depends(get_db),
    current_user: Player = Depends(get_current_user),
):
    return await submit_rankings(
        db, current_user, [r.model_dump() for r in body.rankings], body.sole_survivor_id
    )


@router.get("/rankings/me", response_model=list[RankingResponse])
async def my_rankings(
    db: AsyncSession = Depends(get_db),
    current_user: Player = Depends(get_current_user),
):
    return await get_rankings(db, current_user.id)


# --- Sole survivor ---

@router.put("/sole-survivor/{player_id}", response_model=SoleSurvivorUpdateResponse)
async def update_sole_survivor(
    player_id: int,
    body: SoleSurvivorUpdate,
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(require_self_or_admin),
):
    player = await _get_player_or_404(db, player_id)

    episode_number = await get_current_episode_number(db)
    new_row = await change_sole_survivor(db, player, body.contestant_id, episode_number)
    if new_row is None:
        return SoleSurvivorUpdateResponse(
            message="Sole survivor unchanged",
            sole_survivor_id=body.contestant_id,
        )

    replacement = await replace_pick_taken_as_sole_survivor(
        db, player, body.contestant_id, episode_number
    )
    return SoleSurvivorUpdateResponse(
        message="Sole survivor updated",
        sole_survivor_id=body.contestant_id,
        history=SoleSurvivorHistoryItem.model_validate(new_row),
        draft_replacement=replacement,
    )


@router.get("/players/{player_id}/sole-survivor-history", response_model=list[SoleSurvivorHistoryItem])
async def sole_survivor_history(
    player_id: int,
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(get_current_user),
):
    await _get_player_or_404(db, player_id)
    return await get_history(db, player_id)


# --- Draft picks ---

@router.post("/draft-picks", response_model=DraftPickResponse, status_code=201)
async def create_draft_pick(
    body: DraftPickCreate,
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(require_admin),
):
    player = await _get_player_or_404(db, body.player_id)
    contestant_result = await db.execute(select(Contestant).where(Contestant.id == body.contestant_id))
    if contestant_result.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail="Contestant not found")

    active = await get_active_picks(db, player.id)
    if len(active) >= MAX_ACTIVE_PICKS:
        raise HTTPException(status_code=400, detail=f"Player already has {MAX_ACTIVE_PICKS} draft picks")
    if any(p.contestant_id == body.contestant_id for p in active):
        raise HTTPException(status_code=409, detail="Contestant already on this team")
    if player.sole_survivor_id == body.contestant_id:
        raise HTTPException(status_code=400, detail="Contestant is this player's sole survivor pick")

    pick = DraftPick(
        player_id=player.id,
        contestant_id=body.contestant_id,
        pick_number=body.pick_number,
        start_episode=1,
        end_episode=None,
        is_replacement=False,
        replaced_contestant_id=None,
    )
    db.add(pick)
    await db.flush()
    await db.refresh(pick)
    return pick


@router.get("/players/{player_id}/draft-picks", response_model=list[DraftPickScore])
async def player_draft_picks(
    player_id: int,
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(get_current_user),
):
    await _get_player_or_404(db, player_id)
    rows = []
    for row in await get_pick_scores(db, player_id):
        pick = row["pick"]
        contestant_result = await db.execute(select(Contestant).where(Contestant.id == pick.contestant_id))
        contestant = contestant_result.scalar_one()
        rows.append(DraftPickScore(
            **DraftPickResponse.model_validate(pick).model_dump(),
            contestant=ContestantSummary.model_validate(contestant),
            score=row["score"],
        ))
    return rows


@router.get("/players/{player_id}/score", response_model=PlayerScoreResponse)
async def player_score(
    player_id: int,
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(get_current_user),
):
    return await calculate_player_score(db, player_id)
