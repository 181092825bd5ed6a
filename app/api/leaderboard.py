from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.models import Player
from app.schemas.leaderboard import LeaderboardEntry
from app.schemas.team_details import TeamAuditResponse
from app.api.deps import get_current_user
from app.services.team_score import get_leaderboard, get_team_audit

router = APIRouter(prefix="/api", tags=["Leaderboard"])


@router.get("/leaderboard", response_model=list[LeaderboardEntry])
async def leaderboard(
    db: AsyncSession = Depends(get_db),
    _: Player = Depends(get_current_user),
):
    return await get_leaderboard(db)


@router.get("/team-details/audit", response_model=TeamAuditResponse)
async def team_audit(
    player_id: int | None = Query(None, description="Defaults to the caller"),
    db: AsyncSession = Depends(get_db),
    current_user: Player = Depends(get_current_user),
):
    return await get_team_audit(db, player_id or current_user.id)
