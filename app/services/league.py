"""League-wide state: which episode is current."""

import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.models.models import Episode, LeagueState

logger = logging.getLogger(__name__)

LEAGUE_STATE_ID = 1


async def get_league_state(db: AsyncSession) -> LeagueState:
    result = await db.execute(select(LeagueState).where(LeagueState.id == LEAGUE_STATE_ID))
    state = result.scalar_one_or_none()
    if state is None:
        state = LeagueState(id=LEAGUE_STATE_ID)
        db.add(state)
        await db.flush()
    return state


async def get_current_episode(db: AsyncSession) -> Episode | None:
    """The episode the league points at, else the highest-numbered one."""
    result = await db.execute(
        select(Episode)
        .join(LeagueState, LeagueState.current_episode_id == Episode.id)
        .where(LeagueState.id == LEAGUE_STATE_ID)
    )
    episode = result.scalar_one_or_none()
    if episode is not None:
        return episode

    result = await db.execute(
        select(Episode).order_by(Episode.episode_number.desc()).limit(1)
    )
    return result.scalar_one_or_none()


async def get_current_episode_number(db: AsyncSession) -> int:
    episode = await get_current_episode(db)
    return episode.episode_number if episode else 1


async def get_latest_episode_number(db: AsyncSession) -> int | None:
    result = await db.execute(select(func.max(Episode.episode_number)))
    return result.scalar_one_or_none()


async def set_current_episode(db: AsyncSession, episode_id: int) -> Episode:
    result = await db.execute(select(Episode).where(Episode.id == episode_id))
    episode = result.scalar_one_or_none()
    if episode is None:
        raise NotFoundError("Episode not found")

    state = await get_league_state(db)
    state.current_episode_id = episode.id
    await db.flush()
    logger.info("Current episode set to %s (id=%s)", episode.episode_number, episode.id)
    return episode
