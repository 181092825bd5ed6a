"""
Sole survivor history and loyalty bonus.

Each player backs one contestant to win. Every change of pick closes the
active history interval and opens a new one, so the bonus can reward how long
the player has stuck with their current pick.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConsistencyError, NotFoundError
from app.models.models import Contestant, Player, SoleSurvivorHistory
from app.services.league import get_current_episode_number

logger = logging.getLogger(__name__)

WINNER_BONUS = 25
WINNER_BONUS_MAX_START = 2  # Pick must be held from episode 1 or 2


@dataclass
class SoleSurvivorBonus:
    episode_bonus: int = 0
    winner_bonus: int = 0
    episode_count: int = 0

    @property
    def total_bonus(self) -> int:
        return self.episode_bonus + self.winner_bonus

    def as_dict(self) -> dict:
        return {
            "episode_bonus": self.episode_bonus,
            "winner_bonus": self.winner_bonus,
            "total_bonus": self.total_bonus,
            "episode_count": self.episode_count,
        }


def calculate_sole_survivor_bonus(
    start_episode: int, current_episode_number: int, is_winner: bool
) -> SoleSurvivorBonus:
    """
    One point per episode the active pick has been held (counting both ends),
    plus 25 if the pick wins and was made in episode 1 or 2.
    """
    episode_count = max(1, current_episode_number - start_episode + 1)
    winner_bonus = WINNER_BONUS if is_winner and start_episode <= WINNER_BONUS_MAX_START else 0
    return SoleSurvivorBonus(
        episode_bonus=episode_count,
        winner_bonus=winner_bonus,
        episode_count=episode_count,
    )


def interval_for_episode(
    history: list[SoleSurvivorHistory], episode_number: int
) -> SoleSurvivorHistory | None:
    """
    The interval that owns an episode. Intervals are treated as [start, end),
    so on a switch episode the new pick owns it.
    """
    for row in sorted(history, key=lambda h: h.start_episode, reverse=True):
        if row.start_episode <= episode_number and (
            row.end_episode is None or episode_number < row.end_episode
        ):
            return row
    return None


async def get_history(db: AsyncSession, player_id: int) -> list[SoleSurvivorHistory]:
    result = await db.execute(
        select(SoleSurvivorHistory)
        .where(SoleSurvivorHistory.player_id == player_id)
        .order_by(SoleSurvivorHistory.start_episode.desc(), SoleSurvivorHistory.id.desc())
    )
    return result.scalars().all()


async def get_active_interval(db: AsyncSession, player_id: int) -> SoleSurvivorHistory | None:
    result = await db.execute(
        select(SoleSurvivorHistory).where(
            SoleSurvivorHistory.player_id == player_id,
            SoleSurvivorHistory.end_episode.is_(None),
        )
    )
    active = result.scalars().all()
    if len(active) > 1:
        raise ConsistencyError(
            f"Player {player_id} has {len(active)} active sole survivor picks"
        )
    return active[0] if active else None


async def change_sole_survivor(
    db: AsyncSession,
    player: Player,
    contestant_id: int,
    episode_number: int | None = None,
) -> SoleSurvivorHistory | None:
    """
    Close the active interval at episode_number and open a new one starting
    there. Returns the new interval, or None when the pick did not change.
    """
    result = await db.execute(select(Contestant).where(Contestant.id == contestant_id))
    if result.scalar_one_or_none() is None:
        raise NotFoundError("Contestant not found")

    if player.sole_survivor_id == contestant_id:
        return None

    active = await get_active_interval(db, player.id)
    if episode_number is None:
        episode_number = await get_current_episode_number(db)

    if active is not None:
        if active.contestant_id == contestant_id:
            # History already agrees; only the player column was stale.
            player.sole_survivor_id = contestant_id
            await db.flush()
            return None
        active.end_episode = episode_number
        await db.flush()

    new_row = SoleSurvivorHistory(
        player_id=player.id, contestant_id=contestant_id, start_episode=episode_number,
        end_episode=None,
    )
    db.add(new_row)
    previous = player.sole_survivor_id
    player.sole_survivor_id = contestant_id
    await db.flush()

    logger.info(
        "Player %s sole survivor %s -> %s at episode %s",
        player.id, previous, contestant_id, episode_number,
    )
    return new_row


async def get_sole_survivor_bonus(db: AsyncSession, player_id: int) -> SoleSurvivorBonus:
    active = await get_active_interval(db, player_id)
    if active is None:
        return SoleSurvivorBonus()

    result = await db.execute(select(Contestant).where(Contestant.id == active.contestant_id))
    contestant = result.scalar_one_or_none()
    if contestant is None:
        raise NotFoundError(f"Sole survivor pick references missing contestant {active.contestant_id}")

    current_number = await get_current_episode_number(db)
    return calculate_sole_survivor_bonus(
        active.start_episode, current_number, contestant.is_winner
    )
