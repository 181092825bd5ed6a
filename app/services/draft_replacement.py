"""
Draft pick replacement.

A player keeps two active draft picks. When one of them leaves the game, or
becomes the player's sole survivor pick, the slot is handed to the player's
highest-ranked contestant who is still in the game and not already theirs.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.models.models import Contestant, DraftPick, Player, Ranking
from app.services.episode_scores import calculate_score_for_range

logger = logging.getLogger(__name__)


async def get_active_picks(db: AsyncSession, player_id: int) -> list[DraftPick]:
    result = await db.execute(
        select(DraftPick)
        .where(DraftPick.player_id == player_id, DraftPick.end_episode.is_(None))
        .order_by(DraftPick.pick_number)
    )
    return result.scalars().all()


async def find_replacement(
    db: AsyncSession, player: Player, exclude_ids: set[int]
) -> Contestant | None:
    """Highest-ranked contestant not eliminated, not the sole survivor and not in exclude_ids."""
    result = await db.execute(
        select(Contestant)
        .join(Ranking, Ranking.contestant_id == Contestant.id)
        .where(Ranking.player_id == player.id)
        .order_by(Ranking.rank)
    )
    for contestant in result.scalars().all():
        if contestant.is_eliminated:
            continue
        if contestant.id == player.sole_survivor_id:
            continue
        if contestant.id in exclude_ids:
            continue
        return contestant
    return None


async def replace_pick(
    db: AsyncSession, pick: DraftPick, player: Player, end_episode: int, start_episode: int
) -> DraftPick | None:
    """Close a pick and open its replacement. Returns None when the rankings have no candidate."""
    pick.end_episode = end_episode

    active = await get_active_picks(db, player.id)
    exclude = {p.contestant_id for p in active if p.id != pick.id}
    exclude.add(pick.contestant_id)

    replacement = await find_replacement(db, player, exclude)
    if replacement is None:
        await db.flush()
        logger.warning(
            "No replacement available for player %s pick %s (contestant %s)",
            player.id, pick.pick_number, pick.contestant_id,
        )
        return None

    new_pick = DraftPick(
        player_id=player.id,
        contestant_id=replacement.id,
        pick_number=pick.pick_number,
        start_episode=start_episode,
        is_replacement=True,
        replaced_contestant_id=pick.contestant_id,
        end_episode=None,
    )
    db.add(new_pick)
    await db.flush()
    logger.info(
        "Player %s pick %s: %s replaced by %s from episode %s",
        player.id, pick.pick_number, pick.contestant_id, replacement.id, start_episode,
    )
    return new_pick


async def replace_eliminated_draft_picks(
    db: AsyncSession, contestant_id: int, elimination_episode: int
) -> list[dict]:
    """
    Close every active pick holding an eliminated contestant at the elimination
    episode and open replacements from the following episode.
    """
    result = await db.execute(
        select(DraftPick).where(
            DraftPick.contestant_id == contestant_id,
            DraftPick.end_episode.is_(None),
        )
    )
    picks = result.scalars().all()

    outcomes = []
    for pick in picks:
        player_result = await db.execute(select(Player).where(Player.id == pick.player_id))
        player = player_result.scalar_one_or_none()
        if player is None:
            raise NotFoundError(f"Draft pick {pick.id} references missing player {pick.player_id}")
        new_pick = await replace_pick(
            db, pick, player, end_episode=elimination_episode, start_episode=elimination_episode + 1
        )
        outcomes.append({
            "player_id": player.id,
            "replaced_contestant_id": contestant_id,
            "new_contestant_id": new_pick.contestant_id if new_pick else None,
        })
    return outcomes


async def replace_pick_taken_as_sole_survivor(
    db: AsyncSession, player: Player, contestant_id: int, episode_number: int
) -> dict | None:
    """
    A contestant cannot be both a draft pick and the sole survivor. When the
    new sole survivor is one of the player's active picks, hand that slot on.
    """
    for pick in await get_active_picks(db, player.id):
        if pick.contestant_id != contestant_id:
            continue
        # The pick is scored up to the episode before the switch; the
        # replacement takes over from the switch episode.
        new_pick = await replace_pick(
            db, pick, player, end_episode=episode_number - 1, start_episode=episode_number
        )
        return {
            "player_id": player.id,
            "replaced_contestant_id": contestant_id,
            "new_contestant_id": new_pick.contestant_id if new_pick else None,
        }
    return None


async def fix_missed_eliminations(db: AsyncSession, episode_number: int) -> list[dict]:
    """Replace active picks of contestants already marked eliminated."""
    result = await db.execute(
        select(DraftPick.contestant_id)
        .join(Contestant, Contestant.id == DraftPick.contestant_id)
        .where(DraftPick.end_episode.is_(None), Contestant.is_eliminated == True)  # noqa: E712
        .distinct()
    )
    outcomes = []
    for contestant_id in result.scalars().all():
        outcomes.extend(await replace_eliminated_draft_picks(db, contestant_id, episode_number))
    return outcomes


async def get_pick_scores(db: AsyncSession, player_id: int) -> list[dict]:
    """Every pick the player has held with its points inside the pick's episode range."""
    result = await db.execute(
        select(DraftPick)
        .where(DraftPick.player_id == player_id)
        .order_by(DraftPick.pick_number, DraftPick.start_episode)
    )
    rows = []
    for pick in result.scalars().all():
        score = await calculate_score_for_range(
            db, pick.contestant_id, pick.start_episode, pick.end_episode
        )
        rows.append({"pick": pick, "score": score})
    return rows
