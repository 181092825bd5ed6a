import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ValidationError
from app.models.models import Contestant, Player, Ranking
from app.services.sole_survivor import change_sole_survivor

logger = logging.getLogger(__name__)


async def submit_rankings(
    db: AsyncSession, player: Player, rankings: list[dict], sole_survivor_id: int | None
) -> list[Ranking]:
    """
    Store a player's one-time ranking of the full cast and open their sole
    survivor interval at the current episode.
    """
    if player.has_submitted_rankings:
        raise ValidationError("Rankings have already been submitted")
    if not rankings:
        raise ValidationError("Rankings are required")
    if sole_survivor_id is None:
        raise ValidationError("Sole survivor pick is required")

    result = await db.execute(select(Contestant.id))
    all_ids = set(result.scalars().all())

    ranked_ids = [r["contestant_id"] for r in rankings]
    ranks = [r["rank"] for r in rankings]
    if len(set(ranked_ids)) != len(ranked_ids):
        raise ValidationError("A contestant is ranked more than once")
    if len(set(ranks)) != len(ranks):
        raise ValidationError("Duplicate rank values")
    if set(ranked_ids) != all_ids:
        raise ValidationError("All contestants must be ranked")
    if sole_survivor_id not in all_ids:
        raise ValidationError("Sole survivor pick is not a contestant")

    created = [
        Ranking(player_id=player.id, contestant_id=r["contestant_id"], rank=r["rank"])
        for r in rankings
    ]
    db.add_all(created)
    # A pick already made through PUT /sole-survivor is kept or switched.
    await change_sole_survivor(db, player, sole_survivor_id)
    player.has_submitted_rankings = True
    await db.flush()
    logger.info("Player %s submitted rankings for %d contestants", player.id, len(created))
    return created


async def get_rankings(db: AsyncSession, player_id: int) -> list[Ranking]:
    result = await db.execute(
        select(Ranking).where(Ranking.player_id == player_id).order_by(Ranking.rank)
    )
    return result.scalars().all()
