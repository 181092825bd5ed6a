"""
Elimination prediction scoring.

Players guess who goes home from each tribe in an episode. When the admin
records an elimination, predictions for that tribe are marked right or wrong.
Scoring only touches predictions that have not been scored yet, so running it
twice changes nothing.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConsistencyError, NotFoundError, ValidationError
from app.models.models import (
    Contestant, ContestantEvent, Episode, Player, Prediction,
)
from app.services.episode_scores import effective_events
from app.services.event_catalog import ELIMINATION_EVENTS

logger = logging.getLogger(__name__)

POINTS_PER_CORRECT_PREDICTION = 3


async def _get_episode(db: AsyncSession, episode_id: int) -> Episode:
    result = await db.execute(select(Episode).where(Episode.id == episode_id))
    episode = result.scalar_one_or_none()
    if episode is None:
        raise NotFoundError("Episode not found")
    return episode


async def score_predictions(
    db: AsyncSession, episode_id: int, eliminated_contestant_id: int, tribe: str
) -> dict:
    result = await db.execute(
        select(Prediction).where(
            Prediction.episode_id == episode_id,
            Prediction.tribe == tribe,
            Prediction.scored_at.is_(None),
        )
    )
    predictions = result.scalars().all()

    now = datetime.now(timezone.utc)
    correct = 0
    for prediction in predictions:
        prediction.is_correct = prediction.contestant_id == eliminated_contestant_id
        prediction.scored_at = now
        if prediction.is_correct:
            correct += 1
    await db.flush()

    incorrect = len(predictions) - correct
    if predictions:
        logger.info(
            "Scored %d predictions for episode %s tribe %s: %d correct",
            len(predictions), episode_id, tribe, correct,
        )
    return {
        "correct": correct,
        "incorrect": incorrect,
        "points_awarded": correct * POINTS_PER_CORRECT_PREDICTION,
    }


async def get_elimination_events(db: AsyncSession, episode_id: int) -> list[ContestantEvent]:
    """Effective elimination events of an episode, oldest first."""
    result = await db.execute(
        select(ContestantEvent)
        .where(ContestantEvent.episode_id == episode_id)
        .order_by(ContestantEvent.id)
    )
    entries = result.scalars().unique().all()
    return [e for e in effective_events(entries) if e.event_type.name in ELIMINATION_EVENTS]


async def recalculate_predictions(db: AsyncSession, episode_id: int) -> dict:
    """
    Clear every result for the episode and score again from the ledger. The
    first elimination per tribe decides that tribe's predictions.
    """
    await _get_episode(db, episode_id)

    result = await db.execute(select(Prediction).where(Prediction.episode_id == episode_id))
    for prediction in result.scalars().all():
        prediction.is_correct = None
        prediction.scored_at = None
    await db.flush()

    totals = {"correct": 0, "incorrect": 0, "points_awarded": 0}
    scored_tribes = set()
    for event in await get_elimination_events(db, episode_id):
        contestant_result = await db.execute(
            select(Contestant).where(Contestant.id == event.contestant_id)
        )
        contestant = contestant_result.scalar_one_or_none()
        if contestant is None:
            raise NotFoundError(f"Elimination event {event.id} references missing contestant")
        tribe = contestant.current_tribe
        if not tribe or tribe in scored_tribes:
            continue
        scored_tribes.add(tribe)
        outcome = await score_predictions(db, episode_id, contestant.id, tribe)
        for key in totals:
            totals[key] += outcome[key]
    return totals


async def get_prediction_bonus(db: AsyncSession, player_id: int) -> int:
    result = await db.execute(
        select(func.count(Prediction.id)).where(
            Prediction.player_id == player_id,
            Prediction.is_correct == True,  # noqa: E712
        )
    )
    return int(result.scalar_one()) * POINTS_PER_CORRECT_PREDICTION


async def set_predictions_locked(db: AsyncSession, episode_id: int, locked: bool) -> Episode:
    """Locking always succeeds. Unlocking is refused once any prediction has a result."""
    episode = await _get_episode(db, episode_id)
    if not locked:
        result = await db.execute(
            select(func.count(Prediction.id)).where(
                Prediction.episode_id == episode_id,
                Prediction.is_correct.is_not(None),
            )
        )
        if result.scalar_one() > 0:
            raise ConsistencyError("Cannot unlock predictions after they have been scored")
    episode.predictions_locked = locked
    await db.flush()
    logger.info("Predictions for episode %s %s", episode.episode_number, "locked" if locked else "unlocked")
    return episode


async def submit_predictions(
    db: AsyncSession, player_id: int, episode_id: int, items: list[dict]
) -> list[Prediction]:
    """Validate and store a player's predictions for an episode, one per tribe."""
    episode = await _get_episode(db, episode_id)
    if episode.predictions_locked:
        raise ValidationError("Predictions are locked for this episode")

    existing = await db.execute(
        select(func.count(Prediction.id)).where(
            Prediction.player_id == player_id,
            Prediction.episode_id == episode_id,
        )
    )
    if existing.scalar_one() > 0:
        raise ConsistencyError("Predictions already submitted for this episode")

    if not items:
        raise ValidationError("At least one prediction is required")

    seen_tribes = set()
    for item in items:
        tribe = item.get("tribe")
        contestant_id = item.get("contestant_id")
        if not tribe or contestant_id is None:
            raise ValidationError("Each prediction must have a tribe and contestant_id")
        if tribe in seen_tribes:
            raise ValidationError(f"Only one prediction per tribe ({tribe})")
        seen_tribes.add(tribe)

        contestant_result = await db.execute(
            select(Contestant).where(Contestant.id == contestant_id)
        )
        contestant = contestant_result.scalar_one_or_none()
        if contestant is None:
            raise ValidationError(f"Contestant {contestant_id} does not exist")
        if contestant.is_eliminated:
            raise ValidationError(f"{contestant.name} has already been eliminated")
        if contestant.current_tribe != tribe:
            raise ValidationError(f"{contestant.name} is not in tribe {tribe}")

    predictions = [
        Prediction(
            player_id=player_id,
            episode_id=episode_id,
            tribe=item["tribe"],
            contestant_id=item["contestant_id"],
            is_correct=None,
            scored_at=None,
        )
        for item in items
    ]
    db.add_all(predictions)
    await db.flush()
    return predictions


async def prediction_statistics(db: AsyncSession) -> dict:
    """League-wide accuracy and participation, overall and per episode."""
    player_count_result = await db.execute(select(func.count(Player.id)))
    player_count = player_count_result.scalar_one()

    result = await db.execute(
        select(Prediction, Episode.episode_number)
        .join(Episode, Episode.id == Prediction.episode_id)
        .order_by(Episode.episode_number)
    )
    per_episode: dict[int, dict] = {}
    for prediction, episode_number in result.all():
        stats = per_episode.setdefault(episode_number, {
            "episode_number": episode_number,
            "episode_id": prediction.episode_id,
            "total_predictions": 0,
            "scored_predictions": 0,
            "correct_predictions": 0,
            "players": set(),
        })
        stats["total_predictions"] += 1
        stats["players"].add(prediction.player_id)
        if prediction.is_correct is not None:
            stats["scored_predictions"] += 1
            if prediction.is_correct:
                stats["correct_predictions"] += 1

    def _pct(part: int, whole: int) -> float:
        return round(part * 100 / whole, 1) if whole else 0.0

    episodes = []
    for stats in per_episode.values():
        participants = len(stats.pop("players"))
        stats["participants"] = participants
        stats["accuracy"] = _pct(stats["correct_predictions"], stats["scored_predictions"])
        stats["participation_rate"] = _pct(participants, player_count)
        episodes.append(stats)

    total_scored = sum(e["scored_predictions"] for e in episodes)
    total_correct = sum(e["correct_predictions"] for e in episodes)
    return {
        "overall": {
            "total_predictions": sum(e["total_predictions"] for e in episodes),
            "scored_predictions": total_scored,
            "correct_predictions": total_correct,
            "accuracy": _pct(total_correct, total_scored),
        },
        "episodes": episodes,
    }
