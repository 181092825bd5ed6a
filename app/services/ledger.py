"""
Contestant event ledger writes.

Adds and removals for an episode are validated as a whole before anything is
written, then applied in the caller's transaction. Removal never deletes: it
appends a reversal entry that cancels the original's points. After each
write the projection is rebuilt, and any new elimination scores predictions,
locks the episode and hands the contestant's draft slots on.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConsistencyError, NotFoundError, ValidationError
from app.models.models import Contestant, ContestantEvent, Episode, EventType
from app.services.draft_replacement import replace_eliminated_draft_picks
from app.services.episode_scores import refresh_projection
from app.services.event_catalog import get_active_event_type, is_elimination
from app.services.prediction_scoring import score_predictions

logger = logging.getLogger(__name__)


@dataclass
class LedgerResult:
    added: list[ContestantEvent] = field(default_factory=list)
    reversals: list[ContestantEvent] = field(default_factory=list)
    episode_scores: dict[int, int] = field(default_factory=dict)
    prediction_results: list[dict] = field(default_factory=list)
    draft_replacements: list[dict] = field(default_factory=list)


async def _get_episode_or_404(db: AsyncSession, episode_id: int) -> Episode:
    result = await db.execute(select(Episode).where(Episode.id == episode_id))
    episode = result.scalar_one_or_none()
    if episode is None:
        raise NotFoundError("Episode not found")
    return episode


async def _validate_removal(
    db: AsyncSession, episode_id: int, event_id: int
) -> ContestantEvent:
    result = await db.execute(select(ContestantEvent).where(ContestantEvent.id == event_id))
    event = result.scalar_one_or_none()
    if event is None or event.episode_id != episode_id:
        raise NotFoundError(f"Event {event_id} not found in this episode")
    if event.reverses_event_id is not None:
        raise ConsistencyError(f"Event {event_id} is a reversal and cannot be removed")

    reversal = await db.execute(
        select(ContestantEvent.id).where(ContestantEvent.reverses_event_id == event_id)
    )
    if reversal.scalar_one_or_none() is not None:
        raise ConsistencyError(f"Event {event_id} has already been removed")
    return event


async def apply_ledger_changes(
    db: AsyncSession,
    episode_id: int,
    add: list[dict] | None = None,
    remove: list[int] | None = None,
    created_by: int | None = None,
) -> LedgerResult:
    """
    add: [{"contestant_id", "event_type_id"}], remove: [event ids].
    Any invalid item rejects the whole batch.
    """
    add = add or []
    remove = remove or []
    episode = await _get_episode_or_404(db, episode_id)

    if len(set(remove)) != len(remove):
        raise ValidationError("Duplicate event ids in remove list")

    # Validate everything before the first write
    to_add: list[tuple[Contestant, EventType]] = []
    for item in add:
        contestant_id = item.get("contestant_id")
        event_type_id = item.get("event_type_id")
        if contestant_id is None or event_type_id is None:
            raise ValidationError("Each event needs contestant_id and event_type_id")
        contestant_result = await db.execute(
            select(Contestant).where(Contestant.id == contestant_id)
        )
        contestant = contestant_result.scalar_one_or_none()
        if contestant is None:
            raise NotFoundError(f"Contestant {contestant_id} not found")
        event_type = await get_active_event_type(db, event_type_id)
        to_add.append((contestant, event_type))

    to_remove = [await _validate_removal(db, episode_id, event_id) for event_id in remove]

    result = LedgerResult()
    affected: set[int] = set()

    for original in to_remove:
        reversal = ContestantEvent(
            episode_id=episode_id,
            contestant_id=original.contestant_id,
            event_type=original.event_type,
            point_value=-original.point_value,
            reverses_event_id=original.id,
            created_by=created_by,
        )
        db.add(reversal)
        result.reversals.append(reversal)
        affected.add(original.contestant_id)

    eliminations: list[Contestant] = []
    for contestant, event_type in to_add:
        event = ContestantEvent(
            episode_id=episode_id,
            contestant_id=contestant.id,
            event_type=event_type,
            point_value=event_type.point_value,
            reverses_event_id=None,
            created_by=created_by,
        )
        db.add(event)
        result.added.append(event)
        affected.add(contestant.id)
        if is_elimination(event_type):
            eliminations.append(contestant)

    await db.flush()
    logger.info(
        "Episode %s ledger: %d added, %d reversed",
        episode.episode_number, len(result.added), len(result.reversals),
    )

    for contestant in eliminations:
        if not episode.predictions_locked:
            episode.predictions_locked = True
            logger.info("Predictions for episode %s locked by elimination", episode.episode_number)
        if contestant.current_tribe:
            outcome = await score_predictions(db, episode_id, contestant.id, contestant.current_tribe)
            result.prediction_results.append({"contestant_id": contestant.id, **outcome})
        if not contestant.is_eliminated:
            contestant.is_eliminated = True
        result.draft_replacements.extend(
            await replace_eliminated_draft_picks(db, contestant.id, episode.episode_number)
        )

    result.episode_scores = await refresh_projection(db, episode_id, affected)
    return result


async def record_events(
    db: AsyncSession, episode_id: int, add: list[dict], created_by: int | None = None
) -> LedgerResult:
    return await apply_ledger_changes(db, episode_id, add=add, created_by=created_by)


async def reverse_event(
    db: AsyncSession, episode_id: int, event_id: int, created_by: int | None = None
) -> LedgerResult:
    return await apply_ledger_changes(db, episode_id, remove=[event_id], created_by=created_by)
