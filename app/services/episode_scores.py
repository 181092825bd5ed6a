"""
Episode score aggregation.

The contestant_events ledger is the only source of truth for contestant
points. Every score here is a fold over ledger rows, reversal rows included,
so a removed event nets to zero without anything being deleted. The
episode_scores table and contestants.total_score are projections rebuilt
from the ledger after each write.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.models.models import (
    ContestantEvent, Contestant, Episode, EpisodeScore, ScoreSource,
)

logger = logging.getLogger(__name__)


def effective_events(entries: list[ContestantEvent]) -> list[ContestantEvent]:
    """Entries that still count as "happened": not a reversal and not reversed."""
    reversed_ids = {e.reverses_event_id for e in entries if e.reverses_event_id is not None}
    return [
        e for e in entries
        if e.reverses_event_id is None and e.id not in reversed_ids
    ]


def fold_points(entries: list[ContestantEvent]) -> int:
    return sum(e.point_value for e in entries)


async def _require_contestant(db: AsyncSession, contestant_id: int) -> Contestant:
    result = await db.execute(select(Contestant).where(Contestant.id == contestant_id))
    contestant = result.scalar_one_or_none()
    if contestant is None:
        raise NotFoundError(f"Contestant {contestant_id} not found")
    return contestant


async def _require_episode(db: AsyncSession, episode_id: int) -> Episode:
    result = await db.execute(select(Episode).where(Episode.id == episode_id))
    episode = result.scalar_one_or_none()
    if episode is None:
        raise NotFoundError(f"Episode {episode_id} not found")
    return episode


async def get_ledger_entries(
    db: AsyncSession,
    episode_id: int | None = None,
    contestant_id: int | None = None,
) -> list[ContestantEvent]:
    query = select(ContestantEvent).order_by(ContestantEvent.id)
    if episode_id is not None:
        query = query.where(ContestantEvent.episode_id == episode_id)
    if contestant_id is not None:
        query = query.where(ContestantEvent.contestant_id == contestant_id)
    result = await db.execute(query)
    return result.scalars().unique().all()


async def get_episode_events(
    db: AsyncSession, episode_id: int, contestant_id: int
) -> list[ContestantEvent]:
    entries = await get_ledger_entries(db, episode_id=episode_id, contestant_id=contestant_id)
    return effective_events(entries)


async def calculate_episode_score(db: AsyncSession, episode_id: int, contestant_id: int) -> int:
    """Sum of every ledger entry for the pair. No entries means 0."""
    await _require_episode(db, episode_id)
    await _require_contestant(db, contestant_id)
    result = await db.execute(
        select(func.coalesce(func.sum(ContestantEvent.point_value), 0)).where(
            ContestantEvent.episode_id == episode_id,
            ContestantEvent.contestant_id == contestant_id,
        )
    )
    return int(result.scalar_one())


async def calculate_score_for_range(
    db: AsyncSession,
    contestant_id: int,
    start_episode: int = 1,
    end_episode: int | None = None,
) -> int:
    """Contestant points for episode numbers start_episode..end_episode inclusive."""
    await _require_contestant(db, contestant_id)
    query = (
        select(func.coalesce(func.sum(ContestantEvent.point_value), 0))
        .join(Episode, Episode.id == ContestantEvent.episode_id)
        .where(
            ContestantEvent.contestant_id == contestant_id,
            Episode.episode_number >= start_episode,
        )
    )
    if end_episode is not None:
        query = query.where(Episode.episode_number <= end_episode)
    result = await db.execute(query)
    return int(result.scalar_one())


async def calculate_total_score(
    db: AsyncSession, contestant_id: int, through_episode: int | None = None
) -> int:
    """Season total, optionally only counting episodes numbered <= through_episode."""
    return await calculate_score_for_range(db, contestant_id, 1, through_episode)


async def scores_by_episode(db: AsyncSession, contestant_id: int) -> dict[int, int]:
    """{episode_number: score} for every episode the contestant has ledger rows in."""
    await _require_contestant(db, contestant_id)
    result = await db.execute(
        select(Episode.episode_number, func.sum(ContestantEvent.point_value))
        .join(Episode, Episode.id == ContestantEvent.episode_id)
        .where(ContestantEvent.contestant_id == contestant_id)
        .group_by(Episode.episode_number)
        .order_by(Episode.episode_number)
    )
    return {number: int(score or 0) for number, score in result.all()}


async def get_episode_events_grouped(db: AsyncSession, episode_id: int) -> list[dict]:
    """Effective events of an episode grouped by contestant, with each contestant's episode score."""
    await _require_episode(db, episode_id)
    entries = await get_ledger_entries(db, episode_id=episode_id)

    totals: dict[int, int] = {}
    for entry in entries:
        totals[entry.contestant_id] = totals.get(entry.contestant_id, 0) + entry.point_value

    grouped: dict[int, list[ContestantEvent]] = {}
    for entry in effective_events(entries):
        grouped.setdefault(entry.contestant_id, []).append(entry)
    if not grouped:
        return []

    contestants_result = await db.execute(
        select(Contestant).where(Contestant.id.in_(grouped.keys()))
    )
    contestants = {c.id: c for c in contestants_result.scalars().all()}

    rows = []
    for contestant_id, events in grouped.items():
        contestant = contestants.get(contestant_id)
        if contestant is None:
            raise NotFoundError(f"Ledger references missing contestant {contestant_id}")
        rows.append({
            "contestant_id": contestant_id,
            "contestant": contestant,
            "events": events,
            "episode_score": totals[contestant_id],
        })
    rows.sort(key=lambda r: r["contestant"].name)
    return rows


async def refresh_projection(
    db: AsyncSession, episode_id: int, contestant_ids: set[int] | list[int]
) -> dict[int, int]:
    """Rewrite episode_scores rows and cached totals for the given contestants."""
    now = datetime.now(timezone.utc)
    refreshed = {}
    for contestant_id in contestant_ids:
        contestant = await _require_contestant(db, contestant_id)
        score = await calculate_episode_score(db, episode_id, contestant_id)

        existing = await db.execute(
            select(EpisodeScore).where(
                EpisodeScore.episode_id == episode_id,
                EpisodeScore.contestant_id == contestant_id,
            )
        )
        row = existing.scalar_one_or_none()
        if row is None:
            row = EpisodeScore(episode_id=episode_id, contestant_id=contestant_id)
            db.add(row)
        row.score = score
        row.source = ScoreSource.EVENTS
        row.calculated_at = now

        contestant.total_score = await calculate_total_score(db, contestant_id)
        refreshed[contestant_id] = score

    await db.flush()
    return refreshed


async def find_cache_drift(db: AsyncSession) -> list[dict]:
    """Contestants whose cached total_score no longer matches the ledger."""
    result = await db.execute(select(Contestant).order_by(Contestant.name))
    drift = []
    for contestant in result.scalars().all():
        ledger_total = await calculate_total_score(db, contestant.id)
        if ledger_total != (contestant.total_score or 0):
            logger.warning(
                "Cached total for %s is %s, ledger says %s",
                contestant.name, contestant.total_score, ledger_total,
            )
            drift.append({
                "contestant_id": contestant.id,
                "name": contestant.name,
                "cached_total": contestant.total_score or 0,
                "ledger_total": ledger_total,
            })
    return drift
