"""Contestant performance table: totals, per-episode average, trend and event counts."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.models import Contestant
from app.services.episode_scores import effective_events, get_ledger_entries, scores_by_episode

TREND_THRESHOLD = 0.05

COUNTED_EVENTS = {
    "found_hidden_idol": "idols_found",
    "team_reward_win": "reward_wins",
    "team_immunity_win": "immunity_wins",
}


def _mean(values: list[int]) -> float:
    return sum(values) / len(values)


def calculate_trend(episode_scores: list[int]) -> str:
    """
    'up', 'down', 'same' or 'n/a' from scores in episode order. Three to five
    episodes compare the last one with the two before it; six or more compare
    the last three with the three before them.
    """
    if len(episode_scores) < 3:
        return "n/a"
    if len(episode_scores) < 6:
        recent = episode_scores[-1]
        previous = _mean(episode_scores[-3:-1])
    else:
        recent = _mean(episode_scores[-3:])
        previous = _mean(episode_scores[-6:-3])

    if previous == 0:
        if recent > 0:
            return "up"
        if recent < 0:
            return "down"
        return "same"

    change = (recent - previous) / abs(previous)
    if change > TREND_THRESHOLD:
        return "up"
    if change < -TREND_THRESHOLD:
        return "down"
    return "same"


async def get_contestant_performance(db: AsyncSession) -> list[dict]:
    result = await db.execute(select(Contestant))
    contestants = result.scalars().all()

    rows = []
    for contestant in contestants:
        by_episode = await scores_by_episode(db, contestant.id)
        scores = list(by_episode.values())
        total = sum(scores)
        participated = len(scores)

        counts = {key: 0 for key in COUNTED_EVENTS.values()}
        entries = await get_ledger_entries(db, contestant_id=contestant.id)
        for event in effective_events(entries):
            key = COUNTED_EVENTS.get(event.event_type.name)
            if key:
                counts[key] += 1

        rows.append({
            "id": contestant.id,
            "name": contestant.name,
            "image_url": contestant.image_url,
            "profession": contestant.profession,
            "is_eliminated": contestant.is_eliminated,
            "total_score": total,
            "average_per_episode": round(total / participated, 1) if participated else None,
            "trend": calculate_trend(scores),
            "episodes_participated": participated,
            **counts,
        })

    rows.sort(key=lambda r: (-r["total_score"], r["name"]))
    for rank, row in enumerate(rows, 1):
        row["rank"] = rank
    return rows
