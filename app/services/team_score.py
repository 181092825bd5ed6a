"""
Team score composer. A player's total is the sum of four parts:

    draft_score          points of each draft pick within the episodes it was held
    sole_survivor_score  season total of the current sole survivor pick
    sole_survivor_bonus  loyalty bonus for the active pick (see sole_survivor.py)
    prediction_bonus     3 points per correct elimination prediction

All parts are integers, so the total is exact.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.models.models import (
    Contestant, DraftPick, Episode, Player, Prediction,
)
from app.services.draft_replacement import get_pick_scores
from app.services.episode_scores import calculate_total_score, scores_by_episode
from app.services.league import get_current_episode_number, get_latest_episode_number
from app.services.prediction_scoring import POINTS_PER_CORRECT_PREDICTION, get_prediction_bonus
from app.services.sole_survivor import (
    get_active_interval, get_history, get_sole_survivor_bonus, interval_for_episode,
)


def compose_team_score(
    draft_score: int, sole_survivor_score: int, sole_survivor_bonus: int, prediction_bonus: int
) -> dict:
    return {
        "draft_score": draft_score,
        "sole_survivor_score": sole_survivor_score,
        "sole_survivor_bonus": sole_survivor_bonus,
        "prediction_bonus": prediction_bonus,
        "total": draft_score + sole_survivor_score + sole_survivor_bonus + prediction_bonus,
    }


async def _get_player_or_404(db: AsyncSession, player_id: int) -> Player:
    result = await db.execute(select(Player).where(Player.id == player_id))
    player = result.scalar_one_or_none()
    if player is None:
        raise NotFoundError("Player not found")
    return player


async def _get_contestant(db: AsyncSession, contestant_id: int) -> Contestant:
    result = await db.execute(select(Contestant).where(Contestant.id == contestant_id))
    contestant = result.scalar_one_or_none()
    if contestant is None:
        raise NotFoundError(f"Contestant {contestant_id} not found")
    return contestant


async def calculate_player_score(db: AsyncSession, player_id: int) -> dict:
    """Composer breakdown for one player, plus the bonus detail and the picks behind it."""
    player = await _get_player_or_404(db, player_id)

    pick_scores = await get_pick_scores(db, player.id)
    draft_score = sum(row["score"] for row in pick_scores)

    sole_survivor_score = 0
    if player.sole_survivor_id is not None:
        sole_survivor_score = await calculate_total_score(db, player.sole_survivor_id)

    bonus = await get_sole_survivor_bonus(db, player.id)
    prediction_bonus = await get_prediction_bonus(db, player.id)

    breakdown = compose_team_score(
        draft_score, sole_survivor_score, bonus.total_bonus, prediction_bonus
    )
    breakdown["player_id"] = player.id
    breakdown["bonus_breakdown"] = bonus.as_dict()
    breakdown["picks"] = pick_scores
    return breakdown


def _pick_covers(pick: DraftPick, episode_number: int) -> bool:
    return pick.start_episode <= episode_number and (
        pick.end_episode is None or episode_number <= pick.end_episode
    )


async def get_leaderboard(db: AsyncSession) -> list[dict]:
    """All players ranked by total score, ties broken by name."""
    result = await db.execute(select(Player).order_by(Player.name))
    players = result.scalars().all()
    latest = await get_latest_episode_number(db)

    entries = []
    for player in players:
        score = await calculate_player_score(db, player.id)

        drafted = []
        for row in score["picks"]:
            pick = row["pick"]
            if pick.end_episode is None:
                drafted.append(await _get_contestant(db, pick.contestant_id))

        sole_survivor = None
        if player.sole_survivor_id is not None:
            sole_survivor = await _get_contestant(db, player.sole_survivor_id)

        weekly_change = 0
        if latest is not None:
            team_ids = [
                row["pick"].contestant_id for row in score["picks"]
                if _pick_covers(row["pick"], latest)
            ]
            if sole_survivor is not None:
                team_ids.append(sole_survivor.id)
            for contestant_id in team_ids:
                weekly_change += (await scores_by_episode(db, contestant_id)).get(latest, 0)

        bonus = score["bonus_breakdown"]
        entries.append({
            "player_id": player.id,
            "name": player.name,
            "profile_image_url": player.profile_image_url,
            "draft_score": score["draft_score"],
            "sole_survivor_score": score["sole_survivor_score"],
            "sole_survivor_bonus": score["sole_survivor_bonus"],
            "prediction_bonus": score["prediction_bonus"],
            "total_score": score["total"],
            "bonus_breakdown": bonus if bonus["total_bonus"] > 0 else None,
            "weekly_change": weekly_change,
            "drafted_contestants": drafted,
            "sole_survivor": sole_survivor,
        })

    entries.sort(key=lambda e: (-e["total_score"], e["name"]))
    for rank, entry in enumerate(entries, 1):
        entry["rank"] = rank
    return entries


async def get_team_audit(db: AsyncSession, player_id: int) -> dict:
    """
    Episode-by-episode breakdown of a player's score. The per-episode totals
    are computed independently of the composer and must add up to its total.
    """
    player = await _get_player_or_404(db, player_id)
    overall = await calculate_player_score(db, player.id)
    current_number = await get_current_episode_number(db)

    episodes_result = await db.execute(select(Episode).order_by(Episode.episode_number))
    episodes = episodes_result.scalars().all()

    picks = [row["pick"] for row in overall["picks"]]
    contestant_ids = {p.contestant_id for p in picks}
    sole_survivor = None
    if player.sole_survivor_id is not None:
        sole_survivor = await _get_contestant(db, player.sole_survivor_id)
        contestant_ids.add(sole_survivor.id)

    history = await get_history(db, player.id)
    contestant_ids.update(h.contestant_id for h in history)

    contestants = {cid: await _get_contestant(db, cid) for cid in contestant_ids}
    per_contestant = {cid: await scores_by_episode(db, cid) for cid in contestant_ids}

    predictions_result = await db.execute(
        select(Prediction, Contestant)
        .join(Contestant, Contestant.id == Prediction.contestant_id)
        .where(Prediction.player_id == player.id, Prediction.is_correct == True)  # noqa: E712
    )
    correct_by_episode: dict[int, list[dict]] = {}
    for prediction, contestant in predictions_result.all():
        correct_by_episode.setdefault(prediction.episode_id, []).append({
            "prediction_text": f"Correctly predicted {contestant.name} leaving {prediction.tribe}",
            "points": POINTS_PER_CORRECT_PREDICTION,
        })

    active = await get_active_interval(db, player.id)
    bonus = overall["bonus_breakdown"]
    bonus_rows = {}
    if active is not None:
        for episode in episodes:
            if active.start_episode <= episode.episode_number <= current_number:
                bonus_rows[episode.id] = 1
        # Winner bonus, and any episodes without a stored row, land on the current episode
        remainder = bonus["total_bonus"] - sum(bonus_rows.values())
        target = next(
            (e for e in reversed(episodes) if e.episode_number <= current_number), None
        )
        if target is not None and remainder:
            bonus_rows[target.id] = bonus_rows.get(target.id, 0) + remainder

    breakdown = []
    for episode in episodes:
        n = episode.episode_number
        team_picks = [p for p in picks if _pick_covers(p, n)]
        draft_score = sum(per_contestant[p.contestant_id].get(n, 0) for p in team_picks)
        ss_score = per_contestant[sole_survivor.id].get(n, 0) if sole_survivor else 0
        prediction_bonuses = correct_by_episode.get(episode.id, [])
        prediction_bonus = sum(p["points"] for p in prediction_bonuses)
        ss_bonus = bonus_rows.get(episode.id, 0)
        owner = interval_for_episode(history, n)

        breakdown.append({
            "episode": {
                "id": episode.id,
                "episode_number": n,
                "aired_date": episode.aired_date,
            },
            "team": {
                "drafted_contestants": [contestants[p.contestant_id] for p in team_picks],
                "sole_survivor": contestants[owner.contestant_id] if owner else None,
            },
            "scores": {
                "draft_score": draft_score,
                "sole_survivor_score": ss_score,
                "sole_survivor_bonus": ss_bonus,
                "prediction_bonus": prediction_bonus,
                "total_episode_score": draft_score + ss_score + ss_bonus + prediction_bonus,
            },
            "prediction_bonuses": prediction_bonuses,
        })

    attributed = sum(row["scores"]["total_episode_score"] for row in breakdown)
    unattributed_bonus = bonus["total_bonus"] - sum(bonus_rows.values())
    overall_totals = {k: overall[k] for k in (
        "draft_score", "sole_survivor_score", "sole_survivor_bonus", "prediction_bonus", "total"
    )}
    return {
        "player_id": player.id,
        "team_info": {
            "name": player.name,
            "sole_survivor": sole_survivor,
            "drafted_contestants": [contestants[p.contestant_id] for p in picks if p.end_episode is None],
        },
        "episodes": breakdown,
        "overall_totals": overall_totals,
        "unattributed_bonus": unattributed_bonus,
        "is_consistent": attributed + unattributed_bonus == overall["total"],
    }
