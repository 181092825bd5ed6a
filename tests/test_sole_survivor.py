"""
Tests for the sole survivor history tracker and loyalty bonus.
"""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.models.models import Player, SoleSurvivorHistory
from app.services.sole_survivor import (
    calculate_sole_survivor_bonus,
    change_sole_survivor,
    get_active_interval,
    get_sole_survivor_bonus,
    interval_for_episode,
)
from app.services.league import set_current_episode


# =============================================================================
# BONUS CALCULATION
# =============================================================================

@pytest.mark.parametrize(
    "start, current, is_winner, episode_bonus, winner_bonus, total",
    [
        (1, 5, False, 5, 0, 5),
        (2, 2, True, 1, 25, 26),
        (3, 10, True, 8, 0, 8),
        (1, 1, True, 1, 25, 26),
    ],
)
def test_bonus_cases(start, current, is_winner, episode_bonus, winner_bonus, total):
    bonus = calculate_sole_survivor_bonus(start, current, is_winner)
    assert bonus.episode_bonus == episode_bonus
    assert bonus.winner_bonus == winner_bonus
    assert bonus.total_bonus == total


def test_bonus_counts_at_least_one_episode():
    bonus = calculate_sole_survivor_bonus(5, 3, False)
    assert bonus.episode_count == 1
    assert bonus.total_bonus == 1


def test_bonus_as_dict():
    assert calculate_sole_survivor_bonus(1, 4, False).as_dict() == {
        "episode_bonus": 4,
        "winner_bonus": 0,
        "total_bonus": 4,
        "episode_count": 4,
    }


def test_interval_for_episode_gives_switch_episode_to_new_pick():
    old = SoleSurvivorHistory(player_id=1, contestant_id=10, start_episode=1, end_episode=4)
    new = SoleSurvivorHistory(player_id=1, contestant_id=20, start_episode=4, end_episode=None)
    history = [new, old]

    assert interval_for_episode(history, 1) is old
    assert interval_for_episode(history, 3) is old
    assert interval_for_episode(history, 4) is new
    assert interval_for_episode(history, 9) is new


def test_interval_for_episode_before_any_pick():
    row = SoleSurvivorHistory(player_id=1, contestant_id=10, start_episode=3, end_episode=None)
    assert interval_for_episode([row], 2) is None


# =============================================================================
# HISTORY TRANSITIONS
# =============================================================================

async def _player(db, player_id) -> Player:
    return (await db.execute(select(Player).where(Player.id == player_id))).scalar_one()


async def _history(db, player_id) -> list[SoleSurvivorHistory]:
    result = await db.execute(
        select(SoleSurvivorHistory)
        .where(SoleSurvivorHistory.player_id == player_id)
        .order_by(SoleSurvivorHistory.id)
    )
    return result.scalars().all()


@pytest.mark.asyncio
async def test_first_pick_opens_interval(seeded_db):
    ids = seeded_db.test_data
    player = await _player(seeded_db, ids["players"]["casey"])

    row = await change_sole_survivor(seeded_db, player, ids["contestants"]["ana"], 1)

    assert row.start_episode == 1
    assert row.end_episode is None
    assert player.sole_survivor_id == ids["contestants"]["ana"]


@pytest.mark.asyncio
async def test_switch_closes_active_and_opens_new(seeded_db):
    ids = seeded_db.test_data
    player = await _player(seeded_db, ids["players"]["casey"])
    await change_sole_survivor(seeded_db, player, ids["contestants"]["ana"], 1)

    await change_sole_survivor(seeded_db, player, ids["contestants"]["eli"], 3)

    history = await _history(seeded_db, player.id)
    assert [(h.contestant_id, h.start_episode, h.end_episode) for h in history] == [
        (ids["contestants"]["ana"], 1, 3),
        (ids["contestants"]["eli"], 3, None),
    ]
    assert sum(1 for h in history if h.end_episode is None) == 1
    assert player.sole_survivor_id == ids["contestants"]["eli"]


@pytest.mark.asyncio
async def test_same_pick_is_noop(seeded_db):
    ids = seeded_db.test_data
    player = await _player(seeded_db, ids["players"]["casey"])
    await change_sole_survivor(seeded_db, player, ids["contestants"]["ana"], 1)

    assert await change_sole_survivor(seeded_db, player, ids["contestants"]["ana"], 2) is None
    assert len(await _history(seeded_db, player.id)) == 1


@pytest.mark.asyncio
async def test_switch_defaults_to_current_episode(seeded_db):
    ids = seeded_db.test_data
    player = await _player(seeded_db, ids["players"]["casey"])
    await change_sole_survivor(seeded_db, player, ids["contestants"]["ana"], 1)
    await set_current_episode(seeded_db, ids["episodes"][2])

    row = await change_sole_survivor(seeded_db, player, ids["contestants"]["ben"])

    assert row.start_episode == 2


@pytest.mark.asyncio
async def test_database_allows_one_active_row_per_player(seeded_db):
    ids = seeded_db.test_data
    player_id = ids["players"]["casey"]
    seeded_db.add(SoleSurvivorHistory(player_id=player_id, contestant_id=ids["contestants"]["ana"], start_episode=1))
    await seeded_db.flush()

    seeded_db.add(SoleSurvivorHistory(player_id=player_id, contestant_id=ids["contestants"]["ben"], start_episode=2))
    with pytest.raises(IntegrityError):
        await seeded_db.flush()


@pytest.mark.asyncio
async def test_bonus_for_player_uses_active_interval(seeded_db):
    ids = seeded_db.test_data
    player = await _player(seeded_db, ids["players"]["casey"])
    await change_sole_survivor(seeded_db, player, ids["contestants"]["ana"], 1)
    await set_current_episode(seeded_db, ids["episodes"][3])

    bonus = await get_sole_survivor_bonus(seeded_db, player.id)

    assert bonus.episode_bonus == 3
    assert bonus.winner_bonus == 0


@pytest.mark.asyncio
async def test_no_pick_means_no_bonus(seeded_db):
    ids = seeded_db.test_data
    bonus = await get_sole_survivor_bonus(seeded_db, ids["players"]["jordan"])
    assert bonus.total_bonus == 0
    assert await get_active_interval(seeded_db, ids["players"]["jordan"]) is None

