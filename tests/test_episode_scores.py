"""
Tests for the contestant event ledger and episode score aggregation.
"""

import pytest
from sqlalchemy import select

from app.core.errors import ConsistencyError, NotFoundError, ValidationError
from app.models.models import Contestant, ContestantEvent, EpisodeScore, EventType
from app.services.episode_scores import (
    calculate_episode_score,
    calculate_score_for_range,
    calculate_total_score,
    effective_events,
    find_cache_drift,
    fold_points,
    get_episode_events,
    get_episode_events_grouped,
    scores_by_episode,
)
from app.services.event_catalog import update_point_value
from app.services.ledger import apply_ledger_changes, record_events, reverse_event


def _add(ids, contestant, event_name):
    return {
        "contestant_id": ids["contestants"][contestant],
        "event_type_id": ids["event_types"][event_name],
    }


def test_effective_events_drops_reversed_pairs():
    original = ContestantEvent(id=1, point_value=3, reverses_event_id=None)
    kept = ContestantEvent(id=2, point_value=2, reverses_event_id=None)
    reversal = ContestantEvent(id=3, point_value=-3, reverses_event_id=1)
    entries = [original, kept, reversal]

    assert effective_events(entries) == [kept]
    assert fold_points(entries) == fold_points(effective_events(entries)) == 2


@pytest.mark.asyncio
async def test_episode_score_is_sum_of_events(seeded_db):
    ids = seeded_db.test_data
    episode_id = ids["episodes"][1]
    await record_events(seeded_db, episode_id, [
        _add(ids, "ana", "individual_immunity_win"),
        _add(ids, "ana", "found_hidden_idol"),
        _add(ids, "ana", "voted_out_with_idol"),
    ])

    score = await calculate_episode_score(seeded_db, episode_id, ids["contestants"]["ana"])
    events = await get_episode_events(seeded_db, episode_id, ids["contestants"]["ana"])

    assert score == 3 + 3 - 3
    assert score == sum(e.point_value for e in events)


@pytest.mark.asyncio
async def test_no_events_scores_zero(seeded_db):
    ids = seeded_db.test_data
    assert await calculate_episode_score(seeded_db, ids["episodes"][1], ids["contestants"]["ben"]) == 0


@pytest.mark.asyncio
async def test_missing_contestant_raises(seeded_db):
    ids = seeded_db.test_data
    with pytest.raises(NotFoundError):
        await calculate_episode_score(seeded_db, ids["episodes"][1], 9999)
    with pytest.raises(NotFoundError):
        await calculate_total_score(seeded_db, 9999)


@pytest.mark.asyncio
async def test_reversal_appends_negated_entry(seeded_db):
    ids = seeded_db.test_data
    episode_id = ids["episodes"][1]
    result = await record_events(seeded_db, episode_id, [_add(ids, "ana", "found_hidden_idol")])
    event_id = result.added[0].id

    removal = await reverse_event(seeded_db, episode_id, event_id)

    reversal = removal.reversals[0]
    assert reversal.point_value == -3
    assert reversal.reverses_event_id == event_id
    rows = (await seeded_db.execute(select(ContestantEvent))).scalars().all()
    assert len(rows) == 2
    assert await calculate_episode_score(seeded_db, episode_id, ids["contestants"]["ana"]) == 0
    assert await get_episode_events(seeded_db, episode_id, ids["contestants"]["ana"]) == []


@pytest.mark.asyncio
async def test_cannot_reverse_twice(seeded_db):
    ids = seeded_db.test_data
    episode_id = ids["episodes"][1]
    result = await record_events(seeded_db, episode_id, [_add(ids, "ana", "made_fire")])
    event_id = result.added[0].id
    removal = await reverse_event(seeded_db, episode_id, event_id)

    with pytest.raises(ConsistencyError):
        await reverse_event(seeded_db, episode_id, event_id)
    with pytest.raises(ConsistencyError):
        await reverse_event(seeded_db, episode_id, removal.reversals[0].id)


@pytest.mark.asyncio
async def test_remove_from_other_episode_rejects_whole_batch(seeded_db):
    ids = seeded_db.test_data
    result = await record_events(seeded_db, ids["episodes"][1], [_add(ids, "ana", "made_fire")])
    other_episode_event = result.added[0].id

    with pytest.raises(NotFoundError):
        await apply_ledger_changes(
            seeded_db,
            ids["episodes"][2],
            add=[_add(ids, "ben", "individual_immunity_win")],
            remove=[other_episode_event],
        )

    rows = (await seeded_db.execute(select(ContestantEvent))).scalars().all()
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_inactive_event_type_rejected(seeded_db):
    ids = seeded_db.test_data
    event_type = (await seeded_db.execute(
        select(EventType).where(EventType.id == ids["event_types"]["made_fire"])
    )).scalar_one()
    event_type.is_active = False
    await seeded_db.flush()

    with pytest.raises(ValidationError):
        await record_events(seeded_db, ids["episodes"][1], [_add(ids, "ana", "made_fire")])


@pytest.mark.asyncio
async def test_point_value_is_snapshotted(seeded_db):
    ids = seeded_db.test_data
    episode_id = ids["episodes"][1]
    await record_events(seeded_db, episode_id, [_add(ids, "ana", "individual_immunity_win")])

    await update_point_value(seeded_db, ids["event_types"]["individual_immunity_win"], 10)
    await record_events(seeded_db, episode_id, [_add(ids, "ben", "individual_immunity_win")])

    assert await calculate_episode_score(seeded_db, episode_id, ids["contestants"]["ana"]) == 3
    assert await calculate_episode_score(seeded_db, episode_id, ids["contestants"]["ben"]) == 10


@pytest.mark.asyncio
async def test_totals_and_ranges(seeded_db):
    ids = seeded_db.test_data
    ana = ids["contestants"]["ana"]
    await record_events(seeded_db, ids["episodes"][1], [_add(ids, "ana", "individual_immunity_win")])
    await record_events(seeded_db, ids["episodes"][2], [_add(ids, "ana", "team_reward_win")])
    await record_events(seeded_db, ids["episodes"][3], [_add(ids, "ana", "made_final_three")])

    assert await calculate_total_score(seeded_db, ana) == 14
    assert await calculate_total_score(seeded_db, ana, through_episode=2) == 4
    assert await calculate_score_for_range(seeded_db, ana, 2, 3) == 11
    assert await calculate_score_for_range(seeded_db, ana, 2, None) == 11
    assert await scores_by_episode(seeded_db, ana) == {1: 3, 2: 1, 3: 10}


@pytest.mark.asyncio
async def test_eliminated_contestant_events_still_count(seeded_db):
    ids = seeded_db.test_data
    ana = ids["contestants"]["ana"]
    await record_events(seeded_db, ids["episodes"][1], [_add(ids, "ana", "eliminated")])
    await record_events(seeded_db, ids["episodes"][2], [_add(ids, "ana", "made_fire")])

    assert await calculate_score_for_range(seeded_db, ana, 2, 2) == 1
    assert await calculate_total_score(seeded_db, ana) == 0


@pytest.mark.asyncio
async def test_projection_follows_ledger(seeded_db):
    ids = seeded_db.test_data
    episode_id = ids["episodes"][1]
    ana = ids["contestants"]["ana"]
    result = await record_events(seeded_db, episode_id, [
        _add(ids, "ana", "individual_immunity_win"),
        _add(ids, "ana", "read_tree_mail"),
    ])
    assert result.episode_scores == {ana: 4}

    await reverse_event(seeded_db, episode_id, result.added[1].id)

    row = (await seeded_db.execute(
        select(EpisodeScore).where(EpisodeScore.episode_id == episode_id, EpisodeScore.contestant_id == ana)
    )).scalar_one()
    contestant = (await seeded_db.execute(select(Contestant).where(Contestant.id == ana))).scalar_one()
    assert row.score == 3
    assert contestant.total_score == 3
    assert await find_cache_drift(seeded_db) == []


@pytest.mark.asyncio
async def test_cache_drift_is_reported(seeded_db):
    ids = seeded_db.test_data
    await record_events(seeded_db, ids["episodes"][1], [_add(ids, "ana", "made_fire")])
    contestant = (await seeded_db.execute(
        select(Contestant).where(Contestant.id == ids["contestants"]["ana"])
    )).scalar_one()
    contestant.total_score = 50
    await seeded_db.flush()

    drift = await find_cache_drift(seeded_db)

    assert drift == [{
        "contestant_id": contestant.id,
        "name": "Ana",
        "cached_total": 50,
        "ledger_total": 1,
    }]


@pytest.mark.asyncio
async def test_grouped_events_for_episode(seeded_db):
    ids = seeded_db.test_data
    episode_id = ids["episodes"][1]
    await record_events(seeded_db, episode_id, [
        _add(ids, "eli", "team_immunity_win"),
        _add(ids, "ana", "team_immunity_win"),
        _add(ids, "ana", "made_fire"),
    ])

    grouped = await get_episode_events_grouped(seeded_db, episode_id)

    assert [g["contestant"].name for g in grouped] == ["Ana", "Eli"]
    assert grouped[0]["episode_score"] == 3
    assert len(grouped[0]["events"]) == 2
