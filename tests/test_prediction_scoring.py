"""
Tests for elimination predictions: submission rules, scoring and locking.
"""

import pytest
from sqlalchemy import select

from app.core.errors import ConsistencyError, ValidationError
from app.models.models import Episode, Prediction
from app.services.ledger import record_events, reverse_event
from app.services.prediction_scoring import (
    POINTS_PER_CORRECT_PREDICTION,
    get_prediction_bonus,
    prediction_statistics,
    recalculate_predictions,
    score_predictions,
    set_predictions_locked,
    submit_predictions,
)


def _pick(ids, tribe, contestant):
    return {"tribe": tribe, "contestant_id": ids["contestants"][contestant]}


async def _eliminate(db, ids, episode, contestant):
    return await record_events(db, ids["episodes"][episode], [{
        "contestant_id": ids["contestants"][contestant],
        "event_type_id": ids["event_types"]["eliminated"],
    }])


async def _predictions(db, player_id) -> dict[str, Prediction]:
    result = await db.execute(select(Prediction).where(Prediction.player_id == player_id))
    return {p.tribe: p for p in result.scalars().all()}


@pytest.mark.asyncio
async def test_elimination_scores_that_tribe_only(seeded_db):
    ids = seeded_db.test_data
    casey, jordan = ids["players"]["casey"], ids["players"]["jordan"]
    await submit_predictions(seeded_db, casey, ids["episodes"][1], [
        _pick(ids, "Luvu", "ana"), _pick(ids, "Yase", "eli"),
    ])
    await submit_predictions(seeded_db, jordan, ids["episodes"][1], [_pick(ids, "Luvu", "ben")])

    result = await _eliminate(seeded_db, ids, 1, "ana")

    assert result.prediction_results == [{
        "contestant_id": ids["contestants"]["ana"],
        "correct": 1,
        "incorrect": 1,
        "points_awarded": POINTS_PER_CORRECT_PREDICTION,
    }]
    casey_predictions = await _predictions(seeded_db, casey)
    assert casey_predictions["Luvu"].is_correct is True
    assert casey_predictions["Luvu"].scored_at is not None
    assert casey_predictions["Yase"].is_correct is None
    assert (await _predictions(seeded_db, jordan))["Luvu"].is_correct is False


@pytest.mark.asyncio
async def test_scoring_twice_changes_nothing(seeded_db):
    ids = seeded_db.test_data
    casey = ids["players"]["casey"]
    await submit_predictions(seeded_db, casey, ids["episodes"][1], [_pick(ids, "Luvu", "ana")])
    await _eliminate(seeded_db, ids, 1, "ana")

    again = await score_predictions(seeded_db, ids["episodes"][1], ids["contestants"]["ben"], "Luvu")

    assert again == {"correct": 0, "incorrect": 0, "points_awarded": 0}
    assert (await _predictions(seeded_db, casey))["Luvu"].is_correct is True
    assert await get_prediction_bonus(seeded_db, casey) == 3


@pytest.mark.asyncio
async def test_elimination_locks_episode(seeded_db):
    ids = seeded_db.test_data
    await _eliminate(seeded_db, ids, 1, "ana")

    episode = (await seeded_db.execute(
        select(Episode).where(Episode.id == ids["episodes"][1])
    )).scalar_one()
    assert episode.predictions_locked is True

    with pytest.raises(ValidationError):
        await submit_predictions(
            seeded_db, ids["players"]["casey"], ids["episodes"][1], [_pick(ids, "Yase", "eli")]
        )


@pytest.mark.asyncio
async def test_unlock_before_scoring(seeded_db):
    ids = seeded_db.test_data
    episode = await set_predictions_locked(seeded_db, ids["episodes"][1], True)
    assert episode.predictions_locked is True

    episode = await set_predictions_locked(seeded_db, ids["episodes"][1], False)
    assert episode.predictions_locked is False


@pytest.mark.asyncio
async def test_unlock_after_scoring_refused(seeded_db):
    ids = seeded_db.test_data
    await submit_predictions(
        seeded_db, ids["players"]["casey"], ids["episodes"][1], [_pick(ids, "Luvu", "ben")]
    )
    await _eliminate(seeded_db, ids, 1, "ana")

    with pytest.raises(ConsistencyError):
        await set_predictions_locked(seeded_db, ids["episodes"][1], False)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "items",
    [
        [],
        [{"tribe": "Luvu"}],
        [{"tribe": "Luvu", "contestant": "ana"}, {"tribe": "Luvu", "contestant": "ben"}],
        [{"tribe": "Yase", "contestant": "ana"}],
    ],
    ids=["empty", "missing-contestant", "duplicate-tribe", "wrong-tribe"],
)
async def test_invalid_submissions(seeded_db, items):
    ids = seeded_db.test_data
    payload = []
    for item in items:
        entry = {"tribe": item["tribe"]}
        if "contestant" in item:
            entry["contestant_id"] = ids["contestants"][item["contestant"]]
        payload.append(entry)

    with pytest.raises(ValidationError):
        await submit_predictions(seeded_db, ids["players"]["casey"], ids["episodes"][1], payload)


@pytest.mark.asyncio
async def test_cannot_predict_eliminated_contestant(seeded_db):
    ids = seeded_db.test_data
    await _eliminate(seeded_db, ids, 1, "ana")

    with pytest.raises(ValidationError):
        await submit_predictions(
            seeded_db, ids["players"]["casey"], ids["episodes"][2], [_pick(ids, "Luvu", "ana")]
        )


@pytest.mark.asyncio
async def test_second_submission_rejected(seeded_db):
    ids = seeded_db.test_data
    casey = ids["players"]["casey"]
    await submit_predictions(seeded_db, casey, ids["episodes"][1], [_pick(ids, "Luvu", "ana")])

    with pytest.raises(ConsistencyError):
        await submit_predictions(seeded_db, casey, ids["episodes"][1], [_pick(ids, "Yase", "eli")])


@pytest.mark.asyncio
async def test_recalculate_after_reversed_elimination(seeded_db):
    ids = seeded_db.test_data
    casey = ids["players"]["casey"]
    episode_id = ids["episodes"][1]
    await submit_predictions(seeded_db, casey, episode_id, [_pick(ids, "Luvu", "ben")])

    wrong = await _eliminate(seeded_db, ids, 1, "ana")
    await reverse_event(seeded_db, episode_id, wrong.added[0].id)
    await _eliminate(seeded_db, ids, 1, "ben")
    assert (await _predictions(seeded_db, casey))["Luvu"].is_correct is False

    totals = await recalculate_predictions(seeded_db, episode_id)

    assert totals == {"correct": 1, "incorrect": 0, "points_awarded": 3}
    assert (await _predictions(seeded_db, casey))["Luvu"].is_correct is True


@pytest.mark.asyncio
async def test_bonus_counts_correct_predictions_across_episodes(seeded_db):
    ids = seeded_db.test_data
    casey = ids["players"]["casey"]
    await submit_predictions(seeded_db, casey, ids["episodes"][1], [
        _pick(ids, "Luvu", "ana"), _pick(ids, "Yase", "eli"),
    ])
    await _eliminate(seeded_db, ids, 1, "ana")
    await _eliminate(seeded_db, ids, 1, "eli")
    await submit_predictions(seeded_db, casey, ids["episodes"][2], [_pick(ids, "Luvu", "ben")])
    await _eliminate(seeded_db, ids, 2, "cal")

    assert await get_prediction_bonus(seeded_db, casey) == 2 * POINTS_PER_CORRECT_PREDICTION
    assert await get_prediction_bonus(seeded_db, ids["players"]["jordan"]) == 0


@pytest.mark.asyncio
async def test_statistics(seeded_db):
    ids = seeded_db.test_data
    await submit_predictions(seeded_db, ids["players"]["casey"], ids["episodes"][1], [
        _pick(ids, "Luvu", "ana"),
    ])
    await submit_predictions(seeded_db, ids["players"]["jordan"], ids["episodes"][1], [
        _pick(ids, "Luvu", "ben"),
    ])
    await _eliminate(seeded_db, ids, 1, "ana")

    stats = await prediction_statistics(seeded_db)

    assert stats["overall"] == {
        "total_predictions": 2,
        "scored_predictions": 2,
        "correct_predictions": 1,
        "accuracy": 50.0,
    }
    episode = stats["episodes"][0]
    assert episode["episode_number"] == 1
    assert episode["participants"] == 2
    assert episode["participation_rate"] == round(2 * 100 / 3, 1)
