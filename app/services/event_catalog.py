"""
Event type catalog.
Seeds the standard set of scoreable events and serves lookups for the ledger.
Admins change point values through the API; rows already in the ledger keep
the value that was current when they were recorded.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError, ValidationError
from app.models.models import EventType, EventCategory

logger = logging.getLogger(__name__)

# Event names that remove a contestant from the game
ELIMINATION_EVENTS = ("eliminated", "eliminated_medical")

DEFAULT_EVENT_TYPES = [
    {"name": "individual_immunity_win", "display_name": "Individual Immunity Win", "category": EventCategory.BASIC, "point_value": 3},
    {"name": "team_immunity_win", "display_name": "Team Immunity Win", "category": EventCategory.BASIC, "point_value": 2},
    {"name": "individual_reward_win", "display_name": "Individual Reward Win", "category": EventCategory.BASIC, "point_value": 2},
    {"name": "team_reward_win", "display_name": "Team Reward Win", "category": EventCategory.BASIC, "point_value": 1},
    {"name": "found_hidden_idol", "display_name": "Found Hidden Immunity Idol", "category": EventCategory.BASIC, "point_value": 3},
    {"name": "played_idol_successfully", "display_name": "Played Idol Successfully", "category": EventCategory.BASIC, "point_value": 2},
    {"name": "tribe_member_eliminated", "display_name": "Survived Tribal Council", "category": EventCategory.BASIC, "point_value": 1},
    {"name": "read_tree_mail", "display_name": "Read Tree Mail", "category": EventCategory.BASIC, "point_value": 1},
    {"name": "made_interesting_food", "display_name": "Made Interesting Food", "category": EventCategory.BASIC, "point_value": 1},
    {"name": "eliminated", "display_name": "Voted Out", "category": EventCategory.PENALTY, "point_value": -1},
    {"name": "eliminated_medical", "display_name": "Medically Evacuated", "category": EventCategory.PENALTY, "point_value": -1},
    {"name": "voted_out_with_idol", "display_name": "Voted Out Holding an Idol", "category": EventCategory.PENALTY, "point_value": -3},
    {"name": "made_final_three", "display_name": "Made Final Three", "category": EventCategory.BONUS, "point_value": 10},
    {"name": "made_fire", "display_name": "Made Fire", "category": EventCategory.BONUS, "point_value": 1},
    {"name": "played_shot_in_dark", "display_name": "Played Shot in the Dark", "category": EventCategory.BONUS, "point_value": 1},
    {"name": "got_immunity_shot_in_dark", "display_name": "Got Immunity from Shot in the Dark", "category": EventCategory.BONUS, "point_value": 4},
]


async def seed_event_types(db: AsyncSession) -> list[EventType]:
    """Insert any default event types that are missing. Returns the ones created."""
    result = await db.execute(select(EventType.name))
    existing = set(result.scalars().all())

    created = []
    for event_data in DEFAULT_EVENT_TYPES:
        if event_data["name"] in existing:
            continue
        event_type = EventType(**event_data)
        db.add(event_type)
        created.append(event_type)
    await db.flush()
    if created:
        logger.info("Seeded %d event types", len(created))
    return created


async def list_event_types(db: AsyncSession, active_only: bool = False) -> list[EventType]:
    query = select(EventType).order_by(EventType.category, EventType.display_name)
    if active_only:
        query = query.where(EventType.is_active == True)  # noqa: E712
    result = await db.execute(query)
    return result.scalars().all()


def group_by_category(event_types: list[EventType]) -> dict[str, list[EventType]]:
    grouped: dict[str, list[EventType]] = {c.value: [] for c in EventCategory}
    for et in event_types:
        category = et.category.value if isinstance(et.category, EventCategory) else et.category
        grouped[category].append(et)
    return grouped


async def get_active_event_type(db: AsyncSession, event_type_id: int) -> EventType:
    result = await db.execute(select(EventType).where(EventType.id == event_type_id))
    event_type = result.scalar_one_or_none()
    if event_type is None:
        raise NotFoundError(f"Event type {event_type_id} not found")
    if not event_type.is_active:
        raise ValidationError(f"Event type '{event_type.name}' is not active")
    return event_type


async def update_point_value(db: AsyncSession, event_type_id: int, point_value: int) -> EventType:
    result = await db.execute(select(EventType).where(EventType.id == event_type_id))
    event_type = result.scalar_one_or_none()
    if event_type is None:
        raise NotFoundError("Event type not found")

    old_value = event_type.point_value
    event_type.point_value = point_value
    await db.flush()
    logger.info(
        "Event type %s point value changed %s -> %s", event_type.name, old_value, point_value
    )
    return event_type


def is_elimination(event_type: EventType) -> bool:
    return event_type.name in ELIMINATION_EVENTS
