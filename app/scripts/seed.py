"""
Seed script: creates the event catalog, a demo cast, league players and episode 1.
Run with: python -m app.scripts.seed
"""
import asyncio

from sqlalchemy import select
from app.core.database import AsyncSessionLocal, engine, Base
from app.core.security import hash_password
from app.models.models import Contestant, Episode, Player
from app.services.event_catalog import seed_event_types
from app.services.league import set_current_episode

DEFAULT_PASSWORD = "solesurvivor"

PLAYERS = [
    {"name": "Admin", "email": "admin@example.com", "is_admin": True},
    {"name": "Casey", "email": "casey@example.com", "is_admin": False},
    {"name": "Jordan", "email": "jordan@example.com", "is_admin": False},
    {"name": "Riley", "email": "riley@example.com", "is_admin": False},
]

CONTESTANTS = [
    {"name": "Avery Hart", "profession": "Firefighter", "current_tribe": "Luvu"},
    {"name": "Blake Moreno", "profession": "Teacher", "current_tribe": "Luvu"},
    {"name": "Dana Okafor", "profession": "Nurse", "current_tribe": "Luvu"},
    {"name": "Emerson Price", "profession": "Lawyer", "current_tribe": "Luvu"},
    {"name": "Harper Quinn", "profession": "Chef", "current_tribe": "Yase"},
    {"name": "Jules Tanaka", "profession": "Engineer", "current_tribe": "Yase"},
    {"name": "Morgan Reyes", "profession": "Bartender", "current_tribe": "Yase"},
    {"name": "Sage Whitfield", "profession": "Student", "current_tribe": "Yase"},
]


async def seed():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        created_types = await seed_event_types(db)
        print(f"  Event types created: {len(created_types)}")

        for player_data in PLAYERS:
            result = await db.execute(select(Player).where(Player.email == player_data["email"]))
            if result.scalar_one_or_none():
                print(f"  Player '{player_data['email']}' already exists, skipping.")
                continue
            db.add(Player(password_hash=hash_password(DEFAULT_PASSWORD), **player_data))
            print(f"  Created player: {player_data['name']} ({'admin' if player_data['is_admin'] else 'player'})")

        for contestant_data in CONTESTANTS:
            result = await db.execute(select(Contestant).where(Contestant.name == contestant_data["name"]))
            if result.scalar_one_or_none():
                continue
            db.add(Contestant(**contestant_data))
            print(f"  Created contestant: {contestant_data['name']}")

        result = await db.execute(select(Episode).where(Episode.episode_number == 1))
        episode = result.scalar_one_or_none()
        if episode is None:
            episode = Episode(episode_number=1, title="Premiere")
            db.add(episode)
            await db.flush()
            await set_current_episode(db, episode.id)
            print("  Created episode 1 and made it current.")

        await db.commit()

    print("\nSeed complete!")


if __name__ == "__main__":
    print("Seeding Sole Survivor League...\n")
    asyncio.run(seed())
