import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from app.core.config import get_settings
from app.core.database import engine, Base, AsyncSessionLocal
from app.core.errors import register_error_handlers
from app.api import (
    auth, contestants, episodes, event_types, leaderboard, players, predictions,
)
from app.services.event_catalog import seed_event_types

# Import all models so Base.metadata is populated for create_all
import app.models.models  # noqa: F401

settings = get_settings()

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

# Columns added after the first deploy. Each statement is safe to re-run.
MIGRATIONS = [
    "ALTER TABLE contestant_events ADD COLUMN IF NOT EXISTS reverses_event_id INTEGER REFERENCES contestant_events(id)",
    "ALTER TABLE draft_picks ADD COLUMN IF NOT EXISTS start_episode INTEGER NOT NULL DEFAULT 1",
    "ALTER TABLE draft_picks ADD COLUMN IF NOT EXISTS end_episode INTEGER",
    "ALTER TABLE draft_picks ADD COLUMN IF NOT EXISTS is_replacement BOOLEAN NOT NULL DEFAULT FALSE",
    "ALTER TABLE draft_picks ADD COLUMN IF NOT EXISTS replaced_contestant_id INTEGER REFERENCES contestants(id)",
    "ALTER TABLE elimination_predictions ADD COLUMN IF NOT EXISTS scored_at TIMESTAMPTZ",
    "CREATE UNIQUE INDEX IF NOT EXISTS uq_sole_survivor_active ON sole_survivor_history (player_id) WHERE end_episode IS NULL",
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up, creating database tables...")
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            if conn.dialect.name == "postgresql":
                for sql in MIGRATIONS:
                    try:
                        async with conn.begin_nested():
                            await conn.execute(text(sql))
                    except Exception as mig_err:
                        logger.warning("Migration skipped: %s", mig_err)
        async with AsyncSessionLocal() as db:
            await seed_event_types(db)
            await db.commit()
        logger.info("Database ready.")
    except Exception as e:
        logger.error("Error preparing database: %s", e)
        # Keep serving so /health still answers
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Fantasy league scoring: event ledger, sole survivor bonus, elimination predictions and leaderboards.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(auth.router)
app.include_router(players.router)
app.include_router(contestants.router)
app.include_router(episodes.router)
app.include_router(event_types.router)
app.include_router(predictions.router)
app.include_router(leaderboard.router)


@app.get("/health")
async def health():
    return {"status": "healthy"}
