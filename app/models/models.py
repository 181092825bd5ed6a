from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, Text,
    UniqueConstraint, CheckConstraint, Index, Enum as SAEnum, text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
import enum


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- Enums ---

class EventCategory(str, enum.Enum):
    BASIC = "basic"
    PENALTY = "penalty"
    BONUS = "bonus"


class ScoreSource(str, enum.Enum):
    MANUAL = "manual"
    EVENTS = "events"  # Rebuilt from the contestant_events ledger


# --- Models ---

class EventType(Base):
    """Catalog of scoreable occurrences. point_value is copied onto each ledger row."""
    __tablename__ = "event_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)  # Machine key, e.g. "found_hidden_idol"
    display_name = Column(String(200), nullable=False)
    category = Column(SAEnum(EventCategory), nullable=False)
    point_value = Column(Integer, nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())


class Episode(Base):
    __tablename__ = "episodes"

    id = Column(Integer, primary_key=True, index=True)
    episode_number = Column(Integer, unique=True, nullable=False)
    title = Column(String(200))
    aired_date = Column(DateTime)
    predictions_locked = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())

    __table_args__ = (
        CheckConstraint("episode_number >= 1", name="ck_episode_number_positive"),
    )


class LeagueState(Base):
    """Single-row league settings. Holds the pointer to the current episode."""
    __tablename__ = "league_state"

    id = Column(Integer, primary_key=True)
    current_episode_id = Column(Integer, ForeignKey("episodes.id", ondelete="SET NULL"))
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class Contestant(Base):
    __tablename__ = "contestants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    profession = Column(String(200))
    image_url = Column(Text)
    current_tribe = Column(String(100))
    is_eliminated = Column(Boolean, default=False, nullable=False)
    is_winner = Column(Boolean, default=False, nullable=False)
    total_score = Column(Integer, default=0, nullable=False)  # Cache of the ledger sum
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())


class Player(Base):
    __tablename__ = "players"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(200), unique=True, nullable=False)
    password_hash = Column(String(200), nullable=False)
    profile_image_url = Column(Text)
    is_admin = Column(Boolean, default=False, nullable=False)
    sole_survivor_id = Column(Integer, ForeignKey("contestants.id"))
    has_submitted_rankings = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())


class Ranking(Base):
    """A player's pre-season ordering of the cast. Drives draft replacements."""
    __tablename__ = "rankings"

    id = Column(Integer, primary_key=True, index=True)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    contestant_id = Column(Integer, ForeignKey("contestants.id"), nullable=False)
    rank = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("player_id", "contestant_id", name="uq_ranking_player_contestant"),
        UniqueConstraint("player_id", "rank", name="uq_ranking_player_rank"),
    )


class DraftPick(Base):
    """
    A contestant on a player's team for episodes start_episode..end_episode.
    end_episode is null while the pick is active. Replacement picks point
    back at the eliminated contestant they took over from.
    """
    __tablename__ = "draft_picks"

    id = Column(Integer, primary_key=True, index=True)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    contestant_id = Column(Integer, ForeignKey("contestants.id"), nullable=False)
    pick_number = Column(Integer, nullable=False)
    start_episode = Column(Integer, default=1, nullable=False)
    end_episode = Column(Integer)
    is_replacement = Column(Boolean, default=False, nullable=False)
    replaced_contestant_id = Column(Integer, ForeignKey("contestants.id"))
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())


class SoleSurvivorHistory(Base):
    """
    One row per sole survivor interval. The row with a null end_episode is the
    active pick; the partial unique index allows at most one per player.
    """
    __tablename__ = "sole_survivor_history"

    id = Column(Integer, primary_key=True, index=True)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    contestant_id = Column(Integer, ForeignKey("contestants.id"), nullable=False)
    start_episode = Column(Integer, nullable=False)
    end_episode = Column(Integer)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())

    __table_args__ = (
        Index(
            "uq_sole_survivor_active",
            "player_id",
            unique=True,
            postgresql_where=text("end_episode IS NULL"),
            sqlite_where=text("end_episode IS NULL"),
        ),
    )


class ContestantEvent(Base):
    """
    Append-only scoring ledger. Removing an event writes a reversal row with
    the negated point_value instead of deleting the original.
    """
    __tablename__ = "contestant_events"

    id = Column(Integer, primary_key=True, index=True)
    episode_id = Column(Integer, ForeignKey("episodes.id"), nullable=False)
    contestant_id = Column(Integer, ForeignKey("contestants.id"), nullable=False)
    event_type_id = Column(Integer, ForeignKey("event_types.id"), nullable=False)
    point_value = Column(Integer, nullable=False)
    reverses_event_id = Column(Integer, ForeignKey("contestant_events.id"), unique=True)
    created_by = Column(Integer, ForeignKey("players.id"))
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())

    event_type = relationship("EventType", lazy="joined")

    __table_args__ = (
        Index("ix_contestant_events_episode_contestant", "episode_id", "contestant_id"),
    )


class Prediction(Base):
    """A player's guess of who goes home from a tribe in an episode."""
    __tablename__ = "elimination_predictions"

    id = Column(Integer, primary_key=True, index=True)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    episode_id = Column(Integer, ForeignKey("episodes.id"), nullable=False)
    tribe = Column(String(100), nullable=False)
    contestant_id = Column(Integer, ForeignKey("contestants.id"), nullable=False)
    is_correct = Column(Boolean)  # Null until scored
    scored_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("player_id", "episode_id", "tribe", name="uq_prediction_player_episode_tribe"),
    )


class EpisodeScore(Base):
    """Per-episode projection of the ledger, rewritten whenever the ledger changes."""
    __tablename__ = "episode_scores"

    id = Column(Integer, primary_key=True, index=True)
    episode_id = Column(Integer, ForeignKey("episodes.id"), nullable=False)
    contestant_id = Column(Integer, ForeignKey("contestants.id"), nullable=False)
    score = Column(Integer, default=0, nullable=False)
    source = Column(SAEnum(ScoreSource), default=ScoreSource.EVENTS, nullable=False)
    calculated_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        UniqueConstraint("episode_id", "contestant_id", name="uq_episode_score"),
    )
