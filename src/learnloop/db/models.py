"""ORM models for the submission pipeline.

Topics and problems are owned by the curriculum service; only the problem
stats columns are written from here.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from learnloop.db.base import Base


def new_id() -> str:
    """Primary key generator shared by all tables."""
    return str(uuid.uuid4())


def is_valid_id(value: str) -> bool:
    """True when value can be bound to a UUID key column."""
    try:
        uuid.UUID(value)
    except (ValueError, AttributeError, TypeError):
        return False
    return True


# ---------------------------------------------------------------------------
# Curriculum (read-mostly)
# ---------------------------------------------------------------------------


class Topic(Base):
    """Leaf node of the curriculum tree that problems and progress hang off."""

    __tablename__ = "topics"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Problem(Base):
    """A gradable problem. `answer` is the canonical answer as stored JSON."""

    __tablename__ = "problems"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=new_id)
    topic_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("topics.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False, server_default="")
    type: Mapped[str] = mapped_column(String(32), nullable=False, server_default="multiple_choice")
    difficulty: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
    answer: Mapped[Any] = mapped_column(JSONB, nullable=False)
    solve_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    correct_rate: Mapped[float] = mapped_column(Float, nullable=False, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Attempts
# ---------------------------------------------------------------------------


class Attempt(Base):
    """One submission. Never updated after insert; resubmissions add rows."""

    __tablename__ = "user_problem_attempts"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "problem_id", "attempt_number",
            name="user_problem_attempts_user_problem_number_key",
        ),
        Index("ix_user_problem_attempts_user_created", "user_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    problem_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("problems.id", ondelete="CASCADE"), nullable=False, index=True
    )
    submitted_answer: Mapped[Any] = mapped_column(JSONB, nullable=True)
    # NULL means ungraded (needs a human reviewer)
    is_correct: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    time_taken: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


class Progress(Base):
    """Per-(user, topic) mastery counters."""

    __tablename__ = "user_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "topic_id", name="user_progress_user_id_topic_id_key"),
    )

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    topic_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("topics.id", ondelete="CASCADE"), nullable=False
    )
    problems_solved: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    correct_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    mastery_level: Mapped[float] = mapped_column(Float, nullable=False, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Gamification
# ---------------------------------------------------------------------------


class AccountStats(Base):
    """Denormalized account summary, one row per user.

    `updated_at` doubles as the last active day for streak arithmetic.
    """

    __tablename__ = "user_stats"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    total_xp: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    level: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    total_problems_solved: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    total_study_time: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class AchievementDefinition(Base):
    """Configured achievement with a JSON threshold condition."""

    __tablename__ = "achievements"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    icon_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    condition: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, server_default="{}")
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class AchievementGrant(Base):
    """A user's earned achievement. At most one per (user, achievement)."""

    __tablename__ = "user_achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_id", name="user_achievements_user_id_achievement_id_key"),
    )

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    achievement_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("achievements.id", ondelete="CASCADE"), nullable=False
    )
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
