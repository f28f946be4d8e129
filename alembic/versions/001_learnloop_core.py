"""Core tables for the attempt submission pipeline.

Creates topics and problems (owned by the curriculum service, created here
if absent so the service can run standalone), user_problem_attempts,
user_progress, user_stats, achievements, and user_achievements.

Revision ID: 001_learnloop_core
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_learnloop_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Curriculum ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS topics (
            id UUID PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            deleted_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS problems (
            id UUID PRIMARY KEY,
            topic_id UUID NOT NULL REFERENCES topics(id) ON DELETE CASCADE,
            content TEXT NOT NULL DEFAULT '',
            type VARCHAR(32) NOT NULL DEFAULT 'multiple_choice',
            difficulty INTEGER NOT NULL DEFAULT 1,
            answer JSONB NOT NULL,
            solve_count INTEGER NOT NULL DEFAULT 0,
            correct_rate DOUBLE PRECISION NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            deleted_at TIMESTAMPTZ
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_problems_topic_id ON problems(topic_id)")

    # --- Attempts ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_problem_attempts (
            id UUID PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            problem_id UUID NOT NULL REFERENCES problems(id) ON DELETE CASCADE,
            submitted_answer JSONB,
            is_correct BOOLEAN,
            time_taken INTEGER NOT NULL DEFAULT 0 CHECK (time_taken >= 0),
            attempt_number INTEGER NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            deleted_at TIMESTAMPTZ,
            CONSTRAINT user_problem_attempts_user_problem_number_key
                UNIQUE (user_id, problem_id, attempt_number)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_user_problem_attempts_user_created
        ON user_problem_attempts(user_id, created_at)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_user_problem_attempts_problem_id
        ON user_problem_attempts(problem_id)
    """)

    # --- Progress ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_progress (
            id UUID PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            topic_id UUID NOT NULL REFERENCES topics(id) ON DELETE CASCADE,
            problems_solved INTEGER NOT NULL DEFAULT 0,
            correct_count INTEGER NOT NULL DEFAULT 0,
            mastery_level DOUBLE PRECISION NOT NULL DEFAULT 0
                CHECK (mastery_level >= 0 AND mastery_level <= 1),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            deleted_at TIMESTAMPTZ,
            UNIQUE (user_id, topic_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_progress_user_id ON user_progress(user_id)")

    # --- Account stats ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_stats (
            id UUID PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL UNIQUE,
            total_xp INTEGER NOT NULL DEFAULT 0,
            level INTEGER NOT NULL DEFAULT 1,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            total_problems_solved INTEGER NOT NULL DEFAULT 0,
            total_study_time INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            deleted_at TIMESTAMPTZ
        )
    """)

    # --- Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id UUID PRIMARY KEY,
            name VARCHAR(128) NOT NULL UNIQUE,
            description TEXT NOT NULL,
            icon_url VARCHAR(512),
            condition JSONB NOT NULL DEFAULT '{}',
            xp_reward INTEGER NOT NULL DEFAULT 0 CHECK (xp_reward >= 0),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            deleted_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            id UUID PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            achievement_id UUID NOT NULL REFERENCES achievements(id) ON DELETE CASCADE,
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            deleted_at TIMESTAMPTZ,
            UNIQUE (user_id, achievement_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_achievements_user_id ON user_achievements(user_id)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_achievements")
    op.execute("DROP TABLE IF EXISTS achievements")
    op.execute("DROP TABLE IF EXISTS user_stats")
    op.execute("DROP TABLE IF EXISTS user_progress")
    op.execute("DROP TABLE IF EXISTS user_problem_attempts")
    # topics/problems belong to the curriculum service; left in place
