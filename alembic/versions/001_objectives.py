"""Objectives engine tables.

Creates objective_templates, objective_sets, objective_set_objectives,
objective_progress and user_objective_set_progress. The collaborator tables
the engine reads from (users, reward_packs, pack_opens, user_monsters,
user_gameweek_scores, gameweek_entries, market_transactions) are created only
if the host schema does not already have them.

Revision ID: 001_objectives
Revises:
Create Date: 2026-10-16
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_objectives"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Collaborator tables ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            email VARCHAR(320) UNIQUE,
            username VARCHAR(64),
            coins BIGINT NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS reward_packs (
            id VARCHAR(36) PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            pack_id VARCHAR(64) NOT NULL,
            source_type VARCHAR(32) NOT NULL,
            source_ref VARCHAR(64),
            is_opened BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS pack_opens (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            pack_type VARCHAR(32) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_monsters (
            id VARCHAR(36) PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            template_code VARCHAR(64) NOT NULL,
            rarity VARCHAR(16) NOT NULL,
            is_consumed BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_gameweek_scores (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            gameweek_id INTEGER NOT NULL,
            points INTEGER NOT NULL DEFAULT 0,
            CONSTRAINT user_gameweek_scores_user_id_gameweek_id_key UNIQUE (user_id, gameweek_id)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS gameweek_entries (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            gameweek_id INTEGER NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS market_transactions (
            id BIGSERIAL PRIMARY KEY,
            buyer_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            seller_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            price INTEGER NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Objective catalog ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS objective_templates (
            id VARCHAR(36) PRIMARY KEY,
            code VARCHAR(64) UNIQUE NOT NULL,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            category VARCHAR(32),
            period VARCHAR(16) NOT NULL DEFAULT 'season',
            type VARCHAR(64) NOT NULL,
            target_value INTEGER NOT NULL DEFAULT 1 CHECK (target_value > 0),
            reward_type VARCHAR(16) NOT NULL,
            reward_value VARCHAR(64) NOT NULL DEFAULT '',
            is_active BOOLEAN NOT NULL DEFAULT true,
            is_repeatable BOOLEAN NOT NULL DEFAULT false,
            season_code VARCHAR(16),
            sort_order INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_objective_templates_type
        ON objective_templates(type)
        WHERE is_active = true
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS objective_sets (
            id VARCHAR(36) PRIMARY KEY,
            code VARCHAR(64) UNIQUE NOT NULL,
            title VARCHAR(128) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            season_code VARCHAR(16),
            sort_order INTEGER NOT NULL DEFAULT 0,
            reward_type VARCHAR(16) NOT NULL,
            reward_value VARCHAR(64) NOT NULL DEFAULT '',
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS objective_set_objectives (
            id VARCHAR(36) PRIMARY KEY,
            objective_set_id VARCHAR(36) NOT NULL REFERENCES objective_sets(id),
            objective_id VARCHAR(36) NOT NULL REFERENCES objective_templates(id),
            CONSTRAINT objective_set_objectives_objective_set_id_objective_id_key
                UNIQUE (objective_set_id, objective_id)
        )
    """)

    # --- Per-user progress ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS objective_progress (
            id VARCHAR(36) PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            objective_id VARCHAR(36) NOT NULL REFERENCES objective_templates(id),
            current_value INTEGER NOT NULL DEFAULT 0 CHECK (current_value >= 0),
            completed_at TIMESTAMPTZ,
            reward_claimed_at TIMESTAMPTZ,
            last_updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT objective_progress_user_id_objective_id_key UNIQUE (user_id, objective_id),
            CONSTRAINT objective_progress_claim_after_completion
                CHECK (reward_claimed_at IS NULL OR completed_at IS NOT NULL)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_objective_set_progress (
            id VARCHAR(36) PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            objective_set_id VARCHAR(36) NOT NULL REFERENCES objective_sets(id),
            is_completed BOOLEAN NOT NULL DEFAULT false,
            completed_at TIMESTAMPTZ,
            reward_claimed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT user_objective_set_progress_user_id_objective_set_id_key
                UNIQUE (user_id, objective_set_id),
            CONSTRAINT user_objective_set_progress_claim_after_completion
                CHECK (reward_claimed_at IS NULL OR is_completed)
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_objective_set_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS objective_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS objective_set_objectives CASCADE")
    op.execute("DROP TABLE IF EXISTS objective_sets CASCADE")
    op.execute("DROP TABLE IF EXISTS objective_templates CASCADE")
