"""Badges, shares, continue tokens and unique keys for settlement writes.

Revision ID: 002_badges_shares
Revises: 001_baseline
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002_badges_shares"
down_revision: str | None = "001_baseline"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Badges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS badges (
            id SERIAL PRIMARY KEY,
            slug VARCHAR(64) UNIQUE NOT NULL,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            emoji VARCHAR(16) NOT NULL,
            category VARCHAR(32) NOT NULL,
            tier VARCHAR(16) NOT NULL,
            requirement_type VARCHAR(32) NOT NULL,
            requirement_value BIGINT NOT NULL,
            sort_order INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_badges (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            badge_id INTEGER NOT NULL REFERENCES badges(id) ON DELETE CASCADE,
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT user_badges_user_badge_key UNIQUE (user_id, badge_id)
        )
    """)
    op.execute("""
        ALTER TABLE users
            ADD COLUMN IF NOT EXISTS continue_tokens INTEGER NOT NULL DEFAULT 0,
            ADD COLUMN IF NOT EXISTS featured_badge VARCHAR(64)
                REFERENCES badges(slug) ON DELETE SET NULL
    """)

    # --- Shares ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS shares (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            run_id BIGINT REFERENCES runs(id) ON DELETE SET NULL,
            score BIGINT,
            platform VARCHAR(32) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_shares_user ON shares(user_id)")

    # --- Settlement keys ---
    op.execute("DROP INDEX IF EXISTS idx_prize_claims_contest_user")
    op.execute("""
        ALTER TABLE prize_claims
            ADD CONSTRAINT prize_claims_contest_user_key UNIQUE (contest_id, user_id)
    """)
    op.execute("DROP INDEX IF EXISTS idx_hourly_challenges_hour")
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_hourly_challenges_hour
        ON hourly_challenges(challenge_hour)
    """)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_balance_tx_hourly_reward
        ON balance_transactions(reference_id)
        WHERE type = 'hourly_challenge'
    """)


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS uq_balance_tx_hourly_reward")
    op.execute("DROP INDEX IF EXISTS uq_hourly_challenges_hour")
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_hourly_challenges_hour
        ON hourly_challenges(challenge_hour)
    """)
    op.execute("ALTER TABLE prize_claims DROP CONSTRAINT IF EXISTS prize_claims_contest_user_key")
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_prize_claims_contest_user
        ON prize_claims(contest_id, user_id)
    """)
    op.execute("DROP TABLE IF EXISTS shares CASCADE")
    op.execute("ALTER TABLE users DROP COLUMN IF EXISTS featured_badge")
    op.execute("ALTER TABLE users DROP COLUMN IF EXISTS continue_tokens")
    op.execute("DROP TABLE IF EXISTS user_badges CASCADE")
    op.execute("DROP TABLE IF EXISTS badges CASCADE")
