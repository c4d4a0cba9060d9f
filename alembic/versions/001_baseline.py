"""Baseline schema: users, runs, ledger, fraud flags, contests, hourly challenges.

Revision ID: 001_baseline
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_baseline"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            auth_subject VARCHAR(128) UNIQUE NOT NULL,
            email VARCHAR(320),
            username VARCHAR(16),
            balance_cents BIGINT NOT NULL DEFAULT 0 CHECK (balance_cents >= 0),
            last_withdrawal_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS idx_users_username_lower
        ON users(LOWER(username))
    """)

    # --- Runs ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS runs (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            score BIGINT NOT NULL,
            distance BIGINT NOT NULL,
            duration_ms BIGINT NOT NULL,
            client_version VARCHAR(32),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_runs_user_created ON runs(user_id, created_at)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_runs_created_score ON runs(created_at, score)")

    # --- Balance ledger ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS balance_transactions (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            amount_cents BIGINT NOT NULL,
            type VARCHAR(32) NOT NULL,
            reference_id VARCHAR(64),
            description TEXT NOT NULL DEFAULT '',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_balance_tx_user_created
        ON balance_transactions(user_id, created_at)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_balance_tx_type_reference
        ON balance_transactions(type, reference_id)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS withdrawals (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            amount_cents BIGINT NOT NULL,
            payment_method VARCHAR(32) NOT NULL,
            contact_info JSONB NOT NULL DEFAULT '{}',
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            submitted_at TIMESTAMPTZ NOT NULL,
            reviewed_at TIMESTAMPTZ,
            reviewed_by VARCHAR(320),
            notes TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_withdrawals_user ON withdrawals(user_id)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_withdrawals_status ON withdrawals(status)")

    # --- Fraud flags ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS fraud_flags (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            flag_type VARCHAR(32) NOT NULL,
            severity INTEGER NOT NULL CHECK (severity > 0),
            reference_id VARCHAR(64),
            metadata JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_fraud_flags_user_created
        ON fraud_flags(user_id, created_at)
    """)

    # --- Contests ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS contests (
            id SERIAL PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            slug VARCHAR(128) UNIQUE NOT NULL,
            description TEXT,
            start_date TIMESTAMPTZ NOT NULL,
            end_date TIMESTAMPTZ NOT NULL,
            contest_timezone VARCHAR(64) NOT NULL DEFAULT 'UTC',
            status VARCHAR(16) NOT NULL DEFAULT 'upcoming',
            prize_pool JSONB,
            rules JSONB,
            max_entries_per_user INTEGER NOT NULL DEFAULT 999,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_contests_status ON contests(status)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS contest_entries (
            id BIGSERIAL PRIMARY KEY,
            contest_id INTEGER NOT NULL REFERENCES contests(id) ON DELETE CASCADE,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            run_id BIGINT NOT NULL REFERENCES runs(id) ON DELETE CASCADE,
            score BIGINT NOT NULL,
            distance BIGINT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT contest_entries_contest_run_key UNIQUE (contest_id, run_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_contest_entries_contest_user
        ON contest_entries(contest_id, user_id)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS prize_claims (
            id BIGSERIAL PRIMARY KEY,
            contest_id INTEGER NOT NULL REFERENCES contests(id) ON DELETE CASCADE,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            rank INTEGER NOT NULL,
            prize_description TEXT NOT NULL,
            claim_status VARCHAR(16) NOT NULL DEFAULT 'pending',
            contact_info JSONB,
            submitted_at TIMESTAMPTZ,
            reviewed_at TIMESTAMPTZ,
            reviewed_by VARCHAR(320),
            notes TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_prize_claims_contest_user
        ON prize_claims(contest_id, user_id)
    """)

    # --- Hourly challenges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS hourly_challenges (
            id BIGSERIAL PRIMARY KEY,
            challenge_hour TIMESTAMPTZ NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            winner_user_id BIGINT REFERENCES users(id),
            winner_run_id BIGINT REFERENCES runs(id),
            winner_score BIGINT,
            winner_distance BIGINT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            ended_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_hourly_challenges_hour
        ON hourly_challenges(challenge_hour)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS hourly_challenges CASCADE")
    op.execute("DROP TABLE IF EXISTS prize_claims CASCADE")
    op.execute("DROP TABLE IF EXISTS contest_entries CASCADE")
    op.execute("DROP TABLE IF EXISTS contests CASCADE")
    op.execute("DROP TABLE IF EXISTS fraud_flags CASCADE")
    op.execute("DROP TABLE IF EXISTS withdrawals CASCADE")
    op.execute("DROP TABLE IF EXISTS balance_transactions CASCADE")
    op.execute("DROP TABLE IF EXISTS runs CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
