"""Engagement schema.

Creates users, tasks, completions/history, the XP ledger, transactions,
staking, predictions and the auxiliary profile tables, plus the three
leaderboard views.

Revision ID: 001_engagement_schema
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_engagement_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_LEADERBOARD_VIEWS = {
    "leaderboard_daily": "AND p.timestamp > NOW() - INTERVAL '24 hours'",
    "leaderboard_weekly": "AND p.timestamp > NOW() - INTERVAL '7 days'",
    "leaderboard_alltime": "",
}


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id SERIAL PRIMARY KEY,
            wallet_address VARCHAR(42) UNIQUE NOT NULL,
            username VARCHAR(50) NOT NULL,
            bio TEXT,
            occupation VARCHAR(100),
            quote TEXT,
            preferred_assets JSONB,
            trading_type VARCHAR(20),
            email VARCHAR(100),
            email_verified BOOLEAN DEFAULT false,
            xp INTEGER NOT NULL DEFAULT 0 CHECK (xp >= 0),
            level INTEGER NOT NULL DEFAULT 1 CHECK (level >= 1),
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_users_xp ON users(xp DESC)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS social_connections (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            platform VARCHAR(20) NOT NULL,
            platform_user_id VARCHAR(100) NOT NULL,
            username VARCHAR(100),
            connected_at TIMESTAMPTZ DEFAULT NOW(),
            is_active BOOLEAN DEFAULT true,
            CONSTRAINT uq_social_user_platform UNIQUE (user_id, platform)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS email_verification_tokens (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            email VARCHAR(100) NOT NULL,
            token VARCHAR(100) UNIQUE NOT NULL,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            expires_at TIMESTAMPTZ,
            is_used BOOLEAN DEFAULT false
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id SERIAL PRIMARY KEY,
            title VARCHAR(100) NOT NULL,
            description TEXT NOT NULL,
            icon_url TEXT,
            category VARCHAR(50),
            xp_reward INTEGER,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            achievement_id INTEGER NOT NULL REFERENCES achievements(id) ON DELETE CASCADE,
            earned_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_user_achievement UNIQUE (user_id, achievement_id)
        )
    """)

    # --- Tasks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS tasks (
            id SERIAL PRIMARY KEY,
            title VARCHAR(100) NOT NULL,
            description TEXT NOT NULL,
            xp INTEGER NOT NULL CHECK (xp > 0),
            difficulty VARCHAR(20) NOT NULL,
            task_type VARCHAR(50) NOT NULL,
            requires_verification BOOLEAN DEFAULT false,
            is_repeatable BOOLEAN DEFAULT false,
            repeat_cooldown_hours INTEGER,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_task_completions (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
            completed_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            verification_data JSONB,
            CONSTRAINT uq_user_task_completion UNIQUE (user_id, task_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_completions_completed
        ON user_task_completions(completed_at DESC)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_task_history (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
            completed_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            xp_earned INTEGER NOT NULL
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_task_history_user_task
        ON user_task_history(user_id, task_id)
    """)

    # --- XP ledger (append-only) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS xp_transactions (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            amount INTEGER NOT NULL,
            source VARCHAR(50) NOT NULL,
            source_id INTEGER,
            description TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_xp_transactions_user ON xp_transactions(user_id)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_xp_transactions_created ON xp_transactions(created_at DESC)")

    # --- Transactions / staking ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS transactions (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            transaction_type VARCHAR(50) NOT NULL,
            transaction_hash VARCHAR(66) UNIQUE,
            amount NUMERIC(20, 10),
            token_symbol VARCHAR(10),
            status VARCHAR(20) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            completed_at TIMESTAMPTZ,
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_transactions_user_created
        ON transactions(user_id, created_at DESC)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS staking (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            transaction_id INTEGER NOT NULL REFERENCES transactions(id) ON DELETE CASCADE,
            amount NUMERIC(20, 10) NOT NULL,
            token_symbol VARCHAR(10) NOT NULL,
            apr NUMERIC(5, 2),
            lock_period_days INTEGER,
            start_date TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            end_date TIMESTAMPTZ,
            is_active BOOLEAN DEFAULT true
        )
    """)

    # --- Predictions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS predictions (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            prediction_type VARCHAR(50) NOT NULL,
            asset_symbol VARCHAR(20) NOT NULL,
            prediction_value NUMERIC(20, 10),
            prediction_direction VARCHAR(10),
            timestamp TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            outcome VARCHAR(20),
            points_earned INTEGER
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_predictions_user_time
        ON predictions(user_id, timestamp DESC)
    """)

    # --- Leaderboard views ---
    # Same ordering as the application's ranking query: XP, then signup time, then id.
    for view, window in _LEADERBOARD_VIEWS.items():
        op.execute(f"""
            CREATE OR REPLACE VIEW {view} AS
            SELECT
                u.id,
                u.wallet_address,
                u.username,
                u.level,
                u.xp,
                COUNT(p.id) AS predictions_count,
                COALESCE(SUM(CASE WHEN p.outcome = 'correct' THEN 1 ELSE 0 END), 0) AS correct_predictions,
                ROW_NUMBER() OVER (ORDER BY u.xp DESC, u.created_at ASC, u.id ASC) AS rank
            FROM users u
            LEFT JOIN predictions p ON p.user_id = u.id {window}
            GROUP BY u.id
        """)  # noqa: S608


def downgrade() -> None:
    for view in _LEADERBOARD_VIEWS:
        op.execute(f"DROP VIEW IF EXISTS {view}")
    for table in [
        "predictions",
        "staking",
        "transactions",
        "xp_transactions",
        "user_task_history",
        "user_task_completions",
        "tasks",
        "user_achievements",
        "achievements",
        "email_verification_tokens",
        "social_connections",
        "users",
    ]:
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")  # noqa: S608
