"""FITPEAK schema: users, profiles, relationships, messaging, groups, recruitments.

Revision ID: 001_fitpeak_schema
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_fitpeak_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users & profiles ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id VARCHAR(36) PRIMARY KEY,
            email VARCHAR(320) UNIQUE,
            email_confirmed BOOLEAN NOT NULL DEFAULT false,
            line_user_id VARCHAR(64),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            last_login TIMESTAMPTZ
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_users_email_lower ON users(lower(email))")

    op.execute("""
        CREATE TABLE IF NOT EXISTS profiles (
            id VARCHAR(36) PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            username VARCHAR(64),
            nickname VARCHAR(64),
            bio TEXT,
            avatar_url TEXT,
            header_url TEXT,
            prefecture VARCHAR(16),
            home_gym VARCHAR(128),
            gender VARCHAR(16),
            birthday DATE,
            goal TEXT,
            training_years INTEGER,
            bench_press_max DOUBLE PRECISION,
            squat_max DOUBLE PRECISION,
            deadlift_max DOUBLE PRECISION,
            big3_total DOUBLE PRECISION,
            exercises JSONB,
            achievements JSONB,
            certifications JSONB,
            is_age_public BOOLEAN NOT NULL DEFAULT true,
            is_prefecture_public BOOLEAN NOT NULL DEFAULT true,
            is_home_gym_public BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_profiles_prefecture ON profiles(prefecture)")

    # --- Relationships ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS follows (
            follower_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            following_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (follower_id, following_id),
            CONSTRAINT ck_follows_no_self CHECK (follower_id <> following_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_follows_following ON follows(following_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS blocks (
            blocker_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            blocked_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (blocker_id, blocked_id),
            CONSTRAINT ck_blocks_no_self CHECK (blocker_id <> blocked_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_blocks_blocked ON blocks(blocked_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS reports (
            id BIGSERIAL PRIMARY KEY,
            reporter_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            target_id VARCHAR(36) NOT NULL,
            type VARCHAR(16) NOT NULL,
            reason TEXT NOT NULL,
            details TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Messaging ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS conversations (
            id VARCHAR(36) PRIMARY KEY,
            kind VARCHAR(16) NOT NULL DEFAULT 'direct',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_conversations_kind CHECK (kind IN ('direct', 'group', 'recruitment'))
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS conversation_participants (
            conversation_id VARCHAR(36) NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
            user_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            joined_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            last_read_at TIMESTAMPTZ,
            PRIMARY KEY (conversation_id, user_id)
        )
    """)
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_conversation_participants_user ON conversation_participants(user_id)"
    )
    op.execute("""
        CREATE TABLE IF NOT EXISTS messages (
            id VARCHAR(36) PRIMARY KEY,
            conversation_id VARCHAR(36) NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
            sender_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            content TEXT NOT NULL,
            message_type VARCHAR(16) NOT NULL DEFAULT 'text',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_messages_conversation_created ON messages(conversation_id, created_at)"
    )

    # --- Groups ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS groups (
            id VARCHAR(36) PRIMARY KEY,
            name VARCHAR(64) NOT NULL,
            description TEXT,
            category VARCHAR(32),
            prefecture VARCHAR(16),
            created_by VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            is_private BOOLEAN NOT NULL DEFAULT false,
            chat_room_id VARCHAR(36) REFERENCES conversations(id) ON DELETE SET NULL,
            header_url TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_groups_chat_room_id ON groups(chat_room_id)")
    op.execute("""
        CREATE TABLE IF NOT EXISTS group_members (
            group_id VARCHAR(36) NOT NULL REFERENCES groups(id) ON DELETE CASCADE,
            user_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            joined_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (group_id, user_id)
        )
    """)

    # --- Recruitments ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS recruitments (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            title VARCHAR(128) NOT NULL,
            description TEXT,
            target_body_part VARCHAR(32),
            event_date TIMESTAMPTZ NOT NULL,
            deadline_at TIMESTAMPTZ,
            location VARCHAR(256),
            level VARCHAR(16),
            status VARCHAR(16) NOT NULL DEFAULT 'open',
            chat_room_id VARCHAR(36) REFERENCES conversations(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_recruitments_status_created ON recruitments(status, created_at)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_recruitments_chat_room_id ON recruitments(chat_room_id)")
    op.execute("""
        CREATE TABLE IF NOT EXISTS recruitment_participants (
            recruitment_id VARCHAR(36) NOT NULL REFERENCES recruitments(id) ON DELETE CASCADE,
            user_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (recruitment_id, user_id)
        )
    """)

    # --- Notifications ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            sender_id VARCHAR(36) REFERENCES users(id) ON DELETE SET NULL,
            type VARCHAR(16) NOT NULL,
            content TEXT NOT NULL,
            link VARCHAR(256),
            is_read BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_notifications_user_read_created
        ON notifications(user_id, is_read, created_at)
    """)

    # --- Storage ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS storage_buckets (
            name VARCHAR(64) PRIMARY KEY,
            public BOOLEAN NOT NULL DEFAULT true,
            file_size_limit INTEGER NOT NULL,
            allowed_mime_types JSONB NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS storage_buckets CASCADE")
    op.execute("DROP TABLE IF EXISTS notifications CASCADE")
    op.execute("DROP TABLE IF EXISTS recruitment_participants CASCADE")
    op.execute("DROP TABLE IF EXISTS recruitments CASCADE")
    op.execute("DROP TABLE IF EXISTS group_members CASCADE")
    op.execute("DROP TABLE IF EXISTS groups CASCADE")
    op.execute("DROP TABLE IF EXISTS messages CASCADE")
    op.execute("DROP TABLE IF EXISTS conversation_participants CASCADE")
    op.execute("DROP TABLE IF EXISTS conversations CASCADE")
    op.execute("DROP TABLE IF EXISTS reports CASCADE")
    op.execute("DROP TABLE IF EXISTS blocks CASCADE")
    op.execute("DROP TABLE IF EXISTS follows CASCADE")
    op.execute("DROP TABLE IF EXISTS profiles CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
