"""create_operations_tables

Revision ID: 4b1f6c2a9d10
Revises:
Create Date: 2025-01-15 00:00:00.000000+00:00

"""

from alembic import op
import sqlalchemy as sa
import sqlmodel


# revision identifiers, used by Alembic.
revision = "4b1f6c2a9d10"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "system_settings",
        sa.Column("setting_key", sa.String(length=100), nullable=False),
        sa.Column("setting_value", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("updated_by", sa.String(length=100), nullable=True),
        sa.PrimaryKeyConstraint("setting_key"),
    )

    op.create_table(
        "backup_log",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("filename", sa.String(length=255), nullable=False),
        sa.Column("file_path", sa.Text(), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("backup_type", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("triggered_by", sa.String(length=100), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="completed"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_backup_log_created_at", "backup_log", ["created_at"])

    op.create_table(
        "public_chat_sessions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("session_id", sa.String(length=64), nullable=False),
        sa.Column("visitor_name", sa.String(length=255), nullable=True),
        sa.Column("visitor_email", sa.String(length=255), nullable=True),
        sa.Column("visitor_phone", sa.String(length=50), nullable=True),
        sa.Column("visitor_department", sa.String(length=255), nullable=True),
        sa.Column("session_data", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="waiting"),
        sa.Column("assigned_to", sa.String(length=100), nullable=True),
        sa.Column("queue_position", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("ended_at", sa.DateTime(), nullable=True),
        sa.Column("last_activity", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id"),
    )
    op.create_index(
        "ix_public_chat_sessions_status_created",
        "public_chat_sessions",
        ["status", "created_at"],
    )

    op.create_table(
        "public_chat_messages",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("session_id", sa.String(length=64), nullable=False),
        sa.Column("sender_type", sa.String(length=20), nullable=False),
        sa.Column("sender_id", sa.String(length=100), nullable=True),
        sa.Column("message_text", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_public_chat_messages_session_id",
        "public_chat_messages",
        ["session_id"],
    )

    op.create_table(
        "public_chat_sessions_archive",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("session_id", sa.String(length=64), nullable=False),
        sa.Column("visitor_name", sa.String(length=255), nullable=True),
        sa.Column("visitor_email", sa.String(length=255), nullable=True),
        sa.Column("visitor_phone", sa.String(length=50), nullable=True),
        sa.Column("visitor_department", sa.String(length=255), nullable=True),
        sa.Column("session_data", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("assigned_to", sa.String(length=100), nullable=True),
        sa.Column("queue_position", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("ended_at", sa.DateTime(), nullable=True),
        sa.Column("archived_at", sa.DateTime(), nullable=False),
        sa.Column("message_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id"),
    )

    op.create_table(
        "chat_cleanup_stats",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("cleanup_date", sa.Date(), nullable=False),
        sa.Column("abandoned_sessions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("orphaned_messages", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("stale_presence", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("expired_recovery", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("archived_sessions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_items_cleaned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cleanup_duration_ms", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("cleanup_date", name="uq_chat_cleanup_stats_date"),
    )

    op.create_table(
        "user_presence",
        sa.Column("user_id", sa.String(length=100), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="online"),
        sa.Column("last_active", sa.DateTime(), nullable=False),
        sa.Column("status_message", sa.String(length=255), nullable=True),
        sa.Column("is_manual", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
    )
    op.create_index("ix_user_presence_status", "user_presence", ["status"])

    op.create_table(
        "ticket_sequences",
        sa.Column("team_id", sa.String(length=100), nullable=False),
        sa.Column("date", sa.String(length=6), nullable=False),
        sa.Column("last_sequence", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("prefix", sa.String(length=10), nullable=False),
        sa.PrimaryKeyConstraint("team_id", "date"),
    )


def downgrade() -> None:
    op.drop_table("ticket_sequences")
    op.drop_index("ix_user_presence_status", table_name="user_presence")
    op.drop_table("user_presence")
    op.drop_table("chat_cleanup_stats")
    op.drop_table("public_chat_sessions_archive")
    op.drop_index("ix_public_chat_messages_session_id", table_name="public_chat_messages")
    op.drop_table("public_chat_messages")
    op.drop_index("ix_public_chat_sessions_status_created", table_name="public_chat_sessions")
    op.drop_table("public_chat_sessions")
    op.drop_index("ix_backup_log_created_at", table_name="backup_log")
    op.drop_table("backup_log")
    op.drop_table("system_settings")
