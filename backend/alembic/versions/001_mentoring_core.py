"""Mentoring core tables (relationships, conversations, messages, goals, goal progress).

Revision ID: 001_mentoring_core
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

revision = "001_mentoring_core"
down_revision = None
branch_labels = None
depends_on = None

OPEN_PAIR_PREDICATE = sa.text("status IN ('pending', 'active')")


def _table_exists(conn, table_name: str) -> bool:
    return sa.inspect(conn).has_table(table_name)


def upgrade() -> None:
    conn = op.get_bind()
    if _table_exists(conn, "mentoring_relationships"):
        return
    op.create_table(
        "mentoring_relationships",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("professional_id", sa.String(), nullable=False, index=True),
        sa.Column("client_id", sa.String(), nullable=False, index=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("ended_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    # At most one pending/active relationship per pair.
    op.create_index(
        "uq_mentoring_relationships_open_pair",
        "mentoring_relationships",
        ["professional_id", "client_id"],
        unique=True,
        postgresql_where=OPEN_PAIR_PREDICATE,
        sqlite_where=OPEN_PAIR_PREDICATE,
    )

    op.create_table(
        "conversations",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column(
            "relationship_id",
            sa.String(),
            sa.ForeignKey("mentoring_relationships.id"),
            nullable=False,
            index=True,
        ),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("last_message_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "messages",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("conversation_id", sa.String(), sa.ForeignKey("conversations.id"), nullable=False),
        sa.Column("sender_id", sa.String(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("message_type", sa.String(16), nullable=False, server_default="text"),
        sa.Column("read_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_messages_conversation_created",
        "messages",
        ["conversation_id", "created_at", "id"],
        unique=False,
    )

    op.create_table(
        "client_goals",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("client_id", sa.String(), nullable=False, index=True),
        sa.Column("professional_id", sa.String(), nullable=True, index=True),
        sa.Column("goal_type", sa.String(32), nullable=False, server_default="custom"),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("target_value", sa.Float(), nullable=True),
        sa.Column("unit", sa.String(), nullable=True),
        sa.Column("target_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("priority", sa.String(16), nullable=False, server_default="medium"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "goal_progress",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("goal_id", sa.String(), sa.ForeignKey("client_goals.id"), nullable=False),
        sa.Column("recorded_by", sa.String(), nullable=False),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("recorded_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_goal_progress_goal_recorded",
        "goal_progress",
        ["goal_id", "recorded_at", "created_at", "id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_goal_progress_goal_recorded", table_name="goal_progress")
    op.drop_table("goal_progress")
    op.drop_table("client_goals")
    op.drop_index("ix_messages_conversation_created", table_name="messages")
    op.drop_table("messages")
    op.drop_table("conversations")
    op.drop_index("uq_mentoring_relationships_open_pair", table_name="mentoring_relationships")
    op.drop_table("mentoring_relationships")
