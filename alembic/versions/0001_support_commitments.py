"""Create support commitment and transition audit tables.

Revision ID: 0001_support_commitments
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_support_commitments"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create support_commitments and commitment_state_transitions."""
    op.create_table(
        "support_commitments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("source_message_id", sa.String(length=200), nullable=True),
        sa.Column("channel_id", sa.String(length=200), nullable=False),
        sa.Column("case_id", sa.String(length=200), nullable=True),
        sa.Column("agent_id", sa.String(length=200), nullable=True),
        sa.Column("agent_name", sa.String(length=200), nullable=True),
        sa.Column("sender_role", sa.String(length=50), nullable=True),
        sa.Column("assignee_id", sa.String(length=200), nullable=True),
        sa.Column("assignee_name", sa.String(length=200), nullable=True),
        sa.Column("commitment_text", sa.Text(), nullable=False),
        sa.Column("message_context", sa.Text(), nullable=True),
        sa.Column(
            "commitment_type",
            sa.Enum("time", "action", "vague", name="commitment_type", native_enum=False),
            nullable=False,
        ),
        sa.Column("is_vague", sa.Boolean(), nullable=False),
        sa.Column("language", sa.String(length=20), nullable=True),
        sa.Column(
            "priority",
            sa.Enum("low", "medium", "high", name="commitment_priority", native_enum=False),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_explicit_deadline", sa.Boolean(), nullable=False),
        sa.Column("reminder_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("escalation_level", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "status",
            sa.Enum(
                "active",
                "overdue",
                "escalated",
                "completed",
                "dismissed",
                "cancelled",
                name="commitment_status",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("escalated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "source_message_id",
            name="uq_support_commitments_source_message_id",
        ),
        sa.CheckConstraint("escalation_level >= 0", name="ck_support_commitments_level"),
        sa.CheckConstraint("deadline > created_at", name="ck_support_commitments_deadline"),
    )
    op.create_index(
        "ix_support_commitments_status_deadline",
        "support_commitments",
        ["status", "deadline"],
        unique=False,
    )
    op.create_index(
        "ix_support_commitments_channel",
        "support_commitments",
        ["channel_id"],
        unique=False,
    )
    op.create_index(
        "ix_support_commitments_assignee",
        "support_commitments",
        ["assignee_id"],
        unique=False,
    )
    op.create_table(
        "commitment_state_transitions",
        sa.Column("transition_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "commitment_id",
            sa.Uuid(),
            sa.ForeignKey("support_commitments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("from_status", sa.String(length=20), nullable=True),
        sa.Column("to_status", sa.String(length=20), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("actor", sa.String(length=50), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("escalation_level", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("context", sa.JSON(), nullable=True),
        sa.Column("transitioned_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_commitment_state_transitions_commitment_time",
        "commitment_state_transitions",
        ["commitment_id", "transitioned_at"],
        unique=False,
    )


def downgrade() -> None:
    """Drop support commitment tables."""
    op.drop_index(
        "ix_commitment_state_transitions_commitment_time",
        table_name="commitment_state_transitions",
    )
    op.drop_table("commitment_state_transitions")
    op.drop_index("ix_support_commitments_assignee", table_name="support_commitments")
    op.drop_index("ix_support_commitments_channel", table_name="support_commitments")
    op.drop_index("ix_support_commitments_status_deadline", table_name="support_commitments")
    op.drop_table("support_commitments")
