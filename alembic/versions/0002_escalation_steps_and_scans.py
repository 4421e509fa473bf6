"""Track escalation steps and reconciliation scans.

Revision ID: 0002_escalation_steps_and_scans
Revises: 0001_support_commitments
Create Date: 2026-10-20 00:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0002_escalation_steps_and_scans"
down_revision = "0001_support_commitments"
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Add the escalation step timestamp and the message scan marker table."""
    op.add_column(
        "support_commitments",
        sa.Column("last_escalation_step_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        "commitment_message_scans",
        sa.Column("message_id", sa.String(length=200), primary_key=True),
        sa.Column("outcome", sa.String(length=20), nullable=False),
        sa.Column("scanned_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    """Drop the scan marker table and escalation step timestamp."""
    op.drop_table("commitment_message_scans")
    op.drop_column("support_commitments", "last_escalation_step_at")
