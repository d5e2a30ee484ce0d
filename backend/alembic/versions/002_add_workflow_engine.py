"""Add notification ledger, workflow runs and workflow settings.

Revision ID: 002
Revises: 001
Create Date: 2026-03-09
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "notification_logs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("dedup_key", sa.String(255), nullable=False, unique=True),
        sa.Column("recipient_id", sa.String(36), nullable=False),
        sa.Column("subject_id", sa.String(120), nullable=False),
        sa.Column("stage", sa.String(50), nullable=False),
        sa.Column("workflow_id", sa.String(20), server_default=""),
        sa.Column("channel", sa.String(10), server_default=""),
        sa.Column("sent_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_notif_recipient_subject", "notification_logs", ["recipient_id", "subject_id"])

    op.create_table(
        "workflow_runs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("workflow_id", sa.String(20), nullable=False),
        sa.Column("trigger", sa.String(20), server_default="scheduled"),
        sa.Column("status", sa.String(20), server_default="completed"),
        sa.Column("sent", sa.Integer, server_default="0"),
        sa.Column("failed", sa.Integer, server_default="0"),
        sa.Column("skipped", sa.Integer, server_default="0"),
        sa.Column("error", sa.Text, server_default=""),
        sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_workflow_runs_wf_started", "workflow_runs", ["workflow_id", "started_at"])

    op.create_table(
        "workflow_run_details",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "run_id", UUID(as_uuid=True), sa.ForeignKey("workflow_runs.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("position", sa.Integer, server_default="0"),
        sa.Column("recipient_id", sa.String(36), server_default=""),
        sa.Column("recipient_name", sa.String(255), server_default=""),
        sa.Column("subject_id", sa.String(120), server_default=""),
        sa.Column("stage", sa.String(50), server_default=""),
        sa.Column("outcome", sa.String(10), nullable=False),
        sa.Column("channel", sa.String(10), server_default=""),
        sa.Column("reason", sa.String(50), server_default=""),
    )
    op.create_index("ix_workflow_run_details_run_id", "workflow_run_details", ["run_id"])

    op.create_table(
        "workflow_settings",
        sa.Column("workflow_id", sa.String(20), primary_key=True),
        sa.Column("enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("workflow_settings")
    op.drop_table("workflow_run_details")
    op.drop_table("workflow_runs")
    op.drop_index("idx_notif_recipient_subject", table_name="notification_logs")
    op.drop_table("notification_logs")
