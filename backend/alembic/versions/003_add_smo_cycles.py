"""Add smo_cycles table.

Revision ID: 003
Revises: 002
Create Date: 2026-03-16
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "003"
down_revision: str | None = "002"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

smo_status = sa.Enum("registration_open", "training_complete", "event_day", "completed", name="smostatus")


def upgrade() -> None:
    op.create_table(
        "smo_cycles",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("service_date", sa.Date, nullable=False, unique=True),
        sa.Column("training_date", sa.Date, nullable=False),
        sa.Column("status", smo_status, nullable=False, server_default="registration_open"),
        sa.Column("registered_volunteers", sa.JSON),
        sa.Column("waitlist", sa.JSON),
        sa.Column("thursday_attendees", sa.JSON),
        sa.Column("self_reported", sa.JSON),
        sa.Column("lead_confirmed", sa.JSON),
        sa.Column("removed_volunteers", sa.JSON),
        sa.Column("promoted_volunteers", sa.JSON),
        sa.Column("training_event_id", sa.String(36), nullable=True),
        sa.Column("service_event_id", sa.String(36), nullable=True),
        sa.Column("enforced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
    )


def downgrade() -> None:
    op.drop_table("smo_cycles")
    smo_status.drop(op.get_bind(), checkfirst=True)
