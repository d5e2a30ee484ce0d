"""Initial schema: volunteers, compliance items, opportunities, shifts, audit log.

Revision ID: 001
Revises:
Create Date: 2026-03-02
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

volunteer_status = sa.Enum("applicant", "onboarding", "active", "inactive", name="volunteerstatus")
urgency = sa.Enum("low", "medium", "high", name="urgency")
approval_status = sa.Enum("pending", "approved", "rejected", name="approvalstatus")


def upgrade() -> None:
    op.create_table(
        "volunteers",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), server_default=""),
        sa.Column("email", sa.String(255), server_default=""),
        sa.Column("phone", sa.String(50), server_default=""),
        sa.Column("status", volunteer_status, server_default="active"),
        sa.Column("role", sa.String(100), server_default="Core Volunteer"),
        sa.Column("birth_date", sa.Date, nullable=True),
        sa.Column("points", sa.Integer, server_default="0"),
        sa.Column("hours_contributed", sa.Integer, server_default="0"),
        sa.Column("skills", sa.JSON),
        sa.Column("notification_prefs", sa.JSON),
        sa.Column("event_eligibility", sa.JSON),
        sa.Column("rsvped_event_ids", sa.JSON),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_volunteers_status", "volunteers", ["status"])

    op.create_table(
        "compliance_items",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "volunteer_id", UUID(as_uuid=True), sa.ForeignKey("volunteers.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("item_type", sa.String(50), nullable=False),
        sa.Column("label", sa.String(255), server_default=""),
        sa.Column("expires_on", sa.Date, nullable=True),
    )
    op.create_index("ix_compliance_items_volunteer_id", "compliance_items", ["volunteer_id"])
    op.create_index("idx_compliance_expires", "compliance_items", ["expires_on"])

    op.create_table(
        "opportunities",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, server_default=""),
        sa.Column("category", sa.String(100), server_default=""),
        sa.Column("service_location", sa.String(255), server_default=""),
        sa.Column("urgency", urgency, server_default="medium"),
        sa.Column("required_skills", sa.JSON),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approval_status", approval_status, server_default="approved"),
        sa.Column("is_cancelled", sa.Boolean, server_default=sa.false()),
        sa.Column("created_by", sa.String(36), nullable=True),
        sa.Column("rsvps", sa.JSON),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_opportunities_starts", "opportunities", ["starts_at"])
    op.create_index("idx_opportunities_created", "opportunities", ["created_at"])

    op.create_table(
        "shifts",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "opportunity_id",
            UUID(as_uuid=True),
            sa.ForeignKey("opportunities.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role_type", sa.String(100), server_default=""),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("slots_total", sa.Integer, server_default="0"),
        sa.Column("assigned_volunteer_ids", sa.JSON),
    )
    op.create_index("ix_shifts_opportunity_id", "shifts", ["opportunity_id"])
    op.create_index("idx_shifts_starts", "shifts", ["starts_at"])
    op.create_index("idx_shifts_ends", "shifts", ["ends_at"])

    op.create_table(
        "audit_logs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("actor", sa.String(50), nullable=False, server_default="admin"),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("detail", sa.Text, server_default=""),
        sa.Column("ip_address", sa.String(45), server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("shifts")
    op.drop_table("opportunities")
    op.drop_table("compliance_items")
    op.drop_table("volunteers")
    approval_status.drop(op.get_bind(), checkfirst=True)
    urgency.drop(op.get_bind(), checkfirst=True)
    volunteer_status.drop(op.get_bind(), checkfirst=True)
