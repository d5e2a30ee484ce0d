"""Workflow run log and per-workflow settings."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database.base import Base


class WorkflowRun(Base):
    __tablename__ = "workflow_runs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workflow_id = Column(String(20), nullable=False)
    trigger = Column(String(20), default="scheduled")  # scheduled / startup / endpoint / manual
    status = Column(String(20), default="completed")  # completed / aborted / skipped
    sent = Column(Integer, default=0)
    failed = Column(Integer, default=0)
    skipped = Column(Integer, default=0)
    error = Column(Text, default="")
    started_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    finished_at = Column(DateTime(timezone=True), nullable=True)

    details = relationship(
        "WorkflowRunDetail",
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="WorkflowRunDetail.position",
    )

    __table_args__ = (Index("idx_workflow_runs_wf_started", "workflow_id", "started_at"),)


class WorkflowRunDetail(Base):
    """One processed recipient within a run."""

    __tablename__ = "workflow_run_details"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    run_id = Column(
        UUID(as_uuid=True),
        ForeignKey("workflow_runs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, default=0)
    recipient_id = Column(String(36), default="")
    recipient_name = Column(String(255), default="")
    subject_id = Column(String(120), default="")
    stage = Column(String(50), default="")
    outcome = Column(String(10), nullable=False)  # sent / failed / skipped
    channel = Column(String(10), default="")
    reason = Column(String(50), default="")

    run = relationship("WorkflowRun", back_populates="details")


class WorkflowSetting(Base):
    __tablename__ = "workflow_settings"

    workflow_id = Column(String(20), primary_key=True)
    enabled = Column(Boolean, nullable=False, default=True)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
