"""Opportunity (event) and shift models."""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database.base import Base


class ApprovalStatus(enum.StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Urgency(enum.StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Opportunity(Base):
    __tablename__ = "opportunities"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    description = Column(Text, default="")
    category = Column(String(100), default="")
    service_location = Column(String(255), default="")
    urgency = Column(
        SQLEnum(Urgency, values_callable=lambda e: [s.value for s in e]),
        default=Urgency.MEDIUM,
    )
    required_skills = Column(JSON, default=list)

    starts_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=True)

    approval_status = Column(
        SQLEnum(ApprovalStatus, values_callable=lambda e: [s.value for s in e]),
        default=ApprovalStatus.APPROVED,
    )
    is_cancelled = Column(Boolean, default=False)
    created_by = Column(String(36), nullable=True)  # volunteer id of the coordinator
    # Event-level RSVP sub-documents: [{"volunteerId": "...", "name": "...", "rsvpAt": "..."}]
    rsvps = Column(JSON, default=list)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC))

    shifts = relationship("Shift", back_populates="opportunity", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_opportunities_starts", "starts_at"),
        Index("idx_opportunities_created", "created_at"),
    )


class Shift(Base):
    __tablename__ = "shifts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    opportunity_id = Column(
        UUID(as_uuid=True),
        ForeignKey("opportunities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role_type = Column(String(100), default="")
    starts_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=False)
    slots_total = Column(Integer, default=0)
    assigned_volunteer_ids = Column(JSON, default=list)

    opportunity = relationship("Opportunity", back_populates="shifts")

    __table_args__ = (
        Index("idx_shifts_starts", "starts_at"),
        Index("idx_shifts_ends", "ends_at"),
    )
