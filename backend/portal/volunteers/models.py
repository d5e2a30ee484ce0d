"""Volunteer and compliance models."""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database.base import Base


class VolunteerStatus(enum.StrEnum):
    APPLICANT = "applicant"
    ONBOARDING = "onboarding"
    ACTIVE = "active"
    INACTIVE = "inactive"


class Volunteer(Base):
    __tablename__ = "volunteers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), default="")
    email = Column(String(255), default="")
    phone = Column(String(50), default="")  # raw, see service.normalize_phone
    status = Column(
        SQLEnum(VolunteerStatus, values_callable=lambda e: [s.value for s in e]),
        default=VolunteerStatus.ACTIVE,
    )
    role = Column(String(100), default="Core Volunteer")
    birth_date = Column(Date, nullable=True)

    # Gamification
    points = Column(Integer, default=0)
    hours_contributed = Column(Integer, default=0)

    skills = Column(JSON, default=list)
    # emailAlerts / smsAlerts / opportunityUpdates / trainingReminders / eventInvitations
    notification_prefs = Column(JSON, default=dict)
    # canDeployCore / streetMedicineGate / clinicGate / ... / qualifiedEventTypes
    event_eligibility = Column(JSON, default=dict)
    rsvped_event_ids = Column(JSON, default=list)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    compliance_items = relationship(
        "ComplianceItem", back_populates="volunteer", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("idx_volunteers_status", "status"),)


class ComplianceItem(Base):
    """A compliance step with an expiry (background check, license, DEA, ...)."""

    __tablename__ = "compliance_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    volunteer_id = Column(
        UUID(as_uuid=True),
        ForeignKey("volunteers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    item_type = Column(String(50), nullable=False)  # backgroundCheck, licenseExpiration, ...
    label = Column(String(255), default="")
    expires_on = Column(Date, nullable=True)

    volunteer = relationship("Volunteer", back_populates="compliance_items")

    __table_args__ = (Index("idx_compliance_expires", "expires_on"),)
