"""Street Medicine Outreach (SMO) monthly cycle model."""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import JSON, Column, Date, DateTime, Integer, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID

from ..database.base import Base


class SMOStatus(enum.StrEnum):
    REGISTRATION_OPEN = "registration_open"
    TRAINING_COMPLETE = "training_complete"
    EVENT_DAY = "event_day"
    COMPLETED = "completed"


class SMOCycle(Base):
    """Training Thursday + service Saturday, advanced strictly forward.

    Membership arrays are replaced wholesale (never mutated in place) so the
    ORM sees every change; ``version`` rejects lost updates.
    """

    __tablename__ = "smo_cycles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    service_date = Column(Date, nullable=False, unique=True)
    training_date = Column(Date, nullable=False)
    status = Column(
        SQLEnum(SMOStatus, values_callable=lambda e: [s.value for s in e]),
        nullable=False,
        default=SMOStatus.REGISTRATION_OPEN,
    )

    registered_volunteers = Column(JSON, default=list)
    waitlist = Column(JSON, default=list)
    thursday_attendees = Column(JSON, default=list)
    self_reported = Column(JSON, default=list)
    lead_confirmed = Column(JSON, default=list)
    removed_volunteers = Column(JSON, default=list)
    promoted_volunteers = Column(JSON, default=list)

    training_event_id = Column(String(36), nullable=True)
    service_event_id = Column(String(36), nullable=True)

    enforced_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}
