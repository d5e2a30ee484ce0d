"""Notification dedup ledger model."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, Index, String
from sqlalchemy.dialects.postgresql import UUID

from ..database.base import Base


class NotificationLog(Base):
    """One row per (recipient, subject, stage) already dispatched."""

    __tablename__ = "notification_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    dedup_key = Column(String(255), unique=True, nullable=False)
    recipient_id = Column(String(36), nullable=False)
    subject_id = Column(String(120), nullable=False)  # NotificationSubject.key
    stage = Column(String(50), nullable=False)
    workflow_id = Column(String(20), default="")
    channel = Column(String(10), default="")  # email / sms / "" when nothing went out
    sent_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (Index("idx_notif_recipient_subject", "recipient_id", "subject_id"),)
