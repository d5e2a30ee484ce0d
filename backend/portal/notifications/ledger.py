"""Dedup ledger: has (recipient, subject, stage) already been dispatched?

Rows are never pruned. A failed ledger write after a successful dispatch
means the notification can go out again on the next poll.
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .models import NotificationLog
from .subjects import NotificationSubject

logger = logging.getLogger(__name__)


def dedup_key(recipient_id, subject: NotificationSubject, stage: str) -> str:
    return f"{recipient_id}|{subject.key}|{stage}"


def was_sent(db: Session, recipient_id, subject: NotificationSubject, stage: str) -> bool:
    key = dedup_key(recipient_id, subject, stage)
    return db.query(NotificationLog.id).filter(NotificationLog.dedup_key == key).first() is not None


def sent_stages(db: Session, recipient_id, subject: NotificationSubject) -> set[str]:
    """All stages already recorded for a (recipient, subject) pair."""
    rows = (
        db.query(NotificationLog.stage)
        .filter(
            NotificationLog.recipient_id == str(recipient_id),
            NotificationLog.subject_id == subject.key,
        )
        .all()
    )
    return {stage for (stage,) in rows}


def mark_sent(
    db: Session,
    recipient_id,
    subject: NotificationSubject,
    stage: str,
    *,
    workflow_id: str = "",
    channel: str = "",
) -> NotificationLog:
    """Record the triple. Idempotent: concurrent writers converge on one row.

    On a unique-key race the session is rolled back, discarding the caller's
    uncommitted work for this recipient, and the winning row is returned.
    """
    key = dedup_key(recipient_id, subject, stage)
    existing = db.query(NotificationLog).filter(NotificationLog.dedup_key == key).first()
    if existing:
        return existing

    entry = NotificationLog(
        dedup_key=key,
        recipient_id=str(recipient_id),
        subject_id=subject.key,
        stage=stage,
        workflow_id=workflow_id,
        channel=channel,
    )
    db.add(entry)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        logger.debug("Ledger entry %s written concurrently, reusing it", key)
        return db.query(NotificationLog).filter(NotificationLog.dedup_key == key).one()
    return entry
