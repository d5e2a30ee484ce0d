"""Per-recipient processing shared by every workflow executor.

Recipients are processed one at a time: ledger check, dispatch, ledger write
and commit happen before the next recipient is touched, so the
check-then-write sequence needs no distributed lock. Any exception while
handling one recipient is logged and counted as failed; the batch goes on.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..notifications import ledger
from ..notifications.dispatcher import Channel, Dispatcher, Recipient
from ..notifications.errors import DispatchReason
from ..notifications.subjects import NotificationSubject
from ..notifications.templates import Message
from ..timeutils import local_date
from ..volunteers.models import Volunteer
from ..volunteers.service import get_volunteers_by_ids
from .errors import LookupFailed
from .runlog import Outcome, RunRecorder

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    workflow_id: str
    now: datetime
    dispatcher: Dispatcher
    recorder: RunRecorder
    options: dict = field(default_factory=dict)

    @property
    def today(self) -> date:
        return local_date(self.now)


def notify_once(
    db: Session,
    ctx: RunContext,
    volunteer: Volunteer,
    subject: NotificationSubject,
    stage: str,
    build: Callable[[], Message],
    channel: Channel = Channel.EMAIL,
    on_first: Callable[[], None] | None = None,
) -> Outcome | None:
    """Dispatch ``stage`` for ``subject`` to ``volunteer`` at most once.

    Returns None when the ledger already holds the triple. ``on_first`` runs
    once, before dispatch, for side effects that must be ledger-gated (XP
    awards); when given, the triple is recorded whatever the dispatch outcome.
    """
    rid = str(volunteer.id)
    name = volunteer.name or ""
    try:
        if ledger.was_sent(db, rid, subject, stage):
            logger.debug("Workflow %s: %s/%s already sent to %s", ctx.workflow_id, subject.key, stage, rid)
            return None
        if on_first is not None:
            on_first()
        result = ctx.dispatcher.send(Recipient.from_volunteer(volunteer), build(), channel)
    except Exception:
        db.rollback()
        logger.exception("Workflow %s: error processing %s/%s for %s", ctx.workflow_id, subject.key, stage, rid)
        ctx.recorder.record(
            Outcome.FAILED,
            recipient_id=rid,
            recipient_name=name,
            subject_id=subject.key,
            stage=stage,
            reason="error",
        )
        return Outcome.FAILED

    if result.attempted or on_first is not None:
        try:
            ledger.mark_sent(
                db,
                rid,
                subject,
                stage,
                workflow_id=ctx.workflow_id,
                channel=result.channel.value if result.channel else "",
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Ledger write failed for %s %s/%s, stage may be resent", rid, subject.key, stage)

    if result.sent:
        outcome = Outcome.SENT
    elif result.reason == DispatchReason.SEND_FAILED:
        outcome = Outcome.FAILED
    else:
        outcome = Outcome.SKIPPED

    ctx.recorder.record(
        outcome,
        recipient_id=rid,
        recipient_name=name,
        subject_id=subject.key,
        stage=stage,
        channel=result.channel.value if result.channel else "",
        reason=result.reason.value if result.reason else "",
    )
    return outcome


def load_recipients(
    db: Session,
    ctx: RunContext,
    recipient_ids: list[str],
    subject: NotificationSubject,
    stage: str = "",
) -> list[Volunteer]:
    """Volunteers for ``recipient_ids`` in the given order.

    Ids with no volunteer record are counted as failed lookups.
    """
    found = get_volunteers_by_ids(db, recipient_ids)
    volunteers = []
    for rid in recipient_ids:
        volunteer = found.get(str(rid))
        if volunteer is None:
            logger.warning("Workflow %s: recipient %s for %s not found", ctx.workflow_id, rid, subject.key)
            ctx.recorder.record(
                Outcome.FAILED,
                recipient_id=str(rid),
                subject_id=subject.key,
                stage=stage,
                reason=LookupFailed.reason,
            )
            continue
        volunteers.append(volunteer)
    return volunteers
