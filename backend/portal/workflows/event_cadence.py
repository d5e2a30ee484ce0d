"""w6 multi-stage Event Reminder Cadence.

Two independent tracks per (recipient, event):

* day stages 7d / 72h / 24h, email first, at most one per poll;
* a 3-hour SMS stage evaluated separately, so a recipient can get both the
  24h email and the 3h text for the same event.

``mode="sms_only"`` runs just the second track (the every-3-hours trigger).
"""

import logging
from datetime import timedelta
from functools import partial

from sqlalchemy.orm import Session

from ..config import settings
from ..events.service import event_recipient_ids, opportunities_starting_between, rsvp_index
from ..notifications import ledger, templates
from ..notifications.dispatcher import Channel
from ..notifications.subjects import EventSubject
from .engine import RunContext, load_recipients, notify_once
from .runlog import Outcome
from .stages import event_stage_for, three_hour_stage_for

logger = logging.getLogger(__name__)

FULL = "full"
SMS_ONLY = "sms_only"


def run_event_cadence(db: Session, ctx: RunContext) -> None:
    mode = ctx.options.get("mode", FULL)
    horizon = ctx.now + timedelta(days=settings.event_lookahead_days)
    events = opportunities_starting_between(db, ctx.now, horizon)
    logger.info("w6[%s]: %d events in the next %d days", mode, len(events), settings.event_lookahead_days)
    rsvps = rsvp_index(db) if events else {}

    for opp in events:
        subject = EventSubject(str(opp.id))
        recipient_ids = event_recipient_ids(db, opp, rsvps)
        if not recipient_ids:
            continue

        # Skip the recipient lookup entirely when nothing can apply to this event.
        day_open = mode == FULL and event_stage_for(opp.starts_at, ctx.now) is not None
        sms_open = three_hour_stage_for(opp.starts_at, ctx.now) is not None
        if not (day_open or sms_open):
            continue

        for volunteer in load_recipients(db, ctx, recipient_ids, subject):
            try:
                sent = ledger.sent_stages(db, volunteer.id, subject)
            except Exception:
                db.rollback()
                logger.exception("w6: ledger read failed for %s on %s", volunteer.id, subject.key)
                ctx.recorder.record(
                    Outcome.FAILED,
                    recipient_id=str(volunteer.id),
                    recipient_name=volunteer.name or "",
                    subject_id=subject.key,
                    reason="error",
                )
                continue

            if day_open:
                stage = event_stage_for(opp.starts_at, ctx.now, sent)
                if stage is not None:
                    notify_once(
                        db,
                        ctx,
                        volunteer,
                        subject,
                        stage,
                        partial(templates.event_reminder, stage, volunteer.name, opp.title, opp.starts_at, opp.service_location),
                        channel=Channel.EMAIL,
                    )

            if sms_open:
                stage = three_hour_stage_for(opp.starts_at, ctx.now, sent)
                if stage is not None:
                    notify_once(
                        db,
                        ctx,
                        volunteer,
                        subject,
                        stage,
                        partial(templates.event_reminder, stage, volunteer.name, opp.title, opp.starts_at, opp.service_location),
                        channel=Channel.SMS,
                    )
