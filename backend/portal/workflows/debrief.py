"""w8 Post-Event Debrief, due 15 minutes after an event ends."""

import logging
from datetime import timedelta
from functools import partial

from sqlalchemy.orm import Session

from ..config import settings
from ..events.service import event_recipient_ids, opportunities_ending_between, rsvp_index
from ..notifications import templates
from ..notifications.subjects import EventSubject
from ..volunteers.service import to_uuid
from .engine import RunContext, load_recipients, notify_once
from .stages import Stage, is_debrief_due

logger = logging.getLogger(__name__)


def run_post_event_debrief(db: Session, ctx: RunContext) -> None:
    delay = settings.debrief_delay_minutes
    window = settings.debrief_window_minutes
    # ends_at in (now - delay - window, now - delay]
    start = ctx.now - timedelta(minutes=delay + window)
    end = ctx.now - timedelta(minutes=delay)
    events = [
        o
        for o in opportunities_ending_between(db, start, end + timedelta(microseconds=1))
        if is_debrief_due(o.ends_at, ctx.now, delay, window)
    ]
    logger.info("w8: %d events due for debrief", len(events))
    rsvps = rsvp_index(db) if events else {}

    for opp in events:
        subject = EventSubject(str(opp.id))
        ids = event_recipient_ids(db, opp, rsvps)
        # SMO events are created by "system", which is not a volunteer
        if to_uuid(opp.created_by) is not None and str(opp.created_by) not in ids:
            ids.append(str(opp.created_by))
        for volunteer in load_recipients(db, ctx, ids, subject, Stage.DEBRIEF):
            notify_once(
                db,
                ctx,
                volunteer,
                subject,
                Stage.DEBRIEF,
                partial(templates.debrief, volunteer.name, opp.title, str(opp.id)),
            )
