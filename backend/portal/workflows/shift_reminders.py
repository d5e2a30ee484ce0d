"""w1 Shift Reminder and w2 Post-Shift Thank-You."""

import logging
from datetime import timedelta
from functools import partial

from sqlalchemy.orm import Session

from ..events.service import shifts_ending_between, shifts_starting_between
from ..notifications import templates
from ..notifications.dispatcher import Channel
from ..notifications.subjects import ShiftSubject
from ..timeutils import as_utc, local_date, local_day_bounds
from .engine import RunContext, load_recipients, notify_once
from .stages import Stage, is_day_after, is_day_before

logger = logging.getLogger(__name__)


def _unique(ids) -> list[str]:
    return list(dict.fromkeys(str(i) for i in ids or []))


def run_shift_reminders(db: Session, ctx: RunContext) -> None:
    """SMS (email fallback) to every volunteer assigned to a shift starting tomorrow."""
    tomorrow = ctx.today + timedelta(days=1)
    shifts = shifts_starting_between(db, *local_day_bounds(tomorrow))
    logger.info("w1: %d shifts start on %s", len(shifts), tomorrow)

    for shift in shifts:
        if not is_day_before(local_date(shift.starts_at), ctx.today):
            continue
        subject = ShiftSubject(str(shift.id))
        opp = shift.opportunity
        for volunteer in load_recipients(db, ctx, _unique(shift.assigned_volunteer_ids), subject, Stage.SHIFT_REMINDER):
            notify_once(
                db,
                ctx,
                volunteer,
                subject,
                Stage.SHIFT_REMINDER,
                partial(
                    templates.shift_reminder,
                    volunteer.name,
                    opp.title if opp else None,
                    shift.role_type,
                    shift.starts_at,
                    opp.service_location if opp else None,
                ),
                channel=Channel.SMS,
            )


def _shift_hours(shift) -> float | None:
    if not shift.starts_at or not shift.ends_at:
        return None
    hours = (as_utc(shift.ends_at) - as_utc(shift.starts_at)).total_seconds() / 3600
    # nearest half hour
    return round(hours * 2) / 2 if hours > 0 else None


def run_thank_yous(db: Session, ctx: RunContext) -> None:
    """Thank-you email with an impact summary for shifts that ended yesterday."""
    yesterday = ctx.today - timedelta(days=1)
    shifts = shifts_ending_between(db, *local_day_bounds(yesterday))
    logger.info("w2: %d shifts ended on %s", len(shifts), yesterday)

    for shift in shifts:
        if not is_day_after(local_date(shift.ends_at), ctx.today):
            continue
        subject = ShiftSubject(str(shift.id))
        opp = shift.opportunity
        hours = _shift_hours(shift)
        for volunteer in load_recipients(db, ctx, _unique(shift.assigned_volunteer_ids), subject, Stage.THANK_YOU):
            notify_once(
                db,
                ctx,
                volunteer,
                subject,
                Stage.THANK_YOU,
                partial(templates.thank_you, volunteer.name, opp.title if opp else None, hours),
            )
