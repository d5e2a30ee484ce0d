"""w4 Birthday Recognition: bonus Impact XP plus a greeting."""

import logging

from sqlalchemy.orm import Session

from ..config import settings
from ..notifications import templates
from ..notifications.subjects import BirthdaySubject
from ..volunteers.models import Volunteer
from ..volunteers.service import active_volunteers, award_xp, compute_level
from .engine import RunContext, notify_once
from .stages import Stage, is_birthday

logger = logging.getLogger(__name__)


def run_birthday_recognition(db: Session, ctx: RunContext) -> None:
    today = ctx.today
    celebrants = [v for v in active_volunteers(db) if is_birthday(v.birth_date, today)]
    logger.info("w4: %d birthdays on %s", len(celebrants), today)

    bonus = settings.birthday_bonus_xp
    for volunteer in celebrants:
        subject = BirthdaySubject(str(volunteer.id), today.year)

        def _award(v: Volunteer = volunteer) -> None:
            award_xp(db, v, bonus)

        def _message(v: Volunteer = volunteer) -> templates.Message:
            return templates.birthday(v.name, bonus, compute_level(v.points or 0).title)

        notify_once(db, ctx, volunteer, subject, Stage.BIRTHDAY, _message, on_first=_award)
