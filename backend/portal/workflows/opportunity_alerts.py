"""w3 New-Opportunity Alert: high-urgency postings to volunteers with matching skills."""

import logging
from datetime import timedelta
from functools import partial

from sqlalchemy.orm import Session

from ..config import settings
from ..events.models import Opportunity, Urgency
from ..events.service import opportunities_created_since
from ..notifications import templates
from ..notifications.subjects import EventSubject
from ..volunteers.models import Volunteer
from ..volunteers.service import active_volunteers, pref_enabled
from .engine import RunContext, notify_once
from .stages import Stage

logger = logging.getLogger(__name__)


def _skill_names(volunteer: Volunteer) -> set[str]:
    names = set()
    for skill in volunteer.skills or []:
        name = skill.get("name") if isinstance(skill, dict) else skill
        if name:
            names.add(str(name).strip().lower())
    return names


def skills_match(volunteer: Volunteer, opportunity: Opportunity) -> bool:
    """Any overlap with the required skills; no requirement matches everyone."""
    required = {str(s).strip().lower() for s in opportunity.required_skills or [] if str(s).strip()}
    if not required:
        return True
    return bool(required & _skill_names(volunteer))


def run_new_opportunity_alerts(db: Session, ctx: RunContext) -> None:
    since = ctx.now - timedelta(hours=settings.opportunity_alert_lookback_hours)
    opportunities = [o for o in opportunities_created_since(db, since, ctx.now) if o.urgency == Urgency.HIGH]
    logger.info("w3: %d new high-urgency opportunities", len(opportunities))
    if not opportunities:
        return

    volunteers = [v for v in active_volunteers(db) if pref_enabled(v, "opportunityUpdates")]
    for opp in opportunities:
        subject = EventSubject(str(opp.id))
        for volunteer in volunteers:
            if not skills_match(volunteer, opp):
                continue
            notify_once(
                db,
                ctx,
                volunteer,
                subject,
                Stage.NEW_OPPORTUNITY,
                partial(
                    templates.new_opportunity,
                    volunteer.name,
                    opp.title,
                    opp.starts_at,
                    opp.service_location,
                    opp.required_skills,
                ),
            )
