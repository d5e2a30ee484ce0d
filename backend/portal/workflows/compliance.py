"""w5 Compliance-Expiry Warning."""

import logging
from datetime import timedelta
from functools import partial

from sqlalchemy.orm import Session

from ..config import settings
from ..notifications import templates
from ..notifications.subjects import ComplianceSubject
from ..volunteers.models import ComplianceItem, Volunteer, VolunteerStatus
from .engine import RunContext, notify_once
from .stages import Stage, is_expiring_within

logger = logging.getLogger(__name__)


def run_compliance_warnings(db: Session, ctx: RunContext) -> None:
    today = ctx.today
    horizon = settings.compliance_lookahead_days
    items = (
        db.query(ComplianceItem)
        .join(Volunteer, ComplianceItem.volunteer_id == Volunteer.id)
        .filter(
            Volunteer.status != VolunteerStatus.INACTIVE,
            ComplianceItem.expires_on.isnot(None),
            ComplianceItem.expires_on >= today,
            ComplianceItem.expires_on <= today + timedelta(days=horizon),
        )
        .order_by(ComplianceItem.expires_on.asc())
        .all()
    )
    logger.info("w5: %d compliance items expire within %d days", len(items), horizon)

    for item in items:
        if not is_expiring_within(item.expires_on, today, horizon):
            continue
        notify_once(
            db,
            ctx,
            item.volunteer,
            ComplianceSubject(str(item.id)),
            Stage.COMPLIANCE_EXPIRY,
            partial(
                templates.compliance_expiry,
                item.volunteer.name,
                item.label or item.item_type,
                item.expires_on,
                (item.expires_on - today).days,
            ),
        )
