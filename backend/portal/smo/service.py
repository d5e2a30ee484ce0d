"""SMO monthly cycle: creation, reminders, enforcement, registration (w7)."""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from functools import partial

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..config import settings
from ..events.models import Opportunity, Urgency
from ..events.service import attach_volunteer, detach_volunteer
from ..notifications import templates
from ..notifications.dispatcher import Channel
from ..notifications.subjects import CycleSubject
from ..timeutils import as_utc, at_local_time, local_date, parse_hhmm
from ..volunteers.models import Volunteer
from ..volunteers.service import active_volunteers, eligibility_gate, get_volunteers_by_ids, pref_enabled, to_uuid
from ..workflows.engine import RunContext, load_recipients, notify_once
from ..workflows.stages import Stage
from .models import SMOCycle, SMOStatus
from .state import (
    STATUS_ORDER,
    EnforcementResult,
    advance_status,
    due_transition,
    enforce_attendance,
    is_training_reminder_day,
    service_date_for,
    should_create_cycle,
    training_date_for,
)

logger = logging.getLogger(__name__)

SMO_GATE = "streetMedicineGate"
ATTENDANCE_SOURCES = {
    "thursday": "thursday_attendees",
    "self_reported": "self_reported",
    "lead_confirmed": "lead_confirmed",
}


class RegistrationError(Exception):
    """Registration request that cannot be applied; carries an HTTP status."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass(frozen=True)
class CycleTransition:
    cycle_id: str
    status: SMOStatus
    enforcement: EnforcementResult | None = None


def get_cycle(db: Session, cycle_id) -> SMOCycle | None:
    cid = to_uuid(cycle_id)
    if cid is None:
        return None
    return db.get(SMOCycle, cid)


def list_cycles(db: Session, limit: int = 12) -> list[SMOCycle]:
    return db.query(SMOCycle).order_by(SMOCycle.service_date.desc()).limit(limit).all()


def _at(day: date, hhmm: str) -> datetime:
    hour, minute = parse_hhmm(hhmm)
    return at_local_time(day, hour, minute)


def _service_event(db: Session, cycle: SMOCycle) -> Opportunity | None:
    oid = to_uuid(cycle.service_event_id)
    return db.get(Opportunity, oid) if oid else None


def _training_event(db: Session, cycle: SMOCycle) -> Opportunity | None:
    oid = to_uuid(cycle.training_event_id)
    return db.get(Opportunity, oid) if oid else None


# ── Creation ──────────────────────────────────────────────────────────


def ensure_upcoming_cycle(db: Session, ctx: RunContext) -> SMOCycle | None:
    """Create the next third-Saturday cycle once it is 1-30 days away.

    Provisions the linked training and service events and invites every
    volunteer who passed the street-medicine gate.
    """
    today = ctx.today
    service_date = service_date_for(today)
    if not should_create_cycle(service_date, today, settings.smo_creation_window_days):
        return None

    existing = db.query(SMOCycle).filter(SMOCycle.service_date == service_date).first()
    if existing is not None:
        return existing

    training_date = training_date_for(service_date)
    training = Opportunity(
        title="SMO Training",
        description="Required training for this month's Street Medicine Outreach.",
        category="Street Medicine Outreach",
        service_location=settings.smo_location,
        urgency=Urgency.MEDIUM,
        starts_at=_at(training_date, settings.smo_training_start),
        ends_at=_at(training_date, settings.smo_training_end),
        created_by="system",
    )
    service = Opportunity(
        title="Street Medicine Outreach",
        description="Monthly Street Medicine Outreach service day.",
        category="Street Medicine Outreach",
        service_location=settings.smo_location,
        urgency=Urgency.MEDIUM,
        starts_at=_at(service_date, settings.smo_service_start),
        ends_at=_at(service_date, settings.smo_service_end),
        created_by="system",
    )
    db.add_all([training, service])
    db.flush()

    cycle = SMOCycle(
        service_date=service_date,
        training_date=training_date,
        status=SMOStatus.REGISTRATION_OPEN,
        registered_volunteers=[],
        waitlist=[],
        thursday_attendees=[],
        self_reported=[],
        lead_confirmed=[],
        removed_volunteers=[],
        promoted_volunteers=[],
        training_event_id=str(training.id),
        service_event_id=str(service.id),
    )
    db.add(cycle)
    try:
        db.commit()
    except IntegrityError:
        # Another poll created the same service date first.
        db.rollback()
        logger.info("SMO cycle for %s already created concurrently", service_date)
        return db.query(SMOCycle).filter(SMOCycle.service_date == service_date).first()

    logger.info("Created SMO cycle %s (training %s, service %s)", cycle.id, training_date, service_date)

    subject = CycleSubject(str(cycle.id))
    invitees = [
        v for v in active_volunteers(db) if eligibility_gate(v, SMO_GATE) and pref_enabled(v, "eventInvitations")
    ]
    for volunteer in invitees:
        notify_once(
            db,
            ctx,
            volunteer,
            subject,
            Stage.SMO_OPEN,
            partial(templates.smo_cycle_open, volunteer.name, training_date, service_date),
        )
    return cycle


# ── Training reminder (stage 100) ─────────────────────────────────────


def send_training_reminders(db: Session, ctx: RunContext, cycle: SMOCycle) -> int:
    if SMOStatus(cycle.status) != SMOStatus.REGISTRATION_OPEN:
        return 0
    if not is_training_reminder_day(cycle.training_date, ctx.today):
        return 0

    subject = CycleSubject(str(cycle.id))
    training_at = _at(cycle.training_date, settings.smo_training_start)
    training = _training_event(db, cycle)
    location = training.service_location if training else settings.smo_location

    count = 0
    for volunteer in load_recipients(db, ctx, list(cycle.registered_volunteers or []), subject, Stage.SMO_TRAINING_REMINDER):
        if not pref_enabled(volunteer, "trainingReminders"):
            continue
        outcome = notify_once(
            db,
            ctx,
            volunteer,
            subject,
            Stage.SMO_TRAINING_REMINDER,
            partial(templates.smo_training_reminder, volunteer.name, training_at, location),
            channel=Channel.SMS,
        )
        if outcome is not None:
            count += 1
    return count


# ── Transitions ───────────────────────────────────────────────────────


def advance_cycle(db: Session, cycle_id, now: datetime) -> CycleTransition | None:
    """Apply at most one forward transition to a cycle in its own transaction.

    The row is locked and re-read before deciding, so two overlapping polls
    cannot both enforce attendance; the version column turns a lost race into
    ``StaleDataError``, which is treated as "someone else advanced it".
    """
    cid = to_uuid(cycle_id)
    cycle = db.query(SMOCycle).filter(SMOCycle.id == cid).with_for_update().one_or_none() if cid else None
    if cycle is None:
        db.rollback()
        return None

    target = due_transition(
        cycle.status,
        cycle.training_date,
        cycle.service_date,
        now,
        local_date(now),
        settings.smo_enforcement_hour,
    )
    if target is None:
        db.rollback()
        return None

    status = advance_status(cycle.status, target)
    enforcement = None
    if status == SMOStatus.TRAINING_COMPLETE:
        attendees = set(cycle.thursday_attendees or []) | set(cycle.self_reported or []) | set(cycle.lead_confirmed or [])
        enforcement = enforce_attendance(cycle.registered_volunteers or [], cycle.waitlist or [], attendees)
        cycle.registered_volunteers = enforcement.registered
        cycle.waitlist = enforcement.waitlist
        cycle.removed_volunteers = list(cycle.removed_volunteers or []) + enforcement.removed
        cycle.promoted_volunteers = list(cycle.promoted_volunteers or []) + enforcement.promoted
        cycle.enforced_at = as_utc(now)

        service = _service_event(db, cycle)
        if service is not None:
            for vid in enforcement.removed:
                detach_volunteer(db, service, vid)
            promoted = get_volunteers_by_ids(db, enforcement.promoted)
            for vid in enforcement.promoted:
                if vid in promoted:
                    attach_volunteer(db, service, promoted[vid])

    cycle.status = status
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        logger.warning("SMO cycle %s changed concurrently, transition to %s dropped", cid, status)
        return None

    if enforcement is not None:
        logger.info(
            "SMO cycle %s enforced: kept=%d removed=%d promoted=%d",
            cid,
            len(enforcement.kept),
            len(enforcement.removed),
            len(enforcement.promoted),
        )
    else:
        logger.info("SMO cycle %s advanced to %s", cid, status)
    return CycleTransition(str(cid), status, enforcement)


def _notify_enforcement(db: Session, ctx: RunContext, cycle: SMOCycle, result: EnforcementResult) -> None:
    subject = CycleSubject(str(cycle.id))
    for volunteer in load_recipients(db, ctx, result.removed, subject, Stage.SMO_REMOVED):
        notify_once(
            db,
            ctx,
            volunteer,
            subject,
            Stage.SMO_REMOVED,
            partial(templates.smo_removed, volunteer.name, cycle.service_date),
        )
    for volunteer in load_recipients(db, ctx, result.promoted, subject, Stage.SMO_PROMOTED):
        notify_once(
            db,
            ctx,
            volunteer,
            subject,
            Stage.SMO_PROMOTED,
            partial(templates.smo_promoted, volunteer.name, cycle.service_date),
            channel=Channel.SMS,
        )


def run_smo_cycle(db: Session, ctx: RunContext) -> None:
    ensure_upcoming_cycle(db, ctx)

    cycles = (
        db.query(SMOCycle)
        .filter(SMOCycle.status != SMOStatus.COMPLETED)
        .order_by(SMOCycle.service_date.asc())
        .all()
    )
    logger.info("w7: %d open SMO cycles", len(cycles))

    for cycle in cycles:
        send_training_reminders(db, ctx, cycle)
        # One step per transaction; a poll that was missed catches up here.
        for _ in range(len(STATUS_ORDER) - 1):
            transition = advance_cycle(db, cycle.id, ctx.now)
            if transition is None:
                break
            if transition.enforcement is not None:
                db.refresh(cycle)
                _notify_enforcement(db, ctx, cycle, transition.enforcement)


# ── Registration ──────────────────────────────────────────────────────


def _locked_open_cycle(db: Session, cycle_id) -> SMOCycle:
    cid = to_uuid(cycle_id)
    cycle = db.query(SMOCycle).filter(SMOCycle.id == cid).with_for_update().one_or_none() if cid else None
    if cycle is None:
        raise RegistrationError("Cycle not found", 404)
    if SMOStatus(cycle.status) != SMOStatus.REGISTRATION_OPEN:
        raise RegistrationError("Registration is closed for this cycle", 409)
    return cycle


def _volunteer(db: Session, volunteer_id) -> Volunteer:
    vid = to_uuid(volunteer_id)
    volunteer = db.get(Volunteer, vid) if vid else None
    if volunteer is None:
        raise RegistrationError("Volunteer not found", 404)
    return volunteer


def _commit(db: Session) -> None:
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise RegistrationError("Cycle was modified concurrently, retry", 409)


def register_volunteer(db: Session, cycle_id, volunteer_id) -> str:
    """Register, or waitlist once the roster is at capacity.

    Returns ``"registered"``, ``"waitlisted"`` or ``"already_registered"``.
    """
    cycle = _locked_open_cycle(db, cycle_id)
    volunteer = _volunteer(db, volunteer_id)
    if not eligibility_gate(volunteer, SMO_GATE):
        db.rollback()
        raise RegistrationError("Volunteer has not passed the street medicine gate", 403)

    vid = str(volunteer.id)
    registered = [str(v) for v in cycle.registered_volunteers or []]
    waitlist = [str(v) for v in cycle.waitlist or []]
    if vid in registered or vid in waitlist:
        db.rollback()
        return "already_registered"

    if len(registered) < settings.smo_capacity:
        cycle.registered_volunteers = registered + [vid]
        service = _service_event(db, cycle)
        if service is not None:
            attach_volunteer(db, service, volunteer)
        result = "registered"
    else:
        cycle.waitlist = waitlist + [vid]
        result = "waitlisted"

    _commit(db)
    logger.info("Volunteer %s %s for SMO cycle %s", vid, result, cycle.id)
    return result


def cancel_registration(db: Session, cycle_id, volunteer_id) -> str | None:
    """Drop a volunteer; a freed roster slot goes to the waitlist head.

    Returns the promoted volunteer id, if any.
    """
    cycle = _locked_open_cycle(db, cycle_id)
    vid = str(volunteer_id)
    registered = [str(v) for v in cycle.registered_volunteers or []]
    waitlist = [str(v) for v in cycle.waitlist or []]
    if vid not in registered and vid not in waitlist:
        db.rollback()
        raise RegistrationError("Volunteer is not registered for this cycle", 404)

    promoted = None
    if vid in waitlist:
        cycle.waitlist = [w for w in waitlist if w != vid]
    else:
        registered = [r for r in registered if r != vid]
        service = _service_event(db, cycle)
        if service is not None:
            detach_volunteer(db, service, vid)
        if waitlist and len(registered) < settings.smo_capacity:
            promoted, waitlist = waitlist[0], waitlist[1:]
            registered.append(promoted)
            cycle.waitlist = waitlist
            head = get_volunteers_by_ids(db, [promoted]).get(promoted)
            if service is not None and head is not None:
                attach_volunteer(db, service, head)
        cycle.registered_volunteers = registered

    _commit(db)
    logger.info("Volunteer %s cancelled SMO cycle %s (promoted=%s)", vid, cycle.id, promoted)
    return promoted


def record_attendance(db: Session, cycle_id, volunteer_ids: list, source: str = "thursday") -> SMOCycle:
    """Add volunteers to one of the three attendance lists (set semantics)."""
    field = ATTENDANCE_SOURCES.get(source)
    if field is None:
        raise RegistrationError(f"Unknown attendance source: {source}")
    cycle = _locked_open_cycle(db, cycle_id)

    current = [str(v) for v in getattr(cycle, field) or []]
    additions = [str(v) for v in volunteer_ids if str(v) not in current]
    if not additions:
        db.rollback()
        return cycle
    setattr(cycle, field, current + list(dict.fromkeys(additions)))
    _commit(db)
    logger.info("Recorded %d %s attendees for SMO cycle %s", len(additions), source, cycle.id)
    return cycle
