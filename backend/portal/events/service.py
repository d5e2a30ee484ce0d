"""Event queries and recipient resolution."""

from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..timeutils import as_utc
from ..volunteers.models import Volunteer
from ..volunteers.service import to_uuid
from .models import ApprovalStatus, Opportunity, Shift


def _live(query):
    return query.filter(
        Opportunity.is_cancelled.is_(False),
        or_(Opportunity.approval_status.is_(None), Opportunity.approval_status != ApprovalStatus.REJECTED),
    )


def opportunities_starting_between(db: Session, start: datetime, end: datetime) -> list[Opportunity]:
    """Non-cancelled, non-rejected opportunities with start in (start, end]."""
    return (
        _live(db.query(Opportunity))
        .filter(Opportunity.starts_at > as_utc(start), Opportunity.starts_at <= as_utc(end))
        .order_by(Opportunity.starts_at.asc())
        .all()
    )


def opportunities_ending_between(db: Session, start: datetime, end: datetime) -> list[Opportunity]:
    return (
        _live(db.query(Opportunity))
        .filter(
            Opportunity.ends_at.isnot(None),
            Opportunity.ends_at >= as_utc(start),
            Opportunity.ends_at < as_utc(end),
        )
        .order_by(Opportunity.ends_at.asc())
        .all()
    )


def opportunities_created_since(db: Session, since: datetime, now: datetime) -> list[Opportunity]:
    return (
        _live(db.query(Opportunity))
        .filter(
            Opportunity.approval_status == ApprovalStatus.APPROVED,
            Opportunity.created_at >= as_utc(since),
            Opportunity.starts_at > as_utc(now),
        )
        .order_by(Opportunity.created_at.asc())
        .all()
    )


def shifts_starting_between(db: Session, start: datetime, end: datetime) -> list[Shift]:
    return (
        db.query(Shift)
        .filter(Shift.starts_at >= as_utc(start), Shift.starts_at < as_utc(end))
        .order_by(Shift.starts_at.asc())
        .all()
    )


def shifts_ending_between(db: Session, start: datetime, end: datetime) -> list[Shift]:
    return (
        db.query(Shift)
        .filter(Shift.ends_at >= as_utc(start), Shift.ends_at < as_utc(end))
        .order_by(Shift.ends_at.asc())
        .all()
    )


def _rsvp_volunteer_id(entry) -> str | None:
    if isinstance(entry, dict):
        value = entry.get("volunteerId") or entry.get("volunteer_id")
        return str(value) if value else None
    return str(entry) if entry else None


def rsvp_index(db: Session) -> dict[str, list[str]]:
    """Event id to the volunteers listing it in their own RSVPs, one scan for a whole run."""
    index: dict[str, list[str]] = {}
    # JSON containment is dialect specific; RSVP lists are short so invert them here.
    for vid, rsvped in db.query(Volunteer.id, Volunteer.rsvped_event_ids).order_by(Volunteer.created_at.asc()):
        for event_id in {str(e) for e in (rsvped or [])}:
            index.setdefault(event_id, []).append(str(vid))
    return index


def event_recipient_ids(
    db: Session, opportunity: Opportunity, rsvps: dict[str, list[str]] | None = None
) -> list[str]:
    """Union of every association path to an event, first-seen order, no duplicates.

    Paths: shift assignment, the volunteer's own RSVP list, and the
    event-level RSVP sub-documents. Pass ``rsvps`` from :func:`rsvp_index`
    when resolving many events in one run.
    """
    seen: dict[str, None] = {}
    opp_id = str(opportunity.id)

    shifts = db.query(Shift).filter(Shift.opportunity_id == opportunity.id).order_by(Shift.starts_at.asc()).all()
    for shift in shifts:
        for vid in shift.assigned_volunteer_ids or []:
            seen.setdefault(str(vid), None)

    if rsvps is None:
        rsvps = rsvp_index(db)
    for vid in rsvps.get(opp_id, []):
        seen.setdefault(vid, None)

    for entry in opportunity.rsvps or []:
        vid = _rsvp_volunteer_id(entry)
        if vid:
            seen.setdefault(vid, None)

    return list(seen)


def detach_volunteer(db: Session, opportunity: Opportunity, volunteer_id: str) -> None:
    """Remove every association between a volunteer and an event."""
    volunteer_id = str(volunteer_id)
    opp_id = str(opportunity.id)

    vid = to_uuid(volunteer_id)
    volunteer = db.get(Volunteer, vid) if vid else None
    if volunteer is not None and volunteer.rsvped_event_ids:
        volunteer.rsvped_event_ids = [e for e in volunteer.rsvped_event_ids if str(e) != opp_id]

    if opportunity.rsvps:
        opportunity.rsvps = [e for e in opportunity.rsvps if _rsvp_volunteer_id(e) != volunteer_id]

    for shift in db.query(Shift).filter(Shift.opportunity_id == opportunity.id).all():
        if volunteer_id in {str(v) for v in shift.assigned_volunteer_ids or []}:
            shift.assigned_volunteer_ids = [v for v in shift.assigned_volunteer_ids if str(v) != volunteer_id]


def attach_volunteer(db: Session, opportunity: Opportunity, volunteer: Volunteer) -> None:
    opp_id = str(opportunity.id)
    current = [str(e) for e in volunteer.rsvped_event_ids or []]
    if opp_id not in current:
        volunteer.rsvped_event_ids = current + [opp_id]

