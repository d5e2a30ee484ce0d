"""Pure SMO cycle rules: dates, forward-only status, attendance enforcement."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from ..timeutils import as_utc, at_local_time, third_saturday
from .models import SMOStatus

STATUS_ORDER: tuple[SMOStatus, ...] = (
    SMOStatus.REGISTRATION_OPEN,
    SMOStatus.TRAINING_COMPLETE,
    SMOStatus.EVENT_DAY,
    SMOStatus.COMPLETED,
)

# Training is the Thursday before the third-Saturday service day.
TRAINING_OFFSET = timedelta(days=2)


class InvalidTransition(Exception):
    pass


def status_rank(status: SMOStatus | str) -> int:
    return STATUS_ORDER.index(SMOStatus(status))


def advance_status(current: SMOStatus | str, target: SMOStatus | str) -> SMOStatus:
    """Allow only the single next step; regressions and skips are refused."""
    if status_rank(target) != status_rank(current) + 1:
        raise InvalidTransition(f"{current} -> {target}")
    return SMOStatus(target)


def service_date_for(today: date) -> date:
    """The next third Saturday on or after tomorrow."""
    candidate = third_saturday(today.year, today.month)
    if candidate > today:
        return candidate
    year, month = (today.year + 1, 1) if today.month == 12 else (today.year, today.month + 1)
    return third_saturday(year, month)


def training_date_for(service_date: date) -> date:
    return service_date - TRAINING_OFFSET


def should_create_cycle(service_date: date, today: date, window_days: int) -> bool:
    return 1 <= (service_date - today).days <= window_days


def is_training_reminder_day(training_date: date, today: date) -> bool:
    return training_date - today == timedelta(days=1)


def due_transition(
    status: SMOStatus | str,
    training_date: date,
    service_date: date,
    now: datetime,
    today: date,
    enforcement_hour: int,
) -> SMOStatus | None:
    """Next status if its time gate has been reached, else None.

    Gates are ">=" so a missed poll advances on the next one; a cycle still
    only moves one step per call.
    """
    status = SMOStatus(status)
    if status == SMOStatus.REGISTRATION_OPEN:
        if as_utc(now) >= at_local_time(training_date, enforcement_hour):
            return SMOStatus.TRAINING_COMPLETE
    elif status == SMOStatus.TRAINING_COMPLETE:
        if today >= service_date:
            return SMOStatus.EVENT_DAY
    elif status == SMOStatus.EVENT_DAY:
        if today >= service_date + timedelta(days=1):
            return SMOStatus.COMPLETED
    return None


@dataclass(frozen=True)
class EnforcementResult:
    kept: list[str]
    removed: list[str]
    promoted: list[str]
    registered: list[str]
    waitlist: list[str]


def enforce_attendance(registered: list, waitlist: list, attendees: set | list) -> EnforcementResult:
    """Keep attendees, drop the rest, fill vacated slots FIFO from the waitlist.

    ``len(promoted) == min(len(removed), len(waitlist))``.
    """
    present = {str(a) for a in attendees}
    kept = [str(v) for v in registered if str(v) in present]
    removed = [str(v) for v in registered if str(v) not in present]
    queue = [str(w) for w in waitlist if str(w) not in kept]
    promoted = queue[: len(removed)]
    return EnforcementResult(
        kept=kept,
        removed=removed,
        promoted=promoted,
        registered=kept + promoted,
        waitlist=queue[len(promoted) :],
    )
