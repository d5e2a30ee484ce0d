"""Stage resolvers.

Pure functions: given "now" and a subject's anchor(s), decide which single
stage (if any) applies. No I/O, so every cadence rule is testable in
isolation.

Day stages of the event cadence are mutually exclusive half-open windows on
fractional days-until-event. A window that has fully elapsed is never caught
up: the resolver only looks at the window that contains "now".
"""

import enum
from collections.abc import Collection
from datetime import date, datetime, timedelta

from ..timeutils import as_utc, days_until, hours_until


class EventStage(enum.StrEnum):
    SEVEN_DAY = "7d"
    SEVENTY_TWO_HOUR = "72h"
    TWENTY_FOUR_HOUR = "24h"
    THREE_HOUR_SMS = "3h_sms"


class Stage(enum.StrEnum):
    """Single-shot stages of the other workflows."""

    SHIFT_REMINDER = "shift_24h"
    THANK_YOU = "thank_you"
    NEW_OPPORTUNITY = "new_opportunity"
    BIRTHDAY = "birthday"
    COMPLIANCE_EXPIRY = "expiry_30"
    DEBRIEF = "debrief"
    SMO_OPEN = "smo_open"
    SMO_TRAINING_REMINDER = "100"
    SMO_REMOVED = "smo_removed"
    SMO_PROMOTED = "smo_promoted"


# (stage, lower exclusive, upper inclusive) in days, most urgent first.
EVENT_DAY_WINDOWS: tuple[tuple[EventStage, float, float], ...] = (
    (EventStage.TWENTY_FOUR_HOUR, 0.0, 1.5),
    (EventStage.SEVENTY_TWO_HOUR, 1.5, 3.5),
    (EventStage.SEVEN_DAY, 3.5, 7.5),
)

THREE_HOUR_WINDOW = (1.0, 4.0)  # hours, both ends inclusive


def resolve_event_stage(days: float, sent: Collection[str] = ()) -> EventStage | None:
    """Day stage whose window contains ``days``, unless already sent."""
    for stage, lower, upper in EVENT_DAY_WINDOWS:
        if lower < days <= upper:
            return None if stage in sent else stage
    return None


def resolve_three_hour_stage(hours: float, sent: Collection[str] = ()) -> EventStage | None:
    """Independent SMS track; not exclusive with the day stages."""
    lower, upper = THREE_HOUR_WINDOW
    if lower <= hours <= upper and EventStage.THREE_HOUR_SMS not in sent:
        return EventStage.THREE_HOUR_SMS
    return None


def event_stage_for(starts_at: datetime, now: datetime, sent: Collection[str] = ()) -> EventStage | None:
    return resolve_event_stage(days_until(starts_at, now), sent)


def three_hour_stage_for(starts_at: datetime, now: datetime, sent: Collection[str] = ()) -> EventStage | None:
    return resolve_three_hour_stage(hours_until(starts_at, now), sent)


def is_day_before(target: date, today: date) -> bool:
    """``target`` is tomorrow."""
    return target - today == timedelta(days=1)


def is_day_after(target: date, today: date) -> bool:
    """``target`` was yesterday."""
    return today - target == timedelta(days=1)


def is_birthday(birth_date: date | None, today: date) -> bool:
    """Month/day match; Feb 29 birthdays are observed on Feb 28 in common years."""
    if birth_date is None:
        return False
    if (birth_date.month, birth_date.day) == (today.month, today.day):
        return True
    if (birth_date.month, birth_date.day) == (2, 29):
        try:
            date(today.year, 2, 29)
        except ValueError:
            return (today.month, today.day) == (2, 28)
    return False


def is_expiring_within(expires_on: date | None, today: date, days: int) -> bool:
    """Expiry falls in [today, today + days]."""
    if expires_on is None:
        return False
    return today <= expires_on <= today + timedelta(days=days)


def is_debrief_due(ends_at: datetime | None, now: datetime, delay_minutes: int, window_minutes: int) -> bool:
    """``now`` is in [end + delay, end + delay + window)."""
    if ends_at is None:
        return False
    due = as_utc(ends_at) + timedelta(minutes=delay_minutes)
    return due <= as_utc(now) < due + timedelta(minutes=window_minutes)
