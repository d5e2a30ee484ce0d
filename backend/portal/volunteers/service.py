"""Volunteer helpers: contact normalisation, preferences, Impact XP."""

import logging
import re
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from .models import Volunteer, VolunteerStatus

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")

# Channel opt-ins: consent must be on record before we email or text.
CHANNEL_PREFS = frozenset({"emailAlerts", "smsAlerts"})

# (level, title, min XP)
LEVELS: list[tuple[int, str, int]] = [
    (1, "New Recruit", 0),
    (2, "Active Contributor", 1000),
    (3, "Community Champion", 5000),
    (4, "Impact Leader", 15000),
    (5, "Volunteer Legend", 30000),
]


@dataclass(frozen=True)
class LevelInfo:
    level: int
    title: str
    current_xp: int
    xp_to_next: int
    progress: float
    is_max_level: bool


def to_uuid(value) -> UUID | None:
    """Convert a string (or UUID) to UUID, returning None on failure."""
    if isinstance(value, UUID):
        return value
    if not value:
        return None
    try:
        return UUID(str(value))
    except (ValueError, AttributeError):
        return None


def normalize_phone(raw: str | None) -> str | None:
    """Canonical 10-digit NANP form, or None when the number is unusable.

    >>> normalize_phone("+1 (555) 123-4567")
    '5551234567'
    """
    if not raw:
        return None
    digits = _NON_DIGITS.sub("", raw)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    return digits if len(digits) == 10 else None


def pref_enabled(volunteer: Volunteer, key: str) -> bool:
    """Category flags default to enabled when unset; channel opt-ins default to disabled."""
    prefs = volunteer.notification_prefs or {}
    value = prefs.get(key)
    if value is None:
        return key not in CHANNEL_PREFS
    return bool(value)


def eligibility_gate(volunteer: Volunteer, gate: str) -> bool:
    return bool((volunteer.event_eligibility or {}).get(gate))


def compute_level(points: int) -> LevelInfo:
    points = max(points or 0, 0)
    current = LEVELS[0]
    for entry in reversed(LEVELS):
        if points >= entry[2]:
            current = entry
            break

    is_max = current[0] == LEVELS[-1][0]
    nxt = None if is_max else LEVELS[current[0]]
    into_level = points - current[2]
    span = nxt[2] - current[2] if nxt else 1
    progress = 100.0 if is_max else min(into_level / span * 100, 100.0)
    return LevelInfo(
        level=current[0],
        title=current[1],
        current_xp=points,
        xp_to_next=nxt[2] - points if nxt else 0,
        progress=progress,
        is_max_level=is_max,
    )


def award_xp(db: Session, volunteer: Volunteer, amount: int) -> LevelInfo:
    """Add Impact XP and return the resulting level (flushes, does not commit)."""
    before = compute_level(volunteer.points or 0)
    volunteer.points = (volunteer.points or 0) + amount
    db.flush()
    after = compute_level(volunteer.points)
    if after.level > before.level:
        logger.info("Volunteer %s levelled up to %s", volunteer.id, after.title)
    return after


def get_volunteers_by_ids(db: Session, ids: list) -> dict[str, Volunteer]:
    """Fetch volunteers keyed by str(id); unknown or malformed ids are absent."""
    uuids = [u for u in (to_uuid(i) for i in ids) if u is not None]
    if not uuids:
        return {}
    rows = db.query(Volunteer).filter(Volunteer.id.in_(uuids)).all()
    return {str(v.id): v for v in rows}


def active_volunteers(db: Session) -> list[Volunteer]:
    return (
        db.query(Volunteer)
        .filter(Volunteer.status == VolunteerStatus.ACTIVE)
        .order_by(Volunteer.created_at.asc())
        .all()
    )
