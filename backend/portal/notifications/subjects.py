"""Typed notification subjects.

Each subject variant exposes a stable ``key`` so dedup keys are identical
across processes and restarts.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class EventSubject:
    opportunity_id: str
    kind: str = "event"

    @property
    def key(self) -> str:
        return f"event:{self.opportunity_id}"


@dataclass(frozen=True)
class ShiftSubject:
    shift_id: str
    kind: str = "shift"

    @property
    def key(self) -> str:
        return f"shift:{self.shift_id}"


@dataclass(frozen=True)
class ComplianceSubject:
    item_id: str
    kind: str = "compliance"

    @property
    def key(self) -> str:
        return f"compliance:{self.item_id}"


@dataclass(frozen=True)
class CycleSubject:
    cycle_id: str
    kind: str = "smo_cycle"

    @property
    def key(self) -> str:
        return f"smo:{self.cycle_id}"


@dataclass(frozen=True)
class BirthdaySubject:
    volunteer_id: str
    year: int
    kind: str = "birthday"

    @property
    def key(self) -> str:
        return f"birthday:{self.volunteer_id}:{self.year}"


NotificationSubject = EventSubject | ShiftSubject | ComplianceSubject | CycleSubject | BirthdaySubject
