"""SMO request/response schemas."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field


class RegistrationRequest(BaseModel):
    volunteer_id: str = Field(..., min_length=1, max_length=36)


class AttendanceRequest(BaseModel):
    volunteer_ids: list[str] = Field(..., min_length=1)
    source: Literal["thursday", "self_reported", "lead_confirmed"] = "thursday"


class CycleResponse(BaseModel):
    id: str
    service_date: date
    training_date: date
    status: str
    registered_volunteers: list[str]
    waitlist: list[str]
    thursday_attendees: list[str]
    self_reported: list[str]
    lead_confirmed: list[str]
    removed_volunteers: list[str]
    promoted_volunteers: list[str]
    training_event_id: str | None = None
    service_event_id: str | None = None
    enforced_at: datetime | None = None

    @classmethod
    def from_cycle(cls, cycle) -> "CycleResponse":
        return cls(
            id=str(cycle.id),
            service_date=cycle.service_date,
            training_date=cycle.training_date,
            status=str(cycle.status),
            registered_volunteers=list(cycle.registered_volunteers or []),
            waitlist=list(cycle.waitlist or []),
            thursday_attendees=list(cycle.thursday_attendees or []),
            self_reported=list(cycle.self_reported or []),
            lead_confirmed=list(cycle.lead_confirmed or []),
            removed_volunteers=list(cycle.removed_volunteers or []),
            promoted_volunteers=list(cycle.promoted_volunteers or []),
            training_event_id=cycle.training_event_id,
            service_event_id=cycle.service_event_id,
            enforced_at=cycle.enforced_at,
        )
