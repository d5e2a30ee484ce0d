"""Workflow catalog and scheduler trigger groups."""

from collections.abc import Callable
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from ..smo.service import run_smo_cycle
from .compliance import run_compliance_warnings
from .debrief import run_post_event_debrief
from .engine import RunContext
from .errors import UnknownWorkflow
from .event_cadence import FULL, SMS_ONLY, run_event_cadence
from .opportunity_alerts import run_new_opportunity_alerts
from .recognition import run_birthday_recognition
from .shift_reminders import run_shift_reminders, run_thank_yous

Runner = Callable[[Session, RunContext], None]


@dataclass(frozen=True)
class WorkflowSpec:
    id: str
    title: str
    description: str
    runner: Runner
    default_enabled: bool = True
    daily_once: bool = False
    config_key: str | None = None
    options: dict = field(default_factory=dict)

    @property
    def key(self) -> str:
        """The enabled-flag this workflow is governed by."""
        return self.config_key or self.id


WORKFLOWS: dict[str, WorkflowSpec] = {
    spec.id: spec
    for spec in (
        WorkflowSpec(
            "w1",
            "Shift Reminder",
            "Text volunteers the day before a shift they are assigned to.",
            run_shift_reminders,
            daily_once=True,
        ),
        WorkflowSpec(
            "w2",
            "Post-Shift Thank You",
            "Thank volunteers the day after a shift with the hours they contributed.",
            run_thank_yous,
            daily_once=True,
        ),
        WorkflowSpec(
            "w3",
            "New Opportunity Alert",
            "Alert volunteers with matching skills about new high-urgency opportunities.",
            run_new_opportunity_alerts,
            default_enabled=False,
        ),
        WorkflowSpec(
            "w4",
            "Birthday Recognition",
            "Award bonus Impact XP and send a birthday greeting.",
            run_birthday_recognition,
            daily_once=True,
        ),
        WorkflowSpec(
            "w5",
            "Compliance Expiry Warning",
            "Warn volunteers about credentials expiring within 30 days.",
            run_compliance_warnings,
            daily_once=True,
        ),
        WorkflowSpec(
            "w6",
            "Event Reminder Cadence",
            "7-day, 72-hour and 24-hour event reminders plus a 3-hour text.",
            run_event_cadence,
            options={"mode": FULL},
        ),
        WorkflowSpec(
            "w6_sms",
            "Event Reminder Cadence (3-hour SMS)",
            "The 3-hour text track of the event cadence only.",
            run_event_cadence,
            config_key="w6",
            options={"mode": SMS_ONLY},
        ),
        WorkflowSpec(
            "w7",
            "SMO Monthly Cycle",
            "Create, remind, enforce attendance and advance the Street Medicine Outreach cycle.",
            run_smo_cycle,
        ),
        WorkflowSpec(
            "w8",
            "Post-Event Debrief",
            "Ask attendees and the organizer for a debrief after an event ends.",
            run_post_event_debrief,
        ),
    )
}

GROUPS: dict[str, tuple[str, ...]] = {
    "daily": ("w1", "w2", "w6", "w7"),
    "scheduled": ("w3", "w4", "w5"),
    "three_hourly": ("w6_sms",),
    "debrief": ("w8",),
    # Fired just after the training-night enforcement hour.
    "smo_enforcement": ("w7",),
}

CATCH_UP_GROUPS = ("daily", "scheduled")


def get_workflow(workflow_id: str) -> WorkflowSpec:
    try:
        return WORKFLOWS[workflow_id]
    except KeyError:
        raise UnknownWorkflow(workflow_id) from None


def group_members(group: str) -> tuple[str, ...]:
    try:
        return GROUPS[group]
    except KeyError:
        raise UnknownWorkflow(f"group {group}") from None


def config_defaults() -> dict[str, bool]:
    """Default enabled flag per config key (variants share their parent's flag)."""
    defaults: dict[str, bool] = {}
    for spec in WORKFLOWS.values():
        defaults.setdefault(spec.key, spec.default_enabled)
    return defaults
