"""Run logger: aggregate counts and per-recipient audit trail for each run."""

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from ..timeutils import as_utc, local_date, local_day_bounds, utcnow
from .models import WorkflowRun, WorkflowRunDetail

logger = logging.getLogger(__name__)


class Outcome(enum.StrEnum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class DetailEntry:
    recipient_id: str
    subject_id: str
    stage: str
    outcome: Outcome
    channel: str = ""
    reason: str = ""
    recipient_name: str = ""


@dataclass
class RunRecorder:
    workflow_id: str
    trigger: str = "scheduled"
    started_at: datetime = field(default_factory=utcnow)
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    details: list[DetailEntry] = field(default_factory=list)

    def record(
        self,
        outcome: Outcome,
        *,
        recipient_id: str = "",
        subject_id: str = "",
        stage: str = "",
        channel: str = "",
        reason: str = "",
        recipient_name: str = "",
    ) -> None:
        if outcome == Outcome.SENT:
            self.sent += 1
        elif outcome == Outcome.FAILED:
            self.failed += 1
        else:
            self.skipped += 1
        self.details.append(
            DetailEntry(
                recipient_id=str(recipient_id),
                subject_id=subject_id,
                stage=stage,
                outcome=outcome,
                channel=channel,
                reason=reason,
                recipient_name=recipient_name,
            )
        )

    def counts(self) -> dict:
        return {"sent": self.sent, "failed": self.failed, "skipped": self.skipped}


def save_run(db: Session, recorder: RunRecorder, status: str = "completed", error: str = "") -> WorkflowRun:
    """Persist the run and its details, then commit."""
    run = WorkflowRun(
        workflow_id=recorder.workflow_id,
        trigger=recorder.trigger,
        status=status,
        sent=recorder.sent,
        failed=recorder.failed,
        skipped=recorder.skipped,
        error=error[:2000],
        started_at=as_utc(recorder.started_at),
        finished_at=utcnow(),
    )
    db.add(run)
    db.flush()
    for position, entry in enumerate(recorder.details):
        db.add(
            WorkflowRunDetail(
                run_id=run.id,
                position=position,
                recipient_id=entry.recipient_id,
                recipient_name=entry.recipient_name[:255],
                subject_id=entry.subject_id,
                stage=entry.stage,
                outcome=entry.outcome.value,
                channel=entry.channel,
                reason=entry.reason,
            )
        )
    db.commit()
    logger.info(
        "Workflow %s %s: sent=%d failed=%d skipped=%d",
        recorder.workflow_id, status, recorder.sent, recorder.failed, recorder.skipped,
    )
    return run


def already_ran_today(db: Session, workflow_id: str, now: datetime) -> bool:
    """True when a completed run of ``workflow_id`` started on today's civil date."""
    start, end = local_day_bounds(local_date(now))
    return (
        db.query(WorkflowRun.id)
        .filter(
            WorkflowRun.workflow_id == workflow_id,
            WorkflowRun.status == "completed",
            WorkflowRun.started_at >= start,
            WorkflowRun.started_at < end,
        )
        .first()
        is not None
    )


def list_runs(db: Session, limit: int = 20) -> list[WorkflowRun]:
    return db.query(WorkflowRun).order_by(WorkflowRun.started_at.desc()).limit(limit).all()


def get_run_details(db: Session, run_id: str) -> list[WorkflowRunDetail] | None:
    """Details for a run, or None when the run does not exist."""
    try:
        uid = UUID(run_id)
    except (ValueError, AttributeError):
        return None
    run = db.query(WorkflowRun).filter(WorkflowRun.id == uid).first()
    if not run:
        return None
    return list(run.details)
