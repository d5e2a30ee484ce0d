"""Workflow request/response schemas."""

from datetime import datetime

from pydantic import BaseModel


class WorkflowConfigUpdate(BaseModel):
    flags: dict[str, bool]


class WorkflowInfo(BaseModel):
    id: str
    title: str
    description: str
    enabled: bool
    daily_once: bool
    config_key: str


class RunSummary(BaseModel):
    id: str
    workflow_id: str
    trigger: str
    status: str
    sent: int
    failed: int
    skipped: int
    error: str = ""
    started_at: datetime | None = None
    finished_at: datetime | None = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_run(cls, run) -> "RunSummary":
        return cls(
            id=str(run.id),
            workflow_id=run.workflow_id,
            trigger=run.trigger or "",
            status=run.status or "",
            sent=run.sent or 0,
            failed=run.failed or 0,
            skipped=run.skipped or 0,
            error=run.error or "",
            started_at=run.started_at,
            finished_at=run.finished_at,
        )


class RunDetailResponse(BaseModel):
    recipient_id: str
    recipient_name: str
    subject_id: str
    stage: str
    outcome: str
    channel: str
    reason: str

    model_config = {"from_attributes": True}
