"""Workflow routes: cron trigger, manual trigger, config and run history."""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker

from ..audit.service import audit
from ..config import settings
from ..database.base import get_db
from ..dependencies import check_cron_secret, get_cache, get_dispatcher, get_session_factory, require_admin
from ..integrations.cache import CacheService
from ..notifications.dispatcher import Dispatcher
from ..rate_limit import limiter
from . import registry
from .errors import UnknownWorkflow
from .runlog import get_run_details, list_runs
from .schemas import RunDetailResponse, RunSummary, WorkflowConfigUpdate, WorkflowInfo
from .service import execute_workflow, get_workflow_config, run_group, set_workflow_config

logger = logging.getLogger(__name__)

router = APIRouter(tags=["workflows"])


@router.post("/run-workflows")
@limiter.limit(settings.rate_limit_trigger)
def run_workflows(
    request: Request,
    group: str | None = None,
    db: Session = Depends(get_db),
    actor: str = Depends(check_cron_secret),
    cache: CacheService = Depends(get_cache),
    dispatcher: Dispatcher = Depends(get_dispatcher),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """External cron entry point. Runs the daily and scheduled groups unless ``group`` is given."""
    groups = (group,) if group else registry.CATCH_UP_GROUPS
    if any(g not in registry.GROUPS for g in groups):
        return JSONResponse({"error": f"Unknown group: {group}"}, status_code=404)

    results = {
        g: run_group(g, trigger="endpoint", dispatcher=dispatcher, cache=cache, session_factory=session_factory)
        for g in groups
    }
    audit(db, request, "run_workflows", f"groups={','.join(groups)}", actor)
    db.commit()
    return results


@router.post("/workflows/trigger/{workflow_id}")
@limiter.limit(settings.rate_limit_trigger)
def trigger_workflow(
    request: Request,
    workflow_id: str,
    db: Session = Depends(get_db),
    actor: str = Depends(require_admin),
    cache: CacheService = Depends(get_cache),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    try:
        result = execute_workflow(db, workflow_id, trigger="manual", force=True, dispatcher=dispatcher, cache=cache)
    except UnknownWorkflow:
        return JSONResponse({"error": f"Unknown workflow: {workflow_id}"}, status_code=404)
    audit(db, request, "trigger_workflow", f"workflow={workflow_id} status={result['status']}", actor)
    db.commit()
    return result


@router.get("/workflows")
def list_workflows(
    db: Session = Depends(get_db),
    _: str = Depends(require_admin),
    cache: CacheService = Depends(get_cache),
):
    config = get_workflow_config(db, cache)
    return {
        "workflows": [
            WorkflowInfo(
                id=spec.id,
                title=spec.title,
                description=spec.description,
                enabled=config.get(spec.key, spec.default_enabled),
                daily_once=spec.daily_once,
                config_key=spec.key,
            ).model_dump()
            for spec in registry.WORKFLOWS.values()
        ],
        "groups": {name: list(members) for name, members in registry.GROUPS.items()},
    }


@router.get("/workflows/config")
def read_config(
    db: Session = Depends(get_db),
    _: str = Depends(require_admin),
    cache: CacheService = Depends(get_cache),
):
    return get_workflow_config(db, cache)


@router.put("/workflows/config")
def update_config(
    body: WorkflowConfigUpdate,
    request: Request,
    db: Session = Depends(get_db),
    actor: str = Depends(require_admin),
    cache: CacheService = Depends(get_cache),
):
    try:
        config = set_workflow_config(db, body.flags, cache)
    except UnknownWorkflow as exc:
        return JSONResponse({"error": f"Unknown workflow: {exc}"}, status_code=400)
    audit(db, request, "workflow_config", ", ".join(f"{k}={v}" for k, v in sorted(body.flags.items())), actor)
    db.commit()
    return config


@router.get("/workflows/runs")
def get_runs(limit: int = 20, db: Session = Depends(get_db), _: str = Depends(require_admin)):
    runs = list_runs(db, limit=max(1, min(limit, 200)))
    return {"runs": [RunSummary.from_run(r).model_dump(mode="json") for r in runs]}


@router.get("/workflows/runs/{run_id}/details")
def get_details(run_id: str, db: Session = Depends(get_db), _: str = Depends(require_admin)):
    details = get_run_details(db, run_id)
    if details is None:
        return JSONResponse({"error": "Run not found"}, status_code=404)
    return {"details": [RunDetailResponse.model_validate(d).model_dump() for d in details]}
