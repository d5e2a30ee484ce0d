"""Run workflows: enabled flags, run-level daily guard, run persistence."""

import logging
from datetime import datetime

from sqlalchemy.orm import Session, sessionmaker

from ..config import settings
from ..database.base import SessionLocal, session_scope
from ..integrations.cache import CacheService, NullCacheService
from ..notifications.dispatcher import Dispatcher
from ..timeutils import as_utc, utcnow
from . import registry
from .engine import RunContext
from .errors import UnknownWorkflow
from .models import WorkflowSetting
from .runlog import RunRecorder, already_ran_today, save_run

logger = logging.getLogger(__name__)

CONFIG_CACHE_KEY = "workflows:config"


def get_workflow_config(db: Session, cache: CacheService | None = None) -> dict[str, bool]:
    """Enabled flag per workflow key; unset keys take the catalog default."""
    cache = cache or NullCacheService()
    cached = cache.get_json(CONFIG_CACHE_KEY)
    if cached is not None:
        return {k: bool(v) for k, v in cached.items()}

    stored = {row.workflow_id: row.enabled for row in db.query(WorkflowSetting).all()}
    config = {key: bool(stored.get(key, default)) for key, default in registry.config_defaults().items()}
    cache.set_json(CONFIG_CACHE_KEY, config, settings.workflow_config_cache_ttl)
    return config


def set_workflow_config(db: Session, updates: dict[str, bool], cache: CacheService | None = None) -> dict[str, bool]:
    cache = cache or NullCacheService()
    known = registry.config_defaults()
    unknown = sorted(set(updates) - set(known))
    if unknown:
        raise UnknownWorkflow(", ".join(unknown))

    for key, enabled in updates.items():
        row = db.get(WorkflowSetting, key)
        if row is None:
            db.add(WorkflowSetting(workflow_id=key, enabled=bool(enabled)))
        else:
            row.enabled = bool(enabled)
    db.commit()
    cache.delete(CONFIG_CACHE_KEY)
    logger.info("Workflow config updated: %s", updates)
    return get_workflow_config(db, cache)


def _result(workflow_id: str, status: str, recorder: RunRecorder | None = None, **extra) -> dict:
    counts = recorder.counts() if recorder else {"sent": 0, "failed": 0, "skipped": 0}
    return {"workflow_id": workflow_id, "status": status, **counts, **extra}


def execute_workflow(
    db: Session,
    workflow_id: str,
    now: datetime | None = None,
    trigger: str = "manual",
    force: bool = False,
    dispatcher: Dispatcher | None = None,
    cache: CacheService | None = None,
) -> dict:
    """Run one workflow to completion and persist its WorkflowRun.

    ``force`` (manual trigger) bypasses both the enabled flag and the
    once-per-day guard. A failure outside per-recipient handling aborts the
    run; the counts gathered so far are still saved with ``status="aborted"``.
    """
    spec = registry.get_workflow(workflow_id)
    now = as_utc(now) if now else utcnow()

    if not force and not get_workflow_config(db, cache).get(spec.key, spec.default_enabled):
        logger.info("Workflow %s is disabled, not running", spec.id)
        return _result(spec.id, "disabled")

    if spec.daily_once and not force and already_ran_today(db, spec.id, now):
        logger.info("Workflow %s already completed today, skipping", spec.id)
        return _result(spec.id, "skipped")

    recorder = RunRecorder(spec.id, trigger=trigger, started_at=now)
    ctx = RunContext(spec.id, now, dispatcher or Dispatcher(), recorder, dict(spec.options))
    logger.info("Workflow %s started (trigger=%s)", spec.id, trigger)
    try:
        spec.runner(db, ctx)
    except Exception as exc:
        db.rollback()
        logger.exception("Workflow %s aborted", spec.id)
        run = save_run(db, recorder, status="aborted", error=str(exc))
        return _result(spec.id, "aborted", recorder, run_id=str(run.id), error=str(exc))

    run = save_run(db, recorder)
    return _result(spec.id, "completed", recorder, run_id=str(run.id))


def run_group(
    group: str,
    trigger: str = "scheduled",
    now: datetime | None = None,
    dispatcher: Dispatcher | None = None,
    cache: CacheService | None = None,
    session_factory: sessionmaker = SessionLocal,
) -> dict[str, dict]:
    """Run every workflow in ``group`` sequentially, each in its own session."""
    dispatcher = dispatcher or Dispatcher()
    results: dict[str, dict] = {}
    for workflow_id in registry.group_members(group):
        try:
            with session_scope(session_factory) as db:
                results[workflow_id] = execute_workflow(
                    db, workflow_id, now=now, trigger=trigger, dispatcher=dispatcher, cache=cache
                )
        except Exception as exc:
            # Saving the aborted run itself failed; keep going with the group.
            logger.exception("Workflow %s could not be run in group %s", workflow_id, group)
            results[workflow_id] = _result(workflow_id, "error", error=str(exc))
    return results
