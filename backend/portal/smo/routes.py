"""SMO cycle routes: roster inspection, registration and attendance."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..audit.service import audit
from ..database.base import get_db
from ..dependencies import require_admin
from .schemas import AttendanceRequest, CycleResponse, RegistrationRequest
from .service import RegistrationError, cancel_registration, list_cycles, record_attendance, register_volunteer

router = APIRouter(prefix="/smo", tags=["smo"])


def _error(exc: RegistrationError) -> JSONResponse:
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


@router.get("/cycles")
def get_cycles(limit: int = 12, db: Session = Depends(get_db), _: str = Depends(require_admin)):
    cycles = list_cycles(db, limit=max(1, min(limit, 100)))
    return {"cycles": [CycleResponse.from_cycle(c).model_dump(mode="json") for c in cycles]}


@router.post("/cycles/{cycle_id}/register")
def register(
    cycle_id: str,
    body: RegistrationRequest,
    request: Request,
    db: Session = Depends(get_db),
    actor: str = Depends(require_admin),
):
    try:
        result = register_volunteer(db, cycle_id, body.volunteer_id)
    except RegistrationError as exc:
        return _error(exc)
    audit(db, request, "smo_register", f"cycle={cycle_id} volunteer={body.volunteer_id} result={result}", actor)
    db.commit()
    return {"ok": True, "result": result}


@router.delete("/cycles/{cycle_id}/register/{volunteer_id}")
def unregister(
    cycle_id: str,
    volunteer_id: str,
    request: Request,
    db: Session = Depends(get_db),
    actor: str = Depends(require_admin),
):
    try:
        promoted = cancel_registration(db, cycle_id, volunteer_id)
    except RegistrationError as exc:
        return _error(exc)
    audit(db, request, "smo_cancel", f"cycle={cycle_id} volunteer={volunteer_id} promoted={promoted}", actor)
    db.commit()
    return {"ok": True, "promoted": promoted}


@router.post("/cycles/{cycle_id}/attendance")
def attendance(
    cycle_id: str,
    body: AttendanceRequest,
    request: Request,
    db: Session = Depends(get_db),
    actor: str = Depends(require_admin),
):
    try:
        cycle = record_attendance(db, cycle_id, body.volunteer_ids, body.source)
    except RegistrationError as exc:
        return _error(exc)
    audit(db, request, "smo_attendance", f"cycle={cycle_id} source={body.source} count={len(body.volunteer_ids)}", actor)
    db.commit()
    return {"ok": True, "cycle": CycleResponse.from_cycle(cycle).model_dump(mode="json")}
