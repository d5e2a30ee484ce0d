"""Audit log service."""

from fastapi import Request
from sqlalchemy.orm import Session

from ..rate_limit import client_ip
from .models import AuditLog


def audit(db: Session, request: Request, action: str, detail: str = "", actor: str = "admin") -> None:
    """Stage an audit entry; the caller's commit persists it."""
    db.add(
        AuditLog(
            actor=actor,
            action=action,
            detail=detail[:2000],
            ip_address=client_ip(request)[:45],
        )
    )


def recent_entries(db: Session, limit: int = 50) -> list[AuditLog]:
    return db.query(AuditLog).order_by(AuditLog.created_at.desc()).limit(limit).all()
