"""Shared FastAPI dependencies."""

import hmac

from fastapi import Request
from sqlalchemy.orm import sessionmaker

from .config import settings
from .database.base import SessionLocal
from .integrations.cache import CacheService
from .notifications.dispatcher import Dispatcher


class AdminRequired(Exception):
    """Raised when the admin token is missing or wrong. Handled by exception handler in main.py."""

    pass


class CronSecretInvalid(Exception):
    """Raised when the cron trigger secret does not match. Handled in main.py."""

    pass


def _matches(supplied: str | None, expected: str) -> bool:
    return bool(supplied) and hmac.compare_digest(supplied.encode(), expected.encode())


def get_cache(request: Request) -> CacheService:
    """Get the cache service from app state."""
    return request.app.state.cache


def require_admin(request: Request) -> str:
    """Admin endpoints need ``X-Admin-Token``; an unset token locks them entirely."""
    if not settings.admin_token or not _matches(request.headers.get("X-Admin-Token"), settings.admin_token):
        raise AdminRequired()
    return "admin"


def check_cron_secret(request: Request) -> str:
    """Cron caller check: header or ``?secret=``. Open when no secret is configured."""
    if not settings.cron_secret:
        return "cron"
    supplied = request.headers.get("X-Cron-Secret") or request.query_params.get("secret")
    if not _matches(supplied, settings.cron_secret):
        raise CronSecretInvalid()
    return "cron"


def get_session_factory() -> sessionmaker:
    """Session factory for handlers that open one session per workflow."""
    return SessionLocal


def get_dispatcher() -> Dispatcher:
    return Dispatcher()
