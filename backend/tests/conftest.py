"""Shared test fixtures."""

import uuid
from datetime import UTC, date, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from portal.audit.models import AuditLog
from portal.database.base import Base
from portal.events.models import Opportunity, Shift
from portal.integrations.cache import NullCacheService
from portal.notifications.dispatcher import Dispatcher
from portal.notifications.errors import SendFailed
from portal.notifications.models import NotificationLog
from portal.smo.models import SMOCycle
from portal.volunteers.models import ComplianceItem, Volunteer, VolunteerStatus
from portal.workflows.engine import RunContext
from portal.workflows.models import WorkflowRun, WorkflowRunDetail, WorkflowSetting
from portal.workflows.runlog import RunRecorder

# Models must be imported so Base.metadata.create_all() sees all tables.
_ALL_MODELS = [
    AuditLog,
    ComplianceItem,
    NotificationLog,
    Opportunity,
    Shift,
    SMOCycle,
    Volunteer,
    WorkflowRun,
    WorkflowRunDetail,
    WorkflowSetting,
]

# Monday 2026-10-19, 10:00 in Los Angeles (PDT).
NOW = datetime(2026, 10, 19, 17, 0, tzinfo=UTC)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def engine():
    """In-memory SQLite shared by every session of a test.

    Note: SQLite doesn't support all PostgreSQL features (row locks, native
    UUID), but works for service and workflow logic testing.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def null_cache():
    """No-op cache for testing."""
    return NullCacheService()


# ── Fake channel providers ────────────────────────────────────────────


class FakeEmailProvider:
    configured = True

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[tuple[str, str]] = []

    def send(self, to, subject, html, text):
        if self.fail:
            raise SendFailed("smtp: connection refused")
        self.sent.append((to, subject))


class FakeSmsProvider:
    configured = True

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[tuple[str, str]] = []

    def send(self, to, body):
        if self.fail:
            raise SendFailed("twilio: HTTP 500")
        self.sent.append((to, body))


@pytest.fixture
def fake_email():
    return FakeEmailProvider()


@pytest.fixture
def fake_sms():
    return FakeSmsProvider()


@pytest.fixture
def dispatcher(fake_email, fake_sms):
    return Dispatcher(email=fake_email, sms=fake_sms)


@pytest.fixture
def make_ctx(dispatcher):
    """Build a RunContext with a fresh recorder."""

    def _make(workflow_id: str = "w_test", now: datetime = NOW, options: dict | None = None, dispatch=None):
        return RunContext(
            workflow_id=workflow_id,
            now=now,
            dispatcher=dispatch or dispatcher,
            recorder=RunRecorder(workflow_id, started_at=now),
            options=options or {},
        )

    return _make


# ── Entity factories ──────────────────────────────────────────────────


@pytest.fixture
def make_volunteer(db_session):
    def _make(**kwargs):
        kwargs.setdefault("id", uuid.uuid4())
        kwargs.setdefault("name", "Test Volunteer")
        kwargs.setdefault("email", f"{kwargs['id'].hex[:8]}@example.com")
        kwargs.setdefault("phone", "(555) 123-4567")
        kwargs.setdefault("status", VolunteerStatus.ACTIVE)
        kwargs.setdefault("notification_prefs", {"emailAlerts": True, "smsAlerts": True})
        kwargs.setdefault("event_eligibility", {})
        kwargs.setdefault("rsvped_event_ids", [])
        kwargs.setdefault("skills", [])
        volunteer = Volunteer(**kwargs)
        db_session.add(volunteer)
        db_session.commit()
        return volunteer

    return _make


@pytest.fixture
def make_opportunity(db_session):
    def _make(starts_at: datetime, **kwargs):
        kwargs.setdefault("title", "Community Health Fair")
        kwargs.setdefault("service_location", "Leimert Park")
        kwargs.setdefault("rsvps", [])
        kwargs.setdefault("required_skills", [])
        opp = Opportunity(starts_at=starts_at, **kwargs)
        db_session.add(opp)
        db_session.commit()
        return opp

    return _make


@pytest.fixture
def make_shift(db_session):
    def _make(opportunity: Opportunity, starts_at: datetime, ends_at: datetime, volunteers=(), **kwargs):
        kwargs.setdefault("role_type", "Core Volunteer")
        shift = Shift(
            opportunity_id=opportunity.id,
            starts_at=starts_at,
            ends_at=ends_at,
            assigned_volunteer_ids=[str(v.id) for v in volunteers],
            **kwargs,
        )
        db_session.add(shift)
        db_session.commit()
        return shift

    return _make


@pytest.fixture
def make_compliance_item(db_session):
    def _make(volunteer: Volunteer, expires_on: date, item_type: str = "backgroundCheck", label: str = "Background check"):
        item = ComplianceItem(volunteer_id=volunteer.id, item_type=item_type, label=label, expires_on=expires_on)
        db_session.add(item)
        db_session.commit()
        return item

    return _make


@pytest.fixture
def failing_email():
    return FakeEmailProvider(fail=True)


@pytest.fixture
def failing_sms():
    return FakeSmsProvider(fail=True)
