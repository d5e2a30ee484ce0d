"""Tests for the notification dedup ledger."""

import uuid

from portal.notifications import ledger
from portal.notifications.models import NotificationLog
from portal.notifications.subjects import BirthdaySubject, ComplianceSubject, CycleSubject, EventSubject, ShiftSubject


class TestSubjectKeys:
    def test_keys_are_namespaced(self):
        assert EventSubject("abc").key == "event:abc"
        assert ShiftSubject("abc").key == "shift:abc"
        assert ComplianceSubject("abc").key == "compliance:abc"
        assert CycleSubject("abc").key == "smo:abc"
        assert BirthdaySubject("abc", 2026).key == "birthday:abc:2026"

    def test_dedup_key(self):
        assert ledger.dedup_key("r1", EventSubject("e1"), "7d") == "r1|event:e1|7d"


class TestWasSent:
    def test_false_before_marking(self, db_session):
        assert ledger.was_sent(db_session, "r1", EventSubject("e1"), "7d") is False

    def test_true_after_marking(self, db_session):
        ledger.mark_sent(db_session, "r1", EventSubject("e1"), "7d", workflow_id="w6", channel="email")
        db_session.commit()
        assert ledger.was_sent(db_session, "r1", EventSubject("e1"), "7d") is True

    def test_other_stage_not_matched(self, db_session):
        ledger.mark_sent(db_session, "r1", EventSubject("e1"), "7d")
        db_session.commit()
        assert ledger.was_sent(db_session, "r1", EventSubject("e1"), "72h") is False

    def test_other_subject_kind_not_matched(self, db_session):
        subject_id = str(uuid.uuid4())
        ledger.mark_sent(db_session, "r1", EventSubject(subject_id), "debrief")
        db_session.commit()
        assert ledger.was_sent(db_session, "r1", ShiftSubject(subject_id), "debrief") is False


class TestMarkSent:
    def test_is_idempotent(self, db_session):
        first = ledger.mark_sent(db_session, "r1", CycleSubject("c1"), "100")
        db_session.commit()
        second = ledger.mark_sent(db_session, "r1", CycleSubject("c1"), "100")
        db_session.commit()

        assert first.id == second.id
        assert db_session.query(NotificationLog).count() == 1

    def test_records_workflow_and_channel(self, db_session):
        entry = ledger.mark_sent(db_session, "r1", ShiftSubject("s1"), "shift_24h", workflow_id="w1", channel="sms")
        db_session.commit()
        assert entry.workflow_id == "w1"
        assert entry.channel == "sms"
        assert entry.subject_id == "shift:s1"

    def test_sent_stages(self, db_session):
        subject = EventSubject("e1")
        ledger.mark_sent(db_session, "r1", subject, "7d")
        ledger.mark_sent(db_session, "r1", subject, "3h_sms")
        ledger.mark_sent(db_session, "r2", subject, "72h")
        db_session.commit()

        assert ledger.sent_stages(db_session, "r1", subject) == {"7d", "3h_sms"}
        assert ledger.sent_stages(db_session, "r3", subject) == set()
