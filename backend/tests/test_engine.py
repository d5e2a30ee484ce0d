"""Tests for per-recipient processing: ledger gating and outcome accounting."""

import uuid

from portal.notifications import ledger
from portal.notifications.dispatcher import Channel, Dispatcher
from portal.notifications.subjects import EventSubject
from portal.notifications.templates import Message
from portal.workflows.engine import load_recipients, notify_once
from portal.workflows.runlog import Outcome

MESSAGE = Message(subject="Reminder", text="See you soon", html="<p>See you soon</p>", sms="See you soon")


def _build():
    return MESSAGE


class TestNotifyOnce:
    def test_sends_and_marks(self, db_session, make_ctx, make_volunteer, fake_email):
        ctx = make_ctx("w6")
        v = make_volunteer()
        subject = EventSubject("e1")

        outcome = notify_once(db_session, ctx, v, subject, "7d", _build)

        assert outcome == Outcome.SENT
        assert len(fake_email.sent) == 1
        assert ledger.was_sent(db_session, str(v.id), subject, "7d")
        assert ctx.recorder.counts() == {"sent": 1, "failed": 0, "skipped": 0}
        detail = ctx.recorder.details[0]
        assert detail.channel == "email"
        assert detail.subject_id == "event:e1"

    def test_second_call_is_noop(self, db_session, make_ctx, make_volunteer, fake_email):
        ctx = make_ctx("w6")
        v = make_volunteer()
        subject = EventSubject("e1")

        notify_once(db_session, ctx, v, subject, "7d", _build)
        assert notify_once(db_session, ctx, v, subject, "7d", _build) is None

        assert len(fake_email.sent) == 1
        assert ctx.recorder.counts()["sent"] == 1

    def test_provider_failure_counts_failed_and_is_not_retried(self, db_session, make_ctx, make_volunteer, failing_email, failing_sms):
        ctx = make_ctx("w6", dispatch=Dispatcher(email=failing_email, sms=failing_sms))
        v = make_volunteer()
        subject = EventSubject("e1")

        assert notify_once(db_session, ctx, v, subject, "7d", _build) == Outcome.FAILED
        assert ctx.recorder.details[0].reason == "send_failed"
        # a delivery was attempted, so the stage is closed
        assert ledger.was_sent(db_session, str(v.id), subject, "7d")

    def test_opted_out_is_skipped_and_not_marked(self, db_session, make_ctx, make_volunteer, fake_email, fake_sms):
        ctx = make_ctx("w6")
        v = make_volunteer(notification_prefs={"emailAlerts": False, "smsAlerts": False})
        subject = EventSubject("e1")

        outcome = notify_once(db_session, ctx, v, subject, "7d", _build, channel=Channel.SMS)

        assert outcome == Outcome.SKIPPED
        assert ctx.recorder.details[0].reason == "opted_out"
        assert not ledger.was_sent(db_session, str(v.id), subject, "7d")
        assert fake_email.sent == [] and fake_sms.sent == []

    def test_sms_opt_out_falls_back_to_email(self, db_session, make_ctx, make_volunteer, fake_email, fake_sms):
        ctx = make_ctx("w6")
        v = make_volunteer(notification_prefs={"emailAlerts": True, "smsAlerts": False})

        outcome = notify_once(db_session, ctx, v, EventSubject("e1"), "3h_sms", _build, channel=Channel.SMS)

        assert outcome == Outcome.SENT
        assert ctx.recorder.details[0].channel == "email"
        assert fake_sms.sent == []

    def test_on_first_runs_once_and_marks_even_when_undeliverable(self, db_session, make_ctx, make_volunteer):
        ctx = make_ctx("w4")
        v = make_volunteer(email="", phone="")
        calls = []
        subject = EventSubject("e1")

        first = notify_once(db_session, ctx, v, subject, "thank_you", _build, on_first=lambda: calls.append(1))
        second = notify_once(db_session, ctx, v, subject, "thank_you", _build, on_first=lambda: calls.append(1))

        assert first == Outcome.SKIPPED
        assert second is None
        assert calls == [1]
        assert ledger.was_sent(db_session, str(v.id), subject, "thank_you")

    def test_builder_error_is_contained(self, db_session, make_ctx, make_volunteer):
        ctx = make_ctx("w6")
        v = make_volunteer()

        def broken():
            raise KeyError("title")

        outcome = notify_once(db_session, ctx, v, EventSubject("e1"), "7d", broken)

        assert outcome == Outcome.FAILED
        assert ctx.recorder.details[0].reason == "error"
        assert not ledger.was_sent(db_session, str(v.id), EventSubject("e1"), "7d")


class TestLoadRecipients:
    def test_missing_ids_are_failed_lookups(self, db_session, make_ctx, make_volunteer):
        ctx = make_ctx("w1")
        v = make_volunteer()
        ghost = str(uuid.uuid4())

        found = load_recipients(db_session, ctx, [ghost, str(v.id)], EventSubject("e1"), "7d")

        assert [x.id for x in found] == [v.id]
        assert ctx.recorder.failed == 1
        assert ctx.recorder.details[0].recipient_id == ghost
        assert ctx.recorder.details[0].reason == "lookup_failed"
