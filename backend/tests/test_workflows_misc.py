"""Tests for w3 New-Opportunity Alert, w4 Birthday, w5 Compliance and w8 Debrief."""

from datetime import date, timedelta

from portal.events.models import Urgency
from portal.volunteers.models import VolunteerStatus
from portal.workflows.compliance import run_compliance_warnings
from portal.workflows.debrief import run_post_event_debrief
from portal.workflows.opportunity_alerts import run_new_opportunity_alerts, skills_match
from portal.workflows.recognition import run_birthday_recognition


class TestNewOpportunityAlerts:
    def test_alerts_matching_volunteers_only(self, db_session, now, make_ctx, make_volunteer, make_opportunity, fake_email):
        ctx = make_ctx("w3")
        match = make_volunteer(email="medic@example.com", skills=[{"name": "Phlebotomy"}])
        make_volunteer(email="cpr@example.com", skills=["CPR"])
        make_volunteer(
            email="quiet@example.com",
            skills=["phlebotomy"],
            notification_prefs={"opportunityUpdates": False},
        )
        make_opportunity(
            now + timedelta(days=3),
            title="Blood Drive",
            urgency=Urgency.HIGH,
            required_skills=["phlebotomy"],
            created_at=now - timedelta(hours=2),
        )

        run_new_opportunity_alerts(db_session, ctx)

        assert [to for to, _ in fake_email.sent] == [match.email]

    def test_normal_urgency_ignored(self, db_session, now, make_ctx, make_volunteer, make_opportunity, fake_email):
        make_volunteer()
        make_opportunity(now + timedelta(days=3), urgency=Urgency.MEDIUM, created_at=now - timedelta(hours=2))

        run_new_opportunity_alerts(db_session, make_ctx("w3"))

        assert fake_email.sent == []

    def test_no_required_skills_matches_everyone(self, make_volunteer, make_opportunity, now):
        v = make_volunteer(skills=[])
        opp = make_opportunity(now + timedelta(days=1), required_skills=[])
        assert skills_match(v, opp)


class TestBirthdayRecognition:
    def test_awards_bonus_and_greets(self, db_session, make_ctx, make_volunteer, fake_email):
        ctx = make_ctx("w4")
        v = make_volunteer(birth_date=date(1990, 10, 19), points=950)
        make_volunteer(birth_date=date(1990, 10, 20))

        run_birthday_recognition(db_session, ctx)

        db_session.refresh(v)
        assert v.points == 1050
        assert len(fake_email.sent) == 1
        assert fake_email.sent[0][1].startswith("Happy birthday")

    def test_bonus_awarded_once_per_year(self, db_session, now, make_ctx, make_volunteer):
        v = make_volunteer(birth_date=date(1990, 10, 19), points=0)

        run_birthday_recognition(db_session, make_ctx("w4"))
        run_birthday_recognition(db_session, make_ctx("w4"))
        db_session.refresh(v)
        assert v.points == 100

        run_birthday_recognition(db_session, make_ctx("w4", now=now.replace(year=2027)))
        db_session.refresh(v)
        assert v.points == 200

    def test_bonus_awarded_even_without_contact(self, db_session, make_ctx, make_volunteer):
        ctx = make_ctx("w4")
        v = make_volunteer(birth_date=date(1990, 10, 19), points=0, email="", phone="")

        run_birthday_recognition(db_session, ctx)

        db_session.refresh(v)
        assert v.points == 100
        assert ctx.recorder.counts()["skipped"] == 1


class TestComplianceWarnings:
    def test_warns_for_items_inside_horizon(self, db_session, make_ctx, make_volunteer, make_compliance_item, fake_email):
        ctx = make_ctx("w5")
        today = date(2026, 10, 19)
        v = make_volunteer(email="ana@example.com")
        make_compliance_item(v, today + timedelta(days=10), label="CPR certification")
        make_compliance_item(v, today + timedelta(days=31))
        make_compliance_item(v, today - timedelta(days=1))
        make_compliance_item(v, today + timedelta(days=30), item_type="licenseExpiration", label="Nursing license")

        run_compliance_warnings(db_session, ctx)

        subjects = sorted(s for _, s in fake_email.sent)
        assert len(subjects) == 2
        assert subjects[0].startswith("Action needed: CPR certification")
        assert subjects[1].startswith("Action needed: Nursing license")

    def test_inactive_volunteers_skipped(self, db_session, make_ctx, make_volunteer, make_compliance_item, fake_email):
        v = make_volunteer(status=VolunteerStatus.INACTIVE)
        make_compliance_item(v, date(2026, 10, 25))

        run_compliance_warnings(db_session, make_ctx("w5"))

        assert fake_email.sent == []

    def test_each_item_warned_once(self, db_session, make_ctx, make_volunteer, make_compliance_item, fake_email):
        v = make_volunteer()
        make_compliance_item(v, date(2026, 10, 25))

        run_compliance_warnings(db_session, make_ctx("w5"))
        run_compliance_warnings(db_session, make_ctx("w5"))

        assert len(fake_email.sent) == 1


class TestPostEventDebrief:
    def test_debrief_sent_to_participants_and_coordinator(self, db_session, now, make_ctx, make_volunteer, make_opportunity, make_shift, fake_email):
        ctx = make_ctx("w8")
        a = make_volunteer(email="a@example.com")
        lead = make_volunteer(email="lead@example.com")
        ends = now - timedelta(minutes=20)
        opp = make_opportunity(ends - timedelta(hours=3), ends_at=ends, created_by=str(lead.id), title="Outreach")
        make_shift(opp, opp.starts_at, ends, volunteers=[a])

        run_post_event_debrief(db_session, ctx)

        assert sorted(to for to, _ in fake_email.sent) == ["a@example.com", "lead@example.com"]
        assert fake_email.sent[0][1] == "How did Outreach go?"

    def test_system_created_event_has_no_failed_lookup(self, db_session, now, make_ctx, make_volunteer, make_opportunity, make_shift, fake_email):
        ctx = make_ctx("w8")
        a = make_volunteer(email="a@example.com")
        ends = now - timedelta(minutes=20)
        opp = make_opportunity(ends - timedelta(hours=3), ends_at=ends, created_by="system")
        make_shift(opp, opp.starts_at, ends, volunteers=[a])

        run_post_event_debrief(db_session, ctx)

        assert ctx.recorder.counts() == {"sent": 1, "failed": 0, "skipped": 0}
        assert [d.recipient_id for d in ctx.recorder.details] == [str(a.id)]

    def test_not_due_before_delay_or_after_window(self, db_session, now, make_ctx, make_volunteer, make_opportunity, make_shift, fake_email):
        v = make_volunteer()
        for ends in (now - timedelta(minutes=10), now - timedelta(minutes=90)):
            opp = make_opportunity(ends - timedelta(hours=2), ends_at=ends)
            make_shift(opp, opp.starts_at, ends, volunteers=[v])

        run_post_event_debrief(db_session, make_ctx("w8"))

        assert fake_email.sent == []

    def test_debrief_sent_once(self, db_session, now, make_ctx, make_volunteer, make_opportunity, make_shift, fake_email):
        v = make_volunteer()
        ends = now - timedelta(minutes=20)
        opp = make_opportunity(ends - timedelta(hours=2), ends_at=ends)
        make_shift(opp, opp.starts_at, ends, volunteers=[v])

        run_post_event_debrief(db_session, make_ctx("w8"))
        run_post_event_debrief(db_session, make_ctx("w8", now=now + timedelta(minutes=10)))

        assert len(fake_email.sent) == 1
